# cms/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import atexit
import logging
from functools import partial
from flask import Flask, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
import firebase_admin
from firebase_admin import credentials

# - 설정
from cms.core.config import config_by_name

# - API 블루프린트
from cms.api.admin.routes import admin_bp
from cms.api.feeds.routes import feeds_bp

# - 서비스 모듈
from cms.services.firestore_service import DocumentStoreService
from cms.services.storage_service import StorageService
from cms.services.image_service import ImageIntakePipeline, InlineImageStrategy, ExternalStorageStrategy
from cms.services.sync_service import SyncMode
from cms.api.admin.services import AdminSession, AdminSessionRegistry
from cms.api.feeds.services import FeedService


def _build_pipeline(config, storage_service):
    """설정된 이미지 전략에 따라 입력 파이프라인을 만듭니다. 한 배포에서는 한 가지 전략만 사용합니다."""
    strategy_name = config.get('IMAGE_STRATEGY', 'inline')
    if strategy_name == 'storage':
        if storage_service is None:
            raise ValueError("IMAGE_STRATEGY=storage 에는 FIREBASE_STORAGE_BUCKET 설정이 필요합니다.")
        strategy = ExternalStorageStrategy(storage_service)
    elif strategy_name == 'inline':
        strategy = InlineImageStrategy(
            max_dimension=config.get('MAX_IMAGE_DIMENSION', 800),
            quality=config.get('IMAGE_QUALITY', 70),
        )
    else:
        raise ValueError(f"'{strategy_name}'은(는) 유효한 IMAGE_STRATEGY가 아닙니다 (inline, storage).")

    return ImageIntakePipeline(
        strategy,
        max_bytes=config.get('MAX_UPLOAD_BYTES', 0),
        max_workers=config.get('IMAGE_WORKERS', 4),
    )


def create_app(config_name=None, document_store=None, storage_service=None):
    """
    Flask 애플리케이션 팩토리 함수.
    document_store / storage_service를 넘기면 Firebase 초기화를 건너뛰고 그대로 사용합니다 (테스트용).
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 외부 서비스 초기화
    # =====================================================================================
    if document_store is None and not firebase_admin._apps:
        cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
        if not cred_path or not os.path.exists(cred_path):
            raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
        cred = credentials.Certificate(cred_path)
        options = {}
        if app.config.get('FIREBASE_STORAGE_BUCKET'):
            options['storageBucket'] = app.config['FIREBASE_STORAGE_BUCKET']
        firebase_admin.initialize_app(cred, options)

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}

    # 5-1. 다른 서비스의 기반이 되는 공용/핵심 서비스 먼저 생성
    if document_store is None:
        document_store = DocumentStoreService()
        document_store.init_app(app)
    app.services['documents'] = document_store

    if storage_service is None and app.config.get('FIREBASE_STORAGE_BUCKET'):
        try:
            storage_service = StorageService()
            storage_service.init_app(app)
            logging.info("Storage service initialized successfully")
        except Exception as e:
            logging.error(f"Failed to initialize storage service: {e}")
            raise
    app.services['storage'] = storage_service

    app.services['image_pipeline'] = _build_pipeline(app.config, storage_service)

    # 5-2. 다른 서비스를 주입받아야 하는 도메인 서비스 생성
    # - 관리자 세션: 세션마다 캐시/구독/Draft를 따로 가집니다.
    session_factory = partial(
        AdminSession,
        store=document_store,
        pipeline=app.services['image_pipeline'],
        storage_service=storage_service,
        mode=SyncMode.from_value(app.config['SYNC_MODE']),
        require_article_images=app.config['REQUIRE_ARTICLE_IMAGES'],
    )
    app.services['admin_sessions'] = AdminSessionRegistry(session_factory)

    # - 공개 피드
    app.services['feeds'] = FeedService(document_store, SyncMode.from_value(app.config['FEED_SYNC_MODE']))

    # 프로세스 종료 시 열린 구독을 모두 해제합니다.
    def _shutdown():
        app.services['admin_sessions'].close_all()
        app.services['feeds'].close()
    atexit.register(_shutdown)
    app.shutdown = _shutdown

    # =====================================================================================
    # 6. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(feeds_bp, url_prefix='/api/feeds')

    # =====================================================================================
    # 7. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        if isinstance(err, HTTPException):
            return jsonify({"error_code": err.name.upper().replace(" ", "_"), "message": err.description}), err.code
        # 다른 핸들러에서 처리되지 않은 모든 예외를 여기서 처리
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. 로깅 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
