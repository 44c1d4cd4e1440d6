# cms/core/config.py

import os # 환경 변수를 읽기 위해 사용합니다.


def _env_flag(name: str, default: str) -> bool:
    """'true', '1', 'yes' 등의 문자열 환경 변수를 bool로 해석합니다."""
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # Firebase Storage 버킷 이름. 이미지 외부 저장 전략과 게시물 삭제 시 정리에 사용됩니다.
    FIREBASE_STORAGE_BUCKET = os.getenv('FIREBASE_STORAGE_BUCKET')

    # 관리자 화면의 로컬 캐시 동기화 방식: 'live' (onSnapshot 구독) 또는 'snapshot' (1회 조회)
    SYNC_MODE = os.getenv('SYNC_MODE', 'live')
    # 공개 피드 화면의 동기화 방식
    FEED_SYNC_MODE = os.getenv('FEED_SYNC_MODE', 'live')

    # 이미지 저장 전략: 'inline' (base64 데이터 URL을 문서에 포함) 또는 'storage' (버킷 업로드 후 URL 참조)
    # 하나의 배포에서는 한 가지 전략만 사용합니다.
    IMAGE_STRATEGY = os.getenv('IMAGE_STRATEGY', 'inline')
    # inline 전략: 긴 변의 최대 픽셀 수와 JPEG 재인코딩 품질
    MAX_IMAGE_DIMENSION = int(os.getenv('MAX_IMAGE_DIMENSION', '800'))
    IMAGE_QUALITY = int(os.getenv('IMAGE_QUALITY', '70'))
    # 파일 하나의 최대 크기(바이트). 0이면 제한하지 않습니다.
    MAX_UPLOAD_BYTES = int(os.getenv('MAX_UPLOAD_BYTES', str(5 * 1024 * 1024)))
    # storage 전략: 버킷 안에서 이미지가 저장될 최상위 폴더
    STORAGE_FOLDER = os.getenv('STORAGE_FOLDER', 'uploads')
    # 한 번에 병렬로 처리할 이미지 수
    IMAGE_WORKERS = int(os.getenv('IMAGE_WORKERS', '4'))

    # News/Blog 게시물은 이미지가 최소 1장 있어야 저장할 수 있습니다.
    REQUIRE_ARTICLE_IMAGES = _env_flag('REQUIRE_ARTICLE_IMAGES', 'true')


class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다."""
    DEBUG = True
    # 개발용 Firebase 프로젝트의 서비스 계정 키 파일 경로
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH')


class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다."""
    TESTING = True
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    # 테스트에서는 구독 스레드 대신 1회 조회를 사용합니다.
    SYNC_MODE = 'snapshot'
    FEED_SYNC_MODE = 'snapshot'
    IMAGE_WORKERS = 2


class ProductionConfig(Config):
    """운영 환경을 위한 설정 클래스입니다."""
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')


# FLASK_ENV 값에 따라 create_app에서 적절한 설정 클래스를 선택하는 데 사용됩니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
