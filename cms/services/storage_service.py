# cms/services/storage_service.py
import uuid
import logging
from typing import Dict, Optional
from urllib.parse import quote

from flask import Flask
from firebase_admin import storage
from werkzeug.utils import secure_filename

from cms.core.exceptions import StorageCleanupError
from cms.utils.datetime_utils import DateTimeUtils

DOWNLOAD_URL_TEMPLATE = "https://firebasestorage.googleapis.com/v0/b/{bucket}/o/{path}?alt=media&token={token}"


class StorageService:
    """
    Firebase Storage 관련 로직을 담당하는 범용 서비스 클래스입니다.
    게시물 이미지 업로드, 영구 다운로드 URL 발급, 객체 삭제 기능을 제공합니다.
    """

    def __init__(self, bucket=None, folder: str = 'uploads'):
        """
        실제 버킷 객체는 init_app 메서드를 통해 주입됩니다.
        테스트에서는 bucket을 직접 넘길 수 있습니다.
        """
        self.bucket = bucket
        self.folder = folder

    def init_app(self, app: Flask):
        """
        Flask 앱 초기화 과정에서 호출되어 Storage 버킷을 설정합니다.

        :param app: Flask 애플리케이션 객체
        """
        bucket_name = app.config.get('FIREBASE_STORAGE_BUCKET')
        if not bucket_name:
            raise ValueError("FIREBASE_STORAGE_BUCKET 설정이 .env 또는 설정 파일에 필요합니다.")

        self.bucket = storage.bucket(bucket_name)
        self.folder = app.config.get('STORAGE_FOLDER', self.folder)
        logging.info("StorageService: Firebase Storage 서비스가 성공적으로 초기화되었습니다.")

    def _require_bucket(self):
        if not self.bucket:
            raise RuntimeError("StorageService가 초기화되지 않았습니다. init_app을 먼저 호출해주세요.")
        return self.bucket

    def build_object_path(self, subfolder: str, filename: str) -> str:
        """
        충돌하지 않는 객체 경로를 만듭니다.
        예: uploads/blogs/1705312200000_3f2a9c1e_my_photo.jpg
        같은 밀리초에 같은 이름의 파일이 올라와도 겹치지 않도록 짧은 난수를 붙입니다.
        """
        safe_name = secure_filename(filename or '') or 'image'
        timestamp_ms = DateTimeUtils.to_timestamp_ms(DateTimeUtils.now())
        return f"{self.folder}/{subfolder}/{timestamp_ms}_{uuid.uuid4().hex[:8]}_{safe_name}"

    def upload(self, path: str, data: bytes, content_type: str, metadata: Optional[Dict[str, str]] = None) -> str:
        """
        바이트 데이터를 지정된 경로에 업로드합니다.
        Firebase 다운로드 토큰을 메타데이터에 함께 기록하여 이후 영구 URL을 만들 수 있게 합니다.

        :return: 업로드된 객체의 경로
        """
        bucket = self._require_bucket()
        blob = bucket.blob(path)
        blob.metadata = dict(metadata or {}, firebaseStorageDownloadTokens=str(uuid.uuid4()))
        blob.upload_from_string(data, content_type=content_type)
        logging.info(f"Storage 업로드 성공 (path: {path}, {len(data)} bytes)")
        return path

    def get_download_url(self, path: str) -> str:
        """
        업로드된 객체의 영구 다운로드 URL을 반환합니다.
        클라이언트 SDK의 getDownloadURL과 같은 형식(토큰 포함)입니다.
        """
        bucket = self._require_bucket()
        blob = bucket.get_blob(path)
        if blob is None:
            raise FileNotFoundError(f"파일을 찾을 수 없습니다: {path}")

        token = (blob.metadata or {}).get('firebaseStorageDownloadTokens', '').split(',')[0]
        if not token:
            # 토큰이 없는 객체는 공개 URL로 대체합니다.
            blob.make_public()
            return blob.public_url
        return DOWNLOAD_URL_TEMPLATE.format(bucket=bucket.name, path=quote(path, safe=''), token=token)

    def delete(self, path: str) -> None:
        """
        객체를 삭제합니다.

        :raises StorageCleanupError: 삭제 실패 시 (호출 측은 로그만 남기고 계속 진행)
        """
        try:
            blob = self._require_bucket().blob(path)
            blob.delete()
            logging.info(f"Storage 객체 삭제 성공 (path: {path})")
        except Exception as e:
            raise StorageCleanupError(f"Storage 객체 삭제 실패 (path: {path}): {e}") from e

    def delete_quietly(self, path: str) -> bool:
        """best-effort 삭제. 실패는 로그로만 남기고 False를 반환합니다."""
        try:
            self.delete(path)
            return True
        except StorageCleanupError as e:
            logging.error(str(e))
            return False
