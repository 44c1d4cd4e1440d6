# cms/core/exceptions.py
"""
서비스 계층에서 사용하는 예외 정의.

Firestore/Storage 호출 지점에서 발생한 실패를 아래 예외로 감싸서 올리고,
동기화 어댑터와 관리자 세션이 이를 사용자 알림(Notice)으로 변환합니다.
"""
from enum import Enum
from typing import List, Optional


class ErrorKind(Enum):
    """이미지 한 장이 처리되지 못한 이유"""
    INVALID_TYPE = "INVALID_TYPE"
    TOO_LARGE = "TOO_LARGE"
    DECODE_FAILED = "DECODE_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"


class CmsError(Exception):
    """프로젝트 공통 예외의 기반 클래스"""


class DraftValidationError(CmsError):
    """필수 필드 누락 또는 잘못된 날짜. 원격 저장소에 도달하기 전에 차단됩니다."""

    def __init__(self, problems: List, message: str = "Please fill all required fields"):
        super().__init__(message)
        self.problems = problems


class ImageIntakeError(CmsError):
    """파일 한 장의 처리 실패. 같은 배치의 다른 파일에는 영향을 주지 않습니다."""

    def __init__(self, kind: ErrorKind, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.filename = filename


class RemoteWriteError(CmsError):
    """create/update/delete 실패 (네트워크, 권한, 할당량 등)"""


class RemoteReadError(CmsError):
    """구독 설정 또는 조회 실패"""


class StorageCleanupError(CmsError):
    """문서 삭제 후 저장소 객체 정리 실패. 로그로만 남깁니다."""
