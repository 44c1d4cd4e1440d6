# cms/models/notification.py
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any


class Severity(Enum):
    """사용자 알림의 심각도"""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notice:
    """
    모든 작업 결과가 최종적으로 변환되는 사용자 알림 형태.
    관리자 화면은 이 값을 그대로 표시합니다.
    """
    message: str
    severity: Severity

    @classmethod
    def info(cls, message: str) -> "Notice":
        return cls(message, Severity.INFO)

    @classmethod
    def success(cls, message: str) -> "Notice":
        return cls(message, Severity.SUCCESS)

    @classmethod
    def warning(cls, message: str) -> "Notice":
        return cls(message, Severity.WARNING)

    @classmethod
    def error(cls, message: str) -> "Notice":
        return cls(message, Severity.ERROR)

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "type": self.severity.value}
