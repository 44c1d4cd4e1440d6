# cms/utils/datetime_utils.py
"""
프로젝트 전체에서 일관된 시간/날짜 처리를 위한 중앙화된 유틸리티 모듈

이 모듈의 목적:
1. 게시물의 사용자 지정 날짜(date)를 ISO-8601 타임스탬프 문자열로 표준화
2. Firestore 호환성 보장 (createdAt 등 서버 타임스탬프 변환)
3. 관리자 폼의 날짜 입력값(YYYY-MM-DD)과 저장 포맷 간 변환
4. 피드 화면에 표시할 날짜 문자열 생성
"""

import logging
import re
from datetime import datetime, date, timezone, time
from typing import Optional, Any
from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

# 표시용 월 이름 (로케일에 의존하지 않도록 고정)
_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# 폼 날짜 입력: YYYY-MM-DD (뒤에 시간 부분이 붙은 ISO 타임스탬프도 허용)
_DATE_INPUT_RE = re.compile(r'^\d{4}-\d{2}-\d{2}(T.+)?$')

class DateTimeUtils:
    """시간/날짜 처리를 위한 중앙화된 유틸리티 클래스"""

    @staticmethod
    def now() -> datetime:
        """현재 시간을 UTC timezone-aware datetime으로 반환"""
        return datetime.now(timezone.utc)

    @staticmethod
    def parse_iso_datetime(iso_string: str) -> datetime:
        """
        ISO 포맷 문자열을 datetime 객체로 파싱

        지원 포맷:
        - 2024-01-15T10:30:00Z
        - 2024-01-15T10:30:00+09:00
        - 2024-01-15T10:30:00.123Z
        - 2024-01-15T10:30:00
        """
        try:
            if not iso_string:
                raise ValueError("빈 문자열은 파싱할 수 없습니다")

            # 'Z' 접미사 처리 (UTC 표시)
            if iso_string.endswith('Z'):
                iso_string = iso_string[:-1] + '+00:00'

            dt = dateutil_parser.isoparse(iso_string)

            # timezone-naive인 경우 UTC로 가정
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)

            return dt.astimezone(timezone.utc)

        except Exception as e:
            logger.error(f"ISO datetime 파싱 실패: {iso_string} - {e}")
            raise ValueError(f"잘못된 ISO 날짜 형식입니다: {iso_string}")

    @staticmethod
    def parse_date_string(date_string: str) -> date:
        """
        날짜 문자열을 date 객체로 파싱

        지원 포맷:
        - 2024-01-15
        - 2024/01/15
        - 01-15-2024
        - 2024-01-15T00:00:00Z (시간 부분은 버림)
        """
        try:
            if not date_string or not date_string.strip():
                raise ValueError("빈 문자열은 파싱할 수 없습니다")

            dt = dateutil_parser.parse(date_string)
            return dt.date()

        except Exception as e:
            logger.debug(f"날짜 문자열 파싱 실패: {date_string} - {e}")
            raise ValueError(f"잘못된 날짜 형식입니다: {date_string}")

    @staticmethod
    def is_valid_date_string(date_string: Any) -> bool:
        """
        폼에서 입력받은 날짜 값이 완전한 달력 날짜인지 확인합니다.
        '5', 'March', '2024-04' 처럼 일부만 입력된 값이나 '2024-02-30' 같은 없는 날짜는 거부합니다.
        """
        if not isinstance(date_string, str):
            return False
        value = date_string.strip()
        if not _DATE_INPUT_RE.match(value):
            return False
        try:
            dateutil_parser.isoparse(value)
            return True
        except ValueError:
            return False

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        """datetime 객체를 ISO 포맷 문자열로 변환 (Z 접미사)"""
        try:
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            else:
                dt = dt.astimezone(timezone.utc)

            return dt.isoformat().replace('+00:00', 'Z')

        except Exception as e:
            logger.error(f"ISO 문자열 변환 실패: {dt} - {e}")
            raise ValueError(f"datetime 객체를 ISO 문자열로 변환할 수 없습니다: {dt}")

    @staticmethod
    def date_input_to_iso(date_string: str) -> str:
        """
        관리자 폼의 날짜 입력값을 저장용 ISO 타임스탬프 문자열로 변환합니다.
        예: '2024-01-15' -> '2024-01-15T00:00:00Z'
        """
        d = DateTimeUtils.parse_date_string(date_string)
        return DateTimeUtils.to_iso_string(datetime.combine(d, time.min))

    @staticmethod
    def iso_to_date_input(value: Optional[str]) -> str:
        """저장된 ISO 날짜를 폼 입력용 YYYY-MM-DD 문자열로 되돌립니다. 해석 불가 시 빈 문자열."""
        if not value:
            return ""
        try:
            return DateTimeUtils.to_date_string(DateTimeUtils.parse_date_string(value))
        except ValueError:
            return ""

    @staticmethod
    def to_date_string(d: date) -> str:
        """date 객체를 YYYY-MM-DD 형식 문자열로 변환"""
        try:
            return d.strftime('%Y-%m-%d')
        except Exception as e:
            logger.error(f"날짜 문자열 변환 실패: {d} - {e}")
            raise ValueError(f"date 객체를 문자열로 변환할 수 없습니다: {d}")

    @staticmethod
    def format_display_date(value: Any) -> str:
        """
        피드/관리자 목록에 표시할 날짜 문자열을 만듭니다.

        - 값이 없으면 'No date provided'
        - 해석할 수 없으면 'Invalid date'
        - 그 외에는 'January 15, 2024' 형식
        """
        if not value:
            return "No date provided"
        try:
            if isinstance(value, datetime):
                d = value.date()
            elif isinstance(value, date):
                d = value
            else:
                d = DateTimeUtils.parse_date_string(str(value))
        except ValueError:
            return "Invalid date"
        return f"{_MONTH_NAMES[d.month - 1]} {d.day}, {d.year}"

    @staticmethod
    def from_firestore(obj: Any) -> Any:
        """
        Firestore에서 읽은 데이터의 datetime 필드를 적절히 변환

        변환 규칙:
        - Firestore timestamp -> timezone-aware datetime (UTC)
        - dict/list 내부 재귀적 변환
        """
        try:
            if isinstance(obj, datetime):
                if obj.tzinfo is None:
                    return obj.replace(tzinfo=timezone.utc)
                return obj.astimezone(timezone.utc)

            # Firestore Timestamp 등 timestamp()를 제공하는 객체
            elif hasattr(obj, 'timestamp') and callable(obj.timestamp):
                return datetime.fromtimestamp(obj.timestamp(), tz=timezone.utc)

            elif isinstance(obj, dict):
                return {k: DateTimeUtils.from_firestore(v) for k, v in obj.items()}

            elif isinstance(obj, list):
                return [DateTimeUtils.from_firestore(item) for item in obj]

            return obj

        except Exception as e:
            logger.error(f"Firestore 읽기 변환 실패: {obj} ({type(obj)}) - {e}")
            # 변환 실패 시 원본 객체 반환 (로그만 남김)
            return obj

    @staticmethod
    def to_timestamp_ms(dt: datetime) -> int:
        """datetime 객체를 Unix timestamp (밀리초)로 변환"""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)

