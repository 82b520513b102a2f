# daycare_app/utils/datetime_utils.py
"""
프로젝트 전체에서 일관된 시간/날짜 처리를 위한 중앙화된 유틸리티 모듈

이 모듈의 목적:
1. 모든 시간 관련 작업을 표준화 (백엔드는 UTC로 통일)
2. Firestore 호환성 보장 (저장 시 datetime, 읽기 시 Timestamp 해석)
3. 엔트리/피드 응답의 ISO 8601 문자열 생성 통일
4. 해석할 수 없는 시간 값은 '알 수 없음'(None)으로 처리
"""

import logging
from datetime import datetime, date, timezone, time, timedelta
from numbers import Real
from typing import Optional, Any, Tuple
from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)


class DateTimeUtils:
    """시간/날짜 처리를 위한 중앙화된 유틸리티 클래스"""

    @staticmethod
    def now() -> datetime:
        """현재 시간을 UTC timezone-aware datetime으로 반환"""
        return datetime.now(timezone.utc)

    @staticmethod
    def parse_iso_datetime(iso_string: str) -> datetime:
        """
        ISO 포맷 문자열을 UTC datetime 객체로 파싱

        지원 포맷:
        - 2024-01-15T10:30:00Z
        - 2024-01-15T10:30:00+09:00
        - 2024-01-15T10:30:00.123456Z
        - 2024-01-15T10:30:00 (timezone 없으면 UTC로 가정)
        """
        try:
            if not iso_string or not isinstance(iso_string, str):
                raise ValueError("빈 문자열은 파싱할 수 없습니다")

            iso_string = iso_string.strip()
            # 'Z' 접미사 처리 (UTC 표시)
            if iso_string.endswith('Z'):
                iso_string = iso_string[:-1] + '+00:00'

            dt = dateutil_parser.isoparse(iso_string)

            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)

            return dt.astimezone(timezone.utc)

        except Exception as e:
            logger.debug(f"ISO datetime 파싱 실패: {iso_string!r} - {e}")
            raise ValueError(f"잘못된 ISO 날짜 형식입니다: {iso_string}")

    @staticmethod
    def try_parse_iso(value: Any) -> Optional[datetime]:
        """ISO 문자열을 파싱하고, 실패하면 예외 대신 None을 반환"""
        try:
            return DateTimeUtils.parse_iso_datetime(value)
        except ValueError:
            return None

    @staticmethod
    def parse_date_string(date_string: str) -> date:
        """YYYY-MM-DD 형식의 날짜 문자열을 date 객체로 파싱"""
        try:
            return date.fromisoformat(date_string.strip())
        except (AttributeError, ValueError) as e:
            logger.debug(f"날짜 문자열 파싱 실패: {date_string!r} - {e}")
            raise ValueError(f"잘못된 날짜 형식입니다: {date_string}")

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        """datetime 객체를 'Z' 접미사가 붙은 UTC ISO 문자열로 변환"""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        else:
            dt = dt.astimezone(timezone.utc)
        return dt.isoformat().replace('+00:00', 'Z')

    @staticmethod
    def to_date_string(d: date) -> str:
        """date 객체를 YYYY-MM-DD 형식 문자열로 변환"""
        return d.strftime('%Y-%m-%d')

    @staticmethod
    def day_start(d: date) -> datetime:
        """해당 날짜의 00:00:00 UTC"""
        return datetime.combine(d, time.min).replace(tzinfo=timezone.utc)

    @staticmethod
    def day_range(date_from: Optional[date], date_to: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
        """
        날짜 구간(양 끝 포함)을 [시작, 끝) datetime 구간으로 변환

        date_to는 그 다음 날 00:00 UTC를 배타적 상한으로 사용합니다.
        """
        start = DateTimeUtils.day_start(date_from) if date_from else None
        end = DateTimeUtils.day_start(date_to + timedelta(days=1)) if date_to else None
        return start, end

    @staticmethod
    def for_firestore(obj: Any) -> Any:
        """
        Firestore 저장을 위해 객체의 날짜/시간 필드를 변환

        변환 규칙:
        - date -> datetime (00:00:00 UTC)
        - timezone-naive datetime -> timezone-aware datetime (UTC)
        - dict/list 내부 재귀적 변환
        """
        if isinstance(obj, datetime):
            if obj.tzinfo is None:
                return obj.replace(tzinfo=timezone.utc)
            return obj.astimezone(timezone.utc)

        elif isinstance(obj, date):
            return DateTimeUtils.day_start(obj)

        elif isinstance(obj, dict):
            return {k: DateTimeUtils.for_firestore(v) for k, v in obj.items()}

        elif isinstance(obj, list):
            return [DateTimeUtils.for_firestore(item) for item in obj]

        return obj

    @staticmethod
    def from_firestore(obj: Any) -> Any:
        """
        Firestore에서 읽은 데이터의 datetime 필드를 UTC datetime으로 정리

        - DatetimeWithNanoseconds 등 datetime 하위 타입 -> UTC datetime
        - dict/list 내부 재귀적 변환
        - 다른 타입(ISO 문자열 포함)은 그대로 둡니다. 해석은 coerce_datetime의 몫입니다.
        """
        if isinstance(obj, datetime):
            if obj.tzinfo is None:
                return obj.replace(tzinfo=timezone.utc)
            return obj.astimezone(timezone.utc)

        elif isinstance(obj, dict):
            return {k: DateTimeUtils.from_firestore(v) for k, v in obj.items()}

        elif isinstance(obj, list):
            return [DateTimeUtils.from_firestore(item) for item in obj]

        return obj

    @staticmethod
    def _from_seconds_nanos(seconds: Any, nanos: Any) -> Optional[datetime]:
        if not isinstance(seconds, Real) or isinstance(seconds, bool):
            return None
        if not isinstance(nanos, Real) or isinstance(nanos, bool):
            nanos = 0
        try:
            return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    @staticmethod
    def coerce_datetime(value: Any) -> Optional[datetime]:
        """
        저장소에서 읽은 시간 값을 UTC datetime으로 해석합니다.

        허용하는 형태 (닫힌 집합):
        - datetime (Firestore DatetimeWithNanoseconds 포함)
        - ISO 8601 문자열
        - 숫자형 epoch (밀리초)
        - {'_seconds', '_nanoseconds'} / {'seconds', 'nanos'} 형태의 직렬화된 Timestamp
        - seconds/nanos 속성을 가진 Timestamp 유사 객체

        그 외의 값은 None('알 수 없음')을 반환합니다. epoch 0으로 대체하지 않습니다.
        """
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)

        if isinstance(value, str):
            return DateTimeUtils.try_parse_iso(value)

        if isinstance(value, Real):
            try:
                return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None

        if isinstance(value, dict):
            if '_seconds' in value:
                return DateTimeUtils._from_seconds_nanos(value.get('_seconds'), value.get('_nanoseconds', 0))
            if 'seconds' in value:
                return DateTimeUtils._from_seconds_nanos(value.get('seconds'), value.get('nanos', 0))
            return None

        seconds = getattr(value, 'seconds', None)
        if seconds is not None:
            nanos = getattr(value, 'nanos', None)
            if nanos is None:
                nanos = getattr(value, 'nanoseconds', 0)
            return DateTimeUtils._from_seconds_nanos(seconds, nanos)

        logger.debug(f"해석할 수 없는 timestamp 값: {type(value).__name__}")
        return None

    @staticmethod
    def normalize_timestamp(value: Any) -> Optional[str]:
        """시간 값을 ISO 8601 문자열로 정규화. 해석 불가 시 None."""
        dt = DateTimeUtils.coerce_datetime(value)
        if dt is None:
            return None
        return DateTimeUtils.to_iso_string(dt)

    @staticmethod
    def date_bucket(value: Any) -> Optional[str]:
        """시간 값이 속하는 UTC 날짜(YYYY-MM-DD). 해석 불가 시 None."""
        dt = DateTimeUtils.coerce_datetime(value)
        if dt is None:
            return None
        return DateTimeUtils.to_date_string(dt.date())


# 편의를 위한 글로벌 함수들
def now() -> datetime:
    """현재 UTC 시간 반환"""
    return DateTimeUtils.now()

def parse_iso(iso_string: str) -> datetime:
    """ISO 문자열을 datetime으로 파싱"""
    return DateTimeUtils.parse_iso_datetime(iso_string)

def to_iso(dt: datetime) -> str:
    """datetime을 ISO 문자열로 변환"""
    return DateTimeUtils.to_iso_string(dt)

def normalize_timestamp(value: Any) -> Optional[str]:
    """저장소 시간 값을 ISO 문자열로 정규화"""
    return DateTimeUtils.normalize_timestamp(value)
