# app/utils/datetime_utils.py
"""
게시글 시각(created_at, updated_at) 처리 유틸리티

- 애플리케이션 안의 모든 시각은 UTC timezone-aware datetime입니다.
- 저장소로 보내기 전에는 for_firestore, 저장소에서 읽은 직후에는 from_firestore를 거칩니다.
"""

import logging
from datetime import datetime, date, timezone, time
from typing import Any
from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # naive 값은 UTC로 간주
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _walk(obj: Any, convert) -> Any:
    if isinstance(obj, dict):
        return {key: _walk(value, convert) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_walk(item, convert) for item in obj]
    return convert(obj)


class DateTimeUtils:
    """UTC 기준 시각 변환 모음"""

    @staticmethod
    def now() -> datetime:
        """인메모리 저장소의 서버 시간, 알림 생성 시각 등에 쓰이는 현재 UTC 시각"""
        return datetime.now(timezone.utc)

    @staticmethod
    def parse_iso_datetime(iso_string: str) -> datetime:
        """
        시드 파일 등의 ISO 8601 문자열을 UTC datetime으로 파싱합니다.
        'Z' 접미사, 오프셋, 마이크로초, 오프셋 없는 값(UTC로 간주)을 모두 받습니다.
        """
        if not iso_string:
            raise ValueError("빈 문자열은 파싱할 수 없습니다")
        try:
            parsed = dateutil_parser.isoparse(iso_string)
        except (ValueError, OverflowError) as e:
            logger.error(f"ISO datetime 파싱 실패: {iso_string} - {e}")
            raise ValueError(f"잘못된 ISO 날짜 형식입니다: {iso_string}") from e
        return _as_utc(parsed)

    @staticmethod
    def for_firestore(obj: Any) -> Any:
        """
        저장 직전 변환. date는 자정(UTC) datetime으로, naive datetime은 UTC로 바꿉니다.
        dict/list는 재귀적으로 변환하고, 그 밖의 값(SERVER_TIMESTAMP 포함)은 그대로 둡니다.
        """
        def convert(value):
            if isinstance(value, datetime):
                return _as_utc(value)
            if isinstance(value, date):
                return datetime.combine(value, time.min).replace(tzinfo=timezone.utc)
            return value
        return _walk(obj, convert)

    @staticmethod
    def from_firestore(obj: Any) -> Any:
        """
        읽은 직후 변환. DatetimeWithNanoseconds를 포함한 datetime과
        timestamp()를 가진 Firestore 타임스탬프 객체를 UTC datetime으로 바꿉니다.
        """
        def convert(value):
            # datetime도 timestamp()를 가지므로 먼저 확인해야 naive 값이 로컬 시간으로 해석되지 않음
            if isinstance(value, datetime):
                return _as_utc(value)
            if hasattr(value, 'timestamp'):
                return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
            return value
        return _walk(obj, convert)
