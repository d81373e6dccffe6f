from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Callable

from pydantic.functional_serializers import PlainSerializer


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """서비스 전역 기본 시계. 테스트에서는 Clock 을 주입해 대체한다."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize_datetime_to_utc_iso8601(value: datetime) -> str:
    """모든 datetime을 UTC 기준 ISO8601(+타임존) 문자열로 직렬화한다."""
    return as_utc(value).isoformat()


UtcDateTime = Annotated[
    datetime,
    PlainSerializer(
        serialize_datetime_to_utc_iso8601,
        return_type=str,
        when_used="json",
    ),
]
