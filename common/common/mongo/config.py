from __future__ import annotations

import os


MONGO_URI_ENV = "MONGO_URI"
MONGO_DB_NAME_ENV = "MONGO_DB_NAME"
MONGO_TIMEOUT_MS_ENV = "MONGO_SERVER_SELECTION_TIMEOUT_MS"

DEFAULT_SERVER_SELECTION_TIMEOUT_MS = 5000


def get_mongo_uri() -> str:
    """MongoDB 연결 URI 를 환경 변수에서 읽는다.

    기프트카드는 금전 기록이므로 기본값으로 로컬 DB 에 붙지 않는다.
    설정되지 않은 경우 애플리케이션이 즉시 실패하도록 RuntimeError 를 발생시킨다.
    """

    value = os.getenv(MONGO_URI_ENV, "").strip()
    if not value:
        raise RuntimeError(
            f"{MONGO_URI_ENV} environment variable is required for MongoDB",
        )
    return value


def get_mongo_db_name() -> str | None:
    """사용할 데이터베이스 이름. 없으면 None (URI 의 기본 DB 사용)."""

    value = os.getenv(MONGO_DB_NAME_ENV, "").strip()
    return value or None


def get_server_selection_timeout_ms() -> int:
    raw = os.getenv(MONGO_TIMEOUT_MS_ENV, "").strip()
    if not raw:
        return DEFAULT_SERVER_SELECTION_TIMEOUT_MS
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(
            f"invalid {MONGO_TIMEOUT_MS_ENV}: {raw!r}",
        ) from exc
    if value <= 0:
        raise RuntimeError(f"{MONGO_TIMEOUT_MS_ENV} must be positive: {value}")
    return value
