from __future__ import annotations

import logging
import threading
from typing import Optional, cast

from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.database import Database

from .config import (
    get_mongo_db_name,
    get_mongo_uri,
    get_server_selection_timeout_ms,
)


logger = logging.getLogger(__name__)


GIFT_CARDS_COLLECTION = "gift_cards"
AUDIT_LOGS_COLLECTION = "audit_logs"


_client: Optional[MongoClient] = None
_db: Optional[Database] = None
_lock = threading.Lock()


def get_client() -> MongoClient:
    """전역 MongoClient 싱글톤을 반환한다.

    - MONGO_URI 에서 URI 를 읽어온다.
    - ping 으로 연결을 검증한다.
    - MONGO_DB_NAME 이 없고 URI 에도 기본 DB 가 없으면 에러를 발생시킨다.
    - gift_cards / audit_logs 컬렉션 인덱스를 한 번만 생성한다.
    """

    global _client, _db

    if _client is not None:
        return _client

    with _lock:
        if _client is not None:
            return _client

        client = MongoClient(
            get_mongo_uri(),
            serverSelectionTimeoutMS=get_server_selection_timeout_ms(),
            tz_aware=True,
        )

        try:
            client.admin.command("ping")
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(f"failed to connect to MongoDB: {exc}") from exc

        db_name = get_mongo_db_name()
        try:
            if db_name:
                db = client[db_name]
            else:
                db = client.get_default_database()
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(
                "MongoDB database name must be specified via MONGO_DB_NAME or in MONGO_URI (mongodb://.../db_name)",
            ) from exc

        try:
            ensure_indexes(db)
        except Exception as exc:  # noqa: BLE001
            # 코드 유니크 인덱스 없이 카드를 발급하면 안 되므로 치명적 오류로 본다.
            logger.error("failed to ensure MongoDB indexes: %s", exc)
            client.close()
            raise

        _client = client
        _db = db

        safe_db = cast(Database, _db)
        logger.info("MongoDB connected and indexes ensured (db=%s)", safe_db.name)
        return _client


def get_database() -> Database:
    """전역 기본 Database 객체를 반환한다."""

    if _db is None:
        get_client()
    assert _db is not None
    return _db


def close_client() -> None:
    """애플리케이션 종료 시 커넥션 풀을 정리한다."""

    global _client, _db

    with _lock:
        if _client is not None:
            _client.close()
        _client = None
        _db = None


def ensure_indexes(db: Database) -> None:
    """기프트카드/감사 로그 조회에 필요한 인덱스를 생성한다.

    중복 생성해도 MongoDB 가 처리하므로 idempotent 하다.
    """

    db[GIFT_CARDS_COLLECTION].create_indexes(
        [
            IndexModel([("code", ASCENDING)], name="uniq_code", unique=True),
            IndexModel([("purchaser_email", ASCENDING)], name="idx_purchaser_email"),
            IndexModel([("recipient_email", ASCENDING)], name="idx_recipient_email"),
            IndexModel([("purchaser_id", ASCENDING)], name="idx_purchaser_id"),
            IndexModel([("status", ASCENDING)], name="idx_status"),
            IndexModel([("expires_at", ASCENDING)], name="idx_expires_at"),
            IndexModel(
                [("purchased_at", DESCENDING), ("_id", DESCENDING)],
                name="idx_purchased_at_id_desc",
            ),
        ]
    )

    db[AUDIT_LOGS_COLLECTION].create_indexes(
        [
            IndexModel([("created_at", DESCENDING)], name="idx_created_at_desc"),
            IndexModel([("actor_user_id", ASCENDING)], name="idx_actor_user_id"),
            IndexModel([("entity_type", ASCENDING)], name="idx_entity_type"),
            IndexModel([("action", ASCENDING)], name="idx_action"),
        ]
    )
