from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


GIFT_CARD_ENTITY_TYPE = "gift-card"


class AuditAction(StrEnum):
    CREATE = "create"
    REDEEM = "redeem"
    EXPIRE = "expire"


class Actor(BaseModel):
    """작업 주체. Gateway 가 인증한 사용자, 또는 lazy 만료 같은 시스템 작업."""

    user_id: str
    email: str
    name: str | None = None


SYSTEM_ACTOR = Actor(user_id="system", email="system@localhost", name="system")


class AuditLog(BaseModel):
    """감사 로그 도메인 모델."""

    id: str | None = None
    actor_user_id: str
    actor_email: str
    action: AuditAction
    entity_type: str = GIFT_CARD_ENTITY_TYPE
    entity_id: str | None = None
    diff_summary: str | None = None
    created_at: datetime
