"""감사 로그 서비스.

기프트카드 생성/사용/만료마다 한 건씩 남긴다. 기록 실패는 원래 작업을 되돌리지 않고
운영자가 볼 수 있도록 에러 로그만 남긴다.
"""

from __future__ import annotations

import logging

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database
from common.types.datetime import Clock, utc_now

from ..models.audit import GIFT_CARD_ENTITY_TYPE, Actor, AuditAction, AuditLog
from ..repositories.audit_log_repository import AuditLogRepository
from ..repositories.interfaces import AuditLogRepositoryInterface


logger = logging.getLogger(__name__)

DEFAULT_AUDIT_PAGE_SIZE = 50
MAX_AUDIT_PAGE_SIZE = 200


def normalize_audit_paging(page: int, limit: int) -> tuple[int, int]:
    if page <= 0:
        page = 1
    if limit <= 0 or limit > MAX_AUDIT_PAGE_SIZE:
        limit = DEFAULT_AUDIT_PAGE_SIZE
    return page, limit


class AuditService:
    def __init__(
        self,
        audit_repo: AuditLogRepositoryInterface,
        clock: Clock = utc_now,
    ) -> None:
        self._audit_repo = audit_repo
        self._clock = clock

    def record(
        self,
        actor: Actor,
        action: AuditAction,
        entity_id: str | None,
        summary: str,
        entity_type: str = GIFT_CARD_ENTITY_TYPE,
    ) -> AuditLog | None:
        """감사 로그를 기록한다. 저장소 오류가 나도 예외를 올리지 않고 None 을 반환한다."""

        log = AuditLog(
            actor_user_id=actor.user_id,
            actor_email=actor.email,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            diff_summary=summary,
            created_at=self._clock(),
        )
        try:
            return self._audit_repo.create(log)
        except Exception:  # noqa: BLE001
            logger.exception(
                "failed to write audit log action=%s entity_id=%s",
                action.value,
                entity_id,
                extra={"audit_action": action.value, "gift_card_id": entity_id},
            )
            return None

    def list_logs(
        self,
        entity_type: str | None = None,
        action: str | None = None,
        actor_user_id: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_AUDIT_PAGE_SIZE,
    ) -> tuple[list[AuditLog], int]:
        page, limit = normalize_audit_paging(page, limit)
        return self._audit_repo.list(entity_type, action, actor_user_id, page, limit)


def get_audit_log_repository(
    db: Database = Depends(get_database),
) -> AuditLogRepositoryInterface:
    """FastAPI DI용 AuditLogRepository 팩토리."""

    return AuditLogRepository(db)


def get_audit_service(
    audit_repo: AuditLogRepositoryInterface = Depends(get_audit_log_repository),
) -> AuditService:
    return AuditService(audit_repo)
