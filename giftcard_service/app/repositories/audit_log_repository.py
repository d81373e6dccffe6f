from __future__ import annotations

from typing import Any

from pymongo.database import Database

from common.mongo.client import AUDIT_LOGS_COLLECTION

from ..models.audit import AuditLog
from .documents.audit_log_document import AuditLogDocument
from .interfaces import AuditLogRepositoryInterface


class AuditLogRepository(AuditLogRepositoryInterface):
    """audit_logs 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[AUDIT_LOGS_COLLECTION]

    def create(self, log: AuditLog) -> AuditLog:
        payload = AuditLogDocument.from_domain(log).to_mongo_record()
        result = self._col.insert_one(payload)
        return log.model_copy(update={"id": str(result.inserted_id)})

    def list(
        self,
        entity_type: str | None,
        action: str | None,
        actor_user_id: str | None,
        page: int,
        limit: int,
    ) -> tuple[list[AuditLog], int]:
        query: dict[str, Any] = {}
        if entity_type:
            query["entity_type"] = entity_type
        if action:
            query["action"] = action
        if actor_user_id:
            query["actor_user_id"] = actor_user_id

        skip = (page - 1) * limit
        total = self._col.count_documents(query)
        cursor = self._col.find(
            query,
            sort=[("created_at", -1), ("_id", -1)],
            skip=skip,
            limit=limit,
        )

        items: list[AuditLog] = []
        for raw in cursor:
            items.append(AuditLogDocument.model_validate(raw).to_domain())
        return items, total
