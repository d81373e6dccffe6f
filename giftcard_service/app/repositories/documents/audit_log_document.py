from __future__ import annotations

from pydantic import ConfigDict

from common.mongo.types import BaseDocument, from_object_id

from ...models.audit import AuditAction, AuditLog


class AuditLogDocument(BaseDocument):
    """MongoDB audit_logs 컬렉션 도큐먼트 모델. 감사 로그는 수정되지 않지만 updated_at 도 함께 둔다."""

    model_config = ConfigDict(use_enum_values=True)

    actor_user_id: str
    actor_email: str
    action: AuditAction
    entity_type: str
    entity_id: str | None = None
    diff_summary: str | None = None

    @classmethod
    def from_domain(cls, log: AuditLog) -> "AuditLogDocument":
        return cls(
            _id=log.id,
            actor_user_id=log.actor_user_id,
            actor_email=log.actor_email,
            action=log.action,
            entity_type=log.entity_type,
            entity_id=log.entity_id,
            diff_summary=log.diff_summary,
            created_at=log.created_at,
            updated_at=log.created_at,
        )

    def to_domain(self) -> AuditLog:
        return AuditLog(
            id=from_object_id(self.id),
            actor_user_id=self.actor_user_id,
            actor_email=self.actor_email,
            action=self.action,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            diff_summary=self.diff_summary,
            created_at=self.created_at,
        )
