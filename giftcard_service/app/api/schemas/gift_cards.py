from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from common.types.datetime import UtcDateTime

from ...models.audit import AuditLog
from ...models.gift_card import GiftCard, GiftCardStats, UsageRecord


class CreateGiftCardRequest(BaseModel):
    """기프트카드 발급 요청 (결제 완료 후 checkout 이 호출)."""

    amount: int
    recipient_email: str | None = None
    recipient_name: str | None = None
    recipient_phone: str | None = None
    is_for_self: bool = False
    message: str | None = None

    @model_validator(mode="after")
    def _require_recipient(self) -> "CreateGiftCardRequest":
        if self.is_for_self:
            return self
        if not self.recipient_email or "@" not in self.recipient_email:
            raise ValueError("recipient_email is required when is_for_self is false")
        if not self.recipient_name or len(self.recipient_name.strip()) < 2:
            raise ValueError("recipient_name must be at least 2 characters")
        return self


class UseGiftCardRequest(BaseModel):
    code: str = Field(min_length=1)
    amount: int
    order_id: str | None = None
    description: str | None = None


class ValidateGiftCardRequest(BaseModel):
    code: str = Field(min_length=1)


class UsageRecordResponse(BaseModel):
    date: UtcDateTime
    amount: int
    order_id: str | None
    description: str

    @classmethod
    def from_domain(cls, record: UsageRecord) -> "UsageRecordResponse":
        return cls(
            date=record.date,
            amount=record.amount,
            order_id=record.order_id,
            description=record.description,
        )


class GiftCardResponse(BaseModel):
    id: str | None
    code: str
    amount: int
    balance: int
    currency: str
    status: str
    purchaser_email: str
    purchaser_name: str
    recipient_email: str
    recipient_name: str
    recipient_phone: str | None
    is_for_self: bool
    message: str | None
    purchased_at: UtcDateTime
    expires_at: UtcDateTime
    redeemed_at: UtcDateTime | None
    usage_history: list[UsageRecordResponse]

    @classmethod
    def from_domain(cls, card: GiftCard) -> "GiftCardResponse":
        return cls(
            id=card.id,
            code=card.code,
            amount=card.amount,
            balance=card.balance,
            currency=card.currency,
            status=card.status.value,
            purchaser_email=card.purchaser.email,
            purchaser_name=card.purchaser.name,
            recipient_email=card.recipient.email,
            recipient_name=card.recipient.name,
            recipient_phone=card.recipient.phone,
            is_for_self=card.is_for_self,
            message=card.message,
            purchased_at=card.purchased_at,
            expires_at=card.expires_at,
            redeemed_at=card.redeemed_at,
            usage_history=[
                UsageRecordResponse.from_domain(r) for r in card.usage_history
            ],
        )


class ValidateGiftCardResponse(BaseModel):
    valid: bool
    code: str
    balance: int
    status: str
    expires_at: UtcDateTime


class GiftCardStatsResponse(BaseModel):
    total_count: int
    active_count: int
    redeemed_count: int
    expired_count: int
    partially_used_count: int
    total_value: int
    active_balance: int

    @classmethod
    def from_domain(cls, stats: GiftCardStats) -> "GiftCardStatsResponse":
        return cls.model_validate(stats.model_dump())


class AuditLogResponse(BaseModel):
    id: str | None
    actor_user_id: str
    actor_email: str
    action: str
    entity_type: str
    entity_id: str | None
    diff_summary: str | None
    created_at: UtcDateTime

    @classmethod
    def from_domain(cls, log: AuditLog) -> "AuditLogResponse":
        return cls(
            id=log.id,
            actor_user_id=log.actor_user_id,
            actor_email=log.actor_email,
            action=log.action.value,
            entity_type=log.entity_type,
            entity_id=log.entity_id,
            diff_summary=log.diff_summary,
            created_at=log.created_at,
        )
