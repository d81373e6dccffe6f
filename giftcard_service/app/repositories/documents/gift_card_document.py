"""기프트카드 MongoDB 도큐먼트.

구매자/수령자 필드는 인덱스를 걸기 위해 평탄화해서 저장한다.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from common.mongo.types import BaseDocument, MongoDateTime, from_object_id

from ...models.gift_card import (
    GiftCard,
    GiftCardStatus,
    Purchaser,
    Recipient,
    UsageRecord,
)


class UsageRecordDocument(BaseModel):
    date: MongoDateTime
    amount: int
    order_id: str | None = None
    description: str

    @classmethod
    def from_domain(cls, record: UsageRecord) -> "UsageRecordDocument":
        return cls.model_validate(record.model_dump())

    def to_domain(self) -> UsageRecord:
        return UsageRecord(
            date=self.date,
            amount=self.amount,
            order_id=self.order_id,
            description=self.description,
        )


class GiftCardDocument(BaseDocument):
    """MongoDB gift_cards 컬렉션 도큐먼트 모델."""

    model_config = ConfigDict(use_enum_values=True)

    code: str
    amount: int
    balance: int
    currency: str
    status: GiftCardStatus
    purchaser_id: str
    purchaser_email: str
    purchaser_name: str
    recipient_email: str
    recipient_name: str
    recipient_phone: str | None = None
    is_for_self: bool = False
    message: str | None = None
    purchased_at: MongoDateTime
    expires_at: MongoDateTime
    redeemed_at: MongoDateTime | None = None
    usage_history: list[UsageRecordDocument] = Field(default_factory=list)
    version: int = 0

    @classmethod
    def from_domain(cls, card: GiftCard) -> "GiftCardDocument":
        return cls(
            _id=card.id,
            code=card.code,
            amount=card.amount,
            balance=card.balance,
            currency=card.currency,
            status=card.status,
            purchaser_id=card.purchaser.user_id,
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
                UsageRecordDocument.from_domain(r) for r in card.usage_history
            ],
            version=card.version,
            created_at=card.created_at,
            updated_at=card.updated_at,
        )

    def to_domain(self) -> GiftCard:
        return GiftCard(
            id=from_object_id(self.id),
            code=self.code,
            amount=self.amount,
            balance=self.balance,
            currency=self.currency,
            status=self.status,
            purchaser=Purchaser(
                user_id=self.purchaser_id,
                email=self.purchaser_email,
                name=self.purchaser_name,
            ),
            recipient=Recipient(
                email=self.recipient_email,
                name=self.recipient_name,
                phone=self.recipient_phone,
            ),
            is_for_self=self.is_for_self,
            message=self.message,
            purchased_at=self.purchased_at,
            expires_at=self.expires_at,
            redeemed_at=self.redeemed_at,
            usage_history=[r.to_domain() for r in self.usage_history],
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
