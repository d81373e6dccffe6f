from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..models.audit import AuditLog
from ..models.gift_card import GiftCard, GiftCardListFilter, GiftCardStats, UsageRecord


class GiftCardRepositoryInterface(Protocol):
    """GiftCardRepository가 따라야 할 최소한의 계약.

    Service 레이어는 이 인터페이스에만 의존하고, 구체 구현(Mongo 등)은 몰라도 된다.
    잔액을 바꾸는 쓰기는 반드시 조건부(원자적)여야 한다.
    """

    def insert(self, card: GiftCard) -> GiftCard:  # pragma: no cover - Protocol
        """코드가 이미 있으면 DuplicateGiftCardCodeError."""
        ...

    def find_by_code(self, code: str) -> GiftCard | None:  # pragma: no cover - Protocol
        ...

    def find_by_id(self, card_id: str) -> GiftCard | None:  # pragma: no cover - Protocol
        ...

    def list_by_email(self, email: str) -> list[GiftCard]:  # pragma: no cover - Protocol
        """구매자 또는 수령자 이메일이 일치하는 카드 (중복 없이)."""
        ...

    def list_by_purchaser_id(
        self, user_id: str
    ) -> list[GiftCard]:  # pragma: no cover - Protocol
        ...

    def list_by_recipient_email(
        self, email: str
    ) -> list[GiftCard]:  # pragma: no cover - Protocol
        ...

    def list(
        self, flt: GiftCardListFilter, now: datetime
    ) -> tuple[list[GiftCard], int]:  # pragma: no cover - Protocol
        ...

    def mark_expired(
        self, card_id: str, now: datetime
    ) -> GiftCard | None:  # pragma: no cover - Protocol
        """사용 가능 상태이고 expires_at 이 지난 경우에만 expired 로 바꾼다. 바뀌지 않았으면 None."""
        ...

    def save_usage(
        self, card: GiftCard, record: UsageRecord, expected_version: int
    ) -> GiftCard | None:  # pragma: no cover - Protocol
        """version 이 expected_version 과 같을 때만 잔액/상태/원장을 한 번에 저장한다.

        다른 쓰기가 먼저 반영되어 조건이 맞지 않으면 None.
        """
        ...

    def compute_stats(self, now: datetime) -> GiftCardStats:  # pragma: no cover - Protocol
        ...


class AuditLogRepositoryInterface(Protocol):
    def create(self, log: AuditLog) -> AuditLog:  # pragma: no cover - Protocol
        ...

    def list(
        self,
        entity_type: str | None,
        action: str | None,
        actor_user_id: str | None,
        page: int,
        limit: int,
    ) -> tuple[list[AuditLog], int]:  # pragma: no cover - Protocol
        ...
