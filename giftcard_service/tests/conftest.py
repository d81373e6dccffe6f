from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest
from pymongo.errors import PyMongoError

from giftcard_service.app.config import GiftCardPolicy
from giftcard_service.app.exceptions import DuplicateGiftCardCodeError
from giftcard_service.app.models.audit import AuditLog
from giftcard_service.app.models.gift_card import (
    SPENDABLE_STATUSES,
    GiftCard,
    GiftCardListFilter,
    GiftCardStats,
    GiftCardStatus,
    Purchaser,
    Recipient,
    UsageRecord,
)
from giftcard_service.app.services.audit_service import AuditService
from giftcard_service.app.services.gift_card_service import GiftCardService


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def _matches_status(card: GiftCard, status: GiftCardStatus, now: datetime) -> bool:
    past_expiry = card.expires_at < now
    if status == GiftCardStatus.EXPIRED:
        return card.status == GiftCardStatus.EXPIRED or (
            card.status in SPENDABLE_STATUSES and past_expiry
        )
    if status in SPENDABLE_STATUSES:
        return card.status == status and not past_expiry
    return card.status == status


class FakeGiftCardRepository:
    """메모리 기반 GiftCardRepository.

    Mongo 의 단일 도큐먼트 원자성을 lock 으로 흉내 낸다. 저장/반환 시 항상 복사본을 쓴다.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cards: dict[str, GiftCard] = {}
        self._seq = 0
        self.after_read: Callable[[GiftCard], None] | None = None
        self.mark_expired_calls: list[str] = []

    def _newest_first(self, cards: list[GiftCard]) -> list[GiftCard]:
        ordered = sorted(cards, key=lambda c: (c.purchased_at, c.id or ""), reverse=True)
        return [c.model_copy(deep=True) for c in ordered]

    def insert(self, card: GiftCard) -> GiftCard:
        with self._lock:
            if any(c.code == card.code for c in self._cards.values()):
                raise DuplicateGiftCardCodeError()
            self._seq += 1
            stored = card.model_copy(deep=True, update={"id": f"card-{self._seq:04d}"})
            self._cards[stored.id] = stored
            return stored.model_copy(deep=True)

    def put(self, card: GiftCard) -> None:
        """테스트용: 만료 상태 등을 직접 심는다."""
        with self._lock:
            assert card.id is not None
            self._cards[card.id] = card.model_copy(deep=True)

    def get_stored(self, card_id: str) -> GiftCard:
        with self._lock:
            return self._cards[card_id].model_copy(deep=True)

    def find_by_code(self, code: str) -> GiftCard | None:
        with self._lock:
            found = next((c for c in self._cards.values() if c.code == code), None)
            card = found.model_copy(deep=True) if found else None
        if card is not None and self.after_read is not None:
            self.after_read(card)
        return card

    def find_by_id(self, card_id: str) -> GiftCard | None:
        with self._lock:
            found = self._cards.get(card_id)
            return found.model_copy(deep=True) if found else None

    def list_by_email(self, email: str) -> list[GiftCard]:
        # 역할별로 따로 모아 이어 붙이므로 본인 구매 카드는 두 번 들어간다.
        with self._lock:
            as_purchaser = [c for c in self._cards.values() if c.purchaser.email == email]
            as_recipient = [c for c in self._cards.values() if c.recipient.email == email]
            return self._newest_first(as_purchaser) + self._newest_first(as_recipient)

    def list_by_purchaser_id(self, user_id: str) -> list[GiftCard]:
        with self._lock:
            return self._newest_first(
                [c for c in self._cards.values() if c.purchaser.user_id == user_id]
            )

    def list_by_recipient_email(self, email: str) -> list[GiftCard]:
        with self._lock:
            return self._newest_first(
                [c for c in self._cards.values() if c.recipient.email == email]
            )

    def list(
        self, flt: GiftCardListFilter, now: datetime
    ) -> tuple[list[GiftCard], int]:
        with self._lock:
            cards = list(self._cards.values())
            if flt.status is not None:
                cards = [c for c in cards if _matches_status(c, flt.status, now)]
            if flt.email:
                cards = [
                    c
                    for c in cards
                    if flt.email in (c.purchaser.email, c.recipient.email)
                ]
            ordered = self._newest_first(cards)
        start = (flt.page - 1) * flt.limit
        return ordered[start : start + flt.limit], len(ordered)

    def mark_expired(self, card_id: str, now: datetime) -> GiftCard | None:
        with self._lock:
            self.mark_expired_calls.append(card_id)
            card = self._cards.get(card_id)
            if (
                card is None
                or card.status not in SPENDABLE_STATUSES
                or not card.expires_at < now
            ):
                return None
            card.status = GiftCardStatus.EXPIRED
            card.updated_at = now
            card.version += 1
            return card.model_copy(deep=True)

    def save_usage(
        self, card: GiftCard, record: UsageRecord, expected_version: int
    ) -> GiftCard | None:
        with self._lock:
            stored = self._cards.get(card.id or "")
            if stored is None or stored.version != expected_version:
                return None
            stored.balance = card.balance
            stored.status = card.status
            stored.updated_at = card.updated_at
            if card.redeemed_at is not None:
                stored.redeemed_at = card.redeemed_at
            stored.usage_history.append(record.model_copy())
            stored.version += 1
            return stored.model_copy(deep=True)

    def compute_stats(self, now: datetime) -> GiftCardStats:
        with self._lock:
            cards = list(self._cards.values())
        stats = GiftCardStats(
            total_count=len(cards),
            total_value=sum(c.amount for c in cards),
        )
        for card in cards:
            live = card.expires_at >= now
            if card.status == GiftCardStatus.REDEEMED:
                stats.redeemed_count += 1
            elif card.status == GiftCardStatus.EXPIRED or not live:
                stats.expired_count += 1
            elif card.status == GiftCardStatus.ACTIVE:
                stats.active_count += 1
            else:
                stats.partially_used_count += 1
            if card.status in SPENDABLE_STATUSES and live:
                stats.active_balance += card.balance
        return stats


class FakeAuditLogRepository:
    def __init__(self) -> None:
        self.created: list[AuditLog] = []
        self.fail = False
        self.list_calls: list[tuple] = []

    def create(self, log: AuditLog) -> AuditLog:
        if self.fail:
            raise PyMongoError("audit store unavailable")
        stored = log.model_copy(update={"id": f"audit-{len(self.created) + 1}"})
        self.created.append(stored)
        return stored

    def list(
        self,
        entity_type: str | None,
        action: str | None,
        actor_user_id: str | None,
        page: int,
        limit: int,
    ) -> tuple[list[AuditLog], int]:
        self.list_calls.append((entity_type, action, actor_user_id, page, limit))
        items = [
            log
            for log in reversed(self.created)
            if (entity_type is None or log.entity_type == entity_type)
            and (action is None or log.action == action)
            and (actor_user_id is None or log.actor_user_id == actor_user_id)
        ]
        start = (page - 1) * limit
        return items[start : start + limit], len(items)


@dataclass
class GiftCardServiceFixture:
    service: GiftCardService
    repo: FakeGiftCardRepository
    audit_repo: FakeAuditLogRepository
    audit_service: AuditService
    clock: FakeClock
    policy: GiftCardPolicy


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> GiftCardPolicy:
    return GiftCardPolicy()


@pytest.fixture
def fx(clock: FakeClock, policy: GiftCardPolicy) -> GiftCardServiceFixture:
    repo = FakeGiftCardRepository()
    audit_repo = FakeAuditLogRepository()
    audit_service = AuditService(audit_repo, clock=clock)
    service = GiftCardService(
        gift_card_repo=repo,
        audit_service=audit_service,
        policy=policy,
        clock=clock,
    )
    return GiftCardServiceFixture(
        service=service,
        repo=repo,
        audit_repo=audit_repo,
        audit_service=audit_service,
        clock=clock,
        policy=policy,
    )


@pytest.fixture
def purchaser() -> Purchaser:
    return Purchaser(user_id="user-001", email="Dana@Example.com", name="Dana Levi")


@pytest.fixture
def recipient() -> Recipient:
    return Recipient(email="noa@example.com", name="Noa Cohen", phone="050-1234567")
