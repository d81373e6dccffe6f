"""기프트카드 도메인 모델.

카드 한 장이 애그리거트 루트이며, 잔액을 바꾸는 연산(apply_spend)은 이 모델만 가진다.
usage_history 는 append-only 원장으로 `amount - balance == sum(usage_history.amount)` 를 항상 만족한다.
만료 상태(expired)는 조회 시점에 lazy 하게 반영되는 캐시 값이고, 진실은 expires_at 과의 비교이다.
"""

from __future__ import annotations

import math
import secrets
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from ..exceptions import (
    GiftCardExpiredError,
    GiftCardNotActiveError,
    InsufficientBalanceError,
    InvalidSpendAmountError,
    ZeroBalanceError,
)
from .money import Money, currency_symbol


CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
CODE_GROUPS = 4
CODE_GROUP_LENGTH = 4


class GiftCardStatus(StrEnum):
    ACTIVE = "active"
    PARTIALLY_USED = "partially_used"
    REDEEMED = "redeemed"
    EXPIRED = "expired"


SPENDABLE_STATUSES: tuple[GiftCardStatus, ...] = (
    GiftCardStatus.ACTIVE,
    GiftCardStatus.PARTIALLY_USED,
)


def generate_gift_card_code() -> str:
    """`XXXX-XXXX-XXXX-XXXX` 형식의 코드를 생성한다 (36^16 키 공간)."""

    return "-".join(
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_GROUP_LENGTH))
        for _ in range(CODE_GROUPS)
    )


def normalize_code(code: str) -> str:
    return code.strip().upper()


def mask_code(code: str) -> str:
    """로그/감사 기록용. 마지막 그룹만 남긴다."""

    groups = code.split("-")
    return "-".join(["****"] * (len(groups) - 1) + groups[-1:])


def normalize_email(email: str) -> str:
    return email.strip().lower()


def compute_expires_at(purchased_at: datetime, years: int) -> datetime:
    """구매 시점에서 달력 기준 N년 뒤. 2/29 구매분은 평년이면 3/1 로 넘긴다."""

    try:
        return purchased_at.replace(year=purchased_at.year + years)
    except ValueError:
        return purchased_at.replace(
            year=purchased_at.year + years, month=3, day=1
        )


class Purchaser(BaseModel):
    """구매자 (생성 후 변경 불가)."""

    user_id: str
    email: str
    name: str


class Recipient(BaseModel):
    email: str
    name: str
    phone: str | None = None


class UsageRecord(BaseModel):
    """원장 한 줄. 추가만 되고 수정/삭제되지 않는다."""

    date: datetime
    amount: int
    order_id: str | None = None
    description: str


class GiftCard(BaseModel):
    """기프트카드 애그리거트."""

    id: str | None = None
    code: str
    amount: int  # 발급 금액
    balance: int  # 남은 금액
    currency: str = "ILS"
    status: GiftCardStatus = GiftCardStatus.ACTIVE
    purchaser: Purchaser
    recipient: Recipient
    is_for_self: bool = False
    message: str | None = None
    purchased_at: datetime
    expires_at: datetime
    redeemed_at: datetime | None = None
    usage_history: list[UsageRecord] = Field(default_factory=list)
    version: int = 0  # 낙관적 동시성 제어용, 저장할 때마다 1 증가
    created_at: datetime
    updated_at: datetime

    @property
    def face_value(self) -> Money:
        return Money(self.amount, self.currency)

    @property
    def remaining(self) -> Money:
        return Money(self.balance, self.currency)

    @property
    def total_spent(self) -> int:
        return sum(record.amount for record in self.usage_history)

    def is_past_expiry(self, now: datetime) -> bool:
        return now > self.expires_at

    def should_expire(self, now: datetime) -> bool:
        """저장된 상태가 아직 사용 가능인데 유효기간이 지난 경우."""
        return self.status in SPENDABLE_STATUSES and self.is_past_expiry(now)

    def check_redeemable(self, now: datetime) -> None:
        """사용 가능한 카드인지 확인한다 (validate 용). 불가하면 GiftCardError 하위 예외."""

        self._check_state(now)
        if self.balance <= 0:
            raise ZeroBalanceError()

    def check_spend(self, amount: int, now: datetime) -> None:
        """amount 만큼 사용할 수 있는지 확인한다."""

        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidSpendAmountError()
        self._check_state(now)
        if not self.remaining.covers(Money(amount, self.currency)):
            raise InsufficientBalanceError(
                self.balance, amount, currency_symbol(self.currency)
            )

    def apply_spend(
        self,
        amount: int,
        now: datetime,
        order_id: str | None,
        description: str,
    ) -> UsageRecord:
        """잔액 차감 + 원장 추가 + 상태 전이를 메모리 상에서 적용하고 추가된 원장 행을 반환한다."""

        self.check_spend(amount, now)

        remaining = self.remaining - Money(amount, self.currency)
        record = UsageRecord(
            date=now,
            amount=amount,
            order_id=order_id,
            description=description,
        )
        self.balance = remaining.amount
        self.usage_history.append(record)

        if remaining.is_zero:
            self.status = GiftCardStatus.REDEEMED
            self.redeemed_at = now
        else:
            self.status = GiftCardStatus.PARTIALLY_USED
        self.updated_at = now
        return record

    def _check_state(self, now: datetime) -> None:
        if self.status == GiftCardStatus.REDEEMED:
            raise GiftCardNotActiveError()
        # 상태 플래그가 갱신되지 않았어도 날짜 비교가 우선한다.
        if self.status == GiftCardStatus.EXPIRED or self.is_past_expiry(now):
            raise GiftCardExpiredError()


class ValidationResult(BaseModel):
    """사용 전 확인 결과. valid=False 면 reason 에 예외 코드가 들어간다."""

    valid: bool
    card: GiftCard | None = None
    reason: str | None = None
    message: str | None = None


class GiftCardListFilter(BaseModel):
    status: GiftCardStatus | None = None
    email: str | None = None
    page: int = 1
    limit: int = 20


class GiftCardPage(BaseModel):
    items: list[GiftCard]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class GiftCardStats(BaseModel):
    """관리자 대시보드용 집계."""

    total_count: int = 0
    active_count: int = 0
    redeemed_count: int = 0
    expired_count: int = 0
    partially_used_count: int = 0
    total_value: int = 0
    active_balance: int = 0
