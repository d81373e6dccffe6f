"""금액 값 객체.

기프트카드 금액은 통화의 정수 단위로만 다루며 음수가 될 수 없다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..exceptions import InvalidAmountError

if TYPE_CHECKING:
    from ..config import GiftCardPolicy


CURRENCY_SYMBOLS: dict[str, str] = {
    "ILS": "₪",
    "USD": "$",
    "EUR": "€",
}


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, f"{currency} ")


@dataclass(frozen=True, slots=True)
class Money:
    amount: int
    currency: str = "ILS"

    def __post_init__(self) -> None:
        # bool 은 int 의 서브클래스라 명시적으로 막는다.
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"money amount must be an integer: {self.amount!r}")
        if self.amount < 0:
            raise ValueError(f"money amount must not be negative: {self.amount}")
        if not self.currency:
            raise ValueError("currency is required")

    @classmethod
    def face_value(cls, amount: int, policy: GiftCardPolicy) -> "Money":
        """발급 금액을 만든다. 정책 범위 밖이면 InvalidAmountError."""

        if (
            isinstance(amount, bool)
            or not isinstance(amount, int)
            or not policy.min_amount <= amount <= policy.max_amount
        ):
            raise InvalidAmountError(amount, policy.min_amount, policy.max_amount)
        return cls(amount, policy.currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    def covers(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        if other.amount > self.amount:
            raise ValueError(
                f"cannot subtract {other.amount} from {self.amount} {self.currency}"
            )
        return Money(self.amount - other.amount, self.currency)

    def display(self) -> str:
        return f"{currency_symbol(self.currency)}{self.amount}"

    def _check_currency(self, other: "Money") -> None:
        if other.currency != self.currency:
            raise ValueError(
                f"currency mismatch: {self.currency} != {other.currency}"
            )
