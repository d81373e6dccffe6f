"""기프트카드 비즈니스 예외.

모두 호출자가 복구 가능한 사용자 오류이며, API 레이어에서 4xx 로 변환된다.
메시지는 사용자 화면에 그대로 노출되므로 히브리어로 둔다.
"""

from __future__ import annotations

from typing import Any, ClassVar


class GiftCardError(Exception):
    """Base exception for all gift-card business errors."""

    code: ClassVar[str] = "gift_card_error"
    default_message: ClassVar[str] = "שגיאת גיפטקארד"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_detail(self) -> dict[str, Any]:
        """HTTPException.detail 로 쓰는 직렬화 형태."""
        return {"code": self.code, "message": self.message}


class InvalidAmountError(GiftCardError):
    """Face value outside the configured purchase bounds."""

    code = "invalid_amount"

    def __init__(self, amount: int, min_amount: int, max_amount: int) -> None:
        self.amount = amount
        self.min_amount = min_amount
        self.max_amount = max_amount
        super().__init__(f"סכום הגיפטקארד חייב להיות בין {min_amount}₪ ל-{max_amount}₪")

    def to_detail(self) -> dict[str, Any]:
        detail = super().to_detail()
        detail["min_amount"] = self.min_amount
        detail["max_amount"] = self.max_amount
        return detail


class InvalidMessageError(GiftCardError):
    """Greeting message longer than allowed."""

    code = "invalid_message"

    def __init__(self, max_length: int) -> None:
        self.max_length = max_length
        super().__init__(f"ההודעה ארוכה מדי (עד {max_length} תווים)")


class InvalidSpendAmountError(GiftCardError):
    """Zero or negative redemption amount."""

    code = "invalid_spend_amount"
    default_message = "סכום חייב להיות לפחות 1"


class GiftCardNotFoundError(GiftCardError):
    code = "not_found"
    default_message = "גיפטקארד לא נמצא"


class GiftCardNotActiveError(GiftCardError):
    """Card is in a terminal state (fully redeemed or marked expired)."""

    code = "not_active"
    default_message = "הגיפטקארד כבר מומש במלואו"


class GiftCardExpiredError(GiftCardNotActiveError):
    """Card is past its expiry date, whatever its stored status says."""

    code = "expired"
    default_message = "הגיפטקארד פג תוקף"


class InsufficientBalanceError(GiftCardError):
    code = "insufficient_balance"

    def __init__(self, balance: int, requested: int, currency_symbol: str = "₪") -> None:
        self.balance = balance
        self.requested = requested
        super().__init__(f"יתרה לא מספיקה. יתרה נוכחית: {currency_symbol}{balance}")

    def to_detail(self) -> dict[str, Any]:
        detail = super().to_detail()
        detail["balance"] = self.balance
        return detail


class ZeroBalanceError(GiftCardError):
    """Card has nothing left to spend (reported by validate)."""

    code = "zero_balance"
    default_message = "אין יתרה בגיפטקארד"


class ConcurrentModificationError(GiftCardError):
    """The card changed between read and conditional write."""

    code = "concurrent_modification"
    default_message = "הגיפטקארד עודכן במקביל, נסו שוב"


class DuplicateGiftCardCodeError(GiftCardError):
    """Store rejected the generated code (unique index)."""

    code = "duplicate_code"
    default_message = "gift card code already exists"
