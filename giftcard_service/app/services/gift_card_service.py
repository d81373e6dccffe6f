"""기프트카드 서비스.

발급, 코드/ID 조회(lazy 만료 반영), 사용(잔액 차감), 사용 전 확인, 목록/통계 조회를 처리한다.
만료는 스케줄러 없이 카드를 읽을 때만 저장소에 반영된다.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database
from common.types.datetime import Clock, utc_now

from ..config import GiftCardPolicy, get_config
from ..exceptions import (
    ConcurrentModificationError,
    DuplicateGiftCardCodeError,
    GiftCardError,
    GiftCardNotFoundError,
    InvalidMessageError,
)
from ..models.audit import SYSTEM_ACTOR, Actor, AuditAction
from ..models.gift_card import (
    GiftCard,
    GiftCardListFilter,
    GiftCardPage,
    GiftCardStats,
    GiftCardStatus,
    Purchaser,
    Recipient,
    ValidationResult,
    compute_expires_at,
    generate_gift_card_code,
    mask_code,
    normalize_code,
    normalize_email,
)
from ..models.money import Money
from ..repositories.gift_card_repository import GiftCardRepository
from ..repositories.interfaces import GiftCardRepositoryInterface
from .audit_service import AuditService, get_audit_service


logger = logging.getLogger(__name__)


class GiftCardService:
    """기프트카드 관련 비즈니스 로직."""

    def __init__(
        self,
        gift_card_repo: GiftCardRepositoryInterface,
        audit_service: AuditService,
        policy: GiftCardPolicy,
        clock: Clock = utc_now,
        code_generator: Callable[[], str] = generate_gift_card_code,
    ) -> None:
        self._repo = gift_card_repo
        self._audit = audit_service
        self._policy = policy
        self._clock = clock
        self._code_generator = code_generator

    # --- lifecycle -----------------------------------------------------------------
    def create(
        self,
        amount: int,
        purchaser: Purchaser,
        recipient: Recipient | None,
        is_for_self: bool,
        message: str | None = None,
        actor: Actor | None = None,
    ) -> GiftCard:
        """결제가 끝난 뒤 호출된다. balance=amount, status=active, 유효기간은 구매 시점 + N년."""

        face_value = Money.face_value(amount, self._policy)

        purchaser = Purchaser(
            user_id=purchaser.user_id,
            email=normalize_email(purchaser.email),
            name=purchaser.name.strip(),
        )
        if is_for_self:
            # 본인 구매는 수령자가 곧 구매자이고 축하 메시지는 의미가 없다.
            recipient = Recipient(
                email=purchaser.email,
                name=purchaser.name,
                phone=recipient.phone if recipient else None,
            )
            message = None
        elif recipient is None:
            raise ValueError("recipient is required unless is_for_self is set")
        else:
            recipient = Recipient(
                email=normalize_email(recipient.email),
                name=recipient.name.strip(),
                phone=(recipient.phone or "").strip() or None,
            )

        if message is not None:
            message = message.strip() or None
        if message is not None and len(message) > self._policy.max_message_length:
            raise InvalidMessageError(self._policy.max_message_length)

        now = self._clock()
        attempts = self._policy.code_generation_attempts
        for attempt in range(1, attempts + 1):
            card = GiftCard(
                code=self._code_generator(),
                amount=face_value.amount,
                balance=face_value.amount,
                currency=face_value.currency,
                status=GiftCardStatus.ACTIVE,
                purchaser=purchaser,
                recipient=recipient,
                is_for_self=is_for_self,
                message=message,
                purchased_at=now,
                expires_at=compute_expires_at(now, self._policy.validity_years),
                created_at=now,
                updated_at=now,
            )
            try:
                created = self._repo.insert(card)
                break
            except DuplicateGiftCardCodeError:
                logger.warning(
                    "gift card code collision, regenerating (attempt=%d/%d)",
                    attempt,
                    attempts,
                )
                if attempt == attempts:
                    raise

        logger.info(
            "created gift card id=%s amount=%d",
            created.id,
            created.amount,
            extra={"gift_card_code": mask_code(created.code), "gift_card_id": created.id},
        )
        self._audit.record(
            actor or Actor(user_id=purchaser.user_id, email=purchaser.email, name=purchaser.name),
            AuditAction.CREATE,
            created.id,
            f"Created gift card {mask_code(created.code)} ({face_value.display()})",
        )
        return created

    def get_by_code(self, code: str) -> GiftCard | None:
        """코드로 조회 (대소문자 무시). 만료가 지났으면 expired 로 저장한 뒤 반환한다."""

        card = self._repo.find_by_code(normalize_code(code))
        if card is None:
            return None
        return self._refresh_expiration(card)

    def get_by_id(self, card_id: str) -> GiftCard | None:
        card = self._repo.find_by_id(card_id)
        if card is None:
            return None
        return self._refresh_expiration(card)

    def require_by_code(self, code: str) -> GiftCard:
        card = self.get_by_code(code)
        if card is None:
            raise GiftCardNotFoundError()
        return card

    # --- redemption ----------------------------------------------------------------
    def use(
        self,
        code: str,
        amount: int,
        order_id: str | None = None,
        description: str | None = None,
        actor: Actor | None = None,
    ) -> GiftCard:
        """잔액을 amount 만큼 차감한다.

        읽은 시점의 version 을 조건으로 저장하므로, 그 사이 다른 요청이 카드를 바꿨다면
        ConcurrentModificationError 로 실패한다 (잔액 초과 사용 방지).
        """

        card = self.require_by_code(code)
        expected_version = card.version

        record = card.apply_spend(
            amount,
            self._clock(),
            order_id,
            description or self._policy.default_usage_description,
        )

        saved = self._repo.save_usage(card, record, expected_version)
        if saved is None:
            logger.warning(
                "gift card changed during redemption id=%s expected_version=%d",
                card.id,
                expected_version,
                extra={"gift_card_code": mask_code(card.code), "gift_card_id": card.id},
            )
            raise ConcurrentModificationError()

        logger.info(
            "redeemed gift card id=%s amount=%d balance=%d status=%s",
            saved.id,
            record.amount,
            saved.balance,
            saved.status.value,
            extra={"gift_card_code": mask_code(saved.code), "gift_card_id": saved.id},
        )
        spent = Money(record.amount, saved.currency)
        self._audit.record(
            actor or SYSTEM_ACTOR,
            AuditAction.REDEEM,
            saved.id,
            f"Redeemed {spent.display()} from gift card {mask_code(saved.code)}"
            f" (order={record.order_id or '-'}, balance={saved.remaining.display()})",
        )
        return saved

    def validate(self, code: str) -> ValidationResult:
        """사용 가능 여부만 확인한다. use 와 같은 실패 분류(reason)를 돌려준다."""

        card = self.get_by_code(code)
        if card is None:
            error = GiftCardNotFoundError()
            return ValidationResult(valid=False, reason=error.code, message=error.message)

        try:
            card.check_redeemable(self._clock())
        except GiftCardError as exc:
            return ValidationResult(
                valid=False, card=card, reason=exc.code, message=exc.message
            )
        return ValidationResult(valid=True, card=card)

    # --- queries -------------------------------------------------------------------
    def list_by_email(self, email: str) -> list[GiftCard]:
        """구매했거나 받은 카드. 본인 구매 카드는 한 번만 나온다."""

        cards = self._repo.list_by_email(normalize_email(email))
        return self._refresh_all(_unique_by_id(cards))

    def list_purchased_by(self, user_id: str) -> list[GiftCard]:
        return self._refresh_all(self._repo.list_by_purchaser_id(user_id))

    def list_received_by(self, email: str) -> list[GiftCard]:
        return self._refresh_all(
            self._repo.list_by_recipient_email(normalize_email(email))
        )

    def list_all(
        self,
        status: GiftCardStatus | None = None,
        email: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> GiftCardPage:
        """관리자 목록. 페이지에 담긴 카드에도 lazy 만료를 반영한다."""

        if page <= 0:
            page = 1
        if limit is None or limit <= 0:
            limit = self._policy.default_page_size
        limit = min(limit, self._policy.max_page_size)

        flt = GiftCardListFilter(
            status=status,
            email=normalize_email(email) if email else None,
            page=page,
            limit=limit,
        )
        items, total = self._repo.list(flt, self._clock())
        return GiftCardPage(
            items=self._refresh_all(items),
            total=total,
            page=page,
            limit=limit,
        )

    def compute_stats(self) -> GiftCardStats:
        return self._repo.compute_stats(self._clock())

    # --- helpers -------------------------------------------------------------------
    def _refresh_all(self, cards: list[GiftCard]) -> list[GiftCard]:
        return [self._refresh_expiration(card) for card in cards]

    def _refresh_expiration(self, card: GiftCard) -> GiftCard:
        now = self._clock()
        if not card.should_expire(now):
            return card

        assert card.id is not None
        expired = self._repo.mark_expired(card.id, now)
        if expired is None:
            # 다른 요청이 먼저 상태를 바꿨다. 최신 값을 다시 읽는다.
            latest = self._repo.find_by_id(card.id)
            return latest if latest is not None else card

        logger.info(
            "gift card expired id=%s",
            expired.id,
            extra={"gift_card_code": mask_code(expired.code), "gift_card_id": expired.id},
        )
        self._audit.record(
            SYSTEM_ACTOR,
            AuditAction.EXPIRE,
            expired.id,
            f"Gift card {mask_code(expired.code)} expired"
            f" (balance={expired.remaining.display()})",
        )
        return expired


def _unique_by_id(cards: list[GiftCard]) -> list[GiftCard]:
    seen: set[str] = set()
    unique: list[GiftCard] = []
    for card in cards:
        key = card.id or card.code
        if key in seen:
            continue
        seen.add(key)
        unique.append(card)
    return unique


def get_gift_card_repository(
    db: Database = Depends(get_database),
) -> GiftCardRepositoryInterface:
    """FastAPI DI용 GiftCardRepository 팩토리."""

    return GiftCardRepository(db)


def get_gift_card_service(
    gift_card_repo: GiftCardRepositoryInterface = Depends(get_gift_card_repository),
    audit_service: AuditService = Depends(get_audit_service),
) -> GiftCardService:
    return GiftCardService(
        gift_card_repo=gift_card_repo,
        audit_service=audit_service,
        policy=get_config().giftcard,
    )
