from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from giftcard_service.app.exceptions import (
    DuplicateGiftCardCodeError,
    GiftCardExpiredError,
    GiftCardNotActiveError,
    GiftCardNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidMessageError,
    InvalidSpendAmountError,
)
from giftcard_service.app.models.audit import SYSTEM_ACTOR, Actor, AuditAction
from giftcard_service.app.models.gift_card import GiftCard, GiftCardStatus, Recipient
from giftcard_service.app.services.gift_card_service import GiftCardService


def _create(fx, purchaser, recipient, amount: int = 500, **kwargs) -> GiftCard:
    return fx.service.create(
        amount=amount,
        purchaser=purchaser,
        recipient=recipient,
        is_for_self=kwargs.pop("is_for_self", False),
        **kwargs,
    )


def _stale_active(fx, card: GiftCard) -> GiftCard:
    """유효기간이 지났지만 저장 상태는 그대로인 카드를 만든다."""
    stale = card.model_copy(update={"expires_at": fx.clock.now - timedelta(days=1)})
    fx.repo.put(stale)
    return stale


# --- create --------------------------------------------------------------------------


def test_create_issues_active_card_with_full_balance(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient, amount=500, message="  Mazal tov!  ")

    assert card.id is not None
    assert card.amount == card.balance == 500
    assert card.currency == "ILS"
    assert card.status == GiftCardStatus.ACTIVE
    assert card.usage_history == []
    assert card.version == 0
    assert card.purchased_at == fx.clock.now
    assert card.expires_at == fx.clock.now.replace(year=2030)
    assert card.message == "Mazal tov!"
    # 이메일은 소문자로 정규화된다.
    assert card.purchaser.email == "dana@example.com"
    assert card.recipient.email == "noa@example.com"


@pytest.mark.parametrize("amount", [100, 5000])
def test_create_accepts_boundary_amounts(fx, purchaser, recipient, amount):
    assert _create(fx, purchaser, recipient, amount=amount).balance == amount


@pytest.mark.parametrize("amount", [99, 5001])
def test_create_rejects_out_of_range_amount(fx, purchaser, recipient, amount):
    with pytest.raises(InvalidAmountError):
        _create(fx, purchaser, recipient, amount=amount)
    assert fx.repo.list_by_purchaser_id("user-001") == []
    assert fx.audit_repo.created == []


def test_create_for_self_uses_purchaser_as_recipient(fx, purchaser):
    card = _create(
        fx,
        purchaser,
        Recipient(email="other@example.com", name="Ignored", phone="052-0000000"),
        is_for_self=True,
        message="not delivered",
    )

    assert card.is_for_self
    assert card.recipient.email == card.purchaser.email == "dana@example.com"
    assert card.recipient.phone == "052-0000000"
    assert card.message is None


def test_create_requires_recipient_for_gift(fx, purchaser):
    with pytest.raises(ValueError):
        _create(fx, purchaser, None)


def test_create_rejects_long_message(fx, purchaser, recipient):
    with pytest.raises(InvalidMessageError):
        _create(fx, purchaser, recipient, message="x" * 501)


def test_create_regenerates_code_on_collision(fx, purchaser, recipient):
    """코드 충돌 시 새 코드로 다시 시도한다."""
    codes = iter(["AAAA-AAAA-AAAA-AAAA", "AAAA-AAAA-AAAA-AAAA", "BBBB-BBBB-BBBB-BBBB"])
    service = GiftCardService(
        gift_card_repo=fx.repo,
        audit_service=fx.audit_service,
        policy=fx.policy,
        clock=fx.clock,
        code_generator=lambda: next(codes),
    )

    first = service.create(500, purchaser, recipient, is_for_self=False)
    second = service.create(500, purchaser, recipient, is_for_self=False)

    assert first.code == "AAAA-AAAA-AAAA-AAAA"
    assert second.code == "BBBB-BBBB-BBBB-BBBB"


def test_create_gives_up_after_configured_attempts(fx, purchaser, recipient):
    service = GiftCardService(
        gift_card_repo=fx.repo,
        audit_service=fx.audit_service,
        policy=fx.policy,
        clock=fx.clock,
        code_generator=lambda: "AAAA-AAAA-AAAA-AAAA",
    )
    service.create(500, purchaser, recipient, is_for_self=False)

    with pytest.raises(DuplicateGiftCardCodeError):
        service.create(500, purchaser, recipient, is_for_self=False)


def test_create_writes_masked_audit_entry(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient, amount=300)

    [log] = fx.audit_repo.created
    assert log.action == AuditAction.CREATE
    assert log.entity_type == "gift-card"
    assert log.entity_id == card.id
    assert log.actor_user_id == "user-001"
    assert card.code not in log.diff_summary
    assert card.code[-4:] in log.diff_summary
    assert "₪300" in log.diff_summary


# --- lookup --------------------------------------------------------------------------


def test_lookup_by_code_is_case_insensitive(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient)

    found = fx.service.get_by_code(f"  {card.code.lower()} ")
    assert found is not None
    assert found.id == card.id
    assert fx.service.get_by_code("ZZZZ-ZZZZ-ZZZZ-ZZZZ") is None
    with pytest.raises(GiftCardNotFoundError):
        fx.service.require_by_code("ZZZZ-ZZZZ-ZZZZ-ZZZZ")


def test_lookup_persists_lazy_expiration(fx, purchaser, recipient):
    """읽는 순간 만료를 저장하고 system 명의로 감사 로그를 남긴다."""
    card = _stale_active(fx, _create(fx, purchaser, recipient))

    found = fx.service.get_by_id(card.id)

    assert found is not None
    assert found.status == GiftCardStatus.EXPIRED
    assert fx.repo.get_stored(card.id).status == GiftCardStatus.EXPIRED
    expire_logs = [log for log in fx.audit_repo.created if log.action == AuditAction.EXPIRE]
    assert len(expire_logs) == 1
    assert expire_logs[0].actor_user_id == SYSTEM_ACTOR.user_id

    # 두 번째 조회에서는 다시 기록하지 않는다.
    fx.service.get_by_id(card.id)
    assert len([log for log in fx.audit_repo.created if log.action == AuditAction.EXPIRE]) == 1


def test_partially_used_card_also_expires(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient)
    fx.service.use(card.code, 100)
    _stale_active(fx, fx.repo.get_stored(card.id))

    found = fx.service.get_by_code(card.code)
    assert found.status == GiftCardStatus.EXPIRED
    assert found.balance == 400


def test_lookup_does_not_touch_live_cards(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient)
    fx.service.get_by_code(card.code)
    assert fx.repo.mark_expired_calls == []


# --- use -----------------------------------------------------------------------------


def test_full_lifecycle_spend_to_redeemed(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient, amount=500)

    after_first = fx.service.use(card.code, 200, order_id="order-1")
    assert after_first.balance == 300
    assert after_first.status == GiftCardStatus.PARTIALLY_USED

    after_second = fx.service.use(card.code, 300, order_id="order-2")
    assert after_second.balance == 0
    assert after_second.status == GiftCardStatus.REDEEMED
    assert after_second.redeemed_at == fx.clock.now
    assert [r.amount for r in after_second.usage_history] == [200, 300]

    with pytest.raises(GiftCardNotActiveError) as exc_info:
        fx.service.use(card.code, 1)
    assert exc_info.value.code == "not_active"


def test_use_records_default_description(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient)
    saved = fx.service.use(card.code, 50)

    [record] = saved.usage_history
    assert record.description == fx.policy.default_usage_description
    assert record.order_id is None
    assert record.date == fx.clock.now


def test_overspend_is_rejected_without_change(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient, amount=100)

    with pytest.raises(InsufficientBalanceError) as exc_info:
        fx.service.use(card.code, 150)

    assert exc_info.value.balance == 100
    stored = fx.repo.get_stored(card.id)
    assert stored.balance == 100
    assert stored.usage_history == []
    assert stored.version == 0


def test_zero_spend_is_rejected(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient)
    with pytest.raises(InvalidSpendAmountError):
        fx.service.use(card.code, 0)


def test_use_on_stale_active_card_reports_expired(fx, purchaser, recipient):
    card = _stale_active(fx, _create(fx, purchaser, recipient))

    with pytest.raises(GiftCardExpiredError):
        fx.service.use(card.code, 10)
    assert fx.repo.get_stored(card.id).balance == 500


def test_use_unknown_code(fx):
    with pytest.raises(GiftCardNotFoundError):
        fx.service.use("NOPE-NOPE-NOPE-NOPE", 10)


def test_balance_plus_history_always_equals_face_value(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient, amount=1000)

    for amount in (1, 99, 400, 2000, 250, 250):
        try:
            fx.service.use(card.code, amount)
        except GiftCardNotActiveError:
            pass
        except InsufficientBalanceError:
            pass
        stored = fx.repo.get_stored(card.id)
        assert stored.balance >= 0
        assert stored.balance + stored.total_spent == stored.amount

    assert fx.repo.get_stored(card.id).status == GiftCardStatus.REDEEMED


def test_use_is_audited_with_actor(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient)
    cashier = Actor(user_id="user-777", email="cashier@example.com", name="Cashier")

    fx.service.use(card.code, 120, order_id="order-9", actor=cashier)

    redeem = [log for log in fx.audit_repo.created if log.action == AuditAction.REDEEM]
    assert len(redeem) == 1
    assert redeem[0].actor_user_id == "user-777"
    assert "order-9" in redeem[0].diff_summary
    assert card.code not in redeem[0].diff_summary


def test_audit_failure_does_not_undo_redemption(fx, purchaser, recipient, caplog):
    card = _create(fx, purchaser, recipient)
    fx.audit_repo.fail = True

    with caplog.at_level(logging.ERROR):
        saved = fx.service.use(card.code, 100)

    assert saved.balance == 400
    assert fx.repo.get_stored(card.id).balance == 400
    assert any("failed to write audit log" in r.getMessage() for r in caplog.records)


# --- validate ------------------------------------------------------------------------


def test_validate_reports_valid_card_without_mutation(fx, purchaser, recipient):
    card = _create(fx, purchaser, recipient)

    first = fx.service.validate(card.code)
    second = fx.service.validate(card.code)

    assert first.valid and second.valid
    assert first.card.balance == 500
    assert fx.repo.get_stored(card.id).version == 0


def test_validate_failure_reasons(fx, purchaser, recipient):
    redeemed = _create(fx, purchaser, recipient, amount=100)
    fx.service.use(redeemed.code, 100)
    stale = _stale_active(fx, _create(fx, purchaser, recipient))

    missing = fx.service.validate("NOPE-NOPE-NOPE-NOPE")
    assert (missing.valid, missing.reason, missing.card) == (False, "not_found", None)

    used_up = fx.service.validate(redeemed.code)
    assert (used_up.valid, used_up.reason) == (False, "not_active")

    expired = fx.service.validate(stale.code)
    assert (expired.valid, expired.reason) == (False, "expired")
    assert expired.card.status == GiftCardStatus.EXPIRED


# --- listing -------------------------------------------------------------------------


def test_list_by_email_returns_self_purchase_once(fx, purchaser, recipient):
    own = _create(fx, purchaser, None, is_for_self=True)
    fx.clock.advance(minutes=1)
    gift = _create(fx, purchaser, recipient)

    cards = fx.service.list_by_email("DANA@example.com")

    assert [c.id for c in cards] == [gift.id, own.id]


def test_list_purchased_and_received(fx, purchaser, recipient):
    older = _create(fx, purchaser, recipient)
    fx.clock.advance(hours=1)
    newer = _create(fx, purchaser, recipient)

    assert [c.id for c in fx.service.list_purchased_by("user-001")] == [newer.id, older.id]
    assert [c.id for c in fx.service.list_received_by("Noa@Example.com")] == [
        newer.id,
        older.id,
    ]
    assert fx.service.list_received_by("nobody@example.com") == []


def test_list_all_filters_and_refreshes_expiration(fx, purchaser, recipient):
    live = _create(fx, purchaser, recipient)
    stale = _stale_active(fx, _create(fx, purchaser, recipient))

    active_page = fx.service.list_all(status=GiftCardStatus.ACTIVE)
    assert [c.id for c in active_page.items] == [live.id]

    expired_page = fx.service.list_all(status=GiftCardStatus.EXPIRED)
    assert [c.id for c in expired_page.items] == [stale.id]
    assert expired_page.items[0].status == GiftCardStatus.EXPIRED
    assert fx.repo.get_stored(stale.id).status == GiftCardStatus.EXPIRED


def test_list_all_clamps_paging(fx, purchaser, recipient):
    for _ in range(3):
        _create(fx, purchaser, recipient)
        fx.clock.advance(seconds=1)

    page = fx.service.list_all(page=0, limit=1000)
    assert page.page == 1
    assert page.limit == fx.policy.max_page_size
    assert page.total == 3

    second = fx.service.list_all(page=2, limit=2)
    assert len(second.items) == 1
    assert second.pages == 2


def test_list_all_filters_by_email(fx, purchaser, recipient):
    _create(fx, purchaser, recipient)
    result = fx.service.list_all(email=" NOA@example.com ")
    assert result.total == 1
    assert fx.service.list_all(email="ghost@example.com").total == 0


def test_compute_stats(fx, purchaser, recipient):
    _create(fx, purchaser, recipient, amount=500)
    partial = _create(fx, purchaser, recipient, amount=300)
    fx.service.use(partial.code, 100)
    redeemed = _create(fx, purchaser, recipient, amount=200)
    fx.service.use(redeemed.code, 200)
    _stale_active(fx, _create(fx, purchaser, recipient, amount=1000))

    stats = fx.service.compute_stats()

    assert stats.total_count == 4
    assert stats.active_count == 1
    assert stats.partially_used_count == 1
    assert stats.redeemed_count == 1
    assert stats.expired_count == 1
    assert stats.total_value == 2000
    # 만료 카드의 잔액은 사용 가능 잔액에서 빠진다.
    assert stats.active_balance == 500 + 200
