"""기프트카드 내부 API 라우터.

checkout / Gateway 에서 호출한다. 사용자 식별은 Gateway 가 넘겨준 헤더(X-User-*)를 따른다.
"""

from __future__ import annotations

from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from ...exceptions import GiftCardError
from ...models.audit import Actor
from ...models.gift_card import Purchaser, Recipient
from ...services.gift_card_service import GiftCardService, get_gift_card_service
from ..dependencies import get_current_actor
from ..schemas.gift_cards import (
    CreateGiftCardRequest,
    GiftCardResponse,
    UseGiftCardRequest,
    ValidateGiftCardRequest,
    ValidateGiftCardResponse,
)


router = APIRouter(prefix="/giftcards", tags=["giftcards"])


_STATUS_BY_ERROR_CODE: dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "concurrent_modification": status.HTTP_409_CONFLICT,
}


def raise_http_error(exc: GiftCardError) -> NoReturn:
    """비즈니스 예외를 HTTPException 으로 변환한다. 기본은 400."""

    raise HTTPException(
        status_code=_STATUS_BY_ERROR_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST),
        detail=exc.to_detail(),
    ) from exc


@router.post("", status_code=status.HTTP_201_CREATED, summary="기프트카드 발급")
def create_gift_card(
    req: CreateGiftCardRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    service: Annotated[GiftCardService, Depends(get_gift_card_service)],
) -> GiftCardResponse:
    recipient = None
    if not req.is_for_self or req.recipient_phone:
        recipient = Recipient(
            email=req.recipient_email or actor.email,
            name=req.recipient_name or actor.name or actor.email,
            phone=req.recipient_phone,
        )

    try:
        card = service.create(
            amount=req.amount,
            purchaser=Purchaser(
                user_id=actor.user_id,
                email=actor.email,
                name=actor.name or actor.email,
            ),
            recipient=recipient,
            is_for_self=req.is_for_self,
            message=req.message,
            actor=actor,
        )
    except GiftCardError as exc:
        raise_http_error(exc)
    return GiftCardResponse.from_domain(card)


@router.get("/my", summary="받은 기프트카드 목록")
def list_my_gift_cards(
    actor: Annotated[Actor, Depends(get_current_actor)],
    service: Annotated[GiftCardService, Depends(get_gift_card_service)],
) -> list[GiftCardResponse]:
    cards = service.list_received_by(actor.email)
    return [GiftCardResponse.from_domain(c) for c in cards]


@router.get("/purchased", summary="구매한 기프트카드 목록")
def list_purchased_gift_cards(
    actor: Annotated[Actor, Depends(get_current_actor)],
    service: Annotated[GiftCardService, Depends(get_gift_card_service)],
) -> list[GiftCardResponse]:
    cards = service.list_purchased_by(actor.user_id)
    return [GiftCardResponse.from_domain(c) for c in cards]


@router.post("/validate", summary="사용 전 기프트카드 확인")
def validate_gift_card(
    req: ValidateGiftCardRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    service: Annotated[GiftCardService, Depends(get_gift_card_service)],
) -> ValidateGiftCardResponse:
    result = service.validate(req.code)
    if not result.valid:
        detail: dict[str, object] = {
            "code": result.reason,
            "message": result.message,
        }
        if result.card is not None:
            detail["balance"] = result.card.balance
            detail["status"] = result.card.status.value
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    assert result.card is not None
    return ValidateGiftCardResponse(
        valid=True,
        code=result.card.code,
        balance=result.card.balance,
        status=result.card.status.value,
        expires_at=result.card.expires_at,
    )


@router.post("/use", summary="기프트카드 잔액 사용")
def use_gift_card(
    req: UseGiftCardRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    service: Annotated[GiftCardService, Depends(get_gift_card_service)],
) -> GiftCardResponse:
    try:
        card = service.use(
            req.code,
            req.amount,
            order_id=req.order_id,
            description=req.description,
            actor=actor,
        )
    except GiftCardError as exc:
        raise_http_error(exc)
    return GiftCardResponse.from_domain(card)


@router.get("/{code}", summary="코드로 기프트카드 조회")
def get_gift_card(
    code: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    service: Annotated[GiftCardService, Depends(get_gift_card_service)],
) -> GiftCardResponse:
    card = service.get_by_code(code)
    if card is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "not_found", "message": "גיפטקארד לא נמצא"},
        )

    # 구매자 또는 수령자만 볼 수 있다.
    if actor.email not in (card.purchaser.email, card.recipient.email):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "forbidden", "message": "אין הרשאה לצפייה בגיפטקארד זה"},
        )
    return GiftCardResponse.from_domain(card)
