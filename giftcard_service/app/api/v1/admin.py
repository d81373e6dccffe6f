"""관리자 대시보드용 라우터. 관리자 권한 확인은 Gateway 에서 끝난 상태로 들어온다."""

from __future__ import annotations

import math
from typing import Annotated

from fastapi import APIRouter, Depends

from ...models.gift_card import GiftCardStatus
from ...services.audit_service import (
    AuditService,
    get_audit_service,
    normalize_audit_paging,
)
from ...services.gift_card_service import GiftCardService, get_gift_card_service
from ..schemas.common import PaginatedResponse
from ..schemas.gift_cards import (
    AuditLogResponse,
    GiftCardResponse,
    GiftCardStatsResponse,
)


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/giftcards", summary="기프트카드 전체 목록")
def list_gift_cards(
    service: Annotated[GiftCardService, Depends(get_gift_card_service)],
    status: GiftCardStatus | None = None,
    email: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> PaginatedResponse[GiftCardResponse]:
    result = service.list_all(status=status, email=email, page=page, limit=limit)
    return PaginatedResponse(
        items=[GiftCardResponse.from_domain(c) for c in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get("/giftcards/stats", summary="기프트카드 통계")
def get_gift_card_stats(
    service: Annotated[GiftCardService, Depends(get_gift_card_service)],
) -> GiftCardStatsResponse:
    return GiftCardStatsResponse.from_domain(service.compute_stats())


@router.get("/audit-logs", summary="감사 로그 조회")
def list_audit_logs(
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
    entity_type: str | None = None,
    action: str | None = None,
    user_id: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> PaginatedResponse[AuditLogResponse]:
    items, total = audit_service.list_logs(
        entity_type=entity_type,
        action=action,
        actor_user_id=user_id,
        page=page,
        limit=limit,
    )
    page, limit = normalize_audit_paging(page, limit)
    return PaginatedResponse(
        items=[AuditLogResponse.from_domain(log) for log in items],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit),
    )
