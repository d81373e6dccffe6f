from __future__ import annotations

from typing import Annotated
from urllib.parse import unquote

from fastapi import Header, HTTPException, status

from ..models.audit import Actor
from ..models.gift_card import normalize_email


def get_current_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_email: Annotated[str | None, Header()] = None,
    x_user_name: Annotated[str | None, Header()] = None,
) -> Actor:
    """Gateway 가 인증 후 넘겨주는 사용자 헤더를 Actor 로 변환한다.

    이름은 히브리어일 수 있어 URL 인코딩된 값으로 받는다.
    """

    if not x_user_id or not x_user_email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "משתמש לא נמצא"},
        )
    return Actor(
        user_id=x_user_id,
        email=normalize_email(x_user_email),
        name=unquote(x_user_name) if x_user_name else None,
    )
