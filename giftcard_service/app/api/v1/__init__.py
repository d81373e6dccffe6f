from fastapi import APIRouter

from .admin import router as admin_router
from .gift_cards import router as gift_cards_router

api_router = APIRouter()
# prefix 는 각 router 파일 내부에서 정의되어 있음 (/giftcards, /admin)
api_router.include_router(gift_cards_router)
api_router.include_router(admin_router)
