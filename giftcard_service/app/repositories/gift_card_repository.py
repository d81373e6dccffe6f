"""기프트카드 레포지토리 구현체.

잔액 변경은 읽은 시점의 version 을 조건으로 한 단일 update 로만 반영한다.
동시에 같은 카드를 사용하는 두 요청 중 하나는 조건 불일치로 실패한다.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from common.mongo.client import GIFT_CARDS_COLLECTION
from common.mongo.types import parse_object_id, to_object_id

from ..exceptions import DuplicateGiftCardCodeError
from ..models.gift_card import (
    SPENDABLE_STATUSES,
    GiftCard,
    GiftCardListFilter,
    GiftCardStats,
    GiftCardStatus,
    UsageRecord,
)
from .documents.gift_card_document import GiftCardDocument, UsageRecordDocument
from .interfaces import GiftCardRepositoryInterface


_SORT_NEWEST_FIRST = [("purchased_at", -1), ("_id", -1)]
_SPENDABLE = [s.value for s in SPENDABLE_STATUSES]


def build_status_query(status: GiftCardStatus, now: datetime) -> dict[str, Any]:
    """상태 필터. 플래그가 갱신되지 않은 만료 카드도 실제 상태 기준으로 분류한다."""

    if status == GiftCardStatus.EXPIRED:
        return {
            "$or": [
                {"status": GiftCardStatus.EXPIRED.value},
                {"status": {"$in": _SPENDABLE}, "expires_at": {"$lt": now}},
            ]
        }
    if status in SPENDABLE_STATUSES:
        return {"status": status.value, "expires_at": {"$gte": now}}
    return {"status": status.value}


def build_email_query(email: str) -> dict[str, Any]:
    return {"$or": [{"purchaser_email": email}, {"recipient_email": email}]}


class GiftCardRepository(GiftCardRepositoryInterface):
    """gift_cards 컬렉션에 대한 MongoDB 접근 레이어. 인덱스는 common.mongo.client 에서 보장한다."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[GIFT_CARDS_COLLECTION]

    @staticmethod
    def _from_document(doc: dict) -> GiftCard:
        return GiftCardDocument.model_validate(doc).to_domain()

    def _find_many(self, query: dict[str, Any]) -> list[GiftCard]:
        cursor = self._col.find(query, sort=_SORT_NEWEST_FIRST)
        return [self._from_document(raw) for raw in cursor]

    # --- commands ----------------------------------------------------------------
    def insert(self, card: GiftCard) -> GiftCard:
        payload = GiftCardDocument.from_domain(card).to_mongo_record()
        try:
            result = self._col.insert_one(payload)
        except DuplicateKeyError as exc:
            raise DuplicateGiftCardCodeError() from exc
        payload["_id"] = result.inserted_id
        return self._from_document(payload)

    def mark_expired(self, card_id: str, now: datetime) -> GiftCard | None:
        doc = self._col.find_one_and_update(
            {
                "_id": to_object_id(card_id),
                "status": {"$in": _SPENDABLE},
                "expires_at": {"$lt": now},
            },
            {
                "$set": {
                    "status": GiftCardStatus.EXPIRED.value,
                    "updated_at": now,
                },
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return self._from_document(doc)

    def save_usage(
        self, card: GiftCard, record: UsageRecord, expected_version: int
    ) -> GiftCard | None:
        assert card.id is not None
        fields: dict[str, Any] = {
            "balance": card.balance,
            "status": card.status.value,
            "updated_at": card.updated_at,
        }
        if card.redeemed_at is not None:
            fields["redeemed_at"] = card.redeemed_at

        doc = self._col.find_one_and_update(
            {"_id": to_object_id(card.id), "version": expected_version},
            {
                "$set": fields,
                "$push": {
                    "usage_history": UsageRecordDocument.from_domain(record).model_dump()
                },
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return self._from_document(doc)

    # --- queries -----------------------------------------------------------------
    def find_by_code(self, code: str) -> GiftCard | None:
        doc = self._col.find_one({"code": code})
        if not doc:
            return None
        return self._from_document(doc)

    def find_by_id(self, card_id: str) -> GiftCard | None:
        object_id = parse_object_id(card_id)
        if object_id is None:
            return None
        doc = self._col.find_one({"_id": object_id})
        if not doc:
            return None
        return self._from_document(doc)

    def list_by_email(self, email: str) -> list[GiftCard]:
        return self._find_many(build_email_query(email))

    def list_by_purchaser_id(self, user_id: str) -> list[GiftCard]:
        return self._find_many({"purchaser_id": user_id})

    def list_by_recipient_email(self, email: str) -> list[GiftCard]:
        return self._find_many({"recipient_email": email})

    def list(
        self, flt: GiftCardListFilter, now: datetime
    ) -> tuple[list[GiftCard], int]:
        clauses: list[dict[str, Any]] = []
        if flt.status is not None:
            clauses.append(build_status_query(flt.status, now))
        if flt.email:
            clauses.append(build_email_query(flt.email))
        query: dict[str, Any] = {"$and": clauses} if clauses else {}

        skip = (flt.page - 1) * flt.limit
        total = self._col.count_documents(query)
        cursor = self._col.find(
            query,
            sort=_SORT_NEWEST_FIRST,
            skip=skip,
            limit=flt.limit,
        )
        return [self._from_document(raw) for raw in cursor], total

    def compute_stats(self, now: datetime) -> GiftCardStats:
        """컬렉션 전체 집계. 상태 플래그 대신 expires_at 으로 만료 여부를 직접 판단한다."""

        not_expired = {"$gte": ["$expires_at", now]}
        past_expiry = {"$lt": ["$expires_at", now]}
        spendable = {"$in": ["$status", _SPENDABLE]}

        def count_if(condition: dict[str, Any]) -> dict[str, Any]:
            return {"$sum": {"$cond": [condition, 1, 0]}}

        pipeline = [
            {
                "$group": {
                    "_id": None,
                    "total_count": {"$sum": 1},
                    "total_value": {"$sum": "$amount"},
                    "active_count": count_if(
                        {"$and": [{"$eq": ["$status", "active"]}, not_expired]}
                    ),
                    "partially_used_count": count_if(
                        {"$and": [{"$eq": ["$status", "partially_used"]}, not_expired]}
                    ),
                    "redeemed_count": count_if({"$eq": ["$status", "redeemed"]}),
                    "expired_count": count_if(
                        {
                            "$or": [
                                {"$eq": ["$status", "expired"]},
                                {"$and": [spendable, past_expiry]},
                            ]
                        }
                    ),
                    "active_balance": {
                        "$sum": {
                            "$cond": [
                                {"$and": [spendable, not_expired]},
                                "$balance",
                                0,
                            ]
                        }
                    },
                }
            }
        ]

        for doc in self._col.aggregate(pipeline):
            doc.pop("_id", None)
            return GiftCardStats.model_validate(doc)
        return GiftCardStats()
