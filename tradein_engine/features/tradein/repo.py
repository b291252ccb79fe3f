"""
TradeInRepo: persistence for trade_in_requests.

Requests are never deleted. Status changes go through apply_plan(), a single
find_one_and_update guarded by the document version (compare-and-swap).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from tradein_engine.core.errors import ConflictError
from tradein_engine.db.mongo import TRADE_IN_COLLECTION
from tradein_engine.features.lifecycle.machine import TransitionPlan


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _strip_id(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    # find_one_and_update keeps _id (the AFTER read is keyed on it); drop it here.
    if doc is not None:
        doc.pop("_id", None)
    return doc


def _version_filter(expected: int) -> Any:
    # Documents written before versioning have no "version" field.
    return expected if expected > 0 else {"$in": [0, None]}


class TradeInRepo:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[TRADE_IN_COLLECTION]

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        try:
            await self._col.insert_one(doc)
        except DuplicateKeyError as exc:
            raise ConflictError(code="trade_in_exists", message="Trade-in id already exists") from exc

        doc.pop("_id", None)
        return doc

    async def get(self, trade_in_id: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"id": trade_in_id}, projection={"_id": 0})

    async def get_owned(self, trade_in_id: str, owner_id: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"id": trade_in_id, "owner_id": owner_id}, projection={"_id": 0})

    async def get_fields(self, trade_in_id: str, fields: Sequence[str]) -> Optional[Dict[str, Any]]:
        projection: Dict[str, Any] = {"_id": 0, "id": 1}
        projection.update({f: 1 for f in fields})
        return await self._col.find_one({"id": trade_in_id}, projection=projection)

    async def exists(self, trade_in_id: str) -> bool:
        return await self._col.find_one({"id": trade_in_id}, projection={"_id": 1}) is not None

    async def apply_plan(self, plan: TransitionPlan) -> Optional[Dict[str, Any]]:
        """
        Atomically: $set plan fields, append the history entry, bump version.
        Returns None when the id is unknown or the version moved on.
        """
        doc = await self._col.find_one_and_update(
            {"id": plan.trade_in_id, "version": _version_filter(plan.expected_version)},
            {
                "$set": dict(plan.set_fields),
                "$push": {"history": dict(plan.history_entry)},
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        return _strip_id(doc)

    async def update_images(
        self,
        *,
        trade_in_id: str,
        owner_id: str,
        images: List[str],
        replace: bool,
    ) -> Optional[Dict[str, Any]]:
        update: Dict[str, Any] = {"$set": {"updated_at": _now_utc()}}
        if replace:
            update["$set"]["images"] = list(images)
        else:
            update["$push"] = {"images": {"$each": list(images)}}

        doc = await self._col.find_one_and_update(
            {"id": trade_in_id, "owner_id": owner_id},
            update,
            return_document=ReturnDocument.AFTER,
        )
        return _strip_id(doc)

    async def find_page(
        self,
        match: Mapping[str, Any],
        *,
        sort: List[Tuple[str, int]],
        skip: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        cursor = (
            self._col.find(dict(match), projection={"_id": 0})
            .sort(sort)
            .skip(int(skip))
            .limit(int(limit))
        )
        return [doc async for doc in cursor]

    async def count(self, match: Mapping[str, Any]) -> int:
        return int(await self._col.count_documents(dict(match)))

    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        cursor = self._col.aggregate(pipeline)
        return [row async for row in cursor]
