"""
DeliveryRepository - concrete delivery rows.

The unique (customer_id, delivery_date) index makes `ensure` race-safe: two
reconcilers inserting the same row resolve to one insert and one no-op.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ReturnDocument

from doorstep.models.base import bson_value
from doorstep.models.delivery import Delivery, DeliveryStatus, OPEN_STATUSES
from doorstep.repositories.base import BaseRepository, to_object_id, utcnow

_OPEN = [s.value for s in OPEN_STATUSES]


class DeliveryRepository(BaseRepository[Delivery]):

    collection_name = "deliveries"
    model = Delivery

    async def get_for_date(self, customer_id: str, day: date) -> Optional[Delivery]:
        return await self._find_one({"customer_id": customer_id, "delivery_date": day.isoformat()})

    async def ensure(self, delivery: Delivery) -> Tuple[Delivery, bool]:
        """Insert the row unless one exists for (customer, date). Never overwrites."""
        doc = delivery.to_document()
        key = {"customer_id": doc.pop("customer_id"), "delivery_date": doc.pop("delivery_date")}
        result = await self.collection.update_one(
            key,
            {"$setOnInsert": doc},
            upsert=True,
            **self._opts
        )
        created = result.upserted_id is not None
        stored = await self._find_one(key)
        return stored, created

    async def list_for_person(self, delivery_person_id: str, day: date) -> List[Delivery]:
        return await self._find_many(
            {"delivery_person_id": delivery_person_id, "delivery_date": day.isoformat()},
            sort=[("customer_id", 1)],
        )

    async def open_delivery_person_ids(self, day: date) -> List[str]:
        rows = await self._find_many({"delivery_date": day.isoformat(), "status": {"$in": _OPEN}})
        return sorted({r.delivery_person_id for r in rows if r.delivery_person_id})

    async def list_for_customer(
        self, customer_id: str, start: date, end: Optional[date] = None
    ) -> List[Delivery]:
        date_query: Dict[str, Any] = {"$gte": start.isoformat()}
        if end is not None:
            date_query["$lte"] = end.isoformat()
        return await self._find_many(
            {"customer_id": customer_id, "delivery_date": date_query},
            sort=[("delivery_date", 1)],
        )

    async def update_open(self, delivery_id: str, fields: Dict[str, Any]) -> Optional[Delivery]:
        """Update a row only while it is SCHEDULED or PAUSED."""
        return await self._update(delivery_id, {"status": {"$in": _OPEN}}, fields)

    async def repair_charge(self, delivery_id: str, stored_charge: int, charge: int) -> bool:
        """Rewrite a stale charge; terminal rows and rows changed meanwhile are left alone."""
        updated = await self._update(
            delivery_id,
            {"status": {"$in": _OPEN}, "charge": stored_charge},
            {"charge": charge},
        )
        return updated is not None

    async def mark(self, delivery_id: str, fields: Dict[str, Any]) -> Optional[Delivery]:
        """Move a SCHEDULED row to a terminal status."""
        return await self._update(delivery_id, {"status": DeliveryStatus.SCHEDULED.value}, fields)

    async def delete_open_from(self, customer_id: str, start: date) -> int:
        """Drop never-charged SCHEDULED/PAUSED rows dated `start` or later."""
        result = await self.collection.delete_many(
            {"customer_id": customer_id, "delivery_date": {"$gte": start.isoformat()}, "status": {"$in": _OPEN}},
            **self._opts
        )
        return result.deleted_count

    async def _update(self, delivery_id: str, guard: Dict[str, Any], fields: Dict[str, Any]) -> Optional[Delivery]:
        oid = to_object_id(delivery_id)
        if oid is None:
            return None
        updates = {k: bson_value(v) for k, v in fields.items()}
        updates["updated_at"] = utcnow()
        doc = await self.collection.find_one_and_update(
            dict(guard, _id=oid),
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)
