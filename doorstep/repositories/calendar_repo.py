from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from doorstep.models.delivery import DeliveryModification, Pause
from doorstep.repositories.base import BaseRepository, utcnow


class PauseRepository(BaseRepository[Pause]):
    """Dates explicitly excluded from delivery, one per (customer, date)."""

    collection_name = "pauses"
    model = Pause

    async def get_pause(self, customer_id: str, day: date) -> Optional[Pause]:
        return await self._find_one({"customer_id": customer_id, "pause_date": day.isoformat()})

    async def set_pause(
        self, customer_id: str, day: date, created_by_customer: bool = True, reason: str = ""
    ) -> bool:
        """Insert the pause unless one exists. Returns True when a new pause was written."""
        now = utcnow()
        result = await self.collection.update_one(
            {"customer_id": customer_id, "pause_date": day.isoformat()},
            {"$setOnInsert": {
                "created_by_customer": created_by_customer,
                "reason": reason,
                "created_at": now,
                "updated_at": now,
            }},
            upsert=True,
            **self._opts
        )
        return result.upserted_id is not None

    async def delete_pause(self, customer_id: str, day: date) -> bool:
        result = await self.collection.delete_one(
            {"customer_id": customer_id, "pause_date": day.isoformat()},
            **self._opts
        )
        return result.deleted_count > 0

    async def list_between(self, customer_id: str, start: date, end: date) -> List[Pause]:
        return await self._find_many({
            "customer_id": customer_id,
            "pause_date": {"$gte": start.isoformat(), "$lte": end.isoformat()},
        }, sort=[("pause_date", 1)])

    async def paused_customer_ids(self, day: date, customer_ids: Iterable[str]) -> set:
        pauses = await self._find_many({
            "customer_id": {"$in": list(customer_ids)},
            "pause_date": day.isoformat(),
        })
        return {p.customer_id for p in pauses}


class ModificationRepository(BaseRepository[DeliveryModification]):
    """Date-specific quantity/container overrides, one per (customer, date)."""

    collection_name = "delivery_modifications"
    model = DeliveryModification

    async def get_modification(self, customer_id: str, day: date) -> Optional[DeliveryModification]:
        return await self._find_one({"customer_id": customer_id, "modification_date": day.isoformat()})

    async def set_modification(self, modification: DeliveryModification) -> None:
        fields: Dict[str, Any] = {
            "quantity_ml": modification.quantity_ml,
            "large_containers": modification.large_containers,
            "small_containers": modification.small_containers,
            "notes": modification.notes,
            "updated_at": utcnow(),
        }
        await self.collection.update_one(
            {"customer_id": modification.customer_id,
             "modification_date": modification.modification_date.isoformat()},
            {"$set": fields, "$setOnInsert": {"created_at": utcnow()}},
            upsert=True,
            **self._opts
        )

    async def delete_modification(self, customer_id: str, day: date) -> bool:
        result = await self.collection.delete_one(
            {"customer_id": customer_id, "modification_date": day.isoformat()},
            **self._opts
        )
        return result.deleted_count > 0

    async def list_between(self, customer_id: str, start: date, end: date) -> List[DeliveryModification]:
        return await self._find_many({
            "customer_id": customer_id,
            "modification_date": {"$gte": start.isoformat(), "$lte": end.isoformat()},
        }, sort=[("modification_date", 1)])
