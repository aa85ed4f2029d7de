from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from doorstep.models.pricing import PriceTier
from doorstep.repositories.base import BaseRepository, utcnow

VERSION_KEY = "price_tiers"


class PriceTierRepository(BaseRepository[PriceTier]):
    """Administrator-editable tier table plus its shared version counter."""

    collection_name = "price_tiers"
    model = PriceTier

    async def list_active(self) -> List[PriceTier]:
        return await self._find_many({"is_active": True}, sort=[("quantity_ml", 1)])

    async def list_all(self) -> List[PriceTier]:
        return await self._find_many({}, sort=[("quantity_ml", 1)])

    async def update_tier(self, quantity_ml: int, fields: Dict[str, Any]) -> Optional[PriceTier]:
        fields = dict(fields, updated_at=utcnow())
        doc = await self.collection.find_one_and_update(
            {"quantity_ml": quantity_ml},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)

    async def insert_if_missing(self, tier: PriceTier) -> None:
        """Insert a tier unless one exists for its quantity. Existing rows keep their edits."""
        doc = tier.to_document()
        doc.pop("quantity_ml")
        await self.collection.update_one(
            {"quantity_ml": tier.quantity_ml},
            {"$setOnInsert": doc},
            upsert=True,
            **self._opts
        )

    async def get_version(self) -> int:
        doc = await self.db["pricing_meta"].find_one({"_id": VERSION_KEY}, **self._opts)
        return doc["version"] if doc else 0

    async def bump_version(self) -> int:
        doc = await self.db["pricing_meta"].find_one_and_update(
            {"_id": VERSION_KEY},
            {"$inc": {"version": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return doc["version"]
