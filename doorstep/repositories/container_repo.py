from typing import List, Optional

from pymongo import ReturnDocument

from doorstep.models.container import ContainerAccount, ContainerLedgerEntry, SizeClass
from doorstep.repositories.base import BaseRepository, utcnow

_FIELD = {SizeClass.LARGE: "large", SizeClass.SMALL: "small"}


class ContainerAccountRepository(BaseRepository[ContainerAccount]):
    """Per-customer running container balances."""

    collection_name = "container_accounts"
    model = ContainerAccount

    async def get_by_customer(self, customer_id: str) -> Optional[ContainerAccount]:
        return await self._find_one({"customer_id": customer_id})

    async def add(self, customer_id: str, size_class: SizeClass, quantity: int) -> ContainerAccount:
        """Increase a balance, creating the account on first issue."""
        doc = await self.collection.find_one_and_update(
            {"customer_id": customer_id},
            {
                "$inc": {_FIELD[size_class]: quantity, "seq": 1},
                "$set": {"updated_at": utcnow()},
                "$setOnInsert": {"created_at": utcnow()},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)

    async def subtract(self, customer_id: str, size_class: SizeClass, quantity: int) -> Optional[ContainerAccount]:
        """Decrease a balance only if it stays non-negative. None when it would not."""
        field = _FIELD[size_class]
        doc = await self.collection.find_one_and_update(
            {"customer_id": customer_id, field: {"$gte": quantity}},
            {"$inc": {field: -quantity, "seq": 1}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)

    async def list_outstanding(self) -> List[ContainerAccount]:
        return await self._find_many(
            {"$or": [{"large": {"$gt": 0}}, {"small": {"$gt": 0}}]},
            sort=[("customer_id", 1)],
        )


class ContainerLedgerRepository(BaseRepository[ContainerLedgerEntry]):
    """Append-only issue/return/penalty events."""

    collection_name = "container_ledger"
    model = ContainerLedgerEntry

    async def append(self, entry: ContainerLedgerEntry) -> ContainerLedgerEntry:
        return await self._insert(entry)

    async def list_for_customer(self, customer_id: str) -> List[ContainerLedgerEntry]:
        return await self._find_many({"customer_id": customer_id}, sort=[("seq", 1)])
