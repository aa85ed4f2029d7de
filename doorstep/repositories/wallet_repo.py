"""
WalletRepository - balance documents and their append-only transaction rows.

Balance changes go through a single atomic `$inc` on the wallet document.
The post-image gives the new balance and the next sequence number, so two
concurrent deltas can never observe the same prior balance.
"""

from typing import List, Optional

from pymongo import ReturnDocument

from doorstep.models.wallet import Wallet, WalletTransaction
from doorstep.repositories.base import BaseRepository, utcnow


class WalletRepository(BaseRepository[Wallet]):

    collection_name = "wallets"
    model = Wallet

    async def create_wallet(self, customer_id: str) -> Wallet:
        return await self._insert(Wallet(customer_id=customer_id))

    async def get_by_customer(self, customer_id: str) -> Optional[Wallet]:
        return await self._find_one({"customer_id": customer_id})

    async def increment(
        self, customer_id: str, delta: int, min_balance_after: Optional[int] = None
    ) -> Optional[Wallet]:
        """
        Add `delta` to the balance and advance the sequence.

        With `min_balance_after`, the update only matches when the resulting
        balance stays at or above it. Returns None when nothing matched.
        """
        query = {"customer_id": customer_id}
        if min_balance_after is not None:
            query["balance"] = {"$gte": min_balance_after - delta}

        doc = await self.collection.find_one_and_update(
            query,
            {"$inc": {"balance": delta, "seq": 1}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)


class WalletTransactionRepository(BaseRepository[WalletTransaction]):

    collection_name = "wallet_transactions"
    model = WalletTransaction

    async def append(self, transaction: WalletTransaction) -> WalletTransaction:
        return await self._insert(transaction)

    async def list_for_customer(self, customer_id: str, limit: Optional[int] = None) -> List[WalletTransaction]:
        rows = await self._find_many({"customer_id": customer_id}, sort=[("seq", -1)])
        return rows[:limit] if limit else rows
