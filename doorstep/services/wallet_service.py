"""
WalletLedger - every balance change is one ledger row.

`record` is the in-unit primitive: it runs inside the caller's atomic unit
so composite operations (delivery completion, penalties, plan changes)
commit the wallet side together with their other writes. `apply_delta`
opens its own unit for standalone movements.
"""

import logging
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

from doorstep.db.session import atomic
from doorstep.models.wallet import TransactionType, Wallet, WalletTransaction
from doorstep.repositories.wallet_repo import WalletRepository, WalletTransactionRepository
from doorstep.utils.errors import InsufficientBalance, NotFound

logger = logging.getLogger(__name__)


class WalletLedger:

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def apply_delta(
        self,
        customer_id: str,
        delta: int,
        txn_type: TransactionType,
        description: str = "",
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        min_balance_after: Optional[int] = None,
    ) -> WalletTransaction:
        async with atomic(self.db) as session:
            return await self.record(
                session, customer_id, delta, txn_type, description,
                reference_type=reference_type,
                reference_id=reference_id,
                min_balance_after=min_balance_after,
            )

    async def record(
        self,
        session: Optional[AsyncIOMotorClientSession],
        customer_id: str,
        delta: int,
        txn_type: TransactionType,
        description: str = "",
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        min_balance_after: Optional[int] = None,
    ) -> WalletTransaction:
        """
        Apply `delta` and append the matching transaction row.

        Negative results are allowed unless `min_balance_after` is given, in
        which case a delta that would cross it raises InsufficientBalance and
        nothing is written.
        """
        wallets = WalletRepository(self.db, session)
        wallet = await wallets.increment(customer_id, delta, min_balance_after)
        if wallet is None:
            current = await wallets.get_by_customer(customer_id)
            if current is None:
                raise NotFound(f"No wallet for customer {customer_id}", {"customer_id": customer_id})
            raise InsufficientBalance(required=min_balance_after - delta, balance=current.balance)

        transaction = WalletTransaction(
            wallet_id=wallet.id,
            customer_id=customer_id,
            seq=wallet.seq,
            type=txn_type,
            delta=delta,
            balance_after=wallet.balance,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
        )
        await WalletTransactionRepository(self.db, session).append(transaction)
        logger.debug("Wallet %s %s %+d -> %d", customer_id, txn_type.value, delta, wallet.balance)
        return transaction

    async def get_wallet(self, customer_id: str) -> Wallet:
        wallet = await WalletRepository(self.db).get_by_customer(customer_id)
        if wallet is None:
            raise NotFound(f"No wallet for customer {customer_id}", {"customer_id": customer_id})
        return wallet

    async def balance(self, customer_id: str) -> int:
        return (await self.get_wallet(customer_id)).balance

    async def history(self, customer_id: str, limit: Optional[int] = None) -> List[WalletTransaction]:
        """Newest first."""
        return await WalletTransactionRepository(self.db).list_for_customer(customer_id, limit)

    async def verify(self, customer_id: str) -> bool:
        """Check the fold invariant: balance equals the sum of deltas and every row chains."""
        wallet = await self.get_wallet(customer_id)
        rows = list(reversed(await self.history(customer_id)))
        running = 0
        for expected_seq, row in enumerate(rows, start=1):
            running += row.delta
            if row.seq != expected_seq or row.balance_after != running:
                return False
        return running == wallet.balance and wallet.seq == len(rows)
