"""
ContainerLedger - returnable containers outstanding per customer.

Balances live on one account document per customer; every change is an
atomic `$inc` whose post-image numbers the ledger entry. Returns and penalty
settlements are guarded so a balance never goes below zero.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

from doorstep.core.clock import TimeZoneClock, get_clock
from doorstep.db.session import atomic
from doorstep.models.container import ContainerAction, ContainerLedgerEntry, SizeClass
from doorstep.repositories.container_repo import ContainerAccountRepository, ContainerLedgerRepository
from doorstep.schemas.container import ContainerBalance
from doorstep.utils.errors import ExceedsBalance, ValidationError

logger = logging.getLogger(__name__)


def outstanding_lots(entries: List[ContainerLedgerEntry]) -> Dict[SizeClass, List[Tuple[date, int]]]:
    """
    Match returns and penalty settlements against issues, oldest first.

    Returns the still-unreturned issue lots per size class as
    (issued_date, count) pairs in issue order.
    """
    lots: Dict[SizeClass, List[List]] = {SizeClass.LARGE: [], SizeClass.SMALL: []}
    for entry in sorted(entries, key=lambda e: e.seq):
        queue = lots[entry.size_class]
        if entry.action == ContainerAction.ISSUED:
            issued = entry.issued_date or entry.created_at.date()
            queue.append([issued, entry.quantity])
            continue

        remaining = entry.quantity
        while remaining and queue:
            take = min(remaining, queue[0][1])
            queue[0][1] -= take
            remaining -= take
            if queue[0][1] == 0:
                queue.pop(0)

    return {size: [(lot[0], lot[1]) for lot in queue] for size, queue in lots.items()}


class ContainerLedger:

    def __init__(self, db: AsyncIOMotorDatabase, clock: Optional[TimeZoneClock] = None):
        self.db = db
        self.clock = clock or get_clock()

    async def post(
        self,
        session: Optional[AsyncIOMotorClientSession],
        customer_id: str,
        action: ContainerAction,
        size_class: SizeClass,
        quantity: int,
        issued_date: Optional[date] = None,
        delivery_id: Optional[str] = None,
        description: str = "",
    ) -> ContainerLedgerEntry:
        """Append one entry inside the caller's atomic unit."""
        if quantity <= 0:
            raise ValidationError("Container quantity must be positive", {"quantity": quantity})

        accounts = ContainerAccountRepository(self.db, session)
        if action == ContainerAction.ISSUED:
            account = await accounts.add(customer_id, size_class, quantity)
            issued_date = issued_date or self.clock.today()
        else:
            account = await accounts.subtract(customer_id, size_class, quantity)
            if account is None:
                current = await accounts.get_by_customer(customer_id)
                outstanding = current.balance_of(size_class) if current else 0
                raise ExceedsBalance(size_class.value, quantity, outstanding)
            issued_date = None

        entry = ContainerLedgerEntry(
            customer_id=customer_id,
            seq=account.seq,
            action=action,
            size_class=size_class,
            quantity=quantity,
            large_balance_after=account.large,
            small_balance_after=account.small,
            issued_date=issued_date,
            delivery_id=delivery_id,
            description=description,
        )
        await ContainerLedgerRepository(self.db, session).append(entry)
        return entry

    async def issue(
        self, customer_id: str, size_class: SizeClass, quantity: int, issued_date: Optional[date] = None
    ) -> ContainerLedgerEntry:
        async with atomic(self.db) as session:
            return await self.post(
                session, customer_id, ContainerAction.ISSUED, size_class, quantity,
                issued_date=issued_date, description="Containers issued",
            )

    async def return_containers(self, customer_id: str, size_class: SizeClass, quantity: int) -> ContainerLedgerEntry:
        async with atomic(self.db) as session:
            return await self.post(
                session, customer_id, ContainerAction.RETURNED, size_class, quantity,
                description="Containers returned",
            )

    async def balances(self, customer_id: str) -> ContainerBalance:
        account = await ContainerAccountRepository(self.db).get_by_customer(customer_id)
        if account is None:
            return ContainerBalance(customer_id=customer_id, large=0, small=0)
        return ContainerBalance(customer_id=customer_id, large=account.large, small=account.small)

    async def history(self, customer_id: str) -> List[ContainerLedgerEntry]:
        return await ContainerLedgerRepository(self.db).list_for_customer(customer_id)

    async def verify(self, customer_id: str) -> bool:
        """Running balances equal the fold of the entries and never dip below zero."""
        balance = await self.balances(customer_id)
        totals = {SizeClass.LARGE: 0, SizeClass.SMALL: 0}
        for entry in await self.history(customer_id):
            sign = 1 if entry.action == ContainerAction.ISSUED else -1
            totals[entry.size_class] += sign * entry.quantity
            if totals[entry.size_class] < 0 or totals[entry.size_class] != entry.balance_after():
                return False
        return totals[SizeClass.LARGE] == balance.large and totals[SizeClass.SMALL] == balance.small
