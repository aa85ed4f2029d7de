"""
PenaltyEngine - fines for containers kept past the return threshold.

A penalty is a forced settlement: PENALTY entries remove the counted
containers from the customer's balance and the fine is debited from the
wallet, both in one atomic unit.
"""

import logging
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from doorstep.core.clock import TimeZoneClock, get_clock
from doorstep.core.config import settings
from doorstep.db.session import atomic
from doorstep.models.container import ContainerAction, SizeClass
from doorstep.models.wallet import TransactionType
from doorstep.repositories.container_repo import ContainerAccountRepository, ContainerLedgerRepository
from doorstep.repositories.customer_repo import CustomerRepository
from doorstep.schemas.container import FlaggedCustomer, PenaltyResult
from doorstep.services.container_service import ContainerLedger, outstanding_lots
from doorstep.services.customer_service import CustomerService
from doorstep.services.pricing_service import PricingResolver
from doorstep.services.wallet_service import WalletLedger
from doorstep.utils.errors import DomainError, ExceedsBalance, ValidationError

logger = logging.getLogger(__name__)


class PenaltyEngine:

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[TimeZoneClock] = None,
        pricing: Optional[PricingResolver] = None,
    ):
        self.db = db
        self.clock = clock or get_clock()
        self.pricing = pricing or PricingResolver(db)
        self.containers = ContainerLedger(db, self.clock)
        self.wallet = WalletLedger(db)

    async def flagged(self, threshold_days: Optional[int] = None) -> List[FlaggedCustomer]:
        """Customers whose oldest unreturned container is at least `threshold_days` old."""
        threshold = settings.PENALTY_THRESHOLD_DAYS if threshold_days is None else threshold_days
        accounts = await ContainerAccountRepository(self.db).list_outstanding()
        entries = ContainerLedgerRepository(self.db)

        flagged = []
        for account in accounts:
            lots = outstanding_lots(await entries.list_for_customer(account.customer_id))
            overdue = {
                size: sum(count for issued, count in queue if self.clock.days_since(issued) >= threshold)
                for size, queue in lots.items()
            }
            if not any(overdue.values()):
                continue
            oldest = min(queue[0][0] for queue in lots.values() if queue)
            flagged.append(FlaggedCustomer(
                customer_id=account.customer_id,
                large_outstanding=account.large,
                small_outstanding=account.small,
                large_overdue=overdue[SizeClass.LARGE],
                small_overdue=overdue[SizeClass.SMALL],
                oldest_issue_date=oldest,
                days_overdue=self.clock.days_since(oldest),
            ))

        customers = await CustomerRepository(self.db).list_by_ids([f.customer_id for f in flagged])
        by_id = {c.id: c for c in customers}
        for entry in flagged:
            customer = by_id.get(entry.customer_id)
            if customer is not None:
                entry.name = customer.name
                entry.delivery_person_id = customer.delivery_person_id
        return flagged

    async def impose_penalty(
        self, customer_id: str, fine_amount: int, large_count: int = 0, small_count: int = 0
    ) -> PenaltyResult:
        if fine_amount <= 0:
            raise ValidationError("Fine amount must be positive", {"fine_amount": fine_amount})
        if large_count < 0 or small_count < 0:
            raise ValidationError("Container counts cannot be negative",
                                  {"large_count": large_count, "small_count": small_count})

        await self._check_counts(customer_id, large_count, small_count)

        description = f"Penalty for {large_count} large and {small_count} small unreturned containers"
        async with atomic(self.db) as session:
            for size_class, count in ((SizeClass.LARGE, large_count), (SizeClass.SMALL, small_count)):
                if count:
                    await self.containers.post(
                        session, customer_id, ContainerAction.PENALTY, size_class, count,
                        description=description,
                    )
            transaction = await self.wallet.record(
                session, customer_id, -fine_amount, TransactionType.PENALTY_CHARGE, description,
                reference_type="penalty",
            )
            await CustomerService(self.db, self.clock, self.pricing).refresh_status(session, customer_id)

        logger.info("Penalty of %s imposed on %s (%s large, %s small)", fine_amount, customer_id, large_count, small_count)
        return PenaltyResult(
            customer_id=customer_id,
            large_settled=large_count,
            small_settled=small_count,
            fine_amount=fine_amount,
            success=True,
            wallet_balance=transaction.balance_after,
        )

    async def _check_counts(self, customer_id: str, large_count: int, small_count: int):
        """Reject before any write: both ledgers move together or not at all."""
        await self.wallet.get_wallet(customer_id)
        balance = await self.containers.balances(customer_id)
        for size_class, count, outstanding in (
            (SizeClass.LARGE, large_count, balance.large),
            (SizeClass.SMALL, small_count, balance.small),
        ):
            if count > outstanding:
                raise ExceedsBalance(size_class.value, count, outstanding)

    async def run(self, threshold_days: Optional[int] = None) -> List[PenaltyResult]:
        """Fine every flagged customer for their overdue containers. One failure does not stop the run."""
        results = []
        for flagged in await self.flagged(threshold_days):
            fine = (flagged.large_overdue * settings.LARGE_CONTAINER_PENALTY
                    + flagged.small_overdue * settings.SMALL_CONTAINER_PENALTY)
            try:
                result = await self.impose_penalty(
                    flagged.customer_id, fine, flagged.large_overdue, flagged.small_overdue
                )
            except DomainError as exc:
                logger.error("Penalty for %s failed: %s", flagged.customer_id, exc.message)
                result = PenaltyResult(
                    customer_id=flagged.customer_id,
                    large_settled=0,
                    small_settled=0,
                    fine_amount=fine,
                    success=False,
                    error=exc.message,
                )
            results.append(result)

        logger.info("Penalty run: %d customers, %d succeeded", len(results), sum(r.success for r in results))
        return results
