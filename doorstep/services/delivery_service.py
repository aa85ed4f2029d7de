"""
DeliveryReconciler - makes the concrete delivery rows match the calendar.

`reconcile` is ensure-exists: one row per eligible (customer, date), keyed by
a unique index, never duplicated and never charged at creation. A second
pass rewrites the stored charge of open rows whose price tier changed since
they were created. Terminal rows are historical and left untouched.

Wallet debits happen when a delivery person marks a row DELIVERED.
"""

import logging
from collections import Counter
from datetime import date
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from doorstep.core.clock import TimeZoneClock, get_clock
from doorstep.core.config import settings
from doorstep.db.session import atomic
from doorstep.models.container import ContainerAction, SizeClass
from doorstep.models.customer import CustomerStatus
from doorstep.models.delivery import Delivery, DeliveryStatus, TERMINAL_STATUSES
from doorstep.models.wallet import TransactionType
from doorstep.repositories.calendar_repo import ModificationRepository, PauseRepository
from doorstep.repositories.customer_repo import CustomerRepository, SubscriptionRepository
from doorstep.repositories.delivery_repo import DeliveryRepository
from doorstep.schemas.delivery import DeliveryResponse, DeliveryRun, MarkDeliveryRequest, ReconciliationReport
from doorstep.services.calendar_service import effective_state
from doorstep.services.container_service import ContainerLedger
from doorstep.services.customer_service import BILLED_STATUSES, CustomerService
from doorstep.services.pricing_service import PricingResolver
from doorstep.services.wallet_service import WalletLedger
from doorstep.utils.billing import deposit_due
from doorstep.utils.errors import ExceedsBalance, InvalidTransition, NotFound, UnsupportedQuantity

logger = logging.getLogger(__name__)


class DeliveryReconciler:

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[TimeZoneClock] = None,
        pricing: Optional[PricingResolver] = None,
    ):
        self.db = db
        self.clock = clock or get_clock()
        self.pricing = pricing or PricingResolver(db)
        self.deliveries = DeliveryRepository(db)

    async def reconcile(self, delivery_person_id: str, day: Optional[date] = None) -> ReconciliationReport:
        day = day or self.clock.today()
        customers = await CustomerRepository(self.db).list_by_delivery_person(delivery_person_id)
        subscriptions = SubscriptionRepository(self.db)
        pauses = PauseRepository(self.db)
        modifications = ModificationRepository(self.db)

        created = existing = 0
        skipped: Counter = Counter()
        for customer in customers:
            if customer.status != CustomerStatus.ACTIVE:
                skipped["inactive"] += 1
                continue
            subscription = await subscriptions.get_by_customer(customer.id)
            if subscription is None:
                skipped["no_subscription"] += 1
                continue
            if subscription.start_date is not None and subscription.start_date > day:
                skipped["not_started"] += 1
                continue
            if await pauses.get_pause(customer.id, day) is not None:
                skipped["paused"] += 1
                continue

            state = effective_state(subscription, day, await modifications.get_modification(customer.id, day))
            try:
                quote = await self.pricing.resolve(state.quantity_ml)
            except UnsupportedQuantity:
                logger.warning("No price for %s ml, skipping customer %s on %s", state.quantity_ml, customer.id, day)
                skipped["unpriced"] += 1
                continue

            deposit = 0
            if deposit_due(subscription.delivery_count, subscription.last_deposit_at_delivery,
                           settings.DEPOSIT_INTERVAL_DELIVERIES):
                deposit = await self.pricing.deposit_for(subscription.daily_quantity_ml)

            _, was_created = await self.deliveries.ensure(Delivery(
                customer_id=customer.id,
                delivery_person_id=delivery_person_id,
                delivery_date=day,
                quantity_ml=state.quantity_ml,
                large_containers=state.large_containers,
                small_containers=state.small_containers,
                charge=quote.daily_price,
                deposit=deposit,
                notes=state.notes,
            ))
            if was_created:
                created += 1
            else:
                existing += 1

        repaired = await self._repair_prices(await self.deliveries.list_for_person(delivery_person_id, day))
        report = ReconciliationReport(
            delivery_person_id=delivery_person_id,
            date=day,
            created=created,
            existing=existing,
            repaired=repaired,
            skipped=dict(skipped),
        )
        logger.info(
            "Reconciled %s for %s: %d created, %d existing, %d repaired, skipped %s",
            delivery_person_id, day, created, existing, repaired, report.skipped,
        )
        return report

    async def _repair_prices(self, rows: List[Delivery]) -> int:
        repaired = 0
        for row in rows:
            if row.is_terminal() or row.status == DeliveryStatus.PAUSED:
                continue
            try:
                price = (await self.pricing.resolve(row.quantity_ml)).daily_price
            except UnsupportedQuantity:
                continue
            if price == row.charge:
                continue
            if await self.deliveries.repair_charge(row.id, row.charge, price):
                logger.info("Repaired charge of delivery %s: %s -> %s", row.id, row.charge, price)
                repaired += 1
        return repaired

    async def reconcile_all(self, day: Optional[date] = None) -> List[ReconciliationReport]:
        day = day or self.clock.today()
        # Persons left with only inactive customers still need their open rows repriced
        person_ids = set(await CustomerRepository(self.db).assigned_delivery_person_ids())
        person_ids.update(await self.deliveries.open_delivery_person_ids(day))
        return [await self.reconcile(person_id, day) for person_id in sorted(person_ids)]

    async def mark(self, delivery_id: str, request: MarkDeliveryRequest) -> Delivery:
        """
        Close a SCHEDULED row.

        DELIVERED settles everything in one unit: collected returns, issued
        containers, the delivery charge, any deposit, the completed-delivery
        count and the customer's ACTIVE/INACTIVE status.
        """
        if request.status not in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"A delivery can only be marked {' or '.join(s.value for s in TERMINAL_STATUSES)}",
                {"status": request.status.value},
            )
        delivery = await self.deliveries.get_by_id(delivery_id)
        if delivery is None:
            raise NotFound(f"Delivery {delivery_id} not found", {"delivery_id": delivery_id})
        if delivery.delivery_person_id != request.delivery_person_id:
            raise InvalidTransition(
                "Delivery is assigned to another delivery person",
                {"delivery_id": delivery_id},
            )
        if delivery.status != DeliveryStatus.SCHEDULED:
            raise InvalidTransition(
                f"Delivery is {delivery.status.value} and cannot be marked",
                {"delivery_id": delivery_id, "status": delivery.status.value},
            )
        customer = await CustomerRepository(self.db).get_customer(delivery.customer_id)
        if (customer is None or customer.status not in BILLED_STATUSES
                or customer.delivery_person_id != delivery.delivery_person_id):
            raise InvalidTransition(
                "Customer is no longer on this delivery person's run",
                {"delivery_id": delivery_id, "customer_id": delivery.customer_id},
            )

        fields = {
            "status": request.status,
            "large_collected": request.large_collected,
            "small_collected": request.small_collected,
        }
        if request.notes is not None:
            fields["notes"] = request.notes
        if request.status == DeliveryStatus.DELIVERED:
            fields["delivered_at"] = self.clock.now()

        containers = ContainerLedger(self.db, self.clock)
        wallet = WalletLedger(self.db)
        customer_id = delivery.customer_id
        if request.status == DeliveryStatus.DELIVERED:
            await self._check_returns(customer_id, request)

        async with atomic(self.db) as session:
            updated = await DeliveryRepository(self.db, session).mark(delivery_id, fields)
            if updated is None:
                raise InvalidTransition("Delivery was changed concurrently", {"delivery_id": delivery_id})
            if request.status != DeliveryStatus.DELIVERED:
                return updated

            for size_class, count in ((SizeClass.LARGE, request.large_collected),
                                      (SizeClass.SMALL, request.small_collected)):
                if count:
                    await containers.post(
                        session, customer_id, ContainerAction.RETURNED, size_class, count,
                        delivery_id=delivery_id, description="Collected on delivery",
                    )
            for size_class, count in ((SizeClass.LARGE, delivery.large_containers),
                                      (SizeClass.SMALL, delivery.small_containers)):
                if count:
                    await containers.post(
                        session, customer_id, ContainerAction.ISSUED, size_class, count,
                        issued_date=delivery.delivery_date, delivery_id=delivery_id,
                        description="Issued on delivery",
                    )

            await wallet.record(
                session, customer_id, -delivery.charge, TransactionType.DELIVERY_CHARGE,
                f"Delivery {delivery.delivery_date.isoformat()} ({delivery.quantity_ml} ml)",
                reference_type="delivery", reference_id=delivery_id,
            )
            subscriptions = SubscriptionRepository(self.db, session)
            subscription = await subscriptions.increment_delivery_count(customer_id)
            if delivery.deposit > 0:
                await wallet.record(
                    session, customer_id, -delivery.deposit, TransactionType.DEPOSIT_CHARGE,
                    "Recurring container deposit", reference_type="delivery", reference_id=delivery_id,
                )
                if subscription is not None:
                    await subscriptions.update_subscription(
                        customer_id, {"last_deposit_at_delivery": subscription.delivery_count}
                    )
            await CustomerService(self.db, self.clock, self.pricing).refresh_status(session, customer_id)

        return updated

    async def _check_returns(self, customer_id: str, request: MarkDeliveryRequest):
        balance = await ContainerLedger(self.db, self.clock).balances(customer_id)
        for size_class, collected, outstanding in (
            (SizeClass.LARGE, request.large_collected, balance.large),
            (SizeClass.SMALL, request.small_collected, balance.small),
        ):
            if collected > outstanding:
                raise ExceedsBalance(size_class.value, collected, outstanding)

    async def run_for(self, delivery_person_id: str, day: Optional[date] = None) -> DeliveryRun:
        """The day's list for one delivery person, reconciled first."""
        day = day or self.clock.today()
        await self.reconcile(delivery_person_id, day)
        rows = await self.deliveries.list_for_person(delivery_person_id, day)
        active = [r for r in rows if r.status != DeliveryStatus.PAUSED]
        return DeliveryRun(
            date=day,
            total=len(active),
            completed=sum(1 for r in active if r.status == DeliveryStatus.DELIVERED),
            pending=sum(1 for r in active if r.status == DeliveryStatus.SCHEDULED),
            large_containers=sum(r.large_containers for r in active),
            small_containers=sum(r.small_containers for r in active),
            deliveries=[DeliveryResponse.model_validate(r) for r in rows],
        )
