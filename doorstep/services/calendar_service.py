"""
DeliveryCalendar - per-date delivery state derived from three sources.

Precedence for one (customer, date):
1. A pause wins: nothing is delivered, any modification is kept but ignored
2. Else a modification replaces quantity and containers
3. Else the subscription defaults apply

Cutoff policy (all in the clock's civil zone):
- dates before today are immutable
- today and later are mutable, except tomorrow once the cutoff hour passes

Every mutation also brings an existing open Delivery row for that date in
line with the new effective state, inside the same atomic unit.
"""

import logging
from datetime import date
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

from doorstep.core.clock import TimeZoneClock, get_clock
from doorstep.core.config import settings
from doorstep.db.session import atomic
from doorstep.models.customer import CustomerStatus, Subscription
from doorstep.models.delivery import (
    Delivery,
    DeliveryModification,
    DeliveryStatus,
    EffectiveDelivery,
    Pause,
)
from doorstep.repositories.calendar_repo import ModificationRepository, PauseRepository
from doorstep.repositories.customer_repo import CustomerRepository, SubscriptionRepository
from doorstep.repositories.delivery_repo import DeliveryRepository
from doorstep.schemas.calendar import (
    BatchAction,
    BatchItemResult,
    BatchRequest,
    BatchResult,
    CalendarDay,
    CalendarMonth,
    HolidayItemResult,
    HolidayResult,
    ModificationRequest,
)
from doorstep.services.pricing_service import PricingResolver
from doorstep.utils.dates import days_in_month, month_dates
from doorstep.utils.errors import CutoffExceeded, DomainError, NotFound, PastDateNotAllowed, ValidationError

logger = logging.getLogger(__name__)


def effective_state(
    subscription: Subscription,
    day: date,
    modification: Optional[DeliveryModification] = None,
    pause: Optional[Pause] = None,
) -> EffectiveDelivery:
    if pause is not None:
        return EffectiveDelivery(
            delivery_date=day,
            quantity_ml=0,
            large_containers=0,
            small_containers=0,
            paused=True,
            source="pause",
        )
    if modification is not None:
        return EffectiveDelivery(
            delivery_date=day,
            quantity_ml=modification.quantity_ml,
            large_containers=modification.large_containers,
            small_containers=modification.small_containers,
            source="modification",
            notes=modification.notes,
        )
    return EffectiveDelivery(
        delivery_date=day,
        quantity_ml=subscription.daily_quantity_ml,
        large_containers=subscription.large_containers,
        small_containers=subscription.small_containers,
    )


def ensure_editable(clock: TimeZoneClock, day: date, cutoff_hour: Optional[int] = None):
    """Raise PastDateNotAllowed or CutoffExceeded if `day` can no longer be changed."""
    cutoff = settings.CUTOFF_HOUR if cutoff_hour is None else cutoff_hour
    today = clock.today()
    if day < today:
        raise PastDateNotAllowed(day, today)
    if day == clock.tomorrow() and clock.hour() >= cutoff:
        raise CutoffExceeded(day, cutoff, clock.start_of_day(day))


def is_editable(clock: TimeZoneClock, day: date, cutoff_hour: Optional[int] = None) -> bool:
    try:
        ensure_editable(clock, day, cutoff_hour)
    except (PastDateNotAllowed, CutoffExceeded):
        return False
    return True


async def sync_delivery(
    db: AsyncIOMotorDatabase,
    session: Optional[AsyncIOMotorClientSession],
    pricing: PricingResolver,
    subscription: Subscription,
    day: date,
) -> Optional[Delivery]:
    """Rewrite an open Delivery row for `day` to the current effective state."""
    deliveries = DeliveryRepository(db, session)
    delivery = await deliveries.get_for_date(subscription.customer_id, day)
    if delivery is None or delivery.is_terminal():
        return None

    pause = await PauseRepository(db, session).get_pause(subscription.customer_id, day)
    modification = await ModificationRepository(db, session).get_modification(subscription.customer_id, day)
    state = effective_state(subscription, day, modification, pause)

    if state.paused:
        fields = {"status": DeliveryStatus.PAUSED}
    else:
        quote = await pricing.resolve(state.quantity_ml)
        fields = {
            "status": DeliveryStatus.SCHEDULED,
            "quantity_ml": state.quantity_ml,
            "large_containers": state.large_containers,
            "small_containers": state.small_containers,
            "charge": quote.daily_price,
            "notes": state.notes,
        }
    return await deliveries.update_open(delivery.id, fields)


class DeliveryCalendar:

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[TimeZoneClock] = None,
        pricing: Optional[PricingResolver] = None,
    ):
        self.db = db
        self.clock = clock or get_clock()
        self.pricing = pricing or PricingResolver(db)

    async def _subscription(self, customer_id: str) -> Subscription:
        subscription = await SubscriptionRepository(self.db).get_by_customer(customer_id)
        if subscription is None:
            raise NotFound(f"Customer {customer_id} has no subscription", {"customer_id": customer_id})
        return subscription

    async def set_pause(self, customer_id: str, day: date) -> EffectiveDelivery:
        ensure_editable(self.clock, day)
        subscription = await self._subscription(customer_id)
        async with atomic(self.db) as session:
            await PauseRepository(self.db, session).set_pause(customer_id, day)
            await sync_delivery(self.db, session, self.pricing, subscription, day)
        return await self.effective(customer_id, day)

    async def clear_pause(self, customer_id: str, day: date) -> EffectiveDelivery:
        ensure_editable(self.clock, day)
        subscription = await self._subscription(customer_id)
        async with atomic(self.db) as session:
            await PauseRepository(self.db, session).delete_pause(customer_id, day)
            await sync_delivery(self.db, session, self.pricing, subscription, day)
        return await self.effective(customer_id, day)

    async def set_modification(self, customer_id: str, day: date, request: ModificationRequest) -> EffectiveDelivery:
        ensure_editable(self.clock, day)
        subscription = await self._subscription(customer_id)
        quote = await self.pricing.resolve(request.quantity_ml)

        large = quote.large_containers if request.large_containers is None else request.large_containers
        small = quote.small_containers if request.small_containers is None else request.small_containers
        modification = DeliveryModification(
            customer_id=customer_id,
            modification_date=day,
            quantity_ml=request.quantity_ml,
            large_containers=large,
            small_containers=small,
            notes=request.notes,
        )
        async with atomic(self.db) as session:
            await ModificationRepository(self.db, session).set_modification(modification)
            await sync_delivery(self.db, session, self.pricing, subscription, day)
        return await self.effective(customer_id, day)

    async def clear_modification(self, customer_id: str, day: date) -> EffectiveDelivery:
        ensure_editable(self.clock, day)
        subscription = await self._subscription(customer_id)
        async with atomic(self.db) as session:
            await ModificationRepository(self.db, session).delete_modification(customer_id, day)
            await sync_delivery(self.db, session, self.pricing, subscription, day)
        return await self.effective(customer_id, day)

    async def batch(self, customer_id: str, request: BatchRequest) -> BatchResult:
        """
        Apply one action to many dates. Each date is its own atomic unit and
        reports whether it was applied or skipped, with the rejection.
        """
        if request.action == BatchAction.MODIFY and request.modification is None:
            raise ValidationError("A MODIFY batch needs a modification")
        await self._subscription(customer_id)

        results: List[BatchItemResult] = []
        for day in sorted(set(request.dates)):
            try:
                if request.action == BatchAction.PAUSE:
                    await self.set_pause(customer_id, day)
                elif request.action == BatchAction.RESUME:
                    await self.clear_pause(customer_id, day)
                elif request.action == BatchAction.MODIFY:
                    await self.set_modification(customer_id, day, request.modification)
                else:
                    await self.clear_modification(customer_id, day)
            except DomainError as exc:
                results.append(BatchItemResult(date=day, applied=False, code=exc.code, message=exc.message))
            else:
                results.append(BatchItemResult(date=day, applied=True))

        result = BatchResult(action=request.action, results=results)
        logger.info(
            "Calendar batch %s for %s: %d applied, %d skipped",
            request.action.value, customer_id, result.applied_count, result.skipped_count,
        )
        return result

    async def declare_holiday(self, day: date, reason: str) -> HolidayResult:
        """
        Pause `day` for every ACTIVE customer on the operator's behalf.

        The cutoff policy applies to the date as a whole. Customers who already
        paused the date keep their own pause and are reported as skipped.
        """
        ensure_editable(self.clock, day)
        customers = await CustomerRepository(self.db).list_by_status(CustomerStatus.ACTIVE)
        already_paused = await PauseRepository(self.db).paused_customer_ids(day, [c.id for c in customers])

        results: List[HolidayItemResult] = []
        for customer in customers:
            if customer.id in already_paused:
                results.append(HolidayItemResult(customer_id=customer.id, applied=False, message="Already paused"))
                continue
            try:
                subscription = await self._subscription(customer.id)
                async with atomic(self.db) as session:
                    await PauseRepository(self.db, session).set_pause(
                        customer.id, day, created_by_customer=False, reason=f"Holiday: {reason}"
                    )
                    await sync_delivery(self.db, session, self.pricing, subscription, day)
            except DomainError as exc:
                results.append(HolidayItemResult(
                    customer_id=customer.id, applied=False, code=exc.code, message=exc.message,
                ))
            else:
                results.append(HolidayItemResult(customer_id=customer.id, applied=True))

        result = HolidayResult(date=day, reason=reason, results=results)
        logger.info("Holiday on %s (%s): %d of %d customers paused", day, reason, result.applied_count, len(results))
        return result

    async def effective(self, customer_id: str, day: date) -> EffectiveDelivery:
        subscription = await self._subscription(customer_id)
        pause = await PauseRepository(self.db).get_pause(customer_id, day)
        modification = await ModificationRepository(self.db).get_modification(customer_id, day)
        return effective_state(subscription, day, modification, pause)

    async def month_view(self, customer_id: str, year: int, month: int) -> CalendarMonth:
        subscription = await self._subscription(customer_id)
        last = date(year, month, days_in_month(year, month))
        first = date(year, month, 1)

        pauses = {p.pause_date: p for p in await PauseRepository(self.db).list_between(customer_id, first, last)}
        modifications = {
            m.modification_date: m
            for m in await ModificationRepository(self.db).list_between(customer_id, first, last)
        }
        deliveries = {
            d.delivery_date: d
            for d in await DeliveryRepository(self.db).list_for_customer(customer_id, first, last)
        }

        days = []
        for day in month_dates(year, month):
            state = effective_state(subscription, day, modifications.get(day), pauses.get(day))
            delivery = deliveries.get(day)
            days.append(CalendarDay(
                date=day,
                quantity_ml=state.quantity_ml,
                large_containers=state.large_containers,
                small_containers=state.small_containers,
                paused=state.paused,
                modified=day in modifications,
                notes=state.notes,
                delivery_status=delivery.status if delivery else None,
                editable=is_editable(self.clock, day),
            ))
        return CalendarMonth(customer_id=customer_id, year=year, month=month, days=days)
