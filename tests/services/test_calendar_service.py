from datetime import date, timedelta

import pytest

from doorstep.models.customer import CustomerStatus
from doorstep.models.delivery import DeliveryStatus
from doorstep.repositories.calendar_repo import PauseRepository
from doorstep.repositories.customer_repo import CustomerRepository, SubscriptionRepository
from doorstep.repositories.delivery_repo import DeliveryRepository
from doorstep.schemas.calendar import BatchAction, BatchRequest, ModificationRequest
from doorstep.services.calendar_service import DeliveryCalendar, effective_state
from doorstep.services.delivery_service import DeliveryReconciler
from doorstep.utils.errors import CutoffExceeded, PastDateNotAllowed, UnsupportedQuantity

from tests.helpers import TODAY, clock_at

TOMORROW = TODAY + timedelta(days=1)
NEXT_WEEK = TODAY + timedelta(days=7)


@pytest.fixture
def calendar(seeded_db, clock):
    return DeliveryCalendar(seeded_db, clock)


@pytest.mark.asyncio
async def test_modification_round_trip_restores_defaults(seeded_db, calendar, make_customer):
    customer = await make_customer()
    subscription = await SubscriptionRepository(seeded_db).get_by_customer(customer.id)
    before = await calendar.effective(customer.id, NEXT_WEEK)

    modified = await calendar.set_modification(customer.id, NEXT_WEEK, ModificationRequest(quantity_ml=2000))
    assert modified.quantity_ml == 2000
    assert modified.large_containers == 2

    restored = await calendar.clear_modification(customer.id, NEXT_WEEK)
    assert restored == before == effective_state(subscription, NEXT_WEEK)


@pytest.mark.asyncio
async def test_modification_container_override(calendar, make_customer):
    customer = await make_customer()

    state = await calendar.set_modification(
        customer.id, NEXT_WEEK,
        ModificationRequest(quantity_ml=1000, large_containers=0, small_containers=2, notes="two small please"),
    )

    assert (state.large_containers, state.small_containers) == (0, 2)
    assert state.notes == "two small please"


@pytest.mark.asyncio
async def test_modification_needs_priced_quantity(calendar, make_customer):
    customer = await make_customer()

    with pytest.raises(UnsupportedQuantity):
        await calendar.set_modification(customer.id, NEXT_WEEK, ModificationRequest(quantity_ml=750))


@pytest.mark.asyncio
async def test_pause_then_resume_reverts_scheduled_row(seeded_db, calendar, clock, make_customer):
    customer = await make_customer()
    await DeliveryReconciler(seeded_db, clock).reconcile("dp-1", TODAY)
    deliveries = DeliveryRepository(seeded_db)
    original = await deliveries.get_for_date(customer.id, TODAY)

    await calendar.set_pause(customer.id, TODAY)
    assert (await deliveries.get_for_date(customer.id, TODAY)).status == DeliveryStatus.PAUSED

    await calendar.clear_pause(customer.id, TODAY)

    assert await PauseRepository(seeded_db).list_between(customer.id, TODAY, TODAY) == []
    row = await deliveries.get_for_date(customer.id, TODAY)
    assert row.status == DeliveryStatus.SCHEDULED
    assert (row.quantity_ml, row.large_containers, row.small_containers, row.charge) == (
        original.quantity_ml, original.large_containers, original.small_containers, original.charge
    )


@pytest.mark.asyncio
async def test_modification_updates_scheduled_row(seeded_db, calendar, clock, make_customer):
    customer = await make_customer()
    await DeliveryReconciler(seeded_db, clock).reconcile("dp-1", TODAY)

    await calendar.set_modification(customer.id, TODAY, ModificationRequest(quantity_ml=1500))

    row = await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)
    assert row.quantity_ml == 1500
    assert row.charge == 16500
    assert row.small_containers == 1


@pytest.mark.asyncio
async def test_pause_twice_is_one_row(seeded_db, calendar, make_customer):
    customer = await make_customer()

    await calendar.set_pause(customer.id, NEXT_WEEK)
    await calendar.set_pause(customer.id, NEXT_WEEK)

    assert len(await PauseRepository(seeded_db).list_between(customer.id, NEXT_WEEK, NEXT_WEEK)) == 1


@pytest.mark.asyncio
async def test_time_policy_applies_before_mutating(seeded_db, make_customer):
    customer = await make_customer()
    late = DeliveryCalendar(seeded_db, clock_at(17, 0))

    with pytest.raises(CutoffExceeded):
        await late.set_pause(customer.id, TOMORROW)
    with pytest.raises(PastDateNotAllowed):
        await late.set_modification(customer.id, TODAY - timedelta(days=1), ModificationRequest(quantity_ml=500))

    assert await PauseRepository(seeded_db).get_pause(customer.id, TOMORROW) is None


@pytest.mark.asyncio
async def test_batch_reports_every_date(seeded_db, make_customer):
    customer = await make_customer()
    calendar = DeliveryCalendar(seeded_db, clock_at(18, 0))
    dates = [TODAY - timedelta(days=1), TODAY, TOMORROW, TODAY + timedelta(days=2)]

    result = await calendar.batch(customer.id, BatchRequest(action=BatchAction.PAUSE, dates=dates))

    by_date = {r.date: r for r in result.results}
    assert result.applied_count == 2
    assert result.skipped_count == 2
    assert by_date[TODAY - timedelta(days=1)].code == "CAL_004"
    assert by_date[TOMORROW].code == "DEL_005"
    assert by_date[TODAY].applied and by_date[TODAY + timedelta(days=2)].applied


@pytest.mark.asyncio
async def test_month_view(seeded_db, calendar, clock, make_customer):
    customer = await make_customer()
    await DeliveryReconciler(seeded_db, clock).reconcile("dp-1", TODAY)
    await calendar.set_pause(customer.id, date(2026, 1, 25))
    await calendar.set_modification(customer.id, date(2026, 1, 27), ModificationRequest(quantity_ml=500))

    month = await calendar.month_view(customer.id, 2026, 1)

    assert len(month.days) == 31
    assert month.paused_dates == [date(2026, 1, 25)]
    assert month.modified_dates == [date(2026, 1, 27)]
    days = {d.date: d for d in month.days}
    assert days[TODAY].delivery_status == DeliveryStatus.SCHEDULED
    assert days[date(2026, 1, 27)].quantity_ml == 500
    assert not days[date(2026, 1, 20)].editable
    assert days[TOMORROW].editable


@pytest.mark.asyncio
async def test_declare_holiday_pauses_active_customers(seeded_db, calendar, clock, make_customer):
    first = await make_customer("Asha")
    own_pause = await make_customer("Bina")
    inactive = await make_customer("Chitra")
    await calendar.set_pause(own_pause.id, TODAY)
    await CustomerRepository(seeded_db).update_customer(inactive.id, {"status": CustomerStatus.INACTIVE})
    await DeliveryReconciler(seeded_db, clock).reconcile("dp-1", TODAY)

    result = await calendar.declare_holiday(TODAY, "Diwali")

    by_customer = {r.customer_id: r for r in result.results}
    assert set(by_customer) == {first.id, own_pause.id}
    assert by_customer[first.id].applied
    assert not by_customer[own_pause.id].applied
    assert result.applied_count == 1

    pauses = PauseRepository(seeded_db)
    holiday = await pauses.get_pause(first.id, TODAY)
    assert (holiday.created_by_customer, holiday.reason) == (False, "Holiday: Diwali")
    assert (await pauses.get_pause(own_pause.id, TODAY)).created_by_customer is True
    assert await pauses.get_pause(inactive.id, TODAY) is None
    row = await DeliveryRepository(seeded_db).get_for_date(first.id, TODAY)
    assert row.status == DeliveryStatus.PAUSED


@pytest.mark.asyncio
async def test_declare_holiday_respects_cutoff(seeded_db, make_customer):
    customer = await make_customer()

    with pytest.raises(CutoffExceeded):
        await DeliveryCalendar(seeded_db, clock_at(17, 0)).declare_holiday(TOMORROW, "Strike")

    assert await PauseRepository(seeded_db).get_pause(customer.id, TOMORROW) is None
