from datetime import timedelta

import pytest

from doorstep.models.customer import CustomerStatus
from doorstep.models.delivery import DeliveryStatus
from doorstep.models.wallet import TransactionType
from doorstep.repositories.customer_repo import CustomerRepository, SubscriptionRepository
from doorstep.repositories.delivery_repo import DeliveryRepository
from doorstep.schemas.calendar import ModificationRequest
from doorstep.schemas.delivery import MarkDeliveryRequest
from doorstep.schemas.pricing import PriceTierUpdate
from doorstep.services.calendar_service import DeliveryCalendar
from doorstep.services.container_service import ContainerLedger
from doorstep.services.customer_service import CustomerService
from doorstep.services.delivery_service import DeliveryReconciler
from doorstep.services.pricing_service import PriceTierService
from doorstep.services.wallet_service import WalletLedger
from doorstep.utils.errors import ExceedsBalance, InvalidTransition

from tests.helpers import TODAY


@pytest.fixture
def reconciler(seeded_db, clock):
    return DeliveryReconciler(seeded_db, clock)


def delivered(**kwargs):
    return MarkDeliveryRequest(delivery_person_id="dp-1", status=DeliveryStatus.DELIVERED, **kwargs)


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(seeded_db, reconciler, make_customer):
    first = await make_customer("Asha")
    second = await make_customer("Bina", quantity_ml=1500, top_up=30000)

    report = await reconciler.reconcile("dp-1")
    rows_once = await DeliveryRepository(seeded_db).list_for_person("dp-1", TODAY)
    again = await reconciler.reconcile("dp-1")
    rows_twice = await DeliveryRepository(seeded_db).list_for_person("dp-1", TODAY)

    assert (report.created, report.existing) == (2, 0)
    assert (again.created, again.existing) == (0, 2)
    assert [(r.id, r.charge) for r in rows_once] == [(r.id, r.charge) for r in rows_twice]
    assert {r.customer_id: r.charge for r in rows_twice} == {first.id: 11000, second.id: 16500}
    # creating rows never charges the wallet
    assert await WalletLedger(seeded_db).balance(first.id) == 11000


@pytest.mark.asyncio
async def test_reconcile_skips_ineligible(seeded_db, reconciler, clock, make_customer):
    paused = await make_customer("Asha")
    inactive = await make_customer("Bina")
    later = await make_customer("Chitra")
    await DeliveryCalendar(seeded_db, clock).set_pause(paused.id, TODAY)
    await CustomerRepository(seeded_db).update_customer(inactive.id, {"status": CustomerStatus.INACTIVE})
    await SubscriptionRepository(seeded_db).update_subscription(later.id, {"start_date": TODAY + timedelta(days=3)})

    report = await reconciler.reconcile("dp-1")

    assert report.created == 0
    assert report.skipped == {"paused": 1, "inactive": 1, "not_started": 1}


@pytest.mark.asyncio
async def test_reconcile_uses_modification(seeded_db, reconciler, clock, make_customer):
    customer = await make_customer()
    await DeliveryCalendar(seeded_db, clock).set_modification(customer.id, TODAY, ModificationRequest(quantity_ml=2000))

    await reconciler.reconcile("dp-1")

    row = await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)
    assert (row.quantity_ml, row.large_containers, row.charge) == (2000, 2, 21500)


@pytest.mark.asyncio
async def test_price_repair_only_touches_open_rows(seeded_db, reconciler, make_customer):
    first = await make_customer("Asha")
    second = await make_customer("Bina")
    await reconciler.reconcile("dp-1")
    deliveries = DeliveryRepository(seeded_db)
    done = await deliveries.get_for_date(first.id, TODAY)
    await reconciler.mark(done.id, delivered())

    await PriceTierService(seeded_db).edit_tier(1000, PriceTierUpdate(daily_price=11500))
    report = await reconciler.reconcile("dp-1")

    assert report.repaired == 1
    assert (await deliveries.get_for_date(second.id, TODAY)).charge == 11500
    assert (await deliveries.get_for_date(first.id, TODAY)).charge == 11000

    assert (await reconciler.reconcile("dp-1")).repaired == 0


@pytest.mark.asyncio
async def test_mark_delivered_settles_wallet_and_containers(seeded_db, reconciler, clock, make_customer):
    customer = await make_customer()
    await reconciler.reconcile("dp-1")
    row = await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)

    marked = await reconciler.mark(row.id, delivered(notes="left at door"))

    assert marked.status == DeliveryStatus.DELIVERED
    assert marked.delivered_at is not None
    wallet = WalletLedger(seeded_db)
    assert await wallet.balance(customer.id) == 0
    assert (await wallet.history(customer.id))[0].type == TransactionType.DELIVERY_CHARGE
    containers = ContainerLedger(seeded_db, clock)
    assert (await containers.balances(customer.id)).large == 1
    assert await containers.verify(customer.id)
    subscription = await SubscriptionRepository(seeded_db).get_by_customer(customer.id)
    assert subscription.delivery_count == 1


@pytest.mark.asyncio
async def test_terminal_rows_cannot_be_marked_again(seeded_db, reconciler, make_customer):
    customer = await make_customer()
    await reconciler.reconcile("dp-1")
    row = await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)
    await reconciler.mark(row.id, MarkDeliveryRequest(delivery_person_id="dp-1", status=DeliveryStatus.NOT_DELIVERED))

    with pytest.raises(InvalidTransition):
        await reconciler.mark(row.id, delivered())
    assert await WalletLedger(seeded_db).balance(customer.id) == 11000


@pytest.mark.asyncio
async def test_mark_rejects_other_person_and_open_status(seeded_db, reconciler, make_customer):
    customer = await make_customer()
    await reconciler.reconcile("dp-1")
    row = await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)

    with pytest.raises(InvalidTransition):
        await reconciler.mark(row.id, MarkDeliveryRequest(delivery_person_id="dp-2", status=DeliveryStatus.DELIVERED))
    with pytest.raises(InvalidTransition):
        await reconciler.mark(row.id, MarkDeliveryRequest(delivery_person_id="dp-1", status=DeliveryStatus.PAUSED))


@pytest.mark.asyncio
async def test_collecting_more_than_outstanding(seeded_db, reconciler, make_customer):
    customer = await make_customer()
    await reconciler.reconcile("dp-1")
    row = await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)

    with pytest.raises(ExceedsBalance):
        await reconciler.mark(row.id, delivered(large_collected=1))

    assert (await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)).status == DeliveryStatus.SCHEDULED


@pytest.mark.asyncio
async def test_recurring_deposit(seeded_db, reconciler, make_customer):
    customer = await make_customer(top_up=50000)
    subscriptions = SubscriptionRepository(seeded_db)
    await subscriptions.update_subscription(customer.id, {"delivery_count": 89, "last_deposit_at_delivery": 0})

    await reconciler.reconcile("dp-1")
    row = await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)
    assert row.deposit == 7000

    await reconciler.mark(row.id, delivered())

    types = [t.type for t in await WalletLedger(seeded_db).history(customer.id)]
    assert types[:2] == [TransactionType.DEPOSIT_CHARGE, TransactionType.DELIVERY_CHARGE]
    subscription = await subscriptions.get_by_customer(customer.id)
    assert (subscription.delivery_count, subscription.last_deposit_at_delivery) == (90, 90)


@pytest.mark.asyncio
async def test_delivery_that_exhausts_grace_deactivates(seeded_db, reconciler, make_customer):
    customer = await make_customer(top_up=7000)
    await reconciler.reconcile("dp-1")
    row = await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)
    await reconciler.mark(row.id, delivered())
    assert (await CustomerRepository(seeded_db).get_customer(customer.id)).status == CustomerStatus.ACTIVE

    tomorrow = TODAY + timedelta(days=1)
    await reconciler.reconcile("dp-1", tomorrow)
    row = await DeliveryRepository(seeded_db).get_for_date(customer.id, tomorrow)
    await reconciler.mark(row.id, delivered(large_collected=1))

    assert (await CustomerRepository(seeded_db).get_customer(customer.id)).status == CustomerStatus.INACTIVE


@pytest.mark.asyncio
async def test_run_for_reconciles_lazily(reconciler, make_customer):
    await make_customer("Asha")
    await make_customer("Bina", quantity_ml=1500, top_up=30000)

    run = await reconciler.run_for("dp-1")

    assert run.total == 2
    assert run.pending == 2
    assert run.completed == 0
    assert (run.large_containers, run.small_containers) == (2, 1)


@pytest.mark.asyncio
async def test_reconcile_all(seeded_db, reconciler, make_customer):
    await make_customer("Asha", delivery_person_id="dp-1")
    await make_customer("Bina", delivery_person_id="dp-2")

    reports = await reconciler.reconcile_all()

    assert [(r.delivery_person_id, r.created) for r in reports] == [("dp-1", 1), ("dp-2", 1)]


@pytest.mark.asyncio
async def test_unassign_drops_open_rows_from_the_run(seeded_db, reconciler, clock, make_customer):
    customer = await make_customer()
    await reconciler.reconcile("dp-1")
    await reconciler.reconcile("dp-1", TODAY + timedelta(days=1))

    await CustomerService(seeded_db, clock).unassign_delivery_person(customer.id)

    deliveries = DeliveryRepository(seeded_db)
    assert await deliveries.get_for_date(customer.id, TODAY) is None
    assert await deliveries.get_for_date(customer.id, TODAY + timedelta(days=1)) is None
    run = await reconciler.run_for("dp-1")
    assert (run.total, run.deliveries) == (0, [])


@pytest.mark.asyncio
async def test_mark_rejects_customer_no_longer_billed(seeded_db, reconciler, make_customer):
    customer = await make_customer()
    await reconciler.reconcile("dp-1")
    row = await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)
    await CustomerRepository(seeded_db).update_customer(
        customer.id, {"status": CustomerStatus.PENDING_APPROVAL, "delivery_person_id": None}
    )

    with pytest.raises(InvalidTransition):
        await reconciler.mark(row.id, delivered())

    assert (await DeliveryRepository(seeded_db).get_by_id(row.id)).status == DeliveryStatus.SCHEDULED
    assert await WalletLedger(seeded_db).balance(customer.id) == 11000


@pytest.mark.asyncio
async def test_reconcile_all_reprices_runs_with_only_inactive_customers(seeded_db, reconciler, make_customer):
    customer = await make_customer()
    await reconciler.reconcile("dp-1")
    await CustomerRepository(seeded_db).update_customer(customer.id, {"status": CustomerStatus.INACTIVE})
    await PriceTierService(seeded_db).edit_tier(1000, PriceTierUpdate(daily_price=11500))

    reports = await reconciler.reconcile_all()

    assert [(r.delivery_person_id, r.repaired) for r in reports] == [("dp-1", 1)]
    assert (await DeliveryRepository(seeded_db).get_for_date(customer.id, TODAY)).charge == 11500
