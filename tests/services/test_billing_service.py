import pytest

from doorstep.models.billing import PaymentStatus
from doorstep.models.wallet import TransactionType
from doorstep.repositories.billing_repo import MonthlyPaymentRepository
from doorstep.repositories.customer_repo import SubscriptionRepository
from doorstep.services.billing_service import BillingCycle
from doorstep.services.wallet_service import WalletLedger
from doorstep.utils.errors import ValidationError


@pytest.fixture
def billing(seeded_db, clock):
    return BillingCycle(seeded_db, clock)


@pytest.mark.asyncio
async def test_upgrade_without_funds_returns_amount_due(seeded_db, billing, make_customer):
    # 1L at 11000/day, wallet 11000, ten days left in January
    customer = await make_customer(top_up=18000)

    result = await billing.change_plan(customer.id, 1500)

    assert result.requires_payment
    assert not result.applied_immediately
    assert result.remaining_days == 10
    assert result.cost_diff == 55000
    assert result.amount_due == 44000
    subscription = await SubscriptionRepository(seeded_db).get_by_customer(customer.id)
    assert subscription.daily_quantity_ml == 1000
    assert await WalletLedger(seeded_db).balance(customer.id) == 11000


@pytest.mark.asyncio
async def test_upgrade_with_funds_debits_and_applies(seeded_db, billing, make_customer):
    customer = await make_customer(top_up=70000)

    result = await billing.change_plan(customer.id, 1500)

    assert result.applied_immediately
    assert result.wallet_balance == 63000 - 55000
    subscription = await SubscriptionRepository(seeded_db).get_by_customer(customer.id)
    assert (subscription.daily_quantity_ml, subscription.daily_price) == (1500, 16500)
    assert (subscription.large_containers, subscription.small_containers) == (1, 1)
    latest = (await WalletLedger(seeded_db).history(customer.id))[0]
    assert (latest.type, latest.delta) == (TransactionType.PLAN_CHANGE_DEBIT, -55000)


@pytest.mark.asyncio
async def test_downgrade_credits_remaining_days(seeded_db, billing, make_customer):
    customer = await make_customer()

    result = await billing.change_plan(customer.id, 500)

    assert result.applied_immediately
    assert result.cost_diff == -42000
    assert result.wallet_balance == 11000 + 42000
    latest = (await WalletLedger(seeded_db).history(customer.id))[0]
    assert latest.type == TransactionType.PLAN_CHANGE_CREDIT


@pytest.mark.asyncio
async def test_same_quantity_is_rejected(billing, make_customer):
    customer = await make_customer()

    with pytest.raises(ValidationError):
        await billing.change_plan(customer.id, 1000)


@pytest.mark.asyncio
async def test_status_for_month(billing, make_customer):
    customer = await make_customer()

    status = await billing.status_for(customer.id, 2026, 1)

    assert status.daily_rate == 11000
    assert status.days_in_month == 31
    assert status.total_cost == 341000
    assert status.amount_due == 330000
    assert status.status == PaymentStatus.PENDING
    assert not status.is_grace_period


@pytest.mark.asyncio
async def test_plan_change_recomputes_monthly_total(seeded_db, billing, make_customer):
    customer = await make_customer()
    await billing.status_for(customer.id)

    await billing.change_plan(customer.id, 500)

    payment = await MonthlyPaymentRepository(seeded_db).get_payment(customer.id, 2026, 1)
    assert (payment.daily_rate, payment.total_cost) == (6800, 6800 * 31)


@pytest.mark.asyncio
async def test_paid_once_wallet_covers_month(billing, make_customer):
    customer = await make_customer(top_up=400000)

    status = await billing.status_for(customer.id, 2026, 2)

    assert status.total_cost == 308000
    assert status.amount_due == 0
    assert status.status == PaymentStatus.PAID
    assert status.paid_at is not None


@pytest.mark.asyncio
async def test_grace_flag(seeded_db, billing, make_customer):
    customer = await make_customer(top_up=7000)
    await WalletLedger(seeded_db).apply_delta(customer.id, -11000, TransactionType.DELIVERY_CHARGE)

    status = await billing.status_for(customer.id)

    assert status.wallet_balance == -11000
    assert status.is_grace_period
