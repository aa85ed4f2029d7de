"""
BillingCycle - monthly dues and mid-cycle plan changes.

Monthly status:
    total_cost  = current daily rate x days in month
    amount_due  = max(0, total_cost - wallet balance)
    grace       = balance negative but no deeper than one day's rate

Plan change, with remaining = days in month - today's day of month:
    cost_diff = (new rate - old rate) x remaining
    <= 0  credit |cost_diff| and apply
    > 0   debit and apply if the wallet stays >= 0, otherwise leave the plan
          unchanged and report the amount to collect
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from doorstep.core.clock import TimeZoneClock, get_clock
from doorstep.db.session import atomic
from doorstep.models.billing import PaymentStatus
from doorstep.models.wallet import TransactionType
from doorstep.repositories.billing_repo import MonthlyPaymentRepository
from doorstep.repositories.customer_repo import SubscriptionRepository
from doorstep.repositories.delivery_repo import DeliveryRepository
from doorstep.schemas.billing import BillingStatus, PlanChangeResult
from doorstep.services.calendar_service import sync_delivery
from doorstep.services.customer_service import CustomerService, current_rate
from doorstep.services.pricing_service import PricingResolver
from doorstep.services.wallet_service import WalletLedger
from doorstep.utils.billing import amount_due, is_grace_period, monthly_total, plan_change_cost, remaining_days
from doorstep.utils.dates import days_in_month
from doorstep.utils.errors import InsufficientBalance, NotFound, ValidationError

logger = logging.getLogger(__name__)


class BillingCycle:

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[TimeZoneClock] = None,
        pricing: Optional[PricingResolver] = None,
    ):
        self.db = db
        self.clock = clock or get_clock()
        self.pricing = pricing or PricingResolver(db)
        self.wallet = WalletLedger(db)
        self.payments = MonthlyPaymentRepository(db)

    async def _subscription(self, customer_id: str):
        subscription = await SubscriptionRepository(self.db).get_by_customer(customer_id)
        if subscription is None:
            raise NotFound(f"Customer {customer_id} has no subscription", {"customer_id": customer_id})
        return subscription

    async def status_for(self, customer_id: str, year: Optional[int] = None, month: Optional[int] = None) -> BillingStatus:
        today = self.clock.today()
        year = year or today.year
        month = month or today.month
        dim = days_in_month(year, month)

        subscription = await self._subscription(customer_id)
        rate = await current_rate(self.pricing, subscription)
        total = monthly_total(rate, year, month)
        balance = await self.wallet.balance(customer_id)

        payment = await self.payments.get_or_create(customer_id, year, month, rate, total)
        if payment.daily_rate != rate or payment.total_cost != total:
            payment = await self.payments.update_total(customer_id, year, month, rate, total)
        if payment.status == PaymentStatus.PENDING and balance >= total:
            payment = await self.payments.mark_paid(customer_id, year, month, self.clock.now()) or payment

        return BillingStatus(
            customer_id=customer_id,
            year=year,
            month=month,
            daily_rate=rate,
            days_in_month=dim,
            total_cost=total,
            wallet_balance=balance,
            amount_due=amount_due(total, balance),
            status=payment.status,
            paid_at=payment.paid_at,
            is_grace_period=is_grace_period(balance, rate),
        )

    async def change_plan(self, customer_id: str, quantity_ml: int) -> PlanChangeResult:
        subscription = await self._subscription(customer_id)
        if quantity_ml == subscription.daily_quantity_ml:
            raise ValidationError(
                f"Subscription is already {quantity_ml} ml",
                {"quantity_ml": quantity_ml},
            )
        quote = await self.pricing.resolve(quantity_ml)

        today = self.clock.today()
        days_left = remaining_days(today)
        cost_diff = plan_change_cost(subscription.daily_price, quote.daily_price, today)
        result = dict(
            old_quantity_ml=subscription.daily_quantity_ml,
            new_quantity_ml=quantity_ml,
            remaining_days=days_left,
            cost_diff=cost_diff,
        )

        try:
            async with atomic(self.db) as session:
                if cost_diff > 0:
                    await self.wallet.record(
                        session, customer_id, -cost_diff, TransactionType.PLAN_CHANGE_DEBIT,
                        f"Plan change {subscription.daily_quantity_ml} -> {quantity_ml} ml for {days_left} days",
                        reference_type="subscription", reference_id=subscription.id,
                        min_balance_after=0,
                    )
                elif cost_diff < 0:
                    await self.wallet.record(
                        session, customer_id, -cost_diff, TransactionType.PLAN_CHANGE_CREDIT,
                        f"Plan change {subscription.daily_quantity_ml} -> {quantity_ml} ml for {days_left} days",
                        reference_type="subscription", reference_id=subscription.id,
                    )

                updated = await SubscriptionRepository(self.db, session).update_subscription(customer_id, {
                    "daily_quantity_ml": quantity_ml,
                    "daily_price": quote.daily_price,
                    "large_containers": quote.large_containers,
                    "small_containers": quote.small_containers,
                })
                await MonthlyPaymentRepository(self.db, session).update_total(
                    customer_id, today.year, today.month,
                    quote.daily_price, monthly_total(quote.daily_price, today.year, today.month),
                )
                upcoming = await DeliveryRepository(self.db, session).list_for_customer(
                    customer_id, self.clock.tomorrow()
                )
                for delivery in upcoming:
                    if not delivery.is_terminal():
                        await sync_delivery(self.db, session, self.pricing, updated, delivery.delivery_date)
                await CustomerService(self.db, self.clock, self.pricing).refresh_status(session, customer_id)
        except InsufficientBalance as exc:
            logger.info("Plan change for %s needs payment of %s", customer_id, exc.shortfall)
            return PlanChangeResult(
                applied_immediately=False,
                requires_payment=True,
                amount_due=exc.shortfall,
                wallet_balance=exc.balance,
                **result
            )

        balance = await self.wallet.balance(customer_id)
        logger.info("Plan change for %s applied: %s -> %s ml, %+d", customer_id,
                    result["old_quantity_ml"], quantity_ml, -cost_diff)
        return PlanChangeResult(
            applied_immediately=True,
            requires_payment=False,
            wallet_balance=balance,
            **result
        )
