"""
Customer lifecycle.

    VISITOR -> PENDING_PAYMENT        subscribe (creates subscription + wallet)
    PENDING_PAYMENT -> PENDING_APPROVAL  first top-up
    PENDING_APPROVAL -> ACTIVE         assign delivery person, deposit charged
    ACTIVE <-> INACTIVE                wallet balance vs. one day's charge
    ACTIVE/INACTIVE -> PENDING_APPROVAL  unassign delivery person
"""

import logging
from datetime import date, timedelta
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

from doorstep.core.clock import TimeZoneClock, get_clock
from doorstep.core.config import settings
from doorstep.db.session import atomic
from doorstep.models.customer import Customer, CustomerStatus, Subscription
from doorstep.models.wallet import TransactionType, WalletTransaction
from doorstep.repositories.customer_repo import CustomerRepository, SubscriptionRepository
from doorstep.repositories.delivery_repo import DeliveryRepository
from doorstep.repositories.wallet_repo import WalletRepository
from doorstep.schemas.customer import CustomerCreate
from doorstep.schemas.wallet import WalletSummary, WalletTransactionResponse
from doorstep.services.pricing_service import PricingResolver
from doorstep.services.wallet_service import WalletLedger
from doorstep.utils.billing import status_for_balance
from doorstep.utils.errors import InvalidTransition, NotFound, PastDateNotAllowed, UnsupportedQuantity, ValidationError

logger = logging.getLogger(__name__)

BILLED_STATUSES = (CustomerStatus.ACTIVE, CustomerStatus.INACTIVE)


async def current_rate(pricing: PricingResolver, subscription: Subscription) -> int:
    """Today's daily rate for the subscribed quantity; the stored snapshot if the tier is gone."""
    try:
        return (await pricing.resolve(subscription.daily_quantity_ml)).daily_price
    except UnsupportedQuantity:
        return subscription.daily_price


class CustomerService:

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[TimeZoneClock] = None,
        pricing: Optional[PricingResolver] = None,
    ):
        self.db = db
        self.clock = clock or get_clock()
        self.pricing = pricing or PricingResolver(db)
        self.ledger = WalletLedger(db)

    async def register(self, data: CustomerCreate) -> Customer:
        customer = Customer(name=data.name, phone=data.phone, address=data.address)
        return await CustomerRepository(self.db).create_customer(customer)

    async def get(self, customer_id: str) -> Customer:
        customer = await CustomerRepository(self.db).get_customer(customer_id)
        if customer is None:
            raise NotFound(f"Customer {customer_id} not found", {"customer_id": customer_id})
        return customer

    async def get_subscription(self, customer_id: str) -> Subscription:
        subscription = await SubscriptionRepository(self.db).get_by_customer(customer_id)
        if subscription is None:
            raise NotFound(f"Customer {customer_id} has no subscription", {"customer_id": customer_id})
        return subscription

    async def subscribe(self, customer_id: str, quantity_ml: int) -> Subscription:
        customer = await self.get(customer_id)
        if customer.status != CustomerStatus.VISITOR:
            raise InvalidTransition(
                f"Customer is already {customer.status.value}",
                {"status": customer.status.value},
            )
        quote = await self.pricing.resolve(quantity_ml)

        async with atomic(self.db) as session:
            subscription = await SubscriptionRepository(self.db, session).create_subscription(Subscription(
                customer_id=customer_id,
                daily_quantity_ml=quantity_ml,
                daily_price=quote.daily_price,
                large_containers=quote.large_containers,
                small_containers=quote.small_containers,
            ))
            await WalletRepository(self.db, session).create_wallet(customer_id)
            updated = await CustomerRepository(self.db, session).update_customer(
                customer_id,
                {"status": CustomerStatus.PENDING_PAYMENT},
                expected_statuses=[CustomerStatus.VISITOR],
            )
            if updated is None:
                raise InvalidTransition("Customer status changed concurrently", {"customer_id": customer_id})

        logger.info("Customer %s subscribed to %s ml", customer_id, quantity_ml)
        return subscription

    async def top_up(self, customer_id: str, amount: int, reference_id: Optional[str] = None) -> WalletTransaction:
        """Credit funds already confirmed by the payment collaborator."""
        if amount <= 0:
            raise ValidationError("Top-up amount must be positive", {"amount": amount})

        async with atomic(self.db) as session:
            transaction = await self.ledger.record(
                session, customer_id, amount, TransactionType.WALLET_TOPUP, "Wallet top-up",
                reference_type="payment", reference_id=reference_id,
            )
            customers = CustomerRepository(self.db, session)
            promoted = await customers.update_customer(
                customer_id,
                {"status": CustomerStatus.PENDING_APPROVAL},
                expected_statuses=[CustomerStatus.PENDING_PAYMENT],
            )
            if promoted is None:
                await self.refresh_status(session, customer_id)
        return transaction

    def first_delivery_date(self) -> date:
        """Tomorrow while tomorrow is still editable, else the day after."""
        tomorrow = self.clock.tomorrow()
        if self.clock.hour() < settings.CUTOFF_HOUR:
            return tomorrow
        return tomorrow + timedelta(days=1)

    async def assign_delivery_person(
        self, customer_id: str, delivery_person_id: str, start_date: Optional[date] = None
    ) -> Customer:
        customer = await self.get(customer_id)
        if customer.status != CustomerStatus.PENDING_APPROVAL:
            raise InvalidTransition(
                f"Only customers pending approval can be assigned; status is {customer.status.value}",
                {"status": customer.status.value},
            )
        subscription = await self.get_subscription(customer_id)
        today = self.clock.today()
        start = start_date or self.first_delivery_date()
        if start < today:
            raise PastDateNotAllowed(start, today)
        deposit = await self.pricing.deposit_for(subscription.daily_quantity_ml)

        async with atomic(self.db) as session:
            if deposit > 0:
                # Deposit may not take the balance below zero
                await self.ledger.record(
                    session, customer_id, -deposit, TransactionType.DEPOSIT_CHARGE,
                    "Container deposit", reference_type="subscription",
                    reference_id=subscription.id, min_balance_after=0,
                )
            updated = await CustomerRepository(self.db, session).update_customer(
                customer_id,
                {"status": CustomerStatus.ACTIVE, "delivery_person_id": delivery_person_id},
                expected_statuses=[CustomerStatus.PENDING_APPROVAL],
            )
            if updated is None:
                raise InvalidTransition("Customer status changed concurrently", {"customer_id": customer_id})
            await SubscriptionRepository(self.db, session).update_subscription(customer_id, {
                "start_date": start,
                "last_deposit_at_delivery": subscription.delivery_count,
            })

        logger.info("Customer %s assigned to %s from %s", customer_id, delivery_person_id, start)
        return updated

    async def unassign_delivery_person(self, customer_id: str) -> Customer:
        """Back to PENDING_APPROVAL; open rows from today on leave the old person's run."""
        async with atomic(self.db) as session:
            updated = await CustomerRepository(self.db, session).update_customer(
                customer_id,
                {"status": CustomerStatus.PENDING_APPROVAL, "delivery_person_id": None},
                expected_statuses=BILLED_STATUSES,
            )
            if updated is None:
                customer = await self.get(customer_id)
                raise InvalidTransition(
                    f"Customer in status {customer.status.value} has no delivery person to remove",
                    {"status": customer.status.value},
                )
            dropped = await DeliveryRepository(self.db, session).delete_open_from(customer_id, self.clock.today())

        logger.info("Customer %s unassigned, %d open deliveries dropped", customer_id, dropped)
        return updated

    async def refresh_status(self, session: Optional[AsyncIOMotorClientSession], customer_id: str) -> Customer:
        """Apply ACTIVE/INACTIVE from the grace rule. Other statuses are left alone."""
        customers = CustomerRepository(self.db, session)
        customer = await customers.get_customer(customer_id)
        if customer is None:
            raise NotFound(f"Customer {customer_id} not found", {"customer_id": customer_id})
        if customer.status not in BILLED_STATUSES:
            return customer

        subscription = await SubscriptionRepository(self.db, session).get_by_customer(customer_id)
        wallet = await WalletRepository(self.db, session).get_by_customer(customer_id)
        if subscription is None or wallet is None:
            return customer

        rate = await current_rate(self.pricing, subscription)
        status = status_for_balance(wallet.balance, rate)
        if status == customer.status:
            return customer

        updated = await customers.update_customer(
            customer_id, {"status": status}, expected_statuses=[customer.status]
        )
        logger.info("Customer %s %s -> %s (balance %s)", customer_id, customer.status.value, status.value, wallet.balance)
        return updated or customer

    async def wallet_summary(self, customer_id: str, limit: int = 20) -> WalletSummary:
        balance = await self.ledger.balance(customer_id)
        history = await self.ledger.history(customer_id, limit)
        return WalletSummary(
            customer_id=customer_id,
            balance=balance,
            transactions=[WalletTransactionResponse.model_validate(t) for t in history],
        )
