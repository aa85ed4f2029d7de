from typing import Optional

from fastapi import APIRouter, Depends, status

from doorstep.core.clock import TimeZoneClock, get_clock
from doorstep.db.session import get_database
from doorstep.schemas.billing import BillingStatus, PlanChangeRequest, PlanChangeResult
from doorstep.schemas.customer import (
    AssignRequest,
    CustomerCreate,
    CustomerResponse,
    SubscribeRequest,
    SubscriptionResponse,
)
from doorstep.schemas.wallet import TopUpRequest, WalletSummary
from doorstep.services.billing_service import BillingCycle
from doorstep.services.customer_service import CustomerService

router = APIRouter()


@router.post("/", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def register(customer_in: CustomerCreate, db=Depends(get_database)):
    return await CustomerService(db).register(customer_in)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: str, db=Depends(get_database)):
    return await CustomerService(db).get(customer_id)


@router.post("/{customer_id}/subscription", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def subscribe(customer_id: str, request: SubscribeRequest, db=Depends(get_database)):
    return await CustomerService(db).subscribe(customer_id, request.quantity_ml)


@router.get("/{customer_id}/subscription", response_model=SubscriptionResponse)
async def get_subscription(customer_id: str, db=Depends(get_database)):
    return await CustomerService(db).get_subscription(customer_id)


@router.post("/{customer_id}/top-up", response_model=WalletSummary)
async def top_up(customer_id: str, request: TopUpRequest, db=Depends(get_database)):
    """Credit a payment the gateway has already confirmed"""
    service = CustomerService(db)
    await service.top_up(customer_id, request.amount, request.reference_id)
    return await service.wallet_summary(customer_id)


@router.get("/{customer_id}/wallet", response_model=WalletSummary)
async def wallet(customer_id: str, limit: int = 20, db=Depends(get_database)):
    return await CustomerService(db).wallet_summary(customer_id, limit)


@router.post("/{customer_id}/assign", response_model=CustomerResponse)
async def assign(
    customer_id: str,
    request: AssignRequest,
    db=Depends(get_database),
    clock: TimeZoneClock = Depends(get_clock),
):
    return await CustomerService(db, clock).assign_delivery_person(
        customer_id, request.delivery_person_id, request.start_date
    )


@router.post("/{customer_id}/unassign", response_model=CustomerResponse)
async def unassign(customer_id: str, db=Depends(get_database)):
    return await CustomerService(db).unassign_delivery_person(customer_id)


@router.get("/{customer_id}/billing", response_model=BillingStatus)
async def billing_status(
    customer_id: str,
    year: Optional[int] = None,
    month: Optional[int] = None,
    db=Depends(get_database),
    clock: TimeZoneClock = Depends(get_clock),
):
    return await BillingCycle(db, clock).status_for(customer_id, year, month)


@router.post("/{customer_id}/plan", response_model=PlanChangeResult)
async def change_plan(
    customer_id: str,
    request: PlanChangeRequest,
    db=Depends(get_database),
    clock: TimeZoneClock = Depends(get_clock),
):
    """Applies immediately, or reports the amount to collect first"""
    return await BillingCycle(db, clock).change_plan(customer_id, request.quantity_ml)
