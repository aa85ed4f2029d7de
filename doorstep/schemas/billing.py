from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from doorstep.models.billing import PaymentStatus


class BillingStatus(BaseModel):
    customer_id: str
    year: int
    month: int
    daily_rate: int
    days_in_month: int
    total_cost: int
    wallet_balance: int
    amount_due: int
    status: PaymentStatus
    paid_at: Optional[datetime] = None
    is_grace_period: bool


class PlanChangeRequest(BaseModel):
    quantity_ml: int


class PlanChangeResult(BaseModel):
    """
    Either applied immediately (cost_diff debited or credited), or not applied
    and `amount_due` must be collected before retrying.
    """
    applied_immediately: bool
    requires_payment: bool
    old_quantity_ml: int
    new_quantity_ml: int
    remaining_days: int
    cost_diff: int
    amount_due: int = 0
    wallet_balance: int
