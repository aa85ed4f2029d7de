"""
Customer and Subscription models.

Status lifecycle:
    VISITOR -> PENDING_PAYMENT -> PENDING_APPROVAL -> ACTIVE <-> INACTIVE
    ACTIVE/INACTIVE -> PENDING_APPROVAL (admin unassigns the delivery person)
"""

from datetime import date
from enum import Enum
from typing import Optional

from doorstep.models.base import Document


class CustomerStatus(str, Enum):
    VISITOR = "VISITOR"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Customer(Document):
    name: str
    phone: str = ""
    address: str = ""
    status: CustomerStatus = CustomerStatus.VISITOR
    delivery_person_id: Optional[str] = None


class Subscription(Document):
    """
    Standing daily order.

    Invariant: daily_price and container counts are always the resolver's
    output for daily_quantity_ml at the time of the last quantity change.
    """
    customer_id: str
    daily_quantity_ml: int
    daily_price: int
    large_containers: int
    small_containers: int
    start_date: Optional[date] = None

    # Recurring deposit bookkeeping
    delivery_count: int = 0
    last_deposit_at_delivery: int = 0
