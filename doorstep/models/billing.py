from datetime import datetime
from enum import Enum
from typing import Optional

from doorstep.models.base import Document


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class MonthlyPayment(Document):
    customer_id: str
    year: int
    month: int  # 1-12
    daily_rate: int
    total_cost: int
    status: PaymentStatus = PaymentStatus.PENDING
    paid_at: Optional[datetime] = None
