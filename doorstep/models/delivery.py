from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from doorstep.models.base import Document


class DeliveryStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    PAUSED = "PAUSED"
    DELIVERED = "DELIVERED"
    NOT_DELIVERED = "NOT_DELIVERED"


TERMINAL_STATUSES = (DeliveryStatus.DELIVERED, DeliveryStatus.NOT_DELIVERED)
OPEN_STATUSES = (DeliveryStatus.SCHEDULED, DeliveryStatus.PAUSED)


class Delivery(Document):
    """One concrete delivery for (customer, date). charge is a price snapshot."""
    customer_id: str
    delivery_person_id: Optional[str] = None
    delivery_date: date
    quantity_ml: int
    large_containers: int
    small_containers: int
    status: DeliveryStatus = DeliveryStatus.SCHEDULED
    charge: int
    deposit: int = 0
    large_collected: int = 0
    small_collected: int = 0
    notes: str = ""
    delivered_at: Optional[datetime] = None

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class DeliveryModification(Document):
    customer_id: str
    modification_date: date
    quantity_ml: int
    large_containers: int
    small_containers: int
    notes: str = ""


class Pause(Document):
    customer_id: str
    pause_date: date
    created_by_customer: bool = True
    reason: str = ""


class EffectiveDelivery(BaseModel):
    """Resolved state of one calendar date after override precedence."""
    model_config = ConfigDict(frozen=True)

    delivery_date: date
    quantity_ml: int
    large_containers: int
    small_containers: int
    paused: bool = False
    source: str = "subscription"  # subscription | modification | pause
    notes: str = ""
