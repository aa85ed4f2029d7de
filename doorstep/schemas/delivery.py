from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from doorstep.models.delivery import DeliveryStatus


class DeliveryResponse(BaseModel):
    id: str
    customer_id: str
    delivery_person_id: Optional[str] = None
    delivery_date: date
    quantity_ml: int
    large_containers: int
    small_containers: int
    status: DeliveryStatus
    charge: int
    deposit: int
    large_collected: int
    small_collected: int
    notes: str
    delivered_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReconcileRequest(BaseModel):
    delivery_person_id: str
    delivery_date: Optional[date] = None


class ReconciliationReport(BaseModel):
    delivery_person_id: str
    date: date
    created: int = 0
    existing: int = 0
    repaired: int = 0
    skipped: Dict[str, int] = {}


class MarkDeliveryRequest(BaseModel):
    delivery_person_id: str
    status: DeliveryStatus
    large_collected: int = Field(0, ge=0, le=10)
    small_collected: int = Field(0, ge=0, le=10)
    notes: Optional[str] = Field(None, max_length=1000)


class DeliveryRun(BaseModel):
    """A delivery person's list for one date."""
    date: date
    total: int
    completed: int
    pending: int
    large_containers: int
    small_containers: int
    deliveries: List[DeliveryResponse]
