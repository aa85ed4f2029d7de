from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from doorstep.models.customer import CustomerStatus


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    phone: str = ""
    address: str = Field("", max_length=500)


class CustomerResponse(BaseModel):
    id: str
    name: str
    phone: str
    address: str
    status: CustomerStatus
    delivery_person_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscribeRequest(BaseModel):
    quantity_ml: int


class SubscriptionResponse(BaseModel):
    customer_id: str
    daily_quantity_ml: int
    daily_price: int
    large_containers: int
    small_containers: int
    start_date: Optional[date] = None
    delivery_count: int

    model_config = ConfigDict(from_attributes=True)


class AssignRequest(BaseModel):
    delivery_person_id: str = Field(..., min_length=1)
    start_date: Optional[date] = None
