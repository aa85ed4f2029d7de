from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class ContainerBalance(BaseModel):
    customer_id: str
    large: int
    small: int


class FlaggedCustomer(BaseModel):
    """Customer whose oldest unreturned container is past the threshold."""
    customer_id: str
    name: str = ""
    delivery_person_id: Optional[str] = None
    large_outstanding: int
    small_outstanding: int
    large_overdue: int
    small_overdue: int
    oldest_issue_date: date
    days_overdue: int


class PenaltyRequest(BaseModel):
    fine_amount: int = Field(..., gt=0)
    large_count: int = Field(0, ge=0)
    small_count: int = Field(0, ge=0)


class PenaltyResult(BaseModel):
    customer_id: str
    large_settled: int
    small_settled: int
    fine_amount: int
    success: bool
    wallet_balance: Optional[int] = None
    error: Optional[str] = None
