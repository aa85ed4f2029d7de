from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from doorstep.models.delivery import DeliveryStatus


class ModificationRequest(BaseModel):
    """Override for one date. Container counts default to the quantity's standard load."""
    quantity_ml: int
    large_containers: Optional[int] = Field(None, ge=0, le=10)
    small_containers: Optional[int] = Field(None, ge=0, le=10)
    notes: str = Field("", max_length=1000)


class BatchAction(str, Enum):
    PAUSE = "PAUSE"
    RESUME = "RESUME"
    MODIFY = "MODIFY"
    CLEAR_MODIFICATION = "CLEAR_MODIFICATION"


class BatchRequest(BaseModel):
    action: BatchAction
    dates: List[date] = Field(..., min_length=1)
    modification: Optional[ModificationRequest] = None


class BatchItemResult(BaseModel):
    date: date
    applied: bool
    code: Optional[str] = None
    message: Optional[str] = None


class BatchResult(BaseModel):
    action: BatchAction
    results: List[BatchItemResult]

    @property
    def applied_count(self) -> int:
        return sum(1 for r in self.results if r.applied)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if not r.applied)


class CalendarDay(BaseModel):
    date: date
    quantity_ml: int
    large_containers: int
    small_containers: int
    paused: bool
    modified: bool
    notes: str = ""
    delivery_status: Optional[DeliveryStatus] = None
    editable: bool


class CalendarMonth(BaseModel):
    customer_id: str
    year: int
    month: int
    days: List[CalendarDay]

    @property
    def paused_dates(self) -> List[date]:
        return [d.date for d in self.days if d.paused]

    @property
    def modified_dates(self) -> List[date]:
        return [d.date for d in self.days if d.modified]


class HolidayRequest(BaseModel):
    date: date
    reason: str = Field(..., min_length=1, max_length=200)


class HolidayItemResult(BaseModel):
    customer_id: str
    applied: bool
    code: Optional[str] = None
    message: Optional[str] = None


class HolidayResult(BaseModel):
    """Outcome of pausing every active customer for one date."""
    date: date
    reason: str
    results: List[HolidayItemResult]

    @property
    def applied_count(self) -> int:
        return sum(1 for r in self.results if r.applied)
