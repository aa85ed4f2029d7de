from datetime import date

from fastapi import APIRouter, Depends

from doorstep.core.clock import TimeZoneClock, get_clock
from doorstep.db.session import get_database
from doorstep.models.delivery import EffectiveDelivery
from doorstep.schemas.calendar import (
    BatchRequest,
    BatchResult,
    CalendarMonth,
    HolidayRequest,
    HolidayResult,
    ModificationRequest,
)
from doorstep.services.calendar_service import DeliveryCalendar

router = APIRouter()


def get_calendar(db=Depends(get_database), clock: TimeZoneClock = Depends(get_clock)) -> DeliveryCalendar:
    return DeliveryCalendar(db, clock)


@router.post("/holidays", response_model=HolidayResult)
async def declare_holiday(request: HolidayRequest, calendar: DeliveryCalendar = Depends(get_calendar)):
    """Operator holiday: pauses the date for every active customer"""
    return await calendar.declare_holiday(request.date, request.reason)


@router.get("/{customer_id}/days/{day}", response_model=EffectiveDelivery)
async def effective(customer_id: str, day: date, calendar: DeliveryCalendar = Depends(get_calendar)):
    return await calendar.effective(customer_id, day)


@router.get("/{customer_id}/{year}/{month}", response_model=CalendarMonth)
async def month_view(customer_id: str, year: int, month: int, calendar: DeliveryCalendar = Depends(get_calendar)):
    return await calendar.month_view(customer_id, year, month)


@router.put("/{customer_id}/pauses/{day}", response_model=EffectiveDelivery)
async def pause(customer_id: str, day: date, calendar: DeliveryCalendar = Depends(get_calendar)):
    return await calendar.set_pause(customer_id, day)


@router.delete("/{customer_id}/pauses/{day}", response_model=EffectiveDelivery)
async def resume(customer_id: str, day: date, calendar: DeliveryCalendar = Depends(get_calendar)):
    return await calendar.clear_pause(customer_id, day)


@router.put("/{customer_id}/modifications/{day}", response_model=EffectiveDelivery)
async def modify(
    customer_id: str,
    day: date,
    request: ModificationRequest,
    calendar: DeliveryCalendar = Depends(get_calendar),
):
    return await calendar.set_modification(customer_id, day, request)


@router.delete("/{customer_id}/modifications/{day}", response_model=EffectiveDelivery)
async def clear_modification(customer_id: str, day: date, calendar: DeliveryCalendar = Depends(get_calendar)):
    return await calendar.clear_modification(customer_id, day)


@router.post("/{customer_id}/batch", response_model=BatchResult)
async def batch(customer_id: str, request: BatchRequest, calendar: DeliveryCalendar = Depends(get_calendar)):
    """Per-date results; rejected dates are reported, not dropped"""
    return await calendar.batch(customer_id, request)
