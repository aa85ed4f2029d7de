from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends

from doorstep.core.clock import TimeZoneClock, get_clock
from doorstep.db.session import get_database
from doorstep.schemas.delivery import (
    DeliveryResponse,
    DeliveryRun,
    MarkDeliveryRequest,
    ReconcileRequest,
    ReconciliationReport,
)
from doorstep.services.delivery_service import DeliveryReconciler

router = APIRouter()


def get_reconciler(db=Depends(get_database), clock: TimeZoneClock = Depends(get_clock)) -> DeliveryReconciler:
    return DeliveryReconciler(db, clock)


@router.post("/reconcile", response_model=ReconciliationReport)
async def reconcile(request: ReconcileRequest, reconciler: DeliveryReconciler = Depends(get_reconciler)):
    return await reconciler.reconcile(request.delivery_person_id, request.delivery_date)


@router.post("/reconcile/all", response_model=List[ReconciliationReport])
async def reconcile_all(day: Optional[date] = None, reconciler: DeliveryReconciler = Depends(get_reconciler)):
    return await reconciler.reconcile_all(day)


@router.get("/run/{delivery_person_id}", response_model=DeliveryRun)
async def run_for(
    delivery_person_id: str,
    day: Optional[date] = None,
    reconciler: DeliveryReconciler = Depends(get_reconciler),
):
    """The delivery person's list for a date, reconciled on read"""
    return await reconciler.run_for(delivery_person_id, day)


@router.post("/{delivery_id}/mark", response_model=DeliveryResponse)
async def mark(
    delivery_id: str,
    request: MarkDeliveryRequest,
    reconciler: DeliveryReconciler = Depends(get_reconciler),
):
    return await reconciler.mark(delivery_id, request)
