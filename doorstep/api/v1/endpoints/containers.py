from typing import List, Optional

from fastapi import APIRouter, Depends

from doorstep.core.clock import TimeZoneClock, get_clock
from doorstep.db.session import get_database
from doorstep.schemas.container import ContainerBalance, FlaggedCustomer, PenaltyRequest, PenaltyResult
from doorstep.services.container_service import ContainerLedger
from doorstep.services.penalty_service import PenaltyEngine

router = APIRouter()


def get_engine(db=Depends(get_database), clock: TimeZoneClock = Depends(get_clock)) -> PenaltyEngine:
    return PenaltyEngine(db, clock)


@router.get("/flagged", response_model=List[FlaggedCustomer])
async def flagged(threshold_days: Optional[int] = None, engine: PenaltyEngine = Depends(get_engine)):
    """Customers with containers out longer than the threshold"""
    return await engine.flagged(threshold_days)


@router.post("/penalties/run", response_model=List[PenaltyResult])
async def run_penalties(engine: PenaltyEngine = Depends(get_engine)):
    return await engine.run()


@router.get("/{customer_id}", response_model=ContainerBalance)
async def balances(customer_id: str, db=Depends(get_database)):
    return await ContainerLedger(db).balances(customer_id)


@router.post("/{customer_id}/penalty", response_model=PenaltyResult)
async def impose_penalty(customer_id: str, request: PenaltyRequest, engine: PenaltyEngine = Depends(get_engine)):
    return await engine.impose_penalty(
        customer_id, request.fine_amount, request.large_count, request.small_count
    )
