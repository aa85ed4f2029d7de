from fastapi import APIRouter
from doorstep.api.v1.endpoints import calendar, containers, customers, deliveries, pricing

api_router = APIRouter()

api_router.include_router(customers.router, prefix="/customers", tags=["customers"])
api_router.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
api_router.include_router(deliveries.router, prefix="/deliveries", tags=["deliveries"])
api_router.include_router(containers.router, prefix="/containers", tags=["containers"])
api_router.include_router(pricing.router, prefix="/pricing", tags=["pricing"])
