from typing import List

from fastapi import APIRouter, Depends

from doorstep.db.session import get_database
from doorstep.schemas.pricing import PriceQuote, PriceTierResponse, PriceTierUpdate
from doorstep.services.pricing_service import PriceTierService, PricingResolver

router = APIRouter()


async def get_pricing(db=Depends(get_database)) -> PricingResolver:
    return PricingResolver(db)


@router.get("/tiers", response_model=List[PriceTierResponse])
async def list_tiers(db=Depends(get_database)):
    """All tiers in the store, active or not"""
    return await PriceTierService(db).list_tiers()


@router.get("/quote/{quantity_ml}", response_model=PriceQuote)
async def quote(quantity_ml: int, pricing: PricingResolver = Depends(get_pricing)):
    return await pricing.resolve(quantity_ml)


@router.patch("/tiers/{quantity_ml}", response_model=PriceTierResponse)
async def edit_tier(quantity_ml: int, update: PriceTierUpdate, db=Depends(get_database)):
    return await PriceTierService(db).edit_tier(quantity_ml, update)


@router.post("/tiers/seed", response_model=List[PriceTierResponse])
async def seed_tiers(db=Depends(get_database)):
    """Insert the default tiers where missing"""
    return await PriceTierService(db).seed_default_tiers()
