"""
Pricing - tiered price list with a process-wide versioned cache.

Reads:
1. Read the shared tier version (one small document)
2. Serve the cached tiers if they were loaded at that version and are
   younger than the TTL
3. Otherwise reload the active tiers; an unreachable or empty table falls
   back to DEFAULT_TIERS

Writes bump the shared version and drop the local cache as their last step,
so every process refetches on its next read.
"""

import logging
import time
from typing import Callable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from doorstep.core.config import settings
from doorstep.models.pricing import DEFAULT_TIERS, PriceTier
from doorstep.repositories.pricing_repo import PriceTierRepository
from doorstep.schemas.pricing import PriceQuote, PriceTierUpdate
from doorstep.utils.errors import NotFound, UnsupportedQuantity, ValidationError

logger = logging.getLogger(__name__)


def containers_for(quantity_ml: int) -> tuple:
    """Standard container load: 1L containers plus one 500ml for a half litre."""
    large = quantity_ml // 1000
    small = 1 if quantity_ml % 1000 >= 500 else 0
    return large, small


class PriceTierCache:
    """Tiers as of one version, shared read-only by all requests in the process."""

    def __init__(self):
        self.tiers: Optional[List[PriceTier]] = None
        self.version: Optional[int] = None
        self.loaded_at = 0.0
        self.fallback = False

    def get(self, version: Optional[int], ttl: float, now: float) -> Optional[List[PriceTier]]:
        if self.tiers is None or version is None or version != self.version:
            return None
        if now - self.loaded_at >= ttl:
            return None
        return self.tiers

    def put(self, tiers: List[PriceTier], version: Optional[int], now: float, fallback: bool = False):
        self.tiers = tiers
        self.version = version
        self.loaded_at = now
        self.fallback = fallback

    def invalidate(self):
        self.tiers = None
        self.version = None
        self.loaded_at = 0.0
        self.fallback = False


price_cache = PriceTierCache()


class PricingResolver:
    """Maps a daily quantity to its price and deposit amounts. Never fails on store outages."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        cache: PriceTierCache = price_cache,
        ttl_seconds: Optional[float] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.repo = PriceTierRepository(db)
        self.cache = cache
        self.ttl = settings.PRICING_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._monotonic = monotonic

    async def tiers(self) -> List[PriceTier]:
        now = self._monotonic()
        try:
            version = await self.repo.get_version()
        except PyMongoError as exc:
            if self.cache.tiers is not None:
                return self.cache.tiers
            logger.warning("Pricing version unavailable, using default tiers: %s", exc)
            self.cache.put(DEFAULT_TIERS, None, now, fallback=True)
            return DEFAULT_TIERS

        cached = self.cache.get(version, self.ttl, now)
        if cached is not None:
            return cached

        try:
            rows = await self.repo.list_active()
        except PyMongoError as exc:
            logger.warning("Failed to load price tiers, using defaults: %s", exc)
            rows = []

        if rows:
            self.cache.put(rows, version, now)
            return rows

        logger.warning("No active price tiers in store, using defaults")
        self.cache.put(DEFAULT_TIERS, version, now, fallback=True)
        return DEFAULT_TIERS

    async def supported_quantities(self) -> List[int]:
        return [t.quantity_ml for t in await self.tiers()]

    async def resolve(self, quantity_ml: int) -> PriceQuote:
        tiers = await self.tiers()
        for tier in tiers:
            if tier.quantity_ml == quantity_ml:
                large, small = containers_for(quantity_ml)
                return PriceQuote(
                    quantity_ml=quantity_ml,
                    daily_price=tier.daily_price,
                    large_deposit=tier.large_deposit,
                    small_deposit=tier.small_deposit,
                    large_containers=large,
                    small_containers=small,
                )
        raise UnsupportedQuantity(quantity_ml, [t.quantity_ml for t in tiers])

    async def deposit_for(self, quantity_ml: int) -> int:
        quote = await self.resolve(quantity_ml)
        return quote.deposit(settings.CONTAINER_SETS_PER_DEPOSIT)


class PriceTierService:
    """Administrative writes to the tier table."""

    def __init__(self, db: AsyncIOMotorDatabase, cache: PriceTierCache = price_cache):
        self.repo = PriceTierRepository(db)
        self.cache = cache

    async def list_tiers(self) -> List[PriceTier]:
        return await self.repo.list_all()

    async def edit_tier(self, quantity_ml: int, update: PriceTierUpdate) -> PriceTier:
        fields = update.model_dump(exclude_unset=True, exclude_none=True)
        if not fields:
            raise ValidationError("No tier fields to update")

        tier = await self.repo.update_tier(quantity_ml, fields)
        if tier is None:
            raise NotFound(f"No price tier for {quantity_ml} ml", {"quantity_ml": quantity_ml})

        await self._publish()
        logger.info("Price tier %s ml updated: %s", quantity_ml, fields)
        return tier

    async def seed_default_tiers(self) -> List[PriceTier]:
        for tier in DEFAULT_TIERS:
            await self.repo.insert_if_missing(tier)
        await self._publish()
        return await self.repo.list_all()

    async def _publish(self):
        await self.repo.bump_version()
        self.cache.invalidate()
