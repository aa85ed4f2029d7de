from typing import List

from doorstep.models.base import Document


class PriceTier(Document):
    """One supported daily quantity. quantity_ml is the natural key."""
    quantity_ml: int
    label: str = ""
    daily_price: int
    large_deposit: int
    small_deposit: int
    is_active: bool = True


# Used when the tier table is empty or unreachable
DEFAULT_TIERS: List[PriceTier] = [
    PriceTier(quantity_ml=500, label="500ml", daily_price=6800, large_deposit=3500, small_deposit=2500),
    PriceTier(quantity_ml=1000, label="1L", daily_price=11000, large_deposit=3500, small_deposit=2500),
    PriceTier(quantity_ml=1500, label="1.5L", daily_price=16500, large_deposit=3500, small_deposit=2500),
    PriceTier(quantity_ml=2000, label="2L", daily_price=21500, large_deposit=3500, small_deposit=2500),
    PriceTier(quantity_ml=2500, label="2.5L", daily_price=26800, large_deposit=3500, small_deposit=2500),
]
