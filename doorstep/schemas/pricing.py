from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PriceQuote(BaseModel):
    """Resolved price of one daily quantity."""
    model_config = ConfigDict(frozen=True)

    quantity_ml: int
    daily_price: int
    large_deposit: int
    small_deposit: int
    large_containers: int
    small_containers: int

    def deposit(self, sets: int) -> int:
        """Container deposit for `sets` rotating sets of this quantity's containers."""
        per_set = self.large_containers * self.large_deposit + self.small_containers * self.small_deposit
        return per_set * sets


class PriceTierUpdate(BaseModel):
    """Admin edit of one tier. Unset fields are left unchanged."""
    label: Optional[str] = None
    daily_price: Optional[int] = Field(None, gt=0)
    large_deposit: Optional[int] = Field(None, ge=0)
    small_deposit: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class PriceTierResponse(BaseModel):
    quantity_ml: int
    label: str
    daily_price: int
    large_deposit: int
    small_deposit: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
