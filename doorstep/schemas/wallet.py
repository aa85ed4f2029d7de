from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from doorstep.models.wallet import TransactionType


class TopUpRequest(BaseModel):
    """Credit confirmed by the payment collaborator."""
    amount: int = Field(..., gt=0)
    reference_id: Optional[str] = None


class WalletTransactionResponse(BaseModel):
    id: str
    seq: int
    type: TransactionType
    delta: int
    balance_after: int
    description: str
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WalletSummary(BaseModel):
    customer_id: str
    balance: int
    transactions: List[WalletTransactionResponse] = []
