"""
Wallet model - prepaid balance as the fold of an append-only ledger.

Invariants:
- balance == sum(t.delta for t in transactions)
- transactions[n].balance_after == transactions[n-1].balance_after + transactions[n].delta
- seq numbers are contiguous per wallet, starting at 1
- balance may be negative (grace period)
"""

from enum import Enum
from typing import Optional

from doorstep.models.base import Document


class TransactionType(str, Enum):
    WALLET_TOPUP = "WALLET_TOPUP"
    DELIVERY_CHARGE = "DELIVERY_CHARGE"
    DEPOSIT_CHARGE = "DEPOSIT_CHARGE"
    PENALTY_CHARGE = "PENALTY_CHARGE"
    PLAN_CHANGE_DEBIT = "PLAN_CHANGE_DEBIT"
    PLAN_CHANGE_CREDIT = "PLAN_CHANGE_CREDIT"


class Wallet(Document):
    customer_id: str
    balance: int = 0
    seq: int = 0


class WalletTransaction(Document):
    """Immutable ledger row."""
    wallet_id: str
    customer_id: str
    seq: int
    type: TransactionType
    delta: int
    balance_after: int
    description: str = ""
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
