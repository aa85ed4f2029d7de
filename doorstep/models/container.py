"""
Container (bottle) ledger.

Invariants per customer and size class:
- balance == sum(ISSUED) - sum(RETURNED) - sum(PENALTY)
- balance >= 0 after every entry
"""

from datetime import date
from enum import Enum
from typing import Optional

from doorstep.models.base import Document


class SizeClass(str, Enum):
    LARGE = "LARGE"
    SMALL = "SMALL"


class ContainerAction(str, Enum):
    ISSUED = "ISSUED"
    RETURNED = "RETURNED"
    PENALTY = "PENALTY"


class ContainerAccount(Document):
    customer_id: str
    large: int = 0
    small: int = 0
    seq: int = 0

    def balance_of(self, size_class: SizeClass) -> int:
        return self.large if size_class == SizeClass.LARGE else self.small


class ContainerLedgerEntry(Document):
    customer_id: str
    seq: int
    action: ContainerAction
    size_class: SizeClass
    quantity: int
    large_balance_after: int
    small_balance_after: int
    issued_date: Optional[date] = None
    delivery_id: Optional[str] = None
    description: str = ""

    def balance_after(self) -> int:
        if self.size_class == SizeClass.LARGE:
            return self.large_balance_after
        return self.small_balance_after
