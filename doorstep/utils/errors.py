"""Domain errors raised by the ledger, calendar and pricing services."""
from datetime import date, datetime
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class: carries a stable code and the numbers the caller needs."""

    code = "SYS_005"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": _jsonable(self.details)}


def _jsonable(details: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in details.items():
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        out[key] = value
    return out


class ValidationError(DomainError):
    code = "VAL_001"


class NotFound(DomainError):
    code = "CUST_001"


class InvalidTransition(DomainError):
    code = "CUST_004"


class PastDateNotAllowed(DomainError):
    code = "CAL_004"

    def __init__(self, target: date, today: date):
        super().__init__(
            f"{target.isoformat()} is in the past; only {today.isoformat()} or later can be changed",
            {"date": target, "today": today},
        )


class CutoffExceeded(DomainError):
    code = "DEL_005"

    def __init__(self, target: date, cutoff_hour: int, editable_from: datetime):
        super().__init__(
            f"Changes for {target.isoformat()} closed at {cutoff_hour:02d}:00; "
            f"the date can be edited again from {editable_from.isoformat()}",
            {"date": target, "cutoff_hour": cutoff_hour, "editable_from": editable_from},
        )


class InsufficientBalance(DomainError):
    code = "WAL_001"

    def __init__(self, required: int, balance: int, message: Optional[str] = None):
        shortfall = required - max(0, balance)
        super().__init__(
            message or f"Wallet balance {balance} does not cover {required}; {shortfall} more is needed",
            {"required": required, "balance": balance, "shortfall": shortfall},
        )
        self.required = required
        self.balance = balance
        self.shortfall = shortfall


class UnsupportedQuantity(DomainError):
    code = "SUB_003"

    def __init__(self, quantity_ml: int, supported: Optional[list] = None):
        super().__init__(
            f"No price tier for {quantity_ml} ml",
            {"quantity_ml": quantity_ml, "supported": supported or []},
        )


class ExceedsBalance(DomainError):
    code = "BOT_001"

    def __init__(self, size_class: str, requested: int, outstanding: int):
        super().__init__(
            f"Cannot settle {requested} {size_class} container(s); only {outstanding} outstanding",
            {"size_class": size_class, "requested": requested, "outstanding": outstanding},
        )


class ConcurrentModification(DomainError):
    code = "SYS_003"
