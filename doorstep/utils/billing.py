"""Billing arithmetic. All amounts are integer minor units (paise)."""
from datetime import date

from doorstep.models.customer import CustomerStatus
from doorstep.utils.dates import days_in_month


def monthly_total(daily_rate: int, year: int, month: int) -> int:
    """Full-month cost: daily rate x days in month."""
    return daily_rate * days_in_month(year, month)


def amount_due(total_cost: int, wallet_balance: int) -> int:
    """What the wallet does not already cover."""
    return max(0, total_cost - wallet_balance)


def grace_floor(daily_rate: int) -> int:
    """Lowest balance still inside the grace window: minus one day's charge."""
    return -daily_rate


def is_grace_period(wallet_balance: int, daily_rate: int) -> bool:
    """
    Negative balance, but no deeper than one day's charge.

    The threshold scales with plan size; it is evaluated against the rate
    passed in, which callers take from the current subscription quantity.
    """
    return wallet_balance < 0 and wallet_balance >= grace_floor(daily_rate)


def status_for_balance(wallet_balance: int, daily_rate: int) -> CustomerStatus:
    """ACTIVE while the balance is at or above the grace floor, else INACTIVE."""
    if wallet_balance >= grace_floor(daily_rate):
        return CustomerStatus.ACTIVE
    return CustomerStatus.INACTIVE


def remaining_days(today: date) -> int:
    """Days left in the month after today."""
    return days_in_month(today.year, today.month) - today.day


def plan_change_cost(old_rate: int, new_rate: int, today: date) -> int:
    """Positive for an upgrade (to debit), negative for a downgrade (to credit)."""
    return (new_rate - old_rate) * remaining_days(today)


def deposit_due(delivery_count: int, last_deposit_at_delivery: int, interval: int) -> bool:
    """
    True when the next completed delivery reaches the recurring deposit
    milestone. The first deposit is charged at assignment, never on the first
    delivery.
    """
    upcoming = delivery_count + 1
    if upcoming == 1:
        return False
    return upcoming - last_deposit_at_delivery >= interval
