from datetime import date, timedelta

import pytest

from doorstep.models.customer import Subscription
from doorstep.models.delivery import DeliveryModification, Pause
from doorstep.services.calendar_service import effective_state, ensure_editable, is_editable
from doorstep.utils.errors import CutoffExceeded, PastDateNotAllowed

from tests.helpers import TODAY, clock_at

TOMORROW = TODAY + timedelta(days=1)


@pytest.fixture
def subscription():
    return Subscription(
        customer_id="c1",
        daily_quantity_ml=1000,
        daily_price=11000,
        large_containers=1,
        small_containers=0,
    )


def test_subscription_defaults(subscription):
    state = effective_state(subscription, TODAY)

    assert state.quantity_ml == 1000
    assert state.large_containers == 1
    assert state.small_containers == 0
    assert not state.paused
    assert state.source == "subscription"


def test_modification_overrides_defaults(subscription):
    modification = DeliveryModification(
        customer_id="c1", modification_date=TODAY, quantity_ml=1500,
        large_containers=1, small_containers=1, notes="guests",
    )
    state = effective_state(subscription, TODAY, modification)

    assert state.quantity_ml == 1500
    assert state.small_containers == 1
    assert state.notes == "guests"
    assert state.source == "modification"


def test_pause_wins_over_modification(subscription):
    modification = DeliveryModification(
        customer_id="c1", modification_date=TODAY, quantity_ml=1500,
        large_containers=1, small_containers=1,
    )
    pause = Pause(customer_id="c1", pause_date=TODAY)
    state = effective_state(subscription, TODAY, modification, pause)

    assert state.paused
    assert state.quantity_ml == 0
    assert state.source == "pause"


def test_tomorrow_editable_one_minute_before_cutoff():
    ensure_editable(clock_at(16, 59), TOMORROW)


def test_tomorrow_locked_at_cutoff():
    clock = clock_at(17, 0)
    with pytest.raises(CutoffExceeded) as exc_info:
        ensure_editable(clock, TOMORROW)

    details = exc_info.value.details
    assert details["cutoff_hour"] == 17
    assert details["editable_from"] == clock.start_of_day(TOMORROW)


@pytest.mark.parametrize("hour", [0, 16, 17, 23])
def test_today_always_editable(hour):
    ensure_editable(clock_at(hour), TODAY)


def test_day_after_tomorrow_editable_after_cutoff():
    assert is_editable(clock_at(22), TODAY + timedelta(days=2))


def test_past_dates_rejected():
    with pytest.raises(PastDateNotAllowed):
        ensure_editable(clock_at(9), TODAY - timedelta(days=1))
    assert not is_editable(clock_at(9), date(2025, 12, 31))
