from datetime import datetime

import pytest

from groupbot.clock import Clock, TimerStore
from groupbot.timer import Timer, filled_cron_timer, filled_timer


@pytest.fixture
def store():
    with TimerStore() as timer_store:
        yield timer_store


def _daily_timer(group_id=1, alert="x"):
    timer = Timer(group_id=group_id, alert=alert)
    timer.month = -1
    timer.day = -1
    timer.week = -1
    timer.hour = 8
    timer.minute = 30
    timer.enabled = True
    return timer


def test_clock_lists_timers_loaded_from_store(store):
    store.insert(filled_timer(["", "12", "-1", "12", "0", "", "test"], 0, 0, False))
    clock = Clock(store)
    assert clock.list_timers(0) == ["12月1周12:0\n"]
    assert clock.list_timers(1) == []


def test_store_round_trip(tmp_path):
    path = tmp_path / "timers.db"
    timer = filled_cron_timer("30 8 * * *", "hi", "http://example.com/a.png", 7, 5)
    timer.id = timer.timer_id()
    with TimerStore(path) as first:
        first.insert(timer)
    with TimerStore(path) as second:
        assert second.all() == [timer]
        assert second.delete(timer.id)
        assert not second.delete(timer.id)
        assert second.all() == []


def test_cron_timer_registers_and_fires_once_per_minute(store):
    sent = []
    clock = Clock(store, sent.append)
    timer = filled_cron_timer("30 8 * * *", "hi", "", 0, 5)
    assert clock.register_timer(timer, save=True)
    assert timer.id == timer.timer_id()
    assert clock.get_timer(timer.id) is timer
    assert clock.list_timers(5) == ["30 8 * * *\n"]
    assert clock.run_pending(datetime(2022, 6, 13, 8, 30, 15)) == [timer]
    assert clock.run_pending(datetime(2022, 6, 13, 8, 30, 45)) == []
    assert clock.run_pending(datetime(2022, 6, 13, 8, 31)) == []
    assert sent == [timer]
    assert store.all() == [timer]


def test_invalid_cron_is_rejected(store):
    clock = Clock(store)
    timer = filled_cron_timer("not a cron", "hi", "", 0, 5)
    assert not clock.register_timer(timer, save=True)
    assert timer.alert != "hi"
    assert clock.get_timer(timer.id) is None
    assert store.all() == []


def test_calendar_timer_fires_when_due(store):
    clock = Clock(store)
    timer = _daily_timer()
    assert clock.register_timer(timer, save=True)
    assert clock.run_pending(datetime(2022, 6, 13, 8, 29)) == []
    assert clock.run_pending(datetime(2022, 6, 13, 8, 30)) == [timer]
    assert clock.run_pending(datetime(2022, 6, 13, 8, 30, 30)) == []
    assert clock.run_pending(datetime(2022, 6, 14, 8, 30)) == [timer]


def test_disabled_calendar_timer_is_not_registered_as_active(store):
    clock = Clock(store)
    timer = _daily_timer()
    timer.enabled = False
    assert not clock.register_timer(timer, save=True)
    assert clock.run_pending(datetime(2022, 6, 13, 8, 30)) == []


def test_cancel_timer(store):
    clock = Clock(store)
    timer = filled_cron_timer("0 * * * *", "hi", "", 0, 5)
    clock.register_timer(timer, save=True)
    assert clock.cancel_timer(timer.id)
    assert clock.list_timers(5) == []
    assert store.all() == []
    assert not clock.cancel_timer(timer.id)
    assert clock.run_pending(datetime(2022, 6, 13, 8, 0)) == []


def test_cancel_calendar_timer_disables_it(store):
    clock = Clock(store)
    timer = _daily_timer()
    clock.register_timer(timer, save=True)
    assert clock.cancel_timer(timer.id)
    assert not timer.enabled


def test_reregistering_same_schedule_disables_previous(store):
    clock = Clock(store)
    first = _daily_timer(alert="first")
    second = _daily_timer(alert="second")
    clock.register_timer(first, save=True)
    clock.register_timer(second, save=True)
    assert first.id == second.id
    assert not first.enabled
    assert clock.get_timer(second.id) is second
    assert [t.alert for t in store.all()] == ["second"]


def test_start_and_stop(store):
    clock = Clock(store)
    clock.start()
    clock.stop()
    timer = _daily_timer()
    assert clock.register_timer(timer, save=True)