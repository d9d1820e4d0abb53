"""Persistent registry of group reminder timers and their dispatch."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable

from .cron import CronSchedule, parse_cron
from .schedule import should_fire
from .timer import Timer

Sender = Callable[[Timer], None]


class TimerStore:
    """SQLite table of timers keyed by their id."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS timer ("
                "id INTEGER PRIMARY KEY, emdwhm INTEGER NOT NULL, sid INTEGER NOT NULL, "
                "gid INTEGER NOT NULL, alert TEXT NOT NULL, cron TEXT NOT NULL, url TEXT NOT NULL)"
            )

    def insert(self, timer: Timer) -> None:
        """Insert a timer, replacing any stored one with the same id."""
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO timer (id, emdwhm, sid, gid, alert, cron, url) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (timer.id, timer.packed, timer.self_id, timer.group_id, timer.alert, timer.cron, timer.url),
            )

    def delete(self, timer_id: int) -> bool:
        """Remove a timer; report whether one was stored."""
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM timer WHERE id = ?", (timer_id,))
            return cursor.rowcount > 0

    def all(self) -> list[Timer]:
        """Every stored timer, in id order."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, emdwhm, sid, gid, alert, cron, url FROM timer ORDER BY id"
            ).fetchall()
        return [
            Timer(id=row[0], packed=row[1], self_id=row[2], group_id=row[3], alert=row[4], cron=row[5], url=row[6])
            for row in rows
        ]

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> TimerStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Clock:
    """Keeps registered timers, persists them and fires those that are due.

    ``send`` is called with each timer when it fires.
    """

    def __init__(self, store: TimerStore, send: Sender | None = None) -> None:
        self._store = store
        self._send: Sender = send or (lambda timer: None)
        self._timers: dict[int, Timer] = {}
        self._schedules: dict[int, CronSchedule] = {}
        self._fired: dict[int, datetime] = {}
        self._lock = threading.RLock()
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None
        for timer in store.all():
            self.register_timer(timer, save=False)

    def register_timer(self, timer: Timer, save: bool) -> bool:
        """Register a timer; with ``save`` give it its canonical id and store it.

        A cron timer whose expression does not parse is rejected and its
        ``alert`` holds the reason. A calendar timer counts as registered
        only when it is enabled.
        """
        if save:
            timer.id = timer.timer_id()
        key = timer.id
        with self._lock:
            previous = self._timers.get(key)
            if previous is not None and previous is not timer:
                previous.enabled = False
            if timer.cron:
                try:
                    schedule = parse_cron(timer.cron)
                except ValueError as error:
                    timer.alert = str(error)
                    return False
                self._schedules[key] = schedule
            else:
                self._schedules.pop(key, None)
            if save:
                self._store.insert(timer)
            self._timers[key] = timer
            self._fired.pop(key, None)
        return True if timer.cron else timer.enabled

    def cancel_timer(self, key: int) -> bool:
        """Stop and forget a timer; False when no such timer is registered."""
        with self._lock:
            timer = self._timers.pop(key, None)
            if timer is None:
                return False
            if timer.cron:
                self._schedules.pop(key, None)
            else:
                timer.enabled = False
            self._fired.pop(key, None)
            self._store.delete(key)
        return True

    def list_timers(self, group_id: int) -> list[str]:
        """Readable descriptions of every timer of one group."""
        with self._lock:
            timers = list(self._timers.values())
        lines = []
        for timer in timers:
            if timer.group_id != group_id:
                continue
            info = timer.info()
            text = info[info.index("]") + 1 :] + "\n"
            text = text.replace("-1", "每")
            text = text.replace("月0日0周", "月周天")
            text = text.replace("月0日", "月")
            text = text.replace("日0周", "日")
            lines.append(text)
        return lines

    def get_timer(self, key: int) -> Timer | None:
        with self._lock:
            return self._timers.get(key)

    def run_pending(self, now: datetime) -> list[Timer]:
        """Fire every timer due in the minute of ``now`` not yet fired in it."""
        minute = now.replace(second=0, microsecond=0)
        due: list[Timer] = []
        with self._lock:
            for key, timer in self._timers.items():
                schedule = self._schedules.get(key)
                if schedule is not None:
                    ready = schedule.matches(now)
                else:
                    ready = should_fire(timer, now)
                if ready and self._fired.get(key) != minute:
                    self._fired[key] = minute
                    due.append(timer)
        for timer in due:
            self._send(timer)
        return due

    def start(self) -> None:
        """Check the timers at the start of every minute in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self._loop, name="clock", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stopping.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _loop(self) -> None:
        while True:
            now = datetime.now()
            delay = 60 - now.second - now.microsecond / 1_000_000
            if self._stopping.wait(delay):
                return
            self.run_pending(datetime.now())