"""Countdowns to public holidays and the daily slacking reminder."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

HOLIDAY_NAMES = ("元旦", "春节", "清明节", "劳动节", "端午节", "中秋节", "国庆节")

_KEY_PREFIX = "holiday/"
_VALUE = re.compile(r"([+-]?\d+)_([+-]?\d+)_([+-]?\d+)_([+-]?\d+)")

_GREETING = (
    "上午好，摸鱼人！\n工作再累，一定不要忘记摸鱼哦！有事没事起身去茶水间，去厕所，"
    "去廊道走走别老在工位上坐着，钱是老板的,但命是自己的。\n"
)
_CLOSING = "上班是帮老板赚钱，摸鱼是赚老板的钱！最后，祝愿天下所有摸鱼人，都能愉快的渡过每一天…"


@dataclass(frozen=True)
class Holiday:
    """A holiday starting at ``date`` and lasting ``duration``."""

    name: str
    date: datetime
    duration: timedelta

    def describe(self, now: datetime) -> str:
        """How far away the holiday is, or whether it is on or over."""
        remaining = self.date - now
        if remaining >= timedelta(0):
            days = remaining.total_seconds() / 86400
            return f"距离{self.name}还有: {days:.2f}天！"
        if remaining + self.duration >= timedelta(0):
            return f"好好享受 {self.name} 假期吧!"
        return f"今年 {self.name} 假期已过"


def parse_holiday(name: str, value: str) -> Holiday:
    """Read a holiday stored as ``days_year_month_day``."""
    match = _VALUE.match(value)
    if match is None:
        raise ValueError(f"malformed holiday value: {value!r}")
    days, year, month, day = (int(part) for part in match.groups())
    return Holiday(name, datetime(year, month, day), timedelta(days=days))


def format_holiday(name: str, duration: int, year: int, month: int, day: int) -> tuple[str, str]:
    """Registry key and value under which a holiday is stored."""
    return _KEY_PREFIX + name, f"{duration}_{year}_{month}_{day}"


def weekend_message(now: datetime) -> str:
    """Days left until the weekend, or a weekend greeting."""
    weekday = (now.weekday() + 1) % 7
    if weekday in (0, 6):
        return "好好享受周末吧！"
    return f"距离周末还有:{5 - weekday}天！"


def daily_reminder(holidays: Iterable[Holiday], now: datetime) -> str:
    """The full morning reminder listing each holiday countdown in order."""
    parts = [now.strftime("%Y-%m-%d"), _GREETING, weekend_message(now)]
    for holiday in holidays:
        parts.append("\n")
        parts.append(holiday.describe(now))
    parts.append("\n")
    parts.append(_CLOSING)
    return "".join(parts)