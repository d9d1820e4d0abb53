"""Five-field cron expressions: parsing, matching and finding the next run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

_DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

_MONTH_NAMES = {
    name: number
    for number, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
_DAY_NAMES = {
    name: number
    for number, name in enumerate(("sun", "mon", "tue", "wed", "thu", "fri", "sat"))
}

_SEARCH_YEARS = 5


@dataclass(frozen=True)
class _Bounds:
    low: int
    high: int
    names: dict[str, int] = field(default_factory=dict)


_MINUTE = _Bounds(0, 59)
_HOUR = _Bounds(0, 23)
_DOM = _Bounds(1, 31)
_MONTH = _Bounds(1, 12, _MONTH_NAMES)
_DOW = _Bounds(0, 6, _DAY_NAMES)


def _weekday(moment: datetime) -> int:
    return (moment.weekday() + 1) % 7


@dataclass(frozen=True)
class CronSchedule:
    """The set of minutes, hours, days, months and weekdays a cron line allows.

    When either day field is a bare ``*`` both day fields must match;
    otherwise a day matches if either field does.
    """

    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]
    any_day: bool = False
    any_weekday: bool = False
    expr: str = field(default="", compare=False)

    def _day_matches(self, moment: datetime) -> bool:
        dom = moment.day in self.days
        dow = _weekday(moment) in self.weekdays
        if self.any_day or self.any_weekday:
            return dom and dow
        return dom or dow

    def matches(self, moment: datetime) -> bool:
        """Whether the minute containing ``moment`` is a scheduled one."""
        return (
            moment.minute in self.minutes
            and moment.hour in self.hours
            and moment.month in self.months
            and self._day_matches(moment)
        )

    def next_after(self, moment: datetime) -> datetime:
        """The first scheduled minute strictly after ``moment``."""
        current = moment.replace(second=0, microsecond=0) + timedelta(minutes=1)
        last_year = current.year + _SEARCH_YEARS
        while current.year <= last_year:
            if current.month not in self.months:
                year, month = divmod(current.month, 12)
                current = current.replace(
                    year=current.year + year, month=month + 1, day=1, hour=0, minute=0
                )
                continue
            if not self._day_matches(current):
                current = current.replace(hour=0, minute=0) + timedelta(days=1)
                continue
            if current.hour not in self.hours:
                current = current.replace(minute=0) + timedelta(hours=1)
                continue
            if current.minute not in self.minutes:
                current += timedelta(minutes=1)
                continue
            return current
        raise ValueError(f"cron expression never fires: {self.expr!r}")


def _value(text: str, bounds: _Bounds) -> int:
    lowered = text.lower()
    if lowered in bounds.names:
        return bounds.names[lowered]
    if not text.isdigit():
        raise ValueError(f"bad cron value: {text!r}")
    return int(text)


def _parse_field(text: str, bounds: _Bounds) -> tuple[frozenset[int], bool]:
    values: set[int] = set()
    star = False
    for part in text.split(","):
        if not part:
            raise ValueError(f"empty cron field part in {text!r}")
        range_text, _, step_text = part.partition("/")
        step = 1
        if step_text:
            if not step_text.isdigit() or int(step_text) == 0:
                raise ValueError(f"bad cron step: {part!r}")
            step = int(step_text)
        if range_text in ("*", "?"):
            low, high = bounds.low, bounds.high
            if step == 1:
                star = True
        else:
            low_text, dash, high_text = range_text.partition("-")
            low = _value(low_text, bounds)
            if dash:
                high = _value(high_text, bounds)
            elif step_text:
                high = bounds.high
            else:
                high = low
        if low < bounds.low or high > bounds.high:
            raise ValueError(f"cron value out of range ({bounds.low}-{bounds.high}): {part!r}")
        if low > high:
            raise ValueError(f"cron range start beyond end: {part!r}")
        values.update(range(low, high + 1, step))
    return frozenset(values), star


def parse_cron(expr: str) -> CronSchedule:
    """Parse a standard five-field cron line or one of the ``@`` shorthands."""
    text = expr.strip()
    if text.startswith("@"):
        if text.lower() not in _DESCRIPTORS:
            raise ValueError(f"unsupported cron descriptor: {text!r}")
        text = _DESCRIPTORS[text.lower()]
    fields = text.split()
    if len(fields) != 5:
        raise ValueError(f"expected 5 cron fields, got {len(fields)}: {expr!r}")
    minutes, _ = _parse_field(fields[0], _MINUTE)
    hours, _ = _parse_field(fields[1], _HOUR)
    days, any_day = _parse_field(fields[2], _DOM)
    months, _ = _parse_field(fields[3], _MONTH)
    weekdays, any_weekday = _parse_field(fields[4], _DOW)
    return CronSchedule(
        minutes=minutes,
        hours=hours,
        days=days,
        months=months,
        weekdays=weekdays,
        any_day=any_day,
        any_weekday=any_weekday,
        expr=expr,
    )