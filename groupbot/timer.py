"""Group reminder timers whose schedule is packed into one integer field."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Sequence

_ENABLED = 0x800000
_LOW_BITS = 0xFFFFFF

# (shift, mask) of every packed schedule field; an all-ones value means "every".
_MONTH = (19, 0xF)
_DAY = (14, 0x1F)
_WEEK = (11, 0x7)
_HOUR = (6, 0x1F)
_MINUTE = (0, 0x3F)

_CHINESE_DIGITS = {char: value for value, char in enumerate("零一二三四五六七八九十")}
_ASCII_INT = re.compile(r"[+-]?[0-9]+")


def _unpack(packed: int, field: tuple[int, int]) -> int:
    shift, mask = field
    value = (packed >> shift) & mask
    return -1 if value == mask else value


def _pack(packed: int, field: tuple[int, int], value: int) -> int:
    shift, mask = field
    return ((value << shift) & (mask << shift)) | (packed & ~(mask << shift) & _LOW_BITS)


@dataclass
class Timer:
    """A reminder for one group, either a calendar pattern or a cron expression.

    ``packed`` holds, from the top bit down: enabled (1 bit), month (4),
    day (5), weekday (3, Sunday is 0), hour (5) and minute (6).
    """

    id: int = 0
    packed: int = 0
    self_id: int = 0
    group_id: int = 0
    alert: str = ""
    cron: str = ""
    url: str = ""

    @property
    def enabled(self) -> bool:
        return self.packed & _ENABLED != 0

    @enabled.setter
    def enabled(self, value: bool) -> None:
        if value:
            self.packed |= _ENABLED
        else:
            self.packed &= 0x7FFFFF

    @property
    def month(self) -> int:
        return _unpack(self.packed, _MONTH)

    @month.setter
    def month(self, value: int) -> None:
        self.packed = _pack(self.packed, _MONTH, value)

    @property
    def day(self) -> int:
        return _unpack(self.packed, _DAY)

    @day.setter
    def day(self, value: int) -> None:
        self.packed = _pack(self.packed, _DAY, value)

    @property
    def week(self) -> int:
        return _unpack(self.packed, _WEEK)

    @week.setter
    def week(self, value: int) -> None:
        self.packed = _pack(self.packed, _WEEK, value)

    @property
    def hour(self) -> int:
        return _unpack(self.packed, _HOUR)

    @hour.setter
    def hour(self, value: int) -> None:
        self.packed = _pack(self.packed, _HOUR, value)

    @property
    def minute(self) -> int:
        return _unpack(self.packed, _MINUTE)

    @minute.setter
    def minute(self, value: int) -> None:
        self.packed = _pack(self.packed, _MINUTE, value)

    def info(self) -> str:
        """Canonical description of the schedule, prefixed by the group id."""
        if self.cron:
            return f"[{self.group_id}]{self.cron}"
        return (
            f"[{self.group_id}]{self.month}月{self.day}日{self.week}周"
            f"{self.hour}:{self.minute}"
        )

    def timer_id(self) -> int:
        """Stable 32-bit id derived from :meth:`info`."""
        digest = hashlib.md5(self.info().encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "little")

    def message(self) -> list[dict]:
        """Message segments sent when the timer fires."""
        segments: list[dict] = [
            {"type": "at", "data": {"qq": "all"}},
            {"type": "text", "data": {"text": self.alert}},
        ]
        if self.url:
            segments.append({"type": "image", "data": {"file": self.url, "cache": "0"}})
        return segments


def filled_cron_timer(cron: str, alert: str, url: str, bot_id: int, group_id: int) -> Timer:
    """Build a timer driven by a cron expression."""
    return Timer(self_id=bot_id, group_id=group_id, alert=alert, cron=cron, url=url)


def _bad_date_part(value: int, upper: int) -> bool:
    return (value != -1 and value <= 0) or value > upper


def _drop_middle(text: str) -> str:
    return text[0] + text[2] if len(text) == 3 else text


def filled_timer(
    date_strs: Sequence[str], bot_id: int, group_id: int, match_date_only: bool
) -> Timer:
    """Build a timer from the captured month, day/week, hour, minute, url and alert.

    On invalid input the returned timer stays disabled and ``alert`` says why.
    With ``match_date_only`` only the schedule is filled, for looking a timer up.
    """
    month_text, day_week, hour_text, minute_text = date_strs[1:5]
    timer = Timer()

    month = chinese_num_to_int(month_text)
    if _bad_date_part(month, 12):
        timer.alert = "月份非法！"
        return timer
    timer.month = month

    if len(day_week) == 4:
        day = chinese_num_to_int(day_week[0] + day_week[2])
        if _bad_date_part(day, 31):
            timer.alert = "日期非法1！"
            return timer
        timer.day = day
    elif day_week.endswith("日"):
        day = chinese_num_to_int(day_week[:-1])
        if _bad_date_part(day, 31):
            timer.alert = "日期非法2！"
            return timer
        timer.day = day
    elif day_week.startswith("每"):
        timer.week = -1
    else:
        week = chinese_num_to_int(day_week[1:])
        if week == 7:
            week = 0
        if not 0 <= week <= 6:
            timer.alert = "星期非法！"
            return timer
        timer.week = week

    hour = chinese_num_to_int(_drop_middle(hour_text))
    if hour < -1 or hour > 23:
        timer.alert = "小时非法！"
        return timer
    timer.hour = hour

    minute = chinese_num_to_int(_drop_middle(minute_text))
    if minute < -1 or minute > 59:
        timer.alert = "分钟非法！"
        return timer
    timer.minute = minute

    if not match_date_only:
        url_text = date_strs[5]
        if url_text:
            timer.url = url_text.encode("utf-8")[3:].decode("utf-8", "replace")
            if not timer.url.startswith("http"):
                timer.url = "illegal"
                return timer
        timer.alert = date_strs[6]
        timer.enabled = True
    timer.self_id = bot_id
    timer.group_id = group_id
    return timer


def chinese_num_to_int(text: str) -> int:
    """Convert a one- or two-digit Chinese or Arabic number.

    "每" alone means -1 and "每二" means -2, and so on.
    """
    if not text:
        raise ValueError("empty number")
    first = text[0]
    if first.isdecimal():
        return int(text) if _ASCII_INT.fullmatch(text) else 0
    if first == "每":
        return -chinese_char_to_int(text[1]) if len(text) == 2 else -1
    if len(text) == 1:
        return chinese_char_to_int(first)
    tens = chinese_char_to_int(first)
    if tens != 10:
        tens *= 10
    ones = chinese_char_to_int(text[1])
    if ones == 10:
        ones = 0
    return tens + ones


def chinese_char_to_int(char: str) -> int:
    """Map one Chinese numeral to 0-10; "日" and "天" (Sunday) map to 7."""
    if char in ("日", "天"):
        return 7
    return _CHINESE_DIGITS.get(char, 0)