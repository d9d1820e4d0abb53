"""Group administration helpers: greetings, bans, join checks and member storage."""

from __future__ import annotations

import hashlib
import re
import sqlite3
import threading
import time
from pathlib import Path
from random import Random
from typing import Callable, Mapping, Sequence

import requests

GIST_RAW_URL = "https://gist.githubusercontent.com/{user}/{hash}/raw/{file}"
AVATAR_URL = "http://q4.qlogo.cn/g?b=qq&nk={uid}&s=640"

MAX_BAN_MINUTES = 43199  # a ban may last at most just under a month
GIST_VALID_SECONDS = 600

VERIFY_BIT = 0x1
GIST_BIT = 0x10

_ENABLE_WORDS = ("开启", "打开", "启用")
_DISABLE_WORDS = ("关闭", "关掉", "禁用")

_MINUTE_UNITS = ("分钟",)
_HOUR_UNITS = ("小时",)
_DAY_UNITS = ("天",)
_MINUTE_UNITS_EN = ("min", "mins", "m")
_HOUR_UNITS_EN = ("hour", "hours", "h")
_DAY_UNITS_EN = ("day", "days", "d")

_ANSWER_MARKER = "答案："
_INTEGER = re.compile(r"[+-]?[0-9]+")

Fetcher = Callable[[str], "bytes | str"]


class ManagerStore:
    """SQLite tables of welcome and farewell texts and verified members."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self._conn:
            for table in ("welcome", "farewell"):
                self._conn.execute(
                    f"CREATE TABLE IF NOT EXISTS {table} "
                    "(gid INTEGER PRIMARY KEY, msg TEXT NOT NULL)"
                )
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS member "
                "(qq INTEGER PRIMARY KEY, ghun TEXT NOT NULL)"
            )

    def _set(self, table: str, group_id: int, text: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                f"INSERT OR REPLACE INTO {table} (gid, msg) VALUES (?, ?)",
                (group_id, text),
            )

    def _get(self, table: str, group_id: int) -> str | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT msg FROM {table} WHERE gid = ?", (group_id,)
            ).fetchone()
        return row[0] if row else None

    def set_welcome(self, group_id: int, text: str) -> None:
        """Store the greeting template of a group, replacing any earlier one."""
        self._set("welcome", group_id, text)

    def welcome(self, group_id: int) -> str | None:
        """The greeting template of a group, or None when none is set."""
        return self._get("welcome", group_id)

    def set_farewell(self, group_id: int, text: str) -> None:
        """Store the farewell template of a group, replacing any earlier one."""
        self._set("farewell", group_id, text)

    def farewell(self, group_id: int) -> str | None:
        """The farewell template of a group, or None when none is set."""
        return self._get("farewell", group_id)

    def has_github_user(self, name: str) -> bool:
        """Whether a member has already joined with this GitHub user name."""
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM member WHERE ghun = ? LIMIT 1", (name,)
            ).fetchone()
        return row is not None

    def add_member(self, qq: int, name: str) -> None:
        """Record that ``qq`` joined verified as GitHub user ``name``."""
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO member (qq, ghun) VALUES (?, ?)", (qq, name)
            )

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> ManagerStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def parse_ban_minutes(amount: int | str, unit: str, allow_english: bool = False) -> int:
    """Ban length in minutes for ``amount`` of ``unit``, capped below a month.

    Unknown units count as minutes. English unit names are understood only
    with ``allow_english``, as for self-imposed bans.
    """
    minutes = int(amount)
    hour_units = _HOUR_UNITS + (_HOUR_UNITS_EN if allow_english else ())
    day_units = _DAY_UNITS + (_DAY_UNITS_EN if allow_english else ())
    if unit in hour_units:
        minutes *= 60
    elif unit in day_units:
        minutes *= 60 * 24
    if minutes >= MAX_BAN_MINUTES + 1:
        minutes = MAX_BAN_MINUTES
    return minutes


def render_welcome(
    template: str, user_id: int, nickname: str, group_id: int, group_name: str
) -> str:
    """Fill the placeholders of a greeting template with CQ codes and names."""
    uid = str(user_id)
    replacements = {
        "{at}": f"[CQ:at,qq={uid}]",
        "{nickname}": nickname,
        "{avatar}": "[CQ:image,file=" + AVATAR_URL.format(uid=uid) + "]",
        "{uid}": uid,
        "{gid}": str(group_id),
        "{groupname}": group_name,
    }
    text = template
    for placeholder, value in replacements.items():
        text = text.replace(placeholder, value)
    return text


def unescape_brackets(text: str) -> str:
    """Turn escaped square brackets back into CQ-code brackets."""
    return text.replace("&#91;", "[").replace("&#93;", "]")


def _toggle(data: int, option: str, on_mask: int, off_mask: int) -> int | None:
    if option in _ENABLE_WORDS:
        return data | on_mask
    if option in _DISABLE_WORDS:
        return data & off_mask
    return None


def toggle_verification(data: int, option: str) -> int | None:
    """Plugin data with join verification switched by ``option``.

    None when the option word is not understood.
    """
    return _toggle(data, option, VERIFY_BIT, 0x7FFFFFFF_FFFFFFFE)


def toggle_gist_approval(data: int, option: str) -> int | None:
    """Plugin data with gist-based join approval switched by ``option``.

    None when the option word is not understood.
    """
    return _toggle(data, option, GIST_BIT, 0x7FFFFFFF_FFFFFFFD)


def make_quiz(rng: Random | None = None) -> tuple[int, int, int]:
    """Two addends below 100 and their sum, for a newcomer to answer."""
    rng = rng or Random()
    first = rng.randrange(100)
    second = rng.randrange(100)
    return first, second, first + second


def pick_lucky_member(
    members: Sequence[Mapping], rng: Random | None = None
) -> Mapping:
    """A random member among the ten who spoke most recently."""
    if not members:
        raise ValueError("no members to pick from")
    rng = rng or Random()
    ordered = sorted(members, key=lambda member: int(member.get("last_sent_time", 0) or 0))
    recent = ordered[max(0, len(ordered) - 10):]
    return recent[rng.randrange(len(recent))]


def gist_url(user: str, gist_hash: str, group_id: int) -> str:
    """Raw URL of the gist file named after the md5 of the group id."""
    file_name = hashlib.md5(str(group_id).encode("utf-8")).hexdigest()
    return GIST_RAW_URL.format(user=user, hash=gist_hash, file=file_name)


def parse_join_answer(comment: str) -> tuple[str, str]:
    """GitHub user name and gist hash from a join request's ``user/hash`` answer.

    Raises ValueError when the answer has no user name before a slash.
    """
    raw = comment.encode("utf-8")
    marker = _ANSWER_MARKER.encode("utf-8")
    start = raw.find(marker) + len(marker)
    if start > len(raw):
        raise ValueError("格式错误!")
    answer = raw[start:].decode("utf-8", "replace")
    slash = answer.find("/")
    if slash <= 0:
        raise ValueError("格式错误!")
    return answer[:slash], answer[slash + 1:]


def _default_fetch(url: str) -> bytes:
    response = requests.get(url, timeout=30)
    response.raise_for_status()
    return response.content


def check_new_user(
    store: ManagerStore,
    qq: int,
    group_id: int,
    user: str,
    gist_hash: str,
    fetch: Fetcher | None = None,
    now: float | None = None,
) -> tuple[bool, str]:
    """Verify a join request against a gist holding a recent unix timestamp.

    Returns whether to approve and, when not, the reason to give. An approved
    user is recorded in ``store``.
    """
    if store.has_github_user(user):
        return False, "该github用户已入群"
    fetch = fetch or _default_fetch
    try:
        data = fetch(gist_url(user, gist_hash, group_id))
    except Exception as error:  # any failure to reach the gist rejects the request
        return False, "无法连接到gist: " + str(error)
    text = data.decode("utf-8", "replace") if isinstance(data, bytes) else str(data)
    if not _INTEGER.fullmatch(text):
        return False, "时间戳格式错误: " + text
    stamp = int(text)
    current = int(time.time() if now is None else now)
    if abs(current - stamp) < GIST_VALID_SECONDS:
        store.add_member(qq, user)
        return True, ""
    return False, "时间戳超时"