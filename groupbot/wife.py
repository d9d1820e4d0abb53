"""Per-group picture collections from which each member draws a daily pick."""

from __future__ import annotations

import hashlib
from datetime import date
from pathlib import Path
from random import Random

NO_WIFE = "一个wife也没有哦~"
NO_NAME = "没有找到wife的名字！"


def daily_seed(name: str, day: date) -> int:
    """Seed that is the same for one name throughout one day."""
    key = f"{name}{day.year}{day.month}{day.day}".encode("utf-8")
    digest = hashlib.md5(key).digest()
    return int.from_bytes(digest[:8], "little", signed=True)


def draw_wife(folder: str | Path, name: str, day: date) -> str:
    """File name drawn for ``name`` today; raises LookupError when there is none."""
    directory = Path(folder)
    try:
        entries = sorted(entry.name for entry in directory.iterdir())
    except OSError as error:
        raise LookupError(NO_WIFE) from error
    if not entries:
        raise LookupError(NO_WIFE)
    if len(entries) == 1:
        return entries[0]
    return entries[Random(daily_seed(name, day)).randrange(len(entries))]


def clean_wife_name(text: str, prefix: str) -> str:
    """The name after the last ``prefix``, with spaces and path separators removed."""
    compact = text.replace(" ", "")
    position = compact.rfind(prefix)
    if position >= 0:
        compact = compact[position + len(prefix):]
    return compact.replace("/", "").replace("\\", "")


def can_add_wife(data: int, is_admin: bool) -> bool:
    """Whether a member may add pictures: everyone when enabled, else admins."""
    return data & 1 == 1 or is_admin


def add_wife(folder: str | Path, name: str, data: bytes) -> Path:
    """Store a picture under ``name`` in the group folder; return its path."""
    if not name:
        raise ValueError(NO_NAME)
    directory = Path(folder)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / name
    target.write_bytes(data)
    return target


def remove_wife(folder: str | Path, name: str) -> None:
    """Delete the picture stored under ``name``."""
    if not name:
        raise ValueError(NO_NAME)
    (Path(folder) / name).unlink()