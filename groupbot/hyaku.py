"""The Ogura Hyakunin Isshu: one hundred classical Japanese poems."""

from __future__ import annotations

import csv
from dataclasses import dataclass, fields
from pathlib import Path

IMAGE_BASE = "https://gitcode.net/u011570312/OguraHyakuninIsshu/-/raw/master/"
CSV_URL = IMAGE_BASE + "小倉百人一首.csv"
POEM_COUNT = 100

_LABELS = (
    ("●", "番号"),
    ("◉", "歌人"),
    ("○", "上の句"),
    ("○", "下の句"),
    ("◎", "上の句ひらがな"),
    ("◎", "下の句ひらがな"),
)


@dataclass(frozen=True)
class Poem:
    """One poem: its number, poet, the two halves and their kana readings."""

    number: str
    poet: str
    upper: str
    lower: str
    upper_kana: str
    lower_kana: str

    def __str__(self) -> str:
        values = (getattr(self, item.name) for item in fields(self))
        return "".join(
            f"{mark}{label}：{value}\n" for (mark, label), value in zip(_LABELS, values)
        )


def load_poems(path: str | Path) -> list[Poem]:
    """Read the poem table, a header row followed by the 100 poems in order.

    Raises ValueError when the table is not exactly that.
    """
    with open(path, encoding="utf-8", newline="") as handle:
        records = list(csv.reader(handle))
    if not records:
        raise ValueError("invalid csvfile")
    width = len(records[0])
    records = records[1:]
    if len(records) != POEM_COUNT:
        raise ValueError("invalid csvfile")
    poems = []
    for position, record in enumerate(records, start=1):
        if len(record) != width or len(record) != len(_LABELS):
            raise ValueError("invalid csvfile")
        if int(record[0]) != position:
            raise ValueError("invalid csvfile")
        poems.append(Poem(*record))
    return poems


def poem_images(number: int) -> tuple[str, str]:
    """URLs of the card picture and the calligraphy of poem ``number`` (1-100)."""
    if not 1 <= number <= POEM_COUNT:
        raise ValueError("超出范围")
    return (
        f"{IMAGE_BASE}img/{number:03d}.jpg",
        f"{IMAGE_BASE}img/{number:03d}.png",
    )