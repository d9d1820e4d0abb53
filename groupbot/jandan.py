"""A store of pictures scraped from a picture board, and its updater."""

from __future__ import annotations

import re
import sqlite3
import threading
from pathlib import Path
from typing import Callable

import requests
from lxml import html

BOARD_URL = "http://jandan.net/pic"

_POLY = 0xD800000000000000
_MASK = 0xFFFFFFFFFFFFFFFF
_PAGE_XPATH = "//*[@id='comments']/div[2]/div/span[@class='current-comment-page']/text()"
_PICTURE_XPATH = "//*[@class='view_img_link']"
_PREVIOUS_XPATH = (
    "//*[@id='comments']/div[@class='comments']/div[@class='cp-pagenavi']"
    "/a[@class='previous-comment-page']"
)
_DIGITS = re.compile(r"\d+")


def _make_table() -> list[int]:
    table = []
    for value in range(256):
        crc = value
        for _ in range(8):
            crc = (crc >> 1) ^ _POLY if crc & 1 else crc >> 1
        table.append(crc)
    return table


_TABLE = _make_table()


def picture_id(url: str) -> int:
    """CRC-64 (ISO polynomial) of the URL, used as the picture's id."""
    crc = _MASK
    for byte in url.encode("utf-8"):
        crc = _TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ _MASK


def _signed(value: int) -> int:
    return value - (1 << 64) if value >= 1 << 63 else value


class PictureStore:
    """SQLite table of picture URLs keyed by :func:`picture_id`."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS picture (id INTEGER PRIMARY KEY, url TEXT NOT NULL)"
            )

    def insert(self, url: str) -> int:
        """Store a URL and return its id."""
        key = picture_id(url)
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO picture (id, url) VALUES (?, ?)", (_signed(key), url)
            )
        return key

    def contains(self, url: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM picture WHERE id = ?", (_signed(picture_id(url)),)
            ).fetchone()
        return row is not None

    def random(self) -> str:
        """A random stored URL; raises LookupError when the store is empty."""
        with self._lock:
            row = self._conn.execute(
                "SELECT url FROM picture ORDER BY RANDOM() LIMIT 1"
            ).fetchone()
        if row is None:
            raise LookupError("no pictures stored")
        return row[0]

    def count(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM picture").fetchone()[0]

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> PictureStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _default_fetch(url: str) -> str:
    response = requests.get(url, timeout=30)
    response.raise_for_status()
    return response.text


def _attribute(element, index: int) -> str:
    values = list(element.attrib.values())
    if len(values) <= index:
        raise ValueError("unexpected page layout")
    return values[index]


def update_pictures(
    store: PictureStore,
    fetch_page: Callable[[str], str] | None = None,
    start_url: str = BOARD_URL,
) -> int:
    """Walk back through the board, storing new pictures until a known one appears.

    Returns how many pictures were added.
    """
    fetch = fetch_page or _default_fetch
    first = html.fromstring(fetch(start_url))
    texts = first.xpath(_PAGE_XPATH)
    match = _DIGITS.search(str(texts[0])) if texts else None
    if match is None:
        raise ValueError("page count not found")
    page_total = int(match.group())

    added = 0
    url = start_url
    for page in range(page_total):
        doc = html.fromstring(fetch(url))
        for link in doc.xpath(_PICTURE_XPATH):
            picture = "https:" + _attribute(link, 0)
            if store.contains(picture):
                return added
            store.insert(picture)
            added += 1
        if page != page_total - 1:
            previous = doc.xpath(_PREVIOUS_XPATH)
            if not previous:
                raise ValueError("previous page link not found")
            url = "https:" + _attribute(previous[0], 1)
    return added