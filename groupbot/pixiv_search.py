"""Keyword search of illustrations and their text summaries."""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Sequence
from urllib.parse import quote_plus

import requests

SEARCH_URL = "https://api.pixivel.moe/v2/pixiv/illust/search/"
REFERER = "https://pixivel.moe/"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/94.0.4606.61 Safari/537.36"
)
_TIMEOUT = 30
_HREF = re.compile(r'<a href=".*">')


def clean_description(text: str) -> str:
    """Description with line breaks restored and links stripped."""
    text = text.replace("<br />", "\n").replace("</a>", "")
    return _HREF.sub("", text)


def format_tags(tags: Sequence[Mapping[str, Any]]) -> str:
    """Tags as ``#name (translation)`` lines, each preceded by a newline."""
    parts = []
    for tag in tags:
        parts.append("\n#" + str(tag.get("name") or ""))
        translation = tag.get("translation") or ""
        if translation:
            parts.append(f" ({translation})")
    return "".join(parts)


def format_illust(illust: Mapping[str, Any], user_name: str, user_id: int) -> str:
    """Text shown alongside a found illustration."""
    return (
        f"{illust.get('width', 0)}x{illust.get('height', 0)}\n"
        f"标题: {illust.get('title', '')}\n"
        f"副标题: {illust.get('altTitle', '')}\n"
        f"ID: {illust.get('id', 0)}\n"
        f"画师: {user_name} ({user_id})\n"
        f"分级:{illust.get('sanity', 0)}\n"
        + clean_description(illust.get("description") or "")
        + format_tags(illust.get("tags") or [])
    )


def search_illusts(keyword: str, session: requests.Session | None = None) -> list[dict]:
    """Illustrations matching ``keyword``; raises RuntimeError on a service error."""
    session = session if session is not None else requests.Session()
    response = session.get(
        SEARCH_URL + quote_plus(keyword) + "?page=0",
        headers={"Referer": REFERER, "User-Agent": USER_AGENT},
        timeout=_TIMEOUT,
    )
    if response.status_code != 200:
        raise RuntimeError(f"code {response.status_code}")
    result = json.loads(response.content)
    if result.get("error"):
        raise RuntimeError(result.get("message") or "")
    data = result.get("data") or {}
    return list(data.get("illusts") or [])