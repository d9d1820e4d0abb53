"""Small text lookups: GitHub repositories, abbreviations, slogans and image ratings."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import requests

GITHUB_SEARCH_URL = "https://api.github.com/search/repositories"
GITHUB_CARD_URL = "https://opengraph.githubassets.com/0/"
NBNHHSH_URL = "https://lab.magiconch.com/api/nbnhhsh/guess"
JUEJUEZI_URL = "https://www.offjuan.com/api/juejuezi/text"
JUEJUEZI_REFERER = "https://juejuezi.offjuan.com/"

_GITHUB_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/88.0.4324.182 Safari/537.36"
)
_JUEJUEZI_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
)
_TIMEOUT = 30
_THRESHOLD = 0.3


def _session(session: requests.Session | None) -> requests.Session:
    return session if session is not None else requests.Session()


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _integer(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def not_null(text: str, default: str) -> str:
    """``text``, or ``default`` when it is empty."""
    return text if text else default


def format_repo(repo: dict) -> str:
    """Text summary of one repository from the search results."""
    license_info = repo.get("license")
    license_key = _text(license_info.get("key")) if isinstance(license_info, dict) else ""
    return (
        f"{_text(repo.get('full_name'))}\n"
        f"Description: {_text(repo.get('description'))}\n"
        f"Star/Fork/Issue: {_integer(repo.get('watchers'))}/{_integer(repo.get('forks'))}"
        f"/{_integer(repo.get('open_issues'))}\n"
        f"Language: {not_null(_text(repo.get('language')), 'None')}\n"
        f"License: {not_null(license_key.upper(), 'None')}\n"
        f"Last pushed: {_text(repo.get('pushed_at'))}\n"
        f"Jump: {_text(repo.get('html_url'))}\n"
    )


def search_repository(keyword: str, session: requests.Session | None = None) -> dict:
    """The best GitHub repository match for ``keyword``.

    Raises RuntimeError on a non-200 reply and LookupError when nothing matches.
    """
    response = _session(session).get(
        GITHUB_SEARCH_URL,
        params={"q": keyword},
        headers={"User-Agent": _GITHUB_UA},
        timeout=_TIMEOUT,
    )
    if response.status_code != 200:
        raise RuntimeError(f"code {response.status_code}")
    info = response.json()
    items = info.get("items") or []
    if _integer(info.get("total_count")) == 0 or not items:
        raise LookupError("没有找到这样的仓库")
    return items[0]


def parse_guesses(payload: Any) -> list[str]:
    """Expansions from an abbreviation lookup reply, or its input suggestions."""
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
        return []
    first = payload[0]
    values = first["trans"] if "trans" in first else first.get("inputting")
    if not isinstance(values, list):
        return []
    return [value if isinstance(value, str) else json.dumps(value, ensure_ascii=False) for value in values]


def guess_abbreviation(text: str, session: requests.Session | None = None) -> list[str]:
    """Ask the abbreviation service what a pinyin-initial abbreviation stands for."""
    response = _session(session).post(NBNHHSH_URL, data={"text": text}, timeout=_TIMEOUT)
    return parse_guesses(response.json())


def juejuezi_payload(verb: str, noun: str) -> str:
    """Request body for the slogan generator."""
    return f'{{"verb":"{verb}","noun":"{noun}"}}'


def request_juejuezi(verb: str, noun: str, session: requests.Session | None = None) -> str:
    """Generate a slogan from a verb and a noun."""
    response = _session(session).post(
        JUEJUEZI_URL,
        data=juejuezi_payload(verb, noun).encode("utf-8"),
        headers={"Referer": JUEJUEZI_REFERER, "User-Agent": _JUEJUEZI_UA},
        timeout=_TIMEOUT,
    )
    try:
        body = json.loads(response.content)
    except ValueError:
        return ""
    return _text(body.get("text")) if isinstance(body, dict) else ""


@dataclass(frozen=True)
class NsfwScores:
    """Class probabilities returned by an image classifier."""

    drawings: float = 0.0
    hentai: float = 0.0
    neutral: float = 0.0
    porn: float = 0.0
    sexy: float = 0.0


def _flags(scores: NsfwScores) -> list[str]:
    flags = []
    if scores.hentai > _THRESHOLD:
        flags.append(" hentai")
    if scores.porn > _THRESHOLD:
        flags.append(" porn")
    if scores.sexy > _THRESHOLD:
        flags.append(" hso")
    return flags


def judge(scores: NsfwScores) -> str:
    """Verdict for an image someone asked to have rated."""
    if scores.neutral > _THRESHOLD:
        return "普通哦"
    kind = "二次元" if scores.drawings > _THRESHOLD or scores.neutral < _THRESHOLD else "三次元"
    return kind + "".join(_flags(scores))


def auto_judge(scores: NsfwScores) -> str | None:
    """Verdict for an image seen in passing, or None when it is unremarkable."""
    if scores.neutral > _THRESHOLD:
        return None
    flags = _flags(scores)
    if not flags:
        return None
    kind = "二次元" if scores.drawings > _THRESHOLD else "三次元"
    return kind + "".join(flags)