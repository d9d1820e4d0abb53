"""Song guessing: picking a song, cutting clips from it and judging the guesses."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from random import Random
from typing import Any, Callable, Sequence

import requests

PAUGRAM_API = "https://api.paugram.com/acgm/?list=1"
PAUGRAM_REFERER = "https://api.paugram.com/"
ANIME_API = "https://anime-music.jijidown.com/api/v2/music"
ANIME_REFERER = "https://anime-music.jijidown.com/"
UOMG_API = "https://api.uomg.com/api/rand.music?sort=%E7%83%AD%E6%AD%8C%E6%A6%9C&format=json"
UOMG_REFERER = "https://api.uomg.com/api/rand.music"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/87.0.4280.88 Safari/537.36 Edg/87.0.664.66"
)

ANIME = "-动漫"
ANIME2 = "-动漫2"

# Start points of the three ten-second clips (hh:mm:ss).
CUT_TIMES = ("00:00:05", "00:00:30", "00:01:00")
CLIP_SECONDS = 10

SILENCE_SECONDS = 40
WARNING_SECONDS = 105
TIMEOUT_SECONDS = 120

INTRO = "正在准备歌曲,请稍等\n回答“-[歌曲名称|歌手|提示|取消]”\n一共3段语音，6次机会"
INTRO_ANIME2 = "正在准备歌曲,请稍等\n回答“-[歌曲名称|歌手|番剧|提示|取消]”\n一共3段语音，6次机会"
LAST_CALL = "猜歌游戏，你还有15s作答时间"

_MISSING = "the music is missed"
_TIMEOUT = 30
_MAX_CLIP = 2
_MAX_ANSWERS = 6

Fetcher = Callable[[Path], str]


def music_dir(root: str | Path, mode: str) -> Path:
    """Folder of the song library used by ``mode``."""
    if mode == ANIME:
        sub = "动漫"
    elif mode == ANIME2:
        sub = "动漫2"
    else:
        sub = "歌榜"
    return Path(root) / sub


def normalize_library_path(path: str) -> str:
    """Library root with forward slashes and a trailing slash."""
    if not path:
        raise ValueError("请输入正确的路径!")
    path = path.replace("\\", "/")
    if not path.endswith("/"):
        path += "/"
    return path


def pick_local(files: Sequence[str], rng: Random | None = None) -> str:
    """Song name of a random file in the library, without its ``.mp3``."""
    if not files:
        raise ValueError("no local music")
    rng = rng or Random()
    chosen = files[rng.randrange(len(files))] if len(files) > 1 else files[0]
    return chosen.replace(".mp3", "", 1)


def _default_fetcher(mode: str) -> Fetcher:
    if mode == ANIME:
        return fetch_paugram
    if mode == ANIME2:
        return fetch_anime
    return fetch_uomg


def lottery(
    mode: str,
    root: str | Path,
    fetcher: Fetcher | None = None,
    rng: Random | None = None,
) -> tuple[str, Path]:
    """Pick a song for ``mode``, from the local library or freshly downloaded.

    Returns the song name and the folder its ``.mp3`` lives in.
    """
    rng = rng or Random()
    fetcher = fetcher or _default_fetcher(mode)
    folder = music_dir(root, mode)
    try:
        folder.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise RuntimeError(f"[生成文件夹错误]ERROR:{error}") from error
    try:
        files = sorted(entry.name for entry in folder.iterdir())
    except OSError as error:
        raise RuntimeError(f"[读取本地列表错误]ERROR:{error}") from error

    if not files:
        try:
            return fetcher(folder), folder
        except Exception as error:
            raise RuntimeError(f"[本地数据为0，歌曲下载错误]ERROR:{error}") from error
    if rng.randrange(2) == 0:
        return pick_local(files, rng), folder
    try:
        return fetcher(folder), folder
    except Exception:
        return pick_local(files, rng), folder


def _session(session: requests.Session | None) -> requests.Session:
    return session if session is not None else requests.Session()


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value, ensure_ascii=False)


def _field(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _request_json(session: requests.Session, url: str, referer: str) -> Any:
    response = session.get(
        url, headers={"Referer": referer, "User-Agent": USER_AGENT}, timeout=_TIMEOUT
    )
    if response.status_code != 200:
        raise RuntimeError(f"code {response.status_code}")
    try:
        return json.loads(response.content)
    except ValueError:
        return None


def _check_reachable(session: requests.Session, url: str) -> None:
    try:
        response = session.head(url, allow_redirects=True, timeout=_TIMEOUT)
    except requests.RequestException as error:
        raise LookupError(_MISSING) from error
    if response.status_code != 200:
        raise LookupError(_MISSING)


def _download(session: requests.Session, url: str, target: Path) -> None:
    if target.exists():
        return
    response = session.get(url + ".mp3", timeout=_TIMEOUT)
    if response.status_code != 200:
        raise RuntimeError(f"code {response.status_code}")
    target.write_bytes(response.content)


def fetch_paugram(folder: str | Path, session: requests.Session | None = None) -> str:
    """Download a random anime song into ``folder``; return ``title - artist``."""
    session = _session(session)
    data = _request_json(session, PAUGRAM_API, PAUGRAM_REFERER)
    name = _text(_field(data, "title"))
    artist = _text(_field(data, "artist"))
    url = _text(_field(data, "link"))
    if not name or not artist:
        raise LookupError(_MISSING)
    music_name = f"{name} - {artist}"
    _check_reachable(session, url)
    _download(session, url, Path(folder) / f"{music_name}.mp3")
    return music_name


def fetch_anime(folder: str | Path, session: requests.Session | None = None) -> str:
    """Download a random anime song into ``folder``; return ``title - artist - anime``."""
    session = _session(session)
    data = _request_json(session, ANIME_API, ANIME_REFERER)
    name = _text(_field(data, "res", "title"))
    artist = _text(_field(data, "res", "author"))
    anime = _text(_field(data, "res", "anime_info", "title"))
    url = _text(_field(data, "res", "play_url"))
    if not name or not artist:
        raise LookupError(_MISSING)
    music_name = f"{name} - {artist} - {anime}"
    _check_reachable(session, url)
    _download(session, url, Path(folder) / f"{music_name}.mp3")
    return music_name


def fetch_uomg(folder: str | Path, session: requests.Session | None = None) -> str:
    """Download a random chart song into ``folder``; return ``name - artist``."""
    session = _session(session)
    data = _field(_request_json(session, UOMG_API, UOMG_REFERER), "data")
    name = _text(_field(data, "name"))
    url = _text(_field(data, "url"))
    artist = _text(_field(data, "artistsname"))
    music_name = f"{name} - {artist}"
    _download(session, url, Path(folder) / f"{music_name}.mp3")
    return music_name


def cut_music(name: str, folder: str | Path, output: str | Path) -> list[Path]:
    """Cut three ten-second WAV clips from a song with ffmpeg; return their paths."""
    out_dir = Path(output)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise RuntimeError(f"[生成歌曲目录错误]ERROR:{error}") from error
    clips = [out_dir.resolve() / f"{index}.wav" for index in range(len(CUT_TIMES))]
    command = ["ffmpeg", "-y", "-i", str(Path(folder) / f"{name}.mp3")]
    for start, clip in zip(CUT_TIMES, clips):
        command += ["-ss", start, "-t", str(CLIP_SECONDS), str(clip)]
    command.append("-hide_banner")
    try:
        result = subprocess.run(command, capture_output=True)
    except OSError as error:
        raise RuntimeError(f"[生成歌曲错误]ERROR:{error}") from error
    if result.returncode != 0:
        stderr = result.stderr
        text = stderr.decode("utf-8", "replace") if isinstance(stderr, bytes) else str(stderr or "")
        raise RuntimeError(f"[生成歌曲错误]ERROR:{text}")
    return clips


@dataclass(frozen=True)
class Reply:
    """What the game says back: text, a clip to play, and whether it quotes the guess."""

    text: str
    clip: int | None = None
    quote: bool = False
    finished: bool = False


class GuessGame:
    """One round of guessing a song from up to three clips.

    ``waiting`` tells whether the silence timer should be running; the caller
    calls :meth:`silence` when it expires and :meth:`timeout` after the
    overall limit with no guesses.
    """

    def __init__(self, music_name: str, mode: str = "", starter_id: int = 0, team: bool = False) -> None:
        self.mode = mode
        self.starter_id = starter_id
        self.team = team
        self.parts = music_name.split(" - ")
        needed = 3 if mode == ANIME2 else 2
        if len(self.parts) < needed:
            raise ValueError(f"malformed song name: {music_name!r}")
        self.clip = 0
        self.answers = 0
        self.waiting = True
        self.finished = False

    @property
    def title(self) -> str:
        return self.parts[0]

    @property
    def singer(self) -> str:
        return self.parts[1]

    @property
    def anime(self) -> str:
        return self.parts[2] if self.mode == ANIME2 else ""

    def _details(self) -> str:
        text = f"\n歌名:{self.title}\n歌手:{self.singer}"
        if self.mode == ANIME2:
            text += f"\n歌曲出自:{self.anime}"
        return text

    def _end(self, text: str) -> Reply:
        self.finished = True
        self.waiting = False
        return Reply(text, quote=True, finished=True)

    def _check_open(self) -> None:
        if self.finished:
            raise RuntimeError("游戏已结束")

    @staticmethod
    def _matches(expected: str, guess: str) -> bool:
        return guess in expected or expected.casefold() == guess.casefold()

    def answer(self, user_id: int, text: str) -> Reply | None:
        """Judge one ``-guess`` message; None when the sender is not playing."""
        self._check_open()
        if not self.team and user_id != self.starter_id:
            return None
        self.waiting = True
        guess = text.replace("-", "", 1)

        if guess == "取消":
            if user_id == self.starter_id:
                return self._end("游戏已取消，猜歌答案是" + self._details())
            return Reply("你无权限取消", quote=True)
        if guess == "提示":
            self.clip += 1
            if self.clip > _MAX_CLIP:
                self.waiting = False
                return Reply("已经没有提示了哦", quote=True)
            return Reply("再听这段音频，要仔细听哦", clip=self.clip, quote=True)
        if self._matches(self.title, guess):
            return self._end("太棒了，你猜对歌曲名了！答案是" + self._details())
        if self.singer == "未知" and guess == "未知":
            return Reply("该模式禁止回答“未知”", quote=True)
        if self._matches(self.singer, guess):
            return self._end("太棒了，你猜对歌手名了！答案是" + self._details())
        if self.mode == ANIME2 and self._matches(self.anime, guess):
            return self._end("太棒了，你猜对番剧名了！答案是:" + self._details())

        self.clip += 1
        if self.clip > _MAX_CLIP and self.answers < _MAX_ANSWERS:
            self.waiting = False
            self.answers += 1
            return Reply("答案不对哦，加油啊~", quote=True)
        if self.clip > _MAX_CLIP:
            return self._end("次数到了，你没能猜出来。\n答案是:" + self._details())
        self.answers += 1
        return Reply("答案不对，再听这段音频，要仔细听哦", clip=self.clip, quote=True)

    def silence(self) -> Reply | None:
        """Nobody guessed for a while: play the next clip, or None when none is left."""
        self._check_open()
        self.clip += 1
        if self.clip > _MAX_CLIP:
            self.waiting = False
            return None
        return Reply("好像有些难度呢，再听这段音频，要仔细听哦", clip=self.clip)

    def timeout(self) -> Reply:
        """The time is up: end the game and reveal the answer."""
        self._check_open()
        return self._end("猜歌超时，游戏结束\n答案是:" + self._details())