import json
from pathlib import Path
from unittest import mock

import pytest

from groupbot.guessmusic import (
    ANIME,
    ANIME2,
    CUT_TIMES,
    GuessGame,
    Reply,
    cut_music,
    fetch_anime,
    fetch_paugram,
    fetch_uomg,
    lottery,
    music_dir,
    normalize_library_path,
    pick_local,
)


class _Rng:
    def __init__(self, *values):
        self._values = list(values)

    def randrange(self, n):
        value = self._values.pop(0)
        assert 0 <= value < n
        return value


class _Response:
    def __init__(self, status=200, content=b""):
        self.status_code = status
        self.content = content


class _Session:
    def __init__(self, api_payload, head_status=200, audio=b"ID3audio"):
        self.api_payload = api_payload
        self.head_status = head_status
        self.audio = audio
        self.gets = []
        self.heads = []

    def get(self, url, headers=None, timeout=None):
        self.gets.append(url)
        if url.endswith(".mp3"):
            return _Response(200, self.audio)
        return _Response(200, json.dumps(self.api_payload).encode("utf-8"))

    def head(self, url, allow_redirects=False, timeout=None):
        self.heads.append(url)
        return _Response(self.head_status)


def test_music_dir_by_mode(tmp_path):
    assert music_dir(tmp_path, ANIME) == tmp_path / "动漫"
    assert music_dir(tmp_path, ANIME2) == tmp_path / "动漫2"
    assert music_dir(tmp_path, "") == tmp_path / "歌榜"


def test_normalize_library_path():
    assert normalize_library_path("C:\\music\\lib") == "C:/music/lib/"
    assert normalize_library_path("/srv/music/") == "/srv/music/"


def test_normalize_library_path_rejects_empty():
    with pytest.raises(ValueError):
        normalize_library_path("")


def test_pick_local_strips_extension_once():
    assert pick_local(["a.mp3.mp3"]) == "a.mp3"
    assert pick_local(["x - y.mp3", "p - q.mp3"], _Rng(1)) == "p - q"


def test_pick_local_empty():
    with pytest.raises(ValueError):
        pick_local([])


def test_lottery_downloads_when_library_empty(tmp_path):
    calls = []

    def fetcher(folder):
        calls.append(folder)
        return "song - singer"

    name, folder = lottery("", tmp_path, fetcher, _Rng())
    assert name == "song - singer"
    assert folder == tmp_path / "歌榜"
    assert folder.is_dir()
    assert calls == [folder]


def test_lottery_empty_library_download_failure(tmp_path):
    def fetcher(folder):
        raise LookupError("the music is missed")

    with pytest.raises(RuntimeError, match="本地数据为0，歌曲下载错误"):
        lottery(ANIME, tmp_path, fetcher, _Rng())


def test_lottery_picks_local_on_heads(tmp_path):
    folder = music_dir(tmp_path, ANIME)
    folder.mkdir(parents=True)
    (folder / "only - one.mp3").write_bytes(b"")

    def fetcher(folder):
        raise AssertionError("should not download")

    assert lottery(ANIME, tmp_path, fetcher, _Rng(0)) == ("only - one", folder)


def test_lottery_downloads_on_tails(tmp_path):
    folder = music_dir(tmp_path, "")
    folder.mkdir(parents=True)
    (folder / "old - song.mp3").write_bytes(b"")
    name, _ = lottery("", tmp_path, lambda f: "new - song", _Rng(1))
    assert name == "new - song"


def test_lottery_falls_back_to_local_when_download_fails(tmp_path):
    folder = music_dir(tmp_path, "")
    folder.mkdir(parents=True)
    (folder / "old - song.mp3").write_bytes(b"")

    def fetcher(folder):
        raise RuntimeError("offline")

    name, _ = lottery("", tmp_path, fetcher, _Rng(1))
    assert name == "old - song"


def test_fetch_paugram_writes_file(tmp_path):
    session = _Session({"title": "Song", "artist": "Band", "link": "https://example.com/s"})
    name = fetch_paugram(tmp_path, session)
    assert name == "Song - Band"
    assert (tmp_path / "Song - Band.mp3").read_bytes() == b"ID3audio"
    assert session.heads == ["https://example.com/s"]
    assert "https://example.com/s.mp3" in session.gets


def test_fetch_paugram_missing_artist(tmp_path):
    session = _Session({"title": "Song", "link": "https://example.com/s"})
    with pytest.raises(LookupError):
        fetch_paugram(tmp_path, session)


def test_fetch_paugram_unreachable(tmp_path):
    session = _Session(
        {"title": "Song", "artist": "Band", "link": "https://example.com/s"}, head_status=404
    )
    with pytest.raises(LookupError):
        fetch_paugram(tmp_path, session)
    assert list(tmp_path.iterdir()) == []


def test_fetch_paugram_keeps_existing_file(tmp_path):
    (tmp_path / "Song - Band.mp3").write_bytes(b"kept")
    session = _Session({"title": "Song", "artist": "Band", "link": "https://example.com/s"})
    assert fetch_paugram(tmp_path, session) == "Song - Band"
    assert (tmp_path / "Song - Band.mp3").read_bytes() == b"kept"
    assert not any(url.endswith(".mp3") for url in session.gets)


def test_fetch_anime_three_part_name(tmp_path):
    payload = {
        "res": {
            "title": "Op",
            "author": "Singer",
            "anime_info": {"title": "Show"},
            "play_url": "https://example.com/p",
        }
    }
    name = fetch_anime(tmp_path, _Session(payload))
    assert name == "Op - Singer - Show"
    assert (tmp_path / "Op - Singer - Show.mp3").exists()


def test_fetch_uomg(tmp_path):
    payload = {"data": {"name": "Hit", "url": "https://example.com/h", "artistsname": "Star"}}
    session = _Session(payload)
    assert fetch_uomg(tmp_path, session) == "Hit - Star"
    assert session.heads == []
    assert (tmp_path / "Hit - Star.mp3").read_bytes() == b"ID3audio"


def test_cut_music_runs_ffmpeg(tmp_path):
    done = mock.Mock(returncode=0, stderr=b"")
    with mock.patch("groupbot.guessmusic.subprocess.run", return_value=done) as run:
        clips = cut_music("a - b", tmp_path / "lib", tmp_path / "out")
    command = run.call_args.args[0]
    assert command[0] == "ffmpeg"
    assert command[-1] == "-hide_banner"
    assert str(tmp_path / "lib" / "a - b.mp3") in command
    for start in CUT_TIMES:
        assert start in command
    assert [clip.name for clip in clips] == ["0.wav", "1.wav", "2.wav"]
    assert all(str(clip) in command for clip in clips)
    assert (tmp_path / "out").is_dir()


def test_cut_music_failure_reports_stderr(tmp_path):
    failed = mock.Mock(returncode=1, stderr=b"bad input")
    with mock.patch("groupbot.guessmusic.subprocess.run", return_value=failed):
        with pytest.raises(RuntimeError, match="bad input"):
            cut_music("a - b", tmp_path, tmp_path / "out")


def test_correct_title_ends_game():
    game = GuessGame("Hello - World", starter_id=1)
    reply = game.answer(1, "-hello")
    assert reply.finished and game.finished
    assert reply.text.startswith("太棒了，你猜对歌曲名了！")
    assert "Hello" in reply.text and "World" in reply.text


def test_correct_singer_ends_game():
    game = GuessGame("Hello - World", starter_id=1)
    reply = game.answer(1, "-World")
    assert reply.finished
    assert reply.text.startswith("太棒了，你猜对歌手名了！")


def test_unknown_singer_answer_forbidden():
    game = GuessGame("Hello - 未知", starter_id=1)
    reply = game.answer(1, "-未知")
    assert reply == Reply("该模式禁止回答“未知”", quote=True)
    assert not game.finished


def test_anime_name_guess():
    game = GuessGame("Op - Singer - Show", mode=ANIME2, starter_id=1)
    reply = game.answer(1, "-Show")
    assert reply.finished
    assert reply.text.startswith("太棒了，你猜对番剧名了！答案是:")
    assert "歌曲出自:Show" in reply.text


def test_cancel_needs_starter():
    game = GuessGame("Hello - World", starter_id=1, team=True)
    assert game.answer(2, "-取消").text == "你无权限取消"
    assert not game.finished
    reply = game.answer(1, "-取消")
    assert reply.finished
    assert reply.text.startswith("游戏已取消")


def test_personal_game_ignores_others():
    game = GuessGame("Hello - World", starter_id=1)
    assert game.answer(2, "-Hello") is None
    assert not game.finished


def test_hints_run_out():
    game = GuessGame("Hello - World", starter_id=1)
    assert game.answer(1, "-提示").clip == 1
    assert game.answer(1, "-提示").clip == 2
    last = game.answer(1, "-提示")
    assert last.text == "已经没有提示了哦"
    assert last.clip is None
    assert not game.waiting


def test_wrong_answers_until_game_over():
    game = GuessGame("Hello - World", starter_id=1)
    replies = [game.answer(1, "-zzz") for _ in range(6)]
    assert [reply.clip for reply in replies[:2]] == [1, 2]
    assert all(reply.text == "答案不对哦，加油啊~" for reply in replies[2:])
    assert not game.finished
    final = game.answer(1, "-zzz")
    assert final.finished
    assert final.text.startswith("次数到了，你没能猜出来。")
    with pytest.raises(RuntimeError):
        game.answer(1, "-Hello")


def test_silence_plays_remaining_clips():
    game = GuessGame("Hello - World", starter_id=1)
    assert game.silence().clip == 1
    assert game.silence().clip == 2
    assert game.silence() is None
    assert not game.waiting


def test_timeout_reveals_answer():
    game = GuessGame("Op - Singer - Show", mode=ANIME2, starter_id=1)
    reply = game.timeout()
    assert reply.finished
    assert reply.text.startswith("猜歌超时，游戏结束")
    assert "歌曲出自:Show" in reply.text
    with pytest.raises(RuntimeError):
        game.silence()


def test_malformed_song_name():
    with pytest.raises(ValueError):
        GuessGame("Only - Two", mode=ANIME2)
    with pytest.raises(ValueError):
        GuessGame("NoSeparator")