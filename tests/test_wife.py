from datetime import date

import pytest

from groupbot.wife import (
    NO_WIFE,
    add_wife,
    can_add_wife,
    clean_wife_name,
    daily_seed,
    draw_wife,
    remove_wife,
)


def test_daily_seed_stable_within_day():
    assert daily_seed("alice", date(2022, 6, 1)) == daily_seed("alice", date(2022, 6, 1))
    assert daily_seed("alice", date(2022, 6, 1)) != daily_seed("alice", date(2022, 6, 2))


def test_draw_from_missing_folder(tmp_path):
    with pytest.raises(LookupError, match=NO_WIFE):
        draw_wife(tmp_path / "none", "alice", date(2022, 6, 1))


def test_draw_from_empty_folder(tmp_path):
    with pytest.raises(LookupError):
        draw_wife(tmp_path, "alice", date(2022, 6, 1))


def test_draw_single(tmp_path):
    add_wife(tmp_path, "only", b"x")
    assert draw_wife(tmp_path, "bob", date(2022, 6, 1)) == "only"


def test_draw_many_is_stable(tmp_path):
    names = {"a", "b", "c", "d"}
    for name in names:
        add_wife(tmp_path, name, b"x")
    first = draw_wife(tmp_path, "bob", date(2022, 6, 1))
    assert first in names
    assert draw_wife(tmp_path, "bob", date(2022, 6, 1)) == first


def test_clean_wife_name():
    assert clean_wife_name("添加wife 小 明/\\", "添加wife") == "小明"
    assert clean_wife_name("删除wife删除wife x", "删除wife") == "x"


def test_can_add_wife():
    assert can_add_wife(1, False) is True
    assert can_add_wife(0, False) is False
    assert can_add_wife(0, True) is True


def test_add_and_remove(tmp_path):
    folder = tmp_path / "grp"
    path = add_wife(folder, "w", b"data")
    assert path.read_bytes() == b"data"
    remove_wife(folder, "w")
    assert not path.exists()


def test_remove_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        remove_wife(tmp_path, "ghost")


def test_empty_name_rejected(tmp_path):
    with pytest.raises(ValueError):
        add_wife(tmp_path, "", b"x")
    with pytest.raises(ValueError):
        remove_wife(tmp_path, "")