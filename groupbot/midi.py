"""Writing simple melodies as MIDI files, reading them back as text, and ear training."""

from __future__ import annotations

import io
import math
import re
import subprocess
from pathlib import Path
from random import Random

import mido

TICKS_PER_QUARTER = 960
TEMPO_BPM = 72
DEFAULT_TIMBRE = 40
VELOCITY = 120

NOTE_VALUES = {
    "C": 60,
    "Db": 61,
    "D": 62,
    "Eb": 63,
    "E": 64,
    "F": 65,
    "Gb": 66,
    "G": 67,
    "Ab": 68,
    "A": 69,
    "Bb": 70,
    "B": 71,
}
_NAMES_BY_PITCH_CLASS = {value % 12: name for name, value in NOTE_VALUES.items()}

_MAX_DELTA = 0x0FFFFFFF
_INTEGER = re.compile(rb"[+-]?[0-9]+")

_PERSONAL_MAX_ERRORS = 3
_TEAM_MAX_ERRORS = 10
_MAX_ROUND = 6
_PERSONAL_BONUS = {0: 1.0, 1: 0.5, 2: 0.2}


def octave(base: int, level: int) -> int:
    """MIDI note of pitch class ``base`` in octave ``level`` (octaves above 10 clamp).

    Arithmetic wraps at a byte, so a flattened C lands on the B below.
    """
    base &= 0xFF
    level &= 0xFF
    if level > 10:
        level = 10
    if level == 0:
        return base
    note = (base + 12 * level) & 0xFF
    if note > 127:
        note -= 12
    return note


def note_name(note: int) -> str:
    """Letter name of a note's pitch class, spelled with flats."""
    return _NAMES_BY_PITCH_CLASS[note % 12]


def parse_note(text: str) -> int:
    """The MIDI note written as a letter, accidentals and an octave, e.g. ``C#6``.

    Characters that are not part of a note are ignored; the octave defaults to 5.
    """
    base = 0
    level = 0
    for char in text.replace(" ", ""):
        if "A" <= char <= "G":
            base = NOTE_VALUES[char] % 12
        elif char == "b":
            base = (base - 1) & 0xFF
        elif char == "#":
            base = (base + 1) & 0xFF
        elif "0" <= char <= "9":
            level = (level * 10 + int(char)) & 0xFF
    if level == 0:
        level = 5
    return octave(base, level)


def validate_timbre(timbre: int) -> int:
    """Check that a General MIDI program number is in range and return it."""
    value = int(timbre)
    if not 0 <= value <= 127:
        raise ValueError("音色应该在0~127之间")
    return value


def _atoi(digits: bytes) -> int:
    return int(digits) if _INTEGER.fullmatch(digits) else 0


def _span(length: int) -> int:
    if length >= 0:
        ticks = (TICKS_PER_QUARTER << length) & 0xFFFFFFFF
    else:
        ticks = TICKS_PER_QUARTER >> -length
    if ticks > _MAX_DELTA:
        raise ValueError(f"note length too long: {length}")
    return ticks


def _is_letter(byte: int) -> bool:
    return ord("A") <= byte <= ord("G")


def _is_digit(byte: int) -> bool:
    return ord("0") <= byte <= ord("9")


def build_midi(text: str, timbre: int = DEFAULT_TIMBRE) -> mido.MidiFile:
    """A one-track MIDI file playing the melody written in ``text``.

    Each note is a letter A-G with optional ``b``/``#``, an octave number and
    ``<n`` for a length of 2**n quarter notes; ``R`` is a rest. Spaces are ignored.
    Raises ValueError on a character that cannot be read.
    """
    program = validate_timbre(timbre)
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("time_signature", numerator=4, denominator=4, time=0))
    track.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(TEMPO_BPM), time=0))
    track.append(mido.MetaMessage("instrument_name", name="Violin", time=0))
    track.append(mido.Message("program_change", channel=0, program=program, time=0))

    data = text.replace(" ", "").encode("utf-8")
    delay = 0
    i = 0
    while i < len(data):
        base = 0
        level = 0
        rest = False
        length_digits = bytearray()
        while True:
            byte = data[i]
            if byte == ord("R"):
                rest = True
                i += 1
            elif _is_letter(byte):
                base = NOTE_VALUES[chr(byte)] % 12
                i += 1
            elif byte == ord("b"):
                base = (base - 1) & 0xFF
                i += 1
            elif byte == ord("#"):
                base = (base + 1) & 0xFF
                i += 1
            elif _is_digit(byte):
                level = (level * 10 + byte - ord("0")) & 0xFF
                i += 1
            elif byte == ord("<"):
                i += 1
                while i < len(data) and (data[i] == ord("-") or _is_digit(data[i])):
                    length_digits.append(data[i])
                    i += 1
            else:
                raise ValueError(f"无法解析第{i}个位置的{chr(byte)}字符")
            if i >= len(data) or _is_letter(data[i]) or data[i] == ord("R"):
                break
        span = _span(_atoi(bytes(length_digits)))
        if rest:
            delay = span
            continue
        if level == 0:
            level = 5
        note = octave(base, level)
        if note > 127:
            raise ValueError(f"note out of range: {note}")
        track.append(mido.Message("note_on", channel=0, note=note, velocity=VELOCITY, time=delay))
        track.append(mido.Message("note_off", channel=0, note=note, velocity=0, time=span))
        delay = 0
    track.append(mido.MetaMessage("end_of_track", time=0))

    midi = mido.MidiFile(type=1, ticks_per_beat=TICKS_PER_QUARTER)
    midi.tracks.append(track)
    return midi


def write_midi(path: str | Path, text: str, timbre: int = DEFAULT_TIMBRE) -> Path:
    """Write the melody to ``path`` unless a file is already there; return the path."""
    target = Path(path)
    if target.exists():
        return target
    build_midi(text, timbre).save(str(target))
    return target


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _power(length: float) -> int | None:
    if length <= 0:
        return None
    return _round_half_away(math.log2(length))


def midi_to_text(data: bytes, track: int) -> str:
    """The melody of one track of a MIDI file in the notation of :func:`build_midi`.

    A track that does not exist yields an empty string.
    """
    midi = mido.MidiFile(file=io.BytesIO(data))
    if not 0 <= track < len(midi.tracks):
        return ""
    text = []
    ticks = 0
    start = 0.0
    end = 0.0
    start_note = 0
    for message in midi.tracks[track]:
        ticks += message.time
        if message.is_meta:
            continue
        sounding = message.type == "note_on" and message.velocity > 0
        if sounding:
            start = float(ticks)
            start_note = message.note
        if message.type == "note_off" or (message.type == "note_on" and message.velocity == 0):
            end = float(ticks)
            if start_note == message.note:
                text.append(note_name(message.note))
                level = message.note // 12
                if level != 5:
                    text.append(str(level))
                power = _power((end - start) / TICKS_PER_QUARTER)
                if power is not None and power >= -4 and power != 0:
                    text.append(f"<{power}")
                start_note = 0
        if sounding and start > end:
            power = _power((start - end) / TICKS_PER_QUARTER)
            if power == 0:
                text.append("R")
            elif power is not None and power >= -4:
                text.append(f"R<{power}")
    return "".join(text)


def render_wav(midi_path: str | Path, wav_path: str | Path) -> Path:
    """Render a MIDI file to WAV with timidity; raises if timidity fails."""
    subprocess.run(
        ["timidity", str(midi_path), "-Ow", "-o", str(wav_path)],
        check=True,
        capture_output=True,
    )
    return Path(wav_path)


class EarTraining:
    """Five rounds of naming a randomly played note.

    Alone, three wrong answers end a round and a right answer scores 1, 0.5
    or 0.2 depending on earlier mistakes; as a team, ten wrong answers end a
    round and any right answer scores 1.
    """

    def __init__(self, team: bool = False, rng: Random | None = None) -> None:
        self.team = team
        self.max_errors = _TEAM_MAX_ERRORS if team else _PERSONAL_MAX_ERRORS
        self.round = 1
        self.errors = 0
        self.finished = False
        self._rng = rng or Random()
        self._scores: dict[int, float] = {}
        self.target = 0
        self.expected = ""
        self._new_target()

    def _new_target(self) -> None:
        self.target = 55 + self._rng.randrange(34)
        self.expected = note_name(self.target) + str(self.target // 12)

    def answer(self, user_id: int, text: str) -> str:
        """Judge one answer and return the reply; the game moves on by itself."""
        if self.finished:
            raise RuntimeError("练习已结束")
        correct = parse_note(text) == self.target
        if not correct:
            self.errors += 1
        if not correct and self.errors != self.max_errors:
            return f"回答错误, 错误次数为{self.errors}, 请继续回答"

        if correct:
            reply = f"恭喜你回答正确, 答案是: {self.expected}"
        else:
            reply = f"回答错误, 答案是: {self.expected}, 错误次数已达3次, 进入下一关"
        if self.team:
            bonus = 1.0 if self.errors != self.max_errors else None
        else:
            bonus = _PERSONAL_BONUS.get(self.errors)
        if bonus is not None:
            self._scores[user_id] = self._scores.get(user_id, 0.0) + bonus
        self.round += 1
        if self.round == _MAX_ROUND:
            self.finished = True
        else:
            self.errors = 0
            self._new_target()
        return reply

    def scores(self) -> dict[int, float]:
        """Points earned so far by each user."""
        return dict(self._scores)