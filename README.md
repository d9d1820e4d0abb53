# groupbot

Building blocks for a group chat bot. Each module does one job. Where it
needs a network session, a random generator, the current time or a way to
fetch a page, it takes that as an argument. You can use the modules inside
any bot framework, and you can test them without a live chat connection.

## What is inside

### Scheduled reminders

- `groupbot.timer` defines the `Timer` dataclass. Its `packed` field holds
  an enable flag plus month, day, weekday (Sunday is 0), hour and minute.
  They are exposed as the properties `enabled`, `month`, `day`, `week`,
  `hour` and `minute`, and a value of `-1` means "every".
  - `Timer.info()` returns the canonical description, prefixed by
    `[group id]`.
  - `Timer.timer_id()` returns a stable 32-bit id taken from the MD5 of that
    description.
  - `Timer.message()` returns the message segments to send: an "at all"
    segment, the alert text and, when a URL is set, an image.
  - `filled_timer` builds a timer from the parts of a reminder command, which
    may be written with Chinese numerals. When the input is invalid, the
    timer stays disabled and its `alert` says why.
  - `filled_cron_timer` builds a timer driven by a cron expression.
  - `chinese_num_to_int` and `chinese_char_to_int` convert numerals. `每`
    means -1, and `日`/`天` stand for Sunday.
- `groupbot.schedule` handles calendar timers.
  - `next_wake_time(timer, now)` works out when the timer should next be
    checked.
  - `should_fire(timer, now)` says whether an enabled timer is due.
  - `first_weekday` finds the first given weekday of a month.
- `groupbot.cron` parses five-field cron lines and the `@daily`, `@hourly`
  and similar shorthands. `parse_cron` returns a `CronSchedule`, which has
  `matches(moment)` and `next_after(moment)`.
- `groupbot.clock` keeps the registered timers.
  - `TimerStore` persists timers in SQLite (in memory by default).
  - `Clock(store, send)` loads the stored timers. It offers
    `register_timer`, `cancel_timer`, `list_timers` and `get_timer`.
  - `run_pending(now)` calls `send(timer)` for every timer due in that
    minute. Each timer fires at most once per minute.
  - `start()` and `stop()` run those checks in a background thread at the
    start of every minute.
  - A cron timer whose expression does not parse is rejected, and its
    `alert` holds the reason.

### Group management

`groupbot.manager` holds the logic behind group administration.

- `parse_ban_minutes` converts an amount and a unit (minutes, hours or days)
  into minutes. English unit names count only when `allow_english` is set.
  The result is capped at 43199.
- `render_welcome` fills the `{at}`, `{nickname}`, `{avatar}`, `{uid}`,
  `{gid}` and `{groupname}` placeholders of a greeting or farewell template.
- `unescape_brackets` turns `&#91;`/`&#93;` back into `[`/`]`.
- `toggle_verification` and `toggle_gist_approval` switch feature bits in
  the per-group data word according to words such as `开启` or `关闭`. They
  return `None` for an unknown word.
- `make_quiz` returns two addends below 100 and their sum, for a newcomer to
  answer.
- `pick_lucky_member` picks at random among the ten members who spoke most
  recently.
- Join requests can be approved through a gist. The applicant's gist holds a
  recent Unix timestamp in a file named after the MD5 of the group id.
  - `gist_url` builds the raw URL of that file.
  - `parse_join_answer` reads the `user/hash` answer from the request
    comment.
  - `check_new_user` fetches the gist and accepts a timestamp less than ten
    minutes away from now. It records the approved user.
- `ManagerStore` keeps welcome texts, farewell texts and approved GitHub
  users in SQLite.

### Holidays

`groupbot.holiday` builds the daily "slacker reminder".

- `Holiday.describe(now)` counts down to a holiday, or says that it is on or
  over.
- `weekend_message` counts down to the weekend.
- `daily_reminder` joins the date, a greeting, the weekend countdown and
  each holiday's countdown into one text.
- `parse_holiday` reads the `days_year_month_day` form in which a holiday is
  stored. `format_holiday` returns the `holiday/<name>` key and that value.

### Music

- `groupbot.midi` handles melodies written as text.
  - Notation: a note is a letter `A`–`G` with optional `b`/`#`, an optional
    octave number (5 by default) and `<n` for a length of 2**n quarter
    notes. `R` is a rest, and spaces are ignored.
  - `build_midi` turns such text into a one-track `mido.MidiFile`. It raises
    `ValueError` on a character it cannot read.
  - `write_midi` saves that file unless the path already exists.
  - `midi_to_text` turns one track of a MIDI file back into this notation.
  - `parse_note`, `note_name` and `octave` work on single notes.
  - `validate_timbre` checks a program number in the range 0–127.
  - `render_wav` runs the external `timidity` program to make a WAV file.
  - `EarTraining` runs five rounds of naming a random note, alone or as a
    team, and keeps the scores.
- `groupbot.guessmusic` runs the song-guessing game.
  - `lottery` picks a song for a mode (`""`, `"-动漫"`, `"-动漫2"`). It takes
    the song from the local library, or downloads one with `fetch_uomg`,
    `fetch_paugram` or `fetch_anime`.
  - `music_dir`, `normalize_library_path` and `pick_local` help with the
    library folders.
  - `cut_music` runs the external `ffmpeg` program to cut three ten-second
    WAV clips.
  - `GuessGame` judges guesses and hints through `answer`. It also handles
    silence timeouts through `silence` and the final timeout through
    `timeout`. Each of these returns a `Reply`.

### Small lookups and collections

- `groupbot.textapis`:
  - GitHub repository search: `search_repository`, `format_repo` and
    `not_null`.
  - Pinyin abbreviation lookup: `guess_abbreviation` and `parse_guesses`.
  - The "juejuezi" slogan generator: `request_juejuezi` and
    `juejuezi_payload`.
  - Verdicts on image-classifier scores: `NsfwScores`, `judge` and
    `auto_judge`.
- `groupbot.pixiv_search`: `search_illusts` searches illustrations by
  keyword. `format_illust`, `format_tags` and `clean_description` produce
  the accompanying text.
- `groupbot.hyaku`:
  - `load_poems` reads the Ogura Hyakunin Isshu CSV (a header row plus 100
    poems) into `Poem` records.
  - `poem_images` returns the two image URLs for a poem number.
- `groupbot.wife` manages a per-group picture folder.
  - `draw_wife` draws the same picture for the same name all day, seeded by
    `daily_seed`.
  - `add_wife` and `remove_wife` change the folder.
  - `clean_wife_name` and `can_add_wife` check names and permissions.
- `groupbot.jandan` collects picture links from a paged picture board.
  - `PictureStore` keeps them in SQLite, keyed by the CRC-64 value of
    `picture_id`.
  - `update_pictures` walks back page by page until it meets a link it
    already has.

## Example

```python
from groupbot.timer import chinese_num_to_int, filled_timer
from groupbot.midi import parse_note

chinese_num_to_int("十二")   # 12
parse_note("A4")             # 57

timer = filled_timer(
    ["", "12", "每周", "8", "30", "", "早安"],  # month, day/week, hour, minute, url, text
    0,      # bot id
    10001,  # group id
    False,  # fill the url and alert too, not only the date
)
print(timer.info(), timer.timer_id())
```

## What it does not do

This package does not connect to a chat service and has no command line.
The parts that connect to a chat service are not included:

- receiving messages
- matching commands
- checking permissions
- sending replies

A host program has to do those jobs and call these functions itself. Some
other things are missing as well:

- `Clock` only calls the `send` callback you give it.
- There is no image classifier; `judge` works on scores you supply.
- The poem CSV is not downloaded for you.

## Requirements

- Python 3.10 or newer.
- `requests`, `mido` and `lxml`, which are installed with the package.
- The external programs `timidity` (for `render_wav`) and `ffmpeg` (for
  `cut_music`), which must be on `PATH`.

The tests use pytest, which the `test` extra installs.