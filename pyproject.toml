[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "groupbot"
version = "0.1.0"
description = "Building blocks for a group chat bot: scheduled reminders, group management helpers, holiday countdowns, MIDI ear training, song guessing and small web lookups."
requires-python = ">=3.10"
dependencies = [
    "requests",
    "mido",
    "lxml",
]
keywords = [
    "chat",
    "bot",
    "group management",
    "reminders",
    "cron",
    "midi",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Natural Language :: Chinese (Simplified)",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Multimedia :: Sound/Audio :: MIDI",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["groupbot"]

[tool.hatch.build.targets.sdist]
include = [
    "groupbot",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
