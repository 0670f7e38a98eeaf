"""Helpers for ``mm:ss:ms`` time codes used on the command line and in diagnostics."""

from __future__ import annotations

import re

_TIME_PATTERN = re.compile(r"^(?P<minutes>\d+):(?P<seconds>\d+):(?P<millis>\d+)$")


def parse_time(value: str) -> int:
    """Parses ``mm:ss:ms`` into milliseconds.

    Fields are not range-checked against each other, so ``0:75:0`` is 75 seconds.
    """
    text = str(value).strip()
    match = _TIME_PATTERN.fullmatch(text)
    if not match:
        raise ValueError(f"Invalid time '{value}'. Use mm:ss:ms, e.g. 01:30:000.")
    minutes = int(match.group("minutes"))
    seconds = int(match.group("seconds"))
    millis = int(match.group("millis"))
    return minutes * 60_000 + seconds * 1_000 + millis


def format_time(ms: int) -> str:
    minutes, rest = divmod(ms, 60_000)
    seconds, millis = divmod(rest, 1_000)
    return f"{minutes:02d}:{seconds:02d}:{millis:03d}"
