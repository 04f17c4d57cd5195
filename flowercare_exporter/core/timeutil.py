from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration such as "2m", "90s", "1h30m" or "-5s".
    A bare number is taken as seconds.
    """
    s = text.strip()
    if not s:
        raise ValueError("Empty duration")

    sign = 1
    if s[0] in "+-":
        sign = -1 if s[0] == "-" else 1
        s = s[1:]

    try:
        return sign * timedelta(seconds=float(s))
    except ValueError:
        pass

    total = timedelta()
    pos = 0
    for m in _DURATION_PART.finditer(s):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _UNITS[m.group(2)]
        pos = m.end()

    if pos != len(s) or pos == 0:
        raise ValueError(f"Invalid duration: {text!r}")
    return sign * total
