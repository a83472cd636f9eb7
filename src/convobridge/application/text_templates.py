"""Token substitution for adaptive-card text.

Card text may embed ``{{DATE(iso, format)}}`` and ``{{TIME(iso)}}``
placeholders. Clients of the push protocol cannot render them, so they
are expanded before translation. Unknown or malformed placeholders are
left exactly as written.
"""

from __future__ import annotations

import re
from datetime import datetime

_PLACEHOLDER = re.compile(r"\{\{(.+?)\}\}")
_ARGUMENTS = re.compile(r"^\s*(?P<name>[A-Z]+)\s*\((?P<args>.*)\)\s*$", re.DOTALL)

_WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def substitute_tokens(text: str) -> str:
    """Expand every ``{{...}}`` placeholder in ``text``, left to right."""
    if "{{" not in text:
        return text
    return _PLACEHOLDER.sub(_render_placeholder, text)


def ordinal_suffix(day: int) -> str:
    """Return the English ordinal suffix for a day of the month."""
    if 11 <= day % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def format_date(value: datetime, style: str) -> str:
    """Render a date in ``long``, ``short`` or compact ``D/M/YYYY`` form."""
    style = style.strip().lower()
    day = f"{value.day}{ordinal_suffix(value.day)}"
    weekday = _WEEKDAYS[value.weekday()]
    month = _MONTHS[value.month - 1]
    if style == "long":
        return f"{weekday}, {month} {day}, {value.year}"
    if style == "short":
        return f"{weekday[:3]}, {month[:3]} {day}, {value.year}"
    return f"{value.day}/{value.month}/{value.year}"


def format_time(value: datetime) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO 8601 date or timestamp, accepting a trailing ``Z``.

    Raises:
        ValueError: If ``raw`` is not ISO 8601.
    """
    raw = raw.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


def _render_placeholder(match: re.Match[str]) -> str:
    original = match.group(0)
    parsed = _ARGUMENTS.match(match.group(1))
    if parsed is None:
        return original

    name = parsed.group("name")
    args = [arg.strip() for arg in parsed.group("args").split(",")]
    try:
        if name.startswith("DATE"):
            style = args[1] if len(args) > 1 else ""
            return format_date(parse_timestamp(args[0]), style)
        if name.startswith("TIME"):
            return format_time(parse_timestamp(args[0]))
    except ValueError:
        return original
    return original
