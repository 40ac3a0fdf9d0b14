"""Day and time parsing shared by the page parser and the query filters."""

import re
from datetime import date
from datetime import datetime
from datetime import time

_DAY_MONTH_RE = re.compile(r"(\d{1,2})\s*/\s*(\d{1,2})")
_STRICT_DAY_MONTH_RE = re.compile(r"\s*(\d{1,2})/(\d{1,2})\s*")


def parse_day_month(text: str, today: date, strict: bool = False) -> date:
    """
    Resolve a ``DD/MM`` string to a date.

    The site never prints a year: a day already past in the current year, or
    one that does not exist this year (29/02), is taken to be next year's.
    Page text is searched for a ``DD/MM`` anywhere (``"Mercredi 12/06"``);
    with ``strict`` the whole string must be ``DD/MM``.

    Raises:
        ValueError: if no valid DD/MM is found in ``text``.
    """
    m = _STRICT_DAY_MONTH_RE.fullmatch(text) if strict else _DAY_MONTH_RE.search(text)
    if not m:
        raise ValueError(f"expected a DD/MM date, got {text!r}")
    day, month = int(m.group(1)), int(m.group(2))
    try:
        resolved = date(today.year, month, day)
    except ValueError:
        resolved = None
    if resolved is None or resolved < today:
        try:
            resolved = date(today.year + 1, month, day)
        except ValueError:
            raise ValueError(f"invalid date {text.strip()!r}") from None
    return resolved


def parse_clock(text: str) -> time:
    """Parse ``HH:MM`` (``20h30`` is accepted too)."""
    cleaned = text.strip().lower().replace("h", ":")
    try:
        return datetime.strptime(cleaned, "%H:%M").time()
    except ValueError:
        raise ValueError(f"expected a HH:MM time, got {text!r}") from None
