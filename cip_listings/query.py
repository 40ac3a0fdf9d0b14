"""
Query construction and rendering.

Turns command-line filter values into :class:`QueryOptions`, groups query
results by cinema or film, and renders listings and seance details as text.
"""

from datetime import date
from datetime import time
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from cip_listings.dates import parse_clock
from cip_listings.dates import parse_day_month
from cip_listings.errors import QueryValidationError
from cip_listings.models import GroupBy
from cip_listings.models import QueryOptions
from cip_listings.models import SeanceDetail
from cip_listings.models import Version

# id -> (description, inner id -> (description, results))
Grouping = Dict[int, Tuple[str, Dict[int, Tuple[str, List[SeanceDetail]]]]]


class Style:
    """Minimal ANSI styling; a disabled Style returns text unchanged."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def _wrap(self, code: str, text: str) -> str:
        if not self.enabled:
            return text
        return f"\x1b[{code}m{text}\x1b[0m"

    def bold(self, text: str) -> str:
        return self._wrap("1", text)

    def dim(self, text: str) -> str:
        return self._wrap("2", text)

    def ident(self, value: int) -> str:
        return self.dim(f"[{value}]")


def build_query_options(
    today: date,
    day: Optional[str] = None,
    at: Optional[str] = None,
    until: Optional[str] = None,
    vf: bool = False,
    vo: bool = False,
    cinema: Optional[str] = None,
    film: Optional[str] = None,
) -> QueryOptions:
    """
    Validate raw filter strings and build the matching QueryOptions.

    Raises:
        QueryValidationError: for a malformed day or time, or an ``until``
            day before the start day.
    """
    try:
        day_value = parse_day_month(day, today, strict=True) if day else None
        time_value: Optional[time] = parse_clock(at) if at else None
        until_value = parse_day_month(until, today, strict=True) if until else None
    except ValueError as e:
        raise QueryValidationError(str(e)) from e

    if until_value is not None and until_value < (day_value or today):
        raise QueryValidationError(
            f"--until {until} is before the first day {(day_value or today):%d/%m}"
        )

    version = None
    if vf and not vo:
        version = Version.FRENCH
    elif vo and not vf:
        version = Version.ORIGINAL

    return QueryOptions(
        day=day_value,
        time=time_value,
        until=until_value,
        version=version,
        cinema=cinema.strip() if cinema and cinema.strip() else None,
        film=film.strip() if film and film.strip() else None,
    )


def group_results(results: List[SeanceDetail], group_by: GroupBy) -> Grouping:
    """Nest results by cinema then film (or film then cinema), keeping their order."""
    grouping: Grouping = {}
    for result in results:
        if group_by is GroupBy.CINEMA:
            outer, inner = result.cinema, result.film
        else:
            outer, inner = result.film, result.cinema
        _, inner_groups = grouping.setdefault(outer.id, (outer.description, {}))
        _, bucket = inner_groups.setdefault(inner.id, (inner.description, []))
        bucket.append(result)
    return grouping


def render_listing(
    results: List[SeanceDetail],
    group_by: GroupBy = GroupBy.CINEMA,
    single_day: bool = False,
    style: Optional[Style] = None,
) -> str:
    """Render grouped results; groups are sorted by id."""
    style = style or Style(enabled=False)
    time_format = "%H:%M" if single_day else "%d/%m %H:%M"

    lines: List[str] = []
    for outer_id, (description, inner_groups) in sorted(group_results(results, group_by).items()):
        lines.append(f"{style.ident(outer_id)} {style.bold(description)}")
        lines.append("")
        for inner_id, (inner_description, bucket) in sorted(inner_groups.items()):
            lines.append(f"  {style.ident(inner_id)} {inner_description}")
            seances = "".join(
                f" {style.ident(r.seance.id)} {r.seance.starts_at.strftime(time_format)} ({r.seance.version})"
                for r in bucket
            )
            lines.append(f"   {seances}")
            lines.append("")
    return "\n".join(lines)


def render_detail(detail: SeanceDetail, base_url: str, style: Optional[Style] = None) -> str:
    style = style or Style(enabled=False)
    seance, film, cinema = detail.seance, detail.film, detail.cinema
    lines = [
        style.ident(seance.id),
        f"Film:    {film.description}",
        f"         {film.director}",
        f"         {film.url(base_url)}",
        f"Cinema:  {cinema.name}",
        f"         {cinema.address}",
        f"         {cinema.url(base_url)}",
        f"Version: {seance.version}",
        f"Date:    {seance.starts_at:%b %d}",
        f"Time:    {seance.starts_at:%H:%M}",
    ]
    if seance.url:
        lines.append(f"Reserve: {seance.url}")
    return "\n".join(lines)
