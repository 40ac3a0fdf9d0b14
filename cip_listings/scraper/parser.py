"""
Extraction of cinemas, films and seances from CIP pages.

The cinema and film lists come from JSON feeds; seances are read from each
cinema's HTML page, where every programmed film is a
``.movie-results-container`` block and every session inside it a
``.session-date`` block.
"""

import json
import logging
from datetime import date
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from zoneinfo import ZoneInfo

from bs4 import BeautifulSoup
from bs4 import Tag
from pydantic import ValidationError

from cip_listings.dates import parse_clock
from cip_listings.dates import parse_day_month
from cip_listings.errors import ParseError
from cip_listings.models import Cinema
from cip_listings.models import Film
from cip_listings.models import Seance

logger = logging.getLogger(__name__)


def _load_json_list(text: str, what: str) -> List[Dict[str, Any]]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"{what} feed is not valid JSON: {e}") from e
    if not isinstance(payload, list):
        raise ParseError(f"{what} feed should be a JSON list, got {type(payload).__name__}")
    return payload


def parse_cinemas(text: str) -> List[Cinema]:
    """Parse the cinema feed, numbering cinemas from 1 in feed order."""
    cinemas = []
    for position, entry in enumerate(_load_json_list(text, "cinema"), start=1):
        if not isinstance(entry, dict):
            raise ParseError(f"cinema entry #{position} is not an object")
        try:
            cinemas.append(Cinema.model_validate({**entry, "id": position}))
        except ValidationError as e:
            raise ParseError(f"cinema entry #{position} is malformed: {e}") from e
    return cinemas


def parse_films(text: str) -> List[Film]:
    films = []
    for position, entry in enumerate(_load_json_list(text, "film"), start=1):
        try:
            films.append(Film.model_validate(entry))
        except ValidationError as e:
            raise ParseError(f"film entry #{position} is malformed: {e}") from e
    return films


def _required_text(block: Tag, css_class: str, context: str) -> str:
    el = block.find(class_=css_class)
    if el is None:
        raise ParseError(f"{context}: missing .{css_class} element")
    text = el.get_text(" ", strip=True)
    if not text:
        raise ParseError(f"{context}: empty .{css_class} element")
    return text


def parse_cinema_page(
    html: str,
    cinema: Cinema,
    films: List[Film],
    today: date,
    tz: ZoneInfo,
) -> List[Seance]:
    """
    Extract the seances listed on one cinema page.

    Returned seances carry no id yet (``id == 0``); identical sessions are
    kept once. Film blocks whose poster link matches no known film are
    skipped with a warning.

    Raises:
        ParseError: when a film block or session block lacks a required element.
    """
    films_by_path = {film.url_path: film for film in films}
    soup = BeautifulSoup(html, "html.parser")

    seances: List[Seance] = []
    seen = set()
    for block in soup.find_all(class_="movie-results-container"):
        poster = block.find(class_="poster")
        href = poster.get("href") if poster is not None else None
        if not href:
            raise ParseError(f"{cinema.name}: film block without a poster link")
        film = films_by_path.get(href.strip())
        if film is None:
            logger.warning(f"{cinema.name}: unknown film link {href}, skipping")
            continue

        context = f"{cinema.name} / {film.name}"
        for session in block.find_all(class_="session-date"):
            day_text = _required_text(session, "sessionDate", context)
            time_text = _required_text(session, "time", context)
            version = _required_text(session, "version", context)
            try:
                starts_at = datetime.combine(
                    parse_day_month(day_text, today), parse_clock(time_text), tzinfo=tz
                )
            except ValueError as e:
                raise ParseError(f"{context}: {e}") from e

            link = session.find("a")
            url = link.get("href") if link is not None else None

            seance = Seance(
                cinema_id=cinema.id,
                film_id=film.id,
                starts_at=starts_at,
                version=version,
                url=url or None,
            )
            if seance.dedup_key in seen:
                continue
            seen.add(seance.dedup_key)
            seances.append(seance)

    logger.debug(f"{cinema.name}: extracted {len(seances)} seances")
    return seances
