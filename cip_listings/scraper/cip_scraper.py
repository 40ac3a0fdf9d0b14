"""
Scraper for cip-paris.fr, the listings site of the Paris independent cinemas.

A scrape downloads the cinema and film feeds, then every cinema page, and
assembles the result into a :class:`~cip_listings.models.Snapshot`.
"""

import asyncio
import logging
from datetime import date
from datetime import datetime
from typing import List
from typing import Optional

from cip_listings.models import Cinema
from cip_listings.models import Film
from cip_listings.models import Seance
from cip_listings.models import Snapshot
from cip_listings.scraper.http_client import HttpClient
from cip_listings.scraper.parser import parse_cinema_page
from cip_listings.scraper.parser import parse_cinemas
from cip_listings.scraper.parser import parse_films
from cip_listings.settings import Settings
from cip_listings.settings import get_settings

logger = logging.getLogger(__name__)


class CipScraper:
    """
    Fetch and extract a full snapshot of the CIP listings.

    Cinema pages are fetched concurrently, at most
    ``settings.max_concurrent_requests`` at a time. Seance ids are assigned
    after all pages are in, in cinema order then page order, so the same
    pages always yield the same ids.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[HttpClient] = None) -> None:
        self.settings = settings or get_settings()
        self._client = client

    async def scrape(self, today: Optional[date] = None) -> Snapshot:
        """Run a complete scrape. Raises NetworkError or ParseError on failure."""
        if self._client is not None:
            return await self._scrape_with(self._client, today)
        async with HttpClient(self.settings) as client:
            return await self._scrape_with(client, today)

    async def _scrape_with(self, client: HttpClient, today: Optional[date]) -> Snapshot:
        tz = self.settings.tz
        scraped_at = datetime.now(tz)
        today = today or scraped_at.date()

        logger.info("Downloading cinemas and films")
        cinemas_text, films_text = await asyncio.gather(
            client.fetch_text(self.settings.cinemas_url),
            client.fetch_text(self.settings.films_url),
        )
        cinemas = parse_cinemas(cinemas_text)
        films = parse_films(films_text)
        logger.info(f"Found {len(cinemas)} cinemas and {len(films)} films")

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_requests)

        async def scrape_cinema(cinema: Cinema) -> List[Seance]:
            async with semaphore:
                logger.info(f"Downloading seances: {cinema.name}")
                html = await client.fetch_text(cinema.url(self.settings.base_url))
            return parse_cinema_page(html, cinema, films, today, tz)

        per_cinema = await asyncio.gather(*(scrape_cinema(c) for c in cinemas))

        seances: List[Seance] = []
        for cinema_seances in per_cinema:
            for seance in cinema_seances:
                seances.append(seance.model_copy(update={"id": len(seances) + 1}))

        logger.info(f"Extracted {len(seances)} seances")
        return Snapshot(
            cinemas=cinemas,
            films=_unique_films(films),
            seances=seances,
            scraped_at=scraped_at,
        )


def _unique_films(films: List[Film]) -> List[Film]:
    """Drop duplicate film ids from the feed, keeping the first entry."""
    unique = {}
    for film in films:
        unique.setdefault(film.id, film)
    return list(unique.values())
