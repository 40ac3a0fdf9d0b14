"""
Showtime listings of the Paris independent cinemas (cip-paris.fr).

Downloads the listings of the CIP network, keeps the latest snapshot in a
local SQLite database, and answers queries about it from the command line.

Main Components:
- Scraper: fetches the cinema and film feeds and every cinema page
- Parser: extracts cinemas, films and seances from those pages
- Database: SQLite storage of the latest snapshot
- Query: filters, groups and renders stored seances

Usage:
    cip scrape
    cip query --day 14/06 --time 18:00 --vo
    cip query --cinema "Reflet Médicis" --group film
    cip seance 42

    # Programmatically
    from cip_listings.database import Database
    from cip_listings.models import QueryOptions

    async with Database() as db:
        seances = await db.query_seances(QueryOptions(film="nosferatu"))
"""

__version__ = "1.0.0"
__license__ = "MIT"

from cip_listings.database import Database
from cip_listings.models import Cinema
from cip_listings.models import Film
from cip_listings.models import QueryOptions
from cip_listings.models import Seance
from cip_listings.models import SeanceDetail
from cip_listings.models import Snapshot
from cip_listings.scraper.cip_scraper import CipScraper

__all__ = [
    "CipScraper",
    "Cinema",
    "Database",
    "Film",
    "QueryOptions",
    "Seance",
    "SeanceDetail",
    "Snapshot",
]
