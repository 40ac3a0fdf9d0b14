"""Shared fixtures: sample CIP pages, settings and an initialised database."""

from datetime import date
from datetime import datetime
from pathlib import Path
from typing import Dict
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

from cip_listings.database import Database
from cip_listings.errors import NetworkError
from cip_listings.models import Cinema
from cip_listings.models import Film
from cip_listings.models import Seance
from cip_listings.models import Snapshot
from cip_listings.settings import Settings

FIXTURE_DIR = Path(__file__).parent / "fixtures"
PARIS = ZoneInfo("Europe/Paris")
TODAY = date(2024, 6, 10)
BASE_URL = "https://www.cip-paris.fr"


def load_fixture(filename: str) -> str:
    return (FIXTURE_DIR / filename).read_text(encoding="utf-8")


class FakeHttpClient:
    """Serves canned pages by URL in place of the aiohttp client."""

    def __init__(self, pages: Dict[str, str]) -> None:
        self.pages = pages
        self.requested = []

    async def fetch_text(self, url: str) -> str:
        self.requested.append(url)
        if url not in self.pages:
            raise NetworkError(url, "HTTP 404")
        return self.pages[url]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "cip.db", base_url=BASE_URL, color=False)


@pytest.fixture
def site_pages() -> Dict[str, str]:
    return {
        f"{BASE_URL}/json/cinemas": load_fixture("cinemas.json"),
        f"{BASE_URL}/json/movies": load_fixture("movies.json"),
        f"{BASE_URL}/cinema/le-champo": load_fixture("le_champo.html"),
        f"{BASE_URL}/cinema/reflet-medicis": load_fixture("reflet_medicis.html"),
    }


@pytest_asyncio.fixture
async def db(settings: Settings):
    """Provides an initialized file-based database instance for each test."""
    db_instance = Database(db_path=settings.db_path, settings=settings)
    await db_instance.initialize()
    yield db_instance
    await db_instance.close()


def make_snapshot() -> Snapshot:
    """Two cinemas, two films: A is Film X at C1 on 2024-01-01, B is Film Y at C2 on 2024-01-02."""
    return Snapshot(
        cinemas=[
            Cinema(id=1, name="C1", url_path="/cinema/c1", address="1 rue Un 75001 Paris"),
            Cinema(id=2, name="C2", url_path="/cinema/c2", address="2 rue Deux 75002 Paris"),
        ],
        films=[
            Film(id=10, name="Film X", url_path="/film/x", director="Dir X", release_date="2023"),
            Film(id=20, name="Film Y", url_path="/film/y", director="Dir Y", release_date="2024"),
        ],
        seances=[
            Seance(
                id=1,
                cinema_id=1,
                film_id=10,
                starts_at=datetime(2024, 1, 1, 20, 0, tzinfo=PARIS),
                version="VO",
                url="https://tickets.example.com/a",
            ),
            Seance(
                id=2,
                cinema_id=2,
                film_id=20,
                starts_at=datetime(2024, 1, 2, 18, 30, tzinfo=PARIS),
                version="VF",
            ),
        ],
        scraped_at=datetime(2023, 12, 31, 12, 0, tzinfo=PARIS),
    )


@pytest.fixture
def snapshot() -> Snapshot:
    return make_snapshot()


@pytest.fixture
def fake_client(site_pages: Dict[str, str]) -> FakeHttpClient:
    return FakeHttpClient(site_pages)


@pytest.fixture
def read_fixture():
    return load_fixture
