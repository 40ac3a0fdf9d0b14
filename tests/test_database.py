from datetime import date
from datetime import datetime
from datetime import time
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from cip_listings.database import Database
from cip_listings.errors import NotFoundError
from cip_listings.errors import StoreError
from cip_listings.models import Cinema
from cip_listings.models import QueryOptions
from cip_listings.models import Seance
from cip_listings.models import Snapshot
from cip_listings.models import Version

# Mark all tests in this file as async
pytestmark = pytest.mark.asyncio

PARIS = ZoneInfo("Europe/Paris")


async def test_database_initialization(db: Database):
    """Test that the database initializes correctly and creates tables."""
    async with db._get_connection() as conn:
        cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row[0] for row in await cursor.fetchall()}
        assert {"cinema", "film", "seance", "snapshot_meta", "schema_version"} <= tables


async def test_initialize_is_idempotent(db: Database):
    await db.initialize()

    async with db._get_connection() as conn:
        cursor = await conn.execute("SELECT COUNT(*) FROM schema_version")
        assert (await cursor.fetchone())[0] == 1


async def test_read_all_before_first_scrape_is_empty(db: Database):
    assert await db.read_all() == []
    info = await db.get_snapshot_info()
    assert info.seances == 0
    assert info.scraped_at is None


async def test_write_then_read_all_returns_snapshot(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    results = await db.read_all()
    assert [r.seance for r in results] == snapshot.seances
    assert results[0].cinema.name == "C1"
    assert results[0].film.name == "Film X"
    assert results[1].film.director == "Dir Y"


async def test_start_times_round_trip_in_local_timezone(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    detail = await db.get_seance(1)
    assert detail.seance.starts_at == datetime(2024, 1, 1, 20, 0, tzinfo=PARIS)
    assert detail.seance.starts_at.utcoffset() == PARIS.utcoffset(datetime(2024, 1, 1, 20, 0))

    # Stored as UTC text
    async with db._get_connection() as conn:
        cursor = await conn.execute("SELECT starts_at FROM seance WHERE id = 1")
        assert (await cursor.fetchone())[0] == "2024-01-01T19:00:00+00:00"


async def test_second_snapshot_replaces_first(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    replacement = Snapshot(
        cinemas=[Cinema(id=1, name="C3", url_path="/cinema/c3", address="3 rue Trois 75003 Paris")],
        films=[snapshot.films[0]],
        seances=[
            Seance(
                id=1,
                cinema_id=1,
                film_id=10,
                starts_at=datetime(2024, 2, 1, 16, 0, tzinfo=PARIS),
                version="VF",
            )
        ],
        scraped_at=datetime(2024, 1, 31, 9, 0, tzinfo=PARIS),
    )
    await db.replace_snapshot(replacement)

    results = await db.read_all()
    assert [r.seance for r in results] == replacement.seances
    assert results[0].cinema.name == "C3"

    info = await db.get_snapshot_info()
    assert (info.cinemas, info.films, info.seances) == (1, 1, 1)
    assert info.scraped_at == datetime(2024, 1, 31, 9, 0, tzinfo=PARIS)


async def test_failed_write_keeps_previous_snapshot(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    # Seance pointing at a cinema that is not part of the snapshot
    broken = snapshot.model_copy(
        update={"seances": [snapshot.seances[0].model_copy(update={"cinema_id": 99})]}
    )
    with pytest.raises(StoreError):
        await db.replace_snapshot(broken)

    assert [r.seance for r in await db.read_all()] == snapshot.seances


async def test_get_seance_not_found(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    with pytest.raises(NotFoundError) as excinfo:
        await db.get_seance(42)
    assert excinfo.value.seance_id == 42
    assert str(excinfo.value) == "Seance [42] not found"


async def test_query_by_cinema(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    results = await db.query_seances(QueryOptions(cinema="C1"))
    assert [r.seance.id for r in results] == [1]


async def test_query_by_film_is_case_insensitive(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    results = await db.query_seances(QueryOptions(film="film y"))
    assert [r.seance.id for r in results] == [2]


async def test_query_by_version(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    assert [r.seance.id for r in await db.query_seances(QueryOptions(version=Version.ORIGINAL))] == [1]
    assert [r.seance.id for r in await db.query_seances(QueryOptions(version=Version.FRENCH))] == [2]


async def test_query_by_day_returns_exactly_that_cinema_day(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    day_one = await db.query_seances(QueryOptions(day=date(2024, 1, 1)), today=date(2024, 1, 1))
    day_two = await db.query_seances(QueryOptions(day=date(2024, 1, 2)), today=date(2024, 1, 1))
    day_three = await db.query_seances(QueryOptions(day=date(2024, 1, 3)), today=date(2024, 1, 1))

    assert [r.seance.id for r in day_one] == [1]
    assert [r.seance.id for r in day_two] == [2]
    assert day_three == []


async def test_query_after_time(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    late = await db.query_seances(
        QueryOptions(day=date(2024, 1, 1), time=time(21, 0)), today=date(2024, 1, 1)
    )
    assert late == []


async def test_query_range_with_until(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    results = await db.query_seances(
        QueryOptions(day=date(2024, 1, 1), until=date(2024, 1, 2)), today=date(2024, 1, 1)
    )
    assert [r.seance.id for r in results] == [1, 2]


async def test_query_filters_combine(db: Database, snapshot: Snapshot):
    await db.replace_snapshot(snapshot)

    results = await db.query_seances(QueryOptions(cinema="C1", version=Version.FRENCH))
    assert results == []


async def test_late_show_belongs_to_previous_cinema_day(db: Database, snapshot: Snapshot):
    late_show = Seance(
        id=3,
        cinema_id=1,
        film_id=20,
        starts_at=datetime(2024, 1, 2, 0, 30, tzinfo=PARIS),
        version="VO",
    )
    await db.replace_snapshot(snapshot.model_copy(update={"seances": snapshot.seances + [late_show]}))

    day_one = await db.query_seances(QueryOptions(day=date(2024, 1, 1)), today=date(2024, 1, 1))
    assert [r.seance.id for r in day_one] == [1, 3]


async def test_day_boundaries_are_inclusive(db: Database, snapshot: Snapshot):
    opening = Seance(
        id=3, cinema_id=1, film_id=10, starts_at=datetime(2024, 1, 1, 4, 0, tzinfo=PARIS), version="VO"
    )
    next_opening = Seance(
        id=4, cinema_id=1, film_id=10, starts_at=datetime(2024, 1, 2, 4, 0, tzinfo=PARIS), version="VO"
    )
    await db.replace_snapshot(
        snapshot.model_copy(update={"seances": snapshot.seances + [opening, next_opening]})
    )

    day_one = await db.query_seances(QueryOptions(day=date(2024, 1, 1)), today=date(2024, 1, 1))
    day_two = await db.query_seances(QueryOptions(day=date(2024, 1, 2)), today=date(2024, 1, 1))

    assert [r.seance.id for r in day_one] == [3, 1, 4]
    assert [r.seance.id for r in day_two] == [4, 2]


async def test_delete(tmp_path: Path, snapshot: Snapshot, settings):
    db_path = tmp_path / "to-delete.db"
    async with Database(db_path, settings) as db:
        await db.replace_snapshot(snapshot)

    assert Database.delete(db_path) is True
    assert not db_path.exists()
    assert Database.delete(db_path) is False
