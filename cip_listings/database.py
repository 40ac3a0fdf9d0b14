"""
Database layer for the CIP listings tool.

Provides an async SQLite interface holding the most recent snapshot of
cinemas, films and seances. A scrape replaces the whole snapshot in a single
transaction; queries and detail lookups only read.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from contextlib import contextmanager
from datetime import date
from datetime import datetime
from datetime import time
from datetime import timezone
from pathlib import Path
from typing import Any
from typing import AsyncGenerator
from typing import Iterator
from typing import List
from typing import Optional
from typing import Sequence

import aiosqlite

from cip_listings.errors import NotFoundError
from cip_listings.errors import StoreError
from cip_listings.models import Cinema
from cip_listings.models import Film
from cip_listings.models import QueryOptions
from cip_listings.models import Seance
from cip_listings.models import SeanceDetail
from cip_listings.models import Snapshot
from cip_listings.models import SnapshotInfo
from cip_listings.settings import Settings
from cip_listings.settings import get_settings

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_DETAIL_SELECT = """
    SELECT
        seance.id, seance.cinema_id, seance.film_id, seance.starts_at,
        seance.version, seance.url,
        cinema.name, cinema.url_path, cinema.address, cinema.image_path,
        film.name, film.url_path, film.image_path, film.director, film.release_date
    FROM seance
    INNER JOIN cinema ON cinema.id = seance.cinema_id
    INNER JOIN film ON film.id = seance.film_id
"""


def _to_db(dt: datetime) -> str:
    # Fixed-width UTC text keeps lexical order equal to chronological order.
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+00:00")


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (aiosqlite.Error, OSError) as e:
        raise StoreError(f"could not {action}: {e}") from e


class Database:
    """
    Async SQLite database interface for the listings snapshot.

    Handles schema creation, wholesale snapshot replacement, filtered
    queries and lookups by seance id.
    """

    def __init__(self, db_path: Optional[Path] = None, settings: Optional[Settings] = None) -> None:
        """Initialize database with optional custom path."""
        self.settings = settings or get_settings()
        self.db_path = Path(db_path or self.settings.db_path)
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the database file and schema if needed."""
        with _store_errors(f"open database at {self.db_path}"):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            await self._ensure_schema()
            await self._run_migrations()
        logger.debug(f"Database initialized at {self.db_path}")

    async def close(self) -> None:
        """Close database connection cleanly."""
        async with self._lock:
            if self._connection:
                await self._connection.close()
                self._connection = None

    @asynccontextmanager
    async def _get_connection(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Get database connection with proper lifecycle management."""
        async with self._lock:
            if not self._connection:
                self._connection = await aiosqlite.connect(
                    self.db_path,
                    timeout=30.0,
                    isolation_level=None,  # Autocommit mode, transactions are explicit
                )
                await self._connection.execute("PRAGMA foreign_keys = ON")
                await self._connection.execute("PRAGMA journal_mode = WAL")
                await self._connection.create_function("casefold", 1, _casefold, deterministic=True)

            yield self._connection

    async def _ensure_schema(self) -> None:
        """Create database tables if they don't exist."""
        schema_sql = """
        CREATE TABLE IF NOT EXISTS cinema (
            id INTEGER PRIMARY KEY NOT NULL,
            name TEXT NOT NULL,
            url_path TEXT NOT NULL,
            address TEXT NOT NULL,
            image_path TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS film (
            id INTEGER PRIMARY KEY NOT NULL,
            name TEXT NOT NULL,
            url_path TEXT NOT NULL,
            image_path TEXT NOT NULL,
            director TEXT NOT NULL,
            release_date TEXT NOT NULL
        );

        -- starts_at is UTC ISO-8601 text
        CREATE TABLE IF NOT EXISTS seance (
            id INTEGER PRIMARY KEY NOT NULL,
            cinema_id INTEGER NOT NULL,
            film_id INTEGER NOT NULL,
            starts_at TEXT NOT NULL,
            version TEXT NOT NULL,
            url TEXT,
            FOREIGN KEY (cinema_id) REFERENCES cinema(id),
            FOREIGN KEY (film_id) REFERENCES film(id)
        );

        CREATE TABLE IF NOT EXISTS snapshot_meta (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            scraped_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_seance_starts_at ON seance(starts_at);
        CREATE INDEX IF NOT EXISTS idx_seance_cinema ON seance(cinema_id);
        CREATE INDEX IF NOT EXISTS idx_seance_film ON seance(film_id);
        """

        async with self._get_connection() as conn:
            await conn.executescript(schema_sql)

    async def _run_migrations(self) -> None:
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
            )
            has_version_table = await cursor.fetchone() is not None

            if not has_version_table:
                await conn.execute("CREATE TABLE schema_version (version INTEGER PRIMARY KEY)")
                await conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
                )
                logger.info(f"Database schema initialized to version {SCHEMA_VERSION}")

    async def replace_snapshot(self, snapshot: Snapshot) -> None:
        """
        Replace the stored snapshot with ``snapshot``.

        Runs in one transaction: on failure the previous snapshot is kept and
        a StoreError is raised.
        """
        with _store_errors(f"write snapshot to {self.db_path}"):
            async with self._get_connection() as conn:
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    await conn.execute("DELETE FROM seance")
                    await conn.execute("DELETE FROM film")
                    await conn.execute("DELETE FROM cinema")
                    await conn.execute("DELETE FROM snapshot_meta")

                    await conn.executemany(
                        """
                        INSERT INTO cinema (id, name, url_path, address, image_path)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        [(c.id, c.name, c.url_path, c.address, c.image_path) for c in snapshot.cinemas],
                    )
                    await conn.executemany(
                        """
                        INSERT INTO film (id, name, url_path, image_path, director, release_date)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (f.id, f.name, f.url_path, f.image_path, f.director, f.release_date)
                            for f in snapshot.films
                        ],
                    )
                    await conn.executemany(
                        """
                        INSERT INTO seance (id, cinema_id, film_id, starts_at, version, url)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (s.id, s.cinema_id, s.film_id, _to_db(s.starts_at), s.version, s.url)
                            for s in snapshot.seances
                        ],
                    )
                    await conn.execute(
                        "INSERT INTO snapshot_meta (id, scraped_at) VALUES (1, ?)",
                        (snapshot.scraped_at.isoformat(),),
                    )
                except BaseException:
                    await conn.execute("ROLLBACK")
                    raise
                await conn.execute("COMMIT")

        logger.info(
            f"Stored snapshot: {len(snapshot.cinemas)} cinemas, "
            f"{len(snapshot.films)} films, {len(snapshot.seances)} seances"
        )

    async def query_seances(self, options: QueryOptions, today: Optional[date] = None) -> List[SeanceDetail]:
        """
        Return the stored seances matching every filter in ``options``.

        Results are ordered by start time, then id. ``today`` anchors a
        window given without an explicit day; it defaults to the current date
        in the configured timezone.
        """
        tz = self.settings.tz
        where: List[str] = []
        params: List[Any] = []

        window = options.window(
            today or datetime.now(tz).date(), tz, time(self.settings.day_start_hour)
        )
        if window:
            after, before = window
            where.append("seance.starts_at >= ? AND seance.starts_at <= ?")
            params.extend([_to_db(after), _to_db(before)])
        if options.version is not None:
            where.append("seance.version = ?")
            params.append(options.version.value)
        if options.cinema:
            where.append("instr(casefold(cinema.name), ?) > 0")
            params.append(options.cinema.casefold())
        if options.film:
            where.append("instr(casefold(film.name), ?) > 0")
            params.append(options.film.casefold())

        where_clause = f"WHERE {' AND '.join(where)}" if where else ""
        sql = f"{_DETAIL_SELECT} {where_clause} ORDER BY seance.starts_at ASC, seance.id ASC"

        with _store_errors(f"read {self.db_path}"):
            async with self._get_connection() as conn:
                cursor = await conn.execute(sql, params)
                rows = await cursor.fetchall()

        results = [self._row_to_detail(row) for row in rows]
        logger.debug(f"Query matched {len(results)} seances")
        return results

    async def read_all(self) -> List[SeanceDetail]:
        """Every stored seance, or an empty list before the first scrape."""
        return await self.query_seances(QueryOptions())

    async def get_seance(self, seance_id: int) -> SeanceDetail:
        """Look up one seance; raises NotFoundError when absent."""
        with _store_errors(f"read {self.db_path}"):
            async with self._get_connection() as conn:
                cursor = await conn.execute(f"{_DETAIL_SELECT} WHERE seance.id = ?", (seance_id,))
                row = await cursor.fetchone()

        if row is None:
            raise NotFoundError(seance_id)
        return self._row_to_detail(row)

    async def get_snapshot_info(self) -> SnapshotInfo:
        """Counts and scrape time of the stored snapshot."""
        with _store_errors(f"read {self.db_path}"):
            async with self._get_connection() as conn:
                info = {}
                for table in ("cinema", "film", "seance"):
                    cursor = await conn.execute(f"SELECT COUNT(*) FROM {table}")
                    info[f"{table}s"] = (await cursor.fetchone())[0]

                cursor = await conn.execute("SELECT scraped_at FROM snapshot_meta WHERE id = 1")
                row = await cursor.fetchone()

        return SnapshotInfo(
            scraped_at=datetime.fromisoformat(row[0]) if row else None,
            **info,
        )

    def _row_to_detail(self, row: Sequence[Any]) -> SeanceDetail:
        tz = self.settings.tz
        return SeanceDetail(
            seance=Seance(
                id=row[0],
                cinema_id=row[1],
                film_id=row[2],
                starts_at=datetime.fromisoformat(row[3]).astimezone(tz),
                version=row[4],
                url=row[5],
            ),
            cinema=Cinema(
                id=row[1],
                name=row[6],
                url_path=row[7],
                address=row[8],
                image_path=row[9],
            ),
            film=Film(
                id=row[2],
                name=row[10],
                url_path=row[11],
                image_path=row[12],
                director=row[13],
                release_date=row[14],
            ),
        )

    @staticmethod
    def delete(db_path: Path) -> bool:
        """Remove the database file (and its WAL companions). Returns True if it existed."""
        db_path = Path(db_path)
        existed = db_path.exists()
        with _store_errors(f"delete {db_path}"):
            for path in (db_path, db_path.with_name(db_path.name + "-wal"), db_path.with_name(db_path.name + "-shm")):
                path.unlink(missing_ok=True)
        if existed:
            logger.info(f"Deleted database {db_path}")
        return existed

    async def __aenter__(self) -> "Database":
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
