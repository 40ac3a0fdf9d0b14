"""
Data models for the CIP listings tool.

Defines Pydantic models for cinemas, films, seances and query options.
Cinema and film models accept the field names used by the CIP JSON feeds
(``value``, ``url``, ``image1``, ``releaseDate``) as aliases, so feed entries
validate directly into them.
"""

from datetime import date
from datetime import datetime
from datetime import time as dt_time
from datetime import timedelta
from enum import Enum
from typing import List
from typing import Optional
from typing import Tuple
from urllib.parse import urljoin
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator


class Cinema(BaseModel):
    """A cinema of the CIP network."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int = Field(
        default=0,
        ge=0,
        description="Position in the cinema list (1-based, assigned at scrape time)"
    )

    name: str = Field(..., alias="value", min_length=1)

    url_path: str = Field(..., alias="url")

    address: str = Field(default="")

    image_path: str = Field(default="", alias="image1")

    @property
    def zip(self) -> str:
        """Postal code, the second to last word of the address."""
        parts = self.address.split()
        if len(parts) < 2:
            return ""
        return parts[-2]

    @property
    def description(self) -> str:
        if not self.zip:
            return self.name
        return f"{self.name} ({self.zip})"

    def url(self, base_url: str) -> str:
        return urljoin(base_url, self.url_path)


class Film(BaseModel):
    """A film currently programmed somewhere in the network."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int = Field(..., ge=0)

    name: str = Field(..., alias="value", min_length=1)

    url_path: str = Field(..., alias="url")

    image_path: str = Field(default="")

    director: str = Field(default="")

    release_date: str = Field(default="", alias="releaseDate")

    @field_validator("director", "image_path", "release_date", mode="before")
    @classmethod
    def null_to_empty(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    @property
    def description(self) -> str:
        if not self.release_date:
            return self.name
        return f"{self.name} ({self.release_date})"

    def url(self, base_url: str) -> str:
        return urljoin(base_url, self.url_path)


class Seance(BaseModel):
    """
    A single screening of a film in a cinema.

    Seances are immutable once extracted; the whole set is replaced on every
    scrape.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(default=0, ge=0, description="Snapshot-unique identifier")

    cinema_id: int

    film_id: int

    starts_at: datetime = Field(..., description="Timezone-aware start time")

    version: str = Field(..., min_length=1, description="Language tag, e.g. VO or VF")

    url: Optional[str] = Field(default=None, description="Booking link")

    @field_validator("starts_at")
    @classmethod
    def validate_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("starts_at must be timezone-aware")
        return v

    @property
    def dedup_key(self) -> Tuple[int, int, datetime, str, Optional[str]]:
        return (self.cinema_id, self.film_id, self.starts_at, self.version, self.url)


class SeanceDetail(BaseModel):
    """A seance together with its cinema and film."""

    seance: Seance
    cinema: Cinema
    film: Film


class Snapshot(BaseModel):
    """Everything one scrape produced."""

    cinemas: List[Cinema] = Field(default_factory=list)
    films: List[Film] = Field(default_factory=list)
    seances: List[Seance] = Field(default_factory=list)
    scraped_at: datetime

    @model_validator(mode="after")
    def check_unique_ids(self) -> "Snapshot":
        ids = [s.id for s in self.seances]
        if len(ids) != len(set(ids)):
            raise ValueError("seance ids must be unique within a snapshot")
        return self


class SnapshotInfo(BaseModel):
    """Summary of the stored snapshot."""

    cinemas: int = 0
    films: int = 0
    seances: int = 0
    scraped_at: Optional[datetime] = None


class Version(str, Enum):
    ORIGINAL = "VO"
    FRENCH = "VF"


class GroupBy(str, Enum):
    CINEMA = "cinema"
    FILM = "film"


class QueryOptions(BaseModel):
    """
    Filters applied by ``query``; every field is optional.

    ``day`` and ``time`` select a cinema-day window: it opens on ``day``
    (today when omitted) at ``time`` (the day start hour when omitted) and
    closes at the start of the following cinema day, or of the day after
    ``until`` when given.
    """

    day: Optional[date] = None
    time: Optional[dt_time] = None
    until: Optional[date] = None
    version: Optional[Version] = None
    cinema: Optional[str] = None
    film: Optional[str] = None

    @property
    def has_window(self) -> bool:
        return self.day is not None or self.time is not None or self.until is not None

    @property
    def single_day(self) -> bool:
        return (self.day is not None or self.time is not None) and self.until is None

    def window(
        self, today: date, tz: ZoneInfo, day_start: dt_time
    ) -> Optional[Tuple[datetime, datetime]]:
        """Return the inclusive (after, before) bounds, or None without a date filter."""
        if not self.has_window:
            return None
        start_day = self.day or today
        after = datetime.combine(start_day, self.time or day_start, tzinfo=tz)
        if self.until is not None:
            end_day = self.until + timedelta(days=1)
        else:
            end_day = (after + timedelta(hours=24)).date()
        before = datetime.combine(end_day, day_start, tzinfo=tz)
        return after, before
