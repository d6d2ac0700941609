from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class Credentials:
    client_id: str
    client_secret: str = field(repr=False)
    refresh_token: str = field(repr=False)
    token_uri: str = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class AccessToken:
    value: str = field(repr=False)
    obtained_at: float
    estimated_ttl_seconds: int

    def age(self, now: float) -> float:
        return now - self.obtained_at

    def is_fresh(self, now: float, margin_seconds: int) -> bool:
        return self.age(now) < self.estimated_ttl_seconds - margin_seconds


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"Date range start {self.start.isoformat()} is after end {self.end.isoformat()}."
            )

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class RawRow:
    keys: tuple[str, ...]
    clicks: object = None
    impressions: object = None
    ctr: object = None
    position: object = None


@dataclass(frozen=True)
class QueryRow:
    query_text: str
    date: date
    clicks: int
    impressions: int
    ctr: float
    position: float


DeviceStats = Mapping[str, int]


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """Result of one successful pipeline run, handed to the presentation layer."""

    rows: tuple[QueryRow, ...]
    device_stats: DeviceStats
    fetched_at: datetime
    date_range: DateRange | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rows", tuple(self.rows))
        object.__setattr__(self, "device_stats", MappingProxyType(dict(self.device_stats)))

    @property
    def total_device_clicks(self) -> int:
        return sum(self.device_stats.values())

    def to_dict(self) -> dict:
        return {
            "fetched_at": self.fetched_at.isoformat(),
            "start_date": self.date_range.start.isoformat() if self.date_range else None,
            "end_date": self.date_range.end.isoformat() if self.date_range else None,
            "rows": [
                {
                    "query": row.query_text,
                    "date": row.date.isoformat(),
                    "clicks": row.clicks,
                    "impressions": row.impressions,
                    "ctr": row.ctr,
                    "position": row.position,
                }
                for row in self.rows
            ],
            "device_stats": dict(self.device_stats),
        }
