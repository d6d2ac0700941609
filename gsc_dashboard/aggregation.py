from __future__ import annotations

import math
from datetime import date
from typing import Iterable

from gsc_dashboard.models import QueryRow, RawRow


def _as_int(raw: object) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value) or value < 0:
        return None
    return int(value)


def _as_float(raw: object) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def to_query_rows(raw_rows: Iterable[RawRow], limit: int | None = None) -> tuple[QueryRow, ...]:
    """Reshape [query, date] rows, keeping API order and dropping incomplete rows."""
    rows: list[QueryRow] = []
    for raw in raw_rows:
        if limit is not None and len(rows) >= limit:
            break
        if len(raw.keys) < 2:
            continue
        try:
            day = date.fromisoformat(raw.keys[1])
        except ValueError:
            continue

        clicks = _as_int(raw.clicks)
        impressions = _as_int(raw.impressions)
        ctr = _as_float(raw.ctr)
        position = _as_float(raw.position)
        if clicks is None or impressions is None or ctr is None or position is None:
            continue

        rows.append(
            QueryRow(
                query_text=raw.keys[0],
                date=day,
                clicks=clicks,
                impressions=impressions,
                ctr=ctr,
                position=position,
            )
        )
    return tuple(rows)


def to_device_stats(raw_rows: Iterable[RawRow]) -> dict[str, int]:
    stats: dict[str, int] = {}
    for raw in raw_rows:
        if not raw.keys:
            continue
        clicks = _as_int(raw.clicks)
        if clicks is None:
            continue
        # Later rows overwrite earlier ones for the same label.
        stats[raw.keys[0]] = clicks
    return stats
