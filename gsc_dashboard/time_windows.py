from __future__ import annotations

from datetime import date, timedelta

from gsc_dashboard.models import DateRange

DEFAULT_WINDOW_DAYS = 28


def compute_default_range(run_date: date | None = None, days: int = DEFAULT_WINDOW_DAYS) -> DateRange:
    """Last `days` complete days, closing on the day before `run_date`."""
    run_date = run_date or date.today()
    end = run_date - timedelta(days=1)
    start = end - timedelta(days=max(1, days) - 1)
    return DateRange(start=start, end=end)


def parse_iso_date(raw: str, label: str) -> date:
    try:
        return date.fromisoformat(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid {label}: {raw!r}. Use YYYY-MM-DD.") from exc


def resolve_range(
    start_raw: str,
    end_raw: str,
    run_date: date | None = None,
) -> DateRange:
    start_raw = start_raw.strip()
    end_raw = end_raw.strip()
    if not start_raw and not end_raw:
        return compute_default_range(run_date)
    if not (start_raw and end_raw):
        raise ValueError("Provide both start and end date, or neither.")
    return DateRange(
        start=parse_iso_date(start_raw, "start date"),
        end=parse_iso_date(end_raw, "end date"),
    )
