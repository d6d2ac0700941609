from __future__ import annotations

from gsc_dashboard.errors import PipelineError
from gsc_dashboard.models import AnalyticsSnapshot, DateRange
from gsc_dashboard.pipeline import SnapshotPipeline

VIEWS = ("overview", "table")
BAR_WIDTH = 40


def _pct(value: float) -> str:
    return f"{value * 100:.2f}%"


def _fmt_int(value: float | int) -> str:
    try:
        rounded = int(round(float(value)))
    except (TypeError, ValueError):
        return "0"
    return f"{rounded:,}".replace(",", " ")


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: max(1, width - 3)] + "..."


def _header(snapshot: AnalyticsSnapshot) -> str:
    if snapshot.date_range is None:
        period = "n/a"
    else:
        period = f"{snapshot.date_range.start.isoformat()} .. {snapshot.date_range.end.isoformat()}"
    return f"Search Console Dashboard | {period} | fetched {snapshot.fetched_at:%Y-%m-%d %H:%M} UTC"


def render_overview(snapshot: AnalyticsSnapshot) -> str:
    lines = [_header(snapshot), "", f"Top {len(snapshot.rows)} Queries"]
    if not snapshot.rows:
        lines.append("  (no query data)")
    else:
        label_width = min(32, max(len(row.query_text) for row in snapshot.rows))
        max_clicks = max(row.clicks for row in snapshot.rows) or 1
        for row in snapshot.rows:
            bar = "#" * int(round(BAR_WIDTH * row.clicks / max_clicks))
            label = _truncate(row.query_text, label_width).ljust(label_width)
            lines.append(f"  {label} | {bar} {_fmt_int(row.clicks)}")

    lines.extend(["", "Device Breakdown"])
    total = snapshot.total_device_clicks
    if not snapshot.device_stats:
        lines.append("  (no device data)")
    else:
        ranked = sorted(snapshot.device_stats.items(), key=lambda item: item[1], reverse=True)
        for device, clicks in ranked:
            share = clicks / total if total else 0.0
            lines.append(f"  {device.upper():<10} {_fmt_int(clicks):>10}  {_pct(share)}")
    return "\n".join(lines)


def render_table(snapshot: AnalyticsSnapshot) -> str:
    headers = ("Query", "Date", "Clicks", "Impressions", "CTR", "Position")
    body = [
        (
            _truncate(row.query_text, 48),
            row.date.isoformat(),
            _fmt_int(row.clicks),
            _fmt_int(row.impressions),
            _pct(row.ctr),
            f"{row.position:.2f}",
        )
        for row in snapshot.rows
    ]
    widths = [
        max([len(headers[idx])] + [len(cells[idx]) for cells in body])
        for idx in range(len(headers))
    ]

    def _line(cells: tuple[str, ...]) -> str:
        parts = [
            cell.ljust(widths[idx]) if idx < 2 else cell.rjust(widths[idx])
            for idx, cell in enumerate(cells)
        ]
        return "| " + " | ".join(parts) + " |"

    lines = [_header(snapshot), "", "Search Analytics Table", _line(headers)]
    lines.append("|" + "|".join("-" * (width + 2) for width in widths) + "|")
    lines.extend(_line(cells) for cells in body)
    if not body:
        lines.append("(no query data)")
    return "\n".join(lines)


class Dashboard:
    """Keeps the last good snapshot so a failed refresh never blanks the view."""

    def __init__(self, pipeline: SnapshotPipeline) -> None:
        self.pipeline = pipeline
        self.snapshot: AnalyticsSnapshot | None = None
        self.last_error: PipelineError | None = None

    @property
    def is_stale(self) -> bool:
        return self.snapshot is not None and self.last_error is not None

    def refresh(self, date_range: DateRange, row_limit: int | None = None) -> bool:
        try:
            snapshot = self.pipeline.fetch_snapshot(date_range, row_limit=row_limit)
        except PipelineError as exc:
            self.last_error = exc
            return False
        self.snapshot = snapshot
        self.last_error = None
        return True

    def render(self, view: str = "overview") -> str:
        if view not in VIEWS:
            raise ValueError(f"Unknown view {view!r}; use one of {', '.join(VIEWS)}.")

        if self.snapshot is None:
            lines = ["Search Console Dashboard", "", "No data available."]
            if self.last_error is not None:
                lines.append(f"Last error: {self.last_error}")
            return "\n".join(lines)

        rendered = render_overview(self.snapshot) if view == "overview" else render_table(self.snapshot)
        if self.is_stale:
            rendered += f"\n\nShowing last successful snapshot. Refresh failed: {self.last_error}"
        return rendered
