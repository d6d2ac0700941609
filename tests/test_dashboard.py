from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from gsc_dashboard.dashboard import Dashboard, render_overview, render_table
from gsc_dashboard.errors import ApiError, ApiErrorKind, PipelineError, PipelineStage
from gsc_dashboard.models import AnalyticsSnapshot, DateRange, QueryRow

RANGE = DateRange(date(2025, 4, 1), date(2025, 5, 1))


def _snapshot() -> AnalyticsSnapshot:
    return AnalyticsSnapshot(
        rows=[
            QueryRow("seo scientist", date(2025, 4, 3), 40, 400, 0.1, 1.234),
            QueryRow("seo agency", date(2025, 4, 4), 20, 1000, 0.02, 7.5),
        ],
        device_stats={"mobile": 120, "desktop": 80},
        fetched_at=datetime(2025, 5, 2, 8, 30, tzinfo=timezone.utc),
        date_range=RANGE,
    )


class StubPipeline:
    def __init__(self, outcomes: list[object]) -> None:
        self.outcomes = list(outcomes)
        self.last_stage = PipelineStage.START

    def fetch_snapshot(self, date_range: DateRange, row_limit: int | None = None) -> AnalyticsSnapshot:
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _pipeline_error() -> PipelineError:
    cause = ApiError("GSC API error (500): Backend Error", kind=ApiErrorKind.TRANSIENT, status_code=500)
    return PipelineError(f"GSC query [device] failed: {cause}", cause=cause, stage=PipelineStage.TOKEN_ACQUIRED)


def test_table_formats_ctr_and_position() -> None:
    text = render_table(_snapshot())

    assert "Search Analytics Table" in text
    assert "10.00%" in text
    assert "2.00%" in text
    assert "1.23" in text
    assert "7.50" in text
    assert "2025-04-03" in text


def test_overview_lists_queries_and_device_shares() -> None:
    text = render_overview(_snapshot())

    assert "Top 2 Queries" in text
    assert "seo scientist" in text
    assert "MOBILE" in text
    assert "60.00%" in text
    assert "40.00%" in text


def test_failed_refresh_keeps_last_snapshot() -> None:
    first = _snapshot()
    dashboard = Dashboard(StubPipeline([first, _pipeline_error()]))  # type: ignore[arg-type]

    assert dashboard.refresh(RANGE) is True
    assert dashboard.refresh(RANGE) is False

    assert dashboard.snapshot is first
    assert dashboard.is_stale is True
    assert "Refresh failed" in dashboard.render("table")


def test_no_snapshot_renders_empty_state() -> None:
    dashboard = Dashboard(StubPipeline([_pipeline_error()]))  # type: ignore[arg-type]

    assert dashboard.refresh(RANGE) is False

    text = dashboard.render("overview")
    assert "No data available." in text
    assert "Backend Error" in text


def test_unknown_view_is_rejected() -> None:
    dashboard = Dashboard(StubPipeline([]))  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        dashboard.render("pie")


def test_empty_snapshot_renders() -> None:
    snapshot = AnalyticsSnapshot(rows=[], device_stats={}, fetched_at=datetime(2025, 5, 2, tzinfo=timezone.utc))

    assert "(no query data)" in render_overview(snapshot)
    assert "(no device data)" in render_overview(snapshot)
    assert "(no query data)" in render_table(snapshot)
