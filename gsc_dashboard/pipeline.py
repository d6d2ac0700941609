from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Sequence

from gsc_dashboard.aggregation import to_device_stats, to_query_rows
from gsc_dashboard.clients.gsc_client import GSCClient
from gsc_dashboard.clients.token_provider import TokenProvider
from gsc_dashboard.errors import ApiError, AuthError, PipelineError, PipelineStage
from gsc_dashboard.models import AccessToken, AnalyticsSnapshot, DateRange, RawRow

QUERY_DIMENSIONS = ("query", "date")
DEVICE_DIMENSIONS = ("device",)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotPipeline:
    """Token -> two Search Analytics queries -> aggregation -> snapshot.

    Either both queries succeed and a complete snapshot is returned, or a
    `PipelineError` is raised. A rejected access token gets exactly one forced
    refresh and one retry per query; every other failure is final.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        client: GSCClient,
        *,
        row_limit: int = 10,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.token_provider = token_provider
        self.client = client
        self.row_limit = max(1, int(row_limit))
        self._clock = clock
        self.last_stage = PipelineStage.START

    def _fail(
        self,
        stage: PipelineStage,
        message: str,
        cause: AuthError | ApiError,
    ) -> PipelineError:
        self.last_stage = PipelineStage.FAILED
        return PipelineError(f"{message}: {cause}", cause=cause, stage=stage)

    def _query_with_retry(
        self,
        token: AccessToken,
        date_range: DateRange,
        dimensions: Sequence[str],
        row_limit: int | None,
        stage: PipelineStage,
    ) -> tuple[AccessToken, list[RawRow]]:
        label = ",".join(dimensions)
        try:
            return token, self.client.run_query(token, date_range, dimensions, row_limit)
        except ApiError as exc:
            if not exc.auth_rejected:
                raise self._fail(stage, f"GSC query [{label}] failed", exc) from exc

        try:
            token = self.token_provider.refresh()
        except AuthError as exc:
            raise self._fail(
                stage, f"Token refresh after rejected GSC query [{label}] failed", exc
            ) from exc

        try:
            return token, self.client.run_query(token, date_range, dimensions, row_limit)
        except ApiError as exc:
            message = (
                f"GSC query [{label}] rejected again after token refresh"
                if exc.auth_rejected
                else f"GSC query [{label}] failed after token refresh"
            )
            raise self._fail(stage, message, exc) from exc

    def fetch_snapshot(
        self,
        date_range: DateRange,
        row_limit: int | None = None,
    ) -> AnalyticsSnapshot:
        limit = self.row_limit if row_limit is None else max(1, int(row_limit))
        self.last_stage = PipelineStage.START

        try:
            token = self.token_provider.get_valid_token()
        except AuthError as exc:
            raise self._fail(PipelineStage.START, "Access token unavailable", exc) from exc
        self.last_stage = PipelineStage.TOKEN_ACQUIRED

        token, query_rows = self._query_with_retry(
            token, date_range, QUERY_DIMENSIONS, limit, PipelineStage.TOKEN_ACQUIRED
        )
        _, device_rows = self._query_with_retry(
            token, date_range, DEVICE_DIMENSIONS, None, PipelineStage.TOKEN_ACQUIRED
        )
        self.last_stage = PipelineStage.QUERIES_ISSUED

        snapshot = AnalyticsSnapshot(
            rows=to_query_rows(query_rows, limit=limit),
            device_stats=to_device_stats(device_rows),
            fetched_at=self._clock(),
            date_range=date_range,
        )
        self.last_stage = PipelineStage.AGGREGATED
        return snapshot
