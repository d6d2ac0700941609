from __future__ import annotations

import argparse
import json
import time
from datetime import date
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from gsc_dashboard.clients.gsc_client import GSCClient
from gsc_dashboard.clients.token_provider import TokenProvider
from gsc_dashboard.config import DashboardConfig
from gsc_dashboard.dashboard import Dashboard
from gsc_dashboard.errors import ConfigurationError
from gsc_dashboard.models import DateRange
from gsc_dashboard.pipeline import SnapshotPipeline
from gsc_dashboard.time_windows import resolve_range


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search Console dashboard")
    parser.add_argument(
        "--start-date",
        default="",
        help="Range start YYYY-MM-DD (default: DASHBOARD_START_DATE or last 28 days)",
    )
    parser.add_argument(
        "--end-date",
        default="",
        help="Range end YYYY-MM-DD (default: DASHBOARD_END_DATE or yesterday)",
    )
    parser.add_argument(
        "--row-limit",
        type=int,
        default=None,
        help="Number of top query rows (default: DASHBOARD_ROW_LIMIT or 10)",
    )
    parser.add_argument(
        "--view",
        choices=("overview", "table", "json"),
        default="overview",
        help="What to print (default: overview)",
    )
    return parser.parse_args(argv)


def _resolve_date_range(args: argparse.Namespace, config: DashboardConfig, run_date: date) -> DateRange:
    if args.start_date or args.end_date:
        try:
            return resolve_range(args.start_date, args.end_date, run_date)
        except ValueError as exc:
            raise SystemExit(f"Invalid date arguments: {exc}") from exc
    try:
        return config.date_range(run_date)
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc


def build_pipeline(config: DashboardConfig) -> SnapshotPipeline:
    provider = TokenProvider(
        config.credentials(),
        timeout_sec=config.http_timeout_sec,
        default_ttl_sec=config.token_default_ttl_sec,
        expiry_margin_sec=config.token_expiry_margin_sec,
    )
    client = GSCClient(
        config.site_url,
        api_base_url=config.api_base_url,
        timeout_sec=config.http_timeout_sec,
    )
    return SnapshotPipeline(provider, client, row_limit=config.row_limit)


def _write_telemetry(
    config: DashboardConfig,
    run_date: date,
    date_range: DateRange,
    dashboard: Dashboard,
    ok: bool,
    runtime_sec: float,
) -> Path:
    telemetry_dir = Path(config.output_dir) / "_telemetry"
    telemetry_dir.mkdir(parents=True, exist_ok=True)
    telemetry_path = telemetry_dir / f"{run_date.strftime('%Y_%m_%d')}_dashboard_observability.jsonl"
    snapshot = dashboard.snapshot if ok else None
    error = dashboard.last_error
    with telemetry_path.open("a", encoding="utf-8") as handle:
        handle.write(
            json.dumps(
                {
                    "ok": ok,
                    "stage": dashboard.pipeline.last_stage.value,
                    "rows": len(snapshot.rows) if snapshot else 0,
                    "devices": len(snapshot.device_stats) if snapshot else 0,
                    "start_date": date_range.start.isoformat(),
                    "end_date": date_range.end.isoformat(),
                    "runtime_sec": round(runtime_sec, 3),
                    "error": str(error) if error else "",
                    "timestamp": time.time(),
                },
                ensure_ascii=False,
            )
            + "\n"
        )
    return telemetry_path


def main(argv: list[str] | None = None) -> None:
    try:
        load_dotenv(find_dotenv(usecwd=True), override=False)
    except Exception:
        pass

    args = _parse_args(argv)
    run_date = date.today()
    try:
        config = DashboardConfig.from_env()
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc

    if config.missing_settings:
        raise SystemExit(
            "GSC is not configured. Missing: "
            f"{', '.join(config.missing_settings)}. "
            "Run gsc-refresh-token --write-env or fill them in .env."
        )

    date_range = _resolve_date_range(args, config, run_date)
    dashboard = Dashboard(build_pipeline(config))

    started = time.perf_counter()
    ok = dashboard.refresh(date_range, row_limit=args.row_limit)
    runtime_sec = time.perf_counter() - started

    if ok and dashboard.snapshot is not None:
        print(
            "Snapshot fetched: "
            f"rows={len(dashboard.snapshot.rows)} | devices={len(dashboard.snapshot.device_stats)} | "
            f"range={date_range.start.isoformat()}..{date_range.end.isoformat()} | "
            f"runtime={runtime_sec:.2f}s"
        )
    else:
        error = dashboard.last_error
        stage = error.stage.value if error is not None else "unknown"
        print(f"Snapshot fetch failed: stage={stage} | {error}")

    if config.telemetry_enabled:
        telemetry_path = _write_telemetry(config, run_date, date_range, dashboard, ok, runtime_sec)
        print(f"Observability log written: {telemetry_path}")

    if dashboard.snapshot is None:
        raise SystemExit(
            "Run failed: no snapshot could be fetched. "
            "Check GSC credentials and the site property above."
        )

    if args.view == "json":
        print(json.dumps(dashboard.snapshot.to_dict(), ensure_ascii=False, indent=2))
    else:
        print()
        print(dashboard.render(args.view))


if __name__ == "__main__":
    main()
