from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from urllib.parse import urlparse

from gsc_dashboard.errors import ConfigurationError
from gsc_dashboard.models import Credentials, DateRange
from gsc_dashboard.time_windows import resolve_range


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default.strip()
    value = raw.strip()
    placeholder = f"{name}="
    unquoted = value.strip("'\"").strip()
    if unquoted.lower() == placeholder.lower():
        return default.strip()
    return value if value else default.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}.") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _normalize_site_url(raw: str) -> str:
    value = raw.strip().strip("'\"")
    if not value:
        return ""
    if value.lower().startswith("sc-domain:"):
        return "sc-domain:" + value.split(":", 1)[1].strip().lower()
    if not value.startswith(("http://", "https://")):
        value = f"https://{value}"

    parsed = urlparse(value)
    host = (parsed.netloc or parsed.path).strip().lower()
    scheme = parsed.scheme or "https"
    path = parsed.path if parsed.netloc else ""
    path = path.rstrip("/")
    return f"{scheme}://{host}{path}/"


@dataclass(frozen=True)
class DashboardConfig:
    site_url: str
    client_id: str
    client_secret: str = field(repr=False)
    refresh_token: str = field(repr=False)
    token_uri: str = "https://oauth2.googleapis.com/token"
    api_base_url: str = "https://www.googleapis.com/webmasters/v3"
    http_timeout_sec: int = 30
    token_default_ttl_sec: int = 3000
    token_expiry_margin_sec: int = 60
    start_date: str = ""
    end_date: str = ""
    row_limit: int = 10
    output_dir: str = "outputs"
    telemetry_enabled: bool = False

    @classmethod
    def from_env(cls) -> "DashboardConfig":
        return cls(
            site_url=_normalize_site_url(_env("GSC_SITE_URL")),
            client_id=_env("GSC_OAUTH_CLIENT_ID"),
            client_secret=_env("GSC_OAUTH_CLIENT_SECRET"),
            refresh_token=_env("GSC_OAUTH_REFRESH_TOKEN"),
            token_uri=_env("GSC_OAUTH_TOKEN_URI", "https://oauth2.googleapis.com/token"),
            api_base_url=_env(
                "GSC_API_BASE_URL", "https://www.googleapis.com/webmasters/v3"
            ).rstrip("/"),
            http_timeout_sec=max(1, _env_int("GSC_HTTP_TIMEOUT_SEC", 30)),
            token_default_ttl_sec=max(1, _env_int("GSC_TOKEN_DEFAULT_TTL_SEC", 3000)),
            token_expiry_margin_sec=max(0, _env_int("GSC_TOKEN_EXPIRY_MARGIN_SEC", 60)),
            start_date=_env("DASHBOARD_START_DATE"),
            end_date=_env("DASHBOARD_END_DATE"),
            row_limit=max(1, _env_int("DASHBOARD_ROW_LIMIT", 10)),
            output_dir=_env("DASHBOARD_OUTPUT_DIR", "outputs"),
            telemetry_enabled=_env_bool("DASHBOARD_TELEMETRY_ENABLED", False),
        )

    @property
    def missing_settings(self) -> list[str]:
        required = (
            ("GSC_SITE_URL", self.site_url),
            ("GSC_OAUTH_CLIENT_ID", self.client_id),
            ("GSC_OAUTH_CLIENT_SECRET", self.client_secret),
            ("GSC_OAUTH_REFRESH_TOKEN", self.refresh_token),
        )
        return [name for name, value in required if not value]

    def credentials(self) -> Credentials:
        missing = [name for name in self.missing_settings if name != "GSC_SITE_URL"]
        if missing:
            raise ConfigurationError(
                f"Missing GSC OAuth settings: {', '.join(missing)}. "
                "Run gsc-refresh-token --write-env or fill them in .env."
            )
        return Credentials(
            client_id=self.client_id,
            client_secret=self.client_secret,
            refresh_token=self.refresh_token,
            token_uri=self.token_uri,
        )

    def date_range(self, run_date: date | None = None) -> DateRange:
        try:
            return resolve_range(self.start_date, self.end_date, run_date)
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid DASHBOARD_START_DATE/DASHBOARD_END_DATE: {exc}"
            ) from exc
