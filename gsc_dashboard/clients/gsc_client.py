from __future__ import annotations

from typing import Sequence
from urllib.parse import quote

import requests
from requests import Response

from gsc_dashboard.errors import ApiError, ApiErrorKind
from gsc_dashboard.models import AccessToken, DateRange, RawRow


class GSCClient:
    """Thin wrapper for Search Console Search Analytics API."""

    ALLOWED_DIMENSIONS = frozenset({"query", "date", "device"})
    AUTH_ERROR_CODES = {401, 403}

    def __init__(
        self,
        site_url: str,
        *,
        api_base_url: str = "https://www.googleapis.com/webmasters/v3",
        timeout_sec: int = 30,
    ) -> None:
        if not site_url.strip():
            raise ValueError("GSC site_url is required.")
        self.site_url = site_url.strip()
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout_sec = max(1, int(timeout_sec))

    @property
    def query_url(self) -> str:
        encoded_site = quote(self.site_url, safe="")
        return f"{self.api_base_url}/sites/{encoded_site}/searchAnalytics/query"

    @staticmethod
    def _headers(token: AccessToken) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token.value}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _validate_dimensions(self, dimensions: Sequence[str]) -> list[str]:
        dims = [str(dim).strip() for dim in dimensions]
        unknown = [dim for dim in dims if dim not in self.ALLOWED_DIMENSIONS]
        if unknown or not dims:
            raise ValueError(
                f"Unsupported GSC dimensions {dims}; use any of {sorted(self.ALLOWED_DIMENSIONS)}."
            )
        return dims

    @staticmethod
    def _response_message(response: Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict):
                message = error.get("message")
                if isinstance(message, str) and message.strip():
                    return message.strip()[:240]
            if isinstance(error, str) and error.strip():
                return error.strip()[:240]
        text = (response.text or "").strip()
        if not text:
            return "No response body."
        if len(text) > 240:
            return text[:237] + "..."
        return text

    def run_query(
        self,
        token: AccessToken,
        date_range: DateRange,
        dimensions: Sequence[str],
        row_limit: int | None = None,
    ) -> list[RawRow]:
        dims = self._validate_dimensions(dimensions)
        body: dict[str, object] = {
            "startDate": date_range.start.isoformat(),
            "endDate": date_range.end.isoformat(),
            "dimensions": dims,
        }
        if row_limit is not None:
            body["rowLimit"] = int(row_limit)

        try:
            response = requests.post(
                self.query_url,
                json=body,
                headers=self._headers(token),
                timeout=self.timeout_sec,
            )
        except requests.Timeout as exc:
            raise ApiError(
                f"GSC API timeout for dimensions {dims} after {self.timeout_sec}s.",
                kind=ApiErrorKind.TRANSIENT,
            ) from exc
        except requests.RequestException as exc:
            raise ApiError(
                f"GSC API request failed for dimensions {dims}: {exc.__class__.__name__}.",
                kind=ApiErrorKind.TRANSIENT,
            ) from exc

        if response.status_code in self.AUTH_ERROR_CODES:
            raise ApiError(
                f"GSC API rejected the access token ({response.status_code}): "
                f"{self._response_message(response)}",
                kind=ApiErrorKind.AUTH_REJECTED,
                status_code=response.status_code,
            )
        if not response.ok:
            raise ApiError(
                f"GSC API error for dimensions {dims} ({response.status_code}): "
                f"{self._response_message(response)}",
                kind=ApiErrorKind.TRANSIENT,
                status_code=response.status_code,
            )

        return self._parse_rows(response, dims)

    @staticmethod
    def _parse_rows(response: Response, dims: list[str]) -> list[RawRow]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError(
                f"GSC API returned a non-JSON body for dimensions {dims}.",
                kind=ApiErrorKind.MALFORMED,
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise ApiError(
                f"GSC API returned an unexpected payload for dimensions {dims}.",
                kind=ApiErrorKind.MALFORMED,
                status_code=response.status_code,
            )

        # No "rows" key means no data for the range.
        raw_rows = payload.get("rows", [])
        if raw_rows is None:
            raw_rows = []
        if not isinstance(raw_rows, list):
            raise ApiError(
                f"GSC API 'rows' is not a list for dimensions {dims}.",
                kind=ApiErrorKind.MALFORMED,
                status_code=response.status_code,
            )

        rows: list[RawRow] = []
        for row in raw_rows:
            if not isinstance(row, dict):
                raise ApiError(
                    f"GSC API returned a non-object row for dimensions {dims}.",
                    kind=ApiErrorKind.MALFORMED,
                    status_code=response.status_code,
                )
            keys = row.get("keys") or []
            if not isinstance(keys, list):
                keys = []
            rows.append(
                RawRow(
                    keys=tuple(str(key) for key in keys),
                    clicks=row.get("clicks"),
                    impressions=row.get("impressions"),
                    ctr=row.get("ctr"),
                    position=row.get("position"),
                )
            )
        return rows
