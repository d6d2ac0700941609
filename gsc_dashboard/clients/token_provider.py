from __future__ import annotations

import time
from typing import Callable

import requests
from requests import Response

from gsc_dashboard.errors import AuthError
from gsc_dashboard.models import AccessToken, Credentials


class TokenProvider:
    """Exchanges the OAuth refresh token for access tokens and caches the latest one.

    The cache lives in memory only. A token is reused while its age stays below
    the estimated TTL minus `expiry_margin_sec`; after that the next
    `get_valid_token()` call refreshes it.
    """

    GRANT_TYPE = "refresh_token"

    def __init__(
        self,
        credentials: Credentials,
        *,
        timeout_sec: int = 30,
        default_ttl_sec: int = 3000,
        expiry_margin_sec: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.credentials = credentials
        self.timeout_sec = max(1, int(timeout_sec))
        self.default_ttl_sec = max(1, int(default_ttl_sec))
        self.expiry_margin_sec = max(0, int(expiry_margin_sec))
        self._clock = clock
        self._token: AccessToken | None = None

    @property
    def cached_token(self) -> AccessToken | None:
        return self._token

    def invalidate(self) -> None:
        self._token = None

    def get_valid_token(self) -> AccessToken:
        token = self._token
        if token is not None and token.is_fresh(self._clock(), self.expiry_margin_sec):
            return token
        return self.refresh()

    def refresh(self) -> AccessToken:
        # Drop the old token first so a failed exchange never leaves it looking valid.
        self._token = None
        try:
            response = requests.post(
                self.credentials.token_uri,
                data={
                    "client_id": self.credentials.client_id,
                    "client_secret": self.credentials.client_secret,
                    "refresh_token": self.credentials.refresh_token,
                    "grant_type": self.GRANT_TYPE,
                },
                headers={"Accept": "application/json"},
                timeout=self.timeout_sec,
            )
        except requests.Timeout as exc:
            raise AuthError(
                f"OAuth token refresh timed out after {self.timeout_sec}s."
            ) from exc
        except requests.RequestException as exc:
            raise AuthError(
                f"OAuth token refresh request failed: {exc.__class__.__name__}."
            ) from exc

        if not response.ok:
            raise AuthError(
                f"OAuth token refresh failed ({response.status_code}): "
                f"{self._error_message(response)}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError(
                "OAuth token endpoint returned a non-JSON body.",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise AuthError(
                "OAuth token endpoint returned an unexpected payload.",
                status_code=response.status_code,
            )

        value = payload.get("access_token")
        if not isinstance(value, str) or not value.strip():
            raise AuthError(
                "OAuth token endpoint response has no access_token.",
                status_code=response.status_code,
            )

        token = AccessToken(
            value=value.strip(),
            obtained_at=self._clock(),
            estimated_ttl_seconds=self._ttl_from_payload(payload),
        )
        self._token = token
        return token

    def _ttl_from_payload(self, payload: dict) -> int:
        raw = payload.get("expires_in")
        if raw is None or isinstance(raw, bool):
            return self.default_ttl_sec
        try:
            ttl = int(raw)
        except (TypeError, ValueError, OverflowError):
            return self.default_ttl_sec
        return ttl if ttl > 0 else self.default_ttl_sec

    @staticmethod
    def _error_message(response: Response) -> str:
        # Only the OAuth error fields are surfaced; the raw body is never echoed.
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            error = payload.get("error")
            description = payload.get("error_description")
            parts = [
                str(part).strip()
                for part in (error, description)
                if isinstance(part, str) and part.strip()
            ]
            if parts:
                return " - ".join(parts)[:240]
        return response.reason or "No error details."
