from __future__ import annotations

import json
from datetime import date

import pytest
import requests

from gsc_dashboard.clients.gsc_client import GSCClient
from gsc_dashboard.errors import ApiError, ApiErrorKind
from gsc_dashboard.models import AccessToken, DateRange, RawRow

RANGE = DateRange(date(2025, 4, 1), date(2025, 5, 1))
TOKEN = AccessToken(value="tok_abc", obtained_at=0.0, estimated_ttl_seconds=3600)


def _response(status_code: int, payload: object) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(payload).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    response.url = "https://www.googleapis.com/webmasters/v3/sites/x/searchAnalytics/query"
    return response


def test_run_query_posts_expected_request(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, object]] = []

    def fake_post(url: str, **kwargs: object) -> requests.Response:
        calls.append({"url": url, **kwargs})
        return _response(
            200,
            {
                "rows": [
                    {"keys": ["seo scientist", "2025-04-02"], "clicks": 5, "impressions": 50, "ctr": 0.1, "position": 1.5}
                ]
            },
        )

    monkeypatch.setattr(requests, "post", fake_post)
    client = GSCClient("https://seoscientist.agency/")

    rows = client.run_query(TOKEN, RANGE, ["query", "date"], row_limit=10)

    assert rows == [
        RawRow(keys=("seo scientist", "2025-04-02"), clicks=5, impressions=50, ctr=0.1, position=1.5)
    ]
    call = calls[0]
    assert call["url"] == (
        "https://www.googleapis.com/webmasters/v3/sites/"
        "https%3A%2F%2Fseoscientist.agency%2F/searchAnalytics/query"
    )
    assert call["json"] == {
        "startDate": "2025-04-01",
        "endDate": "2025-05-01",
        "dimensions": ["query", "date"],
        "rowLimit": 10,
    }
    assert call["headers"]["Authorization"] == "Bearer tok_abc"


def test_row_limit_is_omitted_when_not_given(monkeypatch: pytest.MonkeyPatch) -> None:
    bodies: list[dict[str, object]] = []

    def fake_post(_: str, **kwargs: object) -> requests.Response:
        bodies.append(kwargs["json"])
        return _response(200, {"rows": []})

    monkeypatch.setattr(requests, "post", fake_post)

    GSCClient("sc-domain:example.com").run_query(TOKEN, RANGE, ["device"])

    assert "rowLimit" not in bodies[0]


def test_missing_rows_means_no_data(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        requests, "post", lambda _url, **_: _response(200, {"responseAggregationType": "byProperty"})
    )

    assert GSCClient("https://example.com/").run_query(TOKEN, RANGE, ["device"]) == []


@pytest.mark.parametrize("status_code", [401, 403])
def test_auth_status_is_auth_rejected(monkeypatch: pytest.MonkeyPatch, status_code: int) -> None:
    monkeypatch.setattr(
        requests,
        "post",
        lambda _url, **_: _response(status_code, {"error": {"message": "Invalid Credentials"}}),
    )

    with pytest.raises(ApiError) as error:
        GSCClient("https://example.com/").run_query(TOKEN, RANGE, ["device"])

    assert error.value.kind is ApiErrorKind.AUTH_REJECTED
    assert error.value.status_code == status_code
    assert "Invalid Credentials" in str(error.value)
    assert "tok_abc" not in str(error.value)


def test_server_error_is_transient(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        requests, "post", lambda _url, **_: _response(503, {"error": {"message": "Backend Error"}})
    )

    with pytest.raises(ApiError) as error:
        GSCClient("https://example.com/").run_query(TOKEN, RANGE, ["device"])

    assert error.value.kind is ApiErrorKind.TRANSIENT
    assert error.value.status_code == 503


def test_timeout_is_transient(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(_: str, **__: object) -> requests.Response:
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(requests, "post", fake_post)

    with pytest.raises(ApiError) as error:
        GSCClient("https://example.com/").run_query(TOKEN, RANGE, ["device"])

    assert error.value.kind is ApiErrorKind.TRANSIENT


def test_invalid_json_is_malformed(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(_: str, **__: object) -> requests.Response:
        response = _response(200, {})
        response._content = b"{not json"
        return response

    monkeypatch.setattr(requests, "post", fake_post)

    with pytest.raises(ApiError) as error:
        GSCClient("https://example.com/").run_query(TOKEN, RANGE, ["device"])

    assert error.value.kind is ApiErrorKind.MALFORMED


@pytest.mark.parametrize("payload", [[1, 2, 3], {"rows": "nope"}, {"rows": ["mobile"]}])
def test_unexpected_shapes_are_malformed(monkeypatch: pytest.MonkeyPatch, payload: object) -> None:
    monkeypatch.setattr(requests, "post", lambda _url, **_: _response(200, payload))

    with pytest.raises(ApiError) as error:
        GSCClient("https://example.com/").run_query(TOKEN, RANGE, ["device"])

    assert error.value.kind is ApiErrorKind.MALFORMED


def test_unknown_dimension_fails_before_request(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(_: str, **__: object) -> requests.Response:
        raise AssertionError("no request expected")

    monkeypatch.setattr(requests, "post", fake_post)

    with pytest.raises(ValueError, match="Unsupported GSC dimensions"):
        GSCClient("https://example.com/").run_query(TOKEN, RANGE, ["page"])
