import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from coverage_engine.coverage_exceptions import (
    DegenerateGrid,
    GeocodeNotFound,
    GeocodeUnavailable,
    UpstreamRejected,
)
from coverage_engine.error_handling import (
    create_failure_response,
    is_transient_error,
    mask_key,
    redact,
    retry_with_backoff,
)


class TestErrorClassification:

    @pytest.mark.parametrize("error", [
        httpx.ConnectTimeout("connect timeout"),
        httpx.ReadTimeout("read timeout"),
        httpx.ConnectError("connection refused"),
        httpx.RemoteProtocolError("peer closed connection"),
        asyncio.TimeoutError(),
    ])
    def test_transient(self, error):
        assert is_transient_error(error) is True

    def test_http_status_is_never_transient(self):
        response = MagicMock()
        response.status_code = 503
        error = httpx.HTTPStatusError("Service unavailable", request=MagicMock(), response=response)
        assert is_transient_error(error) is False

    def test_upstream_rejection_is_not_transient(self):
        assert is_transient_error(UpstreamRejected("429", status_code=429)) is False
        assert is_transient_error(ValueError("bad json")) is False


class TestKeyHandling:

    def test_mask_key_shows_edges(self):
        assert mask_key("pk.0123456789abcdef") == "pk.…def"

    def test_short_or_missing_keys_fully_masked(self):
        assert mask_key("abc") == "***"
        assert mask_key(None) == "***"

    def test_redact_replaces_every_occurrence(self):
        url = "https://opencellid.org/cell/getInArea?key=secret123&BBOX=1,2,3,4&key2=secret123"
        assert "secret123" not in redact(url, "secret123")
        assert redact(url, None) == url


class TestFailureResponse:

    def test_location_not_found(self):
        response = create_failure_response(GeocodeNotFound("00000", "no matches"), "00000")
        assert response["supported"] is None
        assert response["success"] is False
        assert response["error"]["kind"] == "location_not_found"
        assert response["error"]["message"] == "could not resolve location"
        assert response["error"]["retry_recommended"] is False

    def test_location_unavailable_recommends_retry(self):
        response = create_failure_response(GeocodeUnavailable("60601", "timeout"), "60601")
        assert response["error"]["kind"] == "location_service_unavailable"
        assert response["error"]["retry_recommended"] is True

    def test_degenerate_grid(self):
        response = create_failure_response(DegenerateGrid("crosses the antimeridian"), "96799")
        assert response["error"]["kind"] == "degenerate_search_area"
        assert response["error"]["message"] == "coverage check failed"

    def test_unexpected_error(self):
        response = create_failure_response(RuntimeError("boom"), "60601")
        assert response["error"]["kind"] == "internal_error"


@pytest.mark.asyncio
class TestRetryWithBackoff:
    """Linear backoff retry of transient failures"""

    async def test_returns_first_success(self):
        func = AsyncMock(return_value="ok")
        assert await retry_with_backoff(func, max_attempts=3, base_delay=0) == "ok"
        assert func.await_count == 1

    async def test_retries_transient_then_succeeds(self):
        func = AsyncMock(side_effect=[httpx.ConnectTimeout("t1"), httpx.ReadTimeout("t2"), "ok"])
        on_retry = MagicMock()

        assert await retry_with_backoff(func, max_attempts=3, base_delay=0, on_retry=on_retry) == "ok"
        assert func.await_count == 3
        assert [c.args[0] for c in on_retry.call_args_list] == [1, 2]

    async def test_linear_delays(self):
        func = AsyncMock(side_effect=[httpx.ConnectError("c1"), httpx.ConnectError("c2"), "ok"])
        with patch("coverage_engine.error_handling.asyncio.sleep", new=AsyncMock()) as sleep:
            await retry_with_backoff(func, max_attempts=3, base_delay=0.4)
        assert [c.args[0] for c in sleep.await_args_list] == pytest.approx([0.4, 0.8])

    async def test_non_transient_raised_immediately(self):
        func = AsyncMock(side_effect=UpstreamRejected("401", status_code=401))
        with pytest.raises(UpstreamRejected):
            await retry_with_backoff(func, max_attempts=3, base_delay=0)
        assert func.await_count == 1

    async def test_last_error_raised_when_exhausted(self):
        func = AsyncMock(side_effect=httpx.ConnectError("down"))
        with pytest.raises(httpx.ConnectError):
            await retry_with_backoff(func, max_attempts=2, base_delay=0)
        assert func.await_count == 2
