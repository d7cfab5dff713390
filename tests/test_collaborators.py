"""Tests for the service client retry policy and the HTTP collaborators."""

import httpx
import pytest

from netpilot.collaborators.client import ServiceClient
from netpilot.collaborators.http import (
    HttpActionGateway,
    HttpTelemetryProvider,
    build_http_collaborators,
)
from netpilot.errors import (
    UpstreamPermanentError,
    UpstreamTransientError,
    ValidationError,
)
from netpilot.models.config import ClientConfig


def _make_config(attempts: int = 3) -> ClientConfig:
    return ClientConfig(retry_attempts=attempts, retry_delay_seconds=0, timeout_seconds=1)


class Recorder:
    """MockTransport handler that replays a scripted list of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        response = self.responses[min(self.calls, len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


def _make_client(handler, attempts: int = 3) -> ServiceClient:
    return ServiceClient(
        "connectivity-service",
        "http://connectivity.test",
        _make_config(attempts),
        transport=httpx.MockTransport(handler),
    )


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_503_is_retried_after_the_first_call(self):
        """A 503 is retried retry_attempts times on top of the first call."""
        handler = Recorder(httpx.Response(503))
        client = _make_client(handler, attempts=3)

        result = await client.call("POST", "/qos/+33600000001", json={"priority": 1})

        assert result.ok is False
        assert result.error_kind == "transient"
        assert result.status_code == 503
        assert result.attempts == 4
        assert handler.calls == 1 + 3
        await client.aclose()

    @pytest.mark.asyncio
    async def test_400_is_never_retried(self):
        """A 4xx response is reported after a single call."""
        handler = Recorder(httpx.Response(400, json={"detail": "bad request"}))
        client = _make_client(handler)

        result = await client.call("POST", "/qos/+33600000001", json={})

        assert result.ok is False
        assert result.error_kind == "permanent"
        assert handler.calls == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        """A 500 followed by a 200 succeeds and reports two attempts."""
        handler = Recorder(
            httpx.Response(500),
            httpx.Response(200, json={"session_id": "qos_1"}),
        )
        client = _make_client(handler)

        result = await client.call("POST", "/qos/+33600000001", json={})

        assert result.ok is True
        assert result.data == {"session_id": "qos_1"}
        assert result.attempts == 2
        assert handler.calls == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self):
        """Timeouts are transient and retried."""
        handler = Recorder(httpx.ReadTimeout("slow"))
        client = _make_client(handler, attempts=2)

        with pytest.raises(UpstreamTransientError):
            await client.request("GET", "/connectivity/+33600000001")
        assert handler.calls == 3
        await client.aclose()

    @pytest.mark.asyncio
    async def test_no_retries_configured(self):
        """retry_attempts=0 means exactly one call."""
        handler = Recorder(httpx.Response(503))
        client = _make_client(handler, attempts=0)

        result = await client.call("GET", "/connectivity/+33600000001")

        assert result.ok is False
        assert result.attempts == 1
        assert handler.calls == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_undecodable_body_is_not_retried(self):
        """A body that is not JSON is a permanent failure."""
        handler = Recorder(httpx.Response(200, content=b"<html>oops</html>"))
        client = _make_client(handler)

        with pytest.raises(UpstreamPermanentError):
            await client.request("GET", "/connectivity/+33600000001")
        assert handler.calls == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_empty_body(self):
        """An empty response body decodes to an empty dict."""
        handler = Recorder(httpx.Response(204))
        client = _make_client(handler)
        assert await client.request("DELETE", "/qos/qos_1") == {}
        await client.aclose()


class TestHttpTelemetryProvider:
    @pytest.mark.asyncio
    async def test_partial_failure_keeps_other_parts(self):
        """Parts that fail are left empty; the rest of the snapshot survives."""
        def connectivity(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/connectivity/"):
                return httpx.Response(200, json={"signal_strength": 42, "latency": 120, "is_connected": True})
            return httpx.Response(404)

        def location(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"latitude": 48.85, "longitude": 2.35, "accuracy": 15.0})

        def device(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        config = _make_config(attempts=0)
        provider = HttpTelemetryProvider(
            ServiceClient("connectivity-service", "http://c.test", config, httpx.MockTransport(connectivity)),
            ServiceClient("location-service", "http://l.test", config, httpx.MockTransport(location)),
            ServiceClient("device-management-service", "http://d.test", config, httpx.MockTransport(device)),
        )

        snapshot = await provider.collect("+33600000001")

        assert snapshot is not None
        assert snapshot.connectivity.signal_strength == 42
        assert snapshot.location.accuracy == 15.0
        assert snapshot.device_status is None
        assert snapshot.qos is None

    @pytest.mark.asyncio
    async def test_all_parts_failing_is_unavailable(self):
        """No snapshot is returned when every part fails."""
        def down(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        config = _make_config(attempts=0)
        client = ServiceClient("any", "http://down.test", config, httpx.MockTransport(down))
        provider = HttpTelemetryProvider(client, client, client)

        assert await provider.collect("+33600000001") is None


class TestHttpActionGateway:
    @pytest.mark.asyncio
    async def test_qos_request_posts_parameters(self):
        """QoS requests are POSTed to the subject's QoS resource."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path, request.content))
            return httpx.Response(201, json={"session_id": "qos_9"})

        client = ServiceClient("connectivity-service", "http://c.test", _make_config(),
                               httpx.MockTransport(handler))
        gateway = HttpActionGateway(client, client, client)

        result = await gateway.request_qos("+33600000001", {"priority": 1})

        assert result.ok is True
        assert result.data["session_id"] == "qos_9"
        assert seen[0][0] == "POST"
        assert seen[0][1] == "/qos/+33600000001"

    def test_build_requires_urls(self):
        """All three service URLs are required."""
        with pytest.raises(ValidationError):
            build_http_collaborators(ClientConfig(connectivity_service_url="http://c.test"))
