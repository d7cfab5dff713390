"""
Service client: JSON over HTTP with a bounded timeout and fixed-delay retry.

Retry policy:
- Timeouts, transport failures and 5xx responses are transient: after the
  first call they are retried up to retry_attempts times, retry_delay_seconds
  apart.
- 4xx responses and undecodable bodies are permanent and never retried.
"""

from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from netpilot.collaborators.contracts import CallResult
from netpilot.errors import (
    UpstreamError,
    UpstreamPermanentError,
    UpstreamTransientError,
)
from netpilot.logs import get_logger
from netpilot.models.config import ClientConfig


class ServiceClient:
    """Async client for one collaborator service."""

    def __init__(
        self,
        service: str,
        base_url: str,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.service = service
        self.config = config or ClientConfig()
        self.logger = get_logger("service_client").bind(service=service)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(self.config.timeout_seconds),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.config.retry_attempts + 1),
            wait=wait_fixed(self.config.retry_delay_seconds),
            retry=retry_if_exception_type(UpstreamTransientError),
            before_sleep=self._log_retry,
            reraise=True,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.warning(
            "collaborator_retry",
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc) if exc else None,
        )

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send a request with retries. Raises UpstreamError when it finally fails."""
        return await self._retrying()(self._send, method, path, json, params)

    async def call(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> CallResult:
        """Like request(), but reports the outcome as a CallResult."""
        retrying = self._retrying()
        try:
            data = await retrying(self._send, method, path, json, params)
        except UpstreamError as e:
            attempts = retrying.statistics.get("attempt_number", 1)
            self.logger.error(
                "collaborator_call_failed",
                method=method,
                path=path,
                status_code=e.status_code,
                attempts=attempts,
                error=str(e),
            )
            return CallResult.failure(
                service=self.service,
                error=str(e),
                error_kind="transient" if e.retryable else "permanent",
                status_code=e.status_code,
                attempts=attempts,
            )
        return CallResult.success(
            self.service, data, attempts=retrying.statistics.get("attempt_number", 1)
        )

    async def _send(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]],
        params: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            raise UpstreamTransientError(
                f"{self.service} timed out: {e}", service=self.service
            ) from e
        except httpx.TransportError as e:
            raise UpstreamTransientError(
                f"{self.service} unreachable: {e}", service=self.service
            ) from e

        if response.status_code >= 500:
            raise UpstreamTransientError(
                f"{self.service} returned {response.status_code}",
                service=self.service,
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise UpstreamPermanentError(
                f"{self.service} rejected request with {response.status_code}",
                service=self.service,
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamPermanentError(
                f"{self.service} returned an undecodable body",
                service=self.service,
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            return {"data": data}
        return data
