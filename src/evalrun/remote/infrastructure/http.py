"""PlatformHttpClient — httpx transport shared by every platform API adapter."""

import asyncio
import random
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from evalrun.remote.domain.observer import TransportObserver
from evalrun.remote.infrastructure.errors import RemoteError

type Sleep = Callable[[float], Awaitable[None]]

_RETRIABLE_STATUSES = frozenset({408, 429})
_MAX_BACKOFF_SECONDS = 16.0
_JITTER_RATIO = 0.1


class PlatformHttpClient:
    """Sends JSON requests to the platform and unwraps its response envelope.

    Successful responses carry ``{"data": ...}``; failures carry
    ``{"error": {"message": ...}}``, sometimes with a 2xx status. Transport
    errors, 408, 429 and 5xx responses are retried with exponential backoff.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        observer: TransportObserver,
        timeout_seconds: float = 30.0,
        max_retries: int = 5,
        sleep: Sleep = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._observer = observer
        self._max_retries = max_retries
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "x-api-key": api_key,
                "Accept": "application/json",
            },
            timeout=timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(
        self,
        path: str,
        operation: str,
        params: Mapping[str, str | int] | None = None,
    ) -> Any:
        return await self.request("GET", path, operation=operation, params=params)

    async def post(self, path: str, operation: str, json: Mapping[str, Any]) -> Any:
        return await self.request("POST", path, operation=operation, json=json)

    async def request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, str | int] | None = None,
    ) -> Any:
        """Send one request, retrying transient failures, and return the envelope data.

        Raises:
            RemoteError: when retries are exhausted, on a non-retriable status,
                or when the body carries an error envelope.
        """
        attempt = 0
        while True:
            try:
                response = await self._client.request(
                    method, path, json=json, params=params
                )
            except httpx.TransportError as exc:
                if attempt >= self._max_retries:
                    self._observer.request_failed(method=method, path=path, reason=str(exc))
                    raise RemoteError(
                        operation=operation, reason=str(exc), retriable=True
                    ) from exc
                await self._backoff(method, path, attempt, reason=str(exc), retry_after=None)
                attempt += 1
                continue

            if _is_retriable_status(response.status_code):
                if attempt >= self._max_retries:
                    reason = _error_message(response)
                    self._observer.request_failed(method=method, path=path, reason=reason)
                    raise RemoteError(
                        operation=operation,
                        reason=reason,
                        status_code=response.status_code,
                        retriable=True,
                    )
                await self._backoff(
                    method,
                    path,
                    attempt,
                    reason=f"HTTP {response.status_code}",
                    retry_after=response.headers.get("Retry-After"),
                )
                attempt += 1
                continue

            return _unwrap(response, operation=operation)

    async def _backoff(
        self,
        method: str,
        path: str,
        attempt: int,
        reason: str,
        retry_after: str | None,
    ) -> None:
        delay = _retry_after_seconds(retry_after)
        if delay is None:
            delay = backoff_seconds(attempt)
        self._observer.request_retried(
            method=method,
            path=path,
            attempt=attempt + 1,
            reason=reason,
            backoff_seconds=delay,
        )
        await self._sleep(delay)


def backoff_seconds(attempt: int) -> float:
    """Exponential delay for the given zero-based retry attempt: 1, 2, 4 ... capped at 16, plus up to 10% jitter."""
    base = min(float(2**attempt), _MAX_BACKOFF_SECONDS)
    return base + base * _JITTER_RATIO * random.random()


def _is_retriable_status(status_code: int) -> bool:
    return status_code in _RETRIABLE_STATUSES or status_code >= 500


def _retry_after_seconds(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return max(seconds, 0.0)


def _unwrap(response: httpx.Response, operation: str) -> Any:
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise RemoteError(
            operation=operation,
            reason=_error_message(response),
            status_code=response.status_code,
        ) from exc

    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError as exc:
        raise RemoteError(
            operation=operation,
            reason="response body is not valid JSON",
            status_code=response.status_code,
        ) from exc

    if isinstance(body, dict):
        if body.get("error"):
            raise RemoteError(operation=operation, reason=_envelope_message(body["error"]))
        if "data" in body:
            return body["data"]
    return body


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return _envelope_message(body["error"])
    return response.text or response.reason_phrase


def _envelope_message(error: Any) -> str:
    if isinstance(error, dict) and "message" in error:
        return str(error["message"])
    return str(error)
