"""TransportObserver port — events emitted by the platform transport."""

from typing import Protocol


class TransportObserver(Protocol):
    """Observer port for request-level transport events.

    Implementations may log to structlog or record for tests.
    """

    def request_retried(
        self,
        method: str,
        path: str,
        attempt: int,
        reason: str,
        backoff_seconds: float,
    ) -> None: ...

    def request_failed(self, method: str, path: str, reason: str) -> None: ...
