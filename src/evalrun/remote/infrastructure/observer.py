"""StructlogTransportObserver — production observer that delegates to structlog."""

import structlog


class StructlogTransportObserver:
    """Logs transport events to structlog.

    Does NOT inherit from TransportObserver (structural typing via Protocol).
    """

    def __init__(self) -> None:
        self._log = structlog.get_logger()

    def request_retried(
        self,
        method: str,
        path: str,
        attempt: int,
        reason: str,
        backoff_seconds: float,
    ) -> None:
        self._log.warning(
            "http.request_retry",
            method=method,
            path=path,
            attempt=attempt,
            reason=reason,
            backoff_seconds=round(backoff_seconds, 2),
        )

    def request_failed(self, method: str, path: str, reason: str) -> None:
        self._log.error("http.request_failed", method=method, path=path, reason=reason)
