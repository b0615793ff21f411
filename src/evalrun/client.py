"""EvalRunClient — entry point that owns the platform transport and hands out builders."""

import asyncio
from types import TracebackType

import httpx

from evalrun.config.domain.run_config import RunConfig
from evalrun.config.domain.settings import DEFAULT_BASE_URL, ClientSettings
from evalrun.execution.application.builder import TestRunBuilder
from evalrun.execution.application.poller import Sleep
from evalrun.execution.domain.gate import GateRegistry, gate_registry
from evalrun.remote.domain.observer import TransportObserver
from evalrun.remote.infrastructure.dataset_api import HttpDatasetService
from evalrun.remote.infrastructure.evaluator_api import HttpEvaluatorLookup
from evalrun.remote.infrastructure.http import PlatformHttpClient
from evalrun.remote.infrastructure.observer import StructlogTransportObserver
from evalrun.remote.infrastructure.test_run_api import HttpTestRunController


class EvalRunClient:
    """Connects to the hosted platform and creates test run builders.

    Use as an async context manager, or call ``aclose()`` when done.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        request_timeout_seconds: float = 30.0,
        max_retries: int = 5,
        default_concurrency: int | None = None,
        observer: TransportObserver | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        gates: GateRegistry = gate_registry,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._default_concurrency = default_concurrency
        self._gates = gates
        self._sleep = sleep
        self._http = PlatformHttpClient(
            base_url=self._base_url,
            api_key=api_key,
            observer=observer or StructlogTransportObserver(),
            timeout_seconds=request_timeout_seconds,
            max_retries=max_retries,
            sleep=sleep,
            transport=transport,
        )
        self.test_runs = HttpTestRunController(self._http)
        self.datasets = HttpDatasetService(self._http)
        self.evaluators = HttpEvaluatorLookup(self._http)

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "EvalRunClient":
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            request_timeout_seconds=settings.request_timeout_seconds,
            max_retries=settings.max_retries,
            default_concurrency=settings.default_concurrency,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def create_test_run(self, name: str, workspace_id: str) -> TestRunBuilder:
        config = RunConfig(name=name, workspace_id=workspace_id)
        if self._default_concurrency is not None:
            config = config.model_copy(update={"concurrency": self._default_concurrency})
        return TestRunBuilder(
            config=config,
            controller=self.test_runs,
            evaluator_lookup=self.evaluators,
            dataset_service=self.datasets,
            base_url=self._base_url,
            gates=self._gates,
            sleep=self._sleep,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "EvalRunClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
