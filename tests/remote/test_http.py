"""Tests for PlatformHttpClient and the HTTP adapters, over httpx.MockTransport."""

import json
from collections.abc import Callable

import httpx
import pytest

from evalrun.dataset.domain.row import DatasetRow
from evalrun.evaluator.domain.evaluator import HumanEvaluationConfig
from evalrun.execution.domain.output import PersonaColumn, SimulationConfig
from evalrun.remote.domain.models import (
    EntryMeta,
    EvaluatorDescriptor,
    EvaluatorKind,
    PushPayload,
    RunHandle,
    RunType,
    SdkVariable,
    TestRunEntry,
    TestRunState,
)
from evalrun.remote.infrastructure.dataset_api import HttpDatasetService
from evalrun.remote.infrastructure.errors import EvaluatorNotFoundError, RemoteError
from evalrun.remote.infrastructure.evaluator_api import HttpEvaluatorLookup
from evalrun.remote.infrastructure.http import PlatformHttpClient, backoff_seconds
from evalrun.remote.infrastructure.test_run_api import HttpTestRunController
from tests.remote.fake_transport_observer import FakeTransportObserver

type Handler = Callable[[httpx.Request], httpx.Response]


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _make_client(
    handler: Handler,
    observer: FakeTransportObserver | None = None,
    sleep: RecordingSleep | None = None,
    max_retries: int = 3,
) -> PlatformHttpClient:
    return PlatformHttpClient(
        base_url="https://app.example.com/",
        api_key="secret-key",
        observer=observer or FakeTransportObserver(),
        max_retries=max_retries,
        sleep=sleep or RecordingSleep(),
        transport=httpx.MockTransport(handler),
    )


def _data(payload: object, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"data": payload})


class TestEnvelope:
    """Responses are unwrapped from {"data": ...} and errors surface as RemoteError."""

    async def test_returns_data_and_sends_api_key(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _data({"ok": True})

        client = _make_client(handler)

        result = await client.get("/api/ping", operation="ping", params={"a": 1})

        assert result == {"ok": True}
        assert seen[0].headers["x-api-key"] == "secret-key"
        assert str(seen[0].url) == "https://app.example.com/api/ping?a=1"

    async def test_body_without_envelope_is_returned_as_is(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json=[1, 2]))
        assert await client.get("/api/list", operation="list") == [1, 2]

    async def test_empty_body_is_none(self) -> None:
        client = _make_client(lambda request: httpx.Response(204))
        assert await client.post("/api/x", operation="poke", json={}) is None

    async def test_error_envelope_with_200_raises(self) -> None:
        client = _make_client(
            lambda request: httpx.Response(200, json={"error": {"message": "run is locked"}})
        )

        with pytest.raises(RemoteError, match="Failed to push: run is locked"):
            await client.post("/api/push", operation="push", json={})

    async def test_client_error_is_not_retried(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(400, json={"error": {"message": "bad input"}})

        client = _make_client(handler)

        with pytest.raises(RemoteError) as exc_info:
            await client.post("/api/push", operation="push", json={})

        assert exc_info.value.status_code == 400
        assert "bad input" in str(exc_info.value)
        assert exc_info.value.retriable is False
        assert len(calls) == 1

    async def test_invalid_json_raises(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(RemoteError, match="not valid JSON"):
            await client.get("/api/x", operation="read")


class TestRetries:
    """Transient failures are retried with backoff, then reported."""

    async def test_server_error_then_success(self) -> None:
        responses = [httpx.Response(503), httpx.Response(502), _data("ok")]
        observer = FakeTransportObserver()
        sleep = RecordingSleep()
        client = _make_client(lambda request: responses.pop(0), observer, sleep)

        assert await client.get("/api/x", operation="read") == "ok"
        assert [event.attempt for event in observer.retried] == [1, 2]
        assert observer.retried[0].reason == "HTTP 503"
        assert 1.0 <= sleep.delays[0] <= 1.1
        assert 2.0 <= sleep.delays[1] <= 2.2

    async def test_retry_after_header_wins(self) -> None:
        responses = [httpx.Response(429, headers={"Retry-After": "7"}), _data("ok")]
        sleep = RecordingSleep()
        client = _make_client(lambda request: responses.pop(0), sleep=sleep)

        await client.get("/api/x", operation="read")

        assert sleep.delays == [7.0]

    async def test_transport_error_is_retried(self) -> None:
        attempts: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return _data("ok")

        client = _make_client(handler)

        assert await client.get("/api/x", operation="read") == "ok"
        assert len(attempts) == 2

    async def test_exhausted_retries_raise_retriable_error(self) -> None:
        observer = FakeTransportObserver()
        sleep = RecordingSleep()
        client = _make_client(
            lambda request: httpx.Response(500, text="upstream down"),
            observer,
            sleep,
            max_retries=2,
        )

        with pytest.raises(RemoteError) as exc_info:
            await client.get("/api/x", operation="read")

        assert exc_info.value.retriable is True
        assert exc_info.value.status_code == 500
        assert len(sleep.delays) == 2
        assert observer.failed[0].reason == "upstream down"


class TestBackoffSeconds:
    """Backoff doubles per attempt, caps at 16 seconds and adds at most 10% jitter."""

    @pytest.mark.parametrize(("attempt", "base"), [(0, 1), (1, 2), (3, 8), (4, 16), (9, 16)])
    def test_bounds(self, attempt: int, base: float) -> None:
        delay = backoff_seconds(attempt)
        assert base <= delay <= base * 1.1


class TestHttpTestRunController:
    """The ledger adapter sends camelCase bodies to the SDK endpoints."""

    async def test_create_test_run_body(self) -> None:
        bodies: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/sdk/v2/test-run/create"
            bodies.append(json.loads(request.content))
            return _data({"id": "run-9", "workspaceId": "ws-1", "name": "nightly"})

        controller = HttpTestRunController(_make_client(handler))

        handle = await controller.create_test_run(
            name="nightly",
            workspace_id="ws-1",
            run_type=RunType.SINGLE,
            evaluator_config=[
                EvaluatorDescriptor(id="e1", name="bias", type=EvaluatorKind.AI, builtin=True)
            ],
            requires_local_run=False,
            workflow_id="wf-1",
            human_evaluation_config=HumanEvaluationConfig(emails=["qa@example.com"]),
        )

        assert handle == RunHandle(id="run-9", workspace_id="ws-1", name="nightly")
        assert bodies[0] == {
            "name": "nightly",
            "workspaceId": "ws-1",
            "runType": "SINGLE",
            "evaluatorConfig": [{"id": "e1", "name": "bias", "type": "AI", "builtin": True}],
            "requiresLocalRun": False,
            "workflowId": "wf-1",
            "humanEvaluationConfig": {"emails": ["qa@example.com"]},
        }

    async def test_push_sends_run_reference_and_entry(self) -> None:
        bodies: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return _data(None)

        controller = HttpTestRunController(_make_client(handler))
        handle = RunHandle.model_validate({"id": "run-9", "workspaceId": "ws-1", "name": "nightly"})

        await controller.push_entry(
            PushPayload(
                test_run=handle.reference(dataset_id="ds-1", dataset_entry_id="e-3"),
                entry=TestRunEntry(input="q", output="a", data_entry={"question": "q"}),
            )
        )

        assert bodies[0] == {
            "testRun": {
                "id": "run-9",
                "workspaceId": "ws-1",
                "name": "nightly",
                "datasetId": "ds-1",
                "datasetEntryId": "e-3",
            },
            "entry": {"input": "q", "output": "a", "dataEntry": {"question": "q"}},
        }

    async def test_create_sends_simulation_config(self) -> None:
        bodies: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return _data({"id": "run-9", "workspaceId": "ws-1"})

        await HttpTestRunController(_make_client(handler)).create_test_run(
            name="nightly",
            workspace_id="ws-1",
            run_type=RunType.SINGLE,
            evaluator_config=[],
            requires_local_run=False,
            workflow_id="wf-1",
            simulation_config=SimulationConfig(
                persona=PersonaColumn(payload="persona"), response_fields=["reply"]
            ),
        )

        assert bodies[0]["simulationConfig"] == {
            "persona": {"payload": "persona"},
            "responseFields": ["reply"],
        }

    async def test_push_sends_sdk_variables(self) -> None:
        bodies: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return _data(None)

        await HttpTestRunController(_make_client(handler)).push_entry(
            PushPayload(
                test_run=RunHandle(id="run-9", workspace_id="ws-1").reference(),
                entry=TestRunEntry(
                    output="a",
                    meta=EntryMeta(
                        sdk_variables={"ev-tone": SdkVariable(payload='{"hint": "formal"}')}
                    ),
                ),
            )
        )

        assert bodies[0]["entry"] == {
            "output": "a",
            "dataEntry": {},
            "meta": {
                "sdkVariables": {"ev-tone": {"type": "json", "payload": '{"hint": "formal"}'}}
            },
        }

    async def test_get_status_parses_counts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["testRunId"] == "run-9"
            return _data(
                {
                    "entryStatus": {"total": 2, "completed": 2},
                    "testRunStatus": "COMPLETE",
                }
            )

        status = await HttpTestRunController(_make_client(handler)).get_status("run-9")

        assert status.test_run_status == TestRunState.COMPLETE
        assert status.is_terminal

    async def test_unexpected_shape_raises(self) -> None:
        controller = HttpTestRunController(_make_client(lambda request: _data({"nope": 1})))

        with pytest.raises(RemoteError, match="unexpected response shape"):
            await controller.get_final_result("run-9")


class TestHttpDatasetAndEvaluatorLookups:
    """Dataset and evaluator adapters validate what the platform returns."""

    async def test_get_row_returns_dataset_row(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["row"] == "4"
            return _data({"id": "e-4", "data": {"question": "q"}})

        row = await HttpDatasetService(_make_client(handler)).get_row("ds-1", 4)

        assert row == DatasetRow(id="e-4", data={"question": "q"})

    async def test_get_row_missing_is_none(self) -> None:
        service = HttpDatasetService(_make_client(lambda request: _data(None)))
        assert await service.get_row("ds-1", 99) is None

    async def test_total_rows_must_be_integer(self) -> None:
        service = HttpDatasetService(_make_client(lambda request: _data("many")))

        with pytest.raises(RemoteError, match="expected an integer"):
            await service.get_total_rows("ds-1")

    async def test_unknown_evaluator_raises(self) -> None:
        lookup = HttpEvaluatorLookup(_make_client(lambda request: _data(None)))

        with pytest.raises(EvaluatorNotFoundError, match="bias"):
            await lookup.fetch_evaluator("bias", "ws-1")

    async def test_evaluator_descriptor_is_parsed(self) -> None:
        lookup = HttpEvaluatorLookup(
            _make_client(
                lambda request: _data(
                    {"id": "e1", "name": "bias", "type": "Human", "builtin": False}
                )
            )
        )

        descriptor = await lookup.fetch_evaluator("bias", "ws-1")

        assert descriptor.type == EvaluatorKind.HUMAN
