"""HttpEvaluatorLookup — resolves platform evaluators by name."""

from pydantic import ValidationError

from evalrun.remote.domain.models import EvaluatorDescriptor
from evalrun.remote.infrastructure.errors import EvaluatorNotFoundError, RemoteError
from evalrun.remote.infrastructure.http import PlatformHttpClient


class HttpEvaluatorLookup:
    def __init__(self, http: PlatformHttpClient) -> None:
        self._http = http

    async def fetch_evaluator(self, name: str, workspace_id: str) -> EvaluatorDescriptor:
        """Return the platform descriptor for the evaluator called ``name``.

        Raises:
            EvaluatorNotFoundError: if the workspace has no evaluator with that name.
            RemoteError: on transport failure or a malformed response.
        """
        operation = f'fetch evaluator "{name}"'
        data = await self._http.get(
            "/api/sdk/v1/evaluators",
            operation=operation,
            params={"name": name, "workspaceId": workspace_id},
        )
        if not data:
            raise EvaluatorNotFoundError(name=name, workspace_id=workspace_id)
        try:
            return EvaluatorDescriptor.model_validate(data)
        except ValidationError as exc:
            raise RemoteError(
                operation=operation, reason=f"unexpected response shape: {exc}"
            ) from exc
