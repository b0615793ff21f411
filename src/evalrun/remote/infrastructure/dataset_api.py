"""HttpDatasetService — reads hosted datasets row by row."""

from pydantic import ValidationError

from evalrun.dataset.domain.row import DatasetRow
from evalrun.remote.infrastructure.errors import RemoteError
from evalrun.remote.infrastructure.http import PlatformHttpClient


class HttpDatasetService:
    def __init__(self, http: PlatformHttpClient) -> None:
        self._http = http

    async def get_total_rows(self, dataset_id: str) -> int:
        operation = f"fetch total rows of dataset {dataset_id}"
        data = await self._http.get(
            "/api/sdk/v1/datasets/total-rows",
            operation=operation,
            params={"datasetId": dataset_id},
        )
        if isinstance(data, bool) or not isinstance(data, int):
            raise RemoteError(
                operation=operation, reason=f"expected an integer, got {data!r}"
            )
        return data

    async def get_row(self, dataset_id: str, index: int) -> DatasetRow | None:
        """Fetch one row by zero-based index; None when the platform has no such row."""
        operation = f"fetch row {index} of dataset {dataset_id}"
        data = await self._http.get(
            "/api/sdk/v2/datasets/row",
            operation=operation,
            params={"datasetId": dataset_id, "row": index},
        )
        if data is None:
            return None
        try:
            return DatasetRow.model_validate(data)
        except ValidationError as exc:
            raise RemoteError(
                operation=operation, reason=f"unexpected response shape: {exc}"
            ) from exc

    async def get_structure(self, dataset_id: str) -> dict[str, str]:
        operation = f"fetch structure of dataset {dataset_id}"
        data = await self._http.get(
            "/api/sdk/v1/datasets/structure",
            operation=operation,
            params={"datasetId": dataset_id},
        )
        if not isinstance(data, dict):
            raise RemoteError(
                operation=operation, reason=f"expected a column mapping, got {data!r}"
            )
        return {str(column): str(role) for column, role in data.items()}
