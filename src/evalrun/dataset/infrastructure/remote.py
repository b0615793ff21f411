"""Rows of a dataset stored on the hosted platform."""

from evalrun.dataset.domain.row import DatasetRow
from evalrun.dataset.domain.schema import (
    ColumnRole,
    DataSchema,
    validate_against_remote,
    validate_schema,
)
from evalrun.remote.domain.controller import DatasetService


class RemoteDatasetSource:
    """Counts and fetches rows one by one through a DatasetService.

    A declared schema must name only columns the hosted dataset has; without
    one, the hosted structure becomes the schema.
    """

    def __init__(self, dataset_id: str, service: DatasetService) -> None:
        self._dataset_id = dataset_id
        self._service = service

    @property
    def dataset_id(self) -> str | None:
        return self._dataset_id

    async def prepare(self, schema: DataSchema | None) -> DataSchema | None:
        remote = await self._service.get_structure(self._dataset_id)
        if schema:
            validate_against_remote(schema, remote)
            return schema
        discovered = {column: _role(role) for column, role in remote.items()}
        validate_schema(discovered)
        return discovered

    async def count(self) -> int:
        return await self._service.get_total_rows(self._dataset_id)

    async def get_row(self, index: int) -> DatasetRow | None:
        return await self._service.get_row(self._dataset_id, index)


def _role(value: str) -> ColumnRole:
    try:
        return ColumnRole(value)
    except ValueError:
        return ColumnRole.VARIABLE
