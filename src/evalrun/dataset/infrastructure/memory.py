"""InMemoryRowSource — rows handed over as a plain list."""

from evalrun.dataset.domain.row import DatasetRow, Row
from evalrun.dataset.domain.schema import DataSchema, validate_rows


class InMemoryRowSource:
    def __init__(self, rows: list[Row]) -> None:
        self._rows = list(rows)

    @property
    def dataset_id(self) -> str | None:
        return None

    @property
    def rows(self) -> list[Row]:
        return list(self._rows)

    async def prepare(self, schema: DataSchema | None) -> DataSchema | None:
        if schema is not None:
            validate_rows(self._rows, schema)
        return schema

    async def count(self) -> int:
        return len(self._rows)

    async def get_row(self, index: int) -> DatasetRow | None:
        if index < 0 or index >= len(self._rows):
            return None
        return DatasetRow(data=self._rows[index])
