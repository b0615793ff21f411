"""RowSource and PagedRowSource Protocols — structural interfaces over test run data."""

from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from evalrun.dataset.domain.row import DatasetRow, Row
from evalrun.dataset.domain.schema import DataSchema


@runtime_checkable
class RowSource(Protocol):
    """Indexed access to a finite set of rows.

    ``prepare`` is awaited once before any other call and returns the schema the
    rows follow: the declared one, or one the source discovered itself.
    """

    @property
    def dataset_id(self) -> str | None: ...

    async def prepare(self, schema: DataSchema | None) -> DataSchema | None: ...

    async def count(self) -> int: ...

    async def get_row(self, index: int) -> DatasetRow | None: ...


@runtime_checkable
class PagedRowSource(Protocol):
    """Rows delivered page by page, starting at page 0; ``None`` ends iteration."""

    async def fetch_page(self, page: int) -> list[Row] | None: ...


class CsvFile(BaseModel, frozen=True):
    """Where a CSV file lives and how to read it."""

    model_config = ConfigDict(frozen=True)

    path: Path
    has_header: bool = True
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    quote_char: str = Field(default='"', min_length=1, max_length=1)
