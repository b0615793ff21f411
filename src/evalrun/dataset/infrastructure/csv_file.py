"""CsvRowSource — reads a CSV file once and maps its columns onto the declared schema."""

import asyncio
import csv

from evalrun.dataset.domain.row import DatasetRow, Row
from evalrun.dataset.domain.schema import ColumnRole, DataSchema, validate_rows
from evalrun.dataset.domain.source import CsvFile
from evalrun.dataset.infrastructure.errors import DatasetLoadError


class CsvRowSource:
    """Serves rows of a CSV file by index.

    With a header row, every declared column must appear in the header and is
    looked up by name. Without one, columns map positionally in schema order
    and every record must have exactly as many fields as the schema declares.
    Empty cells of NULLABLE_VARIABLE columns become None.
    """

    def __init__(self, csv_file: CsvFile) -> None:
        self._csv_file = csv_file
        self._rows: list[Row] | None = None

    @property
    def dataset_id(self) -> str | None:
        return None

    async def prepare(self, schema: DataSchema | None) -> DataSchema | None:
        """Read, map and validate the whole file.

        Raises:
            DatasetLoadError: if no schema was declared, the file cannot be read,
                or its columns do not fit the schema.
        """
        if not schema:
            raise DatasetLoadError(
                f"a data structure is required to read CSV file {self._csv_file.path}"
            )
        records = await asyncio.to_thread(self._read_records)
        self._rows = self._map_records(records=records, schema=schema)
        validate_rows(self._rows, schema)
        return schema

    async def count(self) -> int:
        return len(self._loaded_rows())

    async def get_row(self, index: int) -> DatasetRow | None:
        rows = self._loaded_rows()
        if index < 0 or index >= len(rows):
            return None
        return DatasetRow(data=rows[index])

    def _loaded_rows(self) -> list[Row]:
        if self._rows is None:
            raise DatasetLoadError(
                f"CSV file {self._csv_file.path} was read before prepare() was awaited"
            )
        return self._rows

    def _read_records(self) -> list[list[str]]:
        path = self._csv_file.path
        try:
            with open(path, encoding="utf-8", newline="") as fh:
                reader = csv.reader(
                    fh,
                    delimiter=self._csv_file.delimiter,
                    quotechar=self._csv_file.quote_char,
                )
                return [record for record in reader if record]
        except FileNotFoundError:
            raise DatasetLoadError(f"file not found: {path}") from None
        except (OSError, csv.Error, UnicodeDecodeError) as exc:
            raise DatasetLoadError(f"could not read {path}: {exc}") from exc

    def _map_records(self, records: list[list[str]], schema: DataSchema) -> list[Row]:
        columns = list(schema)
        if self._csv_file.has_header:
            if not records:
                raise DatasetLoadError(
                    f"failed to read header row from CSV file {self._csv_file.path}"
                )
            header, records = records[0], records[1:]
            missing = [column for column in columns if column not in header]
            if missing:
                raise DatasetLoadError(
                    f'CSV file {self._csv_file.path} has no column(s) {", ".join(missing)}'
                    f' (header: {", ".join(header)})'
                )
            positions = {column: header.index(column) for column in columns}
        else:
            positions = {column: index for index, column in enumerate(columns)}

        rows: list[Row] = []
        for line_number, record in enumerate(records, start=2 if self._csv_file.has_header else 1):
            if not self._csv_file.has_header and len(record) != len(columns):
                raise DatasetLoadError(
                    f"CSV file {self._csv_file.path} line {line_number} has {len(record)}"
                    f" field(s), expected {len(columns)}"
                )
            if len(record) <= max(positions.values()):
                raise DatasetLoadError(
                    f"CSV file {self._csv_file.path} line {line_number} is missing fields"
                )
            rows.append(
                {
                    column: _cell(record[position], schema[column])
                    for column, position in positions.items()
                }
            )
        return rows


def _cell(value: str, role: ColumnRole) -> str | None:
    if role == ColumnRole.NULLABLE_VARIABLE and value == "":
        return None
    return value
