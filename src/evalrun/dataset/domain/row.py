"""Value types for one unit of evaluation input, shaped by a column-role schema."""

from pydantic import BaseModel, ConfigDict

type CellValue = str | list[str] | None
type Row = dict[str, CellValue]


class DatasetRow(BaseModel, frozen=True):
    """Immutable pairing of a row's data with its remote id, when it has one."""

    model_config = ConfigDict(frozen=True)

    data: Row
    id: str | None = None
