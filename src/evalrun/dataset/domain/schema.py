"""Column-role schema for test run data, and the checks that keep rows honest to it."""

import json
from collections.abc import Iterable, Mapping
from enum import StrEnum

from evalrun.config.infrastructure.errors import DataValidationError, SchemaValidationError
from evalrun.dataset.domain.row import Row


class ColumnRole(StrEnum):
    INPUT = "INPUT"
    EXPECTED_OUTPUT = "EXPECTED_OUTPUT"
    CONTEXT_TO_EVALUATE = "CONTEXT_TO_EVALUATE"
    VARIABLE = "VARIABLE"
    NULLABLE_VARIABLE = "NULLABLE_VARIABLE"
    SCENARIO = "SCENARIO"
    EXPECTED_STEPS = "EXPECTED_STEPS"


type DataSchema = dict[str, ColumnRole]

_SINGLETON_ROLES: dict[ColumnRole, str] = {
    ColumnRole.INPUT: "input",
    ColumnRole.EXPECTED_OUTPUT: "expectedOutput",
    ColumnRole.CONTEXT_TO_EVALUATE: "contextToEvaluate",
}


def build_schema(raw: Mapping[str, str]) -> DataSchema:
    """Coerce a plain ``{column: role}`` mapping into a validated DataSchema.

    Raises:
        SchemaValidationError: if a role is unknown or a singleton role repeats.
    """
    schema: DataSchema = {}
    for column, role in raw.items():
        try:
            schema[column] = ColumnRole(role)
        except ValueError:
            raise SchemaValidationError(
                f'unknown column type "{role}" for column "{column}"'
            ) from None
    validate_schema(schema)
    return schema


def validate_schema(schema: DataSchema | None) -> None:
    """Raise SchemaValidationError if INPUT, EXPECTED_OUTPUT or CONTEXT_TO_EVALUATE repeat."""
    if schema is None:
        return
    encountered: set[ColumnRole] = set()
    for role in schema.values():
        if role not in _SINGLETON_ROLES:
            continue
        if role in encountered:
            raise SchemaValidationError(
                f"data structure contains more than one {_SINGLETON_ROLES[role]}"
                f" ({_describe(schema)})"
            )
        encountered.add(role)


def validate_against_remote(schema: DataSchema, remote: Mapping[str, str]) -> None:
    """Every declared column must exist remotely; extra remote columns are permitted.

    Raises:
        SchemaValidationError: naming the first declared column missing remotely.
    """
    for column in schema:
        if column not in remote:
            raise SchemaValidationError(
                f'the provided data structure contains key "{column}" which is not present'
                f" in the dataset on the platform (platform keys: {', '.join(remote)})"
            )


def validate_rows(rows: Iterable[Row], schema: DataSchema) -> None:
    """Check every value of every row against the role declared for its column.

    Raises:
        DataValidationError: on the first mismatching value or undeclared column.
    """
    for row in rows:
        if not isinstance(row, Mapping):
            raise DataValidationError(f"expected a mapping per row, got {row!r}")
        for column, value in row.items():
            role = schema.get(column)
            if role is None:
                raise DataValidationError(
                    f'unknown column "{column}" in data entry {_dump(row)}'
                    f" (declared: {', '.join(schema)})"
                )
            _check_value(column=column, role=role, value=value, row=row)


def first_column_with_role(schema: DataSchema | None, role: ColumnRole) -> str | None:
    if not schema:
        return None
    for column, column_role in schema.items():
        if column_role == role:
            return column
    return None


def _check_value(column: str, role: ColumnRole, value: object, row: Row) -> None:
    if role in (ColumnRole.INPUT, ColumnRole.EXPECTED_OUTPUT):
        if not isinstance(value, str):
            label = "Input" if role == ColumnRole.INPUT else "Expected output"
            raise DataValidationError(
                f'{label} column "{column}" has a data entry which is not a string:'
                f" {_dump(row)}"
            )
        return
    if role == ColumnRole.NULLABLE_VARIABLE and value is None:
        return
    if not (isinstance(value, str) or _is_string_list(value)):
        qualifier = "null, " if role == ColumnRole.NULLABLE_VARIABLE else ""
        raise DataValidationError(
            f'{role.value.replace("_", " ").capitalize()} column "{column}" has a data'
            f" entry which is not {qualifier}a string or a list of strings: {_dump(row)}"
        )


def _is_string_list(value: object) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _describe(schema: DataSchema) -> str:
    return ", ".join(f"{column}={role.value}" for column, role in schema.items())


def _dump(row: Row) -> str:
    try:
        return json.dumps(row)
    except (TypeError, ValueError):
        return repr(row)
