"""Error types raised while reading test run data."""

from evalrun.core.errors import EvalRunError


class DatasetLoadError(EvalRunError):
    """Raised when a data source cannot be read or does not fit the declared schema."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to load dataset: {reason}")


class RowNotFoundError(EvalRunError):
    """Raised when a data source has no row at the requested index."""

    def __init__(self, index: int, source: str) -> None:
        self.index = index
        super().__init__(f"Failed to fetch row: no row at index {index} in {source}")
