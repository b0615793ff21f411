"""Base exception class for all evalrun-specific errors, plus cause-chain formatting."""


class EvalRunError(Exception):
    """Base class for all evalrun errors."""

    def __init__(self, message: str, retriable: bool = False) -> None:
        super().__init__(message)
        self.retriable = retriable


def _next_cause(exc: BaseException) -> BaseException | None:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__


def format_error_chain(exc: BaseException) -> str:
    """Render *exc* and every exception in its cause chain, outermost first.

    The first line is the message of *exc* itself; each cause follows on its own
    indented ``=>`` line prefixed with its type name. Cycles in the chain are
    cut off.
    """
    lines = [str(exc) or type(exc).__name__]
    seen: set[int] = {id(exc)}
    cause = _next_cause(exc)
    if cause is not None:
        lines.append("  Caused by:")
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        lines.append(f"    => {type(cause).__name__}: {cause}")
        cause = _next_cause(cause)
    return "\n".join(lines)
