"""PagedFunctionSource — rows produced page by page by a user function."""

import inspect
from collections.abc import Awaitable, Callable

from evalrun.dataset.domain.row import Row

type PageFunction = Callable[[int], list[Row] | None | Awaitable[list[Row] | None]]


class PagedFunctionSource:
    """Adapts a sync or async ``(page) -> rows | None`` function to PagedRowSource."""

    def __init__(self, function: PageFunction) -> None:
        self._function = function

    async def fetch_page(self, page: int) -> list[Row] | None:
        result = self._function(page)
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            return None
        return list(result)
