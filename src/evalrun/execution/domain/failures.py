"""Row indices whose pipeline raised, shared across concurrent rows."""

import asyncio


class FailedIndexSet:
    def __init__(self) -> None:
        self._indices: set[int] = set()
        self._lock = asyncio.Lock()

    async def add(self, index: int) -> None:
        async with self._lock:
            self._indices.add(index)

    def sorted(self) -> list[int]:
        return sorted(self._indices)

    def __len__(self) -> int:
        return len(self._indices)
