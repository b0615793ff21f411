"""ConcurrencyGate — a FIFO counting semaphore, and the process-wide registry of gates."""

import asyncio
import hashlib
import threading
from collections import deque
from types import TracebackType


class ConcurrencyGate:
    """Limits the number of simultaneous holders to ``max_holders``.

    A released slot is handed directly to the longest-waiting caller, so
    waiters are admitted strictly in arrival order.
    """

    def __init__(self, max_holders: int) -> None:
        if max_holders < 1:
            raise ValueError(f"max_holders must be >= 1, got {max_holders}")
        self._max_holders = max_holders
        self._holders = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def max_holders(self) -> int:
        return self._max_holders

    @property
    def holders(self) -> int:
        return self._holders

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    async def acquire(self) -> None:
        if self._holders < self._max_holders and not self._waiters:
            self._holders += 1
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was handed over just before cancellation; pass it on.
                self.release()
            else:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        # Slot ownership transfers to the waiter; the holder count stays the same.
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        if self._holders == 0:
            raise RuntimeError("release() called on a gate with no holders")
        self._holders -= 1

    async def __aenter__(self) -> "ConcurrencyGate":
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()


class GateRegistry:
    """Maps a composite key to a single shared ConcurrencyGate.

    The first lookup of a key creates its gate with the requested size; later
    lookups return the same instance regardless of ``max_holders``. Gates are
    never evicted.
    """

    def __init__(self) -> None:
        self._gates: dict[str, ConcurrencyGate] = {}
        self._lock = threading.Lock()

    def get(self, key: str, max_holders: int) -> ConcurrencyGate:
        digest = hashlib.md5(key.encode("utf-8")).hexdigest()
        with self._lock:
            gate = self._gates.get(digest)
            if gate is None:
                gate = ConcurrencyGate(max_holders=max_holders)
                self._gates[digest] = gate
            return gate

    def __len__(self) -> int:
        with self._lock:
            return len(self._gates)


def gate_key(workspace_id: str, name: str, run_id: str) -> str:
    return f"{workspace_id}:{name}:{run_id}"


gate_registry = GateRegistry()
