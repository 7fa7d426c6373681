# src/scenario_player/core/connection.py
"""HTTP client pool with exclusive per-scenario slots."""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set, Tuple
import logging

import aiohttp

from .config import HttpConfig

logger = logging.getLogger(__name__)


def create_session(config: Optional[HttpConfig] = None) -> aiohttp.ClientSession:
    """Create a cookie-enabled HTTP session for one pool slot.

    Must be called from inside a running event loop.
    """
    config = config or HttpConfig()

    timeout = aiohttp.ClientTimeout(
        total=config.timeout,
        connect=config.connect_timeout,
    )
    connector_options: Dict[str, Any] = {"limit": config.max_connections_per_slot}
    if not config.verify_ssl:
        connector_options["ssl"] = False
    connector = aiohttp.TCPConnector(**connector_options)

    # Unsafe jar so cookies set by IP-addressed targets are kept
    return aiohttp.ClientSession(
        connector=connector,
        timeout=timeout,
        cookie_jar=aiohttp.CookieJar(unsafe=True),
        headers={"User-Agent": config.user_agent},
    )


@dataclass
class ClientSlot:
    """One exclusive-use HTTP client handle.

    Every slot owns a worker thread running its own event loop. The slot's
    client is created on that loop and the scenarios played on the slot run
    there too, so runs on different slots execute in parallel threads.
    """
    index: int
    client: Any = None
    acquisitions: int = 0
    loop: Optional[asyncio.AbstractEventLoop] = field(default=None, repr=False)
    worker: Optional[concurrent.futures.ThreadPoolExecutor] = field(default=None, repr=False)

    def reset(self) -> None:
        """Drop cookie state held by the client."""
        cookie_jar = getattr(self.client, "cookie_jar", None)
        if cookie_jar is not None:
            cookie_jar.clear()
            logger.debug(f"Cleared cookies of slot {self.index}")

    @property
    def is_started(self) -> bool:
        return self.worker is not None

    def start(self) -> None:
        """Start the worker thread and event loop of this slot."""
        if self.worker is not None:
            return

        self.loop = asyncio.new_event_loop()
        self.worker = concurrent.futures.ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=f"slot-{self.index}",
        )
        logger.debug(f"Started worker thread of slot {self.index}")

    async def run(self, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """
        Run a coroutine function on the slot's own thread and event loop.

        The calling loop stays free while the work runs, whatever the work
        blocks on.
        """
        self.start()
        return await asyncio.get_running_loop().run_in_executor(
            self.worker, self._run_in_thread, func, args)

    def _run_in_thread(self, func: Callable[..., Awaitable[Any]], args: Tuple[Any, ...]) -> Any:
        asyncio.set_event_loop(self.loop)
        return self.loop.run_until_complete(func(*args))

    async def stop(self) -> None:
        """Close the slot's event loop and stop its worker thread."""
        if self.worker is None:
            return

        worker, self.worker = self.worker, None
        try:
            await asyncio.get_running_loop().run_in_executor(worker, self._close_loop)
        finally:
            worker.shutdown(wait=True)
            self.loop = None
        logger.debug(f"Stopped worker thread of slot {self.index}")

    def _close_loop(self) -> None:
        try:
            self.loop.run_until_complete(self.loop.shutdown_asyncgens())
        finally:
            self.loop.close()


class ClientPool:
    """Fixed-size pool of HTTP clients.

    Each slot is bound to at most one scenario run at a time. `acquire`
    suspends until a slot is free; waiters are served in FIFO order.
    The pool may be used from one event loop after another, e.g. by
    successive `asyncio.run` calls, as long as they do not overlap.
    """

    def __init__(self,
                 size: int,
                 client_factory: Optional[Callable[[], Any]] = None,
                 reset_on_release: bool = False):
        """
        Initialize client pool.

        Args:
            size: Number of slots, i.e. the concurrency limit
            client_factory: Callable (sync or async) creating one client per
                slot; it is called on the slot's own event loop
            reset_on_release: Clear slot cookie state whenever a slot is released
        """
        if isinstance(size, bool) or not isinstance(size, int):
            raise TypeError(f"Pool size must be an integer: {size!r}")
        if size < 1:
            raise ValueError(f"Pool size must be positive: {size}")

        self.size = size
        self.client_factory = client_factory
        self.reset_on_release = reset_on_release
        self.slots: List[ClientSlot] = [ClientSlot(index=i) for i in range(size)]
        self.max_in_use = 0

        self._in_use: Set[int] = set()
        self._initialized = False

        # Queue and lock belong to the loop that created them
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._free: Optional[asyncio.Queue] = None
        self._init_lock: Optional[asyncio.Lock] = None

    def _bind_loop(self) -> None:
        """Create the free-slot queue and init lock on the running loop."""
        loop = asyncio.get_running_loop()
        if loop is self._loop:
            return

        free = [slot for slot in self.slots if slot.index not in self._in_use]
        if self._free is not None:
            # Keep the release order of the previous loop's queue
            free = []
            while not self._free.empty():
                free.append(self._free.get_nowait())

        self._free = asyncio.Queue()
        for slot in free:
            self._free.put_nowait(slot)
        self._init_lock = asyncio.Lock()
        self._loop = loop
        logger.debug(f"Bound client pool to event loop {id(loop):#x}")

    async def _create_client(self) -> Any:
        client = self.client_factory()
        if inspect.isawaitable(client):
            client = await client
        return client

    @staticmethod
    async def _close_client(client: Any) -> None:
        close = getattr(client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

    async def initialize(self) -> None:
        """Start every slot and create its client on the slot's loop."""
        self._bind_loop()
        async with self._init_lock:
            if self._initialized:
                return

            for slot in self.slots:
                slot.start()

            if self.client_factory is not None:
                clients = await asyncio.gather(*(slot.run(self._create_client) for slot in self.slots))
                for slot, client in zip(self.slots, clients):
                    slot.client = client

            self._initialized = True
            logger.debug(f"Initialized client pool with {self.size} slots")

    async def acquire(self) -> ClientSlot:
        """Take a free slot, waiting until one is released if necessary."""
        self._bind_loop()
        if not self._initialized:
            await self.initialize()

        slot = await self._free.get()
        self._in_use.add(slot.index)
        slot.acquisitions += 1
        self.max_in_use = max(self.max_in_use, len(self._in_use))

        logger.debug(f"Acquired slot {slot.index} ({self.free_count} free)")
        return slot

    def release(self, slot: ClientSlot) -> None:
        """Return a slot to the pool, making it immediately available."""
        if slot.index not in self._in_use or self.slots[slot.index] is not slot:
            raise ValueError(f"Slot {slot.index} is not acquired from this pool")

        self._in_use.discard(slot.index)
        if self.reset_on_release:
            slot.reset()
        self._free.put_nowait(slot)

        logger.debug(f"Released slot {slot.index} ({self.free_count} free)")

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[ClientSlot]:
        """Hold a slot for the duration of the block."""
        acquired = await self.acquire()
        try:
            yield acquired
        finally:
            self.release(acquired)

    @property
    def free_count(self) -> int:
        return self.size - len(self._in_use)

    @property
    def in_use_count(self) -> int:
        return len(self._in_use)

    def get_pool_stats(self) -> Dict[str, Any]:
        """Get pool statistics."""
        return {
            "size": self.size,
            "free": self.free_count,
            "in_use": self.in_use_count,
            "max_in_use": self.max_in_use,
            "acquisitions": [slot.acquisitions for slot in self.slots],
        }

    async def close_all(self) -> None:
        """Close all clients and stop the slot threads."""
        open_slots = [slot for slot in self.slots if slot.client is not None]
        results = await asyncio.gather(
            *(slot.run(self._close_client, slot.client) for slot in open_slots),
            return_exceptions=True,
        )
        for slot, result in zip(open_slots, results):
            if isinstance(result, Exception):
                logger.error(f"Error closing client of slot {slot.index}: {result}")

        for slot in self.slots:
            slot.client = None
        await asyncio.gather(*(slot.stop() for slot in self.slots))

        self._initialized = False
        if not self._in_use:
            self._loop = self._free = self._init_lock = None
        logger.debug("Client pool closed")

    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close_all()
