"""
Live Feed Refresher - fixed-interval polling bound to a view's lifetime

Features:
1. ViewScope owns every timer and in-flight request started by a view
2. Pollers fetch immediately, then once per interval
3. Each tick is an independent request; overlapping requests race and the
   last one to resolve is applied (optionally guarded by sequence number)
4. Every refresh replaces the previous data wholesale
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Coroutine, Generic, List, Optional, Set, TypeVar

from streetwise.api_client import StreetwiseAPIClient
from streetwise.config import StreetwiseConfig
from streetwise.logging_config import logger
from streetwise.map_surface import MapSurface
from streetwise.models import EscortRequest, SecurityReport


T = TypeVar("T")


class ViewScope:
    """
    Structured-concurrency scope for one view.

    Usage:
        scope = ViewScope("streetwise")
        scope.spawn(poll_loop())
        ...
        await scope.close()   # cancels timers and in-flight fetches
    """

    def __init__(self, name: str):
        self.name = name
        self.alive = True
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> Optional[asyncio.Task]:
        """Run a coroutine inside the scope; refused once the scope is closed"""
        if not self.alive:
            coro.close()
            return None
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        """Stop accepting work and cancel everything still running"""
        if not self.alive:
            return
        self.alive = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug(f"[{self.name}] scope closed, {len(tasks)} task(s) cancelled")


class Poller(Generic[T]):
    """Calls fetch() now and every `interval` seconds, handing results to apply()"""

    def __init__(
        self,
        name: str,
        interval: float,
        fetch: Callable[[], Awaitable[T]],
        apply: Callable[[T], None],
        scope: ViewScope,
        drop_stale: bool = False,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.name = name
        self.interval = interval
        self._fetch = fetch
        self._apply = apply
        self.scope = scope
        self.drop_stale = drop_stale
        self._on_error = on_error

        self._timer: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._issued = 0
        self._applied = 0
        self._awaited = 0
        self.running = False
        self.last_error: Optional[Exception] = None

    @property
    def in_flight(self) -> int:
        """Requests started by ticks or refresh_now() that have not finished"""
        return len(self._in_flight) + self._awaited

    def start(self, immediate: bool = True) -> None:
        """Begin polling; with immediate=False the first request waits one interval"""
        if self.running:
            return
        self.running = True
        if immediate:
            self.tick()
        self._timer = self.scope.spawn(self._loop(), name=f"poll:{self.name}")

    def stop(self) -> None:
        """Cancel the timer and any request still in flight"""
        self.running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for task in list(self._in_flight):
            task.cancel()

    async def _loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.interval)
            self.tick()

    def tick(self) -> Optional[asyncio.Task]:
        """Issue one request without waiting for earlier ones"""
        self._issued += 1
        task = self.scope.spawn(self._fetch_and_apply(self._issued), name=f"fetch:{self.name}:{self._issued}")
        if task is not None:
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
        return task

    async def refresh_now(self) -> bool:
        """Fetch once immediately and wait for the result"""
        self._issued += 1
        self._awaited += 1
        try:
            return await self._fetch_and_apply(self._issued)
        finally:
            self._awaited -= 1

    async def wait_idle(self) -> None:
        """Wait for the ticks already in flight to finish"""
        pending = list(self._in_flight)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _fetch_and_apply(self, sequence: int) -> bool:
        started = time.perf_counter()
        try:
            result = await self._fetch()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.last_error = e
            logger.warning(f"Poll {self.name} failed: {type(e).__name__}: {e}")
            if self._on_error:
                self._on_error(e)
            return False

        duration_ms = (time.perf_counter() - started) * 1000
        count = len(result) if isinstance(result, list) else 1

        if not self.scope.alive:
            return False
        if self.drop_stale and sequence < self._applied:
            logger.log_poll(self.name, count, duration_ms, applied=False, sequence=sequence)
            return False

        self._applied = max(self._applied, sequence)
        self.last_error = None
        self._apply(result)
        logger.log_poll(self.name, count, duration_ms, sequence=sequence)
        return True


class LiveFeedRefresher:
    """
    Keeps the map layers and the active-incident feed current.

    The security and escort layers refresh together on one interval; the
    feed is a separate fetch of the same resource on its own interval.
    """

    def __init__(
        self,
        api: StreetwiseAPIClient,
        map_surface: MapSurface,
        scope: ViewScope,
        config: StreetwiseConfig,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.api = api
        self.map = map_surface
        self.scope = scope

        self.active_reports: List[SecurityReport] = []
        self.last_updated: Optional[datetime] = None
        self._listeners: List[Callable[[str], None]] = []

        self.security_poller: Poller[List[SecurityReport]] = Poller(
            "security-layer",
            config.map_refresh_interval,
            api.list_security_reports,
            self._apply_security_layer,
            scope,
            drop_stale=config.drop_stale_responses,
            on_error=on_error,
        )
        self.escort_poller: Poller[List[EscortRequest]] = Poller(
            "escort-layer",
            config.map_refresh_interval,
            api.list_escort_requests,
            self._apply_escort_layer,
            scope,
            drop_stale=config.drop_stale_responses,
            on_error=on_error,
        )
        self.feed_poller: Poller[List[SecurityReport]] = Poller(
            "active-feed",
            config.feed_refresh_interval,
            api.list_security_reports,
            self._apply_feed,
            scope,
            drop_stale=config.drop_stale_responses,
            on_error=on_error,
        )

    @property
    def is_refreshing(self) -> bool:
        return self.feed_poller.in_flight > 0

    def on_update(self, callback: Callable[[str], None]) -> None:
        """Register callback receiving the name of the view that changed"""
        self._listeners.append(callback)

    def _notify(self, what: str) -> None:
        for callback in self._listeners:
            try:
                callback(what)
            except Exception as e:
                logger.error(f"Refresh listener error: {e}")

    def _apply_security_layer(self, reports: List[SecurityReport]) -> None:
        self.map.set_security_reports(reports)
        self._notify("security-layer")

    def _apply_escort_layer(self, requests: List[EscortRequest]) -> None:
        self.map.set_escort_requests(requests)
        self._notify("escort-layer")

    def _apply_feed(self, reports: List[SecurityReport]) -> None:
        self.active_reports = reports
        self.last_updated = datetime.now(timezone.utc)
        self._notify("active-feed")

    def start(self, map_layers: bool = True) -> None:
        """Start polling; map layers are skipped when the map is unavailable"""
        if map_layers:
            self.security_poller.start()
            self.escort_poller.start()
        self.feed_poller.start()

    def stop(self) -> None:
        self.security_poller.stop()
        self.escort_poller.stop()
        self.feed_poller.stop()

    async def refresh_security_layer(self) -> bool:
        return await self.security_poller.refresh_now()

    async def refresh_escort_layer(self) -> bool:
        return await self.escort_poller.refresh_now()

    async def refresh_feed(self) -> bool:
        return await self.feed_poller.refresh_now()

    async def wait_for_feed(self) -> None:
        """Wait for the feed request issued by start(); fetch once if none is pending"""
        if self.feed_poller.in_flight:
            await self.feed_poller.wait_idle()
        else:
            await self.feed_poller.refresh_now()
