"""Fixed-rate poll cycle: snapshot -> groups -> sorted sections + chart series.

One PollCycle drives one view. A timer fires every `interval` seconds; each
tick runs a single poll of the data source unless one is already in flight,
in which case the tick is dropped rather than queued. A failed poll keeps the
last good data on screen with an error flag and is retried at the next tick.
"""

import asyncio
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol

import structlog

from taskpulse.aggregator import aggregate
from taskpulse.channels import CoreLayout, record_stats
from taskpulse.history import AppHistory
from taskpulse.models import Entity, Group, Snapshot
from taskpulse.ringbuffer import SeriesRegistry
from taskpulse.sorting import SortConfig, SortKey, partition_groups, sort_groups

log = structlog.get_logger()


class DataSource(Protocol):
    """Anything that can produce a Snapshot on demand."""

    async def poll(self) -> Snapshot:
        """Return a complete snapshot or raise."""
        ...


class PollState(Enum):
    """Phase of a PollCycle."""

    IDLE = "idle"
    POLLING = "polling"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclass(frozen=True)
class ViewState:
    """Everything a view needs to render one poll's result.

    `error` is set when the most recent poll failed; the rest of the fields
    then hold the last successful poll's data.
    """

    apps: tuple[Group, ...] = ()
    background: tuple[Group, ...] = ()
    series: Mapping[str, list[float]] = field(default_factory=dict)
    sort_config: SortConfig = field(default_factory=SortConfig)
    snapshot: Snapshot | None = None
    error: bool = False
    error_message: str | None = None
    poll_count: int = 0
    published_at: float = 0.0

    @property
    def groups(self) -> tuple[Group, ...]:
        """Apps followed by background groups, in display order."""
        return self.apps + self.background


PublishCallback = Callable[[ViewState], None]
ErrorCallback = Callable[[str], None]
EntityFilter = Callable[[Sequence[Entity]], Sequence[Entity]]


class PollCycle:
    """Polls a DataSource at a fixed rate and publishes ViewStates.

    At most one poll is in flight at a time. Results that arrive after
    stop() are discarded without touching state or invoking callbacks.

    `history` sees every entity of a poll; `entity_filter` only narrows what
    is published, so a search never stops history from accumulating.
    """

    def __init__(
        self,
        source: DataSource,
        *,
        interval: float,
        registry: SeriesRegistry | None = None,
        sort_config: SortConfig = SortConfig(),
        on_publish: PublishCallback | None = None,
        on_error: ErrorCallback | None = None,
        name: str = "poll",
        poll_timeout: float | None = None,
        history: AppHistory | None = None,
        entity_filter: EntityFilter | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        if poll_timeout is not None and poll_timeout <= 0:
            raise ValueError(f"poll_timeout must be > 0, got {poll_timeout}")

        self.source = source
        self.interval = interval
        self.name = name
        self.registry = registry if registry is not None else SeriesRegistry()
        self.history = history
        self.entity_filter = entity_filter
        self.on_publish = on_publish
        self.on_error = on_error
        self.poll_timeout = poll_timeout

        self._sort_config = sort_config
        self._cores = CoreLayout()
        self._state = PollState.IDLE
        self._view: ViewState | None = None
        self._groups: list[Group] = []
        self._poll_count = 0
        self._dropped = 0
        self._last_success: float | None = None

        self._in_flight = False
        self._stopped = False
        self._stop_event = asyncio.Event()
        self._timer_task: asyncio.Task | None = None
        self._tick_tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> PollState:
        """Current phase."""
        return self._state

    @property
    def view(self) -> ViewState | None:
        """Most recently published ViewState, or None before the first publish."""
        return self._view

    @property
    def sort_config(self) -> SortConfig:
        """Sort order applied to the next publish."""
        return self._sort_config

    @property
    def in_flight(self) -> bool:
        """True while a poll is awaiting the data source."""
        return self._in_flight

    @property
    def dropped_ticks(self) -> int:
        """Number of ticks skipped because a poll was in flight."""
        return self._dropped

    @property
    def running(self) -> bool:
        """True between start() and stop()."""
        return self._timer_task is not None and not self._stopped

    # ─────────────────────────────────────────────────────────────────────
    # Polling
    # ─────────────────────────────────────────────────────────────────────

    async def tick(self) -> bool:
        """Run one poll unless one is in flight or the cycle is stopped.

        Returns:
            True if a poll ran to completion (published or failed),
            False if the tick was dropped or its result discarded.
        """
        if self._stopped:
            return False
        if self._in_flight:
            self._dropped += 1
            log.debug("tick_dropped", cycle=self.name, dropped=self._dropped)
            return False

        self._in_flight = True
        self._state = PollState.POLLING
        snapshot: Snapshot | None = None
        error: str | None = None
        try:
            snapshot = await self._poll_source()
        except Exception as e:
            error = self._describe(e)
        finally:
            self._in_flight = False
            self._state = PollState.IDLE

        if self._stopped:
            log.debug("late_result_discarded", cycle=self.name, failed=error is not None)
            return False
        if error is not None or snapshot is None:
            self._fail(error or "data source returned no snapshot")
        else:
            self._publish(snapshot)
        return True

    async def _poll_source(self) -> Snapshot:
        if self.poll_timeout is None:
            return await self.source.poll()
        return await asyncio.wait_for(self.source.poll(), timeout=self.poll_timeout)

    def _describe(self, e: Exception) -> str:
        if isinstance(e, asyncio.TimeoutError):
            return f"poll timed out after {self.poll_timeout:g}s"
        return str(e) or type(e).__name__

    def _publish(self, snapshot: Snapshot) -> None:
        now = time.monotonic()
        elapsed_ms = 0.0 if self._last_success is None else (now - self._last_success) * 1000
        self._last_success = now

        groups = aggregate(snapshot.entities)
        record_stats(self.registry, snapshot.stats, self._cores)
        if self.history is not None:
            self.history.record(groups, elapsed_ms)
        if self.entity_filter is not None:
            snapshot = replace(snapshot, entities=tuple(self.entity_filter(snapshot.entities)))
            groups = aggregate(snapshot.entities)

        recovered = self._view is not None and self._view.error
        self._groups = groups
        self._poll_count += 1
        self._view = self._build_view(snapshot, error=False, error_message=None)

        if recovered:
            log.info("poll_recovered", cycle=self.name, poll_count=self._poll_count)
        log.debug(
            "poll_published",
            cycle=self.name,
            groups=len(groups),
            entities=len(snapshot.entities),
        )
        self._emit(PollState.PUBLISHED)

    def _fail(self, message: str) -> None:
        log.warning("poll_failed", cycle=self.name, error=message)
        if self._view is None:
            self._view = ViewState(
                sort_config=self._sort_config,
                error=True,
                error_message=message,
                published_at=time.time(),
            )
        else:
            self._view = replace(
                self._view, error=True, error_message=message, published_at=time.time()
            )
        self._emit(PollState.FAILED, message)

    def _build_view(
        self, snapshot: Snapshot | None, *, error: bool, error_message: str | None
    ) -> ViewState:
        apps, background = partition_groups(sort_groups(self._groups, self._sort_config))
        return ViewState(
            apps=tuple(apps),
            background=tuple(background),
            series=self.registry.snapshot(),
            sort_config=self._sort_config,
            snapshot=snapshot,
            error=error,
            error_message=error_message,
            poll_count=self._poll_count,
            published_at=time.time(),
        )

    def _emit(self, outcome: PollState, message: str | None = None) -> None:
        self._state = outcome
        try:
            if outcome is PollState.FAILED and self.on_error is not None and message:
                self.on_error(message)
            if self.on_publish is not None and self._view is not None:
                self.on_publish(self._view)
        finally:
            self._state = PollState.IDLE

    # ─────────────────────────────────────────────────────────────────────
    # Sorting
    # ─────────────────────────────────────────────────────────────────────

    def set_sort(self, config: SortConfig) -> ViewState | None:
        """Change the sort order and republish the last groups without polling."""
        self._sort_config = config
        log.debug("sort_changed", cycle=self.name, key=config.key.value, dir=config.direction.value)
        if self._view is None or self._stopped:
            return None
        self._view = self._build_view(
            self._view.snapshot,
            error=self._view.error,
            error_message=self._view.error_message,
        )
        if self.on_publish is not None:
            self.on_publish(self._view)
        return self._view

    def toggle_sort(self, key: SortKey) -> SortConfig:
        """Apply a column-header click and return the resulting sort config."""
        config = self._sort_config.toggle(key)
        self.set_sort(config)
        return config

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def request_refresh(self) -> bool:
        """Schedule an immediate out-of-cycle poll.

        Returns False if a poll is already in flight or the cycle is stopped.
        Must be called from within the running event loop.
        """
        if self._stopped or self._in_flight:
            if self._in_flight:
                self._dropped += 1
                log.debug("refresh_dropped", cycle=self.name)
            return False
        self._spawn_tick()
        return True

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self._guarded_tick())
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    async def _guarded_tick(self) -> None:
        # Poll errors are handled in tick(); this only catches callback failures
        try:
            await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.exception("tick_crashed", cycle=self.name, error=str(e))

    def start(self) -> None:
        """Start the fixed-rate timer; the first tick fires immediately."""
        if self._stopped:
            raise RuntimeError(f"poll cycle {self.name!r} has been stopped")
        if self._timer_task is not None:
            raise RuntimeError(f"poll cycle {self.name!r} already started")
        log.info("cycle_started", cycle=self.name, interval=self.interval)
        self._timer_task = asyncio.create_task(self._timer())

    async def _timer(self) -> None:
        loop = asyncio.get_running_loop()
        next_fire = loop.time()
        while not self._stop_event.is_set():
            self._spawn_tick()
            next_fire += self.interval
            now = loop.time()
            if next_fire <= now:
                # Fell behind; skip the missed ticks instead of bursting
                skipped = int((now - next_fire) // self.interval) + 1
                next_fire += skipped * self.interval
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=next_fire - now)
                break
            except asyncio.TimeoutError:
                pass

    async def stop(self) -> None:
        """Stop the timer and cancel any in-flight poll.

        A poll result that arrives after this point is discarded.
        """
        if self._stopped:
            return
        self._stopped = True
        self._stop_event.set()

        tasks = [t for t in (self._timer_task, *self._tick_tasks) if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tick_tasks.clear()
        self._in_flight = False
        self._state = PollState.IDLE
        log.info("cycle_stopped", cycle=self.name, poll_count=self._poll_count)
