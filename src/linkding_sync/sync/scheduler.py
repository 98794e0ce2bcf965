"""Single-flight scheduler for all sync runs.

``SyncScheduler`` is an explicit two-state machine (``IDLE`` / ``RUNNING``)
with one *queued* flag:

- a request while ``IDLE`` moves to ``RUNNING`` and starts the run;
- a manual request while ``RUNNING`` fails at once with ``SyncBusyError``;
- a timer or change-driven reconciliation request while ``RUNNING`` sets
  the queued flag (duplicates collapse) and returns ``None``;
- on completion the scheduler goes back to ``IDLE``, unless the flag is
  set, in which case it clears the flag and immediately runs the queued
  reconciliation without leaving ``RUNNING``.

Local change events are debounced: each event restarts a timer and only a
quiet period of ``debounce_seconds`` triggers a reconciliation.  Events
seen while ``RUNNING`` are the run's own writes and are dropped.

All state lives on the event loop thread; store work runs in worker
threads through ``run_sync``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from linkding_sync.core.async_utils import run_sync
from linkding_sync.exceptions import SyncBusyError
from linkding_sync.local.tree import BookmarkFile, TreeEvent
from linkding_sync.sync.models import (
    InitialSyncMode,
    InitialSyncReport,
    MirrorReport,
    ReconcileReport,
)

if TYPE_CHECKING:
    from linkding_sync.sync.service import BookmarkSyncService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RunKind(str, Enum):
    """Origin of a run request."""

    MANUAL_ONE_SHOT = "manual_one_shot"
    MANUAL_BIDIRECTIONAL = "manual_bidirectional"
    MANUAL_INITIAL = "manual_initial"
    TIMER = "timer"
    CHANGE = "change"


QUEUEABLE = frozenset({RunKind.TIMER, RunKind.CHANGE})


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class SyncScheduler:
    """Serialise initial syncs, reconciliations and mirror runs.

    Args:
        service: The blocking sync service.
        debounce_seconds: Quiet period for change-driven runs; defaults to
            the service's ``sync.debounce_seconds``.
        interval_seconds: Periodic timer interval; defaults to
            ``sync.interval_minutes``.
        poll_seconds: How often the bookmarks file is checked for external
            edits; defaults to ``sync.poll_seconds`` (0 disables).
    """

    def __init__(
        self,
        service: BookmarkSyncService,
        *,
        debounce_seconds: float | None = None,
        interval_seconds: float | None = None,
        poll_seconds: float | None = None,
    ) -> None:
        self.service = service
        sync = service.sync
        self.debounce_seconds = (
            sync.debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.interval_seconds = (
            sync.interval_minutes * 60 if interval_seconds is None else interval_seconds
        )
        self.poll_seconds = sync.poll_seconds if poll_seconds is None else poll_seconds

        self.state = SchedulerState.IDLE
        self.current: RunKind | None = None
        self.last_run: dict[str, Any] | None = None
        self._queued = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._debounce: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._loops: list[asyncio.Task] = []
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def queued(self) -> bool:
        return self._queued

    @property
    def running(self) -> bool:
        return self.state == SchedulerState.RUNNING

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def run_initial_sync(
        self, mode: InitialSyncMode | str
    ) -> InitialSyncReport:
        """Run an initial sync; raises ``SyncBusyError`` while running."""
        return await self._submit(
            RunKind.MANUAL_INITIAL, self.service.run_initial_sync, mode
        )

    async def run_reconciliation(
        self, kind: RunKind = RunKind.MANUAL_BIDIRECTIONAL
    ) -> ReconcileReport | None:
        """Run a reconciliation.

        Returns ``None`` when a timer/change request was queued behind the
        active run instead of being executed now.

        Raises:
            SyncBusyError: For a manual request while a run is active.
        """
        return await self._submit(
            kind, self.service.run_reconciliation, queueable=kind in QUEUEABLE
        )

    async def run_mirror(
        self, kind: RunKind = RunKind.MANUAL_ONE_SHOT
    ) -> MirrorReport:
        """Run the one-way mirror; raises ``SyncBusyError`` while running."""
        return await self._submit(kind, self.service.run_mirror)

    async def _submit(
        self,
        kind: RunKind,
        func: Callable[..., T],
        *args: Any,
        queueable: bool = False,
    ) -> T | None:
        if self.running:
            if queueable:
                if not self._queued:
                    logger.info(
                        "Sync in progress (%s); queued %s reconciliation",
                        self.current.value if self.current else "?",
                        kind.value,
                    )
                self._queued = True
                return None
            raise SyncBusyError()

        self._enter(kind)
        try:
            return await self._execute(kind, func, *args)
        finally:
            self._release()

    async def _execute(
        self, kind: RunKind, func: Callable[..., T], *args: Any
    ) -> T:
        logger.info("Starting %s run", kind.value)
        started = datetime.now(timezone.utc).isoformat()
        try:
            result = await run_sync(func, *args)
        except Exception as exc:
            self._record(kind, started, error=str(exc))
            raise
        self._record(kind, started)
        return result

    def _record(self, kind: RunKind, started: str, error: str | None = None) -> None:
        self.last_run = {
            "kind": kind.value,
            "started_at": started,
            "completed_at": datetime.now(timezone.utc).isoformat(),
            "success": error is None,
            "error": error,
        }

    def _enter(self, kind: RunKind) -> None:
        self.state = SchedulerState.RUNNING
        self.current = kind
        self._idle.clear()

    def _release(self) -> None:
        if self._queued:
            self._queued = False
            self.current = RunKind.CHANGE
            self._spawn(self._run_queued())
            return
        self.state = SchedulerState.IDLE
        self.current = None
        self._idle.set()

    async def _run_queued(self) -> None:
        try:
            await self._execute(RunKind.CHANGE, self.service.run_reconciliation)
        except Exception:
            logger.exception("Queued reconciliation failed")
        finally:
            self._release()

    async def wait_idle(self) -> None:
        """Wait until no run is active or queued."""
        await self._idle.wait()

    # ------------------------------------------------------------------
    # Change-driven triggers
    # ------------------------------------------------------------------

    def notify_local_change(self, event: TreeEvent | None = None) -> None:
        """Feed one local change event into the debounce timer.

        Must be called on the event loop thread.
        """
        if self.running:
            logger.debug("Ignoring local change during a run: %s", event)
            return
        if event is not None and not self.service.is_in_sync_scope(event):
            return
        if self._debounce is not None:
            self._debounce.cancel()
        loop = asyncio.get_running_loop()
        self._debounce = loop.call_later(self.debounce_seconds, self._debounce_fired)

    def change_listener(self) -> Callable[[TreeEvent], None]:
        """Return a tree listener that may be called from any thread."""
        loop = asyncio.get_running_loop()

        def listener(event: TreeEvent) -> None:
            loop.call_soon_threadsafe(self.notify_local_change, event)

        return listener

    def _debounce_fired(self) -> None:
        self._debounce = None
        self._spawn(self._background_reconcile(RunKind.CHANGE))

    async def _background_reconcile(self, kind: RunKind) -> None:
        try:
            if not await run_sync(self.service.is_two_way_ready):
                logger.debug("Two-way sync not ready; ignoring %s trigger", kind.value)
                return
            await self.run_reconciliation(kind)
        except Exception:
            logger.exception("%s reconciliation failed", kind.value.capitalize())

    # ------------------------------------------------------------------
    # Periodic work
    # ------------------------------------------------------------------

    async def tick(self) -> None:
        """One periodic timer firing: mirror, then two-way reconciliation."""
        if self.service.mirror_enabled:
            try:
                await self.run_mirror(RunKind.TIMER)
            except SyncBusyError:
                logger.info("Skipping scheduled mirror: a sync is in progress")
            except Exception:
                logger.exception("Scheduled mirror failed")
        await self._background_reconcile(RunKind.TIMER)

    async def _timer_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.tick()

    async def _poll_loop(self, tree: BookmarkFile) -> None:
        while True:
            await asyncio.sleep(self.poll_seconds)
            if self.running:
                continue
            try:
                await run_sync(tree.reload_if_changed)
            except Exception:
                logger.exception("Failed to reload %s", tree.path)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, auto_sync: bool | None = None) -> None:
        """Subscribe to tree changes and start the timer and file poller."""
        if auto_sync is None:
            auto_sync = self.service.sync.auto_sync
        self._unsubscribe = self.service.tree.subscribe(self.change_listener())
        if auto_sync:
            logger.info(
                "Periodic sync every %.0f seconds", self.interval_seconds
            )
            self._loops.append(asyncio.create_task(self._timer_loop()))
        tree = self.service.tree
        if self.poll_seconds > 0 and isinstance(tree, BookmarkFile):
            self._loops.append(asyncio.create_task(self._poll_loop(tree)))

    async def stop(self) -> None:
        """Stop triggers and wait for the active run to finish."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        for task in self._loops:
            task.cancel()
        await asyncio.gather(*self._loops, return_exceptions=True)
        self._loops.clear()
        await self.wait_idle()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "current": self.current.value if self.current else None,
            "queued": self._queued,
            "last_run": self.last_run,
        }
