
# RegionMonitor: the top-level orchestrator.

# Responsibilities:
#   - Own the region directory and the StatusStore (no module-level state)
#   - Run one monitoring cycle at startup, then one every interval
#   - Check regions REGION_BATCH_SIZE at a time, each region probing its
#     addresses ADDRESS_BATCH_SIZE at a time
#   - Publish each RegionStatus as soon as its region finishes
#   - Provide a clean stop() for graceful shutdown
#
# Concurrency model:
#   One asyncio event loop. At most region_batch_size * address_batch_size
#   probes are in flight at any instant, and at most one cycle runs at a
#   time: a trigger that arrives mid-cycle is dropped, never queued behind
#   or run beside the current one.
#
# State machine:
#   IDLE --run_cycle()--> CYCLE_RUNNING --done--> IDLE
#   any --stop()--> STOPPED (once the in-flight batch has drained)

import asyncio
import logging
from enum import Enum
from typing import Iterable

from region_monitor.checker import RegionChecker
from region_monitor.config import Settings
from region_monitor.errors import CheckInterrupted, NotReadyError
from region_monitor.handlers import StatusHandler
from region_monitor.models import Region, RegionStatus
from region_monitor.prober import Prober
from region_monitor.scheduler import run_in_batches
from region_monitor.store import StatusStore

log = logging.getLogger(__name__)


class MonitorState(str, Enum):
    IDLE = "idle"
    CYCLE_RUNNING = "cycle_running"
    STOPPED = "stopped"


class RegionMonitor:

    def __init__(
        self,
        regions: Iterable[Region],
        prober: Prober,
        settings: Settings | None = None,
        store: StatusStore | None = None,
        handlers: Iterable[StatusHandler] = (),
    ) -> None:
        self._regions: tuple[Region, ...] = tuple(regions)
        self._settings = settings or Settings()
        self._store = store or StatusStore()
        self._handlers = list(handlers)
        self._stop_event = asyncio.Event()
        self._checker = RegionChecker(prober, self._settings, self._stop_event)
        self._cycle_running = False
        self._interrupted = False
        self._cycles_completed = 0

    @property
    def state(self) -> MonitorState:
        if self._cycle_running:
            return MonitorState.CYCLE_RUNNING
        if self._stop_event.is_set():
            return MonitorState.STOPPED
        return MonitorState.IDLE

    @property
    def ready(self) -> bool:
        """True once a cycle has run over every region without being stopped."""
        return self._cycles_completed > 0

    @property
    def cycles_completed(self) -> int:
        return self._cycles_completed

    @property
    def regions(self) -> tuple[Region, ...]:
        return self._regions

    @property
    def store(self) -> StatusStore:
        return self._store

    def reload(self, regions: Iterable[Region]) -> None:
        """Swap in a new region directory; the running cycle keeps the old one."""
        self._regions = tuple(regions)
        log.info("Region directory replaced: %d region(s), effective next cycle", len(self._regions))

    def get_status(self) -> list[RegionStatus]:
        """
        Latest status of every region checked so far.

        Raises NotReadyError until the first cycle has completed, so callers
        can tell "nothing known yet" apart from "no regions".
        """
        if not self.ready:
            raise NotReadyError("no monitoring cycle has completed yet")
        return self._store.get_all()

    async def run_cycle(self) -> list[RegionStatus] | None:
        """
        One full pass over every region.

        Returns the statuses written this cycle, or None when the trigger was
        dropped because a cycle is already running or the monitor is stopped.
        """
        if self._stop_event.is_set():
            log.debug("Monitor stopped, ignoring cycle trigger")
            return None
        if self._cycle_running:
            log.warning("Monitoring cycle already in progress, dropping trigger")
            return None

        # no await between the check above and this flag, so no second
        # coroutine can slip in
        self._cycle_running = True
        self._interrupted = False
        regions = self._regions
        loop = asyncio.get_running_loop()
        started = loop.time()
        log.info("Starting monitoring cycle over %d region(s)", len(regions))

        try:
            outcomes = await run_in_batches(
                regions,
                self._settings.region_batch_size,
                self._check_and_store,
                stop_event=self._stop_event,
            )
        finally:
            self._cycle_running = False

        updates = [o for o in outcomes if isinstance(o, RegionStatus)]
        if len(outcomes) < len(regions) or self._interrupted:
            # a cut-short cycle never counts towards readiness
            log.info(
                "Monitoring cycle stopped early: %d/%d region(s) updated", len(updates), len(regions),
            )
            return updates

        self._cycles_completed += 1
        log.info(
            "Monitoring cycle complete: %d/%d region(s) updated, %d online, in %.1fs",
            len(updates), len(regions), sum(1 for s in updates if s.online), loop.time() - started,
        )
        return updates

    async def run(self) -> None:
        """Run cycles until stop(): one now, then one per interval."""
        loop = asyncio.get_running_loop()
        interval = self._settings.interval_seconds
        log.info(
            "RegionMonitor running: %d region(s), every %ss, at most %d concurrent probe(s).",
            len(self._regions), interval, self._settings.max_concurrent_probes,
        )

        try:
            while not self._stop_event.is_set():
                started = loop.time()
                await self.run_cycle()
                elapsed = loop.time() - started

                missed = int(elapsed // interval)
                if missed:
                    log.warning(
                        "Cycle took %.1fs, longer than the %ss interval; dropping %d tick(s)",
                        elapsed, interval, missed,
                    )
                delay = interval - (elapsed % interval)

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._stop_event.set()
            log.info("RegionMonitor stopped.")

    def stop(self) -> None:
        """Stop scheduling new batches. The batch in flight drains on its own timeouts."""
        if not self._stop_event.is_set():
            log.info("Stop requested")
        self._stop_event.set()

    async def _check_and_store(self, region: Region) -> RegionStatus | None:
        try:
            status = await self._checker.check(region)
        except CheckInterrupted:
            self._interrupted = True
            log.info("Check of %s interrupted by shutdown; previous status kept", region.name)
            return None
        except Exception:
            log.exception("Error monitoring %s; previous status kept", region.name)
            return None

        self._store.upsert(region.name, status)
        for handler in self._handlers:
            try:
                await handler.handle(status)
            except Exception:
                log.exception("Status handler %r failed for %s", handler, region.name)
        return status
