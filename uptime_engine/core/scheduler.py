"""Scheduler driving probes per check-interval group using APScheduler."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError

from uptime_engine.config import EngineConfig
from uptime_engine.core.check_runner import CheckRunner
from uptime_engine.core.metrics import metrics_collector
from uptime_engine.database.store import MonitorStore
from uptime_engine.schemas.monitor import MonitorSnapshot
from uptime_engine.utils.logger import get_logger
from uptime_engine.utils.tasks import BackgroundTaskSet

logger = get_logger(__name__)

RECONCILE_JOB_ID = "reconcile_monitors"


def group_job_id(interval: int) -> str:
    return f"interval_{interval}"


class MonitoringScheduler:
    """
    Owns the set of active monitors and probes them on their cadence.

    Monitors are partitioned by ``check_interval_seconds``; each distinct
    interval gets one APScheduler job that probes all of its members
    concurrently. A separate job reconciles the in-memory set with the
    store. The monitor cache and the grouping are mutated only under
    ``_lock``; ticks copy their member list under the same lock. Ticks run
    as tracked tasks so that ``stop`` can let in-flight checks finish before
    the runner session closes.
    """

    def __init__(
        self,
        config: EngineConfig,
        store: MonitorStore,
        check_runner: CheckRunner
    ):
        """
        Initialize monitoring scheduler.

        Args:
            config: Engine configuration
            store: Source of active monitors
            check_runner: Runner invoked once per monitor per tick
        """
        self.config = config
        self.store = store
        self.check_runner = check_runner
        self.scheduler = AsyncIOScheduler()
        self.monitors: Dict[int, MonitorSnapshot] = {}
        self.groups: Dict[int, Set[int]] = {}
        self.group_jobs: Dict[int, str] = {}
        self._lock = asyncio.Lock()
        self.ticks = BackgroundTaskSet("interval-ticks")
        self._started = False

        logger.info("Monitoring scheduler initialized")

    @property
    def running(self) -> bool:
        return self._started

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Load active monitors, create one timer per interval and start."""
        if self._started:
            logger.warning("Monitoring scheduler already started")
            return

        logger.info("Starting monitoring scheduler")

        await self.check_runner.start()

        try:
            rows = await self.store.list_active_monitors()
        except Exception:
            logger.exception("Failed to load active monitors, starting with an empty schedule")
            rows = []

        async with self._lock:
            for row in rows:
                snapshot = self._snapshot(row)
                if snapshot is not None:
                    self._add_monitor(snapshot)

            for index, interval in enumerate(sorted(self.groups)):
                self._schedule_group(interval, delay=index * self.config.group_stagger_seconds)

            self._sync_metrics()

        self.scheduler.add_job(
            self.reconcile,
            trigger=IntervalTrigger(seconds=self.config.reconcile_interval_seconds),
            id=RECONCILE_JOB_ID,
            name="Reconcile monitors",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        self.scheduler.start()
        self._started = True

        logger.info(
            "Monitoring scheduler started",
            extra={
                "monitors": len(self.monitors),
                "interval_groups": sorted(self.groups)
            }
        )

    async def stop(self) -> None:
        """
        Cancel every timer and clear all in-memory state.

        Ticks already running are given ``shutdown_grace_seconds`` to finish
        before the runner session is closed.
        """
        logger.info("Stopping monitoring scheduler")

        async with self._lock:
            self.scheduler.remove_all_jobs()
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)

            self.group_jobs.clear()
            self.groups.clear()
            self.monitors.clear()
            self._started = False
            self._sync_metrics()

        if not await self.ticks.drain(timeout=self.config.shutdown_grace_seconds):
            logger.warning(
                "Closing check runner with interval ticks still running",
                extra={"pending": len(self.ticks)}
            )

        await self.check_runner.close()

        logger.info("Monitoring scheduler stopped")

    # -- state helpers (call with _lock held) -------------------------------

    def _snapshot(self, row: Any) -> Optional[MonitorSnapshot]:
        try:
            return MonitorSnapshot.model_validate(row)
        except ValidationError as e:
            logger.error(
                "Skipping monitor with invalid configuration",
                extra={"monitor_id": getattr(row, "id", None), "error": str(e)}
            )
            return None

    def _add_monitor(self, snapshot: MonitorSnapshot) -> None:
        self.monitors[snapshot.id] = snapshot
        self.groups.setdefault(snapshot.check_interval_seconds, set()).add(snapshot.id)

    def _remove_monitor(self, monitor_id: int) -> None:
        self.monitors.pop(monitor_id, None)
        for interval in list(self.groups):
            members = self.groups[interval]
            members.discard(monitor_id)
            if not members:
                del self.groups[interval]

    def _schedule_group(self, interval: int, delay: float = 0.0) -> None:
        """Create the timer for an interval group; its first run is after ``delay``."""
        first_run = datetime.now(timezone.utc) + timedelta(seconds=delay)
        job = self.scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=interval),
            args=[interval],
            id=group_job_id(interval),
            name=f"Check {interval}s group",
            next_run_time=first_run,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=interval
        )
        self.group_jobs[interval] = job.id

        logger.info(
            "Scheduled interval group",
            extra={
                "interval": interval,
                "monitors": len(self.groups.get(interval, ())),
                "stagger_seconds": delay,
                "job_id": job.id
            }
        )

    def _unschedule_group(self, interval: int) -> None:
        job_id = self.group_jobs.pop(interval, None)
        if job_id is None:
            return
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            logger.warning("Timer already gone for interval group", extra={"interval": interval})

        logger.info("Removed empty interval group", extra={"interval": interval})

    def _sync_metrics(self) -> None:
        metrics_collector.update_schedule(len(self.monitors), len(self.groups))

    # -- jobs -----------------------------------------------------------------

    async def _tick(self, interval: int) -> None:
        # Shielded: scheduler shutdown cancels the job, not the checks.
        task = self.ticks.spawn(self.run_group(interval), description=f"interval-{interval}")
        await asyncio.shield(task)

    async def run_group(self, interval: int) -> None:
        """
        Probe every member of an interval group concurrently.

        Completes once every probe has settled. A probe that raises is
        logged and does not affect its siblings.

        Args:
            interval: Interval group to run
        """
        async with self._lock:
            members: List[MonitorSnapshot] = [
                self.monitors[monitor_id]
                for monitor_id in sorted(self.groups.get(interval, ()))
                if monitor_id in self.monitors
            ]

        if not members:
            return

        logger.debug(
            "Running interval group",
            extra={"interval": interval, "monitors": len(members)}
        )

        await asyncio.gather(*(self._run_monitor(monitor) for monitor in members))

    async def _run_monitor(self, monitor: MonitorSnapshot) -> None:
        try:
            await self.check_runner.run(monitor)
        except Exception as e:
            logger.exception(
                "Error during scheduled check",
                extra={
                    "monitor_id": monitor.id,
                    "monitor_name": monitor.name,
                    "error": str(e)
                }
            )

    async def reconcile(self) -> None:
        """
        Bring the in-memory monitor set in line with the store.

        New monitors join their interval group, removed or deactivated ones
        leave it, and existing ones get their cached configuration replaced.
        A monitor whose interval changed moves to the matching group. Groups
        without a timer get one that fires immediately; empty groups lose
        theirs. If the store cannot be read the current schedule is kept.
        """
        try:
            rows = await self.store.list_active_monitors()
        except Exception:
            logger.exception("Monitor reconciliation failed, keeping previous schedule")
            return

        fresh: Dict[int, MonitorSnapshot] = {}
        for row in rows:
            snapshot = self._snapshot(row)
            if snapshot is not None:
                fresh[snapshot.id] = snapshot

        added: List[int] = []
        removed: List[int] = []
        moved: List[int] = []

        async with self._lock:
            if not self._started:
                return

            for monitor_id in list(self.monitors):
                if monitor_id not in fresh:
                    self._remove_monitor(monitor_id)
                    metrics_collector.forget_monitor(monitor_id)
                    removed.append(monitor_id)

            for monitor_id, snapshot in fresh.items():
                current = self.monitors.get(monitor_id)
                if current is None:
                    self._add_monitor(snapshot)
                    added.append(monitor_id)
                elif current.check_interval_seconds != snapshot.check_interval_seconds:
                    self._remove_monitor(monitor_id)
                    self._add_monitor(snapshot)
                    moved.append(monitor_id)
                else:
                    self.monitors[monitor_id] = snapshot

            for interval in list(self.group_jobs):
                if interval not in self.groups:
                    self._unschedule_group(interval)

            for interval in sorted(self.groups):
                if interval not in self.group_jobs:
                    self._schedule_group(interval, delay=0.0)

            self._sync_metrics()

        if added or removed or moved:
            logger.info(
                "Reconciled monitors",
                extra={
                    "added": added,
                    "removed": removed,
                    "moved": moved,
                    "monitors": len(self.monitors),
                    "interval_groups": sorted(self.groups)
                }
            )

    # -- introspection --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """
        Get status of the interval groups.

        Returns:
            dict: Running flag, monitor count and one entry per group
        """
        groups = []
        for interval in sorted(self.groups):
            next_run = None
            job_id = self.group_jobs.get(interval)
            job = self.scheduler.get_job(job_id) if job_id else None
            if job is not None and job.next_run_time is not None:
                next_run = job.next_run_time.isoformat()
            groups.append({
                "interval_seconds": interval,
                "monitor_count": len(self.groups[interval]),
                "next_run_time": next_run
            })

        return {
            "running": self._started,
            "monitor_count": len(self.monitors),
            "groups": groups
        }


# Global scheduler instance
_scheduler: Optional[MonitoringScheduler] = None


def get_scheduler() -> Optional[MonitoringScheduler]:
    """
    Get global scheduler instance.

    Returns:
        MonitoringScheduler: Scheduler instance or None if not initialized
    """
    return _scheduler


def set_scheduler(scheduler: Optional[MonitoringScheduler]) -> None:
    """
    Set global scheduler instance.

    Args:
        scheduler: Scheduler instance to set
    """
    global _scheduler
    _scheduler = scheduler
