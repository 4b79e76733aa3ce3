"""Selection of the target the worker process should mine for.

The coordinator wakes up every ``interval`` seconds, drains the snapshot bus
and decides whether to start, replace or stop the worker. Candidates are
ranked by lowest difficulty first, then by highest priority.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional

from common.utils import metrics
from common.utils.exceptions import LaunchError, TerminationError, WorkerError
from loguru import logger

from assistant import settings as assistant_settings

from .config import TargetConfig
from .models import SchedulerState, Snapshot
from .snapshot_bus import SnapshotBus
from .worker import WorkerController


def select_candidate(candidates: Iterable[Snapshot]) -> Optional[Snapshot]:
    """Pick the lowest difficulty; break ties with the highest priority."""
    pool = list(candidates)
    if not pool:
        return None
    lowest = min(snapshot.difficulty for snapshot in pool)
    return max((snapshot for snapshot in pool if snapshot.difficulty == lowest), key=lambda s: s.priority)


def beats(candidate: Snapshot, current: Snapshot) -> bool:
    if candidate.difficulty != current.difficulty:
        return candidate.difficulty < current.difficulty
    return candidate.priority > current.priority


def latest_per_target(snapshots: Iterable[Snapshot]) -> dict[TargetConfig, Snapshot]:
    """Keep the newest snapshot of every target, keyed by its configuration rather than its wallet."""
    latest: dict[TargetConfig, Snapshot] = {}
    for snapshot in snapshots:
        latest[snapshot.target] = snapshot
    return latest


class Coordinator:
    """Single decision authority of a group; the only writer of its ``SchedulerState``."""

    def __init__(
        self,
        bus: SnapshotBus,
        worker: WorkerController,
        fallback: TargetConfig,
        group: str = "",
        interval: float = assistant_settings.SCHEDULER_INTERVAL,
    ):
        self.bus = bus
        self.worker = worker
        self.fallback = fallback
        self.group = group
        self.interval = interval
        self.state = SchedulerState()
        self.known: dict[TargetConfig, Snapshot] = {}

    @property
    def current(self) -> Optional[Snapshot]:
        return self.state.current

    async def run(self) -> None:
        logger.info(f"🚀 Starting scheduler with fallback {self.fallback.identity}")
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_cycle()
            except Exception as e:
                logger.exception(f"Error in scheduler cycle: {e}")

    async def run_cycle(self) -> None:
        """One wake-up: drain pending snapshots and act on them."""
        self._check_worker_liveness()
        if not self.bus.pending():
            return

        fresh = latest_per_target(self.bus.drain())
        self.known.update(fresh)

        current = self.state.current
        if current is not None and not current.target.is_fallback:
            update = fresh.get(current.target)
            if update is not None:
                if not update.continue_mining():
                    logger.info(
                        f"Stopping current miner for {update.identity}: {update.used} used / "
                        f"{update.allowances} allowances (in recent blocks)"
                    )
                    await self._stop()
                    current = None
                else:
                    self.state.current = update
                    current = update

        ready = [snapshot for snapshot in fresh.values() if snapshot.ready_to_mine()]

        if current is None:
            winner = select_candidate(ready)
            if winner is not None:
                logger.info(f"Initializing miner for {winner.describe()}")
                await self._start(winner)
            else:
                logger.info("Initializing miner for fallback")
                await self._start(Snapshot.fallback(self.fallback))
            return

        if current.target.is_fallback:
            # The fallback's synthetic zero difficulty never loses a numeric
            # comparison, so any ready target preempts it.
            winner = select_candidate(ready)
        else:
            pool = (s for s in ready if s.target != current.target and s.difficulty <= current.difficulty)
            winner = select_candidate(pool)
            if winner is not None and not beats(winner, current):
                winner = None

        if winner is not None:
            logger.info(f"Replacing current miner for {current.describe()}, with {winner.describe()}")
            await self._replace(winner)

    def _check_worker_liveness(self) -> None:
        returncode = self.worker.exited()
        if returncode is None:
            return
        current = self.state.current
        logger.warning(
            f"Worker for {current.identity if current else 'unknown target'} exited with code {returncode}; "
            "clearing selection"
        )
        self._set_running(current, False)
        self.worker.forget()
        self.state.current = None

    def _set_running(self, snapshot: Optional[Snapshot], running: bool) -> None:
        if snapshot is not None:
            metrics.WORKER_RUNNING.labels(group=self.group, target=snapshot.target.label).set(1 if running else 0)

    async def _stop(self) -> None:
        current = self.state.current
        try:
            await self.worker.stop()
        except TerminationError as e:
            logger.error(f"Failed to terminate miner for {current.identity if current else 'unknown target'}: {e}")
        self._set_running(current, False)
        self.state.current = None

    async def _start(self, snapshot: Snapshot) -> None:
        try:
            await self.worker.start(snapshot.target)
        except WorkerError as e:
            logger.error(f"Failed to start miner for {snapshot.identity}: {e}")
            self.state.current = None
            return
        self._activate(snapshot)

    async def _replace(self, snapshot: Snapshot) -> None:
        previous = self.state.current
        self._set_running(previous, False)
        try:
            await self.worker.replace(snapshot.target)
        except TerminationError as e:
            logger.error(f"Started miner for {snapshot.identity}, but the previous miner was not terminated: {e}")
        except LaunchError as e:
            logger.error(f"Failed to start miner for {snapshot.identity}: {e}")
            self.state.current = None
            return
        self._activate(snapshot)

    def _activate(self, snapshot: Snapshot) -> None:
        self.state.current = snapshot
        self._set_running(snapshot, True)
        metrics.WORKER_TRANSITIONS.labels(group=self.group, target=snapshot.target.label).inc()

    async def shutdown(self) -> None:
        logger.info("Stopping worker process")
        await self._stop()

    def status(self) -> dict:
        current = self.state.current
        return {
            "rpc": self.group,
            "selected": current.target.label if current else None,
            "fallback": self.state.running_fallback,
            "difficulty": current.difficulty if current else None,
            "worker_pid": self.worker.pid,
            "worker_running": self.worker.running,
            "targets": {
                target.label: {
                    "used": snapshot.used,
                    "allowances": snapshot.allowances,
                    "difficulty": snapshot.difficulty,
                    "priority": snapshot.priority,
                    "ready": snapshot.ready_to_mine(),
                }
                for target, snapshot in self.known.items()
            },
        }
