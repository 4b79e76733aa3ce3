"""Lifecycle of the single external miner process of a group."""

from __future__ import annotations

import asyncio
from typing import Optional

from common.utils.exceptions import LaunchError, TerminationError, WorkerError
from common.utils.timer_logger import TimerLogger
from loguru import logger

from .config import TargetConfig


class WorkerController:
    """Owns the worker process handle; at most one process exists at a time."""

    def __init__(self, executable: str, working_dir: Optional[str] = None):
        self.executable = executable
        self.working_dir = working_dir
        self.process: Optional[asyncio.subprocess.Process] = None
        self.target: Optional[TargetConfig] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    def exited(self) -> Optional[int]:
        """Return the exit code if the process ended on its own, else None."""
        if self.process is None:
            return None
        return self.process.returncode

    def forget(self) -> None:
        """Drop the handle of a process that has already exited."""
        self.process = None
        self.target = None

    async def start(self, target: TargetConfig) -> None:
        """Launch the worker with the target's spawn arguments.

        stdout and stderr are inherited; stdin is a pipe kept open so the
        process stays controllable.
        """
        if self.process is not None:
            raise WorkerError(f"A worker process (pid {self.process.pid}) is already running, replace it instead")

        async with TimerLogger("worker_start", metadata={"target": target.identity}):
            try:
                self.process = await asyncio.create_subprocess_exec(
                    self.executable,
                    *target.spawn_args,
                    cwd=self.working_dir,
                    stdin=asyncio.subprocess.PIPE,
                )
            except (OSError, ValueError) as e:
                raise LaunchError(f"Could not start {self.executable} for {target.identity}: {e}") from e

        self.target = target
        logger.debug(f"Started worker pid {self.process.pid} for {target.identity}")

    async def stop(self) -> None:
        """Kill the current process, if any. Calling it again is a no-op."""
        process = self.process
        if process is None:
            return

        # Release the handle before the kill attempt.
        self.process = None
        target, self.target = self.target, None

        if process.stdin is not None:
            process.stdin.close()

        if process.returncode is not None:
            return

        async with TimerLogger("worker_stop", metadata={"pid": process.pid}):
            try:
                process.kill()
            except ProcessLookupError:
                pass
            except OSError as e:
                raise TerminationError(f"Could not kill worker pid {process.pid}: {e}") from e
            await process.wait()

        logger.debug(f"Stopped worker pid {process.pid} for {target.identity if target else 'unknown target'}")

    async def replace(self, target: TargetConfig) -> None:
        """Stop the current process and start one for ``target``.

        The new process is started even if the old one could not be killed; the
        ``TerminationError`` is raised afterwards so the caller can report it.
        """
        termination_error: Optional[TerminationError] = None
        try:
            await self.stop()
        except TerminationError as e:
            termination_error = e

        try:
            await self.start(target)
        except LaunchError as e:
            if termination_error is None:
                raise
            raise LaunchError(f"{e}; previous worker was not terminated: {termination_error}") from termination_error

        if termination_error is not None:
            raise termination_error
