from __future__ import annotations

import asyncio
import contextlib

from common.utils.exceptions import LedgerRPCException
from ledger.qkc_api_client import QkcAPIClient
from loguru import logger

from .config import GroupConfig
from .poller import AllowancePoller
from .scheduler import Coordinator
from .snapshot_bus import SnapshotBus
from .worker import WorkerController


class MiningGroup:
    """One top-level configuration group: its pollers, bus, coordinator and worker.

    Groups share nothing; each has its own RPC session and worker process.
    """

    def __init__(self, config: GroupConfig):
        self.config = config
        self.bus = SnapshotBus()
        self.client = QkcAPIClient(config.rpc)
        self.worker = WorkerController(config.miner_exe, config.miner_dir)
        self.coordinator = Coordinator(self.bus, self.worker, config.fallback, group=config.rpc)
        self.pollers = [
            AllowancePoller(target, self.client, self.bus, group=config.rpc) for target in config.targets
        ]

    async def _log_network(self) -> None:
        try:
            info = await self.client.network_info()
        except LedgerRPCException as e:
            logger.warning(f"Could not query network info from {self.config.rpc}: {e}")
            return
        logger.info(f"Connected to network {info.network_id} ({info.chain_size} chains, syncing: {info.syncing})")

    async def run(self) -> None:
        with logger.contextualize(group=self.config.rpc):
            async with self.client:
                await self._log_network()
                tasks = [
                    asyncio.create_task(poller.run(), name=f"poller-{poller.target.identity}")
                    for poller in self.pollers
                ]
                tasks.append(asyncio.create_task(self.coordinator.run(), name=f"scheduler-{self.config.rpc}"))
                try:
                    await asyncio.gather(*tasks)
                finally:
                    for task in tasks:
                        task.cancel()
                    for task in tasks:
                        with contextlib.suppress(asyncio.CancelledError):
                            await task
                    await self.coordinator.shutdown()
