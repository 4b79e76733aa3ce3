"""Per-target allowance poller.

Every ``poll_interval`` seconds the poller counts how many of the last
``window`` blocks of its chain were mined by the target, derives the target's
allowance capacity from its balance (root targets: staked amount) and
publishes a ``Snapshot``. Failed cycles publish nothing and are retried.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional, Sequence

from common.utils import metrics
from common.utils.exceptions import LedgerRPCException
from common.utils.formulas import calculate_allowances, format_difficulty, shard_difficulty
from common.utils.timer_logger import TimerLogger
from ledger.models import Block
from ledger.qkc_api_client import QkcAPIClient
from loguru import logger

from assistant import settings as assistant_settings

from .config import TargetConfig
from .models import Snapshot
from .snapshot_bus import SnapshotBus


def preceding_heights(latest_height: int, window: int) -> list[int]:
    """Heights of the ``window - 1`` blocks before ``latest_height``, oldest first."""
    return list(range(max(latest_height - (window - 1), 0), latest_height))


def chunked(items: Sequence[int], size: int) -> list[Sequence[int]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def count_mined(blocks: Iterable[Block], coinbase: str) -> int:
    coinbase = coinbase.lower()
    return sum(1 for block in blocks if block.miner.lower().startswith(coinbase))


class AllowancePoller:
    def __init__(
        self,
        target: TargetConfig,
        client: QkcAPIClient,
        bus: SnapshotBus,
        group: str = "",
        poll_interval: float = assistant_settings.POLL_INTERVAL,
        window: int = assistant_settings.BLOCK_WINDOW,
        batch_size: int = assistant_settings.BLOCK_FETCH_BATCH_SIZE,
        retry_base_delay: float = assistant_settings.POLL_RETRY_BASE_DELAY,
        retry_max_delay: float = assistant_settings.POLL_RETRY_MAX_DELAY,
    ):
        self.target = target
        self.client = client
        self.bus = bus
        self.group = group
        self.poll_interval = poll_interval
        self.window = window
        self.batch_size = batch_size
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        # Fixed once nonzero; a zero balance is fetched again next cycle.
        self.balance: Optional[int] = None
        self.failures = 0

    @property
    def _labels(self) -> dict[str, str]:
        return {"group": self.group, "target": self.target.label}

    async def fetch_capacity(self) -> int:
        if not self.balance:
            async with TimerLogger("fetch_capacity", metadata={"target": self.target.identity}):
                if self.target.root_chain:
                    self.balance = await self.client.fetch_staked_amount(self.target.address)
                else:
                    self.balance = await self.client.fetch_balance(self.target.address)
            if self.balance:
                logger.debug(f"Balance of {self.target.identity} fixed at {self.balance} for this run")
            else:
                logger.debug(f"Balance of {self.target.identity} is 0, fetching it again next cycle")
        return calculate_allowances(self.balance, self.target.allowance_unit)

    async def _fetch_batch(self, heights: Sequence[int]) -> list[Block]:
        blocks = []
        for height in heights:
            blocks.append(await self.client.fetch_block_at_height(self.target.shard_key, height))
        return blocks

    async def fetch_window(self, heights: Sequence[int]) -> list[Block]:
        """Fetch ``heights`` in concurrent batches; any failed batch fails the whole window."""
        async with TimerLogger("fetch_window", metadata={"target": self.target.identity, "blocks": len(heights)}):
            tasks = [asyncio.create_task(self._fetch_batch(batch)) for batch in chunked(heights, self.batch_size)]
            results = await asyncio.gather(*tasks, return_exceptions=True)

        blocks: list[Block] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            blocks.extend(result)
        return blocks

    async def poll_once(self) -> Snapshot:
        async with TimerLogger("poll_cycle", metadata={"target": self.target.identity}):
            allowances = await self.fetch_capacity()
            latest = await self.client.fetch_latest_block(self.target.shard_key)
            blocks = await self.fetch_window(preceding_heights(latest.height, self.window))
            used = count_mined([latest, *blocks], self.target.address.coinbase)
            difficulty = 0 if self.target.root_chain else shard_difficulty(latest.difficulty)

        return Snapshot(target=self.target, used=used, allowances=allowances, difficulty=difficulty)

    def retry_delay(self) -> float:
        if self.failures <= 0 or self.retry_base_delay <= 0:
            return 0.0
        return min(self.retry_base_delay * 2 ** (self.failures - 1), self.retry_max_delay)

    def _record(self, snapshot: Snapshot) -> None:
        metrics.ALLOWANCES_USED.labels(**self._labels).set(snapshot.used)
        metrics.ALLOWANCE_CAPACITY.labels(**self._labels).set(snapshot.allowances)
        metrics.TARGET_DIFFICULTY.labels(**self._labels).set(snapshot.difficulty)

    async def run(self) -> None:
        """Poll forever. Only process shutdown (task cancellation) ends the loop."""
        loop = asyncio.get_running_loop()
        logger.info(f"🔄 Starting allowance poller for {self.target.identity} (priority {self.target.priority})")

        while True:
            deadline = loop.time() + self.poll_interval
            try:
                snapshot = await self.poll_once()
            except LedgerRPCException as e:
                self.failures += 1
                metrics.POLL_FAILURES.labels(**self._labels).inc()
                logger.warning(f"Error polling {self.target.identity} (attempt {self.failures}): {e}")
                await asyncio.sleep(self.retry_delay())
                continue
            except Exception as e:
                self.failures += 1
                metrics.POLL_FAILURES.labels(**self._labels).inc()
                logger.exception(f"Unexpected error polling {self.target.identity}: {e}")
                await asyncio.sleep(self.retry_delay())
                continue

            self.failures = 0
            if self.target.root_chain:
                logger.info(
                    f"Address {snapshot.identity}: {snapshot.used} used / {snapshot.allowances} allowances "
                    f"(in recent {self.window} blocks)"
                )
            else:
                logger.info(
                    f"Address {snapshot.identity}: ({snapshot.used}/{snapshot.allowances} in recent {self.window} "
                    f"blocks) difficulty: {format_difficulty(snapshot.difficulty)}"
                )
            self._record(snapshot)
            self.bus.publish(snapshot)

            await asyncio.sleep(max(deadline - loop.time(), 0))
