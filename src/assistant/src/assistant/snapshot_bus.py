from __future__ import annotations

import asyncio

from .models import Snapshot


class SnapshotBus:
    """Unbounded many-producer, single-consumer queue of snapshots.

    Producers never block. The consumer checks ``pending`` before draining so
    an empty bus never stalls its cadence.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Snapshot] = asyncio.Queue()

    def publish(self, snapshot: Snapshot) -> None:
        self._queue.put_nowait(snapshot)

    def pending(self) -> bool:
        return not self._queue.empty()

    def drain(self) -> list[Snapshot]:
        """Return every queued snapshot in arrival order."""
        snapshots: list[Snapshot] = []
        while not self._queue.empty():
            snapshots.append(self._queue.get_nowait())
        return snapshots

    def __len__(self) -> int:
        return self._queue.qsize()
