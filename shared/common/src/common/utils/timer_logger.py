import json
import time
import uuid
from typing import Any, Dict, Literal, Optional, get_args
from loguru import logger

TIMER_NAMES = Literal[
    "poll_cycle",
    "fetch_capacity",
    "fetch_window",
    "worker_start",
    "worker_stop",
]


class TimerLogger:
    """Times a named phase and logs start/end events as JSON at debug level."""

    def __init__(self, name: TIMER_NAMES, metadata: Optional[Dict[str, Any]] = None):
        if name not in get_args(TIMER_NAMES):
            raise ValueError(f"Invalid timer name: {name}. Valid names are: {', '.join(get_args(TIMER_NAMES))}")
        self.name = name
        self.metadata = metadata or {}
        self.event_id = str(uuid.uuid4())
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

    @property
    def duration(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def _emit(self, event_type: str, at: float, **extra: Any) -> None:
        event = {"id": self.event_id, "name": self.name, "type": event_type, "time": at, "metadata": self.metadata}
        event.update(extra)
        logger.debug(f"Timer Logger: {json.dumps(event, default=str)}")

    async def __aenter__(self):
        self.started_at = time.time()
        self._emit("start", self.started_at)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.finished_at = time.time()
        self._emit("end", self.finished_at, duration=self.duration, failed=exc_type is not None)
        return False
