"""Value objects exchanged between pollers and the scheduler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from common.utils.formulas import format_difficulty

from .config import TargetConfig


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Allowance usage of one target as observed by a single poll cycle."""

    target: TargetConfig
    used: int
    allowances: int
    difficulty: int

    @property
    def identity(self) -> str:
        return self.target.identity

    @property
    def priority(self) -> int:
        return self.target.priority

    @property
    def cap(self) -> int:
        if self.target.allowances_to_use is not None:
            return self.target.allowances_to_use
        return self.allowances

    def ready_to_mine(self) -> bool:
        """True when enough headroom is left under the cap to start mining.

        A zero margin still requires being strictly under the cap, so a target
        is never started only to be stopped on its next snapshot.
        """
        return self.used <= self.cap - self.target.margin and self.continue_mining()

    def continue_mining(self) -> bool:
        """True while a running target is still strictly under its cap."""
        return self.used < self.cap

    def describe(self) -> str:
        return f"{self.identity} ({self.used}/{self.allowances}) difficulty {format_difficulty(self.difficulty)}"

    @classmethod
    def fallback(cls, target: TargetConfig) -> "Snapshot":
        return cls(target=target, used=0, allowances=0, difficulty=0)


@dataclass(slots=True)
class SchedulerState:
    """Mutable decision state, written only by the coordinator of a group."""

    current: Optional[Snapshot] = None

    @property
    def running_fallback(self) -> bool:
        return self.current is not None and self.current.target.is_fallback
