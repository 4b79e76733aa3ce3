"""Top-level runner supervising every configured group."""

from __future__ import annotations

import asyncio
import time

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import GroupConfig
from .group import MiningGroup
from .health_server import HealthServerMixin


class Assistant(HealthServerMixin):
    def __init__(
        self,
        groups: list[GroupConfig],
        launch_health: bool = False,
        show_banner: bool = True,
        console: Console | None = None,
    ):
        self.groups = [MiningGroup(config) for config in groups]
        self.launch_health = launch_health
        self.console = console or Console()
        if show_banner:
            self._display_banner()

    def _display_banner(self) -> None:
        """Render a rich panel per group listing its targets in priority order."""
        for group in self.groups:
            config = group.config
            table = Table(header_style="bold white", show_lines=False, expand=False)
            table.add_column("Priority", justify="right", style="bold magenta")
            table.add_column("Wallet", style="cyan")
            table.add_column("Chain")
            table.add_column("Cap override", justify="right")
            table.add_column("Margin", justify="right")
            for target in config.targets:
                chain = "root" if target.root_chain else target.address.full_shard_key
                override = "-" if target.allowances_to_use is None else str(target.allowances_to_use)
                table.add_row(str(target.priority), target.identity, chain, override, str(target.margin))
            table.add_row("fallback", config.fallback.identity, "-", "-", "-", style="yellow")

            self.console.print(
                Panel.fit(
                    table,
                    title=f"[bold green]{config.rpc}[/]",
                    subtitle=f"[dim]{config.miner_exe} in {config.miner_dir}[/]",
                    border_style="green",
                )
            )

    def health_status(self) -> dict:
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "groups": [group.coordinator.status() for group in self.groups],
        }

    async def run(self) -> None:
        """Run every group until cancelled; groups fail independently."""
        if self.launch_health:
            await self._start_health_server()
        try:
            results = await asyncio.gather(*(group.run() for group in self.groups), return_exceptions=True)
            for group, result in zip(self.groups, results):
                if isinstance(result, Exception):
                    logger.opt(exception=result).error(f"Group {group.config.rpc} stopped with an error")
        finally:
            if self.launch_health:
                await self._stop_health_server()
