"""Loading of the run configuration.

``config.json`` is a list of groups; every group names an RPC endpoint, the
worker executable, a fallback target and an ordered list of targets. Each
target points at a miner INI file whose ``[Ethash]`` section holds the wallet
the target mines for. Order in ``config_files`` is significant: earlier
entries get a higher priority.
"""

from __future__ import annotations

import configparser
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from common.utils.exceptions import ConfigError
from common.utils.formulas import ROOT_ALLOWANCE, shard_allowance_unit
from ledger.address import QkcAddress
from pydantic import BaseModel, ConfigDict, Field, ValidationError

INI_SECTION = "Ethash"
INI_WALLET_KEY = "wallet"


class TargetDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    spawn_args: list[str]
    path: str
    root_chain: bool = False
    allowances_to_use: Optional[int] = Field(default=None, ge=0)
    mine_at_free_allowances_from_max: int = Field(ge=0)


class GroupDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rpc: str
    miner_dir: str
    miner_exe: str
    fallback_config: TargetDefinition
    config_files: list[TargetDefinition]


@dataclass(frozen=True, slots=True)
class TargetConfig:
    """Static description of one target, fixed for the lifetime of the run."""

    name: str
    address: QkcAddress
    priority: int
    spawn_args: tuple[str, ...]
    root_chain: bool = False
    allowances_to_use: Optional[int] = None
    margin: int = 0
    is_fallback: bool = False

    @property
    def identity(self) -> str:
        return str(self.address)

    @property
    def label(self) -> str:
        """Identity qualified by chain, unique even when root and shard targets share a wallet."""
        return f"{self.identity}/root" if self.root_chain else self.identity

    @property
    def shard_key(self) -> Optional[str]:
        """Chain selector for ledger queries; None selects the root chain."""
        return None if self.root_chain else self.address.full_shard_key

    @property
    def allowance_unit(self) -> int:
        if self.root_chain:
            return ROOT_ALLOWANCE
        return shard_allowance_unit(self.address.chain_id)


@dataclass(frozen=True, slots=True)
class GroupConfig:
    rpc: str
    miner_exe: str
    miner_dir: str
    fallback: TargetConfig
    targets: tuple[TargetConfig, ...]


def load_wallet(ini_path: Path) -> QkcAddress:
    """Read the wallet address from a miner INI file."""
    parser = configparser.ConfigParser()
    try:
        with open(ini_path, "r", encoding="utf-8") as f:
            parser.read_file(f)
    except OSError as e:
        raise ConfigError(f"Could not read miner config {ini_path}: {e}") from e
    except configparser.Error as e:
        raise ConfigError(f"Invalid miner config {ini_path}: {e}") from e

    if not parser.has_option(INI_SECTION, INI_WALLET_KEY):
        raise ConfigError(f"Miner config {ini_path} has no [{INI_SECTION}] {INI_WALLET_KEY} entry")

    try:
        return QkcAddress.from_full(parser.get(INI_SECTION, INI_WALLET_KEY))
    except ValueError as e:
        raise ConfigError(f"Miner config {ini_path}: {e}") from e


def _build_target(definition: TargetDefinition, base_dir: Path, priority: int, is_fallback: bool = False) -> TargetConfig:
    ini_path = Path(definition.path)
    if not ini_path.is_absolute():
        ini_path = base_dir / ini_path

    target = TargetConfig(
        name=definition.path,
        address=load_wallet(ini_path),
        priority=priority,
        spawn_args=tuple(definition.spawn_args),
        root_chain=definition.root_chain,
        allowances_to_use=definition.allowances_to_use,
        margin=definition.mine_at_free_allowances_from_max,
        is_fallback=is_fallback,
    )
    if not is_fallback and target.allowance_unit <= 0:
        raise ConfigError(
            f"Target {definition.path} is on chain {target.address.chain_id}, which has no PoSW allowance unit"
        )
    return target


def build_group(definition: GroupDefinition, base_dir: Path) -> GroupConfig:
    count = len(definition.config_files)
    targets = tuple(
        _build_target(target, base_dir, priority=count - index)
        for index, target in enumerate(definition.config_files)
    )
    return GroupConfig(
        rpc=definition.rpc,
        miner_exe=definition.miner_exe,
        miner_dir=definition.miner_dir,
        fallback=_build_target(definition.fallback_config, base_dir, priority=0, is_fallback=True),
        targets=targets,
    )


def load_groups(config_path: str | Path) -> list[GroupConfig]:
    """Load and validate every group of the run.

    Relative INI paths are resolved against the directory of ``config_path``.

    Raises:
        ConfigError: If any file is missing or malformed.
    """
    config_path = Path(config_path)
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Could not read {config_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"{config_path} is not valid JSON: {e}") from e

    if not isinstance(raw, list):
        raise ConfigError(f"{config_path} must contain a list of groups")

    try:
        definitions = [GroupDefinition.model_validate(item) for item in raw]
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e

    base_dir = config_path.resolve().parent
    return [build_group(definition, base_dir) for definition in definitions]
