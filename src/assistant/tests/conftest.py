import pytest

from assistant.config import TargetConfig
from assistant.models import Snapshot
from common.test_utils import make_address


def build_target(
    byte: int,
    priority: int,
    chain_id: int = 1,
    root_chain: bool = False,
    allowances_to_use=None,
    margin: int = 0,
    spawn_args=("--wallet",),
    is_fallback: bool = False,
) -> TargetConfig:
    return TargetConfig(
        name=f"target-{byte:02x}.ini",
        address=make_address(byte, chain_id=0 if root_chain else chain_id),
        priority=priority,
        spawn_args=tuple(spawn_args),
        root_chain=root_chain,
        allowances_to_use=allowances_to_use,
        margin=margin,
        is_fallback=is_fallback,
    )


def build_snapshot(target: TargetConfig, used: int = 0, allowances: int = 10, difficulty: int = 0) -> Snapshot:
    return Snapshot(target=target, used=used, allowances=allowances, difficulty=difficulty)


@pytest.fixture
def make_target():
    return build_target


@pytest.fixture
def make_snapshot():
    return build_snapshot
