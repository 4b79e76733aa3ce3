"""Shared test utilities for the ledger client and the assistant."""

from common.utils.exceptions import LedgerRPCException
from ledger.address import QkcAddress
from ledger.models import Block


# Test constants
ROOT_WALLET = "0x" + "11" * 20 + "00000000"
SHARD_WALLET = "0x" + "22" * 20 + "00010000"
FALLBACK_WALLET = "0x" + "33" * 20 + "00020000"
OTHER_MINER = "0x" + "ee" * 20


def make_address(byte: int = 0xAB, chain_id: int = 1, shard_id: int = 0) -> QkcAddress:
    return QkcAddress(recipient=bytes([byte]) * 20, chain_id=chain_id, shard_id=shard_id)


def make_block(height: int, miner: str, difficulty: int = 0) -> Block:
    return Block(height=height, miner=miner, difficulty=difficulty)


def block_payload(height: int, miner: str, difficulty: int = 0) -> dict:
    """A JSON-RPC block result as the node returns it."""
    return {
        "id": f"0x{height:064x}",
        "hash": f"0x{height:064x}",
        "height": hex(height),
        "miner": miner,
        "difficulty": hex(difficulty),
        "timestamp": "0x5f5e100",
    }


class FakeLedger:
    """In-memory stand-in for ``QkcAPIClient`` serving a fixed chain."""

    def __init__(self, latest_height: int, miners: dict[int, str] | None = None, difficulty: int = 0):
        self.latest_height = latest_height
        self.miners = miners or {}
        self.difficulty = difficulty
        self.balance = 0
        self.staked = 0
        self.balance_calls = 0
        self.staked_calls = 0
        self.block_calls: list[int] = []
        self.failing_heights: set[int] = set()
        self.fail_latest = False

    def _block(self, height: int) -> Block:
        return make_block(height, self.miners.get(height, OTHER_MINER), self.difficulty)

    async def fetch_balance(self, address):
        self.balance_calls += 1
        return self.balance

    async def fetch_staked_amount(self, address):
        self.staked_calls += 1
        return self.staked

    async def fetch_latest_block(self, shard_key):
        if self.fail_latest:
            raise LedgerRPCException("latest block unavailable")
        return self._block(self.latest_height)

    async def fetch_block_at_height(self, shard_key, height):
        self.block_calls.append(height)
        if height in self.failing_heights:
            raise LedgerRPCException(f"block {height} unavailable")
        return self._block(height)
