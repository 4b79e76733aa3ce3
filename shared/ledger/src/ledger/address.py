"""QuarkChain address codec.

A full address is ``0x`` followed by the 20-byte coinbase, the 2-byte chain id
and the 2-byte shard id, all hex encoded (48 hex digits).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_FULL_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{48}$")


@dataclass(frozen=True, slots=True)
class QkcAddress:
    recipient: bytes
    chain_id: int = 0
    shard_id: int = 0

    @classmethod
    def from_full(cls, address: str) -> "QkcAddress":
        address = address.strip()
        if not _FULL_ADDRESS_PATTERN.match(address):
            raise ValueError(f"Invalid full QKC address: {address!r}")
        return cls(
            recipient=bytes.fromhex(address[2:42]),
            chain_id=int(address[42:46], 16),
            shard_id=int(address[46:50], 16),
        )

    @property
    def coinbase(self) -> str:
        return f"0x{self.recipient.hex()}"

    @property
    def full_shard_key(self) -> str:
        return f"0x{self.chain_id:04x}{self.shard_id:04x}"

    def __str__(self) -> str:
        return f"{self.coinbase}{self.chain_id:04x}{self.shard_id:04x}"
