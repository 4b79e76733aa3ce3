from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


def _parse_quantity(value: object) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    raise ValueError(f"Expected a hex quantity, got {value!r}")


HexInt = Annotated[int, BeforeValidator(_parse_quantity)]


class RPCModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Block(RPCModel):
    """Root or minor block header; only the fields used for allowance accounting."""

    height: HexInt
    miner: str
    difficulty: HexInt
    id: Optional[str] = None
    hash: Optional[str] = None


class Balance(RPCModel):
    token_id: str
    token_str: str
    balance: HexInt


class AccountShardData(RPCModel):
    full_shard_id: str
    balances: list[Balance] = []
    transaction_count: Optional[HexInt] = None
    is_contract: bool = False

    def balance_of(self, token: str) -> int:
        return next((b.balance for b in self.balances if b.token_str == token), 0)


class AccountData(RPCModel):
    primary: AccountShardData
    shards: Optional[list[AccountShardData]] = None


class NetworkInfo(RPCModel):
    network_id: str
    chain_size: HexInt
    shard_sizes: list[str] = []
    syncing: bool = False
    mining: bool = False
