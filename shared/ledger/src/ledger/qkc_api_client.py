import asyncio
import itertools
from typing import Any, Optional, Type, TypeVar

from aiohttp import ClientError, ClientSession, ClientTimeout
from common import settings as common_settings
from common.utils.exceptions import LedgerRPCException
from eth_utils import keccak
from loguru import logger
from pydantic import BaseModel, ValidationError

from ledger.address import QkcAddress
from ledger.models import AccountData, Block, NetworkInfo

ROOT_POSW_STAKING_CONTRACT = "0x514b43000000000000000000000000000000000100000001"
QKC_TOKEN_ID = "0x8bb0"
QKC_TOKEN = "QKC"
GET_LOCKED_STAKES_SELECTOR = keccak(text="getLockedStakes(address)")[:4]

ModelT = TypeVar("ModelT", bound=BaseModel)


def encode_height(height: int) -> str:
    """Encode a block height the way the QKC node expects it (8 big-endian bytes)."""
    return f"0x{height:016x}"


class QkcAPIClient:
    """JSON-RPC client for a QuarkChain node.

    Every failure (transport, HTTP status, JSON-RPC error, undecodable payload) is
    raised as ``LedgerRPCException``; retrying is left to the caller.
    """

    def __init__(self, rpc_url: str, session: Optional[ClientSession] = None, timeout: Optional[float] = None):
        self.rpc_url = rpc_url
        self._session = session
        self._owns_session = False
        self._timeout = ClientTimeout(total=timeout or common_settings.CLIENT_REQUEST_TIMEOUT)
        self._request_ids = itertools.count(1)

    async def __aenter__(self) -> "QkcAPIClient":
        if self._session is None:
            self._session = ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
        self._owns_session = False

    async def rpc_request(self, method: str, params: Optional[list[Any]] = None) -> Any:
        payload: dict[str, Any] = {
            "jsonrpc": common_settings.JSONRPC_VERSION,
            "method": method,
            "id": next(self._request_ids),
        }
        if params is not None:
            payload["params"] = params

        logger.opt(colors=True).trace(f"<magenta>Making ledger request | method: {method} | params: {params}</magenta>")

        try:
            if self._session is not None:
                return await self._post(self._session, method, payload)
            async with ClientSession(timeout=self._timeout) as session:
                return await self._post(session, method, payload)
        except LedgerRPCException:
            raise
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            raise LedgerRPCException(f"Error making ledger request {method}: {e!r}") from e

    async def _post(self, session: ClientSession, method: str, payload: dict[str, Any]) -> Any:
        async with session.post(self.rpc_url, json=payload, timeout=self._timeout) as response:
            if response.status != 200:
                response_text = await response.text()
                raise LedgerRPCException(f"Error making ledger request {method}: {response.status} - {response_text}")
            body = await response.json(content_type=None)

        if not isinstance(body, dict):
            raise LedgerRPCException(f"Malformed response to {method}: {body!r}")
        if body.get("error") is not None:
            raise LedgerRPCException(f"Ledger returned an error for {method}: {body['error']}")
        if body.get("result") is None:
            raise LedgerRPCException(f"Ledger returned no result for {method}")
        return body["result"]

    @staticmethod
    def _parse(model: Type[ModelT], result: Any, method: str) -> ModelT:
        try:
            return model.model_validate(result)
        except ValidationError as e:
            raise LedgerRPCException(f"Could not decode {method} response: {e}") from e

    async def network_info(self) -> NetworkInfo:
        result = await self.rpc_request("networkInfo")
        return self._parse(NetworkInfo, result, "networkInfo")

    async def get_account_data(self, address: QkcAddress) -> AccountData:
        result = await self.rpc_request("getAccountData", [str(address)])
        return self._parse(AccountData, result, "getAccountData")

    async def fetch_balance(self, address: QkcAddress) -> int:
        """Return the QKC balance held on the address's own shard, in wei."""
        account = await self.get_account_data(address)
        return account.primary.balance_of(QKC_TOKEN)

    async def fetch_latest_block(self, shard_key: Optional[str]) -> Block:
        """Fetch the tip of the root chain (``shard_key`` is None) or of a shard."""
        return await self._fetch_block(shard_key, None)

    async def fetch_block_at_height(self, shard_key: Optional[str], height: int) -> Block:
        return await self._fetch_block(shard_key, encode_height(height))

    async def _fetch_block(self, shard_key: Optional[str], height: Optional[str]) -> Block:
        if shard_key is None:
            method = "getRootBlockByHeight"
            result = await self.rpc_request(method, [height] if height is not None else None)
        else:
            method = "getMinorBlockByHeight"
            result = await self.rpc_request(method, [shard_key, height, False])
        return self._parse(Block, result, method)

    async def fetch_staked_amount(self, address: QkcAddress) -> int:
        """Return the amount locked in the root-chain PoSW staking contract, in wei."""
        data = GET_LOCKED_STAKES_SELECTOR + bytes(12) + address.recipient
        call = {
            "from": str(address),
            "to": ROOT_POSW_STAKING_CONTRACT,
            "gasPrice": "0x0",
            "gas": "0xf4240",
            "data": f"0x{data.hex()}",
            "value": "0x0",
            "gasTokenId": QKC_TOKEN_ID,
            "transferTokenId": QKC_TOKEN_ID,
        }
        result = await self.rpc_request("call", [call, "latest"])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise LedgerRPCException(f"Malformed call result: {result!r}")
        if result == "0x":
            return 0
        try:
            return int(result[2:66], 16)
        except ValueError as e:
            raise LedgerRPCException(f"Malformed call result: {result!r}") from e
