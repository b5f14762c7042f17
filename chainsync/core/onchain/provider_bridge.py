from __future__ import annotations

"""
Bridge between a wallet provider and AsyncWeb3.

Contract reads, transaction submission and receipt polling all go through
the wallet provider, the same way a browser dapp wraps an injected provider.
"""

import itertools
import json
from typing import Any, Dict, Optional, Sequence

from eth_typing import ChecksumAddress
from web3 import AsyncWeb3
from web3.contract import AsyncContract
from web3.providers.async_base import AsyncBaseProvider
from web3.types import RPCEndpoint, RPCResponse, TxParams, TxReceipt

from chainsync.core.utils.chain_id_utils import to_internal_format
from chainsync.integrations.wallet.provider import WalletProvider
from chainsync.logging.logger import get_logger

log = get_logger(__name__)


class WalletProviderBridge(AsyncBaseProvider):
    """AsyncWeb3 provider that forwards every request to a WalletProvider."""

    def __init__(self, wallet_provider: WalletProvider) -> None:
        super().__init__()
        self.wallet_provider = wallet_provider
        self._request_ids = itertools.count(1)

    async def make_request(self, method: RPCEndpoint, params: Any) -> RPCResponse:
        request_id = next(self._request_ids)
        log.debug("[BRIDGE][REQ] id=%d method=%s", request_id, method)
        result = await self.wallet_provider.request(str(method), list(params or []))
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    async def is_connected(self, show_traceback: bool = False) -> bool:
        return True


class ProviderSigner:
    """
    Signing capability of a connected account.

    Wraps the raw provider (for wallet_* and signing requests) and an AsyncWeb3
    instance bound to it (for ABI encoding, contract calls and receipts).
    No middleware is installed: gas, nonce and fees are the wallet's job.
    """

    def __init__(self, wallet_provider: WalletProvider, address: str) -> None:
        self.wallet_provider = wallet_provider
        self.address: ChecksumAddress = AsyncWeb3.to_checksum_address(address)
        self.web3 = AsyncWeb3(WalletProviderBridge(wallet_provider), middleware=[])

    async def request(self, method: str, params: Optional[Sequence[Any]] = None) -> Any:
        return await self.wallet_provider.request(method, list(params or []))

    async def current_chain_id(self) -> int:
        """Provider's active chain, decimal form."""
        return to_internal_format(await self.request("eth_chainId"))

    def contract(self, address: str, abi: Sequence[Dict[str, Any]]) -> AsyncContract:
        return self.web3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)

    async def sign_message(self, message: str) -> str:
        payload = AsyncWeb3.to_hex(text=message)
        return str(await self.request("personal_sign", [payload, self.address]))

    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        return str(await self.request("eth_signTypedData_v4", [self.address, json.dumps(typed_data)]))

    async def send_transaction(self, transaction: TxParams) -> str:
        tx_hash = await self.web3.eth.send_transaction(transaction)
        return AsyncWeb3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float, poll_latency: float) -> TxReceipt:
        return await self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout, poll_latency=poll_latency)
