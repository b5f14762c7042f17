"""
Pytest configuration for chainsync tests.

FakeWalletProvider answers the provider RPC surface in memory, signs with a
real eth-account key and serves ABI-encoded eth_call results.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pytest
from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from web3 import Web3

from chainsync.configuration.config import KNOWN_CONTRACTS, CoreSettings
from chainsync.core.onchain.provider_bridge import ProviderSigner
from chainsync.core.session import WalletSession
from chainsync.core.structures.structures import ClientDescriptor
from chainsync.core.utils.chain_id_utils import to_internal_format, to_wire_format
from chainsync.integrations.wallet.provider import (
    EXECUTION_REVERTED_CODE,
    UNRECOGNIZED_CHAIN_CODE,
    ProviderRpcError,
    WalletProvider,
)

TEST_PRIVATE_KEY = "0x" + "11" * 32
OTHER_PRIVATE_KEY = "0x" + "22" * 32
RECIPIENT = "0x3ca4dBE59Cb3ff037DF60Eb615B29e6F1C498004"
TX_HASH = "0x" + "ab" * 32


def _as_int(raw: Any) -> int:
    if isinstance(raw, int):
        return raw
    return int(raw, 16) if str(raw).startswith("0x") else int(raw)


def selector(signature: str) -> str:
    return Web3.to_hex(Web3.keccak(text=signature))[:10]


class FakeWalletProvider(WalletProvider):
    """In-memory wallet provider recording every request."""

    def __init__(
            self,
            account,
            chain_id: str = "0x1",
            supported: Sequence[str] = ("0x1", "0x89"),
            currencies: Optional[List[Mapping[str, object]]] = None,
            alias: str = "satoshi",
            image: str = "https://example.org/avatar.png",
    ) -> None:
        self.account = account
        self.chain_id = to_internal_format(chain_id)
        self.supported = {to_internal_format(c) for c in supported}
        self.currencies = currencies or []
        self.alias = alias
        self.image = image
        self.calls: List[Tuple[str, List[Any]]] = []
        self.failures: Dict[str, ProviderRpcError] = {}
        self.contract_returns: Dict[Tuple[int, str, str], str] = {}
        self.sent_transactions: List[Dict[str, Any]] = []
        self.receipt_status = 1
        self.receipt_missing = False
        self.signing_account = account
        self.switch_gate: Optional[asyncio.Event] = None
        self.call_gate: Optional[asyncio.Event] = None
        self.ignore_switch = False

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def wait_until_called(self, method: str, times: int = 1) -> None:
        while self.count(method) < times:
            await asyncio.sleep(0)

    def params_of(self, method: str) -> List[List[Any]]:
        return [params for name, params in self.calls if name == method]

    def stub_call(self, chain_id: int, address: str, signature: str, output_types: List[str], values: List[Any]) -> None:
        self.contract_returns[(chain_id, address.lower(), selector(signature))] = Web3.to_hex(encode(output_types, values))

    async def request(self, method: str, params: Optional[Sequence[Any]] = None) -> Any:
        params = list(params or [])
        self.calls.append((method, params))
        if method in self.failures:
            raise self.failures[method]

        if method in ("eth_requestAccounts", "eth_accounts"):
            return [self.account.address]
        if method == "eth_chainId":
            return to_wire_format(self.chain_id)
        if method == "wallet_switchEthereumChain":
            if self.switch_gate is not None:
                await self.switch_gate.wait()
            target = to_internal_format(params[0]["chainId"])
            if target not in self.supported:
                raise ProviderRpcError(UNRECOGNIZED_CHAIN_CODE, "Unrecognized chain ID")
            if not self.ignore_switch:
                self.chain_id = target
            return None
        if method == "personal_sign":
            signed = self.signing_account.sign_message(encode_defunct(hexstr=params[0]))
            return Web3.to_hex(signed.signature)
        if method == "eth_signTypedData_v4":
            signed = self.signing_account.sign_message(encode_typed_data(full_message=json.loads(params[1])))
            return Web3.to_hex(signed.signature)
        if method == "eth_sendTransaction":
            self.sent_transactions.append(dict(params[0]))
            return TX_HASH
        if method == "eth_getTransactionReceipt":
            if self.receipt_missing:
                return None
            return {
                "transactionHash": params[0],
                "status": hex(self.receipt_status),
                "blockNumber": "0x10",
            }
        if method == "eth_call":
            if self.call_gate is not None:
                await self.call_gate.wait()
            tx = params[0]
            key = (self.chain_id, tx["to"].lower(), tx["data"][:10].lower())
            if key not in self.contract_returns:
                raise ProviderRpcError(EXECUTION_REVERTED_CODE, "execution reverted")
            return self.contract_returns[key]
        raise ProviderRpcError(4200, f"Unsupported method {method}")

    async def get_client(self) -> ClientDescriptor:
        return ClientDescriptor(alias=self.alias, image=self.image)

    async def get_available_currencies(self) -> List[Mapping[str, object]]:
        return list(self.currencies)


@pytest.fixture
def account():
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def other_account():
    return Account.from_key(OTHER_PRIVATE_KEY)


@pytest.fixture
def provider(account):
    return FakeWalletProvider(account)


@pytest.fixture
def core_settings():
    return CoreSettings(
        recipient=RECIPIENT,
        reference_chain_id=1,
        default_chain_id="0x1",
        known_contracts=dict(KNOWN_CONTRACTS),
        demo_amount="0.001",
        receipt_timeout_sec=2.0,
        receipt_poll_sec=0.01,
        bind_typed_data_chain_id=True,
    )


@pytest.fixture
def session(provider, account):
    return WalletSession(address=account.address, signer=ProviderSigner(provider, account.address))


@pytest.fixture
def sample_currencies():
    return [
        {
            "id": "ethereum.mainnet.native.eth",
            "symbol": "ETH",
            "address": "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE",
            "decimals": 18,
            "chainId": "0x1",
        },
        {
            "id": "polygon.mainnet.native.matic",
            "symbol": "POL",
            "address": "0x0000000000000000000000000000000000001010",
            "decimals": 18,
            "chainId": "137",
        },
        {
            "id": "polygon.mainnet.usdt",
            "symbol": "USDT",
            "address": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
            "decimals": 6,
            "chainId": "0x89",
        },
    ]
