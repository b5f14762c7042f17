from __future__ import annotations

"""
Wallet provider backed by an eth-account HD wallet.

Design goals:
- Derive account at m/44'/60'/0'/0/{index} with eth-account only.
- Keep one active chain at a time, switchable among the configured RPCs.
- Sign locally; fill EIP-1559 fees, nonce and gas like a browser wallet would.
- Forward every read method untouched to the active chain's RPC.
- Never log secrets or raw calldata.

Environment:
- settings.WALLET_MNEMONIC
- settings.WALLET_DERIVATION_INDEX
- settings.RPC_URL_ETHEREUM / settings.RPC_URL_POLYGON
"""

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

import httpx
from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, Web3RPCError
from web3.types import TxParams

from chainsync.configuration.config import configured_currencies, settings
from chainsync.core.structures.structures import ClientDescriptor
from chainsync.core.utils.chain_id_utils import to_internal_format, to_wire_format
from chainsync.core.utils.dict_utils import _read_path, _read_str_field
from chainsync.integrations.wallet.provider import (
    EXECUTION_REVERTED_CODE,
    INTERNAL_ERROR_CODE,
    INVALID_PARAMS_CODE,
    UNAUTHORIZED_CODE,
    UNRECOGNIZED_CHAIN_CODE,
    UNSUPPORTED_METHOD_CODE,
    ProviderRpcError,
    WalletProvider,
)
from chainsync.logging.logger import get_logger

log = get_logger(__name__)

STATIC_GAS_LIMIT: int = 400000

Handler = Callable[[List[Any]], Awaitable[Any]]


def _quantity(raw: object, field_name: str) -> int:
    """JSON-RPC quantity (hex string or int) to int."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        try:
            return int(raw, 16) if raw.lower().startswith("0x") else int(raw)
        except ValueError:
            pass
    raise ProviderRpcError(INVALID_PARAMS_CODE, f"Invalid quantity for {field_name}: {raw!r}")


@dataclass(frozen=True)
class LocalWalletConfig:
    mnemonic: str
    rpc_urls: Mapping[str, str]
    default_chain_id: str = "0x1"
    derivation_index: int = 0
    alias: str = ""
    image: str = ""
    currencies: Sequence[Mapping[str, object]] = field(default_factory=tuple)
    descriptor_url: str = ""


class LocalWalletProvider(WalletProvider):
    """EIP-1193 style provider signing with a mnemonic-derived account."""

    def __init__(self, config: LocalWalletConfig) -> None:
        if not config.mnemonic:
            raise ValueError("Local wallet requires a mnemonic (set WALLET_MNEMONIC).")

        self._rpc_urls: Dict[int, str] = {
            to_internal_format(chain_id): url for chain_id, url in config.rpc_urls.items() if url
        }
        self._chain_id = to_internal_format(config.default_chain_id)
        if self._chain_id not in self._rpc_urls:
            raise ValueError(f"No RPC URL configured for default chain {config.default_chain_id}.")

        Account.enable_unaudited_hdwallet_features()
        account_path = f"m/44'/60'/0'/0/{config.derivation_index}"
        self.account: LocalAccount = Account.from_mnemonic(config.mnemonic, account_path=account_path)
        self.address: str = self.account.address

        self._config = config
        self._authorized = False
        self._clients: Dict[int, AsyncWeb3] = {}
        self._descriptor: Optional[Mapping[str, object]] = None
        self._handlers: Dict[str, Handler] = {
            "eth_requestAccounts": self._request_accounts,
            "eth_accounts": self._accounts,
            "eth_chainId": self._chain_id_request,
            "wallet_switchEthereumChain": self._switch_chain,
            "personal_sign": self._personal_sign,
            "eth_signTypedData_v4": self._sign_typed_data,
            "eth_sendTransaction": self._send_transaction,
        }

        log.info("Local wallet initialized. Address=%s Chains=%s", self.address,
                 ",".join(to_wire_format(c) for c in sorted(self._rpc_urls)))

    def _web3(self) -> AsyncWeb3:
        client = self._clients.get(self._chain_id)
        if client is None:
            url = self._rpc_urls[self._chain_id]
            client = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(url, request_kwargs={"timeout": 30}))
            self._clients[self._chain_id] = client
        return client

    async def request(self, method: str, params: Optional[Sequence[Any]] = None) -> Any:
        handler = self._handlers.get(method)
        if handler is not None:
            return await handler(list(params or []))
        if method.startswith("wallet_") or method in {"eth_sign", "eth_signTransaction"}:
            raise ProviderRpcError(UNSUPPORTED_METHOD_CODE, f"Method {method} is not supported")
        return await self._forward(method, list(params or []))

    async def _forward(self, method: str, params: List[Any]) -> Any:
        response = await self._web3().provider.make_request(method, params)
        error = _read_path(response, ("error",))
        if error is not None:
            code = _read_path(error, ("code",))
            message = _read_path(error, ("message",))
            raise ProviderRpcError(
                int(code) if isinstance(code, int) else INTERNAL_ERROR_CODE,
                str(message or "RPC error"),
                _read_path(error, ("data",)),
            )
        return _read_path(response, ("result",))

    # -------- Accounts / chain -------- #

    async def _request_accounts(self, params: List[Any]) -> List[str]:
        self._authorized = True
        return [self.address]

    async def _accounts(self, params: List[Any]) -> List[str]:
        return [self.address] if self._authorized else []

    async def _chain_id_request(self, params: List[Any]) -> str:
        return to_wire_format(self._chain_id)

    async def _switch_chain(self, params: List[Any]) -> None:
        raw_target = _read_path(params, (0, "chainId"))
        try:
            target = to_internal_format(raw_target)  # type: ignore[arg-type]
        except ValueError:
            raise ProviderRpcError(INVALID_PARAMS_CODE, f"Invalid chainId {raw_target!r}") from None
        if target not in self._rpc_urls:
            raise ProviderRpcError(UNRECOGNIZED_CHAIN_CODE, f"Unrecognized chain ID {to_wire_format(target)}")
        if target != self._chain_id:
            log.info("[WALLET][SWITCH] %s -> %s", to_wire_format(self._chain_id), to_wire_format(target))
            self._chain_id = target
        return None

    def _check_account(self, candidate: object) -> None:
        if not self._authorized:
            raise ProviderRpcError(UNAUTHORIZED_CODE, "Accounts not requested yet")
        if not isinstance(candidate, str) or candidate.lower() != self.address.lower():
            raise ProviderRpcError(UNAUTHORIZED_CODE, f"Unknown account {candidate!r}")

    # -------- Signing -------- #

    async def _personal_sign(self, params: List[Any]) -> str:
        payload = _read_path(params, (0,))
        self._check_account(_read_path(params, (1,)))
        if not isinstance(payload, str):
            raise ProviderRpcError(INVALID_PARAMS_CODE, "personal_sign expects a hex payload")
        message = encode_defunct(hexstr=payload) if payload.startswith("0x") else encode_defunct(text=payload)
        signed = self.account.sign_message(message)
        return AsyncWeb3.to_hex(signed.signature)

    async def _sign_typed_data(self, params: List[Any]) -> str:
        self._check_account(_read_path(params, (0,)))
        raw = _read_path(params, (1,))
        try:
            typed_data = json.loads(raw) if isinstance(raw, str) else dict(raw)  # type: ignore[arg-type]
            signable = encode_typed_data(full_message=typed_data)
        except (TypeError, ValueError) as exc:
            raise ProviderRpcError(INVALID_PARAMS_CODE, f"Invalid typed data: {exc}") from exc
        signed = self.account.sign_message(signable)
        return AsyncWeb3.to_hex(signed.signature)

    # -------- Transactions -------- #

    async def _build_eip1559(self, request: Mapping[str, Any]) -> TxParams:
        """Construct a typed EIP-1559 transaction with dynamic fees and filled nonce."""
        w3 = self._web3()
        latest = await w3.eth.get_block("latest")
        base_fee = int(latest.get("baseFeePerGas") or 0)
        try:
            max_priority = int(await w3.eth.max_priority_fee)  # node suggestion
        except Exception as exc:
            log.debug("EVM max priority fee unavailable (%s). Using 1 gwei.", exc)
            max_priority = int(AsyncWeb3.to_wei(1, "gwei"))
        max_fee = base_fee * 2 + max_priority

        tx: TxParams = {
            "chainId": self._chain_id,
            "type": 2,
            "nonce": await w3.eth.get_transaction_count(self.address),
            "to": AsyncWeb3.to_checksum_address(str(request["to"])),
            "value": _quantity(request.get("value", 0), "value"),
            "data": request.get("data") or "0x",
            "maxPriorityFeePerGas": max_priority,
            "maxFeePerGas": int(max_fee),
        }
        if request.get("gas") is not None:
            tx["gas"] = _quantity(request["gas"], "gas")
        else:
            try:
                estimated = await w3.eth.estimate_gas(
                    {"from": self.address, "to": tx["to"], "data": tx["data"], "value": tx["value"]})
                tx["gas"] = int(estimated)
            except ContractLogicError as exc:
                raise ProviderRpcError(EXECUTION_REVERTED_CODE, f"execution reverted: {exc}") from exc
            except Exception as exc:
                log.warning("EVM gas estimation failed (%s). Falling back to static headroom.", exc)
                tx["gas"] = STATIC_GAS_LIMIT
        log.debug("EVM tx skeleton built: nonce=%s gas=%s maxFeePerGas=%s", tx.get("nonce"), tx.get("gas"),
                  tx.get("maxFeePerGas"))
        return tx

    async def _send_transaction(self, params: List[Any]) -> str:
        request = _read_path(params, (0,))
        if not isinstance(request, Mapping) or not request.get("to"):
            raise ProviderRpcError(INVALID_PARAMS_CODE, "eth_sendTransaction expects a transaction with 'to'")
        self._check_account(request.get("from", self.address))
        if request.get("chainId") is not None and _quantity(request["chainId"], "chainId") != self._chain_id:
            raise ProviderRpcError(
                INVALID_PARAMS_CODE,
                f"Transaction chainId {request['chainId']} does not match active chain {to_wire_format(self._chain_id)}",
            )

        tx = await self._build_eip1559(request)
        signed = self.account.sign_transaction(tx)
        try:
            tx_hash = await self._web3().eth.send_raw_transaction(signed.raw_transaction)
        except Web3RPCError as exc:
            raise ProviderRpcError(INTERNAL_ERROR_CODE, str(exc)) from exc
        hex_hash = AsyncWeb3.to_hex(tx_hash)
        log.info("EVM: broadcasted transaction %s", hex_hash)
        return hex_hash

    # -------- Session descriptor -------- #

    async def _load_descriptor(self) -> Mapping[str, object]:
        if self._descriptor is not None:
            return self._descriptor
        if not self._config.descriptor_url:
            self._descriptor = {}
            return self._descriptor

        timeout = httpx.Timeout(12.0, connect=6.0)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.get(self._config.descriptor_url)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            log.warning("Descriptor GET fails: url=%s status=%s", self._config.descriptor_url,
                        exc.response.status_code)
            raise ProviderRpcError(INTERNAL_ERROR_CODE, f"Descriptor request failed: {exc}") from exc
        except (httpx.RequestError, ValueError) as exc:
            log.warning("Descriptor GET request error: url=%s error=%s", self._config.descriptor_url, exc)
            raise ProviderRpcError(INTERNAL_ERROR_CODE, f"Descriptor request failed: {exc}") from exc

        self._descriptor = payload if isinstance(payload, Mapping) else {}
        return self._descriptor

    async def get_client(self) -> ClientDescriptor:
        descriptor = await self._load_descriptor()
        return ClientDescriptor(
            alias=self._config.alias or _read_str_field(descriptor, "alias") or "",
            image=self._config.image or _read_str_field(descriptor, "image") or "",
        )

    async def get_available_currencies(self) -> List[Mapping[str, object]]:
        if self._config.currencies:
            return list(self._config.currencies)
        descriptor = await self._load_descriptor()
        currencies = _read_path(descriptor, ("availableCurrencies",))
        return list(currencies) if isinstance(currencies, list) else []

    async def close(self) -> None:
        for client in self._clients.values():
            disconnect = getattr(client.provider, "disconnect", None)
            if disconnect is not None:
                await disconnect()
        self._clients.clear()


def build_default_local_provider() -> LocalWalletProvider:
    """Factory using Settings for convenience."""
    config = LocalWalletConfig(
        mnemonic=settings.WALLET_MNEMONIC,
        derivation_index=settings.WALLET_DERIVATION_INDEX,
        rpc_urls={
            "0x1": settings.RPC_URL_ETHEREUM,
            "0x89": settings.RPC_URL_POLYGON,
        },
        default_chain_id=settings.DEFAULT_CHAIN_ID,
        alias=settings.WALLET_ALIAS,
        image=settings.WALLET_IMAGE,
        currencies=tuple(configured_currencies()),
        descriptor_url=settings.WALLET_DESCRIPTOR_URL,
    )
    return LocalWalletProvider(config)
