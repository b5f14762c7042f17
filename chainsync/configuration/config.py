from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from chainsync.core.structures.structures import KnownContract


def _as_bool(value: str | None, default: bool = False) -> bool:
    """Parse a truthy/falsey string into a boolean."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_json_list(value: str | None) -> List[Mapping[str, object]]:
    """Parse a JSON array of objects from an environment variable, empty list when unset."""
    if value is None or not value.strip():
        return []
    parsed = json.loads(value)
    if not isinstance(parsed, list):
        raise ValueError("Expected a JSON array of currency objects.")
    return [entry for entry in parsed if isinstance(entry, Mapping)]


class Settings:
    # Debug / logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING").upper()
    LOG_LEVEL_CHAINSYNC: str = os.getenv("LOG_LEVEL_CHAINSYNC", "DEBUG").upper()
    LOG_LEVEL_LIB_WEB3: str = os.getenv("LOG_LEVEL_LIB_WEB3", "WARNING").upper()
    LOG_LEVEL_LIB_HTTPX: str = os.getenv("LOG_LEVEL_LIB_HTTPX", "WARNING").upper()
    LOG_LEVEL_LIB_HTTPCORE: str = os.getenv("LOG_LEVEL_LIB_HTTPCORE", "WARNING").upper()
    LOG_LEVEL_LIB_ASYNCIO: str = os.getenv("LOG_LEVEL_LIB_ASYNCIO", "WARNING").upper()
    NO_COLOR: bool = _as_bool(os.getenv("NO_COLOR"), False)

    # Wallet (local provider)
    WALLET_MNEMONIC: str = os.getenv("WALLET_MNEMONIC", "")
    WALLET_DERIVATION_INDEX: int = int(os.getenv("WALLET_DERIVATION_INDEX", "0"))
    WALLET_ALIAS: str = os.getenv("WALLET_ALIAS", "")
    WALLET_IMAGE: str = os.getenv("WALLET_IMAGE", "")
    WALLET_CURRENCIES_JSON: str = os.getenv("WALLET_CURRENCIES_JSON", "")
    WALLET_DESCRIPTOR_URL: str = os.getenv("WALLET_DESCRIPTOR_URL", "")

    # Infra / chain
    RPC_URL_ETHEREUM: str = os.getenv("RPC_URL_ETHEREUM", "")
    RPC_URL_POLYGON: str = os.getenv("RPC_URL_POLYGON", "")
    DEFAULT_CHAIN_ID: str = os.getenv("DEFAULT_CHAIN_ID", "0x1").lower()
    REFERENCE_CHAIN_ID: int = int(os.getenv("REFERENCE_CHAIN_ID", "1"))

    # Transfers
    TRANSFER_RECIPIENT: str = os.getenv("TRANSFER_RECIPIENT", "0x3ca4dBE59Cb3ff037DF60Eb615B29e6F1C498004")
    TRANSFER_DEMO_AMOUNT: str = os.getenv("TRANSFER_DEMO_AMOUNT", "0.001")
    RECEIPT_TIMEOUT_SEC: float = float(os.getenv("RECEIPT_TIMEOUT_SEC", "180"))
    RECEIPT_POLL_SEC: float = float(os.getenv("RECEIPT_POLL_SEC", "2"))

    # Signing
    TYPED_DATA_BIND_CHAIN_ID: bool = _as_bool(os.getenv("TYPED_DATA_BIND_CHAIN_ID"), True)


settings = Settings()

KNOWN_CONTRACTS: Dict[int, KnownContract] = {
    1: KnownContract(
        label="USDC",
        token_address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        # Uniswap V2 USDC/WETH
        pair_address="0xB4e16d0168e52d35CaCD2c6185b44281Ec28C9Dc",
    ),
    137: KnownContract(
        label="USDT",
        token_address="0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
    ),
}


@dataclass(frozen=True)
class CoreSettings:
    """
    Configuration injected into every core component.

    Addresses and reference chains live here rather than in the transaction
    builders so that the core can be exercised against fixtures.
    """
    recipient: str
    reference_chain_id: int = 1
    default_chain_id: str = "0x1"
    known_contracts: Mapping[int, KnownContract] = field(default_factory=dict)
    demo_amount: str = "0.001"
    receipt_timeout_sec: float = 180.0
    receipt_poll_sec: float = 2.0
    bind_typed_data_chain_id: bool = True

    def known_contract(self, chain_id: int) -> Optional[KnownContract]:
        """Registry entry for a chain, or None when the chain has no known contract."""
        return self.known_contracts.get(int(chain_id))


def configured_currencies() -> List[Mapping[str, object]]:
    """Currencies declared through WALLET_CURRENCIES_JSON."""
    return _as_json_list(settings.WALLET_CURRENCIES_JSON)


def build_default_core_settings() -> CoreSettings:
    """Factory using Settings for convenience."""
    return CoreSettings(
        recipient=settings.TRANSFER_RECIPIENT,
        reference_chain_id=settings.REFERENCE_CHAIN_ID,
        default_chain_id=settings.DEFAULT_CHAIN_ID,
        known_contracts=dict(KNOWN_CONTRACTS),
        demo_amount=settings.TRANSFER_DEMO_AMOUNT,
        receipt_timeout_sec=settings.RECEIPT_TIMEOUT_SEC,
        receipt_poll_sec=settings.RECEIPT_POLL_SEC,
        bind_typed_data_chain_id=settings.TYPED_DATA_BIND_CHAIN_ID,
    )
