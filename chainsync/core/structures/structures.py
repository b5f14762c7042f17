from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

NATIVE_PLACEHOLDER_ADDRESS: str = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
ZERO_ADDRESS: str = "0x0000000000000000000000000000000000000000"
POLYGON_NATIVE_ADDRESS: str = "0x0000000000000000000000000000000000001010"

_NATIVE_ADDRESSES = {
    NATIVE_PLACEHOLDER_ADDRESS.lower(),
    ZERO_ADDRESS,
    POLYGON_NATIVE_ADDRESS,
}


def _tail(address: str, n: int = 6) -> str:
    """Return the last n characters of a lowercased address (for concise logs)."""
    addr = (address or "").lower()
    return addr[-n:] if len(addr) >= n else addr


@dataclass(frozen=True)
class Asset:
    """
    A native or contract-based currency on a specific chain.

    Attributes:
        id: Opaque identifier, unique across the catalog.
        symbol: Display ticker.
        contract_address: Token contract, or a placeholder for native currencies.
        decimals: Scaling factor for human-readable amounts.
        chain_id: Decimal chain identifier.
        image: Optional icon reference.
    """
    id: str
    symbol: str
    contract_address: str
    decimals: int
    chain_id: int
    image: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return self.contract_address.lower() in _NATIVE_ADDRESSES

    def __str__(self) -> str:
        return (f"[id={self.id} "
                f"symbol={self.symbol} "
                f"chain={self.chain_id} "
                f"decimals={self.decimals} "
                f"address=…{_tail(self.contract_address)}]")


@dataclass(frozen=True)
class KnownContract:
    """Well-established reference contracts for a chain."""
    label: str
    token_address: str
    pair_address: Optional[str] = None


@dataclass(frozen=True)
class UnknownContractForChain:
    """
    Returned (not raised) when a chain has no known-contract registry entry.
    Callers present this differently from a transport failure.
    """
    chain_id: int

    def __str__(self) -> str:
        return f"No known contract for chainId {self.chain_id}"


@dataclass(frozen=True)
class ClientDescriptor:
    """Out-of-band session descriptor reported by the wallet provider."""
    alias: str = ""
    image: str = ""


@dataclass(frozen=True)
class ChainAlignment:
    """Outcome of a single reconciliation attempt."""
    chain_id: int
    switched: bool
    generation: int
    applied: bool


@dataclass(frozen=True)
class TransactionShape:
    """
    A transaction ready for submission.

    Native transfers carry the scaled amount in `value` and empty `data`.
    Contract-call transfers carry zero `value` and ABI-encoded `data`.
    """
    chain_id: int
    to: str
    value: int
    data: str = "0x"
    asset_id: Optional[str] = None


@dataclass(frozen=True)
class TransactionOutcome:
    tx_hash: str
    chain_id: int
    block_number: Optional[int]
    status: int


@dataclass(frozen=True)
class SignedMessage:
    message: str
    signature: str
    signer: str


@dataclass(frozen=True)
class SignedTypedData:
    primary_type: str
    domain: dict
    signature: str
    signer: str


@dataclass(frozen=True)
class TokenInfo:
    """Read-only snapshot of a known ERC-20 token, amounts formatted with its decimals."""
    chain_id: int
    label: str
    address: str
    name: str
    symbol: str
    decimals: int
    total_supply: str
    user_balance: str


@dataclass(frozen=True)
class PoolReserves:
    """Uniswap V2 style pair reserves, raw integer units."""
    chain_id: int
    pair_address: str
    token0: str
    token1: str
    reserve0: int
    reserve1: int
    block_timestamp_last: int
