from __future__ import annotations

import abc
from typing import Any, List, Mapping, Optional, Sequence

from chainsync.core.structures.structures import ClientDescriptor

# EIP-1193 / EIP-1474 error codes
USER_REJECTED_CODE: int = 4001
UNAUTHORIZED_CODE: int = 4100
UNSUPPORTED_METHOD_CODE: int = 4200
UNRECOGNIZED_CHAIN_CODE: int = 4902
EXECUTION_REVERTED_CODE: int = 3
INTERNAL_ERROR_CODE: int = -32603
INVALID_PARAMS_CODE: int = -32602


class ProviderRpcError(Exception):
    """Error returned by the wallet provider for a single request."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data

    @property
    def is_user_rejection(self) -> bool:
        return self.code == USER_REJECTED_CODE

    @property
    def is_execution_revert(self) -> bool:
        return self.code == EXECUTION_REVERTED_CODE or "revert" in (self.message or "").lower()


class WalletProvider(abc.ABC):
    """
    Request/response surface of a wallet provider.

    Chain ids cross this boundary in wire (hex) format only.
    """

    @abc.abstractmethod
    async def request(self, method: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Perform a JSON-RPC request. Raises ProviderRpcError on provider-level failure."""

    @abc.abstractmethod
    async def get_client(self) -> ClientDescriptor:
        """Display alias and avatar of the connected wallet."""

    @abc.abstractmethod
    async def get_available_currencies(self) -> List[Mapping[str, object]]:
        """Raw currency objects, chain ids as hex or decimal text."""

    async def close(self) -> None:
        return
