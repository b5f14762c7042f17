from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data

from chainsync.configuration.config import CoreSettings
from chainsync.core.errors import SigningRejected
from chainsync.core.onchain.reconciler import ChainReconciler
from chainsync.core.session import WalletSession
from chainsync.core.structures.structures import SignedMessage, SignedTypedData
from chainsync.core.utils.chain_id_utils import to_internal_format
from chainsync.integrations.wallet.provider import ProviderRpcError
from chainsync.logging.logger import get_logger

log = get_logger(__name__)

TypeFields = Sequence[Mapping[str, str]]

# EIP-712 domain fields, in canonical order
_DOMAIN_FIELD_TYPES: List[tuple[str, str]] = [
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
]


def recover_message_signer(message: str, signature: str) -> str:
    """Address that produced `signature` over the personal_sign encoding of `message`."""
    return Account.recover_message(encode_defunct(text=message), signature=signature)


def recover_typed_data_signer(typed_data: Mapping[str, Any], signature: str) -> str:
    return Account.recover_message(encode_typed_data(full_message=dict(typed_data)), signature=signature)


def _infer_primary_type(types: Mapping[str, TypeFields]) -> str:
    """The single struct type that no other struct references."""
    referenced = {
        field["type"].split("[", 1)[0]
        for name, fields in types.items()
        for field in fields
    }
    candidates = [name for name in types if name != "EIP712Domain" and name not in referenced]
    if len(candidates) != 1:
        raise ValueError(f"Cannot infer primary type among {sorted(candidates)}; pass primary_type explicitly")
    return candidates[0]


def build_typed_data(
        domain: Mapping[str, Any],
        types: Mapping[str, TypeFields],
        value: Mapping[str, Any],
        primary_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Assemble a full eth_signTypedData_v4 payload, deriving EIP712Domain from the domain keys."""
    domain_fields = [
        {"name": name, "type": type_name}
        for name, type_name in _DOMAIN_FIELD_TYPES
        if domain.get(name) is not None
    ]
    unknown = set(domain) - {name for name, _ in _DOMAIN_FIELD_TYPES}
    if unknown:
        raise ValueError(f"Unsupported EIP-712 domain field(s): {sorted(unknown)}")

    struct_types = {name: [dict(f) for f in fields] for name, fields in types.items() if name != "EIP712Domain"}
    return {
        "types": {"EIP712Domain": domain_fields, **struct_types},
        "primaryType": primary_type or _infer_primary_type(struct_types),
        "domain": {name: domain[name] for name, _ in _DOMAIN_FIELD_TYPES if domain.get(name) is not None},
        "message": dict(value),
    }


class SigningService:
    """
    Plain message and EIP-712 structured data signatures.

    Signatures are recovered locally and must match the session account.
    """

    def __init__(self, core_settings: CoreSettings, reconciler: ChainReconciler) -> None:
        self._core_settings = core_settings
        self._reconciler = reconciler

    @staticmethod
    def _ensure_signer(session: WalletSession, recovered: str) -> None:
        if recovered.lower() != session.address.lower():
            raise SigningRejected(f"Signature recovered to {recovered}, expected {session.address}")

    async def sign_message(self, session: WalletSession, message: str) -> SignedMessage:
        try:
            signature = await session.signer.sign_message(message)
        except ProviderRpcError as exc:
            log.warning("[SIGN][MESSAGE][FAIL] code=%s reason=%s", exc.code, exc.message)
            raise SigningRejected(f"Message signature declined: {exc.message}", exc.code) from exc

        recovered = recover_message_signer(message, signature)
        self._ensure_signer(session, recovered)
        log.info("[SIGN][MESSAGE] signed by %s", recovered)
        return SignedMessage(message=message, signature=signature, signer=recovered)

    async def sign_typed_data(
            self,
            session: WalletSession,
            domain: Mapping[str, Any],
            types: Mapping[str, TypeFields],
            value: Mapping[str, Any],
            primary_type: Optional[str] = None,
    ) -> SignedTypedData:
        """
        Sign a structured value bound to `domain`.

        A domain naming a chain id is honoured by reconciling to that chain first.
        Without one, the provider's current chain is bound into the domain unless
        chain binding is disabled in the core settings.

        Raises:
            ChainSwitchError: the chain could not be read or aligned.
            SigningRejected: the wallet declined or the signer does not match.
        """
        bound_domain = dict(domain)
        if bound_domain.get("chainId") is not None:
            target = to_internal_format(bound_domain["chainId"])
            await self._reconciler.require_chain(session, target)
            bound_domain["chainId"] = target
        elif self._core_settings.bind_typed_data_chain_id:
            bound_domain["chainId"] = await self._reconciler.current_chain(session)
        else:
            log.warning("[SIGN][TYPED] Domain carries no chainId, signature is not bound to a chain")

        typed_data = build_typed_data(bound_domain, types, value, primary_type)
        try:
            signature = await session.signer.sign_typed_data(typed_data)
        except ProviderRpcError as exc:
            log.warning("[SIGN][TYPED][FAIL] code=%s reason=%s", exc.code, exc.message)
            raise SigningRejected(f"Typed data signature declined: {exc.message}", exc.code) from exc

        recovered = recover_typed_data_signer(typed_data, signature)
        self._ensure_signer(session, recovered)
        log.info("[SIGN][TYPED] %s signed by %s (chainId=%s)",
                 typed_data["primaryType"], recovered, typed_data["domain"].get("chainId"))
        return SignedTypedData(
            primary_type=typed_data["primaryType"],
            domain=typed_data["domain"],
            signature=signature,
            signer=recovered,
        )
