from __future__ import annotations

from typing import Optional, Union

from web3 import Web3
from web3.exceptions import TimeExhausted
from web3.types import TxParams

from chainsync.configuration.config import CoreSettings
from chainsync.core.errors import TransactionError, TransactionRejected, TransactionReverted
from chainsync.core.onchain.abis import ERC20_ABI
from chainsync.core.onchain.queries import ReadOnlyQueryService
from chainsync.core.onchain.reconciler import ChainReconciler
from chainsync.core.session import WalletSession
from chainsync.core.structures.structures import (
    Asset,
    TransactionOutcome,
    TransactionShape,
    UnknownContractForChain,
)
from chainsync.core.utils.chain_id_utils import ChainIdLike, to_internal_format
from chainsync.core.utils.format_utils import AmountLike, parse_units
from chainsync.integrations.wallet.provider import ProviderRpcError
from chainsync.logging.logger import get_logger

log = get_logger(__name__)

# Contract factory without address or provider, used only as an ABI codec.
_ERC20_CODEC = Web3().eth.contract(abi=ERC20_ABI)


def build_native_transfer(asset: Asset, recipient: str, amount: AmountLike) -> TransactionShape:
    """Value transfer of `amount` scaled by the asset's decimals."""
    return TransactionShape(
        chain_id=asset.chain_id,
        to=Web3.to_checksum_address(recipient),
        value=parse_units(amount, asset.decimals),
        asset_id=asset.id,
    )


def build_contract_transfer(asset: Asset, recipient: str, amount: AmountLike) -> TransactionShape:
    """
    ERC-20 transfer(address,uint256) call against the asset's contract.

    The amount is scaled with this asset's own decimals; the outer value is zero.
    """
    scaled = parse_units(amount, asset.decimals)
    data = _ERC20_CODEC.encode_abi("transfer", args=[Web3.to_checksum_address(recipient), scaled])
    return TransactionShape(
        chain_id=asset.chain_id,
        to=Web3.to_checksum_address(asset.contract_address),
        value=0,
        data=data,
        asset_id=asset.id,
    )


def build_transfer(asset: Asset, recipient: str, amount: AmountLike) -> TransactionShape:
    if asset.is_native:
        return build_native_transfer(asset, recipient, amount)
    return build_contract_transfer(asset, recipient, amount)


class TransactionDispatcher:
    """
    Submits transactions on the chain they declare.

    Each dispatch is a single attempt: reconcile, submit, wait for one
    confirmation. Failures surface as typed errors and are never resubmitted.
    """

    def __init__(self, core_settings: CoreSettings, reconciler: ChainReconciler, queries: ReadOnlyQueryService) -> None:
        self._core_settings = core_settings
        self._reconciler = reconciler
        self._queries = queries

    async def dispatch(self, session: WalletSession, shape: TransactionShape) -> TransactionOutcome:
        await self._reconciler.require_chain(session, shape.chain_id)

        tx: TxParams = {
            "from": session.address,
            "to": Web3.to_checksum_address(shape.to),
            "value": int(shape.value),
            "chainId": int(shape.chain_id),
        }
        if shape.data and shape.data != "0x":
            tx["data"] = shape.data

        log.info("[TX][SEND] chain=%d to=%s value=%d data=%s", shape.chain_id, tx["to"], shape.value,
                 "yes" if "data" in tx else "no")
        try:
            tx_hash = await session.signer.send_transaction(tx)
        except ProviderRpcError as exc:
            log.warning("[TX][SEND][FAIL] code=%s user_rejected=%s reason=%s", exc.code, exc.is_user_rejection, exc.message)
            if exc.is_execution_revert:
                raise TransactionReverted(f"Transaction reverted: {exc.message}", reason=exc.message) from exc
            raise TransactionRejected(f"Transaction rejected: {exc.message}", reason=exc.message) from exc

        log.info("[TX][SENT] hash=%s, waiting for confirmation", tx_hash)
        try:
            receipt = await session.signer.wait_for_receipt(
                tx_hash,
                timeout=self._core_settings.receipt_timeout_sec,
                poll_latency=self._core_settings.receipt_poll_sec,
            )
        except TimeExhausted as exc:
            raise TransactionError(
                f"Transaction {tx_hash} not confirmed within {self._core_settings.receipt_timeout_sec}s",
                reason=str(exc), tx_hash=tx_hash,
            ) from exc
        except ProviderRpcError as exc:
            raise TransactionError(f"Receipt lookup failed: {exc.message}", reason=exc.message, tx_hash=tx_hash) from exc

        status = int(receipt.get("status", 0))
        block_number = receipt.get("blockNumber")
        if status != 1:
            log.warning("[TX][REVERTED] hash=%s block=%s", tx_hash, block_number)
            raise TransactionReverted(f"Transaction {tx_hash} reverted on-chain", reason=dict(receipt), tx_hash=tx_hash)

        log.info("[TX][CONFIRMED] hash=%s block=%s", tx_hash, block_number)
        return TransactionOutcome(
            tx_hash=tx_hash,
            chain_id=shape.chain_id,
            block_number=int(block_number) if block_number is not None else None,
            status=status,
        )

    async def send_native(
            self,
            session: WalletSession,
            asset: Asset,
            amount: Optional[AmountLike] = None,
            recipient: Optional[str] = None,
    ) -> TransactionOutcome:
        shape = build_native_transfer(
            asset,
            recipient or self._core_settings.recipient,
            amount if amount is not None else self._core_settings.demo_amount,
        )
        return await self.dispatch(session, shape)

    async def send_asset(
            self,
            session: WalletSession,
            asset: Asset,
            amount: Optional[AmountLike] = None,
            recipient: Optional[str] = None,
    ) -> TransactionOutcome:
        """Transfer any catalog asset, native value or ERC-20 call depending on its address."""
        shape = build_transfer(
            asset,
            recipient or self._core_settings.recipient,
            amount if amount is not None else self._core_settings.demo_amount,
        )
        return await self.dispatch(session, shape)

    async def send_known_token(
            self,
            session: WalletSession,
            chain_id: ChainIdLike,
            amount: Optional[AmountLike] = None,
            recipient: Optional[str] = None,
    ) -> Union[TransactionOutcome, UnknownContractForChain]:
        """
        Transfer the registry token of `chain_id` (e.g. USDT on Polygon).

        Decimals are read from the token contract once the provider is on that chain.
        """
        target = to_internal_format(chain_id)
        known = self._core_settings.known_contract(target)
        if known is None:
            log.info("[TX][KNOWN] No known contract for chainId %d", target)
            return UnknownContractForChain(chain_id=target)

        alignment = await self._reconciler.require_chain(session, target)
        decimals = await self._queries.read_token_decimals(session, known.token_address)
        self._reconciler.check_not_superseded(session, alignment.generation, target)
        token = Asset(
            id=f"known.{target}.{known.label.lower()}",
            symbol=known.label,
            contract_address=known.token_address,
            decimals=decimals,
            chain_id=target,
        )
        shape = build_contract_transfer(
            token,
            recipient or self._core_settings.recipient,
            amount if amount is not None else self._core_settings.demo_amount,
        )
        return await self.dispatch(session, shape)
