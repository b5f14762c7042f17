from __future__ import annotations

import asyncio
from typing import Optional, Union

from chainsync.configuration.config import CoreSettings
from chainsync.core.onchain.abis import ERC20_ABI, UNISWAP_V2_PAIR_ABI
from chainsync.core.onchain.reconciler import ChainReconciler
from chainsync.core.session import WalletSession
from chainsync.core.structures.structures import PoolReserves, TokenInfo, UnknownContractForChain
from chainsync.core.utils.chain_id_utils import ChainIdLike, to_internal_format
from chainsync.core.utils.format_utils import format_units
from chainsync.logging.logger import get_logger

log = get_logger(__name__)


class ReadOnlyQueryService:
    """
    Batched read-only calls against known token and pair contracts.

    Queries touch the session only through reconciliation. Reads that overlap
    a newer reconciliation are discarded with ChainSwitchError, since the
    provider may have left their chain mid-batch.
    A chain without a registry entry yields UnknownContractForChain, not an error.
    """

    def __init__(self, core_settings: CoreSettings, reconciler: ChainReconciler) -> None:
        self._core_settings = core_settings
        self._reconciler = reconciler

    async def read_token_info(
            self,
            session: WalletSession,
            chain_id: Optional[ChainIdLike] = None,
    ) -> Union[TokenInfo, UnknownContractForChain]:
        """
        Fetch name, symbol, decimals, total supply and the account balance of the
        chain's known token. Without `chain_id`, the provider's current chain is used.
        An explicit chain without a registry entry is reported before any switch.
        """
        generation = session.latest_generation
        if chain_id is None:
            resolved = await self._reconciler.current_chain(session)
        else:
            resolved = to_internal_format(chain_id)
        known = self._core_settings.known_contract(resolved)
        if known is None:
            log.info("[QUERY][TOKEN] No known contract for chainId %d", resolved)
            return UnknownContractForChain(chain_id=resolved)
        if chain_id is not None:
            generation = (await self._reconciler.require_chain(session, resolved)).generation

        token = session.signer.contract(known.token_address, ERC20_ABI)
        name, symbol, decimals, total_supply_raw, balance_raw = await asyncio.gather(
            token.functions.name().call(),
            token.functions.symbol().call(),
            token.functions.decimals().call(),
            token.functions.totalSupply().call(),
            token.functions.balanceOf(session.address).call(),
        )
        self._reconciler.check_not_superseded(session, generation, resolved)
        decimals = int(decimals)

        info = TokenInfo(
            chain_id=resolved,
            label=known.label,
            address=token.address,
            name=str(name),
            symbol=str(symbol),
            decimals=decimals,
            total_supply=format_units(total_supply_raw, decimals),
            user_balance=format_units(balance_raw, decimals),
        )
        log.debug("[QUERY][TOKEN] %s (%s) chain=%d decimals=%d supply=%s balance=%s",
                  info.label, info.symbol, resolved, decimals, info.total_supply, info.user_balance)
        return info

    async def read_token_decimals(self, session: WalletSession, token_address: str) -> int:
        """Decimals of an arbitrary ERC-20 on the provider's current chain."""
        token = session.signer.contract(token_address, ERC20_ABI)
        return int(await token.functions.decimals().call())

    async def read_pool_reserves(self, session: WalletSession) -> Union[PoolReserves, UnknownContractForChain]:
        """
        Fetch token0, token1 and reserves of the reference pair.

        The reference pair only exists on the reference chain, so the provider
        is always reconciled to that chain first.
        """
        reference_chain_id = self._core_settings.reference_chain_id
        alignment = await self._reconciler.require_chain(session, reference_chain_id)

        known = self._core_settings.known_contract(reference_chain_id)
        if known is None or not known.pair_address:
            log.info("[QUERY][PAIR] No known pair for chainId %d", reference_chain_id)
            return UnknownContractForChain(chain_id=reference_chain_id)

        pair = session.signer.contract(known.pair_address, UNISWAP_V2_PAIR_ABI)
        token0, token1, reserves = await asyncio.gather(
            pair.functions.token0().call(),
            pair.functions.token1().call(),
            pair.functions.getReserves().call(),
        )
        self._reconciler.check_not_superseded(session, alignment.generation, reference_chain_id)
        reserve0, reserve1, block_timestamp_last = reserves

        result = PoolReserves(
            chain_id=reference_chain_id,
            pair_address=pair.address,
            token0=str(token0),
            token1=str(token1),
            reserve0=int(reserve0),
            reserve1=int(reserve1),
            block_timestamp_last=int(block_timestamp_last),
        )
        log.debug("[QUERY][PAIR] pair=%s token0=%s token1=%s r0=%s r1=%s",
                  result.pair_address, result.token0, result.token1, result.reserve0, result.reserve1)
        return result
