from __future__ import annotations

from chainsync.core.errors import ChainSwitchError
from chainsync.core.session import WalletSession
from chainsync.core.structures.structures import ChainAlignment
from chainsync.core.utils.chain_id_utils import ChainIdLike, to_internal_format, to_wire_format
from chainsync.integrations.wallet.provider import ProviderRpcError
from chainsync.logging.logger import get_logger

log = get_logger(__name__)


class ChainReconciler:
    """
    Aligns the provider's active chain with the chain an operation requires.

    Every call starts from a fresh eth_chainId query: the user can change
    networks from the wallet UI at any time, so alignment is never cached.
    """

    async def _query_chain(self, session: WalletSession, target: int) -> int:
        try:
            raw = await session.signer.request("eth_chainId")
            return to_internal_format(raw)
        except ProviderRpcError as exc:
            raise ChainSwitchError(f"Provider failed to report its chain: {exc.message}", target, exc.code) from exc
        except ValueError as exc:
            raise ChainSwitchError(f"Provider reported an invalid chain id: {exc}", target) from exc

    async def ensure_chain(self, session: WalletSession, target_chain_id: ChainIdLike) -> ChainAlignment:
        """
        Query -> Compare -> (SwitchRequested -> confirm) -> Aligned.

        Raises:
            ChainSwitchError: the switch was rejected or failed, or the provider
                does not report the target chain afterwards.
        """
        target = to_internal_format(target_chain_id)
        target_wire = to_wire_format(target)
        generation = session.begin_reconciliation()

        current = await self._query_chain(session, target)
        if current == target:
            applied = session.apply_observed_chain(generation, target)
            log.debug("[CHAIN][ALIGNED] chain=%d generation=%d (no switch)", target, generation)
            return ChainAlignment(chain_id=target, switched=False, generation=generation, applied=applied)

        log.info("[CHAIN][SWITCH] %s -> %s generation=%d", to_wire_format(current), target_wire, generation)
        try:
            await session.signer.request("wallet_switchEthereumChain", [{"chainId": target_wire}])
        except ProviderRpcError as exc:
            session.apply_observed_chain(generation, current)
            log.warning("[CHAIN][SWITCH][FAIL] target=%s code=%s reason=%s", target_wire, exc.code, exc.message)
            raise ChainSwitchError(
                f"Switch to chain {target} rejected: {exc.message}", target, exc.code
            ) from exc

        confirmed = await self._query_chain(session, target)
        if confirmed != target:
            session.apply_observed_chain(generation, confirmed)
            log.warning("[CHAIN][SWITCH][FAIL] target=%s provider still reports %s", target_wire, to_wire_format(confirmed))
            raise ChainSwitchError(f"Provider reports chain {confirmed} after switching to {target}", target)

        applied = session.apply_observed_chain(generation, target)
        log.info("[CHAIN][ALIGNED] chain=%d generation=%d applied=%s", target, generation, applied)
        return ChainAlignment(chain_id=target, switched=True, generation=generation, applied=applied)

    async def require_chain(self, session: WalletSession, target_chain_id: ChainIdLike) -> ChainAlignment:
        """
        ensure_chain for callers that act on the provider right after aligning.

        Raises:
            ChainSwitchError: as ensure_chain, or when a newer reconciliation
                superseded this one before it completed.
        """
        alignment = await self.ensure_chain(session, target_chain_id)
        if not alignment.applied:
            log.warning("[CHAIN][SUPERSEDED] chain=%d generation=%d latest=%d",
                        alignment.chain_id, alignment.generation, session.latest_generation)
            raise ChainSwitchError(
                f"Alignment to chain {alignment.chain_id} was superseded by a newer reconciliation",
                alignment.chain_id,
            )
        return alignment

    async def current_chain(self, session: WalletSession) -> int:
        """Provider's active chain, without switching or touching the session."""
        try:
            return await session.signer.current_chain_id()
        except ProviderRpcError as exc:
            raise ChainSwitchError(f"Provider failed to report its chain: {exc.message}", None, exc.code) from exc
        except ValueError as exc:
            raise ChainSwitchError(f"Provider reported an invalid chain id: {exc}", None) from exc

    @staticmethod
    def check_not_superseded(session: WalletSession, generation: int, chain_id: int) -> None:
        """Raise if any reconciliation started after `generation`, i.e. the provider may have moved."""
        if session.latest_generation != generation:
            log.warning("[CHAIN][SUPERSEDED] chain=%d generation=%d latest=%d",
                        chain_id, generation, session.latest_generation)
            raise ChainSwitchError(
                f"Reads on chain {chain_id} overlapped a newer reconciliation", chain_id
            )
