from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from chainsync.core.onchain.provider_bridge import ProviderSigner
from chainsync.logging.logger import get_logger

log = get_logger(__name__)


@dataclass
class WalletSession:
    """
    Connected wallet state, passed explicitly to every operation.

    Written by connection bootstrap (address, alias, avatar, signer) and by
    reconciliation (observed chain) only. Reconciliation attempts are
    numbered; only the newest attempt may record the observed chain, so a
    superseded switch that completes late cannot overwrite a newer selection.
    """
    address: str
    signer: ProviderSigner
    alias: str = ""
    avatar: str = ""
    observed_chain_id: Optional[int] = None
    _latest_generation: int = field(default=0, repr=False)

    def begin_reconciliation(self) -> int:
        self._latest_generation += 1
        return self._latest_generation

    @property
    def latest_generation(self) -> int:
        return self._latest_generation

    def apply_observed_chain(self, generation: int, chain_id: int) -> bool:
        """Record `chain_id` if `generation` is still the newest attempt. Returns whether it was applied."""
        if generation != self._latest_generation:
            log.debug(
                "[SESSION][STALE] Discarding chain=%s from generation %d (latest=%d)",
                chain_id, generation, self._latest_generation,
            )
            return False
        self.observed_chain_id = chain_id
        return True
