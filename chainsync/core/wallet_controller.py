from __future__ import annotations

from typing import Any, List, Mapping, Optional, Union

from chainsync.configuration.config import CoreSettings
from chainsync.core.catalog import DEFAULT_CURRENCIES, build_catalog, find_asset, select_initial
from chainsync.core.errors import ChainSwitchError, WalletConnectionError
from chainsync.core.onchain.dispatcher import TransactionDispatcher
from chainsync.core.onchain.provider_bridge import ProviderSigner
from chainsync.core.onchain.queries import ReadOnlyQueryService
from chainsync.core.onchain.reconciler import ChainReconciler
from chainsync.core.onchain.signing import SigningService, TypeFields
from chainsync.core.session import WalletSession
from chainsync.core.structures.structures import (
    Asset,
    ChainAlignment,
    ClientDescriptor,
    PoolReserves,
    SignedMessage,
    SignedTypedData,
    TokenInfo,
    TransactionOutcome,
    UnknownContractForChain,
)
from chainsync.core.utils.chain_id_utils import ChainIdLike
from chainsync.core.utils.dict_utils import _read_path
from chainsync.core.utils.format_utils import AmountLike
from chainsync.integrations.wallet.provider import ProviderRpcError, WalletProvider
from chainsync.logging.logger import get_logger

log = get_logger(__name__)


class WalletController:
    """
    One wallet session: catalog, selected asset and the operation entry points.

    Built only through `connect`, so a half-initialized session is never exposed.
    """

    def __init__(
            self,
            provider: WalletProvider,
            session: WalletSession,
            catalog: List[Asset],
            core_settings: CoreSettings,
            reconciler: ChainReconciler,
    ) -> None:
        self.provider = provider
        self.session = session
        self.catalog = catalog
        self.core_settings = core_settings
        self.reconciler = reconciler
        self.queries = ReadOnlyQueryService(core_settings, reconciler)
        self.signing = SigningService(core_settings, reconciler)
        self.dispatcher = TransactionDispatcher(core_settings, reconciler, self.queries)
        self.selected_asset_id: Optional[str] = None

    @classmethod
    async def connect(cls, provider: WalletProvider, core_settings: CoreSettings) -> "WalletController":
        """
        Request accounts, load the descriptor and catalog, then align the provider
        with the initial asset's chain.

        Raises:
            WalletConnectionError: any step failed.
        """
        try:
            accounts = await provider.request("eth_requestAccounts", [])
            address = _read_path(accounts, (0,))
            if not isinstance(address, str) or not address:
                raise WalletConnectionError("Provider returned no account")

            signer = ProviderSigner(provider, address)
            descriptor: ClientDescriptor = await provider.get_client()
            session = WalletSession(
                address=signer.address,
                signer=signer,
                alias=descriptor.alias,
                avatar=descriptor.image,
            )

            raw_currencies = await provider.get_available_currencies()
            catalog = build_catalog(raw_currencies if raw_currencies else DEFAULT_CURRENCIES)
            reconciler = ChainReconciler()
            controller = cls(provider, session, catalog, core_settings, reconciler)

            initial = select_initial(catalog, core_settings.default_chain_id)
            if initial is not None:
                await reconciler.ensure_chain(session, initial.chain_id)
                controller.selected_asset_id = initial.id
        except WalletConnectionError:
            raise
        except (ProviderRpcError, ChainSwitchError, ValueError) as exc:
            log.error("[WALLET][CONNECT] Failed: %s", exc)
            raise WalletConnectionError(f"Wallet connection failed: {exc}") from exc

        log.info("[WALLET][CONNECT] address=%s alias=%s assets=%d selected=%s",
                 session.address, session.alias or "-", len(catalog), controller.selected_asset_id)
        return controller

    @property
    def selected_asset(self) -> Optional[Asset]:
        if self.selected_asset_id is None:
            return None
        return find_asset(self.catalog, self.selected_asset_id)

    async def select_asset(self, asset_id: str) -> ChainAlignment:
        """Select an asset and re-run reconciliation to its chain, even if already aligned."""
        asset = find_asset(self.catalog, asset_id)
        if asset is None:
            raise KeyError(f"Unknown asset id {asset_id!r}")
        self.selected_asset_id = asset.id
        return await self.reconciler.ensure_chain(self.session, asset.chain_id)

    def _require_selected(self) -> Asset:
        asset = self.selected_asset
        if asset is None:
            raise LookupError("No asset selected")
        return asset

    async def sign_message(self, message: str) -> SignedMessage:
        return await self.signing.sign_message(self.session, message)

    async def sign_typed_data(
            self,
            domain: Mapping[str, Any],
            types: Mapping[str, TypeFields],
            value: Mapping[str, Any],
            primary_type: Optional[str] = None,
    ) -> SignedTypedData:
        return await self.signing.sign_typed_data(self.session, domain, types, value, primary_type)

    async def send_selected(self, amount: Optional[AmountLike] = None, recipient: Optional[str] = None) -> TransactionOutcome:
        """Transfer the selected asset on its own chain."""
        return await self.dispatcher.send_asset(self.session, self._require_selected(), amount, recipient)

    async def send_known_token(
            self,
            chain_id: ChainIdLike,
            amount: Optional[AmountLike] = None,
            recipient: Optional[str] = None,
    ) -> Union[TransactionOutcome, UnknownContractForChain]:
        return await self.dispatcher.send_known_token(self.session, chain_id, amount, recipient)

    async def read_token_info(self, chain_id: Optional[ChainIdLike] = None) -> Union[TokenInfo, UnknownContractForChain]:
        return await self.queries.read_token_info(self.session, chain_id)

    async def read_pool_reserves(self) -> Union[PoolReserves, UnknownContractForChain]:
        return await self.queries.read_pool_reserves(self.session)

    async def close(self) -> None:
        await self.provider.close()
