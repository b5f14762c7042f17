from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Sequence

from chainsync.core.errors import CatalogEntryMalformed
from chainsync.core.structures.structures import (
    Asset,
    NATIVE_PLACEHOLDER_ADDRESS,
    POLYGON_NATIVE_ADDRESS,
)
from chainsync.core.utils.chain_id_utils import to_internal_format
from chainsync.core.utils.dict_utils import _read_int_field, _read_str_field
from chainsync.logging.logger import get_logger

log = get_logger(__name__)

DEFAULT_DECIMALS: int = 18

# Used when the provider exposes no session descriptor.
DEFAULT_CURRENCIES: List[Mapping[str, object]] = [
    {
        "id": "ethereum.mainnet.native.eth",
        "symbol": "ETH",
        "address": NATIVE_PLACEHOLDER_ADDRESS,
        "chainId": 1,
        "decimals": 18,
    },
    {
        "id": "polygon.mainnet.native.matic",
        "symbol": "POL",
        "image": "https://beexo.nyc3.digitaloceanspaces.com/staging/digital-currencies/1708714736817-thumbnail",
        "address": POLYGON_NATIVE_ADDRESS,
        "chainId": 137,
        "decimals": 18,
    },
]


def normalize_currency(raw: Mapping[str, object]) -> Asset:
    """
    Turn a provider-reported currency into an Asset.

    The chain id may be hex ('0x89') or decimal ('137', 137).

    Raises:
        CatalogEntryMalformed: missing id/symbol, bad chain id or bad decimals.
    """
    if not isinstance(raw, Mapping):
        raise CatalogEntryMalformed("Currency entry is not an object", entry=raw)

    asset_id = _read_str_field(raw, "id")
    symbol = _read_str_field(raw, "symbol")
    if asset_id is None or symbol is None:
        raise CatalogEntryMalformed("Currency entry misses id or symbol", entry=raw)

    raw_chain_id = raw.get("chainId")
    if raw_chain_id is None:
        raise CatalogEntryMalformed(f"Currency {asset_id} has no chainId", entry=raw)
    try:
        chain_id = to_internal_format(raw_chain_id)  # type: ignore[arg-type]
    except ValueError as exc:
        raise CatalogEntryMalformed(f"Currency {asset_id} has an invalid chainId: {exc}", entry=raw) from exc

    try:
        decimals = _read_int_field(raw, "decimals")
    except ValueError as exc:
        raise CatalogEntryMalformed(f"Currency {asset_id} has invalid decimals: {exc}", entry=raw) from exc
    if decimals is None:
        decimals = DEFAULT_DECIMALS
    if decimals < 0:
        raise CatalogEntryMalformed(f"Currency {asset_id} has negative decimals", entry=raw)

    address = _read_str_field(raw, "address", "contractAddress") or NATIVE_PLACEHOLDER_ADDRESS
    image = _read_str_field(raw, "image")

    return Asset(
        id=asset_id,
        symbol=symbol,
        contract_address=address,
        decimals=decimals,
        chain_id=chain_id,
        image=image,
    )


def build_catalog(raw_currencies: Optional[Iterable[Mapping[str, object]]]) -> List[Asset]:
    """
    Build the ordered asset catalog from provider-reported currencies.

    Malformed entries and duplicate ids are dropped; the rest keep provider order.
    """
    catalog: List[Asset] = []
    seen_ids: set[str] = set()
    for index, raw in enumerate(raw_currencies or []):
        try:
            asset = normalize_currency(raw)
        except CatalogEntryMalformed as exc:
            log.warning("[CATALOG][DROP] entry #%d: %s", index, exc)
            continue
        if asset.id in seen_ids:
            log.warning("[CATALOG][DROP] entry #%d: duplicate id %s", index, asset.id)
            continue
        seen_ids.add(asset.id)
        catalog.append(asset)

    log.debug("[CATALOG] %d asset(s) loaded: %s", len(catalog), ", ".join(a.symbol for a in catalog))
    return catalog


def select_initial(catalog: Sequence[Asset], preferred_wire_chain_id: str) -> Optional[Asset]:
    """
    Pick the startup asset: the first one on the preferred chain, else the
    first asset in the catalog, else None for an empty catalog.
    """
    if not catalog:
        return None
    preferred = to_internal_format(preferred_wire_chain_id)
    for asset in catalog:
        if asset.chain_id == preferred:
            return asset
    log.info("[CATALOG] No asset on preferred chain %s, falling back to %s", preferred_wire_chain_id, catalog[0])
    return catalog[0]


def find_asset(catalog: Sequence[Asset], asset_id: str) -> Optional[Asset]:
    for asset in catalog:
        if asset.id == asset_id:
            return asset
    return None
