import pytest

from chainsync.core.catalog import (
    DEFAULT_CURRENCIES,
    build_catalog,
    find_asset,
    normalize_currency,
    select_initial,
)
from chainsync.core.errors import CatalogEntryMalformed
from chainsync.core.structures.structures import NATIVE_PLACEHOLDER_ADDRESS, Asset


def _asset(asset_id: str, chain_id: int, decimals: int = 18) -> Asset:
    return Asset(id=asset_id, symbol=asset_id.upper(), contract_address=NATIVE_PLACEHOLDER_ADDRESS,
                 decimals=decimals, chain_id=chain_id)


class TestNormalizeCurrency:

    def test_hex_and_decimal_chain_ids(self, sample_currencies):
        eth, pol, usdt = (normalize_currency(c) for c in sample_currencies)
        assert eth.chain_id == 1
        assert pol.chain_id == 137
        assert usdt.chain_id == 137
        assert usdt.decimals == 6
        assert usdt.contract_address == "0xc2132D05D31c914a87C6611C10748AEb04B58e8F"

    def test_native_detection(self, sample_currencies):
        eth, pol, usdt = (normalize_currency(c) for c in sample_currencies)
        assert eth.is_native
        assert pol.is_native
        assert not usdt.is_native

    def test_defaults_for_missing_address_and_decimals(self):
        asset = normalize_currency({"id": "x", "symbol": "X", "chainId": 10})
        assert asset.contract_address == NATIVE_PLACEHOLDER_ADDRESS
        assert asset.decimals == 18
        assert asset.image is None

    @pytest.mark.parametrize("entry", [
        {"symbol": "ETH", "chainId": "0x1"},
        {"id": "eth", "chainId": "0x1"},
        {"id": "", "symbol": "ETH", "chainId": "0x1"},
        {"id": "eth", "symbol": "ETH"},
        {"id": "eth", "symbol": "ETH", "chainId": "mainnet"},
        {"id": "eth", "symbol": "ETH", "chainId": "0x1", "decimals": "eighteen"},
        {"id": "eth", "symbol": "ETH", "chainId": "0x1", "decimals": -1},
        "not-an-object",
    ])
    def test_malformed_entries(self, entry):
        with pytest.raises(CatalogEntryMalformed):
            normalize_currency(entry)


class TestBuildCatalog:

    def test_preserves_provider_order(self, sample_currencies):
        catalog = build_catalog(sample_currencies)
        assert [a.id for a in catalog] == [c["id"] for c in sample_currencies]

    def test_drops_malformed_entries_only(self, sample_currencies):
        raw = [sample_currencies[0], {"symbol": "BROKEN"}, sample_currencies[2]]
        catalog = build_catalog(raw)
        assert [a.symbol for a in catalog] == ["ETH", "USDT"]

    @pytest.mark.parametrize("chain_id", ["0x-1", "0x+89", "0x8_9"])
    def test_drops_signed_or_separated_hex_chain_ids(self, sample_currencies, chain_id):
        bad = {"id": "bad", "symbol": "BAD", "chainId": chain_id}
        catalog = build_catalog([bad, sample_currencies[1]])
        assert [a.symbol for a in catalog] == ["POL"]

    def test_drops_duplicate_ids(self, sample_currencies):
        catalog = build_catalog([sample_currencies[0], dict(sample_currencies[0], symbol="ETH2")])
        assert len(catalog) == 1
        assert catalog[0].symbol == "ETH"

    def test_empty_and_none(self):
        assert build_catalog([]) == []
        assert build_catalog(None) == []

    def test_default_currencies_are_valid(self):
        catalog = build_catalog(DEFAULT_CURRENCIES)
        assert [(a.symbol, a.chain_id) for a in catalog] == [("ETH", 1), ("POL", 137)]


class TestSelectInitial:

    def test_single_asset_on_preferred_chain(self):
        eth = _asset("eth", 1)
        assert select_initial([eth], "0x1") is eth

    def test_prefers_matching_chain_regardless_of_position(self):
        catalog = [_asset("eth", 1), _asset("bnb", 56), _asset("pol", 137)]
        assert select_initial(catalog, "0x89").id == "pol"

    def test_falls_back_to_first_asset(self):
        catalog = [_asset("bnb", 56), _asset("pol", 137)]
        assert select_initial(catalog, "0x1").id == "bnb"

    def test_empty_catalog(self):
        assert select_initial([], "0x1") is None


def test_find_asset(sample_currencies):
    catalog = build_catalog(sample_currencies)
    assert find_asset(catalog, "polygon.mainnet.usdt").symbol == "USDT"
    assert find_asset(catalog, "missing") is None
