import json

import pytest

from chainsync.core.errors import ChainSwitchError, SigningRejected
from chainsync.core.onchain.reconciler import ChainReconciler
from chainsync.core.onchain.signing import (
    SigningService,
    build_typed_data,
    recover_message_signer,
    recover_typed_data_signer,
)
from chainsync.integrations.wallet.provider import ProviderRpcError

DOMAIN = {
    "name": "DemoApp",
    "version": "1",
    "verifyingContract": "0x0000000000000000000000000000000000000000",
}
MAIL_TYPES = {
    "Mail": [
        {"name": "from", "type": "string"},
        {"name": "to", "type": "string"},
        {"name": "contents", "type": "string"},
    ],
}
MAIL = {"from": "XO", "to": "Santi", "contents": "Hello, this is an EIP-712 signature"}


@pytest.fixture
def signing(core_settings):
    return SigningService(core_settings, ChainReconciler())


class TestMessageSigning:

    @pytest.mark.asyncio
    async def test_round_trip_recovers_account(self, signing, session, account):
        signed = await signing.sign_message(session, "Hello from chainsync")

        assert signed.signer == account.address
        assert recover_message_signer("Hello from chainsync", signed.signature) == account.address

    @pytest.mark.asyncio
    async def test_does_not_touch_chain(self, signing, session, provider):
        await signing.sign_message(session, "gm")
        assert provider.count("wallet_switchEthereumChain") == 0
        assert provider.count("eth_chainId") == 0

    @pytest.mark.asyncio
    async def test_declined_request(self, signing, session, provider):
        provider.failures["personal_sign"] = ProviderRpcError(4001, "User rejected the request.")
        with pytest.raises(SigningRejected) as info:
            await signing.sign_message(session, "gm")
        assert info.value.code == 4001
        assert provider.count("personal_sign") == 1

    @pytest.mark.asyncio
    async def test_foreign_signature_is_rejected(self, signing, session, provider, other_account):
        provider.signing_account = other_account
        with pytest.raises(SigningRejected):
            await signing.sign_message(session, "gm")


class TestTypedDataPayload:

    def test_domain_type_follows_present_fields(self):
        payload = build_typed_data(DOMAIN, MAIL_TYPES, MAIL)
        assert [f["name"] for f in payload["types"]["EIP712Domain"]] == ["name", "version", "verifyingContract"]
        assert payload["primaryType"] == "Mail"
        json.dumps(payload)

    def test_primary_type_is_the_unreferenced_struct(self):
        types = {
            "Person": [{"name": "name", "type": "string"}],
            "Letter": [{"name": "from", "type": "Person"}, {"name": "cc", "type": "Person[]"}],
        }
        assert build_typed_data(DOMAIN, types, {})["primaryType"] == "Letter"

    def test_ambiguous_primary_type_needs_explicit_choice(self):
        types = dict(MAIL_TYPES, Note=[{"name": "text", "type": "string"}])
        with pytest.raises(ValueError):
            build_typed_data(DOMAIN, types, MAIL)
        assert build_typed_data(DOMAIN, types, MAIL, primary_type="Mail")["primaryType"] == "Mail"

    def test_unknown_domain_field(self):
        with pytest.raises(ValueError):
            build_typed_data(dict(DOMAIN, chain="mainnet"), MAIL_TYPES, MAIL)


class TestTypedDataSigning:

    @pytest.mark.asyncio
    async def test_binds_current_chain_by_default(self, signing, session, provider, account):
        provider.chain_id = 137

        signed = await signing.sign_typed_data(session, DOMAIN, MAIL_TYPES, MAIL)

        assert signed.domain["chainId"] == 137
        assert signed.signer == account.address
        payload = build_typed_data(signed.domain, MAIL_TYPES, MAIL)
        assert recover_typed_data_signer(payload, signed.signature) == account.address
        assert provider.count("wallet_switchEthereumChain") == 0

    @pytest.mark.asyncio
    async def test_unbound_when_binding_disabled(self, core_settings, session, provider):
        from dataclasses import replace

        signing = SigningService(replace(core_settings, bind_typed_data_chain_id=False), ChainReconciler())
        signed = await signing.sign_typed_data(session, DOMAIN, MAIL_TYPES, MAIL)

        assert "chainId" not in signed.domain
        assert provider.count("eth_chainId") == 0

    @pytest.mark.asyncio
    async def test_domain_chain_forces_reconciliation(self, signing, session, provider):
        signed = await signing.sign_typed_data(session, dict(DOMAIN, chainId="0x89"), MAIL_TYPES, MAIL)

        assert provider.params_of("wallet_switchEthereumChain") == [[{"chainId": "0x89"}]]
        assert signed.domain["chainId"] == 137

    @pytest.mark.asyncio
    async def test_domain_on_current_chain_needs_no_switch(self, signing, session, provider):
        await signing.sign_typed_data(session, dict(DOMAIN, chainId=1), MAIL_TYPES, MAIL)
        assert provider.count("wallet_switchEthereumChain") == 0

    @pytest.mark.asyncio
    async def test_declined_typed_data(self, signing, session, provider):
        provider.failures["eth_signTypedData_v4"] = ProviderRpcError(4001, "User rejected the request.")
        with pytest.raises(SigningRejected):
            await signing.sign_typed_data(session, DOMAIN, MAIL_TYPES, MAIL)

    @pytest.mark.asyncio
    async def test_unreadable_chain_is_a_switch_error(self, signing, session, provider):
        provider.failures["eth_chainId"] = ProviderRpcError(-32603, "Internal error")

        with pytest.raises(ChainSwitchError) as info:
            await signing.sign_typed_data(session, DOMAIN, MAIL_TYPES, MAIL)
        assert info.value.code == -32603
        assert provider.count("eth_signTypedData_v4") == 0
