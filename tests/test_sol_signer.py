"""Tests for the Solana signer."""

import base64

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from conftest import ED25519_PUBLIC, ED25519_SEED
from prfwallet.addresses import solana as sol_address
from prfwallet.codec.base58 import b58decode, b58encode
from prfwallet.contracts.requests import SolanaTransferRequest
from prfwallet.errors import InvalidAddress, InvalidPrivateKeyLength, RPCError
from prfwallet.signing.solana import (
    SYSTEM_PROGRAM_ID,
    SolanaSigner,
    compile_transfer_message,
    transfer_instruction_data,
)

BLOCKHASH = bytes(range(32))
RECIPIENT = b58encode(bytes([9]) * 32)


@pytest.fixture
def signer(network_config, transport) -> SolanaSigner:
    return SolanaSigner(network_config, transport)


class TestMessageLayout:
    """Tests for the legacy message encoding."""

    def test_instruction_data(self):
        data = transfer_instruction_data(1_000_000)
        assert len(data) == 12
        assert data[:4] == b"\x02\x00\x00\x00"
        assert int.from_bytes(data[4:], "little") == 1_000_000

    def test_message_structure(self):
        to_pubkey = bytes([9]) * 32
        message = compile_transfer_message(ED25519_PUBLIC, to_pubkey, BLOCKHASH, 5)

        assert message[:3] == bytes([1, 0, 1])
        assert message[3] == 3
        assert message[4:36] == ED25519_PUBLIC
        assert message[36:68] == to_pubkey
        assert message[68:100] == SYSTEM_PROGRAM_ID
        assert message[100:132] == BLOCKHASH
        assert message[132:] == bytes([1, 2, 2, 0, 1, 12]) + transfer_instruction_data(5)

    def test_rejects_short_blockhash(self):
        with pytest.raises(ValueError):
            compile_transfer_message(ED25519_PUBLIC, ED25519_PUBLIC, bytes(31), 1)


class TestSignTransaction:
    """Tests for SOL transfer signing."""

    @pytest.mark.asyncio
    async def test_signed_wire_format(self, signer, transport):
        transport.on_call("getLatestBlockhash", {"value": {"blockhash": b58encode(BLOCKHASH)}})
        request = SolanaTransferRequest(to=RECIPIENT, amount=2_500)

        signed = await signer.sign_transaction(request, ED25519_SEED)

        wire = base64.b64decode(signed.raw_transaction)
        assert wire[0] == 1
        signature, message = wire[1:65], wire[65:]
        assert b58decode(signed.signature) == signature
        Ed25519PublicKey.from_public_bytes(ED25519_PUBLIC).verify(signature, message)
        assert message[100:132] == BLOCKHASH
        assert transport.calls[0][1] == "http://sol"
        assert transport.calls[0][3] == [{"commitment": "finalized"}]

    @pytest.mark.asyncio
    async def test_keypair_form_signs_identically(self, signer, transport):
        transport.on_call("getLatestBlockhash", {"value": {"blockhash": b58encode(BLOCKHASH)}})
        request = SolanaTransferRequest(to=RECIPIENT, amount=1)

        from_seed = await signer.sign_transaction(request, ED25519_SEED)
        from_keypair = await signer.sign_transaction(request, ED25519_SEED + ED25519_PUBLIC)
        assert from_seed == from_keypair

    @pytest.mark.asyncio
    async def test_bad_key_length(self, signer):
        with pytest.raises(InvalidPrivateKeyLength):
            await signer.sign_transaction(SolanaTransferRequest(to=RECIPIENT, amount=1), bytes(48))

    @pytest.mark.asyncio
    async def test_bad_recipient(self, signer):
        with pytest.raises(InvalidAddress):
            await signer.sign_transaction(SolanaTransferRequest(to="0OIl", amount=1), ED25519_SEED)

    @pytest.mark.asyncio
    async def test_missing_blockhash(self, signer, transport):
        transport.on_call("getLatestBlockhash", {"value": None})
        with pytest.raises(RPCError):
            await signer.sign_transaction(SolanaTransferRequest(to=RECIPIENT, amount=1), ED25519_SEED)

    @pytest.mark.asyncio
    async def test_devnet_endpoint(self, signer, transport):
        transport.on_call("getLatestBlockhash", {"value": {"blockhash": b58encode(BLOCKHASH)}})
        await signer.sign_transaction(
            SolanaTransferRequest(to=RECIPIENT, amount=1, network="devnet"), ED25519_SEED
        )
        assert transport.calls[0][1] == "http://sol-devnet"


class TestSolanaQueries:
    """Tests for broadcast, balances and messages."""

    @pytest.mark.asyncio
    async def test_broadcast(self, signer, transport):
        transport.on_call("getLatestBlockhash", {"value": {"blockhash": b58encode(BLOCKHASH)}})
        transport.on_call("sendTransaction", "sig123")
        signed = await signer.sign_transaction(SolanaTransferRequest(to=RECIPIENT, amount=1), ED25519_SEED)

        result = await signer.broadcast(signed)

        assert result.tx_id == "sig123"
        assert transport.calls[-1][3] == [signed.raw_transaction, {"encoding": "base64"}]

    @pytest.mark.asyncio
    async def test_balance(self, signer, transport):
        transport.on_call("getBalance", {"context": {"slot": 1}, "value": 42})
        assert await signer.get_balance(RECIPIENT) == 42

    @pytest.mark.asyncio
    async def test_token_balance_sums_accounts(self, signer, transport):
        def account(amount):
            return {"account": {"data": {"parsed": {"info": {"tokenAmount": {"amount": amount}}}}}}

        transport.on_call("getTokenAccountsByOwner", {"value": [account("10"), account("5")]})
        assert await signer.get_token_balance("mint", RECIPIENT) == 15

    @pytest.mark.asyncio
    async def test_token_balance_degrades(self, signer, transport):
        transport.on_call("getTokenAccountsByOwner", RPCError("boom"))
        assert await signer.get_token_balance("mint", RECIPIENT) == 0

    def test_sign_message(self, signer):
        signature = b58decode(signer.sign_message("hello", ED25519_SEED))
        Ed25519PublicKey.from_public_bytes(ED25519_PUBLIC).verify(signature, b"hello")

    def test_address(self, signer):
        assert signer.get_address_from_private_key(ED25519_SEED) == sol_address.address_from_public_key(
            ED25519_PUBLIC
        )

    @pytest.mark.asyncio
    async def test_rent_exemption(self, signer, transport):
        transport.on_call("getMinimumBalanceForRentExemption", 890880)

        assert await signer.get_minimum_balance_for_rent_exemption(0) == 890880
        assert transport.calls[0][3] == [0]
