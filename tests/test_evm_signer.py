"""Tests for the EVM signer."""

import pytest
from eth_keys import keys

from conftest import KEY_ONE, KEY_ONE_EVM_ADDRESS
from prfwallet.codec import rlp
from prfwallet.codec.binary import keccak256
from prfwallet.contracts.requests import EvmTransactionRequest
from prfwallet.errors import InvalidAddressChecksum, RPCError, UnsupportedChainId
from prfwallet.signing.evm import ONE_GWEI, EVMSigner, encode_erc20_transfer

EIP155_KEY = bytes.fromhex("46" * 32)
EIP155_RAW = (
    "0xf86c098504a817c800825208943535353535353535353535353535353535353535880de0b6b3a7640000"
    "8025a028ef61340bd939bc2195fe537567866003e1a15d3c71ff63e1590620aa636276a067cbe9d8997f"
    "761aecb703304b3800ccf555c9f3dc64214b297fb1966a3b6d83"
)


def recover_address(digest: bytes, signature_hex: str) -> str:
    sig = bytes.fromhex(signature_hex.removeprefix("0x"))
    signature = keys.Signature(vrs=(sig[64] - 27, int.from_bytes(sig[:32], "big"), int.from_bytes(sig[32:64], "big")))
    return signature.recover_public_key_from_msg_hash(digest).to_checksum_address().lower()


@pytest.fixture
def signer(network_config, transport) -> EVMSigner:
    return EVMSigner(network_config, transport)


class TestLegacyTransactions:
    """Tests for EIP-155 transactions."""

    @pytest.mark.asyncio
    async def test_eip155_reference_vector(self, signer, transport):
        """Fully specified request needs no chain state and matches the EIP-155 example."""
        request = EvmTransactionRequest(
            chain_id=1,
            to="0x3535353535353535353535353535353535353535",
            value=10**18,
            gas_limit=21000,
            gas_price=20 * ONE_GWEI,
            nonce=9,
        )

        signed = await signer.sign_transaction(request, EIP155_KEY)

        assert signed.raw_transaction == EIP155_RAW
        assert signed.transaction_hash == "0x" + keccak256(bytes.fromhex(EIP155_RAW[2:])).hex()
        assert signed.eip1559 is False
        assert signed.nonce == 9
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_legacy_only_chain_uses_eip155_v(self, signer, transport):
        transport.on_call("eth_getTransactionCount", "0x3")
        transport.on_call("eth_gasPrice", "0x12a05f200")
        transport.on_call("eth_estimateGas", "0x5208")
        request = EvmTransactionRequest(chain_id=56, to=KEY_ONE_EVM_ADDRESS, value=1)

        signed = await signer.sign_transaction(request, KEY_ONE)

        fields = rlp.decode(bytes.fromhex(signed.raw_transaction[2:]))
        assert signed.eip1559 is False
        assert fields[0] == b"\x03"
        assert int.from_bytes(fields[1], "big") == 5 * ONE_GWEI
        assert int.from_bytes(fields[2], "big") == 25200
        assert int.from_bytes(fields[6], "big") in (56 * 2 + 35, 56 * 2 + 36)
        assert all(call[1] == "http://evm-56" for call in transport.calls)

    @pytest.mark.asyncio
    async def test_signature_components_are_minimal(self, signer):
        request = EvmTransactionRequest(
            chain_id=1, to=KEY_ONE_EVM_ADDRESS, gas_limit=21000, gas_price=1, nonce=0
        )
        signed = await signer.sign_transaction(request, KEY_ONE)
        fields = rlp.decode(bytes.fromhex(signed.raw_transaction[2:]))
        for component in fields[7:]:
            assert not component.startswith(b"\x00")


class TestEip1559Transactions:
    """Tests for type-2 transactions."""

    @pytest.mark.asyncio
    async def test_fee_resolution_and_envelope(self, signer, transport):
        transport.on_call("eth_getTransactionCount", "0x5")
        transport.on_call("eth_gasPrice", hex(ONE_GWEI))
        transport.on_call("eth_maxPriorityFeePerGas", hex(2 * ONE_GWEI))
        request = EvmTransactionRequest(chain_id=1, to=KEY_ONE_EVM_ADDRESS, value=7, gas_limit=30000)

        signed = await signer.sign_transaction(request, KEY_ONE)

        raw = bytes.fromhex(signed.raw_transaction[2:])
        assert raw[0] == 0x02
        fields = rlp.decode(raw[1:])
        assert len(fields) == 12
        assert fields[0] == b"\x01"
        assert fields[1] == b"\x05"
        assert int.from_bytes(fields[2], "big") == 2 * ONE_GWEI
        assert int.from_bytes(fields[3], "big") == 4 * ONE_GWEI
        assert fields[8] == []
        assert fields[9] in (b"", b"\x01")

        unsigned = b"\x02" + rlp.encode(fields[:9])
        v = int.from_bytes(fields[9], "big")
        signature = keys.Signature(vrs=(v, int.from_bytes(fields[10], "big"), int.from_bytes(fields[11], "big")))
        recovered = signature.recover_public_key_from_msg_hash(keccak256(unsigned))
        assert recovered.to_checksum_address().lower() == KEY_ONE_EVM_ADDRESS

    @pytest.mark.asyncio
    async def test_fee_lookup_failure_defaults_to_one_gwei(self, signer, transport):
        transport.on_call("eth_gasPrice", RPCError("node down"))
        transport.on_call("eth_maxPriorityFeePerGas", RPCError("node down"))
        assert await signer.get_fee_data(1) == (ONE_GWEI, ONE_GWEI)

    @pytest.mark.asyncio
    async def test_missing_priority_fee_method(self, signer, transport):
        transport.on_call("eth_gasPrice", hex(3 * ONE_GWEI))
        transport.on_call("eth_maxPriorityFeePerGas", RPCError("method not found", code=-32601))
        assert await signer.get_fee_data(1) == (7 * ONE_GWEI, ONE_GWEI)

    @pytest.mark.asyncio
    async def test_gas_estimate_failure_defaults(self, signer, transport):
        transport.on_call("eth_estimateGas", RPCError("execution reverted"))
        assert await signer.estimate_gas(1, {"to": KEY_ONE_EVM_ADDRESS}) == 21000


class TestEvmErrors:
    """Tests for EVM error paths."""

    @pytest.mark.asyncio
    async def test_unknown_chain_id(self, signer, transport):
        request = EvmTransactionRequest(chain_id=999, to=KEY_ONE_EVM_ADDRESS, nonce=0)
        with pytest.raises(UnsupportedChainId) as exc_info:
            await signer.sign_transaction(request, KEY_ONE)
        assert exc_info.value.available == [1, 56, 11155111]
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_bad_recipient_checksum(self, signer):
        request = EvmTransactionRequest(
            chain_id=1,
            to="0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAeD",
            gas_limit=21000,
            gas_price=1,
            nonce=0,
        )
        with pytest.raises(InvalidAddressChecksum):
            await signer.sign_transaction(request, KEY_ONE)

    @pytest.mark.asyncio
    async def test_nonce_failure_propagates(self, signer, transport):
        transport.on_call("eth_getTransactionCount", RPCError("timeout"))
        request = EvmTransactionRequest(chain_id=1, to=KEY_ONE_EVM_ADDRESS, gas_limit=21000, gas_price=1)
        with pytest.raises(RPCError):
            await signer.sign_transaction(request, KEY_ONE)


class TestEvmMessages:
    """Tests for message signing."""

    def test_personal_sign_recovers_signer(self, signer):
        message = "héllo"
        signature = signer.sign_message(message, KEY_ONE)
        payload = message.encode("utf-8")
        digest = keccak256(f"\x19Ethereum Signed Message:\n{len(payload)}".encode() + payload)

        assert len(signature) == 132
        assert signature[-2:] in ("1b", "1c")
        assert recover_address(digest, signature) == KEY_ONE_EVM_ADDRESS

    def test_typed_data_is_deterministic(self, signer):
        typed = {"domain": {"name": "App", "chainId": 1}, "message": {"amount": 5}}
        assert signer.sign_typed_data(typed, KEY_ONE) == signer.sign_typed_data(dict(typed), KEY_ONE)
        assert signer.sign_typed_data(typed, KEY_ONE) != signer.sign_typed_data(
            {**typed, "message": {"amount": 6}}, KEY_ONE
        )


class TestEvmQueries:
    """Tests for balance and history lookups."""

    @pytest.mark.asyncio
    async def test_balance(self, signer, transport):
        transport.on_call("eth_getBalance", "0xde0b6b3a7640000")
        assert await signer.get_balance(KEY_ONE_EVM_ADDRESS, 1) == 10**18

    @pytest.mark.asyncio
    async def test_balance_degrades_to_zero(self, signer, transport):
        transport.on_call("eth_getBalance", RPCError("rate limited"))
        assert await signer.get_balance(KEY_ONE_EVM_ADDRESS, 1) == 0

    @pytest.mark.asyncio
    async def test_token_balance(self, signer, transport):
        transport.on_call("eth_call", "0x" + f"{1234:064x}")
        token = "0x3535353535353535353535353535353535353535"
        assert await signer.get_token_balance(token, KEY_ONE_EVM_ADDRESS, 1) == 1234

        params = transport.calls[0][3]
        assert params[0]["data"] == "0x70a08231" + KEY_ONE_EVM_ADDRESS[2:].rjust(64, "0")

    def test_erc20_transfer_calldata(self):
        data = encode_erc20_transfer(KEY_ONE_EVM_ADDRESS, 10)
        assert data.startswith("0xa9059cbb")
        assert len(data) == 2 + 8 + 128
        assert data.endswith(f"{10:064x}")

    @pytest.mark.asyncio
    async def test_history_newest_first(self, signer, transport):
        topic = "0x" + KEY_ONE_EVM_ADDRESS[2:].rjust(64, "0")
        other = "0x" + "35" * 20
        other_topic = "0x" + other[2:].rjust(64, "0")
        transfer = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

        def logs(params):
            topics = params[0]["topics"]
            if topics[2] == topic:
                return [{
                    "transactionHash": "0xaa",
                    "data": hex(100),
                    "topics": [transfer, other_topic, topic],
                    "blockNumber": "0x10",
                    "address": "0xtoken",
                }]
            return [{
                "transactionHash": "0xbb",
                "data": hex(40),
                "topics": [transfer, topic, other_topic],
                "blockNumber": "0x20",
                "address": "0xtoken",
            }]

        transport.on_call("eth_getLogs", logs)
        items = await signer.get_transaction_history(KEY_ONE_EVM_ADDRESS, 1)

        assert [i.tx_id for i in items] == ["0xbb", "0xaa"]
        assert items[0].direction == "send"
        assert items[1].direction == "receive"
        assert items[1].from_address == other
        assert items[1].amount == 100


class TestReceiptsAndBlocks:
    """Tests for receipt and block lookups."""

    @pytest.mark.asyncio
    async def test_pending_receipt(self, signer, transport):
        transport.on_call("eth_getTransactionReceipt", None)
        assert await signer.get_transaction_receipt(1, "0xaa") is None

    @pytest.mark.asyncio
    async def test_block_timestamp(self, signer, transport):
        transport.on_call("eth_getBlockByNumber", {"timestamp": "0x6553f100"})

        assert await signer.get_block_timestamp(1, 32) == 0x6553F100
        assert transport.calls[0][3] == ["0x20", False]

    @pytest.mark.asyncio
    async def test_block_timestamp_degrades(self, signer, transport):
        transport.on_call("eth_getBlockByNumber", RPCError("pruned"))
        assert await signer.get_block_timestamp(1, 32) is None
