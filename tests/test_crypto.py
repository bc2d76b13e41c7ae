"""Tests for the key vault and private key material."""

import pytest

from prfwallet.addresses import derive_address
from prfwallet.chains import ChainType
from prfwallet.crypto import (
    IV_LENGTH,
    TAG_LENGTH,
    decrypt,
    decrypt_private_key,
    derive_encryption_key,
    encrypt,
    generate_all_wallets,
    generate_wallets_for_chains,
    unlock_private_key,
)
from prfwallet.errors import (
    AuthenticationFailure,
    DerivationFailure,
    InvalidPrivateKey,
    InvalidPrivateKeyLength,
    UnsupportedChain,
)
from prfwallet.keys import SECP256K1_N, PrivateKeyMaterial, sign_recoverable

SECRET = bytes(range(32))
OTHER_SECRET = bytes(range(1, 33))
KEY_HEX = "4646464646464646464646464646464646464646464646464646464646464646"


class TestEncryptionKey:
    """Tests for wrapping-key derivation."""

    def test_deterministic(self):
        assert derive_encryption_key(SECRET) == derive_encryption_key(bytearray(SECRET))

    def test_length(self):
        assert len(derive_encryption_key(SECRET)) == 32

    def test_different_secrets_differ(self):
        assert derive_encryption_key(SECRET) != derive_encryption_key(OTHER_SECRET)

    @pytest.mark.parametrize("secret", [b"", bytearray(), "not-bytes", None])
    def test_rejects_empty_or_non_bytes(self, secret):
        with pytest.raises(DerivationFailure):
            derive_encryption_key(secret)


class TestEncryption:
    """Tests for AES-GCM key records."""

    def test_round_trip(self):
        key = derive_encryption_key(SECRET)
        record = encrypt(key, KEY_HEX)
        assert decrypt(key, record) == KEY_HEX

    def test_record_layout(self):
        record = bytes.fromhex(encrypt(derive_encryption_key(SECRET), KEY_HEX))
        assert len(record) == IV_LENGTH + len(KEY_HEX) + TAG_LENGTH

    def test_fresh_iv_per_record(self):
        key = derive_encryption_key(SECRET)
        assert encrypt(key, KEY_HEX) != encrypt(key, KEY_HEX)

    def test_wrong_secret_fails(self):
        record = encrypt(derive_encryption_key(SECRET), KEY_HEX)
        with pytest.raises(AuthenticationFailure):
            decrypt(derive_encryption_key(OTHER_SECRET), record)

    def test_tampered_ciphertext_fails(self):
        key = derive_encryption_key(SECRET)
        record = bytearray(bytes.fromhex(encrypt(key, KEY_HEX)))
        record[IV_LENGTH] ^= 0x01
        with pytest.raises(AuthenticationFailure):
            decrypt(key, record.hex())

    def test_truncated_record_fails(self):
        key = derive_encryption_key(SECRET)
        with pytest.raises(AuthenticationFailure):
            decrypt(key, "00" * (IV_LENGTH + TAG_LENGTH - 1))

    def test_non_hex_record_fails(self):
        with pytest.raises(AuthenticationFailure):
            decrypt(derive_encryption_key(SECRET), "zz")


class TestPrivateKeyMaterial:
    """Tests for scoped key buffers."""

    def test_wiped_after_scope(self):
        with PrivateKeyMaterial.from_hex(KEY_HEX) as key:
            assert key.hex() == KEY_HEX
        assert key.is_wiped
        with pytest.raises(RuntimeError):
            key.raw()

    def test_wiped_on_exception(self):
        with pytest.raises(ValueError):
            with PrivateKeyMaterial.from_hex(KEY_HEX) as key:
                raise ValueError("boom")
        assert key.is_wiped

    def test_consumes_caller_bytearray(self):
        buffer = bytearray(bytes.fromhex(KEY_HEX))
        material = PrivateKeyMaterial(buffer)
        assert buffer == bytearray(32)
        assert material.hex() == KEY_HEX

    def test_raw_returns_detached_copy(self):
        """The wipe zeroes the buffer only; copies handed out are independent."""
        with PrivateKeyMaterial.from_hex(KEY_HEX) as key:
            copy = key.raw()
        assert key.is_wiped
        assert copy == bytes.fromhex(KEY_HEX)
        with pytest.raises(RuntimeError):
            key.raw()

    def test_repr_hides_key(self):
        material = PrivateKeyMaterial(bytes.fromhex(KEY_HEX))
        assert KEY_HEX not in repr(material)

    def test_invalid_hex(self):
        with pytest.raises(InvalidPrivateKey):
            PrivateKeyMaterial.from_hex("0xnothex")


class TestSecp256k1Keys:
    """Tests for scalar validation and signing."""

    def test_zero_key_rejected(self):
        with pytest.raises(InvalidPrivateKey):
            derive_address(ChainType.EVM, bytes(32))

    def test_key_at_curve_order_rejected(self):
        with pytest.raises(InvalidPrivateKey):
            derive_address(ChainType.TRON, SECP256K1_N.to_bytes(32, "big"))

    def test_wrong_length_rejected(self):
        with pytest.raises(InvalidPrivateKeyLength):
            derive_address(ChainType.BTC, bytes(31) + b"\x01" + b"\x00")

    def test_signatures_are_low_s(self):
        key = bytes.fromhex(KEY_HEX)
        for i in range(8):
            _, s, rec_id = sign_recoverable(bytes([i]) * 32, key)
            assert s <= SECP256K1_N // 2
            assert rec_id in (0, 1)


class TestWalletGeneration:
    """Tests for wallet generation and unlock."""

    def test_generate_all_wallets(self):
        wallets = generate_all_wallets(SECRET)
        assert [w.chain_type for w in wallets] == list(ChainType)

        for wallet in wallets:
            key_hex = decrypt_private_key(SECRET, wallet.encrypted_private_key)
            assert len(bytes.fromhex(key_hex)) == 32
            derived = derive_address(wallet.chain_type, bytes.fromhex(key_hex))
            assert derived.address == wallet.address

    def test_generate_selected_chains(self):
        wallets = generate_wallets_for_chains(SECRET, ["evm", "ton"])
        assert [w.chain_type for w in wallets] == [ChainType.EVM, ChainType.TON]
        assert wallets[0].address.startswith("0x")

    def test_unknown_chain(self):
        with pytest.raises(UnsupportedChain):
            generate_wallets_for_chains(SECRET, ["doge"])

    def test_unlock_yields_wiped_material(self):
        wallet = generate_wallets_for_chains(SECRET, [ChainType.SVM])[0]
        with unlock_private_key(SECRET, wallet.encrypted_private_key) as key:
            assert derive_address(ChainType.SVM, key).address == wallet.address
        assert key.is_wiped

    def test_unlock_with_wrong_secret(self):
        wallet = generate_wallets_for_chains(SECRET, [ChainType.EVM])[0]
        with pytest.raises(AuthenticationFailure):
            with unlock_private_key(OTHER_SECRET, wallet.encrypted_private_key):
                pass
