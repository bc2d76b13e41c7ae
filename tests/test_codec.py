"""Tests for the byte-level codecs."""

import pytest

from prfwallet.codec import rlp
from prfwallet.codec.base58 import b58check_decode, b58check_encode, b58decode, b58encode
from prfwallet.codec.binary import (
    base64url_decode,
    base64url_encode,
    compact_u16,
    crc16,
    hash160,
    hex_to_bytes,
    keccak256,
    uint64_le,
    varint,
)
from prfwallet.errors import InvalidAddress, InvalidAddressChecksum


class TestBase58:
    """Tests for Base58 and Base58Check."""

    def test_leading_zero_bytes_become_ones(self):
        assert b58encode(b"\x00\x00\x01") == "112"
        assert b58decode("112") == b"\x00\x00\x01"

    def test_empty(self):
        assert b58encode(b"") == ""
        assert b58decode("") == b""

    def test_known_value(self):
        assert b58encode(b"hello world") == "StV1DL6CwTryKyV"

    def test_invalid_character(self):
        with pytest.raises(ValueError):
            b58decode("0OIl")

    def test_check_round_trip(self):
        payload = bytes([0x00]) + bytes(range(20))
        assert b58check_decode(b58check_encode(payload)) == payload

    def test_check_detects_corruption(self):
        encoded = b58check_encode(bytes([0x41]) + bytes(20))
        corrupted = encoded[:-1] + ("2" if encoded[-1] != "2" else "3")
        with pytest.raises(InvalidAddressChecksum):
            b58check_decode(corrupted)

    def test_check_rejects_non_base58(self):
        with pytest.raises(InvalidAddress):
            b58check_decode("T0000")

    def test_check_rejects_short_input(self):
        with pytest.raises(InvalidAddressChecksum):
            b58check_decode("1")

    def test_check_encode_address_vector(self):
        payload = bytes([0x00]) + bytes.fromhex("751e76e8199196d454941c45d1b3a323f1433bd6")
        encoded = b58check_encode(payload)
        assert isinstance(encoded, str)
        assert encoded == "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"


class TestHashing:
    """Tests for hash helpers."""

    def test_keccak_empty(self):
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_hash160_of_generator_point(self):
        public_key = bytes.fromhex(
            "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
        )
        assert hash160(public_key).hex() == "751e76e8199196d454941c45d1b3a323f1433bd6"

    def test_crc16_xmodem_check_value(self):
        assert crc16(b"123456789") == 0x31C3


class TestIntegerEncodings:
    """Tests for varint, compact-u16 and fixed-width integers."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, b"\x00"),
            (0xFC, b"\xfc"),
            (0xFD, b"\xfd\xfd\x00"),
            (0xFFFF, b"\xfd\xff\xff"),
            (0x10000, b"\xfe\x00\x00\x01\x00"),
            (2**32, b"\xff\x00\x00\x00\x00\x01\x00\x00\x00"),
        ],
    )
    def test_varint(self, value, expected):
        assert varint(value) == expected

    def test_varint_rejects_negative(self):
        with pytest.raises(ValueError):
            varint(-1)

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, b"\x00"),
            (0x7F, b"\x7f"),
            (0x80, b"\x80\x01"),
            (0x3FFF, b"\xff\x7f"),
            (0x4000, b"\x80\x80\x01"),
        ],
    )
    def test_compact_u16(self, value, expected):
        assert compact_u16(value) == expected

    def test_compact_u16_range(self):
        with pytest.raises(ValueError):
            compact_u16(0x10000)

    def test_uint64_full_width(self):
        value = 2**63 + 5
        assert uint64_le(value) == value.to_bytes(8, "little")

    def test_hex_to_bytes_variants(self):
        assert hex_to_bytes("0x0102") == b"\x01\x02"
        assert hex_to_bytes("102") == b"\x01\x02"
        assert hex_to_bytes("") == b""

    def test_base64url_strips_padding(self):
        encoded = base64url_encode(b"\xfb\xff")
        assert "=" not in encoded
        assert "-" in encoded or "_" in encoded
        assert base64url_decode(encoded) == b"\xfb\xff"


class TestRLP:
    """Tests for RLP against the reference vectors."""

    @pytest.mark.parametrize(
        "item,expected",
        [
            ("dog", "83646f67"),
            (["cat", "dog"], "c88363617483646f67"),
            ("", "80"),
            ([], "c0"),
            (0, "80"),
            (b"\x00", "00"),
            (15, "0f"),
            (1024, "820400"),
            ([[], [[]], [[], [[]]]], "c7c0c1c0c3c0c1c0"),
        ],
    )
    def test_encode_vectors(self, item, expected):
        assert rlp.encode(item).hex() == expected

    def test_long_string(self):
        text = "Lorem ipsum dolor sit amet, consectetur adipisicing elit"
        encoded = rlp.encode(text)
        assert encoded[:2] == b"\xb8\x38"
        assert encoded[2:] == text.encode()

    def test_decode_nested(self):
        assert rlp.decode(bytes.fromhex("c88363617483646f67")) == [b"cat", b"dog"]

    def test_decode_rejects_truncated_input(self):
        with pytest.raises(ValueError):
            rlp.decode(bytes.fromhex("8364"))

    def test_rejects_negative(self):
        with pytest.raises(ValueError):
            rlp.encode(-1)
