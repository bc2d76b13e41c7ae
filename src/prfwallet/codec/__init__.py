"""Byte-level codecs shared by the chain signers.

Provides:
- Base58 / Base58Check
- base64url, CRC16, varint, compact-u16, little-endian integers
- RLP
"""

from prfwallet.codec import rlp
from prfwallet.codec.base58 import b58check_decode, b58check_encode, b58decode, b58encode
from prfwallet.codec.binary import (
    base64url_decode,
    base64url_encode,
    bytes_to_hex,
    compact_u16,
    crc16,
    double_sha256,
    hash160,
    hex_to_bytes,
    keccak256,
    sha256,
    uint32_le,
    uint64_le,
    varint,
)

__all__ = [
    "rlp",
    "b58encode",
    "b58decode",
    "b58check_encode",
    "b58check_decode",
    "base64url_encode",
    "base64url_decode",
    "bytes_to_hex",
    "compact_u16",
    "crc16",
    "double_sha256",
    "hash160",
    "hex_to_bytes",
    "keccak256",
    "sha256",
    "uint32_le",
    "uint64_le",
    "varint",
]
