"""Hashing and fixed/variable width integer helpers shared by the chain codecs."""

import base64
import hashlib

from Crypto.Hash import RIPEMD160
from eth_utils import keccak


def hex_to_bytes(value: str) -> bytes:
    """Decode a hex string, with or without a ``0x`` prefix.

    Odd-length input is left-padded with a zero nibble.
    """
    clean = value[2:] if value.startswith(("0x", "0X")) else value
    if len(clean) % 2:
        clean = "0" + clean
    return bytes.fromhex(clean)


def bytes_to_hex(data: bytes) -> str:
    """Lowercase hex without prefix."""
    return bytes(data).hex()


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def double_sha256(data: bytes) -> bytes:
    """SHA256(SHA256(data)), used for Base58Check checksums and txids."""
    return sha256(sha256(data))


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))."""
    return RIPEMD160.new(sha256(data)).digest()


def keccak256(data: bytes) -> bytes:
    return keccak(primitive=bytes(data))


def base64url_encode(data: bytes) -> str:
    """URL-safe base64 with padding stripped (TON user-friendly addresses)."""
    return base64.urlsafe_b64encode(bytes(data)).decode().rstrip("=")


def base64url_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def crc16(data: bytes) -> int:
    """CRC-16/XMODEM (poly 0x1021, init 0)."""
    crc = 0
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = (crc << 1) ^ 0x1021
            else:
                crc <<= 1
            crc &= 0xFFFF
    return crc


def varint(n: int) -> bytes:
    """Bitcoin CompactSize encoding."""
    if n < 0:
        raise ValueError("varint cannot encode negative values")
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    if n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    if n <= 0xFFFFFFFFFFFFFFFF:
        return b"\xff" + n.to_bytes(8, "little")
    raise ValueError("Value too large for varint")


def compact_u16(n: int) -> bytes:
    """Solana shortvec: 7 bits per byte, high bit marks continuation."""
    if not 0 <= n <= 0xFFFF:
        raise ValueError(f"compact-u16 out of range: {n}")
    out = bytearray()
    while n > 0x7F:
        out.append((n & 0x7F) | 0x80)
        n >>= 7
    out.append(n)
    return bytes(out)


def uint32_le(n: int) -> bytes:
    return n.to_bytes(4, "little")


def uint64_le(n: int) -> bytes:
    return n.to_bytes(8, "little")
