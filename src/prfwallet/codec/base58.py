"""Base58 and Base58Check (Bitcoin alphabet), used by BTC, TRON and Solana."""

import base58

from prfwallet.codec.binary import double_sha256
from prfwallet.errors import InvalidAddress, InvalidAddressChecksum


def b58encode(data: bytes) -> str:
    """Encode bytes; each leading zero byte becomes a leading ``1``."""
    return base58.b58encode(bytes(data)).decode("ascii")


def b58decode(text: str) -> bytes:
    """Decode a Base58 string.

    Raises:
        ValueError: If the string contains a character outside the alphabet
    """
    return base58.b58decode(text)


def b58check_encode(payload: bytes) -> str:
    """Append the 4-byte double-SHA256 checksum and Base58-encode."""
    payload = bytes(payload)
    return b58encode(payload + double_sha256(payload)[:4])


def b58check_decode(text: str) -> bytes:
    """Decode Base58Check and return the payload without checksum.

    Raises:
        InvalidAddress: If the string is not Base58
        InvalidAddressChecksum: If the checksum does not match
    """
    try:
        raw = b58decode(text)
    except ValueError as e:
        raise InvalidAddress(str(e)) from e
    if len(raw) < 5:
        raise InvalidAddressChecksum(f"Base58Check string too short: {text}")

    payload, checksum = raw[:-4], raw[-4:]
    if double_sha256(payload)[:4] != checksum:
        raise InvalidAddressChecksum("Invalid address checksum")
    return payload
