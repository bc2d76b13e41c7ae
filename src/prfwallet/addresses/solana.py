"""Solana addresses: Base58 of the 32-byte ed25519 public key."""

from prfwallet.codec.base58 import b58decode, b58encode
from prfwallet.errors import InvalidAddress
from prfwallet.keys import KeyLike, ed25519_public_key


def address_from_public_key(public_key: bytes) -> str:
    if len(public_key) != 32:
        raise ValueError(f"Expected 32-byte public key, got {len(public_key)} bytes")
    return b58encode(public_key)


def address_from_private_key(private_key: KeyLike) -> str:
    return address_from_public_key(ed25519_public_key(private_key))


def decode_address(address: str) -> bytes:
    """Decode to the 32-byte public key."""
    try:
        raw = b58decode(address)
    except ValueError as e:
        raise InvalidAddress(f"Invalid Solana address: {address}") from e
    if len(raw) != 32:
        raise InvalidAddress(f"Solana address must decode to 32 bytes: {address}")
    return raw
