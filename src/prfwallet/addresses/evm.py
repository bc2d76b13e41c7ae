"""EVM addresses: last 20 bytes of keccak256 over the uncompressed public key."""

import re

from eth_utils import is_checksum_address, is_hex_address
from eth_utils import to_checksum_address as eth_to_checksum_address

from prfwallet.codec.binary import keccak256
from prfwallet.errors import InvalidAddress, InvalidAddressChecksum
from prfwallet.keys import KeyLike, secp256k1_public_key

_HEX_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")


def address_from_public_key(public_key: bytes) -> str:
    """Derive a lowercase ``0x`` address.

    Args:
        public_key: 65-byte uncompressed key (``04`` prefix) or the 64-byte body
    """
    if len(public_key) == 65 and public_key[0] == 0x04:
        public_key = public_key[1:]
    if len(public_key) != 64:
        raise ValueError(f"Expected uncompressed public key, got {len(public_key)} bytes")
    return "0x" + keccak256(public_key)[-20:].hex()


def address_from_private_key(private_key: KeyLike) -> str:
    return address_from_public_key(secp256k1_public_key(private_key))


def is_valid_address(address: str) -> bool:
    """Check format, and the EIP-55 checksum when the address is mixed case."""
    if not isinstance(address, str) or not _HEX_ADDRESS.match(address):
        return False
    body = address[2:]
    if body.islower() or body.isupper():
        return is_hex_address(address)
    return is_checksum_address(address)


def to_checksum_address(address: str) -> str:
    """EIP-55 mixed-case checksum encoding."""
    if not isinstance(address, str) or not _HEX_ADDRESS.match(address):
        raise InvalidAddress(f"Invalid EVM address: {address}")
    return eth_to_checksum_address(address)


def address_to_bytes(address: str) -> bytes:
    """Decode to 20 raw bytes, rejecting a wrong EIP-55 checksum."""
    if not isinstance(address, str) or not _HEX_ADDRESS.match(address):
        raise InvalidAddress(f"Invalid EVM address: {address}")
    if not is_valid_address(address):
        raise InvalidAddressChecksum(f"EIP-55 checksum mismatch: {address}")
    return bytes.fromhex(address[2:])
