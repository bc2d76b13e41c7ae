"""TRON addresses: ``0x41`` + keccak-derived 20 bytes, Base58Check encoded.

Three textual forms are accepted on input:
- ``T...`` Base58Check (user-facing)
- ``41...`` 21-byte hex (node API form)
- ``0x...`` 20-byte hex (EVM form)
"""

from prfwallet.codec.base58 import b58check_decode, b58check_encode
from prfwallet.codec.binary import keccak256
from prfwallet.errors import InvalidAddress
from prfwallet.keys import KeyLike, secp256k1_public_key

ADDRESS_PREFIX = 0x41


def address_from_public_key(public_key: bytes) -> str:
    if len(public_key) == 65 and public_key[0] == 0x04:
        public_key = public_key[1:]
    if len(public_key) != 64:
        raise ValueError(f"Expected uncompressed public key, got {len(public_key)} bytes")
    return b58check_encode(bytes([ADDRESS_PREFIX]) + keccak256(public_key)[-20:])


def address_from_private_key(private_key: KeyLike) -> str:
    return address_from_public_key(secp256k1_public_key(private_key))


def address_to_hex(address: str) -> str:
    """Convert any accepted form to 21-byte ``41...`` hex.

    Raises:
        InvalidAddressChecksum: If a Base58 address fails its checksum
        InvalidAddress: If the address is in no recognised form
    """
    address = (address or "").strip()
    if address.startswith("T"):
        payload = b58check_decode(address)
        if len(payload) != 21 or payload[0] != ADDRESS_PREFIX:
            raise InvalidAddress(f"Invalid TRON address: {address}")
        return payload.hex()

    body = address[2:] if address.startswith(("0x", "0X")) else address
    try:
        raw = bytes.fromhex(body)
    except ValueError as e:
        raise InvalidAddress(f"Invalid TRON address: {address}") from e

    if len(raw) == 20:
        raw = bytes([ADDRESS_PREFIX]) + raw
    if len(raw) != 21 or raw[0] != ADDRESS_PREFIX:
        raise InvalidAddress(f"Invalid TRON address: {address}")
    return raw.hex()


def hex_to_address(hex_address: str) -> str:
    """Convert ``41...`` or 20-byte hex to the Base58Check ``T...`` form."""
    body = hex_address[2:] if hex_address.startswith(("0x", "0X")) else hex_address
    try:
        raw = bytes.fromhex(body)
    except ValueError as e:
        raise InvalidAddress(f"Invalid TRON hex address: {hex_address}") from e
    if len(raw) == 20:
        raw = bytes([ADDRESS_PREFIX]) + raw
    if len(raw) != 21 or raw[0] != ADDRESS_PREFIX:
        raise InvalidAddress(f"Invalid TRON hex address: {hex_address}")
    return b58check_encode(raw)


def is_valid_address(address: str) -> bool:
    try:
        address_to_hex(address)
    except InvalidAddress:
        return False
    return True
