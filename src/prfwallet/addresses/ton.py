"""TON user-friendly addresses.

Layout before base64url encoding (36 bytes):
    tag[1] || workchain[1] || hash[32] || crc16[2, big-endian]

The address hash is SHA-256 of the ed25519 public key. This does not
reproduce the StateInit hash of a deployed wallet contract.
"""

from dataclasses import dataclass

from prfwallet.codec.binary import base64url_decode, base64url_encode, crc16, sha256
from prfwallet.errors import InvalidAddress, InvalidAddressChecksum
from prfwallet.keys import KeyLike, ed25519_public_key

TAG_BOUNCEABLE = 0x11
TAG_NON_BOUNCEABLE = 0x51
TAG_TEST_ONLY = 0x80


@dataclass(frozen=True)
class TonAddress:
    """Decoded TON address."""

    workchain: int
    hash: bytes
    bounceable: bool = True

    def to_raw(self) -> str:
        return f"{self.workchain}:{self.hash.hex()}"


def address_from_public_key(
    public_key: bytes,
    workchain: int = 0,
    bounceable: bool = True,
) -> str:
    if len(public_key) != 32:
        raise ValueError(f"Expected 32-byte public key, got {len(public_key)} bytes")
    tag = TAG_BOUNCEABLE if bounceable else TAG_NON_BOUNCEABLE
    body = bytes([tag, workchain & 0xFF]) + sha256(public_key)
    return base64url_encode(body + crc16(body).to_bytes(2, "big"))


def address_from_private_key(private_key: KeyLike, bounceable: bool = True) -> str:
    return address_from_public_key(ed25519_public_key(private_key), 0, bounceable)


def parse_address(address: str) -> TonAddress:
    """Parse a raw ``wc:hex`` or user-friendly address.

    Raises:
        InvalidAddressChecksum: If the CRC16 does not match
        InvalidAddress: On any other malformed input
    """
    address = (address or "").strip()
    if ":" in address:
        wc_text, hash_hex = address.split(":", 1)
        try:
            workchain = int(wc_text, 10)
            raw_hash = bytes.fromhex(hash_hex)
        except ValueError as e:
            raise InvalidAddress(f"Invalid raw TON address: {address}") from e
        if len(raw_hash) != 32:
            raise InvalidAddress(f"Invalid raw TON address: {address}")
        return TonAddress(workchain=workchain, hash=raw_hash, bounceable=True)

    try:
        data = base64url_decode(address.replace("+", "-").replace("/", "_"))
    except ValueError as e:
        raise InvalidAddress(f"Invalid TON address: {address}") from e
    if len(data) != 36:
        raise InvalidAddress("Invalid address length")

    checksum = int.from_bytes(data[34:36], "big")
    if crc16(data[:34]) != checksum:
        raise InvalidAddressChecksum("Invalid address checksum")

    tag = data[0] & ~TAG_TEST_ONLY
    if tag not in (TAG_BOUNCEABLE, TAG_NON_BOUNCEABLE):
        raise InvalidAddress(f"Unknown TON address tag: {data[0]:#04x}")

    workchain = -1 if data[1] == 0xFF else data[1]
    return TonAddress(
        workchain=workchain,
        hash=data[2:34],
        bounceable=tag == TAG_BOUNCEABLE,
    )


def to_raw_address(address: str) -> str:
    return parse_address(address).to_raw()
