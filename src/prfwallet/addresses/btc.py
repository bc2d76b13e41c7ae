"""Bitcoin P2PKH addresses: Base58Check(version || HASH160(compressed pubkey))."""

from typing import Optional, Union

from prfwallet.chains import BTCNetwork
from prfwallet.codec.base58 import b58check_decode, b58check_encode
from prfwallet.codec.binary import hash160
from prfwallet.errors import InvalidAddress
from prfwallet.keys import KeyLike, secp256k1_public_key

VERSION_BYTES = {
    BTCNetwork.MAINNET: 0x00,
    BTCNetwork.TESTNET: 0x6F,
}


def _version(network: Optional[Union[str, BTCNetwork]]) -> int:
    return VERSION_BYTES[BTCNetwork(network or BTCNetwork.MAINNET)]


def address_from_public_key(
    public_key: bytes,
    network: Optional[Union[str, BTCNetwork]] = None,
) -> str:
    """Derive a P2PKH address from a 33-byte compressed public key."""
    if len(public_key) != 33:
        raise ValueError(f"Expected compressed public key, got {len(public_key)} bytes")
    return b58check_encode(bytes([_version(network)]) + hash160(public_key))


def address_from_private_key(
    private_key: KeyLike,
    network: Optional[Union[str, BTCNetwork]] = None,
) -> str:
    return address_from_public_key(secp256k1_public_key(private_key, compressed=True), network)


def decode_address(address: str) -> tuple[int, bytes]:
    """Decode to (version, pubkey_hash).

    Raises:
        InvalidAddressChecksum: If the checksum does not match
        InvalidAddress: If the payload is not 21 bytes
    """
    payload = b58check_decode(address)
    if len(payload) != 21:
        raise InvalidAddress(f"Invalid P2PKH address length: {address}")
    return payload[0], payload[1:]


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 <20> OP_EQUALVERIFY OP_CHECKSIG."""
    if len(pubkey_hash) != 20:
        raise ValueError("P2PKH script requires a 20-byte hash")
    return b"\x76\xa9\x14" + pubkey_hash + b"\x88\xac"


def script_for_address(address: str) -> bytes:
    _, pubkey_hash = decode_address(address)
    return p2pkh_script(pubkey_hash)
