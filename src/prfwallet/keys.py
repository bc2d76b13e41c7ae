"""Private key material and the curve primitives that consume it.

PrivateKeyMaterial owns the only mutable copy of a decrypted key. It is a
context manager: the buffer is zeroed when the ``with`` block exits, whether
it exits normally or through an exception.

Curve operations:
- secp256k1 (EVM, BTC, TRON) via eth-keys: RFC6979 nonces, low-S signatures
  with recovery id
- ed25519 (Solana, TON) via cryptography
"""

import logging
from typing import Union

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from eth_keys import keys

from prfwallet.codec.binary import hex_to_bytes
from prfwallet.errors import InvalidPrivateKey, InvalidPrivateKeyLength

logger = logging.getLogger(__name__)

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2


class PrivateKeyMaterial:
    """Mutable holder for raw private key bytes, zeroed on exit.

    Only this bytearray is zeroed. Immutable copies cannot be wiped and
    live until garbage collected: the bytes returned by raw(), the str
    returned by hex(), and the decrypted hex text a key was built from.

    Example:
        with PrivateKeyMaterial.from_hex(key_hex) as key:
            signature = sign_recoverable(digest, key)
        assert key.is_wiped
    """

    __slots__ = ("_data", "_wiped")

    def __init__(self, data: Union[bytes, bytearray]):
        self._data = bytearray(data)
        self._wiped = False
        # Caller-owned mutable buffers are consumed.
        if isinstance(data, bytearray):
            data[:] = b"\x00" * len(data)

    @classmethod
    def from_hex(cls, value: str) -> "PrivateKeyMaterial":
        """Build from a hex string with optional ``0x`` prefix."""
        try:
            return cls(hex_to_bytes(value.strip()))
        except ValueError as e:
            raise InvalidPrivateKey("Private key is not valid hex") from e

    def __enter__(self) -> "PrivateKeyMaterial":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.wipe()
        return False

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"<PrivateKeyMaterial len={len(self._data)} wiped={self._wiped}>"

    @property
    def is_wiped(self) -> bool:
        return self._wiped

    def raw(self) -> bytes:
        """Immutable copy of the key bytes for library calls."""
        self._check()
        return bytes(self._data)

    def hex(self) -> str:
        self._check()
        return self._data.hex()

    def wipe(self) -> None:
        """Overwrite the buffer with zeros."""
        for i in range(len(self._data)):
            self._data[i] = 0
        self._wiped = True

    def _check(self) -> None:
        if self._wiped:
            raise RuntimeError("Private key material already wiped")


KeyLike = Union[PrivateKeyMaterial, bytes, bytearray]


def _key_bytes(key: KeyLike) -> bytes:
    if isinstance(key, PrivateKeyMaterial):
        return key.raw()
    return bytes(key)


# ============================================================================
# secp256k1
# ============================================================================

def secp256k1_private_key(key: KeyLike) -> keys.PrivateKey:
    """Validate a 32-byte scalar and wrap it for eth-keys.

    Raises:
        InvalidPrivateKeyLength: If not 32 bytes
        InvalidPrivateKey: If the scalar is 0 or >= n
    """
    raw = _key_bytes(key)
    if len(raw) != 32:
        raise InvalidPrivateKeyLength(
            f"secp256k1 private key must be 32 bytes, got {len(raw)}"
        )
    scalar = int.from_bytes(raw, "big")
    if not 0 < scalar < SECP256K1_N:
        raise InvalidPrivateKey("secp256k1 private key out of range")
    return keys.PrivateKey(raw)


def secp256k1_public_key(key: KeyLike, compressed: bool = False) -> bytes:
    """Public key as 65-byte ``04 || x || y`` or 33-byte compressed form."""
    public_key = secp256k1_private_key(key).public_key
    if compressed:
        return public_key.to_compressed_bytes()
    return b"\x04" + public_key.to_bytes()


def sign_recoverable(digest: bytes, key: KeyLike) -> tuple[int, int, int]:
    """Sign a 32-byte digest.

    Returns:
        Tuple of (r, s, recovery_id) with s in the lower half of the order
    """
    if len(digest) != 32:
        raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")

    signature = secp256k1_private_key(key).sign_msg_hash(bytes(digest))
    r, s, rec_id = signature.r, signature.s, signature.v
    if s > SECP256K1_HALF_N:
        s = SECP256K1_N - s
        rec_id ^= 1
    return r, s, rec_id


def signature_bytes(r: int, s: int) -> bytes:
    """Fixed-width 64-byte ``r || s``."""
    return r.to_bytes(32, "big") + s.to_bytes(32, "big")


# ============================================================================
# ed25519
# ============================================================================

def ed25519_split(key: KeyLike) -> tuple[bytes, bytes]:
    """Return (seed, public_key) from a 32-byte seed or 64-byte keypair.

    Raises:
        InvalidPrivateKeyLength: If the key is neither 32 nor 64 bytes
    """
    raw = _key_bytes(key)
    if len(raw) == 64:
        return raw[:32], raw[32:]
    if len(raw) == 32:
        return raw, ed25519_public_key(raw)
    raise InvalidPrivateKeyLength(
        f"Invalid private key length: expected 32 or 64 bytes, got {len(raw)}"
    )


def ed25519_public_key(seed: KeyLike) -> bytes:
    """32-byte public key for a seed (or the second half of a keypair)."""
    raw = _key_bytes(seed)
    if len(raw) == 64:
        return raw[32:]
    if len(raw) != 32:
        raise InvalidPrivateKeyLength(
            f"Invalid private key length: expected 32 or 64 bytes, got {len(raw)}"
        )
    return Ed25519PrivateKey.from_private_bytes(raw).public_key().public_bytes(
        Encoding.Raw, PublicFormat.Raw
    )


def ed25519_sign(message: bytes, key: KeyLike) -> bytes:
    """64-byte ed25519 signature over ``message``."""
    seed, _ = ed25519_split(key)
    return Ed25519PrivateKey.from_private_bytes(seed).sign(bytes(message))
