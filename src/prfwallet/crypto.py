"""Key vault: wrapping-key derivation and authenticated encryption of keys.

The wrapping key is derived with HKDF-SHA256 from the authenticator PRF
output using a fixed salt and info string, so the same device secret always
reproduces the same AES-256-GCM key without any server-held parameter.

Encrypted key record format:
    hex(IV[12] || AES-GCM ciphertext || tag[16])
The plaintext is the UTF-8 encoding of the private key hex string.
"""

import logging
import secrets
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from prfwallet.addresses.factory import derive_address
from prfwallet.chains import ALL_CHAIN_TYPES, ChainType, parse_chain_type
from prfwallet.errors import AuthenticationFailure, DerivationFailure
from prfwallet.keys import PrivateKeyMaterial

logger = logging.getLogger(__name__)

# Shared by every installation.
HKDF_SALT = b"canton-wallet-aes-key"
HKDF_INFO = b"encryption"
# Salt the authenticator evaluates the PRF extension with.
PRF_SALT = b"canton-wallet-encryption-v1"

KEY_LENGTH = 32
IV_LENGTH = 12
TAG_LENGTH = 16
PRIVATE_KEY_LENGTH = 32


@dataclass(frozen=True)
class WalletData:
    """Newly generated wallet ready to be stored.

    Attributes:
        chain_type: Chain family the key belongs to
        address: Derived address
        encrypted_private_key: hex(IV || ciphertext+tag)
    """
    chain_type: ChainType
    address: str
    encrypted_private_key: str


def derive_encryption_key(secret: Union[bytes, bytearray]) -> bytes:
    """Derive the 256-bit AES-GCM wrapping key from a device secret.

    Args:
        secret: Raw PRF output from the authenticator

    Returns:
        32-byte AES key

    Raises:
        DerivationFailure: If the secret is empty or not bytes
    """
    if not isinstance(secret, (bytes, bytearray)) or len(secret) == 0:
        raise DerivationFailure("Device secret must be non-empty bytes")

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=HKDF_SALT,
        info=HKDF_INFO,
    )
    return hkdf.derive(bytes(secret))


def encrypt(key: bytes, plaintext_hex: str) -> str:
    """Encrypt a private key hex string.

    Args:
        key: 32-byte AES key from derive_encryption_key
        plaintext_hex: Private key as hex

    Returns:
        hex(IV || ciphertext+tag)
    """
    iv = secrets.token_bytes(IV_LENGTH)
    ciphertext = AESGCM(key).encrypt(iv, plaintext_hex.encode("utf-8"), None)
    return (iv + ciphertext).hex()


def decrypt(key: bytes, iv_ciphertext_hex: str) -> str:
    """Decrypt an encrypted key record.

    Args:
        key: 32-byte AES key from derive_encryption_key
        iv_ciphertext_hex: hex(IV || ciphertext+tag)

    Returns:
        Private key hex string

    Raises:
        AuthenticationFailure: On tag mismatch, truncated or non-hex input
    """
    try:
        data = bytes.fromhex(iv_ciphertext_hex.strip())
    except ValueError as e:
        raise AuthenticationFailure("Encrypted key record is not valid hex") from e

    if len(data) < IV_LENGTH + TAG_LENGTH:
        raise AuthenticationFailure("Encrypted key record is truncated")

    iv, ciphertext = data[:IV_LENGTH], data[IV_LENGTH:]
    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
    except InvalidTag as e:
        raise AuthenticationFailure("Failed to decrypt private key") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise AuthenticationFailure("Decrypted key record is not text") from e


@contextmanager
def unlock_private_key(
    secret: Union[bytes, bytearray],
    encrypted_hex: str,
) -> Iterator[PrivateKeyMaterial]:
    """Decrypt a key record into a scoped, self-wiping buffer.

    The intermediate decrypted hex str is not wiped; see PrivateKeyMaterial.

    Usage:
        with unlock_private_key(prf_output, record) as key:
            signed = await signer.sign_transaction(request, key)
    """
    key_hex = decrypt(derive_encryption_key(secret), encrypted_hex)
    with PrivateKeyMaterial.from_hex(key_hex) as material:
        yield material


def generate_wallet(
    chain_type: Union[str, ChainType],
    key: bytes,
    network: Optional[str] = None,
) -> WalletData:
    """Generate a fresh private key, derive its address and encrypt it.

    Args:
        chain_type: Chain family
        key: AES wrapping key
        network: Optional network selector for address versioning

    Raises:
        UnsupportedChain: If the chain type is unknown
    """
    chain = parse_chain_type(chain_type)
    material = PrivateKeyMaterial(bytearray(secrets.token_bytes(PRIVATE_KEY_LENGTH)))
    try:
        wallet_address = derive_address(chain, material, network=network)
        encrypted = encrypt(key, material.hex())
    finally:
        material.wipe()

    logger.info(f"Generated {chain.value} wallet {wallet_address.address}")
    return WalletData(
        chain_type=chain,
        address=wallet_address.address,
        encrypted_private_key=encrypted,
    )


def generate_wallets_for_chains(
    secret: Union[bytes, bytearray],
    chain_types: Iterable[Union[str, ChainType]],
) -> list[WalletData]:
    """Generate one wallet per requested chain family under one wrapping key."""
    key = derive_encryption_key(secret)
    return [generate_wallet(chain_type, key) for chain_type in chain_types]


def generate_all_wallets(secret: Union[bytes, bytearray]) -> list[WalletData]:
    return generate_wallets_for_chains(secret, ALL_CHAIN_TYPES)


def decrypt_private_key(secret: Union[bytes, bytearray], encrypted_hex: str) -> str:
    """Decrypt a key record and return the private key hex.

    The caller owns the returned string; prefer unlock_private_key for signing.
    """
    return decrypt(derive_encryption_key(secret), encrypted_hex)
