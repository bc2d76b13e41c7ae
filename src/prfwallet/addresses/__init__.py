"""Per-chain address derivation and decoding."""

from prfwallet.addresses import btc, evm, solana, ton, tron
from prfwallet.addresses.base import WalletAddress
from prfwallet.addresses.factory import derive_address

__all__ = [
    "WalletAddress",
    "derive_address",
    "btc",
    "evm",
    "solana",
    "ton",
    "tron",
]
