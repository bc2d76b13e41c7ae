"""Services composing the key vault and chain signers."""

from prfwallet.services.wallet_service import WalletService

__all__ = [
    "WalletService",
]
