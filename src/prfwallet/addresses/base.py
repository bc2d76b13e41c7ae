"""Address value object shared by every chain family."""

from dataclasses import dataclass

from prfwallet.chains import ChainType


@dataclass(frozen=True)
class WalletAddress:
    """Address derived from a key.

    Derivation is deterministic: the same key always yields the same address.
    """

    chain_type: ChainType
    address: str

    def __str__(self) -> str:
        return self.address
