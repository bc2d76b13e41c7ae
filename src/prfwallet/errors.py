"""Error taxonomy for the key vault and chain signers.

Every failure surfaced to callers is one of these types. Signers raise them
directly; only best-effort balance/history lookups catch errors and degrade
to an empty result.
"""


class WalletError(Exception):
    """Base class for all wallet errors."""
    pass


class DerivationFailure(WalletError):
    """Raised when the wrapping key cannot be derived from the device secret."""
    pass


class AuthenticationFailure(WalletError):
    """Raised when an encrypted key record fails AES-GCM authentication."""
    pass


class InvalidPrivateKey(WalletError):
    """Raised when a secp256k1 scalar is zero or not below the curve order."""
    pass


class InvalidPrivateKeyLength(InvalidPrivateKey):
    """Raised when key material has the wrong length for its curve."""
    pass


class InvalidAddress(WalletError):
    """Raised when an address cannot be decoded."""
    pass


class InvalidAddressChecksum(InvalidAddress):
    """Raised when an address checksum (Base58Check, CRC16) does not match."""
    pass


class InsufficientFunds(WalletError):
    """Raised when inputs do not cover amount plus fee."""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Insufficient funds. Have {available}, need {required}")


class UnsupportedChain(WalletError):
    """Raised for a chain type the vault does not know."""
    pass


class UnsupportedChainId(UnsupportedChain):
    """Raised when no RPC endpoint is configured for an EVM chain id."""

    def __init__(self, chain_id: int, available: list[int]):
        self.chain_id = chain_id
        self.available = available
        known = ", ".join(str(c) for c in available) or "none"
        super().__init__(f"Unsupported chain ID: {chain_id}. Available chains: {known}")


class NoUTXOsAvailable(WalletError):
    """Raised when an address has no spendable outputs."""
    pass


class RPCError(WalletError):
    """Raised when the upstream transport or node returns an error."""

    def __init__(self, message: str, code: int | None = None):
        self.code = code
        super().__init__(message)


class TransactionCreationFailed(WalletError):
    """Raised when a remote node refuses to build a transaction."""
    pass


class BroadcastRejected(WalletError):
    """Raised when a node rejects a signed transaction."""
    pass
