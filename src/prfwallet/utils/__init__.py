"""Shared utilities."""

from prfwallet.utils.locks import (
    AccountSigningLock,
    LockTimeoutError,
    account_signing_lock,
    clear_account_locks,
)

__all__ = [
    "AccountSigningLock",
    "LockTimeoutError",
    "account_signing_lock",
    "clear_account_locks",
]
