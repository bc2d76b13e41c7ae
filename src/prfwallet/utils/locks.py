"""Per-account signing locks.

Two concurrent sign-and-send calls for the same account can read the same
nonce or seqno and produce conflicting transactions. Serializing them per
(chain, address) closes that window within one process.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, Union

from prfwallet.chains import ChainType

logger = logging.getLogger(__name__)

AccountKey = tuple[str, str]

# Global lock registry: (chain, address) -> asyncio.Lock
# An entry is dropped once no AccountSigningLock holds or waits on it.
_account_locks: dict[AccountKey, asyncio.Lock] = {}
_lock_users: dict[AccountKey, int] = {}
_registry_lock = asyncio.Lock()


def _account_key(chain_type: Union[str, ChainType], address: str) -> AccountKey:
    chain = getattr(chain_type, "value", chain_type)
    # EVM addresses are case-insensitive; the others are case-sensitive encodings.
    if chain == ChainType.EVM.value:
        address = address.lower()
    return chain, address


async def get_account_lock(chain_type: Union[str, ChainType], address: str) -> asyncio.Lock:
    """Get or create the lock for an account.

    Args:
        chain_type: Chain family
        address: Account address

    Returns:
        asyncio.Lock for the account
    """
    key = _account_key(chain_type, address)
    async with _registry_lock:
        if key not in _account_locks:
            _account_locks[key] = asyncio.Lock()
        return _account_locks[key]


async def _checkout_lock(key: AccountKey) -> asyncio.Lock:
    async with _registry_lock:
        lock = _account_locks.setdefault(key, asyncio.Lock())
        _lock_users[key] = _lock_users.get(key, 0) + 1
        return lock


def _checkin_lock(key: AccountKey) -> None:
    remaining = _lock_users.get(key, 0) - 1
    if remaining > 0:
        _lock_users[key] = remaining
        return
    _lock_users.pop(key, None)
    lock = _account_locks.get(key)
    if lock is not None and not lock.locked():
        del _account_locks[key]


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


class AccountSigningLock:
    """Context manager for exclusive signing access to one account.

    Example:
        async with AccountSigningLock(ChainType.EVM, address, operation="send"):
            signed = await signer.sign_transaction(request, key)
            await signer.broadcast(signed)
    """

    def __init__(
        self,
        chain_type: Union[str, ChainType],
        address: str,
        timeout: Optional[float] = 30.0,
        operation: str = "sign_and_send",
    ):
        """Initialize the lock.

        Args:
            chain_type: Chain family
            address: Account address
            timeout: Maximum time to wait for lock (None = wait forever)
            operation: Description of the operation for logging
        """
        self.chain_type = chain_type
        self.address = address
        self.timeout = timeout
        self.operation = operation
        self._lock: Optional[asyncio.Lock] = None
        self._acquired = False

    @property
    def label(self) -> str:
        chain, address = _account_key(self.chain_type, self.address)
        return f"{chain}:{address}"

    async def __aenter__(self) -> "AccountSigningLock":
        """Acquire the lock."""
        key = _account_key(self.chain_type, self.address)
        self._lock = await _checkout_lock(key)

        try:
            if self.timeout:
                await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
            else:
                await self._lock.acquire()
        except asyncio.TimeoutError:
            _checkin_lock(key)
            logger.warning(
                f"Lock timeout for {self.label} after {self.timeout}s: {self.operation}"
            )
            raise LockTimeoutError(
                f"Could not acquire signing lock for {self.label} within {self.timeout}s"
            )
        except asyncio.CancelledError:
            _checkin_lock(key)
            raise

        self._acquired = True
        logger.debug(f"Lock acquired for {self.label}: {self.operation}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Release the lock."""
        if self._acquired and self._lock:
            self._lock.release()
            self._acquired = False
            _checkin_lock(_account_key(self.chain_type, self.address))
            logger.debug(f"Lock released for {self.label}: {self.operation}")
        return False


@asynccontextmanager
async def account_signing_lock(
    chain_type: Union[str, ChainType],
    address: str,
    timeout: Optional[float] = 30.0,
    operation: str = "sign_and_send",
):
    """Functional form of AccountSigningLock.

    Example:
        async with account_signing_lock("tron", address, operation="trc20"):
            ...
    """
    async with AccountSigningLock(chain_type, address, timeout=timeout, operation=operation):
        yield


def clear_account_locks() -> None:
    """Clear all account locks (useful for testing)."""
    _account_locks.clear()
    _lock_users.clear()
