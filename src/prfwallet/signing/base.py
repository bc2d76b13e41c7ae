"""Base interface for chain signers.

Signing flow:
1. Caller unlocks the private key into a PrivateKeyMaterial scope
2. Signer fetches just-in-time chain state (nonce, blockhash, UTXOs, seqno)
3. Signer builds and signs the chain's wire-format transaction
4. Caller leaves the scope and the key buffer is zeroed
5. The signed artifact is broadcast separately or via sign_and_send

Signers hold no key material and no mutable state: endpoints come from the
injected NetworkConfig and all I/O goes through the injected Transport.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Union

from prfwallet.chains import ChainType
from prfwallet.config import NetworkConfig
from prfwallet.contracts.results import BroadcastResult, TransactionHistoryItem
from prfwallet.errors import RPCError, UnsupportedChain, WalletError
from prfwallet.keys import KeyLike
from prfwallet.transport import Transport

logger = logging.getLogger(__name__)

# Failures a best-effort lookup degrades on: transport/node errors and
# malformed response payloads.
LOOKUP_ERRORS = (WalletError, ValueError, KeyError, TypeError, AttributeError)


def recoverable_signature_hex(r: int, s: int, v: int) -> str:
    """``r || s || v`` as 130 hex chars, no prefix."""
    return f"{r:064x}{s:064x}{v:02x}"


class ChainSigner(ABC):
    """Abstract base class for chain signers.

    Usage:
        signer = get_signer(ChainType.SVM, config, transport)
        with unlock_private_key(prf_output, record) as key:
            signed = await signer.sign_transaction(request, key)
        result = await signer.broadcast(signed)
    """

    chain_type: ChainType

    def __init__(self, config: NetworkConfig, transport: Transport):
        """Initialize signer.

        Args:
            config: Endpoint map for every network of this chain
            transport: Outbound RPC/REST transport
        """
        self.config = config
        self.transport = transport

    @abstractmethod
    def get_address_from_private_key(self, private_key: KeyLike, network: Optional[str] = None) -> str:
        """Derive the sender address for a key."""
        pass

    @abstractmethod
    async def sign_transaction(self, request: Any, private_key: KeyLike) -> Any:
        """Build and sign a transaction.

        Args:
            request: Chain-specific request model
            private_key: Key bytes, only borrowed for the duration of the call

        Returns:
            Chain-specific signed transaction
        """
        pass

    @abstractmethod
    async def broadcast(self, signed: Any, network: Optional[Union[str, int]] = None) -> BroadcastResult:
        """Submit a signed transaction.

        Raises:
            RPCError: On transport failure
            BroadcastRejected: When the node refuses the transaction
        """
        pass

    @abstractmethod
    def sign_message(self, message: Union[str, bytes], private_key: KeyLike) -> str:
        """Sign an arbitrary message with the chain's message convention."""
        pass

    @abstractmethod
    async def get_balance(self, address: str, network: Optional[Union[str, int]] = None) -> int:
        """Native balance in base units; 0 if the lookup fails."""
        pass

    async def sign_and_send_transaction(self, request: Any, private_key: KeyLike) -> BroadcastResult:
        """Sign a transaction and broadcast it on the request's network."""
        signed = await self.sign_transaction(request, private_key)
        return await self.broadcast(signed, self.request_network(request))

    async def get_token_balance(
        self,
        token_address: str,
        address: str,
        network: Optional[Union[str, int]] = None,
    ) -> int:
        """Token balance in base units; 0 if the lookup fails."""
        raise UnsupportedChain(f"{self.chain_type.value} has no token balances")

    async def get_transaction_history(
        self,
        address: str,
        network: Optional[Union[str, int]] = None,
        limit: int = 20,
    ) -> list[TransactionHistoryItem]:
        """Recent transfers touching an address; empty if the lookup fails."""
        return []

    @staticmethod
    def request_network(request: Any) -> Optional[Union[str, int]]:
        network = getattr(request, "network", None)
        if network is None:
            return getattr(request, "chain_id", None)
        return getattr(network, "value", network)

    def _endpoint(self, urls: Mapping[str, str], network: Any, default: str) -> str:
        """Resolve a network's base URL.

        Raises:
            UnsupportedChain: If no endpoint is configured for the network
        """
        key = getattr(network, "value", network) or default
        url = urls.get(key)
        if not url:
            raise UnsupportedChain(
                f"No {self.chain_type.value} endpoint configured for network '{key}'"
            )
        return url.rstrip("/")

    def _degrade(self, what: str, address: str, error: Exception) -> None:
        """Log a failed best-effort lookup."""
        level = logging.WARNING if isinstance(error, RPCError) else logging.ERROR
        logger.log(level, f"{self.chain_type.value} {what} lookup failed for {address}: {error}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(chain={self.chain_type.value})"
