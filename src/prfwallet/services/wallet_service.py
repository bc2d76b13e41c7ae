"""Wallet service: the single entry point callers use for wallet operations.

Keys only leave their encrypted form inside unlock_private_key scopes, so
every signing call here wipes the plaintext key before it returns. Chain
state and broadcasting go through the signers created by the factory.
"""

import asyncio
import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from prfwallet import crypto
from prfwallet.addresses.base import WalletAddress
from prfwallet.chains import ChainType, parse_chain_type
from prfwallet.config import NetworkConfig, Settings, get_settings
from prfwallet.contracts.requests import TransactionRequest, parse_transaction_request
from prfwallet.contracts.results import BroadcastResult, TransactionHistoryItem
from prfwallet.crypto import WalletData, unlock_private_key
from prfwallet.errors import UnsupportedChain
from prfwallet.keys import PrivateKeyMaterial
from prfwallet.signing.base import LOOKUP_ERRORS, ChainSigner
from prfwallet.signing.factory import get_signer
from prfwallet.transport import HttpxTransport, Transport
from prfwallet.utils.locks import AccountSigningLock

logger = logging.getLogger(__name__)

Secret = Union[bytes, bytearray]
Network = Optional[Union[str, int]]


class WalletService:
    """Facade over key vault, address derivation and chain signers.

    Usage:
        async with WalletService() as service:
            wallets = service.generate_wallets_for_chains(prf_output, ["evm", "svm"])
            result = await service.sign_and_send_transaction(
                prf_output, wallets[0].encrypted_private_key, request
            )
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[Transport] = None,
        config: Optional[NetworkConfig] = None,
    ):
        self.settings = settings or get_settings()
        self.config = config or self.settings.to_network_config()
        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport(timeout=self.settings.rpc_timeout)
        self._signers: dict[ChainType, ChainSigner] = {}

    async def __aenter__(self) -> "WalletService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        if self._owns_transport:
            await self.transport.aclose()

    def signer(self, chain_type: Union[str, ChainType]) -> ChainSigner:
        """Get the (cached) signer for a chain family."""
        chain = parse_chain_type(chain_type)
        if chain not in self._signers:
            self._signers[chain] = get_signer(chain, self.config, self.transport)
        return self._signers[chain]

    # ======================
    # Key vault
    # ======================

    def generate_wallets_for_chains(
        self,
        secret: Secret,
        chain_types: Iterable[Union[str, ChainType]],
    ) -> list[WalletData]:
        """Generate and encrypt one fresh key per chain family.

        Raises:
            DerivationFailure: If the device secret is empty
            UnsupportedChain: If a chain type is unknown
        """
        return crypto.generate_wallets_for_chains(secret, chain_types)

    def decrypt_private_key(self, secret: Secret, encrypted_hex: str) -> str:
        return crypto.decrypt_private_key(secret, encrypted_hex)

    def get_address_from_private_key(
        self,
        chain_type: Union[str, ChainType],
        private_key_hex: str,
        network: Network = None,
    ) -> str:
        """Derive the address a hex private key controls on a chain.

        Raises:
            InvalidPrivateKey: If the key is not valid hex or out of range
            UnsupportedChain: If the chain type is unknown
        """
        signer = self.signer(chain_type)
        with PrivateKeyMaterial.from_hex(private_key_hex) as key:
            return signer.get_address_from_private_key(key, network)

    # ======================
    # Signing
    # ======================

    @staticmethod
    def _coerce_request(request: Union[TransactionRequest, Mapping[str, Any]]) -> TransactionRequest:
        if isinstance(request, Mapping):
            return parse_transaction_request(dict(request))
        return request

    async def sign_transaction(
        self,
        secret: Secret,
        encrypted_hex: str,
        request: Union[TransactionRequest, Mapping[str, Any]],
    ) -> Any:
        """Decrypt the key, sign the request and wipe the key.

        Args:
            secret: Device secret (PRF output)
            encrypted_hex: Encrypted key record
            request: Typed request or a plain dict with a ``chain_type`` tag

        Returns:
            Chain-specific signed transaction

        Raises:
            AuthenticationFailure: If the secret does not open the record
            WalletError: Any chain-specific signing failure
        """
        request = self._coerce_request(request)
        signer = self.signer(request.chain_type)
        with unlock_private_key(secret, encrypted_hex) as key:
            return await signer.sign_transaction(request, key)

    async def sign_and_send_transaction(
        self,
        secret: Secret,
        encrypted_hex: str,
        request: Union[TransactionRequest, Mapping[str, Any]],
    ) -> BroadcastResult:
        """Sign then broadcast, serialized per account when enabled.

        Raises:
            LockTimeoutError: If the account lock is not acquired in time
            BroadcastRejected: If the network refuses the transaction
        """
        request = self._coerce_request(request)
        signer = self.signer(request.chain_type)
        network = signer.request_network(request)

        if not self.settings.serialize_account_signing:
            signed = await self.sign_transaction(secret, encrypted_hex, request)
            return await signer.broadcast(signed, network)

        with unlock_private_key(secret, encrypted_hex) as key:
            address = signer.get_address_from_private_key(key, getattr(request, "network", None))

        async with AccountSigningLock(
            signer.chain_type,
            address,
            timeout=self.settings.signing_lock_timeout,
            operation="sign_and_send",
        ):
            signed = await self.sign_transaction(secret, encrypted_hex, request)
            return await signer.broadcast(signed, network)

    def sign_message(
        self,
        chain_type: Union[str, ChainType],
        secret: Secret,
        encrypted_hex: str,
        message: Union[str, bytes],
    ) -> str:
        signer = self.signer(chain_type)
        with unlock_private_key(secret, encrypted_hex) as key:
            return signer.sign_message(message, key)

    def sign_typed_data(self, secret: Secret, encrypted_hex: str, typed_data: dict) -> str:
        """Sign EIP-712 style typed data with an EVM key."""
        signer = self.signer(ChainType.EVM)
        with unlock_private_key(secret, encrypted_hex) as key:
            return signer.sign_typed_data(typed_data, key)

    # ======================
    # Balances and history
    # ======================

    async def get_balance(
        self,
        chain_type: Union[str, ChainType],
        address: str,
        network: Network = None,
    ) -> int:
        """Native balance in the chain's smallest unit (0 when unavailable)."""
        return await self.signer(chain_type).get_balance(address, network)

    async def get_token_balance(
        self,
        chain_type: Union[str, ChainType],
        token_address: str,
        address: str,
        network: Network = None,
    ) -> int:
        """Token balance for chains with token standards.

        Raises:
            UnsupportedChain: If the chain has no token balance lookup
        """
        return await self.signer(chain_type).get_token_balance(token_address, address, network)

    async def get_balances(
        self,
        wallets: Sequence[WalletAddress],
        networks: Optional[Mapping[ChainType, Union[str, int]]] = None,
    ) -> list[tuple[WalletAddress, int]]:
        """Fetch native balances for several wallets concurrently.

        A wallet whose lookup fails reports 0; the others are unaffected.
        """
        networks = networks or {}

        async def fetch(wallet: WalletAddress) -> int:
            try:
                return await self.get_balance(
                    wallet.chain_type, wallet.address, networks.get(wallet.chain_type)
                )
            except (UnsupportedChain, *LOOKUP_ERRORS) as e:
                logger.warning(f"Balance lookup failed for {wallet}: {e}")
                return 0

        balances = await asyncio.gather(*(fetch(wallet) for wallet in wallets))
        return list(zip(wallets, balances))

    async def get_transaction_history(
        self,
        chain_type: Union[str, ChainType],
        address: str,
        network: Network = None,
        limit: int = 20,
    ) -> list[TransactionHistoryItem]:
        return await self.signer(chain_type).get_transaction_history(address, network, limit)
