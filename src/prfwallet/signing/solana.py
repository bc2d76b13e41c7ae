"""Solana native transfer signer.

Legacy (non-versioned) message layout:
    header[3] = (1 signer, 0 readonly signed, 1 readonly unsigned)
    compact_u16(3) || sender || recipient || system program (32 zero bytes)
    recent blockhash[32]
    compact_u16(1) || instruction

Transfer instruction:
    program_id_index=2, accounts=[0, 1], data = u32le(2) || u64le(lamports)

Wire transaction = compact_u16(1) || signature[64] || message, base64-encoded.
"""

import base64
import logging
from typing import Any, Optional, Union

from prfwallet.addresses import solana as sol_address
from prfwallet.chains import ChainType, SolanaNetwork
from prfwallet.codec.base58 import b58decode, b58encode
from prfwallet.codec.binary import compact_u16, uint32_le, uint64_le
from prfwallet.contracts.requests import SolanaTransferRequest
from prfwallet.contracts.results import BroadcastResult, SolanaSignedTransaction
from prfwallet.errors import RPCError
from prfwallet.keys import KeyLike, ed25519_sign, ed25519_split
from prfwallet.signing.base import LOOKUP_ERRORS, ChainSigner

logger = logging.getLogger(__name__)

SYSTEM_PROGRAM_ID = bytes(32)
SYSTEM_TRANSFER = 2
MESSAGE_HEADER = bytes([1, 0, 1])


def transfer_instruction_data(lamports: int) -> bytes:
    """12-byte System Program transfer payload."""
    return uint32_le(SYSTEM_TRANSFER) + uint64_le(lamports)


def compile_transfer_message(
    from_pubkey: bytes,
    to_pubkey: bytes,
    blockhash: bytes,
    lamports: int,
) -> bytes:
    """Serialize a single-transfer legacy message."""
    if len(blockhash) != 32:
        raise ValueError(f"Blockhash must be 32 bytes, got {len(blockhash)}")

    data = transfer_instruction_data(lamports)
    accounts = bytes([0, 1])
    instruction = (
        bytes([2])
        + compact_u16(len(accounts)) + accounts
        + compact_u16(len(data)) + data
    )
    return (
        MESSAGE_HEADER
        + compact_u16(3) + from_pubkey + to_pubkey + SYSTEM_PROGRAM_ID
        + blockhash
        + compact_u16(1) + instruction
    )


class SolanaSigner(ChainSigner):
    """Signer for native SOL transfers."""

    chain_type = ChainType.SVM

    def _rpc_url(self, network: Any) -> str:
        return self._endpoint(self.config.sol_rpc_urls, network, SolanaNetwork.MAINNET.value)

    async def _rpc(self, network: Any, method: str, params: list) -> Any:
        return await self.transport.call(self._rpc_url(network), method, params)

    def get_address_from_private_key(self, private_key: KeyLike, network: Optional[str] = None) -> str:
        return sol_address.address_from_private_key(private_key)

    async def get_recent_blockhash(self, network: Optional[str] = None) -> str:
        """Latest finalized blockhash (base58).

        Raises:
            RPCError: If the node does not return a blockhash
        """
        result = await self._rpc(network, "getLatestBlockhash", [{"commitment": "finalized"}])
        try:
            return result["value"]["blockhash"]
        except (KeyError, TypeError) as e:
            raise RPCError("getLatestBlockhash returned no blockhash") from e

    async def get_minimum_balance_for_rent_exemption(
        self,
        data_length: int,
        network: Optional[str] = None,
    ) -> int:
        return int(await self._rpc(network, "getMinimumBalanceForRentExemption", [data_length]))

    async def sign_transaction(
        self,
        request: SolanaTransferRequest,
        private_key: KeyLike,
    ) -> SolanaSignedTransaction:
        """Sign a SOL transfer against the latest finalized blockhash.

        Raises:
            InvalidPrivateKeyLength: If the key is neither 32 nor 64 bytes
            InvalidAddress: If the recipient is not a 32-byte public key
            RPCError: If the blockhash cannot be fetched
        """
        _, from_pubkey = ed25519_split(private_key)
        to_pubkey = sol_address.decode_address(request.to)

        blockhash = b58decode(await self.get_recent_blockhash(request.network.value))
        message = compile_transfer_message(from_pubkey, to_pubkey, blockhash, request.amount)
        signature = ed25519_sign(message, private_key)

        transaction = compact_u16(1) + signature + message
        signed = SolanaSignedTransaction(
            raw_transaction=base64.b64encode(transaction).decode("ascii"),
            signature=b58encode(signature),
        )
        logger.info(f"Signed SOL transfer {signed.signature} amount={request.amount}")
        return signed

    async def send_transaction(self, raw_transaction: str, network: Optional[str] = None) -> str:
        """Submit a base64 transaction and return its signature."""
        return await self._rpc(network, "sendTransaction", [raw_transaction, {"encoding": "base64"}])

    async def broadcast(
        self,
        signed: SolanaSignedTransaction,
        network: Optional[Union[str, int]] = None,
    ) -> BroadcastResult:
        signature = await self.send_transaction(signed.raw_transaction, network)
        logger.info(f"Broadcast SOL tx {signature}")
        return BroadcastResult(chain_type=self.chain_type, tx_id=signature or signed.signature)

    def sign_message(self, message: Union[str, bytes], private_key: KeyLike) -> str:
        """ed25519 over the raw message bytes, base58-encoded."""
        payload = message.encode("utf-8") if isinstance(message, str) else bytes(message)
        return b58encode(ed25519_sign(payload, private_key))

    async def get_balance(self, address: str, network: Optional[Union[str, int]] = None) -> int:
        try:
            result = await self._rpc(network, "getBalance", [address])
            return int(result["value"])
        except LOOKUP_ERRORS as e:
            self._degrade("balance", address, e)
            return 0

    async def get_token_balance(
        self,
        token_address: str,
        address: str,
        network: Optional[Union[str, int]] = None,
    ) -> int:
        """Sum of SPL token accounts for a mint owned by ``address``."""
        try:
            result = await self._rpc(
                network,
                "getTokenAccountsByOwner",
                [address, {"mint": token_address}, {"encoding": "jsonParsed"}],
            )
            total = 0
            for account in (result or {}).get("value") or []:
                token_amount = (
                    account.get("account", {})
                    .get("data", {})
                    .get("parsed", {})
                    .get("info", {})
                    .get("tokenAmount", {})
                )
                if token_amount.get("amount"):
                    total += int(token_amount["amount"])
            return total
        except LOOKUP_ERRORS as e:
            self._degrade("token balance", address, e)
            return 0
