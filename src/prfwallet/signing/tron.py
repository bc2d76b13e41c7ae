"""TRON signer.

Transaction construction is delegated to the full node:
- ``/wallet/createtransaction`` for TRX transfers
- ``/wallet/triggersmartcontract`` for TRC20 ``transfer(address,uint256)``

The node returns a canonical ``txID``; the signer signs those 32 bytes,
appends ``r || s || (v + 27)`` to the envelope's ``signature`` list and
hands the envelope to ``/wallet/broadcasttransaction``.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Union

from prfwallet.addresses import tron as tron_address
from prfwallet.chains import ChainType, TronNetwork
from prfwallet.codec.binary import keccak256, sha256
from prfwallet.contracts.requests import TronTransferRequest
from prfwallet.contracts.results import (
    BroadcastResult,
    TransactionHistoryItem,
    TronSignedTransaction,
)
from prfwallet.errors import BroadcastRejected, RPCError, TransactionCreationFailed
from prfwallet.keys import KeyLike, sign_recoverable
from prfwallet.signing.base import LOOKUP_ERRORS, ChainSigner, recoverable_signature_hex

logger = logging.getLogger(__name__)

TRC20_TRANSFER = "transfer(address,uint256)"
TRC20_BALANCE_OF = "balanceOf(address)"
DEFAULT_FEE_LIMIT = 100_000_000  # 100 TRX


def encode_trc20_transfer_parameter(to_hex: str, amount: int) -> str:
    """ABI-encode (address, uint256); the address drops its 0x41 prefix."""
    return to_hex[2:].rjust(64, "0") + f"{amount:064x}"


def _decode_node_message(message: Any) -> str:
    """Node error messages are usually hex-encoded UTF-8."""
    if not isinstance(message, str):
        return str(message)
    try:
        return bytes.fromhex(message).decode("utf-8", errors="replace")
    except ValueError:
        return message


class TronSigner(ChainSigner):
    """Signer for TRX and TRC20 transfers."""

    chain_type = ChainType.TRON

    def _base_url(self, network: Any) -> str:
        return self._endpoint(self.config.tron_api_urls, network, TronNetwork.MAINNET.value)

    async def _post(self, network: Any, path: str, body: dict) -> dict:
        """POST to the full-node HTTP API.

        Raises:
            RPCError: On transport failure or an ``Error`` member
        """
        result = await self.transport.post(f"{self._base_url(network)}{path}", json=body)
        if not isinstance(result, dict):
            raise RPCError(f"{path}: unexpected response {result!r}")
        if result.get("Error"):
            raise RPCError(f"{path}: {result['Error']}")
        return result

    def get_address_from_private_key(self, private_key: KeyLike, network: Optional[str] = None) -> str:
        return tron_address.address_from_private_key(private_key)

    # ======================
    # Construction
    # ======================

    async def create_transaction(
        self,
        from_address: str,
        to_address: str,
        amount: int,
        network: Optional[str] = None,
    ) -> dict:
        """Ask the node to build an unsigned TRX transfer.

        Raises:
            TransactionCreationFailed: If the node returns no txID
        """
        body = {
            "owner_address": tron_address.address_to_hex(from_address),
            "to_address": tron_address.address_to_hex(to_address),
            "amount": amount,
            "visible": False,
        }
        try:
            transaction = await self._post(network, "/wallet/createtransaction", body)
        except RPCError as e:
            raise TransactionCreationFailed(f"Failed to create transaction: {e}") from e
        if not transaction.get("txID"):
            raise TransactionCreationFailed("Failed to create transaction")
        return transaction

    async def create_trc20_transfer(
        self,
        from_address: str,
        contract_address: str,
        to_address: str,
        amount: int,
        fee_limit: int = DEFAULT_FEE_LIMIT,
        network: Optional[str] = None,
    ) -> dict:
        """Ask the node to build an unsigned TRC20 transfer.

        Raises:
            TransactionCreationFailed: If the node returns no transaction
        """
        body = {
            "owner_address": tron_address.address_to_hex(from_address),
            "contract_address": tron_address.address_to_hex(contract_address),
            "function_selector": TRC20_TRANSFER,
            "parameter": encode_trc20_transfer_parameter(
                tron_address.address_to_hex(to_address), amount
            ),
            "fee_limit": fee_limit,
            "call_value": 0,
            "visible": False,
        }
        try:
            result = await self._post(network, "/wallet/triggersmartcontract", body)
        except RPCError as e:
            raise TransactionCreationFailed(f"Failed to create TRC20 transfer: {e}") from e

        transaction = result.get("transaction") or {}
        if not transaction.get("txID"):
            message = (result.get("result") or {}).get("message")
            raise TransactionCreationFailed(
                _decode_node_message(message) if message else "Failed to create TRC20 transfer"
            )
        return transaction

    # ======================
    # Signing
    # ======================

    def sign_node_transaction(self, transaction: dict, private_key: KeyLike) -> TronSignedTransaction:
        """Sign a node-built transaction over its txID.

        Raises:
            TransactionCreationFailed: If the txID is malformed or does not
                match the SHA-256 of ``raw_data_hex``
        """
        tx_id = transaction.get("txID", "")
        try:
            digest = bytes.fromhex(tx_id)
        except ValueError as e:
            raise TransactionCreationFailed(f"Malformed txID: {tx_id}") from e
        if len(digest) != 32:
            raise TransactionCreationFailed(f"Malformed txID: {tx_id}")

        raw_data_hex = transaction.get("raw_data_hex")
        if raw_data_hex:
            try:
                matches = sha256(bytes.fromhex(raw_data_hex)) == digest
            except ValueError:
                matches = False
            if not matches:
                raise TransactionCreationFailed("txID does not match raw_data_hex")

        r, s, rec_id = sign_recoverable(digest, private_key)
        signature = recoverable_signature_hex(r, s, rec_id + 27)
        signed = {**transaction, "signature": [signature]}
        return TronSignedTransaction(
            raw_transaction=json.dumps(signed, separators=(",", ":")),
            tx_id=tx_id,
            signature=signature,
            transaction=signed,
        )

    async def sign_transaction(
        self,
        request: TronTransferRequest,
        private_key: KeyLike,
    ) -> TronSignedTransaction:
        """Build (remotely) and sign a TRX or TRC20 transfer."""
        network = request.network.value
        from_address = self.get_address_from_private_key(private_key)

        if request.contract_address:
            transaction = await self.create_trc20_transfer(
                from_address,
                request.contract_address,
                request.to,
                request.amount,
                fee_limit=request.fee_limit,
                network=network,
            )
        else:
            transaction = await self.create_transaction(
                from_address, request.to, request.amount, network
            )

        signed = self.sign_node_transaction(transaction, private_key)
        kind = "TRC20" if request.contract_address else "TRX"
        logger.info(f"Signed TRON {kind} tx {signed.tx_id} from {from_address}")
        return signed

    async def broadcast(
        self,
        signed: TronSignedTransaction,
        network: Optional[Union[str, int]] = None,
    ) -> BroadcastResult:
        """Broadcast a signed envelope.

        Raises:
            BroadcastRejected: If the node does not answer ``result: true``
        """
        transaction = signed.transaction or json.loads(signed.raw_transaction)
        result = await self._post(network, "/wallet/broadcasttransaction", transaction)
        if result.get("result") is not True:
            code = result.get("code", "UNKNOWN")
            message = _decode_node_message(result.get("message", ""))
            raise BroadcastRejected(f"TRON broadcast rejected ({code}): {message}")

        logger.info(f"Broadcast TRON tx {signed.tx_id}")
        return BroadcastResult(
            chain_type=self.chain_type,
            tx_id=result.get("txid") or signed.tx_id,
            details=result,
        )

    def sign_message(self, message: Union[str, bytes], private_key: KeyLike) -> str:
        """TRON personal message: keccak256 with the TRON prefix, v = 27 + recId."""
        payload = message.encode("utf-8") if isinstance(message, str) else bytes(message)
        prefix = f"\x19TRON Signed Message:\n{len(payload)}".encode("utf-8")
        r, s, rec_id = sign_recoverable(keccak256(prefix + payload), private_key)
        return "0x" + recoverable_signature_hex(r, s, 27 + rec_id)

    # ======================
    # Queries
    # ======================

    async def get_account(self, address: str, network: Optional[str] = None) -> dict:
        return await self._post(
            network,
            "/wallet/getaccount",
            {"address": tron_address.address_to_hex(address), "visible": False},
        )

    async def get_balance(self, address: str, network: Optional[Union[str, int]] = None) -> int:
        """TRX balance in SUN (unactivated accounts report 0)."""
        try:
            account = await self.get_account(address, network)
            return int(account.get("balance", 0))
        except LOOKUP_ERRORS as e:
            self._degrade("balance", address, e)
            return 0

    async def get_token_balance(
        self,
        token_address: str,
        address: str,
        network: Optional[Union[str, int]] = None,
    ) -> int:
        """TRC20 ``balanceOf`` via a constant contract call."""
        try:
            wallet_hex = tron_address.address_to_hex(address)
            result = await self._post(
                network,
                "/wallet/triggersmartcontract",
                {
                    "owner_address": wallet_hex,
                    "contract_address": tron_address.address_to_hex(token_address),
                    "function_selector": TRC20_BALANCE_OF,
                    "parameter": wallet_hex[2:].rjust(64, "0"),
                    "visible": False,
                },
            )
            constant = result.get("constant_result") or []
            return int(constant[0], 16) if constant and constant[0] else 0
        except LOOKUP_ERRORS as e:
            self._degrade("token balance", address, e)
            return 0

    async def get_transaction_history(
        self,
        address: str,
        network: Optional[Union[str, int]] = None,
        limit: int = 20,
    ) -> list[TransactionHistoryItem]:
        """Native and TRC20 transfers from TronGrid, newest first."""
        try:
            base = self._endpoint(self.config.tron_history_urls, network, TronNetwork.MAINNET.value)
        except LOOKUP_ERRORS as e:
            self._degrade("history", address, e)
            return []

        params = {"limit": limit, "only_confirmed": "true"}

        async def fetch(path: str) -> list:
            try:
                data = await self.transport.get(f"{base}/v1/accounts/{address}{path}", params=params)
                return data.get("data") or []
            except LOOKUP_ERRORS as e:
                self._degrade(f"history{path or ''}", address, e)
                return []

        native, tokens = await asyncio.gather(fetch("/transactions"), fetch("/transactions/trc20"))

        items = [item for item in (self._parse_native(tx, address) for tx in native) if item]
        items += [item for item in (self._parse_trc20(tx, address) for tx in tokens) if item]
        items.sort(key=lambda item: item.timestamp or 0, reverse=True)
        return items[:limit]

    def _parse_native(self, tx: dict, wallet: str) -> Optional[TransactionHistoryItem]:
        try:
            contract = tx["raw_data"]["contract"][0]
            if contract.get("type") != "TransferContract":
                return None
            value = contract["parameter"]["value"]
            from_address = tron_address.hex_to_address(value["owner_address"])
            to_address = tron_address.hex_to_address(value["to_address"])
            ret = (tx.get("ret") or [{}])[0]
            timestamp = tx.get("block_timestamp")
            return TransactionHistoryItem(
                chain_type=self.chain_type,
                tx_id=tx["txID"],
                direction="send" if from_address == wallet else "receive",
                amount=int(value.get("amount", 0)),
                from_address=from_address,
                to_address=to_address,
                timestamp=timestamp // 1000 if timestamp else None,
                block_number=tx.get("blockNumber"),
                status="confirmed" if ret.get("contractRet") == "SUCCESS" else "failed",
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed TRON transaction: {e}")
            return None

    def _parse_trc20(self, tx: dict, wallet: str) -> Optional[TransactionHistoryItem]:
        try:
            timestamp = tx.get("block_timestamp")
            return TransactionHistoryItem(
                chain_type=self.chain_type,
                tx_id=tx["transaction_id"],
                direction="send" if tx.get("from") == wallet else "receive",
                amount=int(tx.get("value") or 0),
                from_address=tx.get("from", ""),
                to_address=tx.get("to", ""),
                timestamp=timestamp // 1000 if timestamp else None,
                token_address=(tx.get("token_info") or {}).get("address"),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed TRC20 transfer: {e}")
            return None
