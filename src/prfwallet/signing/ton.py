"""TON wallet transfer signer.

Message layout:
- internal message: int_msg_info with bounce=1, src=addr_none, destination,
  value, zero forwarding fees and lt/at, no state init, optional inline
  text comment (32-bit zero opcode followed by the UTF-8 bytes)
- signing payload: subwallet id 698983191, valid_until = now + 60,
  seqno, op 0, send mode 3, one reference to the internal message

BOC = signature[64] || signing payload, base64-encoded. The reference is
not serialised, so the payload is not a standard bag of cells; the
reported hash is SHA-256 of the BOC bytes.
"""

import base64
import logging
import time
from typing import Any, Optional, Union

from prfwallet.addresses import ton as ton_address
from prfwallet.chains import ChainType, TonNetwork
from prfwallet.codec.binary import sha256
from prfwallet.contracts.requests import TonTransferRequest
from prfwallet.contracts.results import (
    BroadcastResult,
    TonSignedTransaction,
    TransactionHistoryItem,
)
from prfwallet.errors import BroadcastRejected, RPCError
from prfwallet.keys import KeyLike, ed25519_sign, ed25519_split
from prfwallet.signing.base import LOOKUP_ERRORS, ChainSigner
from prfwallet.signing.ton_cell import CellBuilder

logger = logging.getLogger(__name__)

WALLET_SUBWALLET_ID = 698983191
VALIDITY_SECONDS = 60
SEND_MODE = 3
TEXT_COMMENT_OPCODE = 0
# TVM exit code of a get-method on an account with no deployed code.
UNINITIALIZED_EXIT_CODE = -13


def build_internal_message(to_address: str, amount: int, message: Optional[str] = None) -> bytes:
    builder = (
        CellBuilder()
        .write_bit(False)           # ihr_disabled
        .write_bit(True)            # bounce
        .write_bit(False)           # bounced
        .write_address(None)        # src
        .write_address(to_address)  # dest
        .write_coins(amount)
        .write_bit(False)           # ihr_fee
        .write_coins(0)             # fwd_fee
        .write_uint(0, 64)          # created_lt
        .write_uint(0, 32)          # created_at
        .write_bit(False)           # state_init
        .write_bit(bool(message))   # body
    )
    if message:
        builder.write_uint(TEXT_COMMENT_OPCODE, 32)
        builder.write_bytes(message.encode("utf-8"))
    return builder.build()


def build_signing_payload(internal_message: bytes, seqno: int, valid_until: int) -> bytes:
    return (
        CellBuilder()
        .write_uint(WALLET_SUBWALLET_ID, 32)
        .write_uint(valid_until, 32)
        .write_uint(seqno, 32)
        .write_uint(0, 8)           # op: simple send
        .write_uint(SEND_MODE, 8)
        .write_ref(internal_message)
        .build()
    )


class TonSigner(ChainSigner):
    """Signer for TON wallet transfers over the toncenter v2 HTTP API."""

    chain_type = ChainType.TON

    def _base_url(self, network: Any) -> str:
        return self._endpoint(self.config.ton_api_urls, network, TonNetwork.MAINNET.value)

    async def _api_get(self, network: Any, path: str, params: Optional[dict] = None) -> Any:
        """GET an ``{ok, result, error}`` endpoint and return ``result``.

        Raises:
            RPCError: On transport failure or ``ok: false``
        """
        data = await self.transport.get(f"{self._base_url(network)}{path}", params=params)
        if not isinstance(data, dict) or not data.get("ok"):
            error = data.get("error") if isinstance(data, dict) else data
            raise RPCError(f"{path}: {error or 'API call failed'}")
        return data.get("result")

    @staticmethod
    def _now() -> int:
        return int(time.time())

    def get_address_from_private_key(self, private_key: KeyLike, network: Optional[str] = None) -> str:
        return ton_address.address_from_private_key(private_key)

    async def get_seqno(self, address: str, network: Optional[str] = None) -> int:
        """Wallet seqno; 0 for an undeployed wallet with an empty stack.

        Raises:
            RPCError: If the get-method call fails or exits with an error
        """
        result = await self._api_get(
            network,
            "/runGetMethod",
            {"address": address, "method": "seqno", "stack": "[]"},
        )
        result = result or {}
        stack = result.get("stack") or []
        exit_code = int(result.get("exit_code") or 0)
        if exit_code == UNINITIALIZED_EXIT_CODE and not stack:
            return 0
        if exit_code != 0:
            raise RPCError(f"seqno get-method failed for {address}: exit code {exit_code}")
        if not stack:
            return 0
        try:
            return int(stack[0][1], 16)
        except (IndexError, TypeError, ValueError) as e:
            raise RPCError(f"Unexpected seqno stack: {stack!r}") from e

    async def sign_transaction(
        self,
        request: TonTransferRequest,
        private_key: KeyLike,
    ) -> TonSignedTransaction:
        """Sign a transfer for the current wallet seqno.

        Raises:
            InvalidPrivateKeyLength: If the key is neither 32 nor 64 bytes
            InvalidAddress: If the destination cannot be parsed
            RPCError: If the seqno cannot be fetched
        """
        _, public_key = ed25519_split(private_key)
        from_address = ton_address.address_from_public_key(public_key)
        internal = build_internal_message(request.to, request.amount, request.message)

        seqno = await self.get_seqno(from_address, request.network.value)
        payload = build_signing_payload(internal, seqno, self._now() + VALIDITY_SECONDS)
        signature = ed25519_sign(sha256(payload), private_key)

        boc_bytes = signature + payload
        signed = TonSignedTransaction(
            boc=base64.b64encode(boc_bytes).decode("ascii"),
            hash=sha256(boc_bytes).hex(),
            seqno=seqno,
        )
        logger.info(f"Signed TON transfer {signed.hash} seqno={seqno} amount={request.amount}")
        return signed

    async def send_boc(self, boc: str, network: Optional[str] = None) -> dict:
        """Submit a base64 BOC.

        Raises:
            BroadcastRejected: If the API answers ``ok: false``
        """
        result = await self.transport.post(f"{self._base_url(network)}/sendBoc", json={"boc": boc})
        if not isinstance(result, dict) or not result.get("ok"):
            error = result.get("error") if isinstance(result, dict) else result
            raise BroadcastRejected(f"TON broadcast rejected: {error}")
        return result

    async def broadcast(
        self,
        signed: TonSignedTransaction,
        network: Optional[Union[str, int]] = None,
    ) -> BroadcastResult:
        result = await self.send_boc(signed.boc, network)
        logger.info(f"Broadcast TON tx {signed.hash}")
        return BroadcastResult(chain_type=self.chain_type, tx_id=signed.hash, details=result)

    def sign_message(self, message: Union[str, bytes], private_key: KeyLike) -> str:
        """ed25519 over the raw message bytes, hex-encoded."""
        payload = message.encode("utf-8") if isinstance(message, str) else bytes(message)
        return ed25519_sign(payload, private_key).hex()

    async def get_balance(self, address: str, network: Optional[Union[str, int]] = None) -> int:
        """Balance in nanotons."""
        try:
            info = await self._api_get(network, "/getAddressInformation", {"address": address})
            return int((info or {}).get("balance") or 0)
        except LOOKUP_ERRORS as e:
            self._degrade("balance", address, e)
            return 0

    async def get_transaction_history(
        self,
        address: str,
        network: Optional[Union[str, int]] = None,
        limit: int = 20,
    ) -> list[TransactionHistoryItem]:
        try:
            transactions = await self._api_get(
                network, "/getTransactions", {"address": address, "limit": limit}
            )
        except LOOKUP_ERRORS as e:
            self._degrade("history", address, e)
            return []
        parsed = (self._parse_transaction(tx, address) for tx in transactions or [])
        return [item for item in parsed if item is not None]

    def _parse_transaction(self, tx: dict, wallet: str) -> Optional[TransactionHistoryItem]:
        def account(value: Any) -> str:
            if isinstance(value, dict):
                return value.get("account_address") or "unknown"
            return value or "unknown"

        try:
            in_msg = tx.get("in_msg") or {}
            out_msgs = tx.get("out_msgs") or []
            if out_msgs:
                msg = out_msgs[0]
                direction, from_address, to_address = "send", wallet, account(msg.get("destination"))
            elif in_msg.get("source"):
                msg = in_msg
                direction, from_address, to_address = "receive", account(msg.get("source")), wallet
            else:
                return None

            tx_ref = tx.get("transaction_id") or {}
            return TransactionHistoryItem(
                chain_type=self.chain_type,
                tx_id=tx_ref.get("hash") or tx.get("hash", ""),
                direction=direction,
                amount=int(msg.get("value") or 0),
                from_address=from_address,
                to_address=to_address,
                timestamp=tx.get("utime") or None,
                memo=msg.get("message") or None,
                fee=int(tx.get("fee") or 0),
            )
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed TON transaction: {e}")
            return None
