"""Bitcoin P2PKH transaction signer.

One signer, parameterised by an ordered chain of backends. Each backend can
list UTXOs and broadcast; the first that answers wins:
- NodeRpcBackend: Bitcoin Core JSON-RPC (``scantxoutset``, ``sendrawtransaction``)
- EsploraBackend: Esplora REST (``/address/{a}/utxo``, ``POST /tx``)

Transaction format (non-segwit):
    version[4] || varint(n_in) || inputs || varint(n_out) || outputs || locktime[4]
Every input spends all known UTXOs of the sender; change below the dust
threshold is left to the miner.
"""

import base64
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Mapping, Optional, Sequence, Union

from prfwallet.addresses import btc as btc_address
from prfwallet.chains import BTCNetwork, ChainType
from prfwallet.codec.binary import double_sha256, uint32_le, uint64_le, varint
from prfwallet.contracts.requests import BtcTransactionRequest
from prfwallet.contracts.results import BroadcastResult, BtcSignedTransaction, Utxo
from prfwallet.errors import (
    InsufficientFunds,
    NoUTXOsAvailable,
    RPCError,
)
from prfwallet.keys import KeyLike, secp256k1_public_key, sign_recoverable
from prfwallet.signing.base import LOOKUP_ERRORS, ChainSigner
from prfwallet.transport import Transport

logger = logging.getLogger(__name__)

DUST_THRESHOLD = 546
TX_VERSION = 1
LOCKTIME = 0
SEQUENCE = b"\xff\xff\xff\xff"
SIGHASH_ALL = 1
SATOSHIS_PER_BTC = Decimal(100_000_000)


# ============================================================================
# Script and signature encoding
# ============================================================================

def encode_der_signature(r: int, s: int) -> bytes:
    """DER ``SEQUENCE { INTEGER r, INTEGER s }`` with minimal positive integers."""
    def encode_int(n: int) -> bytes:
        b = n.to_bytes((n.bit_length() + 7) // 8 or 1, "big")
        if b[0] & 0x80:
            b = b"\x00" + b
        return bytes([0x02, len(b)]) + b

    payload = encode_int(r) + encode_int(s)
    return bytes([0x30, len(payload)]) + payload


def push_data(data: bytes) -> bytes:
    """Direct push opcode (data shorter than 76 bytes)."""
    if len(data) >= 0x4C:
        raise ValueError("push_data only supports direct pushes")
    return bytes([len(data)]) + data


def p2pkh_script_sig(signature: bytes, public_key: bytes) -> bytes:
    """``push(sig || sighash_type) push(pubkey)``."""
    return push_data(signature) + push_data(public_key)


def _outpoint(utxo: Utxo) -> bytes:
    return bytes.fromhex(utxo.txid)[::-1] + uint32_le(utxo.vout)


def _serialize_input(utxo: Utxo, script: bytes) -> bytes:
    return _outpoint(utxo) + varint(len(script)) + script + SEQUENCE


def _serialize_output(value: int, script: bytes) -> bytes:
    return uint64_le(value) + varint(len(script)) + script


def serialize_transaction(
    utxos: Sequence[Utxo],
    scripts: Sequence[bytes],
    outputs: Sequence[bytes],
) -> bytes:
    """Serialize with one script per input (signature or sighash preimage)."""
    parts = [uint32_le(TX_VERSION), varint(len(utxos))]
    parts.extend(_serialize_input(utxo, script) for utxo, script in zip(utxos, scripts))
    parts.append(varint(len(outputs)))
    parts.extend(outputs)
    parts.append(uint32_le(LOCKTIME))
    return b"".join(parts)


def legacy_sighash(
    utxos: Sequence[Utxo],
    outputs: Sequence[bytes],
    index: int,
    script_code: bytes,
) -> bytes:
    """SIGHASH_ALL digest for input ``index``.

    The signed input carries the spent scriptPubKey, all others an empty
    script, and the 4-byte sighash type is appended before double-SHA256.
    """
    scripts = [script_code if i == index else b"" for i in range(len(utxos))]
    preimage = serialize_transaction(utxos, scripts, outputs) + uint32_le(SIGHASH_ALL)
    return double_sha256(preimage)


# ============================================================================
# Backends
# ============================================================================

class UtxoBackend(ABC):
    """Source of UTXOs and broadcast sink for one family of endpoints."""

    name: str = "backend"

    def __init__(self, transport: Transport, urls: Mapping[str, str]):
        self.transport = transport
        self.urls = urls

    def url(self, network: str) -> Optional[str]:
        url = self.urls.get(network)
        return url.rstrip("/") if url else None

    @abstractmethod
    async def fetch_utxos(self, address: str, network: str) -> list[Utxo]:
        pass

    @abstractmethod
    async def broadcast(self, raw_transaction: str, network: str) -> str:
        pass

    async def get_balance(self, address: str, network: str) -> Optional[int]:
        """Confirmed + mempool balance, or None if this backend cannot tell."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"


class NodeRpcBackend(UtxoBackend):
    """Bitcoin Core JSON-RPC (protocol version 1.0)."""

    name = "node-rpc"

    async def _call(self, network: str, method: str, params: list):
        url = self.url(network)
        if not url:
            raise RPCError(f"No Bitcoin node RPC configured for {network}")
        return await self.transport.call(url, method, params, jsonrpc="1.0")

    async def fetch_utxos(self, address: str, network: str) -> list[Utxo]:
        result = await self._call(network, "scantxoutset", ["start", [f"addr({address})"]])
        if not result or "unspents" not in result:
            raise RPCError("scantxoutset returned no unspents")
        return [
            Utxo(
                txid=u["txid"],
                vout=int(u["vout"]),
                value=int((Decimal(str(u["amount"])) * SATOSHIS_PER_BTC).to_integral_value()),
                script_pub_key=u.get("scriptPubKey"),
            )
            for u in result["unspents"]
        ]

    async def broadcast(self, raw_transaction: str, network: str) -> str:
        return await self._call(network, "sendrawtransaction", [raw_transaction])


class EsploraBackend(UtxoBackend):
    """Esplora REST API (blockstream.info compatible)."""

    name = "esplora"

    def _base(self, network: str) -> str:
        url = self.url(network)
        if not url:
            raise RPCError(f"No Esplora endpoint configured for {network}")
        return url

    async def fetch_utxos(self, address: str, network: str) -> list[Utxo]:
        data = await self.transport.get(f"{self._base(network)}/address/{address}/utxo")
        if not isinstance(data, list):
            raise RPCError("Esplora returned a malformed UTXO list")
        return [
            Utxo(txid=u["txid"], vout=int(u["vout"]), value=int(u["value"]))
            for u in data
        ]

    async def broadcast(self, raw_transaction: str, network: str) -> str:
        txid = await self.transport.post(f"{self._base(network)}/tx", content=raw_transaction)
        if not isinstance(txid, str) or len(txid) != 64:
            raise RPCError(f"Esplora rejected transaction: {txid}")
        return txid

    async def get_balance(self, address: str, network: str) -> Optional[int]:
        data = await self.transport.get(f"{self._base(network)}/address/{address}")
        chain, mempool = data["chain_stats"], data["mempool_stats"]
        confirmed = chain["funded_txo_sum"] - chain["spent_txo_sum"]
        pending = mempool["funded_txo_sum"] - mempool["spent_txo_sum"]
        return confirmed + pending


# ============================================================================
# Signer
# ============================================================================

class BTCSigner(ChainSigner):
    """P2PKH signer with a primary/fallback backend chain.

    When no backends are passed, a node RPC backend (if any URLs are
    configured) is tried before the Esplora REST backend.
    """

    chain_type = ChainType.BTC

    def __init__(
        self,
        config,
        transport: Transport,
        backends: Optional[Sequence[UtxoBackend]] = None,
    ):
        super().__init__(config, transport)
        if backends is None:
            backends = []
            if config.btc_rpc_urls:
                backends.append(NodeRpcBackend(transport, config.btc_rpc_urls))
            backends.append(EsploraBackend(transport, config.btc_rest_urls))
        self.backends: list[UtxoBackend] = list(backends)

    @staticmethod
    def _network(network: Optional[Union[str, BTCNetwork]]) -> str:
        return BTCNetwork(getattr(network, "value", network) or BTCNetwork.MAINNET).value

    def get_address_from_private_key(self, private_key: KeyLike, network: Optional[str] = None) -> str:
        return btc_address.address_from_private_key(private_key, self._network(network))

    async def get_utxos(self, address: str, network: Optional[str] = None) -> list[Utxo]:
        """UTXOs from the first backend that answers.

        Raises:
            RPCError: If every backend fails
        """
        network = self._network(network)
        last_error: Optional[Exception] = None
        for backend in self.backends:
            try:
                utxos = await backend.fetch_utxos(address, network)
            except (RPCError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"UTXO lookup via {backend.name} failed for {address}: {e}")
                last_error = e
                continue
            logger.debug(f"{len(utxos)} UTXOs for {address} via {backend.name}")
            return utxos
        raise RPCError(f"All UTXO sources failed for {address}: {last_error}")

    def build_signed_transaction(
        self,
        utxos: Sequence[Utxo],
        to_address: str,
        amount: int,
        private_key: KeyLike,
        fee: int,
        change_address: Optional[str] = None,
        network: Optional[str] = None,
    ) -> BtcSignedTransaction:
        """Build and sign a transaction from an explicit UTXO set.

        Raises:
            NoUTXOsAvailable: If the UTXO set is empty
            InsufficientFunds: If inputs do not cover amount + fee
            InvalidAddressChecksum: If a destination address is corrupt
        """
        if not utxos:
            raise NoUTXOsAvailable("No UTXOs available to spend")

        network = self._network(network)
        public_key = secp256k1_public_key(private_key, compressed=True)
        sender = btc_address.address_from_public_key(public_key, network)

        total_input = sum(u.value for u in utxos)
        change = total_input - amount - fee
        if change < 0:
            raise InsufficientFunds(available=total_input, required=amount + fee)

        to_script = btc_address.script_for_address(to_address)
        change_script = btc_address.script_for_address(change_address or sender)
        sender_script = btc_address.script_for_address(sender)

        outputs = [_serialize_output(amount, to_script)]
        if change > DUST_THRESHOLD:
            outputs.append(_serialize_output(change, change_script))
        else:
            change = 0

        script_sigs = []
        for index in range(len(utxos)):
            digest = legacy_sighash(utxos, outputs, index, sender_script)
            r, s, _ = sign_recoverable(digest, private_key)
            signature = encode_der_signature(r, s) + bytes([SIGHASH_ALL])
            script_sigs.append(p2pkh_script_sig(signature, public_key))

        raw = serialize_transaction(utxos, script_sigs, outputs)
        txid = double_sha256(raw)[::-1].hex()
        logger.info(
            f"Signed BTC tx {txid} inputs={len(utxos)} amount={amount} fee={fee} change={change}"
        )
        return BtcSignedTransaction(raw_transaction=raw.hex(), txid=txid, fee=fee, change=change)

    async def sign_transaction(
        self,
        request: BtcTransactionRequest,
        private_key: KeyLike,
    ) -> BtcSignedTransaction:
        network = self._network(request.network)
        utxos = request.utxos
        if utxos is None:
            sender = self.get_address_from_private_key(private_key, network)
            utxos = await self.get_utxos(sender, network)

        fee = request.fee if request.fee is not None else self.config.btc_default_fee
        return self.build_signed_transaction(
            utxos,
            request.to,
            request.amount,
            private_key,
            fee=fee,
            change_address=request.change_address,
            network=network,
        )

    async def send_raw_transaction(self, raw_transaction: str, network: Optional[str] = None) -> str:
        """Broadcast via the first backend that accepts the transaction."""
        network = self._network(network)
        last_error: Optional[Exception] = None
        for backend in self.backends:
            try:
                txid = await backend.broadcast(raw_transaction, network)
            except RPCError as e:
                logger.warning(f"Broadcast via {backend.name} failed: {e}")
                last_error = e
                continue
            logger.info(f"Broadcast BTC tx {txid} via {backend.name}")
            return txid
        raise RPCError(f"All broadcast endpoints failed: {last_error}")

    async def broadcast(
        self,
        signed: BtcSignedTransaction,
        network: Optional[Union[str, int]] = None,
    ) -> BroadcastResult:
        txid = await self.send_raw_transaction(signed.raw_transaction, network)
        return BroadcastResult(chain_type=self.chain_type, tx_id=txid or signed.txid)

    def sign_message(self, message: Union[str, bytes], private_key: KeyLike) -> str:
        """Bitcoin signed message: base64(header || r || s), compressed key."""
        payload = message.encode("utf-8") if isinstance(message, str) else bytes(message)
        digest = double_sha256(b"\x18Bitcoin Signed Message:\n" + varint(len(payload)) + payload)
        r, s, rec_id = sign_recoverable(digest, private_key)
        header = 27 + rec_id + 4
        signature = bytes([header]) + r.to_bytes(32, "big") + s.to_bytes(32, "big")
        return base64.b64encode(signature).decode("ascii")

    async def get_balance(self, address: str, network: Optional[Union[str, int]] = None) -> int:
        """Balance from the first backend that reports one, else the UTXO sum."""
        try:
            network = self._network(network)
            for backend in self.backends:
                try:
                    balance = await backend.get_balance(address, network)
                except LOOKUP_ERRORS as e:
                    logger.warning(f"Balance via {backend.name} failed for {address}: {e}")
                    continue
                if balance is not None:
                    return balance
            return sum(u.value for u in await self.get_utxos(address, network))
        except LOOKUP_ERRORS as e:
            self._degrade("balance", address, e)
            return 0
