"""EVM transaction signer.

Supports legacy (EIP-155) and type-2 (EIP-1559) transactions, personal
message signing, and ERC20 balance/transfer helpers over plain JSON-RPC.

Signing pipeline:
    resolve nonce, fees and gas limit concurrently
    -> RLP-encode the unsigned payload -> keccak256 -> recoverable ECDSA
    -> RLP-encode the signed payload (0x02-prefixed for EIP-1559)
    -> transaction hash = keccak256(raw bytes)
"""

import asyncio
import json
import logging
import math
from typing import Any, Optional, Union

from prfwallet.addresses import evm as evm_address
from prfwallet.chains import LEGACY_ONLY_CHAIN_IDS, ChainType
from prfwallet.codec import rlp
from prfwallet.codec.binary import hex_to_bytes, keccak256
from prfwallet.contracts.requests import EvmTransactionRequest
from prfwallet.contracts.results import (
    BroadcastResult,
    EvmSignedTransaction,
    TransactionHistoryItem,
)
from prfwallet.errors import RPCError, UnsupportedChainId
from prfwallet.keys import KeyLike, sign_recoverable
from prfwallet.signing.base import LOOKUP_ERRORS, ChainSigner, recoverable_signature_hex

logger = logging.getLogger(__name__)

DEFAULT_CHAIN_ID = 1
DEFAULT_GAS_LIMIT = 21000
GAS_LIMIT_BUFFER = 1.2
ONE_GWEI = 1_000_000_000

# Function selectors
ERC20_BALANCE_OF = "70a08231"   # balanceOf(address)
ERC20_TRANSFER = "a9059cbb"     # transfer(address,uint256)

# keccak256("Transfer(address,address,uint256)")
TRANSFER_EVENT_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def _quantity(value: Any) -> int:
    """Parse a JSON-RPC hex quantity."""
    if value is None:
        raise ValueError("Missing quantity in RPC response")
    if isinstance(value, int):
        return value
    return int(value, 16)


def _to_hex(value: int) -> str:
    return hex(value)


def encode_erc20_transfer(to: str, amount: int) -> str:
    """Calldata for ``transfer(address,uint256)``."""
    recipient = evm_address.address_to_bytes(to)
    return "0x" + ERC20_TRANSFER + recipient.hex().rjust(64, "0") + f"{amount:064x}"


class EVMSigner(ChainSigner):
    """Signer for EVM chains keyed by chain id.

    Endpoints come from ``NetworkConfig.evm_rpc_urls``; a chain id with no
    endpoint raises UnsupportedChainId before any network call.
    """

    chain_type = ChainType.EVM

    def _rpc_url(self, chain_id: Union[int, str, None]) -> str:
        chain_id = int(chain_id) if chain_id is not None else DEFAULT_CHAIN_ID
        url = self.config.evm_rpc_urls.get(chain_id)
        if not url:
            raise UnsupportedChainId(chain_id, self.config.evm_chain_ids())
        return url

    async def _rpc(self, chain_id: Union[int, str, None], method: str, params: list) -> Any:
        return await self.transport.call(self._rpc_url(chain_id), method, params)

    # ======================
    # Chain state
    # ======================

    async def get_nonce(self, chain_id: int, address: str) -> int:
        """Pending transaction count for an address."""
        return _quantity(await self._rpc(chain_id, "eth_getTransactionCount", [address, "pending"]))

    async def get_gas_price(self, chain_id: int) -> int:
        return _quantity(await self._rpc(chain_id, "eth_gasPrice", []))

    async def get_fee_data(self, chain_id: int) -> tuple[int, int]:
        """Resolve EIP-1559 fees.

        Returns:
            Tuple of (max_fee_per_gas, max_priority_fee_per_gas) where
            max_fee = 2 * gas price + priority fee. Both default to 1 gwei
            if the gas price cannot be fetched.
        """
        async def priority_fee() -> int:
            try:
                return _quantity(await self._rpc(chain_id, "eth_maxPriorityFeePerGas", []))
            except (RPCError, ValueError) as e:
                logger.debug(f"eth_maxPriorityFeePerGas unavailable on chain {chain_id}: {e}")
                return ONE_GWEI

        try:
            base_fee, priority = await asyncio.gather(
                self.get_gas_price(chain_id), priority_fee()
            )
        except (RPCError, ValueError) as e:
            logger.warning(f"Fee lookup failed on chain {chain_id}, using 1 gwei: {e}")
            return ONE_GWEI, ONE_GWEI

        return base_fee * 2 + priority, priority

    async def estimate_gas(self, chain_id: int, tx: dict) -> int:
        """Gas estimate with a 20% buffer; 21000 if estimation fails."""
        try:
            estimate = _quantity(await self._rpc(chain_id, "eth_estimateGas", [tx]))
        except (RPCError, ValueError) as e:
            logger.info(f"Gas estimation failed on chain {chain_id}, using {DEFAULT_GAS_LIMIT}: {e}")
            return DEFAULT_GAS_LIMIT
        return math.ceil(estimate * GAS_LIMIT_BUFFER)

    @staticmethod
    def is_eip1559(request: EvmTransactionRequest) -> bool:
        """Type-2 unless a legacy gas price is given or the chain is legacy-only."""
        if request.max_fee_per_gas is not None:
            return True
        return request.gas_price is None and request.chain_id not in LEGACY_ONLY_CHAIN_IDS

    # ======================
    # Signing
    # ======================

    def get_address_from_private_key(self, private_key: KeyLike, network: Optional[str] = None) -> str:
        return evm_address.address_from_private_key(private_key)

    async def sign_transaction(
        self,
        request: EvmTransactionRequest,
        private_key: KeyLike,
    ) -> EvmSignedTransaction:
        """Sign an EVM transaction, fetching any missing nonce, fee or gas field.

        Raises:
            UnsupportedChainId: If no endpoint is configured for the chain
            RPCError: If the nonce or legacy gas price cannot be fetched
            InvalidAddressChecksum: If ``to`` has a wrong EIP-55 checksum
        """
        chain_id = request.chain_id
        self._rpc_url(chain_id)

        from_address = self.get_address_from_private_key(private_key)
        to_bytes = evm_address.address_to_bytes(request.to) if request.to else b""
        data = hex_to_bytes(request.data)
        eip1559 = self.is_eip1559(request)

        async def resolve_nonce() -> int:
            if request.nonce is not None:
                return request.nonce
            return await self.get_nonce(chain_id, from_address)

        async def resolve_fees() -> tuple[int, int]:
            if eip1559:
                if request.max_fee_per_gas is not None:
                    return request.max_fee_per_gas, request.max_priority_fee_per_gas or 0
                return await self.get_fee_data(chain_id)
            if request.gas_price is not None:
                return request.gas_price, 0
            return await self.get_gas_price(chain_id), 0

        async def resolve_gas_limit() -> int:
            if request.gas_limit is not None:
                return request.gas_limit
            tx = {
                "from": from_address,
                "to": request.to or None,
                "value": _to_hex(request.value),
                "data": request.data,
            }
            return await self.estimate_gas(chain_id, tx)

        nonce, (fee, priority_fee), gas_limit = await asyncio.gather(
            resolve_nonce(), resolve_fees(), resolve_gas_limit()
        )

        if eip1559:
            fields = [
                chain_id, nonce, priority_fee, fee, gas_limit,
                to_bytes, request.value, data, [],
            ]
            digest = keccak256(b"\x02" + rlp.encode(fields))
            r, s, rec_id = sign_recoverable(digest, private_key)
            raw = b"\x02" + rlp.encode(fields + [rec_id, r, s])
        else:
            fields = [nonce, fee, gas_limit, to_bytes, request.value, data]
            digest = keccak256(rlp.encode(fields + [chain_id, 0, 0]))
            r, s, rec_id = sign_recoverable(digest, private_key)
            v = chain_id * 2 + 35 + rec_id
            raw = rlp.encode(fields + [v, r, s])

        tx_hash = "0x" + keccak256(raw).hex()
        logger.info(
            f"Signed EVM tx {tx_hash} chain={chain_id} nonce={nonce} "
            f"type={'eip1559' if eip1559 else 'legacy'}"
        )
        return EvmSignedTransaction(
            raw_transaction="0x" + raw.hex(),
            transaction_hash=tx_hash,
            chain_id=chain_id,
            nonce=nonce,
            eip1559=eip1559,
        )

    async def send_raw_transaction(self, chain_id: int, raw_transaction: str) -> str:
        """Broadcast raw hex and return the node-reported hash."""
        return await self._rpc(chain_id, "eth_sendRawTransaction", [raw_transaction])

    async def broadcast(
        self,
        signed: EvmSignedTransaction,
        network: Optional[Union[str, int]] = None,
    ) -> BroadcastResult:
        chain_id = int(network) if network is not None else signed.chain_id
        tx_hash = await self.send_raw_transaction(chain_id, signed.raw_transaction)
        logger.info(f"Broadcast EVM tx {tx_hash} on chain {chain_id}")
        return BroadcastResult(chain_type=self.chain_type, tx_id=tx_hash or signed.transaction_hash)

    def sign_message(self, message: Union[str, bytes], private_key: KeyLike) -> str:
        """EIP-191 personal message signature, ``0x || r || s || (27 + recId)``."""
        payload = message.encode("utf-8") if isinstance(message, str) else bytes(message)
        prefix = f"\x19Ethereum Signed Message:\n{len(payload)}".encode("utf-8")
        r, s, rec_id = sign_recoverable(keccak256(prefix + payload), private_key)
        return "0x" + recoverable_signature_hex(r, s, 27 + rec_id)

    def sign_typed_data(self, typed_data: dict, private_key: KeyLike) -> str:
        """Sign typed data as keccak256(0x1901 || H(domain) || H(message)).

        H is keccak256 over the compact JSON serialization of each object,
        not the EIP-712 struct hash; signatures are only accepted by
        verifiers that hash the same way.
        """
        domain_hash = keccak256(_compact_json(typed_data.get("domain", {})))
        struct_hash = keccak256(_compact_json(typed_data.get("message", {})))
        digest = keccak256(b"\x19\x01" + domain_hash + struct_hash)
        r, s, rec_id = sign_recoverable(digest, private_key)
        return "0x" + recoverable_signature_hex(r, s, 27 + rec_id)

    # ======================
    # Queries
    # ======================

    async def get_balance(self, address: str, network: Optional[Union[str, int]] = None) -> int:
        try:
            return _quantity(await self._rpc(network, "eth_getBalance", [address, "latest"]))
        except LOOKUP_ERRORS as e:
            self._degrade("balance", address, e)
            return 0

    async def get_token_balance(
        self,
        token_address: str,
        address: str,
        network: Optional[Union[str, int]] = None,
    ) -> int:
        """ERC20 ``balanceOf`` via eth_call."""
        try:
            data = "0x" + ERC20_BALANCE_OF + address[2:].lower().rjust(64, "0")
            result = await self._rpc(network, "eth_call", [{"to": token_address, "data": data}, "latest"])
            return int(result, 16) if result and result != "0x" else 0
        except LOOKUP_ERRORS as e:
            self._degrade("token balance", address, e)
            return 0

    async def get_transaction_receipt(self, chain_id: int, tx_hash: str) -> Optional[dict]:
        """Receipt, or None while the transaction is pending."""
        return await self._rpc(chain_id, "eth_getTransactionReceipt", [tx_hash])

    async def get_block_timestamp(self, chain_id: int, block_number: int) -> Optional[int]:
        try:
            block = await self._rpc(chain_id, "eth_getBlockByNumber", [_to_hex(block_number), False])
        except LOOKUP_ERRORS as e:
            logger.warning(f"Block {block_number} lookup failed on chain {chain_id}: {e}")
            return None
        if not block or not block.get("timestamp"):
            return None
        return _quantity(block["timestamp"])

    async def get_transaction_history(
        self,
        address: str,
        network: Optional[Union[str, int]] = None,
        limit: int = 20,
        from_block: str = "earliest",
        to_block: str = "latest",
        token_addresses: Optional[list[str]] = None,
    ) -> list[TransactionHistoryItem]:
        """ERC20 transfers to and from an address, newest block first.

        Native transfers are not visible through standard JSON-RPC logs.
        """
        topic = "0x" + address[2:].lower().rjust(64, "0")

        def log_filter(topics: list) -> dict:
            query = {"fromBlock": from_block, "toBlock": to_block, "topics": topics}
            if token_addresses:
                query["address"] = token_addresses
            return query

        try:
            received, sent = await asyncio.gather(
                self._rpc(network, "eth_getLogs", [log_filter([TRANSFER_EVENT_TOPIC, None, topic])]),
                self._rpc(network, "eth_getLogs", [log_filter([TRANSFER_EVENT_TOPIC, topic, None])]),
            )
        except LOOKUP_ERRORS as e:
            self._degrade("history", address, e)
            return []

        items = [
            item
            for direction, logs in (("receive", received), ("send", sent))
            for item in (self._parse_transfer_log(log, direction) for log in logs or [])
            if item is not None
        ]
        items.sort(key=lambda item: item.block_number or 0, reverse=True)
        return items[:limit]

    def _parse_transfer_log(self, log: dict, direction: str) -> Optional[TransactionHistoryItem]:
        try:
            return TransactionHistoryItem(
                chain_type=self.chain_type,
                tx_id=log["transactionHash"],
                direction=direction,
                amount=int(log["data"], 16) if log.get("data") not in (None, "0x") else 0,
                from_address="0x" + log["topics"][1][-40:].lower(),
                to_address="0x" + log["topics"][2][-40:].lower(),
                block_number=_quantity(log["blockNumber"]),
                token_address=log.get("address"),
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed transfer log: {e}")
            return None


def _compact_json(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
