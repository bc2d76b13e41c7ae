"""Signed artifacts and chain-state records returned by the signers."""

from dataclasses import dataclass, field
from typing import Any, Optional

from prfwallet.chains import ChainType


@dataclass(frozen=True)
class Utxo:
    """Unspent output owned by the signing address."""
    txid: str
    vout: int
    value: int                          # satoshis
    script_pub_key: Optional[str] = None


@dataclass(frozen=True)
class EvmSignedTransaction:
    raw_transaction: str                # 0x-prefixed hex
    transaction_hash: str
    chain_id: int
    nonce: int
    eip1559: bool


@dataclass(frozen=True)
class BtcSignedTransaction:
    raw_transaction: str                # hex, no prefix
    txid: str                           # display byte order
    fee: int
    change: int                         # 0 when folded into the fee as dust


@dataclass(frozen=True)
class SolanaSignedTransaction:
    raw_transaction: str                # base64 wire bytes
    signature: str                      # base58


@dataclass(frozen=True)
class TronSignedTransaction:
    """Node-built transaction with the signature attached.

    Attributes:
        raw_transaction: Compact JSON of the signed envelope
        tx_id: Node-issued transaction id (the signed digest)
        signature: r || s || (v + 27) as hex
        transaction: Signed envelope as a dict, ready for broadcast
    """
    raw_transaction: str
    tx_id: str
    signature: str
    transaction: dict = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class TonSignedTransaction:
    boc: str                            # base64
    hash: str                           # hex SHA-256 of the BOC bytes
    seqno: int


@dataclass(frozen=True)
class BroadcastResult:
    """Outcome of handing a signed transaction to the network."""
    chain_type: ChainType
    tx_id: str
    status: str = "pending"
    details: Optional[Any] = field(default=None, compare=False, hash=False)


@dataclass(frozen=True)
class TransactionHistoryItem:
    """One native or token transfer touching a wallet address."""
    chain_type: ChainType
    tx_id: str
    direction: str                      # send | receive
    amount: int                         # base units
    from_address: str
    to_address: str
    timestamp: Optional[int] = None     # unix seconds
    block_number: Optional[int] = None
    token_address: Optional[str] = None
    status: str = "confirmed"
    memo: Optional[str] = None
    fee: Optional[int] = None
