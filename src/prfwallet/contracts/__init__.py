"""Request and result contracts shared by the signers and the wallet service."""

from prfwallet.contracts.requests import (
    BtcTransactionRequest,
    EvmTransactionRequest,
    SolanaTransferRequest,
    TonTransferRequest,
    TransactionRequest,
    TronTransferRequest,
    parse_transaction_request,
)
from prfwallet.contracts.results import (
    BroadcastResult,
    BtcSignedTransaction,
    EvmSignedTransaction,
    SolanaSignedTransaction,
    TonSignedTransaction,
    TransactionHistoryItem,
    TronSignedTransaction,
    Utxo,
)

__all__ = [
    # Requests
    "EvmTransactionRequest",
    "BtcTransactionRequest",
    "SolanaTransferRequest",
    "TronTransferRequest",
    "TonTransferRequest",
    "TransactionRequest",
    "parse_transaction_request",
    # Results
    "EvmSignedTransaction",
    "BtcSignedTransaction",
    "SolanaSignedTransaction",
    "TronSignedTransaction",
    "TonSignedTransaction",
    "BroadcastResult",
    "TransactionHistoryItem",
    "Utxo",
]
