"""Per-chain transaction signers.

- EVMSigner: legacy and EIP-1559 transactions, personal messages
- BTCSigner: P2PKH with node RPC / Esplora fallback
- SolanaSigner: System Program transfers
- TronSigner: node-built TRX/TRC20 transactions
- TonSigner: wallet transfers with a flat cell encoding
"""

from prfwallet.signing.base import ChainSigner
from prfwallet.signing.btc import BTCSigner, EsploraBackend, NodeRpcBackend, UtxoBackend
from prfwallet.signing.evm import EVMSigner
from prfwallet.signing.factory import get_signer, get_supported_chains
from prfwallet.signing.solana import SolanaSigner
from prfwallet.signing.ton import TonSigner
from prfwallet.signing.tron import TronSigner

__all__ = [
    "ChainSigner",
    "EVMSigner",
    "BTCSigner",
    "SolanaSigner",
    "TronSigner",
    "TonSigner",
    "UtxoBackend",
    "NodeRpcBackend",
    "EsploraBackend",
    "get_signer",
    "get_supported_chains",
]
