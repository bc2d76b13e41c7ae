"""Chain families and network selectors supported by the vault.

Each family has its own key curve, address format and signer:
- EVM (secp256k1, keccak addresses) - Ethereum, BSC, Polygon, ...
- SVM (ed25519) - Solana
- BTC (secp256k1, P2PKH)
- TRON (secp256k1, Base58Check with 0x41 prefix)
- TON (ed25519, CRC16 user-friendly addresses)
"""

from enum import Enum

from prfwallet.errors import UnsupportedChain


class ChainType(str, Enum):
    """Chain family tag, stored alongside every encrypted key record."""

    EVM = "evm"
    SVM = "svm"
    BTC = "btc"
    TRON = "tron"
    TON = "ton"

    @property
    def curve(self) -> str:
        if self in (ChainType.SVM, ChainType.TON):
            return "ed25519"
        return "secp256k1"


class BTCNetwork(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"


class SolanaNetwork(str, Enum):
    MAINNET = "mainnet"
    DEVNET = "devnet"


class TronNetwork(str, Enum):
    MAINNET = "mainnet"
    SHASTA = "shasta"


class TonNetwork(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"


ALL_CHAIN_TYPES: tuple[ChainType, ...] = tuple(ChainType)

# EVM chain ids that do not accept type-2 transactions.
LEGACY_ONLY_CHAIN_IDS: frozenset[int] = frozenset({56})  # BSC

# Default EVM endpoints by chain id.
DEFAULT_EVM_RPC_URLS: dict[int, str] = {
    1: "https://eth.llamarpc.com",
    56: "https://bsc-dataseed.binance.org",
    137: "https://polygon-rpc.com",
    43114: "https://api.avax.network/ext/bc/C/rpc",
    11155111: "https://rpc.sepolia.org",
}


def parse_chain_type(value: "str | ChainType") -> ChainType:
    """Coerce a string tag into a ChainType.

    Raises:
        UnsupportedChain: If the tag is unknown
    """
    if isinstance(value, ChainType):
        return value
    try:
        return ChainType(str(value).lower())
    except ValueError:
        raise UnsupportedChain(f"Unsupported chain type: {value}")
