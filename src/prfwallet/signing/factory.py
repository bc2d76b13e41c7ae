"""Signer dispatch over the closed set of chain families."""

import logging
from typing import Union

from prfwallet.chains import ChainType, parse_chain_type
from prfwallet.config import NetworkConfig
from prfwallet.signing.base import ChainSigner
from prfwallet.signing.btc import BTCSigner
from prfwallet.signing.evm import EVMSigner
from prfwallet.signing.solana import SolanaSigner
from prfwallet.signing.ton import TonSigner
from prfwallet.signing.tron import TronSigner
from prfwallet.transport import Transport

logger = logging.getLogger(__name__)

SIGNER_CLASSES: dict[ChainType, type[ChainSigner]] = {
    ChainType.EVM: EVMSigner,
    ChainType.SVM: SolanaSigner,
    ChainType.BTC: BTCSigner,
    ChainType.TRON: TronSigner,
    ChainType.TON: TonSigner,
}

_missing = set(ChainType) - set(SIGNER_CLASSES)
if _missing:
    raise RuntimeError(f"No signer registered for: {sorted(c.value for c in _missing)}")


def get_supported_chains() -> list[ChainType]:
    """Get list of chain families with a signer."""
    return list(SIGNER_CLASSES)


def get_signer(
    chain_type: Union[str, ChainType],
    config: NetworkConfig,
    transport: Transport,
) -> ChainSigner:
    """Create the signer for a chain family.

    Args:
        chain_type: Chain family
        config: Endpoint map injected into the signer
        transport: Outbound transport

    Raises:
        UnsupportedChain: If the chain type is unknown
    """
    chain = parse_chain_type(chain_type)
    signer = SIGNER_CLASSES[chain](config, transport)
    logger.debug(f"Created {signer!r}")
    return signer
