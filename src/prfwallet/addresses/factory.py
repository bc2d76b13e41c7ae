"""Chain dispatch for address derivation."""

from typing import Callable, Optional, Union

from prfwallet.addresses import btc, evm, solana, ton, tron
from prfwallet.addresses.base import WalletAddress
from prfwallet.chains import ChainType, parse_chain_type
from prfwallet.keys import KeyLike

_DERIVERS: dict[ChainType, Callable[[KeyLike, Optional[str]], str]] = {
    ChainType.EVM: lambda key, network: evm.address_from_private_key(key),
    ChainType.SVM: lambda key, network: solana.address_from_private_key(key),
    ChainType.BTC: lambda key, network: btc.address_from_private_key(key, network),
    ChainType.TRON: lambda key, network: tron.address_from_private_key(key),
    ChainType.TON: lambda key, network: ton.address_from_private_key(key),
}

_missing = set(ChainType) - set(_DERIVERS)
if _missing:
    raise RuntimeError(f"No address deriver registered for: {sorted(c.value for c in _missing)}")


def derive_address(
    chain_type: Union[str, ChainType],
    private_key: KeyLike,
    network: Optional[str] = None,
) -> WalletAddress:
    """Derive the address for a private key.

    Args:
        chain_type: Chain family
        private_key: Raw key bytes or PrivateKeyMaterial
        network: Network selector (only BTC versions its addresses)

    Raises:
        UnsupportedChain: If the chain type is unknown
        InvalidPrivateKey: If the key is not valid for the chain's curve
    """
    chain = parse_chain_type(chain_type)
    return WalletAddress(chain_type=chain, address=_DERIVERS[chain](private_key, network))
