"""Unsigned transaction requests, one model per chain family.

Requests are immutable and discriminated by ``chain_type`` so that a raw
dict can be validated straight into the right variant:

    request = parse_transaction_request({"chain_type": "btc", ...})
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from prfwallet.chains import BTCNetwork, SolanaNetwork, TonNetwork, TronNetwork
from prfwallet.contracts.results import Utxo


def parse_quantity(value: Any) -> Any:
    """Accept ints, decimal strings and ``0x`` hex strings for integer fields."""
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16) if len(text) > 2 else 0
        return int(text, 10)
    return value


class _Request(BaseModel):
    model_config = ConfigDict(frozen=True)


class EvmTransactionRequest(_Request):
    """EVM transaction; fields left as None are resolved from the node."""

    chain_type: Literal["evm"] = "evm"
    chain_id: int = Field(..., gt=0, description="EIP-155 chain ID")
    to: str = Field(default="", description="Recipient or contract address (empty for deploy)")
    value: int = Field(default=0, ge=0, description="Value in wei")
    data: str = Field(default="0x", description="Calldata (hex)")
    gas_limit: Optional[int] = Field(None, gt=0, description="Gas limit")
    gas_price: Optional[int] = Field(None, ge=0, description="Legacy gas price in wei")
    max_fee_per_gas: Optional[int] = Field(None, ge=0, description="EIP-1559 max fee")
    max_priority_fee_per_gas: Optional[int] = Field(None, ge=0, description="EIP-1559 priority fee")
    nonce: Optional[int] = Field(None, ge=0, description="Sender nonce")

    @field_validator(
        "value",
        "gas_limit",
        "gas_price",
        "max_fee_per_gas",
        "max_priority_fee_per_gas",
        "nonce",
        mode="before",
    )
    @classmethod
    def _quantity(cls, v: Any) -> Any:
        return parse_quantity(v)

    @field_validator("data")
    @classmethod
    def _hex_data(cls, v: str) -> str:
        body = v[2:] if v.startswith(("0x", "0X")) else v
        bytes.fromhex(body if len(body) % 2 == 0 else "0" + body)
        return "0x" + body.lower()


class BtcTransactionRequest(_Request):
    """P2PKH transfer spending every known UTXO of the sender."""

    chain_type: Literal["btc"] = "btc"
    to: str = Field(..., description="Recipient P2PKH address")
    amount: int = Field(..., gt=0, description="Amount in satoshis")
    fee: Optional[int] = Field(None, ge=0, description="Fee in satoshis (default from config)")
    change_address: Optional[str] = Field(None, description="Change address (default sender)")
    network: BTCNetwork = Field(default=BTCNetwork.MAINNET)
    utxos: Optional[tuple[Utxo, ...]] = Field(
        None, description="Inputs to spend; fetched from chain state when omitted"
    )


class SolanaTransferRequest(_Request):
    """Native SOL transfer through the System Program."""

    chain_type: Literal["svm"] = "svm"
    to: str = Field(..., description="Recipient address (base58)")
    amount: int = Field(..., ge=0, lt=2**64, description="Amount in lamports")
    network: SolanaNetwork = Field(default=SolanaNetwork.MAINNET)


class TronTransferRequest(_Request):
    """TRX transfer, or TRC20 transfer when ``contract_address`` is set."""

    chain_type: Literal["tron"] = "tron"
    to: str = Field(..., description="Recipient address")
    amount: int = Field(..., gt=0, description="Amount in SUN or token base units")
    contract_address: Optional[str] = Field(None, description="TRC20 contract address")
    fee_limit: int = Field(default=100_000_000, gt=0, description="TRC20 fee limit in SUN")
    network: TronNetwork = Field(default=TronNetwork.MAINNET)


class TonTransferRequest(_Request):
    """TON transfer with optional text comment."""

    chain_type: Literal["ton"] = "ton"
    to: str = Field(..., description="Recipient address (user-friendly or raw)")
    amount: int = Field(..., ge=0, description="Amount in nanotons")
    message: Optional[str] = Field(None, description="Text comment")
    network: TonNetwork = Field(default=TonNetwork.MAINNET)


TransactionRequest = Annotated[
    Union[
        EvmTransactionRequest,
        BtcTransactionRequest,
        SolanaTransferRequest,
        TronTransferRequest,
        TonTransferRequest,
    ],
    Field(discriminator="chain_type"),
]

_request_adapter: TypeAdapter = TypeAdapter(TransactionRequest)


def parse_transaction_request(data: dict) -> TransactionRequest:
    """Validate a raw dict into the matching request variant.

    Raises:
        pydantic.ValidationError: On unknown ``chain_type`` or bad fields
    """
    return _request_adapter.validate_python(data)
