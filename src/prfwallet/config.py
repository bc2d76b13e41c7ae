"""Application configuration using pydantic-settings.

Endpoints are read once into Settings and then frozen into a NetworkConfig
that is handed to each signer explicitly. Signers never read global state.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from prfwallet.chains import (
    DEFAULT_EVM_RPC_URLS,
    BTCNetwork,
    SolanaNetwork,
    TonNetwork,
    TronNetwork,
)


class NetworkConfig(BaseModel):
    """Immutable endpoint map passed into every signer call.

    Keys of the non-EVM maps are network selector values
    (``mainnet``, ``testnet``, ``devnet``, ``shasta``).
    """

    model_config = ConfigDict(frozen=True)

    evm_rpc_urls: dict[int, str] = Field(default_factory=dict)
    btc_rpc_urls: dict[str, str] = Field(default_factory=dict)
    btc_rest_urls: dict[str, str] = Field(default_factory=dict)
    sol_rpc_urls: dict[str, str] = Field(default_factory=dict)
    tron_api_urls: dict[str, str] = Field(default_factory=dict)
    tron_history_urls: dict[str, str] = Field(default_factory=dict)
    ton_api_urls: dict[str, str] = Field(default_factory=dict)
    btc_default_fee: int = 1000

    def evm_chain_ids(self) -> list[int]:
        return sorted(self.evm_rpc_urls)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")
    log_level: str = Field(default="INFO", description="Root log level")

    # ======================
    # Transport
    # ======================
    rpc_timeout: float = Field(default=30.0, description="HTTP timeout for RPC calls (seconds)")

    # ======================
    # Chain RPC Endpoints
    # ======================
    evm_rpc_urls: dict[int, str] = Field(
        default_factory=lambda: dict(DEFAULT_EVM_RPC_URLS),
        description="EVM JSON-RPC URL by chain id (JSON object in env)",
    )
    btc_rpc_urls: dict[str, str] = Field(
        default_factory=dict,
        description="Bitcoin node JSON-RPC URL by network (primary UTXO source)",
    )
    btc_rest_urls: dict[str, str] = Field(
        default_factory=lambda: {
            BTCNetwork.MAINNET.value: "https://blockstream.info/api",
            BTCNetwork.TESTNET.value: "https://blockstream.info/testnet/api",
        },
        description="Esplora REST base URL by network (fallback UTXO source)",
    )
    sol_rpc_urls: dict[str, str] = Field(
        default_factory=lambda: {
            SolanaNetwork.MAINNET.value: "https://api.mainnet-beta.solana.com",
            SolanaNetwork.DEVNET.value: "https://api.devnet.solana.com",
        },
        description="Solana JSON-RPC URL by network",
    )
    tron_api_urls: dict[str, str] = Field(
        default_factory=lambda: {
            TronNetwork.MAINNET.value: "https://api.trongrid.io",
            TronNetwork.SHASTA.value: "https://api.shasta.trongrid.io",
        },
        description="TRON full-node HTTP API base URL by network",
    )
    tron_history_urls: dict[str, str] = Field(
        default_factory=lambda: {
            TronNetwork.MAINNET.value: "https://api.trongrid.io",
            TronNetwork.SHASTA.value: "https://api.shasta.trongrid.io",
        },
        description="TronGrid v1 base URL by network (transaction history)",
    )
    ton_api_urls: dict[str, str] = Field(
        default_factory=lambda: {
            TonNetwork.MAINNET.value: "https://toncenter.com/api/v2",
            TonNetwork.TESTNET.value: "https://testnet.toncenter.com/api/v2",
        },
        description="TON HTTP API base URL by network",
    )

    # ======================
    # Signing
    # ======================
    btc_default_fee: int = Field(default=1000, description="Default BTC fee in satoshis")
    serialize_account_signing: bool = Field(
        default=True,
        description="Serialize sign-and-send per (chain, address) to avoid nonce races",
    )
    signing_lock_timeout: float = Field(
        default=30.0, description="Maximum wait for a per-account signing lock (seconds)"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def to_network_config(self) -> NetworkConfig:
        """Freeze the endpoint maps for injection into signers."""
        return NetworkConfig(
            evm_rpc_urls=dict(self.evm_rpc_urls),
            btc_rpc_urls=dict(self.btc_rpc_urls),
            btc_rest_urls=dict(self.btc_rest_urls),
            sol_rpc_urls=dict(self.sol_rpc_urls),
            tron_api_urls=dict(self.tron_api_urls),
            tron_history_urls=dict(self.tron_history_urls),
            ton_api_urls=dict(self.ton_api_urls),
            btc_default_fee=self.btc_default_fee,
        )

    def get_safe_dict(self) -> dict:
        """Return settings dict with endpoint credentials redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "log_level": self.log_level,
            "rpc_timeout": self.rpc_timeout,
            "chains": {
                "EVM": {str(cid): self._redact_url(url) for cid, url in self.evm_rpc_urls.items()},
                "BTC": {
                    "rpc": {k: self._redact_url(v) for k, v in self.btc_rpc_urls.items()},
                    "rest": {k: self._redact_url(v) for k, v in self.btc_rest_urls.items()},
                },
                "SOL": {k: self._redact_url(v) for k, v in self.sol_rpc_urls.items()},
                "TRON": {k: self._redact_url(v) for k, v in self.tron_api_urls.items()},
                "TON": {k: self._redact_url(v) for k, v in self.ton_api_urls.items()},
            },
            "signing": {
                "btc_default_fee": self.btc_default_fee,
                "serialize_account_signing": self.serialize_account_signing,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact credentials and path-embedded API keys from an endpoint URL."""
        if "://" not in url:
            return url
        proto, rest = url.split("://", 1)
        if "@" in rest:
            _, rest = rest.rsplit("@", 1)
        host, _, path = rest.partition("/")
        if not path:
            return f"{proto}://{host}"
        segments = path.split("/")
        redacted = [
            "***" if len(seg) >= 24 and seg.isalnum() else seg
            for seg in segments
        ]
        return f"{proto}://{host}/" + "/".join(redacted)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request URL at INFO, which may carry API keys.
    logging.getLogger("httpx").setLevel(logging.WARNING)
