"""Pytest configuration and fixtures."""

import inspect
import os
from typing import Any, Callable, Optional, Union

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"

from prfwallet.config import NetworkConfig, Settings
from prfwallet.errors import RPCError
from prfwallet.transport import Transport
from prfwallet.utils.locks import clear_account_locks

Response = Union[Any, Exception, Callable[..., Any]]

KEY_ONE = (1).to_bytes(32, "big")
KEY_ONE_EVM_ADDRESS = "0x7e5f4552091a69125d5dfcb7b8c2659029395bdf"
KEY_ONE_PUBKEY_HASH = "751e76e8199196d454941c45d1b3a323f1433bd6"

# RFC 8032 test 1
ED25519_SEED = bytes.fromhex("9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60")
ED25519_PUBLIC = bytes.fromhex("d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a")


class FakeTransport(Transport):
    """Scripted transport.

    JSON-RPC responses are keyed by method name, REST responses by URL
    suffix. A response may be a value, an exception instance to raise, or a
    callable (sync or async) receiving the request arguments. Every request
    is recorded.
    """

    def __init__(self):
        self.rpc: dict[str, Response] = {}
        self.gets: dict[str, Response] = {}
        self.posts: dict[str, Response] = {}
        self.calls: list[tuple] = []
        self.closed = False

    def on_call(self, method: str, response: Response) -> "FakeTransport":
        self.rpc[method] = response
        return self

    def on_get(self, suffix: str, response: Response) -> "FakeTransport":
        self.gets[suffix] = response
        return self

    def on_post(self, suffix: str, response: Response) -> "FakeTransport":
        self.posts[suffix] = response
        return self

    def methods(self) -> list[str]:
        return [c[2] for c in self.calls if c[0] == "call"]

    @staticmethod
    def _resolve(response: Response, *args) -> Any:
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(*args)
        return response

    @staticmethod
    def _route(routes: dict[str, Response], url: str) -> Response:
        path = url.split("?", 1)[0]
        for suffix, response in routes.items():
            if path.endswith(suffix):
                return response
        raise RPCError(f"No scripted response for {url}")

    async def call(self, endpoint: str, method: str, params: Any, jsonrpc: str = "2.0") -> Any:
        self.calls.append(("call", endpoint, method, params, jsonrpc))
        if method not in self.rpc:
            raise RPCError(f"No scripted response for {method}")
        result = self._resolve(self.rpc[method], params)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def get(self, url: str, params: Optional[dict] = None) -> Any:
        self.calls.append(("get", url, params))
        return self._resolve(self._route(self.gets, url), url, params)

    async def post(self, url: str, json: Any = None, content: Optional[str] = None) -> Any:
        self.calls.append(("post", url, json if content is None else content))
        return self._resolve(self._route(self.posts, url), url, json if content is None else content)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def network_config() -> NetworkConfig:
    """Endpoint map pointing at fake hosts."""
    return NetworkConfig(
        evm_rpc_urls={1: "http://evm-1", 56: "http://evm-56", 11155111: "http://evm-sepolia"},
        btc_rpc_urls={},
        btc_rest_urls={"mainnet": "http://esplora", "testnet": "http://esplora-test"},
        sol_rpc_urls={"mainnet": "http://sol", "devnet": "http://sol-devnet"},
        tron_api_urls={"mainnet": "http://tron"},
        tron_history_urls={"mainnet": "http://trongrid"},
        ton_api_urls={"mainnet": "http://ton"},
        btc_default_fee=1000,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, signing_lock_timeout=5.0)


@pytest.fixture(autouse=True)
def reset_account_locks():
    """Clear signing locks before each test."""
    clear_account_locks()
    yield
    clear_account_locks()
