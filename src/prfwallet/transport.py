"""Outbound transport used by signers to read chain state and broadcast.

The signing core only depends on the narrow Transport interface:
- call(endpoint, method, params): JSON-RPC request, returns ``result``
- get(url, params): REST GET, returns decoded JSON
- post(url, json, content): REST POST, returns decoded JSON (or text)

Every failure is surfaced as RPCError. No retries are performed here.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from prfwallet.errors import RPCError

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Abstract transport injected into every signer."""

    @abstractmethod
    async def call(
        self,
        endpoint: str,
        method: str,
        params: Any,
        jsonrpc: str = "2.0",
    ) -> Any:
        """Perform a JSON-RPC call.

        Args:
            endpoint: Node URL
            method: RPC method name
            params: Positional or named params
            jsonrpc: Protocol version string (Bitcoin Core nodes use "1.0")

        Returns:
            The ``result`` member of the response

        Raises:
            RPCError: On HTTP failure or a JSON-RPC ``error`` member
        """
        pass

    @abstractmethod
    async def get(self, url: str, params: Optional[dict] = None) -> Any:
        """Perform a REST GET and return decoded JSON."""
        pass

    @abstractmethod
    async def post(
        self,
        url: str,
        json: Any = None,
        content: Optional[str] = None,
    ) -> Any:
        """Perform a REST POST and return decoded JSON, or the body text."""
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None


class HttpxTransport(Transport):
    """Transport backed by a shared httpx.AsyncClient.

    Usage:
        async with HttpxTransport(timeout=30.0) as transport:
            result = await transport.call(url, "eth_blockNumber", [])
    """

    def __init__(
        self,
        timeout: float = 30.0,
        headers: Optional[dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json", **(headers or {})},
        )
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(
        self,
        endpoint: str,
        method: str,
        params: Any,
        jsonrpc: str = "2.0",
    ) -> Any:
        payload = {
            "jsonrpc": jsonrpc,
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._client.post(endpoint, json=payload)
        except httpx.HTTPError as e:
            raise RPCError(f"{method} request failed: {e}") from e

        data = self._decode(response, method)
        if not isinstance(data, dict):
            raise RPCError(f"{method}: malformed JSON-RPC response")

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise RPCError(error.get("message", str(error)), code=error.get("code"))
            raise RPCError(str(error))
        return data.get("result")

    async def get(self, url: str, params: Optional[dict] = None) -> Any:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise RPCError(f"GET {url} failed: {e}") from e
        return self._decode(response, url)

    async def post(
        self,
        url: str,
        json: Any = None,
        content: Optional[str] = None,
    ) -> Any:
        try:
            if content is not None:
                response = await self._client.post(
                    url, content=content, headers={"Content-Type": "text/plain"}
                )
            else:
                response = await self._client.post(url, json=json)
        except httpx.HTTPError as e:
            raise RPCError(f"POST {url} failed: {e}") from e
        return self._decode(response, url, allow_text=True)

    @staticmethod
    def _decode(response: httpx.Response, label: str, allow_text: bool = False) -> Any:
        try:
            data = response.json()
        except ValueError:
            if response.is_success and allow_text:
                return response.text.strip()
            raise RPCError(
                f"{label}: HTTP {response.status_code} - {response.text[:200]}",
                code=response.status_code,
            )

        # JSON-RPC nodes often report errors with non-2xx status and a JSON body.
        if not response.is_success and not (isinstance(data, dict) and "error" in data):
            logger.debug(f"{label}: HTTP {response.status_code}")
            raise RPCError(f"{label}: HTTP {response.status_code}", code=response.status_code)
        return data
