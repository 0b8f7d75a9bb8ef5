"""
Ledger connection for nearauth.

Opens a JSON-RPC 2.0 connection to a NEAR node over aiohttp and pairs it
with a signer that reads keys from the session's keystore binding.

A connection is only handed out after one successful ``status`` round-trip;
no retries are attempted here, the caller owns retry policy.
"""

from __future__ import annotations

import asyncio
import hashlib
import itertools
import logging
from typing import Any, Optional
from urllib.parse import urlparse

import aiohttp

from nearauth_core.config import NetworkConfig
from nearauth_core.errors import (
    ConfigInvalid,
    KeyNotFound,
    NetworkUnavailable,
    RpcError,
)
from nearauth_core.keys import PublicKey
from nearauth_core.keystore import InMemoryKeyStore, KeystoreBinding

log = logging.getLogger("nearauth.connection")


class JsonRpcProvider:
    """Minimal NEAR JSON-RPC client."""

    def __init__(self, url: str, timeout: float = 0.0,
                 session: Optional[aiohttp.ClientSession] = None):
        self.url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout or None)
        self._session = session
        self._owns_session = session is None
        self._ids = itertools.count(1)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def call(self, method: str, params: Any = None) -> Any:
        """
        Send one JSON-RPC request and return its ``result``.

        Raises
        ------
        NetworkUnavailable
            Transport failure, HTTP error status or an unparseable reply.
        RpcError
            The node answered with a JSON-RPC ``error`` object.
        """
        request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": [] if params is None else params,
        }
        try:
            async with self._get_session().post(
                self.url, json=request, timeout=self._timeout,
            ) as response:
                response.raise_for_status()
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise NetworkUnavailable(
                f"RPC request '{method}' failed",
                details={"url": self.url},
                cause=exc,
            ) from exc

        if not isinstance(payload, dict):
            raise NetworkUnavailable(
                f"RPC reply to '{method}' is not a JSON object",
                details={"url": self.url},
            )
        if payload.get("error") is not None:
            raise RpcError(
                f"RPC method '{method}' returned an error",
                details={"url": self.url, "error": payload["error"]},
            )
        if "result" not in payload:
            raise NetworkUnavailable(
                f"RPC reply to '{method}' has no result",
                details={"url": self.url},
            )
        return payload["result"]

    async def status(self) -> dict[str, Any]:
        return await self.call("status")

    async def query(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self.call("query", params)

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None


class InMemorySigner:
    """Signs with keys held in an ``InMemoryKeyStore``."""

    def __init__(self, keystore: InMemoryKeyStore):
        self.keystore = keystore

    def _key_pair(self, account_id: str, network_id: str):
        key_pair = self.keystore.get_key(network_id, account_id)
        if key_pair is None:
            raise KeyNotFound(
                "no key bound for account",
                details={"account_id": account_id, "network_id": network_id},
            )
        return key_pair

    def get_public_key(self, account_id: str, network_id: str) -> PublicKey:
        return self._key_pair(account_id, network_id).public_key

    def sign_message(self, message: bytes, account_id: str,
                     network_id: str) -> tuple[bytes, PublicKey]:
        """Sign the SHA-256 digest of *message*, as NEAR signers do."""
        key_pair = self._key_pair(account_id, network_id)
        digest = hashlib.sha256(message).digest()
        return key_pair.sign(digest), key_pair.public_key


class Account:
    """Read-only view of an account on the connected network."""

    def __init__(self, connection: Connection, account_id: str):
        self.connection = connection
        self.account_id = account_id

    async def state(self) -> dict[str, Any]:
        return await self.connection.provider.query({
            "request_type": "view_account",
            "finality": "final",
            "account_id": self.account_id,
        })

    def __repr__(self) -> str:
        return f"Account({self.account_id})"


class Connection:
    """A live RPC provider plus the signer for the bound account."""

    def __init__(self, config: NetworkConfig, provider: JsonRpcProvider,
                 signer: InMemorySigner, chain_id: str = ""):
        self.config = config
        self.network_id = config.network_id
        self.provider = provider
        self.signer = signer
        self.chain_id = chain_id
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def account(self, account_id: str) -> Account:
        return Account(self, account_id)

    async def status(self) -> dict[str, Any]:
        return await self.provider.status()

    async def close(self) -> None:
        """Release the HTTP session.  Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self.provider.close()
        log.debug("Closed connection to %s", self.config.node_url)

    async def __aenter__(self) -> Connection:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Connection({self.network_id} @ {self.config.node_url}, {state})"


def _check_config(config: NetworkConfig, binding: KeystoreBinding) -> None:
    missing = [name for name in ("network_id", "node_url") if not getattr(config, name)]
    if missing:
        raise ConfigInvalid("connection settings missing", details={"fields": missing})
    if urlparse(config.node_url).scheme not in ("http", "https"):
        raise ConfigInvalid(
            "node_url must be an http(s) URL", details={"node_url": config.node_url},
        )
    if binding.network_id != config.network_id:
        raise ConfigInvalid(
            "keystore binding belongs to another network",
            details={"binding": binding.network_id, "config": config.network_id},
        )


async def connect(config: NetworkConfig, binding: KeystoreBinding,
                  session: Optional[aiohttp.ClientSession] = None) -> Connection:
    """
    Open a connection to ``config.node_url`` signing with *binding*'s key.

    A single ``status`` request verifies that the endpoint is reachable.
    On failure the HTTP session is closed before the error propagates.

    Raises
    ------
    ConfigInvalid
        Required settings are missing or inconsistent with the binding.
    NetworkUnavailable
        The endpoint could not be reached during setup.
    """
    _check_config(config, binding)
    provider = JsonRpcProvider(config.node_url, timeout=config.rpc_timeout, session=session)
    try:
        status = await provider.status()
    except RpcError as exc:
        await provider.close()
        raise NetworkUnavailable(
            "RPC endpoint rejected the status request",
            details=exc.details,
            cause=exc,
        ) from exc
    except BaseException:
        await provider.close()
        raise

    chain_id = str(status.get("chain_id", "")) if isinstance(status, dict) else ""
    if chain_id and chain_id != config.network_id:
        log.warning(
            "Node at %s reports chain_id %r, expected %r",
            config.node_url, chain_id, config.network_id,
        )
    log.info("Connected to %s (%s)", config.node_url, chain_id or config.network_id)
    return Connection(config, provider, InMemorySigner(binding.keystore), chain_id)
