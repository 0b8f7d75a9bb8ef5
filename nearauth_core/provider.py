"""
Identity-provider capability for nearauth.

The session only talks to an identity provider through the two protocols
below, so any SDK binding (or a test double) can be injected.
``StaticKeyProvider`` is an in-process implementation that hands out a
fixed raw key; it backs the command-line runner on development networks.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, runtime_checkable

from nearauth_core.errors import ProviderInitFailed, ProviderRequestFailed

log = logging.getLogger("nearauth.provider")


class WALLET_ADAPTERS:
    """Adapter names understood by identity-provider SDKs."""
    AUTH = "auth"


LOGIN_PROVIDERS = (
    "google", "facebook", "twitter", "discord", "github",
    "apple", "reddit", "twitch", "linkedin", "email_passwordless",
)

PRIVATE_KEY_METHOD = "private_key"

_REQUIRED_CHAIN_KEYS = ("chainId", "rpcTarget")


@runtime_checkable
class ProviderHandle(Protocol):
    """Handle returned by a successful provider login."""

    async def request(self, method: str, params: Optional[list[Any]] = None) -> Any:
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    """What the session needs from an identity-provider SDK."""

    @property
    def connected(self) -> bool:
        ...

    async def init(self) -> None:
        ...

    async def connect_to(self, adapter: str, *, login_provider: str) -> ProviderHandle:
        ...

    async def logout(self) -> None:
        ...


class StaticKeyHandle:
    """Handle that answers ``private_key`` requests with a fixed key."""

    def __init__(self, raw_key: str | bytes, login_provider: str):
        self._raw_key = raw_key
        self.login_provider = login_provider

    async def request(self, method: str, params: Optional[list[Any]] = None) -> Any:
        if method != PRIVATE_KEY_METHOD:
            raise ProviderRequestFailed(
                "unsupported provider method", details={"method": method},
            )
        return self._raw_key

    def __repr__(self) -> str:
        return f"StaticKeyHandle({self.login_provider})"


class StaticKeyProvider:
    """
    In-process identity provider backed by a fixed raw key.

    The same key is returned for every login provider, so logins through
    different social providers resolve to the same account, which is how a
    real provider behaves for one underlying identity.

    Parameters
    ----------
    raw_key : str | bytes
        Key returned by ``request(method="private_key")``.
    client_id : str
        Identity-provider client credential; empty fails ``init()``.
    login_providers : tuple[str, ...]
        Names accepted by ``connect_to``.
    chain_config : dict, optional
        Chain description in the camelCase form of
        ``ChainConfig.to_provider_dict()``; ``init()`` rejects one without
        ``chainId`` or ``rpcTarget``.
    """

    def __init__(self, raw_key: str | bytes, client_id: str = "static",
                 login_providers: tuple[str, ...] = LOGIN_PROVIDERS,
                 chain_config: Optional[dict[str, Any]] = None):
        self._raw_key = raw_key
        self.client_id = client_id
        self.login_providers = tuple(login_providers)
        self.chain_config = dict(chain_config or {})
        self.ready = False
        self._handle: Optional[StaticKeyHandle] = None

    @property
    def connected(self) -> bool:
        return self._handle is not None

    async def init(self) -> None:
        if not self.client_id:
            raise ProviderInitFailed("identity provider has no client id")
        if self.chain_config:
            missing = [k for k in _REQUIRED_CHAIN_KEYS if not self.chain_config.get(k)]
            if missing:
                raise ProviderInitFailed(
                    "chain config is incomplete", details={"missing": missing},
                )
        self.ready = True
        log.debug("Static identity provider ready (chain %s)",
                  self.chain_config.get("chainId", "unset"))

    async def connect_to(self, adapter: str, *, login_provider: str) -> StaticKeyHandle:
        if not self.ready:
            raise ProviderRequestFailed("identity provider is not initialised")
        if self._handle is not None:
            raise ProviderRequestFailed("identity provider is already connected")
        if login_provider not in self.login_providers:
            raise ProviderRequestFailed(
                "unknown login provider", details={"login_provider": login_provider},
            )
        self._handle = StaticKeyHandle(self._raw_key, login_provider)
        return self._handle

    async def logout(self) -> None:
        if self._handle is None:
            raise ProviderRequestFailed("identity provider is not connected")
        self._handle = None
