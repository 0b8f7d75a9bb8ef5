"""
Session lifecycle for nearauth.

A ``Session`` drives one user through identity-provider initialisation,
social login, key derivation, keystore binding and ledger connection, and
back out again on logout.

State is held in exactly one tagged value:

    Uninitialized -> Initializing -> Ready -> Authenticating -> Authenticated
                          |                        |                 |
                          v                        v (failure)       v (logout)
                      InitFailed                 Ready             Ready

Only one operation runs at a time; an overlapping ``initialize``, ``login``
or ``logout`` is rejected with ``SessionBusy``.  A ``login`` that arrives
while the provider is still initialising raises ``ProviderInitFailed`` with
the ``SessionBusy`` as its cause.  A failed login, including
one cancelled by an outer timeout, leaves no bound key and no open
connection behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Optional, Union

from nearauth_core.config import NearAuthConfig, NetworkConfig, validate_config
from nearauth_core.connection import Connection, connect
from nearauth_core.errors import (
    NearAuthError,
    ProviderInitFailed,
    ProviderRequestFailed,
    SessionBusy,
    SessionStateError,
)
from nearauth_core.keys import account_id_for, derive_keypair
from nearauth_core.keystore import InMemoryKeyStore, KeystoreBinding, bind, unbind
from nearauth_core.provider import (
    PRIVATE_KEY_METHOD,
    WALLET_ADAPTERS,
    IdentityProvider,
    ProviderHandle,
)

log = logging.getLogger("nearauth.session")

Connector = Callable[[NetworkConfig, KeystoreBinding], Awaitable[Connection]]


class SessionStatus(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    INIT_FAILED = "init_failed"
    READY = "ready"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Uninitialized:
    status: ClassVar[SessionStatus] = SessionStatus.UNINITIALIZED


@dataclass(frozen=True)
class Initializing:
    status: ClassVar[SessionStatus] = SessionStatus.INITIALIZING


@dataclass(frozen=True)
class InitFailed:
    error: BaseException
    status: ClassVar[SessionStatus] = SessionStatus.INIT_FAILED


@dataclass(frozen=True)
class Ready:
    status: ClassVar[SessionStatus] = SessionStatus.READY


@dataclass(frozen=True)
class Authenticating:
    login_provider: str
    status: ClassVar[SessionStatus] = SessionStatus.AUTHENTICATING


@dataclass(frozen=True)
class Authenticated:
    login_provider: str
    handle: ProviderHandle
    account_id: str
    binding: KeystoreBinding
    connection: Connection
    status: ClassVar[SessionStatus] = SessionStatus.AUTHENTICATED


SessionState = Union[
    Uninitialized, Initializing, InitFailed, Ready, Authenticating, Authenticated,
]


class Session:
    """
    Login session for one user against one NEAR network.

    Parameters
    ----------
    provider : IdentityProvider
        Identity-provider capability; owned by the caller and long-lived.
    network : NetworkConfig, optional
        Endpoints for the ledger connection (testnet defaults).
    adapter : str
        Adapter name passed to ``provider.connect_to``.
    keystore : InMemoryKeyStore, optional
        Store receiving the derived key; a private one is created if omitted.
    connector : callable, optional
        ``async (network, binding) -> Connection``; defaults to ``connect``.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        network: Optional[NetworkConfig] = None,
        *,
        adapter: str = WALLET_ADAPTERS.AUTH,
        keystore: Optional[InMemoryKeyStore] = None,
        connector: Optional[Connector] = None,
    ):
        self.provider = provider
        self.network = network or NetworkConfig()
        self.adapter = adapter
        self.keystore = keystore if keystore is not None else InMemoryKeyStore()
        self._connector: Connector = connector or connect
        self._state: SessionState = Uninitialized()
        self._operation: Optional[str] = None

    @classmethod
    def from_config(cls, cfg: NearAuthConfig, provider: IdentityProvider,
                    **kwargs: Any) -> Session:
        """Build a session after checking the configuration is complete."""
        validate_config(cfg)
        return cls(provider, cfg.network, adapter=cfg.identity.adapter, **kwargs)

    # ---- observable state ----

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def account_id(self) -> Optional[str]:
        state = self._state
        return state.account_id if isinstance(state, Authenticated) else None

    @property
    def connection(self) -> Optional[Connection]:
        state = self._state
        return state.connection if isinstance(state, Authenticated) else None

    @property
    def provider_handle(self) -> Optional[ProviderHandle]:
        state = self._state
        return state.handle if isinstance(state, Authenticated) else None

    @property
    def login_provider(self) -> Optional[str]:
        state = self._state
        if isinstance(state, (Authenticating, Authenticated)):
            return state.login_provider
        return None

    def require_connection(self) -> Connection:
        """Return the live connection or raise ``SessionStateError``."""
        connection = self.connection
        if connection is None:
            raise SessionStateError(
                "session is not authenticated", details={"status": self.status.value},
            )
        return connection

    def snapshot(self) -> dict[str, Any]:
        """UI-safe summary of the session; contains no key material."""
        return {
            "status": self.status.value,
            "account_id": self.account_id,
            "login_provider": self.login_provider,
            "network_id": self.network.network_id,
            "connected": self.connection is not None,
        }

    # ---- operations ----

    def _ensure_idle(self, operation: str) -> None:
        if self._operation is not None:
            raise SessionBusy(
                f"cannot {operation} while {self._operation} is in progress",
                details={"running": self._operation, "requested": operation},
            )

    async def initialize(self) -> None:
        """
        Initialise the identity provider.

        Runs from ``Uninitialized`` or ``InitFailed`` (manual retry); is a
        no-op once the provider is ready.

        Raises
        ------
        ProviderInitFailed
            The provider's ``init()`` failed; the session is ``InitFailed``.
        SessionBusy
            Another operation is in progress.
        """
        self._ensure_idle("initialize")
        if not isinstance(self._state, (Uninitialized, InitFailed)):
            log.debug("initialize() ignored in state %s", self.status.value)
            return

        self._operation = "initialize"
        self._state = Initializing()
        try:
            await self.provider.init()
        except BaseException as exc:
            self._state = InitFailed(exc)
            log.error("Identity provider initialisation failed: %s", exc)
            if isinstance(exc, ProviderInitFailed) or not isinstance(exc, Exception):
                raise
            raise ProviderInitFailed(
                "identity provider initialisation failed", cause=exc,
            ) from exc
        else:
            self._state = Ready()
            log.info("Identity provider initialised")
        finally:
            self._operation = None

    async def login(self, login_provider: str) -> str:
        """Log in through *login_provider* and return the account id."""
        state = await self._login(login_provider)
        return state.account_id

    async def login_with_provider(self, login_provider: str) -> ProviderHandle:
        """Log in through *login_provider* and return the provider handle."""
        state = await self._login(login_provider)
        return state.handle

    async def _login(self, login_provider: str) -> Authenticated:
        state = self._state
        if isinstance(state, Initializing):
            busy = SessionBusy(
                "cannot login while initialize is in progress",
                details={"running": self._operation, "requested": "login"},
            )
            raise ProviderInitFailed(
                "identity provider initialisation has not completed",
                details={"status": state.status.value},
                cause=busy,
            ) from busy
        self._ensure_idle("login")
        if isinstance(state, (Uninitialized, InitFailed)):
            raise ProviderInitFailed(
                "identity provider is not initialised; call initialize() first",
                details={"status": state.status.value},
                cause=getattr(state, "error", None),
            )
        previous = state if isinstance(state, Authenticated) else None

        self._operation = "login"
        self._state = Authenticating(login_provider)
        binding: Optional[KeystoreBinding] = None
        connection: Optional[Connection] = None
        try:
            if previous is not None:
                log.info("Re-login via %s; ending session for %s",
                         login_provider, previous.account_id)
                await self._end(previous)

            handle = await self._connect_provider(login_provider)
            key_pair = derive_keypair(await self._request_key(handle, login_provider))
            account_id = account_id_for(key_pair)
            binding = bind(self.keystore, self.network.network_id, account_id, key_pair)
            connection = await self._connector(self.network, binding)
            authenticated = Authenticated(login_provider, handle, account_id,
                                          binding, connection)
        except BaseException as exc:
            try:
                await self._rollback(binding, connection)
            finally:
                self._state = Ready()
            log.error("Login with %s failed: %s", login_provider, exc)
            raise
        else:
            self._state = authenticated
            log.info("Logged in via %s as %s", login_provider, account_id)
            return authenticated
        finally:
            self._operation = None

    async def _connect_provider(self, login_provider: str) -> ProviderHandle:
        try:
            return await self.provider.connect_to(self.adapter, login_provider=login_provider)
        except NearAuthError:
            raise
        except Exception as exc:
            raise ProviderRequestFailed(
                f"login with {login_provider} was rejected",
                details={"login_provider": login_provider},
                cause=exc,
            ) from exc

    async def _request_key(self, handle: ProviderHandle, login_provider: str) -> Any:
        try:
            return await handle.request(method=PRIVATE_KEY_METHOD)
        except NearAuthError:
            raise
        except Exception as exc:
            raise ProviderRequestFailed(
                "identity provider did not release a private key",
                details={"login_provider": login_provider},
                cause=exc,
            ) from exc

    async def _rollback(self, binding: Optional[KeystoreBinding],
                        connection: Optional[Connection]) -> None:
        if binding is not None:
            unbind(binding)
        if connection is not None:
            await connection.close()
        if self.provider.connected:
            try:
                await self.provider.logout()
            except Exception as exc:
                log.warning("Provider logout during login rollback failed: %s", exc)

    async def _end(self, state: Authenticated) -> None:
        # Key material goes first so it is released even if the rest fails.
        unbind(state.binding)
        try:
            await state.connection.close()
        finally:
            if self.provider.connected:
                try:
                    await self.provider.logout()
                except NearAuthError:
                    raise
                except Exception as exc:
                    raise ProviderRequestFailed(
                        "identity provider logout failed", cause=exc,
                    ) from exc
        log.info("Logged out %s", state.account_id)

    async def logout(self) -> None:
        """
        End the authenticated session.

        The bound key is released before anything else.  The session ends
        in ``Ready`` even when the provider's logout fails, in which case
        the failure is re-raised.  A no-op when not authenticated.
        """
        self._ensure_idle("logout")
        state = self._state
        if not isinstance(state, Authenticated):
            log.debug("logout() ignored in state %s", self.status.value)
            return

        self._operation = "logout"
        try:
            await self._end(state)
        except BaseException as exc:
            log.error("Logout of %s failed: %s", state.account_id, exc)
            raise
        finally:
            self._state = Ready()
            self._operation = None

    def __repr__(self) -> str:
        return f"Session({self.status.value}, account={self.account_id})"
