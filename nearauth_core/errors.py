"""
Error model for nearauth.

Every failure raised by the library is a ``NearAuthError`` carrying an
``ErrorKind`` so callers can branch on the kind instead of parsing
messages.  Messages never include key material.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    INTERNAL = "internal"
    CONFIG_MISSING = "config_missing"
    CONFIG_INVALID = "config_invalid"
    PROVIDER_INIT_FAILED = "provider_init_failed"
    PROVIDER_REQUEST_FAILED = "provider_request_failed"
    INVALID_KEY_MATERIAL = "invalid_key_material"
    NETWORK_UNAVAILABLE = "network_unavailable"
    RPC_ERROR = "rpc_error"
    SESSION_BUSY = "session_busy"
    INVALID_STATE = "invalid_state"
    KEY_NOT_FOUND = "key_not_found"


class NearAuthError(Exception):
    """
    Base class for all nearauth errors.  Subclasses fix ``kind``.

    Args:
        message: Human-readable description
        details: Extra structured context (never secrets)
        cause: Underlying exception, also chained via ``raise ... from``
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.kind.value}] {self.message}"]
        if self.details:
            parts.append(f"details: {self.details}")
        if self.cause is not None:
            parts.append(f"caused by: {type(self.cause).__name__}: {self.cause}")
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result


class ConfigMissing(NearAuthError):
    """A required setting is absent; no session can be created."""
    kind = ErrorKind.CONFIG_MISSING


class ConfigInvalid(NearAuthError):
    """A setting is present but unusable (bad URL, network mismatch)."""
    kind = ErrorKind.CONFIG_INVALID


class ProviderInitFailed(NearAuthError):
    """The identity provider could not be initialised."""
    kind = ErrorKind.PROVIDER_INIT_FAILED


class ProviderRequestFailed(NearAuthError):
    """The identity provider rejected a login, key request or logout."""
    kind = ErrorKind.PROVIDER_REQUEST_FAILED


class InvalidKeyMaterial(NearAuthError):
    """The raw provider key does not decode to a usable private scalar."""
    kind = ErrorKind.INVALID_KEY_MATERIAL


class NetworkUnavailable(NearAuthError):
    """The ledger RPC endpoint could not be reached or answered garbage."""
    kind = ErrorKind.NETWORK_UNAVAILABLE


class RpcError(NearAuthError):
    """The ledger RPC endpoint returned a JSON-RPC error object."""
    kind = ErrorKind.RPC_ERROR


class SessionBusy(NearAuthError):
    """Another session operation is still in flight."""
    kind = ErrorKind.SESSION_BUSY


class SessionStateError(NearAuthError):
    """The operation is not valid in the session's current state."""
    kind = ErrorKind.INVALID_STATE


class KeyNotFound(NearAuthError):
    """No key is bound for the requested (network, account)."""
    kind = ErrorKind.KEY_NOT_FOUND
