"""
In-memory key storage for nearauth.

Keys are held per (network, account) and never written anywhere.  A
``KeystoreBinding`` records which entry a session owns so that logout can
release exactly that key material.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from nearauth_core.keys import KeyPairEd25519

log = logging.getLogger("nearauth.keystore")


class InMemoryKeyStore:
    """Process-local key store keyed by ``(network_id, account_id)``."""

    def __init__(self):
        self._keys: dict[str, dict[str, KeyPairEd25519]] = {}

    def set_key(self, network_id: str, account_id: str, key_pair: KeyPairEd25519) -> None:
        """Store *key_pair*, replacing any existing key for the same account."""
        self._keys.setdefault(network_id, {})[account_id] = key_pair

    def get_key(self, network_id: str, account_id: str) -> KeyPairEd25519 | None:
        return self._keys.get(network_id, {}).get(account_id)

    def remove_key(self, network_id: str, account_id: str) -> bool:
        """Drop the key for an account.  Returns False if nothing was stored."""
        accounts = self._keys.get(network_id)
        if accounts is None or account_id not in accounts:
            return False
        del accounts[account_id]
        if not accounts:
            del self._keys[network_id]
        return True

    def clear(self) -> None:
        self._keys.clear()

    def get_networks(self) -> list[str]:
        return sorted(self._keys)

    def get_accounts(self, network_id: str) -> list[str]:
        return sorted(self._keys.get(network_id, {}))

    def __len__(self) -> int:
        return sum(len(accounts) for accounts in self._keys.values())

    def __repr__(self) -> str:
        return f"InMemoryKeyStore(keys={len(self)})"


@dataclass
class KeystoreBinding:
    """A session's claim on one keystore entry."""
    network_id: str
    account_id: str
    keystore: InMemoryKeyStore
    active: bool = True

    def key_pair(self) -> KeyPairEd25519 | None:
        if not self.active:
            return None
        return self.keystore.get_key(self.network_id, self.account_id)


def bind(keystore: InMemoryKeyStore, network_id: str, account_id: str,
         key_pair: KeyPairEd25519) -> KeystoreBinding:
    """
    Register *key_pair* for ``(network_id, account_id)``.

    Binding the same account again overwrites the stored key, so a store
    never holds two entries for one account.
    """
    keystore.set_key(network_id, account_id, key_pair)
    log.debug("Bound key for %s on %s", account_id, network_id)
    return KeystoreBinding(network_id, account_id, keystore)


def unbind(binding: KeystoreBinding) -> None:
    """Release the key material held for *binding*.  Safe to call twice."""
    if not binding.active:
        return
    binding.keystore.remove_key(binding.network_id, binding.account_id)
    binding.active = False
    log.debug("Unbound key for %s on %s", binding.account_id, binding.network_id)
