"""
nearauth - social login to NEAR accounts without handling native keys.

Key features:
- Deterministic ed25519 keypair from an identity provider's raw key
- Account identifier from the raw public key (implicit-account hex form)
- In-memory keystore bound to the session, released on logout
- aiohttp JSON-RPC connection to a NEAR node
- Explicit session state machine with rollback on failed logins
"""

__version__ = "0.1.0"
__all__ = [
    "errors",
    "keys",
    "keystore",
    "connection",
    "provider",
    "session",
    "config",
    "logging_config",
]
