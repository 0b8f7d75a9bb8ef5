"""
TOML-based configuration for nearauth.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from nearauth_core.config import load_config, validate_config
    cfg = load_config("nearauth.toml")
    validate_config(cfg)
"""

from __future__ import annotations

import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from nearauth_core.errors import ConfigInvalid, ConfigMissing


@dataclass
class NetworkConfig:
    """NEAR network endpoints used to build a ledger connection."""
    network_id: str = "testnet"
    node_url: str = "https://rpc.testnet.near.org"
    wallet_url: str = "https://wallet.testnet.near.org"
    helper_url: str = "https://helper.testnet.near.org"
    explorer_url: str = "https://explorer.testnet.near.org"
    # Per-request HTTP timeout in seconds; 0 leaves requests unbounded.
    rpc_timeout: float = 0.0


@dataclass
class ChainConfig:
    """Chain description handed to the identity provider's key provider."""
    chain_namespace: str = "other"
    chain_id: str = "0x4e454153"
    rpc_target: str = "https://test.rpc.fastnear.com"
    display_name: str = "Near"
    block_explorer_url: str = "https://testnet.nearblocks.io/"
    ticker: str = "NEAR"
    ticker_name: str = "NEAR"
    decimals: int = 24
    is_testnet: bool = True

    def to_provider_dict(self) -> dict[str, Any]:
        """camelCase form expected by identity-provider SDKs."""
        return {
            "chainNamespace": self.chain_namespace,
            "chainId": self.chain_id,
            "rpcTarget": self.rpc_target,
            "displayName": self.display_name,
            "blockExplorerUrl": self.block_explorer_url,
            "ticker": self.ticker,
            "tickerName": self.ticker_name,
            "decimals": self.decimals,
            "isTestnet": self.is_testnet,
        }


@dataclass
class IdentityConfig:
    """Identity-provider client settings.  ``client_id`` is mandatory."""
    client_id: str = ""
    web3auth_network: str = "sapphire_devnet"
    adapter: str = "auth"


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class NearAuthConfig:
    """Top-level configuration container."""
    network: NetworkConfig = field(default_factory=NetworkConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self, redact: bool = True) -> dict[str, Any]:
        data = asdict(self)
        if redact and data["identity"]["client_id"]:
            data["identity"]["client_id"] = "***"
        return data


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def load_config(path: str | None = None) -> NearAuthConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        NEARAUTH_CLIENT_ID          -> identity.client_id
        NEARAUTH_WEB3AUTH_NETWORK   -> identity.web3auth_network
        NEARAUTH_NETWORK_ID         -> network.network_id
        NEARAUTH_NODE_URL           -> network.node_url
        NEARAUTH_WALLET_URL         -> network.wallet_url
        NEARAUTH_HELPER_URL         -> network.helper_url
        NEARAUTH_EXPLORER_URL       -> network.explorer_url
        NEARAUTH_RPC_TIMEOUT        -> network.rpc_timeout
        NEARAUTH_LOG_LEVEL          -> logging.level
        NEARAUTH_LOG_FMT            -> logging.format
        NEARAUTH_LOG_FILE           -> logging.file
    """
    cfg = NearAuthConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("network", cfg.network),
                ("chain", cfg.chain),
                ("identity", cfg.identity),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("NEARAUTH_CLIENT_ID"):
        cfg.identity.client_id = v
    if v := os.environ.get("NEARAUTH_WEB3AUTH_NETWORK"):
        cfg.identity.web3auth_network = v
    if v := os.environ.get("NEARAUTH_NETWORK_ID"):
        cfg.network.network_id = v
    if v := os.environ.get("NEARAUTH_NODE_URL"):
        cfg.network.node_url = v
    if v := os.environ.get("NEARAUTH_WALLET_URL"):
        cfg.network.wallet_url = v
    if v := os.environ.get("NEARAUTH_HELPER_URL"):
        cfg.network.helper_url = v
    if v := os.environ.get("NEARAUTH_EXPLORER_URL"):
        cfg.network.explorer_url = v
    if v := os.environ.get("NEARAUTH_RPC_TIMEOUT"):
        try:
            cfg.network.rpc_timeout = float(v)
        except ValueError as exc:
            raise ConfigInvalid(
                "NEARAUTH_RPC_TIMEOUT must be a number", details={"value": v}, cause=exc,
            ) from exc
    if v := os.environ.get("NEARAUTH_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("NEARAUTH_LOG_FMT"):
        cfg.logging.format = v
    if v := os.environ.get("NEARAUTH_LOG_FILE"):
        cfg.logging.file = v

    return cfg


def validate_config(cfg: NearAuthConfig) -> NearAuthConfig:
    """
    Check the settings a session cannot start without.

    Raises ``ConfigMissing`` when the identity-provider client id is absent
    and ``ConfigInvalid`` when the network section is unusable.
    """
    if not cfg.identity.client_id:
        raise ConfigMissing(
            "identity-provider client id is not set "
            "(identity.client_id or NEARAUTH_CLIENT_ID)",
        )
    missing = [name for name in ("network_id", "node_url")
               if not getattr(cfg.network, name)]
    if missing:
        raise ConfigInvalid("network settings missing", details={"fields": missing})
    if cfg.network.rpc_timeout < 0:
        raise ConfigInvalid(
            "network.rpc_timeout must not be negative",
            details={"rpc_timeout": cfg.network.rpc_timeout},
        )
    return cfg
