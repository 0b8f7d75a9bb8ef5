#!/usr/bin/env python3
"""
nearauth login runner — exercises the session lifecycle from a terminal.

Commands:
  derive                 print the account id and public key for a raw key
  login --provider NAME  initialise, log in, query the node, log out

The raw provider key is read from NEARAUTH_RAW_KEY or a hidden prompt; it
is never echoed.  ``login`` uses the in-process static key provider, so it
is meant for development networks.

Usage:
    python run_login.py derive
    python run_login.py --config nearauth.toml login --provider google --show-account

Environment variables:
    NEARAUTH_RAW_KEY, NEARAUTH_CLIENT_ID and the NEARAUTH_* settings
    documented in nearauth_core.config
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import getpass
import json
import logging
import os
import sys

# ---------------------------------------------------------------------------
# Ensure the project root is in sys.path so imports work before pip install
# ---------------------------------------------------------------------------
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from nearauth_core.config import load_config  # noqa: E402
from nearauth_core.errors import NearAuthError  # noqa: E402
from nearauth_core.keys import account_id_for, derive_keypair  # noqa: E402
from nearauth_core.logging_config import setup_logging  # noqa: E402
from nearauth_core.provider import LOGIN_PROVIDERS, StaticKeyProvider  # noqa: E402
from nearauth_core.session import Session  # noqa: E402

logger = logging.getLogger("nearauth.cli")


def read_raw_key() -> str:
    if v := os.environ.get("NEARAUTH_RAW_KEY"):
        return v
    return getpass.getpass("Raw provider key: ")


# ===================================================================
#  Commands
# ===================================================================

def cmd_derive(args) -> int:
    pair = derive_keypair(read_raw_key())
    print(f"account_id: {account_id_for(pair)}")
    print(f"public_key: {pair.public_key.to_string()}")
    return 0


async def cmd_login(args, cfg) -> int:
    provider = StaticKeyProvider(read_raw_key(), client_id=cfg.identity.client_id,
                                 chain_config=cfg.chain.to_provider_dict())
    session = Session.from_config(cfg, provider)

    await session.initialize()
    await session.login(args.provider)
    try:
        connection = session.require_connection()
        status = await connection.status()
        report = dict(session.snapshot())
        report["chain_id"] = status.get("chain_id")
        report["latest_block_height"] = status.get("sync_info", {}).get("latest_block_height")
        if args.show_account:
            report["account"] = await connection.account(session.account_id).state()
        print(json.dumps(report, indent=2))
    finally:
        await session.logout()
    return 0


# ===================================================================
#  Main entry point
# ===================================================================

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="nearauth login runner")
    p.add_argument("--config", default=None, help="Path to nearauth.toml config file")
    p.add_argument("--log-level", default=None, help="Override logging.level")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("derive", help="Print the account derived from a raw provider key")

    login = sub.add_parser("login", help="Run a full login / logout cycle")
    login.add_argument("--provider", default="google", choices=LOGIN_PROVIDERS,
                       help="Social login provider name")
    login.add_argument("--show-account", action="store_true",
                       help="Also query the account state from the node")
    return p.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        # Load config (TOML + env overrides)
        cfg = load_config(args.config)
        if args.log_level:
            cfg.logging.level = args.log_level.upper()
        setup_logging(cfg.logging.level, cfg.logging.format, cfg.logging.file)

        if args.command == "derive":
            return cmd_derive(args)
        return await cmd_login(args, cfg)
    except NearAuthError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


def main_sync():
    """Synchronous entry point for console_scripts."""
    code = 130
    with contextlib.suppress(KeyboardInterrupt):
        code = asyncio.run(main())
    sys.exit(code)


if __name__ == "__main__":
    main_sync()
