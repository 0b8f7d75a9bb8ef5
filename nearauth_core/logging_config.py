"""
Structured logging configuration for nearauth.

Supports two output formats:
  - **human** – coloured, single-line, readable
  - **json**  – newline-delimited JSON for log aggregators

Every handler carries a ``KeyMaterialFilter`` so that NEAR secret keys and
raw provider keys never reach a log sink.

Usage:
    from nearauth_core.logging_config import setup_logging
    setup_logging(level="DEBUG", fmt="json", log_file="nearauth.log")
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# ed25519 secret keys are 64 bytes, i.e. at least 80 base58 characters;
# public keys (32 bytes) stay well below that.
_SECRET_KEY_RE = re.compile(r"ed25519:[1-9A-HJ-NP-Za-km-z]{80,}")
# Raw provider keys.  Bare 64-digit hex is left alone: account ids share
# that shape.
_RAW_KEY_RE = re.compile(r"(?<![0-9A-Za-z])0[xX][0-9a-fA-F]{64}(?![0-9A-Za-z])")
_LABELLED_KEY_RE = re.compile(
    r"""((?:private_?key|priv_?key|raw_?key|secret_?key)["']?\s*[:=]\s*["']?)"""
    r"[0-9A-Za-z+/=:]{32,}",
    re.IGNORECASE,
)
REDACTED = "ed25519:<redacted>"
REDACTED_RAW = "<redacted>"


def redact(text: str) -> str:
    """Replace every recognisable piece of key material in *text*."""
    text = _SECRET_KEY_RE.sub(REDACTED, text)
    text = _LABELLED_KEY_RE.sub(lambda m: m.group(1) + REDACTED_RAW, text)
    return _RAW_KEY_RE.sub(REDACTED_RAW, text)


class KeyMaterialFilter(logging.Filter):
    """Rewrite records so that secret and raw provider keys are replaced."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class _JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_obj["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(log_obj, default=str)


class _HumanFormatter(logging.Formatter):
    """Coloured, concise single-line format."""

    COLOURS = {
        "DEBUG": "\033[36m",     # cyan
        "INFO": "\033[32m",      # green
        "WARNING": "\033[33m",   # yellow
        "ERROR": "\033[31m",     # red
        "CRITICAL": "\033[1;31m",  # bold red
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        return (
            f"{colour}{ts} [{record.levelname:<7}]{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )


def setup_logging(
    level: str = "INFO",
    fmt: str = "human",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger for the entire application.

    Parameters
    ----------
    level : str
        One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
    fmt : str
        ``"human"`` for coloured single-line output, ``"json"`` for
        newline-delimited JSON.
    log_file : str, optional
        If provided, logs are *also* written to this file (always in JSON
        format for machine parsing).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove any existing handlers (avoid duplicates on reload)
    root.handlers.clear()

    # --- Console handler ---
    console = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        console.setFormatter(_JSONFormatter())
    else:
        console.setFormatter(_HumanFormatter())
    console.addFilter(KeyMaterialFilter())
    root.addHandler(console)

    # --- Optional file handler ---
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path))
        fh.setFormatter(_JSONFormatter())  # always JSON for files
        fh.addFilter(KeyMaterialFilter())
        root.addHandler(fh)
