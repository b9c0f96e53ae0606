"""
Logging setup shared by all packages. Loggers live under the "opstation" namespace
and print through a single rich console handler.
"""

from __future__ import annotations

import logging
import os

from rich.logging import RichHandler

ROOT_NAME = "opstation"
_DEFAULT_LEVEL = "INFO"

_configured = False


def _configure_root() -> logging.Logger:
    global _configured
    root = logging.getLogger(ROOT_NAME)
    if _configured:
        return root
    level_name = os.environ.get("OPSTATION_LOG_LEVEL", _DEFAULT_LEVEL).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    handler = RichHandler(show_path=False, log_time_format="[%X.%f]")
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.propagate = False
    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Return the logger `opstation.<name>`, configuring the root handler on first use."""
    root = _configure_root()
    if not name or name == ROOT_NAME:
        return root
    return root.getChild(name)
