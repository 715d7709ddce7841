"""Public package surface for kibitz.

Exports ``main`` for programmatic CLI invocation.
Most implementation lives in submodules under ``kibitz``.
"""

from __future__ import annotations

import logging

__version__ = "0.3.0"

# The TUI owns the terminal; log records only go where ``--log-file`` sends them.
logging.getLogger(__name__).addHandler(logging.NullHandler())


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["__version__", "main"]
