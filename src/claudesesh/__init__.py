"""claude-sesh: browse, resume, and export Claude Code sessions.

Importing the package installs the stderr log sink, so every entry point
(CLI, ``python -m`` self-tests, library use) logs the same way.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from claudesesh.config.logging import configure_logging

configure_logging()

try:
    __version__ = version("claude-sesh")
except PackageNotFoundError:  # running from a source checkout
    __version__ = "0.0.0"

__all__ = ["__version__"]
