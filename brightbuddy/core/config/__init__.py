"""
Static configuration exports.

The dynamic ``ConfigManager`` lives in ``brightbuddy.core.config.manager`` and
is imported from there directly; it depends on the logging subsystem, which in
turn reads ``Config`` from this package.
"""

from brightbuddy.core.config.config import Config, Environment, StorageBackend

__all__ = [
    "Config",
    "Environment",
    "StorageBackend",
]
