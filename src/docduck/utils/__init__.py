"""Utilities module for DocDuck.

Shared components for logging, exceptions, clocks and asynchronous helpers.
"""

from docduck.utils import async_utils, clock, exceptions, logging_utils

__all__ = [
    "async_utils",
    "clock",
    "exceptions",
    "logging_utils",
]
