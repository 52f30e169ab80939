"""
Error codes and exceptions.

ErrorCode values are what the event loop hands to the on_error hook. The
numbers are stable so an application can log or map them without importing
the enum.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Conditions reported through ``ServerHooks.on_error``."""

    SOCKET_ESTABLISHMENT = -102   # Provider could not produce a listening socket (fatal)
    BACKLOG_REACHED = 103         # Connection refused, every slot is occupied


class ReactorError(Exception):
    """Base class for tcpreactor errors."""


class ConfigError(ReactorError, ValueError):
    """Invalid ServerConfig value."""


class ConnectionTableError(ReactorError, ValueError):
    """Connection table used outside its invariants."""
