"""Shared helpers for posttest."""

from .error_utils import (ConfigFormatError, ErrorCategory, ErrorSeverity,
                          PosttestError, ProcessError, ProtocolError,
                          SpawnError)

__all__ = [
    "ConfigFormatError",
    "ErrorCategory",
    "ErrorSeverity",
    "PosttestError",
    "ProcessError",
    "ProtocolError",
    "SpawnError",
]
