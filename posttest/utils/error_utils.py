"""
Error types for posttest.

Exchange-level failures (spawn, process, protocol) are fatal to one engine
exchange only and are turned into FAILED records by the run orchestrator.
Configuration failures are fatal to the whole run.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for classification."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    SPAWN = "spawn"
    PROCESS = "process"
    PROTOCOL = "protocol"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class PosttestError(Exception):
    """Base exception class for posttest errors."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN,
                 severity: ErrorSeverity = ErrorSeverity.MEDIUM, context_data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context_data = context_data or {}
        self.timestamp = time.time()

    def __str__(self):
        return f"[{self.category.value}:{self.severity.value}] {super().__str__()}"


class SpawnError(PosttestError):
    """The engine executable could not be launched."""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCategory.SPAWN, ErrorSeverity.HIGH, **kwargs)


class ProcessError(PosttestError):
    """The engine process failed after it was launched."""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCategory.PROCESS, ErrorSeverity.HIGH, **kwargs)


class ProtocolError(PosttestError):
    """The engine exited (or timed out) without the expected UCI data."""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCategory.PROTOCOL, ErrorSeverity.HIGH, **kwargs)


class ConfigFormatError(PosttestError):
    """Malformed or incomplete engine/position configuration."""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCategory.CONFIGURATION, ErrorSeverity.CRITICAL, **kwargs)
