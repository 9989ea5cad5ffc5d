"""Unified exception hierarchy for PySession.

All session exceptions inherit from PySessionException, enabling unified
error handling across modules.

Categories:
- SessionConfigurationException: Invalid settings, handler used unconfigured
- SessionLifecycleException: Operations called in the wrong session state
- SessionStorageException: Backend I/O failures (directories, files, clients)
- SessionValueException: Non-scalar values assigned to a session
- SessionPayloadCorruptedException: Stored payload failed authentication
"""

from __future__ import annotations


# =============================================================================
# Base Exception
# =============================================================================


class PySessionException(Exception):
    """Base exception for all PySession errors.

    Carries an optional error code and context dict for structured error data.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "SESSION_LIFECYCLE").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Programming Errors (fatal)
# =============================================================================


class SessionConfigurationException(PySessionException):
    """Configuration value rejected, or a handler used before configuration."""


class SessionLifecycleException(PySessionException):
    """Session operation invoked in a state that does not allow it."""


class SessionValueException(PySessionException):
    """A value that cannot be durably serialized was assigned to a session."""


# =============================================================================
# Infrastructure Errors
# =============================================================================


class SessionStorageException(PySessionException):
    """Session backend failed: directory not creatable, permission denied."""


class SessionPayloadCorruptedException(PySessionException):
    """Encrypted session payload was tampered with or truncated."""
