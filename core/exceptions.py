"""
Custom exceptions for the lunch order automation.

Exception Hierarchy:
    LunchOrderError (base)
    ├── ConfigurationError      - Missing credentials or paths (startup failure)
    ├── SurfaceError            - Interaction with the ordering website failed
    │   ├── SurfaceTimeoutError   - A wait or navigation timed out
    │   └── ElementNotFoundError  - An expected element was not on the page
    ├── UserNotFoundError       - Identity is not registered
    ├── CatalogError            - Menu catalog missing or malformed
    ├── NotificationError       - Run summary could not be published
    └── RunInProgressError      - Another run is still using the ordering account

Usage:
    Startup errors (ConfigurationError) stop the CLI before a browser is opened.
    SurfaceError and its subclasses are transient: steps turn them into
    retryable failures. The remaining runtime errors are structural and
    steps turn them into fatal failures.
"""

from typing import Optional, Dict, Any


class LunchOrderError(Exception):
    """
    Base exception for all lunch order errors.

    All custom exceptions inherit from this class, allowing callers to catch
    every application-specific error with a single except clause.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# STARTUP ERRORS
# =============================================================================

class ConfigurationError(LunchOrderError):
    """
    A required configuration value is missing or invalid.

    Typical causes:
    - ORDERING_USERNAME / ORDERING_PASSWORD not set in .env
    - DATA_DIR does not exist
    """

    def __init__(self, setting: str, message: Optional[str] = None):
        super().__init__(
            message or f"Configuration value {setting} is missing or invalid",
            {"setting": setting, "resolution": f"Set {setting} in the environment or .env file"},
        )
        self.setting = setting


# =============================================================================
# SURFACE ERRORS - transient, eligible for retry
# =============================================================================

class SurfaceError(LunchOrderError):
    """
    An interaction with the ordering website failed.

    The website offers no transactional guarantees and renders lazily, so
    these failures are treated as transient: the whole batch is re-attempted
    from a fresh navigation.
    """

    def __init__(self, message: str, action: Optional[str] = None, target: Optional[str] = None):
        details = {}
        if action:
            details["action"] = action
        if target:
            details["target"] = target
        super().__init__(message, details)
        self.action = action
        self.target = target


class SurfaceTimeoutError(SurfaceError):
    """A wait for an element, condition or navigation elapsed."""

    def __init__(self, action: str, timeout_ms: float, target: Optional[str] = None):
        message = f"Timed out after {timeout_ms / 1000:.1f}s waiting to {action}"
        super().__init__(message, action=action, target=target)
        self.timeout_ms = timeout_ms


class ElementNotFoundError(SurfaceError):
    """An element the workflow expects is not present on the page."""

    def __init__(self, target: str):
        super().__init__(f"Element not found: {target}", action="locate", target=target)


# =============================================================================
# STRUCTURAL ERRORS - retry cannot fix these
# =============================================================================

class UserNotFoundError(LunchOrderError):
    """The identity has not registered a name and phone number."""

    def __init__(self, identity: str):
        super().__init__(
            f"User {identity} is not registered",
            {"identity": identity, "resolution": "Register a name and phone number first"},
        )
        self.identity = identity


class CatalogError(LunchOrderError):
    """The menu catalog could not be read or has an unexpected shape."""


class NotificationError(LunchOrderError):
    """The run summary could not be delivered to the notification sink."""


class RunInProgressError(LunchOrderError):
    """A run was requested while another one still owns the ordering account."""

    def __init__(self, run_id: str):
        super().__init__(
            f"Run {run_id[:8]} is still in progress",
            {"run_id": run_id},
        )
        self.run_id = run_id
