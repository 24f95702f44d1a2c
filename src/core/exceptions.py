"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

Startup failures (configuration, component wiring) are fatal: the host
aborts and the process exits with a non-zero status. Request-level errors
are translated to JSON error envelopes at the API boundary.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationException(ApplicationException):
    """Exception for missing or invalid configuration."""


class ComponentWiringException(ApplicationException):
    """Exception when a component cannot be constructed during startup."""

    def __init__(
        self,
        component: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.component = component
        super().__init__(
            f"Failed to wire component '{component}': {message}",
            details or {"component": component}
        )


class LifecycleException(ApplicationException):
    """Exception for illegal host state transitions."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""
