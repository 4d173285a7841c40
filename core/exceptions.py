"""
Centralized exception hierarchy for domain-specific errors.

This module provides custom exception classes that represent specific
error conditions in the tracking pipeline, so that foreground operations
can turn them into user-facing messages and background work can decide
what to absorb and retry.
"""


class TripTrackerError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(TripTrackerError):
    """Exception raised when caller input fails validation."""


class ExternalServiceError(TripTrackerError):
    """Exception raised when the remote trip API cannot be reached or fails."""


class ConflictingStateError(TripTrackerError):
    """Exception raised when an operation does not fit the current trip state."""


class LocationUnavailableError(TripTrackerError):
    """Exception raised when no location fix can be obtained."""

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        *,
        permission_denied: bool = False,
    ) -> None:
        super().__init__(message, details)
        self.permission_denied = permission_denied


ExternalServiceException = ExternalServiceError
