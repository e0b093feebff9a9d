"""
Core exception classes for EKS Pause.
"""


class EKSPauseError(Exception):
    """Base exception for all EKS Pause errors."""

    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details


class AuthenticationError(EKSPauseError):
    """Raised when AWS authentication fails."""
    pass


class ConfigurationError(EKSPauseError):
    """Raised when configuration is invalid or missing."""
    pass


class ServiceError(EKSPauseError):
    """Raised when AWS or Kubernetes operations fail."""
    pass


class StateError(EKSPauseError):
    """Raised when snapshot directories cannot be read or written."""
    pass


class UserCancelled(EKSPauseError):
    """Raised when the user declines a confirmation or interrupts a wait."""

    def __init__(self, message: str = "Operation cancelled by user"):
        super().__init__(message)
