"""Custom exception types for the PR cycle-time analyzer."""


class CycleTimeError(Exception):
    """Base exception for all recoverable analyzer errors."""


class ConfigurationError(CycleTimeError):
    """Raised when runtime configuration values are missing or invalid."""


class SnapshotError(CycleTimeError):
    """Raised when a pull request snapshot payload cannot be normalized."""
