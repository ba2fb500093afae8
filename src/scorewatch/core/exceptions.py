"""Custom exceptions for Scorewatch."""


class ScorewatchError(Exception):
    """Base exception for all Scorewatch errors."""

    def __init__(self, message: str, *args: object) -> None:
        self.message = message
        super().__init__(message, *args)


# Provider errors
class ProviderError(ScorewatchError):
    """Base error for external data providers."""


class ScoreProviderError(ProviderError):
    """Score provider call failed (transport or unexpected payload)."""


# Processing errors
class ProcessingError(ScorewatchError):
    """Base error for processing layer."""


class ReportGenerationError(ProcessingError):
    """LLM change report could not be generated."""


# Monitoring errors
class MonitoringError(ScorewatchError):
    """Base error for the monitoring pass."""


class BatchFetchError(MonitoringError):
    """The next batch of companies could not be loaded. Fatal for the pass."""


# Storage errors
class StorageError(ScorewatchError):
    """Base error for storage layer."""


class DatabaseConnectionError(StorageError):
    """Failed to connect to database."""


class RedisConnectionError(StorageError):
    """Failed to connect to Redis."""


# Notification errors
class NotificationError(ScorewatchError):
    """Base error for notification layer."""


class DeliveryError(NotificationError):
    """A single notification could not be delivered."""
