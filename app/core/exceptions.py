"""Custom exception hierarchy."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class RunPersistenceError(DatabaseError):
    """Raised when a workflow run or step record cannot be written.

    This is the only failure that aborts a qualification run.
    """
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class UnsupportedDocumentTypeError(ValidationError):
    """Raised when no verification strategy is registered for a document type."""

    def __init__(self, document_type: str):
        super().__init__(f"Unsupported document type: {document_type}")
        self.document_type = document_type


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class WorkflowError(AppError):
    """Base class for workflow orchestration errors."""
    pass


class StepExecutionError(WorkflowError):
    """Raised when a workflow step cannot complete its work."""

    def __init__(
        self,
        step_key: str,
        message: str,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error=original_error)
        self.step_key = step_key


class StepTimeoutError(StepExecutionError):
    """Raised when a workflow step exceeds its wall-clock budget."""

    def __init__(self, step_key: str, timeout_seconds: float):
        super().__init__(
            step_key,
            f"Step timed out after {timeout_seconds:g}s",
        )
        self.timeout_seconds = timeout_seconds


class WorkflowAlreadyRunningError(WorkflowError):
    """Raised when a qualification run is already in flight for a supplier."""
    pass


class RunNotFoundError(WorkflowError):
    """Raised when a workflow run cannot be located."""
    pass
