"""Service error hierarchy for shot generation and orchestration.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- GenerationError: Failures reported by the image generation backend
- PersistenceError: Snapshot store failures (always non-fatal)
- OrchestratorError: Rejected user operations (bad style, unsettled task, ...)
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


# Generation backend errors
class GenerationError(ServiceError):
    """Base exception for generation backend errors."""

    retryable: bool = False


class RateLimitedError(GenerationError):
    """Backend rejected the call because of rate limiting (429 / RESOURCE_EXHAUSTED)."""

    retryable = True


class GenerationFailedError(GenerationError):
    """Any other backend failure, including responses without image data."""

    retryable = False


class AnalysisError(ServiceError):
    """Analyzer unavailable or returned malformed output.

    Never escapes the analyzer: callers receive the default descriptor instead.
    """

    pass


class PersistenceError(ServiceError):
    """Snapshot store unavailable or rejected a write."""

    pass


# Orchestrator errors
class OrchestratorError(ServiceError):
    """Base exception for rejected orchestrator operations."""

    pass


class NoSourceImageError(OrchestratorError):
    """Operation requires a source image but none is selected."""

    pass


class UnknownStyleError(OrchestratorError):
    """Style is not part of the active batch."""

    pass


class TaskNotEditableError(OrchestratorError):
    """Task has not settled yet and cannot be edited or retried."""

    pass


class ProjectNotFoundError(OrchestratorError):
    """No stored snapshot exists for the requested project."""

    pass
