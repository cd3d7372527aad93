"""
Error taxonomy for the content pipeline.

A cache miss is not represented here: cache lookups return ``None``.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""
    retryable = False


class ValidationFailure(PipelineError):
    """Generator output failed schema validation and was rejected whole."""


class ConflictRace(PipelineError):
    """
    Concurrent creators collided on the same identity or sequence index
    and the existing data is not equivalent to what was being written.

    Equivalent collisions are resolved as idempotent no-ops and never raised.
    """


class GenerationFailure(PipelineError):
    """The content generator failed, timed out or was cancelled. Nothing was written."""
    retryable = True


class StaleReference(PipelineError):
    """The caller's view is out of date: refresh and retry."""


class NotFound(PipelineError):
    """A referenced topic, outline, chapter or paragraph does not exist."""


class ConfirmationRequired(PipelineError):
    """A destructive action was requested without explicit confirmation."""
