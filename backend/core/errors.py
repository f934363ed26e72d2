"""
Error taxonomy for generation calls.

Every failure that crosses the adapter boundary is one of these, so callers
can decide whether a repeat attempt has any chance of succeeding.
"""


class GenerationError(Exception):
    """Base class for generation failures."""

    retryable = False
    kind = "generation_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(GenerationError):
    """Bad caller input. Never retried."""

    kind = "validation_error"


class FormatError(GenerationError):
    """Backend answered, but not in the expected shape."""

    retryable = True
    kind = "format_error"


class TransientError(GenerationError):
    """Backend unavailable, rate limited or timed out."""

    retryable = True
    kind = "transient_error"


class PrerequisiteMissing(GenerationError):
    """A dependent stage was skipped because its input content is empty."""

    kind = "prerequisite_missing"


class PipelineBusy(ValidationError):
    """A run or a call for the same section is already in flight."""

    kind = "pipeline_busy"
