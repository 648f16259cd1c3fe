"""
Error types shared across the decision-memory pipeline.

Batch loops catch per-record failures themselves; these types cover the
conditions callers are expected to tell apart.
"""

from typing import Optional


class DecisionMemoryError(Exception):
    """Base class for all decision-memory errors."""
    pass


class LLMConfigurationError(DecisionMemoryError):
    """No LLM back end is configured but one was required."""
    pass


class NoProviderAvailableError(DecisionMemoryError):
    """Every configured back end failed with a retryable error."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.last_error = last_error


class LLMParseError(DecisionMemoryError):
    """Structured output could not be parsed, even after the stricter retry."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class PayloadValidationError(DecisionMemoryError):
    """A raw event payload does not fit the shape of its event kind."""

    def __init__(self, event_id: str, event_type: str, detail: str):
        super().__init__(f"Invalid {event_type} payload for event {event_id}: {detail}")
        self.event_id = event_id
        self.event_type = event_type
