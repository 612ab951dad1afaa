"""Exceptions raised by the sequence decoder.

Every failure aborts the whole decode; none of these carry a partial result.
"""
from __future__ import annotations
from typing import Optional


class DecoderError(Exception):
    """Base class for all decoder failures."""


class InvalidConfiguration(DecoderError, ValueError):
    """Raised before any scoring when the decoder or an extractor is misconfigured."""


class ScorerFailure(DecoderError):
    """
    Wraps an exception raised by the scorer.

    The original exception is available as ``__cause__``. The decoder does not
    retry; retry policy belongs to the scorer.

    Attributes:
        step: Index of the step whose scoring failed.
    """
    def __init__(self, message: str, step: Optional[int] = None):
        super().__init__(message)
        self.step = step


PropagatedScorerError = ScorerFailure


class NoViablePath(DecoderError):
    """Raised when every hypothesis dies before the input is exhausted."""

    def __init__(self, step: int):
        super().__init__(f"No hypothesis survived step {step}: the scorer returned no candidates.")
        self.step = step
