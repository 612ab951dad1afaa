from __future__ import annotations
from dataclasses import dataclass
from collections.abc import Hashable
from typing import Any, Generic, List, Protocol, Sequence, Tuple, TypeVar, runtime_checkable

__all__ = [
    "Outcome",
    "Feature",
    "Step",
    "ScoredOutcome",
    "Hypothesis",
    "Scorer",
    "OutcomeFeatureExtractor",
]

# Outcomes are opaque to the decoder; they only need to be hashable.
Outcome = Hashable
T = TypeVar("T")


@dataclass(frozen=True)
class Feature:
    """
    A single named feature handed to the scorer.

    Attributes:
        name: The feature name (e.g. ``"position"`` or ``"PreviousOutcome_0"``).
        value: An opaque value. Scorers typically key their weights on the
               pair ``name=value``.
    """
    name: str
    value: Any = None

    def key(self) -> str:
        """Returns the ``name=value`` string used to look up feature weights."""
        if self.value is None:
            return self.name
        return f"{self.name}={self.value}"


Step = Sequence[Feature]


@dataclass(frozen=True)
class ScoredOutcome(Generic[T]):
    """An outcome paired with its score. Higher scores are better."""

    outcome: T
    score: float


@dataclass(frozen=True)
class Hypothesis:
    """
    One partial decoding path on the current beam.

    Hypotheses never reference each other directly. The chart keeps only an
    ``(outcome, parent)`` node per kept hypothesis; ``parent`` is the chart
    index of the parent node, with ``-1`` marking the synthetic root.

    Attributes:
        score: Cumulative score of the path so far.
        history: Outcomes chosen at positions ``0..t-1``, oldest first.
        parent: Chart index of the hypothesis this one extends.
        index: Chart index of this hypothesis.
    """
    score: float
    history: Tuple[Any, ...]
    parent: int
    index: int

    @property
    def depth(self) -> int:
        return len(self.history)


@runtime_checkable
class Scorer(Protocol):
    """Anything that turns a feature list into scored candidate outcomes."""

    def score(self, features: Sequence[Feature], max_candidates: int) -> Sequence[ScoredOutcome]:
        ...


@runtime_checkable
class OutcomeFeatureExtractor(Protocol):
    """Anything that turns an outcome history into additional features."""

    def extract(self, history: Sequence[Any]) -> List[Feature]:
        ...
