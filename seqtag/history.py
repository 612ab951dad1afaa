"""History features derived from previously chosen outcomes.

A :class:`HistoryFeatureExtractor` looks at the outcomes a hypothesis has
already committed to and describes that recent label context as ordinary
features, so that the scorer can condition on it. It is a pure function of the
history and its own static configuration.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from .errors import InvalidConfiguration
from .types import Feature

NGRAM_SEPARATOR = "_"


@dataclass(frozen=True)
class HistoryFeatureExtractor:
    """
    Emits unigram and n-gram features over an outcome history.

    Attributes:
        most_recent_count: How many outcomes to emit counting backwards from the
                           end of the history. ``PreviousOutcome_0`` is the
                           immediately preceding outcome.
        least_recent_count: How many outcomes to emit counting forwards from the
                            start of the history (``LeastRecentOutcome_0`` is the
                            first outcome of the sequence).
        use_bigram: Emit the last two outcomes as one conjoined feature.
        use_trigram: Emit the last three outcomes as one conjoined feature.
        use_4gram: Emit the last four outcomes as one conjoined feature.
    """
    most_recent_count: int = 0
    least_recent_count: int = 0
    use_bigram: bool = False
    use_trigram: bool = False
    use_4gram: bool = False

    def __post_init__(self) -> None:
        for name in ("most_recent_count", "least_recent_count"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise InvalidConfiguration(f"{name} must not be negative, got {value}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryFeatureExtractor":
        """Builds an extractor from a config mapping; unset keys disable that contribution."""
        if not isinstance(data, dict):
            raise InvalidConfiguration(f"History feature settings must be a mapping, got {data!r}")
        known = {"most_recent_count", "least_recent_count", "use_bigram", "use_trigram", "use_4gram"}
        unknown = set(data) - known
        if unknown:
            raise InvalidConfiguration(f"Unknown history feature settings: {sorted(unknown)}")
        flags = {}
        for name in ("use_bigram", "use_trigram", "use_4gram"):
            value = data.get(name, False)
            if not isinstance(value, bool):
                raise InvalidConfiguration(f"{name} must be true or false, got {value!r}")
            flags[name] = value
        # Counts are validated by __post_init__.
        return cls(
            most_recent_count=data.get("most_recent_count", 0),
            least_recent_count=data.get("least_recent_count", 0),
            **flags,
        )

    def _ngram_sizes(self) -> List[int]:
        sizes = []
        if self.use_bigram:
            sizes.append(2)
        if self.use_trigram:
            sizes.append(3)
        if self.use_4gram:
            sizes.append(4)
        return sizes

    def extract(self, history: Sequence[Any]) -> List[Feature]:
        """
        Returns the history features for ``history`` in a fixed order.

        Most-recent unigrams come first, then least-recent unigrams, then the
        bigram, trigram and 4-gram. Windows longer than the history are clipped
        and an n-gram is only emitted once the history holds ``n`` outcomes, so
        an empty history always yields an empty list.
        """
        features: List[Feature] = []
        size = len(history)

        for i in range(min(self.most_recent_count, size)):
            features.append(Feature(f"PreviousOutcome_{i}", history[size - 1 - i]))

        for i in range(min(self.least_recent_count, size)):
            features.append(Feature(f"LeastRecentOutcome_{i}", history[i]))

        for n in self._ngram_sizes():
            if size >= n:
                value = NGRAM_SEPARATOR.join(str(outcome) for outcome in history[size - n:])
                features.append(Feature(f"PreviousOutcomes_{n}gram", value))

        return features
