from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .errors import InvalidConfiguration
from .types import Feature, ScoredOutcome

SCORER_OUTPUTS = ("raw", "probability", "log_probability")


class WeightedScorer:
    """
    Scores outcomes with a linear table of feature weights.

    This is the reference implementation of the :class:`~seqtag.types.Scorer`
    protocol. Each feature is looked up by its ``name=value`` key (see
    :meth:`Feature.key`) and contributes one weight per outcome; features the
    table does not know contribute nothing. History features are treated like
    any other feature, so a table can reward label transitions simply by
    holding weights for keys such as ``PreviousOutcome_0=NOUN``.

    The outcome set is the union of the outcomes named in ``bias`` and in
    ``weights``, in first-seen order. That order also breaks ties between
    equally scored outcomes, which keeps the returned ranking deterministic.

    Attributes:
        w: Mapping of feature key to ``{outcome: weight}``.
        bias: Mapping of outcome to a constant weight added to every score.
        output: ``"raw"`` returns the weight sums, ``"probability"`` normalizes
                them with a softmax and ``"log_probability"`` returns the log of
                that softmax.
        outcomes: The ordered outcome inventory.
    """
    def __init__(
        self,
        weights: Dict[str, Dict[Any, float]],
        bias: Optional[Dict[Any, float]] = None,
        output: str = "raw",
    ):
        if output not in SCORER_OUTPUTS:
            raise InvalidConfiguration(f"output must be one of {SCORER_OUTPUTS}, got {output!r}")
        self.w = weights
        self.bias = dict(bias or {})
        self.output = output

        seen: Dict[Any, None] = dict.fromkeys(self.bias)
        for table in weights.values():
            seen.update(dict.fromkeys(table))
        self.outcomes: List[Any] = list(seen)

    def _get_weight(self, key: str, outcome: Any) -> float:
        """Returns the weight of ``outcome`` for feature ``key``, or 0.0 when absent."""
        try:
            return float(self.w[key].get(outcome, 0.0))
        except (KeyError, AttributeError):
            return 0.0

    def raw_scores(self, features: Sequence[Feature]) -> np.ndarray:
        """Sums bias and feature weights for every outcome, in inventory order."""
        keys = [feature.key() for feature in features]
        totals = np.array([float(self.bias.get(outcome, 0.0)) for outcome in self.outcomes])
        for idx, outcome in enumerate(self.outcomes):
            totals[idx] += sum(self._get_weight(key, outcome) for key in keys)
        return totals

    def _transform(self, totals: np.ndarray) -> np.ndarray:
        if self.output == "raw" or totals.size == 0:
            return totals
        shifted = totals - totals.max()
        log_norm = np.log(np.exp(shifted).sum())
        log_probs = shifted - log_norm
        if self.output == "log_probability":
            return log_probs
        return np.exp(log_probs)

    def score(self, features: Sequence[Feature], max_candidates: int) -> List[ScoredOutcome]:
        """
        Returns the ``max_candidates`` best outcomes for ``features``.

        Args:
            features: The step's base features followed by history features.
            max_candidates: Upper bound on the number of results.

        Returns:
            ``ScoredOutcome`` entries sorted by score, best first.
        """
        values = self._transform(self.raw_scores(features))
        # Stable sort keeps inventory order among equal scores.
        order = np.argsort(-values, kind="stable")[:max_candidates]
        return [ScoredOutcome(self.outcomes[i], float(values[i])) for i in order]
