"""Beam search over history-conditioned scores.

This module hosts the decoder. Each step extends every surviving hypothesis
with the candidates the scorer proposes for it, where the scorer sees the
step's own features plus features describing the hypothesis' outcome history.
The pooled children are then cut back to ``stack_size`` under a strict total
order (score first, then generation order), so equal scores are resolved the
same way on every run.

Pooled children are plain ``(generation, score, parent, outcome)`` tuples.
Only the survivors of pruning are recorded in the :class:`Chart`, as compact
``(outcome, parent)`` nodes, so the arena holds at most ``stack_size`` records
per step and the final backtrace is O(depth). History tuples live only on the
hypotheses of the current beam.
"""
from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from heapq import nlargest
from typing import Any, Callable, List, NamedTuple, Optional, Sequence, Tuple

from tqdm import tqdm

from .errors import InvalidConfiguration, NoViablePath, ScorerFailure
from .types import Feature, Hypothesis, Outcome, OutcomeFeatureExtractor, ScoredOutcome, Scorer, Step

COMBINE_MODES = ("add", "multiply")

_COMBINERS: dict[str, Callable[[float, float], float]] = {
    "add": lambda path_score, step_score: path_score + step_score,
    "multiply": lambda path_score, step_score: path_score * step_score,
}
_ROOT_SCORES = {"add": 0.0, "multiply": 1.0}


class ChartNode(NamedTuple):
    outcome: Any
    parent: int


class _Candidate(NamedTuple):
    generation: int
    score: float
    parent: int
    outcome: Any


class Chart:
    """Append-only arena of the hypotheses kept during one decode."""

    def __init__(self) -> None:
        self._nodes: List[ChartNode] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, index: int) -> ChartNode:
        return self._nodes[index]

    def root(self, score: float) -> Hypothesis:
        self._nodes.append(ChartNode(None, -1))
        return Hypothesis(score=score, history=(), parent=-1, index=len(self._nodes) - 1)

    def extend(self, parent: Hypothesis, outcome: Outcome, score: float) -> Hypothesis:
        self._nodes.append(ChartNode(outcome, parent.index))
        return Hypothesis(
            score=score,
            history=parent.history + (outcome,),
            parent=parent.index,
            index=len(self._nodes) - 1,
        )

    def backtrace(self, hyp: Hypothesis) -> List[Outcome]:
        """Walks parent links back to the root and returns the outcomes oldest first."""
        outcomes: List[Outcome] = []
        node = self._nodes[hyp.index]
        while node.parent >= 0:
            outcomes.append(node.outcome)
            node = self._nodes[node.parent]
        outcomes.reverse()
        return outcomes


def _validate_stack_size(stack_size: Any) -> int:
    if isinstance(stack_size, bool) or not isinstance(stack_size, int):
        raise InvalidConfiguration(f"stack_size must be an integer, got {stack_size!r}")
    if stack_size < 1:
        raise InvalidConfiguration(f"stack_size must be at least 1, got {stack_size}")
    return stack_size


class SequenceDecoder:
    """Runs the beam search for one input sequence.

    Attributes
    ----------
    steps:
        Base feature sets, one per position.
    stack_size:
        Beam width. Also the number of candidates requested from the scorer
        for every extension.
    scorer:
        Object implementing :class:`~seqtag.types.Scorer`.
    history_extractors:
        Extractors applied, in order, to each hypothesis' history. Their
        features are appended after the step's base features.
    prefer_first_on_tie:
        Among equally scored candidates keep the one generated earlier
        (beam order, then scorer order). ``False`` keeps the later one.
    combine:
        ``"add"`` sums per-step scores; ``"multiply"`` multiplies them, which
        suits scorers that return probabilities.
    max_workers:
        When above 1, the scorer calls of a step run on a thread pool. Results
        are still consumed in beam order so the outcome does not change.
    show_progress:
        Display a ``tqdm`` bar over the steps.
    final_beam:
        Beam left by the last completed :meth:`search`, best first.
    last_path_score:
        Cumulative score of the winning path after :meth:`run`.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        stack_size: int,
        scorer: Scorer,
        history_extractors: Sequence[OutcomeFeatureExtractor] = (),
        prefer_first_on_tie: bool = True,
        combine: str = "add",
        max_workers: int = 1,
        show_progress: bool = False,
    ):
        self.stack_size = _validate_stack_size(stack_size)
        if combine not in COMBINE_MODES:
            raise InvalidConfiguration(f"combine must be one of {COMBINE_MODES}, got {combine!r}")
        if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
            raise InvalidConfiguration(f"max_workers must be a positive integer, got {max_workers!r}")
        for extractor in history_extractors:
            if not callable(getattr(extractor, "extract", None)):
                raise InvalidConfiguration(f"{extractor!r} does not provide an extract(history) method")

        self.steps: List[List[Feature]] = [list(step) for step in steps]
        self.scorer = scorer
        self.history_extractors = tuple(history_extractors)
        self.prefer_first_on_tie = bool(prefer_first_on_tie)
        self.combine = combine
        self.max_workers = max_workers
        self.show_progress = show_progress
        self.chart = Chart()
        self.final_beam: Optional[List[Hypothesis]] = None
        self.last_path_score: Optional[float] = None

    def _features_for(self, step: List[Feature], hyp: Hypothesis) -> List[Feature]:
        features = list(step)
        for extractor in self.history_extractors:
            features.extend(extractor.extract(hyp.history))
        return features

    def _score(self, step_idx: int, features: List[Feature]) -> List[ScoredOutcome]:
        try:
            return list(self.scorer.score(features, self.stack_size))
        except Exception as e:
            raise ScorerFailure(f"Scorer failed at step {step_idx}: {e}", step=step_idx) from e

    def _score_beam(
        self, step_idx: int, feature_sets: List[List[Feature]], executor: Optional[ThreadPoolExecutor]
    ) -> List[List[ScoredOutcome]]:
        if executor is None:
            return [self._score(step_idx, features) for features in feature_sets]

        futures = [executor.submit(self._score, step_idx, features) for features in feature_sets]
        try:
            # Consumed in submission order, never completion order.
            return [future.result() for future in futures]
        except BaseException:
            for future in futures:
                future.cancel()
            raise

    def _rank_key(self, candidate: _Candidate) -> Tuple[float, int]:
        generation = candidate.generation
        return (candidate.score, -generation if self.prefer_first_on_tie else generation)

    def _prune(self, pool: List[_Candidate]) -> List[_Candidate]:
        return nlargest(self.stack_size, pool, key=self._rank_key)

    def _extend(self, step_idx: int, beam: List[Hypothesis], executor: Optional[ThreadPoolExecutor]) -> List[Hypothesis]:
        step = self.steps[step_idx]
        feature_sets = [self._features_for(step, hyp) for hyp in beam]
        scored = self._score_beam(step_idx, feature_sets, executor)

        combine = _COMBINERS[self.combine]
        pool: List[_Candidate] = []
        for beam_pos, (hyp, candidates) in enumerate(zip(beam, scored)):
            for candidate in candidates:
                pool.append(
                    _Candidate(len(pool), combine(hyp.score, candidate.score), beam_pos, candidate.outcome)
                )

        if not pool:
            raise NoViablePath(step_idx)
        # Only survivors reach the chart.
        return [
            self.chart.extend(beam[kept.parent], kept.outcome, kept.score)
            for kept in self._prune(pool)
        ]

    def search(self) -> List[Hypothesis]:
        """
        Executes the beam search and returns the final beam, best first.

        The returned list is ordered by the same score/generation order used
        for pruning, so its first element is the winning hypothesis. For an
        empty input the beam holds only the root and the scorer is never
        called.
        """
        self.chart = Chart()
        self.final_beam = None
        beam = [self.chart.root(_ROOT_SCORES[self.combine])]
        if not self.steps:
            self.final_beam = beam
            return beam

        executor = ThreadPoolExecutor(max_workers=self.max_workers) if self.max_workers > 1 else None
        try:
            for step_idx in tqdm(
                range(len(self.steps)),
                total=len(self.steps),
                desc="Decoding",
                unit="step",
                disable=not self.show_progress,
            ):
                beam = self._extend(step_idx, beam, executor)
        finally:
            if executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)
        self.final_beam = beam
        return beam

    def run(self) -> List[Outcome]:
        """Decodes the sequence and returns one outcome per step."""
        best = self.search()[0]
        self.last_path_score = best.score
        return self.chart.backtrace(best)

    def nbest(self, max_results: int) -> List[ScoredOutcome]:
        """
        Returns up to ``max_results`` complete sequences from the final beam, best first.

        The beam left by a previous :meth:`run` or :meth:`search` is reused,
        so asking for the n-best list after decoding costs no scorer calls.
        """
        if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 1:
            raise InvalidConfiguration(f"max_results must be a positive integer, got {max_results!r}")
        beam = self.final_beam if self.final_beam is not None else self.search()
        self.last_path_score = beam[0].score
        return [ScoredOutcome(self.chart.backtrace(hyp), hyp.score) for hyp in beam[:max_results]]


def decode(
    steps: Sequence[Step],
    stack_size: int,
    scorer: Scorer,
    history_extractors: Sequence[OutcomeFeatureExtractor] = (),
    prefer_first_on_tie: bool = True,
    **options: Any,
) -> List[Outcome]:
    """Finds the best-scoring outcome sequence for ``steps``.

    ``options`` are forwarded to :class:`SequenceDecoder` (``combine``,
    ``max_workers``, ``show_progress``).
    """
    decoder = SequenceDecoder(
        steps, stack_size, scorer, history_extractors, prefer_first_on_tie, **options
    )
    return decoder.run()


def score_sequences(
    steps: Sequence[Step],
    stack_size: int,
    scorer: Scorer,
    history_extractors: Sequence[OutcomeFeatureExtractor] = (),
    prefer_first_on_tie: bool = True,
    max_results: int = 1,
    **options: Any,
) -> List[ScoredOutcome]:
    """Like :func:`decode` but returns the top sequences with their scores."""
    decoder = SequenceDecoder(
        steps, stack_size, scorer, history_extractors, prefer_first_on_tie, **options
    )
    return decoder.nbest(max_results)
