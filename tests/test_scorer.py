import math

import pytest

from seqtag.beam_search import decode
from seqtag.errors import InvalidConfiguration
from seqtag.history import HistoryFeatureExtractor
from seqtag.scorer import WeightedScorer
from seqtag.types import Feature


def _weights():
    return {
        "shape=Xx": {"B": 2.0, "I": 0.5, "O": -1.0},
        "shape=x": {"B": -0.5, "I": 0.2, "O": 0.8},
        "PreviousOutcome_0=O": {"I": -5.0},
        "PreviousOutcome_0=B": {"I": 1.5},
    }


def test_score_sums_bias_and_matching_weights():
    scorer = WeightedScorer(_weights(), bias={"B": 0.5, "O": 1.0})

    results = scorer.score([Feature("shape", "x"), Feature("PreviousOutcome_0", "B")], 3)

    assert [r.outcome for r in results] == ["O", "I", "B"]
    assert results[0].score == pytest.approx(1.8)
    assert results[1].score == pytest.approx(1.7)
    assert results[2].score == pytest.approx(0.0)


def test_score_respects_max_candidates():
    scorer = WeightedScorer(_weights())

    results = scorer.score([Feature("shape", "Xx")], 1)

    assert len(results) == 1
    assert results[0].outcome == "B"


def test_unknown_features_contribute_nothing():
    scorer = WeightedScorer(_weights(), bias={"B": 0.1})

    results = scorer.score([Feature("unseen", "value")], 3)

    assert {r.outcome: r.score for r in results} == {"B": 0.1, "I": 0.0, "O": 0.0}


def test_equal_scores_keep_inventory_order():
    scorer = WeightedScorer({"f": {"X": 1.0, "Y": 1.0, "Z": 1.0}})

    results = scorer.score([Feature("f")], 3)

    assert [r.outcome for r in results] == ["X", "Y", "Z"]


def test_probability_output_is_normalized():
    scorer = WeightedScorer(_weights(), bias={"B": 0.5, "O": 1.0}, output="probability")

    results = scorer.score([Feature("shape", "Xx")], 3)

    assert sum(r.score for r in results) == pytest.approx(1.0)
    assert results[0].outcome == "B"


def test_log_probability_output_matches_log_of_probability():
    probs = WeightedScorer(_weights(), output="probability").score([Feature("shape", "x")], 3)
    logs = WeightedScorer(_weights(), output="log_probability").score([Feature("shape", "x")], 3)

    for p, lp in zip(probs, logs):
        assert p.outcome == lp.outcome
        assert math.isclose(math.log(p.score), lp.score, rel_tol=1e-9, abs_tol=1e-12)


def test_rejects_unknown_output_mode():
    with pytest.raises(InvalidConfiguration):
        WeightedScorer(_weights(), output="odds")


def test_transition_weights_steer_decoding():
    weights = dict(_weights(), **{"PreviousOutcome_0=B": {"I": 3.0}})
    scorer = WeightedScorer(weights, bias={"B": 0.5, "O": 1.0})
    steps = [[Feature("shape", "Xx")], [Feature("shape", "x")], [Feature("shape", "x")]]

    with_history = decode(steps, 3, scorer, [HistoryFeatureExtractor(most_recent_count=1)])
    without_history = decode(steps, 3, scorer)

    assert with_history == ["B", "I", "O"]
    assert without_history == ["B", "O", "O"]
