"""Provides caller-side helpers for reading decoder inputs and writing results.

The decoder itself never touches files. These helpers define the small JSON
layout used by the command-line entry point: a steps file holding one list of
features per position under a "steps" key, a weights file holding the table
consumed by `WeightedScorer`, and an output file holding the decoded outcomes.
"""
import json
from typing import Any, Dict, List, Optional

from .types import Feature


def _read_json(path: str, what: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"{what} file not found at: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Error decoding JSON from {path}: {e}")


def _to_feature(item: Any, step_idx: int, feat_idx: int, path: str) -> Feature:
    if isinstance(item, dict):
        if "name" not in item:
            raise TypeError(f"Feature {feat_idx} of step {step_idx} in {path} has no 'name'.")
        return Feature(str(item["name"]), item.get("value"))
    if isinstance(item, (list, tuple)) and len(item) == 2:
        return Feature(str(item[0]), item[1])
    if isinstance(item, str):
        return Feature(item)
    raise TypeError(f"Feature {feat_idx} of step {step_idx} in {path} is not a mapping, pair or string.")


def load_steps(path: str) -> List[List[Feature]]:
    """
    Loads per-position base features from a JSON file.

    Each step is a list whose items are either ``{"name": ..., "value": ...}``
    objects, ``[name, value]`` pairs, or bare feature names.

    Args:
        path: The path to the input JSON file.

    Returns:
        One list of `Feature` objects per step.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON.
        TypeError: If the "steps" key is missing or malformed.
    """
    data = _read_json(path, "Steps")
    items = data.get("steps") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise TypeError(f"Expected a 'steps' key with a list of feature lists in {path}")

    steps = []
    for step_idx, step in enumerate(items):
        if not isinstance(step, list):
            raise TypeError(f"Step {step_idx} in {path} is not a list of features.")
        steps.append([_to_feature(item, step_idx, feat_idx, path) for feat_idx, item in enumerate(step)])
    return steps


def load_weights(path: str) -> Dict[str, Any]:
    """
    Loads a weight table for `WeightedScorer`.

    The file must be an object with a "weights" mapping of feature key to
    ``{outcome: weight}`` and may carry a "bias" mapping of outcome to weight.
    """
    data = _read_json(path, "Weights")
    if not isinstance(data, dict) or not isinstance(data.get("weights"), dict):
        raise TypeError(f"Expected a 'weights' mapping in {path}")
    bias = data.get("bias", {})
    if not isinstance(bias, dict):
        raise TypeError(f"Expected 'bias' in {path} to be a mapping of outcome to weight")
    return {"weights": data["weights"], "bias": bias}


def save_outcomes(path: str, outcomes: List[Any], score: Optional[float] = None) -> None:
    """Writes the decoded outcomes (and optionally the path score) as indented JSON."""
    data: Dict[str, Any] = {"outcomes": list(outcomes)}
    if score is not None:
        data["score"] = score
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
