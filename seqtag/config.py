"""Manages the loading and validation of decoder configuration.

This module defines the `Config` dataclass, a typed container for every
decoder setting, and the `load_config` function, which reads those settings
from a `config.yaml` file. Values missing from the file fall back to the
defaults below; values present but invalid are rejected before any decoding
starts.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List

import yaml

from .beam_search import COMBINE_MODES
from .errors import InvalidConfiguration
from .history import HistoryFeatureExtractor
from .scorer import SCORER_OUTPUTS


@dataclass
class Config:
    """
    A typed configuration object holding all decoder settings.

    Attributes:
        stack_size: The beam width, and the number of candidates requested from
                    the scorer per hypothesis.
        prefer_first_on_tie: Keep the earlier generated hypothesis when two
                             cumulative scores are equal.
        combine: How per-step scores accumulate along a path: ``"add"`` or
                 ``"multiply"``.
        max_workers: Number of threads used to score the hypotheses of one step.
        show_progress: Show a progress bar while decoding.
        scorer_output: Output mode of the reference weighted scorer.
        history_features: One settings mapping per history feature extractor,
                          applied in order.
        paths: Relative paths to model files such as the weight table.
    """
    stack_size: int = 4
    prefer_first_on_tie: bool = True
    combine: str = "add"
    max_workers: int = 1
    show_progress: bool = False
    scorer_output: str = "raw"
    history_features: List[Dict[str, Any]] = field(default_factory=list)
    paths: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Raises `InvalidConfiguration` for any setting the decoder would refuse."""
        if isinstance(self.stack_size, bool) or not isinstance(self.stack_size, int) or self.stack_size < 1:
            raise InvalidConfiguration(f"stack_size must be a positive integer, got {self.stack_size!r}")
        if self.combine not in COMBINE_MODES:
            raise InvalidConfiguration(f"combine must be one of {COMBINE_MODES}, got {self.combine!r}")
        if isinstance(self.max_workers, bool) or not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise InvalidConfiguration(f"max_workers must be a positive integer, got {self.max_workers!r}")
        if self.scorer_output not in SCORER_OUTPUTS:
            raise InvalidConfiguration(f"scorer_output must be one of {SCORER_OUTPUTS}, got {self.scorer_output!r}")
        self.build_extractors()

    def build_extractors(self) -> List[HistoryFeatureExtractor]:
        """Instantiates the configured history feature extractors, in order."""
        return [HistoryFeatureExtractor.from_dict(settings) for settings in self.history_features]

    def decoder_options(self) -> Dict[str, Any]:
        """Returns the keyword arguments understood by `decode` and `SequenceDecoder`."""
        return {
            "prefer_first_on_tie": self.prefer_first_on_tie,
            "combine": self.combine,
            "max_workers": self.max_workers,
            "show_progress": self.show_progress,
        }


def load_config(path: str = "config.yaml") -> Config:
    """
    Loads and validates a configuration file into a Config object.

    Args:
        path: The path to the `config.yaml` file.

    Returns:
        A fully populated and validated `Config` object.

    Raises:
        FileNotFoundError: If the specified file cannot be found.
        ValueError: If the file is not valid YAML.
        TypeError: If the root of the YAML file is not a dictionary.
        InvalidConfiguration: If a setting is present but invalid.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            y = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found at: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file at {path}: {e}")

    if y is None:
        y = {}
    if not isinstance(y, dict):
        raise TypeError(f"Configuration file {path} must be a dictionary.")

    history_features = y.get("history_features") or []
    if isinstance(history_features, dict):
        history_features = [history_features]
    if not isinstance(history_features, list):
        raise InvalidConfiguration(f"history_features in {path} must be a list of mappings.")

    defaults = Config()
    cfg = Config(
        stack_size=y.get("stack_size", defaults.stack_size),
        prefer_first_on_tie=bool(y.get("prefer_first_on_tie", defaults.prefer_first_on_tie)),
        combine=str(y.get("combine", defaults.combine)),
        max_workers=y.get("max_workers", defaults.max_workers),
        show_progress=bool(y.get("show_progress", defaults.show_progress)),
        scorer_output=str(y.get("scorer_output", defaults.scorer_output)),
        history_features=[dict(item) if isinstance(item, dict) else item for item in history_features],
        paths=dict(y.get("paths") or {}),
    )
    cfg.validate()
    return cfg
