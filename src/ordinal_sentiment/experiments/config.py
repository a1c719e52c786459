# config.py
"""
Experiment configuration.

``ValidationConfig`` holds everything one cross-validation run needs; it can be
read from a JSON file and is then patched from the command line flags.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..core.action_pipe import default_worker_count
from ..models.models_registry import MODEL_DEFAULTS, ModelKind

DEFAULT_MODELS = [
    ModelKind.MAJORITY.value,
    ModelKind.TWO_PLANE.value,
    ModelKind.TWO_PLANE_BINNED.value,
    ModelKind.ONE_VS_ONE_VOTING.value,
    ModelKind.ONE_VS_ONE_BIN_VOTING.value,
]


@dataclass
class ValidationConfig:
    csv_path: str = "data/sentiment_clean.csv"
    text_column: Optional[str] = None
    label_column: Optional[str] = None
    normalize_text: bool = True
    limit: Optional[int] = None

    num_folds: int = 10
    seed: int = 42
    workers: int = field(default_factory=default_worker_count)
    abort_on_error: bool = True

    models: List[str] = field(default_factory=lambda: list(DEFAULT_MODELS))
    model_params: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    # bow space (TF-IDF)
    word_ngram: Tuple[int, int] = (1, 2)
    char_ngram: Optional[Tuple[int, int]] = None
    min_df: int = 2
    max_word_features: int = 50000
    max_char_features: int = 100000

    # binary planes (LinearSVC)
    C: float = 1.0
    max_iter: int = 1000

    results_dir: str = "results"
    write_distance_probs: bool = True
    distance_probs_bin_width: float = 0.5
    plot: bool = True

    log_level: str = "INFO"
    log_dir: Optional[str] = None

    def __post_init__(self):
        self.word_ngram = tuple(self.word_ngram)
        if self.char_ngram is not None:
            self.char_ngram = tuple(self.char_ngram)
        if self.num_folds < 2:
            raise ValueError(f"num_folds must be at least 2, got {self.num_folds}")
        if self.workers < 0:
            raise ValueError(f"workers must be >= 0, got {self.workers}")
        self.models = [ModelKind.parse(m).value for m in self.models]
        for name in self.model_params:
            ModelKind.parse(name)

    def bow_params(self) -> Dict[str, Any]:
        return {
            "word_ngram": self.word_ngram,
            "char_ngram": self.char_ngram,
            "min_df": self.min_df,
            "max_word_features": self.max_word_features,
            "max_char_features": self.max_char_features,
        }

    def binary_params(self) -> Dict[str, Any]:
        return {"C": self.C, "max_iter": self.max_iter}

    def params_for(self, kind) -> Dict[str, Any]:
        """Registry defaults of ``kind`` merged with the overrides of this run."""
        kind = ModelKind.parse(kind)
        overrides = {}
        for name, params in self.model_params.items():
            if ModelKind.parse(name) is kind:
                overrides.update(params)
        return {**MODEL_DEFAULTS[kind], **overrides}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path, **overrides) -> ValidationConfig:
    """Reads a JSON config; keyword overrides that are not None win over the file."""
    with open(Path(path), "r", encoding="utf-8") as f:
        data = json.load(f)
    known = {f.name for f in fields(ValidationConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {unknown}")
    data.update({k: v for k, v in overrides.items() if v is not None})
    return ValidationConfig(**data)


__all__ = ["DEFAULT_MODELS", "MODEL_DEFAULTS", "ValidationConfig", "load_config"]
