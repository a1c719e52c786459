#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Cross-validation experiment for ordinal 3-class sentiment models.

The experiment coordinates:
1. Data loading and normalisation
2. Model factories from the registry (one per configured model kind)
3. Fold-parallel cross-validation with a fold-local bow space
4. Results collection: summary tables, confusion matrices and the
   distance-probability CSV of the two-plane models
"""
from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from ..core.cross_validation import FoldLocalCrossValidator
from ..core.errors import check_state
from ..core.labels import LabeledExample, SentimentLabel
from ..core.metrics import PerfMatrix, classification_report
from ..logger import timed
from ..models.base import TwoPlanePrediction
from ..models.feature_space import BowSpace
from ..models.models_registry import ModelKind, create_binary_factory, display_name, get_model_factory
from ..models.two_plane import TwoPlaneClassifier
from ..prepare_dataset import load_labeled_dataset
from .config import ValidationConfig
from .reporting import (
    export_summary_table,
    held_out_distribution_table,
    plot_confusion_matrices,
    plot_fold_accuracy,
    write_distance_probs,
)


class ValidationExperiment:
    """
    Runs every configured model through the same k folds.

    Args:
        config: Run configuration
        dataset: Already loaded examples; read from ``config.csv_path`` when None
    """

    def __init__(self, config: ValidationConfig, dataset: Optional[Sequence[LabeledExample]] = None):
        self.config = config
        self.results_dir = Path(config.results_dir)
        self.results_dir.mkdir(parents=True, exist_ok=True)
        self.dataset: Optional[List[LabeledExample]] = list(dataset) if dataset is not None else None
        self.validator: Optional[FoldLocalCrossValidator] = None
        self.results: Dict[str, Any] = {}

        binary_factory = create_binary_factory(config.binary_params())
        self.model_kinds = [ModelKind.parse(m) for m in config.models]
        self.model_names: List[str] = []
        self.model_factories = []
        for kind in self.model_kinds:
            params = config.params_for(kind)
            name = display_name(kind, params)
            if name in self.model_names:
                name = f"{name} ({kind.value})"
            self.model_names.append(name)
            self.model_factories.append(get_model_factory(kind, params, binary_factory))

    # ---------------- steps ----------------

    def load_data(self) -> List[LabeledExample]:
        print("=" * 60)
        print("STEP 1: Loading and Preparing Data")
        print("=" * 60)
        if self.dataset is None:
            self.dataset = load_labeled_dataset(
                self.config.csv_path,
                text_col=self.config.text_column,
                label_col=self.config.label_column,
                normalize=self.config.normalize_text,
                limit=self.config.limit,
            )
        balance = {str(label): sum(1 for le in self.dataset if le.label == label) for label in SentimentLabel}
        print(f"[data] rows={len(self.dataset)}, balance={balance}")
        return self.dataset

    def create_feature_space(self) -> BowSpace:
        return BowSpace(**self.config.bow_params())

    def on_fold_done(self, fold: int, results: Dict[str, PerfMatrix]) -> None:
        for model_idx, name in enumerate(self.model_names):
            model = self.validator.fold_models.get((fold, model_idx))
            if isinstance(model, TwoPlaneClassifier) and (
                model.pos_bias_calibration is not None or model.neg_bias_calibration is not None
            ):
                logger.info(
                    "fold {}, pos bias: {:.2f}, neg bias: {:.2f}, score: {:.2f}",
                    fold,
                    model.bias_to_pos_rate,
                    model.bias_to_neg_rate,
                    results[name].accuracy(),
                )

    @timed("cross-validation")
    def run_validation(self) -> Dict[str, PerfMatrix]:
        print("\n" + "=" * 60)
        print(f"STEP 2: {self.config.num_folds}-fold Cross-Validation")
        print("=" * 60)
        check_state(self.dataset is not None, "load_data() must run before the cross-validation")
        print(f"[info] models: {self.model_names}")
        print(f"[info] workers: {self.config.workers or 'sequential'}")

        self.validator = FoldLocalCrossValidator(
            self.dataset,
            self.model_factories,
            self.create_feature_space,
            num_folds=self.config.num_folds,
            seed=self.config.seed,
            model_names=self.model_names,
            on_fold_done=self.on_fold_done,
        )
        if self.config.workers > 0:
            with ThreadPoolExecutor(max_workers=self.config.workers, thread_name_prefix="fold") as executor:
                sums = self.validator.run(executor, abort_on_error=self.config.abort_on_error)
        else:
            sums = self.validator.run(abort_on_error=self.config.abort_on_error)

        for name, matrix in sums.items():
            print(f"\n{name}")
            print(classification_report(matrix))
        self.results["perf_matrices"] = sums
        return sums

    def two_plane_predictions(self, model_idx: int) -> List[tuple]:
        """Held-out (actual, prediction) pairs of one model over all folds."""
        pairs = []
        for (fold, idx), predictions in sorted(self.validator.fold_predictions.items()):
            if idx == model_idx:
                pairs.extend(p for p in predictions if isinstance(p[1], TwoPlanePrediction))
        return pairs

    def save_results(self) -> Dict[str, Any]:
        print("\n" + "=" * 60)
        print("STEP 3: Saving Results")
        print("=" * 60)
        sums: Dict[str, PerfMatrix] = self.results["perf_matrices"]
        fold_matrices = self.validator.perf_matrices

        export_summary_table(sums, self.results_dir, fold_matrices)
        if self.config.plot:
            plot_confusion_matrices(sums, self.results_dir)
            plot_fold_accuracy(fold_matrices, self.results_dir)

        if self.config.write_distance_probs:
            for model_idx, (kind, name) in enumerate(zip(self.model_kinds, self.model_names)):
                pairs = self.two_plane_predictions(model_idx)
                if not pairs:
                    continue
                table = held_out_distribution_table(pairs, self.config.distance_probs_bin_width)
                write_distance_probs(table, self.results_dir / f"distance_probs_{kind.value}.csv")

        summary = {
            "timestamp": datetime.now().isoformat(timespec="seconds"),
            "config": self.config.to_dict(),
            "models": {
                name: {
                    "overall": matrix.to_dict(),
                    "folds": {str(f): m.to_dict() for f, m in sorted(fold_matrices[name].items())},
                }
                for name, matrix in sums.items()
            },
        }
        out_path = self.results_dir / "experiment_summary.json"
        with open(out_path, "w", encoding="utf-8") as f:
            json.dump(summary, f, ensure_ascii=False, indent=2, default=str)
        print(f"Saved summary: {out_path}")
        return summary

    def run(self) -> Dict[str, Any]:
        self.load_data()
        self.run_validation()
        return self.save_results()
