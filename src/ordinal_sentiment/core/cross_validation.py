# cross_validation.py
"""
Stratified k-fold splitting and the fold-local cross-validator.

Every fold builds its own feature space from its training texts only and
maps its test texts through that space. Then every model gets a fresh
instance per fold and accumulates a fold-local ``PerfMatrix``. The run is two
joined ``ActionPipe`` stages, fold preparation and then one action per
``(fold, model)`` pair, so with an executor the fan-out is folds times models.
"""
from __future__ import annotations

import random
import threading
from concurrent.futures import Executor
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from loguru import logger

from .action_pipe import ActionPipe
from .errors import check_argument, check_state
from .labels import LabeledExample
from .metrics import PerfMatrix

FoldResults = Dict[str, PerfMatrix]


def stratified_kfold_indices(y: Sequence[Hashable], k: int, seed: int = 42) -> List[Tuple[List[int], List[int]]]:
    """(train, test) index lists per fold; labels are spread evenly over the folds."""
    check_argument(k >= 2, "k must be at least 2")
    check_argument(len(y) >= k, f"cannot split {len(y)} examples into {k} folds")
    rng = random.Random(seed)

    buckets: Dict[Hashable, List[int]] = {}
    for i, yi in enumerate(y):
        buckets.setdefault(yi, []).append(i)
    for b in buckets.values():
        rng.shuffle(b)

    # deal each shuffled bucket round robin, continuing where the previous bucket stopped
    test_splits: List[List[int]] = [[] for _ in range(k)]
    position = 0
    for label in sorted(buckets, key=str):
        for i in buckets[label]:
            test_splits[position % k].append(i)
            position += 1

    all_idx = set(range(len(y)))
    out = []
    for j in range(k):
        test_idx = sorted(test_splits[j])
        train_idx = sorted(all_idx - set(test_idx))
        out.append((train_idx, test_idx))
    return out


class FoldLocalCrossValidator:
    """
    Cross-validator with a per-fold feature space.

    Args:
        dataset: ``LabeledExample`` list with raw text examples
        model_factories: One zero-argument factory per evaluated model
        feature_space_factory: Creates an unfitted feature space (``initialize`` / ``process_document``)
        num_folds: Number of folds
        seed: Shuffle seed of the stratified split
        model_names: Display names, defaults to ``model_0``, ``model_1``...
        on_fold_done: Optional ``(fold, results)`` callback, invoked by the worker finishing the fold's last model
    """

    def __init__(
        self,
        dataset: Sequence[LabeledExample],
        model_factories: Sequence[Callable[[], Any]],
        feature_space_factory: Callable[[], Any],
        num_folds: int = 10,
        seed: int = 42,
        model_names: Optional[Sequence[str]] = None,
        on_fold_done: Optional[Callable[[int, FoldResults], None]] = None,
    ):
        check_argument(len(model_factories) > 0, "at least one model factory is required")
        check_argument(feature_space_factory is not None, "feature_space_factory is required")
        if model_names is None:
            model_names = [f"model_{i}" for i in range(len(model_factories))]
        check_argument(len(model_names) == len(model_factories), "one name per model factory is required")
        check_argument(len(set(model_names)) == len(model_names), "model names must be unique")

        self.dataset = list(dataset)
        self.model_factories = list(model_factories)
        self.feature_space_factory = feature_space_factory
        self.num_folds = num_folds
        self.seed = seed
        self.model_names = list(model_names)
        self.on_fold_done = on_fold_done

        self.folds = stratified_kfold_indices([le.label for le in self.dataset], num_folds, seed)

        self._lock = threading.Lock()
        self._fold_feature_spaces: Dict[int, Any] = {}
        self._fold_data: Dict[int, Tuple[List[LabeledExample], List[LabeledExample]]] = {}
        self._fold_pending: Dict[int, int] = {}
        self._fold_models: Dict[Tuple[int, int], Any] = {}
        self._fold_predictions: Dict[Tuple[int, int], List[Tuple[Any, Any]]] = {}
        self.perf_matrices: Dict[str, Dict[int, PerfMatrix]] = {name: {} for name in self.model_names}

    # ---------------- fold-indexed results ----------------

    def _publish(self, mapping: Dict, key, value) -> None:
        with self._lock:
            check_state(key not in mapping, f"result for {key} is already registered")
            mapping[key] = value

    @property
    def fold_feature_spaces(self) -> Dict[int, Any]:
        with self._lock:
            return dict(self._fold_feature_spaces)

    @property
    def fold_models(self) -> Dict[Tuple[int, int], Any]:
        with self._lock:
            return dict(self._fold_models)

    @property
    def fold_predictions(self) -> Dict[Tuple[int, int], List[Tuple[Any, Any]]]:
        """(actual label, prediction) pairs per ``(fold, model_idx)``."""
        with self._lock:
            return dict(self._fold_predictions)

    def get_sum_perf_matrix(self, model_name: str) -> PerfMatrix:
        check_argument(model_name in self.perf_matrices, f"unknown model {model_name!r}")
        total = PerfMatrix()
        with self._lock:
            matrices = list(self.perf_matrices[model_name].values())
        for matrix in matrices:
            total.add(matrix)
        return total

    # ---------------- folds ----------------

    def split(self, fold: int) -> Tuple[List[LabeledExample], List[LabeledExample]]:
        """Train and test partitions of ``fold`` (1-based)."""
        check_argument(1 <= fold <= self.num_folds, f"fold {fold} out of range")
        train_idx, test_idx = self.folds[fold - 1]
        return [self.dataset[i] for i in train_idx], [self.dataset[i] for i in test_idx]

    def map_train_set(self, fold: int, train_set: Sequence[LabeledExample]) -> List[LabeledExample]:
        space = self.feature_space_factory()
        self._publish(self._fold_feature_spaces, fold, space)
        vectors = space.initialize([le.example for le in train_set])
        check_state(len(vectors) == len(train_set), "feature space returned a wrong number of vectors")
        return [LabeledExample(le.label, vec) for le, vec in zip(train_set, vectors)]

    def map_test_set(self, fold: int, test_set: Sequence[LabeledExample]) -> List[LabeledExample]:
        with self._lock:
            space = self._fold_feature_spaces[fold]
        return [LabeledExample(le.label, space.process_document(le.example)) for le in test_set]

    def prepare_fold(self, fold: int) -> None:
        """Splits ``fold`` and maps both partitions through a feature space fitted on its training texts."""
        logger.info("Fold {}/{}: started", fold, self.num_folds)
        train_set, test_set = self.split(fold)
        mapped_train = self.map_train_set(fold, train_set)
        mapped_test = self.map_test_set(fold, test_set)
        self._publish(self._fold_data, fold, (mapped_train, mapped_test))

    def run_model(self, fold: int, model_idx: int) -> PerfMatrix:
        """Trains model ``model_idx`` on a prepared fold and scores its test partition."""
        with self._lock:
            check_state(fold in self._fold_data, f"fold {fold} is not prepared")
            mapped_train, mapped_test = self._fold_data[fold]
        name = self.model_names[model_idx]
        model = self.model_factories[model_idx]()
        self._publish(self._fold_models, (fold, model_idx), model)
        model.train(mapped_train)

        matrix = PerfMatrix()
        predictions = []
        for le in mapped_test:
            prediction = model.predict(le.example)
            matrix.add_count(le.label, prediction.best_label)
            predictions.append((le.label, prediction))
        self._publish(self._fold_predictions, (fold, model_idx), predictions)
        with self._lock:
            self.perf_matrices[name][fold] = matrix
            self._fold_pending[fold] = self._fold_pending.get(fold, len(self.model_names)) - 1
            fold_done = self._fold_pending[fold] == 0
        logger.info("Fold {}/{}: {} accuracy={:.4f}", fold, self.num_folds, name, matrix.accuracy())

        if fold_done and self.on_fold_done is not None:
            self.on_fold_done(fold, self.fold_results(fold))
        return matrix

    def fold_results(self, fold: int) -> FoldResults:
        with self._lock:
            return {name: self.perf_matrices[name][fold] for name in self.model_names if fold in self.perf_matrices[name]}

    def run_fold(self, fold: int) -> FoldResults:
        self.prepare_fold(fold)
        for model_idx in range(len(self.model_names)):
            self.run_model(fold, model_idx)
        return self.fold_results(fold)

    def get_fold_tasks(self) -> List[Callable[[], FoldResults]]:
        """One task per fold running every model one after another."""
        return [lambda fold=fold: self.run_fold(fold) for fold in range(1, self.num_folds + 1)]

    def get_fold_and_model_tasks(self) -> Tuple[List[Callable[[], None]], List[Callable[[], PerfMatrix]]]:
        """Fold preparation tasks, then one task per ``(fold, model)`` pair."""
        folds = range(1, self.num_folds + 1)
        prepare = [lambda fold=fold: self.prepare_fold(fold) for fold in folds]
        models = [
            lambda fold=fold, model_idx=model_idx: self.run_model(fold, model_idx)
            for fold in folds
            for model_idx in range(len(self.model_names))
        ]
        return prepare, models

    def run(self, executor: Optional[Executor] = None, abort_on_error: bool = True) -> Dict[str, PerfMatrix]:
        """Runs all folds and returns the summed matrix of every model.

        Every fold is prepared first; the ``(fold, model)`` pairs then run as
        one concurrent stage.

        Raises:
            PipelineExecutionError: when a fold failed.
        """
        prepare, models = self.get_fold_and_model_tasks()
        pipe = ActionPipe(executor, on_exception=lambda e: abort_on_error)
        pipe.join(prepare).join(models)
        pipe.execute()
        return {name: self.get_sum_perf_matrix(name) for name in self.model_names}
