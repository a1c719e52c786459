#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Performance metrics for ordinal sentiment evaluation.

``PerfMatrix`` accumulates (actual, predicted) counts one example at a time,
which is how the cross-validator and the bias calibration search consume it.
The module-level functions compute the same metrics from label arrays.

Metrics:
- Accuracy
- Precision / Recall / F1 per label, macro and weighted
- Mean F1 of the two extreme classes (negative, positive)
- Confusion matrix and a text classification report
"""

import threading
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from .labels import SentimentLabel

EXTREME_LABELS = (SentimentLabel.NEGATIVE, SentimentLabel.POSITIVE)


def _safe_div(num: float, den: float) -> float:
    return float(num) / den if den else 0.0


class PerfMatrix:
    """
    Confusion matrix accumulator.

    Args:
        labels: Label order used for matrix rows/columns. When None the labels
            seen so far are used, sorted.
    """

    def __init__(self, labels: Optional[Sequence[Any]] = None):
        self._labels = list(labels) if labels is not None else None
        self._counts: Dict[Any, Dict[Any, int]] = defaultdict(lambda: defaultdict(int))
        self._lock = threading.Lock()

    @property
    def labels(self) -> List[Any]:
        if self._labels is not None:
            return list(self._labels)
        seen = set(self._counts)
        for row in self._counts.values():
            seen.update(row)
        return sorted(seen)

    def add_count(self, actual: Any, predicted: Any, count: int = 1) -> None:
        with self._lock:
            self._counts[actual][predicted] += count

    def add(self, other: "PerfMatrix") -> "PerfMatrix":
        for actual, row in other._counts.items():
            for predicted, count in row.items():
                self.add_count(actual, predicted, count)
        return self

    def get(self, actual: Any, predicted: Any) -> int:
        return self._counts.get(actual, {}).get(predicted, 0)

    @property
    def total(self) -> int:
        return sum(sum(row.values()) for row in self._counts.values())

    def actual_count(self, label: Any) -> int:
        return sum(self._counts.get(label, {}).values())

    def predicted_count(self, label: Any) -> int:
        return sum(row.get(label, 0) for row in self._counts.values())

    # ---------------- metrics ----------------

    def accuracy(self) -> float:
        return _safe_div(sum(self.get(l, l) for l in self.labels), self.total)

    def precision(self, label: Any) -> float:
        return _safe_div(self.get(label, label), self.predicted_count(label))

    def recall(self, label: Any) -> float:
        return _safe_div(self.get(label, label), self.actual_count(label))

    def f1(self, label: Any) -> float:
        p, r = self.precision(label), self.recall(label)
        return _safe_div(2 * p * r, p + r)

    def macro_f1(self, labels: Optional[Iterable[Any]] = None) -> float:
        labels = list(labels) if labels is not None else self.labels
        return float(np.mean([self.f1(l) for l in labels])) if labels else 0.0

    def f1_avg_extreme_classes(self, labels: Optional[Iterable[Any]] = None) -> float:
        """Mean F1 of the negative and positive classes, ignoring neutral."""
        labels = set(labels) if labels is not None else set(self.labels) | set(EXTREME_LABELS)
        extremes = [l for l in EXTREME_LABELS if l in labels]
        return float(np.mean([self.f1(l) for l in extremes])) if extremes else 0.0

    def weighted_f1(self) -> float:
        support = [self.actual_count(l) for l in self.labels]
        if sum(support) == 0:
            return 0.0
        return float(np.average([self.f1(l) for l in self.labels], weights=support))

    def to_array(self) -> np.ndarray:
        labels = self.labels
        return np.array([[self.get(a, p) for p in labels] for a in labels], dtype=int)

    def to_dict(self) -> Dict[str, float]:
        scores = {
            "accuracy": self.accuracy(),
            "f1_macro": self.macro_f1(),
            "f1_weighted": self.weighted_f1(),
            "f1_extremes": self.f1_avg_extreme_classes(),
            "support": self.total,
        }
        for label in self.labels:
            name = str(label).lower()
            scores[f"precision_{name}"] = self.precision(label)
            scores[f"recall_{name}"] = self.recall(label)
            scores[f"f1_{name}"] = self.f1(label)
        return scores

    def __repr__(self) -> str:
        return f"PerfMatrix(total={self.total}, accuracy={self.accuracy():.4f})"


def f1_avg_extreme_classes(matrix: PerfMatrix) -> float:
    """Default optimization function of the two-plane bias calibration."""
    return matrix.f1_avg_extreme_classes(list(SentimentLabel))


def perf_matrix(y_true, y_pred, labels: Optional[Sequence[Any]] = None) -> PerfMatrix:
    if len(y_true) != len(y_pred):
        raise ValueError("y_true and y_pred must have the same length")
    matrix = PerfMatrix(labels)
    for actual, predicted in zip(y_true, y_pred):
        matrix.add_count(actual, predicted)
    return matrix


def confusion_matrix(y_true, y_pred, labels: Optional[List] = None) -> np.ndarray:
    """Rows are actual labels, columns predicted labels."""
    return perf_matrix(y_true, y_pred, labels).to_array()


def accuracy_score(y_true, y_pred) -> float:
    return perf_matrix(y_true, y_pred).accuracy()


def f1_score(y_true, y_pred, average: Optional[str] = "macro", labels: Optional[List] = None):
    """
    F1 score.

    Args:
        y_true: Ground truth labels
        y_pred: Predicted labels
        average: 'macro', 'weighted', 'micro', 'extremes' or None (per label array)
        labels: Labels to include (if None, use the labels present)
    """
    matrix = perf_matrix(y_true, y_pred, labels)
    if average is None:
        return np.array([matrix.f1(l) for l in matrix.labels])
    if average == "macro":
        return matrix.macro_f1()
    if average == "weighted":
        return matrix.weighted_f1()
    if average == "micro":
        return matrix.accuracy()
    if average == "extremes":
        return matrix.f1_avg_extreme_classes()
    raise ValueError(f"Unknown averaging strategy: {average}")


def classification_report(matrix: PerfMatrix, digits: int = 3) -> str:
    names = [str(l) for l in matrix.labels]
    width = max([len(n) for n in names] + [len("weighted avg")])

    report = f"{'':>{width}} {'precision':>9} {'recall':>9} {'f1-score':>9} {'support':>9}\n\n"
    for label, name in zip(matrix.labels, names):
        report += (
            f"{name:>{width}} {matrix.precision(label):>9.{digits}f} {matrix.recall(label):>9.{digits}f} "
            f"{matrix.f1(label):>9.{digits}f} {matrix.actual_count(label):>9}\n"
        )
    report += "\n"
    report += f"{'accuracy':>{width}} {'':>9} {'':>9} {matrix.accuracy():>9.{digits}f} {matrix.total:>9}\n"
    report += f"{'macro avg':>{width}} {'':>9} {'':>9} {matrix.macro_f1():>9.{digits}f} {matrix.total:>9}\n"
    report += f"{'weighted avg':>{width}} {'':>9} {'':>9} {matrix.weighted_f1():>9.{digits}f} {matrix.total:>9}\n"
    return report
