# replication.py
"""
Replication wrapper: ordinal 3-class problem as one binary problem.

Every example is duplicated with one extra feature set to ``h1`` or ``h2``
(then L2-normalised). A neutral example becomes negative in the ``h1`` copy
and positive in the ``h2`` copy, so a single negative-vs-positive plane learns
two parallel thresholds. An input is negative or positive when both copies
agree and neutral otherwise.
"""
from __future__ import annotations

from typing import Callable, Sequence, Tuple

import numpy as np
import scipy.sparse as sp
from sklearn.preprocessing import normalize

from ..core.errors import check_state
from ..core.labels import LabeledExample, SentimentLabel
from .base import ModelOwner, Prediction
from .binary import LinearSvmBinaryClassifier

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE


def append_feature(vector, value: float):
    """Appends one column holding ``value`` and L2-normalises the row."""
    if sp.issparse(vector):
        row = sp.hstack([sp.csr_matrix(vector), sp.csr_matrix([[value]])], format="csr")
    else:
        row = np.append(np.ravel(np.asarray(vector, dtype=float)), value).reshape(1, -1)
    return normalize(row, norm="l2")


class ReplicationClassifier(ModelOwner):
    def __init__(self, binary_factory: Callable[[], object] = LinearSvmBinaryClassifier, h1: float = 0.0, h2: float = 1.0):
        self.binary_factory = binary_factory
        self.h1 = h1
        self.h2 = h2
        self.classifier = None
        self.is_trained = False

    def owned_models(self):
        return [self.classifier] if self.classifier is not None else []

    def replicate(self, vector) -> Tuple[object, object]:
        return append_feature(vector, self.h1), append_feature(vector, self.h2)

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "replication classifier is already trained")
        replicated = []
        for le in dataset:
            v1, v2 = self.replicate(le.example)
            replicated.append(LabeledExample(NEG if le.label == NEU else le.label, v1))
            replicated.append(LabeledExample(POS if le.label == NEU else le.label, v2))
        self.classifier = self.binary_factory()
        self.classifier.train(replicated)
        self.is_trained = True

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "replication classifier is not trained")
        v1, v2 = self.replicate(vector)
        pred1 = self.classifier.predict(v1)
        pred2 = self.classifier.predict(v2)

        label = NEU
        if pred1.best_label == POS and pred2.best_label == POS:
            label = POS
        elif pred1.best_label == NEG and pred2.best_label == NEG:
            label = NEG
        # only the second term is halved
        score = abs(pred1.best_score) + abs(pred2.best_score) / 2
        return Prediction([(score, label)])
