# binary.py
"""Linear SVM binary classifier over sparse feature rows."""
from __future__ import annotations

from typing import Any, List, Optional, Sequence

import numpy as np
import scipy.sparse as sp
from sklearn.svm import LinearSVC

from ..core.errors import CorruptFormatError, check_argument, check_state
from ..core.labels import LabeledExample
from ..core.serialization import BinaryReader, BinaryWriter
from .base import Prediction


def stack_vectors(vectors: Sequence[Any]):
    """Stacks 1 x n sparse rows (or dense 1-D arrays) into one design matrix."""
    if vectors and sp.issparse(vectors[0]):
        return sp.vstack(vectors, format="csr")
    return np.vstack([np.ravel(np.asarray(v, dtype=float)) for v in vectors])


class LinearSvmBinaryClassifier:
    """
    Two-class linear SVM.

    ``predict`` returns the label on the side of the hyperplane with score
    ``|decision_function|`` first and the other label with the negated score.
    Only the hyperplane (classes, weights, intercept) is kept after training.
    """

    def __init__(self, C: float = 1.0, max_iter: int = 1000, class_weight: Optional[str] = None):
        self.C = C
        self.max_iter = max_iter
        self.class_weight = class_weight
        self.classes: List[Any] = []
        self.coef: Optional[np.ndarray] = None
        self.intercept = 0.0
        self.is_trained = False

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "classifier is already trained")
        check_argument(len(dataset) > 0, "cannot train on an empty dataset")
        labels = [le.label for le in dataset]
        check_argument(len(set(labels)) == 2, f"binary classifier needs exactly two labels, got {sorted(set(labels))}")

        X = stack_vectors([le.example for le in dataset])
        y = np.array([int(l) for l in labels])
        clf = LinearSVC(C=self.C, max_iter=self.max_iter, class_weight=self.class_weight)
        clf.fit(X, y)

        # sklearn orders classes ascending; positive decision values mean classes_[1]
        by_value = {int(l): l for l in labels}
        self.classes = [by_value[int(c)] for c in clf.classes_]
        self.coef = np.asarray(clf.coef_, dtype=float).ravel()
        self.intercept = float(clf.intercept_[0])
        self.is_trained = True

    def decision_function(self, vector: Any) -> float:
        check_state(self.is_trained, "classifier is not trained")
        if sp.issparse(vector):
            value = vector.dot(self.coef)
        else:
            value = np.dot(np.ravel(np.asarray(vector, dtype=float)), self.coef)
        return float(np.ravel(value)[0]) + self.intercept

    def predict(self, vector: Any) -> Prediction:
        d = self.decision_function(vector)
        best, other = (self.classes[1], self.classes[0]) if d > 0 else (self.classes[0], self.classes[1])
        return Prediction([(abs(d), best), (-abs(d), other)])

    # ---------------- persistence ----------------

    def save(self, writer: BinaryWriter) -> None:
        writer.write_bool(self.is_trained)
        writer.write_int(len(self.classes))
        for label in self.classes:
            writer.write_object(label)
        coef = self.coef if self.coef is not None else np.zeros(0)
        writer.write_int(len(coef))
        for w in coef:
            writer.write_double(w)
        writer.write_double(self.intercept)

    @classmethod
    def load(cls, reader: BinaryReader) -> "LinearSvmBinaryClassifier":
        model = cls()
        model.is_trained = reader.read_bool()
        model.classes = [reader.read_object() for _ in range(reader.read_count())]
        model.coef = np.array([reader.read_double() for _ in range(reader.read_count())], dtype=float)
        model.intercept = reader.read_double()
        if model.is_trained and len(model.classes) != 2:
            raise CorruptFormatError(f"trained binary classifier with {len(model.classes)} classes")
        return model
