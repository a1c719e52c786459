# majority.py
from collections import Counter
from typing import Sequence

from ..core.errors import check_argument, check_state
from ..core.labels import LabeledExample, SentimentLabel
from .base import Prediction


class MajorityClassifier:
    """Baseline: always predicts the most frequent training label (ties by canonical label order)."""

    def __init__(self):
        self.label_counts = Counter()
        self.is_trained = False

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_argument(len(dataset) > 0, "cannot train on an empty dataset")
        self.label_counts = Counter(le.label for le in dataset)
        self.is_trained = True

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "majority classifier is not trained")
        order = {label: i for i, label in enumerate(SentimentLabel)}
        best = min(self.label_counts, key=lambda l: (-self.label_counts[l], order.get(l, len(order))))
        total = sum(self.label_counts.values())
        return Prediction([(self.label_counts[best] / total, best)])
