# cascading.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from ..core.errors import check_argument, check_state
from ..core.labels import LabeledExample, SentimentLabel, relabel, without_label
from .base import ModelOwner, Prediction


class OneVsAllClassifier(ModelOwner):
    """Trains a binary model on ``one_label`` against every other label merged into ``other_label``."""

    def __init__(self, one_label: Any, binary_model, other_label: Optional[Any] = None):
        if other_label is None:
            other_label = next(l for l in SentimentLabel if l != one_label)
        check_argument(one_label != other_label, "one_label and other_label must differ")
        check_argument(binary_model is not None, "binary_model is required")
        self.one_label = one_label
        self.other_label = other_label
        self.binary_model = binary_model
        self.is_trained = False

    def owned_models(self):
        return [self.binary_model]

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        self.binary_model.train(relabel(dataset, lambda l: self.one_label if l == self.one_label else self.other_label))
        self.is_trained = True

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "one-vs-all classifier is not trained")
        return self.binary_model.predict(vector)


@dataclass
class ModelLabel:
    model: Any
    label: Any = None


class CascadingClassifier(ModelOwner):
    """
    Chain of models, each one responsible for a single label.

    Every stage but the last trains on the examples left over by the previous
    stages and then removes its own label from them. At prediction time the
    first stage whose best label is its own label answers; otherwise the last
    model decides.
    """

    def __init__(self, model_labels: Sequence[ModelLabel]):
        model_labels = list(model_labels)
        check_argument(len(model_labels) >= 2, "a cascade needs at least two models")
        check_argument(
            all(ml.label is not None for ml in model_labels[:-1]),
            "every stage but the last needs a label",
        )
        self.model_labels = model_labels
        self.is_trained = False

    def owned_models(self):
        return [ml.model for ml in self.model_labels]

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "cascading classifier is already trained")
        dataset = list(dataset)
        for ml in self.model_labels[:-1]:
            ml.model.train(dataset)
            dataset = without_label(dataset, ml.label)
        self.model_labels[-1].model.train(dataset)
        self.is_trained = True

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "cascading classifier is not trained")
        for ml in self.model_labels[:-1]:
            prediction = ml.model.predict(vector)
            if prediction.best_label == ml.label:
                return prediction
        return self.model_labels[-1].model.predict(vector)


def neutral_first_cascade(binary_factory) -> CascadingClassifier:
    """Neutral-vs-rest first, then negative vs positive."""
    return CascadingClassifier([
        ModelLabel(OneVsAllClassifier(SentimentLabel.NEUTRAL, binary_factory()), SentimentLabel.NEUTRAL),
        ModelLabel(binary_factory()),
    ])
