# tests/conftest.py
from __future__ import annotations

import numpy as np
import pytest
from loguru import logger

from ordinal_sentiment.core.labels import LabeledExample, SentimentLabel
from ordinal_sentiment.models.base import Prediction

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)  # or sys.stderr
    yield


def first_value(vector) -> float:
    return float(np.ravel(np.asarray(vector, dtype=float))[0])


class ThresholdBinaryClassifier:
    """
    Deterministic stand-in for the SVM: thresholds the first feature halfway
    between the two class means. Score is the distance to the threshold.
    """

    def __init__(self):
        self.low_label = None
        self.high_label = None
        self.threshold = 0.0
        self.is_trained = False

    def train(self, dataset):
        assert not self.is_trained
        by_label = {}
        for le in dataset:
            by_label.setdefault(le.label, []).append(first_value(le.example))
        assert len(by_label) == 2, f"expected two labels, got {sorted(by_label)}"
        (l1, v1), (l2, v2) = sorted(by_label.items(), key=lambda kv: np.mean(kv[1]))
        self.low_label, self.high_label = l1, l2
        self.threshold = (np.mean(v1) + np.mean(v2)) / 2
        self.is_trained = True

    def predict(self, vector):
        d = first_value(vector) - self.threshold
        best, other = (self.high_label, self.low_label) if d > 0 else (self.low_label, self.high_label)
        return Prediction([(abs(d), best), (-abs(d), other)])

    def save(self, writer):
        writer.write_bool(self.is_trained)
        writer.write_object(self.low_label)
        writer.write_object(self.high_label)
        writer.write_double(self.threshold)

    @classmethod
    def load(cls, reader):
        model = cls()
        model.is_trained = reader.read_bool()
        model.low_label = reader.read_object()
        model.high_label = reader.read_object()
        model.threshold = reader.read_double()
        return model


@pytest.fixture
def binary_factory():
    return ThresholdBinaryClassifier


def examples(*pairs):
    return [LabeledExample(label, np.array([float(x)])) for x, label in pairs]


@pytest.fixture
def six_examples():
    """Two examples per class on one axis: negative < neutral < positive."""
    return examples((-2.0, NEG), (-1.8, NEG), (0.0, NEU), (0.2, NEU), (2.0, POS), (1.8, POS))


@pytest.fixture
def ordinal_examples():
    """30 examples spread over the axis, 10 per class."""
    rng = np.random.RandomState(0)
    pairs = []
    for center, label in ((-3.0, NEG), (0.0, NEU), (3.0, POS)):
        pairs.extend((center + x, label) for x in rng.uniform(-0.8, 0.8, size=10))
    return examples(*pairs)


class FakeFeatureSpace:
    """Feature space over the text's length; records the texts it was fitted on."""

    def __init__(self):
        self.fitted_texts = None

    def initialize(self, texts):
        assert self.fitted_texts is None
        self.fitted_texts = list(texts)
        return [self.process_document(t) for t in self.fitted_texts]

    def process_document(self, text):
        return np.array([float(len(text))])

    @property
    def vocabulary(self):
        return {t: i for i, t in enumerate(self.fitted_texts or [])}


@pytest.fixture
def fake_feature_space():
    return FakeFeatureSpace
