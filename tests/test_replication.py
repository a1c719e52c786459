#!filepath: tests/test_replication.py
import numpy as np
import pytest
import scipy.sparse as sp

from ordinal_sentiment.core.errors import InvalidStateError
from ordinal_sentiment.core.labels import LabeledExample, SentimentLabel
from ordinal_sentiment.models.base import Prediction
from ordinal_sentiment.models.replication import ReplicationClassifier, append_feature

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE


def examples(*pairs):
    return [LabeledExample(label, np.array([float(x)])) for x, label in pairs]


class ScriptedPlane:
    """Answers by the appended feature: ``low`` for the h1 copy, ``high`` for the h2 copy."""

    def __init__(self, low=(4.0, POS), high=(2.0, POS)):
        self.low = low
        self.high = high
        self.dataset = None
        self.is_trained = False

    def train(self, dataset):
        self.dataset = list(dataset)
        self.is_trained = True

    def predict(self, vector):
        last = float(np.ravel(np.asarray(vector))[-1])
        return Prediction([self.high if last > 0 else self.low])


def test_append_feature_dense():
    row = append_feature(np.array([3.0]), 4.0)
    assert row.shape == (1, 2)
    assert np.allclose(row, [[0.6, 0.8]])


def test_append_feature_sparse():
    row = append_feature(sp.csr_matrix([[3.0, 0.0]]), 4.0)
    assert sp.issparse(row)
    assert np.allclose(row.toarray(), [[0.6, 0.0, 0.8]])


def test_training_set_is_replicated():
    planes = []

    def factory():
        planes.append(ScriptedPlane())
        return planes[-1]

    model = ReplicationClassifier(factory, h1=0.0, h2=1.0)
    model.train(examples((-1.0, NEG), (0.0, NEU), (1.0, POS)))
    labels = [le.label for le in planes[0].dataset]
    assert labels == [NEG, NEG, NEG, POS, POS, POS]


def test_agreeing_copies_keep_label_and_score():
    model = ReplicationClassifier(ScriptedPlane, h1=0.0, h2=1.0)
    model.train(examples((1.0, POS)))
    prediction = model.predict(np.array([1.0]))
    assert prediction.best_label == POS
    # only the second copy's score is halved
    assert prediction.best_score == pytest.approx(4.0 + 2.0 / 2)


def test_disagreeing_copies_are_neutral():
    model = ReplicationClassifier(lambda: ScriptedPlane(low=(1.0, NEG), high=(3.0, POS)), h1=0.0, h2=1.0)
    model.train(examples((1.0, POS)))
    prediction = model.predict(np.array([1.0]))
    assert prediction.best_label == NEU
    assert prediction.best_score == pytest.approx(1.0 + 1.5)


def test_predict_before_train():
    with pytest.raises(InvalidStateError):
        ReplicationClassifier(ScriptedPlane).predict(np.array([0.0]))
