#!filepath: tests/test_three_plane.py
import io

import numpy as np
import pytest

from ordinal_sentiment.core.errors import InvalidArgumentError, InvalidStateError
from ordinal_sentiment.core.labels import LabeledExample, SentimentLabel
from ordinal_sentiment.core.serialization import BinaryReader, BinaryWriter
from ordinal_sentiment.models.base import Prediction
from ordinal_sentiment.models.three_plane import (
    ScoredPlane,
    ThreePlaneOneVsAllClassifier,
    ThreePlaneOneVsOneClassifier,
    score_percentile,
    train_scored_plane,
)

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE


class ConstantPlane:
    def __init__(self, label, score):
        self.label = label
        self.score = score

    def predict(self, vector):
        return Prediction([(self.score, self.label)])


def trained(model, planes):
    model.planes = planes
    model.is_trained = True
    return model


def test_score_percentile():
    assert score_percentile(0.5, [0.1, 0.2, 0.3, 0.4]) == 1.0
    assert score_percentile(0.2, [0.1, 0.3, 0.5, 0.7]) == 0.25
    assert score_percentile(0.1, [0.1, 0.3]) == 0.0
    assert score_percentile(1.0, []) == 0.0


def test_scored_plane_collects_correct_scores(binary_factory, six_examples):
    dataset = [le for le in six_examples if le.label != NEU]
    plane = train_scored_plane(binary_factory, dataset, POS, NEG, num_folds=2)
    assert plane.model.is_trained
    assert plane.weight == pytest.approx(1.0)
    assert len(plane.scores) == 2 and len(plane.other_scores) == 2
    assert plane.scores == sorted(plane.scores)


def test_scored_plane_rejects_third_label(binary_factory, six_examples):
    with pytest.raises(InvalidArgumentError):
        train_scored_plane(binary_factory, six_examples, POS, NEG)


# ---------------- one vs one ----------------

def test_one_vs_one_end_to_end(binary_factory, six_examples):
    model = ThreePlaneOneVsOneClassifier(binary_factory)
    model.train(six_examples)
    assert [(p.label, p.other_label) for p in model.planes] == [(POS, NEG), (NEG, NEU), (POS, NEU)]
    for le in six_examples:
        prediction = model.predict(le.example)
        assert prediction.best_label == le.label
        assert prediction.best_score == 2.0


def test_one_vs_one_tie_goes_to_higher_percentile():
    planes = [
        ScoredPlane(ConstantPlane(POS, 0.5), POS, NEG, scores=[0.1, 0.2, 0.3, 0.4]),
        ScoredPlane(ConstantPlane(NEG, 0.2), NEG, NEU, scores=[0.1, 0.3, 0.5, 0.7]),
        ScoredPlane(ConstantPlane(NEU, 0.2), POS, NEU, other_scores=[0.1, 0.3, 0.5, 0.7]),
    ]
    model = trained(ThreePlaneOneVsOneClassifier(), planes)
    prediction = model.predict(np.zeros(1))
    assert prediction.best_label == POS
    assert prediction.best_score == 1.0

    planes[0].scores = [0.6, 0.7]
    assert model.predict(np.zeros(1)).best_label == NEG


def test_one_vs_one_save_load(binary_factory, six_examples):
    model = ThreePlaneOneVsOneClassifier(binary_factory)
    model.train(six_examples)
    buf = io.BytesIO()
    model.save(BinaryWriter(buf))
    loaded = ThreePlaneOneVsOneClassifier.load(BinaryReader(io.BytesIO(buf.getvalue())), binary_class=binary_factory)
    assert loaded.is_trained
    assert loaded.num_train_folds == 2
    for mine, theirs in zip(loaded.planes, model.planes):
        assert (mine.label, mine.other_label, mine.weight) == (theirs.label, theirs.other_label, theirs.weight)
        assert mine.scores == theirs.scores
    for le in six_examples:
        assert loaded.predict(le.example).label_scores == model.predict(le.example).label_scores


# ---------------- one vs all ----------------

def test_one_vs_all_weighted_votes():
    planes = [
        ScoredPlane(ConstantPlane(POS, 1.2), POS, NEG, weight=0.9, other_weights={NEG: 0.5, NEU: 0.5}),
        ScoredPlane(ConstantPlane(POS, 0.4), NEG, POS, weight=0.8, other_weights={POS: 0.5, NEU: 0.5}),
        ScoredPlane(ConstantPlane(NEU, 0.3), NEU, POS, weight=0.7, other_weights={POS: 0.5, NEG: 0.5}),
    ]
    prediction = trained(ThreePlaneOneVsAllClassifier(), planes).predict(np.zeros(1))
    # POS: 0.9 + 0.5, NEU: 0.5 + 0.7, NEG: 0
    assert prediction.best_label == POS
    assert prediction.best_score == pytest.approx(1.4)


def test_one_vs_all_tie_goes_to_larger_plane_scores():
    planes = [
        ScoredPlane(ConstantPlane(POS, 1.2), POS, NEG, weight=0.5, other_weights={NEG: 0.5, NEU: 0.5}),
        ScoredPlane(ConstantPlane(POS, 0.4), NEG, POS, weight=0.5, other_weights={POS: 0.5, NEU: 0.5}),
        ScoredPlane(ConstantPlane(NEU, 0.3), NEU, POS, weight=0.5, other_weights={POS: 0.5, NEG: 0.5}),
    ]
    model = trained(ThreePlaneOneVsAllClassifier(), planes)
    assert model.predict(np.zeros(1)).best_label == POS

    planes[2].model = ConstantPlane(NEU, 2.0)
    assert model.predict(np.zeros(1)).best_label == NEU


def test_one_vs_all_training(binary_factory, ordinal_examples):
    model = ThreePlaneOneVsAllClassifier(binary_factory)
    model.train(ordinal_examples)
    assert [p.label for p in model.planes] == [POS, NEG, NEU]
    for plane in model.planes:
        assert 0.0 <= plane.weight <= 1.0
        # 10 examples per class, so the rest splits evenly
        assert list(plane.other_weights.values()) == [0.5, 0.5]
    assert model.predict(np.array([-3.0])).best_label in set(SentimentLabel)


def test_one_vs_all_save_load(binary_factory, ordinal_examples):
    model = ThreePlaneOneVsAllClassifier(binary_factory)
    model.train(ordinal_examples)
    buf = io.BytesIO()
    model.save(BinaryWriter(buf))
    loaded = ThreePlaneOneVsAllClassifier.load(BinaryReader(io.BytesIO(buf.getvalue())), binary_class=binary_factory)
    assert [p.other_weights for p in loaded.planes] == [p.other_weights for p in model.planes]
    for le in ordinal_examples[::5]:
        assert loaded.predict(le.example).label_scores == model.predict(le.example).label_scores


def test_one_vs_all_needs_other_labels(binary_factory):
    dataset = [LabeledExample(POS, np.array([1.0])), LabeledExample(POS, np.array([2.0]))]
    with pytest.raises(InvalidArgumentError):
        ThreePlaneOneVsAllClassifier(binary_factory).train(dataset)


def test_three_plane_state_checks(binary_factory, six_examples):
    with pytest.raises(InvalidStateError):
        ThreePlaneOneVsOneClassifier(binary_factory).predict(np.zeros(1))
    with pytest.raises(InvalidStateError):
        ThreePlaneOneVsAllClassifier(binary_factory).save(BinaryWriter(io.BytesIO()))
    with pytest.raises(InvalidArgumentError):
        ThreePlaneOneVsOneClassifier(binary_factory, num_train_folds=1)
    model = ThreePlaneOneVsOneClassifier(binary_factory)
    model.train(six_examples)
    with pytest.raises(InvalidStateError):
        model.train(six_examples)
