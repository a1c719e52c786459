#!filepath: tests/test_neutral_zone.py
import io

import numpy as np
import pytest

from ordinal_sentiment.core.errors import InvalidArgumentError, InvalidStateError
from ordinal_sentiment.core.labels import LabeledExample, SentimentLabel
from ordinal_sentiment.core.serialization import BinaryReader, BinaryWriter
from ordinal_sentiment.models.neutral_zone import (
    NeutralZoneBinClassifier,
    NeutralZoneClassifier,
    NeutralZoneReliabilityClassifier,
    find_max_exclusive_probability,
)

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE


def v(x):
    return np.array([float(x)])


def test_max_exclusive_probability_separable():
    assert find_max_exclusive_probability([1, 2, 3], [4, 5]) == (0.5, 3)


def test_max_exclusive_probability_overlapping():
    assert find_max_exclusive_probability([1, 3], [2]) == (0.0, 0.0)


def test_max_exclusive_probability_empty():
    assert find_max_exclusive_probability([], [1.0]) is None
    assert find_max_exclusive_probability([1.0], []) is None


def test_centile_bounds(binary_factory, ordinal_examples):
    model = NeutralZoneClassifier(binary_factory, centile=0.5)
    model.train(ordinal_examples)
    assert model.neg_bound < 0 < model.pos_bound
    assert model.predict(v(0.0)).best_label == NEU
    assert model.predict(v(-10.0)).best_label == NEG
    assert model.predict(v(10.0)).best_label == POS


def test_side_centiles_override_shared_one(binary_factory):
    model = NeutralZoneClassifier(binary_factory, centile=0.3, pos_centile=0.1)
    assert model.neg_centile == 0.3
    assert model.pos_centile == 0.1


def test_no_centile_means_no_neutral_zone(binary_factory, ordinal_examples):
    model = NeutralZoneClassifier(binary_factory)
    model.train(ordinal_examples)
    assert (model.neg_bound, model.pos_bound) == (0.0, 0.0)
    assert model.predict(v(0.3)).best_label in (NEG, POS)


def test_centile_out_of_range(binary_factory, ordinal_examples):
    with pytest.raises(InvalidArgumentError):
        NeutralZoneClassifier(binary_factory, centile=1.5).train(ordinal_examples)


def test_calculated_bounds(binary_factory, ordinal_examples):
    model = NeutralZoneClassifier(binary_factory, is_calc_bounds=True)
    model.train(ordinal_examples)
    assert model.neg_bound <= 0 <= model.pos_bound
    assert model.predict(v(-10.0)).best_label == NEG
    assert model.predict(v(10.0)).best_label == POS


def test_training_stats(binary_factory, ordinal_examples):
    model = NeutralZoneClassifier(binary_factory, centile=0.2, is_calc_stats=True)
    model.train(ordinal_examples)
    stats = model.train_stats
    assert len(stats.pos_scores) == 10
    assert len(stats.neg_scores) == 10
    # every fold model scores every neutral example
    assert len(stats.neutral_scores) == 10 * model.num_train_folds
    for err in (stats.pos_as_neutral_err, stats.neg_as_neutral_err,
                stats.neutral_as_pos_err, stats.neutral_as_neg_err):
        assert 0.0 <= err <= 1.0


def test_predict_before_train(binary_factory):
    with pytest.raises(InvalidStateError):
        NeutralZoneClassifier(binary_factory).predict(v(0))
    with pytest.raises(InvalidStateError):
        NeutralZoneBinClassifier(binary_factory).predict(v(0))


def test_neutral_zone_save_load(binary_factory, ordinal_examples):
    model = NeutralZoneClassifier(binary_factory, centile=0.5)
    model.train(ordinal_examples)
    buf = io.BytesIO()
    model.save(BinaryWriter(buf))
    loaded = NeutralZoneClassifier.load(BinaryReader(io.BytesIO(buf.getvalue())), binary_class=binary_factory)
    assert (loaded.neg_bound, loaded.pos_bound) == (model.neg_bound, model.pos_bound)
    for x in (-10.0, 0.0, 10.0):
        assert loaded.predict(v(x)).best_label == model.predict(v(x)).best_label


def test_bin_classifier_predicts_training_examples(binary_factory, ordinal_examples):
    model = NeutralZoneBinClassifier(binary_factory, bin_width=0.5)
    model.train(ordinal_examples)
    for le in ordinal_examples:
        prediction = model.predict(le.example)
        assert prediction.best_label == le.label
        assert len(prediction) == 3


def test_bin_classifier_save_load(binary_factory, ordinal_examples):
    model = NeutralZoneBinClassifier(binary_factory, bin_width=0.5)
    model.train(ordinal_examples)
    buf = io.BytesIO()
    model.save(BinaryWriter(buf))
    loaded = NeutralZoneBinClassifier.load(BinaryReader(io.BytesIO(buf.getvalue())), binary_class=binary_factory)
    assert loaded.bin_width == 0.5
    for le in ordinal_examples[::3]:
        assert loaded.predict(le.example).label_scores == model.predict(le.example).label_scores


# ---------------- reliability ----------------

@pytest.fixture
def polar_examples():
    # threshold of the fake plane lands at 0; average distances are -3 and 3
    pairs = [(-4.0, NEG), (-2.0, NEG), (2.0, POS), (4.0, POS), (0.0, NEU), (0.5, NEU)]
    return [LabeledExample(label, v(x)) for x, label in pairs]


def test_reliability_average_distances(binary_factory, polar_examples):
    model = NeutralZoneReliabilityClassifier(binary_factory)
    model.train(polar_examples)
    assert model.pos_average_distance == pytest.approx(3.0)
    assert model.neg_average_distance == pytest.approx(-3.0)


def test_reliability_threshold_decides_neutral(binary_factory, polar_examples):
    model = NeutralZoneReliabilityClassifier(binary_factory)
    model.train(polar_examples)

    prediction = model.predict(v(2.0))
    assert prediction.best_label == NEU
    assert prediction.best_score == pytest.approx(2.0)
    assert model.predict(v(4.0)).best_label == POS
    assert model.predict(v(-5.0)).best_label == NEG
    assert model.predict(v(0.0)).best_label == NEU
    # reliability is capped at 1
    assert model.reliability(-100.0) == 1.0

    model.reliability_threshold = 0.3
    assert model.predict(v(2.0)).best_label == POS


def test_reliability_reuses_trained_plane(binary_factory, polar_examples):
    plane = binary_factory()
    plane.train([le for le in polar_examples if le.label != NEU])
    model = NeutralZoneReliabilityClassifier(binary_classifier=plane)
    model.train(polar_examples)
    assert model.binary_classifier is plane
    assert model.predict(v(10.0)).best_label == POS


def test_reliability_state_and_arguments(binary_factory, polar_examples):
    with pytest.raises(InvalidStateError):
        NeutralZoneReliabilityClassifier(binary_factory).predict(v(0))
    plane = binary_factory()
    plane.train(polar_examples[:4])
    only_pos = [le for le in polar_examples if le.label == POS]
    with pytest.raises(InvalidArgumentError):
        NeutralZoneReliabilityClassifier(binary_classifier=plane).train(only_pos)


def test_reliability_save_load(binary_factory, polar_examples):
    model = NeutralZoneReliabilityClassifier(binary_factory, reliability_threshold=0.4)
    model.train(polar_examples)
    buf = io.BytesIO()
    model.save(BinaryWriter(buf))
    loaded = NeutralZoneReliabilityClassifier.load(BinaryReader(io.BytesIO(buf.getvalue())), binary_class=binary_factory)
    assert loaded.reliability_threshold == 0.4
    assert (loaded.neg_average_distance, loaded.pos_average_distance) == (
        model.neg_average_distance, model.pos_average_distance)
    for x in (-5.0, -1.0, 0.0, 2.0, 4.0):
        assert loaded.predict(v(x)).label_scores == model.predict(v(x)).label_scores
