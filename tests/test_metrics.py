#!filepath: tests/test_metrics.py
import numpy as np
import pytest

from ordinal_sentiment.core.labels import SentimentLabel
from ordinal_sentiment.core.metrics import (
    PerfMatrix,
    accuracy_score,
    classification_report,
    confusion_matrix,
    f1_avg_extreme_classes,
    f1_score,
)

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE

Y_TRUE = [NEG, NEG, NEU, NEU, POS, POS]
Y_PRED = [NEG, NEU, NEU, NEU, POS, NEG]


def test_perf_matrix_counts():
    m = PerfMatrix()
    for a, p in zip(Y_TRUE, Y_PRED):
        m.add_count(a, p)
    assert m.total == 6
    assert m.get(NEG, NEU) == 1
    assert m.actual_count(NEU) == 2
    assert m.predicted_count(NEG) == 2
    assert m.labels == [NEG, NEU, POS]
    assert m.accuracy() == pytest.approx(4 / 6)


def test_per_label_scores():
    m = PerfMatrix()
    for a, p in zip(Y_TRUE, Y_PRED):
        m.add_count(a, p)
    assert m.precision(NEG) == pytest.approx(0.5)
    assert m.recall(NEG) == pytest.approx(0.5)
    assert m.f1(NEU) == pytest.approx(2 * (2 / 3) * 1 / (2 / 3 + 1))
    assert m.f1(POS) == pytest.approx(2 * 1 * 0.5 / 1.5)


def test_f1_avg_extreme_classes_ignores_neutral():
    m = PerfMatrix()
    for a, p in zip(Y_TRUE, Y_PRED):
        m.add_count(a, p)
    expected = (m.f1(NEG) + m.f1(POS)) / 2
    assert m.f1_avg_extreme_classes() == pytest.approx(expected)
    assert f1_avg_extreme_classes(m) == pytest.approx(expected)


def test_add_sums_matrices():
    a = PerfMatrix()
    a.add_count(NEG, NEG)
    b = PerfMatrix()
    b.add_count(NEG, NEG, 2)
    b.add_count(POS, NEU)
    a.add(b)
    assert a.get(NEG, NEG) == 3
    assert a.total == 4


def test_empty_matrix_is_zero():
    m = PerfMatrix([NEG, NEU, POS])
    assert m.accuracy() == 0.0
    assert m.macro_f1() == 0.0
    assert m.to_array().shape == (3, 3)


def test_array_functions():
    cm = confusion_matrix(Y_TRUE, Y_PRED, labels=[NEG, NEU, POS])
    assert np.array_equal(cm, np.array([[1, 1, 0], [0, 2, 0], [1, 0, 1]]))
    assert accuracy_score(Y_TRUE, Y_PRED) == pytest.approx(4 / 6)
    assert f1_score(Y_TRUE, Y_PRED, average="micro") == pytest.approx(4 / 6)
    assert len(f1_score(Y_TRUE, Y_PRED, average=None)) == 3
    with pytest.raises(ValueError):
        f1_score(Y_TRUE, Y_PRED, average="nope")


def test_classification_report_lists_labels():
    m = PerfMatrix()
    for a, p in zip(Y_TRUE, Y_PRED):
        m.add_count(a, p)
    report = classification_report(m)
    for name in ("Negative", "Neutral", "Positive", "accuracy", "macro avg"):
        assert name in report
