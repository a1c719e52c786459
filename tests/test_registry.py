#!filepath: tests/test_registry.py
import pytest

from ordinal_sentiment.core.labels import SentimentLabel
from ordinal_sentiment.models.binary import LinearSvmBinaryClassifier
from ordinal_sentiment.models.models_registry import (
    MODEL_DEFAULTS,
    ModelKind,
    create_binary_factory,
    display_name,
    get_model_factory,
    model_params,
)


def test_parse_model_kind():
    assert ModelKind.parse("two_plane") is ModelKind.TWO_PLANE
    assert ModelKind.parse(" One-Vs-One-Voting ") is ModelKind.ONE_VS_ONE_VOTING
    assert ModelKind.parse(ModelKind.CASCADING) is ModelKind.CASCADING
    with pytest.raises(ValueError, match="Unknown model"):
        ModelKind.parse("svm")


def test_every_kind_has_defaults():
    assert set(MODEL_DEFAULTS) == set(ModelKind)


def test_model_params_overrides():
    params = model_params(ModelKind.TWO_PLANE_BIAS, {"bias_to_neg_rate": 0.1})
    assert params == {"bias_to_pos_rate": 0.07, "bias_to_neg_rate": 0.1}
    assert MODEL_DEFAULTS[ModelKind.TWO_PLANE_BIAS]["bias_to_neg_rate"] == 0.04


@pytest.mark.parametrize(
    "kind, params, expected",
    [
        ("majority", None, "Majority"),
        ("two_plane", None, "TwoPlane"),
        ("two_plane_bias", None, "TwoPlane bias to pos 0.07, bias to neg 0.04"),
        ("two_plane_binned", None, "TwoPlane 0.100"),
        ("two_plane_percentile", None, "TwoPlane score-percentile"),
        ("two_plane_binned", {"bin_width": 0.05}, "TwoPlane 0.050"),
        ("neutral_zone_auto", None, "NeutralZone - auto calc bounds"),
        ("one_vs_one_bin_voting", None, "ThreePlaneOneVsOneBinVoting"),
        ("three_plane_one_vs_one", None, "ThreePlaneOneVsOne"),
        ("three_plane_one_vs_all", None, "ThreePlaneOneVsAll"),
        ("neutral_zone_reliability", None, "NeutralZoneReliability"),
    ],
)
def test_display_names(kind, params, expected):
    assert display_name(kind, params) == expected


def test_binary_factory_builds_fresh_planes():
    factory = create_binary_factory({"C": 0.5, "max_iter": 200})
    a, b = factory(), factory()
    assert isinstance(a, LinearSvmBinaryClassifier)
    assert a is not b
    assert (a.C, a.max_iter) == (0.5, 200)


@pytest.mark.parametrize("kind", list(ModelKind))
def test_every_kind_trains_and_predicts(kind, binary_factory, ordinal_examples):
    factory = get_model_factory(kind, binary_factory=binary_factory)
    model = factory()
    model.train(ordinal_examples)
    assert model.is_trained
    assert model.predict(ordinal_examples[0].example).best_label in set(SentimentLabel)


def test_factories_create_independent_models(binary_factory):
    factory = get_model_factory("two_plane_calibrated", binary_factory=binary_factory)
    a, b = factory(), factory()
    assert a is not b
    assert a.pos_bias_calibration is not b.pos_bias_calibration
    assert a.neg_bias_calibration is not b.neg_bias_calibration
    assert a.pos_bias_calibration.upper_bound == 0.2


def test_params_reach_the_model(binary_factory):
    model = get_model_factory("neutral_zone", {"neg_centile": 0.1}, binary_factory=binary_factory)()
    assert model.neg_centile == 0.1
    assert model.pos_centile == 0.3
    reliability = get_model_factory("neutral_zone_reliability", {"reliability_threshold": 0.7},
                                    binary_factory=binary_factory)()
    assert reliability.reliability_threshold == 0.7
    assert get_model_factory("three_plane_one_vs_all", {"num_train_folds": 3},
                             binary_factory=binary_factory)().num_train_folds == 3
