#!filepath: tests/test_config.py
import json

import pytest

from ordinal_sentiment.experiments.config import DEFAULT_MODELS, ValidationConfig, load_config


def test_defaults():
    config = ValidationConfig()
    assert config.models == DEFAULT_MODELS
    assert config.num_folds == 10
    assert config.workers >= 1
    assert config.binary_params() == {"C": 1.0, "max_iter": 1000}


def test_model_names_are_normalized():
    config = ValidationConfig(models=["Two-Plane", "majority"])
    assert config.models == ["two_plane", "majority"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"num_folds": 1},
        {"workers": -1},
        {"models": ["svm"]},
        {"model_params": {"svm": {}}},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        ValidationConfig(**kwargs)


def test_params_for_merges_overrides():
    config = ValidationConfig(model_params={"two-plane-bias": {"bias_to_pos_rate": 0.2}})
    assert config.params_for("two_plane_bias") == {"bias_to_pos_rate": 0.2, "bias_to_neg_rate": 0.04}
    assert config.params_for("two_plane_binned") == {"bin_width": 0.1}


def test_bow_params_are_tuples():
    config = ValidationConfig(word_ngram=[1, 1], char_ngram=[2, 4])
    params = config.bow_params()
    assert params["word_ngram"] == (1, 1)
    assert params["char_ngram"] == (2, 4)


def test_load_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"num_folds": 5, "models": ["majority"], "seed": 1}), encoding="utf-8")
    config = load_config(path, seed=7, workers=None)
    assert config.num_folds == 5
    assert config.models == ["majority"]
    assert config.seed == 7
    assert config.to_dict()["seed"] == 7


def test_load_config_rejects_unknown_keys(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"folds": 5}), encoding="utf-8")
    with pytest.raises(ValueError, match="Unknown config keys"):
        load_config(path)
