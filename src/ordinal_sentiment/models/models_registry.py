# models_registry.py
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..core.labels import SentimentLabel
from .binary import LinearSvmBinaryClassifier
from .cascading import neutral_first_cascade
from .majority import MajorityClassifier
from .neutral_zone import NeutralZoneBinClassifier, NeutralZoneClassifier, NeutralZoneReliabilityClassifier
from .replication import ReplicationClassifier
from .three_plane import ThreePlaneOneVsAllClassifier, ThreePlaneOneVsOneClassifier
from .two_plane import BiasCalibration, TwoPlaneClassifier
from .voting import (
    VotingEnsemble,
    three_plane_one_vs_all_voting,
    three_plane_one_vs_one_bin_voting,
    three_plane_one_vs_one_voting,
)


class ModelKind(str, Enum):
    MAJORITY = "majority"
    NEUTRAL_ZONE = "neutral_zone"
    NEUTRAL_ZONE_AUTO = "neutral_zone_auto"
    NEUTRAL_ZONE_BIN = "neutral_zone_bin"
    NEUTRAL_ZONE_RELIABILITY = "neutral_zone_reliability"
    TWO_PLANE = "two_plane"
    TWO_PLANE_BINNED = "two_plane_binned"
    TWO_PLANE_PERCENTILE = "two_plane_percentile"
    TWO_PLANE_BIAS = "two_plane_bias"
    TWO_PLANE_CALIBRATED = "two_plane_calibrated"
    THREE_PLANE_ONE_VS_ONE = "three_plane_one_vs_one"
    THREE_PLANE_ONE_VS_ALL = "three_plane_one_vs_all"
    ONE_VS_ONE_VOTING = "one_vs_one_voting"
    ONE_VS_ONE_BIN_VOTING = "one_vs_one_bin_voting"
    ONE_VS_ALL_VOTING = "one_vs_all_voting"
    REPLICATION = "replication"
    TRIPLE_VOTING = "triple_voting"
    CASCADING = "cascading"

    @classmethod
    def parse(cls, value) -> "ModelKind":
        if isinstance(value, ModelKind):
            return value
        try:
            return cls(str(value).strip().lower().replace("-", "_"))
        except ValueError:
            raise ValueError(f"Unknown model: {value}") from None


# parameters of every model kind; overridden per run from the experiment config
MODEL_DEFAULTS: Dict[ModelKind, Dict[str, Any]] = {
    ModelKind.MAJORITY: {},
    ModelKind.NEUTRAL_ZONE: {"neg_centile": 0.3, "pos_centile": 0.3},
    ModelKind.NEUTRAL_ZONE_AUTO: {"is_calc_bounds": True},
    ModelKind.NEUTRAL_ZONE_BIN: {"bin_width": 0.05},
    ModelKind.NEUTRAL_ZONE_RELIABILITY: {"reliability_threshold": 0.5},
    ModelKind.TWO_PLANE: {"is_score_percentile": False},
    ModelKind.TWO_PLANE_BINNED: {"bin_width": 0.1},
    ModelKind.TWO_PLANE_PERCENTILE: {"is_score_percentile": True, "bin_width": 0.0},
    ModelKind.TWO_PLANE_BIAS: {"bias_to_pos_rate": 0.07, "bias_to_neg_rate": 0.04},
    ModelKind.TWO_PLANE_CALIBRATED: {"lower_bound": 0.0, "upper_bound": 0.2, "step": 0.01},
    ModelKind.THREE_PLANE_ONE_VS_ONE: {"num_train_folds": 2},
    ModelKind.THREE_PLANE_ONE_VS_ALL: {"num_train_folds": 2},
    ModelKind.ONE_VS_ONE_VOTING: {},
    ModelKind.ONE_VS_ONE_BIN_VOTING: {"bin_width": 0.1, "entropy_threshold": 1.0},
    ModelKind.ONE_VS_ALL_VOTING: {"entropy_threshold": 1.0},
    ModelKind.REPLICATION: {"h1": 0.8, "h2": 1.0},
    ModelKind.TRIPLE_VOTING: {"centile": 0.3},
    ModelKind.CASCADING: {},
}

DISPLAY_NAMES: Dict[ModelKind, str] = {
    ModelKind.MAJORITY: "Majority",
    ModelKind.NEUTRAL_ZONE: "NeutralZone",
    ModelKind.NEUTRAL_ZONE_AUTO: "NeutralZone - auto calc bounds",
    ModelKind.NEUTRAL_ZONE_BIN: "NeutralZoneBin",
    ModelKind.NEUTRAL_ZONE_RELIABILITY: "NeutralZoneReliability",
    ModelKind.TWO_PLANE: "TwoPlane",
    ModelKind.TWO_PLANE_BINNED: "TwoPlane",
    ModelKind.TWO_PLANE_PERCENTILE: "TwoPlane",
    ModelKind.TWO_PLANE_BIAS: "TwoPlane",
    ModelKind.TWO_PLANE_CALIBRATED: "TwoPlane calibrated",
    ModelKind.THREE_PLANE_ONE_VS_ONE: "ThreePlaneOneVsOne",
    ModelKind.THREE_PLANE_ONE_VS_ALL: "ThreePlaneOneVsAll",
    ModelKind.ONE_VS_ONE_VOTING: "ThreePlaneOneVsOneVoting",
    ModelKind.ONE_VS_ONE_BIN_VOTING: "ThreePlaneOneVsOneBinVoting",
    ModelKind.ONE_VS_ALL_VOTING: "ThreePlaneOneVsAllVoting",
    ModelKind.REPLICATION: "Replication",
    ModelKind.TRIPLE_VOTING: "TripleVoting",
    ModelKind.CASCADING: "Cascading",
}


def model_params(kind: ModelKind, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {**MODEL_DEFAULTS[kind], **(overrides or {})}


def display_name(kind, params: Optional[Dict[str, Any]] = None) -> str:
    """Report name of a configured model; two-plane variants carry their settings."""
    kind = ModelKind.parse(kind)
    p = model_params(kind, params)
    name = DISPLAY_NAMES[kind]
    if kind in (ModelKind.TWO_PLANE, ModelKind.TWO_PLANE_BINNED, ModelKind.TWO_PLANE_PERCENTILE, ModelKind.TWO_PLANE_BIAS):
        if p.get("bias_to_pos_rate", 0) or p.get("bias_to_neg_rate", 0):
            name += f" bias to pos {p.get('bias_to_pos_rate', 0):.2f}, bias to neg {p.get('bias_to_neg_rate', 0):.2f}"
        if p.get("bin_width", 0):
            name += f" {p['bin_width']:.3f}"
        if p.get("is_score_percentile"):
            name += " score-percentile"
    return name


def create_binary_factory(binary_params: Optional[Dict[str, Any]] = None) -> Callable[[], LinearSvmBinaryClassifier]:
    params = dict(binary_params or {})

    def factory():
        return LinearSvmBinaryClassifier(**params)

    return factory


def get_model_factory(
    kind,
    params: Optional[Dict[str, Any]] = None,
    binary_factory: Optional[Callable[[], Any]] = None,
) -> Callable[[], Any]:
    """
    Returns a zero-argument factory creating a fresh, untrained model of ``kind``.

    Args:
        kind: ``ModelKind`` or its name
        params: Overrides of ``MODEL_DEFAULTS[kind]``
        binary_factory: Creates the inner binary planes (linear SVM by default)
    """
    kind = ModelKind.parse(kind)
    p = model_params(kind, params)
    binary = binary_factory or create_binary_factory()

    if kind is ModelKind.MAJORITY:
        return MajorityClassifier

    if kind in (ModelKind.NEUTRAL_ZONE, ModelKind.NEUTRAL_ZONE_AUTO):
        return lambda: NeutralZoneClassifier(binary_factory=binary, **p)

    if kind is ModelKind.NEUTRAL_ZONE_BIN:
        return lambda: NeutralZoneBinClassifier(binary_factory=binary, **p)

    if kind is ModelKind.NEUTRAL_ZONE_RELIABILITY:
        return lambda: NeutralZoneReliabilityClassifier(binary_factory=binary, **p)

    if kind in (ModelKind.TWO_PLANE, ModelKind.TWO_PLANE_BINNED, ModelKind.TWO_PLANE_PERCENTILE, ModelKind.TWO_PLANE_BIAS):
        return lambda: TwoPlaneClassifier(binary_factory=binary, **p)

    if kind is ModelKind.TWO_PLANE_CALIBRATED:
        bounds = (p["lower_bound"], p["upper_bound"], p["step"])
        rest = {k: v for k, v in p.items() if k not in ("lower_bound", "upper_bound", "step")}
        # calibration objects carry results, so every model gets its own
        return lambda: TwoPlaneClassifier(
            binary_factory=binary,
            pos_bias_calibration=BiasCalibration(*bounds),
            neg_bias_calibration=BiasCalibration(*bounds),
            **rest,
        )

    if kind is ModelKind.THREE_PLANE_ONE_VS_ONE:
        return lambda: ThreePlaneOneVsOneClassifier(binary_factory=binary, **p)

    if kind is ModelKind.THREE_PLANE_ONE_VS_ALL:
        return lambda: ThreePlaneOneVsAllClassifier(binary_factory=binary, **p)

    if kind is ModelKind.ONE_VS_ONE_VOTING:
        return lambda: three_plane_one_vs_one_voting(lambda i: binary(), **p)

    if kind is ModelKind.ONE_VS_ONE_BIN_VOTING:
        return lambda: three_plane_one_vs_one_bin_voting(lambda i: binary(), **p)

    if kind is ModelKind.ONE_VS_ALL_VOTING:
        return lambda: three_plane_one_vs_all_voting(lambda i: binary(), **p)

    if kind is ModelKind.REPLICATION:
        return lambda: ReplicationClassifier(binary_factory=binary, **p)

    if kind is ModelKind.TRIPLE_VOTING:
        def triple_member(model_idx: int):
            if model_idx == 0:
                return NeutralZoneClassifier(binary_factory=binary, centile=p["centile"])
            if model_idx == 1:
                return TwoPlaneClassifier(binary_factory=binary)
            return three_plane_one_vs_one_voting(lambda i: binary())

        return lambda: VotingEnsemble(3, lambda i, dataset: dataset, triple_member, labels=tuple(SentimentLabel))

    if kind is ModelKind.CASCADING:
        return lambda: neutral_first_cascade(binary)

    raise ValueError(f"Unknown model: {kind}")
