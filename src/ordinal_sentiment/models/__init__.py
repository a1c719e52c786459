# Model implementations: binary planes, bow space and the ordinal ensembles

from .base import ExampleScore, Prediction, TwoPlanePrediction
from .binary import LinearSvmBinaryClassifier
from .cascading import CascadingClassifier, ModelLabel, OneVsAllClassifier
from .feature_space import BowSpace
from .majority import MajorityClassifier
from .models_registry import MODEL_DEFAULTS, ModelKind, display_name, get_model_factory
from .neutral_zone import NeutralZoneBinClassifier, NeutralZoneClassifier
from .replication import ReplicationClassifier
from .two_plane import BiasCalibration, TwoPlaneClassifier
from .voting import (
    BinVotingEnsemble,
    VotingEnsemble,
    three_plane_one_vs_all_voting,
    three_plane_one_vs_one_bin_voting,
    three_plane_one_vs_one_voting,
)

__all__ = [
    "ExampleScore",
    "Prediction",
    "TwoPlanePrediction",
    "LinearSvmBinaryClassifier",
    "CascadingClassifier",
    "ModelLabel",
    "OneVsAllClassifier",
    "BowSpace",
    "MajorityClassifier",
    "MODEL_DEFAULTS",
    "ModelKind",
    "display_name",
    "get_model_factory",
    "NeutralZoneBinClassifier",
    "NeutralZoneClassifier",
    "ReplicationClassifier",
    "BiasCalibration",
    "TwoPlaneClassifier",
    "BinVotingEnsemble",
    "VotingEnsemble",
    "three_plane_one_vs_all_voting",
    "three_plane_one_vs_one_bin_voting",
    "three_plane_one_vs_one_voting",
]
