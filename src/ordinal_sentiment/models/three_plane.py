"""
Three-plane classifiers that vote with cross-validated plane statistics.

Each plane is trained twice: once per fold of an internal cross-validation,
to collect the scores of its correct predictions and its macro F1, and once
on the whole training set for prediction.

- ``ThreePlaneOneVsOneClassifier``: one plane per label pair, one vote per
  plane, ties broken by the summed percentile of the planes' scores.
- ``ThreePlaneOneVsAllClassifier``: one plane per label against the rest. A
  plane voting for its label casts its macro F1; a plane voting "rest" splits
  the vote over the other two labels by their training share. Ties are broken
  by the summed plane scores.
"""
from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Tuple

from loguru import logger

from ..core.cross_validation import stratified_kfold_indices
from ..core.errors import check_argument, check_state
from ..core.labels import LabeledExample, SentimentLabel, relabel, without_label
from ..core.metrics import PerfMatrix
from ..core.serialization import BinaryReader, BinaryWriter
from .base import ModelOwner, Prediction
from .binary import LinearSvmBinaryClassifier

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE

# (label, other label) per plane; one-vs-one planes drop the third label
ONE_VS_ONE_PLANES: Tuple[Tuple[SentimentLabel, SentimentLabel], ...] = ((POS, NEG), (NEG, NEU), (POS, NEU))
# (label, other label 1, other label 2); the rest is merged into other label 1
ONE_VS_ALL_PLANES: Tuple[Tuple[SentimentLabel, SentimentLabel, SentimentLabel], ...] = (
    (POS, NEG, NEU),
    (NEG, POS, NEU),
    (NEU, POS, NEG),
)


def score_percentile(score: float, scores: Sequence[float]) -> float:
    if not scores:
        return 0.0
    return bisect_left(scores, score) / len(scores)


@dataclass
class ScoredPlane:
    """A trained binary plane with the statistics of its internal cross-validation."""

    model: Any
    label: SentimentLabel
    other_label: SentimentLabel
    weight: float = 0.0
    scores: List[float] = field(default_factory=list)
    other_scores: List[float] = field(default_factory=list)
    other_weights: Dict[SentimentLabel, float] = field(default_factory=dict)

    def percentile(self, label: SentimentLabel, score: float) -> float:
        return score_percentile(score, self.scores if label == self.label else self.other_scores)

    def save(self, writer: BinaryWriter) -> None:
        self.model.save(writer)
        writer.write_double(self.weight)
        writer.write_object(self.label)
        writer.write_object(self.other_label)
        for scores in (self.scores, self.other_scores):
            writer.write_int(len(scores))
            for s in scores:
                writer.write_double(s)
        writer.write_dict(self.other_weights)

    @classmethod
    def load(cls, reader: BinaryReader, binary_class=LinearSvmBinaryClassifier) -> "ScoredPlane":
        model = binary_class.load(reader)
        weight = reader.read_double()
        label = reader.read_object()
        other_label = reader.read_object()
        scores = [reader.read_double() for _ in range(reader.read_count())]
        other_scores = [reader.read_double() for _ in range(reader.read_count())]
        return cls(model, label, other_label, weight, scores, other_scores, reader.read_dict())


def train_scored_plane(
    binary_factory: Callable[[], Any],
    dataset: Sequence[LabeledExample],
    label: SentimentLabel,
    other_label: SentimentLabel,
    num_folds: int = 2,
    seed: int = 42,
) -> ScoredPlane:
    """Cross-validates a plane on ``dataset`` (labelled ``label`` / ``other_label`` only), then trains it on all of it."""
    check_argument(all(le.label in (label, other_label) for le in dataset), "dataset has labels outside the plane")
    matrix = PerfMatrix([label, other_label])
    scores: Dict[SentimentLabel, List[float]] = {label: [], other_label: []}
    for train_idx, test_idx in stratified_kfold_indices([le.label for le in dataset], num_folds, seed):
        model = binary_factory()
        model.train([dataset[i] for i in train_idx])
        for i in test_idx:
            le = dataset[i]
            prediction = model.predict(le.example)
            matrix.add_count(le.label, prediction.best_label)
            if prediction.best_label == le.label:
                scores[le.label].append(prediction.best_score)

    model = binary_factory()
    model.train(dataset)
    return ScoredPlane(
        model,
        label,
        other_label,
        weight=matrix.macro_f1(),
        scores=sorted(scores[label]),
        other_scores=sorted(scores[other_label]),
    )


def _best_vote(votes: Dict[SentimentLabel, float], tie_scores: Dict[SentimentLabel, float]) -> Prediction:
    # first label to reach the maximum wins, in voting order
    best = max(votes, key=lambda l: (votes[l], tie_scores[l]))
    return Prediction([(votes[best], best)])


class _ThreePlaneClassifier(ModelOwner):
    def __init__(self, binary_factory: Callable[[], Any] = LinearSvmBinaryClassifier, num_train_folds: int = 2,
                 seed: int = 42):
        check_argument(num_train_folds >= 2, "num_train_folds must be at least 2")
        self.binary_factory = binary_factory
        self.num_train_folds = num_train_folds
        self.seed = seed
        self.planes: List[ScoredPlane] = []
        self.is_trained = False

    def owned_models(self):
        return [plane.model for plane in self.planes]

    def save(self, writer: BinaryWriter) -> None:
        check_state(self.is_trained, "only a trained classifier can be saved")
        writer.write_int(self.num_train_folds)
        writer.write_int(len(self.planes))
        for plane in self.planes:
            plane.save(writer)
        writer.write_bool(self.is_trained)

    @classmethod
    def load(cls, reader: BinaryReader, binary_class=LinearSvmBinaryClassifier):
        model = cls(binary_factory=binary_class, num_train_folds=reader.read_int())
        model.planes = [ScoredPlane.load(reader, binary_class) for _ in range(reader.read_count())]
        model.is_trained = reader.read_bool()
        return model


class ThreePlaneOneVsOneClassifier(_ThreePlaneClassifier):
    """
    Args:
        binary_factory: Creates the binary planes
        num_train_folds: Folds of the internal cross-validation of every plane
        seed: Shuffle seed of the internal cross-validation
    """

    label_votes = {POS: 1.0, NEU: 1.0, NEG: 1.0}

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "three-plane classifier is already trained")
        dataset = list(dataset)
        self.planes = []
        for label, other_label in ONE_VS_ONE_PLANES:
            dropped = next(l for l in SentimentLabel if l not in (label, other_label))
            plane = train_scored_plane(self.binary_factory, without_label(dataset, dropped), label, other_label,
                                       self.num_train_folds, self.seed)
            logger.debug("{} vs {} plane: macro F1 {:.3f}", label, other_label, plane.weight)
            self.planes.append(plane)
        self.is_trained = True

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "three-plane classifier is not trained")
        votes: Dict[SentimentLabel, float] = {}
        percentiles: Dict[SentimentLabel, float] = {}
        for plane in self.planes:
            prediction = plane.model.predict(vector)
            label = prediction.best_label
            votes[label] = votes.get(label, 0.0) + self.label_votes[label]
            percentiles[label] = percentiles.get(label, 0.0) + plane.percentile(label, prediction.best_score)
        return _best_vote(votes, percentiles)


class ThreePlaneOneVsAllClassifier(_ThreePlaneClassifier):
    """
    Args:
        binary_factory: Creates the binary planes
        num_train_folds: Folds of the internal cross-validation of every plane
        seed: Shuffle seed of the internal cross-validation
    """

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "three-plane classifier is already trained")
        dataset = list(dataset)
        self.planes = []
        for label, other1, other2 in ONE_VS_ALL_PLANES:
            rest = sum(le.label != label for le in dataset)
            check_argument(rest > 0, f"no training examples besides {label}")
            other_weights = {
                other1: sum(le.label == other1 for le in dataset) / rest,
                other2: sum(le.label == other2 for le in dataset) / rest,
            }
            relabeled = relabel(dataset, lambda l, label=label, other1=other1: label if l == label else other1)
            plane = train_scored_plane(self.binary_factory, relabeled, label, other1, self.num_train_folds, self.seed)
            plane.other_weights = other_weights
            logger.debug("{} vs rest plane: macro F1 {:.3f}", label, plane.weight)
            self.planes.append(plane)
        self.is_trained = True

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "three-plane classifier is not trained")
        votes: Dict[SentimentLabel, float] = {}
        plane_scores: Dict[SentimentLabel, float] = {}
        for plane in self.planes:
            prediction = plane.model.predict(vector)
            if prediction.best_label == plane.label:
                cast = [(plane.label, plane.weight)]
            else:
                cast = list(plane.other_weights.items())
            for label, vote in cast:
                votes[label] = votes.get(label, 0.0) + vote
                plane_scores[label] = plane_scores.get(label, 0.0) + prediction.best_score
        return _best_vote(votes, plane_scores)
