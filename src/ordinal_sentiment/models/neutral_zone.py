# neutral_zone.py
"""
Single-plane classifiers with a neutral region.

All train one negative-vs-positive plane without the neutral examples.
``NeutralZoneClassifier`` predicts neutral when the signed plane score falls
between two bounds; ``NeutralZoneBinClassifier`` bins the signed score into a
1-D tag distribution table over all three labels;
``NeutralZoneReliabilityClassifier`` predicts neutral when the score is too
small relative to the average training score of its side.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from ..core.cross_validation import stratified_kfold_indices
from ..core.errors import check_argument, check_state
from ..core.labels import LabeledExample, SentimentLabel, without_label
from ..core.serialization import BinaryReader, BinaryWriter
from ..core.tag_distribution import TagDistributionTable, laplace_distribution
from .base import ModelOwner, Prediction
from .binary import LinearSvmBinaryClassifier

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE


def signed_score(prediction: Prediction) -> float:
    return prediction.best_score if prediction.best_label == POS else -prediction.best_score


def _ratio(count: int, total: int) -> float:
    return count / total if total else 0.0


def find_max_exclusive_probability(scores: Iterable[float], not_scores: Iterable[float]) -> Optional[Tuple[float, float]]:
    """
    Threshold separating ``scores`` (below it) from ``not_scores`` (above it).

    Walks the sorted ``scores`` and maximises P(score <= s) * P(not_score > s).
    Returns ``(max_prob, threshold)`` or None when either population is empty.
    """
    s1 = sorted(scores)
    s2 = sorted(not_scores)
    if not s1 or not s2:
        return None

    max_prob, max_score = 0.0, 0.0
    j = 0
    for i, s in enumerate(s1):
        while j < len(s2) and s2[j] < s:
            j += 1
        if j == len(s2):
            break
        p = (i + 1) / len(s1)
        not_p = 1 - (j + 1) / len(s2)
        if p * not_p > max_prob:
            max_prob, max_score = p * not_p, s
    return max_prob, max_score


@dataclass
class NeutralZoneStats:
    neg_scores: List[float] = field(default_factory=list)
    neutral_scores: List[float] = field(default_factory=list)
    pos_scores: List[float] = field(default_factory=list)
    pos_as_neutral_err: float = 0.0
    neg_as_neutral_err: float = 0.0
    neutral_as_pos_err: float = 0.0
    neutral_as_neg_err: float = 0.0


class NeutralZoneClassifier(ModelOwner):
    """
    Args:
        binary_factory: Creates the negative-vs-positive plane
        centile: Share of correctly classified training scores pushed into the
            neutral zone, for both sides unless ``neg_centile`` / ``pos_centile`` are set
        is_calc_bounds: Derive the bounds from the neutral examples' scores instead
        is_calc_stats: Keep score populations and error rates in ``train_stats``
        num_train_folds: Folds of the internal cross-validation
        seed: Shuffle seed of the internal cross-validation
    """

    def __init__(
        self,
        binary_factory: Callable[[], object] = LinearSvmBinaryClassifier,
        centile: Optional[float] = None,
        neg_centile: Optional[float] = None,
        pos_centile: Optional[float] = None,
        is_calc_bounds: bool = False,
        is_calc_stats: bool = False,
        num_train_folds: int = 2,
        seed: int = 42,
    ):
        self.binary_factory = binary_factory
        self.centile = centile
        self._neg_centile = neg_centile
        self._pos_centile = pos_centile
        self.is_calc_bounds = is_calc_bounds
        self.is_calc_stats = is_calc_stats
        self.num_train_folds = num_train_folds
        self.seed = seed

        self.binary_classifier = None
        self.neg_bound = 0.0
        self.pos_bound = 0.0
        self.train_stats: Optional[NeutralZoneStats] = None
        self.is_trained = False

    @property
    def neg_centile(self) -> Optional[float]:
        return self._neg_centile if self._neg_centile is not None else self.centile

    @property
    def pos_centile(self) -> Optional[float]:
        return self._pos_centile if self._pos_centile is not None else self.centile

    def owned_models(self):
        return [self.binary_classifier] if self.binary_classifier is not None else []

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "neutral-zone classifier is already trained")
        for c in (self.neg_centile, self.pos_centile):
            check_argument(self.is_calc_bounds or c is None or 0 <= c <= 1, "centile must be in [0, 1]")

        train_set = without_label(dataset, NEU)
        neutral_set = [le for le in dataset if le.label == NEU]
        need_neutral = self.is_calc_bounds or self.is_calc_stats

        pos_scores: List[float] = []
        neg_scores: List[float] = []
        neutral_scores: List[float] = []
        folds = stratified_kfold_indices([le.label for le in train_set], self.num_train_folds, self.seed)
        for train_idx, test_idx in folds:
            model = self.binary_factory()
            model.train([train_set[i] for i in train_idx])
            for i in test_idx:
                le = train_set[i]
                prediction = model.predict(le.example)
                if prediction.best_label == le.label:
                    if le.label == POS:
                        pos_scores.append(prediction.best_score)
                    else:
                        neg_scores.append(-prediction.best_score)
            if need_neutral:
                neutral_scores.extend(signed_score(model.predict(le.example)) for le in neutral_set)

        if self.is_calc_bounds:
            neg = find_max_exclusive_probability([-s for s in neutral_scores if s < 0], [-s for s in neg_scores])
            self.neg_bound = -neg[1] if neg is not None else 0.0
            pos = find_max_exclusive_probability([s for s in neutral_scores if s > 0], pos_scores)
            self.pos_bound = pos[1] if pos is not None else 0.0
        else:
            if self.neg_centile is not None:
                ordered = sorted(neg_scores, reverse=True)
                skip = int(len(ordered) * self.neg_centile)
                self.neg_bound = ordered[skip] if skip < len(ordered) else 0.0
            if self.pos_centile is not None:
                ordered = sorted(pos_scores)
                skip = int(len(ordered) * self.pos_centile)
                self.pos_bound = ordered[skip] if skip < len(ordered) else 0.0
        logger.debug("Neutral zone bounds: ({:.3f}, {:.3f})", self.neg_bound, self.pos_bound)

        if self.is_calc_stats:
            self.train_stats = NeutralZoneStats(
                neg_scores=neg_scores,
                neutral_scores=neutral_scores,
                pos_scores=pos_scores,
                pos_as_neutral_err=_ratio(sum(s < self.pos_bound for s in pos_scores), len(pos_scores)),
                neg_as_neutral_err=_ratio(sum(s > self.neg_bound for s in neg_scores), len(neg_scores)),
                neutral_as_pos_err=_ratio(sum(s >= self.pos_bound for s in neutral_scores), len(neutral_scores)),
                neutral_as_neg_err=_ratio(sum(s <= self.neg_bound for s in neutral_scores), len(neutral_scores)),
            )

        self.binary_classifier = self.binary_factory()
        self.binary_classifier.train(train_set)
        self.is_trained = True

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "neutral-zone classifier is not trained")
        prediction = self.binary_classifier.predict(vector)
        score = signed_score(prediction)
        label = NEU if self.neg_bound < score < self.pos_bound else prediction.best_label
        return Prediction([(score, label)])

    def save(self, writer: BinaryWriter) -> None:
        check_state(self.is_trained, "only a trained classifier can be saved")
        writer.write_double(self.neg_bound)
        writer.write_double(self.pos_bound)
        self.binary_classifier.save(writer)
        writer.write_bool(self.is_trained)

    @classmethod
    def load(cls, reader: BinaryReader, binary_class=LinearSvmBinaryClassifier) -> "NeutralZoneClassifier":
        model = cls(binary_factory=binary_class)
        model.neg_bound = reader.read_double()
        model.pos_bound = reader.read_double()
        model.binary_classifier = binary_class.load(reader)
        model.is_trained = reader.read_bool()
        return model


class NeutralZoneBinClassifier(ModelOwner):
    def __init__(self, binary_factory: Callable[[], object] = LinearSvmBinaryClassifier, bin_width: float = 0.01):
        self.binary_factory = binary_factory
        self.bin_width = bin_width
        self.binary_classifier = None
        self.tag_distr_table: Optional[TagDistributionTable] = None
        self.is_trained = False

    def owned_models(self):
        return [self.binary_classifier] if self.binary_classifier is not None else []

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "neutral-zone bin classifier is already trained")
        self.binary_classifier = self.binary_factory()
        self.binary_classifier.train(without_label(dataset, NEU))

        table = TagDistributionTable.for_labels(1, self.bin_width, -5.0, 5.0, calc_distr_func=laplace_distribution)
        for le in dataset:
            table.add_count(le.label, signed_score(self.binary_classifier.predict(le.example)))
        table.calculate()
        self.tag_distr_table = table
        self.is_trained = True

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "neutral-zone bin classifier is not trained")
        score = signed_score(self.binary_classifier.predict(vector))
        distr = self.tag_distr_table.get_distr_values(score)
        return Prediction([(value or 0.0, label) for label, value in distr.items()])

    def save(self, writer: BinaryWriter) -> None:
        check_state(self.is_trained, "only a trained classifier can be saved")
        writer.write_double(self.bin_width)
        self.tag_distr_table.save(writer)
        self.binary_classifier.save(writer)
        writer.write_bool(self.is_trained)

    @classmethod
    def load(cls, reader: BinaryReader, binary_class=LinearSvmBinaryClassifier) -> "NeutralZoneBinClassifier":
        model = cls(binary_factory=binary_class, bin_width=reader.read_double())
        model.tag_distr_table = TagDistributionTable.load(reader)
        model.binary_classifier = binary_class.load(reader)
        model.is_trained = reader.read_bool()
        return model


class NeutralZoneReliabilityClassifier(ModelOwner):
    """
    Reliability of a prediction is its signed score over twice the average
    signed training score of the same side, capped at 1. Predictions below
    ``reliability_threshold`` are neutral.

    Args:
        binary_factory: Creates the negative-vs-positive plane
        reliability_threshold: Minimum reliability of a polar prediction
        binary_classifier: Already trained plane to reuse instead of training one
    """

    def __init__(
        self,
        binary_factory: Callable[[], object] = LinearSvmBinaryClassifier,
        reliability_threshold: float = 0.5,
        binary_classifier=None,
    ):
        self.binary_factory = binary_factory
        self.reliability_threshold = reliability_threshold
        self.binary_classifier = binary_classifier
        self.pos_average_distance = 0.0
        self.neg_average_distance = 0.0
        self.is_trained = False

    def owned_models(self):
        return [self.binary_classifier] if self.binary_classifier is not None else []

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "neutral-zone reliability classifier is already trained")
        train_set = without_label(dataset, NEU)
        if self.binary_classifier is None:
            self.binary_classifier = self.binary_factory()
            self.binary_classifier.train(train_set)

        pos_scores = []
        neg_scores = []
        for le in train_set:
            score = signed_score(self.binary_classifier.predict(le.example))
            (pos_scores if le.label == POS else neg_scores).append(score)
        check_argument(bool(pos_scores and neg_scores), "both positive and negative examples are required")
        self.pos_average_distance = sum(pos_scores) / len(pos_scores)
        self.neg_average_distance = sum(neg_scores) / len(neg_scores)
        logger.debug("Average distances: neg {:.3f}, pos {:.3f}", self.neg_average_distance, self.pos_average_distance)
        self.is_trained = True

    def reliability(self, score: float) -> float:
        average = self.pos_average_distance if score > 0 else self.neg_average_distance
        if average == 0:
            return 0.0
        return min(score / (2.0 * average), 1.0)

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "neutral-zone reliability classifier is not trained")
        score = signed_score(self.binary_classifier.predict(vector))
        if self.reliability(score) < self.reliability_threshold:
            label = NEU
        else:
            label = POS if score > 0 else NEG
        return Prediction([(score, label)])

    def save(self, writer: BinaryWriter) -> None:
        check_state(self.is_trained, "only a trained classifier can be saved")
        self.binary_classifier.save(writer)
        writer.write_double(self.neg_average_distance)
        writer.write_double(self.pos_average_distance)
        writer.write_double(self.reliability_threshold)
        writer.write_bool(self.is_trained)

    @classmethod
    def load(cls, reader: BinaryReader, binary_class=LinearSvmBinaryClassifier) -> "NeutralZoneReliabilityClassifier":
        model = cls(binary_factory=binary_class, binary_classifier=binary_class.load(reader))
        model.neg_average_distance = reader.read_double()
        model.pos_average_distance = reader.read_double()
        model.reliability_threshold = reader.read_double()
        model.is_trained = reader.read_bool()
        return model
