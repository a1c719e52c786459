#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Two-plane ordinal classifier.

Trains a positive-vs-rest and a negative-vs-rest binary plane. When both
planes agree the shared label wins, otherwise the example is neutral. On top
of that:

- a bias rate per plane flips weak predictions (by percentile of the score
  among the training population) toward or away from the plane's label;
  the rate can be found by a grid search (``BiasCalibration``);
- a 2-D tag distribution table over the signed (pos, neg) training scores
  turns the plane scores into label probabilities, with a confidence measure
  derived from a normal approximation of the bin's label distribution.
"""
from __future__ import annotations

import math
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from scipy.stats import norm

from ..core.errors import CorruptFormatError, check_argument, check_state
from ..core.labels import LabeledExample, SentimentLabel, relabel
from ..core.metrics import PerfMatrix, f1_avg_extreme_classes
from ..core.serialization import BinaryReader, BinaryWriter
from ..core.tag_distribution import TagDistributionTable, laplace_distribution
from .base import ExampleScore, ModelOwner, TwoPlanePrediction
from .binary import LinearSvmBinaryClassifier

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE

DISTR_MIN_VALUE = -5.0
DISTR_MAX_VALUE = 5.0


@dataclass
class BiasCalibration:
    """
    Grid search over one plane's bias rate.

    Args:
        lower_bound: First bias tried
        upper_bound: Last bias tried (inclusive)
        step: Sweep step, must be positive
        optimization_func: Score of a training-set ``PerfMatrix``; the highest wins
        save_bias_score_pairs: Keep every (bias, score) pair in ``bias_score_pairs``
    """

    lower_bound: float
    upper_bound: float
    step: float
    optimization_func: Optional[Callable[[PerfMatrix], float]] = f1_avg_extreme_classes
    save_bias_score_pairs: bool = False

    max_score: Optional[float] = None
    optimal_bias: Optional[float] = None
    bias_score_pairs: Optional[List[Tuple[float, float]]] = field(default=None, repr=False)

    def candidates(self) -> List[float]:
        check_argument(self.step > 0, "bias calibration step must be positive")
        if self.upper_bound < self.lower_bound:
            return []
        n = int(math.floor((self.upper_bound - self.lower_bound) / self.step + 1e-9))
        return [round(self.lower_bound + i * self.step, 10) for i in range(n + 1)]


class TwoPlaneClassifier(ModelOwner):
    def __init__(
        self,
        binary_factory: Callable[[], object] = LinearSvmBinaryClassifier,
        bias_to_pos_rate: float = 0.0,
        bias_to_neg_rate: float = 0.0,
        pos_bias_calibration: Optional[BiasCalibration] = None,
        neg_bias_calibration: Optional[BiasCalibration] = None,
        is_score_percentile: bool = False,
        bin_width: float = 0.0,
        min_bin_count: int = 5,
        confident_score: float = 2.0,
    ):
        self.binary_factory = binary_factory
        self.bias_to_pos_rate = bias_to_pos_rate
        self.bias_to_neg_rate = bias_to_neg_rate
        self.pos_bias_calibration = pos_bias_calibration
        self.neg_bias_calibration = neg_bias_calibration
        self.is_score_percentile = is_score_percentile
        self.min_bin_count = min_bin_count
        self.confident_score = confident_score

        self.pos_classifier = None
        self.neg_classifier = None
        self.example_scores: Optional[List[ExampleScore]] = None
        self.tag_distr_table: Optional[TagDistributionTable] = None
        self._pos_sorted_scores: Optional[List[float]] = None
        self._neg_sorted_scores: Optional[List[float]] = None
        self._bin_width = bin_width
        self.is_trained = False

    def owned_models(self):
        return [m for m in (self.pos_classifier, self.neg_classifier) if m is not None]

    @property
    def bin_width(self) -> float:
        return self._bin_width

    @bin_width.setter
    def bin_width(self, value: float) -> None:
        self._bin_width = value
        self._update_distr_table()

    # ---------------- training ----------------

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "two-plane classifier is already trained")
        check_argument(dataset is not None and len(dataset) > 0, "cannot train on an empty dataset")

        self.pos_classifier = self.binary_factory()
        self.pos_classifier.train(relabel(dataset, lambda l: POS if l == POS else NEG))
        self.neg_classifier = self.binary_factory()
        self.neg_classifier.train(relabel(dataset, lambda l: NEG if l == NEG else POS))

        self._pos_sorted_scores = self._neg_sorted_scores = None
        self.example_scores = [self._example_score(le) for le in dataset]

        if self.pos_bias_calibration is not None or self.neg_bias_calibration is not None:
            pos_bias = self.calibrate(True, dataset)
            neg_bias = self.calibrate(False, dataset)
            self.bias_to_pos_rate = pos_bias if pos_bias is not None else self.bias_to_pos_rate
            self.bias_to_neg_rate = neg_bias if neg_bias is not None else self.bias_to_neg_rate
            logger.debug("Calibrated bias rates: pos={} neg={}", self.bias_to_pos_rate, self.bias_to_neg_rate)

        self._update_distr_table()
        self.is_trained = True

    def _example_score(self, le: LabeledExample) -> ExampleScore:
        pos_pred = self.pos_classifier.predict(le.example)
        neg_pred = self.neg_classifier.predict(le.example)
        return ExampleScore(
            label=le.label,
            pos_score=pos_pred.best_score if pos_pred.best_label == POS else -pos_pred.best_score,
            neg_score=-neg_pred.best_score if neg_pred.best_label == NEG else neg_pred.best_score,
        )

    def _update_distr_table(self) -> None:
        if self.example_scores is None or self._bin_width == 0:
            self.tag_distr_table = None
            return

        table = TagDistributionTable.for_labels(
            2, self._bin_width, DISTR_MIN_VALUE, DISTR_MAX_VALUE, calc_distr_func=laplace_distribution
        )
        for es in self.example_scores:
            table.add_count(es.label, es.pos_score, es.neg_score)
        table.calculate()
        self.tag_distr_table = table

    def calibrate(self, do_pos_plane: bool, dataset: Sequence[LabeledExample]) -> Optional[float]:
        """Sweeps one plane's bias over the training set; returns the first best bias or None."""
        calibration = self.pos_bias_calibration if do_pos_plane else self.neg_bias_calibration
        if calibration is None:
            return None
        check_argument(calibration.step > 0, "bias calibration step must be positive")
        check_argument(calibration.optimization_func is not None, "bias calibration needs an optimization function")

        max_score = -math.inf
        optimal_bias = 0.0
        pairs = [] if calibration.save_bias_score_pairs else None
        for bias in calibration.candidates():
            matrix = PerfMatrix()
            for le in dataset:
                prediction = self._predict_internal(
                    le.example, bias if do_pos_plane else 0.0, 0.0 if do_pos_plane else bias
                )
                matrix.add_count(le.label, prediction.best_label)
            score = calibration.optimization_func(matrix)
            if score > max_score:
                max_score, optimal_bias = score, bias
            if pairs is not None:
                pairs.append((bias, score))
            logger.debug("{} plane bias={:.3f} score={:.3f}", "pos" if do_pos_plane else "neg", bias, score)

        calibration.max_score = max_score
        calibration.optimal_bias = optimal_bias
        if pairs is not None:
            calibration.bias_score_pairs = pairs
        return optimal_bias

    # ---------------- prediction ----------------

    def predict(self, vector) -> TwoPlanePrediction:
        check_state(self.is_trained, "two-plane classifier is not trained")
        return self._predict_internal(vector, self.bias_to_pos_rate, self.bias_to_neg_rate)

    def get_percentile_score(self, score: float, is_pos_scores: bool) -> float:
        """Rank of ``score`` among the plane's absolute training scores, in [0, 1]."""
        if is_pos_scores:
            if self._pos_sorted_scores is None:
                self._pos_sorted_scores = sorted(abs(es.pos_score) for es in self.example_scores)
            scores = self._pos_sorted_scores
        else:
            if self._neg_sorted_scores is None:
                self._neg_sorted_scores = sorted(abs(es.neg_score) for es in self.example_scores)
            scores = self._neg_sorted_scores
        return bisect_left(scores, score) / len(scores)

    def _predict_internal(self, vector, bias_to_pos_rate: float, bias_to_neg_rate: float) -> TwoPlanePrediction:
        pos_pred = self.pos_classifier.predict(vector)
        neg_pred = self.neg_classifier.predict(vector)
        pos_label, neg_label = pos_pred.best_label, neg_pred.best_label

        # flip predictions whose percentile falls under the bias
        pos_score = neg_score = None
        if bias_to_pos_rate > 0 and pos_label == NEG:
            pct = self.get_percentile_score(pos_pred.best_score, True)
            if pct < bias_to_pos_rate:
                pos_label, pos_score = POS, bias_to_pos_rate - pct
        elif bias_to_pos_rate < 0 and pos_label == POS:
            pct = self.get_percentile_score(pos_pred.best_score, True)
            if pct < -bias_to_pos_rate:
                pos_label, pos_score = NEG, bias_to_pos_rate + pct
        if bias_to_neg_rate > 0 and neg_label == POS:
            pct = self.get_percentile_score(neg_pred.best_score, False)
            if pct < bias_to_neg_rate:
                neg_label, neg_score = NEG, bias_to_neg_rate - pct
        elif bias_to_neg_rate < 0 and neg_label == NEG:
            pct = self.get_percentile_score(neg_pred.best_score, False)
            if pct < -bias_to_neg_rate:
                neg_label, neg_score = POS, bias_to_neg_rate + pct

        best_label = neg_label if neg_label == pos_label else NEU
        if pos_score is None:
            pos_score = (
                self.get_percentile_score(pos_pred.best_score, True) if self.is_score_percentile else pos_pred.best_score
            )
        if neg_score is None:
            neg_score = (
                self.get_percentile_score(neg_pred.best_score, False) if self.is_score_percentile else neg_pred.best_score
            )
        best_score = min(pos_score, neg_score)

        # signed distances, by the planes' unflipped predictions
        pos_score = pos_score if pos_pred.best_label == POS else -pos_score
        neg_score = -neg_score if neg_pred.best_label == NEG else neg_score
        out_pos = abs(pos_score) if self.is_score_percentile else pos_score
        out_neg = abs(neg_score) if self.is_score_percentile else neg_score

        if self.tag_distr_table is None:
            return TwoPlanePrediction(
                [(best_score, best_label)], pos_score=out_pos, neg_score=out_neg, hyper_label=best_label
            )

        probs = self._label_probs(pos_score, neg_score)
        counts = self.tag_distr_table.get_counts(pos_score, neg_score)
        count = sum(c or 0 for c in counts.values())
        confidence = confidence_interval(probs[NEG], probs[NEU], probs[POS], count)

        if count < self.min_bin_count or max(pos_pred.best_score, neg_pred.best_score) >= self.confident_score:
            label_scores = [(best_score, best_label)]
        else:
            label_scores = [(p, label) for label, p in probs.items()]

        return TwoPlanePrediction(
            label_scores,
            pos_score=out_pos,
            neg_score=out_neg,
            hyper_label=best_label,
            confidence_interval=confidence,
            pos_count=counts.get(POS) or 0,
            neg_count=counts.get(NEG) or 0,
            neu_count=counts.get(NEU) or 0,
        )

    def _label_probs(self, pos_score: float, neg_score: float) -> Dict[SentimentLabel, float]:
        distr = self.tag_distr_table.get_distr_values(pos_score, neg_score)
        if pos_score > 0 and neg_score > 0:
            inferred = POS
        elif pos_score < 0 and neg_score < 0:
            inferred = NEG
        else:
            inferred = NEU
        return {
            label: value if value is not None else (1.0 if label == inferred else 0.0)
            for label, value in distr.items()
        }

    # ---------------- persistence ----------------

    def save(self, writer: BinaryWriter) -> None:
        check_state(self.is_trained, "only a trained two-plane classifier can be saved")
        self.pos_classifier.save(writer)
        self.neg_classifier.save(writer)
        writer.write_int(len(self.example_scores))
        for es in self.example_scores:
            writer.write_int(int(es.label))
            writer.write_double(es.pos_score)
            writer.write_double(es.neg_score)
        writer.write_double(self._bin_width)
        writer.write_double(self.bias_to_pos_rate)
        writer.write_double(self.bias_to_neg_rate)
        writer.write_bool(self.is_score_percentile)
        writer.write_bool(self.is_trained)

    @classmethod
    def load(cls, reader: BinaryReader, binary_class=LinearSvmBinaryClassifier) -> "TwoPlaneClassifier":
        model = cls(binary_factory=binary_class)
        model.pos_classifier = binary_class.load(reader)
        model.neg_classifier = binary_class.load(reader)
        scores = []
        for _ in range(reader.read_count()):
            raw_label = reader.read_int()
            try:
                label = SentimentLabel(raw_label)
            except ValueError:
                raise CorruptFormatError(f"invalid example label {raw_label}") from None
            scores.append(ExampleScore(label, reader.read_double(), reader.read_double()))
        model.example_scores = scores
        model._bin_width = reader.read_double()
        model.bias_to_pos_rate = reader.read_double()
        model.bias_to_neg_rate = reader.read_double()
        model.is_score_percentile = reader.read_bool()
        model.is_trained = reader.read_bool()
        model._update_distr_table()
        return model


def confidence_interval(p_neg: float, p_neu: float, p_pos: float, count: int) -> float:
    """
    Two-tailed normal probability that the bin's label mean stays inside its region.

    The labels are placed at -1, 0 and 1; the mean ``p_pos - p_neg`` lies in the
    region of one label, whose boundaries are given by the cumulative
    probabilities. The distance to the nearest boundary divided by the standard
    error of the mean is the z-score.
    """
    mean = p_pos - p_neg
    std = math.sqrt(p_neg * (mean + 1) ** 2 + p_neu * mean ** 2 + p_pos * (mean - 1) ** 2)

    v_neg = -1 + 2 * p_neg
    v_neu = v_neg + 2 * p_neu
    if mean <= v_neg:
        max_delta = min(mean + 1, v_neg - mean)
    elif mean <= v_neu:
        max_delta = min(mean - v_neg, v_neu - mean)
    else:
        max_delta = min(mean - v_neu, 1 - mean)

    if count <= 0:
        return 0.0
    sem = std / math.sqrt(count)
    if sem > 0:
        z = max_delta / sem
    elif max_delta > 0:
        z = math.inf
    else:
        return 0.0
    if math.isnan(z):
        return 0.0
    return float(2 * (norm.cdf(z) - 0.5))
