#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Voting ensembles over a fixed array of inner models.

``VotingEnsemble`` keys every training example by the tuple of the inner
models' discrete predictions and resolves each key to a label with a vote
policy. ``BinVotingEnsemble`` bins the inner models' continuous scores into a
tag distribution table instead and ranks labels by the calibrated value of
the addressed bin.

Both take plain functions for the parts that vary between ensembles:

- ``partition(model_idx, dataset)`` builds each inner model's training set
- ``vote_policy(entry, labels)`` resolves a voting entry
- ``score_func(predictions)`` turns inner predictions into table coordinates
"""
from __future__ import annotations

import itertools
import math
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

from ..core.errors import CorruptFormatError, NotSupportedError, check_argument, check_state
from ..core.labels import LabeledExample, SentimentLabel, relabel, without_label
from ..core.serialization import BinaryReader, BinaryWriter
from ..core.tag_distribution import CalcDistrFunc, TagDistributionTable, laplace_distribution
from .base import ModelOwner, Prediction

NEG, NEU, POS = SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL, SentimentLabel.POSITIVE

Partition = Callable[[int, List[LabeledExample]], List[LabeledExample]]
ModelFactory = Callable[[int], Any]

BIN_MIN_VALUE = -5.0
BIN_MAX_VALUE = 5.0


def voting_key(labels: Sequence[Any]) -> str:
    return "-".join(str(label) for label in labels)


class VotingEntry:
    """True-label counts observed for one tuple of inner predictions."""

    def __init__(self, labels: Sequence[Any]):
        self.label_counts: Dict[Any, int] = {label: 0 for label in labels}
        self.label: Any = None

    @property
    def label_probs(self) -> Dict[Any, float]:
        total = sum(self.label_counts.values())
        n = len(self.label_counts)
        return {label: (count + 1) / (total + n) for label, count in self.label_counts.items()}

    @property
    def entropy(self) -> float:
        return -sum(p * math.log2(p) for p in self.label_probs.values())

    def save(self, writer: BinaryWriter) -> None:
        writer.write_object(self.label)
        writer.write_dict(self.label_counts)

    @classmethod
    def load(cls, reader: BinaryReader) -> "VotingEntry":
        entry = cls([])
        entry.label = reader.read_object()
        entry.label_counts = reader.read_dict()
        return entry

    def __repr__(self) -> str:
        probs = ", ".join(f"{l}: {p:.2f}" for l, p in self.label_probs.items())
        return f"[{probs}] = {self.label} ({self.entropy:.2f})"


# ---------------- vote policies ----------------

def majority_vote(entry: VotingEntry, labels: Sequence[Any]) -> Any:
    """Label with the highest count; ties go to the label listed first in ``labels``."""
    best = labels[0]
    for label in labels[1:]:
        if entry.label_counts[label] > entry.label_counts[best]:
            best = label
    return best


def entropy_neutral_vote(threshold: float = 1.0) -> Callable[[VotingEntry, Sequence[Any]], Any]:
    """Majority vote, but NEUTRAL when the entry's entropy (bits) exceeds ``threshold``."""

    def vote(entry: VotingEntry, labels: Sequence[Any]) -> Any:
        if entry.entropy > threshold:
            return NEU
        return majority_vote(entry, labels)

    return vote


def uniform_neutral_vote(entry: VotingEntry, labels: Sequence[Any]) -> Any:
    """Majority vote, but NEUTRAL when every label is equally likely."""
    if len(set(entry.label_probs.values())) == 1:
        return NEU
    return majority_vote(entry, labels)


# ---------------- partitions ----------------

def one_vs_one_partition(model_idx: int, dataset: List[LabeledExample]) -> List[LabeledExample]:
    """Model 0: negative vs positive, 1: neutral vs positive, 2: negative vs neutral."""
    dropped = {0: NEU, 1: NEG, 2: POS}
    check_argument(model_idx in dropped, f"one-vs-one partition has no model {model_idx}")
    return without_label(dataset, dropped[model_idx])


def one_vs_all_partition(model_idx: int, dataset: List[LabeledExample]) -> List[LabeledExample]:
    """Model 0: neutral vs rest, 1: negative vs rest, 2: positive vs rest."""
    kept_and_rest = {0: (NEU, NEG), 1: (NEG, POS), 2: (POS, NEU)}
    check_argument(model_idx in kept_and_rest, f"one-vs-all partition has no model {model_idx}")
    kept, rest = kept_and_rest[model_idx]
    return relabel(dataset, lambda l: kept if l == kept else rest)


# ---------------- ensembles ----------------

class VotingEnsemble(ModelOwner):
    """
    Args:
        model_count: Number of inner model slots
        partition: Builds each inner model's training set
        model_factory: Creates the model of an empty slot from its index
        vote_policy: Resolves every voting entry after training
        labels: Finite label set, in tie-break order
        inner_models: Pre-built models; ``None`` slots are filled by ``model_factory``
    """

    def __init__(
        self,
        model_count: int,
        partition: Partition,
        model_factory: Optional[ModelFactory] = None,
        vote_policy: Callable[[VotingEntry, Sequence[Any]], Any] = majority_vote,
        labels: Sequence[Any] = tuple(SentimentLabel),
        inner_models: Optional[Sequence[Any]] = None,
    ):
        check_argument(model_count > 0, "at least one inner model is required")
        check_argument(len(labels) > 0, "the label set is empty")
        if inner_models is not None:
            check_argument(len(inner_models) == model_count, "inner_models must have model_count slots")
        self.model_count = model_count
        self.partition = partition
        self.model_factory = model_factory
        self.vote_policy = vote_policy
        self.labels = list(labels)
        self.inner_models: List[Any] = list(inner_models) if inner_models is not None else [None] * model_count
        self.voting_entries: Dict[str, VotingEntry] = {
            voting_key(p): VotingEntry(self.labels) for p in itertools.product(self.labels, repeat=model_count)
        }
        self.is_trained = False

    def owned_models(self):
        return [m for m in self.inner_models if m is not None]

    def create_model(self, model_idx: int):
        if self.model_factory is None:
            raise NotSupportedError(f"no model factory configured for inner model {model_idx}")
        return self.model_factory(model_idx)

    def _key_of(self, vector) -> str:
        return voting_key([m.predict(vector).best_label for m in self.inner_models])

    def _entry(self, key: str) -> VotingEntry:
        entry = self.voting_entries.get(key)
        check_state(entry is not None, f"inner predictions {key!r} are outside the label set")
        return entry

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "voting ensemble is already trained")
        check_argument(dataset is not None, "dataset is required")
        dataset = list(dataset)
        for i in range(self.model_count):
            if self.inner_models[i] is None:
                self.inner_models[i] = self.create_model(i)
            self.inner_models[i].train(self.partition(i, dataset))

        for le in dataset:
            self._entry(self._key_of(le.example)).label_counts[le.label] += 1
        for entry in self.voting_entries.values():
            entry.label = self.vote_policy(entry, self.labels)
        logger.debug("Voting ensemble trained on {} examples", len(dataset))
        self.is_trained = True

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "voting ensemble is not trained")
        return Prediction([(1.0, self._entry(self._key_of(vector)).label)])

    def to_text(self) -> str:
        return "\n".join(f"{key} \t {entry}" for key, entry in self.voting_entries.items())

    def save(self, writer: BinaryWriter) -> None:
        check_state(self.is_trained, "only a trained ensemble can be saved")
        writer.write_int(len(self.voting_entries))
        for key, entry in self.voting_entries.items():
            writer.write_string(key)
            entry.save(writer)
        writer.write_int(len(self.inner_models))
        for model in self.inner_models:
            model.save(writer)
        writer.write_bool(self.is_trained)

    @classmethod
    def load(
        cls,
        reader: BinaryReader,
        inner_class,
        partition: Partition,
        vote_policy: Callable[[VotingEntry, Sequence[Any]], Any] = majority_vote,
        labels: Sequence[Any] = tuple(SentimentLabel),
    ) -> "VotingEnsemble":
        entries = {}
        for _ in range(reader.read_count()):
            key = reader.read_string()
            entries[key] = VotingEntry.load(reader)
        inner_models = [inner_class.load(reader) for _ in range(reader.read_count())]
        if not inner_models:
            raise CorruptFormatError("voting ensemble without inner models")
        model = cls(len(inner_models), partition, vote_policy=vote_policy, labels=labels, inner_models=inner_models)
        if set(entries) != set(model.voting_entries):
            raise CorruptFormatError("stored voting keys do not match the label permutations")
        model.voting_entries = entries
        model.is_trained = reader.read_bool()
        return model


class BinVotingEnsemble(ModelOwner):
    """
    Args:
        model_count: Number of inner model slots, also the table dimension
        partition: Builds each inner model's training set
        score_func: Maps the inner predictions to ``model_count`` table coordinates
        model_factory: Creates the model of an empty slot from its index
        bin_width: Table bin width over [-5, 5]
        labels_score: ``calc_distr_func`` of the table
        excluded_tags: Labels left out of the table
    """

    def __init__(
        self,
        model_count: int,
        partition: Partition,
        score_func: Callable[[List[Prediction]], Sequence[float]],
        model_factory: Optional[ModelFactory] = None,
        bin_width: float = 0.05,
        labels_score: CalcDistrFunc = laplace_distribution,
        excluded_tags: Sequence[Any] = (),
        inner_models: Optional[Sequence[Any]] = None,
    ):
        check_argument(model_count > 0, "at least one inner model is required")
        check_argument(bin_width > 0, "bin_width must be positive")
        if inner_models is not None:
            check_argument(len(inner_models) == model_count, "inner_models must have model_count slots")
        self.model_count = model_count
        self.partition = partition
        self.score_func = score_func
        self.model_factory = model_factory
        self.inner_models: List[Any] = list(inner_models) if inner_models is not None else [None] * model_count
        self.tag_distr_table = TagDistributionTable.for_labels(
            model_count, bin_width, BIN_MIN_VALUE, BIN_MAX_VALUE, excluded=excluded_tags, calc_distr_func=labels_score
        )
        self.is_trained = False

    def owned_models(self):
        return [m for m in self.inner_models if m is not None]

    def create_model(self, model_idx: int):
        if self.model_factory is None:
            raise NotSupportedError(f"no model factory configured for inner model {model_idx}")
        return self.model_factory(model_idx)

    def prediction_scores(self, vector) -> List[float]:
        scores = list(self.score_func([m.predict(vector) for m in self.inner_models]))
        check_state(len(scores) == self.model_count, "score_func must return one score per inner model")
        return scores

    def train(self, dataset: Sequence[LabeledExample]) -> None:
        check_state(not self.is_trained, "bin-voting ensemble is already trained")
        check_argument(dataset is not None, "dataset is required")
        dataset = list(dataset)
        for i in range(self.model_count):
            if self.inner_models[i] is None:
                self.inner_models[i] = self.create_model(i)
            self.inner_models[i].train(self.partition(i, dataset))

        for le in dataset:
            self.tag_distr_table.add_count(le.label, *self.prediction_scores(le.example))
        self.tag_distr_table.calculate()
        self.is_trained = True

    def predict(self, vector) -> Prediction:
        check_state(self.is_trained, "bin-voting ensemble is not trained")
        distr = self.tag_distr_table.get_distr_values(*self.prediction_scores(vector))
        ranked = sorted(distr.items(), key=lambda kv: -abs(kv[1] or 0.0))
        return Prediction([(value or 0.0, label) for label, value in ranked], ranked=True)

    def save(self, writer: BinaryWriter) -> None:
        check_state(self.is_trained, "only a trained ensemble can be saved")
        self.tag_distr_table.save(writer)
        writer.write_int(len(self.inner_models))
        for model in self.inner_models:
            model.save(writer)
        writer.write_bool(self.is_trained)

    @classmethod
    def load(
        cls,
        reader: BinaryReader,
        inner_class,
        partition: Partition,
        score_func: Callable[[List[Prediction]], Sequence[float]],
        labels_score: CalcDistrFunc = laplace_distribution,
    ) -> "BinVotingEnsemble":
        table = TagDistributionTable.load(reader, calc_distr_func=labels_score)
        inner_models = [inner_class.load(reader) for _ in range(reader.read_count())]
        if len(inner_models) != table.num_dimensions:
            raise CorruptFormatError("inner model count does not match the table dimension")
        model = cls(len(inner_models), partition, score_func, bin_width=table.bin_width,
                    labels_score=labels_score, inner_models=inner_models)
        model.tag_distr_table = table
        model.is_trained = reader.read_bool()
        return model


# ---------------- three-plane sentiment ensembles ----------------

def one_vs_one_signed_scores(predictions: List[Prediction]) -> List[float]:
    """Negative coordinate when a one-vs-one plane votes for its lower label."""
    lower = (NEG, NEU, NEG)
    return [
        -p.best_score if p.best_label == low else p.best_score
        for p, low in zip(predictions, lower)
    ]


def _plogp(p: float) -> float:
    return p * math.log2(p) if p > 0 else 0.0


def entropy_label_score(threshold: float = 1.0) -> CalcDistrFunc:
    """
    Bin scorer of the one-vs-one bin voting: plain label frequencies, unless the
    bin is too mixed, in which case all mass goes to NEUTRAL.

    Mixedness is ``entNeg + entPos / 2`` where ``entNeg`` (``entPos``) is the
    binary entropy of negative (positive) against the other two labels.
    """

    def score(tag_counts: Dict[Any, int], values: List[float], tag: Any) -> float:
        total = sum(tag_counts.values())
        p_neg = tag_counts.get(NEG, 0) / total
        p_neu = tag_counts.get(NEU, 0) / total
        p_pos = tag_counts.get(POS, 0) / total

        ent_neg = -_plogp(p_neg) - _plogp(p_pos + p_neu)
        ent_pos = -_plogp(p_pos) - _plogp(p_neg + p_neu)
        if ent_neg + ent_pos / 2 > threshold:
            return 1.0 if tag == NEU else 0.0
        return {NEG: p_neg, NEU: p_neu, POS: p_pos}[tag]

    return score


def three_plane_one_vs_one_voting(model_factory: Optional[ModelFactory] = None, inner_models=None) -> VotingEnsemble:
    return VotingEnsemble(3, one_vs_one_partition, model_factory, vote_policy=uniform_neutral_vote,
                          inner_models=inner_models)


def three_plane_one_vs_all_voting(
    model_factory: Optional[ModelFactory] = None, entropy_threshold: float = 1.0, inner_models=None
) -> VotingEnsemble:
    return VotingEnsemble(3, one_vs_all_partition, model_factory,
                          vote_policy=entropy_neutral_vote(entropy_threshold), inner_models=inner_models)


def three_plane_one_vs_one_bin_voting(
    model_factory: Optional[ModelFactory] = None,
    bin_width: float = 0.5,
    entropy_threshold: float = 1.0,
    inner_models=None,
) -> BinVotingEnsemble:
    return BinVotingEnsemble(
        3,
        one_vs_one_partition,
        one_vs_one_signed_scores,
        model_factory,
        bin_width=bin_width,
        labels_score=entropy_label_score(entropy_threshold),
        inner_models=inner_models,
    )
