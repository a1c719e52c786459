# base.py
"""
Prediction types and the capability contracts every model implements.

A model is anything with ``train(dataset)`` and ``predict(vector)``; the
ensembles compose such models instead of subclassing a common base. Ensembles
own their inner models and release them in ``close()``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from ..core.errors import InvalidStateError
from ..core.labels import LabeledExample, SentimentLabel
from ..core.serialization import BinaryReader, BinaryWriter

LabelScore = Tuple[float, Any]


class Prediction:
    """(score, label) pairs ordered by descending score; ties keep insertion order.

    Pass ``ranked=True`` when the pairs are already in the wanted order.
    """

    def __init__(self, label_scores: Iterable[LabelScore], ranked: bool = False):
        label_scores = list(label_scores)
        self.label_scores: List[LabelScore] = label_scores if ranked else sorted(label_scores, key=lambda ls: -ls[0])

    @property
    def best_label(self) -> Any:
        if not self.label_scores:
            raise InvalidStateError("empty prediction has no best label")
        return self.label_scores[0][1]

    @property
    def best_score(self) -> float:
        if not self.label_scores:
            raise InvalidStateError("empty prediction has no best score")
        return self.label_scores[0][0]

    def score_of(self, label: Any) -> Optional[float]:
        for score, lbl in self.label_scores:
            if lbl == label:
                return score
        return None

    def __iter__(self) -> Iterator[LabelScore]:
        return iter(self.label_scores)

    def __len__(self) -> int:
        return len(self.label_scores)

    def __repr__(self) -> str:
        inner = ", ".join(f"{lbl}={score:.3f}" for score, lbl in self.label_scores)
        return f"{type(self).__name__}({inner})"


class TwoPlanePrediction(Prediction):
    def __init__(
        self,
        label_scores: Iterable[LabelScore],
        pos_score: float,
        neg_score: float,
        hyper_label: Optional[SentimentLabel] = None,
        confidence_interval: float = 0.0,
        pos_count: int = 0,
        neg_count: int = 0,
        neu_count: int = 0,
    ):
        super().__init__(label_scores)
        self.pos_score = pos_score
        self.neg_score = neg_score
        self.hyper_label = hyper_label
        self.confidence_interval = confidence_interval
        self.pos_count = pos_count
        self.neg_count = neg_count
        self.neu_count = neu_count


@dataclass(frozen=True)
class ExampleScore:
    """Signed distances of one training example from the positive and negative planes."""

    label: SentimentLabel
    pos_score: float
    neg_score: float


@runtime_checkable
class BinaryClassifier(Protocol):
    is_trained: bool

    def train(self, dataset: Sequence[LabeledExample]) -> None: ...

    def predict(self, vector: Any) -> Prediction: ...

    def save(self, writer: BinaryWriter) -> None: ...


@runtime_checkable
class SentimentModel(Protocol):
    is_trained: bool

    def train(self, dataset: Sequence[LabeledExample]) -> None: ...

    def predict(self, vector: Any) -> Prediction: ...


class ModelOwner:
    """Mixin for ensembles owning inner models: ``close()`` and context-manager use."""

    def owned_models(self) -> List[Any]:
        return []

    def close(self) -> None:
        for model in self.owned_models():
            close = getattr(model, "close", None)
            if close is not None:
                close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
