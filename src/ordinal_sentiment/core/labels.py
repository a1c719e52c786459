# labels.py
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Iterable, List


class SentimentLabel(IntEnum):
    """Ordinal sentiment classes. Declaration order is the canonical label order."""

    NEGATIVE = -1
    NEUTRAL = 0
    POSITIVE = 1

    def __str__(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value: Any) -> "SentimentLabel":
        """Accepts a member, -1/0/1, or strings such as 'neg', 'Neutral', 'positive', '-1'."""
        if isinstance(value, SentimentLabel):
            return value
        if isinstance(value, str):
            prefix = value.strip().lower()[:3]
            aliases = {"neg": cls.NEGATIVE, "neu": cls.NEUTRAL, "pos": cls.POSITIVE}
            if prefix in aliases:
                return aliases[prefix]
            value = value.strip()
        try:
            return cls(int(value))
        except ValueError:
            raise ValueError(f"Unknown sentiment label: {value!r}") from None


LABELS: List[SentimentLabel] = list(SentimentLabel)


@dataclass(frozen=True)
class LabeledExample:
    label: Any
    example: Any


def relabel(dataset: Iterable[LabeledExample], mapping) -> List[LabeledExample]:
    """Returns a new dataset with every label passed through ``mapping``."""
    return [LabeledExample(mapping(le.label), le.example) for le in dataset]


def without_label(dataset: Iterable[LabeledExample], label) -> List[LabeledExample]:
    return [le for le in dataset if le.label != label]
