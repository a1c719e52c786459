#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Per-tag histogram estimator.

Keeps one count table and one distribution table per tag (class label) over
the same N-dimensional bin grid. ``calculate()`` turns the raw per-tag counts
of every populated bin into a calibrated value per tag through a pluggable
``calc_distr_func``; the default is Laplace smoothing.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from .errors import CorruptFormatError, check_argument, check_state
from .histogram import HistogramTable
from .labels import SentimentLabel
from .serialization import BinaryReader, BinaryWriter

# (counts per tag at this bin, bin center values, tag) -> value for tag
CalcDistrFunc = Callable[[Dict[Any, int], List[float], Any], float]


def laplace_distribution(tag_counts: Dict[Any, int], values: List[float], tag: Any) -> float:
    """(count + 1) / (total + number of tags)"""
    return (tag_counts[tag] + 1) / (sum(tag_counts.values()) + len(tag_counts))


class TagDistributionTable:
    def __init__(
        self,
        num_dimensions: int,
        bin_width: float,
        min_value: float,
        max_value: float,
        tags: Sequence[Any],
        calc_distr_func: Optional[CalcDistrFunc] = laplace_distribution,
    ):
        check_argument(tags is not None and len(tags) > 1, "at least two tags are required")
        check_argument(len(set(tags)) == len(tags), "tags must be unique")
        self.num_dimensions = num_dimensions
        self.bin_width = bin_width
        self.min_value = min_value
        self.max_value = max_value
        self.tags = list(tags)
        self.calc_distr_func = calc_distr_func

        self._tag_indexes = {tag: i for i, tag in enumerate(self.tags)}
        self._tag_counts = [
            HistogramTable(num_dimensions, bin_width, min_value, max_value, value_type=int) for _ in self.tags
        ]
        self._tag_distrs = [
            HistogramTable(num_dimensions, bin_width, min_value, max_value, value_type=float) for _ in self.tags
        ]

    @classmethod
    def for_labels(
        cls,
        num_dimensions: int,
        bin_width: float,
        min_value: float,
        max_value: float,
        excluded: Iterable[SentimentLabel] = (),
        calc_distr_func: Optional[CalcDistrFunc] = laplace_distribution,
    ) -> "TagDistributionTable":
        """Table over every ``SentimentLabel`` except ``excluded``, in canonical order."""
        excluded = set(excluded)
        tags = [label for label in SentimentLabel if label not in excluded]
        return cls(num_dimensions, bin_width, min_value, max_value, tags, calc_distr_func)

    def _tag_index(self, tag: Any) -> int:
        index = self._tag_indexes.get(tag)
        check_argument(index is not None, f"unknown tag {tag!r}")
        return index

    # ---------------- counting ----------------

    def add_count(self, tag: Any, *values, count: int = 1) -> None:
        table = self._tag_counts[self._tag_index(tag)]
        index = table.get_index(*values)
        table.set_direct(index, table.get(index, 0) + count)

    def calculate(self) -> None:
        check_state(self.calc_distr_func is not None, "no calc_distr_func configured")
        for index in self:
            tag_counts = {tag: self._tag_counts[i].get(index, 0) for tag, i in self._tag_indexes.items()}
            centers = self._tag_counts[0].get_values(index)
            for tag, i in self._tag_indexes.items():
                self._tag_distrs[i].set_direct(index, self.calc_distr_func(tag_counts, centers, tag))

    # ---------------- lookups ----------------

    def get_index(self, *values) -> int:
        return self._tag_counts[0].get_index(*values)

    def get_values(self, index: int) -> List[float]:
        return self._tag_counts[0].get_values(index)

    def get_distr_value(self, tag: Any, *values) -> Optional[float]:
        table = self._tag_distrs[self._tag_index(tag)]
        return table.get(table.get_index(*values))

    def set_distr_value(self, tag: Any, distr_value: float, *values) -> None:
        table = self._tag_distrs[self._tag_index(tag)]
        table.set_direct(table.get_index(*values), distr_value)

    def get_distr_values(self, *values) -> Dict[Any, Optional[float]]:
        index = self.get_index(*values)
        return {tag: self._tag_distrs[i].get(index) for tag, i in self._tag_indexes.items()}

    def get_count(self, tag: Any, *values) -> Optional[int]:
        table = self._tag_counts[self._tag_index(tag)]
        return table.get(table.get_index(*values))

    def get_counts(self, *values) -> Dict[Any, Optional[int]]:
        index = self.get_index(*values)
        return {tag: self._tag_counts[i].get(index) for tag, i in self._tag_indexes.items()}

    def __iter__(self) -> Iterator[int]:
        """Ascending union of the populated bin indices of all tags."""
        populated = set()
        for table in self._tag_counts:
            populated.update(table.indices())
        return iter(sorted(populated))

    def to_text(self) -> str:
        lines = []
        for index in self:
            parts = [str(v) for v in self.get_values(index)]
            for tag, i in self._tag_indexes.items():
                parts.append(str(tag))
                parts.append(str(self._tag_counts[i].get(index, 0)))
                parts.append(str(round(self._tag_distrs[i].get(index, 0.0), 3)))
            lines.append("\t".join(parts))
        return "\n".join(lines)

    # ---------------- persistence ----------------

    def save(self, writer: BinaryWriter) -> None:
        writer.write_int(self.num_dimensions)
        writer.write_double(self.bin_width)
        writer.write_double(self.min_value)
        writer.write_double(self.max_value)
        writer.write_int(len(self.tags))
        for tag in self.tags:
            writer.write_object(tag)
        writer.write_int(len(self._tag_counts))
        for table in self._tag_counts:
            table.save(writer)
        writer.write_int(len(self._tag_distrs))
        for table in self._tag_distrs:
            table.save(writer)
        writer.write_dict(self._tag_indexes)

    @classmethod
    def load(
        cls, reader: BinaryReader, calc_distr_func: Optional[CalcDistrFunc] = laplace_distribution
    ) -> "TagDistributionTable":
        num_dimensions = reader.read_int()
        bin_width = reader.read_double()
        min_value = reader.read_double()
        max_value = reader.read_double()
        tags = [reader.read_object() for _ in range(reader.read_count())]
        try:
            table = cls(num_dimensions, bin_width, min_value, max_value, tags, calc_distr_func)
        except ValueError as e:
            raise CorruptFormatError(f"invalid tag table parameters: {e}") from e

        table._tag_counts = [HistogramTable.load(reader) for _ in range(reader.read_count())]
        table._tag_distrs = [HistogramTable.load(reader) for _ in range(reader.read_count())]
        tag_indexes = reader.read_dict()

        if len(table._tag_counts) != len(tags) or len(table._tag_distrs) != len(tags):
            raise CorruptFormatError("number of per-tag tables does not match the tag count")
        if tag_indexes != table._tag_indexes:
            raise CorruptFormatError("tag index map does not match the tag order")
        grid = HistogramTable(num_dimensions, bin_width, min_value, max_value)
        if not all(grid.same_grid(t) for t in table._tag_counts + table._tag_distrs):
            raise CorruptFormatError("per-tag tables do not share the table's bin grid")
        return table

    def __repr__(self) -> str:
        return (
            f"TagDistributionTable(D={self.num_dimensions}, width={self.bin_width}, "
            f"[{self.min_value}, {self.max_value}], tags={self.tags})"
        )
