#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Fixed-width N-dimensional histogram over a bounded domain.

A D-tuple of real values is mapped to one integer bin index with a
mixed-radix encoding: dimension ``i`` has stride
``bins_per_dimension ** (D - 1 - i)``. Values at or below ``min_value`` fall
into the first bin of their dimension, values at or above ``max_value`` into
the last one. Only populated bins are stored.
"""
from __future__ import annotations

import math
import numbers
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .errors import CorruptFormatError, InvalidStateError, check_argument
from .serialization import BinaryReader, BinaryWriter

Number = Union[int, float]

_VALUE_INT = 0
_VALUE_DOUBLE = 1


def _as_values(values) -> Tuple[float, ...]:
    if isinstance(values, numbers.Real):
        return (float(values),)
    return tuple(float(v) for v in values)


class HistogramTable:
    """Sparse N-dimensional bin grid storing one scalar per bin.

    Args:
        num_dimensions: Number of dimensions D (>= 1)
        bin_width: Width of a bin along every dimension
        min_value: Lower bound of the domain (same for all dimensions)
        max_value: Upper bound of the domain
        value_type: ``int`` for count tables, ``float`` for probability tables
    """

    def __init__(
        self,
        num_dimensions: int,
        bin_width: float,
        min_value: float,
        max_value: float,
        value_type: type = float,
    ):
        check_argument(num_dimensions > 0, "num_dimensions must be positive")
        check_argument(min_value < max_value, "min_value must be below max_value")
        check_argument(
            0 < bin_width <= max_value - min_value,
            "bin_width must be positive and not wider than the domain",
        )
        check_argument(value_type in (int, float), "value_type must be int or float")

        self.bin_width = float(bin_width)
        self.min_value = float(min_value)
        self.max_value = float(max_value)
        self.num_dimensions = int(num_dimensions)
        self.value_type = value_type

        self.bins_per_dimension = int(math.ceil((self.max_value - self.min_value) / self.bin_width))
        self.total_bins = self.bins_per_dimension ** self.num_dimensions
        self.strides = [
            self.bins_per_dimension ** (self.num_dimensions - 1 - i) for i in range(self.num_dimensions)
        ]
        self._bins: Dict[int, Number] = {}

    @property
    def zero(self) -> Number:
        return self.value_type()

    # ---------------- indexing ----------------

    def _dimension_bin(self, value: float) -> int:
        if value <= self.min_value:
            return 0
        if value >= self.max_value:
            return self.bins_per_dimension - 1
        # float division can land exactly on the upper edge for values just under max
        return min(int((value - self.min_value) // self.bin_width), self.bins_per_dimension - 1)

    def get_index(self, *values) -> int:
        if len(values) == 1 and not isinstance(values[0], numbers.Real):
            values = values[0]
        values = _as_values(values)
        check_argument(
            len(values) == self.num_dimensions,
            f"expected {self.num_dimensions} values, got {len(values)}",
        )
        index = 0
        for stride, value in zip(self.strides, values):
            product = stride * self._dimension_bin(value)
            if product < 0:
                raise InvalidStateError(f"negative stride product {product}; table is corrupt")
            index += product
        return index

    def get_values(self, index: int) -> List[float]:
        """Returns the bin center of every dimension for ``index``."""
        check_argument(0 <= index < self.total_bins, f"bin index {index} out of range")
        values = []
        for stride in self.strides:
            values.append(self.min_value + self.bin_width * (index // stride) + self.bin_width / 2)
            index %= stride
        return values

    # ---------------- access ----------------

    def __getitem__(self, values) -> Number:
        return self._bins.get(self.get_index(values), self.zero)

    def __setitem__(self, values, value: Number) -> None:
        self._bins[self.get_index(values)] = self.value_type(value)

    def __len__(self) -> int:
        return len(self._bins)

    def contains(self, index: int) -> bool:
        return index in self._bins

    def get(self, index: int, default: Optional[Number] = None) -> Optional[Number]:
        return self._bins.get(index, default)

    def set_direct(self, index: int, value: Number) -> None:
        check_argument(0 <= index < self.total_bins, f"bin index {index} out of range")
        self._bins[index] = self.value_type(value)

    def indices(self) -> List[int]:
        return sorted(self._bins)

    def items(self) -> Iterator[Tuple[int, Number]]:
        for index in self.indices():
            yield index, self._bins[index]

    def same_grid(self, other: "HistogramTable") -> bool:
        return (
            self.num_dimensions == other.num_dimensions
            and self.bin_width == other.bin_width
            and self.min_value == other.min_value
            and self.max_value == other.max_value
        )

    # ---------------- persistence ----------------

    def save(self, writer: BinaryWriter) -> None:
        writer.write_double(self.bin_width)
        writer.write_double(self.min_value)
        writer.write_double(self.max_value)
        writer.write_int(self.num_dimensions)
        writer.write_int(self.bins_per_dimension)
        writer.write_int(self.total_bins)
        writer.write_int(len(self.strides))
        for stride in self.strides:
            writer.write_int(stride)
        # sparse bins
        writer.write_int(_VALUE_INT if self.value_type is int else _VALUE_DOUBLE)
        writer.write_int(len(self._bins))
        for index, value in self.items():
            writer.write_int(index)
            if self.value_type is int:
                writer.write_int(value)
            else:
                writer.write_double(value)

    @classmethod
    def load(cls, reader: BinaryReader) -> "HistogramTable":
        bin_width = reader.read_double()
        min_value = reader.read_double()
        max_value = reader.read_double()
        num_dimensions = reader.read_int()
        bins_per_dimension = reader.read_int()
        total_bins = reader.read_int()
        strides = [reader.read_int() for _ in range(reader.read_count())]
        value_kind = reader.read_int()
        if value_kind not in (_VALUE_INT, _VALUE_DOUBLE):
            raise CorruptFormatError(f"unknown bin value kind {value_kind}")

        try:
            table = cls(
                num_dimensions, bin_width, min_value, max_value,
                value_type=int if value_kind == _VALUE_INT else float,
            )
        except ValueError as e:
            raise CorruptFormatError(f"invalid histogram parameters: {e}") from e
        if (table.bins_per_dimension, table.total_bins, table.strides) != (bins_per_dimension, total_bins, strides):
            raise CorruptFormatError("histogram geometry does not match its parameters")

        for _ in range(reader.read_count()):
            index = reader.read_int()
            value = reader.read_int() if value_kind == _VALUE_INT else reader.read_double()
            if not 0 <= index < total_bins:
                raise CorruptFormatError(f"stored bin index {index} out of range")
            table._bins[index] = value
        return table

    def __repr__(self) -> str:
        return (
            f"HistogramTable(D={self.num_dimensions}, width={self.bin_width}, "
            f"[{self.min_value}, {self.max_value}], populated={len(self._bins)})"
        )
