#!filepath: tests/test_histogram.py
import io

import pytest

from ordinal_sentiment.core.errors import CorruptFormatError, InvalidArgumentError
from ordinal_sentiment.core.histogram import HistogramTable
from ordinal_sentiment.core.serialization import BinaryReader, BinaryWriter


def test_geometry():
    t = HistogramTable(2, 0.5, -5, 5)
    assert t.bins_per_dimension == 20
    assert t.total_bins == 400
    assert t.strides == [20, 1]


def test_index_of_domain_corners():
    t = HistogramTable(2, 0.5, -5, 5)
    assert t.get_index(-5, -5) == 0
    assert t.get_index(-100, -100) == 0
    assert t.get_index(5, 5) == t.total_bins - 1
    assert t.get_index(100, 100) == t.total_bins - 1


def test_index_is_mixed_radix():
    t = HistogramTable(2, 1.0, 0, 10)
    assert t.get_index(3.5, 7.2) == 3 * 10 + 7
    assert t.get_index((3.5, 7.2)) == 37


def test_value_just_below_max_stays_in_last_bin():
    t = HistogramTable(1, 0.1, -5, 5)
    assert t.get_index(4.999999999) == t.bins_per_dimension - 1


def test_get_values_returns_bin_centers():
    t = HistogramTable(2, 1.0, 0, 10)
    assert t.get_values(37) == pytest.approx([3.5, 7.5])
    assert t.get_index(*t.get_values(37)) == 37


@pytest.mark.parametrize("index", [-1, 100])
def test_get_values_out_of_range(index):
    t = HistogramTable(2, 1.0, 0, 10)
    with pytest.raises(InvalidArgumentError):
        t.get_values(index)


def test_wrong_arity():
    t = HistogramTable(2, 1.0, 0, 10)
    with pytest.raises(InvalidArgumentError):
        t.get_index(1.0)
    with pytest.raises(InvalidArgumentError):
        t.get_index(1.0, 2.0, 3.0)


@pytest.mark.parametrize(
    "args",
    [
        (0, 1.0, 0, 10),
        (1, 0.0, 0, 10),
        (1, -1.0, 0, 10),
        (1, 20.0, 0, 10),
        (1, 1.0, 10, 0),
    ],
)
def test_invalid_construction(args):
    with pytest.raises(InvalidArgumentError):
        HistogramTable(*args)


def test_get_set_and_sparse_storage():
    t = HistogramTable(2, 1.0, 0, 10, value_type=int)
    assert t[1, 1] == 0
    t[1, 1] = 3
    t[9.9, 0] = 1
    assert t[1.2, 1.7] == 3
    assert len(t) == 2
    assert t.indices() == [11, 90]
    assert t.contains(11) and not t.contains(12)
    assert t.get(12) is None
    assert dict(t.items()) == {11: 3, 90: 1}


def test_save_load_round_trip():
    t = HistogramTable(2, 0.25, -1, 1)
    t[0.1, -0.6] = 0.75
    t[-1, 1] = 0.125
    buf = io.BytesIO()
    t.save(BinaryWriter(buf))

    loaded = HistogramTable.load(BinaryReader(io.BytesIO(buf.getvalue())))
    assert loaded.same_grid(t)
    assert loaded.strides == t.strides
    assert dict(loaded.items()) == dict(t.items())


def test_load_truncated_stream():
    t = HistogramTable(1, 1.0, 0, 10)
    t[3] = 1.0
    buf = io.BytesIO()
    t.save(BinaryWriter(buf))
    with pytest.raises(CorruptFormatError):
        HistogramTable.load(BinaryReader(io.BytesIO(buf.getvalue()[:-4])))


def test_load_geometry_mismatch():
    buf = io.BytesIO()
    w = BinaryWriter(buf)
    w.write_double(1.0)
    w.write_double(0.0)
    w.write_double(10.0)
    w.write_int(1)
    w.write_int(7)  # should be 10
    w.write_int(7)
    w.write_int(1)
    w.write_int(1)
    w.write_int(1)
    w.write_int(0)
    with pytest.raises(CorruptFormatError):
        HistogramTable.load(BinaryReader(io.BytesIO(buf.getvalue())))
