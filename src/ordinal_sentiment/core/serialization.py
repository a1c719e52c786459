# serialization.py
"""
Ordered-primitive binary persistence.

Models are saved as a flat sequence of typed writes (double, int, bool,
string, tagged object). Readers must consume exactly the same sequence; any
mismatch surfaces as ``CorruptFormatError``.
"""
from __future__ import annotations

import io
import struct
from pathlib import Path
from typing import Any, BinaryIO, Dict, Union

from .errors import CorruptFormatError, InvalidArgumentError
from .labels import SentimentLabel

_DOUBLE = struct.Struct("<d")
_INT = struct.Struct("<i")
_BOOL = struct.Struct("<?")

# object type tags
_TAG_NONE = 0
_TAG_INT = 1
_TAG_DOUBLE = 2
_TAG_BOOL = 3
_TAG_STRING = 4
_TAG_SENTIMENT = 5


class BinaryWriter:
    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def write_double(self, value: float) -> None:
        self.stream.write(_DOUBLE.pack(float(value)))

    def write_int(self, value: int) -> None:
        self.stream.write(_INT.pack(int(value)))

    def write_bool(self, value: bool) -> None:
        self.stream.write(_BOOL.pack(bool(value)))

    def write_string(self, value: str) -> None:
        data = value.encode("utf-8")
        self.write_int(len(data))
        self.stream.write(data)

    def write_object(self, value: Any) -> None:
        """Writes a type tag followed by the value. Supports the label and primitive types."""
        if value is None:
            self.write_int(_TAG_NONE)
        elif isinstance(value, SentimentLabel):
            self.write_int(_TAG_SENTIMENT)
            self.write_int(int(value))
        elif isinstance(value, bool):
            self.write_int(_TAG_BOOL)
            self.write_bool(value)
        elif isinstance(value, int):
            self.write_int(_TAG_INT)
            self.write_int(value)
        elif isinstance(value, float):
            self.write_int(_TAG_DOUBLE)
            self.write_double(value)
        elif isinstance(value, str):
            self.write_int(_TAG_STRING)
            self.write_string(value)
        else:
            raise InvalidArgumentError(f"Cannot serialize object of type {type(value).__name__}")

    def write_dict(self, mapping: Dict[Any, Any]) -> None:
        self.write_int(len(mapping))
        for key, value in mapping.items():
            self.write_object(key)
            self.write_object(value)


class BinaryReader:
    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def _read(self, size: int) -> bytes:
        data = self.stream.read(size)
        if len(data) != size:
            raise CorruptFormatError(f"Unexpected end of stream (wanted {size} bytes, got {len(data)})")
        return data

    def read_double(self) -> float:
        return _DOUBLE.unpack(self._read(_DOUBLE.size))[0]

    def read_int(self) -> int:
        return _INT.unpack(self._read(_INT.size))[0]

    def read_bool(self) -> bool:
        raw = self._read(_BOOL.size)
        if raw not in (b"\x00", b"\x01"):
            raise CorruptFormatError(f"Invalid bool byte {raw!r}")
        return raw == b"\x01"

    def read_count(self) -> int:
        count = self.read_int()
        if count < 0:
            raise CorruptFormatError(f"Negative element count {count}")
        return count

    def read_string(self) -> str:
        return self._read(self.read_count()).decode("utf-8")

    def read_object(self) -> Any:
        tag = self.read_int()
        if tag == _TAG_NONE:
            return None
        if tag == _TAG_SENTIMENT:
            value = self.read_int()
            try:
                return SentimentLabel(value)
            except ValueError:
                raise CorruptFormatError(f"Invalid sentiment label value {value}") from None
        if tag == _TAG_BOOL:
            return self.read_bool()
        if tag == _TAG_INT:
            return self.read_int()
        if tag == _TAG_DOUBLE:
            return self.read_double()
        if tag == _TAG_STRING:
            return self.read_string()
        raise CorruptFormatError(f"Unknown object type tag {tag}")

    def read_dict(self) -> Dict[Any, Any]:
        return {self.read_object(): self.read_object() for _ in range(self.read_count())}


def save_model(model, path: Union[str, Path]) -> None:
    """Saves any object exposing ``save(writer)`` to ``path``."""
    with open(path, "wb") as f:
        model.save(BinaryWriter(f))


def load_model(cls, path: Union[str, Path]):
    with open(path, "rb") as f:
        return cls.load(BinaryReader(f))


def dumps(model) -> bytes:
    buffer = io.BytesIO()
    model.save(BinaryWriter(buffer))
    return buffer.getvalue()


def loads(cls, data: bytes):
    return cls.load(BinaryReader(io.BytesIO(data)))
