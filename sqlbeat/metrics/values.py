"""Typed cell values - classifies raw textual cells into Integer, Float or String"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


class ValueKind(Enum):
    """Kinds a column value can be classified into"""
    INTEGER = "int"
    FLOAT = "float"
    STRING = "string"


@dataclass(frozen=True)
class TypedValue:
    """A column value tagged with its classified kind"""
    kind: ValueKind
    value: Union[int, float, str]

    @classmethod
    def of_int(cls, value: int) -> "TypedValue":
        return cls(ValueKind.INTEGER, int(value))

    @classmethod
    def of_float(cls, value: float) -> "TypedValue":
        return cls(ValueKind.FLOAT, float(value))

    @classmethod
    def of_str(cls, value: str) -> "TypedValue":
        return cls(ValueKind.STRING, str(value))

    def zero(self) -> "TypedValue":
        """Zero of the same numeric kind"""
        if self.kind is ValueKind.INTEGER:
            return TypedValue.of_int(0)
        if self.kind is ValueKind.FLOAT:
            return TypedValue.of_float(0.0)
        raise TypeError("string values have no zero")


def _parse_int(raw: str):
    if not _INTEGER_RE.fullmatch(raw):
        return None
    value = int(raw)
    if value < INT64_MIN or value > INT64_MAX:
        return None
    return value


def _parse_float(raw: str):
    # float() tolerates padding and digit separators, a driver value never carries them
    if not raw or raw != raw.strip() or "_" in raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def classify(raw: str) -> TypedValue:
    """
    Classify a raw cell.

    Integer parsing always wins over float parsing, so "42" is an integer
    even though it is also a valid float. Anything that parses as neither
    is kept as a string; classification never fails.
    """
    as_int = _parse_int(raw)
    if as_int is not None:
        return TypedValue.of_int(as_int)

    as_float = _parse_float(raw)
    if as_float is not None:
        return TypedValue.of_float(as_float)

    return TypedValue.of_str(raw)


def to_raw_text(cell: Any) -> str:
    """
    Render a driver cell as text.

    MySQL cells arrive as wire bytes or str and are only decoded. Values a
    driver already converted (SQLite integers, Decimals) go through str().
    """
    if cell is None:
        return ""
    if isinstance(cell, (bytes, bytearray, memoryview)):
        return bytes(cell).decode("utf-8", errors="replace")
    return str(cell)
