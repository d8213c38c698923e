"""Column markers and metric key derivation for counter columns"""
from dataclasses import dataclass
from typing import Sequence

from .shapes import QueryShape

DEFAULT_DELTA_WILDCARD = "__DELTA"
DEFAULT_DELTA_KEY_WILDCARD = "__DELTAKEY"
DEFAULT_RATE_SUFFIX = "_PERSECOND"


class KeyDerivationError(Exception):
    """A counter column cannot be tied to a unique row"""


@dataclass(frozen=True)
class ColumnMarkers:
    """Column name suffixes that drive rate and key handling"""
    delta: str = DEFAULT_DELTA_WILDCARD
    delta_key: str = DEFAULT_DELTA_KEY_WILDCARD
    rate: str = DEFAULT_RATE_SUFFIX

    def is_key(self, name: str) -> bool:
        return bool(self.delta_key) and name.endswith(self.delta_key)

    def is_delta(self, name: str) -> bool:
        # Key columns are never counters, even when the key marker ends with the delta marker
        return bool(self.delta) and name.endswith(self.delta) and not self.is_key(name)

    def rate_name(self, name: str) -> str:
        """Replace a trailing delta marker with the rate suffix"""
        if self.delta and name.endswith(self.delta):
            return name[:-len(self.delta)] + self.rate
        return name

    def output_name(self, name: str) -> str:
        """Event field name for a result column"""
        if self.is_key(name):
            return name[:-len(self.delta_key)]
        if self.is_delta(name):
            return self.rate_name(name)
        return name


class RowKeyDeriver:
    """Builds the cache key of a counter column for a given query shape"""

    def __init__(self, markers: ColumnMarkers = ColumnMarkers()):
        self.markers = markers

    def derive(self, shape: QueryShape, columns: Sequence[str], values: Sequence[str], index: int) -> str:
        """
        Cache key for the counter in column `index` of one row.

        Args:
            shape: Shape of the query the row belongs to
            columns: Column names of the result set
            values: Raw text of every cell in the row
            index: Position of the counter column

        Raises:
            KeyDerivationError: multiple-rows result without a key column,
                or a shape that has no counters
        """
        if shape is QueryShape.SINGLE_ROW:
            return columns[index]
        if shape is QueryShape.MULTIPLE_ROWS:
            return self.row_identity(columns, values) + columns[index]
        if shape is QueryShape.TWO_COLUMNS:
            return values[0]
        raise KeyDerivationError(f"query type {shape} does not track counters")

    def row_identity(self, columns: Sequence[str], values: Sequence[str]) -> str:
        """Concatenated raw values of every key column, in column order"""
        key_values = [value for name, value in zip(columns, values) if self.markers.is_key(name)]
        if not key_values:
            raise KeyDerivationError(
                f"query type {QueryShape.MULTIPLE_ROWS} requires at least one "
                f"{self.markers.delta_key} column"
            )
        return "".join(key_values)
