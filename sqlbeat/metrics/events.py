"""
Event builders - turn query result rows into events.

One builder per query shape:
- single-row:       one event from the first row
- multiple-rows:    one event per row, counters keyed by the row's key columns
- show-slave-delay: one event holding only the replication lag column
- two-columns:      one event aggregating name/value pairs across all rows

Counter columns (delta marker) are converted to per-second rates using the
server's metric state. The first sighting of a counter only stores a
baseline, so nothing is emitted for it on that cycle.
"""

import logging
from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from .keys import ColumnMarkers, RowKeyDeriver
from .rates import calculate_rate
from .shapes import QueryShape
from .state import MetricSnapshot, ServerMetricState
from .values import TypedValue, classify

logger = logging.getLogger("sqlbeat.metrics.events")

SLAVE_DELAY_COLUMN = "Seconds_Behind_Master"


class ResultShapeError(Exception):
    """Result set columns do not fit the configured query shape"""


def format_timestamp(ts: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision"""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Event:
    """Single event produced from a query result"""
    timestamp: datetime
    type: QueryShape
    fields: Dict[str, TypedValue] = field(default_factory=dict)
    hostname: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.fields

    def to_dict(self) -> Dict[str, Any]:
        """Plain mapping ready for JSON serialization"""
        data: Dict[str, Any] = {
            "@timestamp": format_timestamp(self.timestamp),
            "type": self.type.value,
        }
        if self.hostname is not None:
            data["hostname"] = self.hostname
        for name, value in self.fields.items():
            # Scaffolding fields win over identically named columns
            data.setdefault(name, value.value)
        return data


class EventBuilder(ABC):
    """Base class for all event builders"""

    shape: QueryShape

    def __init__(self, state: ServerMetricState, markers: ColumnMarkers = ColumnMarkers()):
        self.state = state
        self.markers = markers
        self.keys = RowKeyDeriver(markers)

    def observe_counter(self, key: str, value: TypedValue, observed_at: datetime) -> Optional[TypedValue]:
        """Store a counter observation and return its rate, or None when nothing should be emitted"""
        previous = self.state.record(key, MetricSnapshot(value, observed_at))
        if previous is None:
            logger.debug("baseline stored for %s/%s", self.state.server_id, key)
            return None
        if previous.observed_at > observed_at:
            return None

        rate = calculate_rate(previous, value, observed_at)
        if rate is None:
            logger.debug("no rate for %s/%s (previous %s, current %s)",
                         self.state.server_id, key, previous.value, value)
        return rate


class RowEventBuilder(EventBuilder):
    """Builds one event out of one result row"""

    tracks_counters = True

    def include_column(self, name: str) -> bool:
        return True

    def build_row(self, columns: Sequence[str], values: Sequence[str], now: datetime) -> Optional[Event]:
        """
        Create an event from one row.

        Returns None when the row produced no data field, e.g. every column
        is a counter seen for the first time.

        Raises:
            KeyDerivationError: a counter column cannot be tied to the row
        """
        event = Event(timestamp=now, type=self.shape)

        for index, (name, raw) in enumerate(zip(columns, values)):
            if not self.include_column(name):
                continue

            value = classify(raw)
            if self.tracks_counters and self.markers.is_delta(name):
                key = self.keys.derive(self.shape, columns, values, index)
                value = self.observe_counter(key, value, now)
                if value is None:
                    continue

            event.fields[self.markers.output_name(name)] = value

        if event.is_empty:
            return None
        return event


class SingleRowEventBuilder(RowEventBuilder):
    shape = QueryShape.SINGLE_ROW


class MultipleRowsEventBuilder(RowEventBuilder):
    shape = QueryShape.MULTIPLE_ROWS


class SlaveDelayEventBuilder(RowEventBuilder):
    """Keeps only the replication lag out of SHOW SLAVE STATUS"""

    shape = QueryShape.SLAVE_DELAY
    tracks_counters = False

    def include_column(self, name: str) -> bool:
        return name == SLAVE_DELAY_COLUMN


class TwoColumnsEventBuilder(EventBuilder):
    """Aggregates (name, value) rows into a single event"""

    shape = QueryShape.TWO_COLUMNS

    def check_columns(self, columns: Sequence[str]) -> None:
        if len(columns) != 2:
            raise ResultShapeError(
                f"query type {self.shape} expects exactly 2 columns, got {len(columns)}"
            )

    def new_event(self, now: datetime) -> Event:
        return Event(timestamp=now, type=self.shape)

    def append_row(self, event: Event, values: Sequence[str]) -> None:
        """Add one (name, value) row to the aggregated event"""
        if len(values) != 2:
            raise ResultShapeError(f"query type {self.shape} expects 2 values per row, got {len(values)}")

        name, raw = values[0], values[1]
        value = classify(raw)

        if self.markers.is_delta(name):
            key = self.keys.derive(self.shape, ("name", "value"), values, 1)
            value = self.observe_counter(key, value, event.timestamp)
            if value is None:
                return

        event.fields[self.markers.rate_name(name)] = value


BUILDER_REGISTRY = {
    QueryShape.SINGLE_ROW: SingleRowEventBuilder,
    QueryShape.MULTIPLE_ROWS: MultipleRowsEventBuilder,
    QueryShape.SLAVE_DELAY: SlaveDelayEventBuilder,
    QueryShape.TWO_COLUMNS: TwoColumnsEventBuilder,
}


def builder_for(shape: QueryShape, state: ServerMetricState, markers: ColumnMarkers = ColumnMarkers()) -> EventBuilder:
    """Create the event builder handling `shape`"""
    try:
        builder_class = BUILDER_REGISTRY[shape]
    except KeyError:
        raise ValueError(f"Query type {shape} not supported")
    return builder_class(state, markers)
