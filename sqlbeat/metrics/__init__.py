"""Metric derivation package - typing, rates and event building for query results"""

from .values import TypedValue, ValueKind, classify, to_raw_text
from .state import MetricSnapshot, MetricStateCache, ServerMetricState
from .rates import calculate_rate, round_half_up
from .shapes import QueryShape
from .keys import ColumnMarkers, KeyDerivationError, RowKeyDeriver
from .events import (
    Event,
    EventBuilder,
    ResultShapeError,
    SingleRowEventBuilder,
    MultipleRowsEventBuilder,
    SlaveDelayEventBuilder,
    TwoColumnsEventBuilder,
    builder_for,
)
from .dispatcher import QueryDispatcher

__all__ = [
    # Values
    'TypedValue',
    'ValueKind',
    'classify',
    'to_raw_text',

    # State and rates
    'MetricSnapshot',
    'MetricStateCache',
    'ServerMetricState',
    'calculate_rate',
    'round_half_up',

    # Keys
    'QueryShape',
    'ColumnMarkers',
    'KeyDerivationError',
    'RowKeyDeriver',

    # Events
    'Event',
    'EventBuilder',
    'ResultShapeError',
    'SingleRowEventBuilder',
    'MultipleRowsEventBuilder',
    'SlaveDelayEventBuilder',
    'TwoColumnsEventBuilder',
    'builder_for',

    # Dispatcher
    'QueryDispatcher',
]
