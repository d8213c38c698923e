"""
Rate calculation for counter columns.

A counter column is converted into a per-second rate between two
consecutive observations. Counters are expected to only go up: a value that
did not increase (server restart, counter reset, no activity) yields a rate
of zero rather than a negative number.
"""

import math
from datetime import datetime
from typing import Optional

from .state import MetricSnapshot
from .values import TypedValue, ValueKind


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity (5.5 -> 6, -1.5 -> -1)"""
    return int(math.floor(value + 0.5))


def calculate_rate(previous: MetricSnapshot, value: TypedValue, observed_at: datetime) -> Optional[TypedValue]:
    """
    Per-second rate between `previous` and the current observation.

    Args:
        previous: Snapshot stored for this counter on an earlier cycle
        value: Current typed value
        observed_at: Time the current value was read

    Returns:
        The rate, typed like the inputs. String values are passed through
        unchanged. None when no rate can be computed: the kinds differ, or
        no time has elapsed since the previous observation.
    """
    if value.kind is ValueKind.STRING:
        return value

    if previous.value.kind is not value.kind:
        return None

    elapsed = (observed_at - previous.observed_at).total_seconds()
    if elapsed <= 0:
        return None

    # Reset guard
    if not value.value > previous.value.value:
        return value.zero()

    per_second = (value.value - previous.value.value) / elapsed
    if value.kind is ValueKind.INTEGER:
        return TypedValue.of_int(round_half_up(per_second))
    return TypedValue.of_float(per_second)
