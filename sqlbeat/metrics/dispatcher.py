"""Query dispatcher - per-shape row consumption and event publishing"""
import logging
from datetime import datetime
from typing import Iterable, Sequence

from ..publishers import Publisher, PublishError
from .events import Event, ResultShapeError, builder_for
from .keys import ColumnMarkers, KeyDerivationError
from .shapes import QueryShape
from .state import ServerMetricState

logger = logging.getLogger("sqlbeat.metrics.dispatcher")

Rows = Iterable[Sequence[str]]


class QueryDispatcher:
    """
    Feeds the rows of one query result to the matching event builder.

    Row consumption per query shape:
    - single-row, show-slave-delay: first row only, the rest is ignored
    - multiple-rows: every row; a failing row is logged and skipped
    - two-columns: every row, then at most one aggregated event
    """

    def __init__(
        self,
        server_id: str,
        state: ServerMetricState,
        publisher: Publisher,
        markers: ColumnMarkers = ColumnMarkers(),
    ):
        self.server_id = server_id
        self.state = state
        self.publisher = publisher
        self.markers = markers
        self._handlers = {
            QueryShape.SINGLE_ROW: self._dispatch_first_row,
            QueryShape.SLAVE_DELAY: self._dispatch_first_row,
            QueryShape.MULTIPLE_ROWS: self._dispatch_each_row,
            QueryShape.TWO_COLUMNS: self._dispatch_two_columns,
        }

    def dispatch(self, number: int, shape: QueryShape, columns: Sequence[str], rows: Rows, now: datetime) -> int:
        """
        Build and publish the events of one query execution.

        Args:
            number: 1-based position of the query in the server's list (for logs)
            shape: Configured shape of the query
            columns: Result column names
            rows: Raw text rows, consumed lazily
            now: Time the query was run

        Returns:
            Number of events published

        Raises:
            ResultShapeError: the result columns do not fit the shape
        """
        builder = builder_for(shape, self.state, self.markers)
        return self._handlers[shape](builder, number, columns, rows, now)

    # ---------- Shape policies ----------

    def _dispatch_first_row(self, builder, number: int, columns: Sequence[str], rows: Rows, now: datetime) -> int:
        for values in rows:
            try:
                event = builder.build_row(columns, values, now)
            except KeyDerivationError as e:
                logger.error("Query #%d error generating event from rows: %s", number, e)
                return 0
            return 1 if event and self._publish(event) else 0
        logger.debug("Query #%d (%s) returned no rows", number, builder.shape)
        return 0

    def _dispatch_each_row(self, builder, number: int, columns: Sequence[str], rows: Rows, now: datetime) -> int:
        published = 0
        for row_number, values in enumerate(rows, start=1):
            try:
                event = builder.build_row(columns, values, now)
            except KeyDerivationError as e:
                logger.error("Query #%d row %d error generating event: %s", number, row_number, e)
                continue
            if event and self._publish(event):
                published += 1
        return published

    def _dispatch_two_columns(self, builder, number: int, columns: Sequence[str], rows: Rows, now: datetime) -> int:
        builder.check_columns(columns)
        event = builder.new_event(now)

        for row_number, values in enumerate(rows, start=1):
            try:
                builder.append_row(event, values)
            except ResultShapeError as e:
                logger.error("Query #%d row %d error appending two-columns event: %s", number, row_number, e)

        if event.is_empty:
            logger.debug("Query #%d two-columns event has no data, not sent", number)
            return 0
        return 1 if self._publish(event) else 0

    # ---------- Publishing ----------

    def _publish(self, event: Event) -> bool:
        event.hostname = self.server_id
        try:
            self.publisher.publish(event.to_dict())
        except PublishError as e:
            logger.error("%s: failed to publish %s event: %s", self.server_id, event.type, e)
            return False
        logger.debug("%s: %s event sent", self.server_id, event.type)
        return True
