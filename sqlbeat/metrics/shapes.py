from enum import Enum


class QueryShape(Enum):
    """
    Enumeration of supported query result shapes.
    """
    SINGLE_ROW = "single-row"
    MULTIPLE_ROWS = "multiple-rows"
    TWO_COLUMNS = "two-columns"
    SLAVE_DELAY = "show-slave-delay"

    def __str__(self) -> str:
        return self.value
