"""
Database access for sqlbeat.

Connections are made per server per polling pass through peewee
(MySQLDatabase, PyMySQL driver) and closed at the end of the pass. Queries
are raw SQL; rows are read lazily. PyMySQL runs without type converters, so
numeric and temporal cells keep the wire text of the MySQL text protocol
(bytes, decoded here) and the metric engine types that text itself.
"""

import logging
from typing import Any, Iterator, List

import peewee
from peewee import MySQLDatabase

from .config import ServerConfig
from .metrics.values import to_raw_text

logger = logging.getLogger("sqlbeat.database")


class QueryExecutionError(Exception):
    """Query failed, or its result set could not be read"""


class QueryResult:
    """Open cursor over one query result"""

    def __init__(self, database: peewee.Database, cursor: Any, columns: List[str]):
        self.database = database
        self.cursor = cursor
        self.columns = columns

    def rows(self) -> Iterator[List[str]]:
        """Yield each row as raw text cells, fetching one row at a time"""
        while True:
            try:
                with peewee.__exception_wrapper__:
                    row = self.cursor.fetchone()
            except peewee.PeeweeException as e:
                raise QueryExecutionError(f"error reading rows: {e}") from e
            if row is None:
                return
            yield [to_raw_text(cell) for cell in row]

    def close(self) -> None:
        try:
            self.cursor.close()
        except Exception as e:
            logger.warning("error closing cursor: %s", e)

    def __enter__(self) -> "QueryResult":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def connect_server(server: ServerConfig) -> peewee.Database:
    """Create an unopened database handle for one configured server"""
    return MySQLDatabase(
        server.database,
        host=server.hostname,
        port=server.port,
        user=server.username,
        password=server.password,
        connect_timeout=server.connect_timeout,
        charset="utf8mb4",
        # No type converters: cells arrive as the text the server sent
        conv={},
    )


def execute_query(database: peewee.Database, sql: str) -> QueryResult:
    """
    Run a raw SQL query.

    Raises:
        QueryExecutionError: the query failed or returned no column description
    """
    try:
        with peewee.__exception_wrapper__:
            cursor = database.cursor()
            # No parameters: PyMySQL only applies %-formatting when given some,
            # so LIKE 'Threads_%' reaches the server untouched
            cursor.execute(sql)
    except peewee.PeeweeException as e:
        raise QueryExecutionError(f"query failed: {e}") from e

    if not cursor.description:
        cursor.close()
        raise QueryExecutionError("query returned no columns")

    columns = [column[0] for column in cursor.description]
    return QueryResult(database, cursor, columns)
