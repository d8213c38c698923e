"""Unit tests for database access

Runs real SQL through peewee against SQLite to check how results are read.
"""
from unittest.mock import MagicMock, patch

import pytest
from peewee import MySQLDatabase

from sqlbeat.config import ServerConfig
from sqlbeat.database import QueryExecutionError, QueryResult, connect_server, execute_query
from sqlbeat.metrics.values import ValueKind, classify


class TestExecuteQuery:
    """Test raw query execution"""

    def test_columns_and_text_rows(self, test_db):
        test_db.execute_sql("INSERT INTO table_stats VALUES ('db1', 'users', 100, 1.5), ('db1', 'orders', NULL, 2.0)")

        with execute_query(test_db, "SELECT * FROM table_stats ORDER BY table_name DESC") as result:
            rows = list(result.rows())

        assert result.columns == ["table_schema", "table_name", "table_rows", "data_length"]
        assert rows == [["db1", "users", "100", "1.5"], ["db1", "orders", "", "2.0"]]

    def test_column_aliases(self, test_db):
        with execute_query(test_db, "SELECT 5 AS threads, 10 AS questions__DELTA") as result:
            assert result.columns == ["threads", "questions__DELTA"]
            assert list(result.rows()) == [["5", "10"]]

    def test_empty_result_keeps_columns(self, test_db):
        with execute_query(test_db, "SELECT variable_name, variable_value FROM global_status") as result:
            assert result.columns == ["variable_name", "variable_value"]
            assert list(result.rows()) == []

    def test_rows_are_read_lazily(self, test_db):
        test_db.execute_sql("INSERT INTO global_status VALUES ('a', '1'), ('b', '2')")

        with execute_query(test_db, "SELECT * FROM global_status ORDER BY variable_name") as result:
            rows = result.rows()
            assert next(rows) == ["a", "1"]

    def test_failed_query(self, test_db):
        with pytest.raises(QueryExecutionError, match="query failed"):
            execute_query(test_db, "SELECT * FROM no_such_table")

    def test_statement_without_columns(self, test_db):
        with pytest.raises(QueryExecutionError, match="no columns"):
            execute_query(test_db, "UPDATE global_status SET variable_value = '0'")


class TestConnectServer:
    """Test database handle creation"""

    def test_mysql_handle_from_config(self):
        server = ServerConfig(hostname="10.0.0.5", port=3307, username="beat", password="pw")
        db = connect_server(server)

        assert isinstance(db, MySQLDatabase)
        assert db.database == "information_schema"
        assert db.connect_params["host"] == "10.0.0.5"
        assert db.connect_params["port"] == 3307
        assert db.connect_params["user"] == "beat"
        assert db.connect_params["password"] == "pw"
        assert db.is_closed()
        assert db.connect_params["conv"] == {}


class TestWireCells:
    """Test that MySQL text-protocol cells are typed from their wire text"""

    def _result(self, test_db, row):
        cursor = MagicMock()
        cursor.fetchone.side_effect = [row, None]
        return QueryResult(test_db, cursor, ["a", "b", "c", "d"])

    def test_cells_keep_wire_text(self, test_db):
        # DOUBLE 1, TIME 25:00:00, DECIMAL 0.50, NULL as PyMySQL returns them without converters
        rows = list(self._result(test_db, (b"1", b"25:00:00", b"0.50", None)).rows())

        assert rows == [["1", "25:00:00", "0.50", ""]]

    def test_double_with_integral_wire_text_is_integer(self, test_db):
        [row] = list(self._result(test_db, (b"1", b"1.5", b"-3", b"abc")).rows())

        assert [classify(cell).kind for cell in row] == [
            ValueKind.INTEGER, ValueKind.FLOAT, ValueKind.INTEGER, ValueKind.STRING,
        ]


class TestQueryText:
    """Test that query text reaches the driver unformatted"""

    def test_percent_sign_is_not_a_placeholder(self, test_db):
        test_db.execute_sql("INSERT INTO global_status VALUES ('Threads_connected', '4'), ('Uptime', '10')")

        with execute_query(test_db, "SELECT variable_value FROM global_status WHERE variable_name LIKE 'Threads_%'") as result:
            assert list(result.rows()) == [["4"]]

    def test_driver_gets_no_parameters(self, test_db):
        cursor = MagicMock()
        cursor.description = [("Variable_name",), ("Value",)]

        with patch.object(test_db, "cursor", return_value=cursor):
            execute_query(test_db, "SHOW GLOBAL STATUS LIKE 'Threads_%'")

        cursor.execute.assert_called_once_with("SHOW GLOBAL STATUS LIKE 'Threads_%'")
