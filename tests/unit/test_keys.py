"""Unit tests for column markers and metric key derivation"""
import pytest

from sqlbeat.metrics.keys import ColumnMarkers, KeyDerivationError, RowKeyDeriver
from sqlbeat.metrics.shapes import QueryShape


class TestColumnMarkers:
    """Test suffix handling of column names"""

    def test_defaults(self):
        markers = ColumnMarkers()
        assert markers.delta == "__DELTA"
        assert markers.delta_key == "__DELTAKEY"
        assert markers.rate == "_PERSECOND"

    def test_delta_column(self):
        markers = ColumnMarkers()
        assert markers.is_delta("Questions__DELTA")
        assert not markers.is_key("Questions__DELTA")
        assert markers.output_name("Questions__DELTA") == "Questions_PERSECOND"

    def test_key_column(self):
        markers = ColumnMarkers()
        assert markers.is_key("table__DELTAKEY")
        assert not markers.is_delta("table__DELTAKEY")
        assert markers.output_name("table__DELTAKEY") == "table"

    def test_plain_column(self):
        markers = ColumnMarkers()
        assert not markers.is_delta("Threads_connected")
        assert not markers.is_key("Threads_connected")
        assert markers.output_name("Threads_connected") == "Threads_connected"

    def test_marker_must_be_a_suffix(self):
        markers = ColumnMarkers()
        assert not markers.is_delta("__DELTA_questions")
        assert markers.output_name("__DELTA_questions") == "__DELTA_questions"

    def test_key_marker_ending_with_delta_marker_is_still_a_key(self):
        markers = ColumnMarkers(delta="_C", delta_key="_KEY_C")
        assert markers.is_key("host_KEY_C")
        assert not markers.is_delta("host_KEY_C")
        assert markers.output_name("host_KEY_C") == "host"

    def test_custom_rate_suffix(self):
        markers = ColumnMarkers(delta="_total", delta_key="_id", rate="_rate")
        assert markers.output_name("bytes_total") == "bytes_rate"
        assert markers.output_name("disk_id") == "disk"


class TestRowKeyDeriver:
    """Test cache key derivation per query shape"""

    columns = ["schema__DELTAKEY", "table__DELTAKEY", "rows__DELTA", "size"]

    def test_single_row_uses_column_name(self):
        deriver = RowKeyDeriver()
        key = deriver.derive(QueryShape.SINGLE_ROW, ["Questions__DELTA"], ["100"], 0)
        assert key == "Questions__DELTA"

    def test_multiple_rows_concatenates_key_values_and_column(self):
        deriver = RowKeyDeriver()
        key = deriver.derive(QueryShape.MULTIPLE_ROWS, self.columns, ["db1", "users", "100", "16384"], 2)
        assert key == "db1usersrows__DELTA"

    def test_multiple_rows_keys_differ_per_row(self):
        deriver = RowKeyDeriver()
        first = deriver.derive(QueryShape.MULTIPLE_ROWS, self.columns, ["db1", "users", "100", "0"], 2)
        second = deriver.derive(QueryShape.MULTIPLE_ROWS, self.columns, ["db1", "orders", "100", "0"], 2)
        assert first != second

    def test_multiple_rows_without_key_column_fails(self):
        deriver = RowKeyDeriver()
        with pytest.raises(KeyDerivationError, match="__DELTAKEY"):
            deriver.derive(QueryShape.MULTIPLE_ROWS, ["rows__DELTA"], ["100"], 0)

    def test_two_columns_uses_first_value(self):
        deriver = RowKeyDeriver()
        key = deriver.derive(QueryShape.TWO_COLUMNS, ["Variable_name", "Value"], ["Questions__DELTA", "100"], 1)
        assert key == "Questions__DELTA"

    def test_slave_delay_has_no_counters(self):
        deriver = RowKeyDeriver()
        with pytest.raises(KeyDerivationError):
            deriver.derive(QueryShape.SLAVE_DELAY, ["Seconds_Behind_Master"], ["0"], 0)
