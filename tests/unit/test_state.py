"""Unit tests for the metric state cache"""
import threading

from conftest import seconds_after
from sqlbeat.metrics.state import MetricSnapshot, MetricStateCache
from sqlbeat.metrics.values import TypedValue


class TestMetricStateCache:
    """Test snapshot storage"""

    def test_first_record_returns_none(self, state, t0):
        assert state.record("db01", "Questions__DELTA", MetricSnapshot(TypedValue.of_int(1), t0)) is None
        assert len(state) == 1

    def test_record_returns_previous_and_overwrites(self, state, t0):
        first = MetricSnapshot(TypedValue.of_int(1), t0)
        second = MetricSnapshot(TypedValue.of_int(2), seconds_after(t0, 10))

        state.record("db01", "q", first)
        assert state.record("db01", "q", second) == first
        assert state.get("db01", "q") == second

    def test_stale_observation_is_not_stored(self, state, t0):
        newer = MetricSnapshot(TypedValue.of_int(2), seconds_after(t0, 10))
        older = MetricSnapshot(TypedValue.of_int(1), t0)

        state.record("db01", "q", newer)
        assert state.record("db01", "q", older) == newer
        assert state.get("db01", "q") == newer

    def test_namespaces_are_isolated(self, state, t0):
        state.record("db01", "q", MetricSnapshot(TypedValue.of_int(1), t0))

        assert state.get("db02", "q") is None
        assert state.record("db02", "q", MetricSnapshot(TypedValue.of_int(5), t0)) is None
        assert len(state) == 2

    def test_concurrent_records_keep_one_entry_per_key(self, state, t0):
        def worker(offset):
            for i in range(200):
                state.record("db01", f"k{i % 10}", MetricSnapshot(TypedValue.of_int(i), seconds_after(t0, offset + i)))

        threads = [threading.Thread(target=worker, args=(n * 1000,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(state) == 10


class TestServerMetricState:
    """Test the per-server view"""

    def test_view_prefixes_keys_with_server(self, state, t0):
        view = state.for_server("db01")
        view.record("q", MetricSnapshot(TypedValue.of_int(1), t0))

        assert "q" in view
        assert ("db01", "q") in state
        assert "q" not in state.for_server("db02")
