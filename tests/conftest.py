"""Test configuration and fixtures for query-optimizer."""

import pytest
from datetime import datetime, timedelta, timezone
from query_optimizer.core.batch import build_query


@pytest.fixture
def base_time():
    return datetime(2025, 8, 18, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_query(base_time):
    """Build an AnalyzedQuery `offset` seconds after base_time."""
    def _make(sql, offset=0.0, duration_ms=None):
        return build_query(sql, duration_ms=duration_ms, analyzed_at=base_time + timedelta(seconds=offset))
    return _make


@pytest.fixture
def n_plus_one_queries(make_query):
    return [
        make_query(f"SELECT * FROM posts WHERE user_id = {i}", offset=i - 1)
        for i in range(1, 5)
    ]


@pytest.fixture
def sample_config_file(tmp_path):
    config_path = tmp_path / 'config.yml'
    config_path.write_text("""
log_level: debug
n_plus_one:
    threshold: 4
    time_window_seconds: 2.5
slow_query:
    slow_ms: 100
    very_slow_ms: 500
    critical_ms: 2000
missing_index:
    frequency_threshold: 2
""")
    return config_path
