"""Test batch ingestion and query models."""

import pytest
from datetime import datetime, timezone
from query_optimizer.core.batch import QueryBatch, build_query
from query_optimizer.core.models import StatementKind


def test_build_query_exposes_parsed_facts(base_time):
    query = build_query("SELECT * FROM posts WHERE user_id = $1 ORDER BY id", duration_ms=12.5, analyzed_at=base_time)

    assert query.valid
    assert query.table == 'posts'
    assert query.kind == StatementKind.SELECT
    assert query.where_columns == ['user_id']
    assert query.order_by_columns == ('id',)
    assert query.signature == query.parsed.signature
    assert query.analyzed_at == base_time
    assert query.duration_ms == 12.5


def test_build_query_assigns_timestamp():
    query = build_query("SELECT * FROM users")

    assert query.analyzed_at.tzinfo is not None


@pytest.mark.parametrize('analyzed_at', [
    datetime(2025, 8, 18, 12, 0),
    '2025-08-18T12:00:00',
    1755518400,
])
def test_build_query_normalizes_timestamps_to_utc(analyzed_at):
    query = build_query("SELECT * FROM users", analyzed_at=analyzed_at)

    assert query.analyzed_at == datetime(2025, 8, 18, 12, 0, tzinfo=timezone.utc)


def test_negative_duration_is_rejected():
    with pytest.raises(ValueError):
        build_query("SELECT * FROM users", duration_ms=-1)


def test_analyzed_query_is_immutable():
    query = build_query("SELECT * FROM users")

    with pytest.raises(AttributeError):
        query.sql = "SELECT 1"


def test_from_records():
    batch = QueryBatch.from_records([
        {'sql': "SELECT * FROM users WHERE id = 1", 'duration_ms': 20, 'analyzed_at': '2025-08-18T12:00:00'},
        {'sql': "   ", 'duration_ms': 10},
        {'duration_ms': 10},
        {'sql': "not sql ((("},
        {'sql': "SELECT * FROM users WHERE id = 2", 'analyzed_at': 1755518400},
    ])

    assert len(batch) == 3
    assert len(batch.valid_queries) == 2
    assert len(batch.invalid_queries) == 1
    first = batch.queries[0]
    assert first.duration_ms == 20.0
    assert first.analyzed_at == datetime(2025, 8, 18, 12, 0, tzinfo=timezone.utc)
    assert batch.queries[2].analyzed_at == datetime.fromtimestamp(1755518400, tz=timezone.utc)


def test_load_yaml_batch(tmp_path):
    batch_path = tmp_path / 'batch.yml'
    batch_path.write_text("""
queries:
  - sql: SELECT * FROM users WHERE email = 'a@example.com'
    duration_ms: 250
  - sql: SELECT * FROM users WHERE email = 'b@example.com'
""")

    batch = QueryBatch.load(batch_path)

    assert [q.duration_ms for q in batch] == [250.0, None]
    assert batch.queries[0].signature == batch.queries[1].signature


def test_load_json_batch(tmp_path):
    batch_path = tmp_path / 'batch.json'
    batch_path.write_text('{"queries": [{"sql": "DELETE FROM sessions WHERE id = 4", "duration_ms": 3}]}')

    batch = QueryBatch.load(batch_path)

    assert batch.queries[0].kind == StatementKind.DELETE


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        QueryBatch.load(tmp_path / 'missing.yml')


def test_load_without_queries(tmp_path):
    batch_path = tmp_path / 'batch.yml'
    batch_path.write_text("items: []\n")

    with pytest.raises(ValueError):
        QueryBatch.load(batch_path)
