"""Test slow query analysis."""

import pytest
from query_optimizer.core.models import Impact, Severity, SlowQuerySeverity
from query_optimizer.core.slow_query import SlowQueryAnalyzer, analyze_slow_queries
from query_optimizer.utils.config import ConfigurationError, SlowQueryConfig


def test_select_star_without_where_end_to_end(make_query):
    issues = analyze_slow_queries([make_query("SELECT * FROM users", duration_ms=3000)])

    assert len(issues) == 1
    issue = issues[0]
    assert issue.severity == SlowQuerySeverity.VERY_SLOW
    assert issue.duration_ms == 3000
    assert issue.table == 'users'
    assert issue.issue_types == ['select_star', 'no_where_clause']

    titles = [s.title for s in issue.suggestions]
    assert titles == ['Very Slow Query', 'Avoid SELECT *', 'Add WHERE clause']
    assert issue.suggestions[0].priority == Severity.HIGH
    assert issue.suggestions[1].sql_example == 'SELECT id, name, created_at FROM users'
    assert issue.suggestions[2].sql_example == "SELECT * FROM users WHERE created_at > '2023-01-01'"


@pytest.mark.parametrize('sql, expected', [
    (
        "SELECT * FROM users ORDER BY id LIMIT 5;",
        "SELECT * FROM users WHERE created_at > '2023-01-01' ORDER BY id LIMIT 5",
    ),
    (
        "SELECT name FROM users UNION SELECT name FROM admins",
        "SELECT name FROM users WHERE created_at > '2023-01-01' UNION SELECT name FROM admins",
    ),
])
def test_where_example_is_valid_sql(make_query, sql, expected):
    issue = analyze_slow_queries([make_query(sql, duration_ms=300)])[0]

    add_where = next(s for s in issue.suggestions if s.title == 'Add WHERE clause')
    assert add_where.sql_example == expected


@pytest.mark.parametrize('duration, severity', [
    (200, SlowQuerySeverity.SLOW),
    (999.9, SlowQuerySeverity.SLOW),
    (1000, SlowQuerySeverity.VERY_SLOW),
    (4999, SlowQuerySeverity.VERY_SLOW),
    (5000, SlowQuerySeverity.CRITICAL),
    (60000, SlowQuerySeverity.CRITICAL),
])
def test_severity_bands(make_query, duration, severity):
    issues = analyze_slow_queries([make_query("SELECT id FROM users WHERE id = 1", duration_ms=duration)])

    assert [i.severity for i in issues] == [severity]


def test_fast_and_untimed_queries_are_ignored(make_query):
    queries = [
        make_query("SELECT * FROM users", duration_ms=199),
        make_query("SELECT * FROM users", duration_ms=0),
        make_query("SELECT * FROM users"),
    ]

    assert analyze_slow_queries(queries) == []


def test_invalid_slow_queries_are_skipped(make_query):
    queries = [
        make_query("NOT VALID SQL (((", duration_ms=9000),
        make_query("SELECT * FROM users", duration_ms=9000),
    ]

    issues = analyze_slow_queries(queries)

    assert [i.query.sql for i in issues] == ["SELECT * FROM users"]


@pytest.mark.parametrize('severity, title, priority', [
    (SlowQuerySeverity.SLOW, 'Slow Query', Severity.MEDIUM),
    (SlowQuerySeverity.VERY_SLOW, 'Very Slow Query', Severity.HIGH),
    (SlowQuerySeverity.CRITICAL, 'Critical Performance Issue', Severity.CRITICAL),
])
def test_exactly_one_duration_suggestion(make_query, severity, title, priority):
    durations = {
        SlowQuerySeverity.SLOW: 300,
        SlowQuerySeverity.VERY_SLOW: 1000,
        SlowQuerySeverity.CRITICAL: 5000,
    }
    issue = analyze_slow_queries([make_query("SELECT id FROM users WHERE id = 1", duration_ms=durations[severity])])[0]

    duration_titles = {'Slow Query', 'Very Slow Query', 'Critical Performance Issue'}
    duration_suggestions = [s for s in issue.suggestions if s.title in duration_titles]
    assert len(duration_suggestions) == 1
    assert duration_suggestions[0].title == title
    assert duration_suggestions[0].priority == priority


def test_complexity_checks(make_query):
    sql = (
        "SELECT id FROM users WHERE lower(name) LIKE '%smith' OR status = 'a' "
        "OR org_id IN (SELECT id FROM orgs WHERE plan = 'free')"
    )
    issue = analyze_slow_queries([make_query(sql, duration_ms=500)])[0]

    assert issue.issue_types == ['function_in_where', 'leading_wildcard_like', 'or_conditions', 'subquery']
    impacts = {c.type: c.impact for c in issue.complexity_issues}
    assert impacts['function_in_where'] == Impact.HIGH
    assert impacts['or_conditions'] == Impact.MEDIUM


def test_complex_where(make_query):
    sql = "SELECT id FROM t WHERE a = 1 AND b = 2 AND c = 3 AND d = 4 AND e = 5 AND f = 6"
    issue = analyze_slow_queries([make_query(sql, duration_ms=500)])[0]

    assert issue.issue_types == ['complex_where']
    assert 'Simplify WHERE conditions' in [s.title for s in issue.suggestions]


def test_five_conditions_is_not_complex(make_query):
    sql = "SELECT id FROM t WHERE a = 1 AND b = 2 AND c = 3 AND d = 4 AND e = 5"
    issue = analyze_slow_queries([make_query(sql, duration_ms=500)])[0]

    assert issue.issue_types == []


@pytest.mark.parametrize('sql, expected', [
    ("SELECT id FROM orders WHERE customer_id = 1 AND status = 'open'", []),
    ("SELECT id FROM orders WHERE status = 'open' OR status = 'paid'", ['or_conditions']),
    ("SELECT id FROM orders WHERE customer_id = 1 AND (status = 'open' OR status = 'paid')", ['or_conditions']),
    (
        "SELECT id FROM orders o WHERE EXISTS (SELECT 1 FROM refunds r WHERE r.order_id = o.id)",
        ['subquery'],
    ),
    ("SELECT id FROM orders WHERE upper(status) = 'OPEN' AND customer_id = 1", ['function_in_where']),
])
def test_boolean_connectives_are_not_functions(make_query, sql, expected):
    issue = analyze_slow_queries([make_query(sql, duration_ms=500)])[0]

    assert issue.issue_types == expected
    titles = [s.title for s in issue.suggestions]
    assert ('Avoid functions in WHERE clause' in titles) == ('function_in_where' in expected)


def test_index_suggestion_lists_where_columns(make_query):
    issue = analyze_slow_queries([
        make_query("SELECT id FROM orders WHERE customer_id = $1 AND status = 'open'", duration_ms=450)
    ])[0]

    assert issue.issue_types == []
    assert [s.title for s in issue.suggestions] == ['Slow Query', 'Consider adding indexes']
    index_suggestion = issue.suggestions[-1]
    assert index_suggestion.title == 'Consider adding indexes'
    assert index_suggestion.description == 'Query filters on columns: customer_id, status'
    assert index_suggestion.sql_example.splitlines() == [
        'CREATE INDEX idx_orders_customer_id ON orders(customer_id);',
        'CREATE INDEX idx_orders_status ON orders(status);',
    ]


def test_no_index_suggestion_without_where_columns(make_query):
    issue = analyze_slow_queries([make_query("SELECT * FROM users", duration_ms=450)])[0]

    assert 'Consider adding indexes' not in [s.title for s in issue.suggestions]


def test_one_issue_per_qualifying_query(make_query):
    queries = [make_query("SELECT * FROM users WHERE id = 1", duration_ms=250 + i) for i in range(4)]

    assert len(analyze_slow_queries(queries)) == 4


def test_custom_thresholds(make_query):
    issues = analyze_slow_queries(
        [make_query("SELECT id FROM users WHERE id = 1", duration_ms=150)],
        slow=100, very_slow=140, critical=1000,
    )

    assert issues[0].severity == SlowQuerySeverity.VERY_SLOW


@pytest.mark.parametrize('config', [
    SlowQueryConfig(slow_ms=-1),
    SlowQueryConfig(slow_ms=500, very_slow_ms=400),
    SlowQueryConfig(very_slow_ms=6000, critical_ms=5000),
])
def test_invalid_config_is_rejected(config):
    with pytest.raises(ConfigurationError):
        SlowQueryAnalyzer(config)
