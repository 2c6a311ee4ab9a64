"""
Slow query analysis.
Classifies query durations and flags structural problems with remediation suggestions.
"""
import logging
import re
from typing import List, Optional, Sequence

import sqlglot

from .models import (
    AnalyzedQuery, ComplexityIssue, Impact, Severity, SlowQueryIssue,
    SlowQuerySeverity, StatementKind, Suggestion,
)
from .parser import DIALECT, leftmost_select
from ..utils.config import SlowQueryConfig

logger = logging.getLogger(__name__)

MAX_WHERE_CONDITIONS = 5
EXAMPLE_FILTER = "created_at > '2023-01-01'"

_SELECT_STAR_RE = re.compile(r'SELECT\s+\*', re.IGNORECASE)


def _with_example_filter(sql: str) -> str:
    """Attach a sample filter to the first SELECT, ahead of any ORDER BY or LIMIT."""
    statement = sqlglot.parse_one(sql.rstrip(';'), read=DIALECT)
    leftmost_select(statement).where(EXAMPLE_FILTER, dialect=DIALECT, copy=False)
    return statement.sql(dialect=DIALECT)


class SlowQueryAnalyzer:
    def __init__(self, config: Optional[SlowQueryConfig] = None):
        self.config = config or SlowQueryConfig()
        self.config.validate()

    def analyze(self, queries: Sequence[AnalyzedQuery]) -> List[SlowQueryIssue]:
        """Return one issue per valid query at or above the slow threshold."""
        issues = []
        for query in queries:
            if query.duration_ms is None or query.duration_ms < self.config.slow_ms:
                continue
            if not query.valid:
                logger.debug("Skipping unparsable slow query: %s", query.sql)
                continue
            issues.append(self.analyze_query(query))

        logger.debug("Slow query analysis: %d of %d queries flagged", len(issues), len(queries))
        return issues

    def analyze_query(self, query: AnalyzedQuery) -> SlowQueryIssue:
        severity = self.calculate_severity(query.duration_ms)
        complexity_issues = self.analyze_complexity(query)
        return SlowQueryIssue(
            query=query,
            duration_ms=query.duration_ms,
            severity=severity,
            complexity_issues=complexity_issues,
            suggestions=self.generate_suggestions(query, severity, complexity_issues),
        )

    def calculate_severity(self, duration_ms: float) -> SlowQuerySeverity:
        if duration_ms >= self.config.critical_ms:
            return SlowQuerySeverity.CRITICAL
        if duration_ms >= self.config.very_slow_ms:
            return SlowQuerySeverity.VERY_SLOW
        return SlowQuerySeverity.SLOW

    @staticmethod
    def analyze_complexity(query: AnalyzedQuery) -> List[ComplexityIssue]:
        """Run the fixed catalogue of structural checks."""
        parsed = query.parsed
        issues = []

        if parsed.select_star:
            issues.append(ComplexityIssue(
                type='select_star',
                description='Using SELECT * can be inefficient',
                impact=Impact.MEDIUM,
            ))

        if parsed.kind == StatementKind.SELECT and not parsed.has_where:
            issues.append(ComplexityIssue(
                type='no_where_clause',
                description='Query without WHERE clause may scan entire table',
                impact=Impact.HIGH,
            ))

        if len(parsed.where_conditions) > MAX_WHERE_CONDITIONS:
            issues.append(ComplexityIssue(
                type='complex_where',
                description='Query has many WHERE conditions which may be inefficient',
                impact=Impact.MEDIUM,
            ))

        if parsed.where_has_function:
            issues.append(ComplexityIssue(
                type='function_in_where',
                description='Function calls in WHERE clause prevent index usage',
                impact=Impact.HIGH,
            ))

        if parsed.leading_wildcard_like:
            issues.append(ComplexityIssue(
                type='leading_wildcard_like',
                description='LIKE with leading wildcard cannot use indexes efficiently',
                impact=Impact.HIGH,
            ))

        if parsed.has_or:
            issues.append(ComplexityIssue(
                type='or_conditions',
                description='OR conditions can prevent efficient index usage',
                impact=Impact.MEDIUM,
            ))

        if parsed.has_subquery:
            issues.append(ComplexityIssue(
                type='subquery',
                description='Subqueries may be less efficient than JOINs',
                impact=Impact.MEDIUM,
            ))

        return issues

    def generate_suggestions(
        self,
        query: AnalyzedQuery,
        severity: SlowQuerySeverity,
        complexity_issues: List[ComplexityIssue],
    ) -> List[Suggestion]:
        suggestions = [self._duration_suggestion(query.duration_ms, severity)]

        for issue in complexity_issues:
            suggestion = self._complexity_suggestion(issue, query)
            if suggestion:
                suggestions.append(suggestion)

        where_columns = query.where_columns
        if where_columns:
            table = query.table
            suggestions.append(Suggestion(
                title='Consider adding indexes',
                description=f"Query filters on columns: {', '.join(where_columns)}",
                priority=Severity.MEDIUM,
                recommendation='Consider adding indexes on frequently queried columns',
                sql_example='\n'.join(
                    f"CREATE INDEX idx_{table}_{column} ON {table}({column});" for column in where_columns
                ),
            ))

        return suggestions

    @staticmethod
    def _duration_suggestion(duration_ms: float, severity: SlowQuerySeverity) -> Suggestion:
        duration = f"{duration_ms:g}ms"
        if severity == SlowQuerySeverity.CRITICAL:
            return Suggestion(
                title='Critical Performance Issue',
                description=f"Query takes {duration} which is extremely slow",
                priority=Severity.CRITICAL,
                recommendation='Immediate optimization required - consider query rewrite, indexing, or caching',
            )
        if severity == SlowQuerySeverity.VERY_SLOW:
            return Suggestion(
                title='Very Slow Query',
                description=f"Query takes {duration} which significantly impacts performance",
                priority=Severity.HIGH,
                recommendation='High priority optimization needed',
            )
        return Suggestion(
            title='Slow Query',
            description=f"Query takes {duration} which may impact user experience",
            priority=Severity.MEDIUM,
            recommendation='Consider optimization when possible',
        )

    @staticmethod
    def _complexity_suggestion(issue: ComplexityIssue, query: AnalyzedQuery) -> Optional[Suggestion]:
        sql = query.sql.strip()

        if issue.type == 'select_star':
            return Suggestion(
                title='Avoid SELECT *',
                description='SELECT * retrieves all columns, including unnecessary ones',
                priority=Severity.MEDIUM,
                recommendation='Specify only the columns you need: SELECT id, name, email FROM users',
                sql_example=_SELECT_STAR_RE.sub('SELECT id, name, created_at', sql),
            )
        if issue.type == 'no_where_clause':
            return Suggestion(
                title='Add WHERE clause',
                description='Queries without WHERE clauses scan entire tables',
                priority=Severity.HIGH,
                recommendation='Add appropriate WHERE conditions to limit the result set',
                sql_example=_with_example_filter(sql),
            )
        if issue.type == 'complex_where':
            return Suggestion(
                title='Simplify WHERE conditions',
                description='Many WHERE conditions make the planner work harder and defeat single-column indexes',
                priority=Severity.MEDIUM,
                recommendation='Drop redundant filters or cover the most selective columns with a composite index',
            )
        if issue.type == 'function_in_where':
            return Suggestion(
                title='Avoid functions in WHERE clause',
                description='Functions in WHERE prevent index usage',
                priority=Severity.HIGH,
                recommendation='Move function calls out of WHERE or create functional indexes',
            )
        if issue.type == 'leading_wildcard_like':
            return Suggestion(
                title='Optimize LIKE patterns',
                description='Leading wildcards in LIKE prevent index usage',
                priority=Severity.HIGH,
                recommendation='Use full-text search or avoid leading wildcards when possible',
            )
        if issue.type == 'or_conditions':
            return Suggestion(
                title='Consider alternatives to OR',
                description='OR conditions can prevent efficient index usage',
                priority=Severity.MEDIUM,
                recommendation='Consider using UNION or IN clauses instead of OR',
            )
        if issue.type == 'subquery':
            return Suggestion(
                title='Consider JOIN instead of subquery',
                description='JOINs are often more efficient than subqueries',
                priority=Severity.MEDIUM,
                recommendation='Rewrite subqueries as JOINs when possible',
            )
        return None


def analyze_slow_queries(
    queries: Sequence[AnalyzedQuery],
    slow: float = 200,
    very_slow: float = 1000,
    critical: float = 5000,
) -> List[SlowQueryIssue]:
    config = SlowQueryConfig(slow_ms=slow, very_slow_ms=very_slow, critical_ms=critical)
    return SlowQueryAnalyzer(config).analyze(queries)
