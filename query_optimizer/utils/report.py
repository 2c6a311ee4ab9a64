"""
Report generation utilities for query analysis results.
"""
from typing import Dict, Any, List
from datetime import datetime
import json

from ..core.analyzer import AnalysisResult
from ..core.models import IndexSuggestion, PatternFinding, Severity, SlowQueryIssue


class ReportGenerator:
    @staticmethod
    def generate_summary(result: AnalysisResult) -> Dict[str, Any]:
        """Build a JSON-serializable summary of an analysis run."""
        return {
            'n_plus_one': {
                'detected': bool(result.n_plus_one),
                'patterns': [ReportGenerator._format_pattern(p) for p in result.n_plus_one],
            },
            'slow_queries': [ReportGenerator._format_slow_query(i) for i in result.slow_queries],
            'missing_indexes': [ReportGenerator._format_index_suggestion(s) for s in result.missing_indexes],
            'summary': {
                'total_queries': result.total_queries,
                'skipped_queries': result.skipped_queries,
                'total_issues': result.total_issues,
                'index_suggestions': len(result.missing_indexes),
                'severity_breakdown': ReportGenerator._severity_breakdown(result),
            },
        }

    @staticmethod
    def generate_json_report(result: AnalysisResult, indent: int = 2) -> str:
        return json.dumps(ReportGenerator.generate_summary(result), indent=indent)

    @staticmethod
    def generate_text_report(result: AnalysisResult) -> str:
        """Generate text report from analysis results."""
        lines = [
            "SQL Query Analysis Report",
            "========================================",
            f"Generated on: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            "",
            "Summary",
            "--------------------",
            f"Queries analyzed: {result.total_queries}",
            f"Unparsable queries skipped: {result.skipped_queries}",
            f"Issues found: {result.total_issues}",
            f"Index suggestions: {len(result.missing_indexes)}",
        ]

        lines.extend(["", "N+1 Query Patterns", "--------------------"])
        if not result.n_plus_one:
            lines.append("No N+1 patterns detected")
        for pattern in result.n_plus_one:
            lines.extend([
                f"[{pattern.severity.value.upper()}] {pattern.table}.{pattern.column}: "
                f"{pattern.query_count} queries in {pattern.time_span:.1f}s",
                f"  {pattern.remediation.title}",
                f"  {pattern.remediation.framework_suggestion}",
                f"  SQL: {pattern.remediation.sql_suggestion}",
            ])

        lines.extend(["", "Slow Queries", "--------------------"])
        if not result.slow_queries:
            lines.append("No slow queries detected")
        for issue in result.slow_queries:
            lines.append(f"[{issue.severity.value.upper()}] {issue.duration_ms:g} ms: {issue.query.sql.strip()}")
            for complexity in issue.complexity_issues:
                lines.append(f"  - {complexity.description} (impact: {complexity.impact.value})")
            for suggestion in issue.suggestions:
                lines.append(f"  * {suggestion.title}: {suggestion.recommendation}")

        lines.extend(["", "Index Recommendations", "--------------------"])
        if not result.missing_indexes:
            lines.append("No index recommendations")
        for suggestion in result.missing_indexes:
            lines.extend([
                f"[P{suggestion.priority}] {suggestion.description}",
                f"  {suggestion.sql}",
            ])

        return '\n'.join(lines) + '\n'

    @staticmethod
    def _format_pattern(pattern: PatternFinding) -> Dict[str, Any]:
        return {
            'table': pattern.table,
            'column': pattern.column,
            'query_count': pattern.query_count,
            'time_span': pattern.time_span,
            'severity': pattern.severity.value,
            'signature': pattern.signature,
            'title': pattern.remediation.title,
            'suggestion': pattern.remediation.framework_suggestion,
            'example_code': pattern.remediation.example_code,
            'sql_suggestion': pattern.remediation.sql_suggestion,
            'sample_queries': [q.sql for q in pattern.sample_queries],
        }

    @staticmethod
    def _format_slow_query(issue: SlowQueryIssue) -> Dict[str, Any]:
        return {
            'sql': issue.query.sql,
            'duration_ms': issue.duration_ms,
            'severity': issue.severity.value,
            'table': issue.table,
            'query_type': issue.kind.value if issue.kind else None,
            'issues': [
                {'type': c.type, 'description': c.description, 'impact': c.impact.value}
                for c in issue.complexity_issues
            ],
            'suggestions': [
                {
                    'title': s.title,
                    'description': s.description,
                    'priority': s.priority.value,
                    'recommendation': s.recommendation,
                    'sql_example': s.sql_example,
                }
                for s in issue.suggestions
            ],
        }

    @staticmethod
    def _format_index_suggestion(suggestion: IndexSuggestion) -> Dict[str, Any]:
        return {
            'table': suggestion.table,
            'columns': list(suggestion.columns),
            'type': suggestion.index_type.value,
            'reason': suggestion.reason,
            'sql': suggestion.sql,
            'priority': suggestion.priority,
            'frequency': suggestion.frequency,
            'impact': suggestion.impact.value,
        }

    @staticmethod
    def _severity_breakdown(result: AnalysisResult) -> Dict[str, int]:
        breakdown: Dict[str, int] = {severity.value: 0 for severity in Severity}
        severities: List[str] = [p.severity.value for p in result.n_plus_one]
        severities.extend(i.severity.value for i in result.slow_queries)
        for severity in severities:
            breakdown[severity] = breakdown.get(severity, 0) + 1
        return breakdown
