"""
N+1 query pattern detection.

Detects bursts of structurally identical id/foreign-key lookups that
indicate records being loaded one by one instead of in a single query.
"""
import logging
from datetime import timedelta
from typing import Dict, List, Optional, Sequence, Union

from .models import AnalyzedQuery, PatternFinding, Remediation, Severity
from ..utils.config import NPlusOneConfig

logger = logging.getLogger(__name__)

MAX_SAMPLES = 5


def pluralize(word: str) -> str:
    if word.endswith('y') and word[-2:-1] not in ('a', 'e', 'i', 'o', 'u'):
        return word[:-1] + 'ies'
    if word.endswith(('s', 'x', 'z', 'ch', 'sh')):
        return word + 'es'
    return word + 's'


def singularize(word: str) -> str:
    if word.endswith('ies'):
        return word[:-3] + 'y'
    if word.endswith(('sses', 'xes', 'zes', 'ches', 'shes')):
        return word[:-2]
    if word.endswith('s') and not word.endswith('ss'):
        return word[:-1]
    return word


def model_name(table: str) -> str:
    """users -> User, order_items -> OrderItem"""
    return ''.join(part.capitalize() for part in singularize(table).split('_'))


class NPlusOneDetector:
    def __init__(self, config: Optional[NPlusOneConfig] = None):
        self.config = config or NPlusOneConfig()
        self.config.validate()

    def detect(self, queries: Sequence[AnalyzedQuery]) -> List[PatternFinding]:
        """Find time-clustered repetitions of the same id lookup."""
        valid = sorted((q for q in queries if q.valid), key=lambda q: q.analyzed_at)

        findings = []
        for group in self._group_by_signature(valid).values():
            if len(group) < self.config.threshold:
                continue

            for cluster in self.find_time_clusters(group):
                finding = self._analyze_cluster(cluster)
                if finding:
                    findings.append(finding)

        logger.debug("N+1 detection: %d queries, %d findings", len(valid), len(findings))
        return findings

    @staticmethod
    def _group_by_signature(queries: Sequence[AnalyzedQuery]) -> Dict[str, List[AnalyzedQuery]]:
        groups: Dict[str, List[AnalyzedQuery]] = {}
        for query in queries:
            groups.setdefault(query.signature, []).append(query)
        return groups

    def find_time_clusters(self, queries: Sequence[AnalyzedQuery]) -> List[List[AnalyzedQuery]]:
        """Split time-ordered queries into maximal runs with gaps <= window."""
        clusters = []
        current: List[AnalyzedQuery] = []

        for query in queries:
            if current and query.analyzed_at - current[-1].analyzed_at > self.config.time_window:
                if len(current) >= self.config.threshold:
                    clusters.append(current)
                current = []
            current.append(query)

        if len(current) >= self.config.threshold:
            clusters.append(current)
        return clusters

    def _analyze_cluster(self, cluster: List[AnalyzedQuery]) -> Optional[PatternFinding]:
        first_query = cluster[0]
        parsed = first_query.parsed

        id_condition = parsed.id_lookup_condition
        if id_condition is None or not parsed.primary_table:
            # Repetitive but not an id lookup; too ambiguous to report
            return None

        table = parsed.primary_table
        column = id_condition.column
        return PatternFinding(
            table=table,
            column=column,
            query_count=len(cluster),
            time_span=(cluster[-1].analyzed_at - first_query.analyzed_at).total_seconds(),
            severity=self.calculate_severity(len(cluster)),
            remediation=self.generate_remediation(table, column, len(cluster)),
            signature=first_query.signature,
            sample_queries=cluster[:MAX_SAMPLES],
        )

    def calculate_severity(self, query_count: int) -> Severity:
        low, medium, high = self.config.severity_bands
        if query_count <= low:
            return Severity.LOW
        if query_count <= medium:
            return Severity.MEDIUM
        if query_count <= high:
            return Severity.HIGH
        return Severity.CRITICAL

    @staticmethod
    def generate_remediation(table: str, column: str, query_count: int) -> Remediation:
        if column.lower().endswith('_id'):
            association = pluralize(column[:-3])
            return Remediation(
                title="Use eager loading to avoid N+1 queries",
                description=(
                    f"Detected {query_count} similar queries on {table} table. "
                    f"This appears to be an N+1 query pattern where {table} records are loaded "
                    "one by one instead of using eager loading."
                ),
                framework_suggestion=(
                    f"Use `includes(:{association})` or `preload(:{association})` "
                    "to load all related records in a single query."
                ),
                example_code=(
                    "# Instead of:\n"
                    f"users.each {{ |user| user.{association}.count }}\n\n"
                    "# Use:\n"
                    f"users.includes(:{association}).each {{ |user| user.{association}.count }}"
                ),
                sql_suggestion=f"Fetch all rows at once with WHERE {column} IN (...) or a JOIN.",
            )

        model = model_name(table)
        return Remediation(
            title="Optimize repeated ID lookups",
            description=(
                f"Detected {query_count} similar queries looking up {table} records by {column}. "
                "Consider batching these lookups."
            ),
            framework_suggestion=f"Use `where({column}: [id1, id2, id3])` to fetch multiple records at once.",
            example_code=(
                "# Instead of multiple queries:\n"
                f"ids.each {{ |id| {model}.find(id) }}\n\n"
                "# Use:\n"
                f"{model}.where({column}: ids)"
            ),
            sql_suggestion=f"Use WHERE {column} IN (...) to fetch multiple records in a single query.",
        )


def detect_n_plus_one(
    queries: Sequence[AnalyzedQuery],
    threshold: int = 3,
    time_window: Union[timedelta, float] = timedelta(seconds=5),
) -> List[PatternFinding]:
    """Detect N+1 patterns; `time_window` may be a timedelta or seconds."""
    if not isinstance(time_window, timedelta):
        time_window = timedelta(seconds=time_window)
    return NPlusOneDetector(NPlusOneConfig(threshold=threshold, time_window=time_window)).detect(queries)
