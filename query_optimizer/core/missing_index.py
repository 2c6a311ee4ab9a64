"""
Missing index detection.
Aggregates column usage per table across a batch and recommends indexes
for columns that are filtered or sorted on frequently.
"""
import logging
import re
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from .models import AnalyzedQuery, Impact, IndexSuggestion, IndexType
from ..utils.config import MissingIndexConfig

logger = logging.getLogger(__name__)

MAX_PRIORITY = 5
MIN_PRIORITY = 1

_FOREIGN_KEY_RE = re.compile(r'^\w+_id$')


class MissingIndexDetector:
    def __init__(self, config: Optional[MissingIndexConfig] = None):
        self.config = config or MissingIndexConfig()
        self.config.validate()

    def detect(self, queries: Sequence[AnalyzedQuery]) -> List[IndexSuggestion]:
        suggestions = []
        for table, table_queries in self.group_by_table(queries).items():
            suggestions.extend(self.analyze_table(table, table_queries))

        unique = self.deduplicate_and_prioritize(suggestions)
        logger.debug("Missing index detection: %d candidates, %d after dedupe", len(suggestions), len(unique))
        return unique

    @staticmethod
    def group_by_table(queries: Sequence[AnalyzedQuery]) -> Dict[str, List[AnalyzedQuery]]:
        tables: Dict[str, List[AnalyzedQuery]] = {}
        for query in queries:
            if query.valid and query.table:
                tables.setdefault(query.table, []).append(query)
        return tables

    def analyze_table(self, table: str, queries: Sequence[AnalyzedQuery]) -> List[IndexSuggestion]:
        where_frequency: Counter = Counter()
        order_frequency: Counter = Counter()
        composite_frequency: Counter = Counter()
        foreign_key_frequency: Counter = Counter()

        for query in queries:
            where_columns = query.where_columns
            where_frequency.update(where_columns)
            order_frequency.update(query.order_by_columns)
            if len(where_columns) > 1:
                composite_frequency[tuple(sorted(where_columns))] += 1
            foreign_key_frequency.update(c for c in where_columns if _FOREIGN_KEY_RE.match(c))

        suggestions = []
        for column, frequency in self._frequent(where_frequency):
            suggestions.append(IndexSuggestion(
                table=table,
                columns=(column,),
                index_type=IndexType.SINGLE_COLUMN,
                frequency=frequency,
                priority=self.calculate_priority(frequency),
                reason='Frequently used in WHERE clauses',
                impact=Impact.HIGH,
                description=f"Column '{column}' is used in WHERE clauses {frequency} times",
            ))

        for column, frequency in self._frequent(order_frequency):
            suggestions.append(IndexSuggestion(
                table=table,
                columns=(column,),
                index_type=IndexType.ORDER_BY,
                frequency=frequency,
                priority=self.calculate_priority(frequency),
                reason='Frequently used in ORDER BY clauses',
                impact=Impact.MEDIUM,
                description=f"Column '{column}' is used in ORDER BY clauses {frequency} times",
            ))

        for columns, frequency in self._frequent(composite_frequency):
            suggestions.append(IndexSuggestion(
                table=table,
                columns=columns,
                index_type=IndexType.COMPOSITE,
                frequency=frequency,
                priority=self.calculate_priority(frequency, bonus=self.config.composite_bonus),
                reason='Frequently used together in WHERE clauses',
                impact=Impact.HIGH,
                description=f"Columns '{', '.join(columns)}' are frequently used together {frequency} times",
            ))

        for column, frequency in self._frequent(foreign_key_frequency):
            suggestions.append(IndexSuggestion(
                table=table,
                columns=(column,),
                index_type=IndexType.FOREIGN_KEY,
                frequency=frequency,
                priority=self.calculate_priority(frequency, bonus=self.config.foreign_key_bonus),
                reason='Foreign key used in WHERE clauses',
                impact=Impact.HIGH,
                description=f"Foreign key '{column}' is used in WHERE clauses {frequency} times",
            ))

        return suggestions

    def _frequent(self, frequency: Counter) -> List[Tuple]:
        # Counter preserves insertion order, keeping output deterministic
        return [(key, count) for key, count in frequency.items() if count >= self.config.frequency_threshold]

    def calculate_priority(self, frequency: int, bonus: int = 0) -> int:
        base = MAX_PRIORITY
        for priority, upper_bound in enumerate(self.config.priority_bands, start=1):
            if frequency <= upper_bound:
                base = priority
                break
        return max(MIN_PRIORITY, min(base + bonus, MAX_PRIORITY))

    @staticmethod
    def deduplicate_and_prioritize(suggestions: Sequence[IndexSuggestion]) -> List[IndexSuggestion]:
        """Keep the highest-priority suggestion per (table, column set); earliest wins ties."""
        best: Dict[Tuple[str, Tuple[str, ...]], IndexSuggestion] = {}
        for suggestion in suggestions:
            key = (suggestion.table, tuple(sorted(suggestion.columns)))
            current = best.get(key)
            if current is None or suggestion.priority > current.priority:
                best[key] = suggestion

        return sorted(best.values(), key=lambda s: (-s.priority, -s.frequency))


def detect_missing_indexes(queries: Sequence[AnalyzedQuery], frequency_threshold: int = 3) -> List[IndexSuggestion]:
    return MissingIndexDetector(MissingIndexConfig(frequency_threshold=frequency_threshold)).detect(queries)
