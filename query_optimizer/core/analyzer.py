"""
Core query analysis functionality.
Runs the N+1, slow query and missing index detectors over one batch.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .batch import QueryBatch
from .missing_index import MissingIndexDetector
from .models import AnalyzedQuery, IndexSuggestion, PatternFinding, SlowQueryIssue
from .n_plus_one import NPlusOneDetector
from .parser import SqlParser
from .slow_query import SlowQueryAnalyzer
from ..utils.config import AppConfig, ConfigLoader
from ..utils.logger import setup_logger

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    n_plus_one: List[PatternFinding] = field(default_factory=list)
    slow_queries: List[SlowQueryIssue] = field(default_factory=list)
    missing_indexes: List[IndexSuggestion] = field(default_factory=list)
    total_queries: int = 0
    skipped_queries: int = 0

    @property
    def total_issues(self) -> int:
        return len(self.n_plus_one) + len(self.slow_queries)


class QueryAnalyzer:
    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or AppConfig()
        self.parser = SqlParser()
        self.n_plus_one_detector = NPlusOneDetector(self.config.n_plus_one)
        self.slow_query_analyzer = SlowQueryAnalyzer(self.config.slow_query)
        self.missing_index_detector = MissingIndexDetector(self.config.missing_index)

    @classmethod
    def from_config_file(cls, config_path: Path) -> 'QueryAnalyzer':
        config = ConfigLoader.load_config(config_path)
        setup_logger(config.log_level)
        return cls(config)

    def analyze(self, queries: Sequence[AnalyzedQuery], parallel: bool = False) -> AnalysisResult:
        """Run all three detectors; they share nothing but the input batch."""
        queries = tuple(queries)
        skipped = sum(1 for q in queries if not q.valid)
        if skipped:
            logger.debug("%d of %d queries could not be parsed and will be ignored", skipped, len(queries))

        if parallel:
            with ThreadPoolExecutor(max_workers=3, thread_name_prefix='query-analyzer') as executor:
                n_plus_one = executor.submit(self.n_plus_one_detector.detect, queries)
                slow_queries = executor.submit(self.slow_query_analyzer.analyze, queries)
                missing_indexes = executor.submit(self.missing_index_detector.detect, queries)
                result = AnalysisResult(
                    n_plus_one=n_plus_one.result(),
                    slow_queries=slow_queries.result(),
                    missing_indexes=missing_indexes.result(),
                )
        else:
            result = AnalysisResult(
                n_plus_one=self.n_plus_one_detector.detect(queries),
                slow_queries=self.slow_query_analyzer.analyze(queries),
                missing_indexes=self.missing_index_detector.detect(queries),
            )

        result.total_queries = len(queries)
        result.skipped_queries = skipped
        logger.info(
            "Analyzed %d queries: %d N+1 patterns, %d slow queries, %d index suggestions",
            result.total_queries, len(result.n_plus_one), len(result.slow_queries), len(result.missing_indexes),
        )
        return result

    def analyze_records(self, records: Iterable[Dict[str, Any]], parallel: bool = False) -> AnalysisResult:
        """Ingest `{sql, duration_ms}` records and analyze them."""
        batch = QueryBatch.from_records(records, parser=self.parser)
        return self.analyze(batch.queries, parallel=parallel)

    def analyze_file(self, batch_path: Path, parallel: bool = False) -> AnalysisResult:
        batch = QueryBatch.load(batch_path, parser=self.parser)
        return self.analyze(batch.queries, parallel=parallel)
