"""
query-optimizer

Detects N+1 query patterns, slow queries and missing indexes in a batch
of executed SQL statements.
"""
from .core import (
    AnalyzedQuery, ParseResult, QueryAnalyzer, AnalysisResult, QueryBatch,
    build_query, parse, detect_n_plus_one, analyze_slow_queries, detect_missing_indexes,
)
from .utils import AppConfig, ConfigLoader, ConfigurationError, setup_logger
from .utils.report import ReportGenerator

__version__ = '0.1.0'
