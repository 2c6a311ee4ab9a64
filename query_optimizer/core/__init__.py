"""
Core functionality for SQL query batch analysis
"""
from .models import (
    AnalyzedQuery, ParseResult, WhereCondition, ValueKind, StatementKind,
    PatternFinding, SlowQueryIssue, IndexSuggestion,
)
from .parser import SqlParser, parse, query_signature
from .batch import QueryBatch, build_query
from .n_plus_one import NPlusOneDetector, detect_n_plus_one
from .slow_query import SlowQueryAnalyzer, analyze_slow_queries
from .missing_index import MissingIndexDetector, detect_missing_indexes
from .analyzer import QueryAnalyzer, AnalysisResult
