"""
Batch ingestion.
Converts executed-statement records into AnalyzedQuery values for the detectors.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import yaml

from .models import AnalyzedQuery
from .parser import SqlParser, parse

logger = logging.getLogger(__name__)


def to_timestamp(value: Any) -> Optional[datetime]:
    """Coerce epoch seconds, ISO strings and datetimes to timezone-aware datetimes."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    timestamp = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    # Naive timestamps are taken as UTC so they compare with generated ones
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def build_query(
    sql: str,
    duration_ms: Optional[float] = None,
    analyzed_at: Any = None,
    parser: Optional[SqlParser] = None,
) -> AnalyzedQuery:
    """Parse a statement and wrap it with its timing information."""
    parsed = parser.parse(sql) if parser is not None else parse(sql)
    return AnalyzedQuery(
        sql=sql,
        parsed=parsed,
        analyzed_at=to_timestamp(analyzed_at) or datetime.now(timezone.utc),
        duration_ms=duration_ms,
    )


@dataclass
class QueryBatch:
    """An immutable-by-convention list of analyzed queries."""
    queries: List[AnalyzedQuery] = field(default_factory=list)

    def __iter__(self) -> Iterator[AnalyzedQuery]:
        return iter(self.queries)

    def __len__(self) -> int:
        return len(self.queries)

    @property
    def valid_queries(self) -> List[AnalyzedQuery]:
        return [q for q in self.queries if q.valid]

    @property
    def invalid_queries(self) -> List[AnalyzedQuery]:
        return [q for q in self.queries if not q.valid]

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]], parser: Optional[SqlParser] = None) -> 'QueryBatch':
        """Build a batch from `{sql, duration_ms, analyzed_at}` mappings."""
        queries = []
        for position, record in enumerate(records):
            sql = record.get('sql')
            if not sql or not str(sql).strip():
                logger.warning("Skipping record %d: missing SQL", position)
                continue

            duration = record.get('duration_ms')
            queries.append(build_query(
                str(sql),
                duration_ms=float(duration) if duration is not None else None,
                analyzed_at=record.get('analyzed_at'),
                parser=parser,
            ))
        return cls(queries)

    @classmethod
    def load(cls, path: Path, parser: Optional[SqlParser] = None) -> 'QueryBatch':
        """Load a batch from a YAML or JSON file with a top-level `queries` list."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Query batch file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        records = data.get('queries') if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise ValueError(f"Missing required field in batch file: queries ({path})")
        return cls.from_records(records, parser=parser)
