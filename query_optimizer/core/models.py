"""
Data models for query analysis.
"""
from typing import Any, List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class StatementKind(str, Enum):
    SELECT = 'SELECT'
    INSERT = 'INSERT'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'


class ValueKind(str, Enum):
    """Kind of the right-hand side of a WHERE comparison."""
    INTEGER = 'integer'
    STRING = 'string'
    BOOLEAN = 'boolean'
    NULL = 'null'
    PARAMETER = 'parameter'
    EXPRESSION = 'expression'


class Severity(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'


class SlowQuerySeverity(str, Enum):
    SLOW = 'slow'
    VERY_SLOW = 'very_slow'
    CRITICAL = 'critical'


class Impact(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


class IndexType(str, Enum):
    SINGLE_COLUMN = 'single_column_index'
    ORDER_BY = 'order_by_index'
    COMPOSITE = 'composite_index'
    FOREIGN_KEY = 'foreign_key_index'


@dataclass(frozen=True)
class WhereCondition:
    """A single `column <op> value` comparison found in a WHERE clause."""
    column: str
    operator: str
    value: Any
    value_kind: ValueKind

    @property
    def is_id_column(self) -> bool:
        name = self.column.lower()
        return name == 'id' or name.endswith('_id')

    @property
    def is_id_lookup(self) -> bool:
        return (
            self.is_id_column
            and self.operator == '='
            and self.value_kind in (ValueKind.PARAMETER, ValueKind.INTEGER)
        )


@dataclass(frozen=True)
class ParseResult:
    """Structural facts extracted from one SQL statement.

    Every derived field is empty (or False) when ``valid`` is False.
    """
    valid: bool
    errors: Tuple[str, ...] = ()
    kind: Optional[StatementKind] = None
    primary_table: Optional[str] = None
    tables: Tuple[str, ...] = ()
    where_conditions: Tuple[WhereCondition, ...] = ()
    order_by_columns: Tuple[str, ...] = ()
    signature: str = ''
    has_where: bool = False
    select_star: bool = False
    where_has_function: bool = False
    leading_wildcard_like: bool = False
    has_or: bool = False
    has_subquery: bool = False

    @classmethod
    def invalid(cls, *errors: str) -> 'ParseResult':
        return cls(valid=False, errors=tuple(errors))

    @property
    def where_columns(self) -> List[str]:
        """Unique WHERE columns in order of first appearance."""
        columns = []
        for condition in self.where_conditions:
            if condition.column not in columns:
                columns.append(condition.column)
        return columns

    @property
    def is_id_lookup(self) -> bool:
        return self.kind == StatementKind.SELECT and any(
            c.is_id_lookup for c in self.where_conditions
        )

    @property
    def id_lookup_condition(self) -> Optional[WhereCondition]:
        if self.kind != StatementKind.SELECT:
            return None
        return next((c for c in self.where_conditions if c.is_id_lookup), None)


@dataclass(frozen=True)
class AnalyzedQuery:
    """An executed statement as seen by the detectors."""
    sql: str
    parsed: ParseResult
    analyzed_at: datetime
    duration_ms: Optional[float] = None

    def __post_init__(self):
        if self.duration_ms is not None and self.duration_ms < 0:
            raise ValueError(f"duration_ms must be non-negative, got {self.duration_ms}")

    @property
    def valid(self) -> bool:
        return self.parsed.valid

    @property
    def table(self) -> Optional[str]:
        return self.parsed.primary_table

    @property
    def kind(self) -> Optional[StatementKind]:
        return self.parsed.kind

    @property
    def where_columns(self) -> List[str]:
        return self.parsed.where_columns

    @property
    def order_by_columns(self) -> Tuple[str, ...]:
        return self.parsed.order_by_columns

    @property
    def signature(self) -> str:
        return self.parsed.signature


@dataclass
class Remediation:
    """Remediation text attached to an N+1 finding."""
    title: str
    description: str
    framework_suggestion: str
    example_code: str
    sql_suggestion: str


@dataclass
class PatternFinding:
    """Represents a detected N+1 query pattern."""
    table: str
    column: str
    query_count: int
    time_span: float
    severity: Severity
    remediation: Remediation
    signature: str
    sample_queries: List[AnalyzedQuery] = field(default_factory=list)

    @property
    def first_query(self) -> Optional[AnalyzedQuery]:
        return self.sample_queries[0] if self.sample_queries else None


@dataclass
class ComplexityIssue:
    """Represents a structural problem found in a slow query."""
    type: str
    description: str
    impact: Impact = Impact.MEDIUM


@dataclass
class Suggestion:
    title: str
    description: str
    priority: Severity
    recommendation: str
    sql_example: Optional[str] = None


@dataclass
class SlowQueryIssue:
    query: AnalyzedQuery
    duration_ms: float
    severity: SlowQuerySeverity
    complexity_issues: List[ComplexityIssue] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)

    @property
    def table(self) -> Optional[str]:
        return self.query.table

    @property
    def kind(self) -> Optional[StatementKind]:
        return self.query.kind

    @property
    def signature(self) -> str:
        return self.query.signature

    @property
    def issue_types(self) -> List[str]:
        return [issue.type for issue in self.complexity_issues]


@dataclass
class IndexSuggestion:
    """Represents a recommended index for query optimization."""
    table: str
    columns: Tuple[str, ...]
    index_type: IndexType
    frequency: int
    priority: int
    reason: str
    impact: Impact
    description: str = ''

    @property
    def index_name(self) -> str:
        name = f"idx_{self.table}_{'_'.join(self.columns)}"
        if self.index_type == IndexType.ORDER_BY:
            name += '_order'
        return name

    @property
    def sql(self) -> str:
        """Get the SQL command to create the index."""
        return f"CREATE INDEX {self.index_name} ON {self.table}({', '.join(self.columns)});"
