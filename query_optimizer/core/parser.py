"""
SQL structural parsing.
Turns raw SQL text into the fact set consumed by the detectors.
"""
import hashlib
import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Type

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from .models import ParseResult, StatementKind, ValueKind, WhereCondition

logger = logging.getLogger(__name__)

DIALECT = 'postgres'

STATEMENT_KINDS: Dict[Type[exp.Expression], StatementKind] = {
    exp.Select: StatementKind.SELECT,
    exp.Insert: StatementKind.INSERT,
    exp.Update: StatementKind.UPDATE,
    exp.Delete: StatementKind.DELETE,
}

COMPARISON_OPERATORS: Dict[Type[exp.Expression], str] = {
    exp.EQ: '=',
    exp.NEQ: '<>',
    exp.LT: '<',
    exp.GT: '>',
    exp.LTE: '<=',
    exp.GTE: '>=',
    exp.Like: 'LIKE',
    exp.ILike: 'ILIKE',
}

_PARAM_RE = re.compile(r'\$\d+')
_NUMBER_RE = re.compile(r'\b\d+\b')
_STRING_RE = re.compile(r"'[^']*'")
_WHITESPACE_RE = re.compile(r'\s+')


def normalize_sql(sql: str) -> str:
    """Replace literals and placeholders with '?' and fold case and whitespace."""
    normalized = _PARAM_RE.sub('?', sql)
    normalized = _NUMBER_RE.sub('?', normalized)
    normalized = _STRING_RE.sub('?', normalized)
    normalized = _WHITESPACE_RE.sub(' ', normalized)
    return normalized.strip().lower()


def query_signature(sql: str) -> str:
    """SHA-256 fingerprint of the query shape, independent of literal values."""
    return hashlib.sha256(normalize_sql(sql).encode('utf-8')).hexdigest()


def leftmost_select(node: exp.Expression) -> exp.Expression:
    """Unwrap UNION/INTERSECT/EXCEPT and parenthesized queries down to the first SELECT."""
    while isinstance(node, (exp.SetOperation, exp.Subquery)):
        node = node.this
    return node


class SqlParser:
    """Extracts statement kind, tables, WHERE/ORDER BY facts and complexity flags."""

    def __init__(self, dialect: str = DIALECT):
        self.dialect = dialect

    def parse(self, sql: str) -> ParseResult:
        """Parse one statement. Never raises for malformed SQL."""
        text = (sql or '').strip()
        if not text:
            return self._invalid(sql, 'Empty SQL statement')

        try:
            statements = [s for s in sqlglot.parse(text, read=self.dialect) if s is not None]
        except SqlglotError as e:
            return self._invalid(sql, str(e))

        if len(statements) != 1:
            return self._invalid(sql, f"Expected exactly one statement, found {len(statements)}")

        root = statements[0]
        statement = leftmost_select(root)
        kind = STATEMENT_KINDS.get(type(statement))
        if kind is None:
            return self._invalid(sql, f"Unsupported statement type: {root.key.upper()}")

        where = statement.args.get('where')
        conditions: List[WhereCondition] = []
        if where is not None:
            self._collect_conditions(where.this, conditions)

        return ParseResult(
            valid=True,
            kind=kind,
            primary_table=self._primary_table(statement, kind),
            tables=self._referenced_tables(root),
            where_conditions=tuple(conditions),
            order_by_columns=self._order_by_columns(root, statement, kind),
            signature=query_signature(text),
            has_where=where is not None,
            select_star=self._has_select_star(root),
            where_has_function=where is not None and self._has_function(where),
            leading_wildcard_like=self._has_leading_wildcard(root),
            has_or=root.find(exp.Or) is not None,
            has_subquery=self._has_subquery(root),
        )

    @staticmethod
    def _invalid(sql: str, message: str) -> ParseResult:
        logger.debug("Could not parse %r: %s", sql, message)
        return ParseResult.invalid(message)

    @staticmethod
    def _primary_table(statement: exp.Expression, kind: StatementKind) -> Optional[str]:
        if kind == StatementKind.SELECT:
            from_ = statement.args.get('from_')
            source = from_.this if from_ is not None else None
        else:
            source = statement.this
            # INSERT INTO t (a, b) wraps the target in a Schema node
            if isinstance(source, exp.Schema):
                source = source.this
        if isinstance(source, exp.Table) and source.name:
            return source.name
        return None

    @staticmethod
    def _referenced_tables(root: exp.Expression) -> Tuple[str, ...]:
        cte_names = {cte.alias_or_name for cte in root.find_all(exp.CTE)}
        tables: List[str] = []
        for table in root.find_all(exp.Table):
            name = table.name
            if name and name not in cte_names and name not in tables:
                tables.append(name)
        return tuple(tables)

    def _collect_conditions(self, node: Optional[exp.Expression], conditions: List[WhereCondition]) -> None:
        if node is None:
            return

        if isinstance(node, exp.Connector):
            # AND / OR
            self._collect_conditions(node.left, conditions)
            self._collect_conditions(node.right, conditions)
        elif isinstance(node, exp.Paren):
            self._collect_conditions(node.this, conditions)
        elif isinstance(node, exp.In):
            condition = self._in_condition(node)
            if condition:
                conditions.append(condition)
        else:
            operator = COMPARISON_OPERATORS.get(type(node))
            if operator and isinstance(node.this, exp.Column):
                value, kind = self._value_info(node.expression)
                conditions.append(WhereCondition(node.this.name, operator, value, kind))

    def _in_condition(self, node: exp.In) -> Optional[WhereCondition]:
        if not isinstance(node.this, exp.Column):
            return None
        query = node.args.get('query')
        if query is not None:
            value: Any = query.sql(dialect=self.dialect)
        else:
            value = tuple(self._value_info(e)[0] for e in node.expressions)
        return WhereCondition(node.this.name, 'IN', value, ValueKind.EXPRESSION)

    def _value_info(self, node: Optional[exp.Expression]) -> Tuple[Any, ValueKind]:
        while isinstance(node, exp.Paren):
            node = node.this

        if node is None:
            return None, ValueKind.EXPRESSION
        if isinstance(node, exp.Null):
            return None, ValueKind.NULL
        if isinstance(node, exp.Boolean):
            return node.this, ValueKind.BOOLEAN
        if isinstance(node, (exp.Placeholder, exp.Parameter)):
            return node.sql(dialect=self.dialect), ValueKind.PARAMETER
        if isinstance(node, exp.Literal):
            if node.is_string:
                return node.this, ValueKind.STRING
            if node.is_int:
                return int(node.this), ValueKind.INTEGER
        if isinstance(node, exp.Neg) and isinstance(node.this, exp.Literal) and node.this.is_int:
            return -int(node.this.this), ValueKind.INTEGER
        return node.sql(dialect=self.dialect), ValueKind.EXPRESSION

    @staticmethod
    def _order_by_columns(root: exp.Expression, statement: exp.Expression, kind: StatementKind) -> Tuple[str, ...]:
        if kind != StatementKind.SELECT:
            return ()
        order = root.args.get('order') or statement.args.get('order')
        if order is None:
            return ()

        columns: List[str] = []
        for ordered in order.expressions:
            target = ordered.this if isinstance(ordered, exp.Ordered) else ordered
            if isinstance(target, exp.Column) and target.name and target.name not in columns:
                columns.append(target.name)
        return tuple(columns)

    @staticmethod
    def _has_select_star(root: exp.Expression) -> bool:
        for select in root.find_all(exp.Select):
            for projection in select.expressions:
                if isinstance(projection, exp.Star):
                    return True
                if isinstance(projection, exp.Column) and isinstance(projection.this, exp.Star):
                    return True
        return False

    @staticmethod
    def _has_function(where: exp.Where) -> bool:
        # AND/OR/XOR and EXISTS are modelled as Func nodes but are not calls
        return any(
            not isinstance(node, (exp.Connector, exp.Exists))
            for node in where.find_all(exp.Func)
        )

    @staticmethod
    def _has_leading_wildcard(root: exp.Expression) -> bool:
        for like in root.find_all(exp.Like, exp.ILike):
            pattern = like.expression
            if isinstance(pattern, exp.Literal) and pattern.is_string and pattern.this.startswith('%'):
                return True
        return False

    @staticmethod
    def _has_subquery(root: exp.Expression) -> bool:
        for select in root.find_all(exp.Select):
            if select is not root and isinstance(select.parent, (exp.Subquery, exp.In, exp.Exists, exp.CTE)):
                return True
        return False


_default_parser = SqlParser()


def parse(sql: str) -> ParseResult:
    """Parse SQL with the default (postgres) parser."""
    return _default_parser.parse(sql)
