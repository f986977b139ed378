"""
Small SQL builder shared by both stores.

Values always travel as bound parameters. Table and column names cannot be
bound, so they are checked against :data:`IDENTIFIER_PATTERN` before they are
spliced into a statement. The two stores differ only in their placeholder
style: ``?`` for SQLite, ``$1, $2, ...`` for PostgreSQL.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from lucybot.handlers.errors import ValidationError

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Statement = Tuple[str, List[Any]]


def check_identifier(name: Any, field: str = "identifier") -> str:
    """Return ``name`` if it is a safe SQL identifier, else raise ``ValidationError``."""
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise ValidationError(field, f"invalid SQL identifier {name!r}")
    return name


def qmark(_: int) -> str:
    return "?"


def numbered(index: int) -> str:
    return f"${index}"


class QueryBuilder:
    """Build parameterised CRUD statements with a given placeholder style."""

    def __init__(self, placeholder: Callable[[int], str] = qmark) -> None:
        self.placeholder = placeholder

    def _columns(self, names: Iterable[str]) -> List[str]:
        return [check_identifier(name, "column") for name in names]

    def _where(self, where: Mapping[str, Any], params: List[Any]) -> str:
        clauses = []
        for column in self._columns(where):
            value = where[column]
            if value is None:
                clauses.append(f"{column} IS NULL")
                continue
            params.append(value)
            clauses.append(f"{column} = {self.placeholder(len(params))}")
        return " AND ".join(clauses)

    def insert(self, table: str, row: Mapping[str, Any], returning: bool = False) -> Statement:
        check_identifier(table, "table")
        if not row:
            raise ValidationError("row", "must contain at least one column")

        columns = self._columns(row)
        params = [row[column] for column in columns]
        placeholders = ", ".join(self.placeholder(i) for i in range(1, len(params) + 1))
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        if returning:
            sql += " RETURNING *"
        return sql, params

    def select(
        self,
        table: str,
        columns: Optional[Sequence[str]] = None,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> Statement:
        check_identifier(table, "table")
        selected = ", ".join(self._columns(columns)) if columns else "*"
        params: List[Any] = []
        sql = f"SELECT {selected} FROM {table}"

        if where:
            sql += f" WHERE {self._where(where, params)}"
        if order_by:
            sql += f" ORDER BY {check_identifier(order_by, 'order_by')}"
            if descending:
                sql += " DESC"
        if limit is not None:
            if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
                raise ValidationError("limit", "must be a non-negative integer")
            params.append(limit)
            sql += f" LIMIT {self.placeholder(len(params))}"
        return sql, params

    def update(
        self,
        table: str,
        patch: Mapping[str, Any],
        where: Mapping[str, Any],
        returning: bool = False,
    ) -> Statement:
        check_identifier(table, "table")
        if not patch:
            raise ValidationError("patch", "must contain at least one column")
        if not where:
            raise ValidationError("where", "update without a condition is not allowed")

        params: List[Any] = []
        assignments = []
        for column in self._columns(patch):
            params.append(patch[column])
            assignments.append(f"{column} = {self.placeholder(len(params))}")

        sql = f"UPDATE {table} SET {', '.join(assignments)} WHERE {self._where(where, params)}"
        if returning:
            sql += " RETURNING *"
        return sql, params

    def delete(self, table: str, where: Mapping[str, Any]) -> Statement:
        check_identifier(table, "table")
        if not where:
            raise ValidationError("where", "delete without a condition is not allowed")

        params: List[Any] = []
        return f"DELETE FROM {table} WHERE {self._where(where, params)}", params


def as_dict(row: Any) -> Dict[str, Any]:
    """Turn an ``aiosqlite.Row`` or ``asyncpg.Record`` into a plain dict."""
    return dict(row)
