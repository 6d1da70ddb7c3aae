"""
db/paginate.py -- Filtered, sorted, paginated SELECT over one table.

paginate() is the shared helper behind every list endpoint:

    page = paginate(database, users, {"role": "admin"}, {"sort_by": "name:asc", "limit": 5, "page": 2})
    page.results        # rows (or mapper(row) for each row)
    page.total_pages    # ceil(total_results / limit)

Query shape: exactly two statements on one connection -- a COUNT(*) with the
filter applied, then the filtered, ordered, LIMIT/OFFSET data query. The cost
does not depend on how many filter keys or sort fields are given.

Option handling mirrors what list endpoints receive from query strings:
  sort_by  "field:dir[,field:dir...]"; dir is "desc" (any case) or ascending.
           Default: created_at DESC when the table has that column. Ties
           break on created_at ASC, then id ASC.
  limit    positive int, default 10
  page     positive int, default 1
Zero, negative, non-numeric and boolean limit/page values fall back to the
defaults instead of raising. limit and the derived offset are capped at
MAX_SQL_INT, so a huge page number yields an empty page rather than a
driver overflow.

Enum columns are cast to text before ordering. PostgreSQL orders a native
enum by declaration order, so ORDER BY role would put "user" before "admin";
callers expect alphabetical order.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import Any, Generic, TypeVar

from sqlalchemy import Enum, String, Table, and_, cast, func, select, true

from core.errors import ValidationFailure
from db.database import Database

T = TypeVar("T")

DEFAULT_LIMIT = 10
DEFAULT_PAGE = 1
# LIMIT and OFFSET are bound as signed 64-bit integers.
MAX_SQL_INT = 2**63 - 1

# parseInt-style: optional sign followed by leading digits ("12abc" -> 12).
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class Page(Generic[T]):
    results: list[T] = field(default_factory=list)
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    total_pages: int = 0
    total_results: int = 0


def _positive_int(value: Any, default: int) -> int:
    """Parse value as a positive integer, returning default on anything else."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return default
        parsed = int(value)
    else:
        match = _LEADING_INT_RE.match(str(value))
        if match is None:
            return default
        parsed = int(match.group(1))
    return parsed if parsed > 0 else default


def _column(table: Table, name: str, purpose: str):
    if name not in table.c:
        raise ValidationFailure(f"Unknown {purpose} field: {name}")
    return table.c[name]


def _order_by(table: Table, sort_by: str | None, sortable: Collection[str] | None = None) -> list:
    """Build ORDER BY clauses from a "field:dir,field:dir" string."""
    clauses = []
    used: set[str] = set()
    if sort_by:
        for criterion in sort_by.split(","):
            criterion = criterion.strip()
            if not criterion:
                continue
            key, _, direction = criterion.partition(":")
            key = key.strip()
            if sortable is not None and key not in sortable:
                raise ValidationFailure(f"Unknown sort field: {key}")
            col = _column(table, key, "sort")
            expr = cast(col, String) if isinstance(col.type, Enum) else col
            clauses.append(expr.desc() if direction.strip().lower() == "desc" else expr.asc())
            used.add(col.name)
    elif "created_at" in table.c:
        clauses.append(table.c.created_at.desc())
        used.add("created_at")
    # Stable tie-break: insertion order, then primary key.
    if "created_at" in table.c and "created_at" not in used:
        clauses.append(table.c.created_at.asc())
    if "id" in table.c and "id" not in used:
        clauses.append(table.c.id.asc())
    return clauses


def _where(table: Table, filters: Mapping[str, Any] | None):
    if not filters:
        return true()
    conditions = []
    for key, value in filters.items():
        if isinstance(value, PyEnum):
            value = value.value
        conditions.append(_column(table, key, "filter") == value)
    return and_(*conditions)


def paginate(
    database: Database,
    table: Table,
    filters: Mapping[str, Any] | None = None,
    options: Mapping[str, Any] | None = None,
    mapper: Callable[[Any], T] | None = None,
    sortable: Collection[str] | None = None,
) -> Page:
    """Return one page of rows from table matching every key in filters exactly.

    Args:
        database: Injected handle; one connection is used for both queries.
        table:    SQLAlchemy Core table to query.
        filters:  field -> exact value. Keys are ANDed; empty matches all rows.
        options:  sort_by (or sortBy), limit, page. See module docstring.
        mapper:   Optional row -> domain object conversion for results.
        sortable: Columns sort_by may name. None allows every column.

    Raises:
        ValidationFailure: a filter or sort key is not a column of table, or
            a sort key is outside sortable.
    """
    options = options or {}
    sort_by = options.get("sort_by") or options.get("sortBy")
    limit = min(_positive_int(options.get("limit"), DEFAULT_LIMIT), MAX_SQL_INT)
    page = _positive_int(options.get("page"), DEFAULT_PAGE)
    offset = min((page - 1) * limit, MAX_SQL_INT)

    where = _where(table, filters)
    order_by = _order_by(table, sort_by, sortable)

    with database.connect() as conn:
        total = conn.execute(select(func.count()).select_from(table).where(where)).scalar_one()
        rows = conn.execute(
            select(table).where(where).order_by(*order_by).limit(limit).offset(offset)
        ).fetchall()

    results = [mapper(r) for r in rows] if mapper is not None else list(rows)
    return Page(
        results=results,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
        total_results=total,
    )
