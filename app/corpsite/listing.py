"""
Pagination, sorting and search for list endpoints.

Every admin listing (audit logs, users, roles, employees, departments, ...) takes the
same query args:

    page    1-based page number
    limit   page size (clamped to MAX_PAGE_LIMIT)
    sort    column key, must be one the endpoint declares sortable
    order   asc | desc
    search  free-text filter (alias: q)

`paginate()` applies them to a SQLAlchemy query; `process_rows()` does the same for
rows already held in memory.
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Query

SORT_ORDERS = ("asc", "desc")
# OFFSET has to fit a signed 64-bit integer on sqlite and postgres
MAX_OFFSET = 2**62


@dataclass(frozen=True)
class ListParams:
    page: int = 1
    limit: int = 10
    sort_key: str | None = None
    sort_order: str = "asc"
    search: str = ""

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def filters(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.search:
            out["search"] = self.search
        return out


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total_items: int
    total_pages: int
    has_previous: bool
    has_next: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Page:
    items: list
    pagination: Pagination
    filters: dict[str, Any] = field(default_factory=dict)


def _to_int(raw: Any, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return default


def parse_list_params(
    args: Mapping[str, Any],
    *,
    default_limit: int = 10,
    max_limit: int = 100,
    default_sort: str | None = None,
    default_order: str = "asc",
) -> ListParams:
    page = _to_int(args.get("page"), 1)
    if page < 1:
        page = 1

    limit = _to_int(args.get("limit"), default_limit)
    if limit < 1:
        limit = default_limit
    limit = min(limit, max_limit)
    # keeps (page - 1) * limit within MAX_OFFSET
    page = min(page, MAX_OFFSET // limit)

    sort_key = (args.get("sort") or "").strip() or default_sort

    order = (args.get("order") or "").strip().lower()
    if order not in SORT_ORDERS:
        order = default_order

    search = (args.get("search") or args.get("q") or "").strip()

    return ListParams(page=page, limit=limit, sort_key=sort_key, sort_order=order, search=search)


def list_params_from_request(*, default_sort: str | None = None, default_order: str = "asc") -> ListParams:
    """Parse list params from the current request using app-configured limits."""
    from flask import current_app, request

    return parse_list_params(
        request.args,
        default_limit=int(current_app.config.get("DEFAULT_PAGE_LIMIT", 10)),
        max_limit=int(current_app.config.get("MAX_PAGE_LIMIT", 100)),
        default_sort=default_sort,
        default_order=default_order,
    )


def build_pagination(page: int, limit: int, total_items: int) -> Pagination:
    total_pages = math.ceil(total_items / limit) if limit > 0 else 0
    return Pagination(
        page=page,
        limit=limit,
        total_items=total_items,
        total_pages=total_pages,
        has_previous=page > 1,
        has_next=page < total_pages,
    )


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def apply_search(query: Query, search: str, columns: Iterable[Any]) -> Query:
    cols = list(columns)
    if not search or not cols:
        return query
    like = f"%{_escape_like(search)}%"
    return query.filter(or_(*(c.ilike(like, escape="\\") for c in cols)))


def paginate(
    query: Query,
    params: ListParams,
    *,
    sortable: Mapping[str, Any] | None = None,
    searchable: Iterable[Any] = (),
    default_sort: tuple[str, str] | None = None,
    tiebreak: Any = None,
) -> Page:
    """
    Search, count, sort and slice `query`.

    `sortable` maps public sort keys to columns. An unknown or missing sort key falls
    back to `default_sort` (key, order). `tiebreak` (usually the primary key) is appended
    in the same direction so that rows with equal sort values keep a stable order
    across pages.
    """
    sortable = sortable or {}
    query = apply_search(query, params.search, searchable)

    total = query.order_by(None).count()

    sort_key, sort_order = params.sort_key, params.sort_order
    if sort_key not in sortable:
        sort_key, sort_order = default_sort if default_sort else (None, "asc")

    if sort_key is not None:
        col = sortable[sort_key]
        query = query.order_by(col.desc() if sort_order == "desc" else col.asc())
    if tiebreak is not None:
        query = query.order_by(tiebreak.desc() if sort_order == "desc" else tiebreak.asc())

    items = query.offset(params.offset).limit(params.limit).all()
    return Page(items=items, pagination=build_pagination(params.page, params.limit, total), filters=params.filters())


def _row_matches(row: Mapping[str, Any], needle: str) -> bool:
    for value in row.values():
        if value is None:
            continue
        if needle in str(value).lower():
            return True
    return False


def _sort_rows(rows: list[Mapping[str, Any]], key: str, order: str) -> list[Mapping[str, Any]]:
    def typed(row: Mapping[str, Any]) -> tuple:
        v = row.get(key)
        return (0, 0) if v is None else (1, v)

    def as_text(row: Mapping[str, Any]) -> tuple:
        v = row.get(key)
        return (0, "") if v is None else (1, str(v))

    reverse = order == "desc"
    try:
        return sorted(rows, key=typed, reverse=reverse)
    except TypeError:
        # mixed value types in one column; fall back to string comparison
        return sorted(rows, key=as_text, reverse=reverse)


def process_rows(rows: Iterable[Mapping[str, Any]], params: ListParams) -> Page:
    """
    In-memory search/sort/slice over plain dict rows.

    Search matches the lowercased term against the string form of every value in a
    row. Sorting is stable and places missing values first in ascending order.
    """
    result = list(rows)
    if params.search:
        needle = params.search.lower()
        result = [r for r in result if _row_matches(r, needle)]
    if params.sort_key:
        result = _sort_rows(result, params.sort_key, params.sort_order)

    total = len(result)
    window = result[params.offset: params.offset + params.limit]
    return Page(items=window, pagination=build_pagination(params.page, params.limit, total), filters=params.filters())
