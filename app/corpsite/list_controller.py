"""
State holder behind every admin data table.

A `ListController` keeps `{page, limit, sort_key, sort_order, search}`, calls its
fetcher whenever one of those changes, and keeps the latest `{data, total}`:

    ctl = ListController(client.fetcher_for("/audit-logs"), initial_sort=("created_at", "desc"))
    ctl.set_search("login")      # page resets to 1, refetches
    ctl.toggle_sort("action")    # new key -> asc
    ctl.toggle_sort("action")    # same key -> desc
    ctl.data, ctl.total, ctl.total_pages

Fetch failures are logged and kept on `ctl.error`; the table shows empty results.
There is no retry.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Union

from app.corpsite.listing import SORT_ORDERS, ListParams, process_rows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchParams:
    page: int = 1
    limit: int = 10
    sort_key: str | None = None
    sort_order: str = "asc"
    search: str = ""

    def as_query(self) -> dict[str, Any]:
        """Query args understood by the list endpoints; empty values are omitted."""
        q: dict[str, Any] = {"page": self.page, "limit": self.limit}
        if self.sort_key:
            q["sort"] = self.sort_key
            q["order"] = self.sort_order
        if self.search:
            q["search"] = self.search
        return q


@dataclass
class ListResult:
    data: list = field(default_factory=list)
    total: int = 0
    pagination: dict | None = None


FetchOutcome = Union[ListResult, Mapping[str, Any]]
Fetcher = Callable[[FetchParams], FetchOutcome]


def _coerce_result(raw: FetchOutcome) -> ListResult:
    if isinstance(raw, ListResult):
        return raw
    if isinstance(raw, Mapping):
        data = raw.get("data") or []
        total = raw.get("total")
        if total is None:
            total = len(data)
        return ListResult(data=list(data), total=int(total), pagination=raw.get("pagination"))
    raise TypeError(f"fetcher returned {type(raw).__name__}; expected ListResult or mapping with data/total")


def local_fetcher(rows: Iterable[Mapping[str, Any]]) -> Fetcher:
    """
    Fetcher over rows already in memory: search, sort and page them locally.
    """
    snapshot = list(rows)

    def fetch(params: FetchParams) -> ListResult:
        page = process_rows(
            snapshot,
            ListParams(
                page=params.page,
                limit=params.limit,
                sort_key=params.sort_key,
                sort_order=params.sort_order,
                search=params.search,
            ),
        )
        return ListResult(data=page.items, total=page.pagination.total_items, pagination=page.pagination.to_dict())

    return fetch


class ListController:
    def __init__(
        self,
        fetcher: Fetcher,
        *,
        initial_page: int = 1,
        initial_limit: int = 10,
        initial_sort: tuple[str, str] | None = None,
        initial_search: str = "",
        auto_fetch: bool = True,
    ):
        if initial_limit < 1:
            raise ValueError("initial_limit must be >= 1")
        sort_key, sort_order = initial_sort if initial_sort else (None, "asc")
        if sort_order not in SORT_ORDERS:
            raise ValueError(f"sort order must be one of {SORT_ORDERS}")

        self._fetcher = fetcher
        self._params = FetchParams(
            page=max(1, initial_page),
            limit=initial_limit,
            sort_key=sort_key,
            sort_order=sort_order,
            search=(initial_search or "").strip(),
        )
        self._listeners: list[Callable[["ListController"], None]] = []

        self.data: list = []
        self.total: int = 0
        self.pagination: dict | None = None
        self.is_loading: bool = False
        self.error: Exception | None = None
        self.fetch_count: int = 0

        if auto_fetch:
            self.refresh()

    # ---------- State ----------
    @property
    def params(self) -> FetchParams:
        return self._params

    @property
    def page(self) -> int:
        return self._params.page

    @property
    def limit(self) -> int:
        return self._params.limit

    @property
    def sort_key(self) -> str | None:
        return self._params.sort_key

    @property
    def sort_order(self) -> str:
        return self._params.sort_order

    @property
    def search(self) -> str:
        return self._params.search

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    # ---------- Setters ----------
    def set_page(self, page: int) -> bool:
        return self._update(page=max(1, int(page)))

    def next_page(self) -> bool:
        if not self.has_next:
            return False
        return self.set_page(self.page + 1)

    def previous_page(self) -> bool:
        if not self.has_previous:
            return False
        return self.set_page(self.page - 1)

    def set_limit(self, limit: int) -> bool:
        limit = int(limit)
        if limit < 1:
            raise ValueError("limit must be >= 1")
        return self._update(limit=limit, page=1)

    def set_search(self, query: str) -> bool:
        return self._update(search=(query or "").strip(), page=1)

    def toggle_sort(self, key: str) -> bool:
        """Same key flips asc/desc; a different key starts ascending."""
        if key == self.sort_key:
            order = "desc" if self.sort_order == "asc" else "asc"
        else:
            order = "asc"
        return self._update(sort_key=key, sort_order=order)

    def set_sort(self, key: str | None, order: str = "asc") -> bool:
        order = (order or "asc").lower()
        if order not in SORT_ORDERS:
            raise ValueError(f"sort order must be one of {SORT_ORDERS}")
        return self._update(sort_key=key, sort_order=order)

    def subscribe(self, callback: Callable[["ListController"], None]) -> Callable[[], None]:
        """Call `callback(controller)` after every completed fetch. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    # ---------- Fetching ----------
    def _update(self, **changes: Any) -> bool:
        new = replace(self._params, **changes)
        if new == self._params:
            return False
        self._params = new
        self.refresh()
        return True

    def refresh(self) -> None:
        params = self._params
        self.is_loading = True
        self.error = None
        try:
            result = _coerce_result(self._fetcher(params))
        except Exception as e:
            logger.exception("List fetch failed (page=%s limit=%s search=%r)", params.page, params.limit, params.search)
            self.error = e
            self.data = []
            self.total = 0
            self.pagination = None
        else:
            self.data = result.data
            self.total = result.total
            self.pagination = result.pagination
        finally:
            self.is_loading = False
            self.fetch_count += 1

        for cb in list(self._listeners):
            cb(self)
