"""Pagination / lazy-load orchestration for one grid instance.

The loader owns the row store's contents.  It decides when to fetch,
assembles query parameters, and either replaces the loaded rows (paged mode)
or appends to them (lazy mode).

There is a single fetch slot per grid:

* ``idle``: no request outstanding,
* ``fetching``: one request outstanding.

A query change while ``fetching`` marks the slot dirty instead of issuing an
overlapping request.  When the outstanding request settles its result is
discarded and one fresh request is issued for the current state, so a slow
response can never overwrite a newer one.
"""

from . import field_types as ft
from .columns import data_columns, get_value
from .config import LAZY_LOAD_THRESHOLD_PX
from .query_state import build_query_params, next_lazy_page_index, page_count

IDLE = "idle"
FETCHING = "fetching"


def parse_page_response(response):
    """Return ``(rows, total_count)`` from a fetch collaborator response."""
    if isinstance(response, list):
        return [r for r in response if isinstance(r, dict)], len(response)
    if not isinstance(response, dict):
        return [], 0
    rows = response.get("rows")
    if rows is None:
        rows = response.get("data")
    if not isinstance(rows, list):
        rows = []
    rows = [r for r in rows if isinstance(r, dict)]
    total = response.get("totalCount", response.get("total_count"))
    try:
        total = int(total)
    except (TypeError, ValueError):
        total = len(rows)
    return rows, total


def row_matches_text(row, columns, text):
    """Case-insensitive substring match over the row's display texts."""
    needle = str(text or "").strip().lower()
    if not needle:
        return True
    for column in data_columns(columns):
        shown = ft.format_display(column, get_value(row, column["accessor_path"]))
        if needle in shown.lower():
            return True
    return False


class PageLoader:
    """Fetch orchestration over a :class:`~grid_engine.row_store.RowStore`.

    Parameters
    ----------
    store : RowStore
    fetch_page : callable
        ``fetch_page(query) -> {"rows"|"data": [...], "totalCount": n}``.
    state : QueryState
    runner : object
        Remote-call runner (see ``grid_engine.scheduling``).
    notices : NoticeSink
    search_debouncer : Debouncer
        Delays folding search text into the query.
    on_loaded : callable, optional
        Called with the freshly fetched rows after they are applied.
    """

    def __init__(self, store, fetch_page, state, runner, notices, search_debouncer, on_loaded=None):
        if not callable(fetch_page):
            raise ValueError("fetch_page collaborator is required")
        self.store = store
        self.state = state
        self._fetch_page = fetch_page
        self._runner = runner
        self._notices = notices
        self._search_debouncer = search_debouncer
        self._on_loaded = on_loaded
        self.fetch_state = IDLE
        self._dirty = False
        self.has_more = True
        self.client_filter_text = ""
        self.last_query = None

    # ---- Read ----

    def is_loading(self):
        return self.fetch_state == FETCHING

    def page_count(self):
        return page_count(self.store.total_count(), self.state.page_size)

    def visible_rows(self, columns):
        """Loaded rows narrowed by the unthrottled client-side text filter."""
        rows = self.store.list_rows()
        if not self.client_filter_text.strip():
            return rows
        return [r for r in rows if row_matches_text(r, columns, self.client_filter_text)]

    # ---- Fetching ----

    def refresh(self):
        """Re-run the current query from the start (lazy) or current page (paged)."""
        if self.state.is_lazy:
            self.state.page_index = 0
        return self._request(append=False)

    def load_more(self):
        """Lazy mode: append the next page. Returns True if a fetch was issued."""
        if not self.state.is_lazy:
            return False
        if self.fetch_state == FETCHING or not self.has_more:
            return False
        page_index = next_lazy_page_index(self.store.count(), self.state.page_size)
        return self._request(append=True, page_index=page_index)

    def should_load_more(self, scroll_top, viewport_height, content_height, threshold=None):
        """True when the viewport bottom is within ``threshold`` px of the end."""
        if not self.state.is_lazy or not self.has_more or self.fetch_state == FETCHING:
            return False
        limit = LAZY_LOAD_THRESHOLD_PX if threshold is None else threshold
        return content_height - (scroll_top + viewport_height) <= limit

    def on_scroll(self, scroll_top, viewport_height, content_height):
        if self.should_load_more(scroll_top, viewport_height, content_height):
            return self.load_more()
        return False

    def _request(self, append, page_index=None):
        if self.fetch_state == FETCHING:
            if append:
                return False
            self._dirty = True
            return False

        index = self.state.page_index if page_index is None else page_index
        query = build_query_params(self.state, page_index=index)
        self.last_query = query
        self.fetch_state = FETCHING
        self._dirty = False
        self._runner.submit(
            self._fetch_page,
            query,
            lambda outcome: self._on_fetched(outcome, append),
        )
        return True

    def _on_fetched(self, outcome, append):
        self.fetch_state = IDLE

        if self._dirty:
            self._dirty = False
            self._request(append=False)
            return

        if not outcome.get("ok"):
            self._notices.emit(
                code="fetch.failed",
                text=f"Failed to load data: {outcome.get('message') or 'unknown error'}",
                level="error",
                data={"query": self.last_query},
            )
            return

        rows, total = parse_page_response(outcome.get("result"))
        if append:
            loaded = self.store.append(rows, total_count=total)
        else:
            self.store.replace_all(rows, total_count=total)
            loaded = len(rows)
        self.has_more = loaded < total if self.state.is_lazy else (
            self.state.page_index + 1 < page_count(total, self.state.page_size)
        )
        if self._on_loaded:
            self._on_loaded(rows)

    # ---- Query changes ----

    def _reset_and_fetch(self):
        self.state.page_index = 0
        self.has_more = True
        return self._request(append=False)

    def set_page_index(self, page_index):
        """Paged mode: go to ``page_index`` (0-based)."""
        if self.state.is_lazy:
            return False
        page_index = max(0, int(page_index))
        if page_index == self.state.page_index:
            return False
        self.state.page_index = page_index
        return self._request(append=False)

    def set_page_size(self, page_size):
        page_size = max(1, int(page_size))
        if page_size == self.state.page_size:
            return False
        self.state.page_size = page_size
        return self._reset_and_fetch()

    def set_sorting(self, column_id=None, desc=False):
        before = list(self.state.sorting)
        self.state.set_sorting(column_id, desc)
        if self.state.sorting == before:
            return False
        return self._reset_and_fetch()

    def set_search_text(self, text):
        """Filter loaded rows now; fold the text into the query once typing settles."""
        text = str(text or "")
        self.client_filter_text = text
        self._search_debouncer.call(lambda: self._apply_search(text))

    def _apply_search(self, text):
        text = text.strip()
        if text == self.state.global_filter_text:
            return False
        self.state.global_filter_text = text
        return self._reset_and_fetch()

    def set_advanced_filters(self, filters):
        filters = dict(filters or {})
        if filters == self.state.advanced_filters:
            return False
        self.state.advanced_filters = filters
        return self._reset_and_fetch()

    def set_extra_filters(self, filters):
        filters = dict(filters or {})
        if filters == self.state.extra_filters:
            return False
        self.state.extra_filters = filters
        return self._reset_and_fetch()

    def cancel_timers(self):
        self._search_debouncer.cancel()
