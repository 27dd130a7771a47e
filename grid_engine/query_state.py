"""Query state of one grid instance and its remote query parameters."""

import copy

PAGED = "paged"
LAZY = "lazy"
MODES = (PAGED, LAZY)


class QueryState:
    """Sort, search, filter and paging state.

    The accumulation ``mode`` is fixed at construction.
    """

    def __init__(self, mode=PAGED, page_size=10, extra_filters=None):
        if mode not in MODES:
            raise ValueError(f"unknown paging mode: {mode!r}")
        self._mode = mode
        self.page_index = 0
        self.page_size = max(1, int(page_size))
        self.sorting = []
        self.global_filter_text = ""
        self.advanced_filters = {}
        self.extra_filters = dict(extra_filters or {})

    @property
    def mode(self):
        return self._mode

    @property
    def is_lazy(self):
        return self._mode == LAZY

    def set_sorting(self, column_id=None, desc=False):
        """Single-column sort; ``None`` clears sorting."""
        self.sorting = [] if not column_id else [{"column_id": str(column_id), "desc": bool(desc)}]

    def snapshot(self):
        return {
            "mode": self._mode,
            "page_index": self.page_index,
            "page_size": self.page_size,
            "sorting": copy.deepcopy(self.sorting),
            "global_filter_text": self.global_filter_text,
            "advanced_filters": copy.deepcopy(self.advanced_filters),
            "extra_filters": copy.deepcopy(self.extra_filters),
        }


def build_query_params(state, page_index=None):
    """Assemble remote query parameters.

    ``page`` is 1-based.  Advanced filters are keyed by accessor path and
    extra filters are merged last.
    """
    index = state.page_index if page_index is None else page_index
    params = {
        "page": int(index) + 1,
        "pageSize": state.page_size,
    }
    search = str(state.global_filter_text or "").strip()
    if search:
        params["search"] = search
    if state.sorting:
        sort = state.sorting[0]
        params["sortField"] = sort["column_id"]
        params["sortDirection"] = "desc" if sort.get("desc") else "asc"
    for path, value in state.advanced_filters.items():
        params[path] = copy.deepcopy(value)
    for key, value in state.extra_filters.items():
        params[key] = copy.deepcopy(value)
    return params


def page_count(total_count, page_size):
    if page_size <= 0:
        return 0
    return -(-int(total_count or 0) // int(page_size))


def next_lazy_page_index(loaded_count, page_size):
    """0-based index of the next page to append.

    The 1-based page number is ``ceil(loaded / page_size) + 1``.
    """
    return page_count(loaded_count, page_size)
