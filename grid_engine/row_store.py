"""Thread-safe in-memory row store for one grid instance.

Holds the currently loaded page(s) and the server-reported total count.
Every mutation goes through the "by id field" or "replace wholesale"
primitives below.  No Qt imports; framework-agnostic.
"""

import threading
from copy import deepcopy


class RowStore:
    """Holds loaded rows with thread-safe access.

    Parameters
    ----------
    id_field : str
        Row identity key (``_id`` by default).
    on_change : callable, optional
        Called (with no args) after every mutation.  The GUI layer
        connects this to a Qt model reset.
    """

    def __init__(self, id_field="_id", on_change=None):
        self.id_field = id_field
        self._rows = []
        self._total_count = 0
        self._lock = threading.Lock()
        self._on_change = on_change

    def _notify(self):
        cb = self._on_change
        if cb:
            cb()

    def row_id(self, row):
        if not isinstance(row, dict):
            return None
        return row.get(self.id_field)

    def _index_of(self, row_id):
        for i, existing in enumerate(self._rows):
            if existing.get(self.id_field) == row_id:
                return i
        return -1

    # ---- Read ----

    def list_rows(self):
        """Return a deep-copied snapshot of all loaded rows."""
        with self._lock:
            return deepcopy(self._rows)

    def count(self):
        with self._lock:
            return len(self._rows)

    def total_count(self):
        with self._lock:
            return self._total_count

    def get(self, row_id):
        """Return a copy of the row with ``row_id`` or ``None``."""
        if row_id is None:
            return None
        with self._lock:
            index = self._index_of(row_id)
            return deepcopy(self._rows[index]) if index >= 0 else None

    def index_of(self, row_id):
        with self._lock:
            return self._index_of(row_id)

    def ids(self):
        with self._lock:
            return [row.get(self.id_field) for row in self._rows]

    # ---- Write ----

    def add(self, row, index=None):
        """Insert a row (appended unless ``index`` is given)."""
        with self._lock:
            if index is None or index >= len(self._rows):
                self._rows.append(dict(row))
            else:
                self._rows.insert(max(0, index), dict(row))
            self._total_count += 1
        self._notify()

    def update(self, row):
        """Replace the row matching ``row[id_field]``. Returns True if found."""
        row_id = self.row_id(row)
        if row_id is None:
            return False
        with self._lock:
            index = self._index_of(row_id)
            if index < 0:
                return False
            self._rows[index] = dict(row)
        self._notify()
        return True

    def replace_id(self, old_id, row):
        """Swap a row (e.g. a temporary one) for ``row``. Returns True if found."""
        with self._lock:
            index = self._index_of(old_id)
            if index < 0:
                return False
            self._rows[index] = dict(row)
        self._notify()
        return True

    def remove(self, row_id):
        """Remove the row with ``row_id``. Returns ``(index, row)`` or ``None``."""
        with self._lock:
            index = self._index_of(row_id)
            if index < 0:
                return None
            removed = self._rows.pop(index)
            self._total_count = max(0, self._total_count - 1)
        self._notify()
        return index, removed

    def replace_all(self, rows, total_count=None):
        """Replace entire list (paged fetch, refresh)."""
        with self._lock:
            self._rows = [dict(r) for r in rows or [] if isinstance(r, dict)]
            self._total_count = int(total_count) if total_count is not None else len(self._rows)
        self._notify()

    def append(self, rows, total_count=None):
        """Append a lazily-loaded page. Returns the new loaded count."""
        with self._lock:
            self._rows.extend(dict(r) for r in rows or [] if isinstance(r, dict))
            if total_count is not None:
                self._total_count = int(total_count)
            loaded = len(self._rows)
        self._notify()
        return loaded

    def clear(self):
        with self._lock:
            self._rows = []
            self._total_count = 0
        self._notify()
