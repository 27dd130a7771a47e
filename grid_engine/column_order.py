"""Drag-reordering of dynamic columns with debounced remote persistence."""

from .dynamic_fields import dynamic_field_name


def move_item(items, old_index, new_index):
    """Return a copy of ``items`` with one element moved."""
    result = list(items)
    if not (0 <= old_index < len(result)) or not (0 <= new_index < len(result)):
        return result
    item = result.pop(old_index)
    result.insert(new_index, item)
    return result


def splice_subsequence(order, subset_ids, new_subset):
    """Write ``new_subset`` into the slots ``subset_ids`` occupy in ``order``."""
    subset = set(subset_ids)
    positions = [i for i, column_id in enumerate(order) if column_id in subset]
    result = list(order)
    for position, column_id in zip(positions, new_subset):
        result[position] = column_id
    return result


class ColumnOrderController:
    """Displayed column order of one grid instance.

    Only dynamic (organization-defined) columns are draggable; static and
    control columns stay where they are.  Local order is authoritative:
    persistence is fire-and-forget and a failed save is reported but not
    reverted.

    Parameters
    ----------
    columns_getter : callable
        Returns the current column descriptors.
    runner : object
        Remote-call runner (see ``grid_engine.scheduling``).
    notices : NoticeSink
    debouncer : Debouncer
        Delays persistence until dragging settles.
    persist_column_order : callable, optional
        ``persist_column_order(field_names)``; when absent the order lives
        in memory only.
    """

    def __init__(self, columns_getter, runner, notices, debouncer, persist_column_order=None):
        self._columns_getter = columns_getter
        self._runner = runner
        self._notices = notices
        self._debouncer = debouncer
        self._persist_column_order = persist_column_order
        self._order = []
        self.sync()

    def sync(self):
        """Adopt the current columns, keeping the known order for surviving ids."""
        ids = [c["id"] for c in self._columns_getter()]
        kept = [column_id for column_id in self._order if column_id in ids]
        if not kept:
            self._order = ids
            return
        # New columns keep their declared neighbours.
        order = list(kept)
        for index, column_id in enumerate(ids):
            if column_id in order:
                continue
            anchor = ids[index - 1] if index > 0 else None
            position = order.index(anchor) + 1 if anchor in order else len(order)
            order.insert(position, column_id)
        self._order = order

    def column_order(self):
        return list(self._order)

    def ordered_columns(self):
        by_id = {c["id"]: c for c in self._columns_getter()}
        return [by_id[column_id] for column_id in self._order if column_id in by_id]

    def is_draggable(self, column_id):
        for column in self._columns_getter():
            if column["id"] == column_id:
                return bool(column.get("is_dynamic"))
        return False

    def dynamic_order(self):
        """Dynamic column ids in their currently displayed order."""
        return [column_id for column_id in self._order if self.is_draggable(column_id)]

    def move(self, active_id, over_id):
        """Drag end: move ``active_id`` onto ``over_id``. Returns True if reordered."""
        if active_id == over_id:
            return False
        if not self.is_draggable(active_id) or not self.is_draggable(over_id):
            return False
        current = self.dynamic_order()
        reordered = move_item(current, current.index(active_id), current.index(over_id))
        return self.set_dynamic_order(reordered)

    def set_dynamic_order(self, dynamic_ids):
        """Replace the dynamic sub-sequence; unknown or missing ids are refused."""
        current = self.dynamic_order()
        dynamic_ids = list(dynamic_ids)
        if sorted(dynamic_ids) != sorted(current) or dynamic_ids == current:
            return False
        self._order = splice_subsequence(self._order, current, dynamic_ids)
        if self._persist_column_order is not None:
            self._debouncer.call(self._persist)
        return True

    def field_names(self):
        return [dynamic_field_name(column_id) or column_id for column_id in self.dynamic_order()]

    def _persist(self):
        names = self.field_names()
        self._runner.submit(self._persist_column_order, names, self._on_persisted)

    def _on_persisted(self, outcome):
        if outcome.get("ok"):
            return
        self._notices.emit(
            code="column_order.save_failed",
            text=f"Failed to save column order: {outcome.get('message') or 'unknown error'}",
            level="error",
        )

    def cancel_timers(self):
        self._debouncer.cancel()
