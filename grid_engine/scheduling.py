"""Remote-call runners and debounce timers.

No Qt imports; framework-agnostic.  The GUI layer provides Qt-backed
implementations with the same interfaces (see ``grid_gui.qt_runtime``).

Runner interface::

    runner.submit(fn, payload, on_done)

``fn(payload)`` is the remote collaborator.  ``on_done`` receives an outcome
dict: ``{"ok": True, "result": response}`` or
``{"ok": False, "error_code": ..., "message": ..., "result": response}``.

Timer interface::

    timer.start(delay_ms, callback); timer.stop(); timer.is_active()
"""

from collections.abc import Mapping

from .notices import error_message


def normalize_response(response):
    """Map a raw collaborator response to an outcome dict."""
    if isinstance(response, Mapping):
        if response.get("ok") is False or response.get("error"):
            return {
                "ok": False,
                "error_code": str(response.get("error_code") or "remote_rejected"),
                "message": error_message(response),
                "result": response,
            }
    return {"ok": True, "result": response}


def run_remote_call(fn, payload):
    """Call ``fn(payload)`` and return a normalized outcome, never raising."""
    try:
        response = fn(payload)
    except Exception as exc:
        return {
            "ok": False,
            "error_code": "remote_call_failed",
            "message": error_message(exc),
            "result": None,
        }
    return normalize_response(response)


class SyncRunner:
    """Runs each remote call inline and reports the outcome immediately."""

    def submit(self, fn, payload, on_done=None):
        outcome = run_remote_call(fn, payload)
        if on_done:
            on_done(outcome)
        return outcome


class DeferredRunner:
    """Queues remote calls until the host drains them.

    Lets callers observe the state between issuing a call and its
    settlement (optimistic values, in-flight guards).
    """

    def __init__(self):
        self._queue = []

    def submit(self, fn, payload, on_done=None):
        self._queue.append((fn, payload, on_done))

    def pending_count(self):
        return len(self._queue)

    def run_next(self, index=0):
        """Settle one queued call (the oldest by default). Returns its outcome or ``None``."""
        if not 0 <= index < len(self._queue):
            return None
        fn, payload, on_done = self._queue.pop(index)
        outcome = run_remote_call(fn, payload)
        if on_done:
            on_done(outcome)
        return outcome

    def run_pending(self):
        """Settle every call queued so far (calls queued meanwhile included)."""
        count = 0
        while self._queue:
            self.run_next()
            count += 1
        return count


class ImmediateTimer:
    """Fires the callback as soon as it is started (no real delay)."""

    def __init__(self):
        self._active = False

    def start(self, delay_ms, callback):
        self._active = True
        try:
            callback()
        finally:
            self._active = False

    def stop(self):
        self._active = False

    def is_active(self):
        return self._active


class ManualTimer:
    """Holds a pending callback until ``fire()`` is called."""

    def __init__(self):
        self._callback = None
        self.delay_ms = None

    def start(self, delay_ms, callback):
        self.delay_ms = delay_ms
        self._callback = callback

    def stop(self):
        self._callback = None

    def is_active(self):
        return self._callback is not None

    def fire(self):
        cb = self._callback
        self._callback = None
        if cb:
            cb()
        return cb is not None


class Debouncer:
    """Collapses bursts of calls into one call after ``delay_ms`` of quiet."""

    def __init__(self, timer, delay_ms):
        self._timer = timer
        self.delay_ms = int(delay_ms)
        self._pending = None

    @property
    def timer(self):
        return self._timer

    def call(self, fn):
        self._pending = fn
        self._timer.stop()
        self._timer.start(self.delay_ms, self._fire)

    def _fire(self):
        fn = self._pending
        self._pending = None
        if fn:
            fn()

    def is_pending(self):
        return self._pending is not None

    def flush(self):
        """Run the pending call now, if any."""
        self._timer.stop()
        if self._pending is not None:
            self._fire()
            return True
        return False

    def cancel(self):
        self._timer.stop()
        self._pending = None
