"""Qt implementations of the engine's runner and timer interfaces.

Remote calls run on a ``QThread`` each; their outcomes come back to the GUI
thread through a queued signal, so engine callbacks always run on the GUI
thread.
"""

import itertools

from PySide6.QtCore import QObject, QThread, QTimer, Signal, Slot

from grid_engine.scheduling import run_remote_call


class QtTimer:
    """Single-shot ``QTimer`` behind the engine timer interface."""

    def __init__(self, parent=None):
        self._callback = None
        self._timer = QTimer(parent)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._on_timeout)

    def start(self, delay_ms, callback):
        self._callback = callback
        self._timer.start(int(delay_ms))

    def stop(self):
        self._timer.stop()
        self._callback = None

    def is_active(self):
        return self._timer.isActive()

    def _on_timeout(self):
        cb = self._callback
        self._callback = None
        if cb:
            cb()


class RemoteCallWorker(QObject):
    finished = Signal(int, object)

    def __init__(self, call_id, fn, payload):
        super().__init__()
        self._call_id = call_id
        self._fn = fn
        self._payload = payload

    def run(self):
        outcome = run_remote_call(self._fn, self._payload)
        self.finished.emit(self._call_id, outcome)


class QtRemoteRunner(QObject):
    """Runs each remote call on its own ``QThread``."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._ids = itertools.count(1)
        self._calls = {}
        self._closed = False

    def submit(self, fn, payload, on_done=None):
        if self._closed:
            return None
        call_id = next(self._ids)
        worker = RemoteCallWorker(call_id, fn, payload)
        thread = QThread(self)
        worker.moveToThread(thread)

        thread.started.connect(worker.run)
        worker.finished.connect(self._on_finished)
        worker.finished.connect(thread.quit)
        worker.finished.connect(worker.deleteLater)
        thread.finished.connect(thread.deleteLater)

        self._calls[call_id] = (thread, worker, on_done)
        thread.start()
        return call_id

    def pending_count(self):
        return len(self._calls)

    @Slot(int, object)
    def _on_finished(self, call_id, outcome):
        entry = self._calls.pop(call_id, None)
        if entry is None or self._closed:
            return
        _thread, _worker, on_done = entry
        if on_done:
            on_done(outcome)

    def shutdown(self, wait_ms=2000):
        """Stop delivering outcomes and wait for running threads."""
        self._closed = True
        for thread, _worker, _cb in list(self._calls.values()):
            thread.quit()
            thread.wait(wait_ms)
        self._calls.clear()
