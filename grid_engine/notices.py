"""Notice payloads for non-fatal, user-visible grid events."""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional


LEVELS = ("info", "success", "warning", "error")


def build_notice(
    *,
    code: str,
    text: str,
    level: str = "info",
    source: str = "grid",
    timeout_ms: int = 3000,
    details: Optional[str] = None,
    data: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Build a normalized ``grid_notice`` payload."""
    level = str(level or "info")
    if level not in LEVELS:
        level = "info"
    payload: Dict[str, Any] = {
        "type": "grid_notice",
        "code": str(code or "notice"),
        "level": level,
        "text": str(text or ""),
        "source": str(source or "grid"),
        "timeout_ms": int(timeout_ms or 0),
    }
    if details:
        payload["details"] = str(details)
    if isinstance(data, Mapping):
        payload["data"] = dict(data)
    return payload


def error_message(response: Any, fallback: str = "Request failed") -> str:
    """Extract a readable message from a failed collaborator response."""
    if isinstance(response, BaseException):
        return str(response) or type(response).__name__
    if isinstance(response, Mapping):
        for key in ("message", "error"):
            value = response.get(key)
            if isinstance(value, Mapping):
                value = value.get("message")
            if value:
                return str(value)
    return fallback


class NoticeSink:
    """Dispatches notices to a host callback and keeps the latest ones.

    Parameters
    ----------
    on_notice : callable, optional
        Called with each notice payload. The GUI layer connects this to a
        Qt signal; headless hosts may leave it unset.
    """

    def __init__(
        self,
        on_notice: Optional[Callable[[Dict[str, Any]], None]] = None,
        keep: int = 50,
        timeout_ms: int = 3000,
    ):
        self._on_notice = on_notice
        self.timeout_ms = int(timeout_ms)
        self._keep = max(1, int(keep))
        self.history = []

    def emit(self, **kwargs: Any) -> Dict[str, Any]:
        kwargs.setdefault("timeout_ms", self.timeout_ms)
        notice = build_notice(**kwargs)
        self.history.append(notice)
        if len(self.history) > self._keep:
            del self.history[: len(self.history) - self._keep]
        cb = self._on_notice
        if cb:
            cb(notice)
        return notice

    def last(self) -> Optional[Dict[str, Any]]:
        return self.history[-1] if self.history else None
