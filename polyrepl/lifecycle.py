"""
CompositeDisposable: releases every registered resource exactly once.
"""

import logging
import threading
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


def _release_action(resource: Any) -> Callable[[], Any]:
    """Find the call that releases a resource."""
    for method_name in ("dispose", "close"):
        method = getattr(resource, method_name, None)
        if callable(method):
            return method
    if callable(resource):
        return resource
    raise TypeError(f"{type(resource).__name__} has no dispose() or close() and is not callable")


class CompositeDisposable:
    """
    Ordered set of disposable resources.

    Resources are released in reverse registration order, so callers must
    register a dependency before the things that depend on it. dispose()
    may be called any number of times, from any thread or from a signal
    handler interrupting another call; each resource is released at most once.
    """

    def __init__(self):
        self._entries: list[tuple[str, Callable[[], Any]]] = []
        self._disposed = False
        # Reentrant: a SIGINT handler may dispose while the main thread holds it.
        self._lock = threading.RLock()

    @property
    def is_disposed(self) -> bool:
        with self._lock:
            return self._disposed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def add(self, resource: Any, name: Optional[str] = None):
        """
        Register a resource for disposal.

        Args:
            resource: A callable, or an object with dispose() or close()
            name: Label used in log messages

        If the registry has already been disposed the resource is released
        immediately instead of being held.
        """
        action = _release_action(resource)
        label = name or getattr(resource, "__name__", None) or type(resource).__name__

        with self._lock:
            self._entries.append((label, action))

        # dispose() may have run between the append and here.
        if self.is_disposed:
            logger.info("Registry already disposed, releasing %s immediately", label)
            self._drain()

    def dispose(self):
        """Release all registered resources, most recently added first."""
        with self._lock:
            self._disposed = True
        self._drain()

    def _drain(self):
        with self._lock:
            while self._entries:
                label, action = self._entries.pop()
                self._release(label, action)

    def _release(self, label: str, action: Callable[[], Any]):
        try:
            action()
            logger.debug("Released %s", label)
        except Exception:
            logger.exception("Failed to release %s", label)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()
