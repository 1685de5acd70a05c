"""
Cancellation token and the SIGINT binding that fires it.
"""

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Callable


logger = logging.getLogger(__name__)


class CancellationToken:
    """
    One-shot cancellation signal shared by the orchestrator and the session.

    Callbacks registered before cancel() run once when it is called;
    callbacks registered afterwards run immediately. cancel() may be called
    from a signal handler that interrupted another call on the same thread.
    """

    def __init__(self):
        self._callbacks: list[Callable[[], object]] = []
        self._cancelled = False
        self._lock = threading.RLock()

    @property
    def is_cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def register(self, callback: Callable[[], object]) -> Callable[[], None]:
        """
        Run callback on cancellation.

        Returns:
            A function that removes the registration
        """
        with self._lock:
            self._callbacks.append(callback)

        def unregister():
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        # cancel() may have run between the append and here.
        if self.is_cancelled:
            self._run_callbacks()
        return unregister

    def cancel(self):
        """Fire the token. Later calls only run callbacks still pending."""
        with self._lock:
            if not self._cancelled:
                self._cancelled = True
                logger.info("Cancellation requested")
            self._run_callbacks()

    def _run_callbacks(self):
        with self._lock:
            while self._callbacks:
                callback = self._callbacks.pop(0)
                try:
                    callback()
                except Exception:
                    logger.exception("Cancellation callback failed")


@contextmanager
def interrupt_handler(token: CancellationToken, signum: int = signal.SIGINT):
    """
    Cancel token when the process receives signum.

    KeyboardInterrupt is still raised after cancelling so that a blocking
    read on the main thread returns. The previous handler is restored on exit.
    """

    def handle(received, frame):
        token.cancel()
        raise KeyboardInterrupt()

    previous = signal.getsignal(signum)
    if previous is None:
        previous = signal.SIG_DFL
    signal.signal(signum, handle)
    try:
        yield token
    finally:
        signal.signal(signum, previous)
