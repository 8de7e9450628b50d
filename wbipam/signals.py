"""Graceful shutdown on SIGINT and SIGTERM."""

from __future__ import annotations

import os
import signal
import threading

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)

_lock = threading.Lock()
_installed = False


def setup_signal_handler() -> threading.Event:
    """Install handlers for the shutdown signals and return an event they set.

    The first signal sets the event; a second one ends the process with
    exit status 1. May be called only once, from the main thread.
    """
    global _installed
    with _lock:
        if _installed:
            raise RuntimeError("signal handler has already been set up")
        _installed = True

    stop = threading.Event()

    def _handle(signum, frame) -> None:
        if stop.is_set():
            os._exit(1)
        stop.set()

    for sig in SHUTDOWN_SIGNALS:
        signal.signal(sig, _handle)
    return stop