"""IP address helpers, levelled logging, node slice allocation, pod address cleanup helpers and shutdown signals."""

__version__ = "0.1.0"

__all__ = ["iphelpers", "logsink", "nodeslice", "podgc", "signals"]