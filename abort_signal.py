"""
MicroPython Uploader - Abort Signal Module
Cancellation token shared between the caller and a running upload job.
"""

import threading


class AbortSignal:
    """One-way abort flag for a single upload job.

    Once set it stays set. Setting it again has no further effect. Backed by a
    threading.Event so the UI thread can cancel a job that runs on a worker
    thread's event loop.
    """

    def __init__(self):
        self._event = threading.Event()

    def set(self):
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def __bool__(self):
        return self._event.is_set()

    def __repr__(self):
        return f"AbortSignal(set={self.is_set()})"
