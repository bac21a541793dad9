"""
MicroPython Uploader - Signal Bridge Module
Provides thread-safe communication between upload worker threads and Qt UI.
"""

from PySide6.QtCore import QObject, Signal


class SignalBridge(QObject):
    """Signal bridge for thread-safe UI updates."""

    log_signal = Signal(str, str)                    # message, type
    progress_signal = Signal(float)                  # 0.0 → 1.0
    upload_done_signal = Signal(str, bool)           # status or error, resolved
    operation_done_signal = Signal()                 # unlock buttons

    def log(self, message: str, msg_type: str = "info"):
        """Log callback usable from any thread."""
        self.log_signal.emit(message, msg_type)
