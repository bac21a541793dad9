"""
MicroPython Uploader - Flash Worker Module
Runs upload jobs on a background thread and reports through a SignalBridge.
"""

import asyncio
import threading

from abort_signal import AbortSignal
from config import LOG_ERROR
from flasher import UploadError
from uploader import Uploader


class FlashWorker:
    """Keeps uploads off the UI thread.

    Each job runs in its own event loop on a daemon thread. The bridge gets
    live tool output through the uploader's log_func, progress for code
    uploads, then upload_done_signal(status, True) when the job resolves or
    upload_done_signal(error, False) when it fails. operation_done_signal is
    always emitted last.
    """

    def __init__(self, uploader: Uploader, bridge):
        self.uploader = uploader
        self.bridge = bridge
        self._thread = None
        self._abort = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start_flash(self, code: str, libraries=()) -> threading.Thread:
        return self._start(lambda abort: self.uploader.flash(
            code, libraries, abort_signal=abort,
            progress_func=self.bridge.progress_signal.emit,
        ))

    def start_binary(self, file_path) -> threading.Thread:
        return self._start(lambda abort: self.uploader.flash_binary_file(file_path, abort_signal=abort))

    def start_firmware(self) -> threading.Thread:
        return self._start(lambda abort: self.uploader.flash_firmware(abort_signal=abort))

    def abort(self):
        if self._abort is not None:
            self._abort.set()

    def join(self, timeout=None):
        if self._thread is not None:
            self._thread.join(timeout)

    def _start(self, make_job) -> threading.Thread:
        if self.running:
            raise UploadError("Upload already in progress")

        abort = AbortSignal()
        self._abort = abort

        def run():
            try:
                status = asyncio.run(make_job(abort))
                self.bridge.upload_done_signal.emit(status.value, True)
            except UploadError as e:
                self.bridge.log(f"Error: {e}\n", LOG_ERROR)
                self.bridge.progress_signal.emit(0.0)
                self.bridge.upload_done_signal.emit(str(e), False)
            finally:
                self.bridge.operation_done_signal.emit()

        self._thread = threading.Thread(target=run, daemon=True)
        self._thread.start()
        return self._thread
