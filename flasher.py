"""
MicroPython Uploader - Flasher Module
Runs one external transfer tool (ampy, esptool) per artifact, streams its
console output to the log callback and classifies how it exited.
"""

import asyncio
import codecs
import importlib.util
import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config import (
    AMPY_PATH, ESPTOOL_PATH, ESPTOOL_MODULE, ESP_CHIP, ESP_BAUD,
    ESP_BEFORE, ESP_AFTER, ESP_FLASH_MODE, ESP_FLASH_FREQ, ESP_FLASH_SIZE,
    ESP_FLASH_OFFSET, ABORT_STATE_CHECK_INTERVAL, READ_CHUNK_SIZE,
    LOG_INFO, LOG_ERROR,
)

# On Windows a killed process exits with an ordinary code
KILL_LEAVES_NO_SIGNAL = os.name == "nt"


# ================= EXCEPTIONS =================

class UploadError(Exception):
    """Base exception for upload operations."""
    pass


class StagingError(UploadError):
    """Project directory or code file could not be written."""
    pass


class ToolNotFoundError(UploadError):
    """The external tool could not be started."""
    pass


class TransferError(UploadError):
    """The external tool exited with a non-zero code."""

    def __init__(self, reason: str, artifact: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.artifact = artifact


class FirmwareNotFoundError(UploadError):
    """Firmware image does not exist."""
    pass


class UnsupportedOperationError(UploadError):
    pass


# ================= OUTCOMES =================

class UploadStatus(str, Enum):
    SUCCESS = "Success"
    ABORTED = "Aborted"
    FAILED = "Failed"


@dataclass(frozen=True)
class TransferOutcome:
    """Result of one tool run: status, the artifact it moved and, on failure, why."""
    status: UploadStatus
    artifact: str
    reason: Optional[str] = None

    def __bool__(self):
        return self.status is UploadStatus.SUCCESS


# ================= TRANSFER TOOLS =================

class TransferTool:
    """Argument template for an external tool that moves one artifact to the board."""

    name = "tool"
    failure_reason = "Transfer failed"

    def executable(self) -> list:
        raise NotImplementedError()

    def build_args(self, device: str, artifact: str) -> list:
        raise NotImplementedError()

    def command(self, device: str, artifact: str) -> list:
        return self.executable() + self.build_args(device, artifact)


class AmpyPut(TransferTool):
    name = "ampy"
    failure_reason = "Failed to write file"

    def __init__(self, ampy_path: str = AMPY_PATH):
        self.ampy_path = ampy_path

    def executable(self) -> list:
        return [self.ampy_path]

    def build_args(self, device: str, artifact: str) -> list:
        return ["--port", device, "put", str(artifact)]


class EsptoolFlash(TransferTool):
    name = "esptool"
    failure_reason = "Failed to flash binary file"

    def __init__(self, chip: str = ESP_CHIP, baudrate: int = ESP_BAUD,
                 offset: str = ESP_FLASH_OFFSET):
        self.chip = chip
        self.baudrate = baudrate
        self.offset = offset

    def executable(self) -> list:
        """Use esptool from the current Python env if possible."""
        if importlib.util.find_spec(ESPTOOL_MODULE) is not None:
            return [sys.executable, "-m", ESPTOOL_MODULE]
        return [ESPTOOL_PATH]

    def build_args(self, device: str, artifact: str) -> list:
        return [
            "--chip", self.chip,
            "--port", device,
            "--baud", str(self.baudrate),
            "--before", ESP_BEFORE,
            "--after", ESP_AFTER,
            "write_flash", "-z",
            "--flash_mode", ESP_FLASH_MODE,
            "--flash_freq", ESP_FLASH_FREQ,
            "--flash_size", ESP_FLASH_SIZE,
            self.offset, str(artifact),
        ]


# ================= PROCESS HELPERS =================

async def spawn_tool(argv: list):
    """Start argv with both output streams piped back to us."""
    return await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


async def _pump(stream, log_func, msg_type: str):
    if stream is None:
        return
    # Chunks can end mid-character
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        text = decoder.decode(chunk)
        if text:
            log_func(text, msg_type)
    tail = decoder.decode(b"", final=True)
    if tail:
        log_func(tail, msg_type)


async def _watch_abort(proc, abort_signal, interval: float) -> bool:
    """Kill proc as soon as abort_signal is seen. Returns True if it did."""
    while proc.returncode is None:
        if abort_signal.is_set():
            try:
                proc.kill()
            except ProcessLookupError:
                return False
            return True
        await asyncio.sleep(interval)
    return False


# ================= TRANSFER =================

async def run_transfer(tool: TransferTool, device: str, artifact, log_func, abort_signal,
                       spawn=None, interval: float = ABORT_STATE_CHECK_INTERVAL) -> TransferOutcome:
    """Run one tool invocation for one artifact and classify the exit.

    stdout is forwarded as "info", stderr as "error". A process that was
    killed by a signal (from the abort watcher or from elsewhere) counts as
    aborted. Any normal exit code wins over a late abort.
    """
    artifact = str(artifact)
    if abort_signal.is_set():
        return TransferOutcome(UploadStatus.ABORTED, artifact)

    spawn = spawn or spawn_tool
    argv = tool.command(device, artifact)
    try:
        proc = await spawn(argv)
    except OSError as e:
        raise ToolNotFoundError(f"{tool.name} not found: {e}") from e

    pumps = [
        asyncio.ensure_future(_pump(proc.stdout, log_func, LOG_INFO)),
        asyncio.ensure_future(_pump(proc.stderr, log_func, LOG_ERROR)),
    ]
    watcher = asyncio.ensure_future(_watch_abort(proc, abort_signal, interval))
    try:
        returncode = await proc.wait()
        await asyncio.gather(*pumps)
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await asyncio.shield(proc.wait())
        raise
    finally:
        for task in (watcher, *pumps):
            if not task.done():
                task.cancel()

    killed = watcher.done() and not watcher.cancelled() and watcher.result()

    if returncode == 0:
        log_func(f"{artifact} write finished\n", LOG_INFO)
        return TransferOutcome(UploadStatus.SUCCESS, artifact)
    if returncode < 0 or (killed and KILL_LEAVES_NO_SIGNAL):
        return TransferOutcome(UploadStatus.ABORTED, artifact)
    return TransferOutcome(UploadStatus.FAILED, artifact, tool.failure_reason)
