"""
MicroPython Uploader - Upload Module
Stages user code and drives the transfers for one board: a file-by-file put
of main.py plus library files, or a single firmware image flash.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from abort_signal import AbortSignal
from config import PROJECT_SUBDIR, FIRMWARE_SUBDIR, LOG_INFO, LOG_SUCCESS
from flasher import (
    AmpyPut, EsptoolFlash, TransferTool, UploadStatus, UploadError,
    TransferError, FirmwareNotFoundError, UnsupportedOperationError,
    run_transfer,
)
from utils import stage_project


# ================= DEVICE FAMILIES =================

@dataclass(frozen=True)
class DeviceFamily:
    name: str
    put_tool: TransferTool
    flash_tool: Optional[TransferTool] = None


DEVICE_FAMILIES = {
    "esp32": DeviceFamily("esp32", AmpyPut(), EsptoolFlash()),
    "microbit": DeviceFamily("microbit", AmpyPut()),
}


# ================= UPLOAD JOB =================

@dataclass
class UploadJob:
    device_path: str
    code: str = ""
    libraries: list = field(default_factory=list)
    project_path: Optional[Path] = None
    files: list = field(default_factory=list)
    abort: AbortSignal = field(default_factory=AbortSignal)


# ================= UPLOADER =================

class Uploader:
    """Uploads code and firmware to one board through its family's tools.

    Only one job runs at a time. Each job gets its own AbortSignal, so an
    abort never leaks into the next upload. flash() and flash_binary_file()
    register the job when they are called and return the coroutine that runs
    it, so abort() takes effect even before that coroutine is first awaited.
    The returned coroutine must be awaited to release the job.
    """

    def __init__(self, peripheral_path: str, config: dict, user_data_path, tools_path,
                 log_func, family: str = "esp32", spawn=None):
        if family not in DEVICE_FAMILIES:
            raise ValueError(f"Unknown device family: {family}")
        self.peripheral_path = peripheral_path
        self.config = config
        self.family = DEVICE_FAMILIES[family]
        self.log_func = log_func
        self.project_path = Path(user_data_path) / PROJECT_SUBDIR
        self.firmware_dir = (Path(tools_path) / FIRMWARE_SUBDIR).resolve()
        self._spawn = spawn
        self._job = None

    @property
    def busy(self) -> bool:
        return self._job is not None

    def abort(self):
        """Cancel the registered job, if any."""
        job = self._job
        if job is not None:
            job.abort.set()

    def _begin(self, job: UploadJob) -> UploadJob:
        if self._job is not None:
            raise UploadError("Upload already in progress")
        self._job = job
        return job

    def _end(self, job: UploadJob):
        if self._job is job:
            self._job = None

    async def _transfer(self, tool: TransferTool, artifact, job: UploadJob):
        return await run_transfer(
            tool, job.device_path, artifact, self.log_func, job.abort, spawn=self._spawn
        )

    # ---------- code upload ----------

    def flash(self, code: str, libraries=(), abort_signal: Optional[AbortSignal] = None,
              progress_func=None):
        """Write code as main.py plus every library file to the board, in order.

        Returns a coroutine resolving to UploadStatus.SUCCESS or ABORTED.
        """
        job = self._begin(UploadJob(
            device_path=self.peripheral_path,
            code=code,
            libraries=list(libraries),
            project_path=self.project_path,
            abort=abort_signal or AbortSignal(),
        ))
        return self._run_flash(job, progress_func)

    async def _run_flash(self, job: UploadJob, progress_func) -> UploadStatus:
        try:
            job.files = await asyncio.to_thread(
                stage_project, job.project_path, job.code, job.libraries
            )

            self.log_func("Writing files...\n", LOG_INFO)

            total = len(job.files)
            for index, file in enumerate(job.files, 1):
                outcome = await self._transfer(self.family.put_tool, file, job)
                if outcome.status is UploadStatus.FAILED:
                    raise TransferError(outcome.reason, outcome.artifact)
                if outcome.status is UploadStatus.ABORTED:
                    return UploadStatus.ABORTED
                if progress_func:
                    progress_func(index / total)
                # The transfer may have finished just as abort was requested
                if job.abort.is_set():
                    return UploadStatus.ABORTED

            self.log_func("Success\n", LOG_SUCCESS)
            return UploadStatus.SUCCESS
        finally:
            self._end(job)

    # ---------- firmware flash ----------

    def flash_binary_file(self, file_path, abort_signal: Optional[AbortSignal] = None):
        """Flash a whole firmware image in one esptool run.

        Unsupported families and missing images raise right away, before any
        job is registered.
        """
        flash_tool = self.family.flash_tool
        if flash_tool is None:
            raise UnsupportedOperationError(
                f"{self.family.name} does not support binary flashing"
            )

        file_path = Path(file_path)
        if not file_path.exists():
            raise FirmwareNotFoundError(f"File does not exist: {file_path}")

        job = self._begin(UploadJob(
            device_path=self.peripheral_path,
            files=[file_path],
            abort=abort_signal or AbortSignal(),
        ))
        return self._run_binary(job, flash_tool, file_path)

    async def _run_binary(self, job: UploadJob, flash_tool: TransferTool, file_path: Path) -> UploadStatus:
        try:
            self.log_func(f"Flashing binary file {file_path}...\n", LOG_INFO)
            outcome = await self._transfer(flash_tool, file_path, job)
            if outcome.status is UploadStatus.FAILED:
                raise TransferError(outcome.reason, outcome.artifact)
            if outcome.status is UploadStatus.ABORTED:
                return UploadStatus.ABORTED

            self.log_func("Success\n", LOG_SUCCESS)
            return UploadStatus.SUCCESS
        finally:
            self._end(job)

    def firmware_path(self) -> Path:
        firmware = self.config.get("firmware")
        if not firmware:
            raise FirmwareNotFoundError("No firmware configured")
        return self.firmware_dir / firmware

    def flash_firmware(self, abort_signal: Optional[AbortSignal] = None):
        """Flash the firmware image named in the device config."""
        return self.flash_binary_file(self.firmware_path(), abort_signal)
