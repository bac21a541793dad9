"""
MicroPython Uploader - Utility Functions Module
Contains helper functions for workspace staging, device settings and console output.
"""

import json
import os
from pathlib import Path

from config import (
    CODE_FILENAME, DEVICE_CONFIG_FILE, DEFAULT_DEVICE_CONFIG,
    LOG_INFO, LOG_SUCCESS, LOG_WARNING, LOG_ERROR,
)
from flasher import StagingError


# ================= WORKSPACE STAGING =================

def list_library_files(libraries) -> list:
    """Immediate children of each library directory, in listing order."""
    files = []
    for lib in libraries:
        lib = Path(lib)
        if not lib.exists():
            continue
        for name in os.listdir(lib):
            files.append(lib / name)
    return files


def stage_project(project_path, code: str, libraries=()) -> list:
    """Write code to main.py in project_path and return the files to upload."""
    project_path = Path(project_path)
    code_file = project_path / CODE_FILENAME
    try:
        project_path.mkdir(parents=True, exist_ok=True)
        code_file.write_text(code, encoding="utf-8")
        return [code_file] + list_library_files(libraries)
    except OSError as e:
        raise StagingError(f"Failed to stage project in {project_path}: {e}") from e


# ================= DEVICE CONFIG MEMORY =================

class DeviceConfigMemory:
    """Manages persistent storage of per-device settings"""

    def __init__(self, path=DEVICE_CONFIG_FILE):
        self.path = Path(path)

    def load(self) -> dict:
        config = dict(DEFAULT_DEVICE_CONFIG)
        try:
            if self.path.exists():
                with open(self.path, 'r', encoding="utf-8") as f:
                    config.update(json.load(f) or {})
        except (OSError, ValueError) as e:
            print(f"Error loading device config: {e}")
        return config

    def save(self, config: dict):
        try:
            with open(self.path, 'w', encoding="utf-8") as f:
                json.dump(config, f, indent=2)
        except OSError as e:
            print(f"Error saving device config: {e}")

    def clear(self):
        try:
            if self.path.exists():
                self.path.unlink()
        except OSError as e:
            print(f"Error clearing device config: {e}")


# ================= CONSOLE OUTPUT =================

class Colors:
    """ANSI color codes for terminal output"""
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    GRAY = '\033[90m'
    RESET = '\033[0m'


COLOR_MAP = {
    LOG_INFO: "",
    LOG_SUCCESS: Colors.GREEN,
    LOG_WARNING: Colors.YELLOW,
    LOG_ERROR: Colors.RED,
}


def print_log(message: str, msg_type: str = LOG_INFO):
    """Log callback for running without a UI."""
    end = "" if message.endswith("\n") else "\n"
    color = COLOR_MAP.get(msg_type, "")
    if color:
        message = f"{color}{message}{Colors.RESET}"
    print(message, end=end, flush=True)
