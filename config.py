"""
MicroPython Uploader - Configuration Module
Contains all configuration constants and settings.
"""

from pathlib import Path

# ================= WORKSPACE CONFIG =================
PROJECT_SUBDIR = Path("micropython") / "project"
CODE_FILENAME = "main.py"
FIRMWARE_SUBDIR = Path("..") / "firmwares" / "microPython"
DEVICE_CONFIG_FILE = Path("./device_config.json")

DEFAULT_DEVICE_CONFIG = {
    "firmware": "",
}

# ================= TOOL CONFIG =================
AMPY_PATH = "ampy"
ESPTOOL_PATH = "esptool.py"
ESPTOOL_MODULE = "esptool"

# ================= ESP32 FLASH CONFIG =================
ESP_CHIP = "esp32"
ESP_BAUD = 460800
ESP_BEFORE = "default_reset"
ESP_AFTER = "hard_reset"
ESP_FLASH_MODE = "dio"
ESP_FLASH_FREQ = "40m"
ESP_FLASH_SIZE = "detect"
ESP_FLASH_OFFSET = "0x1000"

# ================= UPLOAD CONFIG =================
ABORT_STATE_CHECK_INTERVAL = 0.1  # seconds
READ_CHUNK_SIZE = 4096

# ================= LOG CONFIG =================
LOG_INFO = "info"
LOG_SUCCESS = "success"
LOG_WARNING = "warning"
LOG_ERROR = "error"
