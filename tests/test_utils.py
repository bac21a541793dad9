import os

import pytest

from flasher import StagingError
from utils import DeviceConfigMemory, list_library_files, print_log, stage_project


def make_lib(root, name, files):
    lib = root / name
    lib.mkdir()
    for f in files:
        (lib / f).write_text(f"# {f}\n")
    return lib


def test_stage_creates_project_and_writes_code(tmp_path):
    project = tmp_path / "micropython" / "project"
    files = stage_project(project, "print(1)")

    assert files == [project / "main.py"]
    assert (project / "main.py").read_text(encoding="utf-8") == "print(1)"


def test_stage_overwrites_previous_code(tmp_path):
    stage_project(tmp_path, "print(1)")
    stage_project(tmp_path, "print(2)")
    assert (tmp_path / "main.py").read_text(encoding="utf-8") == "print(2)"


def test_library_files_follow_main_in_listing_order(tmp_path):
    lib_a = make_lib(tmp_path, "lib_a", ["ssd1306.py", "font.py"])
    lib_b = make_lib(tmp_path, "lib_b", ["dht.py"])
    project = tmp_path / "project"

    files = stage_project(project, "", [lib_a, str(lib_b)])

    expected = [project / "main.py"]
    expected += [lib_a / n for n in os.listdir(lib_a)]
    expected += [lib_b / n for n in os.listdir(lib_b)]
    assert files == expected


def test_missing_library_dirs_are_skipped(tmp_path):
    lib = make_lib(tmp_path, "lib", ["a.py"])
    files = list_library_files([tmp_path / "nope", lib, tmp_path / "also_nope"])
    assert files == [lib / "a.py"]


def test_library_entries_are_not_filtered(tmp_path):
    lib = make_lib(tmp_path, "lib", ["data.bin", "README"])
    assert sorted(p.name for p in list_library_files([lib])) == ["README", "data.bin"]


def test_stage_failure_raises_staging_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    with pytest.raises(StagingError):
        stage_project(blocker / "project", "print(1)")


def test_device_config_defaults_when_missing(tmp_path):
    memory = DeviceConfigMemory(tmp_path / "device_config.json")
    assert memory.load() == {"firmware": ""}


def test_device_config_round_trip(tmp_path):
    memory = DeviceConfigMemory(tmp_path / "device_config.json")
    memory.save({"firmware": "esp32-20240105-v1.22.1.bin"})
    assert memory.load()["firmware"] == "esp32-20240105-v1.22.1.bin"

    memory.clear()
    assert not memory.path.exists()


def test_device_config_ignores_broken_file(tmp_path, capsys):
    path = tmp_path / "device_config.json"
    path.write_text("{not json")
    assert DeviceConfigMemory(path).load() == {"firmware": ""}
    assert "Error loading device config" in capsys.readouterr().out


def test_print_log_colors_by_type(capsys):
    print_log("Writing files...\n")
    print_log("Success\n", "success")
    print_log("boom", "error")
    out = capsys.readouterr().out
    assert out.startswith("Writing files...\n")
    assert "\033[92mSuccess\n\033[0m" in out
    assert out.endswith("\033[91mboom\033[0m\n")
