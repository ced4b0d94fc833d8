from __future__ import annotations

from pathlib import Path

import pytest

from scrummer.storage.backend import JsonFileBackend, MemoryBackend, PersistenceError

pytestmark = pytest.mark.unit


def test_memory_backend_read_write_delete() -> None:
    backend = MemoryBackend({"existing": "1"})

    backend.write("fresh", '"value"')

    assert backend.read("existing") == "1"
    assert backend.read("fresh") == '"value"'
    assert backend.keys() == ["existing", "fresh"]

    backend.delete("fresh")
    backend.delete("never-written")

    assert backend.read("fresh") is None
    assert backend.keys() == ["existing"]


def test_json_file_backend_round_trips_values(tmp_path: Path) -> None:
    state_dir = tmp_path / "state"
    backend = JsonFileBackend(state_dir)

    backend.write("scrummer_setup_v1", '{"sprintDays": 10}')

    assert backend.read("scrummer_setup_v1") == '{"sprintDays": 10}'
    assert (state_dir / "scrummer_setup_v1.json").exists()
    assert not (state_dir / "scrummer_setup_v1.json.tmp").exists()


def test_json_file_backend_missing_key_reads_none(tmp_path: Path) -> None:
    backend = JsonFileBackend(tmp_path)

    assert backend.read("missing") is None
    backend.delete("missing")


def test_json_file_backend_sanitizes_keys(tmp_path: Path) -> None:
    backend = JsonFileBackend(tmp_path)

    assert backend.path_for("../team a/history") == tmp_path / ".._team_a_history.json"


def test_json_file_backend_overwrites_previous_value(tmp_path: Path) -> None:
    backend = JsonFileBackend(tmp_path)

    backend.write("key", "[1]")
    backend.write("key", "[1, 2]")

    assert backend.read("key") == "[1, 2]"


def test_json_file_backend_wraps_read_errors(tmp_path: Path) -> None:
    backend = JsonFileBackend(tmp_path)
    backend.path_for("history").mkdir()

    with pytest.raises(PersistenceError, match="Could not read record 'history'"):
        backend.read("history")


def test_json_file_backend_wraps_write_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")
    backend = JsonFileBackend(blocker / "state")

    with pytest.raises(PersistenceError, match="Could not write record 'history'"):
        backend.write("history", "[]")
