"""Tests for the import_track command-line script."""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path

import pytest

from sailtrace.tracks.storage import TrackStorage

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "import_track.py"


@pytest.fixture
def import_track():
    spec = importlib.util.spec_from_file_location("import_track", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "fixes.csv"
    path.write_text(
        "latitude,longitude,accuracy,captured_at\n"
        "50.0,-1.0,3.0,1700000000\n"
        "50.0001,-1.0,,1700000001\n"
        ",,,1700000002\n",
        encoding="utf-8",
    )
    return str(path)


def run(module, monkeypatch, *args: str) -> None:
    monkeypatch.setattr(sys, "argv", ["import_track.py", *args])
    module.main()


def test_imports_fixes(import_track, monkeypatch, capsys, tmp_path, csv_path):
    db = str(tmp_path / "tracks.db")
    run(import_track, monkeypatch, "--db", db, "--csv", csv_path, "--name", "GBR 42")

    assert "3 fixes imported" in capsys.readouterr().out
    storage = TrackStorage(db)
    try:
        assert storage.count_points(1) == 3
        assert storage.get_track(1)["name"] == "GBR 42"
    finally:
        storage.close()


def test_unopenable_database_exits_cleanly(import_track, monkeypatch, capsys, tmp_path, csv_path):
    db = str(tmp_path / "missing-dir" / "tracks.db")
    with pytest.raises(SystemExit) as info:
        run(import_track, monkeypatch, "--db", db, "--csv", csv_path)

    assert info.value.code == 1
    assert "[!] cannot open" in capsys.readouterr().err


def test_missing_column_exits_cleanly(import_track, monkeypatch, capsys, tmp_path):
    bad = tmp_path / "bad.csv"
    bad.write_text("latitude,longitude\n50.0,-1.0\n", encoding="utf-8")
    with pytest.raises(SystemExit) as info:
        run(import_track, monkeypatch, "--db", str(tmp_path / "t.db"), "--csv", str(bad))

    assert info.value.code == 1
    assert "missing columns" in capsys.readouterr().err
