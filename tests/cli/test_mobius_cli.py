from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import pytest

from mobius_tree.cli.mobius_cli import DB_ENV, main

SRC = Path(__file__).resolve().parents[2] / "src"


def _run(capsys: pytest.CaptureFixture, *argv: str) -> tuple:
    code = main(list(argv))
    captured = capsys.readouterr()
    return code, captured.out, captured.err


@pytest.fixture()
def db(tmp_path: Path) -> Path:
    return tmp_path / "family.db"


def _family(capsys: pytest.CaptureFixture, db: Path) -> None:
    assert _run(capsys, "--db", str(db), "add", "Larry", "--index", "1")[0] == 0
    assert _run(capsys, "--db", str(db), "add", "John", "--parent", "1")[0] == 0
    assert _run(capsys, "--db", str(db), "add", "NoOne", "--parent", "2")[0] == 0


def test_add_and_show(capsys: pytest.CaptureFixture, db: Path) -> None:
    code, out, _ = _run(capsys, "--db", str(db), "add", "Larry", "--index", "1", "--data", '{"age": 50}')
    assert code == 0
    assert "[1] Larry" in out
    assert "(1x + 1) / (1x + 0)" in out
    _run(capsys, "--db", str(db), "add", "John", "--parent", "1")
    _run(capsys, "--db", str(db), "add", "NoOne", "--parent", "2")

    code, out, _ = _run(capsys, "--db", str(db), "show", "3")
    assert code == 0
    assert "matrix:    (7x + 3) / (5x + 2)" in out
    assert "path:      2.2" in out
    assert "depth:     3" in out
    assert "parent:    2" in out

    _, out, _ = _run(capsys, "--db", str(db), "show", "1")
    assert '"age": 50' in out


def test_tree_and_listings(capsys: pytest.CaptureFixture, db: Path) -> None:
    _family(capsys, db)
    _, out, _ = _run(capsys, "--db", str(db), "tree")
    assert out.splitlines() == ["Larry [1]", "  John [2]", "    NoOne [3]"]
    _, out, _ = _run(capsys, "--db", str(db), "ancestors", "3")
    lines = out.splitlines()
    assert "John" in lines[0] and "Larry" in lines[1]
    _, out, _ = _run(capsys, "--db", str(db), "descendants", "1", "--leaves")
    assert len(out.splitlines()) == 1 and "NoOne" in out


def test_move(capsys: pytest.CaptureFixture, db: Path) -> None:
    _family(capsys, db)
    _run(capsys, "--db", str(db), "add", "Other")
    code, out, _ = _run(capsys, "--db", str(db), "move", "2", "--parent", "4")
    assert code == 0
    _, out, _ = _run(capsys, "--db", str(db), "tree")
    assert out.splitlines() == ["Larry [1]", "Other [4]", "  John [2]", "    NoOne [3]"]
    code, _, err = _run(capsys, "--db", str(db), "move", "4", "--parent", "3")
    assert code == 1
    assert err.startswith("mobius-tree: Cannot move node 4")
    code, _, err = _run(capsys, "--db", str(db), "move", "2")
    assert code == 1
    assert "--root" in err


def test_errors_are_reported(capsys: pytest.CaptureFixture, db: Path) -> None:
    code, _, err = _run(capsys, "--db", str(db), "show", "99")
    assert code == 1
    assert err.strip() == "mobius-tree: Node 99 does not exist"
    code, _, err = _run(capsys, "--db", str(db), "add", "x", "--data", "[1]")
    assert code == 1
    assert "JSON object" in err


def test_export_and_import(capsys: pytest.CaptureFixture, db: Path, tmp_path: Path) -> None:
    _family(capsys, db)
    snapshot = tmp_path / "family.msgpack"
    code, out, _ = _run(capsys, "--db", str(db), "export", str(snapshot))
    assert code == 0 and "Exported 3 nodes" in out
    copy = tmp_path / "copy.db"
    code, _, _ = _run(capsys, "--db", str(copy), "import", str(snapshot))
    assert code == 0
    _, out, _ = _run(capsys, "--db", str(copy), "tree")
    assert out.splitlines() == ["Larry [1]", "  John [2]", "    NoOne [3]"]


def test_database_from_environment(
    capsys: pytest.CaptureFixture, db: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(DB_ENV, str(db))
    assert _run(capsys, "add", "root")[0] == 0
    assert db.exists()
    _, out, _ = _run(capsys, "tree")
    assert out.splitlines() == ["root [1]"]


def test_precision_report(capsys: pytest.CaptureFixture) -> None:
    code, out, _ = _run(capsys, "precision", "--slot", "2", "--slot", "3")
    assert code == 0
    lines = out.splitlines()
    assert lines[0].split() == ["slot", "double", "float"]
    assert lines[1].split()[0] == "2"
    assert lines[2].split()[0] == "3"


def test_module_entry_point(tmp_path: Path) -> None:
    db = tmp_path / "cli.db"
    env = dict(os.environ)
    env["PYTHONPATH"] = str(SRC)
    env.pop(DB_ENV, None)
    script = [sys.executable, "-m", "mobius_tree.cli.mobius_cli", "--db", str(db)]
    subprocess.run(script + ["add", "root"], capture_output=True, text=True, env=env, check=True)
    proc = subprocess.run(script + ["show", "1"], capture_output=True, text=True, env=env, check=True)
    assert "label:     root" in proc.stdout
    proc = subprocess.run(script + ["show", "7"], capture_output=True, text=True, env=env)
    assert proc.returncode == 1
    assert "mobius-tree: Node 7 does not exist" in proc.stderr
