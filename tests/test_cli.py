"""CLI parser and command tests."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from motifgen.cli import _build_parser, main
from tests._fixtures.sources import PYTHON_RESERVOIR, RUST_RESERVOIR, RUST_RESERVOIR_WITHOUT_LEARN


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "verify-ledger"])
    assert args.verbose is True
    assert args.command == "verify-ledger"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["verify-ledger", "--verbose"])
    assert args.verbose is True
    assert args.command == "verify-ledger"


def test_cli_accepts_state_dir_on_either_side(tmp_path: Path) -> None:
    parser = _build_parser()
    before = parser.parse_args(["--state-dir", str(tmp_path), "show", "abc"])
    after = parser.parse_args(["show", "abc", "--state-dir", str(tmp_path)])
    assert before.state_dir == after.state_dir == tmp_path
    assert parser.parse_args(["show", "abc"]).state_dir is None


def test_cli_define_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["define", "reservoir.py", "--pattern", "soma", "--name", "Cell", "--acceptance-bar", "0.5"]
    )
    assert args.command == "define"
    assert args.pattern == "soma"
    assert args.name == "Cell"
    assert args.acceptance_bar == 0.5


def test_cli_validate_requires_sources() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["validate", "abc"])
    args = parser.parse_args(["validate", "abc", "a.py", "rust=b.rs"])
    assert args.sources == ["a.py", "rust=b.rs"]


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "reservoir.py").write_text(PYTHON_RESERVOIR, encoding="utf-8")
    (tmp_path / "reservoir.rs").write_text(RUST_RESERVOIR, encoding="utf-8")
    (tmp_path / "partial.rs").write_text(RUST_RESERVOIR_WITHOUT_LEARN, encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _run(capsys: pytest.CaptureFixture[str], *argv: str):
    main(list(argv))
    return json.loads(capsys.readouterr().out)


def test_cli_define_then_validate(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = str(workspace / "state")

    definition = _run(capsys, "--state-dir", state, "define", "reservoir.py")
    assert definition["canonical_name"] == "Reservoir"
    assert definition["version"] == 1

    record = _run(capsys, "validate", definition["content_hash"], "reservoir.py", "rust=reservoir.rs", "--state-dir", state)
    assert record["verdict"] == "approved"

    shown = _run(capsys, "show", definition["content_hash"], "--versions", "--state-dir", state)
    assert [item["version"] for item in shown] == [1]

    assert _run(capsys, "verify-ledger", "--state-dir", state) == {"ledger_events": 6, "definitions": 1}


def test_cli_validate_reports_rejection(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = str(workspace / "state")
    definition = _run(capsys, "--state-dir", state, "define", "reservoir.py")

    record = _run(capsys, "--state-dir", state, "validate", definition["content_hash"], "reservoir.py", "partial.rs")

    assert record["verdict"] == "rejected"


def test_cli_discover_prints_patterns(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    discovered = _run(capsys, "--state-dir", str(workspace / "state"), "discover", "reservoir.py")

    assert discovered[0]["patterns"][0] == "reservoir_computing"


def test_cli_writes_log_file(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    log_file = workspace / "logs" / "motifgen.log"

    _run(capsys, "--log-file", str(log_file), "--state-dir", str(workspace / "state"), "define", "reservoir.py")

    assert "Committed definition Reservoir v1" in log_file.read_text(encoding="utf-8")


def test_cli_exits_non_zero_on_unknown_definition(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--state-dir", str(workspace / "state"), "show", "missing"])

    assert excinfo.value.code == 1
    assert "missing" in capsys.readouterr().err


def test_cli_exits_non_zero_for_unknown_extension(workspace: Path) -> None:
    (workspace / "notes.txt").write_text("hello", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["--state-dir", str(workspace / "state"), "extract", "notes.txt"])

    assert excinfo.value.code == 1


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("motifgen")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
