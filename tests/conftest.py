from __future__ import annotations

from pathlib import Path

import pytest

from motifgen.config import MotifConfig
from motifgen.engine import MotifEngine
from motifgen.models import SourceUnit
from tests._fixtures.sources import PYTHON_RESERVOIR, RUST_RESERVOIR


@pytest.fixture
def engine(tmp_path: Path) -> MotifEngine:
    """Provide an engine whose state lives under the pytest tmp_path."""
    return MotifEngine(MotifConfig(root=tmp_path, state_dir=tmp_path / "state"))


@pytest.fixture
def python_unit() -> SourceUnit:
    return SourceUnit(language="python", text=PYTHON_RESERVOIR, origin="reservoir.py")


@pytest.fixture
def rust_unit() -> SourceUnit:
    return SourceUnit(language="rust", text=RUST_RESERVOIR, origin="reservoir.rs")
