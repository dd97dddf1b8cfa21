from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.crate_builder import CrateBuilder


@pytest.fixture
def crate_builder(tmp_path: Path) -> CrateBuilder:
    """Provide a reusable crate builder rooted at the pytest tmp_path."""
    return CrateBuilder(tmp_path)
