from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from next_to_start.context import RunContext
from tests.env_helpers import CODEMOD_ENV_KEYS, isolated_environ


@pytest.fixture(autouse=True)
def _clear_codemod_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in CODEMOD_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def run_context() -> RunContext:
    return RunContext(environ=isolated_environ())


@pytest.fixture
def write_tree(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    def _write(files: dict[str, str]) -> Path:
        for relative, text in files.items():
            path = tmp_path / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return tmp_path

    return _write
