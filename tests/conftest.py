from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest
from loguru import logger


@pytest.fixture()
def log_events() -> Iterable[list[dict[str, Any]]]:
    """Collect the bound `extra` of every loguru record emitted during the test."""
    records: list[dict[str, Any]] = []
    handler_id = logger.add(lambda message: records.append(dict(message.record["extra"])), level="DEBUG")
    yield records
    logger.remove(handler_id)


@pytest.fixture()
def make_script(tmp_path: Path) -> Callable[..., Path]:
    """Write a /bin/sh script under tmp_path/scripts and return its path."""
    root = tmp_path / "scripts"
    root.mkdir(exist_ok=True)

    def _make(name: str, body: str, *, executable: bool = True) -> Path:
        path = root / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        mode = stat.S_IRUSR | stat.S_IWUSR
        if executable:
            mode |= stat.S_IXUSR
        os.chmod(path, mode)
        return path

    return _make


@pytest.fixture()
def script_root(tmp_path: Path) -> Path:
    root = tmp_path / "scripts"
    root.mkdir(exist_ok=True)
    return root
