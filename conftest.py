"""Shared pytest fixtures."""

# pylint: disable=missing-function-docstring

from pathlib import Path
from typing import Callable, Union

import pytest

from logsift.core.config import Config


@pytest.fixture(autouse=True)
def fresh_config():
    """Give every test its own configuration instance."""
    Config.reset()
    yield
    Config.reset()


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, Union[str, bytes]], Path]:
    """Create a file under tmp_path from text or bytes."""

    def _write(name: str, content: Union[str, bytes]) -> Path:
        path = tmp_path / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    return _write
