from pathlib import Path

import pytest


@pytest.fixture
def write_file(tmp_path: Path):
    def _write(text: str, name: str = "data.svm") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def example_file(write_file) -> Path:
    return write_file("+1 1:2.0 3:1.0\n-1 2:4.0\n")
