import builtins

import pytest

from fastform import source as source_module


class OpenTracker:
    """Records every file handle the sources open."""

    def __init__(self) -> None:
        self.handles = []

    def __call__(self, *args, **kwargs):
        handle = builtins.open(*args, **kwargs)
        self.handles.append(handle)
        return handle

    @property
    def open_count(self) -> int:
        return sum(1 for handle in self.handles if not handle.closed)


@pytest.fixture
def open_tracker(monkeypatch):
    tracker = OpenTracker()
    monkeypatch.setattr(source_module, "open", tracker, raising=False)
    return tracker


@pytest.fixture
def make_file(tmp_path):
    def _make(name: str, data: bytes) -> str:
        path = tmp_path / name
        path.write_bytes(data)
        return str(path)

    return _make
