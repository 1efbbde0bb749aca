from dataclasses import dataclass
from typing import Optional, Union

from .flatten import FormValue
from .multi import MultiFileSource
from .source import FileSource


@dataclass(frozen=True)
class TextField:
    """A plain value part, with optional header overrides. Bytes values are sent as is."""

    value: FormValue
    content_length: Optional[int] = None
    content_type: Optional[str] = None
    filename: Optional[str] = None

    def body(self) -> bytes:
        if isinstance(self.value, bytes):
            return self.value
        return self.value.encode("utf-8")


@dataclass(frozen=True)
class FileField:
    source: FileSource


@dataclass(frozen=True)
class MultiFileField:
    sources: MultiFileSource


Field = Union[TextField, FileField, MultiFileField]

__all__ = ["Field", "FileField", "MultiFileField", "TextField"]
