from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Union

from .config import DEFAULT_CHUNK_SIZE, Throttle, ThrottleLike
from .errors import ConfigurationError, RangeError
from .source import BandwidthInfo, FileSource, PathType


@dataclass(frozen=True)
class FileSizeEntry:
    index: int
    size: int
    total_size: int


@dataclass(frozen=True)
class MultiSizeInfo:
    total_files: int
    total_size: int
    average_size: int
    files: List[FileSizeEntry]


@dataclass(frozen=True)
class FileInfo:
    index: int
    filename: str
    content_type: str
    size: int
    total_size: int
    max_speed_mbps: float
    chunk_size: int


class MultiFileSource:
    """
    Ordered group of file sources uploaded under one ``name[]`` field.

    Paths are turned into :class:`FileSource` objects with the shared defaults;
    prebuilt sources are kept as they are.
    """

    def __init__(
        self,
        paths: Sequence[Union[PathType, FileSource]],
        *,
        content_type: Optional[str] = None,
        throttle: ThrottleLike = None,
        start: int = 0,
        length: int = -1,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if not paths:
            raise ConfigurationError("At least one file path must be provided")
        shared_throttle = Throttle.from_value(throttle)
        self._sources: List[FileSource] = []
        for path in paths:
            if isinstance(path, FileSource):
                self._sources.append(path)
                continue
            self._sources.append(
                FileSource(
                    path,
                    content_type=content_type,
                    throttle=shared_throttle,
                    start=start,
                    length=length,
                    chunk_size=chunk_size,
                )
            )

    @classmethod
    def with_bandwidth_limit(
        cls,
        paths: Sequence[Union[PathType, FileSource]],
        max_bytes_per_second: int,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        content_type: Optional[str] = None,
    ) -> "MultiFileSource":
        return cls(
            paths,
            content_type=content_type,
            throttle=Throttle.bandwidth_limit(max_bytes_per_second),
            chunk_size=chunk_size,
        )

    @property
    def count(self) -> int:
        return len(self._sources)

    @property
    def sources(self) -> List[FileSource]:
        return list(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[FileSource]:
        return iter(self._sources)

    def __getitem__(self, index: int) -> FileSource:
        return self.get(index)

    def get(self, index: int) -> FileSource:
        if not 0 <= index < len(self._sources):
            raise RangeError(f"File index {index} does not exist")
        return self._sources[index]

    def size_info(self) -> MultiSizeInfo:
        entries = []
        total = 0
        for index, source in enumerate(self._sources):
            info = source.size_info()
            entries.append(FileSizeEntry(index=index, size=info.readable, total_size=info.total))
            total += info.readable
        count = len(self._sources)
        return MultiSizeInfo(
            total_files=count,
            total_size=total,
            average_size=total // count if count else 0,
            files=entries,
        )

    def files_info(self) -> List[FileInfo]:
        infos = []
        for index, source in enumerate(self._sources):
            size = source.size_info()
            bandwidth = source.bandwidth_info()
            infos.append(
                FileInfo(
                    index=index,
                    filename=source.filename,
                    content_type=source.content_type,
                    size=size.readable,
                    total_size=size.total,
                    max_speed_mbps=bandwidth.max_speed_mbps,
                    chunk_size=bandwidth.chunk_size,
                )
            )
        return infos

    def filenames(self) -> List[str]:
        return [source.filename for source in self._sources]

    def bandwidth_info(self) -> BandwidthInfo:
        # Members built from paths share one configuration; report the first.
        return self._sources[0].bandwidth_info()


__all__ = ["FileInfo", "FileSizeEntry", "MultiFileSource", "MultiSizeInfo"]
