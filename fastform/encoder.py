import enum
import logging
import re
import secrets
from contextlib import asynccontextmanager
from pathlib import PurePath
from types import MappingProxyType
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .config import DEFAULT_CHUNK_SIZE, ThrottleLike
from .errors import BoundaryGenerationError, ConfigurationError, StreamConsumedError
from .fields import Field, FileField, MultiFileField, TextField
from .flatten import flatten, form_value, is_structured
from .logging import get_logger
from .multi import MultiFileSource
from .source import FileSource, PathType

FieldsType = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]
RandomSource = Callable[[int], bytes]

_BOUNDARY_BYTES = 16
# RFC 2046 bchars, without the space that may not end a boundary.
_BOUNDARY_RE = re.compile(r"^[0-9A-Za-z'()+_,\-./:=?]{1,70}$")
_CRLF = b"\r\n"


class EncoderState(enum.Enum):
    NOT_STARTED = "not_started"
    EMITTING_FIELD = "emitting_field"
    EMITTING_FILE = "emitting_file"
    FINISHED = "finished"
    FAILED = "failed"
    ABANDONED = "abandoned"


class MultipartEncoder:
    """
    Single-shot, stream-friendly multipart/form-data encoder.

    Fields keep their insertion order. Nested mappings and lists are flattened to
    indexed names when they are added, files are validated when they are added,
    and nothing is read until the body is pulled through :meth:`iter_bytes`.
    The body is produced strictly one part at a time: a file part's throttled
    read finishes before the next part is touched.

    Example:
        form = MultipartEncoder({"name": "John", "tags": ["a", "b"]})
        form.add_file("avatar", "avatar.png", throttle=Throttle.bandwidth_limit(512 * 1024))
        async with AsyncClient() as client:
            resp = await client.post_form_data("https://example.com/upload", form)
    """

    def __init__(
        self,
        fields: Optional[FieldsType] = None,
        *,
        boundary: Optional[str] = None,
        random_source: Optional[RandomSource] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if boundary is None:
            boundary = self._generate_boundary(random_source or secrets.token_bytes)
        elif not _BOUNDARY_RE.match(boundary):
            raise ConfigurationError(f"Invalid multipart boundary: {boundary!r}")
        self._boundary = boundary
        self._boundary_line = f"--{boundary}\r\n".encode("ascii")
        self._closing_boundary = f"--{boundary}--\r\n".encode("ascii")
        self.logger = logger or get_logger("encoder")
        self._fields: Dict[str, Field] = {}
        self._state = EncoderState.NOT_STARTED
        self._started = False
        for name, value in self._iter_items(fields):
            self.add(name, value)

    @property
    def boundary(self) -> str:
        return self._boundary

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self._boundary}"

    @property
    def fields(self) -> Mapping[str, Field]:
        return MappingProxyType(self._fields)

    @property
    def state(self) -> EncoderState:
        return self._state

    def __len__(self) -> int:
        return len(self._fields)

    def headers(self) -> Dict[str, str]:
        return {"Content-Type": self.content_type}

    def add(self, name: str, value: Any) -> None:
        """Add a value of any supported kind, resolving it to its field type once."""
        self._check_mutable()
        field_name = self._check_name(name)
        for key, field in self._resolve(field_name, value):
            self._fields[key] = field

    def add_field(
        self,
        name: str,
        value: Any,
        *,
        content_length: Optional[int] = None,
        content_type: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> None:
        self._check_mutable()
        field_name = self._check_name(name)
        if is_structured(value):
            for key, text in flatten(field_name, value):
                self._fields[key] = TextField(text)
            return
        if content_length is not None and content_length < 0:
            raise ConfigurationError("Content length must be non-negative")
        self._fields[field_name] = TextField(
            "" if value is None else form_value(field_name, value),
            content_length=content_length,
            content_type=content_type,
            filename=filename,
        )

    def add_file(
        self,
        name: str,
        path: PathType,
        *,
        content_type: Optional[str] = None,
        filename: Optional[str] = None,
        throttle: ThrottleLike = None,
        start: int = 0,
        length: int = -1,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> FileSource:
        self._check_mutable()
        field_name = self._check_name(name)
        source = FileSource(
            path,
            filename=filename,
            content_type=content_type,
            throttle=throttle,
            start=start,
            length=length,
            chunk_size=chunk_size,
        )
        self._fields[field_name] = FileField(source)
        return source

    def add_multi_file(
        self,
        name: str,
        paths: Sequence[Union[PathType, FileSource]],
        *,
        content_type: Optional[str] = None,
        throttle: ThrottleLike = None,
        start: int = 0,
        length: int = -1,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> MultiFileSource:
        self._check_mutable()
        field_name = self._check_name(name)
        sources = MultiFileSource(
            paths,
            content_type=content_type,
            throttle=throttle,
            start=start,
            length=length,
            chunk_size=chunk_size,
        )
        self._fields[field_name] = MultiFileField(sources)
        return sources

    def content_length(self) -> int:
        """Exact size of the body, computed from the framing and each file's readable size."""
        total = len(self._closing_boundary)
        for name, field in self._fields.items():
            if isinstance(field, TextField):
                total += len(self._render_text_part(name, field))
                continue
            for part_name, source in self._iter_file_parts(name, field):
                total += len(self._render_file_head(part_name, source))
                total += source.size_info().readable + len(_CRLF)
        return total

    def iter_bytes(self) -> AsyncIterator[bytes]:
        if self._started:
            raise StreamConsumedError("Multipart body stream can only be consumed once")
        self._started = True

        async def generator() -> AsyncIterator[bytes]:
            parts = 0
            try:
                for name, field in self._fields.items():
                    if isinstance(field, TextField):
                        self._state = EncoderState.EMITTING_FIELD
                        self.logger.debug("Encoding field %r", name)
                        parts += 1
                        yield self._render_text_part(name, field)
                        continue
                    for part_name, source in self._iter_file_parts(name, field):
                        self._state = EncoderState.EMITTING_FILE
                        self.logger.debug("Encoding file %r from %s", part_name, source.path)
                        parts += 1
                        yield self._render_file_head(part_name, source)
                        async with _aclosing(source.open_stream()) as stream:
                            async for chunk in stream:
                                if chunk:
                                    yield chunk
                        yield _CRLF
                self._state = EncoderState.FINISHED
                self.logger.info("Multipart body with %d parts finished", parts)
                yield self._closing_boundary
            except GeneratorExit:
                if self._state is not EncoderState.FINISHED:
                    self._state = EncoderState.ABANDONED
                    self.logger.debug("Multipart body abandoned after %d parts", parts)
                raise
            except BaseException:
                self._state = EncoderState.FAILED
                raise

        return generator()

    def _render_text_part(self, name: str, field: TextField) -> bytes:
        disposition = f'Content-Disposition: form-data; name="{name}"'
        if field.filename is not None:
            disposition += f'; filename="{field.filename}"'
        headers = disposition + "\r\n"
        if field.content_type is not None:
            headers += f"Content-Type: {field.content_type}\r\n"
        if field.content_length is not None:
            headers += f"Content-Length: {field.content_length}\r\n"
        headers += "\r\n"
        return self._boundary_line + headers.encode("utf-8") + field.body() + _CRLF

    def _render_file_head(self, name: str, source: FileSource) -> bytes:
        disposition = f'Content-Disposition: form-data; name="{name}"'.encode("utf-8")
        return self._boundary_line + disposition + source.header_bytes()

    @staticmethod
    def _iter_file_parts(
        name: str, field: Union[FileField, MultiFileField]
    ) -> Iterator[Tuple[str, FileSource]]:
        if isinstance(field, FileField):
            yield name, field.source
            return
        for source in field.sources:
            yield f"{name}[]", source

    def _resolve(self, name: str, value: Any) -> List[Tuple[str, Field]]:
        if isinstance(value, (TextField, FileField, MultiFileField)):
            return [(name, value)]
        if isinstance(value, FileSource):
            return [(name, FileField(value))]
        if isinstance(value, MultiFileSource):
            return [(name, MultiFileField(value))]
        if isinstance(value, PurePath):
            return [(name, FileField(FileSource(value)))]
        if value is None:
            return []
        if is_structured(value):
            return [(key, TextField(text)) for key, text in flatten(name, value)]
        return [(name, TextField(form_value(name, value)))]

    def _check_mutable(self) -> None:
        if self._started:
            raise StreamConsumedError("Cannot modify fields after the body stream has started")

    @staticmethod
    def _check_name(name: Any) -> str:
        if not isinstance(name, str):
            name = str(name)
        if not name:
            raise ConfigurationError("Field name must be a non-empty string")
        return name

    @staticmethod
    def _iter_items(fields: Optional[FieldsType]) -> Iterator[Tuple[Any, Any]]:
        if not fields:
            return iter(())
        if isinstance(fields, Mapping):
            return iter(fields.items())
        return iter(fields)

    @staticmethod
    def _generate_boundary(random_source: RandomSource) -> str:
        try:
            raw = random_source(_BOUNDARY_BYTES)
        except Exception as exc:
            raise BoundaryGenerationError("Failed to obtain random boundary") from exc
        if len(raw) != _BOUNDARY_BYTES:
            raise BoundaryGenerationError(
                f"Random source returned {len(raw)} bytes, expected {_BOUNDARY_BYTES}"
            )
        return bytes(raw).hex()


@asynccontextmanager
async def _aclosing(stream: AsyncIterator[bytes]) -> AsyncIterator[AsyncIterator[bytes]]:
    try:
        yield stream
    finally:
        await stream.aclose()  # type: ignore[attr-defined]


__all__ = ["EncoderState", "FieldsType", "MultipartEncoder", "RandomSource"]
