"""
Flattening of nested form values into indexed field names.

``{"user": {"tags": ["a", "b"]}}`` becomes ``user[tags][0]=a`` and
``user[tags][1]=b``. The traversal is depth-first and keeps the order of every
mapping and sequence, so the produced part names and their count are fully
determined by the input. Empty containers and ``None`` leaves produce nothing.
Bytes leaves are kept as bytes; any leaf that is not a str, bytes, int, float
or bool is rejected.
"""

from typing import Any, Iterator, List, Mapping, Tuple, Union

from .errors import ConfigurationError

FormValue = Union[str, bytes]
FlatPair = Tuple[str, FormValue]


def stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    raise ConfigurationError(f"Cannot send {type(value).__name__} as text")


def form_value(name: str, value: Any) -> FormValue:
    """Text or raw bytes for one leaf; unsupported types fail with the field name."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, memoryview):
        return value.tobytes()
    if isinstance(value, (str, int, float)):
        return stringify(value)
    raise ConfigurationError(f"Unsupported value for field {name!r}: {type(value).__name__}")


def is_structured(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


def iter_flattened(name: str, value: Any) -> Iterator[FlatPair]:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield from iter_flattened(f"{name}[{stringify(key)}]", item)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from iter_flattened(f"{name}[{index}]", item)
    else:
        yield name, form_value(name, value)


def flatten(name: str, value: Any) -> List[FlatPair]:
    return list(iter_flattened(name, value))


__all__ = ["FlatPair", "FormValue", "flatten", "form_value", "is_structured", "iter_flattened", "stringify"]
