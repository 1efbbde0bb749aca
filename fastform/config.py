from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .errors import ConfigurationError

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB

DEFAULT_CHUNK_SIZE = 1 * MIB
DEFAULT_BURST_CAPACITY = 1 * GIB
DEFAULT_SUSTAINED_RATE = 1 * GIB
# Seconds of sustained transfer allowed as a burst by bandwidth_limit().
BURST_SECONDS = 2

Rate = Union[int, float]
ThrottleLike = Union["Throttle", int, float, Tuple[Rate, Rate], None]


@dataclass(frozen=True)
class Throttle:
    """
    Token bucket settings for a file stream.

    ``burst_capacity`` is the bucket size in bytes, ``sustained_rate`` the refill
    rate in bytes per second. A sustained rate of zero never refills, so a
    stream longer than the burst will not complete. Fractional values are kept
    as given.
    """

    burst_capacity: Rate = DEFAULT_BURST_CAPACITY
    sustained_rate: Rate = DEFAULT_SUSTAINED_RATE

    def __post_init__(self) -> None:
        if self.burst_capacity < 0:
            raise ConfigurationError("Burst capacity must be non-negative")
        if self.sustained_rate < 0:
            raise ConfigurationError("Sustained rate must be non-negative")

    @classmethod
    def from_value(cls, value: ThrottleLike) -> "Throttle":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls()
        if isinstance(value, tuple):
            if len(value) != 2:
                raise ConfigurationError("throttle tuples must be (burst_capacity, sustained_rate)")
            burst, rate = value
            if not all(_is_number(v) for v in value):
                raise ConfigurationError(f"Unsupported throttle value: {value!r}")
            return cls(burst_capacity=burst, sustained_rate=rate)
        if not _is_number(value):
            raise ConfigurationError(f"Unsupported throttle value: {value!r}")
        return cls.bandwidth_limit(value)

    @classmethod
    def bandwidth_limit(cls, max_bytes_per_second: Rate) -> "Throttle":
        return cls(
            burst_capacity=max_bytes_per_second * BURST_SECONDS,
            sustained_rate=max_bytes_per_second,
        )

    @property
    def max_speed_mbps(self) -> float:
        return round(self.sustained_rate / MIB, 2)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class Timeout:
    total: Optional[float] = None
    connect: Optional[float] = None
    read: Optional[float] = None
    write: Optional[float] = None

    @classmethod
    def from_value(cls, value: Union["Timeout", float, int, None]) -> "Timeout":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls()
        float_value = float(value)
        return cls(
            total=float_value,
            connect=float_value,
            read=float_value,
            write=float_value,
        )
