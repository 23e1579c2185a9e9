"""Linux GPIO character device UAPI (v1) definitions and binary layouts."""

from __future__ import annotations

import enum
import os
import struct
from dataclasses import dataclass, field
from typing import ClassVar

NAME_SIZE = 32
"""Size of the name, label and consumer strings in bytes."""

HANDLES_MAX = 64
"""Maximum number of lines that can be requested in a single request."""


def bytes_to_string(data: bytes) -> str:
    """Convert a NUL terminated (or unterminated) byte array to a string."""
    raw = bytes(data)
    end = raw.find(b"\x00")
    if end != -1:
        raw = raw[:end]
    return raw.decode("utf-8", "surrogateescape")


def _encode_name(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def _pack(layout: struct.Struct, *values) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ValueError(str(exc)) from exc


def _unpack(layout: struct.Struct, data: bytes, name: str) -> tuple:
    if len(data) != layout.size:
        raise ValueError(
            f"{name} requires {layout.size} bytes, got {len(data)}"
        )
    return layout.unpack(bytes(data))


def _padded(values: list[int], name: str) -> list[int]:
    if len(values) > HANDLES_MAX:
        raise ValueError(f"too many {name}: {len(values)} > {HANDLES_MAX}")
    return list(values) + [0] * (HANDLES_MAX - len(values))


class ChangeType(enum.IntEnum):
    """The type of change that has occurred to a line."""

    REQUESTED = 1
    RELEASED = 2
    CONFIG = 3


def _change_type(value: int) -> ChangeType | int:
    try:
        return ChangeType(value)
    except ValueError:
        return value


class LineFlag(enum.IntFlag):
    """Flags describing the state of a line."""

    USED = 1 << 0
    IS_OUT = 1 << 1
    ACTIVE_LOW = 1 << 2
    OPEN_DRAIN = 1 << 3
    OPEN_SOURCE = 1 << 4
    PULL_UP = 1 << 5
    PULL_DOWN = 1 << 6
    BIAS_DISABLED = 1 << 7

    def is_used(self) -> bool:
        """True if the line has been requested."""
        return bool(self & LineFlag.USED)

    def is_out(self) -> bool:
        """True if the line is an output."""
        return bool(self & LineFlag.IS_OUT)

    def is_active_low(self) -> bool:
        """True if the line is active low."""
        return bool(self & LineFlag.ACTIVE_LOW)

    def is_open_drain(self) -> bool:
        """True if the line is open drain."""
        return bool(self & LineFlag.OPEN_DRAIN)

    def is_open_source(self) -> bool:
        """True if the line is open source."""
        return bool(self & LineFlag.OPEN_SOURCE)

    def is_bias_disable(self) -> bool:
        """True if the line has bias disabled."""
        return bool(self & LineFlag.BIAS_DISABLED)

    def is_pull_down(self) -> bool:
        """True if the line has pull-down enabled."""
        return bool(self & LineFlag.PULL_DOWN)

    def is_pull_up(self) -> bool:
        """True if the line has pull-up enabled."""
        return bool(self & LineFlag.PULL_UP)


class HandleFlag(enum.IntFlag):
    """Flags applied to lines in a handle or event request."""

    INPUT = 1 << 0
    OUTPUT = 1 << 1
    ACTIVE_LOW = 1 << 2
    OPEN_DRAIN = 1 << 3
    OPEN_SOURCE = 1 << 4
    PULL_UP = 1 << 5
    PULL_DOWN = 1 << 6
    BIAS_DISABLE = 1 << 7

    def is_input(self) -> bool:
        """True if the line is requested as an input."""
        return bool(self & HandleFlag.INPUT)

    def is_output(self) -> bool:
        """True if the line is requested as an output."""
        return bool(self & HandleFlag.OUTPUT)

    def is_active_low(self) -> bool:
        """True if the line is requested as active low."""
        return bool(self & HandleFlag.ACTIVE_LOW)

    def is_open_drain(self) -> bool:
        """True if the line is requested as open drain."""
        return bool(self & HandleFlag.OPEN_DRAIN)

    def is_open_source(self) -> bool:
        """True if the line is requested as open source."""
        return bool(self & HandleFlag.OPEN_SOURCE)

    def has_bias_flag(self) -> bool:
        """True if any bias flag is set."""
        bias = HandleFlag.BIAS_DISABLE | HandleFlag.PULL_DOWN | HandleFlag.PULL_UP
        return bool(self & bias)

    def is_bias_disable(self) -> bool:
        """True if the line is requested with bias disabled."""
        return bool(self & HandleFlag.BIAS_DISABLE)

    def is_pull_down(self) -> bool:
        """True if the line is requested with pull-down enabled."""
        return bool(self & HandleFlag.PULL_DOWN)

    def is_pull_up(self) -> bool:
        """True if the line is requested with pull-up enabled."""
        return bool(self & HandleFlag.PULL_UP)


class EventFlag(enum.IntFlag):
    """The types of edge events to report."""

    RISING_EDGE = 1 << 0
    FALLING_EDGE = 1 << 1
    BOTH_EDGES = RISING_EDGE | FALLING_EDGE

    def is_rising_edge(self) -> bool:
        """True if rising edge events are requested."""
        return bool(self & EventFlag.RISING_EDGE)

    def is_falling_edge(self) -> bool:
        """True if falling edge events are requested."""
        return bool(self & EventFlag.FALLING_EDGE)

    def is_both_edges(self) -> bool:
        """True if both rising and falling edge events are requested."""
        return self & EventFlag.BOTH_EDGES == EventFlag.BOTH_EDGES


_CHIP_INFO = struct.Struct(f"={NAME_SIZE}s{NAME_SIZE}sI")
_LINE_INFO = struct.Struct(f"=II{NAME_SIZE}s{NAME_SIZE}s")
_LINE_INFO_CHANGED = struct.Struct(f"={_LINE_INFO.size}sQI5I")
_HANDLE_CONFIG = struct.Struct(f"=I{HANDLES_MAX}B4I")
_HANDLE_REQUEST = struct.Struct(f"={HANDLES_MAX}II{HANDLES_MAX}B{NAME_SIZE}sIi")
_EVENT_REQUEST = struct.Struct(f"=III{NAME_SIZE}si")


@dataclass
class ChipInfo:
    """Details of a GPIO chip."""

    name: str = ""
    label: str = ""
    lines: int = 0

    SIZE: ClassVar[int] = _CHIP_INFO.size

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        return _pack(
            _CHIP_INFO, _encode_name(self.name), _encode_name(self.label), self.lines
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> ChipInfo:
        """Decode from the kernel layout."""
        name, label, lines = _unpack(_CHIP_INFO, data, cls.__name__)
        return cls(bytes_to_string(name), bytes_to_string(label), lines)


@dataclass
class LineInfo:
    """Details of a single line of a GPIO chip."""

    offset: int = 0
    flags: LineFlag = LineFlag(0)
    name: str = ""
    consumer: str = ""

    SIZE: ClassVar[int] = _LINE_INFO.size

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        return _pack(
            _LINE_INFO,
            self.offset,
            int(self.flags),
            _encode_name(self.name),
            _encode_name(self.consumer),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> LineInfo:
        """Decode from the kernel layout."""
        offset, flags, name, consumer = _unpack(_LINE_INFO, data, cls.__name__)
        return cls(
            offset, LineFlag(flags), bytes_to_string(name), bytes_to_string(consumer)
        )


@dataclass
class LineInfoChanged:
    """A change to the info of a watched line."""

    info: LineInfo = field(default_factory=LineInfo)
    timestamp: int = 0
    type: ChangeType | int = 0

    SIZE: ClassVar[int] = _LINE_INFO_CHANGED.size

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        return _pack(
            _LINE_INFO_CHANGED,
            self.info.to_bytes(),
            self.timestamp,
            int(self.type),
            0, 0, 0, 0, 0,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> LineInfoChanged:
        """Decode from the kernel layout."""
        info, timestamp, change, *_ = _unpack(_LINE_INFO_CHANGED, data, cls.__name__)
        return cls(LineInfo.from_bytes(info), timestamp, _change_type(change))


@dataclass
class HandleConfig:
    """A request to change the config of an existing request."""

    flags: HandleFlag = HandleFlag(0)
    default_values: list[int] = field(default_factory=list)

    SIZE: ClassVar[int] = _HANDLE_CONFIG.size

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        values = _padded(self.default_values, "default values")
        return _pack(_HANDLE_CONFIG, int(self.flags), *values, 0, 0, 0, 0)

    @classmethod
    def from_bytes(cls, data: bytes) -> HandleConfig:
        """Decode from the kernel layout; all slots of default values are kept."""
        fields = _unpack(_HANDLE_CONFIG, data, cls.__name__)
        return cls(HandleFlag(fields[0]), list(fields[1 : 1 + HANDLES_MAX]))


@dataclass
class HandleRequest:
    """A request for control of a set of lines on one chip."""

    offsets: list[int] = field(default_factory=list)
    flags: HandleFlag = HandleFlag(0)
    default_values: list[int] = field(default_factory=list)
    consumer: str = ""
    fd: int = 0

    SIZE: ClassVar[int] = _HANDLE_REQUEST.size

    @property
    def lines(self) -> int:
        """The number of lines being requested."""
        return len(self.offsets)

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        return _pack(
            _HANDLE_REQUEST,
            *_padded(self.offsets, "offsets"),
            int(self.flags),
            *_padded(self.default_values, "default values"),
            _encode_name(self.consumer),
            self.lines,
            self.fd,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> HandleRequest:
        """Decode from the kernel layout."""
        fields = _unpack(_HANDLE_REQUEST, data, cls.__name__)
        offsets = fields[:HANDLES_MAX]
        flags = fields[HANDLES_MAX]
        defaults = fields[HANDLES_MAX + 1 : 2 * HANDLES_MAX + 1]
        consumer, lines, fd = fields[2 * HANDLES_MAX + 1 :]
        if lines > HANDLES_MAX:
            raise ValueError(f"line count {lines} exceeds {HANDLES_MAX}")
        return cls(
            list(offsets[:lines]),
            HandleFlag(flags),
            list(defaults[:lines]),
            bytes_to_string(consumer),
            fd,
        )


@dataclass
class EventRequest:
    """A request for control of a line with event reporting enabled."""

    offset: int = 0
    handle_flags: HandleFlag = HandleFlag(0)
    event_flags: EventFlag = EventFlag(0)
    consumer: str = ""
    fd: int = 0

    SIZE: ClassVar[int] = _EVENT_REQUEST.size

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        return _pack(
            _EVENT_REQUEST,
            self.offset,
            int(self.handle_flags),
            int(self.event_flags),
            _encode_name(self.consumer),
            self.fd,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> EventRequest:
        """Decode from the kernel layout."""
        offset, hflags, eflags, consumer, fd = _unpack(
            _EVENT_REQUEST, data, cls.__name__
        )
        return cls(
            offset,
            HandleFlag(hflags),
            EventFlag(eflags),
            bytes_to_string(consumer),
            fd,
        )


def read_line_info_changed(fd: int) -> LineInfoChanged:
    """Read one line info changed event from an open chip file descriptor.

    Blocks until data is available; raises EOFError on a short read.
    """
    data = os.read(fd, LineInfoChanged.SIZE)
    if len(data) != LineInfoChanged.SIZE:
        raise EOFError(
            f"short read: {len(data)} of {LineInfoChanged.SIZE} bytes"
        )
    return LineInfoChanged.from_bytes(data)