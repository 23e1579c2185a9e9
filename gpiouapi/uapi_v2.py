"""Linux GPIO character device UAPI (v2) definitions and binary layouts."""

from __future__ import annotations

import enum
import os
import struct
from dataclasses import dataclass, field
from typing import ClassVar, Iterator

from .uapi import NAME_SIZE, ChangeType, bytes_to_string

LINES_MAX = 64
"""Maximum number of lines that can be requested in a single request."""

ATTRIBUTES_MAX = 10
"""Maximum number of attributes in a line config or line info."""

_MASK64 = (1 << 64) - 1

_LINE_CONFIG_PAD_SIZE = 5
_LINE_REQUEST_PAD_SIZE = 5
_LINE_EVENT_PAD_SIZE = 6
_LINE_INFO_V2_PAD_SIZE = 4
_LINE_INFO_CHANGED_V2_PAD_SIZE = 5


def _encode_name(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def _pack(layout: struct.Struct, *values) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ValueError(str(exc)) from exc


def _unpack(layout: struct.Struct, data: bytes, name: str) -> tuple:
    if len(data) != layout.size:
        raise ValueError(f"{name} requires {layout.size} bytes, got {len(data)}")
    return layout.unpack(bytes(data))


def _fixed(values, size: int, name: str) -> list[int]:
    values = list(values)
    if len(values) > size:
        raise ValueError(f"too many {name}: {len(values)} > {size}")
    return values + [0] * (size - len(values))


def _chunks(blob: bytes, size: int) -> Iterator[bytes]:
    for start in range(0, len(blob), size):
        yield blob[start : start + size]


def _change_type(value: int) -> ChangeType | int:
    try:
        return ChangeType(value)
    except ValueError:
        return value


class LineAttributeID(enum.IntEnum):
    """Identifies the type of a configuration attribute."""

    FLAGS = 1
    OUTPUT_VALUES = 2
    DEBOUNCE = 3


def _attribute_id(value: int) -> LineAttributeID | int:
    try:
        return LineAttributeID(value)
    except ValueError:
        return value


_LINE_ATTRIBUTE = struct.Struct("=II8s")
_U32 = struct.Struct("=I")
_U64 = struct.Struct("=Q")


@dataclass(frozen=True)
class LineAttribute:
    """A configuration attribute for a line."""

    id: int = 0
    value: bytes = bytes(8)
    padding: int = 0

    SIZE: ClassVar[int] = _LINE_ATTRIBUTE.size

    def __post_init__(self) -> None:
        value = bytes(self.value)
        if len(value) != 8:
            raise ValueError(f"attribute value must be 8 bytes, got {len(value)}")
        object.__setattr__(self, "value", value)
        object.__setattr__(self, "id", _attribute_id(int(self.id)))

    @classmethod
    def encode32(cls, attr_id: int, value: int) -> LineAttribute:
        """Create an attribute holding a 32-bit value."""
        return cls(attr_id, _pack(_U32, value) + bytes(4))

    @classmethod
    def encode64(cls, attr_id: int, value: int) -> LineAttribute:
        """Create an attribute holding a 64-bit value."""
        return cls(attr_id, _pack(_U64, value))

    def value32(self) -> int:
        """The 32-bit value held by the attribute."""
        return _U32.unpack_from(self.value)[0]

    def value64(self) -> int:
        """The 64-bit value held by the attribute."""
        return _U64.unpack_from(self.value)[0]

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        return _pack(_LINE_ATTRIBUTE, int(self.id), self.padding, self.value)

    @classmethod
    def from_bytes(cls, data: bytes) -> LineAttribute:
        """Decode from the kernel layout."""
        attr_id, padding, value = _unpack(_LINE_ATTRIBUTE, data, cls.__name__)
        return cls(attr_id, value, padding)


class LineFlagV2(enum.IntFlag):
    """Flags describing the configuration of a line."""

    USED = 1 << 0
    ACTIVE_LOW = 1 << 1
    INPUT = 1 << 2
    OUTPUT = 1 << 3
    EDGE_RISING = 1 << 4
    EDGE_FALLING = 1 << 5
    OPEN_DRAIN = 1 << 6
    OPEN_SOURCE = 1 << 7
    BIAS_PULL_UP = 1 << 8
    BIAS_PULL_DOWN = 1 << 9
    BIAS_DISABLED = 1 << 10
    EVENT_CLOCK_REALTIME = 1 << 11

    DIRECTION_MASK = INPUT | OUTPUT
    EDGE_MASK = EDGE_RISING | EDGE_FALLING
    EDGE_BOTH = EDGE_RISING | EDGE_FALLING
    DRIVE_MASK = OPEN_DRAIN | OPEN_SOURCE
    BIAS_MASK = BIAS_DISABLED | BIAS_PULL_UP | BIAS_PULL_DOWN

    def is_available(self) -> bool:
        """True if the line is available to be requested."""
        return not self & LineFlagV2.USED

    def is_used(self) -> bool:
        """True if the line is not available to be requested."""
        return bool(self & LineFlagV2.USED)

    def is_active_low(self) -> bool:
        """True if the line is active low."""
        return bool(self & LineFlagV2.ACTIVE_LOW)

    def is_input(self) -> bool:
        """True if the line is an input."""
        return bool(self & LineFlagV2.INPUT)

    def is_output(self) -> bool:
        """True if the line is an output."""
        return bool(self & LineFlagV2.OUTPUT)

    def is_open_drain(self) -> bool:
        """True if the line is open drain."""
        return bool(self & LineFlagV2.OPEN_DRAIN)

    def is_open_source(self) -> bool:
        """True if the line is open source."""
        return bool(self & LineFlagV2.OPEN_SOURCE)

    def is_rising_edge(self) -> bool:
        """True if edge detection is enabled on the rising edge."""
        return bool(self & LineFlagV2.EDGE_RISING)

    def is_falling_edge(self) -> bool:
        """True if edge detection is enabled on the falling edge."""
        return bool(self & LineFlagV2.EDGE_FALLING)

    def is_both_edges(self) -> bool:
        """True if edge detection is enabled on both edges."""
        return self & LineFlagV2.EDGE_BOTH == LineFlagV2.EDGE_BOTH

    def is_bias_disabled(self) -> bool:
        """True if the line has bias disabled."""
        return bool(self & LineFlagV2.BIAS_DISABLED)

    def is_bias_pull_up(self) -> bool:
        """True if the line has pull-up bias enabled."""
        return bool(self & LineFlagV2.BIAS_PULL_UP)

    def is_bias_pull_down(self) -> bool:
        """True if the line has pull-down bias enabled."""
        return bool(self & LineFlagV2.BIAS_PULL_DOWN)

    def has_realtime_event_clock(self) -> bool:
        """True if events carry real-time timestamps."""
        return bool(self & LineFlagV2.EVENT_CLOCK_REALTIME)

    def encode(self) -> LineAttribute:
        """Create a flags attribute holding these flags."""
        return LineAttribute.encode64(LineAttributeID.FLAGS, int(self))

    @classmethod
    def decode(cls, attr: LineAttribute) -> LineFlagV2:
        """Read the flags held by an attribute."""
        return cls(attr.value64())


def encode_debounce(period_ns: int) -> LineAttribute:
    """Create a debounce attribute from a period in nanoseconds."""
    return LineAttribute.encode32(LineAttributeID.DEBOUNCE, period_ns // 1000)


def decode_debounce(attr: LineAttribute) -> int:
    """The debounce period, in nanoseconds, held by an attribute."""
    return attr.value32() * 1000


def encode_output_values(bits: int) -> LineAttribute:
    """Create an output values attribute from a line bitmap."""
    return LineAttribute.encode64(LineAttributeID.OUTPUT_VALUES, bits)


def decode_output_values(attr: LineAttribute) -> int:
    """The output values bitmap held by an attribute."""
    return attr.value64()


def _bit(n: int) -> int:
    return 1 << n if 0 <= n < LINES_MAX else 0


def bitmap_get(bitmap: int, n: int) -> int:
    """The value, 0 or 1, of bit n of a line bitmap."""
    return 1 if bitmap & _bit(n) else 0


def bitmap_set(bitmap: int, n: int, value: int) -> int:
    """A copy of the bitmap with bit n set to value (zero clears it)."""
    mask = _bit(n)
    if value == 0:
        return bitmap & ~mask & _MASK64
    return (bitmap | mask) & _MASK64


def new_line_bits(*args: int) -> int:
    """A bitmap with each of the given bit numbers set."""
    bitmap = 0
    for bit in args:
        bitmap = bitmap_set(bitmap, bit, 1)
    return bitmap


def new_line_bitmap(*args: int) -> int:
    """A bitmap built from a sequence of bit values, lowest bit first."""
    bitmap = 0
    for n, value in enumerate(args):
        bitmap = bitmap_set(bitmap, n, value)
    return bitmap


def new_line_bit_mask(n: int) -> int:
    """A mask of the lowest n bits."""
    if n < 0:
        raise ValueError(f"negative mask width: {n}")
    if n >= LINES_MAX:
        return _MASK64
    return (1 << n) - 1


_LINE_CONFIG_ATTRIBUTE = struct.Struct(f"={LineAttribute.SIZE}sQ")


@dataclass(frozen=True)
class LineConfigAttribute:
    """A configuration attribute applied to a set of requested lines."""

    attr: LineAttribute = field(default_factory=LineAttribute)
    mask: int = 0

    SIZE: ClassVar[int] = _LINE_CONFIG_ATTRIBUTE.size

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        return _pack(_LINE_CONFIG_ATTRIBUTE, self.attr.to_bytes(), self.mask)

    @classmethod
    def from_bytes(cls, data: bytes) -> LineConfigAttribute:
        """Decode from the kernel layout."""
        attr, mask = _unpack(_LINE_CONFIG_ATTRIBUTE, data, cls.__name__)
        return cls(LineAttribute.from_bytes(attr), mask)


_LINE_CONFIG = struct.Struct(
    f"=QI{_LINE_CONFIG_PAD_SIZE}I{ATTRIBUTES_MAX * LineConfigAttribute.SIZE}s"
)


@dataclass
class LineConfig:
    """The configuration of a set of requested lines."""

    flags: LineFlagV2 = LineFlagV2(0)
    attrs: list[LineConfigAttribute] = field(default_factory=list)
    padding: tuple[int, ...] = (0,) * _LINE_CONFIG_PAD_SIZE

    SIZE: ClassVar[int] = _LINE_CONFIG.size

    @property
    def num_attrs(self) -> int:
        """The number of attributes in the configuration."""
        return len(self.attrs)

    def add_attribute(self, attr: LineConfigAttribute) -> None:
        """Append an attribute; it is dropped if the configuration is full."""
        if len(self.attrs) < ATTRIBUTES_MAX:
            self.attrs.append(attr)

    def remove_attribute(self, attr: LineConfigAttribute) -> None:
        """Remove every attribute equal to attr."""
        self.attrs = [a for a in self.attrs if a != attr]

    def remove_attribute_id(self, attr_id: int) -> None:
        """Remove every attribute with the given ID."""
        self.attrs = [a for a in self.attrs if a.attr.id != attr_id]

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        if len(self.attrs) > ATTRIBUTES_MAX:
            raise ValueError(
                f"too many attributes: {len(self.attrs)} > {ATTRIBUTES_MAX}"
            )
        blob = b"".join(a.to_bytes() for a in self.attrs)
        return _pack(
            _LINE_CONFIG,
            int(self.flags),
            len(self.attrs),
            *_fixed(self.padding, _LINE_CONFIG_PAD_SIZE, "padding words"),
            blob,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> LineConfig:
        """Decode from the kernel layout."""
        flags, num_attrs, *rest = _unpack(_LINE_CONFIG, data, cls.__name__)
        padding, blob = tuple(rest[:-1]), rest[-1]
        if num_attrs > ATTRIBUTES_MAX:
            raise ValueError(f"attribute count {num_attrs} exceeds {ATTRIBUTES_MAX}")
        chunks = list(_chunks(blob, LineConfigAttribute.SIZE))[:num_attrs]
        attrs = [LineConfigAttribute.from_bytes(chunk) for chunk in chunks]
        return cls(LineFlagV2(flags), attrs, padding)


_LINE_REQUEST = struct.Struct(
    f"={LINES_MAX}I{NAME_SIZE}s{LineConfig.SIZE}sII{_LINE_REQUEST_PAD_SIZE}Ii"
)


@dataclass
class LineRequest:
    """A request for control of a set of lines on one chip."""

    offsets: list[int] = field(default_factory=list)
    consumer: str = ""
    config: LineConfig = field(default_factory=LineConfig)
    event_buffer_size: int = 0
    padding: tuple[int, ...] = (0,) * _LINE_REQUEST_PAD_SIZE
    fd: int = 0

    SIZE: ClassVar[int] = _LINE_REQUEST.size

    @property
    def lines(self) -> int:
        """The number of lines being requested."""
        return len(self.offsets)

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        return _pack(
            _LINE_REQUEST,
            *_fixed(self.offsets, LINES_MAX, "offsets"),
            _encode_name(self.consumer),
            self.config.to_bytes(),
            self.lines,
            self.event_buffer_size,
            *_fixed(self.padding, _LINE_REQUEST_PAD_SIZE, "padding words"),
            self.fd,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> LineRequest:
        """Decode from the kernel layout."""
        fields = _unpack(_LINE_REQUEST, data, cls.__name__)
        offsets = fields[:LINES_MAX]
        consumer, config, lines, buffer_size, *rest = fields[LINES_MAX:]
        padding, fd = tuple(rest[:-1]), rest[-1]
        if lines > LINES_MAX:
            raise ValueError(f"line count {lines} exceeds {LINES_MAX}")
        return cls(
            list(offsets[:lines]),
            bytes_to_string(consumer),
            LineConfig.from_bytes(config),
            buffer_size,
            padding,
            fd,
        )


_LINE_INFO_V2 = struct.Struct(
    f"={NAME_SIZE}s{NAME_SIZE}sIIQ"
    f"{ATTRIBUTES_MAX * LineAttribute.SIZE}s{_LINE_INFO_V2_PAD_SIZE}I"
)


@dataclass
class LineInfoV2:
    """Details of a single line of a GPIO chip."""

    name: str = ""
    consumer: str = ""
    offset: int = 0
    flags: LineFlagV2 = LineFlagV2(0)
    attrs: list[LineAttribute] = field(default_factory=list)
    padding: tuple[int, ...] = (0,) * _LINE_INFO_V2_PAD_SIZE

    SIZE: ClassVar[int] = _LINE_INFO_V2.size

    @property
    def num_attrs(self) -> int:
        """The number of attributes describing the line."""
        return len(self.attrs)

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        if len(self.attrs) > ATTRIBUTES_MAX:
            raise ValueError(
                f"too many attributes: {len(self.attrs)} > {ATTRIBUTES_MAX}"
            )
        return _pack(
            _LINE_INFO_V2,
            _encode_name(self.name),
            _encode_name(self.consumer),
            self.offset,
            len(self.attrs),
            int(self.flags),
            b"".join(a.to_bytes() for a in self.attrs),
            *_fixed(self.padding, _LINE_INFO_V2_PAD_SIZE, "padding words"),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> LineInfoV2:
        """Decode from the kernel layout."""
        name, consumer, offset, num_attrs, flags, blob, *padding = _unpack(
            _LINE_INFO_V2, data, cls.__name__
        )
        if num_attrs > ATTRIBUTES_MAX:
            raise ValueError(f"attribute count {num_attrs} exceeds {ATTRIBUTES_MAX}")
        chunks = list(_chunks(blob, LineAttribute.SIZE))[:num_attrs]
        return cls(
            bytes_to_string(name),
            bytes_to_string(consumer),
            offset,
            LineFlagV2(flags),
            [LineAttribute.from_bytes(chunk) for chunk in chunks],
            tuple(padding),
        )


_LINE_INFO_CHANGED_V2 = struct.Struct(
    f"={LineInfoV2.SIZE}sQI{_LINE_INFO_CHANGED_V2_PAD_SIZE}I"
)


@dataclass
class LineInfoChangedV2:
    """A change to the info of a watched line."""

    info: LineInfoV2 = field(default_factory=LineInfoV2)
    timestamp: int = 0
    type: ChangeType | int = 0

    SIZE: ClassVar[int] = _LINE_INFO_CHANGED_V2.size

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        return _pack(
            _LINE_INFO_CHANGED_V2,
            self.info.to_bytes(),
            self.timestamp,
            int(self.type),
            *[0] * _LINE_INFO_CHANGED_V2_PAD_SIZE,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> LineInfoChangedV2:
        """Decode from the kernel layout."""
        info, timestamp, change, *_ = _unpack(
            _LINE_INFO_CHANGED_V2, data, cls.__name__
        )
        return cls(LineInfoV2.from_bytes(info), timestamp, _change_type(change))


@dataclass
class LineValues:
    """Logical values for a set of requested lines, with a mask of lines."""

    bits: int = 0
    mask: int = 0

    def get(self, n: int) -> int:
        """The value, 0 or 1, of line n."""
        return bitmap_get(self.bits, n)


class LineEventID(enum.IntEnum):
    """The type of edge event detected."""

    RISING_EDGE = 1
    FALLING_EDGE = 2


def _event_id(value: int) -> LineEventID | int:
    try:
        return LineEventID(value)
    except ValueError:
        return value


_LINE_EVENT = struct.Struct(f"=QIIII{_LINE_EVENT_PAD_SIZE}I")


@dataclass
class LineEvent:
    """An edge event detected on a requested line."""

    timestamp: int = 0
    id: LineEventID | int = 0
    offset: int = 0
    seqno: int = 0
    line_seqno: int = 0

    SIZE: ClassVar[int] = _LINE_EVENT.size

    def to_bytes(self) -> bytes:
        """Encode in the kernel layout."""
        return _pack(
            _LINE_EVENT,
            self.timestamp,
            int(self.id),
            self.offset,
            self.seqno,
            self.line_seqno,
            *[0] * _LINE_EVENT_PAD_SIZE,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> LineEvent:
        """Decode from the kernel layout."""
        timestamp, event_id, offset, seqno, line_seqno, *_ = _unpack(
            _LINE_EVENT, data, cls.__name__
        )
        return cls(timestamp, _event_id(event_id), offset, seqno, line_seqno)


def _read_exact(fd: int, size: int) -> bytes:
    data = os.read(fd, size)
    if len(data) != size:
        raise EOFError(f"short read: {len(data)} of {size} bytes")
    return data


def read_line_event(fd: int) -> LineEvent:
    """Read one edge event from a requested line file descriptor.

    Blocks until data is available; raises EOFError on a short read.
    """
    return LineEvent.from_bytes(_read_exact(fd, LineEvent.SIZE))


def read_line_info_changed_v2(fd: int) -> LineInfoChangedV2:
    """Read one line info changed event from an open chip file descriptor.

    Blocks until data is available; raises EOFError on a short read.
    """
    return LineInfoChangedV2.from_bytes(_read_exact(fd, LineInfoChangedV2.SIZE))