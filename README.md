# gpiouapi

This package covers versions 1 and 2 of the Linux GPIO character device user
API in plain Python. Each kernel structure has a dataclass, and that dataclass
converts to and from the kernel's binary layout (`to_bytes` / `from_bytes`).
Each structure class has a `SIZE` class attribute that gives its layout size in
bytes. The package also has a watcher. It reads edge events from a requested
line file descriptor on a background thread and passes them to a handler.

## Installation

```
pip install gpiouapi
```

There are no runtime dependencies, and Python 3.10 or later is required.
The `read_*` helpers and the watcher need file descriptors that can be read.
The watcher also needs descriptors that `selectors` can poll. In practice, that
means Linux GPIO devices.

## Modules

### `gpiouapi.uapi` (version 1)

- Constants:
  - `NAME_SIZE` is 32, the size of the name, label and consumer strings.
  - `HANDLES_MAX` is 64.
- Enumerations:
  - `ChangeType` has the members `REQUESTED`, `RELEASED` and `CONFIG`.
- Flags, with query methods:
  - `LineFlag`: `is_used()`, `is_out()`, `is_active_low()`, `is_open_drain()`,
    `is_open_source()`, `is_pull_up()`, `is_pull_down()` and
    `is_bias_disable()`.
  - `HandleFlag`: `is_input()`, `is_output()`, `is_active_low()`,
    `is_open_drain()`, `is_open_source()`, `has_bias_flag()`, `is_pull_up()`,
    `is_pull_down()` and `is_bias_disable()`.
  - `EventFlag`: `is_rising_edge()`, `is_falling_edge()` and `is_both_edges()`.
- Structures:
  - `ChipInfo`
  - `LineInfo`
  - `LineInfoChanged`
  - `HandleConfig`
  - `HandleRequest`, whose `lines` is the length of `offsets`.
  - `EventRequest`
- Helpers:
  - `bytes_to_string(data)` decodes a string that may or may not end in a NUL
    byte.
  - `read_line_info_changed(fd)` reads one `LineInfoChanged` from a chip file
    descriptor. It raises `EOFError` on a short read.

Strings are encoded as UTF-8 into their fixed-size fields. Values that do not
fit raise `ValueError`. Lists longer than `HANDLES_MAX` also raise `ValueError`,
and so does decoding data of the wrong length.

### `gpiouapi.uapi_v2` (version 2)

- Constants:
  - `LINES_MAX` is 64.
  - `ATTRIBUTES_MAX` is 10.
- Flags:
  - `LineFlagV2` has query methods such as `is_available()`, `is_input()`,
    `is_both_edges()`, `is_bias_pull_up()` and `has_realtime_event_clock()`.
  - It has the masks `DIRECTION_MASK`, `EDGE_MASK`, `EDGE_BOTH`, `DRIVE_MASK`
    and `BIAS_MASK`.
  - `encode()` and `LineFlagV2.decode(attr)` convert the flags to and from a
    flags attribute.
- Identifiers: `LineAttributeID` and `LineEventID`.
- Attributes:
  - `LineAttribute.encode32` and `LineAttribute.encode64` build an attribute;
    `value32()` and `value64()` read its value back.
  - `encode_debounce(period_ns)` and `decode_debounce(attr)` handle the debounce
    period. It is stored in microseconds and given in nanoseconds.
  - `encode_output_values(bits)` and `decode_output_values(attr)` handle output
    values.
- Configuration:
  - `LineConfigAttribute` holds an attribute and a line mask.
  - `LineConfig` has `add_attribute`, `remove_attribute` and
    `remove_attribute_id`. `add_attribute` silently drops an attribute once
    there are `ATTRIBUTES_MAX` of them. `num_attrs` gives the current count.
- Requests and results:
  - `LineRequest`
  - `LineValues`, whose `get(n)` reads the value of line n.
  - `LineInfoV2`
  - `LineInfoChangedV2`
  - `LineEvent`
- Line bitmaps are plain 64-bit integers:
  - `new_line_bits(*bits)`
  - `new_line_bitmap(*values)`
  - `new_line_bit_mask(n)`
  - `bitmap_get(bitmap, n)`
  - `bitmap_set(bitmap, n, value)`

  Bit numbers outside 0 to 63 are ignored.
- Reading:
  - `read_line_event(fd)` and `read_line_info_changed_v2(fd)` each read one
    record. They raise `EOFError` on a short read.

### `gpiouapi.watcher`

`Watcher(fd, handler)` starts a daemon thread that polls `fd`. It reads
`LineEvent` records from it and calls `handler` with a `WatchedEvent` for each
one. The `WatchedEvent` has the fields `offset`, `timestamp_ns`, `type`,
`seqno` and `line_seqno`.

`close()` does the following:
- It stops the thread and waits for it to finish.
- It can be called more than once.
- It does not close `fd`.

The watcher is also a context manager.

## Examples

```python
from gpiouapi.uapi import HandleFlag, EventFlag

flags = HandleFlag.INPUT | HandleFlag.PULL_UP
assert flags.is_input() and flags.is_pull_up()
assert EventFlag.BOTH_EDGES.is_both_edges()
```

```python
from gpiouapi.uapi_v2 import (
    LineConfig, LineConfigAttribute, encode_debounce, new_line_bits, new_line_bit_mask,
)

assert new_line_bits(0, 2) == 0b101
config = LineConfig()
config.add_attribute(
    LineConfigAttribute(attr=encode_debounce(20_000), mask=new_line_bit_mask(3))
)
assert LineConfig.from_bytes(config.to_bytes()) == config
```

```python
from gpiouapi.watcher import Watcher

with Watcher(line_fd, print):
    ...  # each WatchedEvent is printed as it arrives
```

## What this package does not do

This package does not do any of the following:
- open GPIO chips;
- issue ioctl calls to request lines;
- get or set line values;
- change line configuration;
- set watches on line info.

It provides the structures and their binary encodings that such calls use. It
also reads event records from file descriptors that you have obtained some
other way. There is no command-line tool.

## Tests

```
pip install gpiouapi[test]
pytest
```