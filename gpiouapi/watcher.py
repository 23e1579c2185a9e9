"""Background watcher that delivers edge events read from a line request."""

from __future__ import annotations

import errno
import os
import selectors
import threading
from dataclasses import dataclass
from typing import Callable

from .uapi_v2 import LineEvent, LineEventID

__all__ = ["WatchedEvent", "Watcher"]


@dataclass(frozen=True)
class WatchedEvent:
    """An edge event as passed to a watcher's handler."""

    offset: int
    timestamp_ns: int
    type: LineEventID | int
    seqno: int = 0
    line_seqno: int = 0

    @classmethod
    def from_line_event(cls, event: LineEvent) -> WatchedEvent:
        """Build from a raw line event."""
        return cls(
            offset=event.offset,
            timestamp_ns=event.timestamp,
            type=event.id,
            seqno=event.seqno,
            line_seqno=event.line_seqno,
        )


EventHandler = Callable[[WatchedEvent], None]


class Watcher:
    """Watch a requested line file descriptor and pass each event to a handler.

    Events are read on a background thread until the watcher is closed.
    The watched file descriptor itself is not closed by the watcher.
    """

    def __init__(self, fd: int, handler: EventHandler) -> None:
        self._fd = fd
        self._handler = handler
        self._closed = False
        self._lock = threading.Lock()
        self._selector = selectors.DefaultSelector()
        self._done_read, self._done_write = os.pipe()
        try:
            self._selector.register(self._done_read, selectors.EVENT_READ)
            self._selector.register(fd, selectors.EVENT_READ)
        except BaseException:
            self._selector.close()
            os.close(self._done_read)
            os.close(self._done_write)
            raise
        self._thread = threading.Thread(
            target=self._watch, name=f"line-watcher-{fd}", daemon=True
        )
        self._thread.start()

    def _watch(self) -> None:
        try:
            while True:
                try:
                    ready = self._selector.select()
                except OSError as exc:
                    if exc.errno in (errno.EBADF, errno.EINVAL):
                        return
                    raise
                for key, _ in ready:
                    if key.fd == self._done_read:
                        return
                    self._read_one(key.fd)
        finally:
            self._selector.close()

    def _read_one(self, fd: int) -> None:
        try:
            data = os.read(fd, LineEvent.SIZE)
        except OSError:
            return
        if not data:
            # The source has hung up; stop polling it.
            self._selector.unregister(fd)
            return
        if len(data) != LineEvent.SIZE:
            return
        self._handler(WatchedEvent.from_line_event(LineEvent.from_bytes(data)))

    def close(self) -> None:
        """Stop watching and wait for the background thread to exit."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            os.write(self._done_write, b"\x01")
        except OSError:
            pass
        self._thread.join()
        os.close(self._done_read)
        os.close(self._done_write)

    def __enter__(self) -> Watcher:
        return self

    def __exit__(self, *args) -> None:
        self.close()