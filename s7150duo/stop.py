"""Stop requests for the acquisition loop: 'q' / ESC on the terminal, or an event."""

from __future__ import annotations

import os
import sys
import threading
import time
from typing import Protocol

ESC = "\x1b"
STOP_KEYS = ("q", ESC)

try:
    import msvcrt
except ImportError:     # POSIX
    msvcrt = None
    import select
    import termios
    import tty


class StopSignal(Protocol):
    def is_set(self) -> bool: ...


class EventStop:
    """Stop flag that can be raised from anywhere, e.g. a plot window key."""

    def __init__(self):
        self._event = threading.Event()

    def set(self):
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()


class KeyboardStop:
    """
    Non-blocking terminal poll. Use as a context manager so the terminal
    mode is restored however the acquisition ends.
    """

    def __init__(self, stream=None, keys=STOP_KEYS):
        self.stream = stream or sys.stdin
        self.keys = keys
        self._saved = None
        self._requested = False

    def __enter__(self):
        if msvcrt is None and self.stream.isatty():
            fd = self.stream.fileno()
            self._saved = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        return self

    def __exit__(self, *exc):
        if self._saved is not None:
            termios.tcsetattr(self.stream.fileno(), termios.TCSANOW, self._saved)
            self._saved = None
        return False

    def _poll_key(self):
        if msvcrt is not None:
            if msvcrt.kbhit():
                return msvcrt.getwch()
            return None
        if not self.stream.isatty():
            return None
        # bypass the text layer: it would buffer keys select can no longer see
        fd = self.stream.fileno()
        ready, _, _ = select.select([fd], [], [], 0)
        if ready:
            return os.read(fd, 1).decode("ascii", errors="replace")
        return None

    def is_set(self) -> bool:
        if not self._requested:
            key = self._poll_key()
            if key is not None and key in self.keys:
                self._requested = True
        return self._requested

    def wait_for_key(self, poll_s: float = 0.1):
        """Block until any key is pressed."""
        if msvcrt is None and not self.stream.isatty():
            return
        while self._poll_key() is None:
            time.sleep(poll_s)


class AnyStop:
    """Set as soon as one of the wrapped signals is set."""

    def __init__(self, *signals):
        self.signals = signals

    def is_set(self) -> bool:
        return any(s.is_set() for s in self.signals)
