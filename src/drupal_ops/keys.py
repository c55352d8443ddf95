# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Raw keystroke capture for the selection menus.

Two layers:
- EscapeScanner: a byte-at-a-time state machine that turns terminal input
  into KeyEvents. It never blocks; the caller tells it when the escape
  timeout has expired.
- TerminalKeyReader: puts the tty in raw mode for exactly one logical key
  press and drives the scanner with select() timeouts.

Anything with a read_key() method satisfies the KeyReader protocol, so
menus can be driven by a scripted reader in tests.
"""

from __future__ import annotations

import codecs
import os
import select
import sys
from dataclasses import dataclass
from enum import Enum

from prompt_toolkit.input.vt100 import raw_mode

DEFAULT_ESCAPE_TIMEOUT = 0.1

ESC = 0x1B
CTRL_C = "\x03"


class KeyKind(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    ENTER = "enter"
    TAB = "tab"
    ESCAPE = "escape"
    CHAR = "char"


@dataclass(frozen=True)
class KeyEvent:
    kind: KeyKind
    char: str = ""

    @classmethod
    def of_char(cls, char: str) -> KeyEvent:
        return cls(KeyKind.CHAR, char)


UP = KeyEvent(KeyKind.UP)
DOWN = KeyEvent(KeyKind.DOWN)
LEFT = KeyEvent(KeyKind.LEFT)
RIGHT = KeyEvent(KeyKind.RIGHT)
ENTER = KeyEvent(KeyKind.ENTER)
TAB = KeyEvent(KeyKind.TAB)
ESCAPE = KeyEvent(KeyKind.ESCAPE)

_CSI_FINALS: dict[str, KeyEvent] = {
    "A": UP,
    "B": DOWN,
    "C": RIGHT,
    "D": LEFT,
}


class ScanState(Enum):
    GROUND = "ground"
    ESCAPE = "escape"
    SEQUENCE = "sequence"


class EscapeScanner:
    """Finite-state scanner for one stream of terminal bytes.

    GROUND   --ESC-->        ESCAPE
    ESCAPE   --'[' or 'O'--> SEQUENCE
    ESCAPE   --other-->      GROUND, emits Escape (byte dropped)
    ESCAPE   --timeout-->    GROUND, emits Escape
    SEQUENCE --final byte--> GROUND, emits a direction or nothing
    SEQUENCE --timeout-->    GROUND, emits Escape
    """

    def __init__(self) -> None:
        self.state = ScanState.GROUND
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def in_sequence(self) -> bool:
        """True while the scanner needs a timeout to resolve a pending ESC."""
        return self.state is not ScanState.GROUND

    def reset(self) -> None:
        self.state = ScanState.GROUND
        self._decoder.reset()

    def feed(self, byte: int) -> KeyEvent | None:
        if self.state is ScanState.GROUND:
            return self._ground(byte)
        if self.state is ScanState.ESCAPE:
            if byte in (0x5B, 0x4F):  # '[' CSI, 'O' SS3
                self.state = ScanState.SEQUENCE
                return None
            self.state = ScanState.GROUND
            return ESCAPE
        return self._sequence(byte)

    def expire(self) -> KeyEvent | None:
        """Signal that the escape timeout elapsed without another byte."""
        if self.state is ScanState.GROUND:
            return None
        self.state = ScanState.GROUND
        return ESCAPE

    def _ground(self, byte: int) -> KeyEvent | None:
        if byte == ESC:
            self._decoder.reset()
            self.state = ScanState.ESCAPE
            return None
        if byte in (0x0D, 0x0A):
            return ENTER
        if byte == 0x09:
            return TAB
        text = self._decoder.decode(bytes([byte]))
        if not text:
            return None
        return KeyEvent.of_char(text)

    def _sequence(self, byte: int) -> KeyEvent | None:
        # Parameter and intermediate bytes: keep consuming.
        if 0x20 <= byte <= 0x3F:
            return None
        self.state = ScanState.GROUND
        if 0x40 <= byte <= 0x7E:
            return _CSI_FINALS.get(chr(byte))
        return None


def scan_bytes(data: bytes) -> list[KeyEvent]:
    """Scan a complete byte string, treating end of input as a timeout."""
    scanner = EscapeScanner()
    events: list[KeyEvent] = []
    for byte in data:
        event = scanner.feed(byte)
        if event is not None:
            events.append(event)
    tail = scanner.expire()
    if tail is not None:
        events.append(tail)
    return events


class TerminalKeyReader:
    """Reads one logical key press from a tty file descriptor."""

    def __init__(
        self,
        fileno: int | None = None,
        escape_timeout: float = DEFAULT_ESCAPE_TIMEOUT,
    ):
        self.fileno = sys.stdin.fileno() if fileno is None else fileno
        self.escape_timeout = escape_timeout

    def read_key(self) -> KeyEvent:
        """Block until a full key is available.

        The terminal is in raw mode only inside this call; raw_mode captures
        the previous attributes on construction and restores them on exit,
        including when KeyboardInterrupt or EOFError propagate.
        """
        scanner = EscapeScanner()
        with raw_mode(self.fileno):
            while True:
                timeout = self.escape_timeout if scanner.in_sequence else None
                byte = self._read_byte(timeout)
                if byte is None:
                    event = scanner.expire()
                else:
                    event = scanner.feed(byte)
                if event is None:
                    continue
                if event.kind is KeyKind.CHAR and event.char == CTRL_C:
                    raise KeyboardInterrupt
                return event

    def _read_byte(self, timeout: float | None) -> int | None:
        ready, _, _ = select.select([self.fileno], [], [], timeout)
        if not ready:
            return None
        data = os.read(self.fileno, 1)
        if not data:
            raise EOFError("terminal input closed")
        return data[0]
