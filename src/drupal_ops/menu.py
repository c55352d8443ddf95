# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Arrow-key selection menus.

MenuState holds the navigation arithmetic; SelectionMenu wires it to a
KeyReader and a MenuRenderer and loops until Enter or Escape.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.shortcuts import clear as pt_clear
from prompt_toolkit.shortcuts import print_formatted_text

from .config import ANSI_COLORS, colorize
from .interfaces import KeyReader, MenuRenderer
from .keys import KeyKind

NAV_HINT = "Use UP/DOWN arrows or TAB to navigate, ENTER to select, ESC to go back."


@dataclass(frozen=True)
class MenuItem:
    label: str
    handler: Callable[..., Any] | None = None
    value: Any = None


@dataclass(frozen=True)
class SelectionResult:
    value: MenuItem | None = None
    cancelled: bool = False

    @classmethod
    def cancel(cls) -> SelectionResult:
        return cls(value=None, cancelled=True)


@dataclass
class MenuState:
    """Highlighted index over a non-empty list, wrapping in both directions."""

    size: int
    index: int = 0

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError("MenuState needs at least one item")

    def down(self) -> int:
        self.index = (self.index + 1) % self.size
        return self.index

    def up(self) -> int:
        self.index = (self.index - 1 + self.size) % self.size
        return self.index


class AnsiMenuRenderer:
    """Full-redraw renderer printing ANSI text through prompt_toolkit."""

    def __init__(
        self,
        write: Callable[[str], None] | None = None,
        clear: Callable[[], None] | None = None,
        title_color: str = "cyan",
    ):
        self._write = write or (lambda text: print_formatted_text(ANSI(text)))
        self._clear = clear or pt_clear
        self.title_color = title_color

    def render(
        self,
        title: str,
        labels: Sequence[str],
        index: int,
        context: Sequence[str] = (),
    ) -> None:
        self._clear()
        lines = [colorize(self.title_color, f"=== {title} ===")]
        for line in context:
            lines.append(f"{ANSI_COLORS['dim']}{line}{ANSI_COLORS['reset']}")
        lines.append("")
        for i, label in enumerate(labels):
            if i == index:
                lines.append(colorize("green", f"> {label}"))
            else:
                lines.append(f"  {label}")
        lines.append("")
        lines.append(f"{ANSI_COLORS['dim']}{NAV_HINT}{ANSI_COLORS['reset']}")
        self._write("\n".join(lines))


class SelectionMenu:
    """Stateful navigator returning the chosen item or a cancellation."""

    def __init__(self, reader: KeyReader, renderer: MenuRenderer):
        self.reader = reader
        self.renderer = renderer

    def select(
        self,
        title: str,
        items: Sequence[MenuItem],
        context: Sequence[str] = (),
    ) -> SelectionResult:
        if not items:
            return SelectionResult.cancel()

        state = MenuState(len(items))
        labels = [item.label for item in items]
        while True:
            self.renderer.render(title, labels, state.index, context)
            event = self.reader.read_key()
            if event.kind in (KeyKind.DOWN, KeyKind.TAB):
                state.down()
            elif event.kind is KeyKind.UP:
                state.up()
            elif event.kind is KeyKind.ENTER:
                return SelectionResult(value=items[state.index])
            elif event.kind is KeyKind.ESCAPE:
                return SelectionResult.cancel()

    def choose(
        self,
        title: str,
        labels: Sequence[str],
        context: Sequence[str] = (),
    ) -> str | None:
        """Pick one of plain string labels; None when cancelled."""
        result = self.select(
            title, [MenuItem(label, value=label) for label in labels], context
        )
        if result.cancelled or result.value is None:
            return None
        return result.value.value
