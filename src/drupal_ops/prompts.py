# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Line prompts used outside the selection menus: free text with a default,
the yes/no confirmation gate in front of destructive actions, and the
"press Enter" pause after a command's output.
"""

from __future__ import annotations

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.shortcuts import print_formatted_text

from .config import colorize

YES = frozenset({"y", "yes"})
NO = frozenset({"", "n", "no"})


class PromptToolkitPrompter:
    """Prompter backed by a prompt_toolkit PromptSession."""

    def __init__(self, session: PromptSession | None = None):
        self._session = session

    @property
    def session(self) -> PromptSession:
        # Created lazily: PromptSession needs a real terminal.
        if self._session is None:
            self._session = PromptSession()
        return self._session

    def write(self, text: str) -> None:
        print_formatted_text(ANSI(text))

    def ask(self, prompt: str, default: str = "") -> str:
        """Ask for a line of text; the default is pre-filled and editable.

        Ctrl-C / Ctrl-D cancel the current flow (KeyboardInterrupt).
        """
        try:
            answer = self.session.prompt(
                ANSI(colorize("cyan", prompt) + ": "), default=default
            )
        except EOFError:
            raise KeyboardInterrupt from None
        return answer.strip()

    def confirm(self, prompt: str) -> bool:
        """(y/N) gate; anything but an explicit yes declines."""
        while True:
            try:
                answer = self.session.prompt(
                    ANSI(colorize("yellow", prompt) + " (y/N): ")
                )
            except (KeyboardInterrupt, EOFError):
                return False
            answer = answer.strip().lower()
            if answer in YES:
                return True
            if answer in NO:
                return False
            self.write(colorize("yellow", "Please answer 'y' or 'n'."))

    def pause(self) -> None:
        try:
            self.session.prompt(
                ANSI(colorize("dim", "Press Enter to continue..."))
            )
        except (KeyboardInterrupt, EOFError):
            return
