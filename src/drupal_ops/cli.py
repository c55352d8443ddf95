# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
DrupalOps CLI entry point and menu loop.

Design:
- CLI owns process startup and the interactive-terminal check.
- Session is the context object (config+executor+stores injected).
- Screens own the menu tree; this module only runs the main menu.
"""

from __future__ import annotations

import sys
from collections.abc import Callable

from . import config
from .errors import DrupalOpsError
from .log import write_crash_log
from .screens import main_menu
from .session import Session, build_session


def banner(session: Session) -> str:
    system = session.config.system
    name = system.get("name", "DrupalOps")
    color = system.get("banner_color", "cyan")
    return config.colorize(color, name) + " - interactive Drupal project operations"


def run_menu(
    session: Session,
    menu: Callable[[Session], None] = main_menu,
) -> int:
    """Run the main menu until Quit; returns the process exit code."""
    try:
        menu(session)
    except (KeyboardInterrupt, EOFError):
        session.prompter.write("\nBye!\n")
        return 0
    except Exception as e:
        path = write_crash_log(
            e,
            screen="main",
            project=session.project.root if session.project else None,
        )
        session.logger.error(f"Unhandled exception: {type(e).__name__}: {e}")
        if path is not None:
            session.logger.error(f"Details written to {path}")
        return 1
    session.logger.info("Exiting DrupalOps. Goodbye!")
    return 0


def main() -> None:
    """Main entry point for the drupal-ops console."""
    if not sys.stdin.isatty():
        print("drupal-ops needs an interactive terminal.", file=sys.stderr)
        sys.exit(1)

    try:
        session = build_session()
    except DrupalOpsError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)

    session.prompter.write(banner(session))
    sys.exit(run_menu(session, main_menu))
