"""
Shared fakes for DrupalOps tests.

Sessions are built from real config/history/favorites objects on tmp_path,
with the terminal, the subprocess layer and the line prompts replaced by
scripted fakes.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from drupal_ops import config
from drupal_ops.config import Settings
from drupal_ops.executor import CaptureResult, CommandSpec
from drupal_ops.favorites import FavoritesRegistry
from drupal_ops.history import HistoryStore
from drupal_ops.keys import DOWN, ENTER
from drupal_ops.log import Logger
from drupal_ops.menu import SelectionMenu
from drupal_ops.session import Session


class ScriptExhausted(BaseException):
    """Raised when a scripted fake runs out of input (not an Exception on purpose)."""


class ScriptedKeyReader:
    def __init__(self, keys=()):
        self.keys = list(keys)
        self.reads = 0

    def read_key(self):
        self.reads += 1
        if not self.keys:
            raise ScriptExhausted("no more scripted keys")
        return self.keys.pop(0)


class RecordingRenderer:
    def __init__(self):
        self.frames = []

    def render(self, title, labels, index, context=()):
        self.frames.append((title, list(labels), index, list(context)))


class FakeExecutor:
    """Records run() calls; capture() answers from a scripted table."""

    def __init__(self):
        self.runs: list[list[str]] = []
        self.cwds: list[Path | None] = []
        self.stdin: list[bytes] = []
        self.captures: dict[tuple[str, ...], str] = {}
        self.exit_codes: dict[tuple[str, ...], int] = {}
        self.missing: set[str] = set()

    def run(self, command: CommandSpec, cwd=None, target=None, stdin_path=None) -> int:
        argv = command.argv(target)
        self.runs.append(argv)
        self.cwds.append(Path(cwd) if cwd is not None else None)
        if stdin_path is not None:
            self.stdin.append(Path(stdin_path).read_bytes())
        return self.exit_codes.get(tuple(argv), 0)

    def capture(self, command: CommandSpec, cwd=None, target=None) -> CaptureResult:
        argv = tuple(command.argv(target))
        if argv not in self.captures:
            return CaptureResult(1, "", "not scripted", "", 0)
        return CaptureResult(0, self.captures[argv], "", "", 0)

    def which(self, program: str) -> str | None:
        return None if program in self.missing else f"/usr/bin/{program}"


class FakePrompter:
    def __init__(self):
        self.answers: list[str] = []
        self.confirms: list[bool] = []
        self.written: list[str] = []
        self.asked: list[str] = []
        self.confirm_prompts: list[str] = []
        self.pauses = 0

    def write(self, text: str) -> None:
        self.written.append(text)

    def ask(self, prompt: str, default: str = "") -> str:
        self.asked.append(prompt)
        if self.answers:
            return self.answers.pop(0)
        return default

    def confirm(self, prompt: str) -> bool:
        self.confirm_prompts.append(prompt)
        if self.confirms:
            return self.confirms.pop(0)
        return False

    def pause(self) -> None:
        self.pauses += 1


def pick(index: int) -> list:
    """Keys that select item `index` from a freshly opened menu."""
    return [DOWN] * index + [ENTER]


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Keep config, crash logs and scratch files inside tmp_path."""
    monkeypatch.setenv("DRUPAL_OPS_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("DRUPAL_OPS_TMP", str(tmp_path / "scratch"))


@pytest.fixture
def console() -> list[str]:
    return []


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def prompter() -> FakePrompter:
    return FakePrompter()


@pytest.fixture
def keys() -> ScriptedKeyReader:
    return ScriptedKeyReader()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def session(tmp_path, console, executor, prompter, keys, renderer) -> Session:
    cfg = config.load_system_config()
    home = tmp_path / "home"
    scratch = tmp_path / "scratch"
    logger = Logger(scratch / config.LOG_FILENAME, write=console.append)
    defaults = dict(cfg.settings)
    defaults["PROJECTS_ROOT_DIR"] = str(tmp_path / "projects")
    return Session(
        config=cfg,
        settings=Settings(home / config.CONFIG_FILENAME, defaults),
        logger=logger,
        executor=executor,
        prompter=prompter,
        menu=SelectionMenu(keys, renderer),
        history=HistoryStore(home / config.HISTORY_FILENAME),
        favorites=FavoritesRegistry(home / config.FAVORITES_FILENAME, logger),
        config_dir=home,
        scratch_root=scratch,
        cwd=tmp_path,
    )


@pytest.fixture
def drupal_project(tmp_path) -> Path:
    """A git checkout with a Drupal webroot in src/web and an empty data/."""
    root = tmp_path / "projects" / "site"
    (root / ".git").mkdir(parents=True)
    web = root / "src" / "web"
    (web / "core").mkdir(parents=True)
    (web / "index.php").write_text("<?php\n", encoding="utf-8")
    (root / "src" / "composer.json").write_text("{}\n", encoding="utf-8")
    (root / "data").mkdir()
    return root
