"""
Tests for the subprocess implementation of the Executor protocol.
Commands are real processes started from sys.executable; no shell is used.
"""

from __future__ import annotations

import sys

import pytest

from drupal_ops.executor import CommandSpec, SubprocessExecutor
from drupal_ops.log import Logger
from drupal_ops.targets import AliasTarget, UriTarget


def py(code: str, *args: str) -> CommandSpec:
    return CommandSpec.of(sys.executable, "-c", code, *args)


@pytest.fixture
def lines() -> list[str]:
    return []


@pytest.fixture
def executor(lines) -> SubprocessExecutor:
    return SubprocessExecutor(Logger(write=lines.append), force_color=True)


# ----------------------------------------------------------------
# CommandSpec
# ----------------------------------------------------------------


def test_target_tokens_follow_program():
    spec = CommandSpec.of("drush", "sql:drop", "-y")

    assert spec.argv(AliasTarget("sitea")) == ["drush", "@sitea", "sql:drop", "-y"]
    assert spec.argv(UriTarget("a.example.com")) == [
        "drush", "--uri=a.example.com", "sql:drop", "-y",
    ]
    assert spec.argv() == ["drush", "sql:drop", "-y"]


def test_parse_and_str_keep_arguments_intact():
    spec = CommandSpec.parse("drush sql:query 'SELECT 1; DROP x'")

    assert spec.args == ("sql:query", "SELECT 1; DROP x")
    assert CommandSpec.parse(str(spec)) == spec


def test_from_argv_rejects_empty():
    with pytest.raises(ValueError):
        CommandSpec.from_argv([])


def test_with_args_appends():
    assert CommandSpec.of("vi").with_args("/tmp/f").argv() == ["vi", "/tmp/f"]


# ----------------------------------------------------------------
# Attached execution
# ----------------------------------------------------------------


def test_run_returns_exit_code_and_calls_failure_hook(executor, lines):
    """Executor must return the real exit code and report failures."""
    failures = []
    executor.on_failure = lambda argv, code: failures.append((argv, code))

    code = executor.run(py("import sys; sys.exit(3)"))

    assert code == 3
    assert failures and failures[0][1] == 3
    assert failures[0][0][0] == sys.executable
    assert any("Command failed (exit 3)" in line for line in lines)


def test_run_success_skips_failure_hook(executor):
    failures = []
    executor.on_failure = lambda argv, code: failures.append(code)

    assert executor.run(py("pass")) == 0
    assert failures == []


def test_exit_127_is_normalized(executor):
    assert executor.run(py("import sys; sys.exit(127)")) == 1


def test_missing_program_is_exit_1(executor, lines):
    code = executor.run(CommandSpec.of("drupal-ops-no-such-binary-xyz"))

    assert code == 1
    assert any("Cannot execute drupal-ops-no-such-binary-xyz" in line for line in lines)


def test_stdin_path_is_fed_to_process(executor, tmp_path):
    dump = tmp_path / "dump.sql"
    dump.write_text("CREATE TABLE t;\n", encoding="utf-8")

    code = executor.run(
        py("import sys; sys.exit(0 if sys.stdin.read() == 'CREATE TABLE t;\\n' else 5)"),
        stdin_path=dump,
    )

    assert code == 0


def test_run_uses_cwd(executor, tmp_path):
    code = executor.run(
        py(
            "import os, sys; "
            "sys.exit(0 if os.path.realpath(os.getcwd()) == os.path.realpath(sys.argv[1]) else 6)",
            str(tmp_path),
        ),
        cwd=tmp_path,
    )

    assert code == 0


def test_run_forces_color(executor):
    code = executor.run(
        py("import os, sys; sys.exit(0 if os.getenv('FORCE_COLOR') == '1' else 4)")
    )

    assert code == 0


def test_run_logs_invocation(executor, lines):
    executor.run(py("pass"))

    assert any("Running:" in line for line in lines)


# ----------------------------------------------------------------
# Captured execution
# ----------------------------------------------------------------


def test_capture_collects_output(executor):
    result = executor.capture(py("import sys; print('out'); sys.stderr.write('err')"))

    assert result.ok
    assert result.stdout == "out\n"
    assert result.stderr == "err"
    assert result.duration_ms >= 0
    assert result.started_at


def test_capture_does_not_force_color(executor):
    result = executor.capture(py("import os; print(os.getenv('FORCE_COLOR'))"))

    assert result.stdout.strip() == "None"


def test_capture_failure_is_quiet(executor, lines):
    """Failed queries are logged at DEBUG, below the default console level."""
    result = executor.capture(py("import sys; sys.exit(2)"))

    assert result.exit_code == 2
    assert not result.ok
    assert lines == []


def test_capture_timeout(lines):
    executor = SubprocessExecutor(Logger(write=lines.append), timeout=1)

    result = executor.capture(py("import time; time.sleep(10)"))

    assert result.exit_code == 1
    assert "timed out" in result.stderr


def test_capture_missing_program():
    executor = SubprocessExecutor(Logger(write=lambda _: None))

    result = executor.capture(CommandSpec.of("drupal-ops-no-such-binary-xyz"))

    assert result.exit_code == 1
    assert "Error executing command" in result.stderr
