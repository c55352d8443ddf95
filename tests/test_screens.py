"""
Tests for the menu tree: the loop/error boundary and representative
flows from each screen, driven by scripted keys and prompt answers.
"""

from __future__ import annotations

import json

import pytest

from conftest import pick
from drupal_ops import screens
from drupal_ops.errors import ResolutionError, ValidationError
from drupal_ops.executor import CommandSpec
from drupal_ops.favorites import FavoriteDefinition
from drupal_ops.keys import ENTER, ESCAPE, UP
from drupal_ops.menu import MenuItem
from drupal_ops.targets import AliasTarget

SA = ("drush", "sa", "--format=json")
BACK = [UP, ENTER]


@pytest.fixture
def drupal_session(session, executor, drupal_project):
    executor.captures[SA] = '{"@sitea": {}, "@siteb": {}}'
    session.set_project(drupal_project)
    return session


# ----------------------------------------------------------------
# Loop + error boundary
# ----------------------------------------------------------------


def test_run_screen_dispatches_until_back(session, keys, prompter):
    calls = []
    keys.keys.extend(pick(0) + pick(1))

    screens.run_screen(
        session,
        "Test",
        lambda: [screens.act("Do it", calls.append), screens.BACK],
    )

    assert calls == [session]
    assert prompter.pauses == 1


def test_submenu_items_do_not_pause(session, prompter):
    screens.dispatch(session, "Test", screens.sub("Open", lambda s: None))

    assert prompter.pauses == 0


def test_escape_leaves_screen_and_runs_exit_hook(session, keys):
    exited = []
    keys.keys.append(ESCAPE)

    screens.run_screen(
        session, "Test", lambda: [screens.BACK], on_exit=lambda: exited.append(1)
    )

    assert exited == [1]


def _raiser(exc):
    def handler(s):
        raise exc

    return handler


def test_validation_error_is_a_warning(session, console, prompter):
    screens.dispatch(
        session, "Test", screens.act("x", _raiser(ValidationError("bad input")))
    )

    assert any("[WARN]" in line and "bad input" in line for line in console)
    assert prompter.pauses == 1


def test_resolution_error_is_an_error(session, console):
    screens.dispatch(
        session, "Test", screens.act("x", _raiser(ResolutionError("no drush")))
    )

    assert any("[ERROR]" in line and "no drush" in line for line in console)


def test_keyboard_interrupt_cancels_flow(session, console):
    screens.dispatch(session, "Test", screens.act("x", _raiser(KeyboardInterrupt())))

    assert any("Cancelled." in line for line in console)


def test_unexpected_exception_writes_crash_log(session, console, tmp_path):
    screens.dispatch(
        session, "Database", screens.act("Dump", _raiser(RuntimeError("boom")))
    )

    assert any("Unhandled exception: RuntimeError: boom" in line for line in console)
    crash = (tmp_path / "home" / "logs" / "crash.log").read_text()
    assert "screen=Database" in crash
    assert "action=Dump" in crash


def test_ask_required_rejects_empty(session, prompter):
    prompter.answers = [""]

    with pytest.raises(ValidationError):
        screens.ask_required(session, "Package")


# ----------------------------------------------------------------
# Main menu
# ----------------------------------------------------------------


def test_main_menu_quit(session, keys):
    keys.keys.extend([UP, ENTER])

    screens.main_menu(session)

    assert session.running is False


def test_main_menu_escape_does_not_quit(session, keys, renderer):
    keys.keys.extend([ESCAPE, UP, ENTER])

    screens.main_menu(session)

    assert session.running is False
    assert len(renderer.frames) == 3


def test_main_menu_hides_disabled_entries(session, keys, renderer):
    session.settings.set("ENABLE_HISTORY", "false")
    session.settings.set("ENABLE_FAVORITES", "false")
    keys.keys.extend([UP, ENTER])

    screens.main_menu(session)

    labels = renderer.frames[0][1]
    assert "History" not in labels
    assert "Favorites" not in labels
    assert labels[-1] == "Quit"


# ----------------------------------------------------------------
# Project + Git
# ----------------------------------------------------------------


def test_init_project_clones_into_projects_root(session, prompter, executor, tmp_path):
    prompter.answers = ["git@github.com:acme/portal.git"]

    screens.init_project(session)

    dest = tmp_path / "projects" / "portal"
    assert executor.runs == [["git", "clone", "git@github.com:acme/portal.git", str(dest)]]
    assert session.project.root == dest
    assert session.history.entries()[0].description.startswith("Clone ")


def test_init_project_refuses_existing_dir(session, prompter, drupal_project):
    prompter.answers = ["git@github.com:acme/site.git"]

    with pytest.raises(ValidationError, match="already exists"):
        screens.init_project(session)


def test_git_log_validates_count(drupal_session, prompter, executor):
    prompter.answers = ["ten"]

    with pytest.raises(ValidationError):
        screens.git_log(drupal_session)
    assert executor.runs == []


def test_git_log_default_count(drupal_session, executor):
    screens.git_log(drupal_session)

    assert executor.runs == [["git", "log", "--oneline", "-n", "10"]]


def test_checkout_remote_branch_tracks(drupal_session, executor, keys):
    executor.captures[("git", "branch", "-r", "--format=%(refname:short)")] = (
        "origin/HEAD\norigin/main\norigin/feature/x\n"
    )
    executor.captures[("git", "branch", "--format=%(refname:short)")] = "main\n"
    keys.keys.extend(pick(1))

    screens.checkout_remote_branch(drupal_session)

    assert executor.runs == [
        ["git", "checkout", "-b", "feature/x", "--track", "origin/feature/x"]
    ]


def test_reset_hard_needs_confirmation(drupal_session, executor, prompter):
    prompter.confirms = [False]

    screens.git_reset_hard(drupal_session)

    assert executor.runs == []


# ----------------------------------------------------------------
# Drush + Database
# ----------------------------------------------------------------


def test_leaving_drush_menu_resets_target(drupal_session, keys):
    drupal_session.target = AliasTarget("@sitea")
    keys.keys.extend(BACK)

    screens.drush_menu(drupal_session)

    assert drupal_session.target is None


def test_drush_menu_without_drupal_returns(session, console, prompter):
    screens.drush_menu(session)

    assert any("No project selected" in line for line in console)
    assert prompter.pauses == 1


def test_enable_modules(drupal_session, prompter, executor):
    drupal_session.target = AliasTarget("@sitea")
    prompter.answers = ["admin_toolbar, devel"]

    screens.drush_enable_modules(drupal_session)

    assert executor.runs == [["drush", "@sitea", "pm:enable", "admin_toolbar,devel", "-y"]]


def test_password_is_not_recorded(drupal_session, prompter, executor):
    drupal_session.target = AliasTarget("@sitea")
    prompter.answers = ["admin", "hunter2"]

    screens.drush_user_password(drupal_session)

    assert executor.runs == [["drush", "@sitea", "user:password", "admin", "hunter2"]]
    assert "hunter2" not in drupal_session.history.path.read_text()


def test_db_dump_writes_into_data_dir(drupal_session, executor, drupal_project):
    drupal_session.target = AliasTarget("@sitea")

    screens.db_dump(drupal_session)

    argv = executor.runs[0]
    assert argv[:3] == ["drush", "@sitea", "sql:dump"]
    assert argv[3].startswith(f"--result-file={drupal_project / 'data' / 'db_dump_'}")
    assert argv[3].endswith(".sql")


def test_db_sync_keeps_destination_target(drupal_session, keys, prompter, executor, drupal_project):
    drupal_session.target = AliasTarget("@sitea")
    keys.keys.extend(pick(2))
    prompter.confirms = [True]

    screens.db_sync(drupal_session)

    assert executor.runs == [["drush", "sql:sync", "@siteb", "@sitea", "-y"]]
    assert executor.cwds == [drupal_project / "src" / "web"]
    assert drupal_session.target == AliasTarget("@sitea")


def test_db_sync_rejects_same_site(drupal_session, keys):
    drupal_session.target = AliasTarget("@sitea")
    keys.keys.extend(pick(1))

    with pytest.raises(ValidationError, match="same site"):
        screens.db_sync(drupal_session)
    assert drupal_session.target == AliasTarget("@sitea")


def test_db_restore_from_menu(drupal_session, keys, prompter, executor, drupal_project):
    (drupal_project / "data" / "site_b.sql").write_text("SELECT 1;\n")
    keys.keys.extend(pick(0))
    prompter.confirms = [True]

    screens.db_restore(drupal_session)

    assert executor.runs[0] == ["drush", "@siteb", "sql:drop", "-y"]
    assert executor.runs[1] == ["drush", "@siteb", "sql:cli"]


def test_db_restore_without_dumps(drupal_session, console, executor):
    screens.db_restore(drupal_session)

    assert any("No database dump files found" in line for line in console)
    assert executor.runs == []


# ----------------------------------------------------------------
# Kubernetes + IBM Cloud
# ----------------------------------------------------------------


def _pods(*names):
    return json.dumps({"items": [{"metadata": {"name": n}} for n in names]})


def test_select_namespace(session, executor, keys):
    executor.captures[("kubectl", "get", "namespaces", "-o", "json")] = _pods("default", "web")
    keys.keys.extend(pick(1))

    screens.k8s_select_namespace(session)

    assert session.namespace == "web"


def test_pod_logs_use_namespace_and_container(session, executor, keys):
    session.namespace = "web"
    executor.captures[("kubectl", "-n", "web", "get", "pods", "-l", "app=solr", "-o", "json")] = (
        _pods("solr-0")
    )
    executor.captures[("kubectl", "-n", "web", "get", "pod", "solr-0", "-o", "json")] = json.dumps(
        {"spec": {"containers": [{"name": "solr"}]}}
    )
    keys.keys.extend(pick(0))

    screens.k8s_logs(session, "app=solr")

    assert executor.runs == [["kubectl", "-n", "web", "logs", "-f", "solr-0", "-c", "solr"]]


def test_no_pods_warns(session, console):
    assert screens.choose_pod(session, "app=solr") is None
    assert any("No pods found for app=solr" in line for line in console)


def test_ibmcloud_login_saves_missing_settings(session, prompter, executor):
    prompter.answers = ["eu-de", "default"]

    screens.ibmcloud_login(session)

    assert executor.runs == [["ibmcloud", "login", "--sso", "-r", "eu-de", "-g", "default"]]
    assert session.settings.get("IBMCLOUD_REGION") == "eu-de"
    assert 'IBMCLOUD_RESOURCE_GROUP="default"' in session.settings.path.read_text()


# ----------------------------------------------------------------
# Settings, History, Favorites
# ----------------------------------------------------------------


def test_toggle_history_setting(session, keys):
    keys.keys.extend(pick(2) + BACK)

    screens.settings_menu(session)

    assert session.settings.get_bool("ENABLE_HISTORY", True) is False
    assert session.history.enabled is False
    assert 'ENABLE_HISTORY="false"' in session.settings.path.read_text()


def test_log_level_setting_applies(session, keys):
    keys.keys.extend(pick(6) + pick(0) + BACK)

    screens.settings_menu(session)

    assert session.logger.level == "DEBUG"
    assert session.settings.get("LOG_LEVEL") == "DEBUG"


def test_history_replay(session, keys, prompter, executor, tmp_path):
    session.history.record("Git pull", ["git", "pull"], tmp_path)
    keys.keys.extend(pick(0) + BACK)
    prompter.confirms = [True]

    screens.history_menu(session)

    assert executor.runs == [["git", "pull"]]
    assert executor.cwds == [tmp_path]
    assert len(session.history.entries()) == 1


def test_run_favorite_in_its_cwd(session, executor, tmp_path):
    fav = FavoriteDefinition("st", CommandSpec.of("git", "status"), tmp_path)

    screens.run_favorite(session, fav)

    assert executor.runs == [["git", "status"]]
    assert executor.cwds == [tmp_path]
    assert session.history.entries()[0].description == "Favorite: st"


def test_run_favorite_missing_cwd(session, tmp_path):
    fav = FavoriteDefinition("st", CommandSpec.of("git", "status"), tmp_path / "gone")

    with pytest.raises(ValidationError):
        screens.run_favorite(session, fav)


def test_favorites_menu_runs_entry(session, keys, executor):
    session.favorites.path.parent.mkdir(parents=True, exist_ok=True)
    session.favorites.path.write_text(
        "favorites:\n  - name: cron\n    command: [drush, '@self', cron]\n"
    )
    keys.keys.extend(pick(0) + BACK)

    screens.favorites_menu(session)

    assert executor.runs == [["drush", "@self", "cron"]]


def test_broken_favorites_file_can_still_be_edited(session, keys, executor, console, monkeypatch):
    """A favorites file that fails to parse must not hide the edit action."""
    monkeypatch.setenv("EDITOR", "vi")
    session.favorites.path.parent.mkdir(parents=True, exist_ok=True)
    session.favorites.path.write_text("favorites: [\n")
    keys.keys.extend(pick(0) + BACK)

    screens.favorites_menu(session)

    assert session.menu.renderer.frames[0][1] == ["Edit favorites file", "Back"]
    assert executor.runs == [["vi", str(session.favorites.path)]]
    assert any("[WARN]" in line and "Cannot parse" in line for line in console)


def test_empty_history_is_reported_once(session, keys, console):
    keys.keys.extend(pick(0) + BACK)

    screens.history_menu(session)

    assert len(session.menu.renderer.frames) == 2
    assert sum("History is empty." in line for line in console) == 1


def test_edit_favorites_uses_editor(session, executor, monkeypatch):
    monkeypatch.setenv("EDITOR", "nano -w")

    screens.edit_favorites(session)

    assert executor.runs == [["nano", "-w", str(session.favorites.path)]]
    assert session.favorites.path.exists()


def test_menu_items_carry_markers():
    item = screens.act("x", lambda s: None)

    assert isinstance(item, MenuItem)
    assert item.value == screens.ACTION
    assert screens.BACK.handler is None
