# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Menu tree: every screen reachable from the main menu.

Screens are plain functions taking the Session. run_screen() owns the
select/dispatch loop and the error boundary: user cancellation, resolution
and validation failures, and unexpected exceptions all end the current
action and return to the same menu.
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from .archive import find_dumps
from .errors import ConfigError, DrupalOpsError, ValidationError
from .executor import CommandSpec
from .favorites import FavoriteDefinition
from .history import GLOBAL, HistoryEntry
from .log import LEVELS, write_crash_log
from .menu import MenuItem
from .project import find_env_template, generate_env, repo_name_from_url
from .restore import RestoreStatus
from .session import Session
from .targets import AliasTarget

Handler = Callable[[Session], Any]

# MenuItem.value markers: actions pause after running, submenus don't.
ACTION = "action"
SUBMENU = "submenu"

BOOL_SETTINGS = ("ENABLE_HISTORY", "ENABLE_FAVORITES", "ENABLE_ERROR_REPORTING")


def act(label: str, handler: Handler) -> MenuItem:
    return MenuItem(label, handler, ACTION)


def sub(label: str, handler: Handler) -> MenuItem:
    return MenuItem(label, handler, SUBMENU)


BACK = MenuItem("Back")


# ----------------------------------------------------------------
# Loop + error boundary
# ----------------------------------------------------------------


def dispatch(session: Session, screen: str, item: MenuItem) -> None:
    """Run one menu item's handler inside the error boundary."""
    if item.handler is None:
        return
    try:
        item.handler(session)
    except KeyboardInterrupt:
        session.logger.warn("Cancelled.")
    except ValidationError as e:
        session.logger.warn(str(e))
    except DrupalOpsError as e:
        session.logger.error(str(e))
    except Exception as e:
        write_crash_log(
            e,
            screen=screen,
            action=item.label,
            project=session.project.root if session.project else None,
        )
        session.logger.error(f"Unhandled exception: {type(e).__name__}: {e}")
    if item.value == ACTION:
        session.prompter.pause()


def run_screen(
    session: Session,
    title: str,
    build_items: Callable[[], list[MenuItem]],
    on_exit: Callable[[], None] | None = None,
) -> None:
    """Show a menu until Back/Escape (or until the session stops)."""
    try:
        while session.running:
            items = build_items()
            result = session.menu.select(title, items, session.context_lines())
            if result.cancelled or result.value is None:
                return
            if result.value.handler is None:
                return
            dispatch(session, title, result.value)
    finally:
        if on_exit is not None:
            on_exit()


def ask_required(session: Session, prompt: str, default: str = "") -> str:
    value = session.prompter.ask(prompt, default)
    if not value:
        raise ValidationError(f"{prompt}: a value is required.")
    return value


def _json_or_empty(text: str) -> Any:
    try:
        return json.loads(text or "null")
    except ValueError:
        return None


# ----------------------------------------------------------------
# Main menu
# ----------------------------------------------------------------


def main_menu(session: Session) -> None:
    def _quit(s: Session) -> None:
        s.running = False

    def items() -> list[MenuItem]:
        entries = [
            sub("Project", project_menu),
            sub("Git", git_menu),
            sub("Composer", composer_menu),
            sub("Drush", drush_menu),
            sub("Database", database_menu),
            sub("Search (Solr)", search_menu),
            sub("IBM Cloud", ibmcloud_menu),
            sub("Kubernetes", k8s_menu),
            sub("Settings", settings_menu),
        ]
        if session.settings.get_bool("ENABLE_HISTORY", True):
            entries.append(sub("History", history_menu))
        if session.settings.get_bool("ENABLE_FAVORITES", True):
            entries.append(sub("Favorites", favorites_menu))
        entries.append(MenuItem("Quit", _quit, SUBMENU))
        return entries

    while session.running:
        result = session.menu.select("DrupalOps", items(), session.context_lines())
        if result.cancelled or result.value is None:
            # Escape on the main menu does not quit.
            continue
        dispatch(session, "main", result.value)


# ----------------------------------------------------------------
# Project
# ----------------------------------------------------------------


def project_menu(session: Session) -> None:
    run_screen(
        session,
        "Project",
        lambda: [
            sub("Select project", select_project),
            act("Detect project from current directory", detect_project),
            act("Show project info", show_project_info),
            act("Initialize project (clone + .env + composer install)", init_project),
            act("Generate .env file", generate_env_file),
            BACK,
        ],
    )


def select_project(s: Session) -> None:
    if s.choose_project() is None:
        s.logger.warn("Project not changed.")


def detect_project(s: Session) -> None:
    if s.detect_project() is None:
        s.logger.warn(f"No project (.git or src/composer.json) found above {s.cwd}")


def show_project_info(s: Session) -> None:
    project = s.require_project()
    s.prompter.write(f"Name:        {project.name}")
    s.prompter.write(f"Root:        {project.root}")
    s.prompter.write(f"Drupal root: {project.drupal_root or '(not a Drupal project)'}")
    s.prompter.write(f"Composer:    {project.composer_dir}")
    if s.target is not None:
        s.prompter.write(f"Target:      {s.target.label}")


def init_project(s: Session) -> None:
    s.require_tool("git")
    url = ask_required(s, "Git repository URL")
    name = ask_required(s, "Directory name", repo_name_from_url(url))
    if "/" in name or name in (".", ".."):
        raise ValidationError(f"Invalid directory name: {name}")
    projects_root = s.settings.projects_root
    dest = projects_root / name
    if dest.exists():
        raise ValidationError(f"{dest} already exists.")
    projects_root.mkdir(parents=True, exist_ok=True)

    if s.run(
        CommandSpec.of("git", "clone", url, str(dest)),
        description=f"Clone {url}",
    ) != 0:
        return
    project = s.set_project(dest)

    template = find_env_template(project.root)
    if template is not None and s.prompter.confirm(
        f"Generate .env from {template.relative_to(project.root)}?"
    ):
        env = generate_env(template, s.prompter.ask)
        s.logger.success(f"Wrote {env}")

    if (project.composer_dir / "composer.json").is_file():
        s.composer("install", description="Composer install")


def generate_env_file(s: Session) -> None:
    project = s.require_project()
    template = find_env_template(project.root)
    if template is None:
        raise ValidationError(f"No .env.dist or .env.example found in {project.root}")
    env = template.with_name(".env")
    if env.exists() and not s.prompter.confirm(f"{env} exists. Overwrite?"):
        return
    generate_env(template, s.prompter.ask, env)
    s.logger.success(f"Wrote {env}")


# ----------------------------------------------------------------
# Git
# ----------------------------------------------------------------


def git_menu(session: Session) -> None:
    run_screen(
        session,
        "Git",
        lambda: [
            act("Status", lambda s: s.git("status")),
            act("Log", git_log),
            sub("Branches", git_branch_menu),
            act("Pull", lambda s: s.git("pull", description="Git pull")),
            act("Push", lambda s: s.git("push", description="Git push")),
            sub("Stash", git_stash_menu),
            sub("Undo", git_undo_menu),
            BACK,
        ],
    )


def git_log(s: Session) -> None:
    count = s.prompter.ask("Number of commits", "10")
    if not count.isdigit() or int(count) <= 0:
        raise ValidationError(f"Not a positive number: {count!r}")
    s.git("log", "--oneline", "-n", count)


def _branches(s: Session, remote: bool) -> list[str]:
    args = ["branch", "--format=%(refname:short)"]
    if remote:
        args.insert(1, "-r")
    result = s.git_capture(*args)
    if not result.ok:
        return []
    names = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    if remote:
        names = [n for n in names if "/" in n and not n.endswith("/HEAD")]
    return names


def git_branch_menu(session: Session) -> None:
    run_screen(
        session,
        "Git branches",
        lambda: [
            act("Checkout local branch", checkout_local_branch),
            act("Checkout remote branch", checkout_remote_branch),
            act("Create new branch", create_branch),
            BACK,
        ],
    )


def checkout_local_branch(s: Session) -> None:
    branch = s.menu.choose("Local branches", _branches(s, remote=False), s.context_lines())
    if branch is None:
        return
    s.git("checkout", branch, description=f"Git checkout {branch}")


def checkout_remote_branch(s: Session) -> None:
    remote = s.menu.choose("Remote branches", _branches(s, remote=True), s.context_lines())
    if remote is None:
        return
    local = remote.split("/", 1)[1]
    if local in _branches(s, remote=False):
        s.git("checkout", local, description=f"Git checkout {local}")
        return
    s.git(
        "checkout", "-b", local, "--track", remote,
        description=f"Git checkout {remote} as {local}",
    )


def create_branch(s: Session) -> None:
    name = ask_required(s, "New branch name")
    check = s.git_capture("check-ref-format", "--branch", name)
    if not check.ok:
        raise ValidationError(f"Invalid branch name: {name}")
    s.git("checkout", "-b", name, description=f"Git create branch {name}")


def git_stash_menu(session: Session) -> None:
    run_screen(
        session,
        "Git stash",
        lambda: [
            act("Save changes", stash_save),
            act("List stashes", lambda s: s.git("stash", "list")),
            act("Apply stash", lambda s: _stash_ref_action(s, "apply")),
            act("Pop stash", lambda s: _stash_ref_action(s, "pop")),
            act("Drop stash", lambda s: _stash_ref_action(s, "drop")),
            BACK,
        ],
    )


def stash_save(s: Session) -> None:
    message = s.prompter.ask("Stash message (optional)")
    args = ["stash", "push"]
    if message:
        args += ["-m", message]
    s.git(*args, description="Git stash save")


def _stash_ref_action(s: Session, verb: str) -> None:
    ref = s.prompter.ask("Stash reference", "stash@{0}") or "stash@{0}"
    if verb == "drop" and not s.prompter.confirm(f"Drop {ref}? This cannot be undone."):
        return
    s.git("stash", verb, ref, description=f"Git stash {verb} {ref}")


def git_undo_menu(session: Session) -> None:
    run_screen(
        session,
        "Git undo",
        lambda: [
            act("Discard local changes (reset --hard)", git_reset_hard),
            act("Revert a commit", git_revert),
            act("Remove untracked files (clean -dfx)", git_clean),
            BACK,
        ],
    )


def git_reset_hard(s: Session) -> None:
    if s.prompter.confirm("Discard ALL uncommitted changes (git reset --hard)?"):
        s.git("reset", "--hard", description="Git reset --hard")


def git_revert(s: Session) -> None:
    commit = ask_required(s, "Commit to revert")
    if s.prompter.confirm(f"Create a revert commit for {commit}?"):
        s.git("revert", "--no-edit", commit, description=f"Git revert {commit}")


def git_clean(s: Session) -> None:
    if s.prompter.confirm("Delete ALL untracked and ignored files (git clean -dfx)?"):
        s.git("clean", "-dfx", description="Git clean -dfx")


# ----------------------------------------------------------------
# Composer
# ----------------------------------------------------------------


def composer_menu(session: Session) -> None:
    run_screen(
        session,
        "Composer",
        lambda: [
            act("Install", lambda s: s.composer("install", description="Composer install")),
            act("Update", lambda s: s.composer("update", description="Composer update")),
            act("Require package", composer_require),
            act("Remove package", composer_remove),
            BACK,
        ],
    )


def composer_require(s: Session) -> None:
    package = ask_required(s, "Package (vendor/name[:constraint])")
    s.composer("require", package, description=f"Composer require {package}")


def composer_remove(s: Session) -> None:
    package = ask_required(s, "Package (vendor/name)")
    s.composer("remove", package, description=f"Composer remove {package}")


# ----------------------------------------------------------------
# Drush
# ----------------------------------------------------------------


def _enter_drupal(session: Session) -> bool:
    """Drupal screens need a webroot and, ideally, a target up front."""
    try:
        session.require_tool("drush")
        session.require_drupal_root()
    except DrupalOpsError as e:
        session.logger.error(str(e))
        session.prompter.pause()
        return False
    if session.target is None:
        session.choose_target()
    return True


def drush_menu(session: Session) -> None:
    if not _enter_drupal(session):
        return
    run_screen(
        session,
        "Drush",
        lambda: [
            act("Select target", lambda s: s.choose_target()),
            sub("General", drush_general_menu),
            sub("Configuration", drush_config_menu),
            sub("Modules", drush_modules_menu),
            sub("Users", drush_users_menu),
            sub("Watchdog", drush_watchdog_menu),
            sub("Development", drush_dev_menu),
            sub("Webform", drush_webform_menu),
            BACK,
        ],
        on_exit=session.reset_target,
    )


def drush_general_menu(session: Session) -> None:
    run_screen(
        session,
        "Drush: general",
        lambda: [
            act("Status", lambda s: s.drush("status")),
            act("Cache rebuild", lambda s: s.drush("cache:rebuild", description="Drush cache rebuild")),
            BACK,
        ],
    )


def drush_config_menu(session: Session) -> None:
    run_screen(
        session,
        "Drush: configuration",
        lambda: [
            act("Import configuration (cim)", drush_config_import),
            act(
                "Export configuration (cex)",
                lambda s: s.drush("config:export", "-y", description="Drush config export"),
            ),
            BACK,
        ],
    )


def drush_config_import(s: Session) -> None:
    target = s.ensure_target()
    if s.prompter.confirm(f"Import configuration into {target.label}?"):
        s.drush("config:import", "-y", description="Drush config import")


def drush_modules_menu(session: Session) -> None:
    run_screen(
        session,
        "Drush: modules",
        lambda: [
            act(
                "List enabled modules",
                lambda s: s.drush("pm:list", "--status=enabled", "--type=module", "--field=name"),
            ),
            act("Enable module(s)", drush_enable_modules),
            act("Uninstall module(s)", drush_uninstall_modules),
            BACK,
        ],
    )


def _module_names(s: Session, prompt: str) -> list[str]:
    raw = ask_required(s, prompt)
    names = [n for n in raw.replace(",", " ").split() if n]
    if not names:
        raise ValidationError("No module names given.")
    return names


def drush_enable_modules(s: Session) -> None:
    names = _module_names(s, "Module machine names (comma or space separated)")
    s.drush("pm:enable", ",".join(names), "-y", description=f"Drush enable {', '.join(names)}")


def drush_uninstall_modules(s: Session) -> None:
    names = _module_names(s, "Module machine names to uninstall")
    if s.prompter.confirm(f"Uninstall {', '.join(names)}? Module data will be deleted."):
        s.drush(
            "pm:uninstall", ",".join(names), "-y",
            description=f"Drush uninstall {', '.join(names)}",
        )


def drush_users_menu(session: Session) -> None:
    run_screen(
        session,
        "Drush: users",
        lambda: [
            act("One-time login link", drush_user_login),
            act("Block user", lambda s: _drush_user(s, "user:block")),
            act("Unblock user", lambda s: _drush_user(s, "user:unblock")),
            act("Set password", drush_user_password),
            BACK,
        ],
    )


def drush_user_login(s: Session) -> None:
    name = s.prompter.ask("User name (empty for uid 1)")
    args = ["user:login"]
    if name:
        args.append(f"--name={name}")
    s.drush(*args)


def _drush_user(s: Session, command: str) -> None:
    name = ask_required(s, "User name")
    s.drush(command, name, description=f"Drush {command} {name}")


def drush_user_password(s: Session) -> None:
    name = ask_required(s, "User name")
    password = ask_required(s, "New password")
    # The password is not written to history.
    s.drush("user:password", name, password)
    s.record(f"Drush set password for {name}", ["drush", "user:password", name])


def drush_watchdog_menu(session: Session) -> None:
    run_screen(
        session,
        "Drush: watchdog",
        lambda: [
            act("Show recent messages", lambda s: s.drush("watchdog:show")),
            act("List by type", lambda s: s.drush("watchdog:list")),
            act("Tail (Ctrl-C to stop)", lambda s: s.drush("watchdog:tail")),
            act("Delete all messages", drush_watchdog_delete),
            BACK,
        ],
    )


def drush_watchdog_delete(s: Session) -> None:
    if s.prompter.confirm("Delete ALL watchdog messages?"):
        s.drush("watchdog:delete", "all", "-y", description="Drush watchdog delete all")


def drush_dev_menu(session: Session) -> None:
    run_screen(
        session,
        "Drush: development",
        lambda: [
            act("Evaluate PHP code", drush_php_eval),
            act("Interactive PHP shell", lambda s: s.drush("php")),
            act("Run cron", lambda s: s.drush("core:cron", description="Drush cron")),
            BACK,
        ],
    )


def drush_php_eval(s: Session) -> None:
    code = ask_required(s, "PHP code")
    s.drush("php:eval", code, description="Drush php:eval")


def drush_webform_menu(session: Session) -> None:
    run_screen(
        session,
        "Drush: webform",
        lambda: [
            act("Export submissions", drush_webform_export),
            act("Purge submissions", drush_webform_purge),
            BACK,
        ],
    )


def drush_webform_export(s: Session) -> None:
    webform = ask_required(s, "Webform machine name")
    s.drush("webform:export", webform)


def drush_webform_purge(s: Session) -> None:
    webform = ask_required(s, "Webform machine name")
    if s.prompter.confirm(f"Purge ALL submissions of {webform}?"):
        s.drush("webform:purge", webform, "-y", description=f"Drush webform purge {webform}")


# ----------------------------------------------------------------
# Database
# ----------------------------------------------------------------


def database_menu(session: Session) -> None:
    if not _enter_drupal(session):
        return
    run_screen(
        session,
        "Database",
        lambda: [
            act("Update database (updb)", lambda s: s.drush("updatedb", "-y", description="Drush updatedb")),
            act("Dump database", db_dump),
            act("SQL command line", lambda s: s.drush("sql:cli")),
            act("Run SQL query", db_query),
            act("Sync from another site", db_sync),
            act("Restore from dump", db_restore),
            act("Select target", lambda s: s.choose_target()),
            BACK,
        ],
        on_exit=session.reset_target,
    )


def _dump_dir(s: Session) -> Path:
    project = s.require_project()
    return project.root / str(s.config.get_path("project.dump_dir", "data"))


def db_dump(s: Session) -> None:
    default = datetime.now().strftime("db_dump_%Y%m%d%H%M%S.sql")
    name = ask_required(s, "Dump file name", default)
    if "/" in name or name in (".", ".."):
        raise ValidationError(f"Invalid file name: {name}")
    dump_dir = _dump_dir(s)
    dump_dir.mkdir(parents=True, exist_ok=True)
    path = dump_dir / name
    s.drush("sql:dump", f"--result-file={path}", description=f"Drush sql:dump to {name}")


def db_query(s: Session) -> None:
    query = ask_required(s, "SQL query")
    s.drush("sql:query", query, description="Drush sql:query")


def db_sync(s: Session) -> None:
    dest = s.ensure_target()
    with s.preserving_target():
        source = s.choose_target("Select SOURCE site")
    if source is None:
        return
    if not isinstance(source, AliasTarget) or not isinstance(dest, AliasTarget):
        raise ValidationError("Database sync needs site aliases for source and destination.")
    if source == dest:
        raise ValidationError("Source and destination are the same site.")
    if not s.prompter.confirm(
        f"Overwrite the database of {dest.label} with {source.label}?"
    ):
        return
    s.run(
        CommandSpec.of("drush", "sql:sync", source.name, dest.name, "-y"),
        cwd=s.require_drupal_root(),
        description=f"Drush sql:sync {source.label} to {dest.label}",
    )


def db_restore(s: Session) -> None:
    project = s.require_project()
    s.require_drupal_root()
    dump_dir = _dump_dir(s)
    dumps = find_dumps(project.root, str(s.config.get_path("project.dump_dir", "data")))
    if not dumps:
        s.logger.warn(f"No database dump files found in '{dump_dir}'.")
        return
    result = s.menu.select(
        "Select a database dump to restore",
        [MenuItem(d.name, value=d) for d in dumps],
        s.context_lines(),
    )
    if result.cancelled or result.value is None:
        s.logger.warn("No dump file selected. Restoration cancelled.")
        return
    restore = s.restores.run(result.value.value.path)
    if restore.status is RestoreStatus.FAILED:
        s.logger.error(f"Restore failed: {restore.error}")


# ----------------------------------------------------------------
# Search (Solr via search_api)
# ----------------------------------------------------------------


def search_menu(session: Session) -> None:
    if not _enter_drupal(session):
        return
    run_screen(
        session,
        "Search (Solr)",
        lambda: [
            act("List servers", lambda s: s.drush("search-api:server-list")),
            act("List indexes", lambda s: s.drush("search-api:list")),
            act("Index status", lambda s: s.drush("search-api:status")),
            act("Export Solr config", solr_export_config),
            act("Index items", solr_index),
            act("Clear index", solr_clear),
            BACK,
        ],
        on_exit=session.reset_target,
    )


def _search_servers(s: Session) -> list[str]:
    result = s.drush_capture("search-api:server-list", "--format=json")
    data = _json_or_empty(result.stdout) if result.ok else None
    if isinstance(data, dict):
        return list(data.keys())
    if isinstance(data, list):
        return [
            str(row.get("id")) for row in data
            if isinstance(row, dict) and row.get("id")
        ]
    return []


def solr_export_config(s: Session) -> None:
    server = s.menu.choose("Select search server", _search_servers(s), s.context_lines())
    if server is None:
        return
    project = s.require_project()
    dest = Path(
        ask_required(s, "Destination directory", str(project.root / "solr-config"))
    ).expanduser()
    dest.mkdir(parents=True, exist_ok=True)
    s.drush(
        "search-api-solr:get-server-config", server, str(dest / f"{server}-config.zip"),
    )


def solr_index(s: Session) -> None:
    index = s.prompter.ask("Index id (empty for all)")
    args = ["search-api:index"]
    if index:
        args.append(index)
    s.drush(*args, description=f"Search API index {index or 'all'}")


def solr_clear(s: Session) -> None:
    index = s.prompter.ask("Index id (empty for all)")
    if not s.prompter.confirm(f"Clear {'index ' + index if index else 'ALL indexes'}?"):
        return
    args = ["search-api:clear"]
    if index:
        args.append(index)
    s.drush(*args, description=f"Search API clear {index or 'all'}")


# ----------------------------------------------------------------
# IBM Cloud
# ----------------------------------------------------------------


def ibmcloud_menu(session: Session) -> None:
    run_screen(
        session,
        "IBM Cloud",
        lambda: [
            act("Login (SSO)", ibmcloud_login),
            act("Logout", lambda s: s.tool("ibmcloud", "logout")),
            act("List Kubernetes clusters", lambda s: s.tool("ibmcloud", "ks", "clusters")),
            act("Configure kubectl for a cluster", ibmcloud_configure_kubectl),
            BACK,
        ],
    )


def _setting_or_ask(s: Session, key: str, prompt: str) -> str:
    value = s.settings.get(key) or ""
    if value:
        return value
    value = ask_required(s, prompt)
    s.settings.set(key, value)
    s.logger.info(f"Saved {key}={value}")
    return value


def ibmcloud_login(s: Session) -> None:
    s.require_tool("ibmcloud")
    region = _setting_or_ask(s, "IBMCLOUD_REGION", "IBM Cloud region (e.g. eu-de)")
    group = _setting_or_ask(s, "IBMCLOUD_RESOURCE_GROUP", "Resource group")
    args = ["login", "--sso", "-r", region, "-g", group]
    account = s.settings.get("IBMCLOUD_ACCOUNT")
    if account:
        args += ["-c", account]
    s.tool("ibmcloud", *args)


def ibmcloud_clusters(s: Session) -> list[str]:
    result = s.tool_capture("ibmcloud", "ks", "clusters", "--json")
    data = _json_or_empty(result.stdout) if result.ok else None
    if not isinstance(data, list):
        return []
    return [str(c["name"]) for c in data if isinstance(c, dict) and c.get("name")]


def ibmcloud_configure_kubectl(s: Session) -> None:
    s.require_tool("kubectl")
    clusters = ibmcloud_clusters(s)
    if not clusters:
        s.logger.warn("No clusters found. Are you logged in?")
        return
    cluster = s.menu.choose("Select cluster", clusters, s.context_lines())
    if cluster is None:
        return
    if s.tool(
        "ibmcloud", "ks", "cluster", "config",
        "--cluster", cluster, "--admin", "--endpoint", "private",
        description=f"Configure kubectl for {cluster}",
    ) == 0:
        s.tool("kubectl", "config", "current-context")


# ----------------------------------------------------------------
# Kubernetes
# ----------------------------------------------------------------


def _kubectl(s: Session, *args: str, description: str | None = None) -> int:
    ns = ["-n", s.namespace] if s.namespace else []
    return s.tool("kubectl", *ns, *args, description=description)


def _kubectl_json(s: Session, *args: str) -> Any:
    ns = ["-n", s.namespace] if s.namespace else []
    result = s.tool_capture("kubectl", *ns, *args, "-o", "json")
    return _json_or_empty(result.stdout) if result.ok else None


def _names(data: Any) -> list[str]:
    if not isinstance(data, dict):
        return []
    names = []
    for item in data.get("items") or []:
        name = (item.get("metadata") or {}).get("name") if isinstance(item, dict) else None
        if name:
            names.append(str(name))
    return names


def k8s_menu(session: Session) -> None:
    run_screen(
        session,
        "Kubernetes",
        lambda: [
            act("Show current context", lambda s: s.tool("kubectl", "config", "current-context")),
            act(f"Select namespace ({session.namespace or 'default'})", k8s_select_namespace),
            sub(
                "Solr pods",
                lambda s: k8s_pods_menu(
                    s,
                    "Solr",
                    s.config.get_path("k8s.solr_label", "app.kubernetes.io/name=solr"),
                    shell=None,
                ),
            ),
            sub(
                "PostgreSQL pods",
                lambda s: k8s_pods_menu(
                    s,
                    "PostgreSQL",
                    s.config.get_path("k8s.postgres_label", "app.kubernetes.io/name=postgresql"),
                    shell=["psql"],
                ),
            ),
            act("Copy file to pod", k8s_copy_to_pod),
            BACK,
        ],
    )


def k8s_select_namespace(s: Session) -> None:
    namespaces = _names(_kubectl_json(s, "get", "namespaces"))
    if not namespaces:
        s.logger.warn("No namespaces found (is kubectl configured?).")
        return
    choice = s.menu.choose("Select namespace", namespaces, s.context_lines())
    if choice is not None:
        s.namespace = choice
        s.logger.success(f"Namespace set to: {choice}")


def choose_pod(s: Session, label: str | None = None) -> str | None:
    args = ["get", "pods"]
    if label:
        args += ["-l", label]
    pods = _names(_kubectl_json(s, *args))
    if not pods:
        s.logger.warn(f"No pods found{f' for {label}' if label else ''}.")
        return None
    return s.menu.choose("Select pod", pods, s.context_lines())


def choose_container(s: Session, pod: str) -> str | None:
    data = _kubectl_json(s, "get", "pod", pod)
    spec = data.get("spec") if isinstance(data, dict) else None
    containers = [
        str(c["name"]) for c in (spec or {}).get("containers") or []
        if isinstance(c, dict) and c.get("name")
    ]
    if not containers:
        return None
    if len(containers) == 1:
        return containers[0]
    return s.menu.choose(f"Select container in {pod}", containers, s.context_lines())


def k8s_pods_menu(
    session: Session, title: str, label: str, shell: list[str] | None
) -> None:
    def items() -> list[MenuItem]:
        entries = [
            act("List pods", lambda s: _kubectl(s, "get", "pods", "-l", label)),
            act("Follow logs (Ctrl-C to stop)", lambda s: k8s_logs(s, label)),
        ]
        if shell:
            entries.append(act(f"Open {shell[0]} shell", lambda s: k8s_exec(s, label, shell)))
        else:
            entries.append(act("Restart pod", lambda s: k8s_restart(s, label)))
        entries.append(BACK)
        return entries

    run_screen(session, f"{title} pods", items)


def k8s_logs(s: Session, label: str) -> None:
    pod = choose_pod(s, label)
    if pod is None:
        return
    container = choose_container(s, pod)
    args = ["logs", "-f", pod]
    if container:
        args += ["-c", container]
    _kubectl(s, *args)


def k8s_exec(s: Session, label: str, shell: list[str]) -> None:
    pod = choose_pod(s, label)
    if pod is None:
        return
    container = choose_container(s, pod)
    args = ["exec", "-it", pod]
    if container:
        args += ["-c", container]
    _kubectl(s, *args, "--", *shell)


def k8s_restart(s: Session, label: str) -> None:
    pod = choose_pod(s, label)
    if pod is None:
        return
    if s.prompter.confirm(f"Delete pod {pod} so that it is recreated?"):
        _kubectl(s, "delete", "pod", pod, description=f"Restart pod {pod}")


def k8s_copy_to_pod(s: Session) -> None:
    local = Path(ask_required(s, "Local file path")).expanduser()
    if not local.exists():
        raise ValidationError(f"{local} does not exist.")
    pod = choose_pod(s)
    if pod is None:
        return
    container = choose_container(s, pod)
    remote = ask_required(s, "Destination path in pod", f"/tmp/{local.name}")
    pod_ref = f"{s.namespace}/{pod}" if s.namespace else pod
    args = ["cp", str(local), f"{pod_ref}:{remote}"]
    if container:
        args += ["-c", container]
    s.tool("kubectl", *args, description=f"Copy {local.name} to {pod}")


# ----------------------------------------------------------------
# Settings
# ----------------------------------------------------------------


def settings_menu(session: Session) -> None:
    def items() -> list[MenuItem]:
        entries = []
        for key in session.settings.keys():
            value = session.settings.get(key) or ""
            entries.append(
                MenuItem(f"{key}: {value}", _setting_editor(key), SUBMENU)
            )
        entries.append(BACK)
        return entries

    run_screen(session, "Settings", items)


def _setting_editor(key: str) -> Handler:
    def edit(s: Session) -> None:
        current = s.settings.get(key) or ""
        if key in BOOL_SETTINGS:
            value = "false" if s.settings.get_bool(key) else "true"
        elif key == "LOG_LEVEL":
            choice = s.menu.choose("Log level", list(LEVELS), s.context_lines())
            if choice is None:
                return
            value = choice
        else:
            value = s.prompter.ask(key, current)
        s.settings.set(key, value)
        apply_settings(s)
        s.logger.info(f"{key} set to {value!r}")

    return edit


def apply_settings(s: Session) -> None:
    """Push persisted settings into the live session."""
    s.logger.set_level(s.settings.log_level)
    s.history.enabled = s.settings.get_bool("ENABLE_HISTORY", True)


# ----------------------------------------------------------------
# History
# ----------------------------------------------------------------


def history_menu(session: Session) -> None:
    limit = int(session.config.get_path("history.display_limit", 100))

    if not session.history.recent(1):
        session.logger.info("History is empty.")

    def items() -> list[MenuItem]:
        entries = [
            MenuItem(_history_label(e), _replayer(e), ACTION)
            for e in session.history.recent(limit)
        ]
        entries.append(act("Clear history", clear_history))
        entries.append(BACK)
        return entries

    run_screen(session, "History", items)


def _history_label(entry: HistoryEntry) -> str:
    where = "" if entry.context == GLOBAL else f" [{Path(entry.context).name}]"
    return f"{entry.timestamp}{where} {entry.description}"


def _replayer(entry: HistoryEntry) -> Handler:
    def replay(s: Session) -> None:
        cwd = s.history.replay_cwd(entry, s.cwd)
        if entry.context != GLOBAL and cwd != Path(entry.context):
            s.logger.warn(f"{entry.context} no longer exists; running in {cwd}")
        if s.prompter.confirm(f"Run again: {entry.command} (in {cwd})?"):
            s.history.replay(entry, s.executor, s.cwd)

    return replay


def clear_history(s: Session) -> None:
    if s.prompter.confirm("Delete the whole history?"):
        s.history.clear()
        s.logger.success("History cleared.")


# ----------------------------------------------------------------
# Favorites
# ----------------------------------------------------------------


def favorites_menu(session: Session) -> None:
    def items() -> list[MenuItem]:
        try:
            favorites = session.favorites.load()
        except ConfigError as e:
            session.logger.warn(f"{e}; fix it with 'Edit favorites file'.")
            favorites = []
        entries = [
            MenuItem(f"{fav.name}: {fav.command}", _favorite_runner(fav), ACTION)
            for fav in favorites
        ]
        entries.append(act("Edit favorites file", edit_favorites))
        entries.append(BACK)
        return entries

    run_screen(session, "Favorites", items)


def _favorite_runner(fav: FavoriteDefinition) -> Handler:
    def run(s: Session) -> None:
        run_favorite(s, fav)

    return run


def run_favorite(s: Session, fav: FavoriteDefinition) -> int:
    if fav.cwd is not None:
        if not fav.cwd.is_dir():
            raise ValidationError(f"Favorite '{fav.name}': {fav.cwd} is not a directory.")
        cwd = fav.cwd
    elif s.project is not None:
        cwd = s.project.root
    else:
        cwd = s.cwd
    s.require_tool(fav.command.program)
    return s.run(fav.command, cwd=cwd, description=f"Favorite: {fav.name}")


def edit_favorites(s: Session) -> None:
    s.favorites.ensure_file()
    editor = CommandSpec.parse(os.environ.get("EDITOR") or "vi")
    s.run(editor.with_args(str(s.favorites.path)))
