"""
Tests for drush target discovery, matching and selection.
"""

from __future__ import annotations

import pytest

from conftest import FakeExecutor, RecordingRenderer, ScriptedKeyReader, pick
from drupal_ops.keys import ESCAPE
from drupal_ops.log import Logger
from drupal_ops.menu import SelectionMenu
from drupal_ops.targets import (
    ALL_SITES,
    SELF,
    AliasTarget,
    TargetResolver,
    UriTarget,
    match_targets,
    parse_alias_json,
    parse_sites_php,
    scan_site_dirs,
    scoped,
)

SA = ("drush", "sa", "--format=json")
STATUS = ("drush", "status", "--format=json")


@pytest.fixture
def web(tmp_path):
    root = tmp_path / "web"
    (root / "sites" / "default").mkdir(parents=True)
    return root


def make_resolver(executor, keys=()):
    reader = ScriptedKeyReader(keys)
    menu = SelectionMenu(reader, RecordingRenderer())
    return TargetResolver(executor, menu, Logger(write=lambda _: None)), reader


# ----------------------------------------------------------------
# Target values
# ----------------------------------------------------------------


def test_alias_gets_at_prefix():
    assert AliasTarget("sitea") == AliasTarget("@sitea")
    assert AliasTarget("sitea").label == "@sitea"


def test_invocations():
    assert scoped(AliasTarget("@a"), ["status"]) == ["drush", "@a", "status"]
    assert scoped(UriTarget("a.test"), ["status"]) == ["drush", "--uri=a.test", "status"]
    assert scoped(ALL_SITES, ["cr"]) == ["drush", "@sites", "cr"]


# ----------------------------------------------------------------
# Parsers
# ----------------------------------------------------------------


def test_parse_alias_json_skips_self_and_none():
    text = '{"@self": {}, "@none": {}, "@sitea.prod": {}, "siteb": {}}'

    assert parse_alias_json(text) == ["@sitea.prod", "@siteb"]


def test_parse_alias_json_rejects_garbage():
    with pytest.raises(ValueError):
        parse_alias_json("not json")


def test_parse_sites_php_ignores_comments():
    text = """<?php
// $sites['old.example.com'] = 'old';
$sites['a.example.com'] = 'a';
$sites["b.example.com"] = 'b';
 * $sites['doc.example.com'] = 'doc';
$sites['a.example.com'] = 'a';
"""
    assert parse_sites_php(text) == ["a.example.com", "b.example.com"]


def test_scan_site_dirs_needs_settings_php(web):
    (web / "sites" / "default" / "settings.php").write_text("")
    (web / "sites" / "sitea").mkdir()
    (web / "sites" / "sitea" / "settings.php").write_text("")
    (web / "sites" / "empty").mkdir()

    assert scan_site_dirs(web) == ["sitea"]


# ----------------------------------------------------------------
# Matching dumps to sites
# ----------------------------------------------------------------


def test_match_by_normalized_stem():
    candidates = [SELF, AliasTarget("@sitea"), AliasTarget("@siteb"), ALL_SITES]

    assert match_targets("site_a", candidates) == [AliasTarget("@sitea")]


def test_match_uri_host():
    candidates = [UriTarget("https://site-a.example.com"), UriTarget("other.test")]

    assert match_targets("site_a", candidates) == [UriTarget("https://site-a.example.com")]


def test_match_never_returns_self_or_all_sites():
    assert match_targets("self", [SELF, ALL_SITES]) == []


def test_short_stems_do_not_match():
    assert match_targets("ab", [AliasTarget("@abc")]) == []


# ----------------------------------------------------------------
# Resolver
# ----------------------------------------------------------------


def test_candidates_order_and_dedupe(web):
    executor = FakeExecutor()
    executor.captures[SA] = '{"@sitea": {}, "@siteb": {}}'
    (web / "sites" / "sites.php").write_text(
        "<?php\n$sites['a.example.com'] = 'sitea';\n"
    )
    resolver, _ = make_resolver(executor)

    assert resolver.candidates(web) == [
        SELF,
        AliasTarget("@sitea"),
        AliasTarget("@siteb"),
        UriTarget("a.example.com"),
        ALL_SITES,
    ]


def test_sites_php_wins_over_directory_scan(web):
    executor = FakeExecutor()
    (web / "sites" / "sites.php").write_text("<?php\n$sites['a.test'] = 'a';\n")
    (web / "sites" / "guess").mkdir()
    (web / "sites" / "guess" / "settings.php").write_text("")
    resolver, _ = make_resolver(executor)

    assert resolver.site_uris(web) == ["a.test"]


def test_directory_scan_is_fallback(web):
    executor = FakeExecutor()
    executor.captures[STATUS] = '{"uri": "http://main.test"}'
    (web / "sites" / "guess").mkdir()
    (web / "sites" / "guess" / "settings.php").write_text("")
    resolver, _ = make_resolver(executor)

    assert resolver.site_uris(web) == ["http://main.test", "guess"]


def test_default_status_uri_is_ignored(web):
    executor = FakeExecutor()
    executor.captures[STATUS] = '{"uri": "http://default"}'
    resolver, _ = make_resolver(executor)

    assert resolver.status_uri(web) is None


def test_failed_alias_query_yields_no_aliases(web):
    resolver, _ = make_resolver(FakeExecutor())

    assert resolver.candidates(web) == [SELF, ALL_SITES]


def test_select_returns_chosen_target(web):
    candidates = [SELF, AliasTarget("@sitea"), ALL_SITES]
    resolver, _ = make_resolver(FakeExecutor(), pick(1))

    assert resolver.select(candidates) == AliasTarget("@sitea")


def test_select_cancel_returns_none():
    resolver, _ = make_resolver(FakeExecutor(), [ESCAPE])

    assert resolver.select([SELF, ALL_SITES]) is None


def test_resolve_scoped_single_candidate_reads_no_keys():
    resolver, reader = make_resolver(FakeExecutor())

    assert resolver.resolve_scoped([AliasTarget("@sitea")]) == AliasTarget("@sitea")
    assert reader.reads == 0


def test_resolve_scoped_empty_is_none():
    resolver, _ = make_resolver(FakeExecutor())

    assert resolver.resolve_scoped([]) is None
