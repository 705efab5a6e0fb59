from __future__ import annotations

import json

import pytest

from trade_dashboard.config.app_config import RulesSettings
from trade_dashboard.storage.rules import (
    DEFAULT_RULES,
    RULES_KEY,
    JsonRuleRepository,
    RuleNotFoundError,
    SqliteRuleRepository,
    open_rule_repository,
)
from trade_dashboard.storage.sqlite_store import connect, init_db


@pytest.fixture
def conn(tmp_path):
    connection = connect(tmp_path / "journal.sqlite")
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture(params=["sqlite", "json"])
def repo(request, conn, tmp_path):
    if request.param == "sqlite":
        return SqliteRuleRepository(conn)
    return JsonRuleRepository(tmp_path / "kv" / "store.json")


class TestRuleRepository:
    def test_defaults_seeded_once(self, repo):
        rules = repo.list_rules()
        assert [(rule.name, rule.impact) for rule in rules] == list(DEFAULT_RULES)
        assert [rule.rule_id for rule in repo.list_rules()] == [rule.rule_id for rule in rules]

    def test_add_and_delete(self, repo):
        added = repo.add_rule("  No revenge trades ")
        assert added.name == "No revenge trades"
        assert repo.list_rules()[-1].rule_id == added.rule_id
        removed = repo.delete_rule(added.rule_id)
        assert removed.name == "No revenge trades"
        assert len(repo.list_rules()) == len(DEFAULT_RULES)

    def test_blank_name_rejected(self, repo):
        with pytest.raises(ValueError):
            repo.add_rule("   ")

    def test_delete_unknown(self, repo):
        with pytest.raises(RuleNotFoundError):
            repo.delete_rule("nope")

    def test_clear_does_not_reseed(self, repo):
        repo.list_rules()
        repo.clear()
        assert repo.list_rules() == []


def test_json_store_keeps_other_keys(tmp_path):
    path = tmp_path / "store.json"
    path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")
    JsonRuleRepository(path).add_rule("Follow trade plan")
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["theme"] == "dark"
    assert stored[RULES_KEY][-1]["name"] == "Follow trade plan"
    assert set(stored[RULES_KEY][0]) == {"id", "name", "followedCount", "notFollowedCount", "impact"}


def test_open_rule_repository_picks_backend(tmp_path, conn):
    json_repo = open_rule_repository(RulesSettings(backend="json", json_path=tmp_path / "r.json"), lambda: conn)
    sqlite_repo = open_rule_repository(RulesSettings(backend="sqlite", json_path=tmp_path / "r.json"), lambda: conn)
    assert isinstance(json_repo, JsonRuleRepository)
    assert isinstance(sqlite_repo, SqliteRuleRepository)
    with pytest.raises(ValueError):
        open_rule_repository(RulesSettings(backend="redis", json_path=tmp_path / "r.json"), lambda: conn)
