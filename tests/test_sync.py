# /tests/test_sync.py
"""
Unit tests for the update run

Tests rule merging across sources, output rendering, the default-source
fallback and per-source failure handling.
"""

import logging

import pytest

from conftest import INDEX_URL, index_yaml, make_encrypted_zip, make_tar_gz, make_zip, write_file
from rulesync.errors import ConsistencyError, ProtocolError
from rulesync.models import EnabledSourceRecord, RuleRecord, UpdateStage
from rulesync.parser import parse_rule_line
from rulesync.sync import merge_rules, render_rules, write_rules

ET_URL = "https://rules.example/et.tar.gz"
PT_URL = "https://rules.example/pt.tar.gz"
ZIP_URL = "https://rules.example/zipped.zip"

INDEX = index_yaml({
    "et/open": {"vendor": "proofpoint/et", "summary": "ET Open", "url": ET_URL},
    "pt/open": {"vendor": "pt/research", "summary": "PT Open", "url": PT_URL},
    "zip/src": {"vendor": "zipper", "summary": "Zipped", "url": ZIP_URL},
})


def rule(sid, rev=1, gid=None, enabled=True, msg="m"):
    gid_part = f" gid:{gid};" if gid is not None else ""
    line = f'alert ip any any -> any any (msg:"{msg}"; sid:{sid}; rev:{rev};{gid_part})'
    if not enabled:
        line = "# " + line
    return parse_rule_line(line)


def rules_file(*lines):
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def cached_index(index_cache):
    write_file(index_cache.index_path, INDEX)
    return index_cache


class TestMergeRules:
    """Test cases for cross-source merging"""

    def test_higher_rev_replaces(self):
        merged = merge_rules({}, [rule(100, rev=2, msg="old")])
        merge_rules(merged, [rule(100, rev=5, msg="new")])
        assert merged[(1, 100)].rev == 5
        assert merged[(1, 100)].msg == "new"

    def test_lower_rev_ignored(self):
        merged = merge_rules({}, [rule(100, rev=5, msg="first")])
        merge_rules(merged, [rule(100, rev=2, msg="second")])
        assert merged[(1, 100)].msg == "first"

    def test_equal_rev_keeps_earlier(self):
        """Test that on a rev tie the rule seen first stays"""
        merged = merge_rules({}, [rule(100, rev=3, msg="first")])
        merge_rules(merged, [rule(100, rev=3, msg="second")])
        assert merged[(1, 100)].msg == "first"

    def test_gid_distinguishes_rules(self):
        merged = merge_rules({}, [rule(100, gid=1), rule(100, gid=2)])
        assert sorted(merged) == [(1, 100), (2, 100)]

    def test_disabled_higher_rev_wins(self):
        merged = merge_rules({}, [rule(100, rev=1)])
        merge_rules(merged, [rule(100, rev=2, enabled=False)])
        assert merged[(1, 100)].enabled is False


class TestRenderRules:
    """Test cases for the output file"""

    def test_only_enabled_sorted_by_gid_then_sid(self):
        rules = {r.key: r for r in [rule(30), rule(10, gid=2), rule(20), rule(5, enabled=False)]}

        lines = render_rules(rules).splitlines()

        assert [parse_rule_line(line).key for line in lines] == [(1, 20), (1, 30), (2, 10)]

    def test_trailing_newline(self):
        text = render_rules({(1, 1): rule(1)})
        assert text.endswith(")\n")

    def test_empty(self):
        assert render_rules({}) == ""
        assert render_rules({(1, 1): rule(1, enabled=False)}) == ""

    def test_write_rules(self, tmp_path):
        output = tmp_path / "rules" / "suricata.rules"
        rules = {(1, 1): rule(1), (1, 2): rule(2, enabled=False)}

        assert write_rules(rules, output) == 1
        assert output.read_text().count("\n") == 1

    def test_write_is_idempotent(self, tmp_path):
        output = tmp_path / "suricata.rules"
        rules = {(1, 2): rule(2), (1, 1): rule(1)}

        write_rules(rules, output)
        first = output.read_bytes()
        write_rules(rules, output)

        assert output.read_bytes() == first


class TestUpdateManager:
    """Test cases for a full update run"""

    def test_two_sources_merge(self, updater, cached_index, rulesets, session):
        """Test that a higher rev in a later source replaces the earlier rule"""
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        rulesets.store.create(EnabledSourceRecord(source="pt/open"))
        session.add(ET_URL, make_tar_gz({"rules/et.rules": rules_file(
            'alert ip any any -> any any (msg:"ET"; sid:100; rev:2;)',
            'alert ip any any -> any any (msg:"ET only"; sid:200; rev:1;)',
        )}))
        session.add(PT_URL, make_tar_gz({"rules/pt.rules": rules_file(
            'alert ip any any -> any any (msg:"PT"; sid:100; rev:5;)',
        )}))

        result = updater.run_update()

        output = updater.output_path.read_text().splitlines()
        assert output == [
            'alert ip any any -> any any (msg:"PT"; sid:100; rev:5;)',
            'alert ip any any -> any any (msg:"ET only"; sid:200; rev:1;)',
        ]
        assert result.total_rules == 2
        assert result.rules_written == 2
        assert result.all_success
        assert [s.rules_loaded for s in result.sources] == [2, 1]
        assert updater.stage == UpdateStage.WRITTEN

    def test_higher_rev_in_earlier_source_kept(self, updater, cached_index, rulesets, session):
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        rulesets.store.create(EnabledSourceRecord(source="pt/open"))
        session.add(ET_URL, make_tar_gz({"et.rules": rules_file(
            'alert ip any any -> any any (msg:"ET"; sid:100; rev:5;)',
        )}))
        session.add(PT_URL, make_tar_gz({"pt.rules": rules_file(
            'alert ip any any -> any any (msg:"PT"; sid:100; rev:2;)',
        )}))

        updater.run_update()

        assert updater.output_path.read_text().splitlines() == [
            'alert ip any any -> any any (msg:"ET"; sid:100; rev:5;)',
        ]

    def test_equal_rev_earliest_source_wins(self, updater, cached_index, rulesets, session):
        """Test that on a rev tie the source listed first keeps its rule"""
        rulesets.store.create(EnabledSourceRecord(source="pt/open"))
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        session.add(ET_URL, make_tar_gz({"et.rules": rules_file(
            'alert ip any any -> any any (msg:"ET"; sid:100; rev:3;)',
        )}))
        session.add(PT_URL, make_tar_gz({"pt.rules": rules_file(
            'alert ip any any -> any any (msg:"PT"; sid:100; rev:3;)',
        )}))

        result = updater.run_update()

        assert [s.source for s in result.sources] == ["et/open", "pt/open"]
        assert updater.output_path.read_text().splitlines() == [
            'alert ip any any -> any any (msg:"ET"; sid:100; rev:3;)',
        ]

    def test_only_rule_files_parsed(self, updater, cached_index, rulesets, session):
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        session.add(ET_URL, make_tar_gz({
            "rules/et.rules": rules_file("alert ip any any -> any any (sid:1;)"),
            "rules/sid-msg.map": rules_file("alert ip any any -> any any (sid:2;)"),
        }))

        result = updater.run_update()

        assert result.total_rules == 1

    def test_last_duplicate_within_source_wins(self, updater, cached_index, rulesets, session):
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        session.add(ET_URL, make_tar_gz({"rules/et.rules": rules_file(
            'alert ip any any -> any any (msg:"first"; sid:1; rev:9;)',
            'alert ip any any -> any any (msg:"second"; sid:1; rev:1;)',
        )}))

        updater.run_update()

        assert 'msg:"second"' in updater.output_path.read_text()

    def test_disabled_rules_not_written(self, updater, cached_index, rulesets, session):
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        session.add(ET_URL, make_tar_gz({"rules/et.rules": rules_file(
            "alert ip any any -> any any (sid:1;)",
            "# alert ip any any -> any any (sid:2;)",
        )}))

        result = updater.run_update()

        assert result.total_rules == 2
        assert result.rules_written == 1
        assert "sid:2" not in updater.output_path.read_text()

    def test_zip_source(self, updater, cached_index, rulesets, session):
        rulesets.store.create(EnabledSourceRecord(source="zip/src"))
        session.add(ZIP_URL, make_zip({"zipped.rules": rules_file("drop ip any any -> any any (sid:7;)")}))

        result = updater.run_update()

        assert result.rules_written == 1

    def test_fallback_not_persisted(self, updater, cached_index, paths, session, caplog):
        """Test that the default source is used without writing a marker"""
        session.add(ET_URL, make_tar_gz({"rules/et.rules": rules_file("alert ip any any -> any any (sid:1;)")}))

        with caplog.at_level(logging.INFO):
            result = updater.run_update(quiet=True)

        assert result.fallback_used
        assert result.rules_written == 1
        assert "will use et/open as fallback" in caplog.text
        assert not paths.sources_dir().exists()

    def test_missing_source_skipped(self, updater, cached_index, rulesets, session, caplog):
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        rulesets.store.create(EnabledSourceRecord(source="gone/src"))
        session.add(ET_URL, make_tar_gz({"rules/et.rules": rules_file("alert ip any any -> any any (sid:1;)")}))

        with caplog.at_level(logging.WARNING):
            result = updater.run_update()

        assert "Source gone/src not found in index" in caplog.text
        assert result.rules_written == 1
        failed = [s for s in result.sources if not s.success]
        assert [s.source for s in failed] == ["gone/src"]

    def test_source_failure_not_fatal(self, updater, cached_index, rulesets, session):
        """Test that a broken source is skipped and the rest still written"""
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        rulesets.store.create(EnabledSourceRecord(source="pt/open"))
        session.add(ET_URL, b"not an archive")
        session.add(PT_URL, make_tar_gz({"pt.rules": rules_file("alert ip any any -> any any (sid:3;)")}))

        result = updater.run_update()

        assert not result.all_success
        assert result.sources[0].success is False
        assert "Corrupt archive" in result.sources[0].error
        assert result.rules_written == 1

    def test_encrypted_zip_source_not_fatal(self, updater, cached_index, rulesets, session):
        """Test that a password-protected archive only drops its own source"""
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        rulesets.store.create(EnabledSourceRecord(source="zip/src"))
        session.add(ET_URL, make_tar_gz({"et.rules": rules_file("alert ip any any -> any any (sid:1;)")}))
        session.add(ZIP_URL, make_encrypted_zip("a.rules", rules_file("alert ip any any -> any any (sid:2;)")))

        result = updater.run_update()

        assert [s.success for s in result.sources] == [True, False]
        assert "encrypted" in result.sources[1].error
        assert updater.output_path.read_text() == "alert ip any any -> any any (sid:1;)\n"

    def test_download_failure_not_fatal(self, updater, cached_index, rulesets, session):
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        session.add(ET_URL, b"", status_code=500)

        result = updater.run_update()

        assert not result.all_success
        assert updater.output_path.read_text() == ""

    def test_index_failure_aborts(self, updater, session):
        session.add(INDEX_URL, "oops", status_code=503)
        with pytest.raises(ProtocolError) as exc_info:
            updater.run_update()
        assert exc_info.value.status_code == 503
        assert not updater.output_path.exists()

    def test_missing_index_after_refresh(self, updater, index_cache, monkeypatch):
        monkeypatch.setattr(index_cache, "refresh", lambda force=False, quiet=False: None)
        with pytest.raises(ConsistencyError):
            updater.run_update()

    def test_rerun_is_idempotent(self, updater, cached_index, rulesets, session):
        rulesets.store.create(EnabledSourceRecord(source="et/open"))
        session.add(ET_URL, make_tar_gz({"et.rules": rules_file(
            "alert ip any any -> any any (sid:2;)",
            "alert ip any any -> any any (sid:1;)",
        )}))

        updater.run_update()
        first = updater.output_path.read_bytes()
        session.add(INDEX_URL, INDEX)
        updater.run_update(force=True)

        assert updater.output_path.read_bytes() == first

    def test_record_overrides_used(self, updater, cached_index, rulesets, session):
        mirror = "https://mirror.example/et.tar.gz"
        rulesets.store.create(EnabledSourceRecord(source="et/open", url=mirror, http_header="X-Key: k"))
        session.add(mirror, make_tar_gz({"et.rules": rules_file("alert ip any any -> any any (sid:1;)")}))

        updater.run_update()

        assert session.calls[-1]["url"] == mirror
        assert session.calls[-1]["headers"] == {"X-Key": "k"}


class TestRuleRecord:
    def test_defaults(self):
        record = RuleRecord(raw="alert ...", enabled=True, sid=5)
        assert record.key == (1, 5)
        assert record.rev == 1
