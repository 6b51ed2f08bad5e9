"""
Engine Facade and CLI Tests
===========================

Verifies:
1. EngineConfig defaults and environment overrides
2. Each public operation is wired through to its layer
3. Metrics and the unified audit log see every layer
4. The command-line entry point reads records files and emits JSON
"""

import json

import pytest

from content_intelligence import ContentIntelligenceEngine, EngineConfig
from content_intelligence.__main__ import load_records, main
from content_intelligence.contracts import (
    AuditEventType, ContentKind, ContentRecord, ErrorCode
)
from content_intelligence.moderation import CommentContext
from content_intelligence.recommendation import UserHistory

from fixtures import (
    BENIGN_ARTICLE, FRIENDLY_COMMENT, NOW, TOXIC_TEXT, gardening_corpus, make_record
)


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()
        assert config.index.staleness_seconds == 3600.0
        assert config.moderation.fail_closed is False
        assert config.recommendation.trending_window_hours == 24.0
        assert config.clustering.threshold == 0.7
        assert config.search.max_suggestions == 10
        assert config.tagging.max_tags == 10

    def test_from_env(self):
        config = EngineConfig.from_env({
            'CIE_INDEX_STALENESS_SECONDS': '60',
            'CIE_INDEX_MAX_DOCUMENTS': '50',
            'CIE_TRENDING_WINDOW_HOURS': '48',
            'CIE_MODERATION_FAIL_CLOSED': 'yes',
        })
        assert config.index.staleness_seconds == 60.0
        assert config.index.max_documents == 50
        assert config.recommendation.trending_window_hours == 48.0
        assert config.moderation.fail_closed is True

    def test_from_env_audit_bound(self):
        config = EngineConfig.from_env({'CIE_AUDIT_MAX_ENTRIES': '25'})
        assert config.observability.max_entries_per_layer == 25
        assert config.observability.max_points_per_metric == 25

    def test_from_env_ignores_unrelated_variables(self):
        config = EngineConfig.from_env({'HOME': '/root'})
        assert config.index.max_documents == 1000


class TestOperations:

    def test_search_builds_index_lazily(self):
        engine = ContentIntelligenceEngine()
        corpus = gardening_corpus()
        assert engine.index.is_empty

        engine.search("tomato", corpus, now=NOW)
        engine.search("funds", corpus, now=NOW)
        assert engine.index.document_count == 5
        assert len(engine.get_metrics().get_metric("index_rebuilds_total")) == 1

    def test_search_content_type(self):
        engine = ContentIntelligenceEngine()
        result = engine.search(
            "tomato", gardening_corpus(), content_type=ContentKind.SERIES, now=NOW
        )
        assert result.records == ()

    def test_auto_tag(self):
        engine = ContentIntelligenceEngine()
        tags = engine.auto_tag(BENIGN_ARTICLE)
        assert "tomatoes" in tags
        entry = engine.get_audit_log(layers=["search"])[-1]
        assert entry.action == "auto_tag"

    def test_screen_content_records_metrics(self):
        engine = ContentIntelligenceEngine()
        assert engine.screen_content(BENIGN_ARTICLE).is_approved
        assert not engine.screen_content(TOXIC_TEXT).is_approved

        metrics = engine.get_metrics()
        assert len(metrics.get_metric("moderation_duration_ms")) == 2
        rejections = metrics.get_metric("moderation_rejections_total")
        assert len(rejections) == 1
        assert rejections[0].labels == (("content_kind", "article"),)

    def test_moderate_comment(self):
        engine = ContentIntelligenceEngine()
        verdict = engine.moderate_comment(
            FRIENDLY_COMMENT, CommentContext(reported_comments=6, spam_comments=4)
        )
        assert not verdict.is_approved
        rejections = engine.get_metrics().get_metric("moderation_rejections_total")
        assert rejections[0].labels == (("content_kind", "comment"),)

    def test_fail_closed_from_config(self):
        config = EngineConfig.from_env({'CIE_MODERATION_FAIL_CLOSED': 'true'})
        engine = ContentIntelligenceEngine(config)
        # nothing fails, so fail-closed changes nothing
        assert engine.screen_content(BENIGN_ARTICLE).is_approved

    def test_recommend(self):
        engine = ContentIntelligenceEngine()
        corpus = gardening_corpus()
        history = UserHistory("zoe", (corpus[0],), total_likes=3)
        result = engine.recommend("zoe", corpus, history, now=NOW)
        assert result.profile.preferred_categories == ("gardening",)
        assert "garden-1" not in [s.record_id for s in result.primary]
        assert result.trending
        assert engine.get_metrics().get_latest("recommendation_duration_ms") is not None

    def test_cluster_groups_near_duplicates(self):
        engine = ContentIntelligenceEngine()
        clusters = engine.cluster(gardening_corpus())
        assert len(clusters) == 1
        assert clusters[0].member_ids == ("garden-1", "garden-2", "garden-3")
        assert clusters[0].centroid == pytest.approx(2 / 3)
        assert engine.get_metrics().get_latest("clusters_found").value == 1

    def test_cluster_does_not_touch_shared_index(self):
        engine = ContentIntelligenceEngine()
        engine.cluster(gardening_corpus())
        assert engine.index.is_empty


class TestObservability:

    def test_unified_log_covers_layers(self):
        engine = ContentIntelligenceEngine()
        corpus = gardening_corpus()
        engine.search("tomato", corpus, now=NOW)
        engine.screen_content(BENIGN_ARTICLE)
        engine.recommend("zoe", corpus, now=NOW)
        engine.cluster(corpus)

        layers = {entry.layer for entry in engine.get_audit_log()}
        assert {"indexing", "search", "moderation", "recommendation", "clustering"} <= layers

        report = engine.get_audit_report()
        assert report['total_entries'] == len(engine.get_audit_log())
        assert report['by_event_type'][AuditEventType.MODERATION.value] == 1

    def test_unified_log_is_chronological(self):
        engine = ContentIntelligenceEngine()
        engine.screen_content(BENIGN_ARTICLE)
        engine.search("tomato", gardening_corpus(), now=NOW)
        timestamps = [e.timestamp.value for e in engine.get_audit_log()]
        assert timestamps == sorted(timestamps)


class TestCommandLine:

    @pytest.fixture
    def records_file(self, tmp_path):
        path = tmp_path / "records.json"
        path.write_text(json.dumps([r.to_dict() for r in gardening_corpus()]))
        return path

    def test_load_records_accepts_json_lines(self, tmp_path):
        path = tmp_path / "records.jsonl"
        path.write_text("\n".join(json.dumps(r.to_dict()) for r in gardening_corpus()))
        records = load_records(str(path))
        assert [r.record_id for r in records] == [r.record_id for r in gardening_corpus()]
        assert records[0].tags == frozenset({"gardening", "tomatoes"})

    def test_screen_exit_codes(self, tmp_path, capsys):
        clean = tmp_path / "clean.md"
        clean.write_text(BENIGN_ARTICLE)
        toxic = tmp_path / "toxic.txt"
        toxic.write_text(TOXIC_TEXT)

        assert main(["screen", str(clean)]) == 0
        assert json.loads(capsys.readouterr().out)['is_approved'] is True

        assert main(["screen", str(toxic)]) == 1
        assert "toxic" in json.loads(capsys.readouterr().out)['flags']

    def test_tag(self, tmp_path, capsys):
        path = tmp_path / "post.md"
        path.write_text(BENIGN_ARTICLE)
        assert main(["tag", str(path)]) == 0
        assert "tomatoes" in json.loads(capsys.readouterr().out)['tags']

    def test_search(self, records_file, capsys):
        assert main(["search", "index funds", "--records", str(records_file), "--limit", "2"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert len(output['records']) == 2
        assert output['records'][0]['id'] == "finance-1"

    def test_cluster(self, records_file, capsys):
        assert main(["cluster", "--records", str(records_file)]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output['clusters'][0]['members'] == ["garden-1", "garden-2", "garden-3"]

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 2
        assert "usage" in capsys.readouterr().out

    def test_invalid_rows_are_skipped(self, tmp_path, capsys):
        path = tmp_path / "mixed.jsonl"
        rows = [r.to_dict() for r in gardening_corpus()[:2]]
        rows.insert(1, {"title": "no id"})
        rows.append({"id": "c1", "kind": "comment"})
        rows.append({"id": "null-text", "title": None, "body": None})
        path.write_text("\n".join(json.dumps(row) for row in rows))

        records = load_records(str(path))
        assert [r.record_id for r in records] == ["garden-1", "garden-2"]
        assert capsys.readouterr().err.count("INVALID_RECORD") == 3

    def test_search_survives_null_text_rows(self, tmp_path, capsys):
        path = tmp_path / "records.json"
        rows = [r.to_dict() for r in gardening_corpus()]
        rows.append({"id": "null-text", "title": None, "body": None})
        path.write_text(json.dumps(rows))

        assert main(["search", "tomato", "--records", str(path)]) == 0
        captured = capsys.readouterr()
        ids = [r["id"] for r in json.loads(captured.out)["records"]]
        assert "null-text" not in ids
        assert "INVALID_RECORD" in captured.err


class TestStopWordFile:

    def test_engine_uses_configured_file(self, tmp_path):
        path = tmp_path / "stop.txt"
        path.write_text("# domain noise\ntomato\ntomatoes\n")
        engine = ContentIntelligenceEngine(
            EngineConfig.from_env({'CIE_STOP_WORDS_FILE': str(path)})
        )
        assert engine.normalizer.stop_words == frozenset({"tomato", "tomatoes"})
        assert "tomatoes" not in engine.normalizer.keywords(BENIGN_ARTICLE)

    def test_missing_file_falls_back_and_is_audited(self, tmp_path):
        config = EngineConfig.from_env({'CIE_STOP_WORDS_FILE': str(tmp_path / "absent.txt")})
        engine = ContentIntelligenceEngine(config)
        assert "the" in engine.normalizer.stop_words

        errors = engine.get_audit_log(layers=["normalization"])
        assert len(errors) == 1
        assert errors[0].action == "missing_stop_words"


class TestRecordParsing:

    def test_valid_mapping(self):
        result = ContentRecord.parse(gardening_corpus()[0].to_dict())
        assert result.is_success
        assert result.value.record_id == "garden-1"

    @pytest.mark.parametrize("row", [
        {"id": "t", "title": None, "body": "text"},
        {"id": "b", "title": "Title", "body": None},
        {"id": "n", "title": 42, "body": "text"},
        {"id": "c", "title": "Title", "body": "text", "category": ["a"]},
    ])
    def test_non_string_text_fields_are_invalid(self, row):
        result = ContentRecord.parse(row)
        assert result.is_failure
        assert result.error.code == ErrorCode.INVALID_RECORD
        assert ("id", row["id"]) in result.error.context

    def test_constructor_rejects_non_string_body(self):
        with pytest.raises(ValueError):
            make_record("x", body=None)


class TestLongRunningProcess:

    def test_audit_and_metrics_stay_bounded(self):
        engine = ContentIntelligenceEngine(EngineConfig.from_env({'CIE_AUDIT_MAX_ENTRIES': '50'}))
        for _ in range(120):
            engine.screen_content("hello world")

        assert len(engine.get_audit_log(layers=["moderation"])) == 50
        assert len(engine.get_metrics().get_metric("moderation_duration_ms")) == 50
