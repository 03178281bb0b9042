"""
Tests for the Decision Engine

Tests cover:
1. Pattern catalog loading and fallback
2. Architecture recommendations from descriptions
3. Path resolution and traversal protection
4. Light, deep and per-issue analysis
"""

import json
from pathlib import Path
from unittest.mock import Mock

import pytest

from domainscope.analysis.models import AnalysisResult, AnalysisSummary, DetectionOptions
from domainscope.decision_engine import (
    DecisionEngine,
    DeepArchitectureReport,
    extract_keywords,
)
from domainscope.tests.conftest import ts_command


DEFAULT_PATTERN_NAMES = {"task-management", "crud"}


class TestPatternCatalog:
    """Tests for catalog loading."""

    def test_bundled_catalog(self, tmp_path: Path) -> None:
        engine = DecisionEngine(base_path=tmp_path)
        assert len(engine.patterns) == 8
        assert "deployment" in engine.patterns

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        engine = DecisionEngine(base_path=tmp_path, patterns_path=tmp_path / "none.json")
        assert set(engine.patterns) == DEFAULT_PATTERN_NAMES

    @pytest.mark.parametrize("content", [
        "{not json",
        "[1, 2, 3]",
        '{"x": {"name": "x", "keywords": "task"}}',
        "{}",
    ])
    def test_malformed_catalog_uses_defaults(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "patterns.json"
        path.write_text(content)
        engine = DecisionEngine(base_path=tmp_path, patterns_path=path)
        assert set(engine.patterns) == DEFAULT_PATTERN_NAMES

    def test_custom_catalog(self, tmp_path: Path) -> None:
        path = tmp_path / "patterns.json"
        path.write_text(json.dumps({
            "billing": {"name": "billing", "keywords": ["invoice", "payment"], "commands": ["charge"]},
        }))
        engine = DecisionEngine(base_path=tmp_path, patterns_path=path)
        rec = engine.recommend_architecture("send invoice reminders")
        assert [p.name for p in rec.patterns] == ["billing"]
        assert [c.name for c in rec.commands] == ["charge"]


class TestRecommendArchitecture:
    """Tests for description-based recommendations."""

    @pytest.fixture
    def engine(self, tmp_path: Path) -> DecisionEngine:
        return DecisionEngine(base_path=tmp_path)

    def test_extract_keywords(self) -> None:
        assert extract_keywords("Track the tasks, and a todo!") == ["track", "tasks", "todo"]

    def test_task_management(self, engine: DecisionEngine) -> None:
        rec = engine.recommend_architecture("track tasks and todo items")

        assert rec.domain == "task"
        assert rec.patterns[0].name == "task-management"
        assert rec.patterns[0].confidence == 90
        assert rec.confidence == 90
        assert [c.name for c in rec.commands] == ["next", "list", "create", "complete"]
        assert rec.skills[0].name == "task-expert"
        assert "next task" in rec.skills[0].triggers

    def test_integrations_and_hooks(self, engine: DecisionEngine) -> None:
        rec = engine.recommend_architecture("notify the team on slack daily")

        assert [i.system for i in rec.integrations] == ["Slack"]
        assert {h.event for h in rec.hooks} == {"morning-standup", "on-alert"}
        assert rec.patterns[0].name == "notification"
        assert len(rec.implementation.phases) == 3

    def test_keyword_commands_are_capped(self, engine: DecisionEngine) -> None:
        rec = engine.recommend_architecture("manage records in a workflow with analytics")
        assert len(rec.commands) <= 6
        assert len({c.name for c in rec.commands}) == len(rec.commands)

    def test_no_match(self, engine: DecisionEngine) -> None:
        rec = engine.recommend_architecture("zzz qqq")
        assert rec.patterns == []
        assert rec.confidence == 30
        assert rec.commands == []
        assert rec.skills == []
        assert rec.domain == "zzz"

    def test_empty_description(self, engine: DecisionEngine) -> None:
        rec = engine.recommend_architecture("")
        assert rec.domain == "custom-domain"
        assert rec.implementation.total_effort == "1-2 hours"

    def test_confidence_is_a_percentage(self, engine: DecisionEngine) -> None:
        rec = engine.recommend_architecture("manage create update delete records and track tasks")
        assert all(0 <= p.confidence <= 100 for p in rec.patterns)
        assert 0 <= rec.confidence <= 100

    def test_json_ready(self, engine: DecisionEngine) -> None:
        data = engine.recommend_architecture("track tasks").to_dict()
        assert json.loads(json.dumps(data))["domain"] == "task"


class TestResolveDomain:
    """Tests for path handling."""

    def test_relative_path(self, tmp_path: Path) -> None:
        (tmp_path / "src" / "tasks").mkdir(parents=True)
        engine = DecisionEngine(base_path=tmp_path)
        assert engine.resolve_domain("src/tasks") == (tmp_path / "src" / "tasks").resolve()

    def test_traversal_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "outside").mkdir()
        engine = DecisionEngine(base_path=tmp_path / "base")
        with pytest.raises(ValueError, match="escapes base directory"):
            engine.analyze_domain("../outside")

    def test_absolute_path_outside_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "outside").mkdir()
        engine = DecisionEngine(base_path=tmp_path / "base")
        with pytest.raises(ValueError):
            engine.analyze_deep_architecture(tmp_path / "outside")

    def test_missing_path(self, tmp_path: Path) -> None:
        engine = DecisionEngine(base_path=tmp_path)
        with pytest.raises(FileNotFoundError, match="does not exist"):
            engine.analyze_domain("missing")


class TestAnalyzeDomain:
    """Tests for the light analysis."""

    def test_empty_domain(self, tmp_path: Path) -> None:
        (tmp_path / "empty").mkdir()
        analysis = DecisionEngine(base_path=tmp_path).analyze_domain("empty")
        assert analysis.current.commands == 0
        assert analysis.strengths == []
        assert analysis.issues == []
        assert analysis.refactoring_roadmap == []

    def test_focused_domain(self, tmp_path: Path, make_domain) -> None:
        make_domain(["taskCreate", "taskList", "taskDelete"])
        analysis = DecisionEngine(base_path=tmp_path).analyze_domain("domain")

        assert analysis.domain == "domain"
        assert analysis.current.commands == 3
        assert analysis.current.cohesion == 10.0
        assert "Clear single responsibility" in analysis.strengths

    def test_crowded_domain(self, tmp_path: Path, make_domain) -> None:
        make_domain([f"job{chr(ord('a') + i)}" for i in range(12)])
        analysis = DecisionEngine(base_path=tmp_path).analyze_domain("domain")

        titles = [i.title for i in analysis.issues]
        assert "High Command Count" in titles
        assert analysis.recommendations[0].priority == 1
        assert analysis.refactoring_roadmap[0].name == "Quick Wins"


class TestDeepArchitecture:
    """Tests for the combined report."""

    def test_report(self, tmp_path: Path, make_domain) -> None:
        make_domain([f"task{chr(ord('A') + i)}" for i in range(11)], dirname="tasks")
        report = DecisionEngine(base_path=tmp_path).analyze_deep_architecture("tasks")

        assert isinstance(report, DeepArchitectureReport)
        assert report.domain == "tasks"
        assert report.patterns[0].name == "task-management"
        assert report.summary.deep_analysis == report.deep_analysis.summary
        assert report.summary.light_analysis.commands == 11
        assert all(i.severity != "low" for i in report.deep_analysis.issues)
        json.dumps(report.to_dict())

    def test_options_forwarded_with_medium_default(self, tmp_path: Path) -> None:
        (tmp_path / "tasks").mkdir()
        deep_engine = Mock()
        deep_engine.run_full_analysis.return_value = AnalysisResult([], [], [], AnalysisSummary())
        engine = DecisionEngine(base_path=tmp_path, deep_engine=deep_engine)

        engine.analyze_deep_architecture("tasks", {"skip_rules": ["LowCohesion"]})

        path, options = deep_engine.run_full_analysis.call_args.args
        assert path == (tmp_path / "tasks").resolve()
        assert options == DetectionOptions(min_severity="medium", skip_rules=("LowCohesion",))


class TestPlanRefactoring:
    """Tests for per-issue plans."""

    def test_plan_for_detected_issue(self, tmp_path: Path, make_domain) -> None:
        make_domain([f"job{chr(ord('a') + i)}" for i in range(11)])
        engine = DecisionEngine(base_path=tmp_path)
        report = engine.analyze_deep_architecture("domain")
        issue_id = next(
            i.id for i in report.deep_analysis.issues if i.issue_type == "TooManyCommands"
        )

        plan = engine.plan_refactoring("domain", issue_id)

        assert plan.issue.id == issue_id
        assert plan.checklist is not None
        assert [p.name for p in plan.checklist.phases] == ["Plan", "Implement", "Validate"]

    def test_unknown_issue(self, tmp_path: Path) -> None:
        (tmp_path / "domain").mkdir()
        (tmp_path / "domain" / "a.ts").write_text(ts_command("a"))
        with pytest.raises(ValueError, match="ISSUE-999 not found"):
            DecisionEngine(base_path=tmp_path).plan_refactoring("domain", "ISSUE-999")

    def test_low_severity_id_resolves_under_default_filter(self, tmp_path: Path) -> None:
        domain = tmp_path / "domain"
        domain.mkdir()
        (domain / "a.ts").write_text(ts_command("a"))
        (domain / "package.json").write_text(json.dumps({"dependencies": {"react": "^16.0.0"}}))
        engine = DecisionEngine(base_path=tmp_path)

        report = engine.analyze_deep_architecture("domain", {"min_severity": "low"})
        [stale] = [i for i in report.deep_analysis.issues if i.issue_type == "OutdatedDependencies"]
        assert stale.severity == "low"
        default_ids = [i.id for i in engine.analyze_deep_architecture("domain").deep_analysis.issues]
        assert stale.id not in default_ids

        plan = engine.plan_refactoring("domain", stale.id)

        assert plan.issue.id == stale.id
        assert plan.checklist is None

    def test_lookup_keeps_skip_rules(self, tmp_path: Path) -> None:
        (tmp_path / "domain").mkdir()
        deep_engine = Mock(toolchain=None)
        deep_engine.run_full_analysis.return_value = AnalysisResult([], [], [], AnalysisSummary())
        engine = DecisionEngine(base_path=tmp_path, deep_engine=deep_engine)

        with pytest.raises(ValueError, match="reported: none"):
            engine.plan_refactoring("domain", "ISSUE-001", {"min_severity": "high", "skip_rules": ["LowCohesion"]})

        _, options = deep_engine.run_full_analysis.call_args.args
        assert options == DetectionOptions(min_severity="low", skip_rules=("LowCohesion",))
