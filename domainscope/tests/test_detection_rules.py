"""
Tests for the built-in detection rules and manifest loading.
"""

import json
from pathlib import Path
from unittest.mock import Mock

import numpy as np
import pytest

from domainscope.analysis.detection_rules import (
    DetectionRule,
    DuplicateFunctionalityRule,
    LowCohesionRule,
    MissingDocumentationRule,
    OutdatedDependenciesRule,
    TestCoverageGapsRule,
    TightCouplingRule,
    TooManyCommandsRule,
    UnbalancedDistributionRule,
    builtin_rules,
    declared_major,
    find_manifest,
    load_manifest,
    normalize_stem,
)
from domainscope.analysis.models import DependencyManifest
from domainscope.tests.conftest import make_component, make_context, make_function


UNRELATED_NAMES = ["invoice", "weather", "rocket", "garden", "planet", "violin", "coffee", "marble"]


class TestTooManyCommands:
    """Tests for the component count rule."""

    def test_at_limit_is_fine(self) -> None:
        components = [make_component(f"cmd{i}") for i in range(10)]
        assert TooManyCommandsRule().detect(make_context(components)) == []

    def test_over_limit_is_high(self) -> None:
        components = [make_component(f"cmd{i}") for i in range(11)]
        [issue] = TooManyCommandsRule().detect(make_context(components))
        assert issue.severity == "high"
        assert issue.title == "Too Many Commands"
        assert issue.location == "/domain"
        assert issue.evidence.startswith("11 files found")

    def test_far_over_limit_is_critical(self) -> None:
        components = [make_component(f"cmd{i}") for i in range(16)]
        [issue] = TooManyCommandsRule().detect(make_context(components))
        assert issue.severity == "critical"
        assert issue.effort == "6-8 hours"


class TestLowCohesion:
    """Tests for vocabulary-based cohesion."""

    def test_shared_vocabulary_is_cohesive(self) -> None:
        components = [
            make_component(name, functions=[make_function(name)])
            for name in ["taskList", "taskCreate", "taskDelete", "taskUpdate"]
        ]
        assert LowCohesionRule().detect(make_context(components)) == []

    def test_unrelated_components_are_flagged(self) -> None:
        components = [
            make_component(name, functions=[make_function(name)])
            for name in UNRELATED_NAMES[:4]
        ]
        [issue] = LowCohesionRule().detect(make_context(components))
        assert issue.severity == "medium"
        assert "lexical similarity 0.00" in issue.evidence

    def test_many_unrelated_components_are_high(self) -> None:
        components = [
            make_component(name, functions=[make_function(name)])
            for name in UNRELATED_NAMES
        ]
        [issue] = LowCohesionRule().detect(make_context(components))
        assert issue.severity == "high"

    def test_too_few_components_are_skipped(self) -> None:
        components = [make_component(name) for name in UNRELATED_NAMES[:3]]
        assert LowCohesionRule().detect(make_context(components)) == []

    def test_semantic_backend_uses_its_own_threshold(self) -> None:
        backend = Mock()
        backend.name = "semantic"
        backend.pairwise.return_value = np.full((4, 4), 0.3)
        components = [make_component(name) for name in UNRELATED_NAMES[:4]]

        [issue] = LowCohesionRule(backend=backend).detect(make_context(components))

        assert issue.severity == "medium"
        backend.pairwise.assert_called_once()


class TestTightCoupling:
    """Tests for external dependency counts."""

    def test_medium_and_high(self) -> None:
        components = [
            make_component("few", dependencies=["react", "./local"]),
            make_component("some", dependencies=["react", "lodash", "axios", "zod"]),
            make_component("many", dependencies=["a", "b", "c", "d", "e", "f", "g"]),
        ]
        issues = TightCouplingRule().detect(make_context(components))
        assert [(i.location, i.severity) for i in issues] == [
            ("/domain/some.ts", "medium"),
            ("/domain/many.ts", "high"),
        ]


class TestUnbalancedDistribution:
    """Tests for size and complexity outliers."""

    def test_high_variation_is_medium(self) -> None:
        components = [make_component(f"c{i}", lines=n, complexity=2) for i, n in enumerate([10, 10, 10, 100])]
        [issue] = UnbalancedDistributionRule().detect(make_context(components))
        assert issue.severity == "medium"
        assert "c3(100l" in issue.evidence

    def test_single_outlier_with_low_variation_is_low(self) -> None:
        sizes = [10] * 9 + [40]
        components = [make_component(f"c{i}", lines=n, complexity=2) for i, n in enumerate(sizes)]
        [issue] = UnbalancedDistributionRule().detect(make_context(components))
        assert issue.severity == "low"

    def test_balanced_domain_is_fine(self) -> None:
        components = [make_component(f"c{i}", lines=n, complexity=2) for i, n in enumerate([20, 20, 20, 50])]
        assert UnbalancedDistributionRule().detect(make_context(components)) == []

    def test_complexity_outlier(self) -> None:
        components = [make_component(f"c{i}", lines=20, complexity=n) for i, n in enumerate([2, 2, 2, 20])]
        [issue] = UnbalancedDistributionRule().detect(make_context(components))
        assert issue.severity == "low"


class TestMissingDocumentation:
    """Tests for domain-wide documentation coverage."""

    @pytest.mark.parametrize("documented,severity", [(5, "medium"), (1, "high")])
    def test_low_coverage(self, documented: int, severity: str) -> None:
        functions = [make_function(f"f{i}", has_doc=i < documented) for i in range(10)]
        [issue] = MissingDocumentationRule().detect(make_context([make_component("a", functions=functions)]))
        assert issue.severity == severity
        assert f"{documented * 10}% coverage" in issue.evidence

    def test_good_coverage_is_fine(self) -> None:
        functions = [make_function(f"f{i}", has_doc=i < 8) for i in range(10)]
        assert MissingDocumentationRule().detect(make_context([make_component("a", functions=functions)])) == []

    def test_no_functions_is_fine(self) -> None:
        assert MissingDocumentationRule().detect(make_context([make_component("a", functions=[])])) == []


class TestTestCoverageGaps:
    """Tests for untested complex components."""

    @pytest.fixture
    def complex_component(self):
        return make_component("parser", functions=[
            make_function("parse", complexity=12),
            make_function("lex", complexity=8),
        ])

    def test_untested_component_is_flagged(self, complex_component) -> None:
        [issue] = TestCoverageGapsRule().detect(make_context([complex_component]))
        assert issue.severity == "high"
        assert issue.location == "/domain/parser.ts"

    @pytest.mark.parametrize("test_name", ["parser.test.ts", "parser.spec.ts", "test_parser.py", "parser_test.py"])
    def test_matching_test_file_clears_gap(self, complex_component, test_name: str) -> None:
        context = make_context([complex_component], test_files=[Path("/tests") / test_name])
        assert TestCoverageGapsRule().detect(context) == []

    def test_moderate_peak_is_medium(self) -> None:
        component = make_component("router", functions=[make_function("route", complexity=6)])
        [issue] = TestCoverageGapsRule().detect(make_context([component]))
        assert issue.severity == "medium"

    def test_simple_component_is_fine(self) -> None:
        component = make_component("tiny", functions=[make_function("go", complexity=2)])
        assert TestCoverageGapsRule().detect(make_context([component])) == []

    @pytest.mark.parametrize("file_name,stem", [
        ("parser.test.ts", "parser"),
        ("test_parser.py", "parser"),
        ("Parser.spec.tsx", "parser"),
        ("user_service.py", "userservice"),
    ])
    def test_normalize_stem(self, file_name: str, stem: str) -> None:
        assert normalize_stem(file_name) == stem


class TestDuplicateFunctionality:
    """Tests for overlapping components."""

    def test_similar_names(self) -> None:
        components = [
            make_component("userService", functions=[make_function("a")]),
            make_component("usersService", functions=[make_function("b")]),
        ]
        [issue] = DuplicateFunctionalityRule().detect(make_context(components))
        assert issue.severity == "low"
        assert "userService" in issue.description

    def test_shared_exported_signature(self) -> None:
        components = [
            make_component(name, functions=[make_function("load", args=1)])
            for name in ["invoice", "weather", "rocket"]
        ]
        [issue] = DuplicateFunctionalityRule().detect(make_context(components))
        assert issue.severity == "medium"
        assert "load/1" in issue.description

    def test_different_arity_is_not_duplicate(self) -> None:
        components = [
            make_component("invoice", functions=[make_function("load", args=1)]),
            make_component("weather", functions=[make_function("load", args=2)]),
        ]
        assert DuplicateFunctionalityRule().detect(make_context(components)) == []


class TestOutdatedDependencies:
    """Tests for stale manifest dependencies."""

    def _context(self, deps: dict[str, str]):
        manifest = DependencyManifest(path="/domain/package.json", kind="package.json", dependencies=deps)
        return make_context([], manifest=manifest)

    def test_many_stale_is_medium(self) -> None:
        context = self._context({"typescript": "^4.9.0", "react": "^17.0.2", "jest": "~27.0.0"})
        [issue] = OutdatedDependenciesRule().detect(context)
        assert issue.severity == "medium"
        assert issue.location == "/domain/package.json"

    def test_single_stale_is_low(self) -> None:
        [issue] = OutdatedDependenciesRule().detect(self._context({"typescript": "^4.9.0", "zod": "^1.0.0"}))
        assert issue.severity == "low"

    def test_current_and_open_ranges_are_fine(self) -> None:
        context = self._context({"typescript": "^5.4.0", "react": ">=16", "eslint": "*"})
        assert OutdatedDependenciesRule().detect(context) == []

    def test_no_manifest(self) -> None:
        assert OutdatedDependenciesRule().detect(make_context([])) == []

    @pytest.mark.parametrize("spec,major", [
        ("^4.17.1", 4),
        ("~3.0", 3),
        ("==1.2.0", 1),
        ("~=2.0", 2),
        (">=2.0", None),
        ("*", None),
        ("latest", None),
        ("workspace:*", None),
        ("git+https://example.com/x.git", None),
    ])
    def test_declared_major(self, spec: str, major) -> None:
        assert declared_major(spec) == major


class TestManifests:
    """Tests for manifest discovery and loading."""

    def test_package_json(self, write_file) -> None:
        path = write_file("package.json", json.dumps({
            "dependencies": {"react": "^18.0.0"},
            "devDependencies": {"typescript": "^5.0.0"},
        }))
        manifest = load_manifest(path)
        assert manifest.dependencies == {"react": "^18.0.0", "typescript": "^5.0.0"}

    def test_requirements_txt(self, write_file) -> None:
        path = write_file("requirements.txt", "# pinned\nflask==2.3.0\nrequests[socks]>=2.0  # http\n-e .\n")
        manifest = load_manifest(path)
        assert manifest.dependencies == {"flask": "==2.3.0", "requests": ">=2.0"}

    def test_pyproject(self, write_file) -> None:
        path = write_file("pyproject.toml", (
            "[project]\n"
            "name = 'x'\n"
            "dependencies = ['django==3.2']\n"
            "[project.optional-dependencies]\n"
            "test = ['pytest==7.4']\n"
        ))
        manifest = load_manifest(path)
        assert manifest.dependencies == {"django": "==3.2", "pytest": "==7.4"}

    def test_malformed_manifest_is_ignored(self, write_file) -> None:
        assert load_manifest(write_file("package.json", "{not json")) is None

    def test_find_manifest_walks_up(self, write_file, tmp_path: Path) -> None:
        manifest = write_file("package.json", "{}")
        domain = tmp_path / "src" / "domain"
        domain.mkdir(parents=True)
        assert find_manifest(domain) == manifest


def test_builtin_rules_satisfy_protocol() -> None:
    rules = builtin_rules()
    assert len(rules) == 8
    assert all(isinstance(rule, DetectionRule) for rule in rules)
    assert len({rule.name for rule in rules}) == 8
