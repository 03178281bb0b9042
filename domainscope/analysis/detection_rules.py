"""
Detection Rules

Built-in architectural issue detection rules. Every rule satisfies the
DetectionRule protocol and reads only the DetectionContext it is given:
the domain's component metrics, its test files, and its dependency
manifest.
"""

from __future__ import annotations

import json
import math
import re
import tomllib
from collections import defaultdict
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from domainscope.analysis.models import (
    ArchitecturalIssue,
    ComponentMetrics,
    DependencyManifest,
    DetectionContext,
    IssueType,
)
from domainscope.analysis.similarity import (
    SimilarityBackend,
    get_similarity_backend,
    mean_pairwise_similarity,
    name_similarity,
)
from domainscope.config import (
    DEFAULT_SIMILARITY_BACKEND,
    KNOWN_CURRENT_MAJORS,
    MANIFEST_FILES,
)
from domainscope.utils.lazy_imports import lazy_import
from domainscope.utils.logging_config import get_logger

logger = get_logger(__name__)

# Lazy load numpy
_np = lazy_import('numpy')

EVIDENCE_MAX_ITEMS = 5  # Max names listed in an evidence string


@runtime_checkable
class DetectionRule(Protocol):
    """Interface shared by built-in and caller-registered rules."""

    name: str
    description: str

    def detect(self, context: DetectionContext) -> list[ArchitecturalIssue]:
        ...


def _preview(names: list[str], limit: int = EVIDENCE_MAX_ITEMS) -> str:
    shown = ", ".join(names[:limit])
    return f"{shown}, ..." if len(names) > limit else shown


def _issue(issue_type: IssueType, **fields) -> ArchitecturalIssue:
    """Build an issue with a placeholder id; the detector numbers them."""
    return ArchitecturalIssue(
        id="",
        title=issue_type.display_title,
        issue_type=issue_type.value,
        **fields,
    )


def _hours(low: float, high: float) -> str:
    low_h = max(1, math.ceil(low))
    return f"{low_h}-{max(low_h + 1, math.ceil(high))} hours"


class TooManyCommandsRule:
    """Domains with more components than a focused domain should hold."""

    name = IssueType.TOO_MANY_COMMANDS.value
    description = "Detects domains with too many commands/components"

    def detect(self, context: DetectionContext) -> list[ArchitecturalIssue]:
        t = context.thresholds
        count = len(context.components)
        if count <= t.max_components:
            return []

        critical = count > t.critical_components
        names = [Path(c.file_path).name for c in context.components]
        return [_issue(
            IssueType.TOO_MANY_COMMANDS,
            description=(
                f"Domain has {count} components, which exceeds the recommended "
                f"maximum of {t.max_components}."
            ),
            severity="critical" if critical else "high",
            location=str(context.domain_path),
            evidence=f"{count} files found: {_preview(names)}",
            impact=[
                "Reduced domain cohesion",
                "Harder to understand domain purpose",
                "Maintenance complexity increases",
            ],
            effort="6-8 hours" if critical else "4-6 hours",
        )]


class LowCohesionRule:
    """
    Components whose names and function names share little vocabulary.

    Each component is profiled as the text of its file name plus its
    function names; the mean pairwise similarity of the profiles is the
    cohesion score.
    """

    name = IssueType.LOW_COHESION.value
    description = "Detects domains whose components lack a common theme"

    def __init__(self, backend: Optional[SimilarityBackend] = None) -> None:
        self.backend = backend or get_similarity_backend(DEFAULT_SIMILARITY_BACKEND)

    @staticmethod
    def profile(component: ComponentMetrics) -> str:
        return " ".join([component.name] + [f.name for f in component.functions])

    def detect(self, context: DetectionContext) -> list[ArchitecturalIssue]:
        t = context.thresholds
        components = context.components
        if len(components) < t.min_components_for_cohesion:
            return []

        matrix = self.backend.pairwise([self.profile(c) for c in components])
        score = mean_pairwise_similarity(matrix)

        limit = t.semantic_cohesion_similarity if self.backend.name == "semantic" else t.low_cohesion_similarity
        if score >= limit:
            return []

        very_low = (
            self.backend.name == "lexical"
            and score < t.very_low_cohesion_similarity
            and len(components) >= t.min_components_for_high_cohesion_issue
        )
        return [_issue(
            IssueType.LOW_COHESION,
            description="Components in this domain appear to lack a common theme or purpose.",
            severity="high" if very_low else "medium",
            location=str(context.domain_path),
            evidence=(
                f"Mean {self.backend.name} similarity {score:.2f} across "
                f"{len(components)} components: {_preview([c.name for c in components])}"
            ),
            impact=[
                "Domain purpose unclear",
                "Hard to discover related commands",
                "Confusing API for users",
            ],
            effort="1-2 hours",
        )]


class TightCouplingRule:
    """Components importing many distinct external modules."""

    name = IssueType.TIGHT_COUPLING.value
    description = "Detects components with too many external dependencies"

    def detect(self, context: DetectionContext) -> list[ArchitecturalIssue]:
        t = context.thresholds
        issues: list[ArchitecturalIssue] = []

        for component in context.components:
            external = component.external_dependencies
            if len(external) <= t.max_external_dependencies:
                continue
            heavy = len(external) > t.heavy_external_dependencies
            issues.append(_issue(
                IssueType.TIGHT_COUPLING,
                description=(
                    f"Component {component.name} depends on {len(external)} "
                    f"external modules."
                ),
                severity="high" if heavy else "medium",
                location=component.file_path,
                evidence=f"External dependencies: {_preview(external)}",
                impact=[
                    "Hard to test in isolation",
                    "Brittle to external changes",
                    "Difficult to understand component responsibility",
                ],
                effort="4-6 hours" if heavy else "3-4 hours",
            ))

        return issues


class UnbalancedDistributionRule:
    """Components far larger or more complex than their peers."""

    name = IssueType.UNBALANCED_DISTRIBUTION.value
    description = "Detects uneven distribution of code size or complexity"

    def detect(self, context: DetectionContext) -> list[ArchitecturalIssue]:
        t = context.thresholds
        components = context.components
        if len(components) < 2:
            return []

        np = _np._load()
        lines = np.array([c.lines for c in components], dtype=float)
        complexity = np.array([c.complexity for c in components], dtype=float)

        mean_lines = float(lines.mean())
        mean_complexity = float(complexity.mean())
        variation = float(lines.std() / mean_lines) if mean_lines > 0 else 0.0

        outliers = [
            c for c in components
            if (mean_lines > 0 and c.lines > t.size_outlier_ratio * mean_lines)
            or (mean_complexity > 0 and c.complexity > t.size_outlier_ratio * mean_complexity)
        ]
        if not outliers and variation <= t.size_variation_coefficient:
            return []

        described = [f"{c.name}({c.lines}l, cc {c.complexity})" for c in outliers]
        return [_issue(
            IssueType.UNBALANCED_DISTRIBUTION,
            description=(
                f"Some components are significantly larger or more complex than "
                f"others ({t.size_outlier_ratio:g}x+ the domain average)."
            ),
            severity="medium" if variation > t.size_variation_coefficient else "low",
            location=str(context.domain_path),
            evidence=(
                f"Average {mean_lines:.0f} lines, coefficient of variation "
                f"{variation:.2f}; outliers: {_preview(described) or 'none'}"
            ),
            impact=["Maintenance complexity", "Testing difficulty", "Code understanding challenges"],
            effort="2-3 hours",
        )]


class MissingDocumentationRule:
    """Domain-wide documentation coverage below the expected level."""

    name = IssueType.MISSING_DOCUMENTATION.value
    description = "Detects low documentation coverage (< 70%)"

    def detect(self, context: DetectionContext) -> list[ArchitecturalIssue]:
        t = context.thresholds
        functions = [f for c in context.components for f in c.functions]
        if not functions:
            return []

        documented = sum(1 for f in functions if f.has_doc)
        coverage = documented / len(functions) * 100
        if coverage >= t.min_doc_coverage:
            return []

        undocumented = len(functions) - documented
        return [_issue(
            IssueType.MISSING_DOCUMENTATION,
            description=f"Domain has only {coverage:.0f}% documentation coverage.",
            severity="high" if coverage < t.poor_doc_coverage else "medium",
            location=str(context.domain_path),
            evidence=f"{coverage:.0f}% coverage: {undocumented}/{len(functions)} functions undocumented",
            impact=[
                "Reduced API usability",
                "Onboarding difficulty",
                "Code discoverability",
            ],
            effort=_hours(undocumented * 0.25, undocumented * 0.5),
        )]


_TEST_MARKERS = re.compile(r"(^|[._-])(test|spec)s?(?=[._-]|$)", re.IGNORECASE)


def normalize_stem(file_name: str) -> str:
    """Comparable form of a file stem: test markers, separators and case removed."""
    stem = file_name.split(".")[0] or file_name
    stem = _TEST_MARKERS.sub("", stem)
    return re.sub(r"[^a-z0-9]", "", stem.lower())


class TestCoverageGapsRule:
    """Complex components with no test file that matches their name."""

    __test__ = False  # not a pytest class

    name = IssueType.TEST_COVERAGE_GAPS.value
    description = "Detects complex components without matching test files"

    def detect(self, context: DetectionContext) -> list[ArchitecturalIssue]:
        t = context.thresholds
        tested = {normalize_stem(p.name) for p in context.test_files}
        issues: list[ArchitecturalIssue] = []

        for component in context.components:
            peak = component.max_function_complexity
            if component.complexity <= t.untested_file_complexity and peak <= t.high_complexity:
                continue
            if normalize_stem(Path(component.file_path).name) in tested:
                continue

            count = len(component.functions)
            issues.append(_issue(
                IssueType.TEST_COVERAGE_GAPS,
                description=(
                    f"Component {component.name} has complexity {component.complexity} "
                    f"but no matching test file."
                ),
                severity="high" if peak > t.very_high_complexity else "medium",
                location=component.file_path,
                evidence=(
                    f"{count} functions, total complexity {component.complexity}, "
                    f"most complex function {peak}; no test file found"
                ),
                impact=[
                    "Reduced code reliability",
                    "Regression risks",
                    "Refactoring without a safety net",
                ],
                effort=_hours(count * 0.5, count * 1.5),
            ))

        return issues


class DuplicateFunctionalityRule:
    """
    Overlapping responsibilities across components.

    Two signals: component names whose token sets largely overlap
    (reader/readers, userService/usersService), and exported functions
    with the same name and arity in several components.
    """

    name = IssueType.DUPLICATE_FUNCTIONALITY.value
    description = "Detects potential duplicate functionality"

    def detect(self, context: DetectionContext) -> list[ArchitecturalIssue]:
        t = context.thresholds
        components = context.components
        issues: list[ArchitecturalIssue] = []

        for i, first in enumerate(components):
            for second in components[i + 1:]:
                similarity = name_similarity(first.name, second.name)
                if similarity < t.duplicate_name_similarity:
                    continue
                issues.append(_issue(
                    IssueType.DUPLICATE_FUNCTIONALITY,
                    description=(
                        f"Potential duplication: {first.name} and {second.name} "
                        f"have near-identical names."
                    ),
                    severity="low",
                    location=first.file_path,
                    evidence=f"Name similarity {similarity:.2f}: {first.name}, {second.name}",
                    impact=["Code duplication", "Inconsistent behavior"],
                    effort="1-2 hours",
                ))

        signatures: dict[tuple[str, int], list[ComponentMetrics]] = defaultdict(list)
        for component in components:
            for func in component.functions:
                if func.exported:
                    key = (func.name.split(".")[-1], func.args)
                    if component not in signatures[key]:
                        signatures[key].append(component)

        for (func_name, args), owners in signatures.items():
            if len(owners) < 2:
                continue
            issues.append(_issue(
                IssueType.DUPLICATE_FUNCTIONALITY,
                description=(
                    f"Function {func_name}/{args} is exported by {len(owners)} components."
                ),
                severity="medium" if len(owners) >= 3 else "low",
                location=owners[0].file_path,
                evidence=f"Same signature in: {_preview([c.name for c in owners])}",
                impact=["Code duplication", "Inconsistent behavior", "Reduced cohesion"],
                effort="1-2 hours" if len(owners) < 3 else "2-4 hours",
            ))

        return issues


class OutdatedDependenciesRule:
    """Manifest dependencies pinned below the current major version."""

    name = IssueType.OUTDATED_DEPENDENCIES.value
    description = "Detects dependencies declared below their current major version"

    def detect(self, context: DetectionContext) -> list[ArchitecturalIssue]:
        manifest = context.manifest
        if manifest is None:
            return []

        stale: list[str] = []
        for dep_name, spec in sorted(manifest.dependencies.items()):
            current = KNOWN_CURRENT_MAJORS.get(dep_name.lower())
            declared = declared_major(spec)
            if current is not None and declared is not None and declared < current:
                stale.append(f"{dep_name}@{declared} (current {current})")

        if not stale:
            return []

        return [_issue(
            IssueType.OUTDATED_DEPENDENCIES,
            description=f"{manifest.kind} declares {len(stale)} outdated dependencies.",
            severity="medium" if len(stale) >= context.thresholds.stale_dependency_escalation else "low",
            location=manifest.path,
            evidence=f"Outdated packages: {_preview(stale, 3)}",
            impact=[
                "Security vulnerabilities",
                "Missing features",
                "Compatibility issues",
            ],
            effort="1-2 hours" if len(stale) < 3 else "1-2 days",
        )]


# ============================================================================
# MANIFEST LOADING
# ============================================================================

_MAJOR_PATTERN = re.compile(r"(\d+)")
_REQUIREMENT_PATTERN = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[[^\]]*\])?\s*(.*)$")


def declared_major(spec: str) -> Optional[int]:
    """
    Major version a specifier pins, or None when it leaves the top open.

    ``^4.17.1`` -> 4, ``==1.2`` -> 1, ``~=2.0`` -> 2; ``>=2``, ``*``,
    ``latest`` and workspace/file/git references -> None.
    """
    spec = spec.strip()
    if not spec or spec in ("*", "latest") or spec.startswith((">", "workspace:", "file:", "git", "http", "link:")):
        return None
    spec = spec.split(",")[0].split(";")[0]
    match = _MAJOR_PATTERN.search(spec)
    return int(match.group(1)) if match else None


def find_manifest(domain_path: Path) -> Optional[Path]:
    """Nearest manifest file in the domain directory or any ancestor."""
    for directory in [domain_path, *domain_path.parents]:
        for filename in MANIFEST_FILES:
            candidate = directory / filename
            if candidate.is_file():
                return candidate
    return None


def load_manifest(path: Path) -> Optional[DependencyManifest]:
    """
    Read declared dependencies from package.json, pyproject.toml or
    requirements.txt. Malformed manifests are logged and ignored.
    """
    try:
        if path.name == "package.json":
            data = json.loads(path.read_text(encoding="utf-8"))
            deps: dict[str, str] = {}
            for section in ("dependencies", "devDependencies", "peerDependencies"):
                entries = data.get(section) or {}
                if isinstance(entries, dict):
                    deps.update({str(k): str(v) for k, v in entries.items()})
            return DependencyManifest(path=str(path), kind=path.name, dependencies=deps)

        if path.name == "pyproject.toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
            requirements = list(data.get("project", {}).get("dependencies", []))
            for extra in data.get("project", {}).get("optional-dependencies", {}).values():
                requirements.extend(extra)
            deps = _parse_requirements(requirements)
            poetry = data.get("tool", {}).get("poetry", {}).get("dependencies", {})
            for dep_name, spec in poetry.items():
                if dep_name != "python" and isinstance(spec, str):
                    deps[dep_name] = spec
            return DependencyManifest(path=str(path), kind=path.name, dependencies=deps)

        lines = path.read_text(encoding="utf-8").splitlines()
        return DependencyManifest(path=str(path), kind=path.name, dependencies=_parse_requirements(lines))
    except (OSError, ValueError, AttributeError) as e:
        # json.JSONDecodeError and tomllib.TOMLDecodeError are ValueErrors
        logger.warning(f"Could not read manifest {path}: {e}")
        return None


def _parse_requirements(lines: list[str]) -> dict[str, str]:
    deps: dict[str, str] = {}
    for line in lines:
        line = line.split("#", 1)[0].strip()
        if not line or line.startswith("-"):
            continue
        match = _REQUIREMENT_PATTERN.match(line)
        if match:
            deps[match.group(1)] = match.group(2).strip()
    return deps


def builtin_rules() -> list[DetectionRule]:
    """Fresh instances of the eight built-in rules, in evaluation order."""
    return [
        TooManyCommandsRule(),
        LowCohesionRule(),
        TightCouplingRule(),
        UnbalancedDistributionRule(),
        MissingDocumentationRule(),
        TestCoverageGapsRule(),
        DuplicateFunctionalityRule(),
        OutdatedDependenciesRule(),
    ]
