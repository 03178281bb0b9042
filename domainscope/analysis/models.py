"""
Data Models for Domain Analysis

Contains all dataclasses shared across the extractor, the rule engine,
the refactoring planner and the orchestrators.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from domainscope.config import DEFAULT_MIN_SEVERITY, SEVERITY_RANK, AnalysisThresholds


# ============================================================================
# TIER 1: COMPONENT METRICS
# ============================================================================

@dataclass(frozen=True)
class FunctionMetric:
    """Metrics for a single function-like declaration."""
    name: str
    lines: int
    complexity: int  # 1 + decision points
    args: int
    has_doc: bool
    exported: bool
    nesting_depth: int = 0


@dataclass(frozen=True)
class CodeSmell:
    """A code smell derived from function or component metrics."""
    type: str      # long-function, high-complexity, missing-jsdoc, tight-coupling, deep-nesting
    location: str  # function name or component name
    severity: str  # "low", "medium", "high"
    suggestion: str


@dataclass
class ComponentMetrics:
    """Structural metrics for one source file of a domain."""
    name: str
    file_path: str
    lines: int
    complexity: int
    doc_coverage: int  # 0-100
    functions: list[FunctionMetric] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)  # internal and external specifiers
    code_smells: list[CodeSmell] = field(default_factory=list)
    language: str = ""

    @property
    def external_dependencies(self) -> list[str]:
        """Distinct external module roots (relative imports excluded)."""
        roots: list[str] = []
        for spec in self.dependencies:
            root = external_module_root(spec)
            if root and root not in roots:
                roots.append(root)
        return roots

    @property
    def max_function_complexity(self) -> int:
        return max((f.complexity for f in self.functions), default=0)


def external_module_root(specifier: str) -> Optional[str]:
    """
    Reduce an import specifier to its package root.

    Relative and absolute-path specifiers are internal and yield None.
    ``@scope/pkg/sub`` -> ``@scope/pkg``, ``lodash/fp`` -> ``lodash``,
    ``os.path`` -> ``os``, ``node:fs`` -> ``fs``.
    """
    if not specifier or specifier.startswith((".", "/")):
        return None
    if specifier.startswith("node:"):
        specifier = specifier[len("node:"):]
    if specifier.startswith("@"):
        parts = specifier.split("/")
        return "/".join(parts[:2])
    if "/" in specifier:
        return specifier.split("/")[0]
    return specifier.split(".")[0]


# ============================================================================
# TIER 2: ARCHITECTURAL ISSUES
# ============================================================================

class IssueType(str, Enum):
    """Built-in issue types, one per detection rule."""
    TOO_MANY_COMMANDS = "TooManyCommands"
    LOW_COHESION = "LowCohesion"
    TIGHT_COUPLING = "TightCoupling"
    UNBALANCED_DISTRIBUTION = "UnbalancedDistribution"
    MISSING_DOCUMENTATION = "MissingDocumentation"
    TEST_COVERAGE_GAPS = "TestCoverageGaps"
    DUPLICATE_FUNCTIONALITY = "DuplicateFunctionality"
    OUTDATED_DEPENDENCIES = "OutdatedDependencies"

    @property
    def display_title(self) -> str:
        return ISSUE_TITLES[self]

    @classmethod
    def resolve(cls, value: Union[str, "IssueType", None]) -> Optional["IssueType"]:
        """Map a rule name or a human title to an IssueType, or None."""
        if value is None:
            return None
        if isinstance(value, IssueType):
            return value
        compact = value.replace(" ", "").replace("-", "").replace("_", "").lower()
        for member in cls:
            if member.value.lower() == compact:
                return member
        return None

    @classmethod
    def from_issue(cls, issue: "ArchitecturalIssue") -> Optional["IssueType"]:
        return cls.resolve(issue.issue_type) or cls.resolve(issue.title)


ISSUE_TITLES: dict[IssueType, str] = {
    IssueType.TOO_MANY_COMMANDS: "Too Many Commands",
    IssueType.LOW_COHESION: "Low Cohesion",
    IssueType.TIGHT_COUPLING: "Tight Coupling",
    IssueType.UNBALANCED_DISTRIBUTION: "Unbalanced Distribution",
    IssueType.MISSING_DOCUMENTATION: "Missing Documentation",
    IssueType.TEST_COVERAGE_GAPS: "Test Coverage Gaps",
    IssueType.DUPLICATE_FUNCTIONALITY: "Duplicate Functionality",
    IssueType.OUTDATED_DEPENDENCIES: "Outdated Dependencies",
}


@dataclass
class ArchitecturalIssue:
    """An architectural concern detected in a domain."""
    id: str  # "ISSUE-NNN", assigned by the IssueDetector
    title: str
    description: str
    severity: str  # "low", "medium", "high", "critical"
    location: str
    evidence: str  # Quantified justification, e.g. "15 files found"
    impact: list[str] = field(default_factory=list)
    effort: str = ""
    related_issues: list[str] = field(default_factory=list)
    issue_type: Optional[str] = None  # IssueType value for built-in rules

    @property
    def severity_rank(self) -> int:
        return SEVERITY_RANK.get(self.severity, 0)


@dataclass(frozen=True)
class DependencyManifest:
    """Declared dependencies read from a package manifest."""
    path: str
    kind: str  # "package.json", "pyproject.toml", "requirements.txt"
    dependencies: dict[str, str] = field(default_factory=dict)  # name -> version spec


@dataclass
class DetectionContext:
    """Snapshot of a domain handed to every detection rule."""
    domain_path: Path
    components: list[ComponentMetrics]
    test_files: list[Path] = field(default_factory=list)
    manifest: Optional[DependencyManifest] = None
    thresholds: AnalysisThresholds = field(default_factory=AnalysisThresholds)


@dataclass(frozen=True)
class DetectionOptions:
    """Filters applied by IssueDetector.detect()."""
    min_severity: str = DEFAULT_MIN_SEVERITY
    skip_rules: tuple[str, ...] = ()

    @classmethod
    def coerce(cls, options: Union["DetectionOptions", dict[str, Any], None]) -> "DetectionOptions":
        """Accept None, a DetectionOptions or a plain dict of the same keys."""
        if options is None:
            return cls()
        if isinstance(options, DetectionOptions):
            return options
        min_severity = options.get("min_severity") or DEFAULT_MIN_SEVERITY
        skip_rules = tuple(options.get("skip_rules") or ())
        return cls(min_severity=min_severity, skip_rules=skip_rules)


# ============================================================================
# TIER 3: REFACTORING PLANS
# ============================================================================

@dataclass
class RefactoringOption:
    """One candidate remediation for an issue."""
    name: str
    description: str
    pros: list[str]
    cons: list[str]
    effort: str  # "N-M hours" or "N-M days"
    breaking: bool
    risk_level: str  # "low", "medium", "high"
    recommendation: bool = False
    structural: bool = False  # Addresses the root cause rather than the symptom


@dataclass(frozen=True)
class QualityGate:
    """A named check that must pass before a phase is complete."""
    name: str
    command: str
    success_criteria: str


@dataclass
class PhaseTask:
    id: str
    title: str
    description: str
    steps: list[str] = field(default_factory=list)


@dataclass
class Phase:
    name: str  # "Plan", "Implement" or "Validate"
    description: str
    tasks: list[PhaseTask]
    quality_gates: list[QualityGate]
    duration: str
    risk_level: str = "low"


@dataclass
class ChecklistItem:
    id: str
    task: str
    check_command: str
    success_criteria: str
    optional: bool = False


@dataclass(frozen=True)
class RiskMitigation:
    risk: str
    likelihood: str  # "low", "medium", "high"
    impact: str
    mitigation: str


@dataclass
class MigrationStrategy:
    """A phased execution plan for a chosen refactoring option."""
    name: str
    overview: str
    pre_flight_checks: list[ChecklistItem]
    phases: list[Phase]
    post_flight_validation: list[ChecklistItem]
    risk_mitigation: list[RiskMitigation]
    rollback_plan: list[str]
    estimated_duration: str
    issue_severity: str = "medium"
    option_risk: str = "low"


@dataclass
class ChecklistPhase:
    name: str
    duration: str
    tasks: list[ChecklistItem]


@dataclass
class ImplementationChecklist:
    """A migration strategy flattened into gated, checkable steps."""
    phases: list[ChecklistPhase]
    total_duration: str
    overall_risk: str  # "low", "medium", "high", "critical"
    approval_gates: list[str]


# ============================================================================
# ORCHESTRATION RESULTS
# ============================================================================

@dataclass
class RefactoringStrategy:
    """Remediation options for a single issue."""
    issue: ArchitecturalIssue
    options: list[RefactoringOption]
    recommended_option: Optional[RefactoringOption]
    migration_strategy: Optional[MigrationStrategy] = None


@dataclass
class AnalysisSummary:
    total_components: int = 0
    total_issues: int = 0
    critical_issues: int = 0
    total_refactoring_options: int = 0


@dataclass
class AnalysisResult:
    """Complete result of a three-tier deep analysis."""
    components: list[ComponentMetrics]
    issues: list[ArchitecturalIssue]
    refactoring_strategies: list[RefactoringStrategy]
    summary: AnalysisSummary

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return to_serializable(self)


def to_serializable(value: Any) -> Any:
    """Convert dataclasses (and enums inside them) to plain JSON types."""
    data = asdict(value) if hasattr(value, "__dataclass_fields__") else value
    return _plain(data)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(_plain(k)): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    return value
