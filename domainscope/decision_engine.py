# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#      https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Decision Engine

Public entry point. Combines a keyword-driven architecture pattern
catalog (lightweight recommendations) with the three-tier deep analysis.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Union

from domainscope.analysis.component_analyzer import iter_source_files, read_text
from domainscope.analysis.deep_analysis_engine import DeepAnalysisEngine, infer_toolchain
from domainscope.analysis.models import (
    AnalysisResult,
    AnalysisSummary,
    ArchitecturalIssue,
    DetectionOptions,
    ImplementationChecklist,
    RefactoringStrategy,
    to_serializable,
)
from domainscope.analysis.refactoring_planner import RefactoringPlanner
from domainscope.analysis.similarity import tokenize_identifier
from domainscope.config import PATTERNS_FILE, SEVERITY_LEVELS
from domainscope.utils.logging_config import get_logger

logger = get_logger(__name__)


# Words carrying no domain meaning in a description
COMMON_WORDS = frozenset({
    "the", "and", "or", "but", "for", "with", "to", "in", "on", "at",
    "of", "from", "that", "this", "into", "our", "their", "all",
})
ACTION_VERBS = frozenset({"create", "manage", "track", "analyze", "monitor", "build", "test"})
MIN_KEYWORD_LENGTH = 2  # keywords must be longer than this

# Pattern scoring weights
EXACT_MATCH_SCORE = 0.3
PARTIAL_MATCH_SCORE = 0.1
MIN_PATTERN_SCORE = 0.3
MAX_PATTERN_SCORE = 1.0
NO_MATCH_CONFIDENCE = 30

MAX_SUGGESTED_COMMANDS = 6

# Light domain analysis limits
MAX_COMMANDS_SINGLE_CONCERN = 7
HIGH_COMMAND_THRESHOLD = 10
HIGH_COHESION_SCORE = 7.0
LOW_COHESION_SCORE = 3.0
HIGH_COMPLEXITY_SCORE = 7.0
LINES_PER_COMPLEXITY_POINT = 30

COMMAND_DESCRIPTIONS: dict[str, tuple[str, list[str], str]] = {
    # name -> (description, args, complexity)
    "next": ("Get next item to work on", [], "low"),
    "list": ("List all items", [], "low"),
    "create": ("Create new item", ["name"], "medium"),
    "read": ("Show one item", ["id"], "low"),
    "update": ("Update an item", ["id"], "medium"),
    "delete": ("Delete an item", ["id"], "medium"),
    "complete": ("Complete an item", ["id"], "medium"),
    "start": ("Start workflow", ["id"], "medium"),
    "advance": ("Move a workflow to its next stage", ["id"], "medium"),
    "status": ("Show current status", [], "low"),
    "stats": ("View statistics", [], "medium"),
    "report": ("Generate report", [], "high"),
    "export": ("Export data", ["format"], "medium"),
    "send": ("Send a notification", ["message"], "medium"),
    "subscribe": ("Subscribe to events", ["topic"], "low"),
    "search": ("Search items", ["query"], "medium"),
    "publish": ("Publish content", ["id"], "medium"),
    "check": ("Run checks", [], "medium"),
    "validate": ("Validate input", ["path"], "medium"),
    "build": ("Build artifacts", [], "medium"),
    "deploy": ("Deploy a release", ["environment"], "high"),
    "rollback": ("Roll back a release", ["version"], "high"),
}

# keyword -> commands added regardless of matched patterns
KEYWORD_COMMANDS: dict[str, list[str]] = {
    "workflow": ["start", "complete"],
    "process": ["start", "complete"],
    "analytics": ["stats", "report"],
    "stats": ["stats", "report"],
    "metrics": ["stats", "report"],
}

INTEGRATIONS: dict[str, tuple[str, str, str]] = {
    # keyword -> (name, system, purpose)
    "slack": ("slack-connector", "Slack", "Send notifications to channels"),
    "notion": ("notion-connector", "Notion", "Sync with Notion database"),
    "github": ("github-connector", "GitHub", "Integrate with GitHub issues/PRs"),
    "jira": ("jira-connector", "Jira", "Sync issues with Jira"),
    "database": ("database-connector", "Database", "Store and retrieve data"),
    "store": ("database-connector", "Database", "Store and retrieve data"),
}


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass
class ArchitecturePattern:
    name: str
    keywords: list[str]
    commands: list[str]


@dataclass
class PatternMatch:
    name: str
    confidence: int  # 0-100
    commands: list[str] = field(default_factory=list)


@dataclass
class CommandRecommendation:
    name: str
    description: str
    args: list[str] = field(default_factory=list)
    complexity: str = "low"


@dataclass
class SkillRecommendation:
    name: str
    triggers: list[str]
    purpose: str


@dataclass
class IntegrationRecommendation:
    name: str
    system: str
    purpose: str


@dataclass
class HookRecommendation:
    event: str
    purpose: str
    frequency: Optional[str] = None


@dataclass
class Alternative:
    approach: str
    pros: list[str]
    cons: list[str]
    rejected: bool
    reason: str


@dataclass
class PlanPhase:
    name: str
    steps: list[str]
    duration: str


@dataclass
class ImplementationPlan:
    phases: list[PlanPhase]
    total_effort: str
    complexity: str


@dataclass
class ArchitectureRecommendation:
    domain: str
    description: str
    commands: list[CommandRecommendation]
    skills: list[SkillRecommendation]
    integrations: list[IntegrationRecommendation]
    hooks: list[HookRecommendation]
    patterns: list[PatternMatch]
    rationale: list[str]
    alternatives: list[Alternative]
    implementation: ImplementationPlan
    confidence: int  # 0-100

    def to_dict(self) -> dict[str, Any]:
        return to_serializable(self)


@dataclass
class DomainState:
    commands: int
    total_lines: int
    complexity: float  # 0-10, from average file size
    cohesion: float    # 0-10, from shared name vocabulary


@dataclass
class DomainIssue:
    title: str
    problem: str
    recommendation: str
    effort: str
    impact: str


@dataclass
class Recommendation:
    priority: int
    action: str
    reason: str
    effort: str


@dataclass
class RoadmapPhase:
    name: str
    tasks: list[str]
    duration: str
    impact: str


@dataclass
class DomainAnalysis:
    """Light analysis of a domain from its file listing."""
    domain: str
    current: DomainState
    strengths: list[str]
    issues: list[DomainIssue]
    recommendations: list[Recommendation]
    refactoring_roadmap: list[RoadmapPhase]

    def to_dict(self) -> dict[str, Any]:
        return to_serializable(self)


@dataclass
class LightAnalysisSummary:
    commands: int
    complexity: float
    cohesion: float
    strengths: list[str]
    issues: list[str]


@dataclass
class ReportSummary:
    light_analysis: LightAnalysisSummary
    deep_analysis: AnalysisSummary


@dataclass
class DeepArchitectureReport:
    """Pattern recommendations and deep analysis for one domain."""
    domain: str
    commands: list[CommandRecommendation]
    patterns: list[PatternMatch]
    confidence: int
    deep_analysis: AnalysisResult
    summary: ReportSummary

    def to_dict(self) -> dict[str, Any]:
        return to_serializable(self)


@dataclass
class RefactoringPlan:
    """Full plan for one issue: options, strategy and checklist."""
    strategy: RefactoringStrategy
    checklist: Optional[ImplementationChecklist]

    @property
    def issue(self) -> ArchitecturalIssue:
        return self.strategy.issue

    def to_dict(self) -> dict[str, Any]:
        return to_serializable(self)


def default_patterns() -> dict[str, ArchitecturePattern]:
    """Built-in catalog used when the pattern file is missing or malformed."""
    return {
        "task-management": ArchitecturePattern(
            name="task-management",
            keywords=["task", "todo", "work", "manage", "track"],
            commands=["next", "list", "create", "complete"],
        ),
        "crud": ArchitecturePattern(
            name="crud",
            keywords=["create", "read", "update", "delete", "manage"],
            commands=["create", "read", "update", "delete", "list"],
        ),
    }


def parse_patterns(data: Any) -> dict[str, ArchitecturePattern]:
    """
    Validate a decoded catalog.

    Raises:
        ValueError: If the catalog does not have the expected shape
    """
    if not isinstance(data, dict) or not data:
        raise ValueError("Pattern catalog must be a non-empty object")

    patterns: dict[str, ArchitecturePattern] = {}
    for key, entry in data.items():
        if not isinstance(entry, dict):
            raise ValueError(f"Pattern {key!r} must be an object")
        keywords = entry.get("keywords")
        commands = entry.get("commands", [])
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            raise ValueError(f"Pattern {key!r} needs a list of string keywords")
        if not isinstance(commands, list) or not all(isinstance(c, str) for c in commands):
            raise ValueError(f"Pattern {key!r} has invalid commands")
        patterns[key] = ArchitecturePattern(
            name=str(entry.get("name", key)),
            keywords=[k.lower() for k in keywords],
            commands=list(commands),
        )
    return patterns


def extract_keywords(text: str) -> list[str]:
    """Lowercase words longer than two characters, minus common words."""
    words = re.split(r"[^a-z0-9]+", text.lower())
    return [w for w in words if len(w) > MIN_KEYWORD_LENGTH and w not in COMMON_WORDS]


class DecisionEngine:
    """
    Architecture recommendation and analysis facade.

    The pattern catalog is loaded once, in the constructor, and reused by
    every call on this instance.
    """

    def __init__(
        self,
        base_path: Optional[Union[str, Path]] = None,
        patterns_path: Optional[Union[str, Path]] = None,
        deep_engine: Optional[DeepAnalysisEngine] = None,
    ) -> None:
        """
        Initialize the decision engine.

        Args:
            base_path: Directory that analyzed domains must live under (default: cwd)
            patterns_path: Pattern catalog JSON (default: bundled catalog)
            deep_engine: Deep analysis engine (default: a new DeepAnalysisEngine)
        """
        self.base_path = Path(base_path or Path.cwd()).resolve()
        self.patterns_path = Path(patterns_path) if patterns_path else PATTERNS_FILE
        self.deep_engine = deep_engine or DeepAnalysisEngine()
        self.patterns: dict[str, ArchitecturePattern] = self.load_patterns()

    def load_patterns(self) -> dict[str, ArchitecturePattern]:
        """Read the catalog; fall back to the built-in defaults on any problem."""
        if not self.patterns_path.is_file():
            logger.info(f"No pattern catalog at {self.patterns_path}, using defaults")
            return default_patterns()
        try:
            data = json.loads(self.patterns_path.read_text(encoding="utf-8"))
            patterns = parse_patterns(data)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not load patterns from {self.patterns_path}, using defaults: {e}")
            return default_patterns()
        logger.debug(f"Loaded {len(patterns)} patterns from {self.patterns_path}")
        return patterns

    # ------------------------------------------------------------------
    # Pattern recommendations
    # ------------------------------------------------------------------

    def recommend_architecture(self, description: str) -> ArchitectureRecommendation:
        """
        Recommend a domain layout for a free-text description.

        Args:
            description: What the domain should do

        Returns:
            ArchitectureRecommendation with patterns ordered by confidence
        """
        keywords = extract_keywords(description)
        matches = self.match_patterns(keywords)
        domain = self.suggest_domain_name(keywords)
        commands = self.suggest_commands(keywords, matches)
        skills = self.suggest_skills(domain, commands)
        integrations = self.suggest_integrations(keywords)
        hooks = self.suggest_hooks(keywords)

        rationale = [f"{len(commands)} commands cover the core workflow"]
        if integrations:
            rationale.append(f"{integrations[0].system} integration required by the description")
        if hooks:
            rationale.append("Hooks automate repetitive tasks")
        if skills:
            rationale.append("Skills reduce friction with auto-suggestions")
        if matches:
            rationale.append(f"Closest pattern: {matches[0].name} ({matches[0].confidence}%)")

        return ArchitectureRecommendation(
            domain=domain,
            description=description,
            commands=commands,
            skills=skills,
            integrations=integrations,
            hooks=hooks,
            patterns=matches,
            rationale=rationale,
            alternatives=[
                Alternative(
                    approach="Single monolithic command",
                    pros=["Simple to build", "One command to learn"],
                    cons=["Hard to test", "Does too much", "Not composable"],
                    rejected=True,
                    reason="Violates single responsibility",
                ),
                Alternative(
                    approach="Separate focused domain",
                    pros=["Clear boundaries", "Testable", "Composable"],
                    cons=["More commands to build"],
                    rejected=False,
                    reason="Maintainable and easy to extend",
                ),
            ],
            implementation=self._implementation_plan(domain, commands, skills, integrations, hooks),
            confidence=self.overall_confidence(matches),
        )

    def match_patterns(self, keywords: list[str]) -> list[PatternMatch]:
        """Patterns scoring above the threshold, best first."""
        scored: list[tuple[float, ArchitecturePattern]] = []
        for pattern in self.patterns.values():
            score = self.score_pattern(pattern, keywords)
            if score > MIN_PATTERN_SCORE:
                scored.append((score, pattern))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            PatternMatch(name=p.name, confidence=round(score * 100), commands=list(p.commands))
            for score, p in scored
        ]

    @staticmethod
    def score_pattern(pattern: ArchitecturePattern, keywords: list[str]) -> float:
        # An exact hit also counts as a partial one
        score = 0.0
        for keyword in keywords:
            if keyword in pattern.keywords:
                score += EXACT_MATCH_SCORE
            for pk in pattern.keywords:
                if pk in keyword or keyword in pk:
                    score += PARTIAL_MATCH_SCORE
        return min(score, MAX_PATTERN_SCORE)

    @staticmethod
    def overall_confidence(matches: list[PatternMatch]) -> int:
        if not matches:
            return NO_MATCH_CONFIDENCE
        return round(sum(m.confidence for m in matches) / len(matches))

    @staticmethod
    def suggest_domain_name(keywords: list[str]) -> str:
        nouns = [k for k in keywords if k not in ACTION_VERBS]
        if nouns:
            return nouns[0][:-1] if nouns[0].endswith("s") and len(nouns[0]) > 3 else nouns[0]
        return "custom-domain"

    @staticmethod
    def suggest_commands(keywords: list[str], matches: list[PatternMatch]) -> list[CommandRecommendation]:
        names: list[str] = []
        for match in matches:
            names.extend(match.commands)
        for keyword in keywords:
            names.extend(KEYWORD_COMMANDS.get(keyword, []))

        commands: list[CommandRecommendation] = []
        for name in dict.fromkeys(names):
            description, args, complexity = COMMAND_DESCRIPTIONS.get(name, (f"Run {name}", [], "medium"))
            commands.append(CommandRecommendation(
                name=name, description=description, args=list(args), complexity=complexity,
            ))
        return commands[:MAX_SUGGESTED_COMMANDS]

    @staticmethod
    def suggest_skills(domain: str, commands: list[CommandRecommendation]) -> list[SkillRecommendation]:
        if not commands:
            return []
        names = {c.name for c in commands}
        triggers: list[str] = []
        if "next" in names:
            triggers.extend(["what should I work on", "next task"])
        if "stats" in names:
            triggers.extend(["show stats", "progress report"])
        if "status" in names:
            triggers.append("where are we")
        return [SkillRecommendation(
            name=f"{domain}-expert",
            triggers=triggers,
            purpose="Auto-suggest relevant commands based on context",
        )]

    @staticmethod
    def suggest_integrations(keywords: list[str]) -> list[IntegrationRecommendation]:
        found: dict[str, IntegrationRecommendation] = {}
        for keyword in keywords:
            if keyword in INTEGRATIONS:
                name, system, purpose = INTEGRATIONS[keyword]
                found.setdefault(name, IntegrationRecommendation(name=name, system=system, purpose=purpose))
        return list(found.values())

    @staticmethod
    def suggest_hooks(keywords: list[str]) -> list[HookRecommendation]:
        words = set(keywords)
        hooks: list[HookRecommendation] = []
        if words & {"daily", "standup"}:
            hooks.append(HookRecommendation(
                event="morning-standup", purpose="Prepare daily standup data", frequency="9am daily",
            ))
        if words & {"commit", "validate"}:
            hooks.append(HookRecommendation(event="pre-commit", purpose="Validate before commit"))
        if words & {"alert", "notify"}:
            hooks.append(HookRecommendation(event="on-alert", purpose="Send notifications on events"))
        return hooks

    @staticmethod
    def _implementation_plan(
        domain: str,
        commands: list[CommandRecommendation],
        skills: list[SkillRecommendation],
        integrations: list[IntegrationRecommendation],
        hooks: list[HookRecommendation],
    ) -> ImplementationPlan:
        phases = [PlanPhase(
            name="Core Setup",
            steps=[f"Create the {domain} domain", f"Add {len(commands)} operations", "Write tests per operation"],
            duration="1-2 hours",
        )]
        hours = [1, 2]
        if integrations or hooks:
            phases.append(PlanPhase(
                name="Integrations",
                steps=[f"Configure {i.name}" for i in integrations] + [f"Configure {h.event}" for h in hooks],
                duration="1-2 hours",
            ))
            hours = [hours[0] + 1, hours[1] + 2]
        if skills:
            phases.append(PlanPhase(
                name="Polish",
                steps=["Add auto-discovery skill", "Test all commands"],
                duration="1-2 hours",
            ))
            hours = [hours[0] + 1, hours[1] + 2]
        return ImplementationPlan(
            phases=phases,
            total_effort=f"{hours[0]}-{hours[1]} hours",
            complexity="medium" if len(commands) > 5 else "low",
        )

    # ------------------------------------------------------------------
    # Domain analysis
    # ------------------------------------------------------------------

    def resolve_domain(self, domain_path: Union[str, Path]) -> Path:
        """
        Resolve a domain path against base_path.

        Raises:
            ValueError: If the path resolves outside base_path
            FileNotFoundError: If the path does not exist
        """
        resolved = (self.base_path / Path(domain_path)).resolve()
        if not resolved.is_relative_to(self.base_path):
            raise ValueError(f"Domain path escapes base directory {self.base_path}: {domain_path}")
        if not resolved.exists():
            raise FileNotFoundError(f"Domain path does not exist: {domain_path}")
        return resolved

    def analyze_domain(self, domain_path: Union[str, Path]) -> DomainAnalysis:
        """
        Light analysis from the domain's file listing.

        Counts source files as commands and derives complexity from the
        average file size and cohesion from shared file-name vocabulary.
        """
        path = self.resolve_domain(domain_path)
        files = iter_source_files(path) if path.is_dir() else []
        current = self._domain_state(files)

        strengths: list[str] = []
        if 0 < current.commands <= MAX_COMMANDS_SINGLE_CONCERN:
            strengths.append("Clear single responsibility")
        if current.commands > 1 and current.cohesion > HIGH_COHESION_SCORE:
            strengths.append("High cohesion - components share a vocabulary")
        if current.commands and current.complexity <= 3:
            strengths.append("Small, readable components")

        issues: list[DomainIssue] = []
        if current.commands > HIGH_COMMAND_THRESHOLD:
            issues.append(DomainIssue(
                title="High Command Count",
                problem=f"{current.commands} commands may indicate multiple concerns",
                recommendation="Consider splitting the domain",
                effort="2-4 hours",
                impact="Better modularity",
            ))
        if current.commands >= 4 and current.cohesion < LOW_COHESION_SCORE:
            issues.append(DomainIssue(
                title="Low Cohesion",
                problem=f"Component names share little vocabulary (cohesion {current.cohesion}/10)",
                recommendation="Clarify the domain focus and move outliers",
                effort="1-2 hours",
                impact="Clearer domain purpose",
            ))
        if current.complexity > HIGH_COMPLEXITY_SCORE:
            issues.append(DomainIssue(
                title="Large Components",
                problem=f"Average component size implies complexity {current.complexity}/10",
                recommendation="Split the largest components",
                effort="4-6 hours",
                impact="Easier review and testing",
            ))

        recommendations = [
            Recommendation(priority=n, action=i.recommendation, reason=i.problem, effort=i.effort)
            for n, i in enumerate(issues, start=1)
        ]
        roadmap: list[RoadmapPhase] = []
        if issues:
            roadmap.append(RoadmapPhase(
                name="Quick Wins",
                tasks=[i.recommendation for i in issues if i.effort.endswith("hours")],
                duration="2-4 hours",
                impact="Immediate improvements",
            ))

        return DomainAnalysis(
            domain=path.name,
            current=current,
            strengths=strengths,
            issues=issues,
            recommendations=recommendations,
            refactoring_roadmap=roadmap,
        )

    @staticmethod
    def _domain_state(files: list[Path]) -> DomainState:
        if not files:
            return DomainState(commands=0, total_lines=0, complexity=0.0, cohesion=0.0)

        total_lines = 0
        for path in files:
            try:
                total_lines += len(read_text(path).splitlines())
            except OSError as e:
                logger.warning(f"Could not read {path}: {e}")
        average = total_lines / len(files)
        complexity = min(10.0, round(average / LINES_PER_COMPLEXITY_POINT, 1))

        token_sets = [set(tokenize_identifier(p.name.split(".")[0])) for p in files]
        if len(files) == 1:
            cohesion = 10.0
        else:
            shared = sum(
                1 for i, tokens in enumerate(token_sets)
                if tokens and any(tokens & other for j, other in enumerate(token_sets) if j != i)
            )
            cohesion = round(shared / len(files) * 10, 1)

        return DomainState(
            commands=len(files),
            total_lines=total_lines,
            complexity=complexity,
            cohesion=cohesion,
        )

    def analyze_deep_architecture(
        self,
        domain_path: Union[str, Path],
        options: Union[DetectionOptions, dict[str, Any], None] = None,
    ) -> DeepArchitectureReport:
        """
        Light analysis, pattern matching and the three-tier deep analysis
        merged into one report.

        Args:
            domain_path: Domain directory, absolute or relative to base_path
            options: Detection options; min_severity defaults to medium

        Raises:
            ValueError: If the path escapes base_path
            FileNotFoundError: If the path does not exist
        """
        path = self.resolve_domain(domain_path)
        opts = DetectionOptions.coerce(options)

        keywords = extract_keywords(" ".join(tokenize_identifier(path.name)) or path.name)
        matches = self.match_patterns(keywords)
        commands = self.suggest_commands(keywords, matches)

        light = self.analyze_domain(path)
        deep = self.deep_engine.run_full_analysis(path, opts)

        return DeepArchitectureReport(
            domain=path.name,
            commands=commands,
            patterns=matches,
            confidence=self.overall_confidence(matches),
            deep_analysis=deep,
            summary=ReportSummary(
                light_analysis=LightAnalysisSummary(
                    commands=light.current.commands,
                    complexity=light.current.complexity,
                    cohesion=light.current.cohesion,
                    strengths=light.strengths,
                    issues=[i.title for i in light.issues],
                ),
                deep_analysis=deep.summary,
            ),
        )

    def plan_refactoring(
        self,
        domain_path: Union[str, Path],
        issue_id: str,
        options: Union[DetectionOptions, dict[str, Any], None] = None,
    ) -> RefactoringPlan:
        """
        Options, migration strategy and checklist for one detected issue.

        The lookup runs over every detected issue whatever min_severity
        says; ids are numbered before filtering, so an id reported by any
        run with the same skip_rules resolves here.

        Raises:
            ValueError: If no issue with that id is detected
        """
        path = self.resolve_domain(domain_path)
        opts = replace(DetectionOptions.coerce(options), min_severity=SEVERITY_LEVELS[0])
        result = self.deep_engine.run_full_analysis(path, opts)
        for strategy in result.refactoring_strategies:
            if strategy.issue.id == issue_id:
                planner = RefactoringPlanner(self.deep_engine.toolchain or infer_toolchain(result.components))
                return RefactoringPlan(
                    strategy=strategy,
                    checklist=planner.build_checklist(strategy.migration_strategy),
                )
        known = ", ".join(i.id for i in result.issues) or "none"
        raise ValueError(f"Issue {issue_id} not found (reported: {known})")
