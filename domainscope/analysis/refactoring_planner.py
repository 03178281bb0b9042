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
Refactoring Planner

Turns a detected issue into remediation options, picks one, expands it
into a Plan/Implement/Validate migration strategy with quality gates,
and flattens strategies into approval checklists.
"""

from __future__ import annotations

import math
import re
from pathlib import PurePath
from typing import Callable, Optional

from domainscope.analysis.models import (
    ArchitecturalIssue,
    ChecklistItem,
    ChecklistPhase,
    ImplementationChecklist,
    IssueType,
    MigrationStrategy,
    Phase,
    PhaseTask,
    QualityGate,
    RefactoringOption,
    RiskMitigation,
)
from domainscope.config import (
    DEFAULT_TOOLCHAIN,
    HOURS_PER_DAY,
    QUALITY_GATE_COMMANDS,
    SEVERITY_LEVELS,
    SEVERITY_RANK,
)
from domainscope.utils.logging_config import get_logger

logger = get_logger(__name__)


_EFFORT_PATTERN = re.compile(r"^(\d+)-(\d+) (hours|days)$")


def parse_effort(effort: str) -> tuple[float, float]:
    """
    Convert an effort range to hours.

    Raises:
        ValueError: If the string is not of the form "N-M hours|days"
    """
    match = _EFFORT_PATTERN.match(effort.strip())
    if not match:
        raise ValueError(f"Invalid effort estimate: {effort!r}")
    low, high, unit = int(match.group(1)), int(match.group(2)), match.group(3)
    factor = HOURS_PER_DAY if unit == "days" else 1
    return low * factor, high * factor


def format_effort(low_hours: float, high_hours: float) -> str:
    """Render an hour range, switching to days past two working days."""
    if high_hours > 2 * HOURS_PER_DAY:
        low = max(1, math.ceil(low_hours / HOURS_PER_DAY))
        high = max(low, math.ceil(high_hours / HOURS_PER_DAY))
        return f"{low}-{high} days"
    low = max(1, math.ceil(low_hours))
    return f"{low}-{max(low, math.ceil(high_hours))} hours"


def sum_efforts(efforts: list[str]) -> str:
    lows, highs = zip(*(parse_effort(e) for e in efforts)) if efforts else ((0,), (0,))
    return format_effort(sum(lows), sum(highs))


def max_risk(levels: list[str]) -> str:
    return max(levels, key=lambda level: SEVERITY_RANK.get(level, 0), default="low")


def _domain_of(location: str) -> str:
    path = PurePath(location)
    return str(path.parent) if path.suffix else location


# ============================================================================
# PLAYBOOKS
# ============================================================================

def _too_many_commands_options(issue: ArchitecturalIssue) -> list[RefactoringOption]:
    return [
        RefactoringOption(
            name="Extract Sub-Domain",
            description="Split the domain into 2-3 focused sub-domains",
            pros=["Clear separation of concerns", "Improved discoverability", "Enables independent evolution"],
            cons=["Requires dependency management", "More domains to maintain"],
            effort="4-6 hours",
            breaking=True,
            risk_level="medium",
            structural=True,
        ),
        RefactoringOption(
            name="Consolidate Commands",
            description="Merge related commands into meta-commands",
            pros=["Quick implementation", "Keeps a single domain", "Minimal changes"],
            cons=["Larger command objects", "Reduced discoverability"],
            effort="1-2 hours",
            breaking=False,
            risk_level="low",
        ),
        RefactoringOption(
            name="Organize by Concern",
            description="Regroup components into subdirectories by concern",
            pros=["Balanced organization", "Single domain preserved", "Logical grouping"],
            cons=["Still one domain conceptually"],
            effort="2-3 hours",
            breaking=False,
            risk_level="low",
        ),
    ]


def _low_cohesion_options(issue: ArchitecturalIssue) -> list[RefactoringOption]:
    return [
        RefactoringOption(
            name="Redefine Focus",
            description="Clarify the domain purpose and rename components that drifted",
            pros=["Improves clarity", "Attracts related commands"],
            cons=["Little effect if the components are truly unrelated"],
            effort="1-2 hours",
            breaking=False,
            risk_level="low",
        ),
        RefactoringOption(
            name="Merge into Related Domain",
            description="Move outlying components into the domain they belong to",
            pros=["Consolidates functionality", "Improves cohesion"],
            cons=["Larger target domain", "Import paths change"],
            effort="2-3 hours",
            breaking=False,
            risk_level="low",
            structural=True,
        ),
    ]


def _tight_coupling_options(issue: ArchitecturalIssue) -> list[RefactoringOption]:
    return [
        RefactoringOption(
            name="Extract Shared Utilities",
            description="Move external integrations into a utility layer the component depends on",
            pros=["Improves testability", "Reduces coupling", "Reusable abstractions"],
            cons=["Requires refactoring", "New layer to maintain"],
            effort="3-4 hours",
            breaking=False,
            risk_level="medium",
            structural=True,
        ),
        RefactoringOption(
            name="Add Facade",
            description="Put a facade in front of the external modules",
            pros=["Easy implementation", "Improves the interface"],
            cons=["Hides complexity rather than removing it", "Does not reduce coupling"],
            effort="2-3 hours",
            breaking=False,
            risk_level="low",
        ),
        RefactoringOption(
            name="Inject Dependencies",
            description="Pass collaborators in through constructor or function parameters",
            pros=["Isolates the component in tests", "Makes dependencies explicit"],
            cons=["Touches every call site", "More wiring code"],
            effort="2-4 hours",
            breaking=True,
            risk_level="medium",
        ),
    ]


def _test_coverage_options(issue: ArchitecturalIssue) -> list[RefactoringOption]:
    return [
        RefactoringOption(
            name="Add Unit Tests",
            description="Write unit tests for the untested code paths",
            pros=["Improves reliability", "Documents behavior", "Enables refactoring"],
            cons=["Time consuming", "Tests may mirror a poor design"],
            effort="4-6 hours",
            breaking=False,
            risk_level="low",
        ),
        RefactoringOption(
            name="Refactor for Testability",
            description="Split complex functions and isolate side effects, then test them",
            pros=["Improves design", "Smaller, focused tests"],
            cons=["Requires refactoring", "Longer implementation"],
            effort="1-2 days",
            breaking=False,
            risk_level="medium",
            structural=True,
        ),
    ]


PLAYBOOKS: dict[IssueType, Callable[[ArchitecturalIssue], list[RefactoringOption]]] = {
    IssueType.TOO_MANY_COMMANDS: _too_many_commands_options,
    IssueType.LOW_COHESION: _low_cohesion_options,
    IssueType.TIGHT_COUPLING: _tight_coupling_options,
    IssueType.TEST_COVERAGE_GAPS: _test_coverage_options,
}


class RefactoringPlanner:
    """
    Plans refactorings for detected issues.

    Quality-gate commands come from config.QUALITY_GATE_COMMANDS for the
    chosen toolchain ("node" or "python").
    """

    def __init__(self, toolchain: str = DEFAULT_TOOLCHAIN) -> None:
        if toolchain not in QUALITY_GATE_COMMANDS:
            raise ValueError(
                f"Unknown toolchain: {toolchain}. Use one of {sorted(QUALITY_GATE_COMMANDS)}"
            )
        self.toolchain = toolchain
        self.commands = QUALITY_GATE_COMMANDS[toolchain]

    def generate_options(self, issue: ArchitecturalIssue) -> list[RefactoringOption]:
        """
        Generate remediation options for an issue.

        Issue types without a playbook yield an empty list. Otherwise
        exactly one option has recommendation=True: the structural option
        for critical issues, else the lowest-risk, lowest-effort option.
        """
        issue_type = IssueType.from_issue(issue)
        playbook = PLAYBOOKS.get(issue_type) if issue_type else None
        if playbook is None:
            logger.debug(f"No playbook for issue {issue.id} ({issue.title})")
            return []

        options = playbook(issue)
        chosen = self._choose(issue, options)
        for option in options:
            option.recommendation = option is chosen
        return options

    @staticmethod
    def _choose(issue: ArchitecturalIssue, options: list[RefactoringOption]) -> RefactoringOption:
        if issue.severity == "critical":
            structural = [o for o in options if o.structural]
            if structural:
                return structural[0]

        def cost(option: RefactoringOption) -> tuple[int, float]:
            low, high = parse_effort(option.effort)
            return SEVERITY_RANK.get(option.risk_level, 0), (low + high) / 2

        # min() keeps the first of equal-cost options
        return min(options, key=cost)

    @staticmethod
    def recommend_best(options: list[RefactoringOption]) -> Optional[RefactoringOption]:
        """Flagged option, else the first one; None for no options."""
        if not options:
            return None
        for option in options:
            if option.recommendation:
                return option
        return options[0]

    def create_migration_strategy(
        self,
        issue: ArchitecturalIssue,
        option: Optional[RefactoringOption],
    ) -> Optional[MigrationStrategy]:
        """
        Expand an option into a Plan/Implement/Validate migration strategy.

        Args:
            issue: The issue being addressed
            option: The chosen option; None yields None

        Returns:
            MigrationStrategy, or None when there is no option
        """
        if option is None:
            return None

        cmd = self.commands
        critical = issue.severity == "critical"

        phases = [
            Phase(
                name="Plan",
                description="Scope the change and agree on the approach",
                tasks=[
                    PhaseTask(
                        id="PLAN-001",
                        title="Analyze current state",
                        description=f"Document how {issue.location} is affected by: {issue.title}",
                        steps=[
                            "Review the affected components",
                            "Document dependencies and callers",
                            "Record baseline metrics",
                        ],
                    ),
                    PhaseTask(
                        id="PLAN-002",
                        title="Validate the approach",
                        description=f"Confirm '{option.name}' fits the constraints",
                        steps=[
                            f"Walk through: {option.description}",
                            "List the call sites that will change",
                        ],
                    ),
                ],
                quality_gates=[
                    QualityGate(
                        name="Approach reviewed",
                        command=cmd["review"],
                        success_criteria="Plan approved by a reviewer",
                    ),
                ],
                duration="1-2 hours",
                risk_level="low",
            ),
            Phase(
                name="Implement",
                description=f"Apply '{option.name}'",
                tasks=[
                    PhaseTask(
                        id="IMPL-001",
                        title="Execute refactoring",
                        description=option.description,
                        steps=[
                            "Create the new structure",
                            "Move code in small, reviewable commits",
                            "Update imports and call sites",
                            "Run unit tests after each step",
                        ],
                    ),
                ],
                quality_gates=[
                    QualityGate(
                        name="Type check passes",
                        command=cmd["typecheck"],
                        success_criteria="No type errors",
                    ),
                    QualityGate(
                        name="Unit tests pass",
                        command=cmd["unit_tests"],
                        success_criteria="All unit tests pass",
                    ),
                ],
                duration=option.effort,
                risk_level=option.risk_level,
            ),
            Phase(
                name="Validate",
                description="Verify behavior is unchanged and the issue is resolved",
                tasks=[
                    PhaseTask(
                        id="VAL-001",
                        title="Validate improvements",
                        description="Verify the refactoring addressed the issue",
                        steps=[
                            "Run the full test suite",
                            "Re-run the analysis and compare metrics",
                            "Smoke test the affected entry points",
                        ],
                    ),
                ],
                quality_gates=[
                    QualityGate(
                        name="Full test suite passes",
                        command=cmd["full_suite"],
                        success_criteria="All tests pass with no coverage drop",
                    ),
                    QualityGate(
                        name="Manual smoke check",
                        command="manual",
                        success_criteria="Affected entry points behave as before",
                    ),
                ],
                duration="2-4 hours" if critical else "1-2 hours",
                risk_level="medium" if option.breaking else "low",
            ),
        ]

        risks = [
            RiskMitigation(
                risk="Breaking changes introduced",
                likelihood="high" if option.breaking else "low",
                impact="Callers fail after upgrading" if option.breaking else "Minor caller adjustments",
                mitigation=(
                    "This option is breaking: announce the change, keep deprecated "
                    "re-exports for one release, and ship a migration guide"
                    if option.breaking
                    else "Keep public signatures stable; no breaking change expected"
                ),
            ),
            RiskMitigation(
                risk="Performance regression",
                likelihood="low",
                impact="Slower application",
                mitigation="Compare benchmarks before and after the change",
            ),
        ]
        if critical:
            risks.append(RiskMitigation(
                risk="Critical issue persists after the change",
                likelihood="medium",
                impact="Critical impact on maintainability remains",
                mitigation="Re-run the analysis in the Validate phase before closing",
            ))

        rollback = ["git revert the refactoring commits", f"Re-run {cmd['full_suite']} to confirm the rollback"]
        if option.breaking:
            rollback.insert(1, "Restore the previous public exports and notify consumers")

        return MigrationStrategy(
            name=f"Migrate: {option.name}",
            overview=f"Migration plan for {issue.title} at {issue.location}",
            pre_flight_checks=[
                ChecklistItem(
                    id="PRE-001",
                    task="All tests passing",
                    check_command=cmd["unit_tests"],
                    success_criteria="No test failures",
                ),
                ChecklistItem(
                    id="PRE-002",
                    task="Working tree clean",
                    check_command=cmd["clean_tree"],
                    success_criteria="No uncommitted changes",
                ),
            ],
            phases=phases,
            post_flight_validation=[
                ChecklistItem(
                    id="POST-001",
                    task="All tests still passing",
                    check_command=cmd["full_suite"],
                    success_criteria="No test failures",
                ),
                ChecklistItem(
                    id="POST-002",
                    task="Type check clean",
                    check_command=cmd["typecheck"],
                    success_criteria="No type errors",
                ),
                ChecklistItem(
                    id="POST-003",
                    task="Issue no longer reported",
                    check_command=f"domainscope --deep {_domain_of(issue.location)} --min-severity low",
                    success_criteria=f"{issue.title} absent or lower severity",
                    optional=True,
                ),
            ],
            risk_mitigation=risks,
            rollback_plan=rollback,
            estimated_duration=sum_efforts([p.duration for p in phases]),
            issue_severity=issue.severity,
            option_risk=option.risk_level,
        )

    def build_checklist(self, strategy: Optional[MigrationStrategy]) -> Optional[ImplementationChecklist]:
        """
        Flatten a strategy into per-phase checklist items.

        Overall risk is the maximum of the phase risks, the option risk,
        the risk implied by the mitigations, and, for critical issues, high.
        """
        if strategy is None:
            return None

        phases: list[ChecklistPhase] = []
        for phase in strategy.phases:
            items = [
                ChecklistItem(
                    id=task.id,
                    task=task.title,
                    check_command="manual",
                    success_criteria=task.description,
                )
                for task in phase.tasks
            ]
            prefix = phase.name.upper()[:4]
            items.extend(
                ChecklistItem(
                    id=f"{prefix}-GATE-{n:03d}",
                    task=gate.name,
                    check_command=gate.command,
                    success_criteria=gate.success_criteria,
                )
                for n, gate in enumerate(phase.quality_gates, start=1)
            )
            phases.append(ChecklistPhase(name=phase.name, duration=phase.duration, tasks=items))

        levels = [p.risk_level for p in strategy.phases]
        levels.append(strategy.option_risk)
        levels.append(self._mitigation_risk(strategy.risk_mitigation))
        if strategy.issue_severity == "critical":
            levels.append("high")

        approvals = [f"{p.name} phase approval" for p in strategy.phases]
        if any(r.likelihood == "high" and "breaking" in r.risk.lower() for r in strategy.risk_mitigation):
            approvals.append("Breaking change sign-off")

        return ImplementationChecklist(
            phases=phases,
            total_duration=sum_efforts([p.duration for p in strategy.phases]),
            overall_risk=max_risk(levels),
            approval_gates=approvals,
        )

    @staticmethod
    def _mitigation_risk(risks: list[RiskMitigation]) -> str:
        """Risk implied by mitigation likelihoods."""
        likely = [r for r in risks if r.likelihood == "high"]
        if any("critical" in r.impact.lower() for r in likely):
            return SEVERITY_LEVELS[-1]
        if len(likely) > 1:
            return "high"
        if likely:
            return "medium"
        return "low"
