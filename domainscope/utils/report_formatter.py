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
Report Formatting Utilities

Renders analysis results as plain-text reports for the CLI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from domainscope.analysis.models import (
    AnalysisResult,
    ArchitecturalIssue,
    ImplementationChecklist,
    RefactoringStrategy,
)

if TYPE_CHECKING:
    from domainscope.decision_engine import (
        ArchitectureRecommendation,
        DeepArchitectureReport,
        DomainAnalysis,
        RefactoringPlan,
    )


SEVERITY_MARKERS: dict[str, str] = {
    "critical": "[CRITICAL]",
    "high": "[HIGH]",
    "medium": "[MEDIUM]",
    "low": "[LOW]",
}


class ReportFormatter:
    """
    Formats analysis results for display.

    One formatter renders every report type so the CLI output stays
    consistent across commands.
    """

    def __init__(
        self,
        width: int = 60,
        show_components: bool = True,
        show_options: bool = True,
    ) -> None:
        """
        Initialize the formatter.

        Args:
            width: Width of section rules
            show_components: Include the per-component table in deep reports
            show_options: List every refactoring option, not just the recommended one
        """
        self.width = width
        self.show_components = show_components
        self.show_options = show_options

    def _section(self, title: str) -> list[str]:
        return ["", "=" * self.width, title, "=" * self.width]

    def _subsection(self, title: str) -> list[str]:
        return ["", title, "-" * self.width]

    def format_issue(self, issue: ArchitecturalIssue) -> str:
        marker = SEVERITY_MARKERS.get(issue.severity, f"[{issue.severity.upper()}]")
        lines = [
            f"{marker} {issue.id}: {issue.title}",
            f"  Location: {issue.location}",
            f"  {issue.description}",
            f"  Evidence: {issue.evidence}",
        ]
        if issue.impact:
            lines.append(f"  Impact: {'; '.join(issue.impact)}")
        if issue.effort:
            lines.append(f"  Effort: {issue.effort}")
        if issue.related_issues:
            lines.append(f"  Related: {', '.join(issue.related_issues)}")
        return "\n".join(lines)

    def format_strategy(self, strategy: RefactoringStrategy) -> str:
        lines = [f"{strategy.issue.id}: {strategy.issue.title}"]
        recommended = strategy.recommended_option
        if recommended is not None:
            breaking = ", breaking" if recommended.breaking else ""
            lines.append(
                f"  Recommended: {recommended.name} "
                f"({recommended.effort}, {recommended.risk_level} risk{breaking})"
            )
        if self.show_options:
            for option in strategy.options:
                if option is recommended:
                    continue
                lines.append(f"  Alternative: {option.name} ({option.effort}, {option.risk_level} risk)")
        if strategy.migration_strategy is not None:
            phases = " -> ".join(p.name for p in strategy.migration_strategy.phases)
            lines.append(f"  Plan: {phases} ({strategy.migration_strategy.estimated_duration})")
        return "\n".join(lines)

    def format_analysis(self, result: AnalysisResult, title: str = "DEEP ANALYSIS") -> str:
        """
        Format a three-tier analysis result.

        Args:
            result: Result of DeepAnalysisEngine.run_full_analysis()
            title: Report heading

        Returns:
            Multi-line report
        """
        summary = result.summary
        lines = self._section(title)
        lines.append(
            f"Components: {summary.total_components}  "
            f"Issues: {summary.total_issues} ({summary.critical_issues} critical)  "
            f"Options: {summary.total_refactoring_options}"
        )

        if self.show_components and result.components:
            lines.extend(self._subsection("COMPONENTS"))
            for c in result.components:
                smells = f", {len(c.code_smells)} smell(s)" if c.code_smells else ""
                lines.append(
                    f"  {c.name:<28} {c.lines:>5} lines  complexity {c.complexity:>3}  "
                    f"docs {c.doc_coverage:>3}%{smells}"
                )

        lines.extend(self._subsection("ISSUES"))
        if result.issues:
            lines.extend(self.format_issue(i) for i in result.issues)
        else:
            lines.append("  No issues at the selected severity.")

        if result.refactoring_strategies:
            lines.extend(self._subsection("REFACTORING"))
            lines.extend(self.format_strategy(s) for s in result.refactoring_strategies)

        return "\n".join(lines)

    def format_deep_report(self, report: DeepArchitectureReport) -> str:
        light = report.summary.light_analysis
        lines = self._section(f"DOMAIN: {report.domain}")
        lines.append(
            f"Files: {light.commands}  Complexity: {light.complexity}/10  "
            f"Cohesion: {light.cohesion}/10"
        )
        if report.patterns:
            names = ", ".join(f"{p.name} ({p.confidence}%)" for p in report.patterns)
            lines.append(f"Patterns: {names}")
        for strength in light.strengths:
            lines.append(f"  + {strength}")
        for issue in light.issues:
            lines.append(f"  - {issue}")
        return "\n".join(lines) + "\n" + self.format_analysis(report.deep_analysis)

    def format_domain_analysis(self, analysis: DomainAnalysis) -> str:
        current = analysis.current
        lines = self._section(f"DOMAIN: {analysis.domain}")
        lines.append(
            f"Files: {current.commands}  Lines: {current.total_lines}  "
            f"Complexity: {current.complexity}/10  Cohesion: {current.cohesion}/10"
        )
        if analysis.strengths:
            lines.extend(self._subsection("STRENGTHS"))
            lines.extend(f"  + {s}" for s in analysis.strengths)
        if analysis.issues:
            lines.extend(self._subsection("ISSUES"))
            for issue in analysis.issues:
                lines.append(f"  - {issue.title}: {issue.problem}")
                lines.append(f"    -> {issue.recommendation} ({issue.effort})")
        for phase in analysis.refactoring_roadmap:
            lines.extend(self._subsection(f"{phase.name.upper()} ({phase.duration})"))
            lines.extend(f"  * {t}" for t in phase.tasks)
        return "\n".join(lines)

    def format_recommendation(self, rec: ArchitectureRecommendation) -> str:
        lines = self._section(f"RECOMMENDED DOMAIN: {rec.domain}")
        lines.append(f"Confidence: {rec.confidence}%")

        lines.extend(self._subsection("COMMANDS"))
        for command in rec.commands:
            args = " ".join(f"<{a}>" for a in command.args)
            lines.append(f"  {command.name} {args}".rstrip() + f"  - {command.description} ({command.complexity})")

        if rec.skills:
            lines.extend(self._subsection("SKILLS"))
            lines.extend(f"  {s.name}: {s.purpose}" for s in rec.skills)
        if rec.integrations:
            lines.extend(self._subsection("INTEGRATIONS"))
            lines.extend(f"  {i.name} ({i.system}): {i.purpose}" for i in rec.integrations)
        if rec.hooks:
            lines.extend(self._subsection("HOOKS"))
            for hook in rec.hooks:
                when = f" [{hook.frequency}]" if hook.frequency else ""
                lines.append(f"  {hook.event}{when}: {hook.purpose}")

        lines.extend(self._subsection("RATIONALE"))
        lines.extend(f"  * {r}" for r in rec.rationale)

        plan = rec.implementation
        lines.extend(self._subsection(f"IMPLEMENTATION ({plan.total_effort}, {plan.complexity})"))
        for phase in plan.phases:
            lines.append(f"  {phase.name} ({phase.duration})")
            lines.extend(f"    - {step}" for step in phase.steps)
        return "\n".join(lines)

    def format_checklist(self, checklist: Optional[ImplementationChecklist]) -> str:
        if checklist is None:
            return "No checklist: the issue has no refactoring options."
        lines = self._section(f"CHECKLIST ({checklist.total_duration}, {checklist.overall_risk} risk)")
        for phase in checklist.phases:
            lines.extend(self._subsection(f"{phase.name} ({phase.duration})"))
            for item in phase.tasks:
                optional = " (optional)" if item.optional else ""
                lines.append(f"  [ ] {item.id} {item.task}{optional}")
                if item.check_command != "manual":
                    lines.append(f"      $ {item.check_command}")
        if checklist.approval_gates:
            lines.extend(self._subsection("APPROVALS"))
            lines.extend(f"  [ ] {gate}" for gate in checklist.approval_gates)
        return "\n".join(lines)

    def format_plan(self, plan: RefactoringPlan) -> str:
        return "\n".join([
            self.format_issue(plan.issue),
            "",
            self.format_strategy(plan.strategy),
            self.format_checklist(plan.checklist),
        ])


# Default formatter instance
_default_formatter: Optional[ReportFormatter] = None


def get_default_formatter() -> ReportFormatter:
    """Get the default report formatter instance."""
    global _default_formatter
    if _default_formatter is None:
        _default_formatter = ReportFormatter()
    return _default_formatter
