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
Architecture Issue Detector

Runs a registry of detection rules over a snapshot of a domain, numbers
the issues, links issues that compound each other, and returns them
filtered and sorted by severity.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from domainscope.analysis.component_analyzer import ComponentAnalyzer, iter_test_files
from domainscope.analysis.detection_rules import (
    DetectionRule,
    builtin_rules,
    find_manifest,
    load_manifest,
)
from domainscope.analysis.models import (
    ArchitecturalIssue,
    ComponentMetrics,
    DetectionContext,
    DetectionOptions,
    IssueType,
)
from domainscope.config import (
    DEFAULT_THRESHOLDS,
    SEVERITY_LEVELS,
    SEVERITY_RANK,
    AnalysisThresholds,
)
from domainscope.utils.logging_config import get_logger

logger = get_logger(__name__)


# Issue-type pairs that compound each other. The flag marks pairs that
# only relate when both issues point at the same location.
RELATED_ISSUE_TYPES: list[tuple[IssueType, IssueType, bool]] = [
    (IssueType.TOO_MANY_COMMANDS, IssueType.TIGHT_COUPLING, False),
    (IssueType.TOO_MANY_COMMANDS, IssueType.LOW_COHESION, False),
    (IssueType.LOW_COHESION, IssueType.DUPLICATE_FUNCTIONALITY, False),
    (IssueType.TIGHT_COUPLING, IssueType.TEST_COVERAGE_GAPS, True),
    (IssueType.MISSING_DOCUMENTATION, IssueType.TEST_COVERAGE_GAPS, False),
]


def escalate(severity: str) -> str:
    """One severity level up, capped at critical."""
    rank = SEVERITY_RANK.get(severity, 1)
    return SEVERITY_LEVELS[min(rank, len(SEVERITY_LEVELS) - 1)]


class IssueDetector:
    """
    Detects architectural issues in a domain.

    Built-in rules are installed on construction; callers extend the set
    with register_rule(). Built-in and custom rules are indistinguishable
    to the engine.
    """

    def __init__(
        self,
        analyzer: Optional[ComponentAnalyzer] = None,
        thresholds: Optional[AnalysisThresholds] = None,
        rules: Optional[list[DetectionRule]] = None,
    ) -> None:
        """
        Initialize the issue detector.

        Args:
            analyzer: ComponentAnalyzer used to scan the domain
            thresholds: Rule thresholds (defaults to config.DEFAULT_THRESHOLDS)
            rules: Rule set replacing the built-ins
        """
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self.analyzer = analyzer or ComponentAnalyzer(thresholds=self.thresholds)
        self._rules: list[DetectionRule] = []
        for rule in (builtin_rules() if rules is None else rules):
            self.register_rule(rule)

    @property
    def rules(self) -> list[DetectionRule]:
        """Registered rules in evaluation order."""
        return list(self._rules)

    def register_rule(self, rule: DetectionRule) -> None:
        """
        Append a rule to the registry.

        Raises:
            ValueError: If a rule with the same name is already registered
        """
        if any(existing.name == rule.name for existing in self._rules):
            raise ValueError(f"Rule already registered: {rule.name}")
        self._rules.append(rule)

    def detect(
        self,
        domain_path: Union[str, Path],
        options: Union[DetectionOptions, dict[str, Any], None] = None,
        components: Optional[list[ComponentMetrics]] = None,
    ) -> list[ArchitecturalIssue]:
        """
        Run every registered rule over the domain.

        Args:
            domain_path: Domain directory
            options: min_severity filter (default medium) and skip_rules
            components: Pre-scanned components; scanned here when omitted

        Returns:
            Issues sorted by severity descending, ties in detection order

        Raises:
            FileNotFoundError: If the domain path does not exist
            NotADirectoryError: If the domain path is not a directory
        """
        opts = DetectionOptions.coerce(options)
        if opts.min_severity not in SEVERITY_RANK:
            raise ValueError(
                f"Unknown severity: {opts.min_severity}. Use one of {', '.join(SEVERITY_LEVELS)}"
            )

        path = Path(domain_path)
        if not path.exists():
            raise FileNotFoundError(f"Domain path does not exist: {domain_path}")
        if not path.is_dir():
            raise NotADirectoryError(f"Domain path is not a directory: {domain_path}")
        path = path.resolve()

        context = self.build_context(path, components)

        issues: list[ArchitecturalIssue] = []
        skipped = set(opts.skip_rules)
        for rule in self._rules:
            if rule.name in skipped:
                logger.debug(f"Skipping rule {rule.name}")
                continue
            try:
                found = rule.detect(context)
            except Exception as e:
                logger.warning(f"Rule {rule.name} failed on {path}: {e}")
                continue
            logger.debug(f"Rule {rule.name}: {len(found)} issue(s)")
            issues.extend(found)

        for number, issue in enumerate(issues, start=1):
            issue.id = f"ISSUE-{number:03d}"

        self.link_related_issues(issues)

        min_rank = SEVERITY_RANK[opts.min_severity]
        kept = [i for i in issues if i.severity_rank >= min_rank]
        kept_ids = {i.id for i in kept}
        for issue in kept:
            issue.related_issues = [r for r in issue.related_issues if r in kept_ids]

        # sorted() is stable: equal severities keep detection order
        kept = sorted(kept, key=lambda i: i.severity_rank, reverse=True)

        logger.info(
            f"Detected {len(issues)} issue(s) in {path}, "
            f"{len(kept)} at or above {opts.min_severity}"
        )
        return kept

    def build_context(
        self,
        domain_path: Path,
        components: Optional[list[ComponentMetrics]] = None,
    ) -> DetectionContext:
        """Snapshot the domain once for all rules."""
        if components is None:
            components = self.analyzer.scan_component_dir(domain_path)

        manifest = None
        manifest_path = find_manifest(domain_path)
        if manifest_path is not None:
            manifest = load_manifest(manifest_path)

        return DetectionContext(
            domain_path=domain_path,
            components=components,
            test_files=iter_test_files(domain_path),
            manifest=manifest,
            thresholds=self.thresholds,
        )

    def link_related_issues(self, issues: list[ArchitecturalIssue]) -> None:
        """
        Cross-link issues that compound each other, then escalate issues
        with many relations by one severity level.

        Component-level issues sharing a file are related; domain-level
        issues relate only through RELATED_ISSUE_TYPES.
        """
        domain_locations = {
            i.location for i in issues
            if IssueType.from_issue(i) in (
                IssueType.TOO_MANY_COMMANDS,
                IssueType.LOW_COHESION,
                IssueType.UNBALANCED_DISTRIBUTION,
                IssueType.MISSING_DOCUMENTATION,
            )
        }

        def relate(a: ArchitecturalIssue, b: ArchitecturalIssue) -> None:
            if b.id not in a.related_issues:
                a.related_issues.append(b.id)
            if a.id not in b.related_issues:
                b.related_issues.append(a.id)

        for index, first in enumerate(issues):
            for second in issues[index + 1:]:
                same_location = first.location == second.location
                if same_location and first.location not in domain_locations:
                    relate(first, second)
                    continue
                if self._types_related(first, second, same_location):
                    relate(first, second)

        # Escalate on the relationship counts as linked, not as escalated
        counts = {i.id: len(i.related_issues) for i in issues}
        for issue in issues:
            if counts[issue.id] >= self.thresholds.escalation_related_issues:
                raised = escalate(issue.severity)
                if raised != issue.severity:
                    logger.debug(f"{issue.id} escalated {issue.severity} -> {raised}")
                    issue.severity = raised

    @staticmethod
    def _types_related(
        first: ArchitecturalIssue,
        second: ArchitecturalIssue,
        same_location: bool,
    ) -> bool:
        a, b = IssueType.from_issue(first), IssueType.from_issue(second)
        if a is None or b is None:
            return False
        for left, right, needs_location in RELATED_ISSUE_TYPES:
            if {a, b} == {left, right} and (same_location or not needs_location):
                return True
        return False
