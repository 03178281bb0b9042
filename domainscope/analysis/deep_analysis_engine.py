"""
Deep Analysis Engine

Runs the three analysis tiers over a domain:
1. Component metrics (ComponentAnalyzer)
2. Architectural issues (IssueDetector)
3. Refactoring options and migration strategies (RefactoringPlanner)
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, Optional, Union

from domainscope.analysis.component_analyzer import ComponentAnalyzer
from domainscope.analysis.issue_detector import IssueDetector
from domainscope.analysis.models import (
    AnalysisResult,
    AnalysisSummary,
    ComponentMetrics,
    DetectionOptions,
    RefactoringStrategy,
)
from domainscope.analysis.refactoring_planner import RefactoringPlanner
from domainscope.config import DEFAULT_THRESHOLDS, DEFAULT_TOOLCHAIN, AnalysisThresholds
from domainscope.utils.logging_config import LogContext, get_logger

logger = get_logger(__name__)


def infer_toolchain(components: list[ComponentMetrics]) -> str:
    """'python' when most components are Python, else 'node'."""
    if not components:
        return DEFAULT_TOOLCHAIN
    languages = Counter(c.language for c in components)
    python = languages.get("python", 0)
    return "python" if python * 2 > len(components) else "node"


class DeepAnalysisEngine:
    """
    Orchestrates extractor, rule engine and planner.

    Holds no per-call state: one instance may analyze many domains, and
    independent instances may run concurrently.
    """

    def __init__(
        self,
        analyzer: Optional[ComponentAnalyzer] = None,
        detector: Optional[IssueDetector] = None,
        thresholds: Optional[AnalysisThresholds] = None,
        toolchain: Optional[str] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            analyzer: Component analyzer (tier 1)
            detector: Issue detector (tier 2); shares the analyzer by default
            thresholds: Heuristic thresholds for both tiers
            toolchain: Quality-gate toolchain; inferred per domain when None
        """
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self.analyzer = analyzer or ComponentAnalyzer(thresholds=self.thresholds)
        self.detector = detector or IssueDetector(analyzer=self.analyzer, thresholds=self.thresholds)
        self.toolchain = toolchain

    def run_full_analysis(
        self,
        domain_path: Union[str, Path],
        options: Union[DetectionOptions, dict[str, Any], None] = None,
    ) -> AnalysisResult:
        """
        Analyze a domain end to end.

        Args:
            domain_path: Domain directory
            options: Detection options (min_severity, skip_rules)

        Returns:
            AnalysisResult whose summary counts are derived from its lists

        Raises:
            FileNotFoundError: If the domain path does not exist
        """
        path = Path(domain_path)
        if not path.exists():
            raise FileNotFoundError(f"Domain path does not exist: {domain_path}")
        if not path.is_dir():
            raise NotADirectoryError(f"Domain path is not a directory: {domain_path}")
        path = path.resolve()

        with LogContext(logger, f"Deep analysis: {path}"):
            logger.info("Tier 1/3: Analyzing components...")
            components = self.analyzer.scan_component_dir(path)

            logger.info("Tier 2/3: Detecting architectural issues...")
            issues = self.detector.detect(path, options, components=components)
            logger.info(f"Found {len(issues)} issue(s)")

            logger.info("Tier 3/3: Planning refactorings...")
            planner = RefactoringPlanner(self.toolchain or infer_toolchain(components))
            strategies: list[RefactoringStrategy] = []
            for issue in issues:
                issue_options = planner.generate_options(issue)
                recommended = planner.recommend_best(issue_options)
                strategies.append(RefactoringStrategy(
                    issue=issue,
                    options=issue_options,
                    recommended_option=recommended,
                    migration_strategy=planner.create_migration_strategy(issue, recommended),
                ))
            logger.info(f"Planned {sum(len(s.options) for s in strategies)} option(s)")

        return AnalysisResult(
            components=components,
            issues=issues,
            refactoring_strategies=strategies,
            summary=AnalysisSummary(
                total_components=len(components),
                total_issues=len(issues),
                critical_issues=sum(1 for i in issues if i.severity == "critical"),
                total_refactoring_options=sum(len(s.options) for s in strategies),
            ),
        )
