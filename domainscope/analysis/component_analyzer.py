"""
Component Analyzer

Turns source files into ComponentMetrics: per-function size, complexity,
documentation and visibility, file-level dependencies, and code smells.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Callable, Optional

from domainscope.analysis.models import CodeSmell, ComponentMetrics, FunctionMetric
from domainscope.analysis.source_parser import (
    ParsedSource,
    SourceParser,
    detect_language,
    get_parser,
)
from domainscope.config import (
    DEFAULT_THRESHOLDS,
    SKIP_DIRECTORIES,
    TEST_DIRECTORIES,
    AnalysisThresholds,
)
from domainscope.utils.logging_config import get_logger

logger = get_logger(__name__)


ParserFactory = Callable[[str], SourceParser]

# foo.test.ts, foo.spec.js, test_foo.py, foo_test.py, foo-spec.tsx
TEST_STEM_PATTERN = re.compile(r"(^|[._-])(test|spec)s?([._-]|$)", re.IGNORECASE)


def read_text(path: Path) -> str:
    """Read file content with error handling."""
    return path.read_text(encoding="utf-8", errors="replace")


def is_test_file(path: Path) -> bool:
    """True for files whose stem carries a test/spec marker."""
    return bool(TEST_STEM_PATTERN.search(path.stem))


def component_name(path: Path) -> str:
    """Component name for a source file: its file name without extensions."""
    return path.name.split(".")[0] or path.stem


class ComponentAnalyzer:
    """Analyzes source files of a domain using tree-sitter parsers."""

    def __init__(
        self,
        thresholds: Optional[AnalysisThresholds] = None,
        parser_factory: Optional[ParserFactory] = None,
    ) -> None:
        """
        Initialize the component analyzer.

        Args:
            thresholds: Smell thresholds (defaults to config.DEFAULT_THRESHOLDS)
            parser_factory: Maps a language id to a SourceParser; tests inject fakes here
        """
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self.parser_factory = parser_factory or get_parser

    def analyze_component(self, file_path: str | Path) -> ComponentMetrics:
        """
        Analyze a single source file.

        Args:
            file_path: Path to a supported source file

        Returns:
            Fresh ComponentMetrics for the file

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file extension is not supported
        """
        path = Path(file_path).resolve()
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")

        language = detect_language(path)
        if language is None:
            raise ValueError(f"Unsupported source file: {file_path}")

        text = read_text(path)
        parser = self.parser_factory(language)
        parsed = parser.parse(text)
        if parsed.has_errors:
            logger.debug(f"Syntax errors while parsing {path}; metrics are best effort")

        return self.build_metrics(path, text, parsed, language)

    def build_metrics(
        self,
        path: Path,
        text: str,
        parsed: ParsedSource,
        language: str,
    ) -> ComponentMetrics:
        """Aggregate parsed spans into ComponentMetrics and derive smells."""
        functions = [
            FunctionMetric(
                name=span.name,
                lines=span.lines,
                complexity=span.complexity,
                args=span.args,
                has_doc=span.has_doc,
                exported=span.exported,
                nesting_depth=span.nesting_depth,
            )
            for span in parsed.functions
        ]

        documented = sum(1 for f in functions if f.has_doc)
        doc_coverage = round(documented / len(functions) * 100) if functions else 0

        metrics = ComponentMetrics(
            name=component_name(path),
            file_path=str(path),
            lines=len(text.splitlines()),
            complexity=sum(f.complexity for f in functions),
            doc_coverage=doc_coverage,
            functions=functions,
            dependencies=sorted(set(parsed.imports)),
            language=language,
        )
        metrics.code_smells = self.detect_smells(metrics, parsed.max_nesting)
        return metrics

    def detect_smells(self, metrics: ComponentMetrics, max_nesting: int = 0) -> list[CodeSmell]:
        """Derive code smells from function and file metrics."""
        t = self.thresholds
        smells: list[CodeSmell] = []

        for func in metrics.functions:
            if func.lines > t.long_function_lines:
                smells.append(CodeSmell(
                    type="long-function",
                    location=func.name,
                    severity="high" if func.lines > t.very_long_function_lines else "medium",
                    suggestion=(
                        f"`{func.name}` spans {func.lines} lines; split it into smaller "
                        f"functions of at most {t.long_function_lines} lines"
                    ),
                ))

            if func.complexity > t.high_complexity:
                smells.append(CodeSmell(
                    type="high-complexity",
                    location=func.name,
                    severity="high" if func.complexity > t.very_high_complexity else "medium",
                    suggestion=(
                        f"`{func.name}` has cyclomatic complexity {func.complexity}; "
                        f"extract branches or use early returns"
                    ),
                ))

            if func.exported and not func.has_doc:
                smells.append(CodeSmell(
                    type="missing-jsdoc",
                    location=func.name,
                    severity="medium",
                    suggestion=f"Document the exported function `{func.name}`",
                ))

            if func.nesting_depth > t.max_nesting_depth:
                smells.append(self._nesting_smell(func.name, func.nesting_depth))

        # Module-level control flow nested deeper than any function body
        deepest_function = max((f.nesting_depth for f in metrics.functions), default=0)
        if max_nesting > t.max_nesting_depth and max_nesting > deepest_function:
            smells.append(self._nesting_smell(metrics.name, max_nesting))

        external = metrics.external_dependencies
        if len(external) > t.max_external_dependencies:
            smells.append(CodeSmell(
                type="tight-coupling",
                location=metrics.name,
                severity="high" if len(external) > t.heavy_external_dependencies else "medium",
                suggestion=(
                    f"Imports {len(external)} external modules ({', '.join(external[:5])}"
                    f"{', ...' if len(external) > 5 else ''}); hide them behind an adapter"
                ),
            ))

        return smells

    def _nesting_smell(self, location: str, depth: int) -> CodeSmell:
        return CodeSmell(
            type="deep-nesting",
            location=location,
            severity="high" if depth > self.thresholds.severe_nesting_depth else "medium",
            suggestion=f"Control flow nests {depth} levels deep; flatten with guard clauses",
        )

    def scan_component_dir(self, dir_path: str | Path) -> list[ComponentMetrics]:
        """
        Recursively analyze every source file below a directory.

        Test files, test directories, and dependency/vendor/build
        directories are skipped. Files are visited in sorted order so the
        result is deterministic for a fixed directory state.

        Args:
            dir_path: Domain directory

        Returns:
            One ComponentMetrics per included file (empty for a missing directory)
        """
        root = Path(dir_path).resolve()
        if not root.is_dir():
            logger.debug(f"Not a directory, nothing to scan: {root}")
            return []

        components: list[ComponentMetrics] = []
        for path in iter_source_files(root):
            try:
                components.append(self.analyze_component(path))
            except OSError as e:
                logger.warning(f"Could not analyze {path}: {e}")

        logger.info(f"Analyzed {len(components)} components in {root}")
        return components


def iter_source_files(root: Path) -> list[Path]:
    """Supported, non-test source files below root in sorted order."""
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in SKIP_DIRECTORIES and d.lower() not in TEST_DIRECTORIES
        )
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if detect_language(path) is None or is_test_file(path):
                continue
            files.append(path)
    return files


def iter_test_files(root: Path) -> list[Path]:
    """
    Test files belonging to a domain.

    Looks inside the domain (test directories included) and in sibling
    test directories of the domain, e.g. ``src/foo`` -> ``tests/``.
    """
    candidates: list[Path] = []
    search_roots = [root]
    for ancestor in (root.parent, root.parent.parent):
        for name in sorted(TEST_DIRECTORIES):
            test_dir = ancestor / name
            if test_dir.is_dir() and test_dir not in search_roots:
                search_roots.append(test_dir)

    for search_root in search_roots:
        for dirpath, dirnames, filenames in os.walk(search_root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRECTORIES)
            relative = Path(dirpath).relative_to(search_root).parts
            in_test_dir = search_root != root or any(p.lower() in TEST_DIRECTORIES for p in relative)
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                if detect_language(path) is None:
                    continue
                if is_test_file(path) or in_test_dir:
                    if path not in candidates:
                        candidates.append(path)
    return candidates
