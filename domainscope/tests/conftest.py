"""
Shared fixtures for the domainscope tests.
"""

from pathlib import Path
from typing import Callable, Optional

import pytest

from domainscope.analysis.models import (
    ArchitecturalIssue,
    ComponentMetrics,
    DetectionContext,
    FunctionMetric,
)


def make_function(
    name: str = "run",
    lines: int = 10,
    complexity: int = 1,
    args: int = 0,
    has_doc: bool = True,
    exported: bool = True,
    nesting_depth: int = 0,
) -> FunctionMetric:
    return FunctionMetric(
        name=name,
        lines=lines,
        complexity=complexity,
        args=args,
        has_doc=has_doc,
        exported=exported,
        nesting_depth=nesting_depth,
    )


def make_component(
    name: str,
    lines: int = 20,
    complexity: Optional[int] = None,
    functions: Optional[list[FunctionMetric]] = None,
    dependencies: Optional[list[str]] = None,
    file_path: Optional[str] = None,
    language: str = "typescript",
) -> ComponentMetrics:
    functions = functions if functions is not None else [make_function()]
    return ComponentMetrics(
        name=name,
        file_path=file_path or f"/domain/{name}.ts",
        lines=lines,
        complexity=complexity if complexity is not None else sum(f.complexity for f in functions),
        doc_coverage=100,
        functions=functions,
        dependencies=dependencies or [],
        language=language,
    )


def make_issue(
    issue_type: str,
    severity: str = "medium",
    location: str = "/domain",
) -> ArchitecturalIssue:
    return ArchitecturalIssue(
        id="",
        title=issue_type,
        description=f"{issue_type} at {location}",
        severity=severity,
        location=location,
        evidence="test evidence",
        effort="1-2 hours",
        issue_type=issue_type,
    )


def make_context(components: list[ComponentMetrics], **kwargs) -> DetectionContext:
    return DetectionContext(domain_path=Path("/domain"), components=components, **kwargs)


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[..., Path]:
    """Write a file below tmp_path, creating parent directories."""
    def _write(relative: str, content: str = "") -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
    return _write


def ts_command(name: str) -> str:
    """A small documented TypeScript command module."""
    return (
        f"/** Runs the {name} command. */\n"
        f"export function {name}(input: string): string {{\n"
        f"  if (!input) {{\n"
        f"    return '';\n"
        f"  }}\n"
        f"  return input.trim();\n"
        f"}}\n"
    )


@pytest.fixture
def make_domain(tmp_path: Path) -> Callable[..., Path]:
    """Create a TypeScript domain directory with one command per name."""
    def _make(names: list[str], dirname: str = "domain") -> Path:
        domain = tmp_path / dirname
        domain.mkdir(parents=True, exist_ok=True)
        for name in names:
            (domain / f"{name}.ts").write_text(ts_command(name), encoding="utf-8")
        return domain
    return _make
