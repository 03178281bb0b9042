"""
Configuration settings for domain analysis.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal


# ============================================================================
# PATHS
# ============================================================================

PACKAGE_ROOT: Path = Path(__file__).parent.resolve()
DATA_DIR: Path = PACKAGE_ROOT / "data"
PATTERNS_FILE: Path = DATA_DIR / "architecture_patterns.json"


# ============================================================================
# SOURCE DISCOVERY
# ============================================================================

SOURCE_EXTENSIONS: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
}

# Declaration-only files carry no function bodies
IGNORED_SUFFIXES: tuple[str, ...] = (".d.ts",)

# Dependency, vendor and build output directories
SKIP_DIRECTORIES = frozenset({
    "node_modules",
    "bower_components",
    "jspm_packages",
    "vendor",
    ".git",
    ".hg",
    "__pycache__",
    ".venv",
    "venv",
    "env",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    "site-packages",
    "dist",
    "build",
    "coverage",
    ".next",
})

TEST_DIRECTORIES = frozenset({"tests", "test", "__tests__", "spec", "specs"})

MANIFEST_FILES: tuple[str, ...] = ("package.json", "pyproject.toml", "requirements.txt")


# ============================================================================
# ANALYSIS THRESHOLDS
# ============================================================================

Severity = Literal["low", "medium", "high", "critical"]
RiskLevel = Literal["low", "medium", "high"]

SEVERITY_RANK: dict[str, int] = {"low": 1, "medium": 2, "high": 3, "critical": 4}
SEVERITY_LEVELS: tuple[str, ...] = ("low", "medium", "high", "critical")
DEFAULT_MIN_SEVERITY: Severity = "medium"


@dataclass(frozen=True)
class AnalysisThresholds:
    """Heuristic thresholds used by the extractor and the detection rules."""

    # Code smells (per file / per function)
    long_function_lines: int = 50
    very_long_function_lines: int = 100
    high_complexity: int = 5
    very_high_complexity: int = 10
    max_external_dependencies: int = 3
    heavy_external_dependencies: int = 6
    max_nesting_depth: int = 3
    severe_nesting_depth: int = 5

    # Domain-level rules
    max_components: int = 10
    critical_components: int = 15
    min_components_for_cohesion: int = 4
    low_cohesion_similarity: float = 0.15
    very_low_cohesion_similarity: float = 0.05
    semantic_cohesion_similarity: float = 0.35
    min_components_for_high_cohesion_issue: int = 8
    size_outlier_ratio: float = 2.0
    size_variation_coefficient: float = 1.0
    min_doc_coverage: float = 70.0
    poor_doc_coverage: float = 40.0
    untested_file_complexity: int = 15
    duplicate_name_similarity: float = 0.7
    stale_dependency_escalation: int = 3

    # Relationship analysis
    escalation_related_issues: int = 3


DEFAULT_THRESHOLDS = AnalysisThresholds()


# ============================================================================
# SIMILARITY CONFIGURATION
# ============================================================================

SimilarityBackendName = Literal["lexical", "semantic"]
DEFAULT_SIMILARITY_BACKEND: SimilarityBackendName = "lexical"

# Same model ladder as the embedding index: faster -> more accurate
EMBEDDING_MODELS: dict[str, str] = {
    "fast": "all-MiniLM-L6-v2",
    "balanced": "all-MiniLM-L12-v2",
    "accurate": "all-mpnet-base-v2",
}
DEFAULT_MODEL: str = "fast"

# Tokens too generic to say anything about a component's purpose
IDENTIFIER_STOP_WORDS = frozenset({
    "index", "main", "util", "utils", "helper", "helpers", "lib", "mod",
    "the", "and", "for", "with", "from", "into", "get", "set", "default",
    "init", "self", "new",
})


# ============================================================================
# DEPENDENCY FRESHNESS
# ============================================================================

# Lowest major version still considered current. Anything declared below
# it is reported by the OutdatedDependencies rule.
KNOWN_CURRENT_MAJORS: dict[str, int] = {
    # npm
    "typescript": 5,
    "eslint": 9,
    "prettier": 3,
    "vitest": 2,
    "jest": 29,
    "react": 18,
    "react-dom": 18,
    "webpack": 5,
    "vite": 5,
    "express": 4,
    "next": 14,
    "chalk": 5,
    "commander": 12,
    "@types/node": 20,
    # PyPI
    "django": 4,
    "flask": 3,
    "numpy": 1,
    "pandas": 2,
    "pytest": 8,
    "requests": 2,
    "sqlalchemy": 2,
    "pydantic": 2,
}


# ============================================================================
# REFACTORING PLANS
# ============================================================================

Toolchain = Literal["node", "python"]
DEFAULT_TOOLCHAIN: Toolchain = "node"

QUALITY_GATE_COMMANDS: dict[str, dict[str, str]] = {
    "node": {
        "review": "git diff --stat",
        "typecheck": "npx tsc --noEmit",
        "unit_tests": "npm test",
        "full_suite": "npm test -- --coverage",
        "clean_tree": "git status --porcelain",
    },
    "python": {
        "review": "git diff --stat",
        "typecheck": "python -m mypy .",
        "unit_tests": "python -m pytest -q",
        "full_suite": "python -m pytest",
        "clean_tree": "git status --porcelain",
    },
}

HOURS_PER_DAY: int = 8


# ============================================================================
# DEVICE DETECTION
# ============================================================================

DeviceType = Literal["cuda", "mps", "cpu"]


def detect_device() -> DeviceType:
    """
    Detect the best available device for embedding generation.

    Returns:
        'cuda' for NVIDIA GPU, 'mps' for Apple Silicon, or 'cpu'
    """
    try:
        import torch
        if torch.cuda.is_available():
            return "cuda"
        elif hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
            return "mps"
    except ImportError:
        pass
    return "cpu"
