"""
Domain Architecture Analyzer

Static analysis of code domains (directories of TypeScript, JavaScript or
Python components): component metrics, architectural issue detection and
phased refactoring plans.

Main Entry Points:
    - main.py: CLI interface
    - decision_engine.py: DecisionEngine facade
    - analysis/: Three-tier deep analysis
    - utils/: Shared utilities
"""

from domainscope.config import DATA_DIR, PATTERNS_FILE, DEFAULT_THRESHOLDS

__version__ = "1.0.0"
__all__ = ["DATA_DIR", "PATTERNS_FILE", "DEFAULT_THRESHOLDS"]
