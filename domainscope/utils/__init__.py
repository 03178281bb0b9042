"""
Utility modules shared by the analyzers and the CLI.
"""

from domainscope.utils.lazy_imports import lazy_import, LazyModule
from domainscope.utils.logging_config import get_logger, level_for_verbosity, setup_logging
from domainscope.utils.report_formatter import ReportFormatter

__all__ = [
    "lazy_import",
    "LazyModule",
    "get_logger",
    "setup_logging",
    "level_for_verbosity",
    "ReportFormatter",
]
