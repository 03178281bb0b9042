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
Logging Configuration

Provides consistent logging setup across all domainscope modules.
Log records go to stderr so that JSON reports on stdout stay parseable.
"""

import logging
import os
import sys
import time
from typing import Optional
from pathlib import Path


# Default format for log messages
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "domainscope"

# Module-level logger cache
_loggers: dict[str, logging.Logger] = {}
_initialized = False
# Handlers added by setup_logging; others on the logger are left alone
_handlers: list[logging.Handler] = []


def level_for_verbosity(verbosity: int) -> int:
    """Map a count of -v flags to a level: 0 WARNING, 1 INFO, 2+ DEBUG."""
    if verbosity <= 0:
        return logging.WARNING
    return logging.INFO if verbosity == 1 else logging.DEBUG


def setup_logging(
    level: int = logging.WARNING,
    log_file: Optional[Path] = None,
    format_string: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT
) -> None:
    """
    Configure the ``domainscope`` logger hierarchy.

    Library use stays quiet (WARNING). get_logger() configures defaults on
    first use, so the CLI calls this again to raise the level and to add
    a log file; repeated calls adjust the existing handlers.

    Args:
        level: Logging level (default: WARNING)
        log_file: Optional path to a log file, written at the same level
        format_string: Log message format
        date_format: Date format for timestamps
    """
    global _initialized

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    formatter = logging.Formatter(format_string, datefmt=date_format)

    if not _initialized:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
        _handlers.append(console_handler)
        # Records stop here; applications keep control of the root logger
        root_logger.propagate = False
        _initialized = True

    if log_file is not None:
        log_file = Path(log_file)
        existing = {getattr(h, "baseFilename", None) for h in _handlers}
        if os.path.abspath(log_file) not in existing:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            _handlers.append(file_handler)

    for handler in _handlers:
        handler.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger below the ``domainscope`` hierarchy.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Example:
        logger = get_logger(__name__)
        logger.info("Scanning domain")
    """
    if not _initialized:
        setup_logging()

    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    if name not in _loggers:
        _loggers[name] = logging.getLogger(name)

    return _loggers[name]


class LogContext:
    """
    Frames a unit of work in the log and records how long it took.

    Usage:
        logger = get_logger(__name__)
        with LogContext(logger, "Deep analysis: src/lib") as ctx:
            logger.info("Tier 1/3 ...")
        ctx.elapsed  # seconds
    """

    def __init__(self, logger: logging.Logger, context: str) -> None:
        self.logger = logger
        self.context = context
        self.elapsed = 0.0
        self._started = 0.0

    def __enter__(self) -> "LogContext":
        self.logger.info("=" * 60)
        self.logger.info(self.context)
        self.logger.info("=" * 60)
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.elapsed = time.perf_counter() - self._started
        if exc_type:
            self.logger.error(f"{self.context} failed after {self.elapsed:.2f}s: {exc_val}")
        else:
            self.logger.info(f"{self.context} completed in {self.elapsed:.2f}s")
