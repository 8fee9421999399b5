"""Shared Loguru logging initializer for jaxprimordial.

Usage:
    from jaxprimordial.log import init_logging, get_logger
    init_logging("DEBUG")  # optional, once, in an application entry point
    log = get_logger()
    log.info("Computing primordial spectra")
"""

from __future__ import annotations

import os
import sys
from typing import Optional

from loguru import logger


def init_logging(
    level: Optional[str] = None,
    *,
    colorize: bool = True,
    backtrace: bool = False,
    diagnose: bool = False,
) -> logger.__class__:
    """Install a single stderr sink on the global Loguru logger.

    Log level priority:
      1) `level` arg
      2) env JAXPRIMORDIAL_LOG_LEVEL
      3) env JAXPRIMORDIAL_DEBUG -> DEBUG
      4) default INFO
    """
    env_level = os.getenv("JAXPRIMORDIAL_LOG_LEVEL")
    if level:
        level_final = str(level).upper()
    elif env_level:
        level_final = env_level.upper()
    elif os.getenv("JAXPRIMORDIAL_DEBUG"):
        level_final = "DEBUG"
    else:
        level_final = "INFO"

    logger.remove()
    logger.add(
        sys.stderr,
        level=level_final,
        colorize=colorize,
        backtrace=backtrace,
        diagnose=diagnose,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <7}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
    )

    logger.debug("Logging initialized at level {}", level_final)
    return logger


def get_logger() -> logger.__class__:
    """Return the shared logger.

    Sinks are left as the application configured them; only init_logging
    replaces them.
    """
    return logger


def progress(verbose: int):
    """Return the log method used for progress messages.

    CLASS-style verbosity: verbose > 0 reports at INFO, otherwise DEBUG.
    """
    log = get_logger()
    return log.info if verbose > 0 else log.debug
