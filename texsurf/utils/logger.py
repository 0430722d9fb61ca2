"""
Logger setup shared by all contexts.

Library modules only emit records through their context logger
(contexts/{context}/logger.py). Sinks are configured once, by an entry point
such as scripts/render_tex.py, with setup_logger().
"""

import platform
import sys
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from loguru import logger

import texsurf

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {message}"
CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <7}</level> | <level>{message}</level>"

# Console colors that differ from loguru's defaults
LEVEL_COLORS = {
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<bold><red>",
}


def setup_logger(
    context_name: str,
    log_dir: Path,
    extra_provenance: Optional[Dict[str, object]] = None,
    console_level: str = "INFO",
) -> Path:
    """
    Send log records to {log_dir}/{context_name}.log (DEBUG) and stdout.

    Replaces any sinks configured before, then writes a provenance header so
    every log file records how it was produced.

    Args:
        context_name: Context identifier, also the log file stem ("render")
        log_dir: Directory for this logging session (created if missing)
        extra_provenance: Additional key-value pairs for the provenance header
        console_level: Minimum level shown on the console

    Returns:
        Path to the log file

    Example:
        log_file = setup_logger(
            "render",
            Path("outs/logs/render_20251114_123456"),
            extra_provenance={"LaTeX engine": "lualatex"},
        )
    """
    log_dir.mkdir(exist_ok=True, parents=True)
    log_file = log_dir / f"{context_name}.log"

    logger.remove()
    for level_name, color in LEVEL_COLORS.items():
        logger.level(level_name, color=color)

    logger.add(log_file, format=FILE_FORMAT, level="DEBUG")
    logger.add(sys.stdout, format=CONSOLE_FORMAT, level=console_level, colorize=True)

    log_provenance(extra_provenance)
    return log_file


def _provenance(extra: Optional[Dict[str, object]]) -> Iterator[Tuple[str, object]]:
    yield "Command", " ".join(sys.argv)
    yield "Working directory", Path.cwd()
    yield "Python", platform.python_version()
    yield "Platform", platform.platform()
    yield "texsurf", texsurf.__version__
    yield from (extra or {}).items()


def log_provenance(extra: Optional[Dict[str, object]] = None) -> None:
    """Log where and how this session runs, plus any extra key-value pairs."""
    rows = list(_provenance(extra))
    width = max(len(key) for key, _ in rows)

    logger.info("=" * 80)
    for key, value in rows:
        logger.info(f"{key + ':':<{width + 1}} {value}")
    logger.info("=" * 80)
