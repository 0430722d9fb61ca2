"""
Rendering context logger.

Provides logging interface for rendering context with automatic [render] prefix.
All rendering modules should import from this module, not from utils.logger directly.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from texsurf.utils.logger import setup_logger as _setup_logger

load_dotenv()

CONTEXT_PREFIX = "[render]"


def setup_rendering_logger(log_dir: Path, console_level: str = "INFO") -> Path:
    """
    Setup logger for rendering context.

    Configures loguru with provenance tracking and rendering-specific context.

    Args:
        log_dir: Directory for this rendering session
        console_level: Minimum level shown on the console

    Returns:
        Path to log file
    """
    return _setup_logger(
        context_name="render",
        log_dir=log_dir,
        extra_provenance={
            "LaTeX engine": os.getenv("LATEX_ENGINE", "lualatex"),
            "Render strategy": os.getenv("TEXSURF_RENDER_STRATEGY", "native"),
        },
        console_level=console_level,
    )


# Wrapper functions with automatic [render] prefix


def _log_info(message: str) -> None:
    """Log info message with [render] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [render] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [render] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [render] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level rendering-specific logging helpers


def log_compilation_start(engine: str, options: list, working_dir: Path) -> None:
    """Log start of compilation with context."""
    _log_info(f"Compiling with {engine}")
    _log_debug(f"  Working directory: {working_dir}")
    _log_debug(f"  Options: {' '.join(options) if options else '(none)'}")


def log_compilation_result(
    success: bool,
    elapsed_time: float,
    errors: list,
    warnings: list,
    stdout: str = "",
    stderr: str = "",
    verbose: bool = False,
) -> None:
    """
    Log compilation result with diagnostics.

    Args:
        success: Whether a PDF was produced without LaTeX errors
        elapsed_time: Time taken to compile
        errors: Error lines parsed from the LaTeX log
        warnings: Warning lines parsed from the LaTeX log
        stdout: Toolchain standard output
        stderr: Toolchain standard error
        verbose: Show detailed warnings/errors (default: False)
    """
    if success:
        _log_success(f"Compilation succeeded: {len(warnings)} warnings ({elapsed_time:.2f}s)")
    else:
        _log_error(f"Compilation failed: {len(errors)} errors ({elapsed_time:.2f}s)")
        error_limit = 10 if verbose else 5
        for i, err in enumerate(errors[:error_limit], 1):
            _log_error(f"  Error {i}: {err}")
        if len(errors) > error_limit:
            _log_error(f"  ... and {len(errors) - error_limit} more errors")

    if warnings:
        warning_limit = 10 if verbose else 3
        for i, warn in enumerate(warnings[:warning_limit], 1):
            _log_debug(f"  Warning {i}: {warn}")
        if len(warnings) > warning_limit:
            _log_debug(f"  ... and {len(warnings) - warning_limit} more warnings")

    # Raw output bypasses the format template so multi-line logs stay readable
    if verbose or not success:
        if stdout:
            logger.opt(raw=True).debug(f"\n{'=' * 80}\nLATEX STDOUT:\n{'=' * 80}\n{stdout}\n")
        if stderr:
            logger.opt(raw=True).debug(f"\n{'=' * 80}\nLATEX STDERR:\n{'=' * 80}\n{stderr}\n")


def log_document_loaded(kind: str, dims: tuple, page: int) -> None:
    """Log a successfully loaded document."""
    _log_debug(f"Loaded {kind} page {page}: {dims[0]:.2f} x {dims[1]:.2f} pt")


def log_draw_failure(label: str, error: Exception) -> None:
    """Log a draw that failed for one object while the rest of the scene continues."""
    _log_error(f"Draw failed for {label}: {error}")
