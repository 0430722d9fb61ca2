"""
LaTeX Compilation Module

Turns a TeX document into PDF bytes by running latexmk in a scratch directory.
"""

import os
import re
import shlex
import shutil
import signal
import subprocess
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Sequence, Union

from dotenv import load_dotenv

from texsurf.contexts.rendering.exceptions import CompileFailure
from texsurf.contexts.rendering.logger import (
    _log_debug,
    log_compilation_result,
    log_compilation_start,
)
from texsurf.contexts.templating.documents import TeXDocument
from texsurf.utils.pdf_processing import page_count
from texsurf.utils.timestamp import now

load_dotenv()

LATEXMK = os.getenv("LATEXMK", "latexmk")
LATEX_ENGINE = os.getenv("LATEX_ENGINE", "lualatex")
LATEX_OPTIONS = os.getenv("LATEX_OPTIONS", "-file-line-error")
LATEX_TIMEOUT_S = float(os.getenv("LATEX_TIMEOUT_S", "60"))
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))
KEEP_LATEX_ARTIFACTS = os.getenv("KEEP_LATEX_ARTIFACTS", "false").lower() == "true"

# latexmk selects the engine with its own flags
ENGINE_FLAGS = {
    "pdflatex": "-pdf",
    "lualatex": "-lualatex",
    "xelatex": "-xelatex",
}

JOB_NAME = "texsurf"


def _parse_latex_log(log_content: str) -> tuple[List[str], List[str]]:
    """
    Parse LaTeX log file for errors and warnings.

    Args:
        log_content: Content of the .log file

    Returns:
        Tuple of (errors, warnings)
    """
    errors = []
    warnings = []

    # LaTeX error pattern: "! Error message"
    error_pattern = re.compile(r"^! (.+)$", re.MULTILINE)
    for match in error_pattern.finditer(log_content):
        errors.append(match.group(1).strip())

    # With -file-line-error errors look like "./texsurf.tex:12: message"
    file_line_pattern = re.compile(rf"^\S*{JOB_NAME}\.tex:\d+: (.+)$", re.MULTILINE)
    for match in file_line_pattern.finditer(log_content):
        if match.group(1).strip() not in errors:
            errors.append(match.group(1).strip())

    additional_error_patterns = [
        r"Undefined control sequence",
        r"File ended while scanning use of",
        r"Emergency stop",
    ]
    for pattern in additional_error_patterns:
        match = re.search(rf"({pattern}.*?)$", log_content, re.MULTILINE)
        if match and not any(match.group(1) in err for err in errors):
            errors.append(match.group(1))

    warning_patterns = [
        r"LaTeX Warning: (.+)",
        r"Package \w+ Warning: (.+)",
        r"Overfull \\hbox \((.+)\)",
        r"Underfull \\hbox \((.+)\)",
    ]

    for pattern in warning_patterns:
        compiled = re.compile(pattern, re.MULTILINE)
        for match in compiled.finditer(log_content):
            warnings.append(match.group(1).strip())

    return errors, warnings


def _split_options(options: Union[str, Sequence[str], None]) -> List[str]:
    if options is None:
        return []
    if isinstance(options, str):
        return shlex.split(options)
    return list(options)


def build_command(engine: str, options: Union[str, Sequence[str], None] = None) -> List[str]:
    """
    Assemble the latexmk command line for an engine.

    Unknown engines are passed through as "-<engine>" so latexmk can decide.
    """
    engine_flag = ENGINE_FLAGS.get(engine, f"-{engine}")
    return [
        LATEXMK,
        engine_flag,
        "-interaction=nonstopmode",
        "-halt-on-error",
        *_split_options(options),
        f"{JOB_NAME}.tex",
    ]


def _keep_artifacts(work_dir: Path, artifacts_dir: Path) -> None:
    artifacts_dir.mkdir(parents=True, exist_ok=True)
    for path in work_dir.iterdir():
        if path.is_file():
            shutil.copy2(path, artifacts_dir / path.name)
    _log_debug(f"LaTeX artifacts kept in {artifacts_dir}")


def _kill_process_group(proc: subprocess.Popen) -> None:
    """Kill latexmk together with the engine processes it spawned."""
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass


def run_toolchain(
    cmd: List[str], cwd: Path, timeout: Optional[float] = None
) -> subprocess.CompletedProcess:
    """
    Run the toolchain in its own process group and wait for it.

    On timeout (or any interruption of the wait) the whole group is killed
    before the exception propagates, so no engine outlives its scratch directory.

    Raises:
        FileNotFoundError: If the executable does not exist
        subprocess.TimeoutExpired: After the group was killed; carries partial output
    """
    proc = subprocess.Popen(
        cmd,
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",  # Replace invalid UTF-8 bytes instead of crashing
        start_new_session=True,
    )
    with proc:
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill_process_group(proc)
            stdout, stderr = proc.communicate()
            raise subprocess.TimeoutExpired(cmd, timeout, output=stdout, stderr=stderr)
        except BaseException:
            _kill_process_group(proc)
            raise
    return subprocess.CompletedProcess(cmd, proc.returncode, stdout, stderr)


def compile_latex(
    document: Union[TeXDocument, str],
    engine: str = LATEX_ENGINE,
    options: Union[str, Sequence[str], None] = LATEX_OPTIONS,
    timeout: Optional[float] = LATEX_TIMEOUT_S,
    artifacts_dir: Optional[Path] = None,
    verbose: bool = False,
) -> bytes:
    """
    Compile a LaTeX document to PDF bytes.

    Pure from the caller's point of view: everything happens in a temporary
    directory that is removed afterwards.

    Args:
        document: TeXDocument or complete LaTeX source
        engine: LaTeX engine (pdflatex, lualatex, xelatex)
        options: Extra flags passed to latexmk (string or list)
        timeout: Seconds before the toolchain is killed (None = wait forever)
        artifacts_dir: Copy .tex/.log/.pdf here after the run (default: a timestamped
                       directory under LOGS_PATH when KEEP_LATEX_ARTIFACTS is set)
        verbose: Log full toolchain output even on success

    Returns:
        The compiled PDF as bytes

    Raises:
        CompileFailure: Missing toolchain, non-zero exit, LaTeX errors, missing output
                        or timeout
    """
    source = str(document)
    options = _split_options(options)
    cmd = build_command(engine, options)

    if artifacts_dir is None and KEEP_LATEX_ARTIFACTS:
        artifacts_dir = LOGS_PATH / f"latex_{now()}"

    with tempfile.TemporaryDirectory(prefix="texsurf_") as tmp:
        work_dir = Path(tmp)
        tex_file = work_dir / f"{JOB_NAME}.tex"
        tex_file.write_text(source, encoding="utf-8")

        log_compilation_start(engine, options, work_dir)
        start_time = time.time()

        try:
            result = run_toolchain(cmd, work_dir, timeout)
        except FileNotFoundError as e:
            raise CompileFailure(
                f"LaTeX toolchain not found: {cmd[0]}", stderr=str(e)
            ) from e
        except subprocess.TimeoutExpired as e:
            output = e.stdout or ""
            if isinstance(output, bytes):
                output = output.decode("utf-8", errors="replace")
            if artifacts_dir is not None:
                _keep_artifacts(work_dir, artifacts_dir)
            raise CompileFailure(
                f"LaTeX compilation timed out after {timeout}s",
                stderr=output or f"{' '.join(cmd)} did not finish",
                timed_out=True,
            ) from e

        elapsed = time.time() - start_time

        errors: List[str] = []
        warnings: List[str] = []
        log_file = work_dir / f"{JOB_NAME}.log"
        if log_file.exists():
            # Engines write logs in mixed encodings (font metadata is not always UTF-8)
            errors, warnings = _parse_latex_log(log_file.read_text(encoding="latin-1"))

        pdf_path = work_dir / f"{JOB_NAME}.pdf"
        success = result.returncode == 0 and pdf_path.exists() and not errors

        log_compilation_result(
            success=success,
            elapsed_time=elapsed,
            errors=errors,
            warnings=warnings,
            stdout=result.stdout,
            stderr=result.stderr,
            verbose=verbose,
        )

        if artifacts_dir is not None:
            _keep_artifacts(work_dir, artifacts_dir)

        if not success:
            if not errors and not pdf_path.exists():
                errors.append("PDF file was not generated")
            raise CompileFailure(
                f"LaTeX compilation with {engine} failed",
                exit_code=result.returncode,
                stderr="\n".join(part for part in (result.stderr, result.stdout) if part),
                errors=errors,
            )

        pdf = pdf_path.read_bytes()

    _log_debug(f"  PDF: {len(pdf)} bytes, {page_count(pdf)} page(s)")
    return pdf
