"""Exceptions for the rendering context, carrying the diagnostics of the failing step."""

from typing import List, Optional

SNIPPET_LIMIT = 2000


def _truncate(text: str, limit: int = SNIPPET_LIMIT) -> str:
    return text[-limit:] if len(text) > limit else text


class TexSurfError(Exception):
    """Base class for every error raised by texsurf."""


class CompileFailure(TexSurfError):
    """
    Exception raised when the external LaTeX toolchain fails.

    Never retried automatically. A missing toolchain is reported with
    exit_code=None, a timeout with timed_out=True.

    Attributes:
        message: Error description
        exit_code: Process return code (None if the process never ran to completion)
        stderr: Diagnostic output of the toolchain (stderr, else stdout)
        errors: Error lines parsed from the LaTeX log
        timed_out: Whether the process was killed after the timeout
    """

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stderr: str = "",
        errors: Optional[List[str]] = None,
        timed_out: bool = False,
    ):
        self.message = message
        self.exit_code = exit_code
        self.stderr = stderr or ""
        self.errors = list(errors or [])
        self.timed_out = timed_out

        parts = [message]

        if exit_code is not None:
            parts.append(f"Exit code: {exit_code}")

        if self.errors:
            parts.append("\nLaTeX errors:")
            parts.extend(f"  {err}" for err in self.errors[:10])

        if self.stderr:
            parts.append(f"\nToolchain output:\n{_truncate(self.stderr)}")

        super().__init__("\n".join(parts))

    @property
    def diagnostics(self) -> str:
        """All diagnostic text available, parsed errors first."""
        return "\n".join(self.errors + ([self.stderr] if self.stderr else []))


class ParseFailure(TexSurfError):
    """
    Exception raised when PDF or SVG bytes cannot be loaded.

    Attributes:
        reason: Error description
        kind: "pdf" or "svg"
        original_error: The exception raised by the parsing library, if any
    """

    def __init__(
        self,
        reason: str,
        kind: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.reason = reason
        self.kind = kind
        self.original_error = original_error

        parts = [f"[{kind}] {reason}" if kind else reason]

        if original_error:
            parts.append(f"\nOriginal error: {original_error}")

        super().__init__("\n".join(parts))


class StaleHandleError(TexSurfError):
    """Raised when a released or invalidated native handle is dereferenced."""


class InvalidBoundingBox(TexSurfError, ValueError):
    """Raised when a computed bounding box is not finite (e.g. NaN scale or rotation)."""


class DrawError(TexSurfError):
    """
    Exception raised when drawing a single object fails.

    The drawing context has already been restored when this is raised.

    Attributes:
        message: Error description
        original_error: The underlying exception
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error

        parts = [message]
        if original_error:
            parts.append(f"\nOriginal error: {original_error}")

        super().__init__("\n".join(parts))
