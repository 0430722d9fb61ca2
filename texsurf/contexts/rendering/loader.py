"""
Document loading.

Turns raw PDF or SVG bytes into a native parser handle, the page size in points
and a persistent recording of the page. PDFs are opened with PyMuPDF and
replayed through their SVG export; SVGs are parsed with cairosvg. Both end up as
cairo recording surfaces (cairocffi, the cairo binding cairosvg draws with).

Handles are external resources: whoever holds one must close() it. A closed
handle raises StaleHandleError when used.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Tuple

import cairocffi as cairo
import fitz
from cairosvg.parser import Tree
from cairosvg.surface import Surface

from texsurf.contexts.rendering.exceptions import ParseFailure, StaleHandleError
from texsurf.contexts.rendering.logger import log_document_loaded
from texsurf.utils.pdf_processing import looks_like_pdf

# One SVG user unit == one PDF point
SVG_DPI = 72

PDF = "pdf"
SVG = "svg"
KINDS = (PDF, SVG)


class _RecordingSVGSurface(Surface):
    """cairosvg surface that draws into an unbounded cairo.RecordingSurface."""

    device_units_per_user_units = 1

    def _create_surface(self, width, height):
        surface = cairo.RecordingSurface(cairo.CONTENT_COLOR_ALPHA, None)
        return surface, width, height


def record_svg_tree(tree: Tree) -> Tuple[cairo.RecordingSurface, float, float]:
    """Replay a parsed SVG tree into a new recording surface; returns (surface, width, height)."""
    rendered = _RecordingSVGSurface(tree, output=None, dpi=SVG_DPI)
    return rendered.cairo, float(rendered.width), float(rendered.height)


class NativeHandle(ABC):
    """An open parser handle for one document."""

    kind: str = ""

    def __init__(self):
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StaleHandleError(f"{self.kind} handle was released; call refresh_handle() first")

    def close(self) -> None:
        self._closed = True

    @property
    @abstractmethod
    def page_count(self) -> int: ...

    @abstractmethod
    def page_size(self, page: int = 0) -> Tuple[float, float]:
        """Page size in points."""

    @abstractmethod
    def record_page(self, page: int = 0) -> cairo.RecordingSurface:
        """Render a page into a fresh recording surface."""

    def render_page(self, ctx: cairo.Context, page: int = 0) -> None:
        """Re-render a page from the parsed document into ctx at the origin."""
        ctx.set_source_surface(self.record_page(page), 0, 0)
        ctx.paint()


class PDFHandle(NativeHandle):
    """PyMuPDF document opened from memory."""

    kind = PDF

    def __init__(self, data: bytes):
        super().__init__()
        self._document = fitz.open(stream=data, filetype="pdf")

    @property
    def document(self) -> fitz.Document:
        self._ensure_open()
        if self._document.is_closed:
            raise StaleHandleError("pdf document was closed by PyMuPDF")
        return self._document

    @property
    def page_count(self) -> int:
        return self.document.page_count

    def page_size(self, page: int = 0) -> Tuple[float, float]:
        rect = self.document[page].rect
        return float(rect.width), float(rect.height)

    def record_page(self, page: int = 0) -> cairo.RecordingSurface:
        svg = self.document[page].get_svg_image(text_as_path=True)
        surface, _, _ = record_svg_tree(Tree(bytestring=svg.encode("utf-8")))
        return surface

    def close(self) -> None:
        if not self._closed and not self._document.is_closed:
            self._document.close()
        super().close()


class SVGHandle(NativeHandle):
    """Parsed cairosvg tree."""

    kind = SVG

    def __init__(self, data: bytes):
        super().__init__()
        self._tree = Tree(bytestring=data)
        self._size = None

    @property
    def tree(self) -> Tree:
        self._ensure_open()
        return self._tree

    @property
    def page_count(self) -> int:
        self._ensure_open()
        return 1

    def page_size(self, page: int = 0) -> Tuple[float, float]:
        if self._size is None:
            _, width, height = record_svg_tree(self.tree)
            self._size = (width, height)
        return self._size

    def record_page(self, page: int = 0) -> cairo.RecordingSurface:
        surface, width, height = record_svg_tree(self.tree)
        self._size = (width, height)
        return surface


@dataclass
class LoadedDocument:
    """Result of load_document(): an open handle plus what was read from it."""

    handle: NativeHandle
    dims: Tuple[float, float]
    surface: cairo.RecordingSurface


def open_handle(data: bytes, kind: str) -> NativeHandle:
    """
    Open a native handle without rendering anything.

    Raises:
        ParseFailure: If the bytes cannot be parsed as the given kind
    """
    if kind not in KINDS:
        raise ValueError(f"Unknown document kind '{kind}'. Expected one of {KINDS}")
    if not data:
        raise ParseFailure("Document is empty", kind=kind)

    if kind == PDF:
        if not looks_like_pdf(data):
            raise ParseFailure("Missing %PDF- header", kind=kind)
        try:
            return PDFHandle(data)
        except Exception as e:
            raise ParseFailure(
                "PyMuPDF could not open the document", kind=kind, original_error=e
            ) from e

    try:
        return SVGHandle(data)
    except Exception as e:
        raise ParseFailure(
            "cairosvg could not parse the document", kind=kind, original_error=e
        ) from e


def load_document(data: bytes, kind: str, page: int = 0) -> LoadedDocument:
    """
    Load PDF or SVG bytes into a handle, page dimensions and a recorded surface.

    Pure function of the bytes. The returned handle must be closed by its owner;
    on failure nothing is left open.

    Args:
        data: Raw document bytes
        kind: "pdf" or "svg"
        page: Page index (0-based)

    Returns:
        LoadedDocument(handle, dims, surface)

    Raises:
        ParseFailure: Malformed input, empty document or page out of range
    """
    if page < 0:
        raise ParseFailure(f"Page index must be non-negative, got {page}", kind=kind)

    handle = open_handle(bytes(data), kind)
    try:
        if page >= handle.page_count:
            raise ParseFailure(
                f"Page {page} out of range: document has {handle.page_count} page(s)", kind=kind
            )
        surface = handle.record_page(page)
        dims = handle.page_size(page)
        if not all(d > 0 for d in dims):
            raise ParseFailure(f"Document has no extent: {dims[0]} x {dims[1]}", kind=kind)
    except ParseFailure:
        handle.close()
        raise
    except Exception as e:
        handle.close()
        raise ParseFailure(f"Failed to render page {page}", kind=kind, original_error=e) from e

    log_document_loaded(kind, dims, page)
    return LoadedDocument(handle=handle, dims=dims, surface=surface)
