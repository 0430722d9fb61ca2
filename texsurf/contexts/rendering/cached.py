"""
Cached render objects.

A cached object is built once per source document and reused across draws. It
owns the source bytes and a persistent recording of the page (both immutable),
plus a native parser handle that may go stale and is re-opened from the bytes
on demand:

    >>> tex = CachedTeX("$x^2 + y^2$")   # compiled once
    >>> CachedTeX(tex) is tex             # never recompiled
    True
"""

import math
from abc import ABC
from typing import Callable, Optional, Tuple, Union

import cairocffi as cairo

from texsurf.contexts.rendering.compiler import compile_latex
from texsurf.contexts.rendering.exceptions import ParseFailure, StaleHandleError
from texsurf.contexts.rendering.loader import (
    PDF,
    SVG,
    LoadedDocument,
    NativeHandle,
    load_document,
    open_handle,
)
from texsurf.contexts.rendering.logger import _log_debug
from texsurf.contexts.templating.documents import (
    Document,
    PDFDocument,
    SVGDocument,
    TeXDocument,
    implant,
)
from texsurf.utils.pdf_processing import looks_like_pdf

REPR_LIMIT = 1000


class HandleCell:
    """
    Indirection cell holding the current native handle of one cached object.

    The handle is never trusted implicitly: once released (or closed by the
    parsing library) it raises StaleHandleError until refresh() swaps in a new one.
    """

    def __init__(self, opener: Callable[[], NativeHandle], handle: Optional[NativeHandle] = None):
        self._opener = opener
        self._handle = handle

    @property
    def current(self) -> NativeHandle:
        if self._handle is None or not self._handle.is_open:
            raise StaleHandleError("Native handle is not available; call refresh_handle() first")
        return self._handle

    def refresh(self) -> NativeHandle:
        new_handle = self._opener()
        old_handle, self._handle = self._handle, new_handle
        if old_handle is not None:
            old_handle.close()
        return new_handle

    def release(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class CachedDocument(ABC):
    """
    Common contract of cached documents: dims, surface, native-handle refresh.

    Passing an instance back through its own constructor returns it unchanged.

    Attributes:
        doc: Source document (None when built directly from bytes)
        data: Raw bytes the handle and surface were produced from
        page: Page index that was recorded
        dims: Page size in points (width, height)
        surface: Persistent recording of the page
    """

    kind: str = ""

    def __new__(cls, source=None, *args, **kwargs):
        if isinstance(source, cls):
            return source
        return super().__new__(cls)

    def _populate(self, doc: Optional[Document], data: bytes, page: int, loaded: LoadedDocument):
        self.doc = doc
        self.data = data
        self.page = page
        self.dims: Tuple[float, float] = loaded.dims
        self.surface: cairo.RecordingSurface = loaded.surface
        self._cell = HandleCell(lambda: open_handle(self.data, self.kind), loaded.handle)
        self._image_cache: Optional[Tuple[cairo.ImageSurface, float]] = None

    @property
    def width(self) -> float:
        return self.dims[0]

    @property
    def height(self) -> float:
        return self.dims[1]

    @property
    def handle(self) -> NativeHandle:
        """Current native handle; raises StaleHandleError if it was released."""
        return self._cell.current

    def refresh_handle(self) -> NativeHandle:
        """Re-open the native handle from the stored bytes and return it."""
        return self._cell.refresh()

    def release(self) -> None:
        """Close the native handle. The surface stays usable."""
        self._cell.release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()

    def render_native(self, ctx: cairo.Context) -> None:
        """Re-render the page from the native handle into ctx (handle must be fresh)."""
        self.handle.render_page(ctx, self.page)

    def paint_surface(self, ctx: cairo.Context) -> None:
        """Paint the cached recording into ctx at the origin."""
        ctx.set_source_surface(self.surface, 0, 0)
        ctx.paint()

    def rasterize(self, scale: float = 1.0) -> cairo.ImageSurface:
        """
        Rasterize the cached surface to an ARGB32 image.

        The last (image, scale) pair is cached, so repeated calls at the same
        scale return the same image.
        """
        if not (math.isfinite(scale) and scale > 0):
            raise ValueError(f"Rasterization scale must be positive and finite, got {scale}")

        if self._image_cache is not None and self._image_cache[1] == scale:
            return self._image_cache[0]

        width = max(1, math.ceil(self.width * scale))
        height = max(1, math.ceil(self.height * scale))
        image = cairo.ImageSurface(cairo.FORMAT_ARGB32, width, height)
        ctx = cairo.Context(image)
        ctx.scale(scale, scale)
        self.paint_surface(ctx)
        image.flush()

        _log_debug(f"Rasterized {self.kind} at scale {scale}: {width} x {height} px")
        self._image_cache = (image, scale)
        return image

    def ink_extents(self) -> Tuple[float, float, float, float]:
        """Extents (x0, y0, width, height) of what was actually drawn on the page."""
        return tuple(self.surface.ink_extents())

    def _describe_doc(self) -> str:
        if self.doc is None:
            return "no document"
        text = repr(self.doc)
        if len(text) > REPR_LIMIT:
            return f"{type(self.doc).__name__}(...)"
        return text

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._describe_doc()}, page={self.page}, dims={self.dims})"


class CachedPDF(CachedDocument):
    """
    A PDF page cached for drawing.

    Usage:
        CachedPDF(Path("figure.pdf").read_bytes())
        CachedPDF(PDFDocument(raw), page=2)
    """

    kind = PDF

    def __init__(self, source: Union[PDFDocument, bytes, str, "CachedPDF"], page: int = 0):
        if source is self:
            return
        doc = source if isinstance(source, PDFDocument) else PDFDocument(source)
        self._populate(doc, doc.pdf, page, load_document(doc.pdf, PDF, page))


class CachedTeX(CachedPDF):
    """
    A compiled TeX document cached for drawing.

    Accepts a TeXDocument (compiled), a string (wrapped with implant() first:
    "$...$" becomes a displayed formula, anything else text), or PDF bytes of an
    already compiled document (doc is None then).

    Keyword arguments go to the compiler, primarily:
    - engine: LaTeX engine ("lualatex", "xelatex", "pdflatex")
    - options: extra latexmk flags
    - timeout: seconds before the toolchain is killed
    """

    def __init__(
        self,
        source: Union[TeXDocument, str, bytes, PDFDocument, "CachedTeX"],
        compiler: Callable[..., bytes] = compile_latex,
        **compile_kwargs,
    ):
        if source is self:
            return

        if isinstance(source, str):
            source = implant(source)

        if isinstance(source, TeXDocument):
            doc = source
            pdf = compiler(doc, **compile_kwargs)
        elif isinstance(source, PDFDocument):
            doc, pdf = None, source.pdf
        elif isinstance(source, (bytes, bytearray)):
            doc, pdf = None, bytes(source)
        else:
            raise TypeError(f"Cannot build CachedTeX from {type(source).__name__}")

        self._populate(doc, pdf, 0, load_document(pdf, PDF, 0))


class CachedSVG(CachedDocument):
    """An SVG image cached for drawing; its handle is a cairosvg parse tree."""

    kind = SVG

    def __init__(self, source: Union[SVGDocument, str, bytes, "CachedSVG"]):
        if source is self:
            return
        doc = source if isinstance(source, SVGDocument) else SVGDocument(source)
        data = doc.data
        self._populate(doc, data, 0, load_document(data, SVG, 0))


def cache_document(source, page: int = 0, **compile_kwargs) -> CachedDocument:
    """
    Build the right cached object for any supported input.

    Cached objects pass through unchanged. Raw bytes are sniffed: a PDF header
    selects CachedPDF, markup selects CachedSVG.

    Args:
        source: Cached object, document value, TeX string or raw PDF/SVG bytes
        page: Page to record for PDF input
        **compile_kwargs: Passed to CachedTeX for TeX input (compiler, engine, ...)

    Raises:
        ParseFailure: If raw bytes are neither PDF nor SVG
        TypeError: For unsupported input types
    """
    if isinstance(source, CachedDocument):
        return source
    if isinstance(source, (TeXDocument, str)):
        return CachedTeX(source, **compile_kwargs)
    if isinstance(source, PDFDocument):
        return CachedPDF(source, page=page)
    if isinstance(source, SVGDocument):
        return CachedSVG(source)
    if isinstance(source, (bytes, bytearray)):
        if looks_like_pdf(source):
            return CachedPDF(bytes(source), page=page)
        if bytes(source).lstrip().startswith(b"<"):
            return CachedSVG(bytes(source))
        raise ParseFailure("Bytes are neither a PDF nor an SVG document")
    raise TypeError(f"Cannot cache object of type {type(source).__name__}")
