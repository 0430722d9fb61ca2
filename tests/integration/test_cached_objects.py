"""
Integration tests for cached objects: handle refresh, idempotent wrapping, rasterizing.
"""

import math

import cairocffi as cairo
import pytest

from texsurf.contexts.rendering.cached import (
    REPR_LIMIT,
    CachedPDF,
    CachedSVG,
    CachedTeX,
    cache_document,
)
from texsurf.contexts.rendering.exceptions import ParseFailure, StaleHandleError
from texsurf.contexts.templating import PDFDocument, SVGDocument, TeXDocument


class CountingCompiler:
    """Compiler stand-in that returns a fixed PDF and counts invocations."""

    def __init__(self, pdf: bytes):
        self.pdf = pdf
        self.documents = []

    def __call__(self, document, **kwargs):
        self.documents.append(document)
        return self.pdf

    @property
    def calls(self) -> int:
        return len(self.documents)


def render_native_pixels(obj, size=(140, 80)) -> bytes:
    image = cairo.ImageSurface(cairo.FORMAT_ARGB32, *size)
    ctx = cairo.Context(image)
    obj.render_native(ctx)
    image.flush()
    return bytes(image.get_data())


@pytest.mark.integration
def test_cached_pdf_dims(pdf_bytes, page_sizes):
    """Test that CachedPDF exposes the page size."""
    with CachedPDF(pdf_bytes) as obj:
        assert obj.dims == pytest.approx(page_sizes[0], abs=1e-6)
        assert obj.width == pytest.approx(page_sizes[0][0])
        assert obj.height == pytest.approx(page_sizes[0][1])
        assert isinstance(obj.doc, PDFDocument)
        assert obj.data == pdf_bytes


@pytest.mark.integration
def test_cached_pdf_page_selection(two_page_pdf, page_sizes):
    """Test that a later page can be cached."""
    obj = CachedPDF(PDFDocument(two_page_pdf), page=1)
    assert obj.page == 1
    assert obj.dims == pytest.approx(page_sizes[1], abs=1e-6)
    obj.release()


@pytest.mark.integration
def test_refresh_handle_renders_identically(pdf_bytes):
    """Test that refreshing the handle twice gives pixel-identical output."""
    obj = CachedPDF(pdf_bytes)

    first_handle = obj.refresh_handle()
    first = render_native_pixels(obj)
    second_handle = obj.refresh_handle()
    second = render_native_pixels(obj)

    assert first == second
    assert first_handle is not second_handle
    assert not first_handle.is_open
    assert obj.handle is second_handle
    obj.release()


@pytest.mark.integration
def test_released_handle_is_stale_but_surface_survives(pdf_bytes):
    """Test that release() invalidates the handle but not the recorded surface."""
    obj = CachedPDF(pdf_bytes)
    obj.release()

    with pytest.raises(StaleHandleError):
        obj.handle
    with pytest.raises(StaleHandleError):
        render_native_pixels(obj)

    # The cached recording does not depend on the handle
    image = obj.rasterize()
    assert image.get_width() == math.ceil(obj.width)

    obj.refresh_handle()
    assert obj.handle.is_open
    obj.release()


@pytest.mark.integration
def test_context_manager_releases_handle(svg_source):
    """Test that leaving the with-block closes the handle."""
    with CachedSVG(svg_source) as obj:
        handle = obj.handle
        assert handle.is_open
    assert not handle.is_open


@pytest.mark.integration
def test_rewrapping_is_identity(pdf_bytes, svg_source):
    """Test that cached objects passed to their constructor come back unchanged."""
    pdf = CachedPDF(pdf_bytes)
    svg = CachedSVG(svg_source)

    assert CachedPDF(pdf) is pdf
    assert CachedSVG(svg) is svg
    assert cache_document(pdf) is pdf
    assert pdf.dims == CachedPDF(pdf).dims


@pytest.mark.integration
def test_cached_tex_compiles_once(pdf_bytes):
    """Test that re-wrapping a CachedTeX never invokes the compiler again."""
    compiler = CountingCompiler(pdf_bytes)

    tex = CachedTeX("$x^2$", compiler=compiler)
    assert compiler.calls == 1

    assert CachedTeX(tex, compiler=compiler) is tex
    assert CachedTeX(CachedTeX(tex)) is tex
    assert CachedPDF(tex) is tex
    assert compiler.calls == 1


@pytest.mark.integration
def test_cached_tex_wraps_strings(pdf_bytes):
    """Test that strings are implanted into a full document before compiling."""
    compiler = CountingCompiler(pdf_bytes)

    math_obj = CachedTeX("$a+b$", compiler=compiler)
    text_obj = CachedTeX("plain words", compiler=compiler)

    math_doc, text_doc = compiler.documents
    assert isinstance(math_doc, TeXDocument)
    assert r"\(\displaystyle a+b\)" in math_doc.contents
    assert "plain words" in text_doc.contents
    assert math_obj.doc is math_doc
    assert text_obj.doc is text_doc


@pytest.mark.integration
def test_cached_tex_passes_compile_options(pdf_bytes):
    """Test that keyword arguments reach the compiler."""
    received = {}

    def compiler(document, **kwargs):
        received.update(kwargs)
        return pdf_bytes

    CachedTeX(TeXDocument("x"), compiler=compiler, engine="xelatex", timeout=3)
    assert received == {"engine": "xelatex", "timeout": 3}


@pytest.mark.integration
def test_cached_tex_from_compiled_pdf(pdf_bytes):
    """Test that already compiled PDF bytes skip compilation."""
    compiler = CountingCompiler(pdf_bytes)
    obj = CachedTeX(pdf_bytes, compiler=compiler)

    assert compiler.calls == 0
    assert obj.doc is None
    assert "no document" in repr(obj)


@pytest.mark.integration
def test_cached_tex_rejects_other_types():
    """Test that unsupported sources raise TypeError."""
    with pytest.raises(TypeError):
        CachedTeX(42)


@pytest.mark.integration
def test_repr_truncates_huge_documents(pdf_bytes):
    """Test that repr never dumps an enormous document."""
    contents = "x" * (REPR_LIMIT * 2)
    obj = CachedTeX(TeXDocument(contents), compiler=CountingCompiler(pdf_bytes))

    text = repr(obj)
    assert "TeXDocument(...)" in text
    assert len(text) < REPR_LIMIT


@pytest.mark.integration
def test_cache_document_dispatch(pdf_bytes, svg_source):
    """Test that cache_document picks the cached type from the input."""
    assert type(cache_document(pdf_bytes)) is CachedPDF
    assert type(cache_document(PDFDocument(pdf_bytes))) is CachedPDF
    assert type(cache_document(svg_source.encode("utf-8"))) is CachedSVG
    assert type(cache_document(SVGDocument(svg_source))) is CachedSVG

    with pytest.raises(ParseFailure):
        cache_document(b"\x00\x01 neither format")
    with pytest.raises(TypeError):
        cache_document(3.14)


@pytest.mark.integration
def test_cache_document_compiles_strings(pdf_bytes):
    """Test that strings and TeX documents become CachedTeX."""
    compiler = CountingCompiler(pdf_bytes)
    assert type(cache_document("$y$", compiler=compiler)) is CachedTeX
    assert type(cache_document(TeXDocument("x"), compiler=compiler)) is CachedTeX
    assert compiler.calls == 2


@pytest.mark.integration
def test_rasterize_size_and_cache(svg_source):
    """Test the bitmap size and the single-entry cache."""
    obj = CachedSVG(svg_source)

    image = obj.rasterize(2.5)
    assert (image.get_width(), image.get_height()) == (100, 50)
    assert obj.rasterize(2.5) is image

    other = obj.rasterize(1.0)
    assert other is not image
    assert (other.get_width(), other.get_height()) == (40, 20)
    obj.release()


@pytest.mark.integration
def test_rasterize_paints_pixels(svg_source):
    """Test that the rasterized SVG is opaque red."""
    obj = CachedSVG(svg_source)
    image = obj.rasterize(1.0)
    data = image.get_data()
    stride = image.get_stride()

    # ARGB32 byte order is native-endian; either way opaque red is two 255s and two 0s
    offset = 10 * stride + 20 * 4
    pixel = bytes(data[offset : offset + 4])
    assert sorted(pixel) == [0, 0, 255, 255]
    obj.release()


@pytest.mark.integration
@pytest.mark.parametrize("scale", [0, -1, float("nan"), float("inf")])
def test_rasterize_rejects_bad_scale(svg_source, scale):
    """Test that rasterize needs a positive finite scale."""
    obj = CachedSVG(svg_source)
    with pytest.raises(ValueError):
        obj.rasterize(scale)
    obj.release()


@pytest.mark.integration
def test_ink_extents(svg_source):
    """Test that the ink of a fully filled SVG spans the page."""
    obj = CachedSVG(svg_source)
    x0, y0, width, height = obj.ink_extents()
    assert (x0, y0) == pytest.approx((0, 0), abs=1.0)
    assert (width, height) == pytest.approx((40, 20), abs=1.0)
    obj.release()


LATIN1_SVG = (
    b'<?xml version="1.0" encoding="ISO-8859-1"?>'
    b'<svg xmlns="http://www.w3.org/2000/svg" width="40" height="20">'
    b"<title>caf\xe9</title>"
    b'<rect width="40" height="20" fill="#ff0000"/>'
    b"</svg>"
)


@pytest.mark.integration
def test_cached_svg_honours_declared_encoding():
    """Test that an SVG declaring a non-UTF-8 encoding loads from bytes."""
    with CachedSVG(LATIN1_SVG) as obj:
        assert obj.dims == pytest.approx((40, 20))
        assert obj.data == LATIN1_SVG

    with cache_document(LATIN1_SVG) as obj:
        assert type(obj) is CachedSVG
        assert obj.dims == pytest.approx((40, 20))


@pytest.mark.integration
def test_cached_svg_text_with_foreign_declaration():
    """Test that decoded SVG text loads even if its declaration names another encoding."""
    text = LATIN1_SVG.decode("latin-1")
    with CachedSVG(text) as obj:
        assert obj.dims == pytest.approx((40, 20))


@pytest.mark.integration
def test_cached_svg_invalid_bytes_raise_parse_failure():
    """Test that undecodable SVG bytes raise ParseFailure, not UnicodeDecodeError."""
    data = (
        b'<svg xmlns="http://www.w3.org/2000/svg" width="4" height="2">'
        b"<title>\xff\xfe</title></svg>"
    )

    with pytest.raises(ParseFailure) as exc_info:
        CachedSVG(data)
    assert exc_info.value.kind == "svg"

    with pytest.raises(ParseFailure):
        cache_document(data)


@pytest.mark.integration
def test_cache_document_routes_page_and_compile_options(two_page_pdf, page_sizes, pdf_bytes):
    """Test that page goes to PDFs and compiler options only to TeX."""
    received = {}

    def compiler(document, **kwargs):
        received.update(kwargs)
        return pdf_bytes

    tex = cache_document("$x$", page=1, compiler=compiler, engine="xelatex")
    assert type(tex) is CachedTeX
    assert received == {"engine": "xelatex"}
    assert tex.page == 0

    pdf = cache_document(two_page_pdf, page=1)
    assert pdf.page == 1
    assert pdf.dims == pytest.approx(page_sizes[1], abs=1e-6)
    pdf.release()
    tex.release()
