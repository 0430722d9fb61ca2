"""Shared fixtures: small PDF and SVG documents generated on the fly."""

from io import BytesIO

import cairocffi as cairo
import pytest

PAGE_SIZE = (120.0, 60.0)
SECOND_PAGE_SIZE = (50.0, 80.0)

SVG_SOURCE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="40" height="20" viewBox="0 0 40 20">'
    '<rect x="0" y="0" width="40" height="20" fill="#ff0000"/>'
    "</svg>"
)


def make_pdf(*page_sizes) -> bytes:
    """Write one solid-filled page per size into an in-memory PDF."""
    buffer = BytesIO()
    surface = cairo.PDFSurface(buffer, *page_sizes[0])
    ctx = cairo.Context(surface)

    for index, (width, height) in enumerate(page_sizes):
        if index:
            surface.set_size(width, height)
        ctx.set_source_rgb(0, 0, 0)
        ctx.rectangle(0, 0, width, height)
        ctx.fill()
        ctx.show_page()

    surface.finish()
    return buffer.getvalue()


@pytest.fixture
def pdf_bytes() -> bytes:
    """Single page PDF of PAGE_SIZE, filled black."""
    return make_pdf(PAGE_SIZE)


@pytest.fixture
def two_page_pdf() -> bytes:
    """PDF with pages of PAGE_SIZE and SECOND_PAGE_SIZE."""
    return make_pdf(PAGE_SIZE, SECOND_PAGE_SIZE)


@pytest.fixture
def svg_source() -> str:
    """40 x 20 SVG filled red."""
    return SVG_SOURCE


@pytest.fixture
def page_sizes():
    """Page sizes of two_page_pdf, in points."""
    return PAGE_SIZE, SECOND_PAGE_SIZE
