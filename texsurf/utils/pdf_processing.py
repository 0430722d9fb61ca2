"""
PDF inspection utilities that do not need a rendering handle.

Helper functions:
    page_count: Quick page count from raw bytes or a path.
    page_size: Page size in points from the PDF mediabox.
    looks_like_pdf: Cheap magic-number check before handing bytes to a parser.
"""

from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple, Union

from PyPDF2 import PdfReader

PDF_MAGIC = b"%PDF-"


def _reader(source: Union[bytes, Path, str]) -> PdfReader:
    if isinstance(source, (bytes, bytearray)):
        return PdfReader(BytesIO(bytes(source)))
    return PdfReader(str(source))


def page_count(source: Union[bytes, Path, str]) -> Optional[int]:
    """Get page count from PDF bytes or path, or None if unreadable."""
    try:
        return len(_reader(source).pages)
    except Exception:
        return None


def page_size(source: Union[bytes, Path, str], page: int = 0) -> Optional[Tuple[float, float]]:
    """
    Get the mediabox size of a page in points, or None if unreadable.

    Rotated pages (/Rotate 90 or 270) report their displayed size, i.e. with
    width and height swapped.
    """
    try:
        pdf_page = _reader(source).pages[page]
    except Exception:
        return None

    box = pdf_page.mediabox
    width, height = float(box.width), float(box.height)
    rotation = int(pdf_page.get("/Rotate", 0) or 0) % 360
    if rotation in (90, 270):
        width, height = height, width
    return width, height


def looks_like_pdf(data: bytes) -> bool:
    """Check for the PDF header within the first kilobyte (some writers pad it)."""
    return PDF_MAGIC in bytes(data[:1024])
