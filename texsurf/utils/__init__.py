"""
Shared utilities for texsurf.

Common functionality used across contexts:
- Logger setup with provenance
- PDF inspection without a rendering handle
- Timestamps for log directories
"""

from texsurf.utils.pdf_processing import page_count, page_size
from texsurf.utils.timestamp import now

__all__ = ["page_count", "page_size", "now"]
