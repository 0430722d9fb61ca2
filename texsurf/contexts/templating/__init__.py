"""
Templating Context

Responsibilities:
- Represents source documents (TeX, PDF, SVG) as immutable values
- Wraps bare TeX snippets into complete documents via named templates

Owns: Document values, TeX template presets
Never: Compiles, parses or draws documents
"""

from texsurf.contexts.templating.documents import (
    Document,
    PDFDocument,
    SVGDocument,
    TeXDocument,
    implant,
    implant_math,
    implant_text,
    is_math,
    texdoc,
)
from texsurf.contexts.templating.tex_template import (
    TeXTemplate,
    load_tex_presets,
    render_document,
)

__all__ = [
    # Document values
    "Document",
    "TeXDocument",
    "PDFDocument",
    "SVGDocument",
    # Helpers for building TeX documents
    "texdoc",
    "implant",
    "implant_text",
    "implant_math",
    "is_math",
    # Templates
    "TeXTemplate",
    "load_tex_presets",
    "render_document",
]
