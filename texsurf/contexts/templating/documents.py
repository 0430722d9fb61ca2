"""
Document values.

Immutable wrappers around raw source content. A document carries no behaviour
beyond construction; converting it into something drawable is the job of the
cached types in texsurf.contexts.rendering.cached.
"""

import re
from dataclasses import dataclass, replace
from typing import Optional, Union

from texsurf.contexts.templating.logger import _log_warning
from texsurf.contexts.templating.tex_template import TeXTemplate, render_document


@dataclass(frozen=True)
class TeXDocument:
    """
    A complete LaTeX document.

    Use texdoc() (or TeXDocument.build) to wrap a bare snippet in the standard
    template; calling TeXDocument(...) directly expects a full document.
    """

    contents: str

    @classmethod
    def build(
        cls,
        contents: str,
        add_defaults: bool = True,
        template: Optional[TeXTemplate] = None,
    ) -> "TeXDocument":
        """
        Create a TeXDocument, optionally wrapping contents in a template.

        If add_defaults is False, template is disregarded and contents must be a
        complete LaTeX document.
        """
        if not add_defaults:
            if template is not None:
                _log_warning("add_defaults=False: template is ignored, contents used as-is")
            return cls(contents)
        return cls(render_document(contents, template))

    def __str__(self) -> str:
        return self.contents


@dataclass(frozen=True)
class PDFDocument:
    """A raw PDF. Strings are taken as latin-1 so every byte survives the round trip."""

    pdf: bytes

    def __post_init__(self):
        if isinstance(self.pdf, str):
            object.__setattr__(self, "pdf", self.pdf.encode("latin-1"))
        elif isinstance(self.pdf, (bytearray, memoryview)):
            object.__setattr__(self, "pdf", bytes(self.pdf))


# encoding="..." pseudo-attribute of a leading XML declaration
_XML_ENCODING = re.compile(r"""^(\s*<\?xml\b[^>]*?)\s+encoding\s*=\s*(["'])[^"']*\2""")


@dataclass(frozen=True)
class SVGDocument:
    """
    An SVG image, as bytes or text.

    Bytes are kept exactly as given so the XML parser can honour the encoding
    they declare. Text is already decoded: data re-encodes it as UTF-8 and drops
    any encoding declaration that would contradict that.
    """

    svg: Union[str, bytes]

    def __post_init__(self):
        if isinstance(self.svg, (bytearray, memoryview)):
            object.__setattr__(self, "svg", bytes(self.svg))

    @property
    def data(self) -> bytes:
        """Bytes to hand to the XML parser."""
        if isinstance(self.svg, bytes):
            return self.svg
        return _XML_ENCODING.sub(r"\1", self.svg, count=1).encode("utf-8")


Document = Union[TeXDocument, PDFDocument, SVGDocument]


def texdoc(contents: str, template: Optional[TeXTemplate] = None, **overrides) -> TeXDocument:
    """
    Shorthand for TeXDocument.build(contents, add_defaults=True, ...).

    Keyword overrides replace single template fields:

        >>> texdoc("Hi", preamble=r"\\usepackage{xcolor}")
    """
    template = replace(template or TeXTemplate(), **overrides)
    return TeXDocument.build(contents, add_defaults=True, template=template)


def is_math(text: str) -> bool:
    """True for strings delimited as inline math: "$...$"."""
    return len(text) >= 2 and text.startswith("$") and text.endswith("$")


def implant_text(text: str) -> TeXDocument:
    """Wrap plain text (which may contain inline math) into a standalone document."""
    return TeXDocument.build(str(text), template=TeXTemplate.from_preset("text"))


def implant_math(text: str) -> TeXDocument:
    """Wrap a formula, without its $ delimiters, as a displayed equation."""
    return TeXDocument.build(
        f"\\(\\displaystyle {text}\\)", template=TeXTemplate.from_preset("math")
    )


def implant(text: str) -> TeXDocument:
    """Pick implant_math for "$...$" strings and implant_text otherwise."""
    if is_math(text):
        return implant_math(text[1:-1])
    return implant_text(text)
