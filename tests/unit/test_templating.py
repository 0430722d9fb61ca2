"""Unit tests for document values and TeX templates."""

import pytest

from texsurf.contexts.templating import (
    PDFDocument,
    SVGDocument,
    TeXDocument,
    TeXTemplate,
    implant,
    is_math,
    load_tex_presets,
    render_document,
    texdoc,
)


@pytest.mark.unit
def test_render_document_layout():
    """Test that contents are wrapped in requires/class/preamble/document."""
    source = render_document("Hello")

    assert source.startswith(r"\RequirePackage{luatex85}")
    assert r"\documentclass[preview, tightpage, 12pt]{standalone}" in source
    assert r"\usepackage{amsmath, xcolor}" in source
    assert "\\begin{document}\n\nHello\n\n\\end{document}" in source


@pytest.mark.unit
def test_render_document_is_pure():
    """Test that rendering twice gives identical source."""
    template = TeXTemplate(preamble=r"\usepackage{tikz}")
    assert render_document("x", template) == render_document("x", template)


@pytest.mark.unit
def test_render_document_does_not_escape_contents():
    """Test that TeX specials pass through untouched."""
    contents = r"\textbf{50\%} & $a_{b}$ {{braces}}"
    assert contents in render_document(contents)


@pytest.mark.unit
def test_field_order_in_document():
    """Test that requires precedes the class, which precedes the preamble."""
    template = TeXTemplate(
        requires="% REQ", document_class="article", classoptions="10pt", preamble="% PRE"
    )
    source = render_document("BODY", template)

    positions = [
        source.index("% REQ"),
        source.index(r"\documentclass[10pt]{article}"),
        source.index("% PRE"),
        source.index(r"\begin{document}"),
        source.index("BODY"),
        source.index(r"\end{document}"),
    ]
    assert positions == sorted(positions)


@pytest.mark.unit
def test_presets_load():
    """Test that the bundled presets exist and carry template fields only."""
    presets = load_tex_presets()
    assert {"default", "text", "math"} <= set(presets)
    for config in presets.values():
        assert set(config) <= {"requires", "document_class", "classoptions", "preamble"}


@pytest.mark.unit
def test_presets_mutation_does_not_leak():
    """Test that editing a loaded preset dict leaves later loads untouched."""
    presets = load_tex_presets()
    original = presets["text"]["preamble"]
    presets["text"]["preamble"] = r"\usepackage{broken}"
    presets["math"].clear()

    fresh = load_tex_presets()
    assert fresh["text"]["preamble"] == original
    assert "amsfonts" in TeXTemplate.from_preset("math").preamble
    assert "broken" not in implant("plain").contents


@pytest.mark.unit
def test_from_preset_math():
    """Test building a template from the math preset."""
    template = TeXTemplate.from_preset("math")
    assert template.document_class == "standalone"
    assert "amsfonts" in template.preamble


@pytest.mark.unit
def test_from_preset_unknown():
    """Test that an unknown preset name raises ValueError."""
    with pytest.raises(ValueError, match="not found"):
        TeXTemplate.from_preset("no_such_preset")


@pytest.mark.unit
def test_from_preset_custom_file(tmp_path):
    """Test loading presets from a custom file and rejecting unknown fields."""
    config = tmp_path / "presets.yaml"
    config.write_text(
        "article:\n"
        "  document_class: article\n"
        "  classoptions: 11pt\n"
        "broken:\n"
        "  fontsize: 11pt\n"
    )

    template = TeXTemplate.from_preset("article", config_path=config)
    assert template.document_class == "article"
    assert template.classoptions == "11pt"
    # Unset fields keep their defaults
    assert template.requires == TeXTemplate().requires

    with pytest.raises(ValueError, match="unknown fields"):
        TeXTemplate.from_preset("broken", config_path=config)


@pytest.mark.unit
def test_build_without_defaults_keeps_contents():
    """Test that add_defaults=False takes contents verbatim."""
    full = "\\documentclass{article}\\begin{document}x\\end{document}"
    doc = TeXDocument.build(full, add_defaults=False)
    assert doc.contents == full
    assert str(doc) == full


@pytest.mark.unit
def test_build_without_defaults_ignores_template():
    """Test that a template passed with add_defaults=False is disregarded."""
    doc = TeXDocument.build("raw", add_defaults=False, template=TeXTemplate(preamble="% P"))
    assert doc.contents == "raw"


@pytest.mark.unit
def test_texdoc_overrides_single_fields():
    """Test that texdoc keyword overrides replace template fields."""
    doc = texdoc("Hi", preamble=r"\usepackage{siunitx}")
    assert r"\usepackage{siunitx}" in doc.contents
    assert r"\usepackage{amsmath, xcolor}" not in doc.contents
    assert "Hi" in doc.contents


@pytest.mark.unit
def test_texdoc_rejects_unknown_field():
    """Test that overriding a field the template does not have fails."""
    with pytest.raises(TypeError):
        texdoc("Hi", fontsize="12pt")


@pytest.mark.unit
def test_documents_are_immutable():
    """Test that document values cannot be modified."""
    doc = TeXDocument("x")
    with pytest.raises(AttributeError):
        doc.contents = "y"


@pytest.mark.unit
def test_pdf_document_normalises_input():
    """Test that PDFDocument stores bytes for str, bytearray and bytes input."""
    assert PDFDocument("%PDF-\xff").pdf == b"%PDF-\xff"
    assert PDFDocument(bytearray(b"%PDF-1.5")).pdf == b"%PDF-1.5"
    assert PDFDocument(b"%PDF-1.7").pdf == b"%PDF-1.7"


@pytest.mark.unit
def test_svg_document_keeps_bytes():
    """Test that SVG bytes are stored untouched, whatever their encoding."""
    raw = b'<?xml version="1.0" encoding="ISO-8859-1"?><svg><title>caf\xe9</title></svg>'
    assert SVGDocument(raw).svg == raw
    assert SVGDocument(raw).data == raw
    assert SVGDocument(bytearray(b"<svg/>")).svg == b"<svg/>"


@pytest.mark.unit
def test_svg_document_text_is_utf8():
    """Test that text is encoded as UTF-8 without a contradicting declaration."""
    doc = SVGDocument("<?xml version='1.0' encoding='ISO-8859-1'?><svg><title>café</title></svg>")
    assert doc.data == "<?xml version='1.0'?><svg><title>café</title></svg>".encode("utf-8")
    assert SVGDocument("<svg/>").data == b"<svg/>"


@pytest.mark.unit
@pytest.mark.parametrize(
    "text, expected",
    [("$x$", True), ("$x^2 + 1$", True), ("x", False), ("$", False), ("$x", False), ("", False)],
)
def test_is_math(text, expected):
    """Test detection of $-delimited math."""
    assert is_math(text) is expected


@pytest.mark.unit
def test_implant_math_strips_delimiters():
    """Test that math is set as a displayed formula without $ signs."""
    doc = implant("$x^2$")
    assert r"\(\displaystyle x^2\)" in doc.contents
    assert "$" not in doc.contents


@pytest.mark.unit
def test_implant_text_keeps_text():
    """Test that plain text (with inline math) is placed as-is."""
    doc = implant("Area $\\pi r^2$")
    assert "Area $\\pi r^2$" in doc.contents
    assert r"\displaystyle" not in doc.contents
