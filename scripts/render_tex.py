#!/usr/bin/env python3
"""
TeX/PDF/SVG Rendering CLI

Compiles or loads a document, caches it and draws it onto a PNG, PDF or SVG canvas
using the rendering context.

Commands:
    render - Draw a document onto a canvas with placement options
    info   - Show page size, page count and ink extents of a document

Examples:\n

    render_tex.py render '$e^{i\\pi} + 1 = 0$' euler.png              # Inline formula

    render_tex.py render figure.pdf out.svg --page 1 --rotation 30   # PDF page, rotated

    render_tex.py render logo.svg out.png --scale 2 --strategy surface

    render_tex.py info figure.pdf                                     # Document facts
"""

import math
import os
from pathlib import Path
from typing import Optional

import cairocffi as cairo
import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from texsurf.contexts.rendering import (
    CachedDocument,
    CachedPDF,
    CachedSVG,
    CachedTeX,
    CompileFailure,
    RenderConfig,
    TexSurfError,
    draw,
    plan_transform,
)
from texsurf.contexts.rendering.logger import setup_rendering_logger
from texsurf.contexts.templating import TeXDocument, texdoc
from texsurf.utils.timestamp import now

load_dotenv()
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))
LATEX_ENGINE = os.getenv("LATEX_ENGINE", "lualatex")


app = typer.Typer(
    help="Render LaTeX, PDF and SVG documents as cached surfaces",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def load_source(source: str, page: int = 0, engine: str = LATEX_ENGINE) -> CachedDocument:
    """
    Turn a CLI source argument into a cached object.

    Existing .pdf/.svg files are loaded directly. Other files are read as TeX: a
    full document if it has a \\documentclass, otherwise a snippet wrapped in the
    default template. Anything that is not a file is compiled as a string.
    """
    path = Path(source)
    if not path.is_file():
        return CachedTeX(source, engine=engine)

    suffix = path.suffix.lower()
    if suffix == ".pdf":
        return CachedPDF(path.read_bytes(), page=page)
    if suffix == ".svg":
        return CachedSVG(path.read_bytes())

    contents = path.read_text(encoding="utf-8")
    if "\\documentclass" in contents:
        return CachedTeX(TeXDocument(contents), engine=engine)
    return CachedTeX(texdoc(contents), engine=engine)


def _canvas_layout(obj: CachedDocument, scale, rotation: float, align, margin: float):
    """Canvas size and anchor position that fit the placed object plus a margin."""
    corners = plan_transform(obj.dims, (0.0, 0.0), scale, rotation, align).corners()
    xs = [x for x, _ in corners]
    ys = [y for _, y in corners]
    size = (max(xs) - min(xs) + 2 * margin, max(ys) - min(ys) + 2 * margin)
    position = (margin - min(xs), margin - min(ys))
    return size, position


def _report_failure(e: TexSurfError) -> None:
    typer.secho("✗ Rendering failed", fg=typer.colors.RED, bold=True, err=True)
    if isinstance(e, CompileFailure):
        for error in e.errors[:10]:
            typer.secho(f"  - {error}", fg=typer.colors.RED, err=True)
        if len(e.errors) > 10:
            typer.echo(f"  ... and {len(e.errors) - 10} more", err=True)
        if not e.errors:
            typer.echo(e.stderr[-2000:], err=True)
    else:
        typer.secho(f"  {e}", fg=typer.colors.RED, err=True)


@app.command("render")
def render_command(
    source: Annotated[
        str,
        typer.Argument(help="LaTeX string, or path to a .tex, .pdf or .svg file"),
    ],
    output: Annotated[
        Path,
        typer.Argument(help="Output file (.png, .pdf or .svg)"),
    ],
    page: Annotated[
        int,
        typer.Option("--page", "-p", help="PDF page to draw (0-based)", min=0),
    ] = 0,
    scale: Annotated[
        float,
        typer.Option("--scale", "-s", help="Uniform scale applied to the page size"),
    ] = 1.0,
    rotation: Annotated[
        float,
        typer.Option("--rotation", "-r", help="Counter-clockwise rotation in degrees"),
    ] = 0.0,
    halign: Annotated[
        str,
        typer.Option("--halign", help="Horizontal anchor: left, center or right"),
    ] = "center",
    valign: Annotated[
        str,
        typer.Option("--valign", help="Vertical anchor: top, center or bottom"),
    ] = "center",
    strategy: Annotated[
        Optional[str],
        typer.Option(
            "--strategy",
            help="Paint strategy: native or surface (default: TEXSURF_RENDER_STRATEGY)",
        ),
    ] = None,
    margin: Annotated[
        float,
        typer.Option("--margin", "-m", help="Canvas margin in points", min=0),
    ] = 4.0,
    density: Annotated[
        float,
        typer.Option("--density", "-d", help="Pixels per point for PNG output", min=0.01),
    ] = 2.0,
    engine: Annotated[
        str,
        typer.Option("--engine", "-e", help="LaTeX engine for TeX sources"),
    ] = LATEX_ENGINE,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug output on the console"),
    ] = False,
):
    """
    Draw a document onto a new canvas sized to fit it.

    Examples:\n

        $ render_tex.py render '$x^2$' x2.png                          # Formula to PNG

        $ render_tex.py render notes.tex notes.pdf --rotation 90       # Rotated page

        $ render_tex.py render plot.svg plot.png --halign left -s 0.5  # Scaled SVG
    """
    log_file = setup_rendering_logger(
        LOGS_PATH / f"render_{now()}", console_level="DEBUG" if verbose else "INFO"
    )

    suffix = output.suffix.lower()
    if suffix not in (".png", ".pdf", ".svg"):
        typer.secho(f"Error: unsupported output type '{suffix}'\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        config = RenderConfig(strategy) if strategy else RenderConfig.from_env()
    except ValueError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.secho(f"\nRendering: {source}", fg=typer.colors.BLUE, bold=True)
    typer.echo(f"Strategy: {config.strategy.value}")
    typer.echo("")

    align = (halign, valign)
    theta = math.radians(rotation)

    try:
        obj = load_source(source, page=page, engine=engine)
        with obj:
            (width, height), position = _canvas_layout(obj, scale, theta, align, margin)
            output.parent.mkdir(parents=True, exist_ok=True)

            if suffix == ".png":
                canvas = cairo.ImageSurface(
                    cairo.FORMAT_ARGB32, math.ceil(width * density), math.ceil(height * density)
                )
                ctx = cairo.Context(canvas)
                ctx.scale(density, density)
            elif suffix == ".pdf":
                canvas = cairo.PDFSurface(str(output), width, height)
                ctx = cairo.Context(canvas)
            else:
                canvas = cairo.SVGSurface(str(output), width, height)
                ctx = cairo.Context(canvas)

            draw(ctx, obj, position, scale, theta, align, config)

            if suffix == ".png":
                canvas.write_to_png(str(output))
            canvas.finish()
    except TexSurfError as e:
        _report_failure(e)
        typer.echo(f"  Log: {log_file}")
        raise typer.Exit(code=1)
    except ValueError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.secho("✓ Rendering succeeded", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  Page size: {obj.width:.2f} x {obj.height:.2f} pt")
    typer.echo(f"  Canvas: {width:.2f} x {height:.2f} pt")
    typer.echo(f"  Output: {output}")
    typer.echo(f"  Log: {log_file}")
    typer.echo("")


@app.command("info")
def info_command(
    source: Annotated[
        str,
        typer.Argument(help="LaTeX string, or path to a .tex, .pdf or .svg file"),
    ],
    page: Annotated[
        int,
        typer.Option("--page", "-p", help="PDF page to inspect (0-based)", min=0),
    ] = 0,
    engine: Annotated[
        str,
        typer.Option("--engine", "-e", help="LaTeX engine for TeX sources"),
    ] = LATEX_ENGINE,
):
    """
    Show page size, page count and ink extents of a document.

    Examples:\n

        $ render_tex.py info figure.pdf --page 2

        $ render_tex.py info '$\\int_0^1 x\\,dx$'
    """
    try:
        obj = load_source(source, page=page, engine=engine)
        with obj:
            pages = obj.handle.page_count
            x0, y0, ink_w, ink_h = obj.ink_extents()
    except TexSurfError as e:
        _report_failure(e)
        raise typer.Exit(code=1)

    typer.secho(f"\n{type(obj).__name__}", fg=typer.colors.BLUE, bold=True)
    typer.echo(f"  Kind: {obj.kind}")
    typer.echo(f"  Page: {obj.page + 1} of {pages}")
    typer.echo(f"  Page size: {obj.width:.2f} x {obj.height:.2f} pt")
    typer.echo(f"  Ink extents: x={x0:.2f} y={y0:.2f} w={ink_w:.2f} h={ink_h:.2f}")
    typer.echo("")


if __name__ == "__main__":
    app()
