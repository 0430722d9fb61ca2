"""
Rendering Context

Responsibilities:
- Compiles LaTeX documents to PDF bytes
- Loads PDF/SVG bytes into native handles and recorded surfaces
- Caches render objects and keeps their native handles fresh
- Computes placement transforms and bounding boxes
- Draws cached objects onto cairo contexts

Owns: LaTeX compilation, document loading, placement math, drawing
Never: Builds or edits document contents
"""

from texsurf.contexts.rendering.cached import (
    CachedDocument,
    CachedPDF,
    CachedSVG,
    CachedTeX,
    HandleCell,
    cache_document,
)
from texsurf.contexts.rendering.compiler import compile_latex
from texsurf.contexts.rendering.draw import (
    RenderConfig,
    RenderStrategy,
    draw,
    draw_many,
    draw_marker,
)
from texsurf.contexts.rendering.exceptions import (
    CompileFailure,
    DrawError,
    InvalidBoundingBox,
    ParseFailure,
    StaleHandleError,
    TexSurfError,
)
from texsurf.contexts.rendering.loader import LoadedDocument, load_document
from texsurf.contexts.rendering.placement import (
    Placement,
    Rect2,
    Rect3,
    TransformPlan,
    boundingbox,
    boundingbox_many,
    plan_transform,
    raster_placement,
    rotatedrect,
)

__all__ = [
    # Compilation and loading
    "compile_latex",
    "load_document",
    "LoadedDocument",
    # Cached objects
    "CachedDocument",
    "CachedTeX",
    "CachedPDF",
    "CachedSVG",
    "HandleCell",
    "cache_document",
    # Placement
    "Placement",
    "Rect2",
    "Rect3",
    "TransformPlan",
    "plan_transform",
    "rotatedrect",
    "boundingbox",
    "boundingbox_many",
    "raster_placement",
    # Drawing
    "RenderConfig",
    "RenderStrategy",
    "draw",
    "draw_many",
    "draw_marker",
    # Errors
    "TexSurfError",
    "CompileFailure",
    "ParseFailure",
    "StaleHandleError",
    "InvalidBoundingBox",
    "DrawError",
]
