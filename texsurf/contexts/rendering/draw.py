"""
Draw dispatcher.

Applies a placement to a cairo context and paints a cached object with one of
two strategies:

- native: re-render the page from a freshly opened parser handle (crisper,
  re-parses on every draw)
- surface: paint the cached recording (no parser involved)

The strategy is part of an explicit RenderConfig rather than global state.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple

import cairocffi as cairo
from dotenv import load_dotenv

from texsurf.contexts.rendering.cached import CachedDocument
from texsurf.contexts.rendering.exceptions import DrawError
from texsurf.contexts.rendering.logger import _log_debug, log_draw_failure
from texsurf.contexts.rendering.placement import (
    DEFAULT_ALIGN,
    Align,
    Scale,
    TransformPlan,
    broadcast_placements,
    normalize_position,
    normalize_scale,
    plan_transform,
)

load_dotenv()

RENDER_STRATEGY = os.getenv("TEXSURF_RENDER_STRATEGY", "native")


class RenderStrategy(str, Enum):
    NATIVE = "native"
    SURFACE = "surface"


@dataclass(frozen=True)
class RenderConfig:
    """How cached objects are painted onto a context."""

    strategy: RenderStrategy = RenderStrategy.NATIVE

    def __post_init__(self):
        # Accept plain strings ("native"/"surface")
        object.__setattr__(self, "strategy", RenderStrategy(self.strategy))

    @classmethod
    def from_env(cls) -> "RenderConfig":
        """Build from TEXSURF_RENDER_STRATEGY (read at import, default "native")."""
        return cls(strategy=RENDER_STRATEGY)


DEFAULT_CONFIG = RenderConfig()


def _paint(ctx: cairo.Context, obj: CachedDocument, config: RenderConfig) -> None:
    if config.strategy is RenderStrategy.NATIVE:
        # Handles may be invalidated behind our back; always re-open before use
        obj.refresh_handle()
        obj.render_native(ctx)
    else:
        obj.paint_surface(ctx)


def draw(
    ctx: cairo.Context,
    obj: CachedDocument,
    position: Sequence[float] = (0.0, 0.0),
    scale: Scale = 1.0,
    rotation: float = 0.0,
    align: Align = DEFAULT_ALIGN,
    config: RenderConfig = DEFAULT_CONFIG,
) -> TransformPlan:
    """
    Draw a cached object onto a context.

    The context state is saved before and restored after drawing on every exit
    path, so a failed draw never leaks its transform into later draws.

    Args:
        ctx: Target cairo context (y-down)
        obj: Cached object to draw
        position: Anchor position in context coordinates
        scale: Uniform factor or (sx, sy) applied to the page size in points
        rotation: Radians, counter-clockwise on screen
        align: (halign, valign) anchor of the object
        config: Paint strategy

    Returns:
        The TransformPlan that was applied

    Raises:
        DrawError: If anything fails while drawing
        ValueError: If the placement values are invalid
    """
    plan = plan_transform(obj.dims, position, scale, rotation, align)

    ctx.save()
    try:
        plan.apply_to(ctx)
        _paint(ctx, obj, config)
    except Exception as e:
        raise DrawError(
            f"Failed to draw {obj!r} ({config.strategy.value} path)", original_error=e
        ) from e
    finally:
        ctx.restore()

    return plan


def draw_many(
    ctx: cairo.Context,
    objs: Sequence[CachedDocument],
    positions,
    scales=1.0,
    rotations=0.0,
    aligns=DEFAULT_ALIGN,
    config: RenderConfig = DEFAULT_CONFIG,
) -> List[Tuple[int, DrawError]]:
    """
    Draw several objects; a failure on one does not stop the others.

    Lists are taken per object, single values are shared (see broadcast_placements).

    Returns:
        (index, error) for every object that failed to draw
    """
    placements = broadcast_placements(len(objs), positions, scales, rotations, aligns)
    failures: List[Tuple[int, DrawError]] = []

    for index, (obj, placement) in enumerate(zip(objs, placements)):
        try:
            draw(
                ctx,
                obj,
                placement.position,
                placement.scale,
                placement.rotation,
                placement.align,
                config,
            )
        except DrawError as e:
            log_draw_failure(f"object {index}", e)
            failures.append((index, e))

    _log_debug(f"Drew {len(objs) - len(failures)}/{len(objs)} objects")
    return failures


def draw_marker(
    ctx: cairo.Context,
    obj: CachedDocument,
    position: Sequence[float],
    size: Scale,
    marker_offset: Sequence[float] = (0.0, 0.0),
    rotation: float = 0.0,
) -> None:
    """
    Paint a cached surface as a scatter marker.

    The marker box of the given size (context units) starts at position +
    marker_offset; the surface is centred in that box and rotated about its
    centre. Always uses the cached surface.
    """
    w, h = obj.dims
    sx, sy = normalize_scale(size)
    px, py, _ = normalize_position(position)
    mx, my = marker_offset

    ctx.save()
    try:
        ctx.translate(sx / 2 + px + mx, sy / 2 + py + my)
        ctx.rotate(-rotation)
        ctx.scale(sx / w, sy / h)
        ctx.set_source_surface(obj.surface, -w / 2, -h / 2)
        ctx.paint()
    except Exception as e:
        raise DrawError(f"Failed to draw marker {obj!r}", original_error=e) from e
    finally:
        ctx.restore()
