"""
Placement and transform engine.

Two coordinate conventions meet here:

- The drawing context is y-down (cairo). plan_transform() produces the ordered
  translate/rotate/scale steps that put a cached page at a position.
- The scene is y-up. boundingbox() reports where the same placement lands in
  scene space, as a Rect3 on the z=0 plane.

In both, rotation is in radians, counter-clockwise positive, and the object
rotates about its alignment anchor, which sits exactly at the position.
"""

import math
from dataclasses import dataclass
from functools import reduce
from typing import List, Sequence, Tuple, Union

from texsurf.contexts.rendering.exceptions import InvalidBoundingBox

HALIGNS = ("left", "center", "right")
VALIGNS = ("top", "center", "bottom")

Scale = Union[float, Tuple[float, float]]
Align = Tuple[str, str]

DEFAULT_ALIGN: Align = ("center", "center")


# ---------------------------------------------------------------------------
# Normalisation of placement values
# ---------------------------------------------------------------------------


def normalize_align(align: Align) -> Align:
    """Validate an (halign, valign) pair."""
    try:
        halign, valign = align
    except (TypeError, ValueError) as e:
        raise ValueError(f"Alignment must be a (halign, valign) pair, got {align!r}") from e

    if halign not in HALIGNS:
        raise ValueError(f"Invalid horizontal alignment '{halign}'. Expected one of {HALIGNS}")
    if valign not in VALIGNS:
        raise ValueError(f"Invalid vertical alignment '{valign}'. Expected one of {VALIGNS}")
    return halign, valign


def normalize_scale(scale: Scale) -> Tuple[float, float]:
    """Uniform factor or (sx, sy) -> (sx, sy)."""
    if isinstance(scale, (int, float)):
        return float(scale), float(scale)
    sx, sy = scale
    return float(sx), float(sy)


def normalize_position(position: Sequence[float]) -> Tuple[float, float, float]:
    """2D or 3D point -> (x, y, z)."""
    if len(position) == 2:
        x, y = position
        return float(x), float(y), 0.0
    x, y, z = position
    return float(x), float(y), float(z)


def normalize_dims(dims: Sequence[float]) -> Tuple[float, float]:
    """Validate a (width, height) page size: both positive and finite."""
    w, h = (float(d) for d in dims)
    if not (math.isfinite(w) and math.isfinite(h) and w > 0 and h > 0):
        raise ValueError(f"Page dims must be positive and finite, got {w} x {h}")
    return w, h


@dataclass(frozen=True)
class Placement:
    """Where and how to draw one object. Transient; never stored on the object."""

    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    scale: Tuple[float, float] = (1.0, 1.0)
    rotation: float = 0.0
    align: Align = DEFAULT_ALIGN

    @classmethod
    def of(
        cls,
        position: Sequence[float] = (0.0, 0.0),
        scale: Scale = 1.0,
        rotation: float = 0.0,
        align: Align = DEFAULT_ALIGN,
    ) -> "Placement":
        return cls(
            position=normalize_position(position),
            scale=normalize_scale(scale),
            rotation=float(rotation),
            align=normalize_align(align),
        )


def _broadcast(value, n: int, name: str) -> list:
    # Lists carry one value per object; anything else (numbers, tuples) is shared
    if isinstance(value, list):
        if len(value) != n:
            raise ValueError(f"Expected {n} {name}, got {len(value)}")
        return value
    return [value] * n


def broadcast_placements(n: int, positions, scales, rotations, aligns) -> List[Placement]:
    """
    Build one Placement per object.

    Each argument is either a list with one entry per object or a single value
    (number or tuple) shared by all of them.
    """
    return [
        Placement.of(position, scale, rotation, align)
        for position, scale, rotation, align in zip(
            _broadcast(positions, n, "positions"),
            _broadcast(scales, n, "scales"),
            _broadcast(rotations, n, "rotations"),
            _broadcast(aligns, n, "aligns"),
        )
    ]


# ---------------------------------------------------------------------------
# Affine algebra (cairo matrix convention)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Affine:
    """
    2D affine map with cairo's field layout:

        x' = xx * x + xy * y + x0
        y' = yx * x + yy * y + y0
    """

    xx: float = 1.0
    yx: float = 0.0
    xy: float = 0.0
    yy: float = 1.0
    x0: float = 0.0
    y0: float = 0.0

    @classmethod
    def translation(cls, tx: float, ty: float) -> "Affine":
        return cls(x0=tx, y0=ty)

    @classmethod
    def rotation(cls, angle: float) -> "Affine":
        c, s = math.cos(angle), math.sin(angle)
        return cls(xx=c, yx=s, xy=-s, yy=c)

    @classmethod
    def scaling(cls, sx: float, sy: float) -> "Affine":
        return cls(xx=sx, yy=sy)

    def __matmul__(self, other: "Affine") -> "Affine":
        """(self @ other)(p) == self(other(p))"""
        return Affine(
            xx=self.xx * other.xx + self.xy * other.yx,
            yx=self.yx * other.xx + self.yy * other.yx,
            xy=self.xx * other.xy + self.xy * other.yy,
            yy=self.yx * other.xy + self.yy * other.yy,
            x0=self.xx * other.x0 + self.xy * other.y0 + self.x0,
            y0=self.yx * other.x0 + self.yy * other.y0 + self.y0,
        )

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return self.xx * x + self.xy * y + self.x0, self.yx * x + self.yy * y + self.y0

    def as_tuple(self) -> Tuple[float, float, float, float, float, float]:
        return self.xx, self.yx, self.xy, self.yy, self.x0, self.y0


def rotate_point(x: float, y: float, angle: float) -> Tuple[float, float]:
    """Rotate (x, y) about the origin by [[cos, -sin], [sin, cos]]."""
    return Affine.rotation(angle).apply(x, y)


# ---------------------------------------------------------------------------
# Transform plan for the y-down drawing context
# ---------------------------------------------------------------------------


def alignment_offset(align: Align, width: float, height: float) -> Tuple[float, float]:
    """
    Offset of the object's top-left corner from its anchor, in y-down context space.

    left 0, center -w/2, right -w; top 0, center -h/2, bottom -h.
    """
    halign, valign = normalize_align(align)
    ox = {"left": 0.0, "center": -width / 2, "right": -width}[halign]
    oy = {"top": 0.0, "center": -height / 2, "bottom": -height}[valign]
    return ox, oy


def rotation_compensation(width: float, height: float, rotation: float) -> Tuple[float, float]:
    """Rotated centre minus unrotated centre of a width x height box at the origin."""
    hx, hy = 0.5 * width, 0.5 * height
    rx, ry = rotate_point(hx, hy, rotation)
    return rx - hx, ry - hy


@dataclass(frozen=True)
class TransformStep:
    """One context operation: ("translate", dx, dy), ("rotate", theta) or ("scale", sx, sy)."""

    op: str
    args: Tuple[float, ...]

    def matrix(self) -> Affine:
        if self.op == "translate":
            return Affine.translation(*self.args)
        if self.op == "rotate":
            return Affine.rotation(*self.args)
        if self.op == "scale":
            return Affine.scaling(*self.args)
        raise ValueError(f"Unknown transform op '{self.op}'")


@dataclass(frozen=True)
class TransformPlan:
    """
    Ordered context operations that map page space (points, origin top-left)
    onto the drawing context.

    Attributes:
        steps: Operations in the order they are applied to the context
        size: Drawn size (width, height) in context units
        dims: Page size in points
    """

    steps: Tuple[TransformStep, ...]
    size: Tuple[float, float]
    dims: Tuple[float, float]

    def matrix(self) -> Affine:
        return reduce(lambda acc, step: acc @ step.matrix(), self.steps, Affine())

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        """Map a point in page space to context space."""
        return self.matrix().apply(x, y)

    def corners(self) -> List[Tuple[float, float]]:
        """Page corners in context space: top-left, top-right, bottom-right, bottom-left."""
        w, h = self.dims
        return [self.apply(x, y) for x, y in ((0, 0), (w, 0), (w, h), (0, h))]

    def apply_to(self, ctx) -> None:
        """Replay the steps on anything with translate/rotate/scale methods (a cairo Context)."""
        for step in self.steps:
            getattr(ctx, step.op)(*step.args)


def plan_transform(
    dims: Tuple[float, float],
    position: Sequence[float],
    scale: Scale = 1.0,
    rotation: float = 0.0,
    align: Align = DEFAULT_ALIGN,
) -> TransformPlan:
    """
    Compute the context transform for drawing a page of size dims.

    Steps:
      1. translate to the position, shifted so the box is centred on it
      2. rotate by -rotation (the context is y-down, so this is CCW on screen)
      3. translate by the rotation compensation, pivoting the rotation about the
         centred box
      4. translate by the alignment offset relative to the centred box
      5. scale page points to the drawn size
    Net effect: the anchor lands on the position and the box rotates about it.
    """
    w, h = normalize_dims(dims)
    sx, sy = normalize_scale(scale)
    width, height = w * sx, h * sy
    px, py, _ = normalize_position(position)
    rotation = float(rotation)

    ox, oy = alignment_offset(align, width, height)
    cx, cy = rotation_compensation(width, height, rotation)

    steps = (
        TransformStep("translate", (px - width / 2, py - height / 2)),
        TransformStep("rotate", (-rotation,)),
        TransformStep("translate", (cx, cy)),
        TransformStep("translate", (ox + width / 2, oy + height / 2)),
        TransformStep("scale", (width / w, height / h)),
    )
    return TransformPlan(steps=steps, size=(width, height), dims=(w, h))


# ---------------------------------------------------------------------------
# Bounding boxes in y-up scene space
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rect2:
    x: float
    y: float
    width: float
    height: float

    @property
    def origin(self) -> Tuple[float, float]:
        return self.x, self.y

    @property
    def widths(self) -> Tuple[float, float]:
        return self.width, self.height

    def corners(self) -> List[Tuple[float, float]]:
        return [
            (self.x, self.y),
            (self.x, self.y + self.height),
            (self.x + self.width, self.y),
            (self.x + self.width, self.y + self.height),
        ]


@dataclass(frozen=True)
class Rect3:
    origin: Tuple[float, float, float]
    widths: Tuple[float, float, float]

    @classmethod
    def zero(cls) -> "Rect3":
        return cls((0.0, 0.0, 0.0), (0.0, 0.0, 0.0))

    @property
    def maximum(self) -> Tuple[float, float, float]:
        return tuple(o + w for o, w in zip(self.origin, self.widths))

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in self.origin + self.widths)

    def union(self, other: "Rect3") -> "Rect3":
        lo = tuple(min(a, b) for a, b in zip(self.origin, other.origin))
        hi = tuple(max(a, b) for a, b in zip(self.maximum, other.maximum))
        return Rect3(lo, tuple(h - l for l, h in zip(lo, hi)))


def rotatedrect(rect: Rect2, angle: float) -> Rect2:
    """
    Axis-aligned rectangle enclosing rect rotated by angle about the origin.

    Rotates the four corners and takes the componentwise min/max. This encloses
    the rotated box, not the ink inside it, so it is a conservative
    approximation of a tight box (compare an "A" with an "X").
    """
    rotated = [rotate_point(x, y, angle) for x, y in rect.corners()]
    xs = [p[0] for p in rotated]
    ys = [p[1] for p in rotated]
    return Rect2(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))


def scene_alignment_offset(align: Align, width: float, height: float) -> Tuple[float, float]:
    """
    Offset of the object's lower-left corner from its anchor, in y-up scene space.

    left 0, center -w/2, right -w; bottom 0, center -h/2, top -h.
    """
    halign, valign = normalize_align(align)
    ox = {"left": 0.0, "center": -width / 2, "right": -width}[halign]
    oy = {"bottom": 0.0, "center": -height / 2, "top": -height}[valign]
    return ox, oy


def _dims_of(obj) -> Tuple[float, float]:
    return normalize_dims(obj.dims if hasattr(obj, "dims") else obj)


def boundingbox(
    obj,
    position: Sequence[float] = (0.0, 0.0),
    rotation: float = 0.0,
    scale: Scale = 1.0,
    align: Align = DEFAULT_ALIGN,
) -> Rect3:
    """
    Scene-space box of one placed object, on the z=0 plane.

    Args:
        obj: Cached object (anything with .dims) or a (width, height) pair
        position: Anchor position (2D or 3D)
        rotation: Radians, counter-clockwise
        scale: Uniform factor or (sx, sy)
        align: (halign, valign)

    Raises:
        ValueError: If the dims are not positive and finite
        InvalidBoundingBox: If the result is not finite
    """
    w, h = _dims_of(obj)
    sx, sy = normalize_scale(scale)
    width, height = w * sx, h * sy
    ox, oy = scene_alignment_offset(align, width, height)

    rect = rotatedrect(Rect2(ox, oy, width, height), float(rotation))
    px, py, pz = normalize_position(position)
    box = Rect3((rect.x + px, rect.y + py, pz), (rect.width, rect.height, 0.0))

    if not box.is_finite():
        raise InvalidBoundingBox(
            f"Non-finite bounding box {box} (dims={(w, h)}, scale={scale}, rotation={rotation})"
        )
    return box


def boundingbox_many(
    objs: Sequence,
    positions,
    rotations=0.0,
    scales=1.0,
    aligns=DEFAULT_ALIGN,
) -> Rect3:
    """
    Union of the boxes of several placed objects.

    Lists are taken per object, single values are shared. An empty collection
    gives the zero box at the origin.

    Raises:
        InvalidBoundingBox: If any box is not finite
    """
    if len(objs) == 0:
        return Rect3.zero()

    placements = broadcast_placements(len(objs), positions, scales, rotations, aligns)
    boxes = [
        boundingbox(obj, p.position, p.rotation, p.scale, p.align)
        for obj, p in zip(objs, placements)
    ]
    return reduce(Rect3.union, boxes)


# ---------------------------------------------------------------------------
# Raster placement for hosts drawing bitmaps in y-up data space
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RasterPlacement:
    """
    Data-space rectangle for a rasterized image plus its model transform.

    Attributes:
        x_interval: (left, right)
        y_interval: (bottom, top)
        model: Rotation about the rectangle centre
    """

    x_interval: Tuple[float, float]
    y_interval: Tuple[float, float]
    model: Affine

    @property
    def center(self) -> Tuple[float, float]:
        return 0.5 * sum(self.x_interval), 0.5 * sum(self.y_interval)


def raster_placement(
    image_size: Tuple[int, int],
    position: Sequence[float],
    align: Align = DEFAULT_ALIGN,
    rotation: float = 0.0,
    render_density: float = 1.0,
) -> RasterPlacement:
    """
    Place a rasterized image (width, height in pixels) rendered at render_density.

    Unlike plan_transform(), the image rotates about its own centre, which is
    what image-drawing hosts do with a model matrix.
    """
    w, h = image_size[0] / render_density, image_size[1] / render_density
    x, y, _ = normalize_position(position)
    ox, oy = scene_alignment_offset(align, w, h)
    x, y = x + ox, y + oy

    cx, cy = x + w / 2, y + h / 2
    model = (
        Affine.translation(cx, cy) @ Affine.rotation(float(rotation)) @ Affine.translation(-cx, -cy)
    )
    return RasterPlacement(x_interval=(x, x + w), y_interval=(y, y + h), model=model)
