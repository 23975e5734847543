"""Geometry helpers for placing designs inside a print area.

All functions are pure. Print-space values are pixels at the provider's
print resolution with a top-left origin; render-space values are pixels on
whatever surface currently draws the print area (desktop canvas, scaled
mobile canvas, zoomed view). Every conversion between the two goes through
this module so all renderers agree on the scale.
"""

import math
from dataclasses import dataclass
from typing import Tuple

from config import CANVAS_MAX_SIZE, CANVAS_MIN_SIZE, DEFAULT_FIT_FRACTION, MIN_DESIGN_SIZE
from errors import DegenerateGeometryError


ANCHORS = (
    "top-left", "top-center", "top-right",
    "center-left", "center", "center-right",
    "bottom-left", "bottom-center", "bottom-right",
)


@dataclass(frozen=True)
class Size:
    width: float
    height: float

    @property
    def ratio(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class Position:
    top: float
    left: float


@dataclass(frozen=True)
class RenderRect:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class CanvasSize:
    width: int
    height: int
    aspect_ratio: float
    orientation: str  # "landscape", "portrait" or "square"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 always going up.

    Python's round() uses banker's rounding, which makes repeated small
    drags alternate direction. This one is stable.
    """
    return int(math.floor(value + 0.5))


def _require_positive(name: str, value: float):
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        raise DegenerateGeometryError(f"{name} must be a positive finite number, got {value!r}")


def _require_finite(name: str, value: float):
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        raise DegenerateGeometryError(f"{name} must be a finite number, got {value!r}")


def fit_within_area(
    intrinsic_ratio: float,
    area,
    max_fraction: float = DEFAULT_FIT_FRACTION,
    min_size: float = MIN_DESIGN_SIZE,
) -> Size:
    """Largest rect with the given ratio inside `max_fraction` of the area.

    `area` is anything with width/height (PrintArea, Size). Neither side
    goes below `min_size` (or the area side, when the area is smaller than
    that). A zero, negative or non-finite ratio is an error.
    """
    _require_positive("intrinsic_ratio", intrinsic_ratio)
    _require_positive("area.width", area.width)
    _require_positive("area.height", area.height)
    _require_positive("max_fraction", max_fraction)

    max_w = area.width * max_fraction
    max_h = area.height * max_fraction

    if max_w / max_h > intrinsic_ratio:
        # Bounded by height
        height = max_h
        width = height * intrinsic_ratio
    else:
        width = max_w
        height = width / intrinsic_ratio

    floor_w = min(min_size, area.width)
    floor_h = min(min_size, area.height)
    if width < floor_w:
        width = floor_w
        height = width / intrinsic_ratio
    if height < floor_h:
        height = floor_h
        width = height * intrinsic_ratio

    return Size(width=min(width, area.width), height=min(height, area.height))


def anchored_position(anchor: str, rect, area) -> Position:
    """Top/left that puts `rect` against the edges or center named by `anchor`."""
    if anchor not in ANCHORS:
        raise ValueError(f"Unknown anchor '{anchor}'. Valid anchors: {', '.join(ANCHORS)}")

    vertical, _, horizontal = anchor.partition("-")
    if anchor == "center":
        horizontal = "center"

    free_w = area.width - rect.width
    free_h = area.height - rect.height

    left = {"left": 0, "center": free_w / 2, "right": free_w}[horizontal]
    top = {"top": 0, "center": free_h / 2, "bottom": free_h}[vertical]

    # A rect larger than the area still gets a non-negative position
    left = max(0, min(left, free_w))
    top = max(0, min(top, free_h))
    return Position(top=top, left=left)


def render_scale(area, render_size, scale_cap: float = 1.0) -> float:
    """Uniform print-to-render scale; never above `scale_cap`."""
    _require_positive("area.width", area.width)
    _require_positive("area.height", area.height)
    _require_positive("render_size.width", render_size.width)
    _require_positive("render_size.height", render_size.height)
    return min(
        render_size.width / area.width,
        render_size.height / area.height,
        scale_cap,
    )


def to_render_space(rect, area, render_size, scale_cap: float = 1.0) -> RenderRect:
    """Map a print-space rect (width/height/top/left) onto the render surface."""
    scale = render_scale(area, render_size, scale_cap)
    return RenderRect(
        x=rect.left * scale,
        y=rect.top * scale,
        width=rect.width * scale,
        height=rect.height * scale,
    )


def from_render_space(render_delta: float, scale: float) -> int:
    """Convert a render-space length or delta back to print pixels."""
    _require_finite("render_delta", render_delta)
    _require_positive("scale", scale)
    return round_half_up(render_delta / scale)


def clamp_rect(
    width: float,
    height: float,
    top: float,
    left: float,
    area_width: float,
    area_height: float,
    constrain: bool = True,
    min_size: float = MIN_DESIGN_SIZE,
) -> Tuple[float, float, float, float]:
    """Bring a rect back inside its invariants.

    Size is floored at `min_size` (or the area side when smaller). With
    `constrain`, size is capped at the area and the position pulled inside
    it. Returns (width, height, top, left).
    """
    for name, value in (("width", width), ("height", height), ("top", top), ("left", left)):
        _require_finite(name, value)
    _require_positive("area_width", area_width)
    _require_positive("area_height", area_height)

    width = max(width, min(min_size, area_width))
    height = max(height, min(min_size, area_height))

    if constrain:
        width = min(width, area_width)
        height = min(height, area_height)
        left = max(0, min(left, area_width - width))
        top = max(0, min(top, area_height - height))

    return width, height, top, left


def fits_within(rect, area) -> bool:
    """True if the rect lies fully inside [0, area.width] x [0, area.height]."""
    return (
        rect.left >= 0
        and rect.top >= 0
        and rect.left + rect.width <= area.width
        and rect.top + rect.height <= area.height
    )


def canvas_dimensions(
    area,
    max_size: int = CANVAS_MAX_SIZE,
    min_size: int = CANVAS_MIN_SIZE,
) -> CanvasSize:
    """Nominal on-screen canvas for a print area.

    The longer side gets `max_size`; the shorter side is raised to at least
    `min_size` for usability, which may push the longer side past
    `max_size` for very elongated areas.
    """
    _require_positive("area.width", area.width)
    _require_positive("area.height", area.height)

    aspect_ratio = area.width / area.height
    if aspect_ratio > 1:
        width = max_size
        height = width / aspect_ratio
    else:
        height = max_size
        width = height * aspect_ratio

    if width < min_size:
        width = min_size
        height = width / aspect_ratio
    if height < min_size:
        height = min_size
        width = height * aspect_ratio

    if aspect_ratio > 1:
        orientation = "landscape"
    elif aspect_ratio < 1:
        orientation = "portrait"
    else:
        orientation = "square"

    return CanvasSize(
        width=round_half_up(width),
        height=round_half_up(height),
        aspect_ratio=aspect_ratio,
        orientation=orientation,
    )
