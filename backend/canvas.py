"""Canvas renderer and pointer interaction for placing designs.

The surface draws the active print area at a scaled size and turns pointer
gestures into placement-store updates. All scale arithmetic goes through
geometry.py so desktop, mobile and zoomed views agree.

Interaction is a small state machine:

    IDLE --pointer_down on body--> DRAGGING --pointer_up--> IDLE
    IDLE --pointer_down on handle--> RESIZING --pointer_up--> IDLE

Pointer deltas are measured from where the gesture started, not from the
previous move event, so rounding never accumulates over a long drag.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

import config
from geometry import (
    Size,
    anchored_position,
    canvas_dimensions,
    fit_within_area,
    from_render_space,
    render_scale,
    to_render_space,
)
from placements import PlacementRect, PlacementStore, PrintArea, RectPatch

logger = logging.getLogger(__name__)


class InteractionMode(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    RESIZING = "resizing"


@dataclass
class Selection:
    """Which placement tab is open and which design is selected on it."""
    active_placement: Optional[str] = None
    selected_design_id: Optional[str] = None


@dataclass(frozen=True)
class CanvasSettings:
    max_size: int = config.CANVAS_MAX_SIZE
    min_size: int = config.CANVAS_MIN_SIZE
    mobile_breakpoint: int = config.MOBILE_BREAKPOINT
    mobile_padding: int = config.MOBILE_CANVAS_PADDING
    rotate_hint_factor: float = config.ROTATE_HINT_FACTOR
    min_usable_scale: float = config.MIN_USABLE_SCALE
    handle_size: float = config.HANDLE_SIZE
    zoom_min: int = config.ZOOM_MIN
    zoom_max: int = config.ZOOM_MAX
    zoom_step: int = config.ZOOM_STEP
    scale_cap: float = 1.0


@dataclass(frozen=True)
class RenderedDesign:
    design_id: str
    x: float
    y: float
    width: float
    height: float
    selected: bool = False

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height


@dataclass(frozen=True)
class RenderFrame:
    placement_key: str
    width: float
    height: float
    scale: float
    zoom: int
    rotate_hint: bool = False
    designs: Tuple[RenderedDesign, ...] = ()

    def to_dict(self):
        return {
            "placement_key": self.placement_key,
            "width": self.width,
            "height": self.height,
            "scale": self.scale,
            "zoom": self.zoom,
            "rotate_hint": self.rotate_hint,
            "designs": [asdict(d) for d in self.designs],
        }


@dataclass
class _Gesture:
    design_id: str
    origin_x: float
    origin_y: float
    scale: float
    start: PlacementRect
    handle: Optional[str] = None
    last: Optional[PlacementRect] = None


@dataclass
class Viewport:
    width: float
    height: Optional[float] = None


class CanvasSurface:
    """Renders one print area and applies pointer gestures to the store."""

    def __init__(
        self,
        store: PlacementStore,
        selection: Selection,
        area: PrintArea,
        settings: Optional[CanvasSettings] = None,
    ):
        self.store = store
        self.selection = selection
        self.settings = settings or CanvasSettings()
        self.area = area
        self.selection.active_placement = area.placement_key
        self.zoom = 100
        self.viewport: Optional[Viewport] = None
        self.mode = InteractionMode.IDLE
        self._gesture: Optional[_Gesture] = None
        self.render_count = 0
        self._frame = self.render()
        self._unsubscribe = store.subscribe(self._on_store_change)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    @property
    def frame(self) -> RenderFrame:
        return self._frame

    @property
    def is_mobile(self) -> bool:
        return (
            self.viewport is not None
            and self.viewport.width < self.settings.mobile_breakpoint
        )

    def render_size(self) -> Size:
        """Size of the drawn print area, including zoom."""
        if self.is_mobile:
            width = max(self.viewport.width - self.settings.mobile_padding, 1)
            height = width / self.area.ratio
        else:
            base = canvas_dimensions(self.area, self.settings.max_size, self.settings.min_size)
            width, height = base.width, base.height
        factor = self.zoom / 100
        return Size(width=width * factor, height=height * factor)

    @property
    def scale(self) -> float:
        return render_scale(self.area, self.render_size(), self.settings.scale_cap)

    def needs_rotate_hint(self) -> bool:
        """True when the area is too wide to be usable in the current viewport.

        Only landscape areas are compared against the viewport shape; a
        portrait area always fills the phone's width.
        """
        if not self.is_mobile:
            return False
        if self.viewport.height and self.area.ratio > 1:
            viewport_ratio = self.viewport.width / self.viewport.height
            if self.area.ratio > viewport_ratio * self.settings.rotate_hint_factor:
                return True
        return self.scale < self.settings.min_usable_scale

    def render(self) -> RenderFrame:
        size = self.render_size()
        scale = render_scale(self.area, size, self.settings.scale_cap)
        self.render_count += 1

        if self.needs_rotate_hint():
            return RenderFrame(
                placement_key=self.area.placement_key,
                width=size.width, height=size.height,
                scale=scale, zoom=self.zoom, rotate_hint=True,
            )

        designs = []
        for rect in self.store.list_by_placement(self.area.placement_key):
            r = to_render_space(rect, self.area, size, self.settings.scale_cap)
            designs.append(RenderedDesign(
                design_id=rect.design_id,
                x=r.x, y=r.y, width=r.width, height=r.height,
                selected=rect.design_id == self.selection.selected_design_id,
            ))
        return RenderFrame(
            placement_key=self.area.placement_key,
            width=size.width, height=size.height,
            scale=scale, zoom=self.zoom,
            designs=tuple(designs),
        )

    def refresh(self) -> RenderFrame:
        self._frame = self.render()
        return self._frame

    def _on_store_change(self, event: str, rect: PlacementRect):
        if rect.placement_key != self.area.placement_key:
            return
        if event == "remove":
            if rect.design_id == self.selection.selected_design_id:
                self.selection.selected_design_id = None
            if self._gesture and self._gesture.design_id == rect.design_id:
                self._end_gesture()
        self.refresh()

    def close(self):
        """Stop listening to the store."""
        self._unsubscribe()

    # ------------------------------------------------------------------
    # View state
    # ------------------------------------------------------------------

    def set_area(self, area: PrintArea) -> RenderFrame:
        """Switch to another placement's print area."""
        if self.mode != InteractionMode.IDLE:
            self.cancel()
        self.area = area
        self.selection.active_placement = area.placement_key
        selected = self.selection.selected_design_id
        if selected and self.store.get(selected, area.placement_key) is None:
            self.selection.selected_design_id = None
        return self.refresh()

    def set_viewport(self, width: float, height: Optional[float] = None) -> RenderFrame:
        self.viewport = Viewport(width=width, height=height)
        return self.refresh()

    def set_zoom(self, percent: int) -> RenderFrame:
        self.zoom = max(self.settings.zoom_min, min(self.settings.zoom_max, int(percent)))
        return self.refresh()

    def zoom_in(self) -> RenderFrame:
        return self.set_zoom(self.zoom + self.settings.zoom_step)

    def zoom_out(self) -> RenderFrame:
        return self.set_zoom(self.zoom - self.settings.zoom_step)

    def select(self, design_id: Optional[str]) -> RenderFrame:
        if design_id is not None and self.store.get(design_id, self.area.placement_key) is None:
            raise KeyError(f"No design {design_id} on placement {self.area.placement_key}")
        self.selection.selected_design_id = design_id
        return self.refresh()

    @property
    def selected_rect(self) -> Optional[PlacementRect]:
        if self.selection.selected_design_id is None:
            return None
        return self.store.get(self.selection.selected_design_id, self.area.placement_key)

    # ------------------------------------------------------------------
    # Pointer interaction
    # ------------------------------------------------------------------

    def _handle_at(self, design: RenderedDesign, x: float, y: float) -> Optional[str]:
        hs = self.settings.handle_size
        if not (design.x - hs <= x <= design.x + design.width + hs
                and design.y - hs <= y <= design.y + design.height + hs):
            return None

        vertical = ""
        if abs(y - design.y) <= hs:
            vertical = "top"
        elif abs(y - (design.y + design.height)) <= hs:
            vertical = "bottom"

        horizontal = ""
        if abs(x - design.x) <= hs:
            horizontal = "left"
        elif abs(x - (design.x + design.width)) <= hs:
            horizontal = "right"

        if vertical and horizontal:
            return f"{vertical}-{horizontal}"
        return vertical or horizontal or None

    def hit_test(self, x: float, y: float) -> Tuple[Optional[str], Optional[str]]:
        """Design under the pointer and the resize handle hit, if any.

        Handles only exist on the selected design. Later designs are drawn
        on top, so they win.
        """
        designs: List[RenderedDesign] = list(self._frame.designs)
        for design in reversed(designs):
            if design.selected:
                handle = self._handle_at(design, x, y)
                if handle:
                    return design.design_id, handle
        for design in reversed(designs):
            if design.contains(x, y):
                return design.design_id, None
        return None, None

    def pointer_down(self, x: float, y: float) -> InteractionMode:
        if self.mode != InteractionMode.IDLE or self._frame.rotate_hint:
            return self.mode

        design_id, handle = self.hit_test(x, y)
        if design_id is None:
            if self.selection.selected_design_id is not None:
                self.selection.selected_design_id = None
                self.refresh()
            return self.mode

        rect = self.store.get(design_id, self.area.placement_key)
        if rect is None:
            return self.mode

        if self.selection.selected_design_id != design_id:
            self.selection.selected_design_id = design_id
            self.refresh()

        self._gesture = _Gesture(
            design_id=design_id,
            origin_x=x,
            origin_y=y,
            scale=self._frame.scale,
            start=rect,
            handle=handle,
        )
        self.mode = InteractionMode.RESIZING if handle else InteractionMode.DRAGGING
        return self.mode

    def pointer_move(self, x: float, y: float) -> Optional[PlacementRect]:
        gesture = self._gesture
        if self.mode == InteractionMode.IDLE or gesture is None:
            return None

        dx = from_render_space(x - gesture.origin_x, gesture.scale)
        dy = from_render_space(y - gesture.origin_y, gesture.scale)

        if self.mode == InteractionMode.DRAGGING:
            patch = RectPatch(left=gesture.start.left + dx, top=gesture.start.top + dy)
        else:
            patch = self._resize_patch(gesture.start, gesture.handle, dx, dy)

        gesture.last = self.store.update(gesture.design_id, self.area.placement_key, patch)
        return gesture.last

    def _resize_patch(self, start: PlacementRect, handle: str, dx: int, dy: int) -> RectPatch:
        """Move the grabbed edges; the opposite edges stay put."""
        parts = handle.split("-")
        constrain = start.constrain_to_area
        floor_w = min(self.store.min_size, start.area_width)
        floor_h = min(self.store.min_size, start.area_height)

        left, top = start.left, start.top
        right, bottom = start.left + start.width, start.top + start.height

        if "left" in parts:
            left = min(left + dx, right - floor_w)
            if constrain:
                left = max(left, 0)
        if "right" in parts:
            right = max(right + dx, left + floor_w)
            if constrain:
                right = min(right, start.area_width)
        if "top" in parts:
            top = min(top + dy, bottom - floor_h)
            if constrain:
                top = max(top, 0)
        if "bottom" in parts:
            bottom = max(bottom + dy, top + floor_h)
            if constrain:
                bottom = min(bottom, start.area_height)

        return RectPatch(width=right - left, height=bottom - top, top=top, left=left)

    def pointer_up(self) -> Optional[PlacementRect]:
        if self._gesture is None:
            self.mode = InteractionMode.IDLE
            return None
        final = self.store.get(self._gesture.design_id, self.area.placement_key)
        if final is not None and self._gesture.last is not None:
            logger.debug(
                "%s %s on %s: %.0fx%.0f@(%.0f,%.0f)",
                self.mode.value, final.design_id, final.placement_key,
                final.width, final.height, final.left, final.top,
            )
        self._end_gesture()
        return final

    def cancel(self) -> Optional[PlacementRect]:
        """Abort the gesture and put the design back where it started."""
        gesture = self._gesture
        if gesture is None:
            self.mode = InteractionMode.IDLE
            return None
        self._end_gesture()
        start = gesture.start
        if self.store.get(start.design_id, start.placement_key) is None:
            return None
        return self.store.update(start.design_id, start.placement_key, RectPatch(
            width=start.width, height=start.height, top=start.top, left=start.left,
        ))

    def _end_gesture(self):
        self._gesture = None
        self.mode = InteractionMode.IDLE

    # ------------------------------------------------------------------
    # Position panel
    # ------------------------------------------------------------------

    def _require_selected(self) -> PlacementRect:
        rect = self.selected_rect
        if rect is None:
            raise LookupError("No design selected")
        return rect

    def apply_anchor(self, anchor: str) -> PlacementRect:
        rect = self._require_selected()
        pos = anchored_position(anchor, rect, self.area)
        return self.store.update(rect.design_id, rect.placement_key, RectPatch(top=pos.top, left=pos.left))

    def quick_size(self, fraction: Union[float, str]) -> PlacementRect:
        """Resize the selected design to `fraction` of the area, keeping its ratio and center.

        `fraction` may also be a preset label from config.QUICK_SIZES ("50%").
        """
        rect = self._require_selected()
        if isinstance(fraction, str):
            if fraction not in config.QUICK_SIZES:
                raise ValueError(f"Unknown size preset '{fraction}'. Valid presets: {', '.join(config.QUICK_SIZES)}")
            fraction = config.QUICK_SIZES[fraction]
        size = fit_within_area(rect.ratio, self.area, max_fraction=fraction, min_size=self.store.min_size)
        center_x = rect.left + rect.width / 2
        center_y = rect.top + rect.height / 2
        return self.store.update(rect.design_id, rect.placement_key, RectPatch(
            width=size.width,
            height=size.height,
            left=center_x - size.width / 2,
            top=center_y - size.height / 2,
        ))

    def set_dimension(self, dimension: str, value: float) -> PlacementRect:
        """Set width or height; the other side follows the current ratio."""
        rect = self._require_selected()
        if value <= 0:
            raise ValueError(f"{dimension} must be positive, got {value}")
        ratio = rect.ratio
        if dimension == "width":
            patch = RectPatch(width=value, height=value / ratio)
        elif dimension == "height":
            patch = RectPatch(width=value * ratio, height=value)
        else:
            raise ValueError(f"Unknown dimension '{dimension}', expected 'width' or 'height'")
        return self.store.update(rect.design_id, rect.placement_key, patch)

    def set_position(self, left: Optional[float] = None, top: Optional[float] = None) -> PlacementRect:
        rect = self._require_selected()
        return self.store.update(rect.design_id, rect.placement_key, RectPatch(left=left, top=top))
