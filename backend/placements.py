"""Design placements: print areas, placement rects and the placement store.

The store is the only mutable state of the engine. Rects are frozen; every
change goes through PlacementStore.upsert/update/remove, which re-applies
the rect invariants (positive size, size floor, and staying inside the
print area when constrain_to_area is set) before the write is accepted.
"""

import logging
import math
from dataclasses import dataclass, asdict, replace
from typing import Callable, Dict, List, Optional, Tuple

from config import ASSET_LOAD_TIMEOUT, DEFAULT_FIT_FRACTION, MIN_DESIGN_SIZE
from errors import AssetLoadError, DegenerateGeometryError, InvariantViolation
from geometry import Size, anchored_position, clamp_rect, fit_within_area, round_half_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrintArea:
    """Authoritative print area for one placement, as the provider reports it."""
    placement_key: str
    width: int       # pixels at `dpi`
    height: int
    dpi: int
    printfile_id: Optional[int] = None
    fill_mode: str = "fit"
    can_rotate: bool = False

    def __post_init__(self):
        for name in ("width", "height", "dpi"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvariantViolation(
                    f"PrintArea.{name} must be a positive integer, got {value!r}"
                )

    @property
    def ratio(self) -> float:
        return self.width / self.height

    @property
    def width_inches(self) -> float:
        return self.width / self.dpi

    @property
    def height_inches(self) -> float:
        return self.height / self.dpi

    def to_dict(self):
        return {
            "placement_key": self.placement_key,
            "width": self.width,
            "height": self.height,
            "dpi": self.dpi,
            "printfile_id": self.printfile_id,
            "width_inches": round(self.width_inches, 2),
            "height_inches": round(self.height_inches, 2),
        }


@dataclass(frozen=True)
class PlacementRect:
    design_id: str
    placement_key: str
    area_width: int   # snapshot of the PrintArea at creation time
    area_height: int
    width: float
    height: float
    top: float
    left: float
    constrain_to_area: bool = True
    asset_url: str = ""
    filename: str = ""

    @property
    def key(self) -> Tuple[str, str]:
        return (self.design_id, self.placement_key)

    @property
    def ratio(self) -> float:
        return self.width / self.height

    @property
    def area(self) -> Size:
        return Size(width=self.area_width, height=self.area_height)

    @property
    def display_name(self) -> str:
        return self.filename or self.design_id

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class RectPatch:
    """Partial update for a PlacementRect. None means "leave as is"."""
    width: Optional[float] = None
    height: Optional[float] = None
    top: Optional[float] = None
    left: Optional[float] = None
    constrain_to_area: Optional[bool] = None

    def is_empty(self) -> bool:
        return all(v is None for v in asdict(self).values())


def normalize_rect(rect: PlacementRect, min_size: float = MIN_DESIGN_SIZE) -> PlacementRect:
    """Return `rect` with its invariants enforced by clamping."""
    if not (isinstance(rect.area_width, (int, float)) and rect.area_width > 0
            and isinstance(rect.area_height, (int, float)) and rect.area_height > 0):
        raise InvariantViolation(
            f"Design {rect.design_id} has an invalid area snapshot "
            f"{rect.area_width!r}x{rect.area_height!r}"
        )
    try:
        width, height, top, left = clamp_rect(
            rect.width, rect.height, rect.top, rect.left,
            rect.area_width, rect.area_height,
            constrain=rect.constrain_to_area,
            min_size=min_size,
        )
    except DegenerateGeometryError as e:
        raise InvariantViolation(f"Design {rect.design_id}: {e}") from e

    if (width, height, top, left) != (rect.width, rect.height, rect.top, rect.left):
        logger.debug(
            "Clamped %s/%s from %sx%s@(%s,%s) to %sx%s@(%s,%s)",
            rect.placement_key, rect.design_id,
            rect.width, rect.height, rect.left, rect.top,
            width, height, left, top,
        )
    return replace(rect, width=width, height=height, top=top, left=left)


def apply_patch(rect: PlacementRect, patch: RectPatch, min_size: float = MIN_DESIGN_SIZE) -> PlacementRect:
    """Merge a patch into a rect and re-validate the result."""
    changes = {k: v for k, v in asdict(patch).items() if v is not None}
    return normalize_rect(replace(rect, **changes), min_size=min_size)


StoreListener = Callable[[str, PlacementRect], None]


class PlacementStore:
    """In-memory placements keyed by (design_id, placement_key).

    Any number of designs may share a placement key; whether the UI allows
    more than one per placement is a caller decision.
    """

    def __init__(self, min_size: float = MIN_DESIGN_SIZE):
        self.min_size = min_size
        self._rects: Dict[Tuple[str, str], PlacementRect] = {}
        self._listeners: List[StoreListener] = []

    def __len__(self) -> int:
        return len(self._rects)

    def __contains__(self, key) -> bool:
        return key in self._rects

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Call `listener(event, rect)` after every mutation. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str, rect: PlacementRect):
        for listener in list(self._listeners):
            listener(event, rect)

    def upsert(self, rect: PlacementRect) -> PlacementRect:
        stored = normalize_rect(rect, min_size=self.min_size)
        self._rects[stored.key] = stored
        self._emit("upsert", stored)
        return stored

    def update(self, design_id: str, placement_key: str, patch: RectPatch) -> PlacementRect:
        key = (design_id, placement_key)
        current = self._rects.get(key)
        if current is None:
            raise KeyError(f"No design {design_id} on placement {placement_key}")
        if patch.is_empty():
            return current
        stored = apply_patch(current, patch, min_size=self.min_size)
        self._rects[key] = stored
        self._emit("update", stored)
        return stored

    def remove(self, design_id: str, placement_key: str) -> bool:
        rect = self._rects.pop((design_id, placement_key), None)
        if rect is None:
            return False
        self._emit("remove", rect)
        return True

    def get(self, design_id: str, placement_key: str) -> Optional[PlacementRect]:
        return self._rects.get((design_id, placement_key))

    def list_by_placement(self, placement_key: str) -> List[PlacementRect]:
        return [r for r in self._rects.values() if r.placement_key == placement_key]

    def list_all(self) -> List[PlacementRect]:
        return list(self._rects.values())

    def placement_keys(self) -> List[str]:
        seen = []
        for rect in self._rects.values():
            if rect.placement_key not in seen:
                seen.append(rect.placement_key)
        return seen

    def clear(self):
        for rect in list(self._rects.values()):
            self.remove(rect.design_id, rect.placement_key)


def default_rect(
    design_id: str,
    area: PrintArea,
    intrinsic_ratio: float,
    asset_url: str = "",
    filename: str = "",
    max_fraction: float = DEFAULT_FIT_FRACTION,
    min_size: float = MIN_DESIGN_SIZE,
) -> PlacementRect:
    """Rect for a design dropped into `area`: fitted to its ratio and centered."""
    size = fit_within_area(intrinsic_ratio, area, max_fraction=max_fraction, min_size=min_size)
    pos = anchored_position("center", size, area)
    return PlacementRect(
        design_id=design_id,
        placement_key=area.placement_key,
        area_width=area.width,
        area_height=area.height,
        width=size.width,
        height=size.height,
        top=pos.top,
        left=pos.left,
        constrain_to_area=True,
        asset_url=asset_url,
        filename=filename,
    )


async def assign_design(
    store: PlacementStore,
    area: PrintArea,
    design_id: str,
    asset_url: str,
    loader,
    filename: str = "",
    max_fraction: float = DEFAULT_FIT_FRACTION,
    timeout: float = ASSET_LOAD_TIMEOUT,
) -> PlacementRect:
    """Place a design on `area` with a default rect sized from its image.

    If the image cannot be loaded the rect falls back to the print area's
    own ratio; the compliance check will flag it later.
    """
    from aspect_ratio import intrinsic_ratio

    try:
        ratio = await intrinsic_ratio(asset_url, loader, timeout=timeout)
    except AssetLoadError as e:
        logger.warning("Using print area ratio for %s: %s", design_id, e)
        ratio = area.ratio

    rect = default_rect(
        design_id, area, ratio,
        asset_url=asset_url, filename=filename,
        max_fraction=max_fraction, min_size=store.min_size,
    )
    return store.upsert(rect)


def to_order_file(rect: PlacementRect) -> dict:
    """Serialize a finalized rect the way order creation expects it."""
    if not all(math.isfinite(v) for v in (rect.width, rect.height, rect.top, rect.left)):
        raise InvariantViolation(f"Design {rect.design_id} has non-finite geometry")

    area_width = int(rect.area_width)
    area_height = int(rect.area_height)
    width = max(1, round_half_up(rect.width))
    height = max(1, round_half_up(rect.height))
    top = max(0, round_half_up(rect.top))
    left = max(0, round_half_up(rect.left))
    if rect.constrain_to_area:
        # Rounding width and left up together can overshoot the edge by a pixel
        width = min(width, area_width)
        height = min(height, area_height)
        left = min(left, area_width - width)
        top = min(top, area_height - height)

    payload = {
        "type": rect.placement_key,
        "url": rect.asset_url,
        "position": {
            "area_width": area_width,
            "area_height": area_height,
            "width": width,
            "height": height,
            "top": top,
            "left": left,
            "limit_to_print_area": rect.constrain_to_area,
        },
    }
    if rect.filename:
        payload["filename"] = rect.filename
    return payload
