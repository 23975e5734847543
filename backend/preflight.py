"""
Print preflight for placed designs.
Checks a placement rect against the print area it will be submitted to
and builds the order-file payload for the designs that pass.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from config import LARGE_DESIGN_SHARE, SMALL_DESIGN_SHARE
from errors import InvariantViolation
from placements import PlacementRect, PrintArea, to_order_file
from print_areas import PrintFileCatalog, resolve_for_variants

logger = logging.getLogger(__name__)


@dataclass
class PreflightResult:
    ok: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)

    def to_dict(self):
        return {
            "ok": self.ok,
            "errors": self.errors,
            "warnings": self.warnings,
            "suggestions": self.suggestions,
            "metrics": self.metrics,
        }


@dataclass
class OrderValidation:
    ok: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    order_files: List[dict] = field(default_factory=list)

    def to_dict(self):
        return {
            "ok": self.ok,
            "errors": self.errors,
            "warnings": self.warnings,
            "files": self.order_files,
        }


def check_print_bounds(rect: PlacementRect, area: PrintArea) -> PreflightResult:
    """Validate one placed design against its print area.

    Errors would make the provider reject the file; warnings are
    layout advice only.
    """
    errors = []
    warnings = []
    suggestions = []
    metrics = {}

    if not rect.constrain_to_area:
        errors.append("Design must be limited to the print area")

    if rect.area_width != area.width or rect.area_height != area.height:
        errors.append(
            f"Area dimensions mismatch: expected {area.width}x{area.height}, "
            f"got {rect.area_width}x{rect.area_height}"
        )

    if rect.width <= 0 or rect.height <= 0:
        errors.append("Design dimensions must be positive")
    elif rect.width > area.width or rect.height > area.height:
        errors.append(
            f"Design size {rect.width:.0f}x{rect.height:.0f} exceeds print area "
            f"{area.width}x{area.height}"
        )

    if rect.left < 0 or rect.top < 0:
        errors.append("Design position cannot be negative")
    if rect.left + rect.width > area.width or rect.top + rect.height > area.height:
        errors.append("Design extends outside print area bounds")

    share = (rect.width * rect.height) / (area.width * area.height)
    metrics["area_share"] = round(share, 4)
    metrics["width_inches"] = round(rect.width / area.dpi, 2)
    metrics["height_inches"] = round(rect.height / area.dpi, 2)

    if share < SMALL_DESIGN_SHARE:
        warnings.append("Design is very small relative to print area")
        suggestions.append("Increase design size to at least 30% of print area for better visibility")
    elif share > LARGE_DESIGN_SHARE:
        warnings.append("Design is very large, ensure adequate margins")
        suggestions.append("Consider reducing size to 60-70% of print area")

    return PreflightResult(
        ok=not errors,
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
        metrics=metrics,
    )


def validate_order_designs(
    rects: Iterable[PlacementRect],
    catalog: PrintFileCatalog,
    variant_ids: Iterable[int],
) -> OrderValidation:
    """Preflight every placed design and serialize the ones that pass."""
    rects = list(rects)
    variant_ids = list(variant_ids)

    if catalog is None or catalog.is_empty:
        return OrderValidation(ok=False, errors=["Print files data not available"])
    if not rects:
        return OrderValidation(ok=False, errors=["At least one design must be added to the product"])
    if not variant_ids:
        return OrderValidation(ok=False, errors=["No variants selected for the product"])

    errors: List[str] = []
    warnings: List[str] = []
    files: List[dict] = []

    for rect in rects:
        name = rect.display_name
        if not rect.asset_url:
            errors.append(f"{name}: design has no file URL")
            continue

        area = resolve_for_variants(variant_ids, rect.placement_key, catalog)
        if not area:
            errors.append(f"{name}: no print file for placement '{rect.placement_key}' ({area.reason})")
            continue

        result = check_print_bounds(rect, area)
        warnings.extend(f"{name}: {w}" for w in result.warnings)
        if not result.ok:
            errors.append(f"{name}: {', '.join(result.errors)}")
            continue

        try:
            files.append(to_order_file(rect))
        except InvariantViolation as e:
            errors.append(f"{name}: {e}")

    if not files:
        return OrderValidation(
            ok=False,
            errors=errors or ["No valid designs after validation"],
            warnings=warnings,
        )

    if errors:
        logger.warning("Order preflight: %d of %d designs rejected", len(errors), len(rects))
    return OrderValidation(ok=not errors, errors=errors, warnings=warnings, order_files=files)
