from typing import List, Optional
from fastapi import APIRouter, Query
from print_areas import PrintFileCatalog, load_catalog, placements_for_variant
from geometry import canvas_dimensions
from deps import printful, catalog_cache

router = APIRouter(tags=["print-areas"])


async def get_catalog(product_id: int, refresh: bool = False) -> PrintFileCatalog:
    """Cached printfile catalog for a product. Failed lookups are not cached."""
    if not refresh and product_id in catalog_cache:
        return catalog_cache[product_id]
    catalog = await load_catalog(printful, product_id)
    if not catalog.is_empty:
        catalog_cache[product_id] = catalog
    return catalog


@router.get("/products/{product_id}/print-areas")
async def list_print_areas(
    product_id: int,
    variant_id: Optional[List[int]] = Query(default=None),
    refresh: bool = False,
):
    """Placements and print areas available for the selected variants.

    An unavailable catalog is not an error: the list is simply empty and
    placement selection stays disabled.
    """
    catalog = await get_catalog(product_id, refresh=refresh)
    variant_ids = variant_id or sorted(catalog.variant_printfiles)

    placements = {}
    for vid in variant_ids:
        for key, area in placements_for_variant(vid, catalog).items():
            if key in placements:
                placements[key]["variant_ids"].append(vid)
                continue
            canvas = canvas_dimensions(area)
            placements[key] = {
                **area.to_dict(),
                "label": catalog.placement_label(key),
                "canvas": {"width": canvas.width, "height": canvas.height, "orientation": canvas.orientation},
                "variant_ids": [vid],
            }

    return {
        "product_id": product_id,
        "available": bool(placements),
        "placements": list(placements.values()),
    }
