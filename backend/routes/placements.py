from typing import List, Optional
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field
from errors import DegenerateGeometryError, InvariantViolation
from geometry import anchored_position
from placements import PrintArea, RectPatch, assign_design, to_order_file
from print_areas import resolve_for_variants
from routes.print_areas import get_catalog
from deps import store, orchestrator

router = APIRouter(tags=["placements"])


class AreaSpec(BaseModel):
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    dpi: int = Field(default=150, gt=0)


class AssignDesignRequest(BaseModel):
    design_id: str = Field(..., min_length=1)
    placement_key: str = Field(..., min_length=1)
    asset_url: str = Field(..., min_length=1)
    filename: str = ""
    product_id: Optional[int] = None
    variant_ids: List[int] = []
    area: Optional[AreaSpec] = Field(default=None, description="Explicit print area instead of a catalog lookup")
    max_fraction: float = Field(default=0.7, gt=0, le=1)
    replace_existing: bool = Field(default=False, description="Remove other designs on the placement first")


class PatchRequest(BaseModel):
    width: Optional[float] = None
    height: Optional[float] = None
    top: Optional[float] = None
    left: Optional[float] = None
    constrain_to_area: Optional[bool] = None


class AnchorRequest(BaseModel):
    anchor: str


async def _area_for(request: AssignDesignRequest) -> PrintArea:
    if request.area is not None:
        return PrintArea(
            placement_key=request.placement_key,
            width=request.area.width,
            height=request.area.height,
            dpi=request.area.dpi,
        )
    if request.product_id is None:
        raise HTTPException(status_code=400, detail="Either area or product_id is required")

    catalog = await get_catalog(request.product_id)
    area = resolve_for_variants(request.variant_ids, request.placement_key, catalog)
    if not area:
        raise HTTPException(
            status_code=409,
            detail=f"Placement '{request.placement_key}' is not available: {area.reason}",
        )
    return area


@router.get("/placements")
async def list_placements(placement_key: Optional[str] = Query(default=None)):
    rects = store.list_by_placement(placement_key) if placement_key else store.list_all()
    return {
        "placements": [r.to_dict() for r in rects],
        "placement_keys": store.placement_keys(),
    }


@router.post("/placements")
async def add_design(request: AssignDesignRequest):
    """Place a design on a print area with a default, ratio-aware rect."""
    area = await _area_for(request)

    try:
        rect = await assign_design(
            store, area, request.design_id, request.asset_url, orchestrator.loader,
            filename=request.filename,
            max_fraction=request.max_fraction,
            timeout=orchestrator.timeout,
        )
    except (InvariantViolation, DegenerateGeometryError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    if request.replace_existing:
        for other in store.list_by_placement(area.placement_key):
            if other.design_id != request.design_id:
                store.remove(other.design_id, other.placement_key)
    return rect.to_dict()


@router.patch("/placements/{placement_key}/{design_id}")
async def update_design(placement_key: str, design_id: str, request: PatchRequest):
    patch = RectPatch(**request.model_dump())
    try:
        rect = store.update(design_id, placement_key, patch)
    except KeyError:
        raise HTTPException(status_code=404, detail="Placement not found")
    except InvariantViolation as e:
        raise HTTPException(status_code=400, detail=str(e))
    return rect.to_dict()


@router.post("/placements/{placement_key}/{design_id}/anchor")
async def anchor_design(placement_key: str, design_id: str, request: AnchorRequest):
    """Quick-position a design against an edge, corner or the center."""
    rect = store.get(design_id, placement_key)
    if rect is None:
        raise HTTPException(status_code=404, detail="Placement not found")
    try:
        pos = anchored_position(request.anchor, rect, rect.area)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    rect = store.update(design_id, placement_key, RectPatch(top=pos.top, left=pos.left))
    return rect.to_dict()


@router.delete("/placements/{placement_key}/{design_id}")
async def remove_design(placement_key: str, design_id: str):
    if not store.remove(design_id, placement_key):
        raise HTTPException(status_code=404, detail="Placement not found")
    return {"ok": True}


@router.get("/placements/order-files")
async def order_files():
    """Placed designs in the shape order creation expects."""
    try:
        return {"files": [to_order_file(r) for r in store.list_all()]}
    except InvariantViolation as e:
        raise HTTPException(status_code=400, detail=str(e))
