from typing import List, Optional
from fastapi import APIRouter
from pydantic import BaseModel, Field
from compliance import ALL_PLACEMENTS, describe_issue
from preflight import validate_order_designs
from routes.print_areas import get_catalog
from config import INFORMATIONAL_TOLERANCE_PERCENT
from deps import store, orchestrator, PRINT_TOLERANCE_PERCENT

router = APIRouter(tags=["compliance"])


class ComplianceRequest(BaseModel):
    placement_key: Optional[str] = Field(default=None, description="Limit to one placement; all when omitted")
    tolerance_percent: Optional[float] = Field(default=None, ge=0, le=100)


class ValidateRequest(ComplianceRequest):
    soft: bool = Field(default=False, description="Use the looser warning band instead of the print tolerance")


class PreflightRequest(BaseModel):
    product_id: int
    variant_ids: List[int]


def _scope(request: ComplianceRequest):
    return request.placement_key if request.placement_key else ALL_PLACEMENTS


def _tolerance(request: ComplianceRequest, default: float = PRINT_TOLERANCE_PERCENT) -> float:
    return request.tolerance_percent if request.tolerance_percent is not None else default


@router.post("/compliance/validate")
async def validate_designs(request: ValidateRequest):
    """Check every placed design's aspect ratio against its image."""
    default = INFORMATIONAL_TOLERANCE_PERCENT if request.soft else PRINT_TOLERANCE_PERCENT
    report = await orchestrator.run_batch(_scope(request), tolerance_percent=_tolerance(request, default))

    names = {r.design_id: r.display_name for r in store.list_all()}
    issues = [
        describe_issue(r, names.get(r.design_id))
        for r in report.critical + report.unverified
    ]
    return {**report.to_dict(), "issues": issues}


@router.post("/compliance/auto-fix")
async def auto_fix_designs(request: ComplianceRequest):
    """Resize out-of-tolerance designs to their image's ratio."""
    report = await orchestrator.auto_fix(_scope(request), tolerance_percent=_tolerance(request))
    return report.to_dict()


@router.post("/compliance/preflight")
async def preflight_order(request: PreflightRequest):
    """Validate placed designs against the product's print areas before ordering."""
    catalog = await get_catalog(request.product_id)
    result = validate_order_designs(store.list_all(), catalog, request.variant_ids)
    return result.to_dict()
