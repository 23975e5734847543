"""Print-area lookup against the fulfillment catalog.

The catalog maps variant → placement → printfile id → pixel size/DPI.
Lookups never raise: a missing mapping is a NotFound value, meaning "no
design can be placed here yet", which the UI shows by disabling the
placement.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

from errors import CatalogLookupError, InvariantViolation
from placements import PrintArea

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotFound:
    variant_id: Optional[int]
    placement_key: str
    reason: str

    def __bool__(self):
        return False

    def to_dict(self):
        return {
            "variant_id": self.variant_id,
            "placement_key": self.placement_key,
            "reason": self.reason,
        }


def _positive_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 and number == value else None


@dataclass
class PrintFileCatalog:
    product_id: Optional[int]
    available_placements: Dict[str, str] = field(default_factory=dict)
    printfiles: Dict[int, dict] = field(default_factory=dict)
    variant_printfiles: Dict[int, Dict[str, int]] = field(default_factory=dict)
    option_groups: List[str] = field(default_factory=list)
    options: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls, product_id: Optional[int] = None) -> "PrintFileCatalog":
        return cls(product_id=product_id)

    @classmethod
    def from_api(cls, payload: dict) -> "PrintFileCatalog":
        """Build a catalog from Printful's printfiles result.

        Malformed entries are skipped (and logged) instead of failing the
        whole catalog.
        """
        if not isinstance(payload, dict):
            return cls.empty()

        product_id = payload.get("product_id")
        placements = payload.get("available_placements") or {}
        if not isinstance(placements, dict):
            placements = {}

        printfiles: Dict[int, dict] = {}
        for pf in payload.get("printfiles") or []:
            if not isinstance(pf, dict):
                continue
            pf_id = _positive_int(pf.get("printfile_id"))
            width = _positive_int(pf.get("width"))
            height = _positive_int(pf.get("height"))
            dpi = _positive_int(pf.get("dpi"))
            if not (pf_id and width and height and dpi):
                logger.warning("Skipping malformed printfile for product %s: %s", product_id, pf)
                continue
            printfiles[pf_id] = {
                "width": width,
                "height": height,
                "dpi": dpi,
                "fill_mode": pf.get("fill_mode") or "fit",
                "can_rotate": bool(pf.get("can_rotate", False)),
            }

        variant_printfiles: Dict[int, Dict[str, int]] = {}
        for vp in payload.get("variant_printfiles") or []:
            if not isinstance(vp, dict):
                continue
            variant_id = _positive_int(vp.get("variant_id"))
            mapping = vp.get("placements")
            if not variant_id or not isinstance(mapping, dict):
                logger.warning("Skipping malformed variant printfile for product %s: %s", product_id, vp)
                continue
            variant_printfiles[variant_id] = {
                str(k): v for k, v in mapping.items() if _positive_int(v)
            }

        return cls(
            product_id=product_id,
            available_placements={str(k): str(v) for k, v in placements.items()},
            printfiles=printfiles,
            variant_printfiles=variant_printfiles,
            option_groups=list(payload.get("option_groups") or []),
            options=list(payload.get("options") or []),
        )

    @property
    def is_empty(self) -> bool:
        return not self.printfiles or not self.variant_printfiles

    def placement_label(self, placement_key: str) -> str:
        return self.available_placements.get(
            placement_key, placement_key.replace("_", " ").title()
        )


def resolve(variant_id: int, placement_key: str, catalog: PrintFileCatalog) -> Union[PrintArea, NotFound]:
    """Print area for one variant and placement, or NotFound."""
    mapping = catalog.variant_printfiles.get(variant_id)
    if mapping is None:
        return NotFound(variant_id, placement_key, "variant has no printfiles")

    printfile_id = mapping.get(placement_key)
    if not printfile_id:
        return NotFound(variant_id, placement_key, "placement not available for variant")

    pf = catalog.printfiles.get(printfile_id)
    if pf is None:
        return NotFound(variant_id, placement_key, f"printfile {printfile_id} missing from catalog")

    try:
        return PrintArea(
            placement_key=placement_key,
            width=pf["width"],
            height=pf["height"],
            dpi=pf["dpi"],
            printfile_id=printfile_id,
            fill_mode=pf.get("fill_mode", "fit"),
            can_rotate=pf.get("can_rotate", False),
        )
    except (InvariantViolation, KeyError) as e:
        return NotFound(variant_id, placement_key, f"printfile {printfile_id} is invalid: {e}")


def resolve_for_variants(
    variant_ids: Iterable[int],
    placement_key: str,
    catalog: PrintFileCatalog,
) -> Union[PrintArea, NotFound]:
    """Print area from the first selected variant that maps the placement."""
    variant_ids = list(variant_ids)
    if not variant_ids:
        return NotFound(None, placement_key, "no variants selected")

    last = None
    for variant_id in variant_ids:
        last = resolve(variant_id, placement_key, catalog)
        if last:
            return last
    return last


def placements_for_variant(variant_id: int, catalog: PrintFileCatalog) -> Dict[str, PrintArea]:
    """All placements with a resolvable print area for a variant."""
    areas: Dict[str, PrintArea] = {}
    for key in catalog.variant_printfiles.get(variant_id, {}):
        area = resolve(variant_id, key, catalog)
        if area:
            areas[key] = area
    return areas


async def load_catalog(client, product_id: int) -> PrintFileCatalog:
    """Fetch a product's printfile catalog; an empty catalog on failure."""
    try:
        payload = await client.get_printfiles(product_id)
    except CatalogLookupError as e:
        logger.warning("No print areas available for product %s: %s", product_id, e)
        return PrintFileCatalog.empty(product_id)

    catalog = PrintFileCatalog.from_api(payload)
    if catalog.product_id is None:
        catalog.product_id = product_id
    return catalog
