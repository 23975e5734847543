"""Aspect-ratio validation of placed designs against their source images.

Printful rejects a print file when the placed rectangle's ratio differs
from the image's own ratio by more than 0.5%. This module loads an asset to
learn its intrinsic size, compares ratios and proposes a corrected
rectangle of the same footprint.
"""

import asyncio
import io
import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

from config import ASSET_LOAD_TIMEOUT, MEASURABLE_DIFFERENCE_PERCENT, STRICT_TOLERANCE_PERCENT
from errors import AssetLoadError, DegenerateGeometryError
from geometry import Size

logger = logging.getLogger(__name__)

# Float slack for the tolerance comparison, so a deviation of exactly the
# tolerance is not rejected by representation error
TOLERANCE_EPSILON = 1e-9


class AssetLoader(Protocol):
    async def load_dimensions(self, asset_ref: str) -> Tuple[int, int]:
        ...


def decode_dimensions(asset_ref: str, data: bytes) -> Tuple[int, int]:
    """Return (width, height) of encoded image bytes."""
    if not data:
        raise AssetLoadError(asset_ref, "empty response")
    try:
        img = Image.open(io.BytesIO(data))
        width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise AssetLoadError(asset_ref, f"unsupported or corrupt image ({e})") from e
    if width <= 0 or height <= 0:
        raise AssetLoadError(asset_ref, f"image reports {width}x{height}")
    return width, height


class HttpAssetLoader:
    """Loads intrinsic image sizes from the asset store over HTTP.

    Sizes are cached per URL since an uploaded asset never changes.
    """

    def __init__(
        self,
        timeout: float = ASSET_LOAD_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache_size: int = 256,
    ):
        self.timeout = timeout
        self._transport = transport
        self._cache: "OrderedDict[str, Tuple[int, int]]" = OrderedDict()
        self._cache_size = cache_size

    async def load_dimensions(self, asset_ref: str) -> Tuple[int, int]:
        if not asset_ref:
            raise AssetLoadError(asset_ref, "missing asset URL")

        cached = self._cache.get(asset_ref)
        if cached:
            self._cache.move_to_end(asset_ref)
            return cached

        try:
            async with httpx.AsyncClient(transport=self._transport, follow_redirects=True) as client:
                response = await client.get(asset_ref, timeout=self.timeout)
                response.raise_for_status()
                data = response.content
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise AssetLoadError(asset_ref, str(e) or e.__class__.__name__) from e

        dims = decode_dimensions(asset_ref, data)
        self._cache[asset_ref] = dims
        if len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)
        return dims


@dataclass
class ValidationResult:
    design_id: Optional[str]
    placement_key: Optional[str]
    actual_ratio: Optional[float]
    declared_ratio: float
    percent_difference: Optional[float]
    is_valid: Optional[bool]
    corrected_rect: Optional[Size] = None
    tolerance_percent: float = STRICT_TOLERANCE_PERCENT
    error: Optional[str] = None

    @classmethod
    def failed(cls, design_id, placement_key, declared_ratio: float, error: str,
               tolerance_percent: float = STRICT_TOLERANCE_PERCENT) -> "ValidationResult":
        """Result for a design whose asset could not be checked."""
        return cls(
            design_id=design_id,
            placement_key=placement_key,
            actual_ratio=None,
            declared_ratio=declared_ratio,
            percent_difference=None,
            is_valid=None,
            tolerance_percent=tolerance_percent,
            error=error,
        )

    @property
    def unverified(self) -> bool:
        return self.error is not None

    @property
    def has_measurable_difference(self) -> bool:
        return (
            self.percent_difference is not None
            and self.percent_difference > MEASURABLE_DIFFERENCE_PERCENT
        )

    def to_dict(self):
        return {
            "design_id": self.design_id,
            "placement_key": self.placement_key,
            "actual_ratio": self.actual_ratio,
            "declared_ratio": self.declared_ratio,
            "percent_difference": (
                round(self.percent_difference, 4)
                if self.percent_difference is not None else None
            ),
            "is_valid": self.is_valid,
            "corrected_rect": (
                {"width": self.corrected_rect.width, "height": self.corrected_rect.height}
                if self.corrected_rect else None
            ),
            "tolerance_percent": self.tolerance_percent,
            "error": self.error,
        }


def percent_difference(actual_ratio: float, declared_ratio: float) -> float:
    return abs(actual_ratio - declared_ratio) / declared_ratio * 100


def corrected_size(
    declared_width: float,
    declared_height: float,
    actual_ratio: float,
    bounds=None,
) -> Size:
    """Same-area rect with the image's ratio.

    Keeping the area rather than one side avoids the design visibly
    shrinking or growing. If `bounds` is given and the result does not fit,
    it is scaled down uniformly until it does.
    """
    area = declared_width * declared_height
    height = math.sqrt(area / actual_ratio)
    width = height * actual_ratio

    if bounds is not None:
        shrink = min(1.0, bounds.width / width, bounds.height / height)
        if shrink < 1.0:
            width *= shrink
            height *= shrink
    return Size(width=width, height=height)


async def load_with_deadline(asset_ref: str, loader: AssetLoader, timeout: float = ASSET_LOAD_TIMEOUT) -> Tuple[int, int]:
    """Load an asset's size, turning a slow load into an AssetLoadError."""
    try:
        width, height = await asyncio.wait_for(loader.load_dimensions(asset_ref), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise AssetLoadError(asset_ref, f"timed out after {timeout:g}s") from e
    if not width or not height or width <= 0 or height <= 0:
        raise AssetLoadError(asset_ref, f"image reports {width}x{height}")
    return width, height


async def intrinsic_ratio(asset_ref: str, loader: AssetLoader, timeout: float = ASSET_LOAD_TIMEOUT) -> float:
    width, height = await load_with_deadline(asset_ref, loader, timeout=timeout)
    return width / height


async def validate(
    asset_ref: str,
    declared_width: float,
    declared_height: float,
    tolerance_percent: float = STRICT_TOLERANCE_PERCENT,
    *,
    loader: AssetLoader,
    timeout: float = ASSET_LOAD_TIMEOUT,
    bounds=None,
    design_id: Optional[str] = None,
    placement_key: Optional[str] = None,
) -> ValidationResult:
    """Compare a declared rect against the image it displays.

    Raises AssetLoadError when the image cannot be loaded in time and
    DegenerateGeometryError for a non-positive declared size.
    """
    for name, value in (("declared_width", declared_width), ("declared_height", declared_height)):
        if not math.isfinite(value) or value <= 0:
            raise DegenerateGeometryError(f"{name} must be positive, got {value!r}")
    if tolerance_percent < 0:
        raise ValueError(f"tolerance_percent must not be negative, got {tolerance_percent}")

    natural_width, natural_height = await load_with_deadline(asset_ref, loader, timeout=timeout)

    actual = natural_width / natural_height
    declared = declared_width / declared_height
    diff = percent_difference(actual, declared)
    is_valid = diff <= tolerance_percent + TOLERANCE_EPSILON

    corrected = None
    if not is_valid:
        corrected = corrected_size(declared_width, declared_height, actual, bounds=bounds)
        logger.debug(
            "%s off by %.2f%% (%sx%s image, %.0fx%.0f declared), suggest %.1fx%.1f",
            design_id or asset_ref, diff, natural_width, natural_height,
            declared_width, declared_height, corrected.width, corrected.height,
        )

    return ValidationResult(
        design_id=design_id,
        placement_key=placement_key,
        actual_ratio=actual,
        declared_ratio=declared,
        percent_difference=diff,
        is_valid=is_valid,
        corrected_rect=corrected,
        tolerance_percent=tolerance_percent,
    )
