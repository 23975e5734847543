"""Error types raised by the placement and print-compliance engine."""

from typing import Optional


class PlacementError(Exception):
    """Base class for placement engine errors."""


class AssetLoadError(PlacementError):
    """A design asset could not be fetched or decoded.

    Recovered per design: the compliance batch records it as an
    unverified result instead of failing.
    """

    def __init__(self, asset_ref: str, reason: str):
        self.asset_ref = asset_ref
        self.reason = reason
        super().__init__(f"Could not load asset {asset_ref}: {reason}")


class CatalogLookupError(PlacementError):
    """The fulfillment catalog has no usable printfile data."""

    def __init__(self, message: str, product_id: Optional[int] = None):
        self.product_id = product_id
        super().__init__(message)


class InvariantViolation(PlacementError):
    """A print area or placement rect cannot be made valid by clamping."""


class DegenerateGeometryError(PlacementError, ValueError):
    """Zero-area or non-finite input to a geometry operation."""
