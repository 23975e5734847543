"""Pytest fixtures for placement engine tests."""

import asyncio
import io
from typing import Dict, Tuple

import httpx
import pytest
from PIL import Image

from errors import AssetLoadError
from placements import PlacementRect, PlacementStore, PrintArea


class FakeAssetLoader:
    """Asset loader backed by a dict of url -> (width, height).

    A value that is an exception instance is raised instead; `delay` holds
    per-url sleeps for deadline tests.
    """

    def __init__(self, sizes: Dict[str, object] = None, delay: Dict[str, float] = None):
        self.sizes = dict(sizes or {})
        self.delay = dict(delay or {})
        self.calls = []

    async def load_dimensions(self, asset_ref: str) -> Tuple[int, int]:
        self.calls.append(asset_ref)
        if asset_ref in self.delay:
            await asyncio.sleep(self.delay[asset_ref])
        value = self.sizes.get(asset_ref)
        if value is None:
            raise AssetLoadError(asset_ref, "not found")
        if isinstance(value, BaseException):
            raise value
        return value


def png_bytes(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def front_area() -> PrintArea:
    """The 1800x2400 @150dpi front print area used across scenarios."""
    return PrintArea(placement_key="front", width=1800, height=2400, dpi=150, printfile_id=1)


@pytest.fixture
def store() -> PlacementStore:
    return PlacementStore(min_size=30)


@pytest.fixture
def make_rect(front_area):
    def _make(design_id="d1", width=900, height=900, top=0, left=0,
              placement_key=None, asset_url=None, constrain=True, filename=""):
        return PlacementRect(
            design_id=design_id,
            placement_key=placement_key or front_area.placement_key,
            area_width=front_area.width,
            area_height=front_area.height,
            width=width,
            height=height,
            top=top,
            left=left,
            constrain_to_area=constrain,
            asset_url=asset_url if asset_url is not None else f"https://assets.test/{design_id}.png",
            filename=filename,
        )
    return _make


@pytest.fixture
def printfiles_payload() -> dict:
    """Printful printfiles result for a two-variant t-shirt."""
    return {
        "product_id": 71,
        "available_placements": {
            "front": "Front print",
            "back": "Back print",
            "label_outside": "Outside label",
        },
        "printfiles": [
            {"printfile_id": 1, "width": 1800, "height": 2400, "dpi": 150,
             "fill_mode": "fit", "can_rotate": False},
            {"printfile_id": 2, "width": 1800, "height": 2400, "dpi": 150,
             "fill_mode": "fit", "can_rotate": False},
            {"printfile_id": 3, "width": 600, "height": 600, "dpi": 150,
             "fill_mode": "fit", "can_rotate": False},
        ],
        "variant_printfiles": [
            {"variant_id": 4012, "placements": {"front": 1, "back": 2, "label_outside": 3}},
            {"variant_id": 4013, "placements": {"front": 1}},
        ],
        "option_groups": ["Flat", "Men's"],
        "options": ["Front", "Back"],
    }


@pytest.fixture
def printful_transport(printfiles_payload):
    """MockTransport answering the printfiles endpoint; unknown products get 404."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/mockup-generator/printfiles/71":
            return httpx.Response(200, json={"code": 200, "result": printfiles_payload})
        return httpx.Response(404, json={"code": 404, "error": {"message": "Not found"}})

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport


@pytest.fixture
def fake_loader():
    """Factory for FakeAssetLoader instances."""
    return FakeAssetLoader


@pytest.fixture
def png():
    """Factory for PNG bytes of a given size."""
    return png_bytes
