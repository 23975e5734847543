"""Tests for the HTTP API."""

import pytest
from httpx import ASGITransport, AsyncClient

import deps
import routes.placements
from errors import DegenerateGeometryError
from main import app

SQUARE = "https://assets.test/square.png"
WIDE = "https://assets.test/wide.png"


@pytest.fixture
def loader(fake_loader):
    return fake_loader({SQUARE: (1000, 1000), WIDE: (2000, 1000)})


@pytest.fixture
async def client(monkeypatch, loader, printful_transport):
    """API client over a clean store, a fake asset loader and a mocked Printful."""
    deps.store.clear()
    deps.catalog_cache.clear()
    monkeypatch.setattr(deps.orchestrator, "loader", loader)
    monkeypatch.setattr(deps.printful, "_transport", printful_transport)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    deps.store.clear()
    deps.catalog_cache.clear()


async def add_design(client, design_id="d1", placement_key="front", asset_url=SQUARE, **extra):
    body = {
        "design_id": design_id,
        "placement_key": placement_key,
        "asset_url": asset_url,
        "product_id": 71,
        "variant_ids": [4012],
        **extra,
    }
    return await client.post("/placements", json=body)


class TestHealth:
    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_health(self, client):
        await add_design(client)
        data = (await client.get("/health")).json()
        assert data["status"] == "healthy"
        assert data["placements"] == 1


class TestPrintAreas:
    @pytest.mark.asyncio
    async def test_lists_placements(self, client):
        response = await client.get("/products/71/print-areas")
        assert response.status_code == 200
        data = response.json()
        assert data["available"]
        by_key = {p["placement_key"]: p for p in data["placements"]}
        assert set(by_key) == {"front", "back", "label_outside"}
        assert by_key["front"]["label"] == "Front print"
        assert by_key["front"]["width_inches"] == 12
        assert by_key["front"]["canvas"] == {"width": 338, "height": 450, "orientation": "portrait"}
        assert by_key["front"]["variant_ids"] == [4012, 4013]

    @pytest.mark.asyncio
    async def test_filter_by_variant(self, client):
        data = (await client.get("/products/71/print-areas", params={"variant_id": 4013})).json()
        assert [p["placement_key"] for p in data["placements"]] == ["front"]

    @pytest.mark.asyncio
    async def test_unavailable_catalog_is_empty_not_an_error(self, client):
        response = await client.get("/products/5/print-areas")
        assert response.status_code == 200
        assert response.json() == {"product_id": 5, "available": False, "placements": []}

    @pytest.mark.asyncio
    async def test_only_successful_lookups_are_cached(self, client, printful_transport):
        await client.get("/products/71/print-areas")
        await client.get("/products/71/print-areas")
        await client.get("/products/5/print-areas")
        await client.get("/products/5/print-areas")
        paths = [r.url.path for r in printful_transport.requests]
        assert paths.count("/mockup-generator/printfiles/71") == 1
        assert paths.count("/mockup-generator/printfiles/5") == 2


class TestPlacements:
    @pytest.mark.asyncio
    async def test_add_from_catalog(self, client):
        response = await add_design(client, filename="cat.png")
        assert response.status_code == 200
        rect = response.json()
        assert (rect["width"], rect["height"]) == (1260, 1260)
        assert (rect["left"], rect["top"]) == (270, 570)
        assert (rect["area_width"], rect["area_height"]) == (1800, 2400)
        assert rect["filename"] == "cat.png"

    @pytest.mark.asyncio
    async def test_add_with_explicit_area(self, client):
        response = await client.post("/placements", json={
            "design_id": "d1", "placement_key": "poster", "asset_url": WIDE,
            "area": {"width": 1000, "height": 1000},
        })
        rect = response.json()
        assert (rect["width"], rect["height"]) == (700, 350)

    @pytest.mark.asyncio
    async def test_area_or_product_required(self, client):
        response = await client.post("/placements", json={
            "design_id": "d1", "placement_key": "front", "asset_url": SQUARE,
        })
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unavailable_placement(self, client):
        response = await add_design(client, placement_key="sleeve_left")
        assert response.status_code == 409
        assert "placement not available for variant" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_replace_existing(self, client):
        await add_design(client, "d1")
        await add_design(client, "d2")
        await add_design(client, "d3", replace_existing=True)
        data = (await client.get("/placements", params={"placement_key": "front"})).json()
        assert [p["design_id"] for p in data["placements"]] == ["d3"]
        assert data["placement_keys"] == ["front"]

    @pytest.mark.asyncio
    async def test_failed_replacement_keeps_existing_designs(self, client, monkeypatch):
        await add_design(client, "d1")

        async def broken_assign(*args, **kwargs):
            raise DegenerateGeometryError("image has zero height")

        monkeypatch.setattr(routes.placements, "assign_design", broken_assign)
        response = await add_design(client, "d2", replace_existing=True)

        assert response.status_code == 400
        data = (await client.get("/placements")).json()
        assert [p["design_id"] for p in data["placements"]] == ["d1"]

    @pytest.mark.asyncio
    async def test_patch_is_clamped(self, client):
        await add_design(client)
        response = await client.patch("/placements/front/d1", json={"left": 5000})
        assert response.status_code == 200
        assert response.json()["left"] == 1800 - 1260

    @pytest.mark.asyncio
    async def test_patch_missing(self, client):
        response = await client.patch("/placements/front/nope", json={"left": 1})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_anchor(self, client):
        await add_design(client)
        response = await client.post("/placements/front/d1/anchor", json={"anchor": "bottom-right"})
        assert (response.json()["top"], response.json()["left"]) == (1140, 540)

        bad = await client.post("/placements/front/d1/anchor", json={"anchor": "middle"})
        assert bad.status_code == 400

    @pytest.mark.asyncio
    async def test_delete(self, client):
        await add_design(client)
        assert (await client.delete("/placements/front/d1")).json() == {"ok": True}
        assert (await client.delete("/placements/front/d1")).status_code == 404

    @pytest.mark.asyncio
    async def test_order_files(self, client):
        await add_design(client)
        files = (await client.get("/placements/order-files")).json()["files"]
        assert files[0]["position"] == {
            "area_width": 1800, "area_height": 2400,
            "width": 1260, "height": 1260, "top": 570, "left": 270,
            "limit_to_print_area": True,
        }


class TestCompliance:
    @pytest.mark.asyncio
    async def test_validate_reports_each_design(self, client):
        await add_design(client, "ok")
        await add_design(client, "off")
        await client.patch("/placements/front/off", json={"width": 900, "height": 700})

        data = (await client.post("/compliance/validate", json={})).json()

        assert data["total"] == 2
        assert data["critical_ids"] == ["off"]
        assert not data["passed"]
        assert data["issues"] == [
            "off: aspect ratio off by 22.22% (limit 0.5%), suggested size 794x794px"
        ]

    @pytest.mark.asyncio
    async def test_soft_check_uses_warning_band(self, client):
        await add_design(client, "close")
        # 1% off: rejected for print, fine for the soft check
        await client.patch("/placements/front/close", json={"width": 1260, "height": 1247.5})

        strict = (await client.post("/compliance/validate", json={})).json()
        soft = (await client.post("/compliance/validate", json={"soft": True})).json()

        assert strict["critical_ids"] == ["close"]
        assert soft["critical_ids"] == []
        assert soft["informational_ids"] == ["close"]

    @pytest.mark.asyncio
    async def test_auto_fix(self, client):
        await add_design(client, "ok")
        await add_design(client, "off")
        await client.patch("/placements/front/off", json={"width": 900, "height": 700})

        first = (await client.post("/compliance/auto-fix", json={"placement_key": "front"})).json()
        second = (await client.post("/compliance/auto-fix", json={"placement_key": "front"})).json()

        assert (first["fixed_count"], first["skipped_count"]) == (1, 1)
        assert second["fixed_count"] == 0

    @pytest.mark.asyncio
    async def test_preflight(self, client):
        await add_design(client)
        data = (await client.post("/compliance/preflight", json={
            "product_id": 71, "variant_ids": [4012],
        })).json()
        assert data["ok"]
        assert data["files"][0]["type"] == "front"

    @pytest.mark.asyncio
    async def test_preflight_without_catalog(self, client):
        await add_design(client)
        data = (await client.post("/compliance/preflight", json={
            "product_id": 5, "variant_ids": [4012],
        })).json()
        assert data == {"ok": False, "errors": ["Print files data not available"], "warnings": [], "files": []}
