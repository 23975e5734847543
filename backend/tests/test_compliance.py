"""Tests for the compliance orchestrator."""

import logging

import pytest

from aspect_ratio import ValidationResult
from compliance import ComplianceOrchestrator, describe_issue
from geometry import Size, fits_within

SQUARE = "https://assets.test/square.png"
WIDE = "https://assets.test/wide.png"
BROKEN = "https://assets.test/broken.png"
BANNER = "https://assets.test/banner.png"


@pytest.fixture
def loader(fake_loader):
    return fake_loader({
        SQUARE: (1000, 1000),
        WIDE: (201, 100),
        BANNER: (8000, 100),
        BROKEN: RuntimeError("decoder exploded"),
    })


@pytest.fixture
def orchestrator(store, loader):
    return ComplianceOrchestrator(store, loader, timeout=1.0)


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_groups_results(self, store, orchestrator, make_rect):
        store.upsert(make_rect("ok", 900, 900, asset_url=SQUARE))
        store.upsert(make_rect("off", 900, 700, asset_url=SQUARE))
        store.upsert(make_rect("close", 200, 100, asset_url=WIDE))

        report = await orchestrator.run_batch()

        assert len(report.results) == 3
        assert [r.design_id for r in report.critical] == ["off"]
        assert [r.design_id for r in report.informational] == ["close"]
        assert report.unverified == []
        assert not report.passed
        assert report.summary() == {
            "total": 3, "critical": 1, "informational": 1, "unverified": 0, "passed": False,
        }

    @pytest.mark.asyncio
    async def test_one_failed_asset_does_not_sink_the_batch(self, store, orchestrator, make_rect):
        store.upsert(make_rect("ok", 900, 900, asset_url=SQUARE))
        store.upsert(make_rect("missing", 900, 900, asset_url="https://assets.test/404.png"))
        store.upsert(make_rect("off", 900, 700, asset_url=SQUARE))

        report = await orchestrator.run_batch()

        by_id = {r.design_id: r for r in report.results}
        assert set(by_id) == {"ok", "missing", "off"}
        assert by_id["ok"].is_valid is True
        assert by_id["off"].is_valid is False
        assert by_id["missing"].unverified
        assert [r.design_id for r in report.unverified] == ["missing"]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged_and_recorded(self, store, orchestrator, make_rect, caplog):
        store.upsert(make_rect("boom", 900, 900, asset_url=BROKEN))
        store.upsert(make_rect("ok", 900, 900, asset_url=SQUARE))

        with caplog.at_level(logging.ERROR, logger="compliance"):
            report = await orchestrator.run_batch()

        boom = next(r for r in report.results if r.design_id == "boom")
        assert boom.error == "validation failed: decoder exploded"
        assert "Validation crashed for boom" in caplog.text
        assert len(report.results) == 2

    @pytest.mark.asyncio
    async def test_scope(self, store, orchestrator, make_rect, loader):
        store.upsert(make_rect("f", 900, 700, asset_url=SQUARE))
        store.upsert(make_rect("b", 900, 900, placement_key="back", asset_url=SQUARE))

        report = await orchestrator.run_batch("back")

        assert [r.design_id for r in report.results] == ["b"]
        assert report.passed
        assert loader.calls == [SQUARE]

    @pytest.mark.asyncio
    async def test_explicit_placements(self, orchestrator, make_rect):
        rects = [make_rect("x", 900, 700, asset_url=SQUARE)]
        report = await orchestrator.run_batch(placements=rects)
        assert [r.design_id for r in report.critical] == ["x"]

    @pytest.mark.asyncio
    async def test_empty_store(self, orchestrator):
        report = await orchestrator.run_batch()
        assert report.results == []
        assert report.passed


class TestAutoFix:
    @pytest.mark.asyncio
    async def test_fixes_only_invalid_designs(self, store, orchestrator, make_rect):
        store.upsert(make_rect("ok", 900, 900, asset_url=SQUARE))
        store.upsert(make_rect("off", 900, 700, asset_url=SQUARE, filename="cat.png"))

        report = await orchestrator.auto_fix("front")

        assert (report.fixed_count, report.skipped_count, report.failed_count) == (1, 1, 0)
        fixed = store.get("off", "front")
        assert fixed.width == pytest.approx(793.7, abs=0.05)
        assert fixed.height == pytest.approx(793.7, abs=0.05)
        assert store.get("ok", "front").width == 900
        assert report.messages == ["Fixed cat.png: 794x794px (was off by 22.22%)"]

    @pytest.mark.asyncio
    async def test_second_run_fixes_nothing(self, store, orchestrator, make_rect):
        store.upsert(make_rect("a", 900, 700, asset_url=SQUARE))
        store.upsert(make_rect("b", 1200, 300, asset_url=WIDE))

        first = await orchestrator.auto_fix()
        second = await orchestrator.auto_fix()

        assert first.fixed_count == 2
        assert second.fixed_count == 0
        assert second.skipped_count == 2

    @pytest.mark.asyncio
    async def test_recenters_when_correction_overflows(self, store, orchestrator, make_rect, front_area):
        store.upsert(make_rect("strip", 1800, 300, top=2100, left=0, asset_url=SQUARE))

        await orchestrator.auto_fix()

        rect = store.get("strip", "front")
        assert fits_within(rect, front_area)
        assert rect.left == pytest.approx((1800 - rect.width) / 2)
        assert rect.top == pytest.approx((2400 - rect.height) / 2)

    @pytest.mark.asyncio
    async def test_unloadable_assets_are_reported(self, store, orchestrator, make_rect):
        store.upsert(make_rect("missing", 900, 700, asset_url="https://assets.test/404.png"))

        report = await orchestrator.auto_fix()

        assert (report.fixed_count, report.skipped_count, report.failed_count) == (0, 0, 1)
        assert report.messages[0].startswith("missing: could not verify this design")
        assert store.get("missing", "front").width == 900

    @pytest.mark.asyncio
    async def test_design_too_elongated_for_the_size_floor_is_not_fixed(self, store, orchestrator, make_rect):
        store.upsert(make_rect("banner", 900, 300, asset_url=BANNER, filename="banner.png"))
        before = store.get("banner", "front")

        first = await orchestrator.auto_fix()
        second = await orchestrator.auto_fix()

        for report in (first, second):
            assert (report.fixed_count, report.skipped_count, report.failed_count) == (0, 0, 1)
            assert report.messages[0].startswith("Cannot fix banner.png")
        assert store.get("banner", "front") == before

    @pytest.mark.asyncio
    async def test_design_removed_mid_batch_is_skipped(self, store, make_rect, fake_loader):
        loader = fake_loader({SQUARE: (1000, 1000)}, delay={SQUARE: 0.01})
        orchestrator = ComplianceOrchestrator(store, loader, timeout=1.0)
        rect = store.upsert(make_rect("off", 900, 700, asset_url=SQUARE))
        store.remove("off", "front")

        report = await orchestrator.auto_fix(placements=[rect])

        assert report.fixed_count == 0
        assert report.skipped_count == 1
        assert store.get("off", "front") is None


class TestDescribeIssue:
    def test_invalid(self):
        result = ValidationResult(
            design_id="d1", placement_key="front", actual_ratio=1.0, declared_ratio=900 / 700,
            percent_difference=22.2222, is_valid=False, corrected_rect=Size(793.7, 793.7),
        )
        assert describe_issue(result, "cat.png") == (
            "cat.png: aspect ratio off by 22.22% (limit 0.5%), suggested size 794x794px"
        )

    def test_unverified(self):
        result = ValidationResult.failed("d1", "front", 1.0, "Could not load asset x: timed out after 10s")
        assert describe_issue(result) == "d1: could not verify this design (Could not load asset x: timed out after 10s)"

    def test_valid(self):
        result = ValidationResult(
            design_id="d1", placement_key="front", actual_ratio=2.01, declared_ratio=2.0,
            percent_difference=0.5, is_valid=True,
        )
        assert describe_issue(result) == "d1: within tolerance (0.50%)"
