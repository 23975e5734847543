"""
Print-compliance orchestrator.
Runs aspect-ratio validation over a batch of placed designs concurrently,
groups the outcome for the UI, and applies corrections back into the
placement store (auto-fix).
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from aspect_ratio import TOLERANCE_EPSILON, ValidationResult, percent_difference, validate
from config import ASSET_LOAD_TIMEOUT, STRICT_TOLERANCE_PERCENT
from errors import AssetLoadError
from geometry import anchored_position, fits_within
from placements import PlacementRect, PlacementStore, RectPatch, apply_patch

logger = logging.getLogger(__name__)

# Scope value meaning "every placement"
ALL_PLACEMENTS = None


@dataclass
class BatchReport:
    results: List[ValidationResult] = field(default_factory=list)
    critical: List[ValidationResult] = field(default_factory=list)
    informational: List[ValidationResult] = field(default_factory=list)
    unverified: List[ValidationResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.critical and not self.unverified

    def summary(self) -> dict:
        return {
            "total": len(self.results),
            "critical": len(self.critical),
            "informational": len(self.informational),
            "unverified": len(self.unverified),
            "passed": self.passed,
        }

    def to_dict(self):
        return {
            **self.summary(),
            "results": [r.to_dict() for r in self.results],
            "critical_ids": [r.design_id for r in self.critical],
            "informational_ids": [r.design_id for r in self.informational],
            "unverified_ids": [r.design_id for r in self.unverified],
        }


@dataclass
class FixReport:
    fixed_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    fixed: List[PlacementRect] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "fixed_count": self.fixed_count,
            "skipped_count": self.skipped_count,
            "failed_count": self.failed_count,
            "fixed": [r.to_dict() for r in self.fixed],
            "messages": self.messages,
        }


def describe_issue(result: ValidationResult, name: Optional[str] = None) -> str:
    """One-line, user-facing description of a single design's result."""
    name = name or result.design_id or "design"
    if result.unverified:
        return f"{name}: could not verify this design ({result.error})"
    if result.is_valid:
        return f"{name}: within tolerance ({result.percent_difference:.2f}%)"
    msg = (
        f"{name}: aspect ratio off by {result.percent_difference:.2f}% "
        f"(limit {result.tolerance_percent:g}%)"
    )
    if result.corrected_rect:
        msg += (
            f", suggested size {result.corrected_rect.width:.0f}x"
            f"{result.corrected_rect.height:.0f}px"
        )
    return msg


class ComplianceOrchestrator:
    """Validates placed designs and auto-fixes their rectangles."""

    def __init__(self, store: PlacementStore, loader, timeout: float = ASSET_LOAD_TIMEOUT):
        self.store = store
        self.loader = loader
        self.timeout = timeout

    def _scoped(self, scope: Optional[str], placements: Optional[List[PlacementRect]]) -> List[PlacementRect]:
        rects = placements if placements is not None else self.store.list_all()
        if scope is ALL_PLACEMENTS:
            return list(rects)
        return [r for r in rects if r.placement_key == scope]

    async def _validate_one(self, rect: PlacementRect, tolerance_percent: float) -> ValidationResult:
        return await validate(
            rect.asset_url,
            rect.width,
            rect.height,
            tolerance_percent,
            loader=self.loader,
            timeout=self.timeout,
            bounds=rect.area,
            design_id=rect.design_id,
            placement_key=rect.placement_key,
        )

    async def _validate_all(self, rects: List[PlacementRect], tolerance_percent: float) -> List[ValidationResult]:
        outcomes = await asyncio.gather(
            *(self._validate_one(r, tolerance_percent) for r in rects),
            return_exceptions=True,
        )

        results: List[ValidationResult] = []
        for rect, outcome in zip(rects, outcomes):
            if isinstance(outcome, ValidationResult):
                results.append(outcome)
                continue
            if isinstance(outcome, AssetLoadError):
                logger.warning("Could not verify %s: %s", rect.display_name, outcome)
                error = str(outcome)
            elif isinstance(outcome, Exception):
                logger.error(
                    "Validation crashed for %s", rect.display_name,
                    exc_info=(type(outcome), outcome, outcome.__traceback__),
                )
                error = f"validation failed: {outcome}"
            else:
                # CancelledError and other BaseExceptions are not ours to swallow
                raise outcome
            results.append(ValidationResult.failed(
                rect.design_id, rect.placement_key, rect.ratio, error,
                tolerance_percent=tolerance_percent,
            ))
        return results

    async def run_batch(
        self,
        scope: Optional[str] = ALL_PLACEMENTS,
        placements: Optional[List[PlacementRect]] = None,
        tolerance_percent: float = STRICT_TOLERANCE_PERCENT,
    ) -> BatchReport:
        """Validate every design in scope and report once all have settled."""
        rects = self._scoped(scope, placements)
        results = await self._validate_all(rects, tolerance_percent)

        report = BatchReport(results=results)
        for r in results:
            if r.unverified:
                report.unverified.append(r)
            elif not r.is_valid:
                report.critical.append(r)
            elif r.has_measurable_difference:
                report.informational.append(r)

        logger.info(
            "Compliance check (%s): %d designs, %d critical, %d informational, %d unverified",
            scope or "all placements", len(results),
            len(report.critical), len(report.informational), len(report.unverified),
        )
        return report

    async def auto_fix(
        self,
        scope: Optional[str] = ALL_PLACEMENTS,
        placements: Optional[List[PlacementRect]] = None,
        tolerance_percent: float = STRICT_TOLERANCE_PERCENT,
    ) -> FixReport:
        """Rewrite out-of-tolerance rects to their corrected size.

        Designs already within tolerance are left untouched, so a second
        run right after the first fixes nothing.
        """
        rects = self._scoped(scope, placements)
        results = await self._validate_all(rects, tolerance_percent)

        report = FixReport()
        for rect, result in zip(rects, results):
            if result.unverified:
                report.failed_count += 1
                report.messages.append(describe_issue(result, rect.display_name))
                continue
            if result.is_valid or result.corrected_rect is None:
                report.skipped_count += 1
                continue

            # The store may have moved on while validations were in flight
            current = self.store.get(rect.design_id, rect.placement_key)
            if current is None:
                report.skipped_count += 1
                continue

            patch = self._correction_patch(current, result)
            preview = apply_patch(current, patch, min_size=self.store.min_size)
            remaining = percent_difference(result.actual_ratio, preview.ratio)
            if remaining > result.tolerance_percent + TOLERANCE_EPSILON:
                # The size floor or the area would distort the corrected ratio
                report.failed_count += 1
                report.messages.append(
                    f"Cannot fix {rect.display_name}: the image is too elongated for this "
                    f"print area ({remaining:.2f}% off at the smallest allowed size)"
                )
                logger.warning(
                    "Auto-fix skipped %s: %.2f%% off after correction",
                    rect.display_name, remaining,
                )
                continue

            fixed = self.store.update(rect.design_id, rect.placement_key, patch)
            report.fixed_count += 1
            report.fixed.append(fixed)
            report.messages.append(
                f"Fixed {rect.display_name}: {fixed.width:.0f}x{fixed.height:.0f}px "
                f"(was off by {result.percent_difference:.2f}%)"
            )

        logger.info(
            "Auto-fix (%s): fixed %d, skipped %d, failed %d",
            scope or "all placements", report.fixed_count, report.skipped_count, report.failed_count,
        )
        return report

    def _correction_patch(self, rect: PlacementRect, result: ValidationResult) -> RectPatch:
        size = result.corrected_rect
        moved = replace(rect, width=size.width, height=size.height)
        if rect.constrain_to_area and not fits_within(moved, rect.area):
            pos = anchored_position("center", size, rect.area)
            return RectPatch(width=size.width, height=size.height, top=pos.top, left=pos.left)
        return RectPatch(width=size.width, height=size.height)
