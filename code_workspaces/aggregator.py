"""
Aggregator - Combine workspaces from every located installation.

Handles:
1. Re-running instance discovery (the result replaces the previous set)
2. Concurrent extraction across installations
3. Merging in installation order, then source order
4. Deduplication by decoded path (case-insensitive), first occurrence wins

Because installations are already ordered preferred-edition-first, a
workspace known to several installations is attributed to the preferred one.

Usage:
    from code_workspaces.aggregator import Aggregator

    aggregator = Aggregator()
    workspaces = await aggregator.refresh(Edition.DEFAULT)
    aggregator.installations  # the set discovered by that pass
"""

import asyncio
import logging
import time
from collections.abc import Iterable

from .extractor import WorkspaceExtractor
from .locator import InstanceLocator
from .models import EditorInstallation, Edition, Workspace

logger = logging.getLogger(__name__)


def merge_workspaces(per_installation: Iterable[Iterable[Workspace]]) -> list[Workspace]:
    """
    Flatten per-installation results and drop duplicate paths.

    Args:
        per_installation: Workspace lists in installation order

    Returns:
        Unique workspaces, first occurrence kept
    """
    merged: list[Workspace] = []
    seen: set[str] = set()

    for workspaces in per_installation:
        for workspace in workspaces:
            if workspace.dedup_key in seen:
                continue
            seen.add(workspace.dedup_key)
            merged.append(workspace)

    return merged


class Aggregator:
    """
    Run discovery and extraction for all installations.

    The installation list is replaced by assignment once a pass completes and
    is never mutated in place, so readers can hold on to a previous list.
    """

    def __init__(
        self,
        locator: InstanceLocator | None = None,
        extractor: WorkspaceExtractor | None = None,
    ):
        self.locator = locator or InstanceLocator()
        self.extractor = extractor or WorkspaceExtractor()
        self._installations: tuple[EditorInstallation, ...] = ()

    @property
    def installations(self) -> tuple[EditorInstallation, ...]:
        """Installations found by the last completed pass."""
        return self._installations

    async def refresh(self, preferred_edition: Edition = Edition.DEFAULT) -> list[Workspace]:
        """
        Discover installations and aggregate their workspaces.

        Cancelling the calling task cancels every extraction and leaves the
        previous installation set in place.

        Args:
            preferred_edition: Edition whose installations win path ties

        Returns:
            Deduplicated workspaces in merge order
        """
        start_time = time.time()

        installations = await asyncio.to_thread(self.locator.locate, preferred_edition)

        results = await asyncio.gather(
            *(self.extractor.extract(inst) for inst in installations),
            return_exceptions=True,
        )

        per_installation: list[list[Workspace]] = []
        for installation, result in zip(installations, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.warning(f"Extraction failed for {installation.display_name}: {result}")
                per_installation.append([])
            else:
                per_installation.append(result)

        workspaces = merge_workspaces(per_installation)
        self._installations = tuple(installations)

        logger.info(
            f"Aggregated {len(workspaces)} workspace(s) from {len(installations)} "
            f"installation(s) in {(time.time() - start_time) * 1000:.0f}ms"
        )
        return workspaces
