"""Aspect ratio filtering shared by all backend clients."""

from __future__ import annotations

from collections.abc import Iterable

from .const import VERTICAL_TOLERANCE
from .models import NormalizedItem, OrientationMode


def matches_orientation(item: NormalizedItem, mode: OrientationMode) -> bool:
    """Return True if the item should be shown under the orientation mode.

    Containers always pass so drill-down is never hidden, and items with
    unknown dimensions pass because an unknown aspect must not hide content.
    """
    if mode == OrientationMode.BOTH or item.is_container:
        return True

    width = item.width or 0
    height = item.height or 0
    if width <= 0 or height <= 0:
        return True

    if mode == OrientationMode.VERTICAL:
        # Near-square content is still acceptable in a vertical feed
        return height >= width * VERTICAL_TOLERANCE
    return width > height


def filter_by_orientation(
    items: Iterable[NormalizedItem],
    mode: OrientationMode,
) -> list[NormalizedItem]:
    """Filter items by orientation mode, preserving order.

    Args:
        items: Items to filter.
        mode: Selected orientation mode.

    Returns:
        New list with the items that match.
    """
    if mode == OrientationMode.BOTH:
        return list(items)
    return [item for item in items if matches_orientation(item, mode)]


__all__ = ["filter_by_orientation", "matches_orientation"]
