"""
Sticky marker positioning inside a scrolling day column.

Markers due before the bias boundary (midday by default) stick to the top
edge of the visible window; markers due at or after it stick to the bottom
edge. A marker already inside the window never moves. Recomputed on every
scroll/resize from the frame's inputs alone.
"""

from __future__ import annotations

from collections.abc import Iterable

from app.config import settings
from app.models.domain.calendar_domain import (
    DayLayout,
    StickyItem,
    StickyPlacement,
    ViewportWindow,
)

STICKY_Z_INDEX = 60


def bias_boundary_top(
    pixels_per_hour: float | None = None, bias_hour: float | None = None
) -> float:
    """Grid offset of the bias boundary."""
    pph = pixels_per_hour if pixels_per_hour is not None else settings.PIXELS_PER_HOUR
    hour = bias_hour if bias_hour is not None else settings.STICKY_BIAS_HOUR
    return hour * pph


def position_sticky(
    natural_top: float,
    height: float,
    viewport: ViewportWindow,
    *,
    bias_boundary: float,
    sticky_margin: float | None = None,
) -> tuple[float, bool]:
    """
    Display offset for one sticky marker.

    Returns ``(display_top, clamped)``.
    """
    margin = sticky_margin if sticky_margin is not None else settings.STICKY_MARGIN
    min_top = viewport.scroll_offset + margin
    max_top = viewport.scroll_offset + viewport.container_height - height - margin

    if natural_top < bias_boundary:
        if natural_top < min_top:
            return min_top, True
    elif natural_top > max_top:
        return max_top, True

    return natural_top, False


def place_sticky_items(
    items: Iterable[StickyItem],
    viewport: ViewportWindow,
    pixels_per_hour: float | None = None,
    sticky_margin: float | None = None,
    bias_hour: float | None = None,
) -> list[StickyPlacement]:
    """One placement per item; only sticky items are ever relocated."""
    boundary = bias_boundary_top(pixels_per_hour, bias_hour)
    placements: list[StickyPlacement] = []
    for item in items:
        if not item.sticky:
            placements.append(
                StickyPlacement(
                    event_id=item.event_id,
                    display_top=item.top,
                    clamped=False,
                    z_index=item.z_index,
                )
            )
            continue

        display_top, clamped = position_sticky(
            item.top,
            item.height,
            viewport,
            bias_boundary=boundary,
            sticky_margin=sticky_margin,
        )
        placements.append(
            StickyPlacement(
                event_id=item.event_id,
                display_top=display_top,
                clamped=clamped,
                z_index=STICKY_Z_INDEX if clamped else item.z_index,
            )
        )
    return placements


def position_sticky_markers(
    day_layout: DayLayout,
    viewport: ViewportWindow,
    pixels_per_hour: float | None = None,
    sticky_margin: float | None = None,
    bias_hour: float | None = None,
) -> list[StickyPlacement]:
    """Placements for every sticky marker in a day's grid layer."""
    return place_sticky_items(
        (
            position.as_sticky_item()
            for position in day_layout.positions
            if position.event.is_sticky
        ),
        viewport,
        pixels_per_hour=pixels_per_hour,
        sticky_margin=sticky_margin,
        bias_hour=bias_hour,
    )
