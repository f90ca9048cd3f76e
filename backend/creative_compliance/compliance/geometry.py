"""Axis-aligned rectangles for layout checks."""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def overlaps(self, other: "Rect") -> bool:
        """Strict intersection test: touching edges and empty rects never overlap."""
        if self.is_empty or other.is_empty:
            return False
        return (
            self.left < other.right
            and other.left < self.right
            and self.top < other.bottom
            and other.top < self.bottom
        )


def bounding_rect(x: float, y: float, width: float, height: float, angle: float = 0.0) -> Rect:
    """Axis-aligned bounds of a (possibly rotated) box whose origin is its top-left corner.

    Rotation is clockwise in degrees about (x, y), matching canvas conventions.
    """
    if not angle % 360:
        return Rect(x, y, width, height)

    rad = math.radians(angle)
    cos_a, sin_a = math.cos(rad), math.sin(rad)
    corners = [(0.0, 0.0), (width, 0.0), (width, height), (0.0, height)]
    xs = [x + cx * cos_a - cy * sin_a for cx, cy in corners]
    ys = [y + cx * sin_a + cy * cos_a for cx, cy in corners]
    left, top = min(xs), min(ys)
    return Rect(left, top, max(xs) - left, max(ys) - top)
