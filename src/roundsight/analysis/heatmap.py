"""
Spatial Heatmap Binner.

Bins event positions to a fixed decimal resolution and counts how many events
of each type landed in each bin. Kill, death, bomb-plant and bomb-explode
positions are added for every round, warmup and knife rounds included.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from roundsight.core.constants import HEATMAP_PRECISION, HEATMAP_TOP_HOTSPOTS
from roundsight.telemetry.events import Position

logger = logging.getLogger(__name__)


@dataclass
class HeatmapPoint:
    """One quantized bin and its event count."""

    x: float
    y: float
    z: float
    point_type: str  # "kill", "death", "bomb_planted", "bomb_exploded"
    intensity: int = 0

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "intensity": self.intensity,
            "type": self.point_type,
        }


class HeatmapBinner:
    """
    Accumulates event positions into quantized bins.

    Points are keyed by "x,y,z,type" with coordinates printed at the
    configured precision. Iteration order of the bins is not meaningful;
    ``points()`` sorts for stable output.
    """

    def __init__(
        self,
        precision: int = HEATMAP_PRECISION,
        map_name: str = "unknown",
        top_hotspots: int = HEATMAP_TOP_HOTSPOTS,
    ) -> None:
        self.precision = max(int(precision), 0)
        self.map_name = map_name
        self.top_hotspots = max(int(top_hotspots), 0)
        self._bins: dict[str, HeatmapPoint] = {}

    def __len__(self) -> int:
        return len(self._bins)

    def quantize(self, position: Position) -> tuple[float, float, float]:
        coords = np.round(np.array([position.x, position.y, position.z], dtype=float), self.precision)
        # Adding 0.0 folds -0.0 into 0.0 so both land in the same bin
        x, y, z = (float(c) + 0.0 for c in coords)
        return x, y, z

    def key(self, position: Position, event_type: str) -> str:
        x, y, z = self.quantize(position)
        p = self.precision
        return f"{x:.{p}f},{y:.{p}f},{z:.{p}f},{event_type}"

    def add_point(self, position: Position | None, event_type: str) -> None:
        """Count one event at a position; missing positions are skipped."""
        if position is None:
            return
        key = self.key(position, event_type)
        point = self._bins.get(key)
        if point is None:
            x, y, z = self.quantize(position)
            point = HeatmapPoint(x=x, y=y, z=z, point_type=str(event_type))
            self._bins[key] = point
        point.intensity += 1

    def intensity(self, position: Position, event_type: str) -> int:
        point = self._bins.get(self.key(position, event_type))
        return point.intensity if point else 0

    def points(self) -> list[HeatmapPoint]:
        return sorted(self._bins.values(), key=lambda p: (p.point_type, p.x, p.y, p.z))

    def total(self, event_type: str | None = None) -> int:
        return sum(
            p.intensity for p in self._bins.values() if event_type is None or p.point_type == event_type
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Heatmap bins as a DataFrame with columns x, y, z, intensity, type."""
        columns = ["x", "y", "z", "intensity", "type"]
        if not self._bins:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([p.to_dict() for p in self.points()], columns=columns)

    def hotspots(self, n: int = 10, event_type: str | None = None) -> list[HeatmapPoint]:
        """Top-n bins by intensity, optionally restricted to one event type."""
        candidates = [p for p in self.points() if event_type is None or p.point_type == event_type]
        return sorted(candidates, key=lambda p: p.intensity, reverse=True)[:n]

    def to_dict(self) -> dict:
        return {
            "map": self.map_name,
            "points": [p.to_dict() for p in self.points()],
            "hotspots": [p.to_dict() for p in self.hotspots(self.top_hotspots)],
        }
