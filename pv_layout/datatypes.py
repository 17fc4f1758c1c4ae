# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
from dataclasses import dataclass, field
from functools import cached_property
from typing import Tuple, Optional, List, Sequence, Union

from shapely.geometry import Polygon

from pv_layout.constants import LANDSCAPE
from pv_layout.geos import Coord, close_ring, polygon_area_m2, is_degenerate, centroid, from_geojson

Ring = Tuple[Coord, ...]


@dataclass(frozen=True)
class RoofPolygon:
    """
    One planar, obstruction-free roof section: a closed ring of (lng, lat)
    pairs with its facing azimuth. Rings are not checked for self-intersection.
    """
    section_id: str
    ring: Ring
    azimuth: float = 180.0
    area_m2: float = field(default=0.0, compare=False)

    @classmethod
    def from_ring(cls, ring: Sequence[Sequence[float]], azimuth: float = 180.0,
                  section_id: str = "section-1") -> 'RoofPolygon':
        ring = tuple(close_ring(ring))
        area = polygon_area_m2(Polygon(ring)) if len(ring) >= 4 else 0.0
        return cls(section_id=section_id, ring=ring, azimuth=float(azimuth), area_m2=area)

    @classmethod
    def from_geojson(cls, geojson: Union[str, dict], azimuth: float = 180.0,
                     section_id: str = "section-1") -> 'RoofPolygon':
        geom = from_geojson(geojson)
        if geom.geom_type != 'Polygon':
            raise ValueError(f"Roof section {section_id} must be a Polygon, was {geom.geom_type}")
        return cls.from_ring(geom.exterior.coords, azimuth, section_id)

    @cached_property
    def polygon(self) -> Polygon:
        return Polygon(self.ring) if len(self.ring) >= 4 else Polygon()

    @property
    def is_degenerate(self) -> bool:
        return len(self.ring) < 4 or is_degenerate(self.polygon)

    @property
    def centroid(self) -> Coord:
        return centroid(self.polygon)

    @property
    def reference_latitude(self) -> float:
        """Latitude used to convert metres to degrees of longitude for this roof"""
        return self.centroid[1]


@dataclass(frozen=True)
class Triangle:
    vertices: Tuple[Coord, Coord, Coord]
    area_m2: float
    centroid: Coord


@dataclass(frozen=True)
class CandidateGrid:
    """
    A placement grid: grown from `anchor`, shifted by `offset_x`/`offset_y`
    fractions of a footprint. `direction_x`/`direction_y` are the directions
    the grid grows in from a bounding-box corner (+1 east/north, -1 west/south).
    """
    index: int
    strategy: str
    anchor: Coord
    offset_x: float
    offset_y: float
    direction_x: int = 1
    direction_y: int = -1
    rotation: float = 0.0


@dataclass(frozen=True)
class PanelPosition:
    id: str
    center: Coord
    corners: Tuple[Coord, Coord, Coord, Coord]
    rotation: float
    section_id: str
    row: Optional[int] = None
    column: Optional[int] = None
    orientation: str = LANDSCAPE

    @property
    def ring(self) -> List[Coord]:
        """Closed 5-point ring of the panel corners"""
        return list(self.corners) + [self.corners[0]]


@dataclass(frozen=True)
class PanelLayoutResult:
    panels: Tuple[PanelPosition, ...]
    total_panels: int
    coverage_percent: float
    estimated_capacity_kw: float
    total_roof_area_m2: float = 0.0
    installed_area_m2: float = 0.0
    # Roof area left after any edge setback:
    usable_area_m2: float = 0.0
    layout_style: str = LANDSCAPE
    panel_orientation: str = LANDSCAPE

    @classmethod
    def empty(cls, total_roof_area_m2: float = 0.0, layout_style: str = LANDSCAPE) -> 'PanelLayoutResult':
        return cls(panels=(), total_panels=0, coverage_percent=0.0, estimated_capacity_kw=0.0,
                   total_roof_area_m2=total_roof_area_m2, installed_area_m2=0.0,
                   usable_area_m2=0.0, layout_style=layout_style, panel_orientation=LANDSCAPE)

    def to_dict(self) -> dict:
        return {
            "panels": [{
                "id": p.id,
                "center": list(p.center),
                "corners": [list(c) for c in p.corners],
                "rotation": p.rotation,
                "sectionId": p.section_id,
                "row": p.row,
                "column": p.column,
                "orientation": p.orientation,
            } for p in self.panels],
            "totalPanels": self.total_panels,
            "coveragePercent": self.coverage_percent,
            "estimatedCapacityKw": self.estimated_capacity_kw,
            "totalRoofArea": self.total_roof_area_m2,
            "installedArea": self.installed_area_m2,
            "usableArea": self.usable_area_m2,
            "layoutStyle": self.layout_style,
            "panelOrientation": self.panel_orientation,
        }
