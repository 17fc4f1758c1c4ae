# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
from dataclasses import dataclass, field
from typing import List

from pv_layout.datatypes import RoofPolygon, Triangle
from pv_layout.geos import haversine_m, bearing_deg
from pv_layout.panels.triangulation import triangulate


@dataclass(frozen=True)
class ShapeAnalysis:
    """Guidance for the grid search about the shape of a roof section"""
    dominant_bearing: float = 0.0
    is_rectangular: bool = False
    aspect_ratio: float = 1.0
    optimal_rotation: float = 0.0
    triangles: List[Triangle] = field(default_factory=list)
    largest_triangle_area: float = 0.0

    def anchor_triangles(self, threshold: float, limit: int) -> List[Triangle]:
        """
        The triangles worth growing a grid from: those larger than `threshold`
        times the largest triangle, at most `limit` of them.
        """
        if not self.triangles or limit <= 0:
            return []
        significant = [t for t in self.triangles if t.area_m2 > self.largest_triangle_area * threshold]
        return significant[:limit]


def analyse_shape(roof: RoofPolygon) -> ShapeAnalysis:
    coords = roof.ring
    if len(coords) < 3:
        return ShapeAnalysis()

    triangles = triangulate(coords, roof.reference_latitude) if not roof.is_degenerate else []
    largest_triangle_area = triangles[0].area_m2 if triangles else 0.0

    # Longest edge gives the dominant orientation:
    max_length = 0.0
    dominant_bearing = 0.0
    for p1, p2 in zip(coords, coords[1:]):
        length = haversine_m(p1, p2)
        if length > max_length:
            max_length = length
            dominant_bearing = bearing_deg(p1, p2)

    min_lng = min(c[0] for c in coords)
    min_lat = min(c[1] for c in coords)
    max_lng = max(c[0] for c in coords)
    max_lat = max(c[1] for c in coords)
    bbox_width = haversine_m((min_lng, min_lat), (max_lng, min_lat))
    bbox_height = haversine_m((min_lng, min_lat), (min_lng, max_lat))
    aspect_ratio = bbox_width / bbox_height if bbox_height > 0 else 1.0

    # Ring is closed, so the vertex count is one less than the coordinate count:
    vertex_count = len(coords) - 1
    is_rectangular = 4 <= vertex_count <= 6

    return ShapeAnalysis(
        dominant_bearing=dominant_bearing,
        is_rectangular=is_rectangular,
        aspect_ratio=aspect_ratio,
        optimal_rotation=0.0 if aspect_ratio > 1 else 90.0,
        triangles=triangles,
        largest_triangle_area=largest_triangle_area)
