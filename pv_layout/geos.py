# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
import json
from typing import List, Sequence, Tuple, Union

import math
import numpy as np
import shapely
from shapely import affinity
from shapely.geometry import Polygon, shape
from shapely.geometry.base import BaseGeometry

from pv_layout.constants import METRES_PER_DEGREE, EARTH_RADIUS_M

Coord = Tuple[float, float]


def metres_to_degrees_lat(metres: float) -> float:
    return metres / METRES_PER_DEGREE


def metres_to_degrees_lng(metres: float, latitude: float) -> float:
    """
    Degrees of longitude spanned by `metres` at `latitude`. The latitude should
    always be that of the polygon being worked on.
    """
    return metres / (METRES_PER_DEGREE * math.cos(math.radians(latitude)))


def degrees_to_metres_lat(degrees: float) -> float:
    return degrees * METRES_PER_DEGREE


def degrees_to_metres_lng(degrees: float, latitude: float) -> float:
    return degrees * METRES_PER_DEGREE * math.cos(math.radians(latitude))


def haversine_m(p1: Coord, p2: Coord) -> float:
    """Great-circle distance in metres between two (lng, lat) points"""
    lng1, lat1 = map(math.radians, p1)
    lng2, lat2 = map(math.radians, p2)
    a = (math.sin((lat2 - lat1) / 2) ** 2 +
         math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2)
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def planar_distance(p1: Coord, p2: Coord) -> float:
    return math.dist(p1, p2)


def bearing_deg(p1: Coord, p2: Coord) -> float:
    """
    Compass bearing (degrees clockwise from North, between 0 and 360) of the
    initial great-circle course from p1 to p2.
    """
    lng1, lat1 = map(math.radians, p1)
    lng2, lat2 = map(math.radians, p2)
    y = math.sin(lng2 - lng1) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(lng2 - lng1)
    return to_positive_angle(math.degrees(math.atan2(y, x)))


def rotate_point(point: Coord, center: Coord, angle_deg: float) -> Coord:
    if angle_deg == 0:
        return point[0], point[1]
    angle = math.radians(angle_deg)
    cos = math.cos(angle)
    sin = math.sin(angle)
    dx = point[0] - center[0]
    dy = point[1] - center[1]
    return (center[0] + dx * cos - dy * sin,
            center[1] + dx * sin + dy * cos)


def rect_corners(center: Coord, width: float, height: float, rotation: float = 0.0) -> List[Coord]:
    """
    Corners of a `width` x `height` rectangle centred on `center`, rotated by
    `rotation` degrees about its centre. Order is bottom-left, bottom-right,
    top-right, top-left; the ring is not closed.
    """
    half_w = width / 2
    half_h = height / 2
    x, y = center
    corners = [(x - half_w, y - half_h),
               (x + half_w, y - half_h),
               (x + half_w, y + half_h),
               (x - half_w, y + half_h)]
    return [rotate_point(c, center, rotation) for c in corners]


def close_ring(coords: Sequence[Coord]) -> List[Coord]:
    coords = [(float(c[0]), float(c[1])) for c in coords]
    if len(coords) > 0 and coords[0] != coords[-1]:
        coords.append(coords[0])
    return coords


def distinct_vertices(ring: Sequence[Coord]) -> List[Coord]:
    """
    Vertices of a ring with the closing point and consecutive duplicates removed.
    """
    vertices = []
    for c in ring:
        c = (float(c[0]), float(c[1]))
        if not vertices or vertices[-1] != c:
            vertices.append(c)
    while len(vertices) > 1 and vertices[0] == vertices[-1]:
        vertices.pop()
    return vertices


def is_degenerate(polygon: Polygon, rel_tol: float = 1e-8) -> bool:
    """
    True if the polygon has fewer than 3 distinct vertices or (near) zero area,
    in which case nothing downstream can be done with it.

    Area is compared to the square of the polygon's extent, so rounding error
    in coordinates far from the origin (e.g. degrees around 51N) doesn't make a
    collinear ring look like a sliver.
    """
    if polygon is None or polygon.is_empty or polygon.geom_type != 'Polygon':
        return True
    if len(distinct_vertices(polygon.exterior.coords)) < 3:
        return True
    min_x, min_y, max_x, max_y = polygon.bounds
    extent = max(max_x - min_x, max_y - min_y)
    return polygon.area <= rel_tol * extent ** 2


def centroid(polygon: Polygon) -> Coord:
    c = polygon.centroid
    return c.x, c.y


def polygon_area_m2(polygon: Polygon) -> float:
    """
    Area in m² of a polygon in (lng, lat) degrees, using an equirectangular
    approximation at the polygon's own centroid latitude. Good enough for roof
    sized polygons.
    """
    if is_degenerate(polygon):
        return 0.0
    _, lat = centroid(polygon)
    return polygon.area * METRES_PER_DEGREE ** 2 * math.cos(math.radians(lat))


def overlap_ratio(candidate: Polygon, polygon: BaseGeometry) -> float:
    """
    Fraction of `candidate`'s area that lies within `polygon`.
    """
    area = candidate.area
    if area <= 0:
        return 0.0
    return candidate.intersection(polygon).area / area


def overlap_ratios(candidates: np.ndarray, polygon: BaseGeometry) -> np.ndarray:
    """
    Vectorised `overlap_ratio` for an array of candidate polygons.
    """
    if len(candidates) == 0:
        return np.zeros(0)
    areas = shapely.area(candidates)
    overlaps = shapely.area(shapely.intersection(candidates, polygon))
    return np.divide(overlaps, areas, out=np.zeros(len(candidates)), where=areas > 0)


def rects(corners: np.ndarray) -> np.ndarray:
    """
    Array of shapely Polygons from an (n, 4, 2) array of rectangle corners.
    """
    if len(corners) == 0:
        return np.empty(0, dtype=object)
    closed = np.concatenate([corners, corners[:, :1, :]], axis=1)
    return shapely.polygons(closed)


def to_local_metres(geom: BaseGeometry, origin: Coord) -> BaseGeometry:
    """
    Project a (lng, lat) geometry into a local metre grid centred on `origin`
    (equirectangular at the origin's latitude).
    """
    lng, lat = origin
    geom = affinity.translate(geom, -lng, -lat)
    return affinity.scale(geom,
                          xfact=degrees_to_metres_lng(1.0, lat),
                          yfact=degrees_to_metres_lat(1.0),
                          origin=(0, 0))


def from_local_metres(geom: BaseGeometry, origin: Coord) -> BaseGeometry:
    """Inverse of `to_local_metres`"""
    lng, lat = origin
    geom = affinity.scale(geom,
                          xfact=metres_to_degrees_lng(1.0, lat),
                          yfact=metres_to_degrees_lat(1.0),
                          origin=(0, 0))
    return affinity.translate(geom, lng, lat)


def largest_polygon(g: BaseGeometry):
    if g is None or g.is_empty:
        return None
    if g.geom_type == 'Polygon':
        return g
    polygons = [p for p in getattr(g, 'geoms', []) if p.geom_type == 'Polygon']
    if len(polygons) == 0:
        return None
    return max(polygons, key=lambda poly: poly.area)


def from_geojson(geojson: Union[str, dict]) -> BaseGeometry:
    if isinstance(geojson, str):
        geojson = json.loads(geojson)
    if geojson.get('type') == 'Feature':
        geojson = geojson['geometry']
    return shape(geojson)


def to_positive_angle(angle: float) -> float:
    angle = angle % 360
    return angle + 360 if angle < 0 else angle
