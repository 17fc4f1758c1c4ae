# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
import logging
from typing import List, Optional, Sequence

import mapbox_earcut as earcut
import math
import numpy as np

from pv_layout.constants import METRES_PER_DEGREE
from pv_layout.datatypes import Triangle
from pv_layout.geos import Coord, distinct_vertices

# Areas below this fraction of the squared extent of the ring are rounding
# error, not geometry:
_REL_AREA_TOL = 1e-8


def triangulate(ring: Sequence[Coord], reference_latitude: Optional[float] = None) -> List[Triangle]:
    """
    Ear-clipping triangulation of a simple polygon ring of (lng, lat) pairs.

    Returns triangles sorted by descending area (in m², using
    `reference_latitude`, or the mean latitude of the ring if not given).
    Degenerate rings, or rings that earcut cannot triangulate, give an empty
    list.
    """
    vertices = distinct_vertices(ring)
    if len(vertices) < 3:
        return []

    pts = np.array(vertices, dtype=float)
    if reference_latitude is None:
        reference_latitude = float(np.mean(pts[:, 1]))

    # Triangulate in a frame normalised to the ring's extent, so that
    # tolerances mean the same thing for a ring in degrees or in metres:
    origin = pts.mean(axis=0)
    scale = float(np.max(np.ptp(pts, axis=0)))
    if scale == 0:
        return []
    norm = (pts - origin) / scale

    if abs(_signed_area(norm)) <= _REL_AREA_TOL:
        logging.debug("Not triangulating ring with zero area")
        return []

    indices = earcut.triangulate_float64(norm, np.array([len(norm)], dtype=np.uint32))
    if len(indices) == 0 or len(indices) % 3 != 0:
        logging.debug(f"Triangulation failed for ring of {len(vertices)} vertices")
        return []

    m2_per_deg2 = METRES_PER_DEGREE ** 2 * math.cos(math.radians(reference_latitude))
    triangles = []
    for tri_indices in np.asarray(indices, dtype=int).reshape(-1, 3):
        # earcut can emit slivers along collinear runs:
        if abs(_signed_area(norm[tri_indices])) <= _REL_AREA_TOL:
            continue
        tri = pts[tri_indices]
        cx, cy = tri.mean(axis=0)
        triangles.append(Triangle(
            vertices=tuple((float(x), float(y)) for x, y in tri),
            area_m2=abs(_signed_area(tri)) * m2_per_deg2,
            centroid=(float(cx), float(cy))))

    return sorted(triangles, key=lambda t: t.area_m2, reverse=True)


def _signed_area(pts: np.ndarray) -> float:
    x = pts[:, 0]
    y = pts[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))
