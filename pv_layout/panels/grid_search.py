# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Iterator

import numpy as np
from shapely.geometry import Polygon

from pv_layout.constants import LANDSCAPE, PANEL_ROTATION
from pv_layout.datatypes import CandidateGrid, PanelPosition
from pv_layout.geos import Coord, rect_corners, rects, overlap_ratios, planar_distance, centroid
from pv_layout.panels.search_params import SearchParams, DEFAULT_SEARCH_PARAMS
from pv_layout.panels.shape_analysis import ShapeAnalysis
from pv_layout.util import frange

Box = Tuple[float, float, float, float]

CORNER = "corner"
CENTROID = "centroid"


@dataclass(frozen=True)
class GridSearchResult:
    grid: Optional[CandidateGrid] = None
    panels: List[PanelPosition] = field(default_factory=list)
    grids_tried: int = 0


@dataclass(frozen=True)
class _Placement:
    """Panels accepted for one candidate grid"""
    grid: CandidateGrid
    centers: np.ndarray
    corners: np.ndarray
    rows: np.ndarray
    columns: np.ndarray

    @property
    def count(self) -> int:
        return len(self.centers)


def search_grid(polygon: Polygon,
                footprint: Tuple[float, float],
                module: Tuple[float, float],
                section_id: str,
                shape: Optional[ShapeAnalysis] = None,
                params: SearchParams = DEFAULT_SEARCH_PARAMS,
                lng_scale: float = 1.0,
                rotation: float = PANEL_ROTATION,
                orientation: str = LANDSCAPE) -> GridSearchResult:
    """
    Find the placement grid that fits the most panels in `polygon`.

    :param polygon: roof polygon, in (lng, lat) degrees.
    :param footprint: (width, height) of a panel plus its spacing - the grid
    step - in the polygon's units.
    :param module: (width, height) of a panel itself, in the polygon's units.
    :param section_id: roof section the panels belong to, used in panel IDs.
    :param shape: shape analysis of the polygon, to use triangle centroids as
    grid anchors. Only bounding-box corners are used if not given.
    :param params: search heuristics.
    :param lng_scale: degrees of longitude per degree of latitude at the roof,
    so that rotated panels stay rectangular on the ground.
    :param rotation: panel rotation in degrees from north.
    :param orientation: `landscape` or `portrait`, recorded on the panels.
    """
    step_w, step_h = footprint
    if step_w <= 0 or step_h <= 0:
        raise ValueError(f"Panel footprint must be positive, was {footprint}")

    bounds = polygon.bounds
    min_x, min_y, max_x, max_y = bounds
    padding = min(step_w, step_h) * params.padding_fraction
    box = (min_x + padding, min_y + padding, max_x - padding, max_y - padding)
    if box[0] > box[2] or box[1] > box[3]:
        logging.debug(f"Section {section_id}: bounding box smaller than padding, no panels")
        return GridSearchResult()

    corner_offsets = _panel_corner_offsets(module, rotation, lng_scale)
    roof_centroid = centroid(polygon)

    best: Optional[_Placement] = None
    best_key = None
    grids_tried = 0
    for grid in candidate_grids(bounds, shape, params, rotation):
        grids_tried += 1
        placement = _evaluate_grid(grid, polygon, box, footprint, corner_offsets, params)
        key = _rank(placement, roof_centroid, lng_scale)
        if best_key is None or key > best_key:
            best = placement
            best_key = key

    if best is None or best.count == 0:
        return GridSearchResult(grids_tried=grids_tried)

    logging.debug(f"Section {section_id}: best of {grids_tried} grids fits {best.count} panels "
                  f"({best.grid.strategy} anchor {best.grid.anchor}, "
                  f"offset {best.grid.offset_x}/{best.grid.offset_y})")
    return GridSearchResult(grid=best.grid,
                            panels=_to_panels(best, section_id, orientation),
                            grids_tried=grids_tried)


def candidate_grids(bounds: Box,
                    shape: Optional[ShapeAnalysis],
                    params: SearchParams = DEFAULT_SEARCH_PARAMS,
                    rotation: float = PANEL_ROTATION) -> Iterator[CandidateGrid]:
    """
    All grids to try: each bounding-box corner with every combination of
    `params.corner_offsets`, then the centroid of each significant triangle
    with every combination of `params.centroid_offsets`.
    """
    min_x, min_y, max_x, max_y = bounds
    index = 0

    # corner, and the directions a grid grows in from it:
    corners = [((min_x, max_y), 1, -1),   # top-left
               ((min_x, min_y), 1, 1),    # bottom-left
               ((max_x, max_y), -1, -1),  # top-right
               ((max_x, min_y), -1, 1)]   # bottom-right
    for anchor, dir_x, dir_y in corners:
        for offset_x in params.corner_offsets:
            for offset_y in params.corner_offsets:
                yield CandidateGrid(index=index, strategy=CORNER, anchor=anchor,
                                    offset_x=offset_x, offset_y=offset_y,
                                    direction_x=dir_x, direction_y=dir_y,
                                    rotation=rotation)
                index += 1

    if shape is None:
        return
    for triangle in shape.anchor_triangles(params.anchor_triangle_fraction, params.max_anchor_triangles):
        for offset_x in params.centroid_offsets:
            for offset_y in params.centroid_offsets:
                yield CandidateGrid(index=index, strategy=CENTROID, anchor=triangle.centroid,
                                    offset_x=offset_x, offset_y=offset_y,
                                    rotation=rotation)
                index += 1


def _rank(placement: _Placement, roof_centroid: Coord, lng_scale: float) -> tuple:
    """
    Ordering of placements: most panels first, then the anchor nearest the
    roof centroid, then the earliest grid.
    """
    anchor = placement.grid.anchor
    dist = planar_distance((anchor[0] / lng_scale, anchor[1]),
                           (roof_centroid[0] / lng_scale, roof_centroid[1]))
    return placement.count, -dist, -placement.grid.index


def _panel_corner_offsets(module: Tuple[float, float], rotation: float, lng_scale: float) -> np.ndarray:
    """
    Corners of a panel relative to its centre, rotated on the ground
    (i.e. in latitude-degree units) then scaled back to the polygon's units.
    """
    module_w, module_h = module
    offsets = np.array(rect_corners((0.0, 0.0), module_w / lng_scale, module_h, rotation))
    offsets[:, 0] *= lng_scale
    return offsets


def _cells(grid: CandidateGrid, box: Box, footprint: Tuple[float, float]) -> Tuple[list, list, list]:
    """
    Centres of the grid's cells in scan order, with their (row, column)
    relative to the grid's start. Only centres within the padded `box` are
    scanned.
    """
    min_x, min_y, max_x, max_y = box
    step_w, step_h = footprint
    centers = []
    rows = []
    columns = []

    def _scan(xs, ys, start_x, start_y):
        for x in xs:
            for y in ys:
                centers.append((x, y))
                columns.append(int(round((x - start_x) / step_w)))
                rows.append(int(round((start_y - y) / step_h)))

    if grid.strategy == CORNER:
        # offset 0 puts the edge of the first footprint on the bounding-box edge:
        start_x = grid.anchor[0] + grid.direction_x * (0.5 + grid.offset_x) * step_w
        start_y = grid.anchor[1] + grid.direction_y * (0.5 + grid.offset_y) * step_h
        end_x = max_x if grid.direction_x > 0 else min_x
        end_y = max_y if grid.direction_y > 0 else min_y
        _scan(list(frange(start_x, end_x, grid.direction_x * step_w)),
              list(frange(start_y, end_y, grid.direction_y * step_h)),
              start_x, start_y)
    else:
        start_x = grid.anchor[0] - grid.offset_x * step_w
        start_y = grid.anchor[1] + grid.offset_y * step_h
        east = list(frange(start_x, max_x, step_w))
        west = list(frange(start_x, min_x, -step_w))
        south = list(frange(start_y, min_y, -step_h))
        north = list(frange(start_y, max_y, step_h))
        # forward scan, then reverse; both revisit the start row and column:
        _scan(east, south + north, start_x, start_y)
        _scan(west, north + south, start_x, start_y)

    return centers, rows, columns


def _evaluate_grid(grid: CandidateGrid,
                   polygon: Polygon,
                   box: Box,
                   footprint: Tuple[float, float],
                   corner_offsets: np.ndarray,
                   params: SearchParams) -> _Placement:
    centers, rows, columns = _cells(grid, box, footprint)
    if not centers:
        return _Placement(grid, np.empty((0, 2)), np.empty((0, 4, 2)),
                          np.empty(0, dtype=int), np.empty(0, dtype=int))

    centers = np.array(centers, dtype=float)
    corners = centers[:, None, :] + corner_offsets[None, :, :]
    ratios = overlap_ratios(rects(corners), polygon)
    accepted = np.flatnonzero(ratios >= params.containment_threshold)

    if grid.strategy == CENTROID:
        accepted = _dedupe(centers, accepted, footprint, params.dedupe_fraction)

    return _Placement(grid=grid,
                      centers=centers[accepted],
                      corners=corners[accepted],
                      rows=np.array(rows)[accepted],
                      columns=np.array(columns)[accepted])


def _dedupe(centers: np.ndarray, accepted: np.ndarray, footprint: Tuple[float, float],
            fraction: float) -> np.ndarray:
    """
    Drop accepted cells whose centre is within `fraction` of a footprint of an
    earlier accepted cell.
    """
    tol_w = footprint[0] * fraction
    tol_h = footprint[1] * fraction
    kept: List[int] = []
    for idx in accepted:
        if kept:
            dx = np.abs(centers[kept, 0] - centers[idx, 0])
            dy = np.abs(centers[kept, 1] - centers[idx, 1])
            if np.any((dx < tol_w) & (dy < tol_h)):
                continue
        kept.append(idx)
    return np.array(kept, dtype=int)


def _to_panels(placement: _Placement, section_id: str, orientation: str = LANDSCAPE) -> List[PanelPosition]:
    """
    Panels in scan order. Row 0 is the northernmost row and column 0 the
    westernmost column of the placed panels.
    """
    panels = []
    rows = placement.rows - placement.rows.min() if placement.count else placement.rows
    columns = placement.columns - placement.columns.min() if placement.count else placement.columns
    for n in range(placement.count):
        cx, cy = placement.centers[n]
        panels.append(PanelPosition(
            id=f"{section_id}-panel-{n}",
            center=(float(cx), float(cy)),
            corners=tuple((float(x), float(y)) for x, y in placement.corners[n]),
            rotation=placement.grid.rotation,
            section_id=section_id,
            row=int(rows[n]),
            column=int(columns[n]),
            orientation=orientation))
    return panels
