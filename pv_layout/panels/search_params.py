# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
from dataclasses import dataclass
from typing import Tuple

from pv_layout.constants import CONTAINMENT_THRESHOLD, ANCHOR_TRIANGLE_FRACTION, \
    MAX_ANCHOR_TRIANGLES, GRID_PADDING_FRACTION, DEDUPE_FRACTION, CORNER_OFFSETS, \
    CENTROID_OFFSETS
from pv_layout.util import validate_float, validate_int


@dataclass(frozen=True)
class SearchParams:
    """
    Tunable heuristics of the grid placement search. Defaults are in
    `pv_layout.constants`. Panel rotation is not tunable: layouts are always
    aligned north/south.
    """
    containment_threshold: float = CONTAINMENT_THRESHOLD
    anchor_triangle_fraction: float = ANCHOR_TRIANGLE_FRACTION
    max_anchor_triangles: int = MAX_ANCHOR_TRIANGLES
    padding_fraction: float = GRID_PADDING_FRACTION
    dedupe_fraction: float = DEDUPE_FRACTION
    corner_offsets: Tuple[float, ...] = CORNER_OFFSETS
    centroid_offsets: Tuple[float, ...] = CENTROID_OFFSETS
    # Distance in metres to keep panels back from the roof edge:
    setback_m: float = 0.0

    def __post_init__(self):
        validate_float(self.containment_threshold, "containment_threshold", 0, 1, exclusive_min=True)
        validate_float(self.anchor_triangle_fraction, "anchor_triangle_fraction", 0, 1)
        validate_int(self.max_anchor_triangles, "max_anchor_triangles", 0)
        validate_float(self.padding_fraction, "padding_fraction", 0, 0.5)
        validate_float(self.dedupe_fraction, "dedupe_fraction", 0, 1, exclusive_min=True)
        validate_float(self.setback_m, "setback_m", 0)
        if len(self.corner_offsets) == 0 or len(self.centroid_offsets) == 0:
            raise ValueError("parameters corner_offsets and centroid_offsets cannot be empty")
        for offset in self.corner_offsets + self.centroid_offsets:
            validate_float(offset, "offset", 0, 1)


DEFAULT_SEARCH_PARAMS = SearchParams()
