# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
import json
import logging
import multiprocessing as mp
import time
from typing import List, Optional, Sequence, Union

from shapely.errors import ShapelyError
from shapely.geometry import Polygon

from pv_layout.constants import LANDSCAPE, PORTRAIT, AUTO, LAYOUT_STYLES
from pv_layout.datatypes import RoofPolygon, PanelLayoutResult, PanelPosition
from pv_layout.geos import metres_to_degrees_lng, metres_to_degrees_lat, to_local_metres, \
    from_local_metres, largest_polygon
from pv_layout.panel_spec import PanelSpec, default_panel_spec
from pv_layout.panels.grid_search import search_grid
from pv_layout.panels.search_params import SearchParams, DEFAULT_SEARCH_PARAMS
from pv_layout.panels.shape_analysis import analyse_shape
from pv_layout.util import validate_str


def calculate_panel_layout(roof: RoofPolygon,
                           panel_spec: Optional[PanelSpec] = None,
                           params: SearchParams = DEFAULT_SEARCH_PARAMS,
                           layout_style: str = LANDSCAPE) -> PanelLayoutResult:
    """
    Lay out panels on a single roof section.

    Panels are aligned north/south whatever the roof azimuth. `layout_style`
    is `landscape`, `portrait`, or `auto` to use whichever orientation fits
    more panels. A section that can't fit any panels - including degenerate
    polygons - gives an empty result rather than an error.
    """
    layout_style = validate_str(layout_style, "layout_style", LAYOUT_STYLES)
    if panel_spec is None:
        panel_spec = default_panel_spec()

    if roof.is_degenerate:
        logging.debug(f"Roof section {roof.section_id} is degenerate, no panels placed")
        return PanelLayoutResult.empty(layout_style=layout_style)

    orientations = (LANDSCAPE, PORTRAIT) if layout_style == AUTO else (layout_style,)
    try:
        usable_roof = _usable_roof(roof, params)
        if usable_roof is None:
            logging.debug(f"Roof section {roof.section_id}: nothing left after {params.setback_m}m setback")
            return PanelLayoutResult.empty(roof.area_m2, layout_style)

        panels = []
        orientation = orientations[0]
        for candidate in orientations:
            candidate_panels = _roof_panels(usable_roof, panel_spec, params, candidate)
            if len(candidate_panels) > len(panels):
                panels = candidate_panels
                orientation = candidate
    except ShapelyError as e:
        logging.warning(f"Error on panel placement for roof section {roof.section_id}: {e}")
        return PanelLayoutResult.empty(roof.area_m2, layout_style)

    return _layout_result(panels, roof.area_m2, usable_roof.area_m2, panel_spec, layout_style, orientation)


def calculate_panel_layout_for_ring(ring: Sequence[Sequence[float]],
                                    azimuth: float = 180.0,
                                    section_id: str = "section-1",
                                    panel_spec: Optional[PanelSpec] = None,
                                    params: SearchParams = DEFAULT_SEARCH_PARAMS,
                                    layout_style: str = LANDSCAPE) -> PanelLayoutResult:
    return calculate_panel_layout(RoofPolygon.from_ring(ring, azimuth, section_id), panel_spec, params, layout_style)


def calculate_multi_section_layout(feature_collection: Union[str, dict, None],
                                   sections: List[dict],
                                   panel_spec: Optional[PanelSpec] = None,
                                   params: SearchParams = DEFAULT_SEARCH_PARAMS,
                                   workers: int = 1,
                                   layout_style: str = LANDSCAPE) -> PanelLayoutResult:
    """
    Lay out panels on every section of a roof.

    :param feature_collection: GeoJSON FeatureCollection of roof section polygons.
    :param sections: section metadata `{id, azimuth, area}`, aligned with the
    features by index.
    :param workers: sections are laid out in a pool of this many processes if > 1.
    :param layout_style: `landscape`, `portrait` or `auto`, chosen per section.
    """
    layout_style = validate_str(layout_style, "layout_style", LAYOUT_STYLES)
    if panel_spec is None:
        panel_spec = default_panel_spec()

    roofs = roofs_from_feature_collection(feature_collection, sections)
    if not roofs:
        return PanelLayoutResult.empty(layout_style=layout_style)

    start_time = time.time()
    if workers > 1 and len(roofs) > 1:
        workers = min(workers, len(roofs))
        logging.info(f"Placing panels on {len(roofs)} roof sections using {workers} parallel processes...")
        with mp.get_context("spawn").Pool(workers) as pool:
            results = pool.starmap(calculate_panel_layout,
                                   ((roof, panel_spec, params, layout_style) for roof in roofs))
    else:
        results = [calculate_panel_layout(roof, panel_spec, params, layout_style) for roof in roofs]

    combined = combine_results(results)
    logging.info(f"Placed {combined.total_panels} panels on {len(roofs)} roof sections, "
                 f"took {round(time.time() - start_time, 2)} s.")
    return combined


def roofs_from_feature_collection(feature_collection: Union[str, dict, None],
                                  sections: List[dict]) -> List[RoofPolygon]:
    if isinstance(feature_collection, str):
        feature_collection = json.loads(feature_collection)
    if not feature_collection or not feature_collection.get('features'):
        return []

    roofs = []
    for index, feature in enumerate(feature_collection['features']):
        geometry = feature.get('geometry') or {}
        if geometry.get('type') != 'Polygon':
            logging.debug(f"Skipping roof feature {index}: not a Polygon")
            continue
        if index >= len(sections) or sections[index] is None:
            logging.debug(f"Skipping roof feature {index}: no roof section for it")
            continue

        section = sections[index]
        roofs.append(RoofPolygon.from_ring(geometry['coordinates'][0],
                                           azimuth=section.get('azimuth', 180.0),
                                           section_id=str(section['id'])))
    return roofs


def combine_results(results: List[PanelLayoutResult]) -> PanelLayoutResult:
    """
    Combine the layouts of independent roof sections. Coverage is the total
    installed area over the total roof area of all the sections. The panel
    orientation reported is that of the largest section.
    """
    if not results:
        return PanelLayoutResult.empty()

    panels = []
    capacity = 0.0
    roof_area = 0.0
    installed_area = 0.0
    usable_area = 0.0
    for result in results:
        panels.extend(result.panels)
        capacity += result.estimated_capacity_kw
        roof_area += result.total_roof_area_m2
        installed_area += result.installed_area_m2
        usable_area += result.usable_area_m2

    largest = max(results, key=lambda r: r.total_roof_area_m2)
    return PanelLayoutResult(
        panels=tuple(panels),
        total_panels=len(panels),
        coverage_percent=_coverage_percent(installed_area, roof_area),
        estimated_capacity_kw=capacity,
        total_roof_area_m2=roof_area,
        installed_area_m2=installed_area,
        usable_area_m2=usable_area,
        layout_style=results[0].layout_style,
        panel_orientation=largest.panel_orientation)


def _usable_roof(roof: RoofPolygon, params: SearchParams) -> Optional[RoofPolygon]:
    """The roof after any edge setback, or None if nothing is left"""
    if params.setback_m > 0:
        return _set_back(roof, params.setback_m)
    return roof


def _roof_panels(roof: RoofPolygon, panel_spec: PanelSpec, params: SearchParams,
                 orientation: str = LANDSCAPE) -> List[PanelPosition]:
    """
    Convert the panel dimensions for `orientation` to degrees at the roof's own
    latitude, and run the grid search over the roof.
    """
    lat = roof.reference_latitude
    module_w_m, module_h_m = panel_spec.module_m(orientation)
    footprint_w_m, footprint_h_m = panel_spec.footprint_m(orientation)

    module = (metres_to_degrees_lng(module_w_m, lat), metres_to_degrees_lat(module_h_m))
    footprint = (metres_to_degrees_lng(footprint_w_m, lat), metres_to_degrees_lat(footprint_h_m))
    lng_scale = metres_to_degrees_lng(1.0, lat) / metres_to_degrees_lat(1.0)

    shape = analyse_shape(roof)
    result = search_grid(roof.polygon, footprint, module, roof.section_id, shape, params, lng_scale,
                         orientation=orientation)
    return result.panels


def _set_back(roof: RoofPolygon, setback_m: float) -> Optional[RoofPolygon]:
    """
    Shrink the roof by `setback_m` metres from every edge. Buffered in a local
    metre grid, as degrees of longitude and latitude are different lengths.
    """
    origin = roof.centroid
    local = to_local_metres(roof.polygon, origin)
    shrunk = largest_polygon(local.buffer(-setback_m, join_style='mitre'))
    if shrunk is None or shrunk.area <= 0:
        return None
    shrunk: Polygon = from_local_metres(shrunk, origin)
    return RoofPolygon.from_ring(shrunk.exterior.coords, roof.azimuth, roof.section_id)


def _layout_result(panels: List[PanelPosition], roof_area_m2: float, usable_area_m2: float,
                   panel_spec: PanelSpec, layout_style: str, orientation: str) -> PanelLayoutResult:
    installed_area = len(panels) * panel_spec.footprint_area_m2(orientation)
    return PanelLayoutResult(
        panels=tuple(panels),
        total_panels=len(panels),
        coverage_percent=_coverage_percent(installed_area, roof_area_m2),
        estimated_capacity_kw=len(panels) * panel_spec.wattage_w / 1000,
        total_roof_area_m2=roof_area_m2,
        installed_area_m2=installed_area,
        usable_area_m2=usable_area_m2,
        layout_style=layout_style,
        panel_orientation=orientation)


def _coverage_percent(installed_area_m2: float, roof_area_m2: float) -> float:
    if roof_area_m2 <= 0:
        return 0.0
    return min(100.0, installed_area_m2 / roof_area_m2 * 100)
