# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
import argparse
import json
import logging

from pv_layout.constants import LANDSCAPE, LAYOUT_STYLES
from pv_layout.panel_spec import load_panel_spec, default_panel_spec
from pv_layout.panels.export import panels_to_geojson, write_geojson
from pv_layout.panels.layout import calculate_multi_section_layout
from pv_layout.panels.search_params import SearchParams
from pv_layout.util import get_cpu_count


def _sections(feature_collection: dict):
    """
    Section metadata from each roof feature's properties: `id` (defaults to
    `section-{n}`) and `azimuth` (defaults to 180).
    """
    sections = []
    for i, feature in enumerate(feature_collection.get('features', [])):
        props = feature.get('properties') or {}
        sections.append({
            "id": props.get('id', feature.get('id', f"section-{i + 1}")),
            "azimuth": props.get('azimuth', 180.0),
            "area": props.get('area'),
        })
    return sections


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO,
                        format='[%(asctime)s] %(levelname)s: %(message)s')

    parser = argparse.ArgumentParser(description="Lay out PV panels on roof sections")

    parser.add_argument("--roofs", metavar="FILE", required=True,
                        help="GeoJSON FeatureCollection of roof section polygons in EPSG:4326. "
                             "Each feature can have `id` and `azimuth` properties")
    parser.add_argument("--out", metavar="FILE", required=True, help="Output GeoJSON file of panel polygons")
    parser.add_argument("--panel_spec", metavar="FILE", default=None,
                        help="JSON panel spec (width_mm, length_mm, wattage_w, spacing_h_m, spacing_v_m). "
                             "Defaults to the file named by env var PV_LAYOUT_PANEL_SPEC, or the built-in module")
    parser.add_argument("--setback_m", default=0.0, type=float, metavar="FLOAT",
                        help="Distance to keep panels back from roof edges in metres (default 0)")
    parser.add_argument("--workers", default=1, type=int, metavar="INT",
                        help=f"Parallel processes to use (default 1, available {get_cpu_count()})")
    parser.add_argument("--layout_style", default=LANDSCAPE, choices=LAYOUT_STYLES,
                        help="Panel orientation: landscape, portrait, or auto to use whichever fits more "
                             "panels on each roof section (default landscape)")

    args = parser.parse_args()

    with open(args.roofs) as f:
        roofs = json.load(f)

    panel_spec = load_panel_spec(args.panel_spec) if args.panel_spec else default_panel_spec()
    result = calculate_multi_section_layout(
        roofs,
        _sections(roofs),
        panel_spec=panel_spec,
        params=SearchParams(setback_m=args.setback_m),
        workers=args.workers,
        layout_style=args.layout_style)

    write_geojson(panels_to_geojson(result.panels), args.out)

    summary = result.to_dict()
    del summary['panels']
    print(json.dumps(summary, indent=2))
