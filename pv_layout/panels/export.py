# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
import json
from typing import Iterable

from pv_layout.datatypes import PanelPosition


def panels_to_geojson(panels: Iterable[PanelPosition]) -> dict:
    """
    GeoJSON FeatureCollection of panel polygons, for map rendering.
    """
    return {
        "type": "FeatureCollection",
        "features": [{
            "type": "Feature",
            "id": panel.id,
            "properties": {
                "id": panel.id,
                "sectionId": panel.section_id,
                "rotation": panel.rotation,
                "orientation": panel.orientation,
            },
            "geometry": {
                "type": "Polygon",
                "coordinates": [[list(c) for c in panel.ring]],
            },
        } for panel in panels],
    }


def write_geojson(feature_collection: dict, geojson_file: str):
    with open(geojson_file, 'w') as f:
        json.dump(feature_collection, f)
