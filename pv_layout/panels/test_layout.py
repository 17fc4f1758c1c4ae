# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
import json
import unittest
from unittest import mock

from shapely.errors import ShapelyError
from shapely.geometry import Polygon

from pv_layout.datatypes import RoofPolygon, PanelLayoutResult
from pv_layout.geos import degrees_to_metres_lat, degrees_to_metres_lng
from pv_layout.geos import overlap_ratio
from pv_layout.panel_spec import DEFAULT_PANEL_SPEC, PanelSpec
from pv_layout.panels.layout import calculate_panel_layout, calculate_panel_layout_for_ring, \
    calculate_multi_section_layout, roofs_from_feature_collection, combine_results
from pv_layout.panels.search_params import SearchParams
from pv_layout.test_utils.test_funcs import rect_roof, footprint_spec, ring_from_metres

# 2.0m x 1.25m footprint, 1.961m x 1.134m module:
_SPEC = footprint_spec(2.0, 1.25, 0.039, 0.116, 440)


def _feature(ring, geom_type='Polygon'):
    if geom_type == 'Polygon':
        geometry = {"type": "Polygon", "coordinates": [[list(c) for c in ring]]}
    else:
        geometry = {"type": "Point", "coordinates": list(ring[0])}
    return {"type": "Feature", "properties": {}, "geometry": geometry}


class PanelLayoutTest(unittest.TestCase):

    def test_rectangular_roof(self):
        result = calculate_panel_layout(rect_roof(10, 6), _SPEC)
        assert result.total_panels == 20
        assert len(result.panels) == 20
        assert abs(result.coverage_percent - 83.33) < 0.01
        assert abs(result.estimated_capacity_kw - 8.8) < 1e-9
        assert abs(result.total_roof_area_m2 - 60.0) < 0.01
        assert abs(result.installed_area_m2 - 50.0) < 1e-9

    def test_exact_fit(self):
        w, h = DEFAULT_PANEL_SPEC.landscape_footprint_m
        result = calculate_panel_layout(rect_roof(5 * w, 4 * h), DEFAULT_PANEL_SPEC)
        assert result.total_panels == 20
        assert abs(result.estimated_capacity_kw - 10.0) < 1e-9
        assert abs(result.coverage_percent - 100.0) < 1e-6
        assert sorted({p.row for p in result.panels}) == [0, 1, 2, 3]
        assert sorted({p.column for p in result.panels}) == [0, 1, 2, 3, 4]

    def test_exact_fit_without_spacing(self):
        # 2m x 1.25m modules with no spacing between them:
        spec = PanelSpec(1250, 2000, 440)
        for cols, rows in [(5, 4), (3, 2), (1, 1)]:
            with self.subTest(f"{cols}x{rows}"):
                result = calculate_panel_layout(rect_roof(cols * 2.0, rows * 1.25), spec)
                assert result.total_panels == cols * rows
                assert abs(result.coverage_percent - 100.0) < 1e-6

    def test_result_invariants(self):
        roof = RoofPolygon.from_ring(ring_from_metres(
            [(0, 0), (14, 0), (14, 5), (7, 5), (7, 12), (0, 12)]), section_id="L")
        result = calculate_panel_layout(roof, DEFAULT_PANEL_SPEC)

        assert result.total_panels > 0
        assert result.total_panels == len(result.panels)
        assert 0 <= result.coverage_percent <= 100
        assert result.estimated_capacity_kw == result.total_panels * DEFAULT_PANEL_SPEC.wattage_w / 1000
        assert len({p.id for p in result.panels}) == result.total_panels

        polygons = [Polygon(p.ring) for p in result.panels]
        for i, panel in enumerate(polygons):
            assert result.panels[i].section_id == "L"
            assert overlap_ratio(panel, roof.polygon) >= 0.9
            for other in polygons[i + 1:]:
                assert panel.intersection(other).area < 1e-20

    def test_idempotent(self):
        roof = RoofPolygon.from_ring(ring_from_metres(
            [(0, 0), (14, 0), (14, 5), (7, 5), (7, 12), (0, 12)]))
        assert calculate_panel_layout(roof, _SPEC) == calculate_panel_layout(roof, _SPEC)

    def test_azimuth_does_not_change_layout(self):
        ring = ring_from_metres([(-5, -3), (5, -3), (5, 3), (-5, 3)])
        south = calculate_panel_layout_for_ring(ring, 180, panel_spec=_SPEC)
        east = calculate_panel_layout_for_ring(ring, 90, panel_spec=_SPEC)
        assert south == east
        assert all(p.rotation == 0.0 for p in south.panels)

    def test_no_panels(self):
        tiny = calculate_panel_layout(rect_roof(1, 0.5), _SPEC)
        assert tiny.total_panels == 0
        assert tiny.panels == ()
        assert tiny.coverage_percent == 0.0
        assert tiny.estimated_capacity_kw == 0.0

        line = calculate_panel_layout_for_ring(ring_from_metres([(0, 0), (5, 5), (10, 10)]), panel_spec=_SPEC)
        assert line == PanelLayoutResult.empty()

        assert calculate_panel_layout(RoofPolygon(section_id="s", ring=()), _SPEC) == PanelLayoutResult.empty()

    def test_geometry_error(self):
        roof = rect_roof(10, 6)
        with mock.patch('pv_layout.panels.layout._roof_panels', side_effect=ShapelyError("bad geometry")):
            result = calculate_panel_layout(roof, _SPEC)
        assert result.total_panels == 0
        assert result.total_roof_area_m2 == roof.area_m2

    def test_setback(self):
        roof = rect_roof(10, 6)
        set_back = calculate_panel_layout(roof, _SPEC, SearchParams(setback_m=0.5))
        assert 0 < set_back.total_panels < 20
        # coverage is still of the whole roof:
        assert abs(set_back.total_roof_area_m2 - 60.0) < 0.01

        inner = rect_roof(9, 5).polygon
        for panel in set_back.panels:
            assert overlap_ratio(Polygon(panel.ring), inner) >= 0.9 - 1e-6

        assert abs(set_back.usable_area_m2 - 45.0) < 0.01
        assert calculate_panel_layout(roof, _SPEC, SearchParams(setback_m=4)).total_panels == 0

    def test_usable_area(self):
        result = calculate_panel_layout(rect_roof(10, 6), _SPEC)
        assert result.usable_area_m2 == result.total_roof_area_m2
        assert calculate_panel_layout(rect_roof(10, 6), _SPEC, SearchParams(setback_m=4)).usable_area_m2 == 0.0

    def test_portrait(self):
        roof = rect_roof(10, 6)
        result = calculate_panel_layout(roof, _SPEC, layout_style="portrait")
        assert result.total_panels > 0
        assert result.layout_style == "portrait"
        assert result.panel_orientation == "portrait"
        assert abs(result.installed_area_m2 - result.total_panels * _SPEC.footprint_area_m2("portrait")) < 1e-9

        lat = roof.reference_latitude
        for panel in result.panels:
            assert panel.orientation == "portrait"
            assert panel.rotation == 0.0
            min_x, min_y, max_x, max_y = Polygon(panel.ring).bounds
            # the long edge of the module runs north/south:
            assert abs(degrees_to_metres_lng(max_x - min_x, lat) - _SPEC.width_m) < 1e-6
            assert abs(degrees_to_metres_lat(max_y - min_y) - _SPEC.length_m) < 1e-6

    def test_auto(self):
        for roof in [rect_roof(10, 6), rect_roof(1.3, 6), rect_roof(6, 1.3), rect_roof(1, 0.5)]:
            with self.subTest(str(roof.ring[0])):
                landscape = calculate_panel_layout(roof, _SPEC, layout_style="landscape")
                portrait = calculate_panel_layout(roof, _SPEC, layout_style="portrait")
                auto = calculate_panel_layout(roof, _SPEC, layout_style="auto")
                assert auto.layout_style == "auto"
                assert auto.total_panels == max(landscape.total_panels, portrait.total_panels)
                # landscape unless portrait fits more:
                expected = "portrait" if portrait.total_panels > landscape.total_panels else "landscape"
                assert auto.panel_orientation == expected
                assert all(p.orientation == expected for p in auto.panels)

        # only a portrait module fits across a 1.3m wide roof:
        narrow = calculate_panel_layout(rect_roof(1.3, 6), _SPEC, layout_style="auto")
        assert narrow.total_panels > 0
        assert narrow.panel_orientation == "portrait"

        tiny = calculate_panel_layout(rect_roof(1, 0.5), _SPEC, layout_style="auto")
        assert tiny.total_panels == 0
        assert tiny.panel_orientation == "landscape"

    def test_bad_layout_style(self):
        with self.assertRaises(ValueError):
            calculate_panel_layout(rect_roof(10, 6), _SPEC, layout_style="diagonal")
        with self.assertRaises(ValueError):
            calculate_multi_section_layout(None, [], _SPEC, layout_style=None)


class MultiSectionLayoutTest(unittest.TestCase):

    def _roofs(self):
        ring = rect_roof(10, 6).ring
        return {
            "type": "FeatureCollection",
            "features": [_feature(ring), _feature(ring, 'Point'), _feature(ring), _feature(ring)]
        }

    _SECTIONS = [{"id": "a", "azimuth": 180}, {"id": "p"}, {"id": "b", "azimuth": 90}]

    def test_roofs_from_feature_collection(self):
        roofs = roofs_from_feature_collection(self._roofs(), self._SECTIONS)
        # the point and the feature with no section are skipped:
        assert [r.section_id for r in roofs] == ["a", "b"]
        assert [r.azimuth for r in roofs] == [180.0, 90.0]

        assert roofs_from_feature_collection(json.dumps(self._roofs()), self._SECTIONS) == roofs
        assert roofs_from_feature_collection(None, []) == []
        assert roofs_from_feature_collection({"type": "FeatureCollection", "features": []}, []) == []

    def test_multi_section(self):
        result = calculate_multi_section_layout(self._roofs(), self._SECTIONS, _SPEC)
        assert result.total_panels == 40
        assert abs(result.estimated_capacity_kw - 17.6) < 1e-9
        assert abs(result.coverage_percent - 83.33) < 0.01
        assert len({p.id for p in result.panels}) == 40
        assert {p.section_id for p in result.panels} == {"a", "b"}

    def test_multi_section_empty(self):
        assert calculate_multi_section_layout(None, [], _SPEC) == PanelLayoutResult.empty()
        assert calculate_multi_section_layout(self._roofs(), [], _SPEC) == PanelLayoutResult.empty()

    def test_parallel_matches_sequential(self):
        sequential = calculate_multi_section_layout(self._roofs(), self._SECTIONS, _SPEC)
        parallel = calculate_multi_section_layout(self._roofs(), self._SECTIONS, _SPEC, workers=2)
        assert parallel == sequential

    def test_combine_results(self):
        a = calculate_panel_layout(rect_roof(10, 6, section_id="a"), _SPEC)
        tiny = calculate_panel_layout(rect_roof(1, 0.5, section_id="t"), _SPEC)
        combined = combine_results([a, tiny])
        assert combined.total_panels == 20
        assert abs(combined.total_roof_area_m2 - 60.5) < 0.01
        assert abs(combined.coverage_percent - 50 / 60.5 * 100) < 0.01
        assert combined.panel_orientation == "landscape"
        assert combine_results([]) == PanelLayoutResult.empty()

    def test_combine_orientation_from_largest_section(self):
        small = calculate_panel_layout(rect_roof(10, 6, section_id="s"), _SPEC)
        large = calculate_panel_layout(rect_roof(12, 8, section_id="l"), _SPEC, layout_style="portrait")
        combined = combine_results([small, large])
        assert combined.layout_style == "landscape"
        assert combined.panel_orientation == "portrait"
        assert abs(combined.usable_area_m2 - (small.usable_area_m2 + large.usable_area_m2)) < 1e-9


if __name__ == '__main__':
    unittest.main()
