"""Tests for the normalized geometry model."""

import pytest

from zwsmap.layers.geometry import (
    BBox,
    Feature,
    FeatureCollection,
    Field,
    LineString,
    Point,
    Polygon,
    attributes_from_fields,
)


@pytest.mark.unit
class TestBBox:
    def test_around(self):
        b = BBox.around(69.5, 42.3, 0.5)
        assert b == BBox(69.0, 41.8, 70.0, 42.8)

    def test_to_param(self):
        assert BBox(1.0, 2.0, 3.5, 4.25).to_param() == "1.0,2.0,3.5,4.25"

    def test_of_coords_empty(self):
        assert BBox.of_coords([]) is None

    def test_union(self):
        a = BBox(0, 0, 1, 1)
        b = BBox(-1, 0.5, 0.5, 3)
        assert a.union(b) == BBox(-1, 0, 1, 3)


@pytest.mark.unit
class TestGeometryGeoJson:
    def test_point(self):
        assert Point((1.0, 2.0)).to_geojson() == {"type": "Point", "coordinates": [1.0, 2.0]}

    def test_linestring(self):
        line = LineString(((0.0, 0.0), (1.0, 1.0)))
        assert line.to_geojson()["coordinates"] == [[0.0, 0.0], [1.0, 1.0]]

    def test_polygon_ring_not_closed_on_export(self):
        poly = Polygon((((0.0, 0.0), (1.0, 0.0), (1.0, 1.0)),))
        assert poly.to_geojson()["coordinates"] == [[[0.0, 0.0], [1.0, 0.0], [1.0, 1.0]]]


@pytest.mark.unit
class TestFeatureCollection:
    def test_bounds_skip_features_without_geometry(self):
        fc = FeatureCollection((
            Feature({"a": "1"}, Point((5.0, 5.0))),
            Feature({"b": "2"}, None),
            Feature({}, LineString(((1.0, 2.0), (3.0, 8.0)))),
        ))
        assert fc.bounds() == BBox(1.0, 2.0, 5.0, 8.0)

    def test_bounds_none_when_nothing_drawable(self):
        fc = FeatureCollection((Feature({"a": "1"}),))
        assert fc.bounds() is None

    def test_first_and_len(self):
        fc = FeatureCollection((Feature({"n": "x"}), Feature({"n": "y"})))
        assert len(fc) == 2
        assert fc.first().attributes == {"n": "x"}


@pytest.mark.unit
class TestFeature:
    def test_attributes_are_read_only(self):
        feature = Feature({"name": "Valve"})
        with pytest.raises(TypeError):
            feature.attributes["name"] = "Pump"

    def test_attributes_copied_from_source_dict(self):
        source = {"name": "Valve"}
        feature = Feature(source)
        source["name"] = "Pump"
        assert feature.attributes == {"name": "Valve"}

    def test_equal_features_compare_equal(self):
        assert Feature({"id": "1"}, Point((1.0, 2.0))) == Feature({"id": "1"}, Point((1.0, 2.0)))


@pytest.mark.unit
class TestFields:
    def test_attributes_from_fields_last_wins(self):
        fields = [Field("Name", "A"), Field("Type", "pipe"), Field("Name", "B")]
        assert attributes_from_fields(fields) == {"Name": "B", "Type": "pipe"}
