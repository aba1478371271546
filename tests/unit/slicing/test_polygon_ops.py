"""
Tests for polygon set algebra.

Covers the boolean laws the top surface extractor relies on, offset
behaviour (including collapse), and robustness against degenerate input.
"""

import pytest
from shapely.geometry import LineString
from shapely.geometry import Polygon as ShapelyPolygon

from openiron.core.exceptions import GeometryError
from openiron.core.geometry import PolygonSet
from openiron.slicing.polygon_ops import (
    clean,
    difference,
    from_shapely,
    intersection,
    offset,
    point_in_set,
    to_shapely,
    union,
)


def same_region(a: PolygonSet, b: PolygonSet) -> bool:
    """Regions are equal when both one-sided differences are empty."""
    return difference(a, b).is_empty and difference(b, a).is_empty


class TestDifference:
    """Tests for boolean difference."""

    def test_difference_with_empty_is_identity(self, square):
        result = difference(square, PolygonSet.empty())
        assert result.area() == pytest.approx(100.0)
        assert same_region(result, square)

    def test_difference_with_self_is_empty(self, square):
        assert difference(square, square).is_empty

    def test_empty_subject_gives_empty(self, square):
        assert difference(PolygonSet.empty(), square).is_empty

    def test_center_removed_leaves_annulus(self, square, center_square):
        result = difference(square, center_square)
        assert result.area() == pytest.approx(84.0)
        assert len(result.outers()) == 1
        assert len(result.holes()) == 1

    def test_result_is_subset_of_subject(self, square):
        other = PolygonSet.rectangle(5, -5, 15, 5)
        result = difference(square, other)
        assert result.area() == pytest.approx(75.0)
        assert difference(result, square).is_empty
        assert result.area() <= square.area()

    def test_disjoint_clip_leaves_subject(self, square):
        far = PolygonSet.rectangle(20, 20, 30, 30)
        assert same_region(difference(square, far), square)

    def test_clip_covering_subject_gives_empty(self, square):
        cover = PolygonSet.rectangle(-1, -1, 11, 11)
        assert difference(square, cover).is_empty


class TestUnionIntersection:
    """Tests for union and intersection."""

    def test_union_of_overlapping_squares(self, square):
        other = PolygonSet.rectangle(5, 0, 15, 10)
        assert union(square, other).area() == pytest.approx(150.0)

    def test_union_with_empty_first_argument(self, square):
        assert same_region(union(PolygonSet.empty(), square), square)

    def test_intersection_of_overlapping_squares(self, square):
        other = PolygonSet.rectangle(5, 5, 15, 15)
        assert intersection(square, other).area() == pytest.approx(25.0)

    def test_intersection_with_empty(self, square):
        assert intersection(square, PolygonSet.empty()).is_empty

    def test_self_intersecting_bowtie_is_repaired(self):
        bowtie = PolygonSet.from_polygons([[(0, 0), (10, 10), (10, 0), (0, 10)]])
        repaired = union(bowtie)
        assert repaired.area() == pytest.approx(50.0)
        assert len(repaired) == 2


class TestOffset:
    """Tests for polygon offsetting."""

    def test_shrink_square(self, square):
        result = offset(square, -2.0)
        assert result.area() == pytest.approx(36.0)
        bounds = result.bounds()
        assert bounds.min_x == pytest.approx(2.0)
        assert bounds.max_x == pytest.approx(8.0)

    def test_grow_square_keeps_corners(self, square):
        assert offset(square, 1.0).area() == pytest.approx(144.0)

    def test_zero_offset_returns_region(self, square):
        assert same_region(offset(square, 0.0), square)

    def test_shrink_past_inscribed_radius_is_empty(self, square):
        assert offset(square, -6.0).is_empty

    def test_shrink_exactly_to_collapse_is_empty(self, square):
        assert offset(square, -5.0).is_empty

    def test_shrink_widens_holes(self, annulus):
        # 8x8 outer minus 4x4 hole
        assert offset(annulus, -1.0).area() == pytest.approx(48.0)

    def test_result_never_has_negative_area(self, annulus):
        for distance in (-0.5, -1.5, -2.5, -3.0, -10.0):
            result = offset(annulus, distance)
            assert result.area() >= 0.0
            assert all(len(ring) >= 3 for ring in result)

    def test_offset_of_empty_is_empty(self):
        assert offset(PolygonSet.empty(), -1.0).is_empty
        assert offset(PolygonSet.empty(), 1.0).is_empty


class TestDegenerateInput:
    """Degenerate geometry must produce empty results, never errors."""

    def test_two_point_ring(self):
        degenerate = PolygonSet((((0.0, 0.0), (1.0, 1.0)),))
        assert difference(degenerate, PolygonSet.empty()).is_empty
        assert offset(degenerate, -0.1).is_empty

    def test_collinear_ring(self):
        collinear = PolygonSet.from_polygons([[(0, 0), (1, 0), (2, 0)]])
        assert difference(collinear, PolygonSet.empty()).is_empty

    def test_sub_grid_ring(self):
        tiny = PolygonSet.rectangle(0, 0, 0.0001, 0.0001)
        assert union(tiny).is_empty

    def test_degenerate_clip_is_ignored(self, square):
        degenerate = PolygonSet((((0.0, 0.0), (1.0, 1.0)),))
        assert same_region(difference(square, degenerate), square)


class TestClean:
    """Tests for vertex cleanup."""

    def test_removes_collinear_and_near_duplicate_vertices(self):
        noisy = PolygonSet.from_polygons([
            [(0, 0), (5, 0), (10, 0), (10, 10), (10, 10.001), (0, 10)],
        ])
        cleaned = clean(noisy)
        assert len(cleaned) == 1
        assert len(cleaned.polygons[0]) == 4
        assert cleaned.area() == pytest.approx(100.0, abs=0.02)

    def test_clean_empty(self):
        assert clean(PolygonSet.empty()).is_empty


class TestPointInSet:
    """Tests for nonzero-winding point containment."""

    def test_point_in_annulus(self, annulus):
        assert point_in_set((1.0, 1.0), annulus)
        assert not point_in_set((5.0, 5.0), annulus)
        assert not point_in_set((20.0, 20.0), annulus)

    def test_boundary_counts_as_inside(self, square):
        assert point_in_set((0.0, 5.0), square)


class TestShapelyConversion:
    """Tests for shapely interchange."""

    def test_annulus_to_shapely_pairs_hole(self, annulus):
        geometry = to_shapely(annulus)
        assert geometry.area == pytest.approx(96.0)
        assert len(geometry.geoms) == 1
        assert len(geometry.geoms[0].interiors) == 1

    def test_empty_to_shapely(self):
        assert to_shapely(PolygonSet.empty()).is_empty

    def test_from_shapely_orients_rings(self):
        shape = ShapelyPolygon(
            [(0, 0), (0, 10), (10, 10), (10, 0)],  # clockwise shell
            [[(4, 4), (6, 4), (6, 6), (4, 6)]],  # counter-clockwise hole
        )
        result = from_shapely(shape)
        assert len(result.outers()) == 1
        assert len(result.holes()) == 1
        assert result.area() == pytest.approx(96.0)

    def test_from_shapely_rejects_lines(self):
        with pytest.raises(GeometryError):
            from_shapely(LineString([(0, 0), (1, 1)]))
