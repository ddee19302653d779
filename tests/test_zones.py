"""
Tests for zone classification
"""

import pytest

from gazedwell.exceptions import ConfigurationError
from gazedwell.tracking.sample_filter import GazeSample
from gazedwell.tracking.zones import Bounds, GridSpec, Zone, ZoneClassifier, classify


W, H = 1920, 1080


class TestBands:
    """Banded layout (thirds horizontally, 2 or 3 rows)"""

    @pytest.mark.parametrize("pos,expected", [
        ((100, 100), Zone("up", "left")),
        ((960, 540), Zone("middle", "center")),
        ((1900, 1000), Zone("down", "right")),
        ((640, 360), Zone("middle", "center")),
        ((639.9, 359.9), Zone("up", "left")),
    ])
    def test_three_rows(self, pos, expected):
        assert classify(pos, W, H, GridSpec.bands(3)) == expected

    def test_two_rows(self):
        grid = GridSpec.bands(2)
        assert classify((100, 539), W, H, grid) == Zone("up", "left")
        assert classify((100, 540), W, H, grid) == Zone("down", "left")

    def test_accepts_gaze_sample(self):
        assert classify(GazeSample(1500, 100), W, H, GridSpec.bands()) == Zone("up", "right")

    def test_zone_listing(self):
        assert len(GridSpec.bands(3).zones()) == 9
        assert len(GridSpec.bands(2).zones()) == 6
        assert GridSpec.bands(3).zones()[0] == Zone("up", "left")


class TestNearest:
    """Nearest cell center over a container"""

    def test_cells(self):
        grid = GridSpec.nearest(3)
        assert classify((150, 150), 900, 900, grid) == Zone(0, 0)
        assert classify((449, 450), 900, 900, grid) == Zone(1, 1)
        assert classify((899, 10), 900, 900, grid) == Zone(0, 2)

    def test_outside_container_is_none(self):
        bounds = Bounds(100, 100, 300, 300)
        grid = GridSpec.nearest(3)
        assert classify((50, 50), W, H, grid, bounds) is None
        assert classify((400, 250), W, H, grid, bounds) is None
        assert classify((110, 110), W, H, grid, bounds) == Zone(0, 0)
        assert classify((399, 399), W, H, grid, bounds) == Zone(2, 2)

    def test_tie_goes_to_first_cell_row_major(self):
        # (50, 25) is equidistant from the centers of (0, 0) and (0, 1)
        assert classify((50, 25), 100, 100, GridSpec.nearest(2)) == Zone(0, 0)

    def test_zone_listing(self):
        assert GridSpec.nearest(4).zones()[-1] == Zone(3, 3)


def test_classifier_resize():
    classifier = ZoneClassifier(GridSpec.bands(), 1920, 1080)
    assert classifier.classify((700, 100)) == Zone("up", "center")
    classifier.resize(3000, 1080)
    assert classifier.classify((700, 100)) == Zone("up", "left")


@pytest.mark.parametrize("factory", [
    lambda: GridSpec(mode="nearest", size=0),
    lambda: GridSpec(mode="bands", rows=4),
    lambda: GridSpec(mode="spiral"),
    lambda: Bounds(0, 0, 0, 100),
    lambda: classify((1, 1), 0, 100, GridSpec.bands()),
    lambda: ZoneClassifier(GridSpec.bands(), -1, 100),
])
def test_invalid_geometry_rejected(factory):
    with pytest.raises(ConfigurationError):
        factory()


class TestZoneParse:

    def test_named(self):
        assert Zone.parse("up-left") == Zone("up", "left")

    def test_indexed(self):
        assert Zone.parse("1-2") == Zone(1, 2)

    def test_pair(self):
        assert Zone.parse(["down", "right"]) == Zone("down", "right")

    def test_mapping(self):
        assert Zone.parse({"row": 0, "col": 1}) == Zone(0, 1)

    @pytest.mark.parametrize("value", [{"r": 0, "c": 1}, {"row": 0}, {}])
    def test_mapping_without_row_and_col(self, value):
        with pytest.raises(ValueError):
            Zone.parse(value)

    def test_passthrough(self):
        zone = Zone(0, 0)
        assert Zone.parse(zone) is zone

    def test_invalid(self):
        with pytest.raises(ValueError):
            Zone.parse("center")

    def test_str_roundtrip(self):
        assert Zone.parse(str(Zone("middle", "center"))) == Zone("middle", "center")
