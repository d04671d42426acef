import pytest

from floorit.services.geospatial import offset_coordinate
from floorit.services.loops.geometry import circularity, geometry_quality, overlap_penalty

CENTER = (-73.95, 41.70)


def _square_loop(side_mi: float = 2.0, per_side: int = 25):
    sw = CENTER
    nw = offset_coordinate(sw, 0, side_mi)
    ne = offset_coordinate(nw, 90, side_mi)
    se = offset_coordinate(sw, 90, side_mi)
    corners = [sw, nw, ne, se, sw]
    coords = []
    for (x1, y1), (x2, y2) in zip(corners, corners[1:]):
        for step in range(per_side):
            t = step / per_side
            coords.append((x1 + (x2 - x1) * t, y1 + (y2 - y1) * t))
    coords.append(sw)
    return coords


def _out_and_back(points: int = 50, spacing_mi: float = 0.05):
    out = [offset_coordinate(CENTER, 45, i * spacing_mi) for i in range(points)]
    return out + list(reversed(out))


def test_square_loop_is_circular_without_overlap():
    coords = _square_loop()
    assert circularity(coords) > 0.5
    assert overlap_penalty(coords) < 0.2


def test_out_and_back_is_flat_and_fully_overlapping():
    coords = _out_and_back()
    assert circularity(coords) == pytest.approx(0.0, abs=0.01)
    assert overlap_penalty(coords) >= 0.85


def test_elongated_shape_scores_zero_circularity():
    thin = [
        CENTER,
        offset_coordinate(CENTER, 0, 10.0),
        offset_coordinate(offset_coordinate(CENTER, 0, 10.0), 90, 1.0),
        offset_coordinate(CENTER, 90, 1.0),
        CENTER,
    ]
    assert circularity(thin) == 0.0


def test_short_sequences_return_zero():
    assert circularity(_square_loop()[:2]) == 0.0
    assert overlap_penalty(_square_loop()[:9]) == 0.0


def test_metrics_stay_in_unit_range():
    zigzag = [
        offset_coordinate(CENTER, 90 if i % 2 else 0, 0.3 * (i % 7)) for i in range(60)
    ]
    for coords in (zigzag, _square_loop(), _out_and_back()):
        assert 0.0 <= circularity(coords) <= 1.0
        assert 0.0 <= overlap_penalty(coords) <= 1.0


def test_geometry_quality_weights():
    assert geometry_quality(1.0, 0.0, 1800, 1800) == pytest.approx(1.0)
    assert geometry_quality(0.0, 1.0, 1800, 1800) == pytest.approx(0.2)
    assert geometry_quality(0.5, 0.5, 3600, 1800) == pytest.approx(0.5 * 0.45 + 0.5 * 0.35)
    assert geometry_quality(0.5, 0.5, 1800, 0) == pytest.approx(0.5 * 0.45 + 0.5 * 0.35)
