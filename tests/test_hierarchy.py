"""
Unit tests for the AMR data model.

Checks box arithmetic, lazy loading of level data and the shape guard of
make_level.

"""

import numpy as np
import pytest

from astrodiag.hierarchy import Box, Level, make_level

from conftest import BOXES0, BOXES1, DOMAIN0, DX0


def test_box_shape_and_grow():
    box = Box((4, 8, 0), (11, 23, 0))
    assert box.shape == (8, 16, 1)
    assert box.numpts == 128
    assert box.grow((1, 1, 0)) == Box((3, 7, 0), (12, 24, 0))
    assert box.grow(2) == Box((2, 6, -2), (13, 25, 2))


def test_refine_coarsen():
    """Coarsening the fine box gives its parent footprint; refining it back is exact."""
    fine = BOXES1[0]
    coarse = fine.coarsen((2, 2, 1))
    assert coarse == Box((2, 4, 0), (5, 11, 0))
    assert coarse.refine((2, 2, 1)) == fine
    assert DOMAIN0.contains(coarse)

    # a box not aligned with the ratio coarsens to the cells it touches
    assert Box((3, 3, 0), (4, 4, 0)).coarsen(2) == Box((1, 1, 0), (2, 2, 0))


def test_intersection_and_contains():
    a, b = BOXES0
    assert a.intersection(b) is None
    assert a.grow((0, 1, 0)).intersection(b) == Box((0, 8, 0), (7, 8, 0))
    assert Box.bounding(BOXES0) == DOMAIN0
    assert not a.contains(b)


def test_slices():
    box = Box((4, 8, 0), (5, 9, 0))
    data = np.arange(10 * 12).reshape(10, 12, 1)
    np.testing.assert_array_equal(data[box.slices((0, 0, 0))][..., 0], [[56, 57], [68, 69]])


def test_box_dimension_mismatch():
    with pytest.raises(ValueError):
        Box((0, 0), (1, 1, 1))


def test_level_loads_once():
    calls = []

    def loader():
        calls.append(1)
        return [np.zeros(b.shape + (1,)) for b in BOXES0]

    level = Level(boxes=list(BOXES0), domain=DOMAIN0, cell_size=DX0, loader=loader)
    assert calls == []
    assert len(level.fabs) == 2
    assert len(level.fabs) == 2
    assert calls == [1]
    assert level.owners == [0, 0]


def test_make_level_shape_check():
    with pytest.raises(ValueError):
        make_level(BOXES0, [np.zeros((8, 8, 1, 2)), np.zeros((8, 7, 1, 2))], DOMAIN0, DX0)
