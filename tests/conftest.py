"""
Shared fixtures for the astrodiag tests.

Builds small synthetic hierarchies in memory (and on disk as plotfiles):

 - a 2-D, two-level hierarchy seen by a 3-D build, with analytic profiles
   T(y) = 1e7 + 1e6 y^3 and P(y) = 1e16 (3 - y), uniform composition;
 - helpers to build hierarchies from arbitrary profile functions.

"""

import numpy as np
import pytest

from astrodiag import Box, Hierarchy, make_level, species_from_names, write_plotfile

# ──────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────

VARNAMES = ["density", "Temp", "pressure", "x_velocity", "y_velocity", "tpert", "X(He4)", "X(C12)"]
SPECIES = species_from_names(["He4", "C12"])

PROB_LO = (0.0, 0.0, 0.0)
PROB_HI = (1.0, 2.0, 1.0)
DX0 = (0.125, 0.125, 1.0)
DX1 = (0.0625, 0.0625, 1.0)

DOMAIN0 = Box((0, 0, 0), (7, 15, 0))
DOMAIN1 = Box((0, 0, 0), (15, 31, 0))

# level 0 split in two boxes along y; level 1 covers the middle of the domain
BOXES0 = [Box((0, 0, 0), (7, 7, 0)), Box((0, 8, 0), (7, 15, 0))]
BOXES1 = [Box((4, 8, 0), (11, 23, 0))]


def temperature(x, y):
    return 1.0e7 + 1.0e6 * y**3


def pressure(x, y):
    return 1.0e16 * (3.0 - y)


DEFAULT_PROFILES = {
    "density": lambda x, y: np.full_like(x, 1.0e5),
    "Temp": temperature,
    "pressure": pressure,
    "x_velocity": lambda x, y: np.zeros_like(x),
    "y_velocity": lambda x, y: 1.0e5 * np.sin(np.pi * x),
    "tpert": lambda x, y: 1.0e4 * np.cos(np.pi * y),
    "X(He4)": lambda x, y: np.full_like(x, 0.5),
    "X(C12)": lambda x, y: np.full_like(x, 0.5),
}


# ──────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────

def cell_centers(box, dx, prob_lo=PROB_LO):
    """Physical x and y of every cell of `box`, shaped like the box."""
    axes = [prob_lo[d] + (np.arange(box.lo[d], box.hi[d] + 1) + 0.5) * dx[d] for d in range(box.ndim)]
    grids = np.meshgrid(*axes, indexing="ij")
    return grids[0], grids[1]


def fill_box(box, dx, profiles, varnames):
    x, y = cell_centers(box, dx)
    return np.stack([np.asarray(profiles[name](x, y), dtype=float) for name in varnames], axis=-1)


def build_hierarchy(profiles=None, varnames=None, time=0.5):
    """Two-level 2-D hierarchy in a 3-D index space, filled from `profiles`."""
    profiles = dict(DEFAULT_PROFILES, **(profiles or {}))
    varnames = list(varnames or VARNAMES)

    level0 = make_level(BOXES0, [fill_box(b, DX0, profiles, varnames) for b in BOXES0], DOMAIN0, DX0, step=10)
    level1 = make_level(BOXES1, [fill_box(b, DX1, profiles, varnames) for b in BOXES1], DOMAIN1, DX1, step=20)
    level0.owners = [0, 1]

    return Hierarchy(
        varnames=varnames,
        levels=[level0, level1],
        ndims=2,
        prob_lo=PROB_LO,
        prob_hi=PROB_HI,
        ref_ratios=[(2, 2, 2)],
        time=time,
    )


# ──────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────

@pytest.fixture
def hierarchy():
    return build_hierarchy()


@pytest.fixture
def species():
    return SPECIES


@pytest.fixture
def plotfile(tmp_path, hierarchy):
    """The default hierarchy written to disk as plt00000."""
    path = tmp_path / "plt00000"
    write_plotfile(hierarchy, str(path))
    return str(path)
