#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

─────────────────────────────────────────────────────────────
Example Usage of astrodiag
─────────────────────────────────────────────────────────────

This script builds a small two-level, 2-D plotfile of a
stratified atmosphere and runs both diagnostic tools on it.

Features demonstrated:
1. Writing a hierarchy as an AMReX plotfile
2. Listing the variables of a plotfile
3. Performing a dry run (no files written)
4. Computing convective gradients and fluxes
5. Exporting the gradients to VTKHDF for ParaView

─────────────────────────────────────────────────────────────

"""

import os

import numpy as np

from astrodiag import (
    Box,
    DiagnosticPipeline,
    DiagnosticsConfig,
    Hierarchy,
    list_fields_for_plotfile,
    make_level,
    read_plotfile,
    species_from_names,
    write_plotfile,
)
from astrodiag.pipeline import setup_logging

# ──────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────

OUTPUT_ROOT = "example_outputs"

PLOTFILE = os.path.join(OUTPUT_ROOT, "plt00000")

VARNAMES = ["density", "Temp", "pressure", "x_velocity", "y_velocity", "tpert", "X(He4)", "X(C12)"]

SPECIES = species_from_names(["He4", "C12"])


# ──────────────────────────────────────────────────────────────
# Helper Functions
# ──────────────────────────────────────────────────────────────


def atmosphere(box, dx):
    """Isothermal-ish polytrope with a helium layer on top and a few plumes."""
    x = (np.arange(box.lo[0], box.hi[0] + 1) + 0.5) * dx[0]
    y = (np.arange(box.lo[1], box.hi[1] + 1) + 0.5) * dx[1]
    x, y = np.meshgrid(x, y, indexing="ij")

    rho = 1.0e6 * (1.0 - 0.3 * y)
    T = 5.0e8 * (1.0 - 0.25 * y)
    p = 1.0e23 * (1.0 - 0.3 * y) * (1.0 - 0.25 * y)
    vx = np.zeros_like(x)
    vy = 2.0e6 * np.sin(4.0 * np.pi * x) * np.sin(np.pi * y)
    tpert = 1.0e6 * np.sin(4.0 * np.pi * x) * np.sin(np.pi * y)
    xhe = 0.5 + 0.4 * np.tanh((y - 0.7) / 0.05)

    data = np.stack([rho, T, p, vx, vy, tpert, xhe, 1.0 - xhe], axis=-1)
    return data[:, :, None, :]


def build_example_hierarchy():
    dx0, dx1 = (1.0 / 32, 1.0 / 32, 1.0), (1.0 / 64, 1.0 / 64, 1.0)

    boxes0 = [Box((0, 0, 0), (31, 15, 0)), Box((0, 16, 0), (31, 31, 0))]
    boxes1 = [Box((16, 32, 0), (47, 63, 0))]

    level0 = make_level(boxes0, [atmosphere(b, dx0) for b in boxes0], Box((0, 0, 0), (31, 31, 0)), dx0)
    level1 = make_level(boxes1, [atmosphere(b, dx1) for b in boxes1], Box((0, 0, 0), (63, 63, 0)), dx1)

    return Hierarchy(
        varnames=VARNAMES,
        levels=[level0, level1],
        ndims=2,
        prob_lo=(0.0, 0.0, 0.0),
        prob_hi=(1.0, 1.0, 1.0),
        ref_ratios=[(2, 2, 2)],
        time=0.0,
    )


def print_summary(path: str):
    h = read_plotfile(path)
    print(f"{path}: {h.nlevels} level(s), fields {', '.join(h.varnames)}")
    for ilev, lev in enumerate(h.levels):
        values = np.concatenate([fab.reshape(-1, len(h.varnames)) for fab in lev.fabs])
        for comp, name in enumerate(h.varnames):
            print(f"  level {ilev} {name:>10s}: min {np.nanmin(values[:, comp]): .4e}  max {np.nanmax(values[:, comp]): .4e}")


# ──────────────────────────────────────────────────────────────
# Main Example Workflow
# ──────────────────────────────────────────────────────────────

def main():

    setup_logging(verbose=False)

    print("=== astrodiag Example Usage ===")
    write_plotfile(build_example_hierarchy(), PLOTFILE)
    print(f"Wrote synthetic plotfile '{PLOTFILE}'")
    print("Fields:", ", ".join(list_fields_for_plotfile(PLOTFILE)))

    dry = DiagnosticsConfig(plotfiles=[PLOTFILE], tool="fluxes", species=SPECIES, dry_run=True)
    DiagnosticPipeline(dry).process_plotfile(PLOTFILE)

    for tool in ("convgrad", "fluxes"):
        cfg = DiagnosticsConfig(plotfiles=[PLOTFILE], tool=tool, species=SPECIES, output_directory=OUTPUT_ROOT)
        print_summary(DiagnosticPipeline(cfg).process_plotfile(PLOTFILE))

    cfg = DiagnosticsConfig(
        plotfiles=[PLOTFILE], species=SPECIES, output_directory=OUTPUT_ROOT, output_format="vtkhdf"
    )
    print("VTKHDF written to", DiagnosticPipeline(cfg).process_plotfile(PLOTFILE))


# ──────────────────────────────────────────────────────────────
# Entry Point
# ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
