# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
VTKHDF OverlappingAMR output
──────────────────────────────────────────────────────────────────────────────
Writes a hierarchy as a single VTKHDF file that ParaView opens directly.

Layout:

    /VTKHDF                  Version, Type, GridDescription, Origin, NumberOfLevels
      /Level<n>              Spacing, NumberOfBlocks
        AMRBox               one row per box: ilo ihi jlo jhi klo khi
        /CellData/<field>    box data flattened x-fastest, boxes concatenated
        /PointData
        /FieldData

"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

import h5py as h5
import numpy as np

from .hierarchy import Hierarchy, Level

logger = logging.getLogger("astrodiag")

# Derived fields can exceed float32 range (fluxes ~1e30 erg/cm^2/s)
FLOAT_DTYPE = "d"
INT_DTYPE = "i8"


def _ascii_attr(group, name: str, value: str) -> None:
    raw = value.encode("ascii")
    group.attrs.create(name, raw, dtype=h5.string_dtype("ascii", len(raw)))


def _pad3(values: Sequence, fill) -> list:
    values = list(values)[:3]
    return values + [fill] * (3 - len(values))


def amr_boxes(level: Level) -> np.ndarray:
    """AMRBox rows [ilo, ihi, jlo, jhi, klo, khi] for every box of `level`."""
    rows = []
    for box in level.boxes:
        lo = _pad3(box.lo, 0)
        hi = _pad3(box.hi, 0)
        rows.append([lo[0], hi[0], lo[1], hi[1], lo[2], hi[2]])
    return np.asarray(rows, dtype=INT_DTYPE).reshape(-1, 6)


def _write_level_to_hdf5(level_group, level: Level, varnames: Sequence[str]) -> None:
    """
    Write one AMR level group following VTKHDF OverlappingAMR expectations.

    Args:
        level_group: h5py Group for the level (already created).
        level: level to write.
        varnames: component names, in slot order.
    """
    level_group.attrs.create("Spacing", _pad3(level.cell_size, 1.0), dtype=FLOAT_DTYPE)
    level_group.attrs["NumberOfBlocks"] = level.nboxes
    level_group.create_dataset("AMRBox", data=amr_boxes(level))

    celldata = level_group.create_group("CellData")
    for comp, name in enumerate(varnames):
        arr = np.concatenate([fab[..., comp].ravel(order="F") for fab in level.fabs])
        celldata.create_dataset(name, data=arr.reshape(-1, 1).astype(FLOAT_DTYPE))

    level_group.create_group("PointData")
    level_group.create_group("FieldData")


def write_vtkhdf(h: Hierarchy, filename: str, metadata: Optional[Dict[str, str]] = None) -> str:
    """
    Write `h` to `filename` as VTKHDF OverlappingAMR.

    Args:
        h: hierarchy to write.
        filename: output file, overwritten if present.
        metadata: generator_* attributes attached to the root group.

    Returns:
        The file name.
    """
    with h5.File(filename, "w") as f:
        root = f.create_group("VTKHDF", track_order=True)
        root.attrs["Version"] = (2, 2)
        _ascii_attr(root, "Type", "OverlappingAMR")
        _ascii_attr(root, "GridDescription", "XYZ")
        root.attrs.create("Origin", _pad3(h.prob_lo, 0.0), dtype=FLOAT_DTYPE)
        root.attrs["NumberOfLevels"] = h.nlevels
        root.attrs["Time"] = float(h.time)

        for key, value in (metadata or {}).items():
            root.attrs[key] = value

        for ilev, level in enumerate(h.levels):
            level_group = root.create_group(f"Level{ilev}")
            _write_level_to_hdf5(level_group, level, h.varnames)
            logger.debug("Level %d: %d block(s) written", ilev, level.nboxes)

    return filename
