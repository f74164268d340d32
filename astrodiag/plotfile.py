# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
AMReX plotfile I/O
──────────────────────────────────────────────────────────────────────────────
Reads and writes the native AMReX plotfile layout (HyperCLaw-V1.1):

    <plotfile>/Header
    <plotfile>/job_info
    <plotfile>/Level_<n>/Cell_H
    <plotfile>/Level_<n>/Cell_D_<owner>

Reading goes through yt's AMReX frontend: the Header and Cell_H files are
parsed by `BoxlibDataset`, and box data is pulled grid by grid through yt's
IO handler, which takes byte order and precision from the FAB headers. Box
data is not read until a level's arrays are first requested.

Writing is done here: every box is stored as a FAB record (one ASCII header
line naming the byte order, the box and the number of components, then the
cell data in Fortran order, x fastest and component slowest).

Headers only list the active axes; on reading, the remaining axes up to
`spacedim` are padded as one-cell-thick axes over [0, 1].

"""

from __future__ import annotations

import logging
import os
import re
from collections import OrderedDict
from functools import partial
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from yt.frontends.amrex.api import BoxlibDataset

from .boundary import DEFAULT_SPACEDIM
from .errors import PlotfileFormatError
from .hierarchy import Box, Hierarchy, Level

logger = logging.getLogger("astrodiag")

HEADER_VERSION = "HyperCLaw-V1.1"

_cell_d_re = re.compile(r"_D_(\d+)$")

_LITTLE_ENDIAN_ORDER = "1 2 3 4 5 6 7 8"
_FAB_REAL_DESCRIPTOR = "(8, (64 11 52 0 1 12 0 1023))"

_COORD_SYS = {"cartesian": 0, "cylindrical": 1, "spherical": 2}


# ──────────────────────────────────────────────────────────────
# Small helpers
# ──────────────────────────────────────────────────────────────

def _pad(values: Sequence, spacedim: int, fill) -> Tuple:
    values = tuple(values)
    return values + (fill,) * (spacedim - len(values))


def _fmt_intvect(v: Sequence[int]) -> str:
    return "(" + ",".join(str(int(x)) for x in v) + ")"


def _fmt_box(box: Box, ndims: int) -> str:
    return f"({_fmt_intvect(box.lo[:ndims])} {_fmt_intvect(box.hi[:ndims])} {_fmt_intvect((0,) * ndims)})"


def _fmt_real(x: float) -> str:
    return repr(float(x))


def fab_header(box: Box, ndims: int, ncomp: int) -> str:
    return f"FAB ({_FAB_REAL_DESCRIPTOR},(8, ({_LITTLE_ENDIAN_ORDER}))){_fmt_box(box, ndims)} {ncomp}\n"


# ──────────────────────────────────────────────────────────────
# Reading
# ──────────────────────────────────────────────────────────────

def _read_level_steps(header_path: str, nvars: int, nlevels: int) -> List[int]:
    """Per-level step counts, which yt does not keep."""
    with open(header_path, "r") as f:
        lines = f.read().splitlines()
    try:
        steps = [int(v) for v in lines[nvars + 9].split()]
    except (IndexError, ValueError) as e:
        raise PlotfileFormatError(f"{header_path}: cannot read the level step counts") from e
    return list(_pad(steps[:nlevels], nlevels, 0))


def _open_dataset(path: str) -> BoxlibDataset:
    """Parse Header and Cell_H files with yt, turning its parse failures into PlotfileFormatError."""
    try:
        ds = BoxlibDataset(path)
        grids = ds.index.grids
    # AttributeError: a FAB header line the frontend could not match
    except (ValueError, IndexError, StopIteration, RuntimeError, AssertionError, AttributeError) as e:
        raise PlotfileFormatError(f"{path}: malformed plotfile ({type(e).__name__}: {e})") from e
    if len(grids) == 0:
        raise PlotfileFormatError(f"{path}: plotfile holds no boxes")
    return ds


def _load_level_fabs(ds: BoxlibDataset, grid_ids: List[int], boxes: List[Box], varnames: List[str]) -> List[np.ndarray]:
    fields = [("boxlib", name) for name in varnames]
    fabs = []
    for gid, box in zip(grid_ids, boxes):
        grid = ds.index.grids[gid]
        grid.get_data(fields)
        data = np.stack([np.asarray(grid[f].d, dtype=np.float64) for f in fields], axis=-1)
        grid.clear_data()
        fabs.append(data.reshape(box.shape + (len(fields),)))

    logger.debug("Read %d boxes of level %d from %s", len(boxes), ds.index.grids[grid_ids[0]].Level, ds.output_dir)
    return fabs


def read_plotfile(path: str, spacedim: int = DEFAULT_SPACEDIM) -> Hierarchy:
    """
    Open a plotfile. Headers are parsed now; box data is read lazily per level.

    Args:
        path: plotfile directory (a trailing '/' is ignored).
        spacedim: number of axes of the in-memory hierarchy.

    Returns:
        Hierarchy with one `Level` per refinement level.

    Raises:
        FileNotFoundError: if the plotfile or its Header is missing.
        PlotfileFormatError: on malformed headers.
    """
    path = path.rstrip("/") or "/"
    header_path = os.path.join(path, "Header")
    if not os.path.isfile(header_path):
        raise FileNotFoundError(f"no plotfile Header in '{path}'")

    with open(header_path, "r") as f:
        version = f.readline().strip()
    if not version.startswith("HyperCLaw"):
        raise PlotfileFormatError(f"{header_path}: unsupported plotfile version '{version}'")

    ds = _open_dataset(path)

    ndims = int(ds.dimensionality)
    if ndims > spacedim:
        raise PlotfileFormatError(f"plotfile is {ndims}-D but only {spacedim} axes are supported")

    # header order, which is also the order of components inside every FAB
    varnames = [name for _, name in ds.index.field_order]
    finest_level = int(ds.index.max_level)
    nlevels = finest_level + 1
    time = float(ds.current_time)

    prob_lo = _pad((float(v) for v in np.asarray(ds.domain_left_edge)[:ndims]), spacedim, 0.0)
    prob_hi = _pad((float(v) for v in np.asarray(ds.domain_right_edge)[:ndims]), spacedim, 1.0)

    ratios = [int(r) for r in ds.ref_factors][:finest_level]
    if len(ratios) < finest_level:
        raise PlotfileFormatError(f"{header_path}: expected {finest_level} refinement ratios, got {ratios}")
    ref_ratios = [(r,) * spacedim for r in ratios]

    lo0 = np.asarray(ds.domain_offset, dtype=int)[:ndims]
    hi0 = lo0 + np.asarray(ds.domain_dimensions, dtype=int)[:ndims] - 1
    domain = Box(_pad(lo0.tolist(), spacedim, 0), _pad(hi0.tolist(), spacedim, 0))

    steps = _read_level_steps(header_path, len(varnames), nlevels)
    coord_sys = _COORD_SYS.get(str(ds.geometry), 0)

    grids_by_level: Dict[int, List[int]] = OrderedDict((ilev, []) for ilev in range(nlevels))
    for gid, grid in enumerate(ds.index.grids):
        grids_by_level[int(grid.Level)].append(gid)

    levels: List[Level] = []
    for ilev, grid_ids in grids_by_level.items():
        if ilev > 0:
            active = tuple(ratios[ilev - 1] if d < ndims else 1 for d in range(spacedim))
            domain = domain.refine(active)

        boxes, owners = [], []
        for gid in grid_ids:
            grid = ds.index.grids[gid]
            lo = np.asarray(grid.get_global_startindex(), dtype=int)[:ndims]
            hi = lo + np.asarray(grid.ActiveDimensions, dtype=int)[:ndims] - 1
            boxes.append(Box(_pad(lo.tolist(), spacedim, 0), _pad(hi.tolist(), spacedim, 0)))
            m = _cell_d_re.search(os.path.basename(grid.filename or ""))
            owners.append(int(m.group(1)) if m else 0)

        if not boxes:
            raise PlotfileFormatError(f"{header_path}: level {ilev} has no boxes")

        levels.append(
            Level(
                boxes=boxes,
                domain=domain,
                cell_size=_pad((float(v) for v in ds.index.level_dds[ilev][:ndims]), spacedim, 1.0),
                step=steps[ilev],
                owners=owners,
                loader=partial(_load_level_fabs, ds, grid_ids, boxes, varnames),
            )
        )

    logger.info("Opened '%s': %d-D, %d level(s), %d variable(s), t = %g", path, ndims, nlevels, len(varnames), time)

    return Hierarchy(
        varnames=varnames,
        levels=levels,
        ndims=ndims,
        prob_lo=prob_lo,
        prob_hi=prob_hi,
        ref_ratios=ref_ratios,
        time=time,
        coord_sys=coord_sys,
        path=path,
    )


# ──────────────────────────────────────────────────────────────
# Writing
# ──────────────────────────────────────────────────────────────

def _write_header(h: Hierarchy, path: str) -> None:
    nd = h.ndims
    lines = [HEADER_VERSION, str(len(h.varnames))]
    lines += list(h.varnames)
    lines += [str(nd), _fmt_real(h.time), str(h.finest_level)]
    lines.append(" ".join(_fmt_real(x) for x in h.prob_lo[:nd]))
    lines.append(" ".join(_fmt_real(x) for x in h.prob_hi[:nd]))
    # one isotropic ratio per level transition
    lines.append(" ".join(str(int(r[0])) for r in h.ref_ratios[: h.finest_level]))
    lines.append(" ".join(_fmt_box(lev.domain, nd) for lev in h.levels))
    lines.append(" ".join(str(s) for s in h.level_steps))
    for lev in h.levels:
        lines.append(" ".join(_fmt_real(dx) for dx in lev.cell_size[:nd]))
    lines.append(str(h.coord_sys))
    lines.append("0")

    for ilev, lev in enumerate(h.levels):
        lines.append(f"{ilev} {lev.nboxes} {_fmt_real(h.time)}")
        lines.append(str(lev.step))
        for box in lev.boxes:
            for d in range(nd):
                xlo = h.prob_lo[d] + box.lo[d] * lev.cell_size[d]
                xhi = h.prob_lo[d] + (box.hi[d] + 1) * lev.cell_size[d]
                lines.append(f"{_fmt_real(xlo)} {_fmt_real(xhi)}")
        lines.append(f"Level_{ilev}/Cell")

    with open(os.path.join(path, "Header"), "w") as f:
        f.write("\n".join(lines) + "\n")


def _write_level(lev: Level, ilev: int, ndims: int, ncomp: int, path: str) -> None:
    level_dir = os.path.join(path, f"Level_{ilev}")
    os.makedirs(level_dir, exist_ok=True)

    fabs = lev.fabs
    offsets: List[Tuple[str, int]] = [("", 0)] * lev.nboxes

    by_owner: Dict[int, List[int]] = OrderedDict()
    for i, owner in enumerate(lev.owners):
        by_owner.setdefault(int(owner), []).append(i)

    for owner, indices in by_owner.items():
        fname = f"Cell_D_{owner:05d}"
        with open(os.path.join(level_dir, fname), "wb") as f:
            for i in indices:
                offsets[i] = (fname, f.tell())
                f.write(fab_header(lev.boxes[i], ndims, ncomp).encode("ascii"))
                f.write(np.asarray(fabs[i], dtype="<f8").ravel(order="F").tobytes())

    lines = ["1", "0", str(ncomp), "0", f"({lev.nboxes} 0"]
    lines += [_fmt_box(box, ndims) for box in lev.boxes]
    lines += [")", str(lev.nboxes)]
    lines += [f"FabOnDisk: {fname} {offset}" for fname, offset in offsets]

    with np.errstate(invalid="ignore"):
        mins = [np.nanmin(fab.reshape(-1, ncomp), axis=0) if fab.size else np.zeros(ncomp) for fab in fabs]
        maxs = [np.nanmax(fab.reshape(-1, ncomp), axis=0) if fab.size else np.zeros(ncomp) for fab in fabs]
    for block in (mins, maxs):
        lines += ["", f"{lev.nboxes},{ncomp}"]
        lines += [",".join(_fmt_real(v) for v in row) + "," for row in block]

    with open(os.path.join(level_dir, "Cell_H"), "w") as f:
        f.write("\n".join(lines) + "\n")


def _write_job_info(path: str, metadata: Dict[str, str]) -> None:
    rule = "=" * 79
    lines = [rule, " Job Information", rule]
    lines += [f"{key}: {value}" for key, value in metadata.items()]
    with open(os.path.join(path, "job_info"), "w") as f:
        f.write("\n".join(lines) + "\n")


def write_plotfile(h: Hierarchy, path: str, metadata: Optional[Dict[str, str]] = None) -> str:
    """
    Write `h` as a plotfile directory at `path`.

    Boxes sharing an owner are written to the same Cell_D file, in box order.

    Args:
        h: hierarchy to write; every level must have its data loaded or loadable.
        path: output directory; created if missing, existing files overwritten.
        metadata: key/value pairs recorded in job_info.

    Returns:
        The plotfile path.
    """
    path = path.rstrip("/") or "/"
    os.makedirs(path, exist_ok=True)

    ncomp = len(h.varnames)
    _write_header(h, path)
    for ilev, lev in enumerate(h.levels):
        _write_level(lev, ilev, h.ndims, ncomp, path)
    _write_job_info(path, metadata or {})

    logger.debug("Wrote plotfile '%s' (%d level(s), %d variable(s))", path, h.nlevels, ncomp)
    return path
