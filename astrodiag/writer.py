# -*- coding: utf-8 -*-

"""

Hierarchy writer: turns per-level derived arrays into an output hierarchy with
the source's geometry, and hands it to one of the on-disk formats.

"""

from __future__ import annotations

import logging
import os
import shlex
import sys
import time
from typing import Dict, List, Optional, Sequence

import numpy as np

from .boundary import BoundaryPolicy
from .errors import ConfigurationError
from .hierarchy import Hierarchy, Level
from .plotfile import write_plotfile
from .vtkhdf import write_vtkhdf

logger = logging.getLogger("astrodiag")

FORMATS = ("plotfile", "vtkhdf")


def generator_metadata(source: Optional[str] = None) -> Dict[str, str]:
    """Run metadata embedded in every output (CLI command, timestamp, code version)."""
    from . import __version__

    meta = {
        "generator_command": shlex.join(sys.argv),
        "generator_timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "generator_version": __version__,
    }
    if source is not None:
        meta["source_plotfile"] = source
    return meta


def assemble_output(
    source: Hierarchy,
    varnames: Sequence[str],
    derived: Sequence[Sequence[np.ndarray]],
    policy: BoundaryPolicy,
) -> Hierarchy:
    """
    Build the output hierarchy.

    Boxes, owners, domains, cell sizes and steps are taken level by level from
    `source`, so the output is geometrically identical to the input. Refinement
    ratios are recorded with inactive axes forced to 1.

    Args:
        source: input hierarchy.
        varnames: names of the derived fields, in component order.
        derived: per level, per box, arrays of shape (*box.shape, len(varnames)).
        policy: boundary policy the diagnostics were computed with.

    Raises:
        ValueError: if `derived` does not match the source layout.
    """
    if len(derived) != source.nlevels:
        raise ValueError(f"derived data has {len(derived)} levels, source has {source.nlevels}")

    levels: List[Level] = []
    for ilev, (src, fabs) in enumerate(zip(source.levels, derived)):
        if len(fabs) != src.nboxes:
            raise ValueError(f"level {ilev}: {len(fabs)} derived boxes for {src.nboxes} source boxes")
        for box, fab in zip(src.boxes, fabs):
            if fab.shape != box.shape + (len(varnames),):
                raise ValueError(f"level {ilev}: derived array {fab.shape} does not match box {box}")

        levels.append(
            Level(
                boxes=list(src.boxes),
                domain=src.domain,
                cell_size=tuple(src.cell_size),
                step=src.step,
                owners=list(src.owners),
                _fabs=list(fabs),
            )
        )

    return Hierarchy(
        varnames=list(varnames),
        levels=levels,
        ndims=source.ndims,
        prob_lo=tuple(source.prob_lo),
        prob_hi=tuple(source.prob_hi),
        ref_ratios=[policy.effective_ratio(r) for r in source.ref_ratios[: source.finest_level]],
        time=source.time,
        coord_sys=source.coord_sys,
    )


def output_filename(path: str, fmt: str) -> str:
    if fmt == "vtkhdf" and not path.endswith(".vtkhdf"):
        return path + ".vtkhdf"
    return path


def write_hierarchy(h: Hierarchy, path: str, fmt: str = "plotfile", metadata: Optional[Dict[str, str]] = None) -> str:
    """
    Write `h` in the requested format; I/O errors propagate.

    Returns:
        The path actually written (VTKHDF output gets a .vtkhdf suffix).
    """
    if fmt not in FORMATS:
        raise ConfigurationError(f"unknown output format '{fmt}'; available: {', '.join(FORMATS)}")

    path = output_filename(path.rstrip("/"), fmt)
    if metadata is None:
        metadata = generator_metadata()

    t0 = time.time()
    if fmt == "plotfile":
        write_plotfile(h, path, metadata)
    else:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        write_vtkhdf(h, path, metadata)

    logger.info("DONE: Saved '%s' in %.2fs", path, time.time() - t0)
    return path
