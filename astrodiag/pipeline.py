#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
Runs one diagnostic tool over one AMReX plotfile and writes the derived fields
as a new AMR hierarchy with the same boxes as the input.

──────────────────────────────────────────────────────────────────────────────
HOW A PLOTFILE IS PROCESSED
──────────────────────────────────────────────────────────────────────────────
 1. Read the plotfile headers (box data is loaded per level on demand).
 2. Resolve every quantity the tool needs to a variable slot, and check that
    the species block follows the configured network order.
 3. Derive the boundary policy from the dataset's dimensionality.
 4. For each level, coarse to fine:
      - advance one reconstruction chain per field group to this level,
        giving ghost-padded buffers;
      - evaluate the tool's kernels box by box.
 5. Assemble the output hierarchy and write it (plotfile or VTKHDF).

Any failure is fatal for the plotfile; nothing is written in that case.

"""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional

import numpy as np

from .boundary import BoundaryPolicy
from .config import DiagnosticsConfig
from .diagnostics import SPECIES, BoxStencil, DiagnosticTool, get_tool, required_quantity
from .eos import GammaLawEOS, ThermodynamicOracle
from .errors import ConfigurationError
from .fields import resolve_field, resolve_species
from .fillpatch import LevelReconstructor
from .hierarchy import Hierarchy
from .plotfile import read_plotfile
from .writer import assemble_output, generator_metadata, write_hierarchy


def setup_logging(verbose: bool) -> None:
    """
    Configure global logging.

    Args:
        verbose: If True, set DEBUG level, otherwise INFO.
    """

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )

    # Reduce noise from libraries
    logging.getLogger("h5py").setLevel(logging.WARNING)
    logging.getLogger("yt").setLevel(logging.WARNING)


logger = logging.getLogger("astrodiag")


class DiagnosticPipeline:
    """
    Compute one tool's derived fields for AMReX plotfiles.

    The EOS is initialised once per pipeline with the configured floors and
    reused for every plotfile.

    Args:
        config: run configuration (validated on construction).
        eos: thermodynamic oracle; defaults to a gamma-law gas over the
             configured species.
    """

    def __init__(self, config: DiagnosticsConfig, eos: Optional[ThermodynamicOracle] = None):
        self.config = config.validate()
        self.tool: DiagnosticTool = get_tool(config.tool)
        if eos is None:
            eos = GammaLawEOS(config.species, config.gamma, config.small_dens, config.small_temp)
        self.eos = eos

    def boundary_policy(self, h: Hierarchy) -> BoundaryPolicy:
        policy = BoundaryPolicy.from_dimensions(h.ndims, spacedim=self.config.spacedim, nghost=self.config.nghost)
        if h.spacedim != policy.spacedim:
            raise ConfigurationError(f"hierarchy has {h.spacedim} axes, build has {policy.spacedim}")
        return policy

    def resolve(self, h: Hierarchy) -> Dict[str, List[int]]:
        """
        Map each input key of the tool to its component slots.

        Returns:
            key -> slots; a single slot for scalars, the whole block for species.

        Raises:
            FieldNotFound, SpeciesLayoutMismatch
        """
        slots: Dict[str, List[int]] = {}
        for key in self.tool.ghosted + self.tool.raw:
            if key in slots:
                continue
            if key == SPECIES:
                first = resolve_species(h.varnames, self.config.species)
                slots[key] = list(range(first, first + self.config.species.nspec))
            else:
                slots[key] = [resolve_field(h.varnames, required_quantity(key, h.ndims))]

        for key, comps in slots.items():
            logger.debug("%s -> %s", key, [h.varnames[c] for c in comps])
        return slots

    def compute(self, h: Hierarchy) -> List[List[np.ndarray]]:
        """
        Evaluate the tool on every box of every level.

        Returns:
            Per level, per box, arrays of shape (*box.shape, len(tool.outputs)).
        """
        policy = self.boundary_policy(h)
        slots = self.resolve(h)
        tool = self.tool

        chains = {key: LevelReconstructor(h, slots[key], policy, key) for key in tool.ghosted}

        derived: List[List[np.ndarray]] = []
        for ilev, level in enumerate(h.levels):
            t0 = time.time()
            buffers = {key: chain.reconstruct(ilev) for key, chain in chains.items()}

            fabs = []
            for box, fab in zip(level.boxes, level.fabs):
                stencil = BoxStencil(
                    ghost={key: buf.view(box) for key, buf in buffers.items()},
                    raw={key: fab[..., slots[key][0]] for key in tool.raw},
                    nghost=policy.nghost,
                    vertical_axis=policy.vertical_axis,
                )
                fabs.append(tool.evaluate(stencil, self.eos))

            bad = sum(int(np.count_nonzero(~np.isfinite(f))) for f in fabs)
            if bad:
                logger.warning(
                    "Level %d: %d non-finite value(s) in %s (vanishing pressure gradient?)",
                    ilev,
                    bad,
                    ", ".join(tool.outputs),
                )
            logger.debug("Level %d: %d box(es) evaluated in %.2fs", ilev, level.nboxes, time.time() - t0)
            derived.append(fabs)

        for chain in chains.values():
            chain.release()
        return derived

    def process_plotfile(self, plotfile: str) -> Optional[str]:
        """
        Read, compute and write one plotfile.

        Returns:
            The output path, or None on a dry run.
        """
        t0 = time.time()
        plotfile = plotfile.rstrip("/") or "/"
        h = read_plotfile(plotfile, spacedim=self.config.spacedim)
        out_path = self.tool.output_path(plotfile, self.config.output_directory)

        if self.config.dry_run:
            self.boundary_policy(h)
            slots = self.resolve(h)
            logger.info(
                "[dry-run] Would write '%s' (%s) with fields %s from %d level(s); inputs: %s",
                out_path,
                self.config.output_format,
                list(self.tool.outputs),
                h.nlevels,
                "; ".join(f"{k}: {','.join(h.varnames[c] for c in v)}" for k, v in slots.items()),
            )
            return None

        derived = self.compute(h)
        out = assemble_output(h, self.tool.outputs, derived, self.boundary_policy(h))
        written = write_hierarchy(out, out_path, self.config.output_format, generator_metadata(plotfile))

        logger.info("%s: %s done in %.2fs", plotfile, self.tool.name, time.time() - t0)
        return written


def list_fields_for_plotfile(plotfile: str) -> List[str]:
    """Variable names stored in a plotfile, in slot order (no box data is read)."""
    return list(read_plotfile(plotfile).varnames)
