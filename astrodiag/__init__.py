# -*- coding: utf-8 -*-

"""

astrodiag: derived convection diagnostics for AMReX plotfiles
=============================================================

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
astrodiag post-processes multi-level AMR snapshots of stellar hydrodynamics
runs (Castro, MAESTROeX) and writes derived fields as a new AMR hierarchy on
the same boxes:

 - convgrad: actual, adiabatic and Ledoux temperature gradients
 - fluxes:   convective energy flux

──────────────────────────────────────────────────────────────────────────────
WHY THIS EXISTS
──────────────────────────────────────────────────────────────────────────────
- Finite differences near box edges need ghost cells, and on refined levels
  those ghost cells must come from the coarser level, not from a copy of the
  edge value.
- Codes disagree on variable names ("density" vs "rho", "Temp" vs "tfromp"),
  so every quantity is looked up through an alias table.

"""

from .errors import (
    DiagnosticError,
    ConfigurationError,
    PlotfileFormatError,
    FieldNotFound,
    SpeciesLayoutMismatch,
    MissingParentLevel,
)

from .hierarchy import Box, Level, Hierarchy, make_level

from .fields import (
    Quantity,
    FIELD_ALIASES,
    SpeciesSet,
    resolve_field,
    resolve_species,
    species_from_names,
    get_network,
)

from .boundary import BoundaryPolicy

from .fillpatch import LevelReconstructor

from .eos import EOSResult, GammaLawEOS

from .diagnostics import (
    TOOLS,
    log_gradient,
    adiabatic_gradient,
    ledoux_gradient,
    convective_flux,
)

from .plotfile import read_plotfile, write_plotfile

from .vtkhdf import write_vtkhdf

from .writer import assemble_output, write_hierarchy

from .config import DiagnosticsConfig, parse_runtime_parameters, parse_species_arg

from .pipeline import DiagnosticPipeline, list_fields_for_plotfile, setup_logging

from .parallel import (
    process_single_plotfile,
    run_parallel_diagnostics,
)

__version__ = "1.0.0"
