# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Run configuration
──────────────────────────────────────────────────────────────────────────────
Two layers feed one `DiagnosticsConfig`:

 - command-line options (argparse, see cli.py);
 - AMReX-style runtime parameters given as `key=value` tokens, e.g.

       astrodiag diag.plotfile=plt00000 diag.small_temp=1.e6 eos.eos_gamma=1.4

Options given explicitly on the command line win over runtime parameters.
Everything is validated before any file is opened.

"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .boundary import DEFAULT_SPACEDIM
from .diagnostics import TOOLS
from .errors import ConfigurationError
from .fields import SpeciesSet, get_network, species_from_names
from .writer import FORMATS

logger = logging.getLogger("astrodiag")

DEFAULT_NETWORK = "aprox13"
DEFAULT_SMALL_DENS = 1.0e-5
DEFAULT_SMALL_TEMP = 1.0e5
DEFAULT_GAMMA = 5.0 / 3.0

# runtime parameter -> converter
RUNTIME_PARAMETERS: Dict[str, Callable[[str], Any]] = {
    "diag.plotfile": str,
    "diag.small_dens": float,
    "diag.small_temp": float,
    "eos.eos_gamma": float,
}


def _fortran_float(text: str) -> float:
    # Fortran-style exponents (1.d-5) appear in AMReX inputs files
    return float(text.replace("d", "e").replace("D", "E"))


def parse_runtime_parameters(tokens: Sequence[str]) -> Tuple[Dict[str, Any], List[str]]:
    """
    Split positional tokens into runtime parameters and plain plotfile paths.

    Args:
        tokens: positional command-line arguments.

    Returns:
        (parameters, plotfiles). Every `diag.plotfile=` token and every token
        without '=' is a plotfile, in order of appearance.

    Raises:
        ConfigurationError: on an unknown key or a value that does not convert.
    """
    params: Dict[str, Any] = {}
    plotfiles: List[str] = []

    for token in tokens:
        if "=" not in token:
            plotfiles.append(token)
            continue

        key, _, value = token.partition("=")
        key, value = key.strip(), value.strip()
        if key not in RUNTIME_PARAMETERS:
            raise ConfigurationError(
                f"unknown runtime parameter '{key}'; known: {', '.join(sorted(RUNTIME_PARAMETERS))}"
            )
        if value == "":
            raise ConfigurationError(f"runtime parameter '{key}' has no value")

        if key == "diag.plotfile":
            plotfiles.append(value)
            continue
        try:
            params[key] = _fortran_float(value)
        except ValueError:
            raise ConfigurationError(f"runtime parameter '{key}' expects a number, got '{value}'")

    return params, plotfiles


def parse_species_arg(arg: Optional[str]) -> Optional[SpeciesSet]:
    """
    Parse the --species argument: a comma-separated list of isotope labels in network order.

    Returns None if nothing was given.
    """
    if arg is None:
        return None
    names = [s.strip() for s in arg.split(",") if s.strip() != ""]
    if not names:
        return None
    try:
        return species_from_names(names)
    except ConfigurationError as e:
        raise argparse.ArgumentTypeError(str(e))


@dataclass
class DiagnosticsConfig:
    """
    Everything one run needs, independent of how it was specified.

    Attributes:
        plotfiles: input plotfile directories (trailing '/' stripped).
        tool: name of the diagnostic tool ("convgrad" or "fluxes").
        species: species ordering expected in the plotfiles.
        small_dens: EOS density floor.
        small_temp: EOS temperature floor.
        gamma: ratio of specific heats for the gamma-law EOS.
        output_format: "plotfile" or "vtkhdf".
        output_directory: where outputs go; None keeps each tool's default location.
        spacedim: number of axes of the build (a 2-D plotfile runs in a 3-D build).
        nghost: ghost width on active axes.
        nproc: number of worker processes.
        dry_run: resolve fields and report the plan without writing.
        verbose: debug logging.
    """

    plotfiles: List[str] = field(default_factory=list)
    tool: str = "convgrad"
    species: SpeciesSet = field(default_factory=lambda: get_network(DEFAULT_NETWORK))
    small_dens: float = DEFAULT_SMALL_DENS
    small_temp: float = DEFAULT_SMALL_TEMP
    gamma: float = DEFAULT_GAMMA
    output_format: str = "plotfile"
    output_directory: Optional[str] = None
    spacedim: int = DEFAULT_SPACEDIM
    nghost: int = 1
    nproc: Optional[int] = None
    dry_run: bool = False
    verbose: bool = False

    def __post_init__(self):
        self.plotfiles = [p.rstrip("/") or "/" for p in self.plotfiles]

    def validate(self) -> "DiagnosticsConfig":
        """Raise ConfigurationError on the first invalid setting; return self otherwise."""
        if not self.plotfiles:
            raise ConfigurationError("no plotfile specified; use: diag.plotfile=plt00000")
        if self.tool not in TOOLS:
            raise ConfigurationError(f"unknown tool '{self.tool}'; available: {', '.join(sorted(TOOLS))}")
        if self.output_format not in FORMATS:
            raise ConfigurationError(
                f"unknown output format '{self.output_format}'; available: {', '.join(FORMATS)}"
            )
        if self.small_dens <= 0.0 or self.small_temp <= 0.0:
            raise ConfigurationError("small_dens and small_temp must be positive")
        if self.gamma <= 1.0:
            raise ConfigurationError(f"gamma must exceed 1, got {self.gamma}")
        if self.nghost < 1:
            raise ConfigurationError("ghost width must be at least one cell")
        if self.nproc is not None and self.nproc < 1:
            raise ConfigurationError("nproc must be a positive integer")
        return self

    @classmethod
    def from_namespace(cls, args: argparse.Namespace) -> "DiagnosticsConfig":
        """
        Merge parsed CLI options with the runtime parameters among its positionals.

        Precedence for each setting: explicit option, then runtime parameter, then default.
        """
        params, plotfiles = parse_runtime_parameters(getattr(args, "params", None) or [])

        def pick(option, key, default):
            if option is not None:
                return option
            return params.get(key, default)

        if args.species is not None:
            species = args.species
        else:
            species = get_network(args.network or DEFAULT_NETWORK)

        cfg = cls(
            plotfiles=plotfiles,
            tool=args.tool,
            species=species,
            small_dens=pick(args.small_dens, "diag.small_dens", DEFAULT_SMALL_DENS),
            small_temp=pick(args.small_temp, "diag.small_temp", DEFAULT_SMALL_TEMP),
            gamma=pick(args.gamma, "eos.eos_gamma", DEFAULT_GAMMA),
            output_format=args.format,
            output_directory=args.output_dir,
            nproc=args.nproc,
            dry_run=args.dry_run,
            verbose=args.verbose,
        )
        logger.debug("Configuration: %s", cfg)
        return cfg
