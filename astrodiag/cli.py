#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
CLI QUICK START (copy–paste, then tweak)
──────────────────────────────────────────────────────────────────────────────
Convective gradients of a Castro/MAESTROeX plotfile:

    astrodiag diag.plotfile=plt00000 --network aprox13

Convective flux of several plotfiles, four at a time, into a separate folder:

    astrodiag plt00000 plt01000 plt02000 \
        --tool fluxes \
        --species He4,C12,O16,Fe56 \
        --output-dir diag_outputs \
        --nproc 4 --verbose

Exploration mode :

    # Lists the variables stored in the plotfile (no computation happens)
    astrodiag plt00000 --list-fields

    # Dry-run: resolve fields and report what would be written
    astrodiag plt00000 --tool fluxes --dry-run --verbose

Positional args:

    plotfile paths, or AMReX-style runtime parameters:
        diag.plotfile=<path>   plotfile to process (may be repeated)
        diag.small_dens=<x>    EOS density floor      (default 1e-5)
        diag.small_temp=<x>    EOS temperature floor  (default 1e5)
        eos.eos_gamma=<x>      ratio of specific heats (default 5/3)

Optional args:

    --tool                 convgrad (del, del_ad, del_ledoux) or fluxes (Fconv)
    --network / --species  species ordering expected in the plotfile
    --format               plotfile (default) or vtkhdf
    --output-dir           where outputs go (default: convgrad.<plt> in the
                           current directory, fluxes inside the plotfile)
    --nproc                number of worker processes
    --verbose              step-by-step narration
    --list-fields          only list the plotfile's variables and exit
    --dry-run              run everything except the computation and write

"""


import sys
import argparse
import logging
from typing import List, Optional

from .config import DEFAULT_NETWORK, DiagnosticsConfig, parse_species_arg
from .diagnostics import TOOLS
from .errors import DiagnosticError
from .fields import NETWORKS
from .parallel import run_parallel_diagnostics
from .pipeline import list_fields_for_plotfile, setup_logging
from .writer import FORMATS

logger = logging.getLogger("astrodiag")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="astrodiag",
        description="Derived convection diagnostics for AMReX plotfiles",
    )

    parser.add_argument("params", nargs="*", metavar="PLOTFILE|key=value", help="Plotfiles and runtime parameters (e.g. diag.plotfile=plt00000).")

    # What to compute
    parser.add_argument("--tool", choices=sorted(TOOLS), default="convgrad", help="Diagnostic to compute (default: convgrad).")
    species = parser.add_mutually_exclusive_group()
    species.add_argument("--network", choices=sorted(NETWORKS), default=None, help=f"Reaction network the plotfile was made with (default: {DEFAULT_NETWORK}).")
    species.add_argument("--species", type=parse_species_arg, default=None, help="Comma-separated species in network order, e.g. He4,C12,O16.")

    # EOS
    parser.add_argument("--small-dens", type=float, default=None, help="EOS density floor (overrides diag.small_dens).")
    parser.add_argument("--small-temp", type=float, default=None, help="EOS temperature floor (overrides diag.small_temp).")
    parser.add_argument("--gamma", type=float, default=None, help="Ratio of specific heats (overrides eos.eos_gamma).")

    # Output
    parser.add_argument("--format", choices=FORMATS, default="plotfile", help="Output format (default: plotfile).")
    parser.add_argument("--output-dir", type=str, default=None, help="Directory for outputs. Optional.")
    parser.add_argument("--nproc", type=int, default=None, help="Number of worker processes (default: 1).")

    parser.add_argument("--list-fields", action="store_true", help="List the variables of the first plotfile and exit.")

    # Utility flags
    parser.add_argument("--dry-run", action="store_true", help="Print plan without computing or writing.")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging.")

    return parser


def main(argv: Optional[List[str]] = None) -> None:

    """
    Parse CLI args and run the diagnostics pipeline.
    """

    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging early
    setup_logging(args.verbose)

    try:
        config = DiagnosticsConfig.from_namespace(args).validate()

        if args.list_fields:
            first = config.plotfiles[0]
            logger.info("Listing fields of '%s'...", first)
            fields = list_fields_for_plotfile(first)

            print(f"Available fields ({len(fields)}):")
            for f in fields:
                print(" -", f)
            return

        run_parallel_diagnostics(config)

    except (DiagnosticError, FileNotFoundError) as e:
        logger.error("%s", e)
        sys.exit(1)
    except Exception as e:
        logger.exception("FATAL: Unexpected error: %s", e)
        raise


if __name__ == "__main__":
    main()
