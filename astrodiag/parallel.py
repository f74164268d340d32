#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

Parallel execution utilities for astrodiag.

One plotfile per worker process. A failure in any worker stops the run: the
exception is re-raised in the parent once the pool has shut down.

"""

from __future__ import annotations

from functools import partial
from typing import List, Optional

import logging
import time
import concurrent.futures

from .config import DiagnosticsConfig
from .pipeline import DiagnosticPipeline, setup_logging

logger = logging.getLogger("astrodiag")


def process_single_plotfile(plotfile: str, config: DiagnosticsConfig) -> Optional[str]:
    """
    Worker function executed in each process. It configures logging and runs the
    configured tool on a single plotfile.

    Args:
        plotfile: plotfile directory being processed.
        config: run configuration shared by all workers.

    Returns:
        The output path, or None on a dry run.
    """
    setup_logging(config.verbose)
    return DiagnosticPipeline(config).process_plotfile(plotfile)


def run_parallel_diagnostics(config: DiagnosticsConfig) -> List[Optional[str]]:
    """
    High-level runner that dispatches processing of every configured plotfile.

    Parameters:
    - config: validated run configuration. `config.nproc` is the number of
              worker processes; None or 1 runs serially in this process, larger
              values use up to min(nproc, number of plotfiles) workers.

    Behavior:
    - Results come back in input order.
    - The first failing plotfile aborts the run; its exception propagates.

    Returns:
    - Output paths, one per plotfile.
    """
    config.validate()
    plotfiles = config.plotfiles

    if config.nproc is not None and config.nproc > 0:
        nworkers = min(config.nproc, len(plotfiles))
    else:
        nworkers = 1

    logger.info("Starting '%s' on %d worker(s) for %s", config.tool, nworkers, plotfiles)
    t0 = time.time()

    worker = partial(process_single_plotfile, config=config)

    if nworkers == 1:
        results = [worker(p) for p in plotfiles]
    else:
        with concurrent.futures.ProcessPoolExecutor(max_workers=nworkers) as ex:
            results = list(ex.map(worker, plotfiles))

    logger.info("Total elapsed: %.2fs", time.time() - t0)
    return results
