"""
End-to-end tests for the diagnostics pipeline.

These tests verify that:
1. convgrad on a two-level plotfile matches the analytic gradient, with
   fine-level gradients taken at the fine spacing
2. fluxes writes rho c_p v T' inside the plotfile by default
3. Missing inputs and species mismatches are fatal and write nothing
4. A vanishing pressure gradient is reported, not raised
5. Dry runs and the VTKHDF format
6. Several plotfiles are processed by the parallel runner

"""

import logging
import os

import numpy as np
import pytest

from astrodiag.config import DiagnosticsConfig
from astrodiag.eos import GammaLawEOS
from astrodiag.errors import FieldNotFound, SpeciesLayoutMismatch
from astrodiag.fields import species_from_names
from astrodiag.parallel import run_parallel_diagnostics
from astrodiag.pipeline import DiagnosticPipeline, list_fields_for_plotfile
from astrodiag.plotfile import read_plotfile, write_plotfile

from conftest import DX0, DX1, SPECIES, VARNAMES, build_hierarchy, cell_centers, pressure, temperature

# ──────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────


def expected_del(y, h):
    """Centred dlnT/dlnP of the analytic profiles at spacing h."""
    return (
        (temperature(0.0, y + h) - temperature(0.0, y - h))
        / (pressure(0.0, y + h) - pressure(0.0, y - h))
        * (pressure(0.0, y) / temperature(0.0, y))
    )


def make_config(plotfile, tool="convgrad", **kwargs):
    kwargs.setdefault("species", SPECIES)
    return DiagnosticsConfig(plotfiles=[plotfile], tool=tool, **kwargs)


# ──────────────────────────────────────────────────────────────
# convgrad
# ──────────────────────────────────────────────────────────────

def test_convgrad_two_levels(tmp_path, plotfile, hierarchy):
    outdir = tmp_path / "diag"
    path = DiagnosticPipeline(make_config(plotfile, output_directory=str(outdir))).process_plotfile(plotfile)
    assert path == os.path.join(str(outdir), "convgrad.plt00000")

    out = read_plotfile(path)
    assert out.varnames == ["del", "del_ad", "del_ledoux"]
    assert out.time == hierarchy.time
    for lev, src in zip(out.levels, hierarchy.levels):
        assert lev.boxes == src.boxes
        assert lev.domain == src.domain

    # level 0: every row with both neighbours inside the domain, across the box seam
    for box, fab in zip(out.levels[0].boxes, out.levels[0].fabs):
        _, y = cell_centers(box, DX0)
        j = np.arange(box.lo[1], box.hi[1] + 1)
        keep = (j >= 1) & (j <= 14)
        np.testing.assert_allclose(fab[:, keep, 0, 0], expected_del(y[:, keep, 0], DX0[1]), rtol=1e-10)

    # level 1: rows away from the coarse-fine interface use the fine spacing
    fab = out.levels[1].fabs[0]
    _, y = cell_centers(out.levels[1].boxes[0], DX1)
    got = fab[:, 1:-1, 0, 0]
    np.testing.assert_allclose(got, expected_del(y[:, 1:-1, 0], DX1[1]), rtol=1e-10)
    assert not np.allclose(got, expected_del(y[:, 1:-1, 0], DX0[1]), rtol=1e-6)

    for lev in out.levels:
        for fab in lev.fabs:
            assert np.all(np.isfinite(fab))
            np.testing.assert_allclose(fab[..., 1], 0.4, rtol=1e-12)
            np.testing.assert_array_equal(fab[..., 2], fab[..., 1])


def test_convgrad_default_location(tmp_path, plotfile, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = DiagnosticPipeline(make_config(plotfile)).process_plotfile(plotfile)
    assert path == "convgrad.plt00000"
    assert os.path.isfile(tmp_path / "convgrad.plt00000" / "Header")


def test_vtkhdf_output(tmp_path, plotfile):
    cfg = make_config(plotfile, output_directory=str(tmp_path / "vtk"), output_format="vtkhdf")
    path = DiagnosticPipeline(cfg).process_plotfile(plotfile)
    assert path.endswith("convgrad.plt00000.vtkhdf")
    assert os.path.isfile(path)


# ──────────────────────────────────────────────────────────────
# fluxes
# ──────────────────────────────────────────────────────────────

def test_fluxes_inside_plotfile(plotfile, hierarchy):
    path = DiagnosticPipeline(make_config(plotfile, tool="fluxes")).process_plotfile(plotfile)
    assert path == os.path.join(plotfile, "fluxes")

    out = read_plotfile(path)
    assert out.varnames == ["Fconv"]

    eos = GammaLawEOS(SPECIES)
    rho_i, v_i, t_i = VARNAMES.index("density"), VARNAMES.index("y_velocity"), VARNAMES.index("tpert")
    for lev, src in zip(out.levels, hierarchy.levels):
        for fab, src_fab in zip(lev.fabs, src.fabs):
            rho = src_fab[..., rho_i]
            cp = eos(rho, src_fab[..., VARNAMES.index("Temp")], src_fab[..., -2:]).cp
            expected = rho * cp * src_fab[..., v_i] * src_fab[..., t_i]
            np.testing.assert_allclose(fab[..., 0], expected, rtol=1e-12)


# ──────────────────────────────────────────────────────────────
# Failures
# ──────────────────────────────────────────────────────────────

def test_missing_field_is_fatal(tmp_path):
    names = [n for n in VARNAMES if n != "tpert"]
    path = str(tmp_path / "plt00000")
    write_plotfile(build_hierarchy(varnames=names), path)

    outdir = tmp_path / "diag"
    with pytest.raises(FieldNotFound) as exc:
        DiagnosticPipeline(make_config(path, tool="fluxes", output_directory=str(outdir))).process_plotfile(path)
    assert exc.value.quantity == "tpert"
    assert not outdir.exists()


def test_species_mismatch_is_fatal(tmp_path, plotfile):
    cfg = make_config(plotfile, species=species_from_names(["He4", "O16"]), output_directory=str(tmp_path / "diag"))
    with pytest.raises(SpeciesLayoutMismatch):
        DiagnosticPipeline(cfg).process_plotfile(plotfile)
    assert not (tmp_path / "diag").exists()


def test_zero_pressure_gradient_reported(tmp_path, caplog):
    path = str(tmp_path / "plt00000")
    write_plotfile(build_hierarchy({"pressure": lambda x, y: np.full_like(x, 1.0e16)}), path)

    with caplog.at_level(logging.WARNING, logger="astrodiag"):
        out_path = DiagnosticPipeline(make_config(path, output_directory=str(tmp_path / "diag"))).process_plotfile(path)

    assert "non-finite" in caplog.text
    out = read_plotfile(out_path)
    assert not np.any(np.isfinite(out.levels[0].fabs[0][..., 0]))
    # del_ad does not involve the pressure gradient
    assert np.all(np.isfinite(out.levels[0].fabs[0][..., 1]))


# ──────────────────────────────────────────────────────────────
# Utilities
# ──────────────────────────────────────────────────────────────

def test_dry_run_writes_nothing(tmp_path, plotfile):
    cfg = make_config(plotfile, tool="fluxes", dry_run=True)
    assert DiagnosticPipeline(cfg).process_plotfile(plotfile) is None
    assert not os.path.exists(os.path.join(plotfile, "fluxes"))


def test_list_fields(plotfile):
    assert list_fields_for_plotfile(plotfile) == VARNAMES


def test_parallel_runner(tmp_path, hierarchy):
    plotfiles = []
    for n in (0, 100):
        path = str(tmp_path / f"plt{n:05d}")
        write_plotfile(hierarchy, path)
        plotfiles.append(path)

    outdir = tmp_path / "diag"
    cfg = DiagnosticsConfig(plotfiles=plotfiles, species=SPECIES, output_directory=str(outdir), nproc=2)
    results = run_parallel_diagnostics(cfg)

    assert results == [str(outdir / "convgrad.plt00000"), str(outdir / "convgrad.plt00100")]
    for path in results:
        assert os.path.isfile(os.path.join(path, "Header"))


def test_parallel_runner_failure_propagates(tmp_path, plotfile):
    cfg = DiagnosticsConfig(
        plotfiles=[plotfile, str(tmp_path / "missing")],
        species=SPECIES,
        output_directory=str(tmp_path / "diag"),
        nproc=2,
    )
    with pytest.raises(FileNotFoundError):
        run_parallel_diagnostics(cfg)
