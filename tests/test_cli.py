"""
Unit tests for the astrodiag CLI.

These tests verify that the command-line interface:
1. Lists the variables of a plotfile
2. Executes a dry-run without writing anything
3. Runs a tool end to end and writes the output plotfile
4. Exits non-zero with a diagnostic when no plotfile is given
5. Exits non-zero on a species mismatch or a missing plotfile

"""

import os
import subprocess
import sys


def run_cli(*args):
    return subprocess.run(
        [sys.executable, "-m", "astrodiag.cli", *args],
        capture_output=True,
        text=True,
    )


# ──────────────────────────────────────────────────────────────
# Tests
# ──────────────────────────────────────────────────────────────

def test_cli_list_fields(plotfile):
    """Verify that the CLI lists all variables of a plotfile."""
    result = run_cli(plotfile, "--list-fields")

    assert result.returncode == 0
    assert "available fields" in result.stdout.lower()
    assert "X(He4)" in result.stdout
    assert "tfromp" not in result.stdout


def test_cli_dry_run(tmp_path, plotfile):
    """Ensure the CLI dry-run resolves fields and writes nothing."""
    outdir = tmp_path / "diag"
    result = run_cli(
        f"diag.plotfile={plotfile}",
        "--species", "He4,C12",
        "--output-dir", str(outdir),
        "--dry-run",
        "--verbose",
    )

    assert result.returncode == 0
    assert "dry-run" in result.stderr.lower()
    assert not outdir.exists()


def test_cli_convgrad(tmp_path, plotfile):
    """A full run writes convgrad.<plotfile> into the output directory."""
    outdir = tmp_path / "diag"
    result = run_cli(
        f"diag.plotfile={plotfile}/",
        "diag.small_temp=1.e4",
        "--species", "He4,C12",
        "--output-dir", str(outdir),
    )

    assert result.returncode == 0, result.stderr
    assert os.path.isfile(outdir / "convgrad.plt00000" / "Header")
    assert os.path.isfile(outdir / "convgrad.plt00000" / "Level_1" / "Cell_H")


def test_cli_no_plotfile():
    """Without a plotfile the CLI fails before doing any work."""
    result = run_cli("--tool", "fluxes")

    assert result.returncode != 0
    assert "no plotfile" in result.stderr.lower()


def test_cli_species_mismatch(tmp_path, plotfile):
    result = run_cli(plotfile, "--network", "aprox13", "--output-dir", str(tmp_path / "diag"))

    assert result.returncode != 0
    assert "species" in result.stderr.lower()
    assert not (tmp_path / "diag").exists()


def test_cli_missing_plotfile(tmp_path):
    """Check that the CLI returns a non-zero exit code for a non-existent plotfile."""
    result = run_cli(str(tmp_path / "plt99999"), "--species", "He4,C12")

    assert result.returncode != 0
    assert "error" in result.stderr.lower()
