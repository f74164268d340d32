"""
Unit tests for astrodiag configuration parsing

Validates runtime parameters (key=value), the --species argument, option
precedence and up-front validation of a run configuration.

"""

import argparse

import pytest

from astrodiag.cli import build_parser
from astrodiag.config import (
    DEFAULT_GAMMA,
    DiagnosticsConfig,
    parse_runtime_parameters,
    parse_species_arg,
)
from astrodiag.errors import ConfigurationError


# ──────────────────────────────────────────────────────────────
# Runtime parameters
# ──────────────────────────────────────────────────────────────

def test_runtime_parameters_plotfiles():
    params, plotfiles = parse_runtime_parameters(["diag.plotfile=plt00000", "plt00100"])
    assert params == {}
    assert plotfiles == ["plt00000", "plt00100"]


def test_runtime_parameters_numbers():
    params, _ = parse_runtime_parameters(["diag.small_temp=1.d6", "diag.small_dens=1e-4", "eos.eos_gamma=1.4"])
    assert params == {"diag.small_temp": 1.0e6, "diag.small_dens": 1.0e-4, "eos.eos_gamma": 1.4}


def test_runtime_parameters_unknown_key():
    with pytest.raises(ConfigurationError, match="unknown runtime parameter"):
        parse_runtime_parameters(["diag.plotfle=plt00000"])


def test_runtime_parameters_bad_value():
    with pytest.raises(ConfigurationError, match="expects a number"):
        parse_runtime_parameters(["diag.small_temp=hot"])


# ──────────────────────────────────────────────────────────────
# Species argument parsing
# ──────────────────────────────────────────────────────────────

def test_parse_species_arg_none():
    assert parse_species_arg(None) is None


def test_parse_species_arg_valid():
    species = parse_species_arg("He4, C12,O16")
    assert species.short_names == ("He4", "C12", "O16")
    assert species.aion == (4.0, 12.0, 16.0)
    assert species.zion == (2.0, 6.0, 8.0)


def test_parse_species_arg_invalid():
    with pytest.raises(argparse.ArgumentTypeError):
        parse_species_arg("He4,unobtainium")


# ──────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────

def test_config_requires_plotfile():
    """No plotfile is a configuration error raised before any I/O."""
    with pytest.raises(ConfigurationError, match="no plotfile"):
        DiagnosticsConfig().validate()


def test_config_strips_trailing_slash():
    cfg = DiagnosticsConfig(plotfiles=["runs/plt00000/"])
    assert cfg.plotfiles == ["runs/plt00000"]


def test_config_rejects_bad_gamma():
    with pytest.raises(ConfigurationError):
        DiagnosticsConfig(plotfiles=["plt00000"], gamma=1.0).validate()


def test_option_overrides_runtime_parameter():
    args = build_parser().parse_args(["diag.plotfile=plt1", "diag.small_temp=1e6", "--small-temp", "2e6"])
    cfg = DiagnosticsConfig.from_namespace(args)
    assert cfg.small_temp == 2.0e6
    assert cfg.gamma == DEFAULT_GAMMA
    assert cfg.plotfiles == ["plt1"]


def test_network_selection():
    args = build_parser().parse_args(["plt1", "--network", "iso7", "--tool", "fluxes"])
    cfg = DiagnosticsConfig.from_namespace(args)
    assert cfg.species.nspec == 7
    assert cfg.tool == "fluxes"
