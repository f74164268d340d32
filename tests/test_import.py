"""
Unit tests for astrodiag package import.

These tests verify that:
1. The package can be imported without errors
2. The package exposes version metadata
3. Both diagnostic tools are registered

"""

# ──────────────────────────────────────────────────────────────
# Tests
# ──────────────────────────────────────────────────────────────

def test_import_and_version():
    """Ensure the package loads and __version__ attribute exists."""
    import astrodiag
    assert hasattr(astrodiag, "__version__")
    assert isinstance(astrodiag.__version__, str)


def test_tools_registered():
    """Both tools are available under their command-line names."""
    from astrodiag import TOOLS
    assert set(TOOLS) == {"convgrad", "fluxes"}
    assert TOOLS["convgrad"].outputs == ("del", "del_ad", "del_ledoux")
    assert TOOLS["fluxes"].outputs == ("Fconv",)


def test_generator_metadata_version():
    """Outputs are stamped with the package version."""
    import astrodiag
    from astrodiag.writer import generator_metadata
    meta = generator_metadata("plt00000")
    assert meta["generator_version"] == astrodiag.__version__
    assert meta["source_plotfile"] == "plt00000"
