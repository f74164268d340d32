# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Field resolution
──────────────────────────────────────────────────────────────────────────────
Maps physical quantities to slot indices in a plotfile's variable list.

Different codes write the same quantity under different names (Castro writes
"density" and "Temp", MAESTROeX writes "rho" and "tfromp"), so each quantity
carries an ordered list of candidate names and the first one present wins.

Species are stored as a contiguous block "X(<name>)" in network order. The
ordering is passed in explicitly as a `SpeciesSet` and verified slot by slot,
since everything downstream indexes species by offset from the first slot.

"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Sequence, Tuple, Union

import numpy as np

from .errors import ConfigurationError, FieldNotFound, SpeciesLayoutMismatch

logger = logging.getLogger("astrodiag")


class Quantity(Enum):
    """Canonical physical quantities a diagnostic can ask for."""

    DENSITY = "density"
    TEMPERATURE = "temperature"
    PRESSURE = "pressure"
    X_VELOCITY = "x_velocity"
    Y_VELOCITY = "y_velocity"
    Z_VELOCITY = "z_velocity"
    TEMPERATURE_PERTURBATION = "tpert"


# Candidate names per quantity, tried in order. Canonical name first.
FIELD_ALIASES: Dict[Quantity, Tuple[str, ...]] = {
    Quantity.DENSITY: ("density", "rho"),
    Quantity.TEMPERATURE: ("temperature", "Temp", "tfromp"),
    Quantity.PRESSURE: ("pressure", "p0pluspi", "p0"),
    Quantity.X_VELOCITY: ("x_velocity", "velx"),
    Quantity.Y_VELOCITY: ("y_velocity", "vely"),
    Quantity.Z_VELOCITY: ("z_velocity", "velz"),
    Quantity.TEMPERATURE_PERTURBATION: ("tpert",),
}

_VELOCITIES = (Quantity.X_VELOCITY, Quantity.Y_VELOCITY, Quantity.Z_VELOCITY)


def resolve_field(varnames: Sequence[str], quantity: Union[Quantity, str]) -> int:
    """
    Return the slot index of `quantity` in `varnames`.

    Args:
        varnames: ordered variable names of the hierarchy.
        quantity: a `Quantity` or its canonical name (e.g. "density").

    Returns:
        Index of the first candidate name present.

    Raises:
        FieldNotFound: if no candidate is present.
    """
    if not isinstance(quantity, Quantity):
        try:
            quantity = Quantity(quantity)
        except ValueError:
            raise FieldNotFound(str(quantity), (str(quantity),))

    candidates = FIELD_ALIASES[quantity]
    names = list(varnames)
    for name in candidates:
        if name in names:
            idx = names.index(name)
            logger.debug("Resolved %s -> '%s' (slot %d)", quantity.value, name, idx)
            return idx

    raise FieldNotFound(quantity.value, candidates)


def vertical_velocity(ndims: int) -> Quantity:
    """Velocity component along the last active axis (the vertical)."""
    if not 1 <= ndims <= 3:
        raise ConfigurationError(f"unsupported dimensionality: {ndims}")
    return _VELOCITIES[ndims - 1]


# ──────────────────────────────────────────────────────────────
# Species
# ──────────────────────────────────────────────────────────────

_ELEMENTS = (
    "H", "He", "Li", "Be", "B", "C", "N", "O", "F", "Ne",
    "Na", "Mg", "Al", "Si", "P", "S", "Cl", "Ar", "K", "Ca",
    "Sc", "Ti", "V", "Cr", "Mn", "Fe", "Co", "Ni", "Cu", "Zn",
)
_ELEMENT_Z = {sym.lower(): z for z, sym in enumerate(_ELEMENTS, start=1)}

_ISOTOPE_RE = re.compile(r"^([A-Za-z]{1,2}?)(\d+)$")


@dataclass(frozen=True)
class SpeciesSet:
    """
    Ordered species of a reaction network.

    Attributes:
        short_names: labels as they appear inside "X(...)" in a plotfile.
        aion: mass number per species.
        zion: nuclear charge per species.
    """

    short_names: Tuple[str, ...]
    aion: Tuple[float, ...]
    zion: Tuple[float, ...]

    def __post_init__(self):
        if not self.short_names:
            raise ConfigurationError("a species set needs at least one species")
        if not (len(self.short_names) == len(self.aion) == len(self.zion)):
            raise ConfigurationError("species names, A and Z must have the same length")

    @property
    def nspec(self) -> int:
        return len(self.short_names)

    def label(self, n: int) -> str:
        return f"X({self.short_names[n]})"

    @property
    def aion_array(self) -> np.ndarray:
        return np.asarray(self.aion, dtype=float)

    @property
    def zion_array(self) -> np.ndarray:
        return np.asarray(self.zion, dtype=float)


def _parse_isotope(name: str) -> Tuple[float, float]:
    key = name.strip().lower()
    if key == "n":
        return 1.0, 0.0
    if key == "p":
        return 1.0, 1.0

    m = _ISOTOPE_RE.match(name.strip())
    if m is None or m.group(1).lower() not in _ELEMENT_Z:
        raise ConfigurationError(
            f"cannot infer A and Z from species name '{name}'; use isotope labels like He4, C12, Ni56"
        )
    return float(m.group(2)), float(_ELEMENT_Z[m.group(1).lower()])


def species_from_names(names: Sequence[str]) -> SpeciesSet:
    """Build a `SpeciesSet` from isotope labels, deriving A and Z from each label."""
    names = [n.strip() for n in names if n.strip()]
    if not names:
        raise ConfigurationError("empty species list")
    az = [_parse_isotope(n) for n in names]
    return SpeciesSet(
        short_names=tuple(names),
        aion=tuple(a for a, _ in az),
        zion=tuple(z for _, z in az),
    )


NETWORKS: Dict[str, Tuple[str, ...]] = {
    "ignition_simple": ("C12", "O16", "Mg24"),
    "triple_alpha_plus_cago": ("He4", "C12", "O16", "Fe56"),
    "iso7": ("He4", "C12", "O16", "Ne20", "Mg24", "Si28", "Ni56"),
    "aprox13": (
        "He4", "C12", "O16", "Ne20", "Mg24", "Si28", "S32",
        "Ar36", "Ca40", "Ti44", "Cr48", "Fe52", "Ni56",
    ),
}


def get_network(name: str) -> SpeciesSet:
    """Look up one of the bundled networks by name."""
    try:
        return species_from_names(NETWORKS[name])
    except KeyError:
        raise ConfigurationError(
            f"unknown network '{name}'; available: {', '.join(sorted(NETWORKS))}"
        )


def resolve_species(varnames: Sequence[str], species: SpeciesSet) -> int:
    """
    Return the slot of the first species and verify the whole block.

    Raises:
        FieldNotFound: if the first species label is absent.
        SpeciesLayoutMismatch: on the first slot that differs from the network order.
    """
    names = list(varnames)
    first = species.label(0)
    if first not in names:
        raise FieldNotFound(f"first species {first}", (first,))
    spec_comp = names.index(first)

    for n in range(species.nspec):
        expected = species.label(n)
        slot = spec_comp + n
        actual = names[slot] if slot < len(names) else "<end of variable list>"
        if actual != expected:
            logger.error("Species slot %d: expected '%s', found '%s'", slot, expected, actual)
            raise SpeciesLayoutMismatch(expected, actual, n)

    logger.debug("Species block %s starts at slot %d", species.short_names, spec_comp)
    return spec_comp
