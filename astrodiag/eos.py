# -*- coding: utf-8 -*-

"""

Thermodynamic oracle.

The diagnostics only need an equation of state as a black box:
(density, temperature, mass fractions) -> pressure, specific heats, dP/dT,
Gamma_1. Any callable with the `ThermodynamicOracle` signature can be passed to
the pipeline. `GammaLawEOS` is the bundled default: a fully ionised ideal gas
with a constant ratio of specific heats.

Units are CGS throughout.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .fields import SpeciesSet

logger = logging.getLogger("astrodiag")

# CGS constants (CODATA 2018)
K_BOLTZMANN = 1.380649e-16  # erg / K
M_U = 1.66053906660e-24  # g


@dataclass
class EOSResult:
    """
    EOS output; every entry has the shape of the density input.

    `rho` and `T` are the density and temperature the state was evaluated at,
    i.e. the inputs after any floors were applied.
    """

    rho: np.ndarray
    T: np.ndarray
    p: np.ndarray
    e: np.ndarray
    cv: np.ndarray
    cp: np.ndarray
    dpdT: np.ndarray
    gam1: np.ndarray


# (rho, T, xn) -> EOSResult; xn carries species on its last axis
ThermodynamicOracle = Callable[[np.ndarray, np.ndarray, np.ndarray], EOSResult]


class GammaLawEOS:
    """
    Gamma-law ideal gas, p = rho k T / (mu m_u), with full ionisation.

    The constructor plays the role of EOS initialisation: density and
    temperature floors are fixed once here and applied on every call.

    Args:
        species: network whose A and Z set the mean molecular weight.
        gamma: ratio of specific heats.
        small_dens: density floor.
        small_temp: temperature floor.
    """

    def __init__(self, species: SpeciesSet, gamma: float = 5.0 / 3.0, small_dens: float = 1.0e-5, small_temp: float = 1.0e5):
        if gamma <= 1.0:
            raise ValueError(f"gamma must exceed 1, got {gamma}")
        self.species = species
        self.gamma = float(gamma)
        self.small_dens = float(small_dens)
        self.small_temp = float(small_temp)
        # electrons + ions per nucleon, per species
        self._ni_per_a = (1.0 + species.zion_array) / species.aion_array
        logger.debug(
            "Gamma-law EOS initialised: gamma=%g, small_dens=%g, small_temp=%g, %d species",
            self.gamma,
            self.small_dens,
            self.small_temp,
            species.nspec,
        )

    def mean_molecular_weight(self, xn: np.ndarray) -> np.ndarray:
        return 1.0 / np.sum(np.asarray(xn, dtype=float) * self._ni_per_a, axis=-1)

    def __call__(self, rho, T, xn) -> EOSResult:
        rho = np.maximum(np.asarray(rho, dtype=float), self.small_dens)
        T = np.maximum(np.asarray(T, dtype=float), self.small_temp)

        mu = self.mean_molecular_weight(xn)
        r_gas = K_BOLTZMANN / (mu * M_U)

        p = rho * r_gas * T
        cv = r_gas / (self.gamma - 1.0)
        return EOSResult(
            rho=rho,
            T=T,
            p=p,
            e=cv * T,
            cv=cv,
            cp=self.gamma * cv,
            dpdT=rho * r_gas,
            gam1=np.full_like(p, self.gamma),
        )
