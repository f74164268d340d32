# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Diagnostic kernels and tools
──────────────────────────────────────────────────────────────────────────────
Kernels are pure numpy functions over read-only, ghost-padded box views. They
evaluate every interior cell of a box at once; a cell's position in the output
array is its position in the box, and its neighbours along the vertical axis
sit one element away in the padded input.

A tool bundles a fixed set of derived fields with the inputs it needs:

 - convgrad : del = dlnT/dlnP, del_ad, del_ledoux
 - fluxes   : Fconv = rho c_p v_vert T'

"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .eos import EOSResult, ThermodynamicOracle
from .errors import ConfigurationError
from .fields import Quantity, vertical_velocity

SPECIES = "species"


def _ghosts(nghost: Union[int, Sequence[int]], ndim: int) -> Tuple[int, ...]:
    if np.isscalar(nghost):
        return (int(nghost),) * ndim
    return tuple(int(g) for g in nghost)


def stencil_slice(shape: Sequence[int], nghost: Sequence[int], axis: Optional[int] = None, offset: int = 0) -> Tuple[slice, ...]:
    """Slices picking the interior cells, optionally shifted by `offset` along `axis`."""
    index = []
    for d, g in enumerate(nghost):
        lo, hi = g, shape[d] - g
        if d == axis:
            lo, hi = lo + offset, hi + offset
        index.append(slice(lo, hi))
    return tuple(index)


# ──────────────────────────────────────────────────────────────
# Kernels
# ──────────────────────────────────────────────────────────────

def log_gradient(T, P, axis: int, nghost: Union[int, Sequence[int]] = 1) -> np.ndarray:
    """
    Centred dlnT/dlnP along `axis`.

    del = (T[+1] - T[-1]) / (P[+1] - P[-1]) * (P[0] / T[0])

    A zero pressure difference yields a non-finite value; no warning is raised.

    Args:
        T: ghost-padded temperature.
        P: ghost-padded pressure, same shape as T.
        axis: vertical axis.
        nghost: ghost width, scalar or per axis.

    Returns:
        Array over the interior cells.
    """
    T = np.asarray(T, dtype=float)
    P = np.asarray(P, dtype=float)
    ng = _ghosts(nghost, T.ndim)

    c = stencil_slice(T.shape, ng)
    hi = stencil_slice(T.shape, ng, axis, +1)
    lo = stencil_slice(T.shape, ng, axis, -1)

    with np.errstate(divide="ignore", invalid="ignore"):
        return (T[hi] - T[lo]) / (P[hi] - P[lo]) * (P[c] / T[c])


def thermal_chi(state: EOSResult) -> np.ndarray:
    """chi_T = dlnP/dlnT at constant density, at the state the EOS evaluated."""
    return state.dpdT * state.T / state.p


def adiabatic_gradient(state: EOSResult) -> np.ndarray:
    """del_ad = p chi_T / (Gamma_1 rho T c_v)  (Hansen, Kawaler & Trimble 3.96-3.97)."""
    return state.p * thermal_chi(state) / (state.gam1 * state.rho * state.T * state.cv)


def ledoux_gradient(del_ad, chi_T, P_minus, P_plus, palt_minus, palt_plus) -> np.ndarray:
    """
    del_ledoux = del_ad + B, with the composition term taken as a centred difference
    (Paxton et al. 2013, eq. 8).

    `palt_*` are the EOS pressures at the centre cell's density and temperature but
    with the neighbours' composition. B is zero where the pressure does not vary.
    """
    denom = np.log(P_plus) - np.log(P_minus)
    with np.errstate(divide="ignore", invalid="ignore"):
        B = np.where(denom != 0.0, -1.0 / chi_T * (np.log(palt_plus) - np.log(palt_minus)) / denom, 0.0)
    return del_ad + B


def convective_flux(rho, cp, v_vert, tpert) -> np.ndarray:
    """Fconv = rho c_p v T'."""
    return np.asarray(rho) * np.asarray(cp) * np.asarray(v_vert) * np.asarray(tpert)


# ──────────────────────────────────────────────────────────────
# Tools
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BoxStencil:
    """
    Read-only inputs for one box.

    Attributes:
        ghost: key -> padded array with a trailing component axis.
        raw: key -> unpadded cell values of the box.
        nghost: ghost width per axis.
        vertical_axis: axis the gradients are taken along.
    """

    ghost: Mapping[str, np.ndarray]
    raw: Mapping[str, np.ndarray]
    nghost: Tuple[int, ...]
    vertical_axis: int

    def center(self, key: str) -> np.ndarray:
        arr = self.ghost[key]
        return arr[stencil_slice(arr.shape, self.nghost)]

    def neighbor(self, key: str, offset: int) -> np.ndarray:
        arr = self.ghost[key]
        return arr[stencil_slice(arr.shape, self.nghost, self.vertical_axis, offset)]

    @property
    def shape(self) -> Tuple[int, ...]:
        first = next(iter(self.raw.values()))
        return first.shape


def required_quantity(key: str, ndims: int) -> Quantity:
    """Quantity behind a tool's input key."""
    if key == "velocity":
        return vertical_velocity(ndims)
    return {
        "density": Quantity.DENSITY,
        "temperature": Quantity.TEMPERATURE,
        "pressure": Quantity.PRESSURE,
        "tpert": Quantity.TEMPERATURE_PERTURBATION,
    }[key]


class DiagnosticTool:
    """
    A fixed set of derived fields and the inputs needed to compute them.

    Subclasses set `name`, `outputs`, `ghosted` (keys reconstructed with ghost
    cells; "species" means the whole species block) and `raw` (keys read without
    ghost cells), and implement `evaluate`.
    """

    name: str = ""
    outputs: Tuple[str, ...] = ()
    ghosted: Tuple[str, ...] = ()
    raw: Tuple[str, ...] = ()

    def output_path(self, plotfile: str, output_directory: Optional[str] = None) -> str:
        base = os.path.basename(plotfile.rstrip("/"))
        name = f"{self.name}.{base}"
        return os.path.join(output_directory, name) if output_directory else name

    def evaluate(self, stencil: BoxStencil, eos: ThermodynamicOracle) -> np.ndarray:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, outputs={self.outputs})"


class ConvectiveGradientTool(DiagnosticTool):
    """Actual, adiabatic and Ledoux temperature gradients."""

    name = "convgrad"
    outputs = ("del", "del_ad", "del_ledoux")
    ghosted = ("temperature", "pressure", SPECIES)
    raw = ("density", "temperature")

    def evaluate(self, stencil: BoxStencil, eos: ThermodynamicOracle) -> np.ndarray:
        ax = stencil.vertical_axis
        rho = stencil.raw["density"]
        temp = stencil.raw["temperature"]

        out = np.empty(stencil.shape + (len(self.outputs),))
        out[..., 0] = log_gradient(
            stencil.ghost["temperature"][..., 0], stencil.ghost["pressure"][..., 0], ax, stencil.nghost
        )

        state = eos(rho, temp, stencil.center(SPECIES))
        chi_T = thermal_chi(state)
        out[..., 1] = adiabatic_gradient(state)

        palt_plus = eos(rho, temp, stencil.neighbor(SPECIES, +1)).p
        palt_minus = eos(rho, temp, stencil.neighbor(SPECIES, -1)).p
        out[..., 2] = ledoux_gradient(
            out[..., 1],
            chi_T,
            stencil.neighbor("pressure", -1)[..., 0],
            stencil.neighbor("pressure", +1)[..., 0],
            palt_minus,
            palt_plus,
        )
        return out


class ConvectiveFluxTool(DiagnosticTool):
    """Convective energy flux carried by temperature fluctuations."""

    name = "fluxes"
    outputs = ("Fconv",)
    ghosted = ("temperature", "pressure", SPECIES, "velocity", "tpert")
    raw = ("density", "temperature", "velocity", "tpert")

    def output_path(self, plotfile: str, output_directory: Optional[str] = None) -> str:
        # written inside the plotfile unless redirected
        if output_directory:
            return super().output_path(plotfile, output_directory)
        return os.path.join(plotfile.rstrip("/"), self.name)

    def evaluate(self, stencil: BoxStencil, eos: ThermodynamicOracle) -> np.ndarray:
        rho = stencil.raw["density"]
        temp = stencil.raw["temperature"]

        state = eos(rho, temp, stencil.center(SPECIES))

        out = np.empty(stencil.shape + (len(self.outputs),))
        out[..., 0] = convective_flux(rho, state.cp, stencil.raw["velocity"], stencil.raw["tpert"])
        return out


TOOLS: Dict[str, DiagnosticTool] = {
    tool.name: tool for tool in (ConvectiveGradientTool(), ConvectiveFluxTool())
}


def get_tool(name: str) -> DiagnosticTool:
    try:
        return TOOLS[name]
    except KeyError:
        raise ConfigurationError(f"unknown tool '{name}'; available: {', '.join(sorted(TOOLS))}")
