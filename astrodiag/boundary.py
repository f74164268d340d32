# -*- coding: utf-8 -*-

"""

Boundary policy: how ghost cells are treated along each spatial axis.

A dataset may have fewer active axes than the build supports (a 2-D plotfile
seen by a 3-D build). Active axes get an extrapolating boundary and a halo of
ghost cells; the extra axes are periodic, have no halo, and are never refined.

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple

from .errors import ConfigurationError

DEFAULT_SPACEDIM = 3


class BCType(Enum):
    EXTRAPOLATE = "hoextrapcc"
    INTERIOR = "int_dir"


@dataclass(frozen=True)
class AxisBoundary:
    lo: BCType
    hi: BCType
    periodic: bool
    nghost: int


@dataclass(frozen=True)
class BoundaryPolicy:
    """One boundary record per axis, shared by every fill at every level."""

    ndims: int
    axes: Tuple[AxisBoundary, ...]

    @classmethod
    def from_dimensions(cls, ndims: int, spacedim: int = DEFAULT_SPACEDIM, nghost: int = 1) -> "BoundaryPolicy":
        if ndims < 1 or ndims > spacedim:
            raise ConfigurationError(
                f"dataset has {ndims} dimensions but astrodiag is configured for {spacedim}"
            )
        if nghost < 1:
            raise ConfigurationError("ghost width must be at least one cell")

        axes = []
        for idim in range(spacedim):
            if idim < ndims:
                axes.append(AxisBoundary(BCType.EXTRAPOLATE, BCType.EXTRAPOLATE, False, nghost))
            else:
                axes.append(AxisBoundary(BCType.INTERIOR, BCType.INTERIOR, True, 0))
        return cls(ndims=ndims, axes=tuple(axes))

    @property
    def spacedim(self) -> int:
        return len(self.axes)

    @property
    def nghost(self) -> Tuple[int, ...]:
        return tuple(ax.nghost for ax in self.axes)

    @property
    def is_periodic(self) -> Tuple[bool, ...]:
        return tuple(ax.periodic for ax in self.axes)

    @property
    def vertical_axis(self) -> int:
        # plane-parallel convention: the last active axis points "up"
        return self.ndims - 1

    def is_active(self, axis: int) -> bool:
        return axis < self.ndims

    def effective_ratio(self, ratio: Sequence[int]) -> Tuple[int, ...]:
        """Refinement ratio with inactive axes forced to 1."""
        if len(ratio) != self.spacedim:
            raise ConfigurationError(f"refinement ratio {tuple(ratio)} has wrong dimension")
        return tuple(int(r) if self.is_active(d) else 1 for d, r in enumerate(ratio))
