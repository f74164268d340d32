# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
AMR hierarchy data model
──────────────────────────────────────────────────────────────────────────────
A `Hierarchy` is an ordered list of `Level`s (0 = coarsest). Each level owns a
set of disjoint index-space `Box`es and one cell-centred array per box holding
every variable of the snapshot.

All index tuples have `spacedim` entries. Axes beyond the dataset's active
dimensionality (`ndims`) are one cell thick (lo = hi = 0), which is how a 2-D
plotfile looks to a 3-D build.

Hierarchies read from disk are treated as read-only inputs.

"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

IntVect = Tuple[int, ...]


def _as_intvect(value: Union[int, Sequence[int]], ndim: int) -> IntVect:
    if np.isscalar(value):
        return (int(value),) * ndim
    value = tuple(int(v) for v in value)
    if len(value) != ndim:
        raise ValueError(f"expected {ndim} components, got {len(value)}")
    return value


@dataclass(frozen=True)
class Box:
    """Inclusive cell-index box: cells lo[d] .. hi[d] along every axis d."""

    lo: IntVect
    hi: IntVect

    def __post_init__(self):
        if len(self.lo) != len(self.hi):
            raise ValueError(f"Box corners differ in dimension: {self.lo} vs {self.hi}")

    @property
    def ndim(self) -> int:
        return len(self.lo)

    @property
    def shape(self) -> IntVect:
        return tuple(h - l + 1 for l, h in zip(self.lo, self.hi))

    @property
    def numpts(self) -> int:
        return int(np.prod(self.shape))

    def grow(self, n: Union[int, Sequence[int]]) -> "Box":
        n = _as_intvect(n, self.ndim)
        return Box(tuple(l - g for l, g in zip(self.lo, n)), tuple(h + g for h, g in zip(self.hi, n)))

    def refine(self, ratio: Union[int, Sequence[int]]) -> "Box":
        r = _as_intvect(ratio, self.ndim)
        return Box(tuple(l * f for l, f in zip(self.lo, r)), tuple((h + 1) * f - 1 for h, f in zip(self.hi, r)))

    def coarsen(self, ratio: Union[int, Sequence[int]]) -> "Box":
        r = _as_intvect(ratio, self.ndim)
        return Box(tuple(l // f for l, f in zip(self.lo, r)), tuple(h // f for h, f in zip(self.hi, r)))

    def intersection(self, other: "Box") -> Optional["Box"]:
        lo = tuple(max(a, b) for a, b in zip(self.lo, other.lo))
        hi = tuple(min(a, b) for a, b in zip(self.hi, other.hi))
        if any(l > h for l, h in zip(lo, hi)):
            return None
        return Box(lo, hi)

    def contains(self, other: "Box") -> bool:
        return all(a <= b for a, b in zip(self.lo, other.lo)) and all(a >= b for a, b in zip(self.hi, other.hi))

    def slices(self, origin: Sequence[int]) -> Tuple[slice, ...]:
        """Slices selecting this box inside an array whose element 0 sits at `origin`."""
        return tuple(slice(l - o, h - o + 1) for l, h, o in zip(self.lo, self.hi, origin))

    @staticmethod
    def bounding(boxes: Sequence["Box"]) -> "Box":
        if not boxes:
            raise ValueError("cannot bound an empty box list")
        lo = tuple(min(b.lo[d] for b in boxes) for d in range(boxes[0].ndim))
        hi = tuple(max(b.hi[d] for b in boxes) for d in range(boxes[0].ndim))
        return Box(lo, hi)


@dataclass
class Level:
    """
    One refinement level.

    Attributes:
        boxes: disjoint boxes covering the level's valid region.
        domain: index-space box of the whole physical domain at this resolution.
        cell_size: cell width per axis.
        step: number of steps this level has taken.
        owners: opaque box -> compute-unit map (the Cell_D file index on disk).
        loader: optional callable returning the per-box arrays on first access.
    """

    boxes: List[Box]
    domain: Box
    cell_size: Tuple[float, ...]
    step: int = 0
    owners: Optional[List[int]] = None
    loader: Optional[Callable[[], List[np.ndarray]]] = field(default=None, repr=False)
    _fabs: Optional[List[np.ndarray]] = field(default=None, repr=False)

    def __post_init__(self):
        if self.owners is None:
            self.owners = [0] * len(self.boxes)

    @property
    def fabs(self) -> List[np.ndarray]:
        """Per-box arrays of shape (*box.shape, nvars), read on first access."""
        if self._fabs is None:
            if self.loader is None:
                raise RuntimeError("Level has neither data nor a loader")
            self._fabs = self.loader()
        return self._fabs

    @property
    def nboxes(self) -> int:
        return len(self.boxes)


@dataclass
class Hierarchy:
    """A multi-level AMR snapshot."""

    varnames: List[str]
    levels: List[Level]
    ndims: int
    prob_lo: Tuple[float, ...]
    prob_hi: Tuple[float, ...]
    ref_ratios: List[IntVect]
    time: float = 0.0
    coord_sys: int = 0
    path: Optional[str] = None

    @property
    def spacedim(self) -> int:
        return len(self.prob_lo)

    @property
    def nlevels(self) -> int:
        return len(self.levels)

    @property
    def finest_level(self) -> int:
        return len(self.levels) - 1

    @property
    def level_steps(self) -> List[int]:
        return [lev.step for lev in self.levels]

    def ref_ratio(self, ilev: int) -> IntVect:
        """Stated refinement ratio between level `ilev` and level `ilev + 1`."""
        return self.ref_ratios[ilev]


def make_level(
    boxes: Sequence[Box],
    fabs: Sequence[np.ndarray],
    domain: Box,
    cell_size: Sequence[float],
    step: int = 0,
) -> Level:
    """Build an in-memory level, checking that every array matches its box."""
    fabs = [np.asarray(f, dtype=float) for f in fabs]
    for box, fab in zip(boxes, fabs):
        if fab.shape[:-1] != box.shape:
            raise ValueError(f"data of shape {fab.shape} does not match box {box}")
    return Level(boxes=list(boxes), domain=domain, cell_size=tuple(cell_size), step=step, _fabs=list(fabs))
