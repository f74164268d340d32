# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Ghost-cell reconstruction
──────────────────────────────────────────────────────────────────────────────
Builds ghost-padded copies of one field group on one level so that stencils
can read one cell past the edge of every box.

Every box gets its own array covering the box grown by the ghost width, so
memory follows the level's data and not the extent of its bounding box. Each
array is filled in three passes:

 - from every box of the same level that overlaps it (own data and neighbours);
 - inside the domain, on levels > 0: by conservative linear interpolation from
   the parent level's ghost-padded buffer;
 - outside the domain: by linear extrapolation along each active axis.

Levels must be reconstructed coarse to fine. `LevelReconstructor` holds the
chain for one field group and refuses to build a level whose parent buffer it
does not have.

"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Sequence, Tuple

import numpy as np

from .boundary import BCType, BoundaryPolicy
from .errors import MissingParentLevel
from .hierarchy import Box, Hierarchy, Level

logger = logging.getLogger("astrodiag")


class GhostBuffer:
    """
    Ghost-padded data for one level.

    Args:
        level: level index the buffer belongs to.
        boxes: the level's valid boxes.
        arrays: one array per box, shape (*box.grow(nghost).shape, ncomp).
        nghost: ghost width per axis.
    """

    def __init__(self, level: int, boxes: Sequence[Box], arrays: Sequence[np.ndarray], nghost: Sequence[int]):
        if len(boxes) != len(arrays):
            raise ValueError(f"{len(boxes)} boxes but {len(arrays)} arrays")
        self.level = level
        self.boxes: List[Box] = list(boxes)
        self.arrays: List[np.ndarray] = list(arrays)
        self.nghost = tuple(int(g) for g in nghost)
        for box, arr in zip(self.boxes, self.arrays):
            if arr.shape[:-1] != box.grow(self.nghost).shape:
                raise ValueError(f"array of shape {arr.shape} does not match grown box {box.grow(self.nghost)}")
            arr.flags.writeable = False
        self._index: Dict[Box, int] = {box: i for i, box in enumerate(self.boxes)}

    @property
    def ncomp(self) -> int:
        return self.arrays[0].shape[-1]

    @property
    def ncells(self) -> int:
        """Cells held across all per-box arrays, ghosts included."""
        return sum(int(np.prod(arr.shape[:-1])) for arr in self.arrays)

    def view(self, box: Box) -> np.ndarray:
        """Read-only array of `box` plus its ghost halo, shape (*grown.shape, ncomp)."""
        try:
            return self.arrays[self._index[box]]
        except KeyError:
            raise ValueError(f"box {box} is not a box of level {self.level}") from None

    def lookup(self, idx: np.ndarray) -> np.ndarray:
        """
        Values at cell indices `idx` (M x ndim); NaN where no array covers them.

        Valid cells of a box are preferred over ghost cells of another box.
        """
        idx = np.asarray(idx, dtype=int)
        out = np.full((idx.shape[0], self.ncomp), np.nan)
        todo = np.ones(idx.shape[0], dtype=bool)

        for grow in (False, True):
            for box, arr in zip(self.boxes, self.arrays):
                region = box.grow(self.nghost) if grow else box
                inside = todo & np.all((idx >= region.lo) & (idx <= region.hi), axis=1)
                if not inside.any():
                    continue
                rel = idx[inside] - np.asarray(box.lo) + np.asarray(self.nghost)
                values = arr[tuple(rel.T)]
                if grow:
                    # halos may still hold unfilled cells
                    ok = np.isfinite(values).all(axis=1)
                    inside[np.flatnonzero(inside)[~ok]] = False
                    values = values[ok]
                out[inside] = values
                todo &= ~inside
            if not todo.any():
                break
        return out


# ──────────────────────────────────────────────────────────────
# Building blocks
# ──────────────────────────────────────────────────────────────

def _at(ndim: int, axis: int, i: int) -> Tuple:
    index = [slice(None)] * ndim
    index[axis] = i
    return tuple(index)


def _gather(level: Level, comps: Sequence[int], grown: Box) -> Tuple[np.ndarray, np.ndarray]:
    """Copy every same-level box overlapping `grown` into a fresh NaN array."""
    data = np.full(grown.shape + (len(comps),), np.nan)
    valid = np.zeros(grown.shape, dtype=bool)
    comps = list(comps)
    for box, fab in zip(level.boxes, level.fabs):
        overlap = box.intersection(grown)
        if overlap is None:
            continue
        dst = overlap.slices(grown.lo)
        data[dst] = fab[overlap.slices(box.lo)][..., comps]
        valid[dst] = True
    return data, valid


def _domain_mask(domain: Box, region: Box) -> np.ndarray:
    mask = np.zeros(region.shape, dtype=bool)
    inside = domain.intersection(region)
    if inside is not None:
        mask[inside.slices(region.lo)] = True
    return mask


def mc_limited_slope(dl: np.ndarray, dr: np.ndarray) -> np.ndarray:
    """Monotonised-central slope from left and right one-sided differences."""
    dc = 0.5 * (dl + dr)
    slope = np.sign(dc) * np.minimum(np.abs(dc), 2.0 * np.minimum(np.abs(dl), np.abs(dr)))
    return np.where(dl * dr > 0.0, slope, 0.0)


def conservative_interp(parent: GhostBuffer, fine_idx: np.ndarray, ratio: Sequence[int]) -> np.ndarray:
    """
    Interpolate parent data to fine cells.

    Each fine cell takes its coarse cell's value plus a limited linear correction
    per refined axis. The corrections average to zero over the r fine cells of a
    coarse cell, so the coarse value is conserved and constants are reproduced.
    Neighbours missing from the parent buffer contribute a zero difference.

    Args:
        parent: ghost-padded buffer of the coarser level.
        fine_idx: fine-level cell indices, shape (M, ndim).
        ratio: effective refinement ratio per axis.

    Returns:
        Array of shape (M, ncomp).
    """
    ratio = np.asarray(ratio, dtype=int)
    fine_idx = np.asarray(fine_idx, dtype=int)
    coarse = np.floor_divide(fine_idx, ratio)

    qc = parent.lookup(coarse)
    result = qc.copy()

    for d in range(ratio.size):
        if ratio[d] == 1:
            continue
        shift = np.zeros(ratio.size, dtype=int)
        shift[d] = 1
        dl = qc - parent.lookup(coarse - shift)
        dr = parent.lookup(coarse + shift) - qc
        slope = mc_limited_slope(np.where(np.isfinite(dl), dl, 0.0), np.where(np.isfinite(dr), dr, 0.0))
        offset = (fine_idx[:, d] - coarse[:, d] * ratio[d] + 0.5) / ratio[d] - 0.5
        result += slope * offset[:, None]

    return result


def extrapolate_physical_boundaries(data: np.ndarray, region: Box, domain: Box, policy: BoundaryPolicy) -> None:
    """
    Fill the slabs of `data` lying outside `domain`, axis by axis, in place.

    A ghost cell m cells past a face gets q0 + m * (q0 - q1), q0 and q1 being the
    two nearest in-domain cells. A one-cell-thick domain falls back to a copy.
    Axes are swept in order, so edge and corner ghosts are filled by the later
    sweeps from slabs the earlier sweeps already completed.
    """
    nd = data.ndim
    for d, bc in enumerate(policy.axes):
        if bc.nghost == 0 or bc.periodic:
            continue

        n = data.shape[d]
        ilo = domain.lo[d] - region.lo[d]
        ihi = domain.hi[d] - region.lo[d]

        if bc.lo is BCType.EXTRAPOLATE and ilo > 0:
            q0 = data[_at(nd, d, ilo)]
            q1 = data[_at(nd, d, ilo + 1)] if ilo + 1 <= min(ihi, n - 1) else q0
            for m in range(1, ilo + 1):
                data[_at(nd, d, ilo - m)] = q0 + m * (q0 - q1)

        if bc.hi is BCType.EXTRAPOLATE and ihi < n - 1:
            q0 = data[_at(nd, d, ihi)]
            q1 = data[_at(nd, d, ihi - 1)] if ihi - 1 >= max(ilo, 0) else q0
            for m in range(1, n - ihi):
                data[_at(nd, d, ihi + m)] = q0 + m * (q0 - q1)


# ──────────────────────────────────────────────────────────────
# Level fills
# ──────────────────────────────────────────────────────────────

def fill_single_level(level: Level, comps: Sequence[int], policy: BoundaryPolicy, ilev: int = 0) -> GhostBuffer:
    """Ghost-padded buffer from the level's own data and the boundary policy only."""
    nghost = policy.nghost
    arrays = []
    uncovered = 0
    for box in level.boxes:
        grown = box.grow(nghost)
        data, valid = _gather(level, comps, grown)
        uncovered += int(np.count_nonzero(~valid & _domain_mask(level.domain, grown)))
        extrapolate_physical_boundaries(data, grown, level.domain, policy)
        arrays.append(data)

    if uncovered:
        logger.warning("Level %d does not cover its domain; %d interior ghost cells left unfilled", ilev, uncovered)
    return GhostBuffer(ilev, level.boxes, arrays, nghost)


def fill_two_levels(
    level: Level,
    comps: Sequence[int],
    policy: BoundaryPolicy,
    parent: GhostBuffer,
    ratio: Sequence[int],
    ilev: int,
) -> GhostBuffer:
    """Ghost-padded buffer using the parent level's buffer for coarse-fine ghost cells."""
    nghost = policy.nghost
    arrays = []
    count = missing = 0
    for box in level.boxes:
        grown = box.grow(nghost)
        data, valid = _gather(level, comps, grown)

        target = ~valid & _domain_mask(level.domain, grown)
        if target.any():
            idx = np.argwhere(target) + np.asarray(grown.lo)
            values = conservative_interp(parent, idx, ratio)
            missing += int(np.count_nonzero(~np.isfinite(values).all(axis=1)))
            count += len(idx)
            data[target] = values

        extrapolate_physical_boundaries(data, grown, level.domain, policy)
        arrays.append(data)

    if missing:
        logger.warning(
            "Level %d: %d ghost cells are not covered by level %d (hierarchy not properly nested?)",
            ilev,
            missing,
            parent.level,
        )
    logger.debug("Level %d: %d ghost cells interpolated from level %d at ratio %s", ilev, count, parent.level, tuple(ratio))
    return GhostBuffer(ilev, level.boxes, arrays, nghost)


class LevelReconstructor:
    """
    Coarse-to-fine reconstruction chain for one group of components.

    Level k is built from level k's data and the chain's level k - 1 buffer. The
    chain keeps the last level it built and that level's parent, so the last
    level can be rebuilt; anything coarser is released once the next level exists.

    Args:
        hierarchy: source hierarchy.
        comps: component slots making up this group (one field, or a species block).
        policy: boundary policy shared by every fill.
        name: label used in log messages.
    """

    def __init__(self, hierarchy: Hierarchy, comps: Sequence[int], policy: BoundaryPolicy, name: str = ""):
        self.hierarchy = hierarchy
        self.comps: List[int] = [int(c) for c in comps]
        self.policy = policy
        self.name = name
        self._buffers: Dict[int, GhostBuffer] = {}

    def reconstruct(self, ilev: int) -> GhostBuffer:
        if not 0 <= ilev < self.hierarchy.nlevels:
            raise IndexError(f"level {ilev} is not in the hierarchy (finest level {self.hierarchy.finest_level})")

        level = self.hierarchy.levels[ilev]

        if ilev == 0:
            buf = fill_single_level(level, self.comps, self.policy, ilev)
        else:
            parent = self._buffers.get(ilev - 1)
            if parent is None:
                raise MissingParentLevel(ilev)
            if ilev - 1 >= len(self.hierarchy.ref_ratios):
                raise MissingParentLevel(ilev, "no refinement ratio recorded for the parent level")
            ratio = self.policy.effective_ratio(self.hierarchy.ref_ratio(ilev - 1))
            buf = fill_two_levels(level, self.comps, self.policy, parent, ratio, ilev)

        logger.debug("Reconstructed '%s' on level %d (%d boxes, %d cells)", self.name, ilev, len(buf.boxes), buf.ncells)
        self._buffers = {k: b for k, b in self._buffers.items() if k == ilev - 1}
        self._buffers[ilev] = buf
        return buf

    def __iter__(self) -> Iterator[GhostBuffer]:
        for ilev in range(self.hierarchy.nlevels):
            yield self.reconstruct(ilev)

    def release(self) -> None:
        self._buffers = {}
