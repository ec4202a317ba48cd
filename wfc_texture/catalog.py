# -*- coding: utf-8 -*-
"""
Tile catalog: every footprint-sized patch of the source, deduplicated, with
optional rotation / mirror variants.

A patch seen k times whose transform orbit has m distinct members gives each
member k/m weight, so the catalog's total weight always equals the number of
patches scanned from the source.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

import numpy as np

from .errors import SourceTooSmall

TILE_SIZE = 3

# (row, col, n) -> (row, col) in the untransformed patch
Transform = Callable[[int, int, int], Tuple[int, int]]

# -------------------------- transforms --------------------------
def identity(r, c, n): return r, c
def rot90(r, c, n):    return n - 1 - c, r
def rot180(r, c, n):   return n - 1 - r, n - 1 - c
def rot270(r, c, n):   return c, n - 1 - r
def mirror_h(r, c, n): return r, n - 1 - c

def compose(outer: Transform, inner: Transform) -> Transform:
    """Transform that applies `inner` to the patch, then `outer` to the result."""
    def f(r, c, n):
        r2, c2 = outer(r, c, n)
        return inner(r2, c2, n)
    return f

ROTATIONS: List[Transform] = [identity, rot90, rot180, rot270]

def transforms_for(rotate: bool, mirror: bool) -> List[Transform]:
    base = ROTATIONS if rotate else [identity]
    if not mirror: return list(base)
    return list(base) + [compose(mirror_h, t) for t in base]

def apply_transform(patch: np.ndarray, t: Transform) -> np.ndarray:
    n = patch.shape[0]
    rows = np.empty((n, n), dtype=np.intp)
    cols = np.empty((n, n), dtype=np.intp)
    for r in range(n):
        for c in range(n):
            rows[r, c], cols[r, c] = t(r, c, n)
    return np.ascontiguousarray(patch[rows, cols])

# -------------------------- variants --------------------------
@dataclass(frozen=True)
class TileVariant:
    index: int
    pixels: Tuple[Tuple[int, ...], ...]
    weight: float
    histogram: Tuple[int, ...]

    def color_at(self, ox: int, oy: int) -> int:
        return self.pixels[oy][ox]

    @property
    def size(self) -> int:
        return len(self.pixels)


class Catalog:
    def __init__(self, variants: List[TileVariant], size: int, n_colors: int):
        self.variants = variants
        self.size = size
        self.n_colors = n_colors
        self.stack = np.array([v.pixels for v in variants], dtype=np.int32).reshape(len(variants), size, size)
        self.weights = np.array([v.weight for v in variants], dtype=np.float64)

    def __len__(self):
        return len(self.variants)

    def __getitem__(self, i: int) -> TileVariant:
        return self.variants[i]

    def consistent_with(self, fixed: Dict[Tuple[int, int], int]) -> np.ndarray:
        """Mask of variants agreeing with {(ox, oy): color} footprint pixels."""
        mask = np.ones(len(self.variants), dtype=bool)
        for (ox, oy), color in fixed.items():
            mask &= self.stack[:, oy, ox] == color
        return mask

    def total_weight(self) -> float:
        return float(self.weights.sum())


def extract_patches(source: np.ndarray, size: int) -> Tuple[Dict[bytes, np.ndarray], Dict[bytes, int]]:
    h, w = source.shape
    patches: Dict[bytes, np.ndarray] = {}
    counts: Dict[bytes, int] = {}
    for y in range(h - size + 1):
        for x in range(w - size + 1):
            p = np.ascontiguousarray(source[y:y + size, x:x + size], dtype=np.int32)
            key = p.tobytes()
            if key not in patches:
                patches[key] = p
                counts[key] = 0
            counts[key] += 1
    return patches, counts


def build_catalog(source: np.ndarray, size: int = TILE_SIZE, rotate: bool = False,
                  mirror: bool = False, n_colors: int = None) -> Catalog:
    if size < 1 or size % 2 == 0:
        raise ValueError(f"footprint size must be a positive odd number, got {size}")
    source = np.asarray(source)
    if source.ndim != 2 or source.shape[0] < size or source.shape[1] < size:
        raise SourceTooSmall(tuple(source.shape[:2]) if source.ndim >= 2 else (0, 0), size)
    if n_colors is None:
        n_colors = int(source.max()) + 1

    patches, counts = extract_patches(source, size)
    transforms = transforms_for(rotate, mirror)

    pixels: Dict[bytes, np.ndarray] = {}
    weights: Dict[bytes, float] = {}
    for key, patch in patches.items():
        orbit: Dict[bytes, np.ndarray] = {}
        for t in transforms:
            tp = apply_transform(patch, t)
            orbit.setdefault(tp.tobytes(), tp)
        share = counts[key] / len(orbit)
        for k2, tp in orbit.items():
            if k2 not in pixels:
                pixels[k2] = tp
                weights[k2] = 0.0
            weights[k2] += share

    variants = []
    for i, (key, tp) in enumerate(pixels.items()):
        hist = np.bincount(tp.ravel(), minlength=n_colors)
        variants.append(TileVariant(index=i,
                                    pixels=tuple(tuple(int(v) for v in row) for row in tp),
                                    weight=float(weights[key]),
                                    histogram=tuple(int(v) for v in hist)))
    return Catalog(variants, size, n_colors)
