# -*- coding: utf-8 -*-
"""
Sparse output canvas, per-anchor candidate sets and the running color tally.

Anchors are the top-left pixel of a footprint. Candidate sets are numpy bool
masks over catalog indices, built lazily from whatever is fixed under the
anchor's footprint and only ever narrowed until dropped.
"""

from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from .catalog import Catalog
from .errors import Contradiction
from .palette import NO_COLOR

Pos = Tuple[int, int]


# -------------------------- canvas --------------------------
class Canvas:
    def __init__(self):
        self.pixels: Dict[Pos, int] = {}

    def __len__(self):
        return len(self.pixels)

    def __contains__(self, pos: Pos):
        return pos in self.pixels

    def get(self, pos: Pos) -> Optional[int]:
        return self.pixels.get(pos)

    def fix(self, pos: Pos, color: int) -> bool:
        cur = self.pixels.get(pos)
        if cur is None:
            self.pixels[pos] = int(color)
            return True
        if cur == color: return False
        raise Contradiction(pos, cur, int(color))

    def unfix(self, pos: Pos) -> Optional[int]:
        return self.pixels.pop(pos, None)

    def bbox(self) -> Optional[Tuple[int, int, int, int]]:
        if not self.pixels: return None
        xs = [p[0] for p in self.pixels]; ys = [p[1] for p in self.pixels]
        return min(xs), min(ys), max(xs), max(ys)

    def to_grid(self, width: Optional[int] = None, height: Optional[int] = None) -> Tuple[np.ndarray, Pos]:
        """Dense (H, W) grid plus the canvas coordinate of its top-left cell."""
        if width and height:
            x0, y0, w, h = 0, 0, width, height
        else:
            box = self.bbox()
            if box is None: return np.full((0, 0), NO_COLOR, dtype=np.int32), (0, 0)
            x0, y0, x1, y1 = box
            w, h = x1 - x0 + 1, y1 - y0 + 1
        grid = np.full((h, w), NO_COLOR, dtype=np.int32)
        for (x, y), c in self.pixels.items():
            if 0 <= x - x0 < w and 0 <= y - y0 < h:
                grid[y - y0, x - x0] = c
        return grid, (x0, y0)


# -------------------------- candidate sets --------------------------
class CandidateTable:
    def __init__(self, catalog: Catalog, canvas: Canvas):
        self.catalog = catalog
        self.canvas = canvas
        self.size = catalog.size
        self.sets: Dict[Pos, np.ndarray] = {}
        self.counts: Dict[Pos, int] = {}

    def __contains__(self, anchor: Pos):
        return anchor in self.sets

    def fixed_under(self, anchor: Pos) -> Dict[Pos, int]:
        ax, ay = anchor
        out = {}
        for oy in range(self.size):
            for ox in range(self.size):
                c = self.canvas.get((ax + ox, ay + oy))
                if c is not None: out[(ox, oy)] = c
        return out

    def recompute(self, anchor: Pos) -> np.ndarray:
        return self.catalog.consistent_with(self.fixed_under(anchor))

    def get(self, anchor: Pos) -> np.ndarray:
        m = self.sets.get(anchor)
        if m is None:
            m = self.sets[anchor] = self.recompute(anchor)
            self.counts[anchor] = int(np.count_nonzero(m))
        return m

    def count(self, anchor: Pos) -> int:
        if anchor not in self.sets: self.get(anchor)
        return self.counts[anchor]

    def narrow(self, anchor: Pos, pixel: Pos, color: int) -> bool:
        """Drop variants disagreeing with one fixed pixel; True when nothing is left."""
        ox, oy = pixel[0] - anchor[0], pixel[1] - anchor[1]
        return self.restrict(anchor, self.catalog.stack[:, oy, ox] == color)

    def restrict(self, anchor: Pos, mask: np.ndarray) -> bool:
        m = self.get(anchor)
        m &= mask
        self.counts[anchor] = int(np.count_nonzero(m))
        return self.counts[anchor] == 0

    def drop(self, anchor: Pos):
        self.sets.pop(anchor, None)
        self.counts.pop(anchor, None)

    def live(self) -> Iterator[Tuple[Pos, np.ndarray]]:
        return iter(list(self.sets.items()))


# -------------------------- color balance --------------------------
class ColorBalance:
    def __init__(self, proportions: np.ndarray):
        self.proportions = np.asarray(proportions, dtype=np.float64)
        self.counts = np.zeros(len(self.proportions), dtype=np.int64)
        self.total = 0

    def add(self, color: int):
        self.counts[color] += 1
        self.total += 1

    def remove(self, color: int):
        self.counts[color] -= 1
        self.total -= 1
