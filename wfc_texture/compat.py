# -*- coding: utf-8 -*-
"""
Compatibility index: for two variants whose footprints overlap at a given
relative offset, do they agree on every shared pixel?

Rather than a K x K table per offset, each variant gets one class id per
offset (the id of the pixel pattern it shows inside the overlap), once as the
left-hand tile and once as the right-hand tile. Two variants are compatible
exactly when those ids match. Only half the offsets are stored; the other
half follow from compatible(a, d, b) == compatible(b, -d, a).
"""

from typing import Dict, Tuple

import numpy as np

from .catalog import Catalog

Offset = Tuple[int, int]


def overlap_slices(dx: int, dy: int, n: int):
    """Slices of A and of B (B anchored at A + (dx, dy)) covering their overlap."""
    ya0, ya1 = max(0, dy), min(n, n + dy)
    xa0, xa1 = max(0, dx), min(n, n + dx)
    a = (slice(ya0, ya1), slice(xa0, xa1))
    b = (slice(ya0 - dy, ya1 - dy), slice(xa0 - dx, xa1 - dx))
    return a, b


def is_canonical(dx: int, dy: int) -> bool:
    return dy > 0 or (dy == 0 and dx > 0)


class CompatibilityIndex:
    def __init__(self, catalog: Catalog):
        self.size = n = catalog.size
        self.count = K = len(catalog)
        V = catalog.stack
        self.keys: Dict[Offset, Tuple[np.ndarray, np.ndarray]] = {}
        for dy in range(0, n):
            for dx in range(-n + 1, n):
                if not is_canonical(dx, dy): continue
                sa, sb = overlap_slices(dx, dy, n)
                a = V[:, sa[0], sa[1]].reshape(K, -1)
                b = V[:, sb[0], sb[1]].reshape(K, -1)
                _, inv = np.unique(np.concatenate([a, b]), axis=0, return_inverse=True)
                inv = np.asarray(inv).reshape(-1)
                self.keys[(dx, dy)] = (inv[:K], inv[K:])

    def offsets(self):
        n = self.size
        return [(dx, dy) for dy in range(-n + 1, n) for dx in range(-n + 1, n) if (dx, dy) != (0, 0)]

    def overlaps(self, offset: Offset) -> bool:
        dx, dy = offset
        return abs(dx) < self.size and abs(dy) < self.size

    def compatible(self, a: int, offset: Offset, b: int) -> bool:
        dx, dy = offset
        if (dx, dy) == (0, 0): return a == b
        if not self.overlaps(offset): return True
        if is_canonical(dx, dy):
            ka, kb = self.keys[(dx, dy)]
            return bool(ka[a] == kb[b])
        ka, kb = self.keys[(-dx, -dy)]
        return bool(ka[b] == kb[a])

    def mask(self, a: int, offset: Offset) -> np.ndarray:
        """All variants b with compatible(a, offset, b)."""
        dx, dy = offset
        if (dx, dy) == (0, 0):
            out = np.zeros(self.count, dtype=bool); out[a] = True
            return out
        if not self.overlaps(offset): return np.ones(self.count, dtype=bool)
        if is_canonical(dx, dy):
            ka, kb = self.keys[(dx, dy)]
            return kb == ka[a]
        ka, kb = self.keys[(-dx, -dy)]
        return ka == kb[a]
