# -*- coding: utf-8 -*-
"""
Distance model: how far, in the source, a pixel of color `a` typically sits
from the nearest other pixel of color `b`.

Only mean / std / sample count per ordered pair are kept; at synthesis time
the nearest fixed pixels around a candidate position are compared against
them to score each color.
"""

import math
from typing import List, Mapping, Sequence, Tuple

import numpy as np

DISTANCE_RADIUS = 6
MAX_QUERY_SAMPLES = 512
SIGMA_FLOOR = 0.5
_CHUNK = 4096


def nearest_distances(query: np.ndarray, targets: np.ndarray, exclude_self: bool) -> np.ndarray:
    """Euclidean distance from every query point to its nearest target point."""
    best = np.full(len(query), np.inf)
    q = query.astype(np.float64)
    for i in range(0, len(targets), _CHUNK):
        t = targets[i:i + _CHUNK].astype(np.float64)
        d = np.sqrt(((q[:, None, :] - t[None, :, :]) ** 2).sum(axis=2))
        if exclude_self:
            d[d == 0] = np.inf
        best = np.minimum(best, d.min(axis=1))
    return best


class DistanceModel:
    def __init__(self, mean: np.ndarray, std: np.ndarray, samples: np.ndarray, radius: int):
        self.mean = mean
        self.std = std
        self.samples = samples
        self.radius = int(radius)
        self.n_colors = mean.shape[0]
        self._sigma = np.maximum(np.nan_to_num(std, nan=SIGMA_FLOOR), SIGMA_FLOOR)

    @classmethod
    def from_source(cls, source: np.ndarray, n_colors: int, radius: int = None) -> "DistanceModel":
        h, w = source.shape
        if radius is None:
            radius = min(DISTANCE_RADIUS, max(1, min(h, w) // 2))
        mean = np.full((n_colors, n_colors), np.nan)
        std = np.full((n_colors, n_colors), np.nan)
        samples = np.zeros((n_colors, n_colors), dtype=np.int64)

        coords = [np.argwhere(source == c) for c in range(n_colors)]
        for a in range(n_colors):
            qa = coords[a]
            if len(qa) == 0: continue
            if len(qa) > MAX_QUERY_SAMPLES:
                qa = qa[::int(math.ceil(len(qa) / MAX_QUERY_SAMPLES))]
            for b in range(n_colors):
                if len(coords[b]) == 0: continue
                near = nearest_distances(qa, coords[b], exclude_self=(a == b))
                near = near[np.isfinite(near)]
                if near.size == 0: continue
                mean[a, b] = float(near.mean())
                std[a, b] = float(near.std())
                samples[a, b] = int(near.size)
        return cls(mean, std, samples, radius)

    def fit_scores(self, pixels: Mapping[Tuple[int, int], int],
                   positions: Sequence[Tuple[int, int]]) -> np.ndarray:
        """
        Score in (0, 1] for every (position, color): 1.0 means the nearest fixed
        pixel of each color sits at the distance the source leads us to expect.
        """
        C, R = self.n_colors, self.radius
        out = np.ones((len(positions), C))
        if not positions or not pixels: return out

        xs = [p[0] for p in positions]; ys = [p[1] for p in positions]
        fx: List[int] = []; fy: List[int] = []; fc: List[int] = []
        for y in range(min(ys) - R, max(ys) + R + 1):
            for x in range(min(xs) - R, max(xs) + R + 1):
                c = pixels.get((x, y))
                if c is None: continue
                fx.append(x); fy.append(y); fc.append(c)
        if not fc: return out
        fx = np.array(fx); fy = np.array(fy); fc = np.array(fc)

        for i, (x, y) in enumerate(positions):
            dx, dy = fx - x, fy - y
            near = (np.abs(dx) <= R) & (np.abs(dy) <= R) & ((dx != 0) | (dy != 0))
            if not near.any(): continue
            dist = np.hypot(dx[near], dy[near])
            cols = fc[near]
            observed = np.full(C, np.nan)
            for b in np.unique(cols):
                observed[b] = dist[cols == b].min()
            z = (observed[None, :] - self.mean) / self._sigma
            valid = np.isfinite(z)
            sq = np.where(valid, z, 0.0) ** 2
            n = valid.sum(axis=1)
            out[i] = np.where(n > 0, np.exp(-0.5 * sq.sum(axis=1) / np.maximum(n, 1)), 1.0)
        return out

    def table(self) -> List[dict]:
        rows = []
        for a in range(self.n_colors):
            for b in range(self.n_colors):
                if self.samples[a, b] == 0: continue
                rows.append({"from": a, "to": b, "mean": float(self.mean[a, b]),
                             "std": float(self.std[a, b]), "samples": int(self.samples[a, b])})
        return rows
