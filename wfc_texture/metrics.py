# -*- coding: utf-8 -*-
"""
Search metrics sampled around each step's anchor, for the analysis animation.

Per pixel:
  entropy      Shannon entropy (nats) of the color the pixel can still take,
               from the weighted variants consistent with the footprint
               centred on it; 0 once the pixel is fixed
  feasibility  fraction of the catalog still consistent with that footprint
  probabilities  the color distribution itself (one-hot for fixed pixels)
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .canvas import Pos
from .state import SynthState

ANALYSIS_RADIUS = 3


@dataclass(frozen=True)
class MetricEvent:
    position: Pos
    iteration: int
    entropy: float
    feasibility: float
    probabilities: Tuple[float, ...]


def pixel_metrics(state: SynthState, p: Pos) -> Tuple[float, float, np.ndarray]:
    cat = state.catalog
    C, h = cat.n_colors, state.size // 2
    mask = state.table.recompute((p[0] - h, p[1] - h))
    count = int(np.count_nonzero(mask))
    feas = count / max(1, len(cat))
    probs = np.zeros(C)
    c = state.canvas.get(p)
    if c is not None:
        probs[c] = 1.0
        return 0.0, feas, probs
    if count == 0:
        return 0.0, 0.0, probs
    probs = np.bincount(cat.stack[mask, h, h], weights=cat.weights[mask], minlength=C)[:C]
    s = probs.sum()
    if s <= 0: return 0.0, feas, np.zeros(C)
    probs = probs / s
    nz = probs[probs > 0]
    return float(-(nz * np.log(nz)).sum()), feas, probs


class AnalysisCapture:
    def __init__(self, radius: int = ANALYSIS_RADIUS):
        self.radius = int(radius)
        self.events: List[MetricEvent] = []

    def __len__(self):
        return len(self.events)

    def record_region(self, state: SynthState, center: Pos, iteration: int):
        cx, cy = center
        r = self.radius
        for y in range(cy - r, cy + r + 1):
            for x in range(cx - r, cx + r + 1):
                p = (x, y)
                if state.bounds is not None and not state.bounds.contains_pixel(p): continue
                ent, feas, probs = pixel_metrics(state, p)
                self.events.append(MetricEvent(p, iteration, ent, feas, tuple(float(v) for v in probs)))
