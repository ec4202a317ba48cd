# -*- coding: utf-8 -*-
"""
Selection policy: which anchor to resolve next and which variant to put there.

Anchor: fewest remaining candidates first, ties broken by the run's rng.
Variant: weighted draw on

    frequency * balance_factor * distance_factor ** (candidates / catalog size)

where the balance and distance terms are geometric means over the pixels the
variant would newly fix.
"""

import math
from typing import List, Optional, Tuple

import numpy as np

from .canvas import Pos
from .state import SynthState

BALANCE_FLOOR = 1e-3
FIT_FLOOR = 1e-12


# -------------------------- balance --------------------------
def normal_cdf(z: np.ndarray) -> np.ndarray:
    return np.array([0.5 * (1.0 + math.erf(v / math.sqrt(2.0))) for v in np.ravel(z)]).reshape(np.shape(z))

def balance_factors(counts: np.ndarray, proportions: np.ndarray, total: int) -> np.ndarray:
    """
    Multiplier per color from the normal approximation to Binomial(total, p):
    ~2 for a color far below its expected count, ~0 far above, 1 on target.
    """
    C = len(proportions)
    if total <= 0: return np.ones(C)
    p = np.asarray(proportions, dtype=np.float64)
    out = np.ones(C)
    mid = (p > 0) & (p < 1)
    if mid.any():
        dev = np.asarray(counts, dtype=np.float64)[mid] - total * p[mid]
        std = np.sqrt(total * p[mid] * (1.0 - p[mid]))
        # continuity correction pulls toward the mean; within half a pixel is on target
        dev = np.sign(dev) * np.maximum(np.abs(dev) - 0.5, 0.0)
        z = dev / std
        out[mid] = 2.0 * (1.0 - normal_cdf(z))
    out[p <= 0] = BALANCE_FLOOR
    return np.maximum(out, BALANCE_FLOOR)


# -------------------------- anchor --------------------------
def choose_anchor(state: SynthState, rng: np.random.Generator) -> Optional[Tuple[Pos, int]]:
    """(anchor, remaining count); count 0 flags a contradiction. None when nothing is left to place."""
    if state.open:
        pool = sorted(state.open, key=lambda q: (q[1], q[0]))
        counts = [state.table.count(q) for q in pool]
    elif len(state.canvas) == 0:
        pool = state.start_anchors()
        counts = [len(state.catalog)] * len(pool)
    else:
        return None
    best = min(counts)
    ties = [q for q, c in zip(pool, counts) if c == best]
    q = ties[int(rng.integers(len(ties)))] if len(ties) > 1 else ties[0]
    return q, best


# -------------------------- variant --------------------------
def unfixed_offsets(state: SynthState, anchor: Pos) -> List[Tuple[int, int]]:
    ax, ay = anchor
    n = state.size
    return [(ox, oy) for oy in range(n) for ox in range(n) if (ax + ox, ay + oy) not in state.canvas]

def candidate_weights(state: SynthState, anchor: Pos, idx: np.ndarray) -> np.ndarray:
    cat = state.catalog
    freq = cat.weights[idx]
    free = unfixed_offsets(state, anchor)
    if not free: return freq
    oxs = np.array([o[0] for o in free]); oys = np.array([o[1] for o in free])
    colors = cat.stack[idx][:, oys, oxs]

    logb = np.log(balance_factors(state.balance.counts, state.balance.proportions, state.balance.total))
    bal = np.exp(logb[colors].mean(axis=1))

    ax, ay = anchor
    fit = state.distance.fit_scores(state.canvas.pixels, [(ax + ox, ay + oy) for ox, oy in free])
    logfit = np.log(np.maximum(fit, FIT_FLOOR))
    dist = np.exp(logfit[np.arange(len(free))[None, :], colors].mean(axis=1))

    alpha = len(idx) / max(1, len(cat))
    return freq * bal * dist ** alpha

def draw_variant(idx: np.ndarray, weights: np.ndarray, freq: np.ndarray, rng: np.random.Generator) -> int:
    w = np.asarray(weights, dtype=np.float64)
    s = w.sum()
    if not np.isfinite(s) or s <= 0:
        w = np.asarray(freq, dtype=np.float64); s = w.sum()
    if s <= 0:
        w = np.ones(len(idx)); s = w.sum()
    return int(rng.choice(idx, p=w / s))

def choose_variant(state: SynthState, anchor: Pos, rng: np.random.Generator) -> int:
    idx = np.nonzero(state.table.get(anchor))[0]
    w = candidate_weights(state, anchor, idx)
    return draw_variant(idx, w, state.catalog.weights[idx], rng)
