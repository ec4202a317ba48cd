# -*- coding: utf-8 -*-
"""
Placement, constraint propagation and deadlock recovery.

Placing a variant fixes its pixels and narrows every live anchor overlapping
it through the compatibility index. An anchor left with no candidates is a
contradiction, and so is an anchor the placement completed with a window no
catalog tile shows. Recovery erases a square around it (prefill pixels
excepted) and resets the candidate sets it touched. A region that keeps
failing gets a larger radius each time, up to MAX_RECOVERY_RADIUS; its count
is cleared once the region is completely filled.
"""

from typing import List, Set

from .canvas import Pos
from .errors import Contradiction
from .state import SynthState

MAX_RECOVERY_RADIUS = 6


def broken(state: SynthState, q: Pos) -> bool:
    """No catalog variant agrees with what is fixed under `q`."""
    if q in state.open:
        return state.table.count(q) == 0
    return not state.table.recompute(q).any()


def place(state: SynthState, anchor: Pos, variant: int, iteration: int) -> Set[Pos]:
    """Fix `variant` at `anchor`; returns anchors left with no consistent variant."""
    n = state.size
    ax, ay = anchor
    v = state.catalog[variant]
    fresh: List[Pos] = []
    try:
        for oy in range(n):
            for ox in range(n):
                p, c = (ax + ox, ay + oy), v.pixels[oy][ox]
                if state.canvas.fix(p, c):
                    state.on_fixed(p, c)
                    fresh.append(p)
    except Contradiction:
        # stale candidate set; recover around the anchor itself
        return {anchor}
    state.record_placement(iteration, anchor, variant)

    bad: Set[Pos] = set()
    for dy in range(-n + 1, n):
        for dx in range(-n + 1, n):
            q = (ax + dx, ay + dy)
            if q not in state.open: continue
            if state.table.restrict(q, state.compat.mask(variant, (dx, dy))):
                bad.add(q)

    # anchors this placement completed left the table on the spot
    done = {q for p in fresh for q in state.anchors_covering(p) if q != anchor and state.finalized(q)}
    for q in done:
        if not state.table.recompute(q).any():
            bad.add(q)
    return bad


# -------------------------- recovery --------------------------
def region_span(state: SynthState) -> int:
    return 2 * (state.size // 2 + 1) + 1

def region_key(state: SynthState, center: Pos) -> Pos:
    span = region_span(state)
    return center[0] // span, center[1] // span

def region_filled(state: SynthState, key: Pos) -> bool:
    span = region_span(state)
    kx, ky = key
    for y in range(ky * span, (ky + 1) * span):
        for x in range(kx * span, (kx + 1) * span):
            p = (x, y)
            if state.bounds is not None and not state.bounds.contains_pixel(p): continue
            if p not in state.canvas: return False
    return True

def forgive(state: SynthState, anchor: Pos) -> List[Pos]:
    """Clear failure counts of regions under the footprint that are now full."""
    if not state.failures: return []
    n = state.size
    keys = {region_key(state, (anchor[0] + ox, anchor[1] + oy)) for ox in (0, n - 1) for oy in (0, n - 1)}
    cleared = []
    for key in sorted(keys):
        if key in state.failures and region_filled(state, key):
            del state.failures[key]
            cleared.append(key)
    return cleared


def recover(state: SynthState, anchor: Pos, iteration: int) -> List[Pos]:
    """Erase non-prefill pixels around `anchor`; returns the erased positions."""
    n = state.size
    base = n // 2 + 1
    cx, cy = anchor[0] + n // 2, anchor[1] + n // 2
    key = region_key(state, (cx, cy))
    fails = state.failures.get(key, 0) + 1
    state.failures[key] = fails
    radius = min(base + fails - 1, max(base, MAX_RECOVERY_RADIUS))

    def inside(p):
        return abs(p[0] - cx) <= radius and abs(p[1] - cy) <= radius

    if (2 * radius + 1) ** 2 <= len(state.canvas):
        cells = [(x, y) for y in range(cy - radius, cy + radius + 1)
                 for x in range(cx - radius, cx + radius + 1) if (x, y) in state.canvas]
    else:
        cells = sorted((p for p in state.canvas.pixels if inside(p)), key=lambda p: (p[1], p[0]))

    erased = []
    for p in cells:
        if p in state.prefill: continue
        c = state.canvas.unfix(p)
        state.on_unfixed(p, c)
        erased.append(p)
    # recomputed from what is still fixed on next access
    state.table.drop(anchor)
    state.record_erasure(iteration, (cx, cy), radius, erased)
    return erased
