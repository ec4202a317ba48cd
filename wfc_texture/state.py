# -*- coding: utf-8 -*-
"""
Mutable state of one synthesis run.

Owned by the Synthesizer and handed explicitly to the selection and
propagation functions; nothing here is module-global, so independent runs
never see each other.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple, Union

from .canvas import CandidateTable, Canvas, ColorBalance, Pos
from .catalog import Catalog
from .compat import CompatibilityIndex
from .distance import DistanceModel


@dataclass(frozen=True)
class Bounds:
    width: int
    height: int

    def contains_pixel(self, p: Pos) -> bool:
        return 0 <= p[0] < self.width and 0 <= p[1] < self.height

    def contains_anchor(self, q: Pos, size: int) -> bool:
        return 0 <= q[0] and q[0] + size <= self.width and 0 <= q[1] and q[1] + size <= self.height


@dataclass(frozen=True)
class PlacementRecord:
    seq: int
    iteration: int
    position: Pos
    variant: int
    pixels: Tuple[Tuple[int, ...], ...]


@dataclass(frozen=True)
class ErasureRecord:
    seq: int
    iteration: int
    center: Pos
    radius: int
    pixels: Tuple[Pos, ...]


Event = Union[PlacementRecord, ErasureRecord]


@dataclass
class SynthState:
    catalog: Catalog
    compat: CompatibilityIndex
    distance: DistanceModel
    balance: ColorBalance
    bounds: Optional[Bounds] = None
    canvas: Canvas = field(default_factory=Canvas)
    table: CandidateTable = None
    prefill: Set[Pos] = field(default_factory=set)
    fill: Dict[Pos, int] = field(default_factory=dict)
    open: Set[Pos] = field(default_factory=set)
    failures: Dict[Pos, int] = field(default_factory=dict)
    log: List[Event] = field(default_factory=list)

    def __post_init__(self):
        if self.table is None:
            self.table = CandidateTable(self.catalog, self.canvas)
        self.size = self.catalog.size
        self.area = self.size * self.size

    # ---------- geometry ----------
    def anchor_valid(self, q: Pos) -> bool:
        return self.bounds is None or self.bounds.contains_anchor(q, self.size)

    def anchors_covering(self, p: Pos) -> List[Pos]:
        n = self.size
        out = []
        for oy in range(n):
            for ox in range(n):
                q = (p[0] - ox, p[1] - oy)
                if self.anchor_valid(q): out.append(q)
        return out

    def start_anchors(self) -> List[Pos]:
        if self.bounds is None: return [(0, 0)]
        n = self.size
        return [(x, y) for y in range(self.bounds.height - n + 1) for x in range(self.bounds.width - n + 1)]

    def finalized(self, q: Pos) -> bool:
        return self.fill.get(q, 0) == self.area

    def has_work(self) -> bool:
        return bool(self.open) or len(self.canvas) == 0

    # ---------- bookkeeping ----------
    def on_fixed(self, p: Pos, color: int):
        self.balance.add(color)
        for q in self.anchors_covering(p):
            f = self.fill.get(q, 0) + 1
            self.fill[q] = f
            if f == self.area:
                self.open.discard(q)
                self.table.drop(q)
            else:
                self.open.add(q)

    def on_unfixed(self, p: Pos, color: int):
        self.balance.remove(color)
        for q in self.anchors_covering(p):
            f = self.fill[q] - 1
            self.table.drop(q)
            if f == 0:
                del self.fill[q]
                self.open.discard(q)
            else:
                self.fill[q] = f
                self.open.add(q)

    def record_placement(self, iteration: int, q: Pos, variant: int) -> PlacementRecord:
        rec = PlacementRecord(len(self.log), iteration, q, variant, self.catalog[variant].pixels)
        self.log.append(rec)
        return rec

    def record_erasure(self, iteration: int, center: Pos, radius: int, pixels) -> ErasureRecord:
        rec = ErasureRecord(len(self.log), iteration, center, radius, tuple(pixels))
        self.log.append(rec)
        return rec
