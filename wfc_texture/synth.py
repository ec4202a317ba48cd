# -*- coding: utf-8 -*-
"""
Synthesis loop.

    Synthesizer(source, config, prefill).run() -> SynthResult

Each iteration picks the most constrained anchor, draws a variant, places it
and repairs any contradiction it caused. The run ends `complete` when no
anchor is left open, or `exhausted` when the iteration cap is hit first.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

from .canvas import Canvas, ColorBalance, Pos
from .catalog import TILE_SIZE, Catalog, build_catalog
from .compat import CompatibilityIndex
from .distance import DistanceModel
from .errors import PrefillConflict
from .metrics import ANALYSIS_RADIUS, AnalysisCapture, MetricEvent
from .palette import proportions
from .propagate import broken, forgive, place, recover
from .selection import choose_anchor, choose_variant
from .state import Bounds, Event, PlacementRecord, ErasureRecord, SynthState

DEFAULT_SEED = 42
DEFAULT_MAX_ITERATIONS = 1000

RUNNING = "running"
COMPLETE = "complete"
EXHAUSTED = "exhausted"


@dataclass
class SynthConfig:
    seed: int = DEFAULT_SEED
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    width: Optional[int] = None
    height: Optional[int] = None
    rotate: bool = False
    mirror: bool = False
    tile_size: int = TILE_SIZE

    def bounds(self) -> Optional[Bounds]:
        """Either cap alone implies a square."""
        w, h = self.width, self.height
        if w is None and h is None: return None
        if w is None: w = h
        if h is None: h = w
        return Bounds(int(w), int(h))

    def validate(self):
        if self.max_iterations < 0:
            raise ValueError(f"max_iterations must be >= 0, got {self.max_iterations}")
        b = self.bounds()
        if b is not None and (b.width < self.tile_size or b.height < self.tile_size):
            raise ValueError(f"output {b.width}x{b.height} is smaller than the {self.tile_size}x{self.tile_size} footprint")


@dataclass
class SynthResult:
    status: str
    iterations: int
    grid: np.ndarray
    origin: Pos
    log: List[Event] = field(default_factory=list)
    prefill_skipped: int = 0
    metrics: List[MetricEvent] = field(default_factory=list)

    @property
    def placements(self) -> List[PlacementRecord]:
        return [e for e in self.log if isinstance(e, PlacementRecord)]

    @property
    def erasures(self) -> List[ErasureRecord]:
        return [e for e in self.log if isinstance(e, ErasureRecord)]

    def fixed_count(self) -> int:
        return int((self.grid >= 0).sum())


class Synthesizer:
    def __init__(self, source: np.ndarray, config: Optional[SynthConfig] = None,
                 prefill: Optional[np.ndarray] = None, n_colors: Optional[int] = None):
        self.config = cfg = config or SynthConfig()
        cfg.validate()
        source = np.asarray(source, dtype=np.int32)
        self.catalog: Catalog = build_catalog(source, cfg.tile_size, cfg.rotate, cfg.mirror, n_colors)
        C = self.catalog.n_colors
        self.distance = DistanceModel.from_source(source, C)
        self.compat = CompatibilityIndex(self.catalog)
        self.state = SynthState(catalog=self.catalog, compat=self.compat, distance=self.distance,
                                balance=ColorBalance(proportions(source, C)), bounds=cfg.bounds(),
                                canvas=Canvas())
        self.rng = np.random.default_rng(cfg.seed)
        self.iteration = 0
        self.status = RUNNING
        self.prefill_skipped = 0
        self.analysis: Optional[AnalysisCapture] = None
        if prefill is not None:
            self.seed_prefill(np.asarray(prefill))

    def enable_analysis(self, radius: int = ANALYSIS_RADIUS) -> AnalysisCapture:
        """Sample search metrics around every step from now on."""
        self.analysis = AnalysisCapture(radius)
        return self.analysis

    # ---------- startup ----------
    def seed_prefill(self, grid: np.ndarray):
        st = self.state
        pending = set()
        ys, xs = np.nonzero(grid >= 0)
        for y, x in zip(ys.tolist(), xs.tolist()):
            p, c = (x, y), int(grid[y, x])
            if st.bounds is not None and not st.bounds.contains_pixel(p):
                self.prefill_skipped += 1
                continue
            st.canvas.fix(p, c)
            st.prefill.add(p)
            st.on_fixed(p, c)
            for q in st.anchors_covering(p):
                if q in st.open:
                    if st.table.narrow(q, p, c): pending.add(q)
                elif st.finalized(q):
                    pending.add(q)
        for q in sorted(pending, key=lambda q: (q[1], q[0])):
            if broken(st, q):
                raise PrefillConflict(q, sorted(st.table.fixed_under(q).items()))

    # ---------- loop ----------
    def step(self) -> str:
        if self.status != RUNNING: return self.status
        st = self.state
        if self.iteration >= self.config.max_iterations:
            self.status = EXHAUSTED if st.has_work() else COMPLETE
            return self.status
        pick = choose_anchor(st, self.rng)
        if pick is None:
            self.status = COMPLETE
            return self.status
        anchor, count = pick
        self.iteration += 1
        if count == 0:
            recover(st, anchor, self.iteration)
        else:
            variant = choose_variant(st, anchor, self.rng)
            bad = place(st, anchor, variant, self.iteration)
            for q in sorted(bad, key=lambda q: (q[1], q[0])):
                if q == anchor or broken(st, q):
                    recover(st, q, self.iteration)
            if not bad:
                forgive(st, anchor)
        if self.analysis is not None:
            h = st.size // 2
            self.analysis.record_region(st, (anchor[0] + h, anchor[1] + h), self.iteration)
        return self.status

    def run(self, progress: Optional[Callable[[int, int], None]] = None) -> SynthResult:
        while self.status == RUNNING:
            self.step()
            if progress is not None:
                progress(self.iteration, self.config.max_iterations)
        return self.result()

    def result(self) -> SynthResult:
        b = self.state.bounds
        if b is not None:
            grid, origin = self.state.canvas.to_grid(b.width, b.height)
        else:
            grid, origin = self.state.canvas.to_grid()
        metrics = list(self.analysis.events) if self.analysis is not None else []
        return SynthResult(self.status, self.iteration, grid, origin, list(self.state.log),
                           self.prefill_skipped, metrics)


def synthesize(source: np.ndarray, config: Optional[SynthConfig] = None,
               prefill: Optional[np.ndarray] = None, n_colors: Optional[int] = None,
               progress: Optional[Callable[[int, int], None]] = None) -> SynthResult:
    return Synthesizer(source, config, prefill, n_colors).run(progress)
