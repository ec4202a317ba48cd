# -*- coding: utf-8 -*-
"""
PNG export of the final canvas, GIF replay of the placement log and the
2x2 analysis animation.

The GIFs keep every k-th step so that tiny frame delays still play at the
apparent speed in viewers that clamp delays to VIEWER_MIN_FRAME_DELAY_MS.

Analysis panels:
    expected color | placements
    ---------------+------------
    entropy        | feasibility
"""

import math
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image

from .files import ensure_dir
from .metrics import MetricEvent
from .palette import NO_COLOR, Palette
from .state import ErasureRecord, Event, PlacementRecord

GIF_FRAME_DELAY_MS = 5
VIEWER_MIN_FRAME_DELAY_MS = 50
FINAL_FRAME_HOLD = 25
ANALYSIS_PADDING = 2
PANEL_GRAY = (128, 128, 128)

Pos = Tuple[int, int]


def grid_to_img(grid: np.ndarray, palette: Palette, scale: int = 1,
                empty: Tuple[int, int, int, int] = (0, 0, 0, 0)) -> Image.Image:
    im = Image.fromarray(palette.decode(grid, empty), "RGBA")
    if scale > 1:
        im = im.resize((grid.shape[1] * scale, grid.shape[0] * scale), Image.NEAREST)
    return im

def save_png(grid: np.ndarray, palette: Palette, out_path: Path, scale: int = 1) -> Path:
    if grid.size == 0 or not (grid >= 0).any():
        raise ValueError("no pixels were placed; nothing to export")
    out_path = Path(out_path)
    ensure_dir(out_path.parent)
    grid_to_img(grid, palette, scale).save(out_path)
    return out_path


# -------------------------- animation --------------------------
def event_extent(log: Sequence[Event], base: Dict[Pos, int], size: int,
                 extra: Iterable[Pos] = ()) -> Tuple[int, int, int, int]:
    xs: List[int] = [p[0] for p in base]; ys: List[int] = [p[1] for p in base]
    for e in log:
        if isinstance(e, PlacementRecord):
            x, y = e.position
            xs += [x, x + size - 1]; ys += [y, y + size - 1]
        else:
            xs += [p[0] for p in e.pixels]; ys += [p[1] for p in e.pixels]
    for p in extra:
        xs.append(p[0]); ys.append(p[1])
    if not xs: return 0, 0, 0, 0
    return min(xs), min(ys), max(xs), max(ys)

def frame_plan(n_events: int, frame_delay_ms: int) -> Tuple[int, int]:
    """(effective delay, keep every k-th event)."""
    frame_delay_ms = max(1, int(frame_delay_ms))
    if frame_delay_ms >= VIEWER_MIN_FRAME_DELAY_MS:
        return frame_delay_ms, 1
    return VIEWER_MIN_FRAME_DELAY_MS, int(math.ceil(VIEWER_MIN_FRAME_DELAY_MS / frame_delay_ms))

def apply_event(grid: np.ndarray, e: Event, x0: int, y0: int):
    if isinstance(e, PlacementRecord):
        x, y = e.position
        for oy, row in enumerate(e.pixels):
            for ox, c in enumerate(row):
                grid[y + oy - y0, x + ox - x0] = c
    elif isinstance(e, ErasureRecord):
        for (x, y) in e.pixels:
            grid[y - y0, x - x0] = NO_COLOR

def base_grid(base: Dict[Pos, int], extent: Tuple[int, int, int, int]) -> np.ndarray:
    x0, y0, x1, y1 = extent
    grid = np.full((y1 - y0 + 1, x1 - x0 + 1), NO_COLOR, dtype=np.int32)
    for (x, y), c in base.items():
        grid[y - y0, x - x0] = c
    return grid

def render_frames(log: Sequence[Event], palette: Palette, base: Optional[Dict[Pos, int]] = None,
                  frame_delay_ms: int = GIF_FRAME_DELAY_MS, scale: int = 1):
    base = dict(base or {})
    placements = [e for e in log if isinstance(e, PlacementRecord)]
    if not placements:
        raise ValueError("no tile placements captured for visualization")
    x0, y0, x1, y1 = extent = event_extent(log, base, len(placements[0].pixels))
    grid = base_grid(base, extent)
    empty = palette.mean_color()
    delay, skip = frame_plan(len(log), frame_delay_ms)

    def snap():
        return grid_to_img(grid, palette, scale, empty).convert("RGB")

    frames, durations = [snap()], [delay]
    for k, e in enumerate(log, start=1):
        apply_event(grid, e, x0, y0)
        if k % skip == 0:
            frames.append(snap()); durations.append(delay)
    if len(log) % skip != 0:
        frames.append(snap()); durations.append(delay)
    # hold the finished picture
    frames.append(frames[-1].copy()); durations.append(delay * FINAL_FRAME_HOLD)
    return frames, durations

def save_frames(frames: List[Image.Image], durations: List[int], out_path: Path) -> Path:
    out_path = Path(out_path)
    ensure_dir(out_path.parent)
    frames[0].save(out_path, save_all=True, append_images=frames[1:], duration=durations, loop=0)
    return out_path

def export_gif(log: Sequence[Event], palette: Palette, out_path: Path,
               base: Optional[Dict[Pos, int]] = None, frame_delay_ms: int = GIF_FRAME_DELAY_MS,
               scale: int = 1) -> Path:
    frames, durations = render_frames(log, palette, base, frame_delay_ms, scale)
    return save_frames(frames, durations, out_path)


# -------------------------- analysis animation --------------------------
def render_analysis_frames(log: Sequence[Event], metrics: Sequence[MetricEvent], palette: Palette,
                           base: Optional[Dict[Pos, int]] = None,
                           frame_delay_ms: int = GIF_FRAME_DELAY_MS, scale: int = 1):
    """One 2x2 frame per kept iteration; metrics persist until resampled."""
    base = dict(base or {})
    placements = [e for e in log if isinstance(e, PlacementRecord)]
    if not placements:
        raise ValueError("no tile placements captured for analysis")
    x0, y0, x1, y1 = extent = event_extent(log, base, len(placements[0].pixels),
                                           (m.position for m in metrics))
    w, h = x1 - x0 + 1, y1 - y0 + 1
    tiles = base_grid(base, extent)
    expected = np.zeros((h, w, 3), dtype=np.float64)
    entropy = np.zeros((h, w)); feasibility = np.zeros((h, w))
    rgb = np.array([c[:3] for c in palette.colors], dtype=np.float64).reshape(len(palette), 3)
    max_entropy = max((m.entropy for m in metrics), default=0.0)

    log_at: Dict[int, List[Event]] = defaultdict(list)
    for e in log: log_at[e.iteration].append(e)
    metrics_at: Dict[int, List[MetricEvent]] = defaultdict(list)
    for m in metrics: metrics_at[m.iteration].append(m)
    last = max(list(log_at) + list(metrics_at))
    delay, skip = frame_plan(last, frame_delay_ms)
    pad = ANALYSIS_PADDING

    def snap():
        out = np.empty((2 * h + pad, 2 * w + pad, 3), dtype=np.uint8)
        out[:] = PANEL_GRAY
        out[:h, :w] = np.clip(np.rint(expected), 0, 255).astype(np.uint8)
        out[:h, w + pad:] = palette.decode(tiles, (0, 0, 0, 255))[..., :3]
        ent = entropy / max_entropy if max_entropy > 0 else entropy * 0.0
        out[h + pad:, :w] = (ent * 255).astype(np.uint8)[..., None]
        out[h + pad:, w + pad:] = (np.clip(feasibility, 0.0, 1.0) * 255).astype(np.uint8)[..., None]
        im = Image.fromarray(out, "RGB")
        if scale > 1:
            im = im.resize((im.width * scale, im.height * scale), Image.NEAREST)
        return im

    frames, durations = [snap()], [delay]
    for k in range(1, last + 1):
        for e in log_at.get(k, ()):
            apply_event(tiles, e, x0, y0)
        for m in metrics_at.get(k, ()):
            x, y = m.position[0] - x0, m.position[1] - y0
            entropy[y, x] = m.entropy
            feasibility[y, x] = m.feasibility
            expected[y, x] = np.asarray(m.probabilities) @ rgb
        if k % skip == 0:
            frames.append(snap()); durations.append(delay)
    if last % skip != 0:
        frames.append(snap()); durations.append(delay)
    frames.append(frames[-1].copy()); durations.append(delay * FINAL_FRAME_HOLD)
    return frames, durations

def export_analysis_gif(log: Sequence[Event], metrics: Sequence[MetricEvent], palette: Palette,
                        out_path: Path, base: Optional[Dict[Pos, int]] = None,
                        frame_delay_ms: int = GIF_FRAME_DELAY_MS, scale: int = 1) -> Path:
    frames, durations = render_analysis_frames(log, metrics, palette, base, frame_delay_ms, scale)
    return save_frames(frames, durations, out_path)
