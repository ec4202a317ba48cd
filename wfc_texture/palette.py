# -*- coding: utf-8 -*-
"""
RGBA image <-> integer color grid.

Colors are numbered by sorted RGBA byte value so the same source always
yields the same ids. Unset pixels in dense grids use NO_COLOR.
"""

from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np
from PIL import Image

NO_COLOR = -1

Rgba = Tuple[int, int, int, int]


def load_rgba(p: Path) -> np.ndarray:
    with Image.open(p) as im:
        return np.array(im.convert("RGBA"), dtype=np.uint8)


class Palette:
    def __init__(self, colors: List[Rgba]):
        self.colors: List[Rgba] = [tuple(int(v) for v in c) for c in colors]
        self.index: Dict[Rgba, int] = {c: i for i, c in enumerate(self.colors)}

    def __len__(self):
        return len(self.colors)

    @classmethod
    def from_pixels(cls, rgba: np.ndarray) -> "Palette":
        flat = rgba.reshape(-1, 4)
        uniq = np.unique(flat, axis=0)
        return cls([tuple(int(v) for v in row) for row in uniq])

    def encode(self, rgba: np.ndarray, strict: bool = True) -> np.ndarray:
        """Map an (H, W, 4) array onto color ids; unknown colors raise or become NO_COLOR."""
        h, w = rgba.shape[:2]
        flat = rgba.reshape(-1, 4)
        uniq, inv = np.unique(flat, axis=0, return_inverse=True)
        ids = np.array([self.index.get(tuple(int(v) for v in row), NO_COLOR) for row in uniq], dtype=np.int32)
        if strict and (ids < 0).any():
            missing = [tuple(int(v) for v in row) for row, i in zip(uniq, ids) if i < 0]
            raise ValueError(f"{len(missing)} colors are not in the palette, e.g. {missing[0]}")
        return ids[np.asarray(inv).reshape(-1)].reshape(h, w)

    def decode(self, grid: np.ndarray, empty: Rgba = (0, 0, 0, 0)) -> np.ndarray:
        h, w = grid.shape
        lut = np.array(self.colors + [tuple(empty)], dtype=np.uint8)
        idx = np.where(grid < 0, len(self.colors), grid)
        return lut[idx].reshape(h, w, 4)

    def mean_color(self) -> Rgba:
        if not self.colors: return (128, 128, 128, 255)
        arr = np.array(self.colors, dtype=np.int64)
        return tuple(int(v) for v in arr.sum(axis=0) // len(self.colors))

    def hex(self, cid: int) -> str:
        return "#" + "".join(f"{v:02x}" for v in self.colors[cid])


def load_source(p: Path) -> Tuple[np.ndarray, Palette]:
    rgba = load_rgba(p)
    pal = Palette.from_pixels(rgba)
    return pal.encode(rgba), pal


def load_prefill(p: Path, pal: Palette) -> np.ndarray:
    """Prefill pixels whose color is absent from the source palette count as empty."""
    return pal.encode(load_rgba(p), strict=False)


def proportions(grid: np.ndarray, n_colors: int) -> np.ndarray:
    vals = grid[grid >= 0].ravel()
    counts = np.bincount(vals, minlength=n_colors).astype(np.float64)
    s = counts.sum()
    if s <= 0: return np.ones(n_colors) / max(1, n_colors)
    return counts / s
