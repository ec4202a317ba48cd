# -*- coding: utf-8 -*-
"""
Analysis export: how closely the output tracks the source.

  <stem>_analysis.gif   2x2 animation: expected color | placements over entropy | feasibility
  <stem>_analysis.csv   per-color counts / ratios / binomial z in source vs output
  <stem>_distances.csv  the distance model, one row per ordered color pair
  <stem>_variants.csv   catalog weights and dominant colors
  <stem>_manifest.json  run settings, status and file list
"""

from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .catalog import Catalog
from .distance import DistanceModel
from .files import ensure_dir, save_json
from .palette import Palette
from .render import GIF_FRAME_DELAY_MS, export_analysis_gif
from .synth import SynthConfig, SynthResult


def color_report(source: np.ndarray, output: np.ndarray, palette: Palette) -> pd.DataFrame:
    C = len(palette)
    src = np.bincount(source[source >= 0].ravel(), minlength=C)
    out = np.bincount(output[output >= 0].ravel(), minlength=C)
    df = pd.DataFrame({
        "color": range(C),
        "rgba": [palette.hex(c) for c in range(C)],
        "source_count": src,
        "output_count": out,
    })
    df["source_ratio"] = df["source_count"] / max(1, int(src.sum()))
    df["output_ratio"] = df["output_count"] / max(1, int(out.sum()))
    n = int(out.sum())
    p = df["source_ratio"].to_numpy()
    std = np.sqrt(n * p * (1.0 - p))
    dev = df["output_count"].to_numpy() - n * p
    df["z"] = np.where(std > 0, dev / np.where(std > 0, std, 1.0), 0.0)
    return df

def distance_report(model: DistanceModel, palette: Palette) -> pd.DataFrame:
    df = pd.DataFrame(model.table(), columns=["from", "to", "mean", "std", "samples"])
    df["from_rgba"] = [palette.hex(c) for c in df["from"]]
    df["to_rgba"] = [palette.hex(c) for c in df["to"]]
    return df

def variant_report(catalog: Catalog) -> pd.DataFrame:
    rows = []
    for v in catalog.variants:
        hist = np.array(v.histogram)
        rows.append({"variant": v.index, "weight": v.weight,
                     "dominant": int(hist.argmax()), "distinct_colors": int((hist > 0).sum())})
    return pd.DataFrame(rows)


def export_analysis(stem_path: Path, source: np.ndarray, palette: Palette, result: SynthResult,
                    catalog: Catalog, model: DistanceModel, config: SynthConfig,
                    source_name: Optional[str] = None, base: Optional[Dict[Tuple[int, int], int]] = None,
                    frame_delay_ms: int = GIF_FRAME_DELAY_MS, scale: int = 1) -> Path:
    stem_path = Path(stem_path)
    ensure_dir(stem_path.parent)
    files = {
        "colors": stem_path.with_name(stem_path.name + "_analysis.csv"),
        "distances": stem_path.with_name(stem_path.name + "_distances.csv"),
        "variants": stem_path.with_name(stem_path.name + "_variants.csv"),
    }
    colors = color_report(source, result.grid, palette)
    colors.to_csv(files["colors"], index=False)
    distance_report(model, palette).to_csv(files["distances"], index=False)
    variant_report(catalog).to_csv(files["variants"], index=False)
    if result.metrics and result.placements:
        files["animation"] = export_analysis_gif(result.log, result.metrics, palette,
                                                 stem_path.with_name(stem_path.name + "_analysis.gif"),
                                                 base, frame_delay_ms, scale)

    mani = {
        "source": source_name,
        "seed": config.seed,
        "max_iterations": config.max_iterations,
        "width": config.width, "height": config.height,
        "rotate": config.rotate, "mirror": config.mirror,
        "tile_size": config.tile_size,
        "status": result.status,
        "iterations": result.iterations,
        "placements": len(result.placements),
        "erasures": len(result.erasures),
        "metric_samples": len(result.metrics),
        "fixed_pixels": result.fixed_count(),
        "origin": list(result.origin),
        "variants": len(catalog),
        "max_abs_z": float(colors["z"].abs().max()) if len(colors) else 0.0,
        "files": {k: str(v.resolve()) for k, v in files.items()},
    }
    mani_path = stem_path.with_name(stem_path.name + "_manifest.json")
    save_json(mani_path, mani)
    return mani_path
