#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Texture synthesis from a PNG (or every PNG under a directory).

- Writes <stem>_result.png next to the source, or into --outdir.
- --prefill seeds the canvas from <stem>_pre.png when it exists.
- --visualize adds a placement GIF, --analysis adds a 2x2 metrics GIF,
  CSV reports and a manifest.
- --config reads defaults for any option from a JSON file.

Exit status is 2 when any file failed, 0 otherwise.
"""

import argparse, sys, time
from concurrent.futures import ProcessPoolExecutor
from pathlib import Path
from typing import List, Optional, Tuple

from .analysis import export_analysis
from .errors import SynthesisError
from .files import collect_files, load_json, output_path, prefill_path
from .palette import load_prefill, load_source
from .render import GIF_FRAME_DELAY_MS, export_gif, save_png
from .synth import DEFAULT_MAX_ITERATIONS, DEFAULT_SEED, SynthConfig, Synthesizer

PROGRESS_STEPS = 10


def dbg(enabled: bool, *a):
    if enabled: print("[DEBUG]", *a)

# -------------------------- CLI --------------------------
def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser("wfc_texture", description="Greedy overlapping-tile texture synthesis")
    ap.add_argument("target", help="source PNG or a directory of PNGs")
    ap.add_argument("--config", default=None, help="JSON file with defaults for any option below")
    ap.add_argument("-s", "--seed", type=int, default=DEFAULT_SEED)
    ap.add_argument("-i", "--iterations", type=int, default=DEFAULT_MAX_ITERATIONS,
                    help="maximum placement iterations per image")
    ap.add_argument("-w", "--width", type=int, default=None, help="output width cap (square if --height is unset)")
    ap.add_argument("-H", "--height", type=int, default=None, help="output height cap")
    ap.add_argument("-r", "--rotate", action="store_true", help="add 90/180/270 degree tile rotations")
    ap.add_argument("-m", "--mirror", action="store_true", help="add mirrored tiles")
    ap.add_argument("-p", "--prefill", action="store_true", help="seed from <stem>_pre.png when present")
    ap.add_argument("-v", "--visualize", action="store_true", help="write a placement GIF")
    ap.add_argument("-a", "--analysis", action="store_true", help="write a metrics GIF, CSV reports and a manifest")
    ap.add_argument("-q", "--quiet", action="store_true", help="no progress lines")
    ap.add_argument("-n", "--no_skip", action="store_true", help="process files whose output already exists")
    ap.add_argument("--outdir", default=None, help="output directory (default: beside each source)")
    ap.add_argument("--png_scale", type=int, default=1, help="nearest-neighbour upscale for PNG/GIF output")
    ap.add_argument("--frame_delay", type=int, default=GIF_FRAME_DELAY_MS, help="GIF frame delay in ms")
    ap.add_argument("--jobs", type=int, default=1, help="files processed in parallel")
    ap.add_argument("--debug", action="store_true")
    return ap

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = build_parser()
    pre, _ = ap.parse_known_args(argv)
    if pre.config:
        cfg = load_json(Path(pre.config))
        if not isinstance(cfg, dict):
            ap.error(f"--config {pre.config} must hold a JSON object")
        known = {a.dest for a in ap._actions}
        unknown = sorted(k for k in cfg if k not in known)
        if unknown:
            print(f"[WARN] ignoring unknown config keys: {', '.join(unknown)}", file=sys.stderr)
        ap.set_defaults(**{k: v for k, v in cfg.items() if k in known and k != "target"})
    return ap.parse_args(argv)

def config_from_args(args: argparse.Namespace) -> SynthConfig:
    return SynthConfig(seed=args.seed, max_iterations=args.iterations, width=args.width,
                       height=args.height, rotate=args.rotate, mirror=args.mirror)

# -------------------------- per file --------------------------
def process_file(path: Path, args: argparse.Namespace) -> Tuple[bool, str]:
    name = path.name
    try:
        source, pal = load_source(path)
        prefill = None
        if args.prefill:
            pp = prefill_path(path)
            if pp.exists():
                prefill = load_prefill(pp, pal)
                dbg(args.debug, f"{name}: prefill {pp.name} with {int((prefill >= 0).sum())} known pixels")
            else:
                print(f"[WARN] {name}: no prefill image {pp.name}", file=sys.stderr)

        cfg = config_from_args(args)
        t0 = time.perf_counter()
        synth = Synthesizer(source, cfg, prefill, n_colors=len(pal))
        dbg(args.debug, f"{name}: {len(synth.catalog)} variants, {len(pal)} colors")
        if args.analysis: synth.enable_analysis()
        step = max(1, cfg.max_iterations // PROGRESS_STEPS)

        def progress(it: int, total: int):
            if not args.quiet and it and it % step == 0:
                print(f"[..] {name}: {it}/{total}")

        res = synth.run(None if args.quiet else progress)
        outdir = Path(args.outdir) if args.outdir else None
        out = save_png(res.grid, pal, output_path(path, outdir), args.png_scale)
        if res.prefill_skipped:
            print(f"[WARN] {name}: {res.prefill_skipped} prefill pixels outside the output bounds were ignored",
                  file=sys.stderr)
        # prefill pixels are never erased, so they are still on the canvas
        base = {p: synth.state.canvas.pixels[p] for p in synth.state.prefill}
        if args.visualize:
            gif = export_gif(res.log, pal, output_path(path, outdir, ".gif"), base, args.frame_delay, args.png_scale)
            dbg(args.debug, f"{name}: animation {gif}")
        if args.analysis:
            stem = (outdir or path.parent) / path.stem
            mani = export_analysis(stem, source, pal, res, synth.catalog, synth.distance, cfg, str(path),
                                   base, args.frame_delay, args.png_scale)
            dbg(args.debug, f"{name}: manifest {mani}")
        dt = time.perf_counter() - t0
        return True, (f"[OK] {name} -> {out.name} ({res.status}, {res.iterations} iterations, "
                      f"{res.fixed_count()} px, {dt:.1f}s)")
    except (SynthesisError, ValueError, OSError) as e:
        return False, f"[ERROR] {name}: {e}"

# -------------------------- Main --------------------------
def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    outdir = Path(args.outdir) if args.outdir else None
    try:
        files = collect_files(Path(args.target), outdir, skip_existing=not args.no_skip)
    except FileNotFoundError as e:
        print(f"[ERROR] no such file or directory: {e}", file=sys.stderr)
        return 2
    if not files:
        if not args.quiet: print("[OK] nothing to do")
        return 0

    failed = 0
    if args.jobs > 1 and len(files) > 1:
        with ProcessPoolExecutor(max_workers=args.jobs) as pool:
            results = list(pool.map(process_file, files, [args] * len(files)))
    else:
        results = [process_file(p, args) for p in files]
    for ok, msg in results:
        if ok:
            if not args.quiet: print(msg)
        else:
            failed += 1
            print(msg, file=sys.stderr)
    if not args.quiet and len(files) > 1:
        print(f"[OK] {len(files) - failed}/{len(files)} files done")
    return 2 if failed else 0

if __name__ == "__main__":
    sys.exit(main())
