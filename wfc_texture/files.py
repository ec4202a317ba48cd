# -*- coding: utf-8 -*-
"""Input discovery and output naming for the CLI."""

import json
import os
from pathlib import Path
from typing import List

OUTPUT_SUFFIX = "_result"
PREFILL_SUFFIX = "_pre"


def load_json(p: Path):
    with open(p, "r", encoding="utf-8") as f:
        return json.load(f)

def save_json(p: Path, obj):
    ensure_dir(p.parent)
    with open(p, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2)

def ensure_dir(p: Path):
    p.mkdir(parents=True, exist_ok=True)


def is_derived(p: Path) -> bool:
    stem = p.stem
    return stem.endswith(OUTPUT_SUFFIX) or stem.endswith(PREFILL_SUFFIX)

def output_path(src: Path, outdir: Path = None, ext: str = ".png", tag: str = OUTPUT_SUFFIX) -> Path:
    base = Path(outdir) if outdir else src.parent
    return base / f"{src.stem}{tag}{ext}"

def prefill_path(src: Path) -> Path:
    return src.with_name(f"{src.stem}{PREFILL_SUFFIX}{src.suffix}")


def collect_files(target: Path, outdir: Path = None, skip_existing: bool = True) -> List[Path]:
    """PNG sources under `target`, minus our own outputs and prefill companions."""
    target = Path(target)
    if target.is_file():
        found = [target] if target.suffix.lower() == ".png" else []
    elif target.is_dir():
        found = []
        for root, dirs, files in os.walk(target):
            dirs.sort()
            for name in sorted(files):
                p = Path(root) / name
                if p.suffix.lower() == ".png" and not is_derived(p):
                    found.append(p)
    else:
        raise FileNotFoundError(target)
    if skip_existing:
        found = [p for p in found if not output_path(p, outdir).exists()]
    return found
