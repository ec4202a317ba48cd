# -*- coding: utf-8 -*-
"""Greedy overlapping-tile texture synthesis."""

from .catalog import TILE_SIZE, Catalog, TileVariant, build_catalog
from .errors import Contradiction, PrefillConflict, SourceTooSmall, SynthesisError
from .palette import NO_COLOR, Palette, load_prefill, load_source
from .synth import COMPLETE, EXHAUSTED, RUNNING, SynthConfig, SynthResult, Synthesizer, synthesize

__version__ = "0.1.0"
