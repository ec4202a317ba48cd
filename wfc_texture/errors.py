# -*- coding: utf-8 -*-
"""Exceptions raised by the synthesis engine."""

from typing import Optional, Tuple


class SynthesisError(Exception):
    pass


class SourceTooSmall(SynthesisError, ValueError):
    def __init__(self, shape: Tuple[int, int], size: int):
        h, w = shape
        super().__init__(f"source {w}x{h} is smaller than the {size}x{size} footprint")
        self.shape = shape
        self.size = size


class PrefillConflict(SynthesisError, ValueError):
    def __init__(self, anchor: Tuple[int, int], pixels=None):
        super().__init__(f"prefill pixels around anchor {anchor} match no tile in the catalog")
        self.anchor = anchor
        self.pixels = pixels or []


class Contradiction(SynthesisError):
    """A pixel was asked to take a second, different color."""

    def __init__(self, position: Tuple[int, int], existing: int, requested: Optional[int] = None):
        super().__init__(f"pixel {position} already fixed to {existing}, refused {requested}")
        self.position = position
        self.existing = existing
        self.requested = requested
