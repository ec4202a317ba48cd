import numpy as np
import pytest

from wfc_texture.errors import PrefillConflict, SourceTooSmall
from wfc_texture.propagate import MAX_RECOVERY_RADIUS
from wfc_texture.state import ErasureRecord, PlacementRecord
from wfc_texture.synth import (
    COMPLETE, EXHAUSTED, RUNNING, SynthConfig, Synthesizer, synthesize,
)


UNIFORM = np.zeros((3, 3), dtype=int)
STRIPES = np.array([[0, 0, 0, 1, 1, 1]] * 4)
NOISE = np.random.default_rng(7).integers(0, 3, size=(8, 8))
BLOCKS = np.kron(np.random.default_rng(5).integers(0, 3, size=(5, 5)), np.ones((2, 2), dtype=int))


def _replay(log, start=None):
    """Rebuild the canvas from the event log, checking every placement agrees with what it overlaps."""
    pix = dict(start or {})
    for e in log:
        if isinstance(e, PlacementRecord):
            x, y = e.position
            for oy, row in enumerate(e.pixels):
                for ox, c in enumerate(row):
                    p = (x + ox, y + oy)
                    assert pix.get(p, c) == c, (e, p)
                    pix[p] = c
        elif isinstance(e, ErasureRecord):
            for p in e.pixels:
                pix.pop(p, None)
    return pix


def _full_windows(grid, n=3):
    h, w = grid.shape
    for y in range(h - n + 1):
        for x in range(w - n + 1):
            win = grid[y:y + n, x:x + n]
            if (win >= 0).all():
                yield (x, y), tuple(tuple(int(c) for c in row) for row in win)


def test_uniform_source_completes_to_one_color():
    res = synthesize(UNIFORM, SynthConfig(seed=42, width=6, height=6))
    assert res.status == COMPLETE
    assert res.grid.shape == (6, 6)
    assert (res.grid == 0).all()
    assert res.fixed_count() == 36
    assert res.erasures == []


def test_unbounded_run_is_exhausted_by_cap():
    res = synthesize(UNIFORM, SynthConfig(max_iterations=15))
    assert res.status == EXHAUSTED
    assert res.iterations == 15
    assert (res.grid[res.grid >= 0] == 0).all()
    assert len(res.placements) == 15


def test_same_seed_same_run():
    cfg = SynthConfig(seed=5, width=10, height=7, max_iterations=150)
    a = synthesize(NOISE, cfg)
    b = synthesize(NOISE, SynthConfig(seed=5, width=10, height=7, max_iterations=150))
    assert a.status == b.status
    assert a.log == b.log
    assert np.array_equal(a.grid, b.grid)


def test_log_replay_is_overlap_consistent():
    s = Synthesizer(NOISE, SynthConfig(seed=3, width=10, height=10, max_iterations=200))
    res = s.run()
    assert _replay(res.log) == s.state.canvas.pixels


def test_live_candidate_sets_equal_recomputed():
    s = Synthesizer(NOISE, SynthConfig(seed=11, width=9, height=9, max_iterations=60))
    while s.step() == RUNNING:
        for q, m in s.state.table.live():
            assert m.tolist() == s.state.table.recompute(q).tolist()


def test_placed_footprints_come_from_catalog():
    s = Synthesizer(NOISE, SynthConfig(seed=1, width=8, height=8, max_iterations=80))
    res = s.run()
    tiles = {v.pixels for v in s.catalog.variants}
    assert all(e.pixels in tiles for e in res.placements)


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_every_filled_window_is_a_catalog_tile(seed):
    s = Synthesizer(BLOCKS, SynthConfig(seed=seed, width=12, height=12, max_iterations=400))
    res = s.run()
    assert res.status in (COMPLETE, EXHAUSTED)
    tiles = {v.pixels for v in s.catalog.variants}
    for q, win in _full_windows(res.grid):
        assert win in tiles, (q, win)


@pytest.mark.parametrize("seed", [0, 3])
def test_recovery_stays_bounded_on_block_noise(seed):
    res = synthesize(BLOCKS, SynthConfig(seed=seed, width=12, height=12, max_iterations=400))
    for e in res.erasures:
        assert e.radius <= MAX_RECOVERY_RADIUS
        assert len(e.pixels) <= (2 * MAX_RECOVERY_RADIUS + 1) ** 2
        assert all(abs(x - e.center[0]) <= e.radius and abs(y - e.center[1]) <= e.radius for x, y in e.pixels)


def test_windows_stay_valid_after_every_step():
    s = Synthesizer(BLOCKS, SynthConfig(seed=4, width=10, height=10, max_iterations=150))
    tiles = {v.pixels for v in s.catalog.variants}
    while s.step() == RUNNING:
        grid, _ = s.state.canvas.to_grid(10, 10)
        for q, win in _full_windows(grid):
            assert win in tiles, (s.iteration, q, win)


def test_short_run_is_prefix_of_long_run():
    short = synthesize(STRIPES, SynthConfig(seed=42, width=8, height=8, max_iterations=5))
    full = synthesize(STRIPES, SynthConfig(seed=42, width=8, height=8, max_iterations=60))
    assert short.status == EXHAUSTED
    assert short.log == [e for e in full.log if e.iteration <= 5]


def test_exhausted_fixes_fewer_pixels_than_complete():
    done = synthesize(UNIFORM, SynthConfig(width=8, height=8))
    cut = synthesize(UNIFORM, SynthConfig(width=8, height=8, max_iterations=2))
    assert done.status == COMPLETE
    assert cut.status == EXHAUSTED
    assert cut.fixed_count() < done.fixed_count()
    assert set(zip(*np.nonzero(cut.grid >= 0))) <= set(zip(*np.nonzero(done.grid >= 0)))


def test_zero_iterations():
    res = synthesize(UNIFORM, SynthConfig(width=4, height=4, max_iterations=0))
    assert res.status == EXHAUSTED
    assert res.fixed_count() == 0


def test_step_after_finish_is_noop():
    s = Synthesizer(UNIFORM, SynthConfig(width=3, height=3))
    s.run()
    n = len(s.state.log)
    assert s.step() == COMPLETE
    assert len(s.state.log) == n


def test_progress_callback():
    seen = []
    synthesize(UNIFORM, SynthConfig(max_iterations=4), progress=lambda i, t: seen.append((i, t)))
    assert seen[0] == (1, 4)
    assert seen[-1][0] == 4


def test_prefill_is_kept():
    pre = np.full((6, 6), -1)
    pre[2, 2] = 0
    pre[5, 0] = 0
    s = Synthesizer(UNIFORM, SynthConfig(width=6, height=6), prefill=pre)
    res = s.run()
    assert res.status == COMPLETE
    assert s.state.prefill == {(2, 2), (0, 5)}
    assert (res.grid == 0).all()
    assert _replay(res.log, {(2, 2): 0, (0, 5): 0}) == s.state.canvas.pixels


def test_prefill_outside_bounds_is_dropped():
    pre = np.full((10, 10), -1)
    pre[1, 1] = 0
    pre[8, 8] = 0
    s = Synthesizer(UNIFORM, SynthConfig(width=6, height=6), prefill=pre)
    assert s.prefill_skipped == 1
    assert s.state.prefill == {(1, 1)}


def test_conflicting_prefill_raises():
    src = np.array([[0, 0, 0, 1, 1, 1]] * 3)
    pre = np.full((6, 6), -1)
    pre[0, 0] = 0
    pre[1, 0] = 1
    with pytest.raises(PrefillConflict):
        Synthesizer(src, prefill=pre)
    with pytest.raises(PrefillConflict):
        Synthesizer(src, SynthConfig(width=6, height=6), prefill=pre)


def test_prefill_completing_an_unseen_window_raises():
    pre = np.full((5, 5), -1)
    pre[0:3, 0:3] = [[1, 1, 0]] * 3
    with pytest.raises(PrefillConflict):
        Synthesizer(STRIPES, SynthConfig(width=5, height=5), prefill=pre)

    pre[0:3, 0:3] = [[0, 0, 1]] * 3
    s = Synthesizer(STRIPES, SynthConfig(width=5, height=5), prefill=pre)
    assert s.state.finalized((0, 0))


def test_one_pixel_source():
    with pytest.raises(SourceTooSmall):
        Synthesizer(np.array([[0]]))


def test_config_validation():
    with pytest.raises(ValueError):
        Synthesizer(UNIFORM, SynthConfig(max_iterations=-1))
    with pytest.raises(ValueError):
        Synthesizer(UNIFORM, SynthConfig(width=2))


def test_single_cap_gives_square():
    assert SynthConfig(width=7).bounds() == SynthConfig(height=7).bounds()
    b = SynthConfig(height=7).bounds()
    assert (b.width, b.height) == (7, 7)
    assert SynthConfig().bounds() is None
