import numpy as np

from wfc_texture.propagate import (
    MAX_RECOVERY_RADIUS, broken, forgive, place, recover, region_filled, region_key,
)
from wfc_texture.state import ErasureRecord, PlacementRecord
from wfc_texture.synth import SynthConfig, Synthesizer


STRIPES = np.array([[0, 0, 0, 1, 1, 1]] * 4)


def _variant(cat, row):
    for v in cat.variants:
        if v.pixels[0] == row:
            return v.index
    raise KeyError(row)


def _live_sets_match(st):
    for q, m in st.table.live():
        assert m.tolist() == st.table.recompute(q).tolist(), q


def test_place_fixes_pixels_and_logs():
    s = Synthesizer(STRIPES, SynthConfig(width=9, height=5))
    st = s.state
    v = _variant(s.catalog, (0, 0, 1))
    bad = place(st, (2, 1), v, 1)
    assert bad == set()
    assert st.canvas.get((4, 1)) == 1 and st.canvas.get((2, 3)) == 0
    assert len(st.canvas) == 9
    rec = st.log[-1]
    assert isinstance(rec, PlacementRecord)
    assert rec.position == (2, 1) and rec.variant == v and rec.seq == 0
    assert (2, 1) not in st.open
    assert (3, 1) in st.open


def test_place_narrows_neighbours_like_recompute():
    s = Synthesizer(STRIPES, SynthConfig(width=9, height=5))
    st = s.state
    place(st, (0, 0), _variant(s.catalog, (0, 0, 0)), 1)
    place(st, (4, 2), _variant(s.catalog, (0, 1, 1)), 2)
    for q in sorted(st.open):
        st.table.get(q)
    _live_sets_match(st)


def test_place_reports_emptied_anchor():
    s = Synthesizer(STRIPES, SynthConfig(width=9, height=4))
    st = s.state
    place(st, (0, 0), _variant(s.catalog, (1, 1, 1)), 1)
    st.table.get((2, 0))
    bad = place(st, (3, 0), _variant(s.catalog, (0, 0, 0)), 2)
    assert (1, 1) in bad or (2, 1) in bad
    for q in bad:
        assert broken(st, q)


def test_place_reports_completed_window_outside_catalog():
    s = Synthesizer(STRIPES, SynthConfig(width=9, height=4))
    st = s.state
    place(st, (0, 0), _variant(s.catalog, (1, 1, 1)), 1)
    bad = place(st, (3, 0), _variant(s.catalog, (0, 0, 0)), 2)
    # 1 1 0 and 1 0 0 never occur in the source, and both windows are now fully fixed
    assert {(1, 0), (2, 0)} <= bad
    assert st.finalized((1, 0)) and st.finalized((2, 0))
    assert broken(st, (1, 0)) and broken(st, (2, 0))


def test_place_over_conflicting_pixel_flags_anchor():
    s = Synthesizer(STRIPES, SynthConfig(width=9, height=4))
    st = s.state
    st.canvas.fix((1, 1), 1)
    st.on_fixed((1, 1), 1)
    bad = place(st, (0, 0), _variant(s.catalog, (0, 0, 0)), 1)
    assert bad == {(0, 0)}
    assert not any(isinstance(e, PlacementRecord) for e in st.log)


def test_region_key_buckets():
    s = Synthesizer(STRIPES)
    # span is 2 * (3 // 2 + 1) + 1 == 5
    assert region_key(s.state, (0, 0)) == region_key(s.state, (4, 4))
    assert region_key(s.state, (5, 0)) != region_key(s.state, (4, 0))
    assert region_key(s.state, (-1, 0)) == (-1, 0)


def test_recover_erases_square_and_escalates():
    s = Synthesizer(np.zeros((3, 3), dtype=int), SynthConfig(width=20, height=20))
    st = s.state
    for y in range(0, 18, 3):
        for x in range(0, 18, 3):
            place(st, (x, y), 0, 1)
    erased = recover(st, (9, 9), 2)
    rec = st.log[-1]
    assert isinstance(rec, ErasureRecord)
    assert rec.center == (10, 10) and rec.radius == 2
    assert len(erased) == 25
    assert all(abs(x - 10) <= 2 and abs(y - 10) <= 2 for x, y in erased)
    assert (10, 10) not in st.canvas

    erased = recover(st, (9, 9), 3)
    assert st.log[-1].radius == 3
    assert len(erased) == 7 * 7 - 25
    _live_sets_match(st)


def test_recover_keeps_prefill():
    pre = np.full((6, 6), -1)
    pre[2, 2] = 0
    s = Synthesizer(np.zeros((3, 3), dtype=int), SynthConfig(width=6, height=6), prefill=pre)
    st = s.state
    place(st, (1, 1), 0, 1)
    erased = recover(st, (1, 1), 2)
    assert (2, 2) not in erased
    assert st.canvas.get((2, 2)) == 0
    assert len(st.canvas) == 1
    assert st.balance.total == 1


def test_recover_on_sparse_canvas_scans_pixels():
    s = Synthesizer(np.zeros((3, 3), dtype=int))
    st = s.state
    place(st, (100, 100), 0, 1)
    place(st, (0, 0), 0, 2)
    erased = recover(st, (0, 0), 3)
    assert sorted(erased) == sorted((x, y) for x in range(3) for y in range(3))
    assert len(st.canvas) == 9


def test_recover_radius_is_capped():
    s = Synthesizer(np.zeros((3, 3), dtype=int), SynthConfig(width=40, height=40))
    st = s.state
    radii = []
    for it in range(8):
        recover(st, (19, 19), it)
        radii.append(st.log[-1].radius)
    assert radii == [2, 3, 4, 5, 6, 6, 6, 6]
    assert max(radii) == MAX_RECOVERY_RADIUS


def test_forgive_clears_count_once_region_is_full():
    s = Synthesizer(np.zeros((3, 3), dtype=int), SynthConfig(width=9, height=9))
    st = s.state
    key = region_key(st, (0, 0))
    st.failures[key] = 4
    place(st, (0, 0), 0, 1)
    assert not region_filled(st, key)
    assert forgive(st, (0, 0)) == []
    assert st.failures[key] == 4

    for a in ((3, 0), (0, 3), (3, 3)):
        place(st, a, 0, 2)
    assert region_filled(st, key)
    assert forgive(st, (3, 3)) == [key]
    assert key not in st.failures
    recover(st, (0, 0), 3)
    assert st.log[-1].radius == 2
