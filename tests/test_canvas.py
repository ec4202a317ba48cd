import numpy as np
import pytest

from wfc_texture.canvas import CandidateTable, Canvas, ColorBalance
from wfc_texture.catalog import build_catalog
from wfc_texture.errors import Contradiction
from wfc_texture.palette import NO_COLOR


def test_fix_is_idempotent_and_rejects_conflicts():
    cv = Canvas()
    assert cv.fix((0, 0), 1) is True
    assert cv.fix((0, 0), 1) is False
    with pytest.raises(Contradiction) as ei:
        cv.fix((0, 0), 2)
    assert ei.value.position == (0, 0)
    assert ei.value.existing == 1
    assert cv.get((0, 0)) == 1


def test_unfix():
    cv = Canvas()
    cv.fix((3, 4), 0)
    assert cv.unfix((3, 4)) == 0
    assert cv.unfix((3, 4)) is None
    assert len(cv) == 0


def test_to_grid_uses_bbox_origin():
    cv = Canvas()
    cv.fix((-2, -1), 1)
    cv.fix((0, 0), 2)
    grid, origin = cv.to_grid()
    assert origin == (-2, -1)
    assert grid.shape == (2, 3)
    assert grid[0, 0] == 1 and grid[1, 2] == 2
    assert grid[1, 0] == NO_COLOR


def test_to_grid_fixed_size():
    cv = Canvas()
    cv.fix((1, 1), 0)
    cv.fix((9, 9), 0)
    grid, origin = cv.to_grid(4, 3)
    assert origin == (0, 0)
    assert grid.shape == (3, 4)
    assert (grid >= 0).sum() == 1


def test_empty_canvas_grid():
    grid, origin = Canvas().to_grid()
    assert grid.size == 0


def _table():
    src = np.random.default_rng(3).integers(0, 2, size=(6, 6))
    cat = build_catalog(src)
    cv = Canvas()
    return cat, cv, CandidateTable(cat, cv)


def test_lazy_init_reflects_fixed_pixels():
    cat, cv, tb = _table()
    cv.fix((1, 1), 1)
    m = tb.get((0, 0))
    assert m.tolist() == (cat.stack[:, 1, 1] == 1).tolist()
    assert tb.count((0, 0)) == int(m.sum())


def test_narrowing_is_monotonic_and_matches_recompute():
    cat, cv, tb = _table()
    anchor = (0, 0)
    prev = tb.count(anchor)
    rng = np.random.default_rng(1)
    target = cat[int(rng.integers(len(cat)))]
    for oy in range(3):
        for ox in range(3):
            p, c = (ox, oy), target.color_at(ox, oy)
            cv.fix(p, c)
            before = tb.get(anchor).copy()
            emptied = tb.narrow(anchor, p, c)
            after = tb.get(anchor)
            assert not emptied
            assert not (after & ~before).any()
            assert tb.count(anchor) <= prev
            prev = tb.count(anchor)
            assert after.tolist() == tb.recompute(anchor).tolist()


def test_narrow_reports_empty():
    cat, cv, tb = _table()
    tb.get((0, 0))
    cv.fix((0, 0), 5)
    assert tb.narrow((0, 0), (0, 0), 5) is True
    assert tb.count((0, 0)) == 0


def test_narrow_on_untouched_anchor_applies_pixel():
    cat, cv, tb = _table()
    assert tb.narrow((0, 0), (1, 1), 1) is False
    assert tb.get((0, 0)).tolist() == (cat.stack[:, 1, 1] == 1).tolist()
    assert tb.count((0, 0)) == int((cat.stack[:, 1, 1] == 1).sum())


def test_restrict_on_untouched_anchor_applies_mask():
    cat, cv, tb = _table()
    keep = np.zeros(len(cat), dtype=bool)
    keep[0] = True
    assert tb.restrict((2, 2), keep) is False
    assert tb.get((2, 2)).tolist() == keep.tolist()
    assert tb.count((2, 2)) == 1


def test_drop_resets():
    cat, cv, tb = _table()
    tb.restrict((0, 0), np.zeros(len(cat), dtype=bool))
    assert tb.count((0, 0)) == 0
    tb.drop((0, 0))
    assert (0, 0) not in tb
    assert tb.count((0, 0)) == len(cat)


def test_color_balance():
    bal = ColorBalance(np.array([0.75, 0.25]))
    for c in (0, 1, 1, 1):
        bal.add(c)
    assert bal.total == 4
    assert bal.counts.tolist() == [1, 3]
    assert bal.proportions.tolist() == [0.75, 0.25]
    bal.remove(1)
    assert bal.counts.tolist() == [1, 2]
