import numpy as np
import pytest

from conftest import naive_table
from errors import DimensionMismatch
from metrics import (PRECISION, RECALL, best_f_measure, confusion_histograms, evaluate_at_threshold,
                     f1_measure, f_measure, pr_auc, pr_sweep, sweep_counts)
from raster import IntensityGrid, RasterMask


@pytest.mark.parametrize("seed,shape,p_true", [
    (0, (7, 5), 0.3),
    (1, (16, 16), 0.05),
    (2, (1, 40), 0.5),
    (3, (33, 9), 0.9),
])
def test_sweep_matches_naive(seed, shape, p_true):
    rng = np.random.default_rng(seed)
    gt = rng.random(shape) < p_true
    sal = rng.integers(0, 256, size=shape, dtype=np.uint8)
    assert np.array_equal(pr_sweep(gt, sal), naive_table(gt, sal))


def test_sweep_matches_naive_few_grey_values():
    rng = np.random.default_rng(7)
    gt = rng.random((20, 12)) < 0.4
    sal = rng.choice(np.array([0, 17, 128, 255], dtype=np.uint8), size=(20, 12))
    assert np.array_equal(pr_sweep(gt, sal), naive_table(gt, sal))


def test_accepts_grids():
    rng = np.random.default_rng(4)
    g = rng.random((6, 4)) < 0.5
    s = rng.integers(0, 256, size=(6, 4), dtype=np.uint8)
    table = pr_sweep(RasterMask("a", g), IntensityGrid("a", s))
    assert np.array_equal(table, naive_table(g, s))


def test_counts_monotonic():
    rng = np.random.default_rng(5)
    gt = rng.random((25, 25)) < 0.2
    sal = rng.integers(0, 256, size=(25, 25), dtype=np.uint8)
    tp, fp, n_pos = sweep_counts(gt, sal)
    assert np.all(np.diff(tp) <= 0)
    assert np.all(np.diff(fp) <= 0)
    assert n_pos == int(gt.sum())
    table = pr_sweep(gt, sal)
    assert np.all(np.diff(table[:, RECALL]) <= 0)
    assert table[0, RECALL] == 1.0
    assert tp[255] + fp[255] == int((sal == 255).sum())


def test_histograms():
    gt = np.array([[True, False], [True, False]])
    sal = np.array([[3, 3], [200, 0]], dtype=np.uint8)
    pos, neg = confusion_histograms(gt, sal)
    assert pos[3] == 1 and pos[200] == 1 and pos.sum() == 2
    assert neg[3] == 1 and neg[0] == 1 and neg.sum() == 2


def test_center_example(center_case):
    gt, sal = center_case
    table = pr_sweep(gt, sal)
    assert table[100, PRECISION] == 1.0
    assert table[100, RECALL] == 1.0
    assert table[0, PRECISION] == pytest.approx(1 / 9)
    assert table[0, RECALL] == 1.0
    # nothing reaches 201
    assert table[201, PRECISION] == 0.0
    assert table[201, RECALL] == 0.0


def test_empty_ground_truth_has_zero_recall():
    gt = np.zeros((4, 4), dtype=bool)
    sal = np.full((4, 4), 255, dtype=np.uint8)
    table = pr_sweep(gt, sal)
    assert not np.isnan(table).any()
    assert np.all(table[:, RECALL] == 0.0)
    assert np.all(table[:, PRECISION] == 0.0)


def test_single_threshold_matches_sweep(center_case):
    gt, sal = center_case
    table = pr_sweep(gt, sal)
    for t in [0, 1, 100, 200, 201, 255]:
        assert np.array_equal(evaluate_at_threshold(gt, sal, t), table[t])


def test_single_threshold_zero_denominators():
    gt = np.zeros((2, 2), dtype=bool)
    sal = np.zeros((2, 2), dtype=np.uint8)
    p, r = evaluate_at_threshold(gt, sal, 10)
    assert p == 0.0 and r == 0.0


def test_dimension_mismatch():
    with pytest.raises(DimensionMismatch) as info:
        pr_sweep(np.zeros((3, 3), bool), np.zeros((3, 4), np.uint8), "dog01")
    assert info.value.identifier == "dog01"
    with pytest.raises(DimensionMismatch):
        evaluate_at_threshold(np.zeros((3, 3), bool), np.zeros((2, 3), np.uint8), 5)


def test_f_measure():
    assert f_measure(0.8, 0.4, 1.0) == pytest.approx(0.5333, abs=1e-4)
    assert f1_measure(0.8, 0.4) == pytest.approx(2 * 0.8 * 0.4 / 1.2)
    assert f_measure(0.0, 0.0) == 0.0
    # beta^2 = 0.3 is the usual saliency setting
    assert f_measure(0.5, 0.5, np.sqrt(0.3)) == pytest.approx(0.5)
    arr = f_measure(np.array([0.8, 0.0]), np.array([0.4, 0.0]))
    assert arr[0] == pytest.approx(0.5333, abs=1e-4) and arr[1] == 0.0


def test_best_f_measure(center_case):
    gt, sal = center_case
    f, thr = best_f_measure(pr_sweep(gt, sal))
    assert f == 1.0
    assert thr == 1


def test_pr_auc_perfect_detector():
    table = np.zeros((256, 2))
    table[:, PRECISION] = 1.0
    table[:, RECALL] = np.linspace(1.0, 0.0, 256)
    assert pr_auc(table) == pytest.approx(1.0)
    assert pr_auc(np.zeros((256, 2))) == 0.0


def test_plain_arrays_at_every_entry_point():
    gt = np.zeros((3, 3), dtype=bool)
    sal = np.zeros((3, 3), dtype=np.uint8)
    pos, neg = confusion_histograms(gt, sal)
    assert pos.sum() == 0 and neg[0] == 9
    tp, fp, n_pos = sweep_counts(gt, sal)
    assert (tp[0], fp[0], n_pos) == (0, 9, 0)
    assert np.all(pr_sweep(gt, sal) == 0.0)
    assert tuple(evaluate_at_threshold(gt, sal, 0)) == (0.0, 0.0)

    gt[1, 1] = True
    sal[1, 1] = 200
    assert tuple(evaluate_at_threshold(gt.tolist(), sal.tolist(), 200)) == (1.0, 1.0)
