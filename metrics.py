import numpy as np
from sklearn.metrics import auc

from errors import DimensionMismatch
from raster import NUM_GREYSCALES, Grid

PRECISION = 0
RECALL = 1


def _as_array(x):
    return x.data if isinstance(x, Grid) else np.asarray(x)

def _check_shapes(gt, sal, identifier):
    if gt.shape != sal.shape:
        raise DimensionMismatch(
            identifier,
            f"size of saliency map ({sal.shape[1]}x{sal.shape[0]}) does not match "
            f"ground truth ({gt.shape[1]}x{gt.shape[0]})")

def _safe_div(num, den):
    # 0 where the denominator is empty, never NaN
    num = np.asarray(num, dtype=np.float64)
    den = np.asarray(den, dtype=np.float64)
    out = np.zeros(np.broadcast(num, den).shape, dtype=np.float64)
    np.divide(num, den, out=out, where=den > 0)
    return out


def confusion_histograms(gt, sal, identifier="?"):
    """Grey-value histograms of salient (pos) and non-salient (neg) pixels, one pass."""
    g = _as_array(gt).astype(bool, copy=False)
    s = _as_array(sal)
    _check_shapes(g, s, identifier)
    s = s.astype(np.intp, copy=False).ravel()
    if s.size and (s.min() < 0 or s.max() >= NUM_GREYSCALES):
        raise ValueError(f"{identifier}: saliency values must be in [0, {NUM_GREYSCALES - 1}]")
    both = np.bincount(s + NUM_GREYSCALES * g.ravel(), minlength=2 * NUM_GREYSCALES)
    return both[NUM_GREYSCALES:], both[:NUM_GREYSCALES]

def sweep_counts(gt, sal, identifier="?"):
    """Cumulative TP(t), FP(t) for every threshold t (pixels with value >= t), plus P."""
    hist_pos, hist_neg = confusion_histograms(gt, sal, identifier)
    # running sums from 255 down to 0
    tp = np.cumsum(hist_pos[::-1])[::-1]
    fp = np.cumsum(hist_neg[::-1])[::-1]
    return tp, fp, int(hist_pos.sum())

def pr_sweep(gt, sal, identifier="?"):
    """Precision/recall for all 256 thresholds.

    Returns a (256, 2) float array indexed by [threshold, PRECISION|RECALL].
    """
    tp, fp, n_pos = sweep_counts(gt, sal, identifier)
    table = np.zeros((NUM_GREYSCALES, 2), dtype=np.float64)
    table[:, PRECISION] = _safe_div(tp, tp + fp)
    table[:, RECALL] = _safe_div(tp, n_pos)
    return table

def evaluate_at_threshold(gt, sal, threshold, identifier="?"):
    """Precision and recall for pixels with saliency >= threshold."""
    g = _as_array(gt).astype(bool, copy=False)
    s = _as_array(sal)
    _check_shapes(g, s, identifier)
    pred = s >= threshold
    tp = int(np.logical_and(pred, g).sum())
    fp = int(np.logical_and(pred, ~g).sum())
    n_pos = int(g.sum())
    return np.array([_safe_div(tp, tp + fp), _safe_div(tp, n_pos)], dtype=np.float64)


def f_measure(precision, recall, beta=1.0):
    """((1+b^2) P R) / (b^2 P + R); 0 when the denominator is 0. Works on arrays."""
    b2 = float(beta) ** 2
    p = np.asarray(precision, dtype=np.float64)
    r = np.asarray(recall, dtype=np.float64)
    f = _safe_div((1.0 + b2) * p * r, b2 * p + r)
    return float(f) if f.ndim == 0 else f

def f1_measure(precision, recall):
    return f_measure(precision, recall, 1.0)

def f_curve(table, beta=1.0):
    table = np.asarray(table)
    return f_measure(table[:, PRECISION], table[:, RECALL], beta)

def best_f_measure(table, beta=1.0):
    """Best F-measure over thresholds and the (lowest) threshold reaching it."""
    f = f_curve(table, beta)
    i = int(np.argmax(f))
    return float(f[i]), i

def pr_auc(table):
    """Area under a precision/recall table (trapezoid over recall-sorted points)."""
    table = np.asarray(table)
    order = np.argsort(table[:, RECALL], kind="stable")
    rec = table[order, RECALL]
    prec = table[order, PRECISION]
    if len(np.unique(rec)) < 2:
        return 0.0
    return float(auc(rec, prec))
