import os

import numpy as np
import cv2
import pytest


def naive_table(gt, sal):
    """Per-threshold recomputation straight from the definition."""
    g = np.asarray(gt, dtype=bool)
    s = np.asarray(sal)
    n_pos = int(g.sum())
    out = np.zeros((256, 2), dtype=np.float64)
    for t in range(256):
        pred = s >= t
        tp = int(np.logical_and(pred, g).sum())
        fp = int(np.logical_and(pred, ~g).sum())
        out[t, 0] = tp / (tp + fp) if tp + fp > 0 else 0.0
        out[t, 1] = tp / n_pos if n_pos > 0 else 0.0
    return out


@pytest.fixture
def write_img():
    def _write(path, arr):
        os.makedirs(os.path.dirname(str(path)), exist_ok=True)
        assert cv2.imwrite(str(path), np.asarray(arr))
        return str(path)
    return _write


@pytest.fixture
def center_case():
    """3x3 ground truth with only the center salient; saliency 200 there, 0 elsewhere."""
    gt = np.zeros((3, 3), dtype=bool)
    gt[1, 1] = True
    sal = np.zeros((3, 3), dtype=np.uint8)
    sal[1, 1] = 200
    return gt, sal
