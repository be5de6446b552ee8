import os
from typing import Dict, List

import numpy as np
import pandas as pd
import yaml
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from aggregate import CorpusAggregator, CorpusSummary
from metrics import PRECISION, RECALL, best_f_measure
from raster import NUM_GREYSCALES

REFERENCE = ("R. Achanta, S. Hemami, F. Estrada and S. Suesstrunk, Frequency-tuned Salient Region "
             "Detection, IEEE International Conference on Computer Vision and Pattern Recognition (CVPR), 2009.")

RESULT_ALL = "result_all.txt"
RESULT_MEAN = "result_mean.txt"
GT_SIZES = "ground_truth_sizes.txt"


def _g(v):
    return "%.4g" % v

def _header(f, *lines):
    for ln in lines:
        f.write(f"# {ln}".rstrip() + "\n")


def write_all_results(path, tables):
    """One row per threshold: threshold precision recall [precision recall ...]."""
    with open(path, "w", encoding="utf-8") as f:
        _header(f, "This file shows results of an evaluation of saliency maps as described in",
                REFERENCE, "", "threshold precision recall precision recall ...")
        for t in range(NUM_GREYSCALES):
            cols = [str(t)]
            for _, table in tables:
                cols += [_g(table[t, PRECISION]), _g(table[t, RECALL])]
            f.write(" ".join(cols) + "\n")
    return path

def write_mean_results(path, summary: CorpusSummary):
    with open(path, "w", encoding="utf-8") as f:
        _header(f, "This file shows results of an evaluation of saliency maps as described in",
                REFERENCE, "", "threshold mean_precision mean_recall")
        for t in range(NUM_GREYSCALES):
            f.write(f"{t} {_g(summary.mean_precision[t])} {_g(summary.mean_recall[t])}\n")
    return path

def write_sizes(path, sizes: Dict[str, float]):
    with open(path, "w", encoding="utf-8") as f:
        _header(f, "This file shows sizes of ground truths relative to their image's size",
                "", "image_name relative_size_gt")
        for name, size in sizes.items():
            f.write(f"{name} {_g(size)}\n")
    return path

def read_table(path) -> np.ndarray:
    """Read result_mean.txt (or the first image of result_all.txt) back into a (256, 2) table."""
    rows = np.loadtxt(path, comments="#", ndmin=2)
    return rows[:, 1:3]


def per_image_frame(agg: CorpusAggregator, beta=1.0) -> pd.DataFrame:
    rows = []
    for name, table in agg.tables:
        f, thr = best_f_measure(table, beta)
        rows.append(dict(
            image=name,
            relative_size=agg.sizes.get(name, float("nan")),
            best_f=f,
            best_f_thr=thr,
            precision_at_best=float(table[thr, PRECISION]),
            recall_at_best=float(table[thr, RECALL]),
        ))
    cols = ["image", "relative_size", "best_f", "best_f_thr", "precision_at_best", "recall_at_best"]
    return pd.DataFrame(rows, columns=cols)

def summary_dict(summary: CorpusSummary, skipped: List[Dict[str, str]], params: Dict, beta=1.0):
    f, thr = summary.best_f_measure(beta)
    return {
        "params": params,
        "num_images": int(summary.num_images),
        "num_evaluated": int(summary.num_evaluated),
        "num_skipped": len(skipped),
        "mean_relative_size": float(summary.mean_relative_size),
        "beta": float(beta),
        "best_mean_f": float(f),
        "best_mean_f_thr": int(thr),
        "precision_at_best": float(summary.mean_precision[thr]),
        "recall_at_best": float(summary.mean_recall[thr]),
        "pr_auc": float(summary.auc()),
        "skipped": skipped,
    }


def plot_results(agg: CorpusAggregator, summary: CorpusSummary, out_dir):
    """plot.png: mean PR curve by threshold; plot_all.png: every per-image PR point."""
    plt.figure(figsize=(8, 6))
    plt.plot(summary.mean_recall, summary.mean_precision)
    plt.xlim(0, 1.0)
    plt.ylim(0, 1.0)
    plt.xlabel("recall")
    plt.ylabel("precision")
    plt.title("Evaluation result by threshold")
    plot_png = os.path.join(out_dir, "plot.png")
    plt.savefig(plot_png, bbox_inches='tight', dpi=100)
    plt.close()

    plt.figure(figsize=(8, 6))
    for _, table in agg.tables:
        plt.plot(table[:, RECALL], table[:, PRECISION], ',', color="tab:blue")
    plt.xlim(0, 1.0)
    plt.ylim(0, 1.0)
    plt.xlabel("recall")
    plt.ylabel("precision")
    plt.title("Evaluation result - ALL values")
    all_png = os.path.join(out_dir, "plot_all.png")
    plt.savefig(all_png, bbox_inches='tight', dpi=100)
    plt.close()
    return plot_png, all_png


def write_report(agg: CorpusAggregator, out_dir, skipped=None, params=None, beta=1.0, plot=True):
    """Write every result file for one evaluation run; returns the summary."""
    os.makedirs(out_dir, exist_ok=True)
    summary = agg.summary()

    write_all_results(os.path.join(out_dir, RESULT_ALL), agg.tables)
    print(f"[report] Saved complete results to: {os.path.join(out_dir, RESULT_ALL)}")

    write_sizes(os.path.join(out_dir, GT_SIZES), agg.sizes)
    print(f"[report] Saved ground truth sizes to: {os.path.join(out_dir, GT_SIZES)}")
    print(f"MEAN GT SIZE: {summary.mean_relative_size:.4g}")

    write_mean_results(os.path.join(out_dir, RESULT_MEAN), summary)
    print(f"[report] Saved mean results to: {os.path.join(out_dir, RESULT_MEAN)}")

    per_image_frame(agg, beta).to_csv(os.path.join(out_dir, "per_image.csv"), index=False)

    info = summary_dict(summary, skipped or [], params or {}, beta)
    with open(os.path.join(out_dir, "summary.yaml"), "w", encoding="utf-8") as f:
        yaml.safe_dump(info, f, sort_keys=False)

    if plot:
        plot_png, all_png = plot_results(agg, summary, out_dir)
        print(f"[report] Saved plots to: {plot_png}, {all_png}")
    return summary
