# evaluate_saliency.py
"""Saliency evaluation tool.

Evaluates saliency maps against ground truth of salient objects with the
precision/recall protocol of Achanta et al., "Frequency-tuned Salient Region
Detection" (CVPR 2009): every grey value 0..255 of a saliency map is used as
a binarization threshold and compared to the ground truth mask.

Ground truth is given either as a directory of binary mask images (--gt_dir)
or as a file of rectangle descriptions (--gt_file, MSRA format).

Besides evaluation there are two file utilities:
  --mode copySmallGroundTruth  copy masks whose object is smaller than --thr_size
  --mode copyImages            copy files from --images_dir named like the files in --def_dir
"""
import argparse, os
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import yaml
from tqdm import tqdm

from aggregate import CorpusAggregator
from dataset import (copy_defined_files, copy_small_ground_truth, find_file, list_files,
                     read_text, require_dir, stem)
from errors import ConfigurationError, ResourceNotFound, SkippedItem
from groundtruth import GroundTruth, GroundTruthDescription, split_records
from metrics import pr_sweep
from raster import IntensityGrid
from report_metrics import write_report
from saliency import load_saliency_map

MODES = {
    "evaluate": "evaluate",
    "copysmallgroundtruth": "copySmallGroundTruth",
    "copyimages": "copyImages",
}


@dataclass
class ItemResult:
    identifier: str
    status: str  # "ok" | "skipped"
    table: Optional[np.ndarray] = None
    relative_size: Optional[float] = None
    reason: Optional[str] = None

    @classmethod
    def skip(cls, identifier, reason, relative_size=None):
        return cls(identifier, "skipped", relative_size=relative_size, reason=reason)

    @property
    def ok(self):
        return self.status == "ok"


@dataclass(frozen=True)
class Task:
    identifier: str
    saliency_path: str
    gt_path: Optional[str] = None
    description: Optional[GroundTruthDescription] = None
    gt_threshold: float = 0.5
    save_gt_dir: Optional[str] = None


def evaluate_pair(gt: GroundTruth, sal: IntensityGrid) -> np.ndarray:
    if gt.mask is None:
        raise ResourceNotFound(gt.identifier, "ground truth values not available")
    return pr_sweep(gt.mask, sal, gt.identifier)

def evaluate_item(task: Task) -> ItemResult:
    """Ground truth -> normalized saliency map -> 256-threshold sweep for one image."""
    size = None
    try:
        if task.description is not None:
            gt = GroundTruth.from_description(task.description, task.gt_threshold)
            if task.save_gt_dir:
                gt.save_png(task.save_gt_dir)
        else:
            gt = GroundTruth.from_image(task.gt_path)
        size = gt.relative_object_size()

        sal = load_saliency_map(task.saliency_path, gt.width, gt.height)
        table = evaluate_pair(gt, sal)
    except SkippedItem as e:
        return ItemResult.skip(task.identifier, e.reason, relative_size=size)
    return ItemResult(gt.identifier, "ok", table=table, relative_size=size)

def _crashed(task, e):
    return ItemResult.skip(task.identifier, f"{type(e).__name__}: {e}")


def run_tasks(tasks: List[Task], num_workers=0) -> List[ItemResult]:
    """Evaluate tasks, in-process or on a process pool; results come back in task order.

    A failure is attributed to its own task. On Ctrl-C, results finished so far are kept.
    """
    results: List[Optional[ItemResult]] = [None] * len(tasks)
    try:
        if num_workers <= 0:
            for i, task in enumerate(tqdm(tasks, desc="Evaluate")):
                try:
                    results[i] = evaluate_item(task)
                except Exception as e:
                    results[i] = _crashed(task, e)
        else:
            with ProcessPoolExecutor(max_workers=num_workers) as pool:
                futures = {pool.submit(evaluate_item, t): i for i, t in enumerate(tasks)}
                try:
                    for fut in tqdm(as_completed(futures), total=len(futures), desc="Evaluate"):
                        i = futures[fut]
                        try:
                            results[i] = fut.result()
                        except Exception as e:
                            results[i] = _crashed(tasks[i], e)
                except KeyboardInterrupt:
                    pool.shutdown(wait=False, cancel_futures=True)
                    raise
    except KeyboardInterrupt:
        done = sum(r is not None for r in results)
        print(f"[WARN] interrupted, keeping {done} of {len(tasks)} finished images")
    return [r for r in results if r is not None]


def image_tasks(gt_dir, saliency_files) -> Tuple[List[Task], List[ItemResult]]:
    """One task per ground truth image that has a matching saliency map."""
    tasks, skipped = [], []
    for p in list_files(gt_dir):
        name = stem(p)
        sm = find_file(name, saliency_files)
        if sm is None:
            skipped.append(ItemResult.skip(name, "no matching saliency map image found"))
        else:
            tasks.append(Task(name, sm, gt_path=p))
    return tasks, skipped

def description_tasks(gt_file, saliency_files, gt_threshold=0.5,
                      save_gt_dir=None) -> Tuple[List[Task], List[ItemResult]]:
    """One task per valid description that has a matching saliency map."""
    records = split_records(read_text(gt_file))
    print(f"[evaluate] Read {len(records)} ground truth descriptions from {gt_file}")
    tasks, skipped = [], []
    for rec in records:
        gtd = GroundTruthDescription.parse(rec)
        if not gtd.valid:
            skipped.append(ItemResult.skip(gtd.image_name or rec.strip(),
                                           f"not a valid ground truth description ({gtd.error})"))
            continue
        sm = find_file(gtd.image_name, saliency_files)
        if sm is None:
            skipped.append(ItemResult.skip(gtd.image_name, "no saliency map file found"))
        else:
            tasks.append(Task(gtd.image_name, sm, description=gtd,
                              gt_threshold=gt_threshold, save_gt_dir=save_gt_dir))
    return tasks, skipped

def evaluate_corpus(tasks, skipped=(), num_workers=0):
    """Run all tasks and fold the results into a CorpusAggregator (sequential fan-in)."""
    agg = CorpusAggregator()
    results = list(skipped) + run_tasks(tasks, num_workers)
    skips = []
    for r in results:
        if not r.ok:
            tqdm.write(f"[WARN] {r.identifier}: {r.reason} -> skipping")
            skips.append({"image": r.identifier, "reason": r.reason})
        agg.add_result(r)
    return agg, skips


# ------------------------- CLI -------------------------

def build_parser():
    ap = argparse.ArgumentParser(description="Saliency Evaluation Tool")
    ap.add_argument("--config", default=None, help="YAML file with default values for any option below")
    ap.add_argument("--mode", default="evaluate",
                    help="evaluate (default), copySmallGroundTruth or copyImages")
    ap.add_argument("--gt_dir", default=None, help="Directory of binary ground truth images")
    ap.add_argument("--gt_file", default=None, help="Text file with ground truth rectangle descriptions")
    ap.add_argument("--sm_dir", default=None, help="Directory of saliency map images")
    ap.add_argument("--out", default=".", help="Directory to write results / copy files to")
    ap.add_argument("--thr_gt", type=float, default=0.5,
                    help="Threshold to binarize ground truth from descriptions, in [0,1]")
    ap.add_argument("--thr_size", type=float, default=0.5,
                    help="Maximum relative object size to copy (copySmallGroundTruth), in [0,1]")
    ap.add_argument("--images_dir", default=None, help="Directory to copy images from (copyImages)")
    ap.add_argument("--def_dir", default=None, help="Directory whose file names define images to copy")
    ap.add_argument("--save_gt", action="store_true", help="Save binary ground truth images (descriptions only)")
    ap.add_argument("--beta", type=float, default=1.0, help="Beta of the reported F-measure")
    ap.add_argument("--num_workers", type=int, default=0, help="Worker processes (0 = evaluate in-process)")
    ap.add_argument("--no_plot", action="store_true", help="Skip PR plots")
    return ap

def parse_args(argv=None):
    ap = build_parser()
    pre, _ = ap.parse_known_args(argv)
    if pre.config:
        if not os.path.isfile(pre.config):
            raise ConfigurationError(f"Config file '{pre.config}' does not exist")
        with open(pre.config, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
        if not isinstance(cfg, dict):
            raise ConfigurationError(f"Config file '{pre.config}' must contain a mapping")
        known = {a.dest for a in ap._actions} - {"help"}
        unknown = sorted(set(cfg) - known)
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {', '.join(unknown)}")
        ap.set_defaults(**cfg)
    return ap.parse_args(argv)

def verify_args(args):
    """Check arguments before anything is processed; raises ConfigurationError."""
    mode = MODES.get(str(args.mode).lower())
    if mode is None:
        raise ConfigurationError(f"'{args.mode}' is not a valid mode (choose from {', '.join(MODES.values())})")
    args.mode = mode

    for name in ["thr_gt", "thr_size"]:
        v = getattr(args, name)
        if not 0.0 <= v <= 1.0:
            raise ConfigurationError(f"--{name} must be in [0,1], got {v}")
    if args.beta < 0:
        raise ConfigurationError(f"--beta must be non-negative, got {args.beta}")
    if args.num_workers < 0:
        raise ConfigurationError(f"--num_workers must be >= 0, got {args.num_workers}")

    if mode == "evaluate":
        require_dir(args.sm_dir, "saliency map images")
        if args.gt_dir is None and args.gt_file is None:
            raise ConfigurationError("Path to ground truth images/file not set")
        if args.gt_dir is not None:
            require_dir(args.gt_dir, "ground truth images")
        elif not os.path.isfile(args.gt_file):
            raise ConfigurationError(f"Could not read '{args.gt_file}'")
    elif mode == "copySmallGroundTruth":
        require_dir(args.gt_dir, "ground truth images")
    else:
        require_dir(args.images_dir, "images to copy")
        require_dir(args.def_dir, "images defining image names to copy")
    return args


def run_evaluation(args):
    saliency_files = list_files(args.sm_dir)
    os.makedirs(args.out, exist_ok=True)

    if args.gt_dir is not None:
        tasks, skipped = image_tasks(args.gt_dir, saliency_files)
    else:
        save_dir = args.out if args.save_gt else None
        tasks, skipped = description_tasks(args.gt_file, saliency_files, args.thr_gt, save_dir)

    print(f"[evaluate] {len(tasks)} images to evaluate, {len(skipped)} without saliency map/description")
    agg, skips = evaluate_corpus(tasks, skipped, num_workers=args.num_workers)

    params = {k: getattr(args, k) for k in
              ["mode", "gt_dir", "gt_file", "sm_dir", "thr_gt", "beta", "num_workers"]}
    summary = write_report(agg, args.out, skipped=skips, params=params,
                           beta=args.beta, plot=not args.no_plot)
    f, thr = summary.best_f_measure(args.beta)
    print(f"[evaluate] evaluated {summary.num_evaluated} of {summary.num_images} images; "
          f"best mean F(beta={args.beta:g}) = {f:.4f} at threshold {thr}")
    return summary

def main(argv=None):
    try:
        args = verify_args(parse_args(argv))
    except ConfigurationError as e:
        raise SystemExit(f"[error] {e} -> stopping.")

    if args.mode == "copySmallGroundTruth":
        copy_small_ground_truth(args.gt_dir, args.out, args.thr_size)
    elif args.mode == "copyImages":
        copy_defined_files(args.images_dir, args.out, args.def_dir)
    else:
        run_evaluation(args)
    print("DONE")

if __name__ == "__main__":
    main()
