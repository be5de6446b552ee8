# dataset.py
import os, glob, shutil
from pathlib import Path

import cv2
from tqdm import tqdm

from errors import ConfigurationError, ResourceNotFound


def stem(p):
    return os.path.splitext(os.path.basename(str(p)))[0]


# ---------- image codec ----------

def read_image(path, identifier=None):
    """Decode an image as stored (any depth, any channel count)."""
    identifier = identifier or stem(path)
    if not os.path.isfile(path):
        raise ResourceNotFound(identifier, f"file '{path}' does not exist")
    img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ResourceNotFound(identifier, f"could not decode image '{path}'")
    return img

def write_png(path, arr):
    if not str(path).lower().endswith(".png"):
        path = str(path) + ".png"
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    if not cv2.imwrite(str(path), arr):
        raise OSError(f"Failed to write image: {path}")
    return path


# ---------- corpus files ----------

def require_dir(path, what):
    if not path:
        raise ConfigurationError(f"Path to {what} not set")
    if not os.path.exists(path):
        raise ConfigurationError(f"Directory '{os.path.abspath(path)}' does not exist")
    if not os.path.isdir(path):
        raise ConfigurationError(f"'{os.path.abspath(path)}' is not a directory")
    return path

def list_files(directory):
    """Plain files directly inside directory, sorted by name."""
    return sorted(p for p in glob.glob(os.path.join(directory, "*")) if os.path.isfile(p))

def find_file(name, files):
    """First file whose name contains `name`; files are searched in the given order."""
    for p in files:
        if name in os.path.basename(p):
            return p
    return None

def index_by_stem(root):
    """Map file stem -> path for every file below root (later duplicates win)."""
    idx = {}
    for p in sorted(Path(root).rglob("*")):
        if p.is_file():
            idx[p.stem] = p
    return idx

def read_text(path):
    if not os.path.isfile(path):
        raise ConfigurationError(f"Could not read '{path}'")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


# ---------- copy modes ----------

def copy_small_ground_truth(src_dir, dst_dir, threshold=0.5):
    """Copy ground truth images whose salient object covers less than `threshold` of the image."""
    from groundtruth import GroundTruth

    require_dir(src_dir, "ground truth images")
    os.makedirs(dst_dir, exist_ok=True)

    files = list_files(src_dir)
    copied = 0
    for p in tqdm(files, desc="Copy small GT"):
        try:
            gt = GroundTruth.from_image(p)
        except ResourceNotFound as e:
            tqdm.write(f"[WARN] {e.identifier}: {e.reason}")
            continue
        if gt.relative_object_size() < threshold:
            shutil.copy2(p, os.path.join(dst_dir, os.path.basename(p)))
            copied += 1

    print(f"[copy] Copied {copied} files of {len(files)}")
    return copied, len(files)

def copy_defined_files(src_dir, dst_dir, def_dir):
    """Copy every file below src_dir whose stem matches a file name in def_dir."""
    require_dir(def_dir, "images defining image names to copy")
    require_dir(src_dir, "images to copy")
    os.makedirs(dst_dir, exist_ok=True)

    names = [stem(p) for p in list_files(def_dir)]
    available = index_by_stem(src_dir)

    copied, missing = 0, []
    for name in tqdm(names, desc="Copy images"):
        found = available.get(name)
        if found is None:
            tqdm.write(f"[WARN] could not find file '{name}' in folder '{src_dir}' and its subfolders")
            missing.append(name)
            continue
        shutil.copy2(found, os.path.join(dst_dir, found.name))
        copied += 1

    print(f"[copy] Copied {copied} of {len(names)} defined files")
    return copied, missing
