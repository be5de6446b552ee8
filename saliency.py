# saliency.py
import os
import numpy as np
import cv2

from dataset import read_image, stem
from errors import ResourceNotFound
from raster import IntensityGrid


def _load_array(path, identifier):
    arr = np.load(path)
    if isinstance(arr, np.lib.npyio.NpzFile):
        for k in ["sal", "saliency", "prob", "probs", "p", "pred", "out"]:
            if k in arr:
                arr = arr[k]
                break
        else:
            arr = arr[list(arr.keys())[0]]
    arr = np.squeeze(np.asarray(arr, dtype=np.float32))
    if arr.ndim != 2:
        raise ResourceNotFound(identifier, f"saliency array '{path}' has shape {arr.shape}, expected 2-D")
    return arr

def to_grey(img):
    """Single-channel 8-bit version of any decoded raster."""
    if img.ndim == 3 and img.shape[2] == 1:
        img = img[:, :, 0]
    if img.ndim == 3:
        code = cv2.COLOR_BGRA2GRAY if img.shape[2] == 4 else cv2.COLOR_BGR2GRAY
        img = cv2.cvtColor(img, code)

    if img.dtype == np.uint8:
        return img
    if img.dtype == np.uint16:
        return np.round(img.astype(np.float32) / 257.0).astype(np.uint8)
    if np.issubdtype(img.dtype, np.floating):
        arr = img.astype(np.float32)
        arr = np.nan_to_num(arr, nan=0.0, posinf=1.0, neginf=0.0)
        # probability maps in [0,1]; anything else is taken as 0..255 already
        if float(arr.max(initial=0.0)) <= 1.0:
            arr = arr * 255.0
        return np.round(np.clip(arr, 0.0, 255.0)).astype(np.uint8)
    return np.clip(img, 0, 255).astype(np.uint8)

def normalize(img, width, height):
    """Grey, then bicubic resize only when the size differs from (width, height)."""
    grey = to_grey(img)
    if grey.shape != (height, width):
        grey = cv2.resize(grey, (width, height), interpolation=cv2.INTER_CUBIC)
    return grey

def load_saliency_map(path, width, height) -> IntensityGrid:
    """Load a saliency map scaled to the size of the image it refers to.

    Images are decoded with OpenCV; .npy/.npz files hold float maps in [0,1].
    Raises ResourceNotFound when the file is missing or unreadable.
    """
    identifier = stem(path)
    ext = os.path.splitext(str(path))[1].lower()
    if ext in [".npy", ".npz"]:
        if not os.path.isfile(path):
            raise ResourceNotFound(identifier, f"file '{path}' does not exist")
        try:
            img = _load_array(path, identifier)
        except (OSError, ValueError) as e:
            raise ResourceNotFound(identifier, f"could not load saliency array '{path}': {e}") from e
    else:
        img = read_image(path, identifier)
    return IntensityGrid(identifier, normalize(img, width, height))
