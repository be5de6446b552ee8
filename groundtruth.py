# groundtruth.py
"""Ground truth of salient objects.

A ground truth comes either from a binary mask image (white = salient) or
from a rectangle description in the MSRA salient object format:

    path/to/image.jpg
    <width> <height>
    <left> <top> <right> <bottom>; <left> <top> <right> <bottom>; ...

Rectangles are turned into a probability grid (each of N rectangles adds 1/N
to every pixel it covers) that is binarized with set_binary_threshold().
"""
import os, re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from dataset import read_image, stem, write_png
from errors import ParseError
from raster import ProbabilityGrid, RasterMask


@dataclass(frozen=True)
class Rectangle:
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_corners(cls, left, top, right, bottom):
        # inclusive corners
        return cls(left, top, right - left + 1, bottom - top + 1)

    def clipped(self, image_width, image_height) -> "Rectangle":
        x0 = max(self.x, 0)
        y0 = max(self.y, 0)
        x1 = min(self.x + self.width, image_width)
        y1 = min(self.y + self.height, image_height)
        return Rectangle(x0, y0, max(x1 - x0, 0), max(y1 - y0, 0))

    @property
    def area(self):
        return self.width * self.height


@dataclass(frozen=True)
class GroundTruthDescription:
    image_name: str
    image_path: str = ""
    image_width: int = 0
    image_height: int = 0
    rectangles: Tuple[Rectangle, ...] = field(default_factory=tuple)
    valid: bool = True
    error: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "GroundTruthDescription":
        """Parse one textual record. Never raises; failures come back with valid=False."""
        text = text.strip()
        lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
        name = _name_from_path(lines[0]) if lines else text
        try:
            if len(lines) < 3:
                raise ValueError(f"expected 3 lines, got {len(lines)}")
            size = lines[1].split()
            if len(size) < 2:
                raise ValueError(f"bad image size '{lines[1]}'")
            width, height = int(size[0]), int(size[1])
            if width <= 0 or height <= 0:
                raise ValueError(f"image size must be positive, got {width}x{height}")

            rects = []
            for chunk in lines[2].split(";"):
                tok = chunk.split()
                if not tok:
                    continue
                if len(tok) < 4:
                    raise ValueError(f"bad rectangle '{chunk.strip()}'")
                rects.append(Rectangle.from_corners(*(int(t) for t in tok[:4])))
        except ValueError as e:
            return cls(image_name=name, image_path=lines[0] if lines else "",
                       valid=False, error=f"error parsing ground truth description: {e}")

        return cls(image_name=name, image_path=lines[0], image_width=width,
                   image_height=height, rectangles=tuple(rects))

    def require_valid(self):
        if not self.valid:
            raise ParseError(self.image_name or "<empty>", self.error)
        return self


def _name_from_path(path):
    # descriptions written on Windows use backslashes
    return stem(re.split(r"[\\/]", path)[-1])


def probability_grid(description: GroundTruthDescription) -> ProbabilityGrid:
    W, H = description.image_width, description.image_height
    grid = np.zeros((H, W), dtype=np.float32)
    n = len(description.rectangles)
    if n:
        factor = np.float32(1.0) / np.float32(n)
        for rect in description.rectangles:
            r = rect.clipped(W, H)
            if r.area == 0:
                continue
            grid[r.y:r.y + r.height, r.x:r.x + r.width] += factor
    return ProbabilityGrid(description.image_name, grid)


class GroundTruth:
    """Binary ground truth mask of one image."""

    def __init__(self, identifier, mask: Optional[RasterMask] = None,
                 probabilities: Optional[ProbabilityGrid] = None):
        self.identifier = identifier
        self.mask = mask
        self.probabilities = probabilities

    @classmethod
    def from_image(cls, path) -> "GroundTruth":
        """Load a mask image; a pixel is salient iff every channel is at its maximum.

        Raises ResourceNotFound if the file is missing or cannot be decoded.
        """
        identifier = stem(path)
        img = read_image(path, identifier)
        top = np.iinfo(img.dtype).max if np.issubdtype(img.dtype, np.integer) else 1.0
        white = (img == top) if img.ndim == 2 else np.all(img == top, axis=2)
        return cls(identifier, RasterMask(identifier, white))

    @classmethod
    def from_description(cls, description: GroundTruthDescription,
                         threshold: Optional[float] = None) -> "GroundTruth":
        description.require_valid()
        gt = cls(description.image_name, probabilities=probability_grid(description))
        if threshold is not None:
            gt.set_binary_threshold(threshold)
        return gt

    def set_binary_threshold(self, threshold: float):
        """Binarize the probability grid: salient iff probability > threshold.

        Does nothing for ground truth that was loaded from an image.
        """
        if self.probabilities is None:
            return
        t = min(max(float(threshold), 0.0), 1.0)
        self.mask = RasterMask(self.identifier, self.probabilities.data > t)

    def relative_object_size(self) -> float:
        if self.mask is None:
            return -1.0
        return self.mask.count() / float(self.width * self.height)

    def values(self) -> Optional[np.ndarray]:
        return None if self.mask is None else self.mask.flat()

    @property
    def width(self) -> int:
        if self.mask is not None:
            return self.mask.width
        if self.probabilities is not None:
            return self.probabilities.width
        return -1

    @property
    def height(self) -> int:
        if self.mask is not None:
            return self.mask.height
        if self.probabilities is not None:
            return self.probabilities.height
        return -1

    def save_png(self, directory):
        if self.mask is None:
            return None
        path = os.path.join(directory, self.identifier + ".png")
        write_png(path, self.mask.data.astype(np.uint8) * 255)
        return path


def split_records(text: str) -> List[str]:
    """Split a description file into records separated by blank lines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return [r for r in re.split(r"\n[ \t]*\n", text) if r.strip()]
