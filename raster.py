# raster.py
from dataclasses import dataclass

import numpy as np

NUM_GREYSCALES = 256


@dataclass(eq=False)
class Grid:
    """A named (height, width) pixel grid.

    Flat views are column-major: every row of column 0, then column 1, ...
    Anything that addresses pixels by a single offset goes through flat().
    """
    identifier: str
    data: np.ndarray

    dtype = None

    def __post_init__(self):
        arr = np.asarray(self.data)
        if arr.ndim != 2:
            raise ValueError(f"{self.identifier}: expected a 2-D grid, got shape {arr.shape}")
        if arr.shape[0] <= 0 or arr.shape[1] <= 0:
            raise ValueError(f"{self.identifier}: grid must be non-empty, got shape {arr.shape}")
        if self.dtype is not None:
            arr = arr.astype(self.dtype, copy=False)
        self.data = arr

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    def flat(self) -> np.ndarray:
        return self.data.ravel(order="F")


class RasterMask(Grid):
    dtype = np.bool_

    def count(self) -> int:
        return int(np.count_nonzero(self.data))


class ProbabilityGrid(Grid):
    # sums of 1/N contributions, not clamped to [0, 1]
    dtype = np.float32


class IntensityGrid(Grid):
    dtype = np.uint8
