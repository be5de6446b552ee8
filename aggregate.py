# aggregate.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from metrics import PRECISION, RECALL, best_f_measure, f_curve, pr_auc
from raster import NUM_GREYSCALES


@dataclass
class CorpusSummary:
    mean_precision: np.ndarray
    mean_recall: np.ndarray
    mean_relative_size: float
    num_images: int
    num_evaluated: int

    @property
    def table(self):
        return np.stack([self.mean_precision, self.mean_recall], axis=1)

    def f_curve(self, beta=1.0):
        return f_curve(self.table, beta)

    def best_f_measure(self, beta=1.0):
        return best_f_measure(self.table, beta)

    def auc(self):
        return pr_auc(self.table)


@dataclass
class CorpusAggregator:
    """Collects per-image tables and relative sizes; images keep insertion order.

    Built and fed by a single consumer after the workers are done, so no locking.
    """
    tables: List[Tuple[str, np.ndarray]] = field(default_factory=list)
    sizes: Dict[str, float] = field(default_factory=dict)
    seen: List[str] = field(default_factory=list)

    def add(self, identifier, table: Optional[np.ndarray] = None,
            relative_size: Optional[float] = None):
        self.seen.append(identifier)
        if table is not None:
            table = np.asarray(table, dtype=np.float64)
            if table.shape != (NUM_GREYSCALES, 2):
                raise ValueError(f"{identifier}: expected a ({NUM_GREYSCALES}, 2) table, got {table.shape}")
            self.tables.append((identifier, table))
        # negative sizes are the "no mask" sentinel
        if relative_size is not None and relative_size >= 0:
            self.sizes[identifier] = float(relative_size)

    def add_result(self, result):
        self.add(result.identifier, result.table, result.relative_size)

    def mean_per_threshold(self):
        if not self.tables:
            return np.zeros((NUM_GREYSCALES, 2), dtype=np.float64)
        return np.mean(np.stack([t for _, t in self.tables]), axis=0)

    def mean_relative_size(self):
        if not self.sizes:
            return 0.0
        return float(np.mean(list(self.sizes.values())))

    def summary(self) -> CorpusSummary:
        mean = self.mean_per_threshold()
        return CorpusSummary(
            mean_precision=mean[:, PRECISION],
            mean_recall=mean[:, RECALL],
            mean_relative_size=self.mean_relative_size(),
            num_images=len(self.seen),
            num_evaluated=len(self.tables),
        )
