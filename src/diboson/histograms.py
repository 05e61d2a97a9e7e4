"""
Cross-section accumulators for the WW, WZ and ZZ hypotheses.

Each accumulator is a one-bin-per-energy histogram over sqrt(s), bound
to the reference-data identifier of the measurement it reproduces.
"""

from dataclasses import dataclass

import numpy as np
import hist
from hist import Hist

from src.diboson.selection import Process

SQRT_S = 5.020  # TeV

# half width of the sqrt(s) bin, [5.00, 5.04] TeV for the reference data
SQRT_S_HALF_WIDTH = 0.02

REFERENCE_IDS = {
    Process.WW: "d05-x01-y01",
    Process.WZ: "d05-x01-y07",
    Process.ZZ: "d05-x01-y13",
}


def sqrt_s_edges(sqrt_s=SQRT_S):
    return [sqrt_s - SQRT_S_HALF_WIDTH, sqrt_s + SQRT_S_HALF_WIDTH]


def create_hist(label, sqrt_s=SQRT_S):
    """One-bin accumulator centred on ``sqrt_s``."""
    axis = hist.axis.Variable(sqrt_s_edges(sqrt_s), name="sqrt_s", label=r"$\sqrt{s}$ [TeV]")
    return Hist(axis, storage=hist.storage.Weight(), label=label)


@dataclass
class DibosonHistograms:
    ww: Hist
    wz: Hist
    zz: Hist
    sqrt_s: float = SQRT_S

    @classmethod
    def book(cls, sqrt_s=SQRT_S):
        return cls(
            ww=create_hist(REFERENCE_IDS[Process.WW], sqrt_s),
            wz=create_hist(REFERENCE_IDS[Process.WZ], sqrt_s),
            zz=create_hist(REFERENCE_IDS[Process.ZZ], sqrt_s),
            sqrt_s=sqrt_s,
        )

    def __getitem__(self, process):
        return {Process.WW: self.ww, Process.WZ: self.wz, Process.ZZ: self.zz}[process]

    def fill(self, process, weights):
        """Fill ``len(weights)`` entries at the sqrt(s) bin key."""
        weights = np.asarray(weights, dtype=float)
        if weights.size == 0:
            return
        self[process].fill(sqrt_s=np.full(weights.size, self.sqrt_s), weight=weights)

    def scale(self, factor):
        self.ww *= factor
        self.wz *= factor
        self.zz *= factor

    def __add__(self, other):
        if other.sqrt_s != self.sqrt_s:
            raise ValueError(
                f"Cannot merge accumulators at sqrt(s) = {self.sqrt_s} and {other.sqrt_s} TeV"
            )
        return DibosonHistograms(
            ww=self.ww + other.ww,
            wz=self.wz + other.wz,
            zz=self.zz + other.zz,
            sqrt_s=self.sqrt_s,
        )

    def items(self):
        for process in (Process.WW, Process.WZ, Process.ZZ):
            yield REFERENCE_IDS[process], self[process]
