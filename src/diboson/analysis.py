"""
WW, WZ and ZZ normalised cross sections at sqrt(s) = 5.02 TeV.

The analysis follows the usual init / analyze / finalize lifecycle:
accumulators are booked once, every chunk of events is classified and
filled, and the accumulated counts are normalised to the sample cross
section exactly once at the end of the run.
"""

import logging

import numpy as np

from src.diboson.histograms import REFERENCE_IDS, SQRT_S, DibosonHistograms
from src.diboson.leptons import events_from_leptons
from src.diboson.normalization import normalize, to_picobarn
from src.diboson.selection import MLL_MIN, Z_WINDOW, Process, classify_with_cutflow

logger = logging.getLogger(__name__)


class DibosonAnalysis:
    def __init__(
        self,
        sqrt_s=SQRT_S,
        cross_section=1.0,
        cross_section_unit="pb",
        mll_min=MLL_MIN,
        z_window=Z_WINDOW,
    ):
        self.sqrt_s = sqrt_s
        self.cross_section_pb = to_picobarn(cross_section, cross_section_unit)
        self.mll_min = mll_min
        self.z_window = tuple(z_window)

        self.histograms = None
        self.sum_of_weights = 0.0
        self.cutflow = {}
        self.norm = None

    @classmethod
    def from_config(cls, config):
        selection_cfg = config.get("selection", {})
        norm_cfg = config.get("normalization", {})
        analysis_cfg = config.get("analysis", {})
        return cls(
            sqrt_s=analysis_cfg.get("sqrt_s", SQRT_S),
            cross_section=norm_cfg.get("cross_section", 1.0),
            cross_section_unit=norm_cfg.get("unit", "pb"),
            mll_min=selection_cfg.get("mll_min", MLL_MIN),
            z_window=selection_cfg.get("z_window", Z_WINDOW),
        )

    def init(self):
        """Book the three accumulators and reset the run state."""
        self.histograms = DibosonHistograms.book(self.sqrt_s)
        self.sum_of_weights = 0.0
        self.cutflow = {}
        self.norm = None

    def _check_open(self):
        if self.histograms is None:
            raise RuntimeError("DibosonAnalysis.init() must be called first")
        if self.norm is not None:
            raise RuntimeError("Analysis has already been finalized")

    def analyze(self, leptons, weights=None):
        """
        Classify a chunk of events and fill the matching accumulators.

        Parameters
        ----------
        leptons : ak.Array
            Jagged dressed leptons, pT ordered, one list per event.
        weights : array-like, optional
            Event weights; unit weights when omitted.

        Returns
        -------
        np.ndarray
            The Process code assigned to every event.
        """
        self._check_open()

        if weights is None:
            weights = np.ones(len(leptons))
        weights = np.asarray(weights, dtype=float)
        if weights.shape != (len(leptons),):
            raise ValueError(
                f"Got {weights.size} weights for {len(leptons)} events"
            )

        # every event counts towards the normalisation, vetoed or not
        self.sum_of_weights += float(weights.sum())

        categories, flow = classify_with_cutflow(leptons, weights, self.mll_min, self.z_window)
        for process in (Process.WW, Process.WZ, Process.ZZ):
            self.histograms.fill(process, weights[categories == process])

        for stage, value in flow.items():
            self.cutflow[stage] = self.cutflow.get(stage, 0.0) + value

        return categories

    def analyze_event(self, leptons, weight=1.0):
        """Per-event hook taking a list of DressedLepton."""
        return Process(int(self.analyze(events_from_leptons([leptons]), [weight])[0]))

    def merge(self, other):
        """Add the un-normalised state of an independent partial run."""
        self._check_open()
        if other.norm is not None:
            raise RuntimeError("Cannot merge a finalized analysis")
        self.histograms = self.histograms + other.histograms
        self.sum_of_weights += other.sum_of_weights
        for stage, value in other.cutflow.items():
            self.cutflow[stage] = self.cutflow.get(stage, 0.0) + value
        return self

    def finalize(self):
        """Normalise the accumulators; allowed exactly once."""
        self._check_open()
        self.norm = normalize(self.histograms, self.cross_section_pb, self.sum_of_weights)
        return self.norm

    def results(self):
        """Value and variance of every accumulator, keyed by process name."""
        out = {}
        for process in (Process.WW, Process.WZ, Process.ZZ):
            h = self.histograms[process]
            out[process.name] = {
                "reference_id": REFERENCE_IDS[process],
                "value": float(h.values().sum()),
                "variance": float(h.variances().sum()),
            }
        return out
