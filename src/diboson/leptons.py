"""
Dressed-lepton construction.

Prompt electrons and muons that do not come from tau decays are
"dressed" with the prompt photons (not from hadron decays) found
within a small Delta R cone, each photon being added to its closest
lepton. The result is the per-event lepton collection the diboson
classifier works on, ordered by descending transverse momentum.
"""

import logging
from dataclasses import dataclass

import numpy as np
import awkward as ak
import vector

from src.diboson.physics import ELECTRON, MUON, charge_from_pid, lepton_vectors

logger = logging.getLogger(__name__)

DRESSING_CONE = 0.1


@dataclass(frozen=True)
class DressedLepton:
    """A single dressed electron or muon, kinematics in GeV."""

    pid: int
    pt: float
    eta: float
    phi: float
    energy: float

    def __post_init__(self):
        if abs(self.pid) not in (ELECTRON, MUON):
            raise ValueError(
                f"Dressed leptons must be electrons or muons, got pid {self.pid}"
            )

    @property
    def charge(self):
        return int(charge_from_pid(self.pid))


def select_prompt_leptons(arrays, momentum_scale=1.0):
    """
    Prompt electrons and muons not descended from taus.

    ``momentum_scale`` converts the stored momenta to GeV
    (0.001 for MeV ntuples).
    """
    pid = arrays["lep_pid"]
    flavour = (abs(pid) == ELECTRON) | (abs(pid) == MUON)
    mask = flavour & (arrays["lep_isPrompt"] != 0) & (arrays["lep_fromTau"] == 0)

    return lepton_vectors(
        arrays["lep_pt"][mask] * momentum_scale,
        arrays["lep_eta"][mask],
        arrays["lep_phi"][mask],
        arrays["lep_E"][mask] * momentum_scale,
        pid=pid[mask],
    )


def select_prompt_photons(arrays, momentum_scale=1.0):
    """Photons not produced in hadron decays."""
    mask = arrays["photon_isPrompt"] != 0

    return lepton_vectors(
        arrays["photon_pt"][mask] * momentum_scale,
        arrays["photon_eta"][mask],
        arrays["photon_phi"][mask],
        arrays["photon_E"][mask] * momentum_scale,
    )


def sort_by_pt(leptons):
    idx = ak.argsort(leptons.pt, axis=1, ascending=False)
    return leptons[idx]


def dress_leptons(leptons, photons, dr_max=DRESSING_CONE):
    """
    Add photons within ``dr_max`` of a lepton to the closest lepton.

    Parameters
    ----------
    leptons : ak.Array
        Jagged Momentum4D leptons with a ``pid`` field.
    photons : ak.Array
        Jagged Momentum4D photons.
    dr_max : float
        Clustering radius in Delta R.

    Returns
    -------
    ak.Array
        Dressed leptons (Momentum4D with ``pid``), sorted by descending pT.
    """
    # [event][photon][lepton]
    ph_lep = ak.cartesian({"photon": photons, "lepton": leptons}, axis=1, nested=True)
    dr = ph_lep.photon.deltaR(ph_lep.lepton)

    closest = ak.fill_none(ak.argmin(dr, axis=2), -1)
    clustered = ak.fill_none(ak.min(dr, axis=2), np.inf) < dr_max
    owner = ak.where(clustered, closest, -1)

    # [event][lepton][photon]
    lepton_index, photon_owner = ak.unzip(
        ak.cartesian([ak.local_index(leptons, axis=1), owner], axis=1, nested=True)
    )
    match = lepton_index == photon_owner
    _, candidates = ak.unzip(ak.cartesian([leptons, photons], axis=1, nested=True))
    added = candidates[match]

    logger.debug("Clustered %d photons into leptons", ak.sum(clustered))

    dressed = vector.zip(
        {
            "px": leptons.px + ak.sum(added.px, axis=2),
            "py": leptons.py + ak.sum(added.py, axis=2),
            "pz": leptons.pz + ak.sum(added.pz, axis=2),
            "E": leptons.E + ak.sum(added.E, axis=2),
            "pid": leptons.pid,
        }
    )
    return sort_by_pt(dressed)


def events_from_leptons(events):
    """
    Build a jagged dressed-lepton array from per-event lists of
    :class:`DressedLepton`, keeping float dtypes for empty events.
    """
    counts = [len(event) for event in events]
    flat = [lepton for event in events for lepton in event]

    def column(values, dtype):
        return ak.unflatten(np.asarray(values, dtype=dtype), counts)

    return lepton_vectors(
        column([l.pt for l in flat], np.float64),
        column([l.eta for l in flat], np.float64),
        column([l.phi for l in flat], np.float64),
        column([l.energy for l in flat], np.float64),
        pid=column([l.pid for l in flat], np.int64),
    )
