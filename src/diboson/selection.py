"""
Event classification for the WW / WZ / ZZ cross-section analysis.

Events are categorised by their number of dressed leptons:
two leptons of opposite charge are a WW candidate, three leptons with
an on-shell SFOS pair a WZ candidate, and four leptons that pair up
into two on-shell Z bosons a ZZ candidate. Events with fewer than two
or more than four leptons, or with a low-mass SFOS pair, are rejected.
"""

import logging
from enum import IntEnum

import numpy as np
import awkward as ak

from src.diboson.physics import charge_from_pid, in_window, is_sfos, pair_mass

logger = logging.getLogger(__name__)

MLL_MIN = 4.0
Z_WINDOW = (60.0, 120.0)

# (0,1)&(2,3), (0,2)&(1,3), (0,3)&(1,2)
ZZ_PARTITIONS = (((0, 1), (2, 3)), ((0, 2), (1, 3)), ((0, 3), (1, 2)))
WZ_PAIRS = ((0, 1), (0, 2), (1, 2))


class Process(IntEnum):
    NONE = 0
    WW = 1
    WZ = 2
    ZZ = 3


def _n_leptons(leptons):
    return ak.to_numpy(ak.num(leptons, axis=1))


def _scatter(selected, values, size):
    """Expand a mask over a subset of events back to all events."""
    out = np.zeros(size, dtype=bool)
    out[selected] = ak.to_numpy(values)
    return out


def multiplicity_mask(leptons, n_min=2, n_max=4):
    n = _n_leptons(leptons)
    return (n >= n_min) & (n <= n_max)


def low_mass_veto_mask(leptons, mll_min=MLL_MIN):
    """
    False for events containing an SFOS pair lighter than ``mll_min``.

    Every pair of distinct leptons is tested once.
    """
    pairs = ak.combinations(leptons, 2, axis=1, fields=["a", "b"])
    low = is_sfos(pairs.a.pid, pairs.b.pid) & (pair_mass(pairs.a, pairs.b) < mll_min)
    return ~ak.to_numpy(ak.any(low, axis=1))


def ww_mask(leptons):
    """Two leptons with opposite charge, any flavour combination."""
    selected = _n_leptons(leptons) == 2
    subset = leptons[selected]
    charge = charge_from_pid(subset.pid)
    return _scatter(selected, (charge[:, 0] + charge[:, 1]) == 0, len(leptons))


def _on_shell(subset, i, j, z_window):
    a, b = subset[:, i], subset[:, j]
    return is_sfos(a.pid, b.pid) & in_window(pair_mass(a, b), *z_window)


def wz_mask(leptons, z_window=Z_WINDOW):
    """
    Three leptons with one unpaired flavour and at least one on-shell
    SFOS pair. The three pairs are tested independently.
    """
    selected = _n_leptons(leptons) == 3
    subset = leptons[selected]

    pid_sum = abs(ak.sum(subset.pid, axis=1))
    flavour_ok = (pid_sum == 11) | (pid_sum == 13)

    onshell_z = np.zeros(len(subset), dtype=bool)
    for i, j in WZ_PAIRS:
        onshell_z = onshell_z | ak.to_numpy(_on_shell(subset, i, j, z_window))

    return _scatter(selected, flavour_ok & onshell_z, len(leptons))


def zz_mask(leptons, z_window=Z_WINDOW):
    """
    Four leptons with zero total pid that split into two on-shell
    SFOS pairs in at least one of the three possible pairings.
    """
    selected = _n_leptons(leptons) == 4
    subset = leptons[selected]

    neutral = ak.sum(subset.pid, axis=1) == 0

    onshell_zz = np.zeros(len(subset), dtype=bool)
    for (i, j), (k, l) in ZZ_PARTITIONS:
        # total pid of zero makes the second pair SFOS as well
        second = in_window(pair_mass(subset[:, k], subset[:, l]), *z_window)
        onshell_zz = onshell_zz | ak.to_numpy(_on_shell(subset, i, j, z_window) & second)

    return _scatter(selected, neutral & onshell_zz, len(leptons))


def _preselection(leptons, mll_min):
    n_ok = multiplicity_mask(leptons)
    return n_ok, n_ok & low_mass_veto_mask(leptons, mll_min)

def _classify(leptons, mll_min, z_window):
    """Process codes plus the preselection masks they were built from."""
    size = len(leptons)
    categories = np.full(size, Process.NONE, dtype=np.int8)
    if size == 0:
        return categories, np.zeros(0, dtype=bool), np.zeros(0, dtype=bool)

    n_ok, passed = _preselection(leptons, mll_min)

    # disjoint by multiplicity
    categories[passed & ww_mask(leptons)] = Process.WW
    categories[passed & wz_mask(leptons, z_window)] = Process.WZ
    categories[passed & zz_mask(leptons, z_window)] = Process.ZZ

    logger.debug(
        "Classified %d events: %d rejected by preselection",
        size,
        np.count_nonzero(~passed),
    )
    return categories, n_ok, passed


def classify_events(leptons, mll_min=MLL_MIN, z_window=Z_WINDOW):
    """
    Assign one :class:`Process` code per event.

    Parameters
    ----------
    leptons : ak.Array
        Jagged dressed leptons (Momentum4D with ``pid``), pT ordered.
    mll_min : float
        Low-mass SFOS veto threshold [GeV].
    z_window : tuple of float
        Open mass window for on-shell Z candidates [GeV].

    Returns
    -------
    np.ndarray
        ``int8`` array of Process values, NONE for rejected events.
    """
    return _classify(leptons, mll_min, z_window)[0]


def classify_with_cutflow(leptons, weights=None, mll_min=MLL_MIN, z_window=Z_WINDOW):
    """
    Classify a chunk and count its weighted events after each stage.

    Returns
    -------
    tuple
        ``(categories, cutflow)``, the cutflow a dict keyed by stage.
    """
    if weights is None:
        weights = np.ones(len(leptons))
    weights = np.asarray(weights, dtype=float)

    categories, n_ok, passed = _classify(leptons, mll_min, z_window)
    flow = {
        "all": float(weights.sum()),
        "multiplicity": float(weights[n_ok].sum()),
        "low_mass_veto": float(weights[passed].sum()),
        "selected": float(weights[categories != Process.NONE].sum()),
    }
    return categories, flow


def cutflow(leptons, weights=None, mll_min=MLL_MIN, z_window=Z_WINDOW):
    """Weighted event counts after each classification stage."""
    return classify_with_cutflow(leptons, weights, mll_min, z_window)[1]
