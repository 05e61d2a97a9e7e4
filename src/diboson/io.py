"""
I/O utilities for reading truth-level lepton/photon ntuples with uproot
"""

import logging

import uproot

logger = logging.getLogger(__name__)

DEFAULT_TREE = "truth"

DEFAULT_BRANCHES = [
    "lep_pt",
    "lep_eta",
    "lep_phi",
    "lep_E",
    "lep_pid",
    "lep_isPrompt",
    "lep_fromTau",
    "photon_pt",
    "photon_eta",
    "photon_phi",
    "photon_E",
    "photon_isPrompt",
    "mcWeight",
]


def _find_tree(file, treename=DEFAULT_TREE):
    """
    Detect the event TTree inside the ROOT file.

    Logic:
    1. If ``treename`` exists (optionally with ';1' cycle), use it.
    2. Otherwise, use the only top-level TTree.
    3. Otherwise, search one directory level down.
    """
    keys = file.keys()
    for key in (treename, f"{treename};1"):
        if key in keys:
            return file[key]

    tt_keys = [k for k, v in file.classnames().items() if v == "TTree"]
    if len(tt_keys) == 1:
        return file[tt_keys[0]]

    for key in keys:
        directory = file[key]
        if not hasattr(directory, "keys"):
            continue
        for subkey in directory.keys():
            full = f"{key}/{subkey}"
            if file[full].classname == "TTree":
                return file[full]

    raise RuntimeError(f"No TTree found in file {file.file_path}")


def load_events(filename, branches=None, treename=DEFAULT_TREE):
    """
    Load selected branches into an Awkward Array.
    Falls back to automatic tree detection when ``treename`` is absent.
    """
    if branches is None:
        branches = DEFAULT_BRANCHES

    with uproot.open(filename) as f:
        tree = _find_tree(f, treename)
        arrays = tree.arrays(branches, library="ak")

    logger.info("Loaded %d events from %s", len(arrays), filename)
    return arrays
