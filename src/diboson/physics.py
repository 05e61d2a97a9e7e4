"""
Physics utilities for diboson lepton analyses.

This module provides four-vector construction, invariant masses and
the charge/flavour bookkeeping of charged leptons, using NumPy,
Awkward Arrays and the vector library.
"""

import numpy as np
import awkward as ak
import vector

vector.register_awkward()

ELECTRON = 11
MUON = 13
PHOTON = 22


def lepton_vectors(pt, eta, phi, energy, **fields):
    """
    Zip (pt, eta, phi, E) into Momentum4D records.

    Parameters
    ----------
    pt, eta, phi, energy : array-like (Awkward or NumPy)
        Kinematics of the particles, [GeV] and [radians].
    **fields
        Extra per-particle fields (e.g. ``pid``) carried along.

    Returns
    -------
    ak.Array
        Array of Momentum4D records with the structure of the inputs.
    """
    return vector.zip({"pt": pt, "eta": eta, "phi": phi, "E": energy, **fields})


def pair_mass(a, b):
    """
    Invariant mass of the sum of two Momentum4D arrays.

    Spacelike sums from rounding (or unphysical inputs) are clipped
    to zero mass.
    """
    mass = (a + b).mass
    return ak.where(mass > 0, mass, 0.0)


def charge_from_pid(pid):
    """
    Electric charge of a charged lepton from its signed PDG code.

    Particles (e-, mu-) carry positive codes and negative charge.
    """
    return -np.sign(pid)


def is_sfos(pid_a, pid_b):
    # +-11 and +-13 never cancel across flavours
    return (pid_a + pid_b) == 0


def in_window(mass, low, high):
    return (mass > low) & (mass < high)
