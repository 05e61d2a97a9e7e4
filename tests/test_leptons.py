import numpy as np
import pytest
ak = pytest.importorskip("awkward")
pytest.importorskip("vector")
from src.diboson import leptons as lep
from src.diboson.physics import lepton_vectors


def _ntuple():
    # momenta in MeV as stored in the ntuples
    return ak.Array(
        {
            "lep_pt": [[40000.0, 30000.0, 20000.0, 10000.0], [25000.0]],
            "lep_eta": [[0.0, 0.5, -0.5, 1.0], [0.2]],
            "lep_phi": [[0.0, 1.0, 2.0, 3.0], [0.5]],
            "lep_E": [[40000.0, 34000.0, 23000.0, 16000.0], [26000.0]],
            "lep_pid": [[11, -13, 15, 13], [-11]],
            "lep_isPrompt": [[1, 1, 1, 0], [1]],
            "lep_fromTau": [[0, 0, 0, 0], [1]],
            "photon_pt": [[5000.0, 2000.0], []],
            "photon_eta": [[0.0, 1.0], []],
            "photon_phi": [[0.05, 1.0], []],
            "photon_E": [[5000.0, 3000.0], []],
            "photon_isPrompt": [[1, 0], []],
        }
    )


def test_dressed_lepton_charge_and_validation():
    assert lep.DressedLepton(11, 10.0, 0.0, 0.0, 10.0).charge == -1
    assert lep.DressedLepton(-13, 10.0, 0.0, 0.0, 10.0).charge == 1
    with pytest.raises(ValueError):
        lep.DressedLepton(15, 10.0, 0.0, 0.0, 10.0)


def test_select_prompt_leptons_drops_taus_nonprompt_and_tau_descendants():
    leptons = lep.select_prompt_leptons(_ntuple(), momentum_scale=0.001)

    assert ak.to_list(leptons.pid) == [[11, -13], []]
    assert np.allclose(ak.to_numpy(ak.flatten(leptons.pt)), [40.0, 30.0])


def test_select_prompt_photons():
    photons = lep.select_prompt_photons(_ntuple(), momentum_scale=0.001)
    assert ak.to_list(ak.num(photons, axis=1)) == [1, 0]
    assert np.allclose(ak.to_numpy(ak.flatten(photons.E)), [5.0])


def _vectors(pt, eta, phi, **fields):
    pt = ak.Array(pt)
    eta = ak.Array(eta)
    return lepton_vectors(pt, eta, ak.Array(phi), pt * np.cosh(eta), **fields)


def test_dress_leptons_adds_photons_inside_cone_only():
    leptons = _vectors([[40.0], [30.0]], [[0.0], [0.0]], [[0.0], [1.0]], pid=ak.Array([[11], [13]]))
    photons = _vectors([[5.0, 3.0], []], [[0.05, 0.0], []], [[0.0, 0.3], []])

    dressed = lep.dress_leptons(leptons, photons, dr_max=0.1)

    energies = ak.to_list(dressed.E)
    assert energies[0] == [pytest.approx(40.0 + 5.0 * np.cosh(0.05))]
    # no photons: unchanged
    assert energies[1] == [pytest.approx(30.0)]
    assert ak.to_list(dressed.pid) == [[11], [13]]


def test_dress_leptons_photon_goes_to_closest_lepton():
    leptons = _vectors([[40.0, 30.0]], [[0.0, 0.0]], [[0.0, 0.15]], pid=ak.Array([[11, -13]]))
    photons = _vectors([[4.0]], [[0.0]], [[0.09]])

    dressed = lep.dress_leptons(leptons, photons, dr_max=0.1)

    by_pid = dict(zip(ak.to_list(dressed.pid[0]), ak.to_list(dressed.E[0])))
    assert by_pid[11] == pytest.approx(40.0)
    assert by_pid[-13] == pytest.approx(34.0)


def test_dress_leptons_sorts_by_pt():
    leptons = _vectors([[10.0, 30.0, 20.0]], [[0.0, 1.0, -1.0]], [[0.0, 2.0, 4.0]], pid=ak.Array([[11, -11, 13]]))
    photons = _vectors([[1.0]], [[0.0]], [[-2.0]])

    dressed = lep.dress_leptons(leptons, photons)

    assert ak.to_list(dressed.pid) == [[-11, 13, 11]]


def test_events_from_leptons_keeps_empty_events():
    events = lep.events_from_leptons(
        [[], [lep.DressedLepton(13, 25.0, 0.5, 1.0, 28.2)]]
    )
    assert ak.to_list(ak.num(events, axis=1)) == [0, 1]
    assert ak.to_list(events.pid) == [[], [13]]
    assert ak.to_list(events.pt) == [[], [pytest.approx(25.0)]]
