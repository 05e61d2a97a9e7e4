import pytest
pytest.importorskip("hist")
from src.diboson import normalization
from src.diboson.histograms import DibosonHistograms
from src.diboson.selection import Process


def test_normalization_factor():
    assert normalization.normalization_factor(1000.0, 500.0) == pytest.approx(2.0)


def test_zero_sum_of_weights_falls_back_to_unity():
    assert normalization.normalization_factor(1000.0, 0.0) == 1.0


@pytest.mark.parametrize(
    "value, unit, expected",
    [(1.0, "pb", 1.0), (1000.0, "fb", 1.0), (2.0, "nb", 2000.0), (1.0, "mb", 1e9)],
)
def test_to_picobarn(value, unit, expected):
    assert normalization.to_picobarn(value, unit) == pytest.approx(expected)


def test_to_picobarn_unknown_unit():
    with pytest.raises(ValueError, match="barn"):
        normalization.to_picobarn(1.0, "barn")


def test_normalize_scales_all_accumulators():
    hists = DibosonHistograms.book()
    hists.fill(Process.WW, [3.0])
    hists.fill(Process.WZ, [1.0])
    hists.fill(Process.ZZ, [0.5])

    norm = normalization.normalize(hists, cross_section_pb=1000.0, sum_of_weights=500.0)

    assert norm == pytest.approx(2.0)
    assert hists.ww.values().sum() == pytest.approx(6.0)
    assert hists.wz.values().sum() == pytest.approx(2.0)
    assert hists.zz.values().sum() == pytest.approx(1.0)


def test_normalize_with_zero_weights_keeps_values():
    hists = DibosonHistograms.book()
    hists.fill(Process.WW, [3.0])
    normalization.normalize(hists, cross_section_pb=1000.0, sum_of_weights=0.0)
    assert hists.ww.values().sum() == pytest.approx(3.0)
