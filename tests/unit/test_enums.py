"""Tests for core enums."""
from apperf.core.enums import SpecialCase, Statistic


def test_statistic_values() -> None:
    assert Statistic.TP == "tp"
    assert Statistic.ALL == "all"
    assert len(Statistic) == 7


def test_only_tp_and_tn_are_cells() -> None:
    cells = {s for s in Statistic if s.is_cell}
    assert cells == {Statistic.TP, Statistic.TN}


def test_special_case_values() -> None:
    assert SpecialCase.POSITIVE == "positive"
    assert SpecialCase("negative") is SpecialCase.NEGATIVE
