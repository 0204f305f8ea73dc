"""Core enumerations for apperf."""
from enum import StrEnum


class Statistic(StrEnum):
    """Confusion-matrix statistic slots."""

    TP = "tp"    # true positives
    TN = "tn"    # true negatives
    PP = "pp"    # predicted positives
    AP = "ap"    # actual positives
    PN = "pn"    # predicted negatives
    AN = "an"    # actual negatives
    ALL = "all"  # batch size

    @property
    def is_cell(self) -> bool:
        """Whether the slot is a cell count (tp/tn) rather than a marginal."""
        return self in (Statistic.TP, Statistic.TN)


class SpecialCase(StrEnum):
    """Degenerate batch configurations with a defined metric value."""

    POSITIVE = "positive"  # all predictions and labels are 0
    NEGATIVE = "negative"  # all predictions and labels are 1
