"""Special-case policy for degenerate batches.

A batch in which every prediction and every label is 0 has pp = ap = 0,
so metrics such as precision, recall or F1 divide by zero. The policy
decides what such configurations mean instead of failing.
"""
from __future__ import annotations

from dataclasses import dataclass, replace

from apperf.core.enums import SpecialCase


@dataclass(frozen=True)
class SpecialCasePolicy:
    """Special-case flags of a metric or of one constraint.

    Attributes:
        positive: All-zero predictions and labels score 1; zero denominators
            with pp = 0 or ap = 0 make their fraction 0.
        negative: All-one predictions and labels score 1; zero denominators
            with pn = 0 or an = 0 make their fraction 0.
    """

    positive: bool = False
    negative: bool = False

    def with_flag(self, case: SpecialCase, enabled: bool = True) -> SpecialCasePolicy:
        """Return a copy with one flag set."""
        if case is SpecialCase.POSITIVE:
            return replace(self, positive=enabled)
        return replace(self, negative=enabled)

    def __str__(self) -> str:
        flags = [name for name, on in (("positive", self.positive), ("negative", self.negative)) if on]
        return ",".join(flags) or "none"
