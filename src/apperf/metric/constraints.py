"""Ordered constraint sets attached to a performance metric.

Constraints are registered in the order a metric's ``constraint`` method
returns them. That order is part of the public contract: constraint values
and constraint special-case flags are correlated by position.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

import numpy as np

from apperf.core.enums import SpecialCase
from apperf.core.exceptions import ArityError, StructuralError
from apperf.metric.expression import Expression, Inequality, evaluate, validate
from apperf.metric.special_case import SpecialCasePolicy
from apperf.metric.statistics import ConfusionMatrixStatistics


@dataclass(frozen=True)
class Constraint:
    """A single ``expression >= threshold`` constraint.

    Attributes:
        expression: Validated sum-of-fractions expression.
        threshold: Lower bound the expression must reach.
        policy: Special-case flags used when evaluating the expression.
    """

    expression: Expression
    threshold: float
    policy: SpecialCasePolicy = field(default_factory=SpecialCasePolicy)
    comparison: str = ">="

    def evaluate(self, statistics: ConfusionMatrixStatistics) -> float:
        """Value of the constrained expression (not the slack)."""
        return evaluate(self.expression, statistics, self.policy)

    def __str__(self) -> str:
        return f"{self.expression} {self.comparison} {self.threshold:g}"


class ConstraintSet:
    """Ordered, append-only collection of constraints."""

    def __init__(self, constraints: Iterable[Constraint] = ()) -> None:
        self._constraints: list[Constraint] = list(constraints)

    @classmethod
    def from_definition(cls, definition: Any) -> ConstraintSet:
        """Build a set from whatever a metric's ``constraint`` method returned.

        Args:
            definition: ``None``, one ``expr >= threshold`` inequality, or a
                sequence of them.

        Returns:
            ConstraintSet in the order given.

        Raises:
            StructuralError: If an item is not an inequality or its
                expression is not a sum of fractions.
        """
        if definition is None:
            return cls()
        items = [definition] if isinstance(definition, Inequality) else list(definition)
        constraints = cls()
        for item in items:
            if not isinstance(item, Inequality):
                msg = (
                    "Constraints must be written as `expression >= threshold`, "
                    f"got {type(item).__name__}"
                )
                raise StructuralError(msg)
            constraints.add(item.expression, item.threshold)
        return constraints

    def add(
        self,
        expression: Expression,
        threshold: float,
        policy: SpecialCasePolicy | None = None,
    ) -> Constraint:
        """Validate and append a constraint; returns the stored constraint."""
        constraint = Constraint(
            expression=validate(expression),
            threshold=float(threshold),
            policy=policy or SpecialCasePolicy(),
        )
        self._constraints.append(constraint)
        return constraint

    def evaluate(self, statistics: ConfusionMatrixStatistics) -> list[float]:
        """Constraint values in registration order."""
        return [c.evaluate(statistics) for c in self._constraints]

    def set_special_case(
        self,
        case: SpecialCase,
        flags: bool | Sequence[bool] = True,
    ) -> None:
        """Set one special-case flag on every constraint.

        Args:
            case: Which flag to set.
            flags: A single flag for all constraints, or one flag per
                constraint in registration order.

        Raises:
            ArityError: If a flag vector's length differs from the number of
                constraints.
        """
        if isinstance(flags, (bool, np.bool_)):
            values = [bool(flags)] * len(self._constraints)
        else:
            values = [bool(f) for f in flags]
            if len(values) != len(self._constraints):
                msg = (
                    f"Expected {len(self._constraints)} {case.value} special-case "
                    f"flags (one per constraint), got {len(values)}"
                )
                raise ArityError(msg, expected=len(self._constraints), actual=len(values))

        self._constraints = [
            replace(c, policy=c.policy.with_flag(case, enabled))
            for c, enabled in zip(self._constraints, values, strict=True)
        ]

    def __len__(self) -> int:
        return len(self._constraints)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self._constraints)

    def __getitem__(self, index: int) -> Constraint:
        return self._constraints[index]

    def __bool__(self) -> bool:
        return bool(self._constraints)
