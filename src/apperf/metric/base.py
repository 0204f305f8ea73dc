"""Performance metric definitions and the metric registry.

A metric is a subclass of :class:`PerformanceMetric` that writes its
formula in ``define`` and, optionally, its constraints in ``constraint``.
Parameters are ordinary attributes set before ``super().__init__()``::

    @register_metric("precision_given_recall")
    class PrecisionGivenRecall(PerformanceMetric):
        def __init__(self, threshold: float) -> None:
            self.threshold = threshold
            super().__init__()

        def define(self, C):
            return C.tp / C.pp

        def constraint(self, C):
            return C.tp / C.ap >= self.threshold

The expression tree is built and validated once, in ``__init__``.
"""
from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, ClassVar, TypeVar

import structlog

from apperf.core.enums import SpecialCase
from apperf.core.exceptions import ArityError
from apperf.metric.constraints import ConstraintSet
from apperf.metric.expression import Expression, Inequality, validate
from apperf.metric.special_case import SpecialCasePolicy
from apperf.metric.statistics import ConfusionMatrix

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound="PerformanceMetric")


class PerformanceMetric(ABC):
    """A metric expression, its special-case policy and its constraints.

    Attributes:
        name: Registry name, set by :func:`register_metric`.
    """

    name: ClassVar[str | None] = None

    def __init__(self) -> None:
        cm = ConfusionMatrix()
        self._expression = validate(self.define(cm))
        self._constraints = ConstraintSet.from_definition(self.constraint(cm))
        self._special_case = SpecialCasePolicy()

    @abstractmethod
    def define(self, C: ConfusionMatrix) -> Expression:
        """Return the metric formula in terms of ``C``."""

    def constraint(
        self,
        C: ConfusionMatrix,  # noqa: ARG002
    ) -> Inequality | Sequence[Inequality] | None:
        """Return the constraints of the metric, if any."""
        return None

    @property
    def expression(self) -> Expression:
        """The validated metric expression."""
        return self._expression

    @property
    def constraints(self) -> ConstraintSet:
        """Constraints in registration order."""
        return self._constraints

    @property
    def special_case(self) -> SpecialCasePolicy:
        """Special-case flags of the metric itself."""
        return self._special_case

    def set_special_case(self, case: SpecialCase, enabled: bool = True) -> None:
        """Set one special-case flag of the metric expression."""
        self._special_case = self._special_case.with_flag(case, enabled)

    @property
    def parameters(self) -> dict[str, Any]:
        """Instantiation parameters, as named in ``__init__``."""
        names = _parameter_names(type(self))
        return {n: getattr(self, n) for n in names if hasattr(self, n)}

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v!r}" for k, v in self.parameters.items())
        return f"{type(self).__name__}({params})"

    def describe(self) -> str:
        """One-line human-readable summary of the definition."""
        parts = [f"{self.expression} [special case: {self.special_case}]"]
        parts.extend(f"s.t. {c} [special case: {c.policy}]" for c in self.constraints)
        return " ".join(parts)


def special_case_positive(metric: M) -> M:
    """Define the metric as 1 when all predictions and labels are 0."""
    metric.set_special_case(SpecialCase.POSITIVE)
    return metric


def special_case_negative(metric: M) -> M:
    """Define the metric as 1 when all predictions and labels are 1."""
    metric.set_special_case(SpecialCase.NEGATIVE)
    return metric


def cs_special_case_positive(metric: M, flags: bool | Sequence[bool] = True) -> M:
    """Set the positive special case on the metric's constraints.

    Raises:
        ArityError: If ``flags`` is a vector whose length differs from the
            number of constraints.
    """
    metric.constraints.set_special_case(SpecialCase.POSITIVE, flags)
    return metric


def cs_special_case_negative(metric: M, flags: bool | Sequence[bool] = True) -> M:
    """Set the negative special case on the metric's constraints.

    Raises:
        ArityError: If ``flags`` is a vector whose length differs from the
            number of constraints.
    """
    metric.constraints.set_special_case(SpecialCase.NEGATIVE, flags)
    return metric


# Registry
_REGISTRY: dict[str, type[PerformanceMetric]] = {}


def _parameter_names(cls: type[PerformanceMetric]) -> list[str]:
    if cls.__init__ is PerformanceMetric.__init__:
        return []
    signature = inspect.signature(cls.__init__)
    return [
        p.name
        for p in list(signature.parameters.values())[1:]
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]


def metric_arity(cls: type[PerformanceMetric]) -> int:
    """Number of parameters a metric class takes at instantiation."""
    return len(_parameter_names(cls))


def register_metric(name: str) -> Callable[[type[M]], type[M]]:
    """Class decorator registering a metric under ``name``.

    Raises:
        ValueError: If another class is already registered under ``name``.
    """

    def decorator(cls: type[M]) -> type[M]:
        existing = _REGISTRY.get(name)
        if existing is not None and existing is not cls:
            msg = f"Metric '{name}' is already registered to {existing.__name__}"
            raise ValueError(msg)
        cls.name = name
        _REGISTRY[name] = cls
        logger.debug("metric_registered", name=name, arity=metric_arity(cls))
        return cls

    return decorator


def get_metric(name: str) -> type[PerformanceMetric]:
    """Look up a registered metric class.

    Raises:
        ValueError: If no metric is registered under ``name``.
    """
    try:
        return _REGISTRY[name]
    except KeyError:
        available = ", ".join(sorted(_REGISTRY)) or "none"
        msg = f"Unknown metric '{name}'. Available: {available}"
        raise ValueError(msg) from None


def create_metric(name: str, *params: float) -> PerformanceMetric:
    """Instantiate a registered metric with positional parameters.

    Raises:
        ValueError: If the metric is unknown.
        ArityError: If the parameter count does not match the definition.
    """
    cls = get_metric(name)
    arity = metric_arity(cls)
    if len(params) != arity:
        msg = f"Metric '{name}' takes {arity} parameter(s), got {len(params)}"
        raise ArityError(msg, expected=arity, actual=len(params))
    return cls(*params)


def list_metrics() -> dict[str, int]:
    """Registered metric names mapped to their parameter count."""
    return {name: metric_arity(cls) for name, cls in sorted(_REGISTRY.items())}
