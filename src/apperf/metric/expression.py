"""Symbolic metric expressions over confusion-matrix statistics.

Metric definitions are ordinary Python functions of a
:class:`~apperf.metric.statistics.ConfusionMatrix`; operator overloading
on :class:`Expression` turns them into an immutable tree. Every node knows
its degree in the cell counts (tp, tn), which is how the sum-of-fractions
structure is enforced: denominators, exponents and function arguments may
only depend on the marginals (pp, ap, pn, an, all), and the whole
expression must be affine in (tp, tn) once the marginals are fixed.

Because of that structure an expression can be *linearized*: for numeric
marginals it reduces exactly to ``alpha * tp + beta * tn + const``. The
numeric marginals may be numpy arrays, in which case a whole grid of
count combinations is linearized in one pass.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NamedTuple

import numpy as np

from apperf.core.enums import Statistic
from apperf.core.exceptions import DegenerateMetricError, StructuralError

if TYPE_CHECKING:
    from apperf.metric.special_case import SpecialCasePolicy
    from apperf.metric.statistics import ConfusionMatrixStatistics, Marginals


class Affine(NamedTuple):
    """Affine form ``tp * tp_coef + tn * tn_coef + const``."""

    tp: Any
    tn: Any
    const: Any

    def scale(self, factor: Any) -> Affine:
        return Affine(self.tp * factor, self.tn * factor, self.const * factor)

    def __add__(self, other: object) -> Affine:  # type: ignore[override]
        if not isinstance(other, Affine):
            return NotImplemented
        return Affine(self.tp + other.tp, self.tn + other.tn, self.const + other.const)

    def __sub__(self, other: Affine) -> Affine:
        return Affine(self.tp - other.tp, self.tn - other.tn, self.const - other.const)


class _Context:
    """Numeric bindings for one linearization pass."""

    def __init__(self, marginals: Marginals, policy: SpecialCasePolicy) -> None:
        self.marginals = marginals
        self.policy = policy
        pp, ap, pn, an = (np.asarray(v, dtype=float) for v in marginals[:4])
        guard = np.zeros(np.broadcast_shapes(pp.shape, ap.shape, pn.shape, an.shape), dtype=bool)
        if policy.positive:
            guard = guard | (pp == 0) | (ap == 0)
        if policy.negative:
            guard = guard | (pn == 0) | (an == 0)
        self.guard = guard

    def value(self, stat: Statistic) -> Any:
        return getattr(self.marginals, stat.value)

    def resolve_singular(self, singular: Any, what: str) -> Any:
        """Check singular cells against the guard; return the guarded mask.

        Raises:
            DegenerateMetricError: If a singular cell is not covered by the
                special-case policy.
        """
        singular = np.asarray(singular, dtype=bool)
        if not singular.any():
            return singular
        unguarded = singular & ~self.guard
        if unguarded.any():
            index = np.unravel_index(int(np.argmax(unguarded)), unguarded.shape)
            stats = {
                name: float(np.broadcast_to(np.asarray(v, dtype=float), unguarded.shape)[index])
                for name, v in self.marginals._asdict().items()
            }
            msg = (
                f"{what} evaluates to zero at {stats} and no special case "
                "covers this configuration"
            )
            raise DegenerateMetricError(msg, statistics=stats)
        return singular


def _lift(value: Any) -> Expression:
    if isinstance(value, Expression):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        msg = f"Cannot use {type(value).__name__} in a metric expression"
        raise TypeError(msg)
    return Constant(float(value))


class Expression(ABC):
    """Base class of all expression nodes.

    Attributes:
        degree: Polynomial degree of the node in (tp, tn).
    """

    degree: int

    # Arithmetic builds new nodes; Python numbers are lifted to constants.
    def __add__(self, other: Any) -> Expression:
        return BinaryOp("+", self, _lift(other))

    def __radd__(self, other: Any) -> Expression:
        return BinaryOp("+", _lift(other), self)

    def __sub__(self, other: Any) -> Expression:
        return BinaryOp("-", self, _lift(other))

    def __rsub__(self, other: Any) -> Expression:
        return BinaryOp("-", _lift(other), self)

    def __mul__(self, other: Any) -> Expression:
        return BinaryOp("*", self, _lift(other))

    def __rmul__(self, other: Any) -> Expression:
        return BinaryOp("*", _lift(other), self)

    def __truediv__(self, other: Any) -> Expression:
        return BinaryOp("/", self, _lift(other))

    def __rtruediv__(self, other: Any) -> Expression:
        return BinaryOp("/", _lift(other), self)

    def __pow__(self, other: Any) -> Expression:
        return BinaryOp("**", self, _lift(other))

    def __rpow__(self, other: Any) -> Expression:
        return BinaryOp("**", _lift(other), self)

    def __neg__(self) -> Expression:
        return Negate(self)

    def __pos__(self) -> Expression:
        return self

    def __ge__(self, other: Any) -> Inequality:
        if isinstance(other, Expression):
            return Inequality(self - other, 0.0)
        return Inequality(self, float(_lift(other).value))  # type: ignore[attr-defined]

    @abstractmethod
    def affine(self, ctx: _Context) -> Affine:
        """Affine form of the node in (tp, tn) under the marginals of ``ctx``."""


@dataclass(frozen=True)
class Constant(Expression):
    """A numeric constant."""

    value: float
    degree: int = field(default=0, init=False, compare=False)

    def affine(self, ctx: _Context) -> Affine:
        return Affine(0.0, 0.0, self.value)

    def __str__(self) -> str:
        return f"{self.value:g}"


@dataclass(frozen=True)
class Stat(Expression):
    """A confusion-matrix statistic slot."""

    stat: Statistic
    degree: int = field(default=0, init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "degree", 1 if self.stat.is_cell else 0)

    def affine(self, ctx: _Context) -> Affine:
        if self.stat is Statistic.TP:
            return Affine(1.0, 0.0, 0.0)
        if self.stat is Statistic.TN:
            return Affine(0.0, 1.0, 0.0)
        return Affine(0.0, 0.0, ctx.value(self.stat))

    def __str__(self) -> str:
        return self.stat.value


@dataclass(frozen=True)
class Negate(Expression):
    """Unary minus."""

    operand: Expression
    degree: int = field(default=0, init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "degree", self.operand.degree)

    def affine(self, ctx: _Context) -> Affine:
        return self.operand.affine(ctx).scale(-1.0)

    def __str__(self) -> str:
        return f"-{self.operand}"


@dataclass(frozen=True)
class BinaryOp(Expression):
    """Binary arithmetic node: ``+``, ``-``, ``*``, ``/`` or ``**``."""

    op: str
    left: Expression
    right: Expression
    degree: int = field(default=0, init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "degree", self._infer_degree())

    def _infer_degree(self) -> int:
        left, right = self.left.degree, self.right.degree
        if self.op in ("+", "-"):
            return max(left, right)
        if self.op == "*":
            return left + right
        if self.op == "/":
            if right > 0:
                msg = f"Denominator of {self} references tp or tn"
                raise StructuralError(msg, node=str(self))
            return left
        if self.op == "**":
            if right > 0:
                msg = f"Exponent of {self} references tp or tn"
                raise StructuralError(msg, node=str(self))
            if left == 0:
                return 0
            exponent = self.right.value if isinstance(self.right, Constant) else None
            if exponent is None or exponent < 0 or not float(exponent).is_integer():
                msg = (
                    f"{self} raises an expression of tp or tn to a non-constant, "
                    "negative or fractional power"
                )
                raise StructuralError(msg, node=str(self))
            return left * int(exponent)
        msg = f"Unknown operator {self.op!r}"
        raise StructuralError(msg)

    def affine(self, ctx: _Context) -> Affine:
        left = self.left.affine(ctx)
        right = self.right.affine(ctx)
        if self.op == "+":
            return left + right
        if self.op == "-":
            return left - right
        if self.op == "*":
            if self.left.degree == 0:
                return right.scale(left.const)
            if self.right.degree == 0:
                return left.scale(right.const)
            msg = f"{self} is quadratic in tp/tn"
            raise StructuralError(msg, node=str(self))
        if self.op == "/":
            return _divide(left, right.const, ctx, str(self.right))
        return self._power(left, right.const, ctx)

    def _power(self, base: Affine, exponent: Any, ctx: _Context) -> Affine:
        if self.left.degree > 0:
            if exponent == 0:
                return Affine(0.0, 0.0, 1.0)
            if exponent == 1:
                return base
            msg = f"{self} is not affine in tp/tn"
            raise StructuralError(msg, node=str(self))
        base_val = np.asarray(base.const, dtype=float)
        exp_val = np.asarray(exponent, dtype=float)
        singular = ctx.resolve_singular((base_val == 0) & (exp_val < 0), str(self.left))
        with np.errstate(divide="ignore", invalid="ignore"):
            value = np.power(np.where(singular, 1.0, base_val), exp_val)
        return Affine(0.0, 0.0, np.where(singular, 0.0, value))

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


_FUNCTIONS = {"sqrt": np.sqrt, "exp": np.exp, "log": np.log}


@dataclass(frozen=True)
class Function(Expression):
    """Elementary function of a marginal-only expression."""

    name: str
    operand: Expression
    degree: int = field(default=0, init=False, compare=False)

    def __post_init__(self) -> None:
        if self.name not in _FUNCTIONS:
            msg = f"Unsupported function {self.name!r}"
            raise StructuralError(msg)
        if self.operand.degree > 0:
            msg = f"Argument of {self.name}() references tp or tn: {self.operand}"
            raise StructuralError(msg, node=str(self))

    def affine(self, ctx: _Context) -> Affine:
        arg = np.asarray(self.operand.affine(ctx).const, dtype=float)
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            value = _FUNCTIONS[self.name](arg)
        singular = ctx.resolve_singular(~np.isfinite(value), str(self))
        return Affine(0.0, 0.0, np.where(singular, 0.0, value))

    def __str__(self) -> str:
        return f"{self.name}({self.operand})"


@dataclass(frozen=True)
class Inequality:
    """Result of ``expression >= threshold`` inside a constraint definition."""

    expression: Expression
    threshold: float


def _divide(numerator: Affine, denominator: Any, ctx: _Context, what: str) -> Affine:
    den = np.asarray(denominator, dtype=float)
    singular = ctx.resolve_singular(den == 0, f"Denominator {what}")
    safe = np.where(singular, 1.0, den)

    def part(coef: Any) -> Any:
        return np.where(singular, 0.0, np.asarray(coef, dtype=float) / safe)

    return Affine(part(numerator.tp), part(numerator.tn), part(numerator.const))


def sqrt(x: Any) -> Expression:
    """Square root of a marginal-only expression."""
    return Function("sqrt", _lift(x))


def exp(x: Any) -> Expression:
    """Exponential of a marginal-only expression."""
    return Function("exp", _lift(x))


def log(x: Any) -> Expression:
    """Natural logarithm of a marginal-only expression."""
    return Function("log", _lift(x))


def validate(expression: Any) -> Expression:
    """Check that an expression is a sum of fractions in tp and tn.

    Node-level checks (denominators, exponents, function arguments) run
    while the tree is built; this pass adds the whole-expression check.

    Args:
        expression: An expression or a plain number.

    Returns:
        The validated expression.

    Raises:
        StructuralError: If the expression is not affine in (tp, tn) for
            fixed marginals.
        TypeError: If ``expression`` is neither an expression nor a number.
    """
    expr = _lift(expression)
    if expr.degree > 1:
        msg = (
            f"{expr} has degree {expr.degree} in tp/tn; metrics must be sums of "
            "fractions whose numerators are linear in tp and tn"
        )
        raise StructuralError(msg, node=str(expr))
    return expr


def linearize(
    expression: Expression,
    marginals: Marginals,
    policy: SpecialCasePolicy,
) -> Affine:
    """Reduce an expression to ``alpha * tp + beta * tn + const``.

    The special-case policy decides what happens at degenerate marginals:
    the override values (1 when pp = ap = 0 with ``positive``, 1 when
    pn = an = 0 with ``negative``) replace the expression, and zero
    denominators under a set flag make their fraction vanish.

    Args:
        expression: A validated expression.
        marginals: Numeric pp, ap, pn, an, all (scalars or arrays).
        policy: Special-case flags of the metric or constraint.

    Returns:
        Affine coefficients broadcast to the marginals' shape.

    Raises:
        DegenerateMetricError: On a zero denominator the policy does not cover.
    """
    ctx = _Context(marginals, policy)
    form = expression.affine(ctx)
    shape = ctx.guard.shape
    tp, tn, const = (np.broadcast_to(np.asarray(c, dtype=float), shape) for c in form)

    pp, ap, pn, an = (np.asarray(v, dtype=float) for v in marginals[:4])
    override = np.zeros(shape, dtype=bool)
    if policy.positive:
        override = override | ((pp == 0) & (ap == 0))
    if policy.negative:
        override = override | ((pn == 0) & (an == 0))
    if override.any():
        tp = np.where(override, 0.0, tp)
        tn = np.where(override, 0.0, tn)
        const = np.where(override, 1.0, const)
    return Affine(tp, tn, const)


def evaluate(
    expression: Expression,
    statistics: ConfusionMatrixStatistics,
    policy: SpecialCasePolicy,
) -> float:
    """Evaluate an expression on bound confusion-matrix statistics."""
    form = linearize(expression, statistics.marginals, policy)
    value = form.tp * statistics.tp + form.tn * statistics.tn + form.const
    return float(value)
