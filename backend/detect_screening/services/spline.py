"""Restricted Cubic Spline (RCS) basis evaluation.

Implements the non-linear basis term of a 3-knot restricted cubic spline in
Harrell's reduced form. The DETECT model uses it for serum urate (Step 1)
and tricuspid regurgitant jet velocity (Step 2).

For knots k1 < k2 < k3:

    X2 = [ (x-k1)³₊ - (x-k2)³₊·(k3-k1)/(k3-k2) + (x-k3)³₊·(k2-k1)/(k3-k2) ] / (k3-k1)²

The term is 0 for x <= k1 and linear beyond k3, where it is evaluated in
closed form.
"""

from collections.abc import Sequence
from dataclasses import dataclass


class InvalidKnotConfigurationError(ValueError):
    """Raised when spline knots are not exactly three strictly increasing values."""


@dataclass(frozen=True)
class SplineKnots:
    """Three strictly increasing knot locations.

    Validation happens at construction, so knot constants built at import
    time fail at startup rather than on every call.
    """

    k1: float
    k2: float
    k3: float

    def __post_init__(self) -> None:
        if not (self.k1 < self.k2 < self.k3):
            raise InvalidKnotConfigurationError(
                f"Knots must be strictly increasing, got ({self.k1}, {self.k2}, {self.k3})"
            )

    @classmethod
    def from_sequence(cls, knots: Sequence[float]) -> "SplineKnots":
        """Build knots from a 3-element sequence.

        Raises:
            InvalidKnotConfigurationError: If the sequence does not hold
                exactly three strictly increasing values.
        """
        if len(knots) != 3:
            raise InvalidKnotConfigurationError(
                f"A 3-knot spline needs exactly 3 knots, got {len(knots)}"
            )
        return cls(float(knots[0]), float(knots[1]), float(knots[2]))

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.k1, self.k2, self.k3)

    def tail_line(self) -> tuple[float, float]:
        """Slope and intercept of the basis term for x >= k3.

        Past the last knot the cubic and quadratic parts cancel exactly,
        leaving a straight line.
        """
        k1, k2, k3 = self.k1, self.k2, self.k3
        a = (k3 - k1) / (k3 - k2)
        b = (k2 - k1) / (k3 - k2)
        scale = (k3 - k1) ** 2

        slope = 3 * (k1 ** 2 - a * k2 ** 2 + b * k3 ** 2) / scale
        intercept = -(k1 ** 3 - a * k2 ** 3 + b * k3 ** 3) / scale
        return slope, intercept


def _positive_cube(t: float) -> float:
    return t ** 3 if t > 0 else 0.0


def rcs(x: float, knots: SplineKnots | Sequence[float]) -> float:
    """Evaluate the non-linear RCS basis term at x.

    Total over the reals: beyond k3 the term is evaluated in its closed
    linear form, so huge or infinite x gives a huge or infinite value
    instead of overflowing the cubes.

    Model code passes the SplineKnots constants built at import time. A
    plain sequence is validated on every call and is meant for one-off
    evaluation.

    Args:
        x: Covariate value.
        knots: SplineKnots, or a plain (k1, k2, k3) sequence which is
            validated first.

    Returns:
        The spline basis value. Exactly 0.0 for x <= k1.

    Raises:
        InvalidKnotConfigurationError: If a plain sequence is not a valid
            knot set.
    """
    if not isinstance(knots, SplineKnots):
        knots = SplineKnots.from_sequence(knots)

    k1, k2, k3 = knots.k1, knots.k2, knots.k3

    if x <= k1:
        return 0.0
    if x >= k3:
        slope, intercept = knots.tail_line()
        return slope * x + intercept

    term = (
        _positive_cube(x - k1)
        - _positive_cube(x - k2) * (k3 - k1) / (k3 - k2)
    )
    return term / (k3 - k1) ** 2


def linear_spline_term(x: float, linear: float, spline: float, knots: SplineKnots) -> float:
    """Evaluate ``linear * x + spline * rcs(x)`` for one covariate.

    For x >= k3 both parts are folded into a single line first, so an
    infinite x gives a signed infinity rather than inf - inf.
    """
    if x >= knots.k3:
        slope, intercept = knots.tail_line()
        return (linear + spline * slope) * x + spline * intercept
    return linear * x + spline * rcs(x, knots)
