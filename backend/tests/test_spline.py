"""Tests for the restricted cubic spline basis term."""

import math

import pytest

from detect_screening.services.detect_calculator import Step1Carry, compute_step1, compute_step2
from detect_screening.services.detect_model import STEP1_COEFFICIENTS, TR_VELOCITY_KNOTS, URATE_KNOTS
from detect_screening.services.spline import (
    InvalidKnotConfigurationError,
    SplineKnots,
    linear_spline_term,
    rcs,
)


# ============================================================================
# Knot Validation
# ============================================================================


class TestSplineKnots:
    """Test knot construction and validation."""

    def test_valid_knots(self):
        """Test strictly increasing knots are accepted."""
        knots = SplineKnots(1.0, 2.0, 3.0)
        assert knots.as_tuple() == (1.0, 2.0, 3.0)

    def test_equal_knots_rejected(self):
        """Test repeated knots are rejected."""
        with pytest.raises(InvalidKnotConfigurationError):
            SplineKnots(1.0, 1.0, 3.0)

    def test_decreasing_knots_rejected(self):
        """Test decreasing knots are rejected."""
        with pytest.raises(InvalidKnotConfigurationError):
            SplineKnots(3.0, 2.0, 1.0)

    def test_error_is_value_error(self):
        """Test the knot error can be caught as ValueError."""
        with pytest.raises(ValueError):
            SplineKnots(2.0, 1.0, 3.0)

    def test_from_sequence(self):
        """Test building knots from a list."""
        knots = SplineKnots.from_sequence([3.3, 4.7, 7.1])
        assert knots == SplineKnots(3.3, 4.7, 7.1)

    def test_from_sequence_wrong_length(self):
        """Test a sequence that is not three long is rejected."""
        with pytest.raises(InvalidKnotConfigurationError, match="exactly 3"):
            SplineKnots.from_sequence([1.0, 2.0])

    def test_model_knots_valid(self):
        """Test the model's knot constants are strictly increasing."""
        assert URATE_KNOTS.as_tuple() == (3.3, 4.7, 7.1)
        assert TR_VELOCITY_KNOTS.as_tuple() == (2.0, 2.5, 3.4)


# ============================================================================
# Evaluation
# ============================================================================


class TestRcs:
    """Test spline evaluation."""

    def test_zero_at_and_below_first_knot(self):
        """Test the term is exactly zero for x <= k1."""
        for x in (-100.0, 0.0, 2.0, 3.29, 3.3):
            assert rcs(x, URATE_KNOTS) == 0.0

    def test_urate_reference_value(self):
        """Test urate 5.0 mg/dL against a hand-computed value."""
        # (1.7³ - 0.3³ · 3.8/2.4) / 3.8²
        assert rcs(5.0, URATE_KNOTS) == pytest.approx(0.3372749307, abs=1e-9)

    def test_tr_velocity_reference_value(self):
        """Test TR velocity 2.8 m/s against a hand-computed value."""
        # (0.8³ - 0.3³ · 1.4/0.9) / 1.4² = 0.47 / 1.96
        assert rcs(2.8, TR_VELOCITY_KNOTS) == pytest.approx(0.47 / 1.96, abs=1e-9)

    def test_between_first_and_second_knot(self):
        """Test only the first cube contributes between k1 and k2."""
        assert rcs(2.0, (1.0, 3.0, 5.0)) == pytest.approx(1.0 / 16.0)

    def test_continuous_at_knots(self):
        """Test the term has no jump at any knot."""
        eps = 1e-7
        for knot in URATE_KNOTS.as_tuple():
            assert rcs(knot - eps, URATE_KNOTS) == pytest.approx(rcs(knot + eps, URATE_KNOTS), abs=1e-5)

    def test_linear_beyond_last_knot(self):
        """Test the term grows linearly past k3."""
        a = rcs(8.0, URATE_KNOTS)
        b = rcs(9.0, URATE_KNOTS)
        c = rcs(10.0, URATE_KNOTS)
        assert b - a == pytest.approx(c - b, rel=1e-6)

    def test_non_decreasing(self):
        """Test the term never decreases over the covariate range."""
        values = [rcs(x / 10, URATE_KNOTS) for x in range(0, 150)]
        assert all(later >= earlier for earlier, later in zip(values, values[1:]))

    def test_plain_sequence_accepted(self):
        """Test a plain tuple gives the same value as SplineKnots."""
        assert rcs(5.0, (3.3, 4.7, 7.1)) == rcs(5.0, URATE_KNOTS)

    def test_plain_sequence_validated(self):
        """Test an invalid plain sequence raises."""
        with pytest.raises(InvalidKnotConfigurationError):
            rcs(5.0, [7.1, 4.7, 3.3])

    def test_deterministic(self):
        """Test repeated evaluation gives identical values."""
        assert rcs(6.2, URATE_KNOTS) == rcs(6.2, URATE_KNOTS)


# ============================================================================
# Extreme Inputs
# ============================================================================


class TestRcsTail:
    """Test the closed-form evaluation beyond the last knot."""

    def test_tail_matches_cubic_at_last_knot(self):
        """Test the linear tail joins the cubic piece at k3."""
        for knots in (URATE_KNOTS, TR_VELOCITY_KNOTS):
            slope, intercept = knots.tail_line()
            assert rcs(knots.k3 - 1e-9, knots) == pytest.approx(slope * knots.k3 + intercept, abs=1e-6)

    def test_tr_velocity_tail_line(self):
        """Test the TR velocity tail against hand-computed values."""
        # slope 3 · 0.7 / 1.96, intercept -5.53 / 1.96, value 1.61 / 1.96 at k3
        slope, intercept = TR_VELOCITY_KNOTS.tail_line()
        assert slope == pytest.approx(2.1 / 1.96)
        assert intercept == pytest.approx(-5.53 / 1.96)
        assert slope * 3.4 + intercept == pytest.approx(1.61 / 1.96)

    def test_huge_value_does_not_overflow(self):
        """Test a value whose cube overflows a float still evaluates."""
        slope, intercept = URATE_KNOTS.tail_line()
        value = rcs(1e103, URATE_KNOTS)
        assert math.isfinite(value)
        assert value == pytest.approx(slope * 1e103)

    def test_infinities(self):
        """Test +inf grows without bound and -inf is below every knot."""
        assert rcs(math.inf, URATE_KNOTS) == math.inf
        assert rcs(-math.inf, URATE_KNOTS) == 0.0

    def test_linear_spline_term_matches_direct_sum(self):
        """Test the combined term equals linear·x + spline·rcs(x) on both sides of k3."""
        c = STEP1_COEFFICIENTS
        for x in (0.0, 4.0, 5.0, 7.1, 10.0, 25.0):
            expected = c.urate_linear * x + c.urate_spline * rcs(x, URATE_KNOTS)
            assert linear_spline_term(x, c.urate_linear, c.urate_spline, URATE_KNOTS) == pytest.approx(expected)

    def test_linear_spline_term_huge_value(self):
        """Test the combined term stays finite where the separate terms would not cancel."""
        c = STEP1_COEFFICIENTS
        value = linear_spline_term(1e300, c.urate_linear, c.urate_spline, URATE_KNOTS)
        assert math.isfinite(value)
        assert value < 0


class TestModelKnotsPrebuilt:
    """Test the scorers pass prebuilt knots instead of revalidating sequences."""

    def test_scorers_never_build_knots(self, monkeypatch, reference_step1, reference_step2):
        """Test scoring works with sequence validation disabled."""

        def fail(cls, values):
            raise AssertionError("knots rebuilt from a sequence")

        monkeypatch.setattr(SplineKnots, "from_sequence", classmethod(fail))

        step1 = compute_step1(reference_step1)
        step2 = compute_step2(Step1Carry.from_result(step1), reference_step2)
        assert step1.point_total == 353
        assert step2.point_total == 53
