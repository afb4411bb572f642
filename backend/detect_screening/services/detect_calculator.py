"""DETECT Calculator Service.

Computes the two-step DETECT screening score for pulmonary arterial
hypertension in systemic sclerosis. Each step has two coexisting paths:

- Exact path: logistic regression, linear predictor -> probability.
- Points path: nomogram approximation, each regression contribution
  rescaled to integer points and summed against a fixed threshold.

The referral decision is made on the points path (> 300 for Step 1,
> 35 for Step 2). The probability rule is reported as an advisory flag.

Step 2 consumes a Step1Carry built from a Step-1 result: the exact path
reads its linear score, the points path reads its point total.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Any

from detect_screening.services.detect_model import (
    CANONICAL_DECISION_RULE,
    COVARIATE_LABELS,
    COVARIATE_UNITS,
    POINT_SATURATION,
    STEP1_COEFFICIENTS,
    STEP1_COVARIATES,
    STEP1_POINT_SCALING,
    STEP1_POINT_THRESHOLD,
    STEP1_PROBABILITY_THRESHOLD,
    STEP1_PROJECTION,
    STEP2_COEFFICIENTS,
    STEP2_COVARIATES,
    STEP2_POINT_SCALING,
    STEP2_POINT_THRESHOLD,
    STEP2_PROBABILITY_THRESHOLD,
    TR_VELOCITY_KNOTS,
    URATE_KNOTS,
    DecisionRule,
    DetectStep,
    PointScaling,
)
from detect_screening.services.spline import linear_spline_term

logger = logging.getLogger(__name__)

# Half a point of rounding per Step-1 covariate, in log-odds
STEP1_CARRY_TOLERANCE = 0.5 * len(STEP1_COVARIATES) / STEP1_POINT_SCALING.factor + 1e-9


# ============================================================================
# Input / Output Records
# ============================================================================


def _reject_nan(record: object, *names: str) -> None:
    for name in names:
        value = getattr(record, name)
        if math.isnan(value):
            raise ValueError(f"{type(record).__name__}.{name} is NaN")


@dataclass(frozen=True)
class ClinicalInputStep1:
    """Normalized Step-1 covariates.

    Build from raw form values with
    ``input_normalization.normalize_step1`` when units or missing values
    need handling. Out-of-range and infinite values are scored; NaN is
    rejected, except for NT-proBNP which is floored like any value below 1.
    """

    fvc_dlco_ratio: float = 1.0
    telangiectasia: bool = False
    anticentromere_antibody: bool = False
    nt_probnp: float = 1.0  # pg/mL
    urate_mg_dl: float = 0.0
    right_axis_deviation: bool = False

    def __post_init__(self) -> None:
        _reject_nan(self, "fvc_dlco_ratio", "urate_mg_dl")


@dataclass(frozen=True)
class ClinicalInputStep2:
    """Echocardiographic Step-2 measurements."""

    ra_area_cm2: float
    tr_velocity_ms: float

    def __post_init__(self) -> None:
        _reject_nan(self, "ra_area_cm2", "tr_velocity_ms")


@dataclass(frozen=True)
class ScoreResult:
    """Result of one DETECT step (exact and points paths together)."""

    step: DetectStep
    linear_score: float
    probability: float
    point_total: int
    points: dict[str, int]
    contributions: dict[str, float]
    point_threshold: int
    probability_threshold: float
    exceeds_threshold: bool
    probability_exceeds_threshold: bool
    decision_rule: DecisionRule = CANONICAL_DECISION_RULE
    inputs: dict[str, Any] = field(default_factory=dict)

    @property
    def is_high_risk(self) -> bool:
        """Step-1 decision: refer to echocardiography."""
        return self.step == DetectStep.STEP1 and self.exceeds_threshold

    @property
    def is_referral(self) -> bool:
        """Step-2 decision: refer to right-heart catheterisation."""
        return self.step == DetectStep.STEP2 and self.exceeds_threshold

    @property
    def rules_agree(self) -> bool:
        return self.exceeds_threshold == self.probability_exceeds_threshold

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.value,
            "linear_score": self.linear_score,
            "probability": self.probability,
            "point_total": self.point_total,
            "points": dict(self.points),
            "contributions": dict(self.contributions),
            "point_threshold": self.point_threshold,
            "probability_threshold": self.probability_threshold,
            "exceeds_threshold": self.exceeds_threshold,
            "probability_exceeds_threshold": self.probability_exceeds_threshold,
            "rules_agree": self.rules_agree,
            "decision_rule": self.decision_rule.value,
            "inputs": dict(self.inputs),
        }


@dataclass(frozen=True)
class Step1Carry:
    """Step-1 values carried forward into Step 2.

    Both values come from the same Step-1 result. The exact Step-2 path
    only reads ``linear_score``; the points path only reads ``point_total``.
    """

    linear_score: float
    point_total: int

    @classmethod
    def from_result(cls, result: ScoreResult) -> "Step1Carry":
        """Build the carry from a Step-1 result.

        Raises:
            ValueError: If the result is not a Step-1 result.
        """
        if result.step != DetectStep.STEP1:
            raise ValueError(f"Step 2 needs a Step 1 result, got {result.step.value}")
        return cls(linear_score=result.linear_score, point_total=result.point_total)

    def implied_linear_score(self) -> float:
        """Step-1 linear score implied by the point total."""
        return implied_step1_linear_score(self.point_total)

    def is_consistent(self) -> bool:
        """Whether both values can come from the same Step-1 result.

        Each Step-1 covariate is rounded to points independently, so the
        point total pins the linear score to within half a point per
        covariate. A total in the saturated range no longer pins it and is
        accepted as is.
        """
        if abs(self.point_total) >= POINT_SATURATION // 2:
            return True
        deviation = abs(self.linear_score - self.implied_linear_score())
        return deviation <= STEP1_CARRY_TOLERANCE


class Recommendation(str, Enum):
    """Final recommendation of the two-step workflow."""

    SURVEILLANCE = "surveillance"  # Step 1 below threshold
    ECHO_REFERRAL = "echo_referral"  # Step 1 above threshold, no echo data yet
    RHC_REFERRAL = "rhc_referral"  # Step 2 above threshold
    NO_RHC_INDICATION = "no_rhc_indication"  # Step 2 below threshold


@dataclass(frozen=True)
class PipelineResult:
    """Both DETECT steps run in sequence."""

    step1: ScoreResult
    step2: ScoreResult | None
    step2_forced: bool
    recommendation: Recommendation

    def to_dict(self) -> dict[str, Any]:
        return {
            "step1": self.step1.to_dict(),
            "step2": self.step2.to_dict() if self.step2 else None,
            "step2_forced": self.step2_forced,
            "recommendation": self.recommendation.value,
        }


@dataclass(frozen=True)
class ContributionRow:
    """One line of the didactic per-covariate breakdown."""

    key: str
    label: str
    unit: str | None
    contribution: float
    points: int


# ============================================================================
# Numeric Helpers
# ============================================================================


def logistic(x: float) -> float:
    """Logistic transform 1 / (1 + e^-x).

    Split by sign so math.exp never overflows for large |x|.
    """
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def saturate(value: float, limit: float = POINT_SATURATION) -> float:
    """Clamp a point value to [-limit, limit]; infinities map to the bounds."""
    return max(-limit, min(value, limit))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up, like JS Math.round.

    Infinite values saturate to +/- POINT_SATURATION.

    Raises:
        ValueError: If the value is NaN.
    """
    if math.isnan(value):
        raise ValueError("Cannot round NaN to points")
    return int(math.floor(saturate(value) + 0.5))


def to_points(contribution: float, scaling: PointScaling) -> int:
    """Rescale a log-odds contribution to integer nomogram points."""
    return round_half_up(contribution * scaling.factor + scaling.offset)


def implied_step1_linear_score(point_total: int) -> float:
    """Invert the Step-1 point scaling: the linear score a point total implies."""
    s = STEP1_POINT_SCALING
    offsets = s.offset * len(STEP1_COVARIATES)
    total = saturate(point_total, POINT_SATURATION * len(STEP1_COVARIATES))
    return STEP1_COEFFICIENTS.intercept + (total - offsets) / s.factor


def exceeds_threshold(value: float, threshold: float) -> bool:
    """Decision comparison shared by both rules: strictly greater than."""
    return value > threshold


# ============================================================================
# Step 1
# ============================================================================


def compute_step1(inputs: ClinicalInputStep1) -> ScoreResult:
    """Compute the DETECT Step-1 score.

    Args:
        inputs: Normalized Step-1 covariates.

    Returns:
        ScoreResult with linear score, probability, per-covariate points and
        the echocardiography referral decision (total > 300).
    """
    c = STEP1_COEFFICIENTS

    # log10 domain guard; NaN falls to the floor too
    nt_probnp = inputs.nt_probnp if inputs.nt_probnp >= 1.0 else 1.0
    urate = inputs.urate_mg_dl

    contributions = {
        "fvc_dlco": inputs.fvc_dlco_ratio * c.fvc_dlco,
        "telangiectasia": (1 if inputs.telangiectasia else 0) * c.telangiectasia,
        "anticentromere_antibody": (1 if inputs.anticentromere_antibody else 0) * c.anticentromere_antibody,
        "nt_probnp": math.log10(nt_probnp) * c.log10_nt_probnp,
        "urate": linear_spline_term(urate, c.urate_linear, c.urate_spline, URATE_KNOTS),
        "right_axis_deviation": (1 if inputs.right_axis_deviation else 0) * c.right_axis_deviation,
    }

    linear_score = c.intercept + sum(contributions[key] for key in STEP1_COVARIATES)
    probability = logistic(linear_score)

    points = {key: to_points(contributions[key], STEP1_POINT_SCALING) for key in STEP1_COVARIATES}
    point_total = sum(points.values())

    result = ScoreResult(
        step=DetectStep.STEP1,
        linear_score=linear_score,
        probability=probability,
        point_total=point_total,
        points=points,
        contributions=contributions,
        point_threshold=STEP1_POINT_THRESHOLD,
        probability_threshold=STEP1_PROBABILITY_THRESHOLD,
        exceeds_threshold=exceeds_threshold(point_total, STEP1_POINT_THRESHOLD),
        probability_exceeds_threshold=exceeds_threshold(probability, STEP1_PROBABILITY_THRESHOLD),
        inputs={
            "fvc_dlco_ratio": inputs.fvc_dlco_ratio,
            "telangiectasia": inputs.telangiectasia,
            "anticentromere_antibody": inputs.anticentromere_antibody,
            "nt_probnp": nt_probnp,
            "urate_mg_dl": urate,
            "right_axis_deviation": inputs.right_axis_deviation,
        },
    )

    logger.debug(
        f"DETECT step 1: linear={linear_score:.4f} p={probability:.4f} "
        f"points={point_total} high_risk={result.exceeds_threshold}"
    )
    if not result.rules_agree:
        logger.info(
            f"DETECT step 1: point rule ({point_total} > {STEP1_POINT_THRESHOLD}) and "
            f"probability rule ({probability:.3f} > {STEP1_PROBABILITY_THRESHOLD}) disagree"
        )

    return result


# ============================================================================
# Step 2
# ============================================================================


def project_step1_points(step1_points: int) -> int:
    """Project a Step-1 point total onto the Step-2 point scale."""
    p = STEP1_PROJECTION
    return max(p.minimum, round_half_up(saturate(step1_points) * p.slope + p.intercept))


def compute_step2(carry: Step1Carry, inputs: ClinicalInputStep2) -> ScoreResult:
    """Compute the DETECT Step-2 score.

    Args:
        carry: Step-1 values from ``Step1Carry.from_result``.
        inputs: Right atrium area and TR jet velocity.

    Returns:
        ScoreResult with the right-heart catheterisation referral decision
        (total > 35).
    """
    c = STEP2_COEFFICIENTS
    tr = inputs.tr_velocity_ms

    contributions = {
        "step1": carry.linear_score * c.step1_linear,
        "ra_area": inputs.ra_area_cm2 * c.ra_area,
        "tr_velocity": linear_spline_term(tr, c.tr_velocity_linear, c.tr_velocity_spline, TR_VELOCITY_KNOTS),
    }

    linear_score = c.intercept + sum(contributions[key] for key in STEP2_COVARIATES)
    probability = logistic(linear_score)

    points = {
        "step1": project_step1_points(carry.point_total),
        "ra_area": to_points(contributions["ra_area"], STEP2_POINT_SCALING),
        "tr_velocity": to_points(contributions["tr_velocity"], STEP2_POINT_SCALING),
    }
    point_total = sum(points.values())

    result = ScoreResult(
        step=DetectStep.STEP2,
        linear_score=linear_score,
        probability=probability,
        point_total=point_total,
        points=points,
        contributions=contributions,
        point_threshold=STEP2_POINT_THRESHOLD,
        probability_threshold=STEP2_PROBABILITY_THRESHOLD,
        exceeds_threshold=exceeds_threshold(point_total, STEP2_POINT_THRESHOLD),
        probability_exceeds_threshold=exceeds_threshold(probability, STEP2_PROBABILITY_THRESHOLD),
        inputs={
            "step1_linear_score": carry.linear_score,
            "step1_point_total": carry.point_total,
            "ra_area_cm2": inputs.ra_area_cm2,
            "tr_velocity_ms": tr,
        },
    )

    logger.debug(
        f"DETECT step 2: linear={linear_score:.4f} p={probability:.4f} "
        f"points={point_total} referral={result.exceeds_threshold}"
    )
    if not result.rules_agree:
        logger.info(
            f"DETECT step 2: point rule ({point_total} > {STEP2_POINT_THRESHOLD}) and "
            f"probability rule ({probability:.3f} > {STEP2_PROBABILITY_THRESHOLD}) disagree"
        )

    return result


def describe_contributions(result: ScoreResult) -> list[ContributionRow]:
    """Break a result down into labelled per-covariate rows."""
    return [
        ContributionRow(
            key=key,
            label=COVARIATE_LABELS.get(key, key),
            unit=COVARIATE_UNITS.get(key),
            contribution=result.contributions[key],
            points=result.points[key],
        )
        for key in result.points
    ]


def run_pipeline(
    step1_inputs: ClinicalInputStep1,
    step2_inputs: ClinicalInputStep2 | None = None,
    force_step2: bool = False,
) -> PipelineResult:
    """Run Step 1 and, when indicated, Step 2.

    Step 2 runs when Step 1 is high risk, or when ``force_step2`` is set
    (clinician override of a low-risk Step 1), and echo data is available.

    Args:
        step1_inputs: Normalized Step-1 covariates.
        step2_inputs: Echo measurements, or None if not yet available.
        force_step2: Run Step 2 even when Step 1 is below threshold.

    Returns:
        PipelineResult with the final recommendation.
    """
    step1 = compute_step1(step1_inputs)

    if not step1.is_high_risk and not force_step2:
        return PipelineResult(
            step1=step1,
            step2=None,
            step2_forced=False,
            recommendation=Recommendation.SURVEILLANCE,
        )

    step2_forced = not step1.is_high_risk

    if step2_inputs is None:
        return PipelineResult(
            step1=step1,
            step2=None,
            step2_forced=step2_forced,
            recommendation=Recommendation.ECHO_REFERRAL,
        )

    step2 = compute_step2(Step1Carry.from_result(step1), step2_inputs)
    recommendation = Recommendation.RHC_REFERRAL if step2.is_referral else Recommendation.NO_RHC_INDICATION

    return PipelineResult(
        step1=step1,
        step2=step2,
        step2_forced=step2_forced,
        recommendation=recommendation,
    )


# ============================================================================
# Calculator Service
# ============================================================================


class DetectCalculatorService:
    """Service wrapper around the DETECT scoring functions.

    Stateless: every call recomputes from its inputs.

    Usage:
        service = DetectCalculatorService()

        step1 = service.score_step1(ClinicalInputStep1(fvc_dlco_ratio=1.6, ...))
        if step1.is_high_risk:
            step2 = service.score_step2(
                Step1Carry.from_result(step1),
                ClinicalInputStep2(ra_area_cm2=18, tr_velocity_ms=2.8),
            )
    """

    CALCULATORS = {
        "step1": compute_step1,
        "step2": compute_step2,
        "pipeline": run_pipeline,
    }

    def __init__(self) -> None:
        """Initialize the calculator service."""
        pass

    def score_step1(self, inputs: ClinicalInputStep1) -> ScoreResult:
        return compute_step1(inputs)

    def score_step2(self, carry: Step1Carry, inputs: ClinicalInputStep2) -> ScoreResult:
        return compute_step2(carry, inputs)

    def run_pipeline(
        self,
        step1_inputs: ClinicalInputStep1,
        step2_inputs: ClinicalInputStep2 | None = None,
        force_step2: bool = False,
    ) -> PipelineResult:
        return run_pipeline(step1_inputs, step2_inputs, force_step2=force_step2)

    def calculate(self, calculator: str, **kwargs: Any) -> ScoreResult | PipelineResult:
        """Run a calculator by name.

        Args:
            calculator: One of "step1", "step2", "pipeline".
            **kwargs: Parameters for the calculator.

        Returns:
            ScoreResult, or PipelineResult for "pipeline".

        Raises:
            ValueError: If calculator not found or parameters invalid.
        """
        calc_name = calculator.lower().replace("-", "_")

        if calc_name not in self.CALCULATORS:
            available = ", ".join(self.CALCULATORS.keys())
            raise ValueError(f"Unknown calculator: {calculator}. Available: {available}")

        calc_func = self.CALCULATORS[calc_name]

        try:
            return calc_func(**kwargs)
        except TypeError as e:
            raise ValueError(f"Invalid parameters for {calculator}: {e}")

    def get_model_summary(self) -> dict[str, Any]:
        """Describe the fixed model: coefficients, knots, calibration, thresholds."""
        return {
            "step1": {
                "coefficients": vars(STEP1_COEFFICIENTS).copy(),
                "urate_knots": list(URATE_KNOTS.as_tuple()),
                "point_scaling": vars(STEP1_POINT_SCALING).copy(),
                "point_threshold": STEP1_POINT_THRESHOLD,
                "probability_threshold": STEP1_PROBABILITY_THRESHOLD,
                "covariates": list(STEP1_COVARIATES),
            },
            "step2": {
                "coefficients": vars(STEP2_COEFFICIENTS).copy(),
                "tr_velocity_knots": list(TR_VELOCITY_KNOTS.as_tuple()),
                "point_scaling": vars(STEP2_POINT_SCALING).copy(),
                "step1_projection": vars(STEP1_PROJECTION).copy(),
                "point_threshold": STEP2_POINT_THRESHOLD,
                "probability_threshold": STEP2_PROBABILITY_THRESHOLD,
                "covariates": list(STEP2_COVARIATES),
            },
            "decision_rule": CANONICAL_DECISION_RULE.value,
            "covariate_labels": dict(COVARIATE_LABELS),
        }

    def get_stats(self) -> dict[str, Any]:
        """Get statistics about available calculators.

        Returns:
            Dictionary with calculator statistics.
        """
        return {
            "total_calculators": len(self.CALCULATORS),
            "calculator_list": list(self.CALCULATORS.keys()),
            "decision_rule": CANONICAL_DECISION_RULE.value,
        }


# Singleton instance and lock
_detect_calculator_service: DetectCalculatorService | None = None
_detect_calculator_lock = Lock()


def get_detect_calculator_service() -> DetectCalculatorService:
    """Get the singleton DetectCalculatorService instance.

    Returns:
        The singleton DetectCalculatorService instance.
    """
    global _detect_calculator_service

    if _detect_calculator_service is None:
        with _detect_calculator_lock:
            if _detect_calculator_service is None:
                logger.info("Creating singleton DetectCalculatorService instance")
                _detect_calculator_service = DetectCalculatorService()

    return _detect_calculator_service


def reset_detect_calculator_service() -> None:
    """Reset the singleton instance (for testing)."""
    global _detect_calculator_service
    with _detect_calculator_lock:
        _detect_calculator_service = None
