"""DETECT Model Constants.

Fixed regression coefficients, spline knots, nomogram point calibration and
decision thresholds of the two-step DETECT algorithm (Coghlan et al.,
Ann Rheum Dis 2014). These are model constants, not configuration.

Point calibration: published nomogram renderings use differing point
scales. The set below is the one this package uses and is pinned by
golden-value tests:

    Step 1:  points = round(term * 25 + 10) per covariate, refer if total > 300
    Step 2:  step1 = max(0, round(step1_points * 0.38 - 104))
             points = round(term * 5 + 5) per echo covariate, refer if total > 35
"""

from dataclasses import dataclass
from enum import Enum

from detect_screening.services.spline import SplineKnots


class DetectStep(str, Enum):
    """Stage of the DETECT algorithm."""

    STEP1 = "step1"  # Refer to echocardiography?
    STEP2 = "step2"  # Refer to right-heart catheterisation?


class DecisionRule(str, Enum):
    """Which rule drives the referral decision."""

    POINTS = "points"
    PROBABILITY = "probability"


# Canonical rule. The probability rule is reported alongside as advisory.
CANONICAL_DECISION_RULE = DecisionRule.POINTS


# ============================================================================
# Regression Coefficients
# ============================================================================


@dataclass(frozen=True)
class Step1Coefficients:
    """Logistic-regression coefficients for Step 1."""

    intercept: float = -12.488
    fvc_dlco: float = 1.149
    telangiectasia: float = 1.156
    anticentromere_antibody: float = 0.753
    log10_nt_probnp: float = 0.915
    urate_linear: float = 1.247
    urate_spline: float = -1.132
    right_axis_deviation: float = 1.850


@dataclass(frozen=True)
class Step2Coefficients:
    """Logistic-regression coefficients for Step 2."""

    intercept: float = -2.452
    step1_linear: float = 0.891
    ra_area: float = 0.075
    tr_velocity_linear: float = 0.209
    tr_velocity_spline: float = 2.656


STEP1_COEFFICIENTS = Step1Coefficients()
STEP2_COEFFICIENTS = Step2Coefficients()

# Built at import time: an invalid knot constant fails on startup.
URATE_KNOTS = SplineKnots(3.3, 4.7, 7.1)  # mg/dL
TR_VELOCITY_KNOTS = SplineKnots(2.0, 2.5, 3.4)  # m/s


# ============================================================================
# Nomogram Point Calibration
# ============================================================================


@dataclass(frozen=True)
class PointScaling:
    """Affine map from a log-odds contribution to integer points."""

    factor: float
    offset: float


@dataclass(frozen=True)
class Step1Projection:
    """Affine map from the Step-1 point total onto the Step-2 point scale."""

    slope: float = 0.38
    intercept: float = -104.0
    minimum: int = 0


STEP1_POINT_SCALING = PointScaling(factor=25.0, offset=10.0)
STEP2_POINT_SCALING = PointScaling(factor=5.0, offset=5.0)
STEP1_PROJECTION = Step1Projection()


# ============================================================================
# Decision Thresholds
# ============================================================================

STEP1_POINT_THRESHOLD = 300  # 97% sensitivity cut-off
STEP2_POINT_THRESHOLD = 35  # 35% specificity cut-off
STEP1_PROBABILITY_THRESHOLD = 0.05
STEP2_PROBABILITY_THRESHOLD = 0.10

# Per-covariate and projected points are clamped to this magnitude, so
# infinite contributions still give integer points.
POINT_SATURATION = 10**9


# ============================================================================
# Covariate Tables
# ============================================================================

# Order matters: results list points in this order.
STEP1_COVARIATES = (
    "fvc_dlco",
    "telangiectasia",
    "anticentromere_antibody",
    "nt_probnp",
    "urate",
    "right_axis_deviation",
)

STEP2_COVARIATES = (
    "step1",
    "ra_area",
    "tr_velocity",
)

COVARIATE_LABELS: dict[str, str] = {
    "fvc_dlco": "FVC % predicted / DLCO % predicted",
    "telangiectasia": "Current/past telangiectasias",
    "anticentromere_antibody": "Anticentromere antibody",
    "nt_probnp": "Serum NT-proBNP (log10)",
    "urate": "Serum urate (linear + spline)",
    "right_axis_deviation": "Right axis deviation on ECG",
    "step1": "Step 1 score",
    "ra_area": "Right atrium area",
    "tr_velocity": "TR velocity (linear + spline)",
}

COVARIATE_UNITS: dict[str, str] = {
    "fvc_dlco": "ratio",
    "nt_probnp": "pg/mL",
    "urate": "mg/dL",
    "ra_area": "cm²",
    "tr_velocity": "m/s",
}
