"""Services for DETECT PAH Screening.

Services implement the scoring engine and its boundary helpers:
- spline: restricted cubic spline basis term
- detect_model: fixed coefficients, knots, calibration and thresholds
- detect_calculator: Step-1 / Step-2 scorers and the calculator service
- input_normalization: raw form values to normalized engine inputs
- hemodynamic_simulator: didactic simulated patient
"""

from detect_screening.services.detect_calculator import (
    ClinicalInputStep1,
    ClinicalInputStep2,
    ContributionRow,
    DetectCalculatorService,
    PipelineResult,
    Recommendation,
    ScoreResult,
    Step1Carry,
    compute_step1,
    compute_step2,
    describe_contributions,
    get_detect_calculator_service,
    logistic,
    reset_detect_calculator_service,
    run_pipeline,
)
from detect_screening.services.detect_model import DecisionRule, DetectStep
from detect_screening.services.hemodynamic_simulator import SimulationResult, simulate
from detect_screening.services.input_normalization import (
    RawStep1Form,
    RawStep2Form,
    UrateUnit,
    normalize_step1,
    normalize_step2,
)
from detect_screening.services.spline import (
    InvalidKnotConfigurationError,
    SplineKnots,
    rcs,
)

__all__ = [
    # Spline
    "InvalidKnotConfigurationError",
    "SplineKnots",
    "rcs",
    # Model
    "DecisionRule",
    "DetectStep",
    # Calculator
    "ClinicalInputStep1",
    "ClinicalInputStep2",
    "ContributionRow",
    "DetectCalculatorService",
    "PipelineResult",
    "Recommendation",
    "ScoreResult",
    "Step1Carry",
    "compute_step1",
    "compute_step2",
    "describe_contributions",
    "get_detect_calculator_service",
    "logistic",
    "reset_detect_calculator_service",
    "run_pipeline",
    # Normalization
    "RawStep1Form",
    "RawStep2Form",
    "UrateUnit",
    "normalize_step1",
    "normalize_step2",
    # Simulator
    "SimulationResult",
    "simulate",
]
