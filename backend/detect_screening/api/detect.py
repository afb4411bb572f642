"""DETECT scoring API endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query, status

from detect_screening.schemas.detect import (
    ContributionSchema,
    HemodynamicsSchema,
    PipelineRequest,
    PipelineResponse,
    RcsResponse,
    ScoreResultSchema,
    SimulationRequest,
    SimulationResponse,
    Step1CarrySchema,
    Step1Request,
    Step1Response,
    Step2Request,
    Step2Response,
)
from detect_screening.services.detect_calculator import (
    ScoreResult,
    Step1Carry,
    describe_contributions,
    get_detect_calculator_service,
)
from detect_screening.services.hemodynamic_simulator import simulate
from detect_screening.services.input_normalization import normalize_step1, normalize_step2
from detect_screening.services.spline import InvalidKnotConfigurationError, SplineKnots, rcs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/detect", tags=["DETECT"])


# ==============================================================================
# Helper Functions
# ==============================================================================


def _breakdown(result: ScoreResult) -> list[ContributionSchema]:
    return [ContributionSchema.model_validate(row) for row in describe_contributions(result)]


def _step1_response(result: ScoreResult) -> Step1Response:
    return Step1Response(
        result=ScoreResultSchema.model_validate(result),
        breakdown=_breakdown(result),
        carry=Step1CarrySchema.model_validate(Step1Carry.from_result(result)),
        is_high_risk=result.is_high_risk,
    )


def _step2_response(result: ScoreResult, tr_velocity_imputed: bool) -> Step2Response:
    return Step2Response(
        result=ScoreResultSchema.model_validate(result),
        breakdown=_breakdown(result),
        is_referral=result.is_referral,
        tr_velocity_imputed=tr_velocity_imputed,
    )


# ==============================================================================
# Scoring
# ==============================================================================


@router.post(
    "/step1",
    response_model=Step1Response,
    summary="Compute DETECT Step 1",
    description="Score the non-echocardiographic covariates and decide referral to echocardiography.",
)
def score_step1(request: Step1Request) -> Step1Response:
    """Compute Step 1 from raw form values.

    Args:
        request: Raw Step-1 values; units and missing values are normalized.

    Returns:
        Step1Response with the carry to send to /detect/step2.
    """
    inputs = normalize_step1(request.to_form())
    result = get_detect_calculator_service().score_step1(inputs)
    logger.info(f"Step 1 scored: points={result.point_total} high_risk={result.is_high_risk}")
    return _step1_response(result)


@router.post(
    "/step2",
    response_model=Step2Response,
    summary="Compute DETECT Step 2",
    description=(
        "Score the echocardiographic covariates and decide referral to right-heart catheterisation. "
        "Both carry values must be copied from the same /detect/step1 response."
    ),
)
def score_step2(request: Step2Request) -> Step2Response:
    """Compute Step 2 from a Step-1 carry and echo values.

    Raises:
        HTTPException: 422 if linear_score and point_total do not come
            from the same Step-1 result.
    """
    carry = Step1Carry(
        linear_score=request.step1.linear_score,
        point_total=request.step1.point_total,
    )
    if not carry.is_consistent():
        logger.warning(
            f"Rejected Step-1 carry: linear_score={carry.linear_score} "
            f"but point_total={carry.point_total} implies {carry.implied_linear_score():.3f}"
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                "Step-1 carry values do not come from the same Step-1 result: "
                f"point_total {carry.point_total} implies a linear score near "
                f"{carry.implied_linear_score():.3f}, got {carry.linear_score}"
            ),
        )

    normalized = normalize_step2(request.to_form())
    result = get_detect_calculator_service().score_step2(carry, normalized.inputs)
    logger.info(f"Step 2 scored: points={result.point_total} referral={result.is_referral}")
    return _step2_response(result, normalized.tr_velocity_imputed)


@router.post(
    "/pipeline",
    response_model=PipelineResponse,
    summary="Run the two-step DETECT algorithm",
    description="Run Step 1 and, when indicated and echo values are supplied, Step 2.",
)
def run_detect_pipeline(request: PipelineRequest) -> PipelineResponse:
    """Run both steps, gated by the Step-1 decision."""
    step1_inputs = normalize_step1(request.step1.to_form())
    normalized = normalize_step2(request.echo.to_form()) if request.echo else None

    pipeline = get_detect_calculator_service().run_pipeline(
        step1_inputs,
        normalized.inputs if normalized else None,
        force_step2=request.force_step2,
    )

    step2 = None
    if pipeline.step2 is not None and normalized is not None:
        step2 = _step2_response(pipeline.step2, normalized.tr_velocity_imputed)

    return PipelineResponse(
        step1=_step1_response(pipeline.step1),
        step2=step2,
        step2_forced=pipeline.step2_forced,
        recommendation=pipeline.recommendation,
    )


# ==============================================================================
# Didactic
# ==============================================================================


@router.get(
    "/rcs",
    response_model=RcsResponse,
    summary="Evaluate a restricted cubic spline term",
    description="Evaluate the 3-knot RCS basis term used for urate and TR velocity.",
)
def evaluate_rcs(
    x: Annotated[float, Query(description="Covariate value", allow_inf_nan=False)],
    k1: Annotated[float, Query(description="First knot", allow_inf_nan=False)],
    k2: Annotated[float, Query(description="Second knot", allow_inf_nan=False)],
    k3: Annotated[float, Query(description="Third knot", allow_inf_nan=False)],
) -> RcsResponse:
    """Evaluate rcs(x, [k1, k2, k3]).

    Raises:
        HTTPException: 422 if the knots are not strictly increasing.
    """
    try:
        knots = SplineKnots(k1, k2, k3)
    except InvalidKnotConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    return RcsResponse(x=x, knots=list(knots.as_tuple()), value=rcs(x, knots))


@router.post(
    "/simulate",
    response_model=SimulationResponse,
    summary="Score a simulated patient",
    description="Derive echo and NT-proBNP values from a systolic PA pressure and score both steps.",
)
def simulate_patient(request: SimulationRequest) -> SimulationResponse:
    """Run the hemodynamic simulator."""
    simulation = simulate(request.paps_mmhg)
    return SimulationResponse(
        hemodynamics=HemodynamicsSchema.model_validate(simulation.hemodynamics),
        step1=ScoreResultSchema.model_validate(simulation.step1),
        step2=ScoreResultSchema.model_validate(simulation.step2),
        is_high_risk=simulation.is_high_risk,
    )


@router.get(
    "/model",
    summary="Describe the DETECT model",
    description="Coefficients, spline knots, point calibration and decision thresholds.",
)
def get_model() -> dict[str, Any]:
    """Return the fixed model constants."""
    return get_detect_calculator_service().get_model_summary()
