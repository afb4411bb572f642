"""Pydantic schemas for DETECT PAH Screening."""

from detect_screening.schemas.detect import (
    ContributionSchema,
    EchoMeasurements,
    HemodynamicsSchema,
    PipelineRequest,
    PipelineResponse,
    RcsResponse,
    ScoreResultSchema,
    SimulationRequest,
    SimulationResponse,
    Step1CarryInput,
    Step1CarrySchema,
    Step1Request,
    Step1Response,
    Step2Request,
    Step2Response,
)

__all__ = [
    # Requests
    "EchoMeasurements",
    "PipelineRequest",
    "SimulationRequest",
    "Step1CarryInput",
    "Step1CarrySchema",
    "Step1Request",
    "Step2Request",
    # Responses
    "ContributionSchema",
    "HemodynamicsSchema",
    "PipelineResponse",
    "RcsResponse",
    "ScoreResultSchema",
    "SimulationResponse",
    "Step1Response",
    "Step2Response",
]
