"""Pytest configuration and fixtures for backend tests."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from detect_screening.main import app
from detect_screening.services.detect_calculator import (
    ClinicalInputStep1,
    ClinicalInputStep2,
    reset_detect_calculator_service,
)


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    reset_detect_calculator_service()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def reference_step1() -> ClinicalInputStep1:
    """Reference patient: FVC/DLCO 1.6, telangiectasia, ACA, NT-proBNP 200, urate 5.0."""
    return ClinicalInputStep1(
        fvc_dlco_ratio=1.6,
        telangiectasia=True,
        anticentromere_antibody=True,
        nt_probnp=200.0,
        urate_mg_dl=5.0,
        right_axis_deviation=False,
    )


@pytest.fixture
def reference_step2() -> ClinicalInputStep2:
    """Reference echo: RA area 18 cm², TR velocity 2.8 m/s."""
    return ClinicalInputStep2(ra_area_cm2=18.0, tr_velocity_ms=2.8)
