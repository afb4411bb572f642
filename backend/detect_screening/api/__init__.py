"""API routers for DETECT PAH Screening."""

from detect_screening.api.detect import router as detect_router

__all__ = [
    "detect_router",
]
