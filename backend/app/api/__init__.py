"""API routers for the ICD-10 Lookup Service."""

from app.api.icd10 import router as icd10_router

__all__ = [
    "icd10_router",
]
