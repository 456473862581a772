"""Pydantic schemas for the ICD-10 Lookup Service."""

from app.schemas.icd10 import (
    BatchValidateRequest,
    BatchValidateResponse,
    CatalogEntryResponse,
    CatalogStatsResponse,
    ContextResponse,
    SearchResponse,
    SearchResultResponse,
    SuggestionValidateRequest,
    SuggestionValidateResponse,
    ValidatedSuggestionResponse,
)

__all__ = [
    "BatchValidateRequest",
    "BatchValidateResponse",
    "CatalogEntryResponse",
    "CatalogStatsResponse",
    "ContextResponse",
    "SearchResponse",
    "SearchResultResponse",
    "SuggestionValidateRequest",
    "SuggestionValidateResponse",
    "ValidatedSuggestionResponse",
]
