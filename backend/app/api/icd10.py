"""ICD-10 catalog API endpoints.

Read-only access to the local ICD-10-CM catalog:
- Exact code lookup and near-miss suggestions
- Keyword search over descriptions
- Grounding context for LLM prompts
- Batch validation of codes and of AI suggestions
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.config import settings
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
from app.services.code_validation import CodeSuggestion, validate_suggestions
from app.services.icd10_lookup import CatalogLoadError, ICD10CodeCatalog, get_icd10_catalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/icd10", tags=["ICD-10"])


def get_catalog() -> ICD10CodeCatalog:
    """Get the shared catalog, loading it if needed.

    Raises:
        HTTPException: 503 if the catalog cannot be loaded.
    """
    catalog = get_icd10_catalog()
    try:
        catalog.ensure_loaded()
    except CatalogLoadError as e:
        logger.error(f"ICD-10 catalog unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ICD-10 catalog unavailable",
        ) from e
    return catalog


CatalogDep = Annotated[ICD10CodeCatalog, Depends(get_catalog)]


@router.get(
    "/codes/{code}",
    response_model=CatalogEntryResponse,
    summary="Look up an ICD-10 code",
)
def lookup_code(code: str, catalog: CatalogDep) -> CatalogEntryResponse:
    """Look up a code by exact match (case and punctuation insensitive).

    Raises:
        HTTPException: 404 if the code is not in the catalog.
    """
    entry = catalog.lookup_exact(code)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"ICD-10 code {code} not found",
        )
    return CatalogEntryResponse.from_entry(entry)


@router.get(
    "/codes/{code}/similar",
    response_model=SearchResponse,
    summary="Find codes similar to a code",
    description="Codes sharing the longest prefix with the given code, for correcting typos or wrong subcodes.",
)
def similar_codes(
    code: str,
    catalog: CatalogDep,
    limit: Annotated[int, Query(ge=1, le=100)] = settings.icd10_similar_limit,
) -> SearchResponse:
    """Find codes similar to the given code."""
    results = catalog.find_similar_codes(code, limit)
    return SearchResponse(
        query=code,
        results=[SearchResultResponse.from_result(r) for r in results],
        total=len(results),
    )


@router.get(
    "/search",
    response_model=SearchResponse,
    summary="Search codes by description",
)
def search_codes(
    catalog: CatalogDep,
    q: Annotated[str, Query(max_length=1000, description="Free-text diagnosis")],
    limit: Annotated[int, Query(ge=1, le=100)] = settings.icd10_default_search_limit,
) -> SearchResponse:
    """Keyword relevance search over code descriptions.

    Examples:
        - "pneumonia" finds J18.9 Pneumonia, unspecified organism
        - "cardiac" ranks descriptions containing "cardiac" above "cardiology"
    """
    results = catalog.search_by_description(q, limit)
    return SearchResponse(
        query=q,
        results=[SearchResultResponse.from_result(r) for r in results],
        total=len(results),
    )


@router.get(
    "/context",
    response_model=ContextResponse,
    summary="Grounding context for an LLM prompt",
)
def grounding_context(
    catalog: CatalogDep,
    q: Annotated[str, Query(max_length=1000, description="Diagnosis text")],
    limit: Annotated[int, Query(ge=1, le=100)] = settings.icd10_context_max_entries,
) -> ContextResponse:
    """Build a block of real catalog codes relevant to a diagnosis."""
    context = catalog.get_context_block(q, limit)
    return ContextResponse(query=q, context=context, has_context=bool(context))


@router.post(
    "/validate",
    response_model=BatchValidateResponse,
    summary="Validate several codes",
)
def validate_codes(request: BatchValidateRequest, catalog: CatalogDep) -> BatchValidateResponse:
    """Validate codes, keyed by each code as supplied."""
    entries = catalog.batch_validate(request.codes)
    results = {
        code: CatalogEntryResponse.from_entry(entry) if entry else None
        for code, entry in entries.items()
    }
    valid_count = sum(1 for entry in entries.values() if entry is not None)
    return BatchValidateResponse(
        results=results,
        valid_count=valid_count,
        invalid_count=len(entries) - valid_count,
    )


@router.post(
    "/suggestions/validate",
    response_model=SuggestionValidateResponse,
    summary="Validate AI-suggested codes",
    description="Verify suggested codes; replace unknown ones with the best description match and cap confidence.",
)
def validate_ai_suggestions(
    request: SuggestionValidateRequest,
    catalog: CatalogDep,
) -> SuggestionValidateResponse:
    """Validate AI suggestions against the catalog, preserving order."""
    suggestions = [CodeSuggestion(**payload.model_dump()) for payload in request.suggestions]
    validated = validate_suggestions(catalog, suggestions)
    return SuggestionValidateResponse(
        suggestions=[ValidatedSuggestionResponse.from_validated(v) for v in validated],
    )


@router.get(
    "/stats",
    response_model=CatalogStatsResponse,
    summary="Catalog statistics",
)
def catalog_stats(catalog: CatalogDep) -> CatalogStatsResponse:
    """Get catalog size and load statistics."""
    return CatalogStatsResponse(**catalog.get_stats())
