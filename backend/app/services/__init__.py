"""Services for the ICD-10 Lookup Service.

Services implement business logic and data processing:
- ICD10CodeCatalog: in-memory ICD-10-CM catalog lookup and search
- Code validation: grounding of AI-suggested codes against the catalog
"""

from app.services.code_validation import (
    CodeSuggestion,
    ValidatedSuggestion,
    ValidationStatus,
    validate_suggestion,
    validate_suggestions,
)
from app.services.icd10_lookup import (
    CatalogEntry,
    CatalogLoadError,
    ICD10CodeCatalog,
    MatchType,
    SearchResult,
    get_icd10_catalog,
    normalize_code,
    preload_icd10_catalog,
    reset_icd10_catalog,
    tokenize,
)

__all__ = [
    # Catalog
    "CatalogEntry",
    "CatalogLoadError",
    "ICD10CodeCatalog",
    "MatchType",
    "SearchResult",
    "get_icd10_catalog",
    "normalize_code",
    "preload_icd10_catalog",
    "reset_icd10_catalog",
    "tokenize",
    # Suggestion validation
    "CodeSuggestion",
    "ValidatedSuggestion",
    "ValidationStatus",
    "validate_suggestion",
    "validate_suggestions",
]
