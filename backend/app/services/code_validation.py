"""Validation of AI-suggested ICD-10 codes against the local catalog.

After an LLM proposes a code for a diagnosis, the suggestion is checked
against the catalog:

- Known code: keep it and attach the official description
- Unknown code: substitute the best keyword match for the diagnosis and
  cap the confidence
- Unknown code with no match: flag for manual review and cap the confidence harder
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum

from app.services.icd10_lookup import ICD10CodeCatalog

logger = logging.getLogger(__name__)

CORRECTED_CONFIDENCE_CAP = 0.75
NOT_FOUND_CONFIDENCE_CAP = 0.5
CORRECTION_CANDIDATES = 3

VERIFIED_NOTE = "Verified in ICD-10 database"


class ValidationStatus(str, Enum):
    """Outcome of validating one suggestion."""

    VERIFIED = "verified"  # Code exists in the catalog
    CORRECTED = "corrected"  # Replaced by the best description match
    NOT_FOUND = "not_found"  # Unknown code, nothing to substitute
    EMPTY = "empty"  # No code was suggested


@dataclass(frozen=True)
class CodeSuggestion:
    """A code proposed by the coding assistant for one diagnosis."""

    input_diagnosis: str
    icd_code: str
    confidence: float
    official_description: str = ""
    notes: str = ""


@dataclass(frozen=True)
class ValidatedSuggestion:
    """A suggestion after catalog validation."""

    suggestion: CodeSuggestion
    status: ValidationStatus
    original_code: str


def validate_suggestion(catalog: ICD10CodeCatalog, suggestion: CodeSuggestion) -> ValidatedSuggestion:
    """Check one AI suggestion against the catalog.

    Args:
        catalog: The loaded (or lazily loading) code catalog.
        suggestion: Code proposed for a diagnosis.

    Returns:
        The suggestion, verified, corrected or flagged.

    Raises:
        CatalogLoadError: The catalog could not be loaded.
    """
    original_code = suggestion.icd_code
    if not original_code.strip():
        return ValidatedSuggestion(suggestion, ValidationStatus.EMPTY, original_code)

    entry = catalog.lookup_exact(original_code)
    if entry is not None:
        notes = f"{suggestion.notes} [{VERIFIED_NOTE}]" if suggestion.notes else VERIFIED_NOTE
        verified = replace(suggestion, official_description=entry.description, notes=notes)
        return ValidatedSuggestion(verified, ValidationStatus.VERIFIED, original_code)

    candidates = catalog.search_by_description(suggestion.input_diagnosis, CORRECTION_CANDIDATES)
    if candidates:
        best = candidates[0]
        logger.info(f"Auto-corrected suggested code {original_code!r} to {best.code!r}")
        corrected = replace(
            suggestion,
            icd_code=best.code,
            official_description=best.description,
            confidence=min(suggestion.confidence, CORRECTED_CONFIDENCE_CAP),
            notes=f'AI suggested "{original_code}" but DB lookup found "{best.code}" as better match',
        )
        return ValidatedSuggestion(corrected, ValidationStatus.CORRECTED, original_code)

    flagged = replace(
        suggestion,
        confidence=min(suggestion.confidence, NOT_FOUND_CONFIDENCE_CAP),
        notes=f'Code "{original_code}" not found in ICD-10 database. May need manual review.',
    )
    return ValidatedSuggestion(flagged, ValidationStatus.NOT_FOUND, original_code)


def validate_suggestions(
    catalog: ICD10CodeCatalog,
    suggestions: list[CodeSuggestion],
) -> list[ValidatedSuggestion]:
    """Validate a list of suggestions, preserving order."""
    return [validate_suggestion(catalog, s) for s in suggestions]
