"""ICD-10 catalog API schemas."""

from pydantic import BaseModel, Field

from app.services.icd10_lookup import CatalogEntry, MatchType, SearchResult
from app.services.code_validation import ValidatedSuggestion, ValidationStatus


class CatalogEntryResponse(BaseModel):
    """A catalog code definition."""

    code: str = Field(..., description="Code as published (e.g. J18.9)")
    description: str = Field(..., description="Official description")
    normalized_code: str = Field(..., description="Uppercase code without punctuation (e.g. J189)")
    keywords: list[str] = Field(default_factory=list, description="Indexed search keywords")

    @classmethod
    def from_entry(cls, entry: CatalogEntry) -> "CatalogEntryResponse":
        return cls(
            code=entry.code,
            description=entry.description,
            normalized_code=entry.normalized_code,
            keywords=list(entry.keywords),
        )


class SearchResultResponse(BaseModel):
    """A scored catalog match."""

    code: str
    description: str
    score: int = Field(..., ge=0, description="Relevance score; higher is more relevant")
    match_type: MatchType

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultResponse":
        return cls(
            code=result.code,
            description=result.description,
            score=result.score,
            match_type=result.match_type,
        )


class SearchResponse(BaseModel):
    """Response from a catalog search."""

    query: str
    results: list[SearchResultResponse]
    total: int


class ContextResponse(BaseModel):
    """Grounding context block for an LLM prompt."""

    query: str
    context: str = Field(..., description="Formatted code block, empty when nothing matched")
    has_context: bool


class BatchValidateRequest(BaseModel):
    """Request body for validating several codes."""

    codes: list[str] = Field(..., max_length=1000, description="Codes to validate, as supplied")


class BatchValidateResponse(BaseModel):
    """Per-code validation results keyed by the code as supplied."""

    results: dict[str, CatalogEntryResponse | None]
    valid_count: int
    invalid_count: int


class CodeSuggestionPayload(BaseModel):
    """An AI-suggested code for one diagnosis."""

    input_diagnosis: str = Field(..., description="Diagnosis text the code was suggested for")
    icd_code: str = Field("", description="Suggested code (may be empty)")
    confidence: float = Field(..., ge=0, le=1)
    official_description: str = ""
    notes: str = ""


class SuggestionValidateRequest(BaseModel):
    """Request body for validating AI suggestions."""

    suggestions: list[CodeSuggestionPayload] = Field(..., max_length=500)


class ValidatedSuggestionResponse(CodeSuggestionPayload):
    """A suggestion after catalog validation."""

    status: ValidationStatus
    original_code: str

    @classmethod
    def from_validated(cls, validated: ValidatedSuggestion) -> "ValidatedSuggestionResponse":
        s = validated.suggestion
        return cls(
            input_diagnosis=s.input_diagnosis,
            icd_code=s.icd_code,
            confidence=s.confidence,
            official_description=s.official_description,
            notes=s.notes,
            status=validated.status,
            original_code=validated.original_code,
        )


class SuggestionValidateResponse(BaseModel):
    """Validated suggestions in request order."""

    suggestions: list[ValidatedSuggestionResponse]


class CatalogStatsResponse(BaseModel):
    """Catalog statistics."""

    total_codes: int
    unique_keywords: int
    loaded: bool
    load_time_ms: float
