"""ICD-10 Code Lookup Service.

Provides fast lookups against the local ICD-10-CM catalog feed
(fixtures/icd10_codes.json). It supports:

- Direct code lookup (O(1) on the normalized code)
- Keyword search over descriptions with relevance scoring
- Near-miss code suggestions by shared code prefix
- Grounding context blocks for LLM prompts

The catalog is loaded once, lazily, and is read-only afterwards.
"""

import json
import logging
import re
import threading
import time
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, ClassVar

from pydantic import BaseModel, Field, ValidationError

from app.core.config import settings

logger = logging.getLogger(__name__)

# Singleton instance and lock for thread-safe creation
_catalog_instance: "ICD10CodeCatalog | None" = None
_catalog_lock = threading.Lock()


# ============================================================================
# Tokenization
# ============================================================================

# Common medical stop words to skip
STOP_WORDS: frozenset[str] = frozenset({
    "the", "and", "for", "with", "without", "other", "due", "not", "unspecified",
    "specified", "type", "from", "that", "this", "has", "have", "are", "was",
    "were", "been", "being", "having", "had", "does", "did", "but", "can",
    "could", "may", "might", "must", "shall", "should", "will", "would",
})

MIN_KEYWORD_LENGTH = 3
MIN_SIMILAR_PREFIX_LENGTH = 3

EXACT_KEYWORD_WEIGHT = 3
PREFIX_KEYWORD_WEIGHT = 1

CONTEXT_HEADER = "RELEVANT ICD-10-CM CODES FROM DATABASE (use these as primary reference):"

_CODE_PUNCTUATION_RE = re.compile(r"[.\s-]")
_NON_WORD_RE = re.compile(r"[^\w\s]")


def normalize_code(code: str) -> str:
    """Normalize an ICD-10 code for matching (remove dots, spaces, hyphens; uppercase)."""
    return _CODE_PUNCTUATION_RE.sub("", code.upper())


def tokenize(text: str) -> list[str]:
    """Extract search keywords from text.

    Used identically for indexing descriptions and for parsing queries.
    Duplicates are preserved.
    """
    words = _NON_WORD_RE.sub(" ", text.lower()).split()
    return [w for w in words if len(w) >= MIN_KEYWORD_LENGTH and w not in STOP_WORDS]


# ============================================================================
# Data Model
# ============================================================================


class MatchType(str, Enum):
    """How a search result was matched."""

    EXACT_CODE = "exact_code"
    PARTIAL_CODE = "partial_code"
    KEYWORD = "keyword"
    FUZZY = "fuzzy"


class CatalogRecord(BaseModel):
    """One raw record of the catalog feed, validated at the parse boundary."""

    code: str = Field(..., min_length=1, pattern=r"\S")
    desc: str


@dataclass(frozen=True)
class CatalogEntry:
    """An ICD-10-CM code definition with its precomputed search fields."""

    code: str
    description: str
    normalized_code: str
    keywords: tuple[str, ...]

    @classmethod
    def from_record(cls, record: CatalogRecord) -> "CatalogEntry":
        return cls(
            code=record.code,
            description=record.desc,
            normalized_code=normalize_code(record.code),
            keywords=tuple(tokenize(record.desc)),
        )


@dataclass(frozen=True)
class SearchResult:
    """A scored catalog match. Higher score is more relevant."""

    code: str
    description: str
    score: int
    match_type: MatchType


@dataclass(frozen=True)
class _CatalogIndex:
    """Loaded entries and the indexes derived from them."""

    entries: tuple[CatalogEntry, ...]
    code_index: Mapping[str, int]  # normalized_code -> position in entries
    keyword_index: Mapping[str, tuple[int, ...]]  # keyword -> positions in entries
    load_time_ms: float


class CatalogLoadError(Exception):
    """The catalog source could not be read or parsed.

    The catalog stays unloaded; a later call retries the load.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


# ============================================================================
# Index Construction
# ============================================================================


def build_index(records: Iterable[Any], started_at: float | None = None) -> _CatalogIndex:
    """Validate raw records and build the exact-code and keyword indexes.

    Malformed records and records repeating an already indexed normalized
    code are skipped with a warning.
    """
    start = started_at if started_at is not None else time.perf_counter()

    entries: list[CatalogEntry] = []
    code_index: dict[str, int] = {}
    keyword_index: dict[str, list[int]] = {}
    skipped = 0

    for position, raw in enumerate(records):
        try:
            record = CatalogRecord.model_validate(raw)
        except ValidationError as e:
            skipped += 1
            logger.warning(f"Skipping malformed ICD-10 record #{position}: {e.error_count()} error(s)")
            continue

        entry = CatalogEntry.from_record(record)
        if entry.normalized_code in code_index:
            skipped += 1
            logger.warning(f"Skipping duplicate ICD-10 code {entry.code!r} (record #{position})")
            continue

        idx = len(entries)
        entries.append(entry)
        code_index[entry.normalized_code] = idx

        for keyword in entry.keywords:
            postings = keyword_index.setdefault(keyword, [])
            # Keywords of one entry are visited together, so a repeat is always last
            if not postings or postings[-1] != idx:
                postings.append(idx)

    if skipped:
        logger.warning(f"Skipped {skipped} ICD-10 records while building the catalog")

    return _CatalogIndex(
        entries=tuple(entries),
        code_index=MappingProxyType(code_index),
        keyword_index=MappingProxyType({k: tuple(v) for k, v in keyword_index.items()}),
        load_time_ms=(time.perf_counter() - start) * 1000,
    )


# ============================================================================
# Catalog Service
# ============================================================================


class ICD10CodeCatalog:
    """In-memory ICD-10-CM catalog with exact, prefix and keyword search.

    The catalog loads on first use. Concurrent callers during the first load
    all wait on the same in-flight load; after it completes every query is a
    lock-free read of immutable state.

    Usage:
        catalog = ICD10CodeCatalog()
        catalog.lookup_exact("J18.9")
        catalog.search_by_description("pneumonia", max_results=5)
    """

    DEFAULT_FIXTURE_NAME: ClassVar[str] = "icd10_codes.json"

    def __init__(
        self,
        catalog_path: str | Path | None = None,
        records: Sequence[Any] | None = None,
        load_timeout: float | None = None,
    ) -> None:
        """Initialize the catalog.

        Args:
            catalog_path: Path to the JSON feed (a list of {code, desc}).
                          Defaults to settings.icd10_catalog_path, then
                          fixtures/icd10_codes.json.
            records: Records to index instead of reading a file.
            load_timeout: Seconds to wait for another caller's in-flight load.
        """
        self._catalog_path = catalog_path
        self._records = records
        self._load_timeout = load_timeout if load_timeout is not None else settings.icd10_load_timeout_seconds
        self._index: _CatalogIndex | None = None
        self._pending: Future[_CatalogIndex] | None = None
        self._lock = threading.Lock()

    def _find_fixtures_dir(self) -> Path:
        """Find the fixtures directory."""
        current = Path(__file__).parent
        while current.parent != current:
            potential_path = current / "fixtures"
            if potential_path.exists():
                return potential_path
            current = current.parent
        return Path("fixtures")

    @property
    def catalog_path(self) -> Path:
        """Get the catalog feed file path."""
        if self._catalog_path:
            return Path(self._catalog_path)
        if settings.icd10_catalog_path:
            return Path(settings.icd10_catalog_path)
        return self._find_fixtures_dir() / self.DEFAULT_FIXTURE_NAME

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _read_records(self) -> Sequence[Any]:
        if self._records is not None:
            return self._records

        path = self.catalog_path
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise CatalogLoadError(f"Cannot read ICD-10 catalog {path}: {e}", e) from e
        except json.JSONDecodeError as e:
            raise CatalogLoadError(f"Invalid JSON in ICD-10 catalog {path}: {e}", e) from e

        if not isinstance(data, list):
            raise CatalogLoadError(
                f"ICD-10 catalog {path} must contain a list of records, got {type(data).__name__}"
            )
        return data

    def _load(self) -> _CatalogIndex:
        logger.info("Loading ICD-10 catalog...")
        start = time.perf_counter()
        try:
            index = build_index(self._read_records(), started_at=start)
        except CatalogLoadError as e:
            logger.error(f"Failed to load ICD-10 catalog: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load ICD-10 catalog: {e}")
            raise CatalogLoadError(f"Failed to build ICD-10 catalog: {e}", e) from e

        logger.info(f"Loaded {len(index.entries)} ICD-10 codes in {index.load_time_ms:.2f}ms")
        logger.info(f"Keyword index: {len(index.keyword_index)} unique keywords")
        return index

    def ensure_loaded(self) -> None:
        """Load the catalog if needed (call before any lookup).

        Exactly one load runs at a time; callers arriving during it wait for
        that load and share its result or its failure.

        Raises:
            CatalogLoadError: The source could not be read or parsed, or the
                in-flight load did not finish within the load timeout.
        """
        self._get_index()

    def _get_index(self) -> _CatalogIndex:
        index = self._index
        if index is not None:
            return index

        with self._lock:
            if self._index is not None:
                return self._index
            pending = self._pending
            is_owner = pending is None
            if pending is None:
                pending = self._pending = Future()

        if not is_owner:
            try:
                return pending.result(timeout=self._load_timeout)
            except FutureTimeoutError as e:
                raise CatalogLoadError(
                    f"Timed out after {self._load_timeout}s waiting for the ICD-10 catalog to load", e
                ) from e

        try:
            index = self._load()
        except BaseException as e:
            # Interrupted loads must not strand waiters or block a retry.
            with self._lock:
                self._pending = None
            pending.set_exception(e)
            raise

        with self._lock:
            self._index = index
            self._pending = None
        pending.set_result(index)
        return index

    @property
    def is_loaded(self) -> bool:
        """Whether the catalog has been loaded (never triggers a load)."""
        return self._index is not None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def lookup_exact(self, code: str) -> CatalogEntry | None:
        """Look up a code directly.

        Args:
            code: ICD-10 code in any case or punctuation ("j18.9", "J18 9").

        Returns:
            The matching entry or None.
        """
        index = self._get_index()
        idx = index.code_index.get(normalize_code(code))
        if idx is None:
            return None
        return index.entries[idx]

    def is_valid(self, code: str) -> bool:
        """Check whether a code exists in the catalog."""
        return self.lookup_exact(code) is not None

    def get_code_description(self, code: str) -> str | None:
        """Get the official description for a code."""
        entry = self.lookup_exact(code)
        return entry.description if entry else None

    def search_by_description(self, query: str, max_results: int = 10) -> list[SearchResult]:
        """Search codes by description keywords.

        Every query token adds 3 to each entry indexed under that exact
        keyword and 1 to each entry indexed under a longer keyword it is a
        prefix of. Ties keep catalog order.

        Args:
            query: Free text, e.g. a diagnosis as written by a clinician.
            max_results: Maximum number of results to return.

        Returns:
            Results sorted by descending score.
        """
        index = self._get_index()

        query_keywords = tokenize(query)
        if not query_keywords or max_results <= 0:
            return []

        scores: dict[int, int] = {}
        for keyword in query_keywords:
            # Exact keyword match
            for idx in index.keyword_index.get(keyword, ()):
                scores[idx] = scores.get(idx, 0) + EXACT_KEYWORD_WEIGHT

            # Partial keyword match (prefix); scans every distinct keyword
            for indexed_keyword, positions in index.keyword_index.items():
                if indexed_keyword != keyword and indexed_keyword.startswith(keyword):
                    for idx in positions:
                        scores[idx] = scores.get(idx, 0) + PREFIX_KEYWORD_WEIGHT

        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))

        results: list[SearchResult] = []
        for idx, score in ranked[:max_results]:
            entry = index.entries[idx]
            results.append(SearchResult(
                code=entry.code,
                description=entry.description,
                score=score,
                match_type=MatchType.KEYWORD,
            ))
        return results

    def find_similar_codes(self, code: str, max_results: int = 5) -> list[SearchResult]:
        """Suggest codes sharing the longest possible prefix with a code.

        Useful when a code is invalid (typo or wrong subcode). The prefix
        shrinks one character at a time, down to the 3-character category,
        until enough codes are found. A code already collected at a longer
        prefix is not listed again at a shorter one, so every result is a
        distinct code and scores never increase down the list.

        Args:
            code: ICD-10 code, usually one that failed exact lookup.
            max_results: Maximum number of results to return.

        Returns:
            Results with score equal to the shared prefix length, longest first.
        """
        index = self._get_index()
        normalized = normalize_code(code)

        results: list[SearchResult] = []
        seen: set[int] = set()

        prefix_len = len(normalized)
        while prefix_len >= MIN_SIMILAR_PREFIX_LENGTH and len(results) < max_results:
            prefix = normalized[:prefix_len]
            for idx, entry in enumerate(index.entries):
                if len(results) >= max_results:
                    break
                if idx in seen or entry.normalized_code == normalized:
                    continue
                if entry.normalized_code.startswith(prefix):
                    seen.add(idx)
                    results.append(SearchResult(
                        code=entry.code,
                        description=entry.description,
                        score=prefix_len,
                        match_type=MatchType.PARTIAL_CODE,
                    ))
            prefix_len -= 1

        return results

    def get_context_block(self, query_text: str, max_entries: int = 15) -> str:
        """Build a grounding block of real catalog codes for an LLM prompt.

        Returns:
            Header plus "CODE: description" lines, or "" when nothing matches.
        """
        results = self.search_by_description(query_text, max_entries)
        if not results:
            return ""

        lines = [f"{r.code}: {r.description}" for r in results]
        return "\n".join([CONTEXT_HEADER, *lines])

    def batch_validate(self, codes: Iterable[str]) -> dict[str, CatalogEntry | None]:
        """Validate several codes at once.

        Returns:
            Mapping keyed by each code as supplied; duplicates collapse.
        """
        self._get_index()
        return {code: self.lookup_exact(code) for code in codes}

    def get_stats(self, load: bool = True) -> dict[str, Any]:
        """Get catalog statistics.

        Args:
            load: Load the catalog first if needed. With False, the current
                  state is reported as is.

        Returns:
            Dictionary with total_codes, unique_keywords, loaded, load_time_ms.
        """
        index = self._get_index() if load else self._index
        if index is None:
            return {
                "total_codes": 0,
                "unique_keywords": 0,
                "loaded": False,
                "load_time_ms": 0,
            }
        return {
            "total_codes": len(index.entries),
            "unique_keywords": len(index.keyword_index),
            "loaded": True,
            "load_time_ms": round(index.load_time_ms, 2),
        }


# ============================================================================
# Shared Instance
# ============================================================================


def get_icd10_catalog() -> ICD10CodeCatalog:
    """Get the shared ICD10CodeCatalog instance.

    The instance is created once (thread-safe); its data loads lazily on
    first query or through preload_icd10_catalog().
    """
    global _catalog_instance

    if _catalog_instance is None:
        with _catalog_lock:
            if _catalog_instance is None:
                logger.info("Creating singleton ICD10CodeCatalog instance")
                _catalog_instance = ICD10CodeCatalog()

    return _catalog_instance


def preload_icd10_catalog() -> dict[str, Any]:
    """Load the shared catalog at application startup.

    Returns:
        Catalog statistics.

    Raises:
        CatalogLoadError: The catalog could not be loaded.
    """
    return get_icd10_catalog().get_stats()


def reset_icd10_catalog() -> None:
    """Reset the shared instance (for testing only)."""
    global _catalog_instance
    with _catalog_lock:
        _catalog_instance = None
