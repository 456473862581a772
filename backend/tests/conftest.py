"""Pytest configuration and fixtures for backend tests."""

from collections.abc import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.icd10 import get_catalog
from app.main import app
from app.services.icd10_lookup import ICD10CodeCatalog, reset_icd10_catalog

SAMPLE_RECORDS: list[dict[str, str]] = [
    {"code": "J18.9", "desc": "Pneumonia, unspecified organism"},
    {"code": "J18.1", "desc": "Lobar pneumonia, unspecified organism"},
    {"code": "J44.0", "desc": "Chronic obstructive pulmonary disease with acute lower respiratory infection"},
    {"code": "J44.1", "desc": "Chronic obstructive pulmonary disease with (acute) exacerbation"},
    {"code": "I46.9", "desc": "Cardiac arrest, cause unspecified"},
    {"code": "E11.9", "desc": "Type 2 diabetes mellitus without complications"},
    {"code": "I10", "desc": "Essential (primary) hypertension"},
]


@pytest.fixture
def sample_records() -> list[dict[str, str]]:
    """Small catalog feed covering exact, prefix and code-prefix matches."""
    return [dict(r) for r in SAMPLE_RECORDS]


@pytest.fixture
def catalog(sample_records: list[dict[str, str]]) -> ICD10CodeCatalog:
    """Catalog built from the sample records (not yet loaded)."""
    return ICD10CodeCatalog(records=sample_records)


@pytest.fixture
def reset_catalog_singleton() -> Generator[None, None, None]:
    """Reset the shared catalog before and after a test."""
    reset_icd10_catalog()
    yield
    reset_icd10_catalog()


@pytest.fixture
async def client(catalog: ICD10CodeCatalog) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client backed by the sample catalog.

    This allows testing API endpoints without reading the bundled fixture.
    """
    app.dependency_overrides[get_catalog] = lambda: catalog

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()
