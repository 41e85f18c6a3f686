"""Shared fixtures and builders for the visibility tests."""

from typing import Optional

import pytest

from storage import InMemoryBlobStore, InMemoryDocumentStore, OverflowStore
from visibility.models import (
    BrandProfile,
    ChatGPTAnswer,
    Competitor,
    GoogleAIAnswer,
    PerplexityAnswer,
    ProviderResults,
    QueryResult,
)


def make_query_result(
    session_id: str = "session-1",
    date: str = "2024-05-01T10:00:00Z",
    chatgpt: Optional[str] = None,
    google: Optional[str] = None,
    perplexity: Optional[str] = None,
    query: str = "best project management tools",
    result_id: Optional[str] = None,
    **perplexity_fields,
) -> QueryResult:
    """Build a query result with plain-text answers for the given providers."""
    results = ProviderResults(
        chatgpt=ChatGPTAnswer(response=chatgpt, responseTime=1.5) if chatgpt is not None else None,
        google_ai=GoogleAIAnswer(aiOverview=google, hasAIOverview=bool(google)) if google is not None else None,
        perplexity=(
            PerplexityAnswer(response=perplexity, **perplexity_fields) if perplexity is not None else None
        ),
    )
    return QueryResult(
        id=result_id or f"{session_id}-{date}",
        query=query,
        keyword="project management",
        category="software",
        date=date,
        processingSessionId=session_id,
        processingSessionTimestamp=date,
        results=results,
    )


@pytest.fixture
def brand() -> BrandProfile:
    return BrandProfile(
        brand_id="brand-acme",
        user_id="user-1",
        name="Acme",
        domain="acme.com",
        competitors=[
            Competitor(name="Globex", domain="globex.com"),
            Competitor(name="Initech", aliases=["Initrode"]),
        ],
    )


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(max_document_bytes=2000)


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def overflow_store(document_store, blob_store) -> OverflowStore:
    """Overflow store with a 1600 byte threshold and no retry delay."""
    return OverflowStore(
        document_store,
        blob_store,
        max_record_bytes=2000,
        safety_margin=0.8,
        truncate_max_items=5,
        truncate_text_chars=100,
        max_retries=2,
        retry_delay=0,
    )
