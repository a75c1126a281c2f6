"""Pytest configuration and fixtures for testing."""
import asyncio
import os
import uuid
from datetime import date
from typing import AsyncGenerator, Dict, List, Optional

# Test settings must be in place before the app modules read them
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("IDEMPOTENCY_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SUBMISSION_EVENTS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
import app.models  # noqa: F401
from app.exceptions import FallbackGenerationException
from app.gateways.base import ClaimPayload, ProviderGateway, ProviderSubmissionResult
from app.models.claim import Claim
from app.models.document import ClaimDocument
from app.models.enums import ClaimStatus, DocumentType
from app.repositories.claim_repository import ClaimRepository
from app.services.fallback_document import (
    FallbackDocumentGenerator,
    GeneratedDocument,
    claim_form_document_id,
    claim_form_locator,
)
from app.services.idempotency import InMemoryIdempotencyGuard


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory database engine with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after tests
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ============================================================================
# Test doubles
# ============================================================================


class ScriptedGateway(ProviderGateway):
    """Gateway that replays a fixed result (or raises) and records every call."""

    def __init__(
        self,
        name: str,
        result: Optional[ProviderSubmissionResult] = None,
        priority: int = 100,
        timeout_seconds: float = 5.0,
        raises: Optional[Exception] = None,
        delay: float = 0.0,
        release: Optional[asyncio.Event] = None,
    ):
        super().__init__(name=name, priority=priority, timeout_seconds=timeout_seconds)
        self.result = result or ProviderSubmissionResult.accepted(f"CONF-{name.upper()}", f"TRK-{name.upper()}")
        self.raises = raises
        self.delay = delay
        self.release = release
        self.entered = asyncio.Event()
        self.calls: List[ClaimPayload] = []

    async def submit(self, payload: ClaimPayload) -> ProviderSubmissionResult:
        self.calls.append(payload)
        self.entered.set()
        if self.release is not None:
            await self.release.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        return self.result


class RecordingDocumentGenerator(FallbackDocumentGenerator):
    """Claim-form generator double; keyed like the real one, fails on demand."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Dict[str, str]] = []
        self.discarded: List[Dict[str, str]] = []

    async def generate(self, claim, submission_id: str) -> GeneratedDocument:
        self.calls.append({"claim_id": str(claim.id), "submission_id": submission_id})
        if self.fail:
            raise FallbackGenerationException("Storage unavailable")
        return GeneratedDocument(
            document_id=claim_form_document_id(str(claim.id), submission_id),
            locator=claim_form_locator(str(claim.id), submission_id),
        )

    async def discard(self, claim_id: str, submission_id: str) -> None:
        self.discarded.append({"claim_id": claim_id, "submission_id": submission_id})


class RecordingPublisher:
    """Event publisher double."""

    def __init__(self):
        self.succeeded: List[Dict] = []
        self.failed: List[Dict] = []

    def submission_succeeded(self, claim_id, submission_id, method, provider_name, fallback_used):
        self.succeeded.append({
            "claim_id": claim_id,
            "submission_id": submission_id,
            "method": method,
            "provider_name": provider_name,
            "fallback_used": fallback_used,
        })
        return True

    def submission_failed(self, claim_id, error_code, attempts):
        self.failed.append({"claim_id": claim_id, "error_code": error_code, "attempts": attempts})
        return True


def accepted(confirmation: str, tracking: Optional[str] = None) -> ProviderSubmissionResult:
    return ProviderSubmissionResult.accepted(confirmation, tracking)


def retryable(code: str = "SERVICE_UNAVAILABLE") -> ProviderSubmissionResult:
    return ProviderSubmissionResult.failed(code, "Service temporarily unavailable", retryable=True)


def non_retryable(code: str = "INVALID_PROVIDER_NPI") -> ProviderSubmissionResult:
    return ProviderSubmissionResult.failed(code, "Provider NPI is invalid", retryable=False)


# ============================================================================
# Test Data Fixtures
# ============================================================================


def build_claim(**overrides) -> Claim:
    """Complete, submittable draft claim (not attached to a session)."""
    fields = dict(
        id=uuid.uuid4(),
        user_id="user-123",
        status=ClaimStatus.DRAFT,
        amount_cents=15000,
        date_of_service=date(2026, 9, 14),
        provider_name="Downtown Family Clinic",
        provider_npi="1234567893",
        insurer_name="Acme Health",
        cpt_codes=["99213"],
        icd_codes=["J06.9"],
        description="Office visit, upper respiratory infection",
    )
    fields.update(overrides)
    claim = Claim(**fields)
    claim.documents = [
        ClaimDocument(
            id=uuid.uuid4(),
            claim_id=claim.id,
            document_type=DocumentType.RECEIPT,
            file_name="receipt.jpg",
            storage_key=f"claims/{claim.id}/receipt.jpg",
        )
    ]
    return claim


@pytest.fixture
def make_claim():
    """Factory for in-memory claims."""
    return build_claim


@pytest_asyncio.fixture
async def saved_claim_factory(session_factory):
    """Persist complete claims, each in its own committed session."""

    async def factory(**overrides) -> Claim:
        claim = build_claim(**overrides)
        async with session_factory() as session:
            session.add(claim)
            await session.commit()
        return claim

    return factory


@pytest.fixture
def guard() -> InMemoryIdempotencyGuard:
    return InMemoryIdempotencyGuard()


@pytest.fixture
def document_generator() -> RecordingDocumentGenerator:
    return RecordingDocumentGenerator()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest_asyncio.fixture
async def repository(db_session) -> ClaimRepository:
    return ClaimRepository(db_session)


# ============================================================================
# API client
# ============================================================================


@pytest.fixture
def api_gateways() -> List[ProviderGateway]:
    """Clearinghouse doubles wired into the API client."""
    return [
        ScriptedGateway("Primary Health Exchange", accepted("PHX-1001", "TRK-1001"), priority=1),
        ScriptedGateway("Backup Claims Network", accepted("BCN-2002", "TRK-2002"), priority=2),
    ]


@pytest.fixture
def api_storage_dir(tmp_path):
    return tmp_path / "claim_forms"


@pytest_asyncio.fixture
async def async_client(session_factory, api_gateways, api_storage_dir) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database and collaborator overrides."""
    from app.main import app
    from app.database import get_db
    from app.dependencies.submission import (
        get_document_generator,
        get_event_publisher,
        get_idempotency_guard,
        get_provider_gateways,
    )
    from app.services.fallback_document import ClaimFormPdfGenerator

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    test_guard = InMemoryIdempotencyGuard()
    generator = ClaimFormPdfGenerator(storage_dir=str(api_storage_dir), timeout_seconds=10)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider_gateways] = lambda: api_gateways
    app.dependency_overrides[get_idempotency_guard] = lambda: test_guard
    app.dependency_overrides[get_document_generator] = lambda: generator
    app.dependency_overrides[get_event_publisher] = lambda: RecordingPublisher()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
