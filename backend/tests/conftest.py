"""
Fixtures partagées: base MongoDB en mémoire (mongomock-motor), services câblés dessus.
"""

import uuid

import pytest
from mongomock_motor import AsyncMongoMockClient

from services.demandes import DemandeRegistry, DemandeService
from services.directory import ArticleResolver, ClientDirectory
from services.line_builder import LineBuilder
from services.numbering import SequenceAllocator, NumberingService
from services.outbox import OutboxService
from services.quotation_repository import QuotationRepository
from services.quotation_service import QuotationService


@pytest.fixture
def db():
    return AsyncMongoMockClient()[f"mtr_test_{uuid.uuid4().hex[:8]}"]


@pytest.fixture
def numbering(db):
    return NumberingService(SequenceAllocator(db))


@pytest.fixture
def registry(db):
    return DemandeRegistry(db)


@pytest.fixture
def outbox(db):
    return OutboxService(db, max_attempts=3)


@pytest.fixture
def quotations(db, numbering):
    return QuotationRepository(db, numbering)


@pytest.fixture
def quotation_service(db, registry, quotations, outbox):
    builder = LineBuilder(registry, ArticleResolver(db))
    return QuotationService(builder, quotations, ClientDirectory(db), outbox)


@pytest.fixture
def demande_service(registry, numbering, outbox):
    return DemandeService(registry, numbering, outbox)
