"""
MTR Devis - Dépendances FastAPI

Chaque route reçoit ses services construits sur le handle db injecté
(get_db est surchargé dans les tests).
"""

from fastapi import Depends, HTTPException

import config
from services.aggregator import RequestAggregator
from services.demandes import DemandeRegistry, DemandeService
from services.directory import ArticleResolver, ClientDirectory
from services.errors import DevisError
from services.line_builder import LineBuilder
from services.numbering import SequenceAllocator, NumberingService
from services.orders import OrderService
from services.outbox import OutboxService
from services.quotation_repository import QuotationRepository
from services.quotation_service import QuotationService
from services.reclamations import ReclamationService


def get_db():
    return config.db


def http_error(e: DevisError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


def get_numbering(db=Depends(get_db)) -> NumberingService:
    return NumberingService(SequenceAllocator(db))


def get_registry(db=Depends(get_db)) -> DemandeRegistry:
    return DemandeRegistry(db)


def get_outbox(db=Depends(get_db)) -> OutboxService:
    return OutboxService(db)


def get_quotations(db=Depends(get_db), numbering=Depends(get_numbering)) -> QuotationRepository:
    return QuotationRepository(db, numbering)


def get_aggregator(registry=Depends(get_registry), quotations=Depends(get_quotations)) -> RequestAggregator:
    return RequestAggregator(registry, quotations)


def get_quotation_service(
    db=Depends(get_db),
    registry=Depends(get_registry),
    quotations=Depends(get_quotations),
    outbox=Depends(get_outbox),
) -> QuotationService:
    builder = LineBuilder(registry, ArticleResolver(db))
    return QuotationService(builder, quotations, ClientDirectory(db), outbox)


def get_demande_service(
    registry=Depends(get_registry),
    numbering=Depends(get_numbering),
    outbox=Depends(get_outbox),
) -> DemandeService:
    return DemandeService(registry, numbering, outbox)


def get_reclamation_service(
    db=Depends(get_db),
    numbering=Depends(get_numbering),
    outbox=Depends(get_outbox),
) -> ReclamationService:
    return ReclamationService(db, numbering, outbox)


def get_order_service(
    db=Depends(get_db),
    registry=Depends(get_registry),
    outbox=Depends(get_outbox),
) -> OrderService:
    return OrderService(db, registry, outbox)
