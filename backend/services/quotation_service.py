"""
MTR Devis - Création de devis depuis des demandes

Compose LineBuilder → QuotationRepository → Outbox.
Toute erreur du LineBuilder interrompt AVANT l'allocation du numéro:
aucun devis partiel, aucun numéro consommé.
"""

import logging
from typing import List, Optional

from models.devis import LineDescriptor
from services.errors import DevisError

logger = logging.getLogger("quotation_service")


class QuotationService:

    def __init__(self, builder, repository, clients, outbox=None):
        self.builder = builder
        self.repository = repository
        self.clients = clients
        self.outbox = outbox

    async def create_from_demandes(
        self,
        demande_ids: List[str],
        lines: List[LineDescriptor],
        send_email: bool = True,
    ) -> dict:
        try:
            built = await self.builder.build(demande_ids, lines)
        except DevisError as e:
            logger.warning(f"[DEVIS] Création refusée ({type(e).__name__}): {e.message}")
            raise

        client = await self.clients.snapshot(built.owner_id)
        devis = await self.repository.create(built.demandes, built.items, client)

        if self.outbox is not None:
            await self.outbox.enqueue("devis_created", {
                "devis_id": devis["id"],
                "send_email": bool(send_email),
            })
        return devis

    async def find_for_demande(self, demande_id: str, numero: Optional[str] = None) -> Optional[dict]:
        return await self.repository.find_by_source_request(demande_id, numero)
