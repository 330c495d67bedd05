"""
MTR Devis - Commandes clients (confirmation d'un devis)

Une commande = (client, demande) confirmée, upsert idempotent.
"""

import logging
import uuid
from typing import List, Optional

from pymongo import ReturnDocument

from config import now_iso
from services.demandes import owner_of
from services.errors import NotFoundError, ValidationError

logger = logging.getLogger("orders")


class OrderService:

    def __init__(self, db, registry, outbox=None):
        self.db = db
        self.registry = registry
        self.outbox = outbox

    async def place(
        self,
        user_id: str,
        demande_id: str,
        devis_numero: Optional[str] = None,
        note: str = "",
    ) -> dict:
        if not demande_id:
            raise ValidationError("demande_id manquant")

        found = await self.registry.resolve_any(demande_id)
        if not found or owner_of(found[1]) != str(user_id):
            raise NotFoundError("Demande introuvable pour ce client")
        demande_type, demande = found

        now = now_iso()
        order = await self.db.client_orders.find_one_and_update(
            {"user_id": user_id, "demande_id": demande_id},
            {
                "$set": {
                    "status": "confirmed",
                    "demande_type": demande_type,
                    "demande_numero": demande.get("numero"),
                    "devis_numero": devis_numero or None,
                    "note": note or "",
                    "updated_at": now,
                },
                "$setOnInsert": {"id": str(uuid.uuid4()), "created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
            projection={"_id": 0},
        )
        logger.info(f"[ORDER] Commande confirmée demande={demande.get('numero')} devis={devis_numero}")

        if self.outbox is not None:
            await self.outbox.enqueue("order_confirmed", {"order_id": order["id"]})
        return order

    async def status_map(self, user_id: str, demande_ids: List[str]) -> dict:
        """{demande_id: True si commande confirmée}"""
        ids = [i.strip() for i in demande_ids if i and i.strip()]
        status = {i: False for i in ids}
        if not ids:
            return status
        rows = await self.db.client_orders.find(
            {"user_id": user_id, "demande_id": {"$in": ids}},
            {"_id": 0, "demande_id": 1, "status": 1}
        ).to_list(None)
        for row in rows:
            status[row["demande_id"]] = row.get("status") == "confirmed"
        return status
