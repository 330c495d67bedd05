"""
Scheduler pour les tâches automatiques MTR Devis
- Vidage de l'outbox (emails post-commit) toutes les OUTBOX_INTERVAL_SECONDS
"""

import asyncio
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import OUTBOX_INTERVAL_SECONDS
from services.demandes import DemandeRegistry
from services.outbox import OutboxService

logger = logging.getLogger("scheduler")


class OutboxHandlers:
    """Charge le document de chaque tâche puis délègue à EmailService"""

    def __init__(self, db, mailer):
        self.db = db
        self.mailer = mailer
        self.registry = DemandeRegistry(db)

    async def _user(self, user_id) -> dict:
        return await self.db.users.find_one({"id": user_id}, {"_id": 0, "password": 0}) or {}

    async def devis_created(self, payload: dict) -> bool:
        if not payload.get("send_email", True):
            return True
        devis = await self.db.devis.find_one({"id": payload.get("devis_id")}, {"_id": 0})
        if not devis:
            raise LookupError(f"Devis introuvable: {payload.get('devis_id')}")
        return await asyncio.to_thread(self.mailer.send_devis_to_client, devis)

    async def demande_created(self, payload: dict) -> bool:
        found = await self.registry.resolve_any(payload.get("demande_id"))
        if not found:
            raise LookupError(f"Demande introuvable: {payload.get('demande_id')}")
        demande = found[1]
        user = await self._user(demande.get("user_id"))
        return await asyncio.to_thread(self.mailer.send_new_demande, demande, user)

    async def reclamation_created(self, payload: dict) -> bool:
        rec = await self.db.reclamations.find_one({"id": payload.get("reclamation_id")}, {"_id": 0})
        if not rec:
            raise LookupError(f"Réclamation introuvable: {payload.get('reclamation_id')}")
        user = await self._user(rec.get("user_id"))
        return await asyncio.to_thread(self.mailer.send_new_reclamation, rec, user)

    async def order_confirmed(self, payload: dict) -> bool:
        order = await self.db.client_orders.find_one({"id": payload.get("order_id")}, {"_id": 0})
        if not order:
            raise LookupError(f"Commande introuvable: {payload.get('order_id')}")
        user = await self._user(order.get("user_id"))
        return await asyncio.to_thread(self.mailer.send_order_confirmed, order, user)

    def as_dict(self) -> dict:
        return {
            "devis_created": self.devis_created,
            "demande_created": self.demande_created,
            "reclamation_created": self.reclamation_created,
            "order_confirmed": self.order_confirmed,
        }


class TaskScheduler:
    """Gestionnaire de tâches planifiées"""

    def __init__(self, db, mailer):
        self.scheduler = AsyncIOScheduler(timezone="Africa/Tunis")
        self.outbox = OutboxService(db)
        self.handlers = OutboxHandlers(db, mailer).as_dict()

    def start(self):
        """Démarre le scheduler"""
        self.scheduler.add_job(
            self.drain_outbox,
            IntervalTrigger(seconds=OUTBOX_INTERVAL_SECONDS),
            id="drain_outbox",
            name="Envoi des notifications en attente",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.start()
        logger.info("Scheduler démarré avec succès")

    def stop(self):
        """Arrête le scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler arrêté")

    async def drain_outbox(self):
        try:
            await self.outbox.drain(self.handlers)
        except Exception as e:
            logger.error(f"Erreur vidage outbox: {str(e)}")
