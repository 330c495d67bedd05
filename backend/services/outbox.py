"""
MTR Devis - Outbox des effets post-commit (emails)

Le document métier est TOUJOURS persisté avant l'enqueue.
- enqueue: écrit une tâche "pending"; un échec est journalisé, jamais propagé
- drain: exécute les tâches pending; échec → attempts+1, "failed" après N essais
Contrat: best-effort, au moins une fois tant qu'il reste des essais.
"""

import logging
import uuid
from typing import Callable, Dict, Awaitable

from config import now_iso, OUTBOX_MAX_ATTEMPTS

logger = logging.getLogger("outbox")

TASK_KINDS = ["demande_created", "devis_created", "reclamation_created", "order_confirmed"]


class OutboxService:

    def __init__(self, db, max_attempts: int = OUTBOX_MAX_ATTEMPTS):
        self.db = db
        self.max_attempts = max_attempts

    async def enqueue(self, kind: str, payload: dict) -> bool:
        if kind not in TASK_KINDS:
            raise ValueError(f"Type de tâche inconnu: {kind}")
        task = {
            "id": str(uuid.uuid4()),
            "kind": kind,
            "payload": payload,
            "status": "pending",
            "attempts": 0,
            "last_error": None,
            "created_at": now_iso(),
        }
        try:
            await self.db.outbox.insert_one(task)
            return True
        except Exception as e:
            logger.error(f"[OUTBOX] Enqueue {kind} échoué: {str(e)}")
            return False

    async def drain(self, handlers: Dict[str, Callable[[dict], Awaitable[bool]]], batch: int = 50) -> dict:
        """
        Exécute les tâches en attente.
        handlers: kind → coroutine(payload) retournant True si l'effet a réussi
        """
        results = {"processed": 0, "done": 0, "failed": 0, "retry": 0}
        tasks = await self.db.outbox.find(
            {"status": "pending"}, {"_id": 0}
        ).sort("created_at", 1).limit(batch).to_list(batch)

        for task in tasks:
            results["processed"] += 1
            handler = handlers.get(task["kind"])
            error = None
            ok = False
            if handler is None:
                error = f"Aucun handler pour {task['kind']}"
            else:
                try:
                    ok = bool(await handler(task.get("payload") or {}))
                    if not ok:
                        error = "Handler a retourné un échec"
                except Exception as e:
                    error = str(e)

            if ok:
                await self.db.outbox.update_one(
                    {"id": task["id"]},
                    {"$set": {"status": "done", "done_at": now_iso()}, "$inc": {"attempts": 1}}
                )
                results["done"] += 1
                continue

            attempts = task.get("attempts", 0) + 1
            status = "failed" if attempts >= self.max_attempts else "pending"
            await self.db.outbox.update_one(
                {"id": task["id"]},
                {"$set": {"status": status, "last_error": error, "last_attempt_at": now_iso()},
                 "$inc": {"attempts": 1}}
            )
            results["failed" if status == "failed" else "retry"] += 1
            logger.warning(f"[OUTBOX] {task['kind']} {task['id'][:8]}... essai {attempts}: {error}")

        if tasks:
            logger.info(f"[OUTBOX] Drain: {results}")
        return results
