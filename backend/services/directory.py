"""
MTR Devis - Collaborateurs en lecture seule

- ArticleResolver: catalogue articles (prix HT, désignation, unité)
- ClientDirectory: fiche client, copiée dans le devis à sa création
"""

import logging
from typing import Optional

from pymongo.errors import PyMongoError

from models.devis import ClientSnapshot
from services.errors import StorageUnavailable

logger = logging.getLogger("directory")


class ArticleResolver:

    def __init__(self, db):
        self.db = db

    async def resolve(self, article_id: str) -> Optional[dict]:
        """
        Returns: {reference, designation, unite, prix_ht} ou None
        """
        if not article_id:
            return None
        try:
            art = await self.db.articles.find_one({"id": str(article_id)}, {"_id": 0})
        except PyMongoError as e:
            raise StorageUnavailable("Base indisponible (articles)") from e
        if not art:
            return None
        price = art.get("prix_ht")
        if price is None:
            price = art.get("price_ht", 0)
        return {
            "reference": art.get("reference") or "",
            "designation": art.get("designation") or art.get("name") or art.get("name_fr") or "",
            "unite": art.get("unite") or "U",
            "prix_ht": price or 0,
        }


class ClientDirectory:

    def __init__(self, db):
        self.db = db

    async def get(self, user_id: str) -> Optional[dict]:
        try:
            return await self.db.users.find_one(
                {"id": user_id}, {"_id": 0, "password": 0}
            )
        except PyMongoError as e:
            raise StorageUnavailable("Base indisponible (clients)") from e

    async def snapshot(self, user_id: str) -> ClientSnapshot:
        """Copie figée du client (nom complet, sinon email)"""
        user = await self.get(user_id) or {}
        if not user:
            logger.warning(f"[CLIENT] Fiche introuvable pour {user_id}, snapshot minimal")
        full_name = f"{user.get('prenom') or ''} {user.get('nom') or ''}".strip()
        company = user.get("company") or {}
        return ClientSnapshot(
            id=user_id,
            nom=full_name or user.get("email") or "",
            email=user.get("email"),
            adresse=user.get("adresse"),
            tel=user.get("num_tel") or user.get("tel"),
            code_tva=company.get("matricule_fiscal"),
        )
