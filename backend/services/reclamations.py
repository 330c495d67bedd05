"""
MTR Devis - Réclamations clients

Numéro R + AA + seq (famille "reclamation").
Nature / attente "Autre": remplacées par le texte précisé,
sinon extraites de la description ("Précisez la nature : ...").
"""

import logging
import re
import uuid
from typing import Optional

from pymongo.errors import PyMongoError

from config import now_iso, MAX_ATTACHMENTS, MAX_ATTACHMENT_SIZE
from models.reclamation import ReclamationCreate
from services.errors import ValidationError, StorageUnavailable
from services.numbering import FAMILY_RECLAMATION

logger = logging.getLogger("reclamations")

_OTHER = re.compile(r"^(autres?|other)$", re.IGNORECASE)
_NATURE_IN_DESC = re.compile(r"Précisez\s+la\s+nature\s*:\s*([^|]+?)(?:\||$)", re.IGNORECASE)
_ATTENTE_IN_DESC = re.compile(r"Précisez\s+votre\s+attente\s*:\s*([^|]+?)(?:\||$)", re.IGNORECASE)


def is_other(value) -> bool:
    return bool(_OTHER.match(str(value or "").strip()))


def resolve_other(value: Optional[str], precise: Optional[str], description: str, pattern) -> Optional[str]:
    """Remplace "Autre" par la précision saisie ou trouvée dans la description"""
    if not is_other(value):
        return value
    if precise and precise.strip():
        return precise.strip()
    match = pattern.search(description or "")
    if match:
        return match.group(1).strip()
    return value


class ReclamationService:

    def __init__(self, db, numbering, outbox=None):
        self.db = db
        self.numbering = numbering
        self.outbox = outbox

    async def create(self, user_id: str, data: ReclamationCreate) -> dict:
        if not user_id:
            raise ValidationError("Utilisateur non authentifié")

        description = data.description or ""
        nature = resolve_other(data.nature, data.precisez_nature, description, _NATURE_IN_DESC)
        attente = resolve_other(data.attente, data.precisez_attente, description, _ATTENTE_IN_DESC)

        if not data.commande.type_doc:
            raise ValidationError("commande.type_doc est obligatoire")
        if not data.commande.numero:
            raise ValidationError("commande.numero est obligatoire")
        if not nature:
            raise ValidationError("nature est obligatoire")
        if not attente:
            raise ValidationError("attente est obligatoire")

        if len(data.pieces_jointes) > MAX_ATTACHMENTS:
            raise ValidationError(f"Trop de fichiers (max {MAX_ATTACHMENTS}).")
        for pj in data.pieces_jointes:
            if pj.size > MAX_ATTACHMENT_SIZE:
                raise ValidationError(f'"{pj.filename}" dépasse 5 Mo.')

        numero = await self.numbering.allocate_and_format(FAMILY_RECLAMATION)

        now = now_iso()
        rec = {
            "id": str(uuid.uuid4()),
            "numero": numero,
            "user_id": user_id,
            "commande": data.commande.model_dump(),
            "nature": nature,
            "attente": attente,
            "description": description,
            "pieces_jointes": [p.model_dump() for p in data.pieces_jointes],
            "demande_pdf": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self.db.reclamations.insert_one(rec)
        except PyMongoError as e:
            logger.error(f"[RECLAMATION] Insert échoué, numéro {numero} perdu: {str(e)}")
            raise StorageUnavailable("Base indisponible (réclamations)") from e
        rec.pop("_id", None)

        logger.info(f"[RECLAMATION] {numero} créée (user={user_id[:8]}...)")
        if self.outbox is not None:
            await self.outbox.enqueue("reclamation_created", {"reclamation_id": rec["id"]})
        return rec

    async def list_for_user(self, user_id: str, limit: int = 100) -> list:
        return await self.db.reclamations.find(
            {"user_id": user_id}, {"_id": 0}
        ).sort("created_at", -1).limit(limit).to_list(limit)

    async def list_all(self, page: int = 1, page_size: int = 20, q: Optional[str] = None) -> dict:
        """Liste admin paginée, recherche optionnelle sur le numéro"""
        page = max(int(page), 1)
        page_size = min(max(int(page_size), 1), 100)
        query = {}
        if q and q.strip():
            query["numero"] = {"$regex": re.escape(q.strip()), "$options": "i"}

        total = await self.db.reclamations.count_documents(query)
        items = await self.db.reclamations.find(
            query, {"_id": 0}
        ).sort("created_at", -1).skip((page - 1) * page_size).limit(page_size).to_list(page_size)
        return {"items": items, "total": total, "page": page, "page_size": page_size}
