"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  MTR Devis - Demandes de devis (6 collections)                               ║
║                                                                              ║
║  Un seul flux paramétré par type au lieu de 6 contrôleurs:                   ║
║  - validation du payload spec via SPEC_MODELS[type]                          ║
║  - numéro DDV alloué AVANT l'insertion (numéro brûlé si insert échoue)       ║
║  - notification admin via l'outbox (après commit, best-effort)               ║
║                                                                              ║
║  Recherche cross-collections: ordre FIXE de DEMANDE_COLLECTIONS              ║
║  Ce module ne modifie jamais une demande existante (hors PDF généré)         ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import asyncio
import logging
import re
import uuid
from typing import Optional, List, Tuple

from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError

from config import now_iso, MAX_ATTACHMENTS, MAX_ATTACHMENT_SIZE
from models.demande import SPEC_MODELS, DemandeCreate, GeneratedPdf
from services.errors import ValidationError, StorageUnavailable
from services.numbering import FAMILY_DEMANDE

logger = logging.getLogger("demandes")

# Ordre de recherche cross-collections
DEMANDE_COLLECTIONS = [
    ("autre", "devis_autre"),
    ("compression", "devis_compression"),
    ("traction", "devis_traction"),
    ("torsion", "devis_torsion"),
    ("fil", "devis_fil_dresse"),
    ("grille", "devis_grille"),
]

COLLECTION_BY_TYPE = dict(DEMANDE_COLLECTIONS)


def owner_of(demande: dict) -> Optional[str]:
    owner = demande.get("user_id")
    return str(owner) if owner else None


class DemandeRegistry:
    """Accès aux 6 collections de demandes, type → collection"""

    def __init__(self, db):
        self.db = db

    def collection(self, demande_type: str):
        name = COLLECTION_BY_TYPE.get(demande_type)
        if name is None:
            raise ValidationError(f"Type de demande invalide: {demande_type}")
        return self.db[name]

    async def resolve_any(self, demande_id: str) -> Optional[Tuple[str, dict]]:
        """Première collection contenant cet id → (type, demande)"""
        if not demande_id:
            return None
        try:
            for demande_type, name in DEMANDE_COLLECTIONS:
                doc = await self.db[name].find_one({"id": str(demande_id)}, {"_id": 0})
                if doc:
                    return demande_type, doc
        except PyMongoError as e:
            raise StorageUnavailable("Base indisponible (demandes)") from e
        return None

    async def search_numeros(self, q: Optional[str] = None) -> List[dict]:
        """
        Toutes les demandes (ou celles dont le numéro contient q, sans casse),
        projetées en {id, numero, type}, concaténées dans l'ordre des collections.
        """
        query = {}
        if q and q.strip():
            query = {"numero": {"$regex": re.escape(q.strip()), "$options": "i"}}

        async def fetch(demande_type: str, name: str):
            rows = await self.db[name].find(
                query, {"_id": 0, "id": 1, "numero": 1, "type": 1}
            ).to_list(None)
            for row in rows:
                row.setdefault("type", demande_type)
            return rows

        try:
            results = await asyncio.gather(
                *(fetch(demande_type, name) for demande_type, name in DEMANDE_COLLECTIONS)
            )
        except PyMongoError as e:
            raise StorageUnavailable("Base indisponible (demandes)") from e
        return [row for rows in results for row in rows]

    async def list_for_user(self, user_id: str) -> List[dict]:
        """Demandes d'un client, tous types, plus récentes d'abord"""
        projection = {"_id": 0, "id": 1, "numero": 1, "type": 1, "created_at": 1, "demande_pdf": 1}
        results = await asyncio.gather(*(
            self.db[name].find({"user_id": user_id}, projection).to_list(None)
            for _, name in DEMANDE_COLLECTIONS
        ))
        rows = [row for chunk in results for row in chunk]
        rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
        return rows


class DemandeService:
    """Création d'une demande, quel que soit son type"""

    def __init__(self, registry: DemandeRegistry, numbering, outbox=None):
        self.registry = registry
        self.numbering = numbering
        self.outbox = outbox

    async def create(self, demande_type: str, user_id: str, data: DemandeCreate) -> dict:
        if not user_id:
            raise ValidationError("Utilisateur non authentifié")
        model = SPEC_MODELS.get(demande_type)
        if model is None:
            raise ValidationError(f"Type de demande invalide: {demande_type}")

        try:
            spec = model.model_validate(data.spec)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ())) or "spec"
            raise ValidationError(f"Spécification invalide ({field}): {first.get('msg')}") from e

        if len(data.documents) > MAX_ATTACHMENTS:
            raise ValidationError(f"Trop de fichiers (max {MAX_ATTACHMENTS}).")
        for document in data.documents:
            if document.size > MAX_ATTACHMENT_SIZE:
                raise ValidationError(f'"{document.filename}" dépasse 5 Mo.')

        numero = await self.numbering.allocate_and_format(FAMILY_DEMANDE)

        now = now_iso()
        demande = {
            "id": str(uuid.uuid4()),
            "numero": numero,
            "user_id": user_id,
            "type": demande_type,
            "spec": spec.model_dump(exclude_none=True),
            "documents": [d.model_dump() for d in data.documents],
            "demande_pdf": None,
            "exigences": data.exigences or "",
            "remarques": data.remarques or "",
            "created_at": now,
            "updated_at": now,
        }

        try:
            await self.registry.collection(demande_type).insert_one(demande)
        except PyMongoError as e:
            logger.error(f"[DEMANDE] Insert échoué, numéro {numero} perdu: {str(e)}")
            raise StorageUnavailable("Base indisponible (demandes)") from e
        demande.pop("_id", None)

        logger.info(f"[DEMANDE] {numero} créée (type={demande_type}, user={user_id[:8]}...)")

        if self.outbox is not None:
            await self.outbox.enqueue("demande_created", {
                "demande_id": demande["id"],
                "type": demande_type,
            })
        return demande

    async def attach_generated_pdf(self, demande_type: str, demande_id: str, pdf: GeneratedPdf) -> bool:
        """Renseigne demande_pdf une fois le PDF produit (seule mise à jour autorisée)"""
        result = await self.registry.collection(demande_type).update_one(
            {"id": demande_id},
            {"$set": {"demande_pdf": pdf.model_dump(), "updated_at": now_iso()}}
        )
        return result.matched_count > 0
