"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  MTR Devis - Dépôt des devis                                                 ║
║                                                                              ║
║  SEUL CE MODULE écrit dans la collection "devis"                             ║
║                                                                              ║
║  RÈGLES:                                                                     ║
║  - totaux recalculés depuis items à CHAQUE écriture (_save)                  ║
║  - numero alloué (famille "offre") avant l'insertion                         ║
║  - demandes[] liste toutes les demandes sources {id, numero, type}           ║
║  - append-only: pas de mise à jour ni de suppression                         ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import uuid
from typing import List, Optional, Tuple, Set

from pymongo.errors import PyMongoError

from config import now_iso, FODEC_PERCENT, TIMBRE_FISCAL
from models.devis import DevisDocument, ClientSnapshot
from services.errors import StorageUnavailable, ValidationError
from services.numbering import FAMILY_DEVIS
from services.totals import recalc_totals

logger = logging.getLogger("quotation_repository")


class QuotationRepository:

    def __init__(self, db, numbering):
        self.db = db
        self.numbering = numbering

    async def _save(self, devis: dict) -> dict:
        """Hook pré-écriture: totaux toujours dérivés des lignes"""
        recalc_totals(devis)
        devis["updated_at"] = now_iso()
        doc = DevisDocument.model_validate(devis).model_dump(mode="json")
        try:
            await self.db.devis.insert_one(doc)
        except PyMongoError as e:
            logger.error(f"[DEVIS] Insert échoué, numéro {devis.get('numero')} perdu: {str(e)}")
            raise StorageUnavailable("Base indisponible (devis)") from e
        doc.pop("_id", None)
        return doc

    async def create(
        self,
        demandes: List[Tuple[str, dict]],
        items: List[dict],
        client: ClientSnapshot,
        fodec_pct: Optional[float] = None,
        timbre: Optional[float] = None,
    ) -> dict:
        """
        Crée un devis depuis des demandes déjà résolues [(type, demande), ...].
        La première demande est la demande "principale" (compatibilité mono-demande).
        """
        if not demandes:
            raise ValidationError("Au moins une demande est requise")
        if not items:
            raise ValidationError("Aucune ligne valide")

        primary_type, primary = demandes[0]
        numero = await self.numbering.allocate_and_format(FAMILY_DEVIS)

        now = now_iso()
        devis = {
            "id": str(uuid.uuid4()),
            "numero": numero,
            "demande_id": primary["id"],
            "demande_numero": primary.get("numero") or "",
            "type_demande": primary_type,
            "status": "draft",
            "valid_until": None,
            "client": client.model_dump(),
            "items": [dict(item) for item in items],
            "totaux": {
                "fodec_pct": FODEC_PERCENT if fodec_pct is None else fodec_pct,
                "timbre": TIMBRE_FISCAL if timbre is None else timbre,
            },
            "demandes": [
                {"id": d["id"], "numero": d.get("numero") or "", "type": t}
                for t, d in demandes
            ],
            "created_at": now,
            "updated_at": now,
        }

        saved = await self._save(devis)
        logger.info(
            f"[DEVIS] {numero} créé: {len(saved['items'])} ligne(s), "
            f"demandes={[d['numero'] for d in saved['demandes']]}, mttc={saved['totaux']['mttc']}"
        )
        return saved

    async def find_by_source_request(self, key: str, numero: Optional[str] = None) -> Optional[dict]:
        """
        Dernier devis rattaché à une demande, par id (demande principale ou liée)
        ou par numéro (principal ou demandes[].numero).
        """
        ors = []
        if key:
            ors += [{"demande_id": key}, {"demandes.id": key}]
        numeros = {n.strip().upper() for n in (key, numero) if n and n.strip()}
        for n in numeros:
            ors += [{"demande_numero": n}, {"demandes.numero": n}]
        if not ors:
            raise ValidationError("Paramètres manquants")

        try:
            rows = await self.db.devis.find(
                {"$or": ors}, {"_id": 0}
            ).sort("created_at", -1).limit(1).to_list(1)
        except PyMongoError as e:
            raise StorageUnavailable("Base indisponible (devis)") from e
        return rows[0] if rows else None

    async def converted_keys(self, ids: List[str], numeros: List[str]) -> Tuple[Set[str], Set[str]]:
        """
        Une seule requête: ids et numéros de demandes ayant déjà un devis.
        Returns: (ids_convertis, numeros_convertis en majuscules)
        """
        ids = [str(i) for i in ids if i]
        # numéros comparés sans casse: valeur saisie et forme majuscule
        numeros = sorted({v for n in numeros if n and n.strip() for v in (n.strip(), n.strip().upper())})
        if not ids and not numeros:
            return set(), set()

        ors = []
        if ids:
            ors += [{"demande_id": {"$in": ids}}, {"demandes.id": {"$in": ids}}]
        if numeros:
            ors += [{"demande_numero": {"$in": numeros}}, {"demandes.numero": {"$in": numeros}}]

        try:
            existing = await self.db.devis.find(
                {"$or": ors},
                {"_id": 0, "demande_id": 1, "demande_numero": 1, "demandes": 1}
            ).to_list(None)
        except PyMongoError as e:
            raise StorageUnavailable("Base indisponible (devis)") from e

        done_ids, done_numeros = set(), set()
        for devis in existing:
            if devis.get("demande_id"):
                done_ids.add(str(devis["demande_id"]))
            if devis.get("demande_numero"):
                done_numeros.add(devis["demande_numero"].strip().upper())
            for link in devis.get("demandes") or []:
                if link.get("id"):
                    done_ids.add(str(link["id"]))
                if link.get("numero"):
                    done_numeros.add(link["numero"].strip().upper())
        return done_ids, done_numeros

    async def get(self, devis_id: str) -> Optional[dict]:
        try:
            return await self.db.devis.find_one({"id": devis_id}, {"_id": 0})
        except PyMongoError as e:
            raise StorageUnavailable("Base indisponible (devis)") from e
