"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  MTR Devis - Numérotation                                                    ║
║                                                                              ║
║  Compteurs par (famille, année) dans la collection "counters"                ║
║  - Incrément atomique upsert + $inc (jamais lecture puis écriture)           ║
║  - Un numéro alloué n'est jamais réutilisé, même si la création échoue       ║
║                                                                              ║
║  FORMATS:                                                                    ║
║  - Demande      DDV + AA + seq 5 chiffres   (DDV2500123)                     ║
║  - Devis        DV + AAAA + "-" + seq 6     (DV2025-000123)                  ║
║  - Réclamation  R + AA + seq 5 chiffres     (R2500042)                       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from config import current_year
from services.errors import StorageUnavailable, ValidationError

logger = logging.getLogger("numbering")

FAMILY_DEMANDE = "devis"
FAMILY_DEVIS = "offre"
FAMILY_RECLAMATION = "reclamation"

DEMANDE_PREFIX = "DDV"
DEVIS_PREFIX = "DV"
RECLAMATION_PREFIX = "R"


def counter_key(family: str, year) -> str:
    return f"{family}:{year}"


def format_demande_number(year: int, seq: int) -> str:
    """DDV + 2 derniers chiffres de l'année + seq sur 5 chiffres (min)"""
    return f"{DEMANDE_PREFIX}{str(year)[-2:]}{seq:05d}"


def format_devis_number(year: int, seq: int) -> str:
    return f"{DEVIS_PREFIX}{year}-{seq:06d}"


def format_reclamation_number(year: int, seq: int) -> str:
    return f"{RECLAMATION_PREFIX}{str(year)[-2:]}{seq:05d}"


FORMATTERS = {
    FAMILY_DEMANDE: format_demande_number,
    FAMILY_DEVIS: format_devis_number,
    FAMILY_RECLAMATION: format_reclamation_number,
}


def is_demande_number(value) -> bool:
    """Vrai si la valeur ressemble à un numéro de demande (préfixe DDV)"""
    return isinstance(value, str) and value.strip().upper().startswith(DEMANDE_PREFIX)


class SequenceAllocator:
    """Compteurs atomiques par clé "<famille>:<année>" """

    def __init__(self, db):
        self.db = db

    async def allocate(self, year, family: str) -> int:
        """
        Incrémente et retourne la nouvelle valeur du compteur.
        Crée implicitement le compteur (seq=1) au premier appel.
        """
        key = counter_key(family, year)
        try:
            doc = await self.db.counters.find_one_and_update(
                {"_id": key},
                {"$inc": {"seq": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"[COUNTER] Allocation impossible {key}: {str(e)}")
            raise StorageUnavailable(f"Compteur indisponible: {key}") from e
        return int(doc["seq"])

    async def peek(self, year, family: str) -> int:
        """Valeur courante du compteur (0 si inexistant), sans écriture"""
        key = counter_key(family, year)
        try:
            doc = await self.db.counters.find_one({"_id": key})
        except PyMongoError as e:
            raise StorageUnavailable(f"Compteur indisponible: {key}") from e
        return int(doc["seq"]) if doc else 0


class NumberingService:
    """Allocation + formatage des numéros lisibles"""

    def __init__(self, allocator: SequenceAllocator):
        self.allocator = allocator

    async def allocate_and_format(self, family: str, year: Optional[int] = None) -> str:
        formatter = FORMATTERS.get(family)
        if formatter is None:
            raise ValidationError(f"Famille de numérotation inconnue: {family}")
        year = year or current_year()
        seq = await self.allocator.allocate(year, family)
        numero = formatter(year, seq)
        logger.info(f"[COUNTER] {family}:{year} -> {numero}")
        return numero

    async def preview_next_quotation_number(self, year: Optional[int] = None) -> str:
        """
        Numéro qu'aurait le prochain devis. Indicatif seulement:
        une allocation concurrente peut le prendre avant.
        """
        year = year or current_year()
        seq = await self.allocator.peek(year, FAMILY_DEVIS)
        return format_devis_number(year, seq + 1)
