"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  MTR Devis - Construction des lignes d'un devis multi-demandes               ║
║                                                                              ║
║  1. Résolution de TOUTES les demandes (sinon échec, aucun devis partiel)     ║
║  2. Même client pour toutes les demandes                                     ║
║  3. Pour chaque ligne: article + numéro de demande d'origine                 ║
║                                                                              ║
║  ORIGINE D'UNE LIGNE (première règle qui s'applique):                        ║
║  a. demande_id = id d'une demande chargée → son numéro                       ║
║  b. demande_id = numéro "DDV…" → utilisé tel quel (majuscules)               ║
║  c. demande_numero fourni → majuscules                                       ║
║  d. numéro de la 1ère demande (lignes legacy mono-demande)                   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Tuple, Optional

from config import to_num, DEFAULT_TVA_PERCENT
from models.devis import LineDescriptor
from services.demandes import owner_of
from services.errors import ValidationError, NotFoundError, ConflictError
from services.numbering import is_demande_number
from services.totals import clamp_pct, line_total_ht

logger = logging.getLogger("line_builder")


@dataclass
class BuiltLines:
    items: List[dict]
    demandes: List[Tuple[str, dict]]  # [(type, demande)] dans l'ordre demandé

    @property
    def owner_id(self) -> Optional[str]:
        return owner_of(self.demandes[0][1]) if self.demandes else None


def _is_identity(value) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except (ValueError, TypeError, AttributeError):
        return False


def _num(value, label: str, line_no: int) -> float:
    try:
        return to_num(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"Ligne {line_no}: {label} invalide ({value!r})")


def resolve_line_origin(descriptor: LineDescriptor, numero_by_id: dict, first_numero: str) -> str:
    demande_id = descriptor.demande_id
    if demande_id and _is_identity(demande_id):
        found = numero_by_id.get(str(demande_id))
        if found:
            return found
    if is_demande_number(demande_id):
        return demande_id.strip().upper()
    if descriptor.demande_numero and descriptor.demande_numero.strip():
        return descriptor.demande_numero.strip().upper()
    return first_numero


class LineBuilder:

    def __init__(self, registry, articles):
        self.registry = registry
        self.articles = articles

    async def load_demandes(self, demande_ids: List[str]) -> List[Tuple[str, dict]]:
        loaded = []
        # un id répété ne donne qu'un seul lien demandes[]
        for demande_id in dict.fromkeys(str(i).strip() for i in demande_ids):
            found = await self.registry.resolve_any(demande_id)
            if not found:
                raise NotFoundError(f"Demande introuvable: {demande_id}")
            loaded.append(found)

        first_owner = owner_of(loaded[0][1])
        if not all(owner_of(doc) == first_owner for _, doc in loaded):
            raise ConflictError("Toutes les demandes doivent appartenir au même client")
        return loaded

    async def build(self, demande_ids: List[str], lines: List[LineDescriptor]) -> BuiltLines:
        if not demande_ids:
            raise ValidationError("demande_ids[] requis")
        if not lines:
            raise ValidationError("lines[] requises")
        for descriptor in lines:
            if not (descriptor.article_id or "").strip():
                raise ValidationError("Chaque ligne doit contenir article_id")

        loaded = await self.load_demandes(demande_ids)

        numero_by_id = {str(doc["id"]): doc.get("numero") for _, doc in loaded}
        # numéros saisis sans casse → numéro tel que stocké
        numero_by_numero = {str(doc.get("numero") or "").upper(): doc.get("numero") for _, doc in loaded}
        first_numero = loaded[0][1].get("numero") or ""

        items = []
        for line_no, descriptor in enumerate(lines, start=1):
            article = await self.articles.resolve(descriptor.article_id.strip())
            if not article:
                raise NotFoundError(f"Article introuvable pour la ligne {line_no}: {descriptor.article_id}")

            origin = resolve_line_origin(descriptor, numero_by_id, first_numero)
            origin = numero_by_numero.get(origin, origin)

            quantite = _num(descriptor.qty or 1, "quantité", line_no)
            puht = _num(article.get("prix_ht"), "prix article", line_no)
            remise = clamp_pct(_num(descriptor.remise_pct, "remise", line_no))
            tva_raw = DEFAULT_TVA_PERCENT if descriptor.tva_pct is None else descriptor.tva_pct
            tva = clamp_pct(_num(tva_raw, "TVA", line_no))
            if quantite < 0:
                raise ValidationError(f"Ligne {line_no}: quantité négative")
            if puht < 0:
                raise ValidationError(f"Ligne {line_no}: prix article négatif")

            items.append({
                "reference": article.get("reference") or "",
                "designation": article.get("designation") or "",
                "unite": article.get("unite") or "U",
                "quantite": quantite,
                "puht": puht,
                "remise_pct": remise,
                "tva_pct": tva,
                "total_ht": line_total_ht(quantite, puht, remise),
                "demande_numero": origin,
            })

        if not items:
            raise ValidationError("Aucune ligne valide")
        return BuiltLines(items=items, demandes=loaded)
