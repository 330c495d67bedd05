"""
MTR Devis - Demandes sans devis

Liste les demandes (6 collections) pour lesquelles aucun devis n'existe encore.

Logique:
- Recherche parallèle dans les 6 collections (filtre numéro optionnel)
- UNE requête devis pour tous les candidats (ids + numéros)
- Exclusion si l'id OU le numéro apparaît dans un devis
  (l'id couvre le devis mono-demande, le numéro couvre demandes[] multi-demandes)
- Dédoublonnage par numéro (1ère occurrence), tri par numéro, limite

Vue instantanée: une demande peut être convertie juste après la lecture.
"""

import logging
import unicodedata
from typing import Optional, List

from config import UNCONVERTED_LIMIT_DEFAULT, UNCONVERTED_LIMIT_MAX

logger = logging.getLogger("aggregator")


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return UNCONVERTED_LIMIT_DEFAULT
    return min(max(int(limit), 1), UNCONVERTED_LIMIT_MAX)


def numero_sort_key(numero: str):
    """Tri "humain": sans accents ni casse, puis valeur brute pour départager"""
    folded = unicodedata.normalize("NFKD", numero)
    folded = "".join(c for c in folded if not unicodedata.combining(c)).casefold()
    return folded, numero


class RequestAggregator:

    def __init__(self, registry, quotations):
        self.registry = registry
        self.quotations = quotations

    async def list_unconverted(self, q: Optional[str] = None, limit: Optional[int] = None) -> List[dict]:
        """
        Returns: [{id, numero, type}, ...] triée par numéro
        """
        limit = clamp_limit(limit)
        candidates = await self.registry.search_numeros(q)

        ids = [c.get("id") for c in candidates]
        numeros = [c.get("numero") for c in candidates if (c.get("numero") or "").strip()]
        done_ids, done_numeros = await self.quotations.converted_keys(ids, numeros)

        by_numero = {}
        for c in candidates:
            numero = (c.get("numero") or "").strip()
            if not numero:
                continue
            if str(c.get("id")) in done_ids or numero.upper() in done_numeros:
                continue
            if numero not in by_numero:
                by_numero[numero] = {"id": c.get("id"), "numero": numero, "type": c.get("type")}

        data = sorted(by_numero.values(), key=lambda d: numero_sort_key(d["numero"]))
        logger.info(
            f"[AGGREGATOR] q={q!r}: {len(candidates)} demandes, "
            f"{len(by_numero)} sans devis, {min(len(data), limit)} retournées"
        )
        return data[:limit]
