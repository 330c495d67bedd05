"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  MTR Devis - Modèle Devis (offre chiffrée)                                   ║
║                                                                              ║
║  Un devis = une ou plusieurs demandes d'un même client                       ║
║  - items: lignes article, chacune avec SON numéro de demande                 ║
║  - totaux: toujours recalculés depuis items (jamais saisis)                  ║
║  - client: copie figée au moment de la création                              ║
║                                                                              ║
║  RÈGLE: numero unique, devis jamais modifié ni supprimé                      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import Optional, List, Union
from pydantic import BaseModel, Field


class DevisStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


VALID_DEVIS_STATUSES = [s.value for s in DevisStatus]


class LineItem(BaseModel):
    """Ligne de devis (embarquée, pas d'identité propre)"""
    reference: str = ""
    designation: str = ""
    unite: str = "U"
    quantite: float = Field(default=1, ge=0)
    puht: float = Field(ge=0)  # prix unitaire HT
    remise_pct: float = Field(default=0, ge=0, le=100)
    tva_pct: float = Field(default=19, ge=0, le=100)
    total_ht: float = 0  # recalculé
    demande_numero: str = ""  # demande d'origine de CETTE ligne


class Totaux(BaseModel):
    mtht: float = 0  # HT avant remises
    mtnetht: float = 0  # HT net après remises lignes
    mttva: float = 0
    fodec_pct: float = 1
    mfodec: float = 0
    timbre: float = 0  # timbre fiscal
    mttc: float = 0


class DemandeLink(BaseModel):
    id: str
    numero: str
    type: str


class ClientSnapshot(BaseModel):
    id: Optional[str] = None
    nom: str = ""
    email: Optional[str] = None
    adresse: Optional[str] = None
    tel: Optional[str] = None
    code_tva: Optional[str] = None


class DevisDocument(BaseModel):
    """Document persisté dans la collection devis"""
    id: str
    numero: str
    demande_id: str
    demande_numero: str
    type_demande: str
    status: DevisStatus = DevisStatus.DRAFT
    valid_until: Optional[str] = None
    client: ClientSnapshot
    items: List[LineItem]
    totaux: Totaux
    demandes: List[DemandeLink]
    created_at: str
    updated_at: str


# ==================== API ====================

Numeric = Union[float, int, str]


class LineDescriptor(BaseModel):
    """
    Ligne demandée par l'admin.
    demande_id peut être un id OU directement un numéro "DDV…".
    Les valeurs numériques acceptent "12,5".
    """
    demande_id: Optional[str] = None
    demande_numero: Optional[str] = None
    article_id: Optional[str] = None
    qty: Optional[Numeric] = 1
    remise_pct: Optional[Numeric] = 0
    tva_pct: Optional[Numeric] = None  # défaut: DEFAULT_TVA_PERCENT


class DevisFromDemandes(BaseModel):
    """
    Exemple:
    {
        "demande_ids": ["<id DDV2500010>", "<id DDV2500011>"],
        "lines": [
            {"demande_id": "<id DDV2500010>", "article_id": "a1", "qty": 3},
            {"demande_numero": "DDV2500011", "article_id": "a2", "qty": "1,5", "tva_pct": 19}
        ],
        "send_email": true
    }
    """
    demande_ids: List[str] = []
    lines: List[LineDescriptor] = []
    send_email: bool = True
