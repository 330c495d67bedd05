"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  MTR Devis - Modèle Demande de devis                                         ║
║                                                                              ║
║  Une demande = spécification technique soumise par un client                 ║
║  6 types: compression, traction, torsion, fil, grille, autre                 ║
║  - Base commune (numero, user_id, documents, demande_pdf...)                 ║
║  - Payload "spec" propre au type, validé par SPEC_MODELS[type]               ║
║                                                                              ║
║  RÈGLE: numero attribué à la création, jamais modifié                        ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import re
from enum import Enum
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, field_validator, model_validator


class DemandeType(str, Enum):
    """Types de demande (ordre = ordre de recherche cross-collections)"""
    AUTRE = "autre"
    COMPRESSION = "compression"
    TRACTION = "traction"
    TORSION = "torsion"
    FIL = "fil"
    GRILLE = "grille"


VALID_DEMANDE_TYPES = [t.value for t in DemandeType]

MATIERES_RESSORT = Literal[
    "Fil ressort noir SH",
    "Fil ressort noir SM",
    "Fil ressort galvanisé",
    "Fil ressort inox",
]
ENROULEMENTS = Literal["Enroulement gauche", "Enroulement droite"]


# ==================== PIÈCES JOINTES ====================

class DocumentMeta(BaseModel):
    """Fichier client déjà stocké (upload hors périmètre)"""
    filename: str
    mimetype: Optional[str] = None
    size: int = Field(default=0, ge=0)
    url: Optional[str] = None
    public_id: Optional[str] = None


class GeneratedPdf(BaseModel):
    """PDF de la demande, renseigné après création"""
    filename: str
    content_type: str = "application/pdf"
    size: Optional[int] = None
    url: Optional[str] = None
    public_id: Optional[str] = None


# ==================== SPECS PAR TYPE ====================

_DECIMAL_COMMA = re.compile(r"^\s*-?\d+(,\d+)?\s*$")


class _SpecBase(BaseModel):
    """Saisie formulaire: "12,5" → 12.5, chaîne vide → absent"""

    @model_validator(mode="before")
    @classmethod
    def normalize_form_values(cls, data):
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for key, value in data.items():
            if isinstance(value, str):
                if not value.strip():
                    continue
                if _DECIMAL_COMMA.match(value):
                    value = value.strip().replace(",", ".")
            cleaned[key] = value
        return cleaned


class CompressionSpec(_SpecBase):
    d: float
    DE: float
    H: Optional[float] = None
    S: Optional[float] = None
    DI: float
    Lo: float
    nb_spires: float
    pas: Optional[float] = None
    quantite: float
    matiere: MATIERES_RESSORT
    enroulement: Optional[ENROULEMENTS] = None
    extremite: Optional[Literal["ERM", "EL", "ELM", "ERNM"]] = None


class TractionSpec(_SpecBase):
    d: float
    De: float
    Lo: float
    nb_spires: float
    quantite: float
    matiere: MATIERES_RESSORT
    enroulement: ENROULEMENTS
    position_anneaux: Literal["0°", "90°", "180°", "270°"]
    type_accrochage: Literal[
        "Anneau Allemand",
        "Double Anneau Allemand",
        "Anneau tangent",
        "Anneau allongé",
        "Boucle Anglaise",
        "Anneau tournant",
        "Conification avec vis",
    ]


class TorsionSpec(_SpecBase):
    d: float
    De: float
    Lc: float
    angle: float
    nb_spires: float
    L1: float
    L2: float
    quantite: float
    matiere: MATIERES_RESSORT
    enroulement: ENROULEMENTS


class FilDresseSpec(_SpecBase):
    longueur_valeur: float
    longueur_unite: Literal["mm", "m"]
    diametre: float
    quantite_valeur: float
    quantite_unite: Literal["pieces", "kg"]
    matiere: Literal["Acier galvanisé", "Acier Noir", "Acier ressort", "Acier inoxydable"]


class GrilleSpec(_SpecBase):
    L: float  # longueur
    l: float  # largeur
    nb_long: int  # tiges longitudinales
    nb_trans: int  # tiges transversales
    pas1: float
    pas2: float
    D2: float  # fil des tiges
    D1: float  # fil du cadre
    quantite: float
    matiere: Literal["Acier galvanisé", "Acier Noir"]
    finition: Literal["Peinture", "Chromage", "Galvanisation", "Autre"]


class AutreSpec(_SpecBase):
    titre: Optional[str] = None
    designation: str
    dimensions: Optional[str] = None
    quantite: float = Field(ge=1)
    matiere: Optional[str] = None
    matiere_autre: Optional[str] = None
    description: Optional[str] = None

    @field_validator("designation")
    @classmethod
    def designation_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("designation est obligatoire")
        return v.strip()

    @model_validator(mode="after")
    def resolve_matiere(self):
        """matiere "autre" → texte libre; titre par défaut = designation"""
        if (not self.matiere or self.matiere.strip().lower() == "autre") and self.matiere_autre:
            self.matiere = self.matiere_autre.strip()
        if not self.matiere:
            raise ValueError("Le champ matière est requis.")
        if not self.titre:
            self.titre = self.designation or f"Article ({self.matiere})"
        return self


SPEC_MODELS = {
    DemandeType.COMPRESSION.value: CompressionSpec,
    DemandeType.TRACTION.value: TractionSpec,
    DemandeType.TORSION.value: TorsionSpec,
    DemandeType.FIL.value: FilDresseSpec,
    DemandeType.GRILLE.value: GrilleSpec,
    DemandeType.AUTRE.value: AutreSpec,
}


# ==================== API ====================

class DemandeCreate(BaseModel):
    """
    Soumission d'une demande (le type vient de l'URL)

    Exemple (compression):
    {
        "spec": {"d": 2, "DE": 20, "DI": 16, "Lo": 50, "nb_spires": 8,
                 "quantite": 100, "matiere": "Fil ressort inox"},
        "documents": [{"filename": "plan.pdf", "size": 12000, "url": "..."}],
        "exigences": "Tolérance ±0.1"
    }
    """
    spec: dict
    documents: List[DocumentMeta] = []
    exigences: Optional[str] = ""
    remarques: Optional[str] = ""


