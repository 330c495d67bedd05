"""
MTR Devis - Modèle Réclamation
"""

from typing import Optional, List
from pydantic import BaseModel

from .demande import DocumentMeta


class CommandeRef(BaseModel):
    """Document commercial concerné par la réclamation"""
    type_doc: Optional[str] = None  # devis, bon de livraison, facture...
    numero: Optional[str] = None
    date_livraison: Optional[str] = None
    reference_produit: Optional[str] = None
    quantite: Optional[int] = None


class ReclamationCreate(BaseModel):
    commande: CommandeRef = CommandeRef()
    nature: Optional[str] = None
    attente: Optional[str] = None
    description: Optional[str] = ""
    precisez_nature: Optional[str] = None
    precisez_attente: Optional[str] = None
    pieces_jointes: List[DocumentMeta] = []
