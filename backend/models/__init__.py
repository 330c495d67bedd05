"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  MTR Devis - Models Package                                                  ║
║                                                                              ║
║  Exports tous les modèles pour import facile                                 ║
║  from models import DemandeType, DevisFromDemandes, LineDescriptor, etc.     ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Demandes (6 types)
from .demande import (
    DemandeType,
    VALID_DEMANDE_TYPES,
    SPEC_MODELS,
    DocumentMeta,
    GeneratedPdf,
    CompressionSpec,
    TractionSpec,
    TorsionSpec,
    FilDresseSpec,
    GrilleSpec,
    AutreSpec,
    DemandeCreate,
)

# Devis
from .devis import (
    DevisStatus,
    VALID_DEVIS_STATUSES,
    LineItem,
    Totaux,
    DemandeLink,
    ClientSnapshot,
    DevisDocument,
    LineDescriptor,
    DevisFromDemandes,
)

# Réclamations
from .reclamation import (
    CommandeRef,
    ReclamationCreate,
)

__all__ = [
    # Demandes
    "DemandeType",
    "VALID_DEMANDE_TYPES",
    "SPEC_MODELS",
    "DocumentMeta",
    "GeneratedPdf",
    "CompressionSpec",
    "TractionSpec",
    "TorsionSpec",
    "FilDresseSpec",
    "GrilleSpec",
    "AutreSpec",
    "DemandeCreate",
    # Devis
    "DevisStatus",
    "VALID_DEVIS_STATUSES",
    "LineItem",
    "Totaux",
    "DemandeLink",
    "ClientSnapshot",
    "DevisDocument",
    "LineDescriptor",
    "DevisFromDemandes",
    # Réclamations
    "CommandeRef",
    "ReclamationCreate",
]
