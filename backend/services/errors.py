"""
MTR Devis - Erreurs métier

Levées par les services, traduites en HTTPException par les routes.
Aucune de ces erreurs n'implique d'écriture partielle.
"""


class DevisError(Exception):
    """Base des erreurs métier"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DevisError):
    """Entrée manquante ou mal formée"""
    status_code = 400


class NotFoundError(DevisError):
    """Demande, article ou devis référencé introuvable"""
    status_code = 404


class ConflictError(DevisError):
    """Demandes de clients différents dans un même devis"""
    status_code = 409


class StorageUnavailable(DevisError):
    """Base de données injoignable (compteur ou documents)"""
    status_code = 503
